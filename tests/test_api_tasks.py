"""
Tests: task and meeting HTTP API (status codes, ETag / If-Match handling).
"""

import pytest


def _create_task(client, auth, ws, **payload):
    body = {"title": "Ship it", "assigned_to": "u-bob", **payload}
    res = client.post(f"/api/v1/workspaces/{ws.id}/tasks", json=body, headers=auth("u-carol"))
    assert res.status_code == 201
    return res.get_json()


def _act(client, auth, ws, task_id, action, user, version):
    return client.post(
        f"/api/v1/workspaces/{ws.id}/tasks/{task_id}/{action}",
        headers=auth(user, version=version),
    )


# ── Tasks ────────────────────────────────────────────────────────────────────


def test_create_returns_etag(client, auth, workspace):
    res = client.post(
        f"/api/v1/workspaces/{workspace.id}/tasks",
        json={"title": "Plan", "deadline": "2026-11-30", "priority": "high"},
        headers=auth("u-carol"),
    )
    assert res.status_code == 201
    assert res.headers["ETag"] == '"1"'
    body = res.get_json()
    assert (body["status"], body["deadline"], body["assigned_to"]) == ("pending", "2026-11-30", None)


def test_create_without_flag_is_403(client, auth, workspace):
    res = client.post(f"/api/v1/workspaces/{workspace.id}/tasks", json={"title": "X"}, headers=auth("u-bob"))
    assert res.status_code == 403
    assert res.get_json()["code"] == "FORBIDDEN"


def test_bad_deadline_is_400(client, auth, workspace):
    res = client.post(
        f"/api/v1/workspaces/{workspace.id}/tasks",
        json={"title": "X", "deadline": "someday"},
        headers=auth("u-carol"),
    )
    assert res.status_code == 400


def test_lifecycle_over_http(client, auth, workspace):
    task = _create_task(client, auth, workspace)

    res = _act(client, auth, workspace, task["id"], "start", "u-bob", 1)
    assert res.status_code == 200
    assert res.headers["ETag"] == '"2"'

    res = _act(client, auth, workspace, task["id"], "request_completion", "u-bob", 2)
    assert res.get_json()["status"] == "pending_approval"

    res = _act(client, auth, workspace, task["id"], "approve", "u-admin", 3)
    assert res.status_code == 200
    assert res.get_json()["status"] == "completed"
    assert res.get_json()["version"] == 4


def test_version_in_body_is_accepted(client, auth, workspace):
    task = _create_task(client, auth, workspace)
    res = client.post(
        f"/api/v1/workspaces/{workspace.id}/tasks/{task['id']}/start",
        json={"version": 1},
        headers=auth("u-bob"),
    )
    assert res.status_code == 200


def test_weak_etag_is_accepted(client, auth, workspace):
    task = _create_task(client, auth, workspace)
    res = client.post(
        f"/api/v1/workspaces/{workspace.id}/tasks/{task['id']}/start",
        headers={**auth("u-bob"), "If-Match": 'W/"1"'},
    )
    assert res.status_code == 200


def test_transition_without_version_is_428(client, auth, workspace):
    task = _create_task(client, auth, workspace)
    res = client.post(f"/api/v1/workspaces/{workspace.id}/tasks/{task['id']}/start", headers=auth("u-bob"))
    assert res.status_code == 428
    assert res.get_json()["code"] == "ERR_PRECONDITION_REQUIRED"


@pytest.mark.parametrize("user, version, status, code", [
    ("u-carol", 2, 409, "INVALID_TRANSITION"),   # already ongoing
    ("u-bob", 1, 412, "STALE_WRITE"),            # stale view
])
def test_second_start_is_rejected(client, auth, workspace, user, version, status, code):
    task = _create_task(client, auth, workspace)
    assert _act(client, auth, workspace, task["id"], "start", "u-bob", 1).status_code == 200

    res = _act(client, auth, workspace, task["id"], "start", user, version)
    assert res.status_code == status
    assert res.get_json()["code"] == code


def test_member_approve_is_403(client, auth, workspace):
    task = _create_task(client, auth, workspace)
    _act(client, auth, workspace, task["id"], "start", "u-bob", 1)
    _act(client, auth, workspace, task["id"], "request_completion", "u-bob", 2)

    res = _act(client, auth, workspace, task["id"], "approve", "u-bob", 3)
    assert res.status_code == 403

    res = client.get(f"/api/v1/workspaces/{workspace.id}/tasks/{task['id']}", headers=auth("u-bob"))
    assert res.get_json()["status"] == "pending_approval"
    assert res.headers["ETag"] == '"3"'


def test_unknown_action_is_400(client, auth, workspace):
    task = _create_task(client, auth, workspace)
    assert _act(client, auth, workspace, task["id"], "archive", "u-admin", 1).status_code == 400


def test_edit_completed_task_is_423(client, auth, workspace):
    task = _create_task(client, auth, workspace)
    _act(client, auth, workspace, task["id"], "start", "u-bob", 1)
    _act(client, auth, workspace, task["id"], "request_completion", "u-bob", 2)
    _act(client, auth, workspace, task["id"], "approve", "u-admin", 3)

    res = client.patch(
        f"/api/v1/workspaces/{workspace.id}/tasks/{task['id']}",
        json={"title": "Changed"},
        headers=auth("u-carol", version=4),
    )
    assert res.status_code == 423
    assert res.get_json()["code"] == "TASK_LOCKED"


def test_assign_endpoint(client, auth, workspace):
    task = _create_task(client, auth, workspace, assigned_to=None)
    res = client.put(
        f"/api/v1/workspaces/{workspace.id}/tasks/{task['id']}/assign",
        json={"assigned_to": "u-bob"},
        headers=auth("u-carol", version=1),
    )
    assert res.status_code == 200
    assert res.get_json()["assigned_to"] == "u-bob"


def test_task_in_other_workspace_is_404(client, auth, workspace):
    task = _create_task(client, auth, workspace)
    res = client.post("/api/v1/workspaces", json={"name": "Elsewhere"}, headers=auth("u-bob"))
    other_id = res.get_json()["id"]

    res = client.get(f"/api/v1/workspaces/{other_id}/tasks/{task['id']}", headers=auth("u-bob"))
    assert res.status_code == 404


def test_delete_task(client, auth, workspace):
    task = _create_task(client, auth, workspace)
    url = f"/api/v1/workspaces/{workspace.id}/tasks/{task['id']}"
    assert client.delete(url, headers=auth("u-bob", version=1)).status_code == 403
    assert client.delete(url, headers=auth("u-carol", version=1)).status_code == 204
    assert client.get(url, headers=auth("u-carol")).status_code == 404


# ── Meetings ─────────────────────────────────────────────────────────────────


_MEETING = {
    "title": "Kickoff",
    "start_time": "2026-05-04T10:00:00Z",
    "end_time": "2026-05-04T11:00:00Z",
    "participants": ["u-bob"],
}


def test_meeting_without_flag_is_403(client, auth, workspace):
    res = client.post(f"/api/v1/workspaces/{workspace.id}/meetings", json=_MEETING, headers=auth("u-bob"))
    assert res.status_code == 403


def test_meeting_bad_range_is_422(client, auth, workspace):
    payload = {**_MEETING, "end_time": "2026-05-04T10:00:00Z"}
    res = client.post(f"/api/v1/workspaces/{workspace.id}/meetings", json=payload, headers=auth("u-admin"))
    assert res.status_code == 422
    assert res.get_json()["code"] == "INVALID_TIME_RANGE"


def test_meeting_missing_time_is_400(client, auth, workspace):
    payload = {"title": "No time"}
    res = client.post(f"/api/v1/workspaces/{workspace.id}/meetings", json=payload, headers=auth("u-admin"))
    assert res.status_code == 400


def test_meeting_crud(client, auth, workspace):
    res = client.post(f"/api/v1/workspaces/{workspace.id}/meetings", json=_MEETING, headers=auth("u-admin"))
    assert res.status_code == 201
    meeting = res.get_json()
    assert meeting["participants"] == ["u-bob"]
    assert meeting["start_time"].startswith("2026-05-04T10:00:00")

    url = f"/api/v1/workspaces/{workspace.id}/meetings/{meeting['id']}"
    res = client.patch(url, json={"location": "Room 2"}, headers=auth("u-admin", version=1))
    assert res.status_code == 200
    assert res.headers["ETag"] == '"2"'

    res = client.get(f"/api/v1/workspaces/{workspace.id}/meetings", headers=auth("u-bob"))
    assert res.get_json()["total"] == 1

    assert client.delete(url, headers=auth("u-admin", version=1)).status_code == 412
    assert client.delete(url, headers=auth("u-admin", version=2)).status_code == 204


@pytest.mark.parametrize("payload", [
    {"title": 123},
    {"title": ["Ship"]},
    {"title": "Ship", "priority": ["high"]},
    {"title": "Ship", "priority": 3},
    {"title": "Ship", "description": {"text": "x"}},
    {"title": "Ship", "assigned_to": ["u-bob"]},
])
def test_wrongly_typed_task_fields_are_400(client, auth, workspace, payload):
    res = client.post(f"/api/v1/workspaces/{workspace.id}/tasks", json=payload, headers=auth("u-carol"))
    assert res.status_code == 400
    assert res.get_json()["code"] in ("ERR_VALIDATION_INVALID", "VALIDATION")


def test_wrongly_typed_task_edit_is_400(client, auth, workspace):
    task = _create_task(client, auth, workspace)
    url = f"/api/v1/workspaces/{workspace.id}/tasks/{task['id']}"
    res = client.patch(url, json={"title": 7}, headers=auth("u-carol", version=1))
    assert res.status_code == 400
    res = client.put(f"{url}/assign", json={"assigned_to": 42}, headers=auth("u-carol", version=1))
    assert res.status_code == 400


def test_boolean_version_is_400(client, auth, workspace):
    task = _create_task(client, auth, workspace)
    res = client.post(
        f"/api/v1/workspaces/{workspace.id}/tasks/{task['id']}/start",
        json={"version": True},
        headers=auth("u-bob"),
    )
    assert res.status_code == 400
    assert res.get_json()["details"] == {"version": "invalid"}


@pytest.mark.parametrize("payload", [
    {**_MEETING, "title": 5},
    {**_MEETING, "location": ["Room 1"]},
    {**_MEETING, "participants": [1]},
])
def test_wrongly_typed_meeting_fields_are_400(client, auth, workspace, payload):
    res = client.post(f"/api/v1/workspaces/{workspace.id}/meetings", json=payload, headers=auth("u-admin"))
    assert res.status_code == 400


def test_meetings_filtered_by_participant(client, auth, workspace):
    url = f"/api/v1/workspaces/{workspace.id}/meetings"
    client.post(url, json=_MEETING, headers=auth("u-admin"))
    client.post(url, json={**_MEETING, "title": "Retro", "participants": ["u-carol"]}, headers=auth("u-admin"))

    res = client.get(f"{url}?participant=u-bob", headers=auth("u-bob"))
    assert [m["title"] for m in res.get_json()["items"]] == ["Kickoff"]
    res = client.get(url, headers=auth("u-bob"))
    assert res.get_json()["total"] == 2


# ── Summary ──────────────────────────────────────────────────────────────────


def test_summary_counts_acting_users_tasks(client, auth, workspace):
    first = _create_task(client, auth, workspace, priority="urgent")
    _create_task(client, auth, workspace, priority="urgent")
    _create_task(client, auth, workspace, assigned_to="u-carol")
    _act(client, auth, workspace, first["id"], "start", "u-bob", 1)
    _act(client, auth, workspace, first["id"], "request_completion", "u-bob", 2)
    _act(client, auth, workspace, first["id"], "approve", "u-admin", 3)

    res = client.get(f"/api/v1/workspaces/{workspace.id}/summary", headers=auth("u-bob"))
    assert res.status_code == 200
    tasks = res.get_json()["tasks"]
    assert (tasks["total"], tasks["completed"], tasks["open"], tasks["urgent_open"]) == (2, 1, 1, 1)
    assert tasks["by_status"] == {"completed": 1, "ongoing": 0, "pending": 1, "pending_approval": 0}
    assert tasks["completion_rate"] == 50


def test_summary_for_outsider_is_403(client, auth, workspace):
    res = client.get(f"/api/v1/workspaces/{workspace.id}/summary", headers=auth("u-stranger"))
    assert res.status_code == 403
