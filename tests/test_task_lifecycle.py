"""
Tests: task lifecycle engine (services/task_lifecycle.py).

Workspace fixture: u-admin (admin), u-bob (plain member),
u-carol (member with can_create_tasks).
"""

from datetime import date

import pytest

from teamflow.core.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    NotAMemberError,
    NotFoundError,
    TaskLockedError,
    ValidationError,
)
from teamflow.models import db as _db
from teamflow.models.audit import AuditLog
from teamflow.models.notification import NotificationEvent
from teamflow.models.task import TASK_STATUSES, TASK_TRANSITIONS, Task
from teamflow.services import task_lifecycle, workspace_service
from teamflow.services.task_lifecycle import validate_task_transition


def _make_task(ws, creator="u-carol", assignee="u-bob", **kwargs):
    task = task_lifecycle.create_task(ws.id, creator, title="Write report", assigned_to=assignee, **kwargs)
    _db.session.commit()
    return task


def _events(ws, type_):
    return NotificationEvent.query.filter_by(workspace_id=ws.id, type=type_).all()


# ── Happy path ───────────────────────────────────────────────────────────────


def test_full_lifecycle_with_versions(workspace):
    """pending → ongoing → pending_approval → completed, one version per step."""
    task = _make_task(workspace)
    assert (task.status, task.version) == ("pending", 1)

    task = task_lifecycle.start_task(workspace.id, task.id, "u-bob", 1)
    assert (task.status, task.version) == ("ongoing", 2)

    task = task_lifecycle.request_completion(workspace.id, task.id, "u-bob", 2)
    assert (task.status, task.version) == ("pending_approval", 3)

    task = task_lifecycle.approve_task(workspace.id, task.id, "u-admin", 3)
    _db.session.commit()
    assert (task.status, task.version) == ("completed", 4)

    actions = [a.action for a in AuditLog.query.filter_by(entity_type="task", entity_id=str(task.id))
               .order_by(AuditLog.id)]
    assert actions == ["task.create", "task.start", "task.request_completion", "task.approve"]


def test_reject_returns_task_to_ongoing(workspace):
    task = _make_task(workspace)
    task_lifecycle.start_task(workspace.id, task.id, "u-bob", 1)
    task_lifecycle.request_completion(workspace.id, task.id, "u-bob", 2)
    task = task_lifecycle.reject_task(workspace.id, task.id, "u-admin", 3)
    assert (task.status, task.version) == ("ongoing", 4)

    task = task_lifecycle.request_completion(workspace.id, task.id, "u-bob", 4)
    assert task.status == "pending_approval"


# ── Rejections ───────────────────────────────────────────────────────────────


def test_start_on_ongoing_task_is_invalid_transition(workspace):
    """Another member calling start on an ongoing task hits the missing edge first."""
    task = _make_task(workspace)
    task_lifecycle.start_task(workspace.id, task.id, "u-bob", 1)
    _db.session.commit()

    with pytest.raises(InvalidTransitionError):
        task_lifecycle.start_task(workspace.id, task.id, "u-carol", 2)


def test_member_cannot_approve(workspace):
    task = _make_task(workspace)
    task_lifecycle.start_task(workspace.id, task.id, "u-bob", 1)
    task_lifecycle.request_completion(workspace.id, task.id, "u-bob", 2)
    _db.session.commit()

    with pytest.raises(ForbiddenError):
        task_lifecycle.approve_task(workspace.id, task.id, "u-bob", 3)
    _db.session.rollback()
    assert _db.session.get(Task, task.id).status == "pending_approval"


def test_non_assignee_cannot_start(workspace):
    task = _make_task(workspace)
    with pytest.raises(ForbiddenError):
        task_lifecycle.start_task(workspace.id, task.id, "u-carol", 1)


def test_unassigned_task_cannot_be_started_even_by_admin(workspace):
    task = _make_task(workspace, assignee=None)
    with pytest.raises(ForbiddenError):
        task_lifecycle.start_task(workspace.id, task.id, "u-admin", 1)


def test_admin_may_start_an_assigned_task(workspace):
    task = _make_task(workspace)
    task = task_lifecycle.start_task(workspace.id, task.id, "u-admin", 1)
    assert task.status == "ongoing"


def test_cannot_approve_from_ongoing(workspace):
    task = _make_task(workspace)
    task_lifecycle.start_task(workspace.id, task.id, "u-bob", 1)
    with pytest.raises(InvalidTransitionError):
        task_lifecycle.approve_task(workspace.id, task.id, "u-admin", 2)


def test_completed_is_terminal(workspace):
    task = _make_task(workspace)
    task_lifecycle.start_task(workspace.id, task.id, "u-bob", 1)
    task_lifecycle.request_completion(workspace.id, task.id, "u-bob", 2)
    task_lifecycle.approve_task(workspace.id, task.id, "u-admin", 3)
    for action in ("start", "request_completion", "approve", "reject"):
        with pytest.raises(InvalidTransitionError):
            task_lifecycle.transition_task(workspace.id, task.id, action, "u-admin", 4)


_PATH_TO = {
    "pending": [],
    "ongoing": [("start", "u-bob")],
    "pending_approval": [("start", "u-bob"), ("request_completion", "u-bob")],
    "completed": [("start", "u-bob"), ("request_completion", "u-bob"), ("approve", "u-admin")],
}
_ACTOR_FOR = {"start": "u-bob", "request_completion": "u-bob", "approve": "u-admin", "reject": "u-admin"}


@pytest.mark.parametrize("status", sorted(TASK_STATUSES))
@pytest.mark.parametrize("action", sorted(TASK_TRANSITIONS))
def test_status_action_matrix(workspace, status, action):
    """Each (status, action) pair either follows its single edge or is refused."""
    task = _make_task(workspace)
    version = 1
    for step, actor in _PATH_TO[status]:
        task = task_lifecycle.transition_task(workspace.id, task.id, step, actor, version)
        version += 1
    _db.session.commit()
    assert task.status == status

    edge = TASK_TRANSITIONS[action]
    if edge["from"] != status:
        with pytest.raises(InvalidTransitionError):
            task_lifecycle.transition_task(workspace.id, task.id, action, _ACTOR_FOR[action], version)
        _db.session.rollback()
        task = _db.session.get(Task, task.id)
        assert (task.status, task.version) == (status, version)
        return

    task = task_lifecycle.transition_task(workspace.id, task.id, action, _ACTOR_FOR[action], version)
    assert task.status == edge["to"]
    assert task.status in TASK_STATUSES
    assert task.version == version + 1


def test_unknown_action(workspace):
    task = _make_task(workspace)
    with pytest.raises(ValidationError):
        task_lifecycle.transition_task(workspace.id, task.id, "archive", "u-admin", 1)


def test_outsider_is_not_a_member(workspace):
    task = _make_task(workspace)
    with pytest.raises(NotAMemberError):
        task_lifecycle.start_task(workspace.id, task.id, "u-stranger", 1)


def test_task_from_other_workspace_is_not_found(workspace):
    other = workspace_service.create_workspace("Other", "u-bob")
    _db.session.commit()
    task = _make_task(workspace)

    with pytest.raises(NotFoundError):
        task_lifecycle.get_task(other.id, task.id, "u-bob")


def test_validate_task_transition_reports_target():
    task = Task(status="ongoing")
    result = validate_task_transition(task, "request_completion")
    assert result == {"valid": True, "from": "ongoing", "to": "pending_approval", "reason": None}
    assert validate_task_transition(task, "approve")["valid"] is False


# ── Creation ─────────────────────────────────────────────────────────────────


def test_member_without_flag_cannot_create(workspace):
    with pytest.raises(ForbiddenError):
        task_lifecycle.create_task(workspace.id, "u-bob", title="Nope")


def test_create_with_non_member_assignee(workspace):
    with pytest.raises(NotAMemberError):
        task_lifecycle.create_task(workspace.id, "u-carol", title="X", assigned_to="u-stranger")


def test_create_validates_priority(workspace):
    with pytest.raises(ValidationError):
        task_lifecycle.create_task(workspace.id, "u-carol", title="X", priority="whenever")


def test_create_stores_deadline(workspace):
    task = _make_task(workspace, deadline=date(2026, 12, 1), priority="high")
    assert task.deadline == date(2026, 12, 1)
    assert task.priority == "high"


# ── Edit / assign / delete ───────────────────────────────────────────────────


def test_creator_edits_task(workspace):
    task = _make_task(workspace)
    task = task_lifecycle.update_task(workspace.id, task.id, "u-carol", 1, title="Write summary")
    assert (task.title, task.version) == ("Write summary", 2)


def test_assignee_cannot_edit_content(workspace):
    task = _make_task(workspace)
    with pytest.raises(ForbiddenError):
        task_lifecycle.update_task(workspace.id, task.id, "u-bob", 1, title="Mine now")


def test_completed_task_is_locked_for_edits(workspace):
    task = _make_task(workspace)
    task_lifecycle.start_task(workspace.id, task.id, "u-bob", 1)
    task_lifecycle.request_completion(workspace.id, task.id, "u-bob", 2)
    task_lifecycle.approve_task(workspace.id, task.id, "u-admin", 3)

    with pytest.raises(TaskLockedError):
        task_lifecycle.update_task(workspace.id, task.id, "u-admin", 4, title="Late edit")


def test_status_is_not_an_editable_field(workspace):
    task = _make_task(workspace)
    with pytest.raises(ValidationError):
        task_lifecycle.update_task(workspace.id, task.id, "u-carol", 1, status="completed")


def test_reassign_only_while_pending(workspace):
    task = _make_task(workspace)
    task = task_lifecycle.assign_task(workspace.id, task.id, "u-carol", 1, "u-admin")
    assert task.assigned_to == "u-admin"

    task_lifecycle.start_task(workspace.id, task.id, "u-admin", 2)
    with pytest.raises(TaskLockedError):
        task_lifecycle.assign_task(workspace.id, task.id, "u-carol", 3, "u-bob")


def test_assign_to_non_member(workspace):
    task = _make_task(workspace)
    with pytest.raises(NotAMemberError):
        task_lifecycle.assign_task(workspace.id, task.id, "u-carol", 1, "u-stranger")


def test_creator_deletes_from_any_status(workspace):
    task = _make_task(workspace)
    task_lifecycle.start_task(workspace.id, task.id, "u-bob", 1)
    task_id = task.id
    task_lifecycle.delete_task(workspace.id, task_id, "u-carol", 2)
    _db.session.commit()
    assert _db.session.get(Task, task_id) is None
    assert AuditLog.query.filter_by(action="task.delete", entity_id=str(task_id)).count() == 1


def test_other_member_cannot_delete(workspace):
    task = _make_task(workspace)
    with pytest.raises(ForbiddenError):
        task_lifecycle.delete_task(workspace.id, task.id, "u-bob", 1)


def test_list_tasks_filters(workspace):
    _make_task(workspace)
    second = _make_task(workspace, assignee="u-carol")
    task_lifecycle.start_task(workspace.id, second.id, "u-carol", 1)

    assert len(task_lifecycle.list_tasks(workspace.id, "u-bob")) == 2
    assert [t.id for t in task_lifecycle.list_tasks(workspace.id, "u-bob", status="ongoing")] == [second.id]
    assert len(task_lifecycle.list_tasks(workspace.id, "u-bob", assigned_to="u-bob")) == 1


# ── Notification events ──────────────────────────────────────────────────────


def test_assignment_notifies_assignee(workspace):
    task = _make_task(workspace)
    [event] = _events(workspace, "task_assigned")
    assert event.target_user_id == "u-bob"
    assert event.related_id == str(task.id)


def test_self_assignment_emits_nothing(workspace):
    _make_task(workspace, assignee="u-carol")
    assert _events(workspace, "task_assigned") == []


def test_completion_request_notifies_admins(workspace):
    task = _make_task(workspace)
    task_lifecycle.start_task(workspace.id, task.id, "u-bob", 1)
    task_lifecycle.request_completion(workspace.id, task.id, "u-bob", 2)
    assert [e.target_user_id for e in _events(workspace, "task_completion_requested")] == ["u-admin"]


def test_decision_notifies_assignee(workspace):
    task = _make_task(workspace)
    task_lifecycle.start_task(workspace.id, task.id, "u-bob", 1)
    task_lifecycle.request_completion(workspace.id, task.id, "u-bob", 2)
    task_lifecycle.reject_task(workspace.id, task.id, "u-admin", 3)
    [event] = _events(workspace, "task_rejected")
    assert event.target_user_id == "u-bob"


def test_rejected_transition_emits_nothing(workspace):
    task = _make_task(workspace)
    task_lifecycle.start_task(workspace.id, task.id, "u-bob", 1)
    task_lifecycle.request_completion(workspace.id, task.id, "u-bob", 2)
    _db.session.commit()

    with pytest.raises(ForbiddenError):
        task_lifecycle.approve_task(workspace.id, task.id, "u-bob", 3)
    assert _events(workspace, "task_approved") == []
