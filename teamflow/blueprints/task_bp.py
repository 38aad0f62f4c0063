"""
Task Lifecycle Blueprint.

Endpoints:
    GET    /api/v1/workspaces/<wid>/tasks              ?status=&assigned_to=
    POST   /api/v1/workspaces/<wid>/tasks
           Body: { "title", "description", "priority", "deadline", "assigned_to" }
    GET    /api/v1/workspaces/<wid>/tasks/<tid>
    PATCH  /api/v1/workspaces/<wid>/tasks/<tid>        If-Match required
    PUT    /api/v1/workspaces/<wid>/tasks/<tid>/assign If-Match required
           Body: { "assigned_to": "<user_id>" | null }
    POST   /api/v1/workspaces/<wid>/tasks/<tid>/<action>
           action: start | request_completion | approve | reject
    DELETE /api/v1/workspaces/<wid>/tasks/<tid>        If-Match required

Every successful read or write of a single task returns ``ETag: "<version>"``;
send it back as If-Match (or as a body ``version``) on the next write.
"""

import logging

from flask import Blueprint, g, jsonify, request

from teamflow.models.task import TASK_TRANSITIONS
from teamflow.services import task_lifecycle
from teamflow.services.task_lifecycle import EDITABLE_FIELDS
from teamflow.utils.errors import E, api_error, register_error_handlers
from teamflow.utils.helpers import (
    db_commit_or_error,
    parse_date_input,
    required_version,
    with_etag,
)

logger = logging.getLogger(__name__)

task_bp = Blueprint("tasks", __name__, url_prefix="/api/v1/workspaces/<int:workspace_id>/tasks")
register_error_handlers(task_bp)


def _parse_deadline(data):
    """Returns (deadline, err_response)."""
    try:
        return parse_date_input(data.get("deadline")), None
    except ValueError as exc:
        return None, api_error(E.VALIDATION_INVALID, str(exc))


@task_bp.route("", methods=["GET"])
def list_tasks(workspace_id):
    tasks = task_lifecycle.list_tasks(
        workspace_id,
        g.acting_user_id,
        status=request.args.get("status"),
        assigned_to=request.args.get("assigned_to"),
    )
    return jsonify({"items": [t.to_dict() for t in tasks], "total": len(tasks)})


@task_bp.route("", methods=["POST"])
def create_task(workspace_id):
    data = request.get_json(silent=True) or {}
    title = data.get("title")
    if title is not None and not isinstance(title, str):
        return api_error(E.VALIDATION_INVALID, "title must be a string")
    if not (title or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")
    deadline, err = _parse_deadline(data)
    if err:
        return err

    task = task_lifecycle.create_task(
        workspace_id,
        g.acting_user_id,
        title=title,
        description=data.get("description", ""),
        priority=data.get("priority", "medium"),
        deadline=deadline,
        assigned_to=data.get("assigned_to"),
    )
    err = db_commit_or_error()
    if err:
        return err
    return with_etag(task.to_dict(), task.version, 201)


@task_bp.route("/<int:task_id>", methods=["GET"])
def get_task(workspace_id, task_id):
    task = task_lifecycle.get_task(workspace_id, task_id, g.acting_user_id)
    return with_etag(task.to_dict(), task.version)


@task_bp.route("/<int:task_id>", methods=["PATCH"])
def update_task(workspace_id, task_id):
    data = request.get_json(silent=True) or {}
    version, err = required_version(data)
    if err:
        return err

    fields = {k: data[k] for k in EDITABLE_FIELDS if k in data}
    if "deadline" in fields:
        fields["deadline"], err = _parse_deadline(data)
        if err:
            return err

    task = task_lifecycle.update_task(workspace_id, task_id, g.acting_user_id, version, **fields)
    err = db_commit_or_error()
    if err:
        return err
    return with_etag(task.to_dict(), task.version)


@task_bp.route("/<int:task_id>/assign", methods=["PUT"])
def assign_task(workspace_id, task_id):
    data = request.get_json(silent=True) or {}
    version, err = required_version(data)
    if err:
        return err
    if "assigned_to" not in data:
        return api_error(E.VALIDATION_REQUIRED, "assigned_to is required (null to unassign)")

    task = task_lifecycle.assign_task(
        workspace_id, task_id, g.acting_user_id, version, data["assigned_to"],
    )
    err = db_commit_or_error()
    if err:
        return err
    return with_etag(task.to_dict(), task.version)


@task_bp.route("/<int:task_id>/<action>", methods=["POST"])
def transition_task(workspace_id, task_id, action):
    if action not in TASK_TRANSITIONS:
        return api_error(
            E.VALIDATION_INVALID,
            f"Unknown action '{action}'. Must be one of: {sorted(TASK_TRANSITIONS)}",
        )
    version, err = required_version(request.get_json(silent=True))
    if err:
        return err

    task = task_lifecycle.transition_task(workspace_id, task_id, action, g.acting_user_id, version)
    err = db_commit_or_error()
    if err:
        return err
    return with_etag(task.to_dict(), task.version)


@task_bp.route("/<int:task_id>", methods=["DELETE"])
def delete_task(workspace_id, task_id):
    version, err = required_version(request.get_json(silent=True))
    if err:
        return err
    task_lifecycle.delete_task(workspace_id, task_id, g.acting_user_id, version)
    err = db_commit_or_error()
    if err:
        return err
    return "", 204
