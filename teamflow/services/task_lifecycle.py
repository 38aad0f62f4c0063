"""
Task Lifecycle Engine.

Manages task status transitions with:
  - Transition validation against TASK_TRANSITIONS
  - Role / ownership admission through permission.can_act
  - Optimistic version compare-and-swap on every write
  - Audit log + notification events on success

4 valid transitions:
  start, request_completion (assignee), approve, reject (admin)

Check order for a transition:
  membership → task in workspace → observed version → edge exists →
  task has an assignee → permission → compare-and-swap

A stale version is reported before the edge check so that two members racing
on the same pending_approval task see StaleWriteError, never
InvalidTransitionError.

Usage:
    from teamflow.services.task_lifecycle import transition_task

    task = transition_task(
        workspace_id=1,
        task_id=42,
        action="approve",
        acting_user_id="u-admin",
        expected_version=3,
    )
"""

import logging
from datetime import date

from teamflow.core.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    TaskLockedError,
    ValidationError,
)
from teamflow.models import db
from teamflow.models.audit import write_audit
from teamflow.models.task import (
    TASK_PRIORITIES,
    TASK_STATUSES,
    TASK_TERMINAL_STATUSES,
    TASK_TRANSITIONS,
    Task,
)
from teamflow.services.helpers.scoped_queries import get_scoped
from teamflow.services.helpers.versioning import check_version, compare_and_swap, delete_if_version
from teamflow.services.notification import NotificationService
from teamflow.services.permission import check_permission
from teamflow.services.workspace_service import resolve_membership

logger = logging.getLogger(__name__)

_ACTION_PERMISSION = {
    "start": "start_task",
    "request_completion": "request_task_completion",
    "approve": "approve_task",
    "reject": "reject_task",
}

_ASSIGNEE_ACTIONS = {"start", "request_completion"}

EDITABLE_FIELDS = ("title", "description", "priority", "deadline")


# ── Validation helpers ───────────────────────────────────────────────────────


def validate_task_transition(task: Task, action: str) -> dict:
    """Validate whether an action is valid for the task's current status."""
    rule = TASK_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": task.status, "to": None,
                "reason": f"Unknown action: {action}"}

    if task.status != rule["from"]:
        return {"valid": False, "from": task.status, "to": rule["to"],
                "reason": f"Cannot '{action}' from status '{task.status}'"}

    return {"valid": True, "from": task.status, "to": rule["to"], "reason": None}


def _clean_title(title) -> str:
    if title is not None and not isinstance(title, str):
        raise ValidationError("title must be a string", details={"title": "invalid"})
    title = (title or "").strip()
    if not title:
        raise ValidationError("title is required", details={"title": "required"})
    if len(title) > 300:
        raise ValidationError("title must be at most 300 characters", details={"title": "too_long"})
    return title


def _clean_priority(priority) -> str:
    if not isinstance(priority, str) or priority not in TASK_PRIORITIES:
        raise ValidationError(
            f"Invalid priority. Must be one of: {sorted(TASK_PRIORITIES)}",
            details={"priority": "invalid"},
        )
    return priority


def _clean_text(value, field) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: "invalid"})
    return value


def _clean_user_id(user_id, field="assigned_to"):
    if user_id is not None and not isinstance(user_id, str):
        raise ValidationError(f"{field} must be a user id string", details={field: "invalid"})
    return user_id or None


def _clean_deadline(deadline):
    if deadline is not None and not isinstance(deadline, date):
        raise ValidationError("deadline must be a date", details={"deadline": "invalid"})
    return deadline


# ── Reads ────────────────────────────────────────────────────────────────────


def get_task(workspace_id: int, task_id: int, acting_user_id: str) -> Task:
    member = resolve_membership(workspace_id, acting_user_id)
    check_permission(member, "view_task", acting_user_id=acting_user_id)
    return get_scoped(Task, task_id, workspace_id=workspace_id)


def list_tasks(
    workspace_id: int,
    acting_user_id: str,
    *,
    status: str | None = None,
    assigned_to: str | None = None,
) -> list[Task]:
    member = resolve_membership(workspace_id, acting_user_id)
    check_permission(member, "view_task", acting_user_id=acting_user_id)

    q = Task.query_for_workspace(workspace_id)
    if status:
        if status not in TASK_STATUSES:
            raise ValidationError(
                f"Invalid status. Must be one of: {sorted(TASK_STATUSES)}", details={"status": "invalid"},
            )
        q = q.filter_by(status=status)
    if assigned_to:
        q = q.filter_by(assigned_to=assigned_to)
    return q.order_by(Task.created_at.desc(), Task.id.desc()).all()


# ── Create / edit / assign / delete ──────────────────────────────────────────


def create_task(
    workspace_id: int,
    acting_user_id: str,
    *,
    title: str,
    description: str = "",
    priority: str = "medium",
    deadline: date | None = None,
    assigned_to: str | None = None,
) -> Task:
    """
    Create a task in status ``pending``.

    Raises:
        NotAMemberError: Actor (or the initial assignee) is not a member.
        ForbiddenError: Actor lacks can_create_tasks and is not admin.
        ValidationError: Bad title / priority / deadline.
    """
    member = resolve_membership(workspace_id, acting_user_id)
    check_permission(member, "create_task", acting_user_id=acting_user_id)

    title = _clean_title(title)
    priority = _clean_priority(priority or "medium")
    deadline = _clean_deadline(deadline)
    description = _clean_text(description, "description")
    assigned_to = _clean_user_id(assigned_to)
    if assigned_to:
        resolve_membership(workspace_id, assigned_to)

    task = Task(
        workspace_id=workspace_id,
        created_by=acting_user_id,
        assigned_to=assigned_to,
        title=title,
        description=description,
        priority=priority,
        deadline=deadline,
        status="pending",
        version=1,
    )
    db.session.add(task)
    db.session.flush()

    write_audit(
        entity_type="task", entity_id=task.id, action="task.create",
        actor=acting_user_id, workspace_id=workspace_id,
        diff={"title": {"old": None, "new": title}, "assigned_to": {"old": None, "new": task.assigned_to}},
    )
    if task.assigned_to:
        NotificationService.task_assigned(task, acting_user_id)
    logger.info("Task %s created in workspace %s by %s", task.id, workspace_id, acting_user_id)
    return task


def update_task(workspace_id: int, task_id: int, acting_user_id: str, expected_version, **fields) -> Task:
    """
    Edit title / description / priority / deadline.

    Allowed for the creator or an admin at any status except completed.

    Raises:
        StaleWriteError, ForbiddenError, TaskLockedError, ValidationError
    """
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields not editable: {sorted(unknown)}", details={f: "not_editable" for f in unknown})

    member = resolve_membership(workspace_id, acting_user_id)
    task = get_scoped(Task, task_id, workspace_id=workspace_id)
    check_version(task, expected_version)
    check_permission(member, "edit_task", task.created_by, acting_user_id)

    if task.status in TASK_TERMINAL_STATUSES:
        raise TaskLockedError(task.id, task.status, ",".join(sorted(fields)) or "content")

    values = {}
    if "title" in fields:
        values["title"] = _clean_title(fields["title"])
    if "description" in fields:
        values["description"] = _clean_text(fields["description"], "description")
    if "priority" in fields:
        values["priority"] = _clean_priority(fields["priority"])
    if "deadline" in fields:
        values["deadline"] = _clean_deadline(fields["deadline"])

    diff = {k: {"old": getattr(task, k), "new": v} for k, v in values.items() if getattr(task, k) != v}
    if not diff:
        return task

    compare_and_swap(task, expected_version, **{k: values[k] for k in diff})
    write_audit(
        entity_type="task", entity_id=task.id, action="task.update",
        actor=acting_user_id, workspace_id=workspace_id, diff=diff,
    )
    return task


def assign_task(workspace_id: int, task_id: int, acting_user_id: str, expected_version, assignee: str | None) -> Task:
    """
    Change (or clear) the assignee. Only while the task is pending.

    Raises:
        StaleWriteError, ForbiddenError, TaskLockedError,
        NotAMemberError (assignee is not a member of the workspace)
    """
    member = resolve_membership(workspace_id, acting_user_id)
    task = get_scoped(Task, task_id, workspace_id=workspace_id)
    check_version(task, expected_version)
    check_permission(member, "assign_task", task.created_by, acting_user_id)

    if task.status != "pending":
        raise TaskLockedError(task.id, task.status, "assigned_to")

    assignee = _clean_user_id(assignee)
    if assignee:
        resolve_membership(workspace_id, assignee)
    if assignee == task.assigned_to:
        return task

    previous = task.assigned_to
    compare_and_swap(task, expected_version, assigned_to=assignee)
    write_audit(
        entity_type="task", entity_id=task.id, action="task.assign",
        actor=acting_user_id, workspace_id=workspace_id,
        diff={"assigned_to": {"old": previous, "new": assignee}},
    )
    if assignee:
        NotificationService.task_assigned(task, acting_user_id)
    logger.info("Task %s reassigned %s → %s by %s", task.id, previous, assignee, acting_user_id)
    return task


def delete_task(workspace_id: int, task_id: int, acting_user_id: str, expected_version) -> None:
    """
    Delete a task from any status. Creator or admin only.

    Raises:
        StaleWriteError, ForbiddenError
    """
    member = resolve_membership(workspace_id, acting_user_id)
    task = get_scoped(Task, task_id, workspace_id=workspace_id)
    check_version(task, expected_version)
    check_permission(member, "delete_task", task.created_by, acting_user_id)

    snapshot = {"title": task.title, "status": task.status}
    delete_if_version(task, expected_version)
    write_audit(
        entity_type="task", entity_id=task_id, action="task.delete",
        actor=acting_user_id, workspace_id=workspace_id,
        diff={k: {"old": v, "new": None} for k, v in snapshot.items()},
    )
    logger.info("Task %s deleted from workspace %s by %s", task_id, workspace_id, acting_user_id)


# ── Transitions ──────────────────────────────────────────────────────────────


def transition_task(
    workspace_id: int,
    task_id: int,
    action: str,
    acting_user_id: str,
    expected_version,
) -> Task:
    """
    Execute a task lifecycle transition.

    Args:
        workspace_id: Workspace scope
        task_id: Task primary key
        action: One of start, request_completion, approve, reject
        acting_user_id: Verified identity performing the action
        expected_version: Version the caller last observed

    Returns:
        The task at its new status and version.

    Raises:
        ValidationError, NotAMemberError, NotFoundError, StaleWriteError,
        InvalidTransitionError, ForbiddenError
    """
    if action not in TASK_TRANSITIONS:
        raise ValidationError(
            f"Unknown action '{action}'. Must be one of: {sorted(TASK_TRANSITIONS)}",
            details={"action": "invalid"},
        )

    # 1. Fresh membership for this request
    member = resolve_membership(workspace_id, acting_user_id)
    task = get_scoped(Task, task_id, workspace_id=workspace_id)

    # 2. Stale view?
    check_version(task, expected_version)

    # 3. Edge exists?
    validation = validate_task_transition(task, action)
    if not validation["valid"]:
        logger.warning("Rejected task transition: task=%s action=%s status=%s user=%s",
                       task.id, action, task.status, acting_user_id)
        raise InvalidTransitionError("task", task.id, action, task.status)

    # 4. Who may trigger it
    if action in _ASSIGNEE_ACTIONS and not task.assigned_to:
        raise ForbiddenError(acting_user_id, _ACTION_PERMISSION[action], "task is unassigned")
    owner = task.assigned_to if action in _ASSIGNEE_ACTIONS else task.created_by
    check_permission(member, _ACTION_PERMISSION[action], owner, acting_user_id)

    # 5. Apply
    previous = task.status
    compare_and_swap(task, expected_version, status=validation["to"])

    write_audit(
        entity_type="task", entity_id=task.id, action=f"task.{action}",
        actor=acting_user_id, workspace_id=workspace_id,
        diff={"status": {"old": previous, "new": task.status}},
    )
    if action == "request_completion":
        NotificationService.task_completion_requested(task, acting_user_id)
    elif action in ("approve", "reject"):
        NotificationService.task_decided(task, acting_user_id, approved=(action == "approve"))

    logger.info("Task %s: %s → %s (%s by %s)", task.id, previous, task.status, action, acting_user_id)
    return task


def start_task(workspace_id, task_id, acting_user_id, expected_version) -> Task:
    return transition_task(workspace_id, task_id, "start", acting_user_id, expected_version)


def request_completion(workspace_id, task_id, acting_user_id, expected_version) -> Task:
    return transition_task(workspace_id, task_id, "request_completion", acting_user_id, expected_version)


def approve_task(workspace_id, task_id, acting_user_id, expected_version) -> Task:
    return transition_task(workspace_id, task_id, "approve", acting_user_id, expected_version)


def reject_task(workspace_id, task_id, acting_user_id, expected_version) -> Task:
    return transition_task(workspace_id, task_id, "reject", acting_user_id, expected_version)
