"""
Workspace Role-Based Access Control - the single admission decision.

``can_act`` is a pure function: no DB access, no clock, no request context.
Every mutating entry point resolves the membership fresh for the current
request and passes it here; previously fetched flags are never reused.

Rules (first match wins):
    1. admin                                        → allow
    2. create_task                                  → can_create_tasks
    3. create/edit/delete_meeting                   → can_create_meetings
    4. start_task, request_task_completion          → actor is the assignee
    5. approve_task, reject_task                    → admin (already allowed by 1)
    6. edit_task, assign_task, delete_task          → actor is the creator
    7. view_workspace, view_task, view_meeting      → any member
    8. leave_workspace                              → actor is the member leaving
    9. anything else                                → deny

Usage:
    from teamflow.services.permission import check_permission, can_act

    # Raises ForbiddenError if not allowed
    check_permission(member, "create_task", acting_user_id="u-1")

    # Boolean check
    if can_act(member, "start_task", task.assigned_to, "u-1"):
        ...
"""

from teamflow.core.exceptions import ForbiddenError

ROLE_ADMIN = "admin"

CREATE_TASK_ACTIONS = frozenset({"create_task"})
MEETING_ACTIONS = frozenset({"create_meeting", "edit_meeting", "delete_meeting"})
ASSIGNEE_ACTIONS = frozenset({"start_task", "request_task_completion"})
ADMIN_ACTIONS = frozenset({"approve_task", "reject_task", "update_member", "remove_member", "view_audit"})
CREATOR_ACTIONS = frozenset({"edit_task", "assign_task", "delete_task"})
VIEW_ACTIONS = frozenset({"view_workspace", "view_task", "view_meeting"})
SELF_ACTIONS = frozenset({"leave_workspace"})

ALL_ACTIONS = (
    CREATE_TASK_ACTIONS | MEETING_ACTIONS | ASSIGNEE_ACTIONS | ADMIN_ACTIONS
    | CREATOR_ACTIONS | VIEW_ACTIONS | SELF_ACTIONS
)


def _is_owner(resource_owner_id, acting_user_id) -> bool:
    return resource_owner_id is not None and acting_user_id is not None and resource_owner_id == acting_user_id


def can_act(membership, action: str, resource_owner_id=None, acting_user_id=None) -> bool:
    """
    Decide whether a member may perform ``action``.

    Args:
        membership: Object exposing ``role``, ``can_create_tasks`` and
            ``can_create_meetings`` (a WorkspaceMember row).
        action: Action name, see module docstring.
        resource_owner_id: Assignee for rule 4, creator for rule 6,
            target member for rule 8. None when there is no owner.
        acting_user_id: The verified identity making the request.

    Returns:
        True if admitted. Unknown actions and missing memberships deny.
    """
    if membership is None:
        return False

    if membership.role == ROLE_ADMIN:
        return True

    if action in CREATE_TASK_ACTIONS:
        return bool(membership.can_create_tasks)

    if action in MEETING_ACTIONS:
        return bool(membership.can_create_meetings)

    if action in ASSIGNEE_ACTIONS:
        return _is_owner(resource_owner_id, acting_user_id)

    if action in ADMIN_ACTIONS:
        return False

    if action in CREATOR_ACTIONS:
        return _is_owner(resource_owner_id, acting_user_id)

    if action in VIEW_ACTIONS:
        return True

    if action in SELF_ACTIONS:
        return _is_owner(resource_owner_id, acting_user_id)

    return False


def check_permission(membership, action: str, resource_owner_id=None, acting_user_id=None) -> None:
    """
    Assert the member may act; raise ForbiddenError if not.

    Raises:
        ForbiddenError: If ``can_act`` denies.
    """
    if not can_act(membership, action, resource_owner_id, acting_user_id):
        raise ForbiddenError(acting_user_id, action)
