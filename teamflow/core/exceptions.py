"""
Workspace-core exception hierarchy.

Every rejected action raises exactly one of these types. Each class carries a
stable machine-readable ``code`` so that blueprints can render an accurate
message without inspecting the text, and so that callers can tell a stale view
(``StaleWriteError``) apart from a structurally impossible request
(``InvalidTransitionError``).

None of these are retried inside the core. Whether to re-read and retry is the
caller's decision.

Usage:
    from teamflow.core.exceptions import NotFoundError, ForbiddenError

    raise NotFoundError(resource="Task", resource_id=42, workspace_id=7)
    raise ForbiddenError(user_id="u-1", action="delete_task")
"""


class WorkspaceCoreError(Exception):
    """Base class for all rule violations raised by the service layer."""

    code = "ERROR"


class NotFoundError(WorkspaceCoreError):
    """Raised when a requested resource does not exist within the given scope.

    A task or meeting that exists in another workspace is reported exactly
    like a missing one.

    Args:
        resource: Human-readable entity name (e.g. "Task", "Workspace").
        resource_id: The key that was looked up.
        workspace_id: Optional scope that was enforced. For logging only.
    """

    code = "NOT_FOUND"

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        workspace_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.workspace_id = workspace_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if workspace_id is not None:
            msg += f" (workspace={workspace_id})"
        super().__init__(msg)


class ValidationError(WorkspaceCoreError):
    """Raised when well-formed input violates a field-level rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown, keyed by field name.
    """

    code = "VALIDATION"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(WorkspaceCoreError):
    """Raised when an operation would duplicate a unique value.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    code = "CONFLICT"

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class AlreadyExistsError(ConflictError):
    """An externally generated key (e.g. invite code) collides with a stored one."""

    code = "ALREADY_EXISTS"


class AlreadyMemberError(ConflictError):
    """The user already holds a membership row in the workspace."""

    code = "ALREADY_MEMBER"

    def __init__(self, workspace_id: int, user_id: str) -> None:
        self.workspace_id = workspace_id
        self.user_id = user_id
        super().__init__("WorkspaceMember", "user_id", user_id)


class NotAMemberError(WorkspaceCoreError):
    """The user has no membership row in the workspace."""

    code = "NOT_A_MEMBER"

    def __init__(self, workspace_id: int, user_id: str | None) -> None:
        self.workspace_id = workspace_id
        self.user_id = user_id
        super().__init__(f"User {user_id} is not a member of workspace {workspace_id}")


class LastAdminProtectedError(WorkspaceCoreError):
    """The change would leave the workspace without an admin."""

    code = "LAST_ADMIN_PROTECTED"

    def __init__(self, workspace_id: int, user_id: str) -> None:
        self.workspace_id = workspace_id
        self.user_id = user_id
        super().__init__(
            f"User {user_id} is the last admin of workspace {workspace_id}"
        )


class ForbiddenError(WorkspaceCoreError):
    """The acting member lacks the role, flag or ownership the action needs."""

    code = "FORBIDDEN"

    def __init__(self, user_id: str | None, action: str, reason: str | None = None) -> None:
        msg = f"User {user_id} does not have permission for '{action}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.user_id = user_id
        self.action = action
        self.reason = reason


class InvalidTransitionError(WorkspaceCoreError):
    """No edge with the requested name leaves the current status."""

    code = "INVALID_TRANSITION"

    def __init__(self, entity: str, entity_id, action: str, current: str) -> None:
        super().__init__(f"Cannot '{action}' {entity} {entity_id} (status={current})")
        self.entity = entity
        self.entity_id = entity_id
        self.action = action
        self.current_status = current


class TaskLockedError(WorkspaceCoreError):
    """The task's status no longer allows the requested edit."""

    code = "TASK_LOCKED"

    def __init__(self, task_id, status: str, field: str) -> None:
        super().__init__(f"Task {task_id} is locked for '{field}' changes (status={status})")
        self.task_id = task_id
        self.status = status
        self.field = field


class InvalidTimeRangeError(WorkspaceCoreError):
    """A meeting's end time is not strictly after its start time."""

    code = "INVALID_TIME_RANGE"

    def __init__(self, start_time, end_time) -> None:
        super().__init__(f"end_time {end_time} must be after start_time {start_time}")
        self.start_time = start_time
        self.end_time = end_time


class StaleWriteError(WorkspaceCoreError):
    """The caller's observed version no longer matches the stored one.

    The caller should re-read the resource and decide whether to retry.
    """

    code = "STALE_WRITE"

    def __init__(self, resource: str, resource_id, expected: int | None, current: int | None = None) -> None:
        msg = f"{resource} id={resource_id} was modified (expected version {expected}"
        if current is not None:
            msg += f", current {current}"
        msg += ")"
        super().__init__(msg)
        self.resource = resource
        self.resource_id = resource_id
        self.expected_version = expected
        self.current_version = current
