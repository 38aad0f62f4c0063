"""Standardised API error responses.

Usage
-----
    from teamflow.utils.errors import api_error, E, register_error_handlers

    return api_error(E.VALIDATION_REQUIRED, "title is required")

    bp = Blueprint("tasks", __name__)
    register_error_handlers(bp)   # maps core exceptions → JSON + status
"""

from __future__ import annotations

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from teamflow.core.exceptions import (
    AlreadyExistsError,
    AlreadyMemberError,
    ConflictError,
    ForbiddenError,
    InvalidTimeRangeError,
    InvalidTransitionError,
    LastAdminProtectedError,
    NotAMemberError,
    NotFoundError,
    StaleWriteError,
    TaskLockedError,
    ValidationError,
    WorkspaceCoreError,
)
from teamflow.models import db

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Auth – HTTP 401
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"

    # Conflict – HTTP 409
    CONFLICT = "CONFLICT"

    # Preconditions – HTTP 428
    PRECONDITION_REQUIRED = "ERR_PRECONDITION_REQUIRED"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHENTICATED: 401,
    E.CONFLICT: 409,
    E.PRECONDITION_REQUIRED: 428,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}

# Most specific class first: lookup walks this list in order.
EXCEPTION_STATUS: list[tuple[type, int]] = [
    (NotAMemberError, 403),
    (ForbiddenError, 403),
    (AlreadyMemberError, 409),
    (AlreadyExistsError, 409),
    (ConflictError, 409),
    (LastAdminProtectedError, 409),
    (InvalidTransitionError, 409),
    (TaskLockedError, 423),
    (InvalidTimeRangeError, 422),
    (StaleWriteError, 412),
    (NotFoundError, 404),
    (ValidationError, 400),
]


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def status_for(error: WorkspaceCoreError) -> int:
    for exc_type, status in EXCEPTION_STATUS:
        if isinstance(error, exc_type):
            return status
    return 400


def _handle_core_error(error: WorkspaceCoreError):
    db.session.rollback()
    status = status_for(error)
    logger.info("Rejected %s %s: %s (%s)", request.method, request.path, error.code, error)
    details = getattr(error, "details", None)
    if isinstance(error, StaleWriteError) and error.current_version is not None:
        details = {"current_version": error.current_version}
    return api_error(error.code, str(error), status=status, details=details)


def _handle_unexpected(error: Exception):
    if isinstance(error, HTTPException):
        return error
    db.session.rollback()
    logger.exception("Unexpected error endpoint=%s", request.endpoint)
    return api_error(E.INTERNAL, "Internal server error")


def register_error_handlers(bp) -> None:
    """Attach the core exception → JSON mapping to a blueprint."""
    bp.register_error_handler(WorkspaceCoreError, _handle_core_error)
    bp.register_error_handler(Exception, _handle_unexpected)
