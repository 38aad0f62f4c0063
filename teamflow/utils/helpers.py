"""Shared blueprint helpers.

parse_date_input:     deadline strings → date (raises ValueError)
parse_datetime_input: meeting times → aware datetime (raises ValueError)
observed_version:     If-Match header / "version" body field → int or None
with_etag:            attach ETag to a JSON response
required_version:     observed_version or a 428 error response
db_commit_or_error:   commit with rollback + error tuple on failure
"""
import logging
from datetime import date, datetime, timezone

from flask import jsonify, request

from teamflow.models import db
from teamflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Supports: YYYY-MM-DD, YYYY-MM-DDTHH:MM:SS (→ .date()), DD.MM.YYYY, date objects.
    Empty input returns None.
    """
    if not value:
        return None
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY.")
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(value, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValueError(
            "Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY."
        ) from exc


def parse_datetime_input(value):
    """Parse an ISO-8601 datetime; naive values are taken as UTC.

    Raises ValueError on empty or malformed input.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Invalid datetime '{value}'. Use ISO-8601.") from exc
    else:
        raise ValueError("Datetime value is required")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def observed_version(data: dict | None = None):
    """Version the caller last observed: If-Match header first, then body.

    Accepts ``"3"``, ``W/"3"`` and ``3``. Returns None when absent, the raw
    string when unparsable (the versioning layer rejects it).
    """
    header = request.headers.get("If-Match")
    if header:
        token = header.strip()
        if token.startswith("W/"):
            token = token[2:]
        token = token.strip('"')
        try:
            return int(token)
        except ValueError:
            return token
    if data and data.get("version") is not None:
        return data.get("version")
    return None


def with_etag(payload: dict, version: int, status: int = 200):
    response = jsonify(payload)
    response.status_code = status
    response.headers["ETag"] = f'"{version}"'
    return response


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_error():
    """Commit the current SQLAlchemy session, returning an error response on failure.

    Returns:
        None on success.
        (response, status_code) tuple on failure - ready for ``return``.

    Usage::

        err = db_commit_or_error()
        if err:
            return err

    IntegrityError → 409 (duplicate / constraint violation)
    OperationalError → 500 (connection / lock issues)
    Other → 500 (unexpected)
    """
    from sqlalchemy.exc import IntegrityError, OperationalError

    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return api_error(E.CONFLICT, "Duplicate or constraint violation")
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        return api_error(E.DATABASE, "Database error")
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        return api_error(E.DATABASE, "Database error")


def required_version(data: dict | None = None):
    """Observed version for a mutating request.

    Returns ``(version, None)``, or ``(None, error_response)`` with 428 when
    the caller sent neither If-Match nor a body ``version``.
    """
    version = observed_version(data)
    if version is None:
        return None, api_error(
            E.PRECONDITION_REQUIRED,
            "If-Match header or 'version' field is required",
            details={"version": "required"},
        )
    return version, None
