"""
Optimistic version compare-and-swap.

Every mutable row carries an integer ``version``. A writer must present the
version it last observed; the write is a single conditional statement

    UPDATE <table> SET ..., version = version + 1
    WHERE id = :id AND version = :expected

and a zero rowcount means another request got there first. Two members who
both observed version N of a task can therefore never both succeed: one
advances the row to N+1, the other gets StaleWriteError and must re-read.

Usage:
    from teamflow.services.helpers.versioning import compare_and_swap

    check_version(task, expected_version)          # cheap pre-check
    ...validate transition / permission...
    compare_and_swap(task, expected_version, status="ongoing")
"""

import logging

from sqlalchemy import delete, update

from teamflow.core.exceptions import StaleWriteError, ValidationError
from teamflow.models import db

logger = logging.getLogger(__name__)


def _require_version(expected_version) -> int:
    if expected_version is None or expected_version == "":
        raise ValidationError("version is required", details={"version": "required"})
    if isinstance(expected_version, bool) or (
        isinstance(expected_version, float) and not expected_version.is_integer()
    ):
        raise ValidationError("version must be an integer", details={"version": "invalid"})
    try:
        return int(expected_version)
    except (TypeError, ValueError):
        raise ValidationError("version must be an integer", details={"version": "invalid"})


def check_version(instance, expected_version) -> int:
    """Raise StaleWriteError if the loaded row is not at ``expected_version``.

    Runs before any state-machine validation so a stale view is always
    reported as StaleWriteError, never as InvalidTransitionError.
    """
    expected = _require_version(expected_version)
    if instance.version != expected:
        raise StaleWriteError(type(instance).__name__, instance.id, expected, instance.version)
    return expected


def compare_and_swap(instance, expected_version, **values):
    """Apply ``values`` to ``instance`` only if its stored version still matches.

    Returns the refreshed instance at the new version.

    Raises:
        StaleWriteError: The stored version moved on since it was observed.
    """
    model = type(instance)
    expected = _require_version(expected_version)
    stmt = (
        update(model)
        .where(model.id == instance.id, model.version == expected)
        .values(version=model.version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        db.session.expire(instance)
        logger.warning(
            "Stale write rejected: %s id=%s expected_version=%s",
            model.__name__, instance.id, expected,
        )
        raise StaleWriteError(model.__name__, instance.id, expected)
    db.session.refresh(instance)
    return instance


def delete_if_version(instance, expected_version) -> None:
    """Delete ``instance`` only if its stored version still matches.

    Raises:
        StaleWriteError: The stored version moved on since it was observed.
    """
    model = type(instance)
    expected = _require_version(expected_version)
    stmt = (
        delete(model)
        .where(model.id == instance.id, model.version == expected)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        db.session.expire(instance)
        raise StaleWriteError(model.__name__, instance.id, expected)
    db.session.expunge(instance)
