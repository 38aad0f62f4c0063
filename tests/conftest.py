"""
Shared pytest fixtures for the workspace core test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - auth: builds Authorization headers for a user id
    - workspace: workspace with admin "u-admin", member "u-bob" and
      task creator "u-carol" (can_create_tasks)
"""

import pytest

from teamflow import create_app
from teamflow.models import db as _db
from teamflow.services import workspace_service
from teamflow.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def auth():
    """Return a helper producing bearer headers, optionally with If-Match."""

    def _headers(user_id, version=None):
        headers = {"Authorization": f"Bearer {generate_access_token(user_id)}"}
        if version is not None:
            headers["If-Match"] = f'"{version}"'
        return headers

    return _headers


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def workspace():
    """Workspace "Acme" created by u-admin, joined by u-bob and u-carol.

    u-carol is granted can_create_tasks; u-bob has no capability flags.
    """
    ws = workspace_service.create_workspace("Acme", "u-admin", invite_code="ACME2026")
    workspace_service.join_workspace("ACME2026", "u-bob")
    carol = workspace_service.join_workspace("ACME2026", "u-carol")
    _db.session.commit()
    workspace_service.update_member(ws.id, "u-carol", "u-admin", carol.version, can_create_tasks=True)
    _db.session.commit()
    return ws
