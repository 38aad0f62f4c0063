"""
Tests: app factory wiring, logging formatters and token handling.
"""

import json
import logging
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from teamflow.middleware.logging_config import JSONFormatter, ReadableFormatter
from teamflow.services.jwt_service import ALGORITHM, decode_access_token, generate_access_token


def _record(**extra):
    record = logging.LogRecord("teamflow.test", logging.INFO, __file__, 10, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_testing_config(app):
    assert app.config["TESTING"] is True
    assert app.config["RATELIMIT_ENABLED"] is False
    assert app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite")


def test_blueprints_registered(app):
    assert {"health", "workspace", "tasks", "meetings", "feeds"} <= set(app.blueprints)


def test_json_formatter_carries_request_fields():
    line = JSONFormatter().format(_record(request_id="r-1", workspace_id=7, duration_ms=12.5))
    payload = json.loads(line)
    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["request_id"] == "r-1"
    assert payload["workspace_id"] == 7
    assert "user_id" not in payload


def test_readable_formatter_shows_duration():
    assert "[13ms]" in ReadableFormatter().format(_record(duration_ms=12.6))


def test_token_round_trip():
    token = generate_access_token("u-42")
    assert decode_access_token(token)["sub"] == "u-42"


def test_refresh_typed_token_is_rejected(app):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": "u-1", "type": "refresh", "iat": now, "exp": now + timedelta(minutes=5)},
        app.config["JWT_SECRET_KEY"], algorithm=ALGORITHM,
    )
    with pytest.raises(jwt.InvalidTokenError):
        decode_access_token(token)


def test_expired_token_is_401(app, client):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": "u-1", "type": "access", "iat": now - timedelta(hours=2), "exp": now - timedelta(hours=1)},
        app.config["JWT_SECRET_KEY"], algorithm=ALGORITHM,
    )
    res = client.get("/api/v1/workspaces", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401
    assert res.get_json()["error"] == "Token expired"


def test_unknown_api_route_is_json_404(client, auth):
    res = client.get("/api/v1/nowhere", headers=auth("u-1"))
    assert res.status_code == 404
    assert res.get_json()["code"] == "NOT_FOUND"
