"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter instance
is created in teamflow/__init__.py with no default limits; this module
applies granular limits per route category.

Usage:
    from teamflow.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

JOIN_LIMIT = "10/minute"      # invite-code guessing
WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"


def user_or_ip_key():
    """Rate limit key: acting user id if authenticated, else remote IP."""
    user_id = getattr(g, "acting_user_id", None)
    if user_id:
        return f"user:{user_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per user, falling back to remote IP):
        - Join by invite code: 10/minute
        - Task / meeting / workspace routes: 60/minute
        - Notification + audit feeds: 200/minute
        - Health check: exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    join_view = app.view_functions.get("workspace.join_workspace")
    if join_view:
        app.view_functions["workspace.join_workspace"] = limiter.limit(
            JOIN_LIMIT, key_func=user_or_ip_key,
        )(join_view)

    for bp_name in ("workspace", "tasks", "meetings"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT, key_func=user_or_ip_key)(bp)

    bp = app.blueprints.get("feeds")
    if bp:
        limiter.limit(READ_LIMIT, key_func=user_or_ip_key)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured - join: %s, write: %s, read: %s",
        JOIN_LIMIT, WRITE_LIMIT, READ_LIMIT,
    )
