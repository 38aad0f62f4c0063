"""
JWT Auth Middleware - Parses the bearer token, sets g.acting_user_id.

The identity provider is trusted: a token with a valid signature names the
acting user and is never re-authenticated here. Every /api/v1/* request
outside JWT_SKIP_PREFIXES must carry one; otherwise the request is refused
with 401 before any route runs.
"""

import logging

import jwt as pyjwt
from flask import g, request

from teamflow.services.jwt_service import decode_access_token
from teamflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.acting_user_id = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return None
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return None
        if request.method == "OPTIONS":
            return None

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return api_error(E.UNAUTHENTICATED, "Bearer token required")

        token = auth_header[7:]
        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            return api_error(E.UNAUTHENTICATED, "Token expired")
        except pyjwt.InvalidTokenError as exc:
            logger.warning("Invalid bearer token on %s: %s", path, exc)
            return api_error(E.UNAUTHENTICATED, "Invalid token")

        g.acting_user_id = str(payload["sub"])
        return None
