"""
Notification and audit feeds.

Endpoints:
    GET /api/v1/workspaces/<wid>/notifications   ?limit=&offset=
        Events targeting the acting user (any member).
    GET /api/v1/workspaces/<wid>/audit           ?entity_type=&limit=&offset=
        Audit trail (admin only).
"""

from flask import Blueprint, current_app, g, jsonify, request

from teamflow.services import workspace_service
from teamflow.services.notification import NotificationService
from teamflow.services.permission import check_permission
from teamflow.utils.errors import register_error_handlers

feed_bp = Blueprint("feeds", __name__, url_prefix="/api/v1/workspaces/<int:workspace_id>")
register_error_handlers(feed_bp)


def _paging():
    cap = current_app.config.get("FEED_MAX_LIMIT", 200)
    limit = min(max(request.args.get("limit", 50, type=int), 1), cap)
    offset = max(request.args.get("offset", 0, type=int), 0)
    return limit, offset


@feed_bp.route("/notifications", methods=["GET"])
def list_notifications(workspace_id):
    member = workspace_service.resolve_membership(workspace_id, g.acting_user_id)
    check_permission(member, "view_workspace", acting_user_id=g.acting_user_id)
    limit, offset = _paging()
    items, total = NotificationService.list_for_recipient(
        workspace_id, g.acting_user_id, limit=limit, offset=offset,
    )
    return jsonify({"items": [e.to_dict() for e in items], "total": total,
                    "limit": limit, "offset": offset})


@feed_bp.route("/audit", methods=["GET"])
def list_audit(workspace_id):
    limit, offset = _paging()
    items, total = workspace_service.list_audit_entries(
        workspace_id,
        g.acting_user_id,
        entity_type=request.args.get("entity_type"),
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": [a.to_dict() for a in items], "total": total,
                    "limit": limit, "offset": offset})
