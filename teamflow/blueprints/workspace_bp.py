"""
Workspace Directory Blueprint.

Endpoints:
    POST   /api/v1/workspaces                                  Body: { "name" }
    GET    /api/v1/workspaces
    GET    /api/v1/workspaces/<wid>
    POST   /api/v1/workspaces/join                             Body: { "invite_code" }
    GET    /api/v1/workspaces/<wid>/members
    PATCH  /api/v1/workspaces/<wid>/members/<user_id>          If-Match required
           Body: { "role", "can_create_tasks", "can_create_meetings" }
    DELETE /api/v1/workspaces/<wid>/members/<user_id>          If-Match required
    GET    /api/v1/workspaces/<wid>/summary                      acting user's dashboard

Layer contract:
    - Blueprint: parse input, read the acting user from g, call service,
                 commit, return JSON.
    - NO role/permission checks here - all admission in the services.
"""

import logging

from flask import Blueprint, g, jsonify, request

from teamflow.services import dashboard_service, workspace_service
from teamflow.utils.errors import E, api_error, register_error_handlers
from teamflow.utils.helpers import db_commit_or_error, required_version, with_etag

logger = logging.getLogger(__name__)

workspace_bp = Blueprint("workspace", __name__, url_prefix="/api/v1/workspaces")
register_error_handlers(workspace_bp)

_MEMBER_FIELDS = ("role", "can_create_tasks", "can_create_meetings")


@workspace_bp.route("", methods=["POST"])
def create_workspace():
    data = request.get_json(silent=True) or {}
    ws = workspace_service.create_workspace(data.get("name"), g.acting_user_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({**ws.to_dict(include_invite_code=True), "role": "admin"}), 201


@workspace_bp.route("", methods=["GET"])
def list_workspaces():
    items = workspace_service.list_user_workspaces(g.acting_user_id)
    return jsonify({"items": items, "total": len(items)})


@workspace_bp.route("/<int:workspace_id>", methods=["GET"])
def get_workspace(workspace_id):
    ws, member = workspace_service.get_workspace(workspace_id, g.acting_user_id)
    return jsonify({
        **ws.to_dict(include_invite_code=member.is_admin),
        "role": member.role,
        "membership": member.to_dict(),
    })


@workspace_bp.route("/join", methods=["POST"])
def join_workspace():
    data = request.get_json(silent=True) or {}
    member = workspace_service.join_workspace(data.get("invite_code"), g.acting_user_id)
    err = db_commit_or_error()
    if err:
        return err
    return with_etag(member.to_dict(), member.version, 201)


@workspace_bp.route("/<int:workspace_id>/members", methods=["GET"])
def list_members(workspace_id):
    members = workspace_service.list_members(workspace_id, g.acting_user_id)
    return jsonify({"items": [m.to_dict() for m in members], "total": len(members)})


@workspace_bp.route("/<int:workspace_id>/members/<user_id>", methods=["PATCH"])
def update_member(workspace_id, user_id):
    data = request.get_json(silent=True) or {}
    version, err = required_version(data)
    if err:
        return err

    changes = {k: data[k] for k in _MEMBER_FIELDS if k in data}
    if not changes:
        return api_error(
            E.VALIDATION_REQUIRED,
            f"At least one of {list(_MEMBER_FIELDS)} is required",
        )
    for flag in ("can_create_tasks", "can_create_meetings"):
        if flag in changes and not isinstance(changes[flag], bool):
            return api_error(E.VALIDATION_INVALID, f"'{flag}' must be a boolean")

    member = workspace_service.update_member(
        workspace_id, user_id, g.acting_user_id, version, **changes,
    )
    err = db_commit_or_error()
    if err:
        return err
    return with_etag(member.to_dict(), member.version)


@workspace_bp.route("/<int:workspace_id>/members/<user_id>", methods=["DELETE"])
def remove_member(workspace_id, user_id):
    version, err = required_version(request.get_json(silent=True))
    if err:
        return err
    workspace_service.remove_member(workspace_id, user_id, g.acting_user_id, version)
    err = db_commit_or_error()
    if err:
        return err
    return "", 204


@workspace_bp.route("/<int:workspace_id>/summary", methods=["GET"])
def member_summary(workspace_id):
    return jsonify(dashboard_service.get_member_summary(workspace_id, g.acting_user_id))
