"""
Meeting Blueprint.

Endpoints:
    GET    /api/v1/workspaces/<wid>/meetings               ?status=upcoming|ongoing|ended&participant=
    POST   /api/v1/workspaces/<wid>/meetings
           Body: { "title", "start_time", "end_time", "description", "agenda",
                   "location", "meeting_link", "participants": [user_id, ...] }
    GET    /api/v1/workspaces/<wid>/meetings/<mid>
    PATCH  /api/v1/workspaces/<wid>/meetings/<mid>         If-Match required
    DELETE /api/v1/workspaces/<wid>/meetings/<mid>         If-Match required

Times are ISO-8601; values without an offset are read as UTC.
"""

import logging

from flask import Blueprint, g, jsonify, request

from teamflow.services import meeting_service
from teamflow.services.meeting_service import EDITABLE_FIELDS
from teamflow.utils.errors import E, api_error, register_error_handlers
from teamflow.utils.helpers import (
    db_commit_or_error,
    parse_datetime_input,
    required_version,
    with_etag,
)

logger = logging.getLogger(__name__)

meeting_bp = Blueprint("meetings", __name__, url_prefix="/api/v1/workspaces/<int:workspace_id>/meetings")
register_error_handlers(meeting_bp)

_TIME_FIELDS = ("start_time", "end_time")


def _parse_times(data, required):
    """Returns (times, err_response); ``times`` holds only the keys present."""
    times = {}
    for key in _TIME_FIELDS:
        if key not in data:
            if required:
                return None, api_error(E.VALIDATION_REQUIRED, f"{key} is required")
            continue
        try:
            times[key] = parse_datetime_input(data[key])
        except ValueError as exc:
            return None, api_error(E.VALIDATION_INVALID, f"{key}: {exc}")
    return times, None


def _parse_participants(data):
    participants = data.get("participants")
    if participants is None:
        return None, None
    if not isinstance(participants, list) or not all(isinstance(p, str) for p in participants):
        return None, api_error(E.VALIDATION_INVALID, "participants must be a list of user ids")
    return participants, None


@meeting_bp.route("", methods=["GET"])
def list_meetings(workspace_id):
    meetings = meeting_service.list_meetings(
        workspace_id,
        g.acting_user_id,
        status=request.args.get("status"),
        participant=request.args.get("participant"),
    )
    return jsonify({"items": [m.to_dict() for m in meetings], "total": len(meetings)})


@meeting_bp.route("", methods=["POST"])
def create_meeting(workspace_id):
    data = request.get_json(silent=True) or {}
    title = data.get("title")
    if title is not None and not isinstance(title, str):
        return api_error(E.VALIDATION_INVALID, "title must be a string")
    if not (title or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")
    times, err = _parse_times(data, required=True)
    if err:
        return err
    participants, err = _parse_participants(data)
    if err:
        return err

    meeting = meeting_service.create_meeting(
        workspace_id,
        g.acting_user_id,
        title=title,
        description=data.get("description", ""),
        agenda=data.get("agenda", ""),
        location=data.get("location"),
        meeting_link=data.get("meeting_link"),
        participants=participants,
        **times,
    )
    err = db_commit_or_error()
    if err:
        return err
    return with_etag(meeting.to_dict(), meeting.version, 201)


@meeting_bp.route("/<int:meeting_id>", methods=["GET"])
def get_meeting(workspace_id, meeting_id):
    meeting = meeting_service.get_meeting(workspace_id, meeting_id, g.acting_user_id)
    return with_etag(meeting.to_dict(), meeting.version)


@meeting_bp.route("/<int:meeting_id>", methods=["PATCH"])
def update_meeting(workspace_id, meeting_id):
    data = request.get_json(silent=True) or {}
    version, err = required_version(data)
    if err:
        return err
    times, err = _parse_times(data, required=False)
    if err:
        return err
    participants, err = _parse_participants(data)
    if err:
        return err

    fields = {k: data[k] for k in EDITABLE_FIELDS if k in data and k not in _TIME_FIELDS}
    fields.update(times)
    meeting = meeting_service.update_meeting(
        workspace_id, meeting_id, g.acting_user_id, version, participants=participants, **fields,
    )
    err = db_commit_or_error()
    if err:
        return err
    return with_etag(meeting.to_dict(), meeting.version)


@meeting_bp.route("/<int:meeting_id>", methods=["DELETE"])
def delete_meeting(workspace_id, meeting_id):
    version, err = required_version(request.get_json(silent=True))
    if err:
        return err
    meeting_service.delete_meeting(workspace_id, meeting_id, g.acting_user_id, version)
    err = db_commit_or_error()
    if err:
        return err
    return "", 204
