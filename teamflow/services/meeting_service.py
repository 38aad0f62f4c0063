"""
Meeting Authorization Gate.

Meetings have no member-driven transitions; their status is derived from the
clock at read time. The gate is a single check: create / update / delete need
``can_create_meetings`` (or admin), viewing needs membership only.

Business rules:
    - end_time must be strictly after start_time, on create and on every
      update, including meetings that have already ended (history correction)
    - participants must be members of the meeting's workspace
    - every write goes through the optimistic version check
"""

import logging
from datetime import datetime, timezone

from teamflow.core.exceptions import InvalidTimeRangeError, ValidationError
from teamflow.models import db
from teamflow.models.audit import write_audit
from teamflow.models.meeting import MEETING_STATUSES, Meeting, MeetingParticipant, as_utc
from teamflow.services.helpers.scoped_queries import get_scoped
from teamflow.services.helpers.versioning import check_version, compare_and_swap, delete_if_version
from teamflow.services.notification import NotificationService
from teamflow.services.permission import check_permission
from teamflow.services.workspace_service import resolve_membership

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "title", "description", "agenda", "start_time", "end_time", "location", "meeting_link",
)


def _check_time_range(start_time, end_time):
    if not isinstance(start_time, datetime) or not isinstance(end_time, datetime):
        raise ValidationError(
            "start_time and end_time are required datetimes",
            details={"start_time": "required", "end_time": "required"},
        )
    start, end = as_utc(start_time), as_utc(end_time)
    if end <= start:
        raise InvalidTimeRangeError(start, end)
    return start, end


def _clean_title(title) -> str:
    if title is not None and not isinstance(title, str):
        raise ValidationError("title must be a string", details={"title": "invalid"})
    title = (title or "").strip()
    if not title:
        raise ValidationError("title is required", details={"title": "required"})
    return title


def _check_text(value, field):
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: "invalid"})
    return value


def _resolve_participants(workspace_id: int, participants) -> list[str]:
    ids = []
    for user_id in participants or []:
        if not isinstance(user_id, str):
            raise ValidationError("participants must be user id strings", details={"participants": "invalid"})
        if user_id in ids:
            continue
        resolve_membership(workspace_id, user_id)
        ids.append(user_id)
    return ids


def _sync_participants(meeting: Meeting, user_ids: list[str]) -> None:
    current = {p.user_id: p for p in meeting.participants}
    for user_id, row in current.items():
        if user_id not in user_ids:
            meeting.participants.remove(row)
    for user_id in user_ids:
        if user_id not in current:
            meeting.participants.append(MeetingParticipant(user_id=user_id))
    db.session.flush()


# ── Reads ────────────────────────────────────────────────────────────────────


def get_meeting(workspace_id: int, meeting_id: int, acting_user_id: str) -> Meeting:
    member = resolve_membership(workspace_id, acting_user_id)
    check_permission(member, "view_meeting", acting_user_id=acting_user_id)
    return get_scoped(Meeting, meeting_id, workspace_id=workspace_id)


def list_meetings(
    workspace_id: int,
    acting_user_id: str,
    *,
    status: str | None = None,
    participant: str | None = None,
    now: datetime | None = None,
) -> list[Meeting]:
    """Meetings ordered by start time; ``status`` is filtered against ``now``,
    ``participant`` keeps only meetings that user attends."""
    member = resolve_membership(workspace_id, acting_user_id)
    check_permission(member, "view_meeting", acting_user_id=acting_user_id)
    if status and status not in MEETING_STATUSES:
        raise ValidationError(
            f"Invalid status. Must be one of: {list(MEETING_STATUSES)}", details={"status": "invalid"},
        )

    q = Meeting.query_for_workspace(workspace_id)
    if participant:
        q = q.join(MeetingParticipant, MeetingParticipant.meeting_id == Meeting.id).filter(
            MeetingParticipant.user_id == participant,
        )
    meetings = q.order_by(Meeting.start_time, Meeting.id).all()
    if status:
        now = now or datetime.now(timezone.utc)
        meetings = [m for m in meetings if m.status_at(now) == status]
    return meetings


# ── Writes ───────────────────────────────────────────────────────────────────


def create_meeting(
    workspace_id: int,
    acting_user_id: str,
    *,
    title: str,
    start_time: datetime,
    end_time: datetime,
    description: str = "",
    agenda: str = "",
    location: str | None = None,
    meeting_link: str | None = None,
    participants: list[str] | None = None,
) -> Meeting:
    """
    Schedule a meeting.

    Raises:
        NotAMemberError, ForbiddenError, InvalidTimeRangeError, ValidationError
    """
    member = resolve_membership(workspace_id, acting_user_id)
    check_permission(member, "create_meeting", acting_user_id=acting_user_id)

    title = _clean_title(title)
    start, end = _check_time_range(start_time, end_time)
    description = _check_text(description, "description")
    agenda = _check_text(agenda, "agenda")
    location = _check_text(location, "location")
    meeting_link = _check_text(meeting_link, "meeting_link")
    participant_ids = _resolve_participants(workspace_id, participants)

    meeting = Meeting(
        workspace_id=workspace_id,
        created_by=acting_user_id,
        title=title,
        description=description or "",
        agenda=agenda or "",
        start_time=start,
        end_time=end,
        location=location,
        meeting_link=meeting_link,
        version=1,
    )
    db.session.add(meeting)
    db.session.flush()
    _sync_participants(meeting, participant_ids)

    write_audit(
        entity_type="meeting", entity_id=meeting.id, action="meeting.create",
        actor=acting_user_id, workspace_id=workspace_id,
        diff={"title": {"old": None, "new": title},
              "start_time": {"old": None, "new": start}, "end_time": {"old": None, "new": end}},
    )
    NotificationService.meeting_changed(meeting, acting_user_id, created=True)
    logger.info("Meeting %s scheduled in workspace %s by %s", meeting.id, workspace_id, acting_user_id)
    return meeting


def update_meeting(
    workspace_id: int,
    meeting_id: int,
    acting_user_id: str,
    expected_version,
    *,
    participants: list[str] | None = None,
    **fields,
) -> Meeting:
    """
    Edit a meeting, including one that has already ended.

    Raises:
        StaleWriteError, ForbiddenError, InvalidTimeRangeError, ValidationError
    """
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields not editable: {sorted(unknown)}", details={f: "not_editable" for f in unknown})

    member = resolve_membership(workspace_id, acting_user_id)
    meeting = get_scoped(Meeting, meeting_id, workspace_id=workspace_id)
    check_version(meeting, expected_version)
    check_permission(member, "edit_meeting", meeting.created_by, acting_user_id)

    values = {k: v for k, v in fields.items()}
    if "title" in values:
        values["title"] = _clean_title(values["title"])
    for key in ("description", "agenda", "location", "meeting_link"):
        if key in values:
            values[key] = _check_text(values[key], key)
    if "start_time" in values or "end_time" in values:
        start, end = _check_time_range(
            values.get("start_time", meeting.start_time),
            values.get("end_time", meeting.end_time),
        )
        if "start_time" in values:
            values["start_time"] = start
        if "end_time" in values:
            values["end_time"] = end

    participant_ids = None
    if participants is not None:
        participant_ids = _resolve_participants(workspace_id, participants)

    def _current(key):
        value = getattr(meeting, key)
        return as_utc(value) if isinstance(value, datetime) else value

    diff = {k: {"old": _current(k), "new": v} for k, v in values.items() if _current(k) != v}
    if participant_ids is not None and sorted(participant_ids) != meeting.participant_ids:
        diff["participants"] = {"old": meeting.participant_ids, "new": sorted(participant_ids)}
    if not diff:
        return meeting

    compare_and_swap(meeting, expected_version, **{k: values[k] for k in diff if k in values})
    if participant_ids is not None:
        _sync_participants(meeting, participant_ids)

    write_audit(
        entity_type="meeting", entity_id=meeting.id, action="meeting.update",
        actor=acting_user_id, workspace_id=workspace_id, diff=diff,
    )
    NotificationService.meeting_changed(meeting, acting_user_id, created=False)
    return meeting


def delete_meeting(workspace_id: int, meeting_id: int, acting_user_id: str, expected_version) -> None:
    """
    Raises:
        StaleWriteError, ForbiddenError
    """
    member = resolve_membership(workspace_id, acting_user_id)
    meeting = get_scoped(Meeting, meeting_id, workspace_id=workspace_id)
    check_version(meeting, expected_version)
    check_permission(member, "delete_meeting", meeting.created_by, acting_user_id)

    title = meeting.title
    meeting.participants.clear()
    db.session.flush()
    delete_if_version(meeting, expected_version)
    write_audit(
        entity_type="meeting", entity_id=meeting_id, action="meeting.delete",
        actor=acting_user_id, workspace_id=workspace_id,
        diff={"title": {"old": title, "new": None}},
    )
    logger.info("Meeting %s deleted from workspace %s by %s", meeting_id, workspace_id, acting_user_id)
