"""
Teamflow Workspace Core
Notification emitter.

Produces NotificationEvent rows for the external notification subsystem.
Events are flushed inside the caller's transaction, so an event exists if
and only if the mutation that caused it was committed.

Emission contract: {type, workspace_id, target_user_id, related_id, message}
on task assigned, completion requested, task approved / rejected and meeting
scheduled / updated. The actor never notifies themself.
"""

import logging

from teamflow.models import db
from teamflow.models.notification import NOTIFICATION_TYPES, NotificationEvent
from teamflow.models.workspace import ROLE_ADMIN, Profile, WorkspaceMember

logger = logging.getLogger(__name__)


def display_name(user_id: str | None) -> str:
    """Display name from the profile store, falling back to the raw user id."""
    if not user_id:
        return "Someone"
    profile = db.session.get(Profile, user_id)
    return profile.full_name if profile else user_id


class NotificationService:
    """Stateless service class for emitting and reading notification events."""

    # ── Emit ──────────────────────────────────────────────────────────────

    @staticmethod
    def emit(*, type, workspace_id, recipients, title, message="", related_id=None, actor=None):
        """
        Append one event per recipient (actor and duplicates skipped).

        Returns:
            List of flushed NotificationEvent instances.
        """
        if type not in NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type: {type}")
        events = []
        seen = set()
        for user_id in recipients:
            if not user_id or user_id == actor or user_id in seen:
                continue
            seen.add(user_id)
            event = NotificationEvent(
                type=type,
                workspace_id=workspace_id,
                target_user_id=user_id,
                related_id=str(related_id) if related_id is not None else None,
                title=title,
                message=message,
            )
            db.session.add(event)
            events.append(event)
        if events:
            db.session.flush()
            logger.info("Emitted %d %s event(s) in workspace %s", len(events), type, workspace_id)
        return events

    # ── Task events ───────────────────────────────────────────────────────

    @staticmethod
    def task_assigned(task, actor):
        return NotificationService.emit(
            type="task_assigned",
            workspace_id=task.workspace_id,
            recipients=[task.assigned_to],
            title="New task assigned",
            message=f"{display_name(actor)} assigned you \"{task.title}\"",
            related_id=task.id,
            actor=actor,
        )

    @staticmethod
    def task_completion_requested(task, actor):
        admins = (
            WorkspaceMember.query
            .filter_by(workspace_id=task.workspace_id, role=ROLE_ADMIN)
            .all()
        )
        return NotificationService.emit(
            type="task_completion_requested",
            workspace_id=task.workspace_id,
            recipients=[m.user_id for m in admins],
            title="Task awaiting approval",
            message=f"{display_name(actor)} marked \"{task.title}\" as done",
            related_id=task.id,
            actor=actor,
        )

    @staticmethod
    def task_decided(task, actor, approved: bool):
        verb = "approved" if approved else "rejected"
        return NotificationService.emit(
            type=f"task_{verb}",
            workspace_id=task.workspace_id,
            recipients=[task.assigned_to],
            title=f"Task {verb}",
            message=f"{display_name(actor)} {verb} \"{task.title}\"",
            related_id=task.id,
            actor=actor,
        )

    # ── Meeting events ────────────────────────────────────────────────────

    @staticmethod
    def meeting_changed(meeting, actor, created: bool):
        """Notify participants, or every member when the meeting has none."""
        recipients = meeting.participant_ids
        if not recipients:
            recipients = [
                m.user_id for m in WorkspaceMember.query.filter_by(workspace_id=meeting.workspace_id)
            ]
        kind = "meeting_scheduled" if created else "meeting_updated"
        return NotificationService.emit(
            type=kind,
            workspace_id=meeting.workspace_id,
            recipients=recipients,
            title="Meeting scheduled" if created else "Meeting updated",
            message=f"{display_name(actor)} {'scheduled' if created else 'updated'} \"{meeting.title}\"",
            related_id=meeting.id,
            actor=actor,
        )

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_recipient(workspace_id, user_id, limit=50, offset=0):
        """Events targeting ``user_id`` in a workspace, newest first."""
        q = NotificationEvent.query.filter_by(workspace_id=workspace_id, target_user_id=user_id)
        total = q.count()
        items = (
            q.order_by(NotificationEvent.created_at.desc(), NotificationEvent.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total
