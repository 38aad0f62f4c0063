"""
Teamflow Workspace Core
Notification event model.

Models:
    - NotificationEvent: append-only outbox row, one per recipient per event.
      Delivery and read state belong to the external notification subsystem.
"""

from teamflow.models import db
from teamflow.models.base import utcnow


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_TYPES = {
    "task_assigned",
    "task_completion_requested",
    "task_approved",
    "task_rejected",
    "meeting_scheduled",
    "meeting_updated",
}


class NotificationEvent(db.Model):
    """Event emitted for the notification subsystem. Never updated."""

    __tablename__ = "notification_events"
    __table_args__ = (
        db.Index("ix_notification_events_target", "workspace_id", "target_user_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(40), nullable=False)
    workspace_id = db.Column(
        db.Integer, db.ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    target_user_id = db.Column(db.String(64), nullable=False)
    related_id = db.Column(db.String(36), nullable=True, comment="Task or meeting id")
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "workspace_id": self.workspace_id,
            "target_user_id": self.target_user_id,
            "related_id": self.related_id,
            "title": self.title,
            "message": self.message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<NotificationEvent {self.id}: {self.type} → {self.target_user_id}>"
