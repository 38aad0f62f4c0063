"""
Teamflow Workspace Core
Meeting models.

Models:
    - Meeting: scheduled meeting; status is derived from the clock at read time
    - MeetingParticipant: (meeting, member) invitation row
"""

from datetime import datetime, timezone

from teamflow.models import db
from teamflow.models.base import WorkspaceModel


MEETING_STATUSES = ("upcoming", "ongoing", "ended")


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def derive_meeting_status(start_time: datetime, end_time: datetime, now: datetime) -> str:
    """Map ``now`` against the half-open window ``[start_time, end_time)``."""
    start, end, now = as_utc(start_time), as_utc(end_time), as_utc(now)
    if now < start:
        return "upcoming"
    if now < end:
        return "ongoing"
    return "ended"


class Meeting(WorkspaceModel):
    """Meeting scheduled inside a workspace. No persisted status column."""

    __tablename__ = "meetings"
    __table_args__ = (
        db.Index("ix_meetings_ws_start", "workspace_id", "start_time"),
    )

    id = db.Column(db.Integer, primary_key=True)
    created_by = db.Column(db.String(64), nullable=False)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    agenda = db.Column(db.Text, default="")
    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=False)
    location = db.Column(db.String(300), nullable=True)
    meeting_link = db.Column(db.String(500), nullable=True)

    participants = db.relationship(
        "MeetingParticipant", backref="meeting", lazy="select",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def status_at(self, now: datetime | None = None) -> str:
        return derive_meeting_status(self.start_time, self.end_time, now or datetime.now(timezone.utc))

    @property
    def status(self) -> str:
        return self.status_at()

    @property
    def participant_ids(self) -> list[str]:
        return sorted(p.user_id for p in self.participants)

    def to_dict(self, now: datetime | None = None):
        start, end = as_utc(self.start_time), as_utc(self.end_time)
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "created_by": self.created_by,
            "title": self.title,
            "description": self.description,
            "agenda": self.agenda,
            "start_time": start.isoformat() if start else None,
            "end_time": end.isoformat() if end else None,
            "location": self.location,
            "meeting_link": self.meeting_link,
            "status": self.status_at(now),
            "participants": self.participant_ids,
            "version": self.version,
        }

    def __repr__(self):
        return f"<Meeting {self.id}: {self.title[:40]}>"


class MeetingParticipant(db.Model):
    __tablename__ = "meeting_participants"
    __table_args__ = (
        db.UniqueConstraint("meeting_id", "user_id", name="uq_meeting_participants_meeting_user"),
    )

    id = db.Column(db.Integer, primary_key=True)
    meeting_id = db.Column(
        db.Integer, db.ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(db.String(64), nullable=False, index=True)

    def __repr__(self):
        return f"<MeetingParticipant meeting={self.meeting_id} user={self.user_id}>"
