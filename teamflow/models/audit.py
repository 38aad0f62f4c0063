"""
Teamflow Workspace Core
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for directory and lifecycle events.
"""

import json

from teamflow.models import db
from teamflow.models.base import utcnow


# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ENTITY_TYPES = {"workspace", "member", "task", "meeting"}

AUDIT_ACTIONS = {
    # Directory
    "workspace.create",
    "member.join",
    "member.update",
    "member.remove",
    # Task lifecycle
    "task.create",
    "task.update",
    "task.assign",
    "task.start",
    "task.request_completion",
    "task.approve",
    "task.reject",
    "task.delete",
    # Meetings
    "meeting.create",
    "meeting.update",
    "meeting.delete",
}


class AuditLog(db.Model):
    """
    Immutable audit trail for every accepted mutation.

    One row per action. ``diff_json`` carries an old→new snapshot
    for field-level changes.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_workspace", "workspace_id"),
        db.Index("idx_audit_actor", "actor"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    # No FK: the trail outlives deleted workspaces.
    workspace_id = db.Column(db.Integer, nullable=True)
    entity_type = db.Column(db.String(30), nullable=False, comment="workspace | member | task | meeting")
    entity_id = db.Column(db.String(36), nullable=False)
    action = db.Column(db.String(60), nullable=False, comment="task.approve | member.remove | …")
    actor = db.Column(db.String(64), nullable=False, default="system")
    diff_json = db.Column(db.Text, default="{}")
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def diff(self) -> dict:
        """Deserialise *diff_json* to a Python dict."""
        try:
            return json.loads(self.diff_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor": self.actor,
            "diff": self.diff,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    entity_type: str,
    entity_id,
    action: str,
    actor: str = "system",
    workspace_id: int | None = None,
    diff: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row. Uses ``flush`` so callers keep
    transaction control.
    """
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action}")
    log = AuditLog(
        workspace_id=workspace_id,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor=actor,
        diff_json=json.dumps(diff or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
