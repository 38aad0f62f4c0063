"""
Teamflow Workspace Core
Task model and its approval state machine.

Status flow:
    pending → ongoing → pending_approval → completed
                 ↑              │
                 └── reject ────┘
"""

from teamflow.models import db
from teamflow.models.base import WorkspaceModel


# ── Constants ────────────────────────────────────────────────────────────────

TASK_PRIORITIES = {"low", "medium", "high", "urgent"}
TASK_STATUSES = {"pending", "ongoing", "pending_approval", "completed"}
TASK_INITIAL_STATUS = "pending"
TASK_TERMINAL_STATUSES = {"completed"}

# action → {from, to}; the only edges that exist
TASK_TRANSITIONS = {
    "start": {"from": "pending", "to": "ongoing"},
    "request_completion": {"from": "ongoing", "to": "pending_approval"},
    "approve": {"from": "pending_approval", "to": "completed"},
    "reject": {"from": "pending_approval", "to": "ongoing"},
}


class Task(WorkspaceModel):
    """Unit of work inside a workspace, optionally assigned to one member."""

    __tablename__ = "tasks"
    __table_args__ = (
        db.Index("ix_tasks_ws_status", "workspace_id", "status"),
        db.Index("ix_tasks_ws_assignee", "workspace_id", "assigned_to"),
    )

    id = db.Column(db.Integer, primary_key=True)
    created_by = db.Column(db.String(64), nullable=False)
    assigned_to = db.Column(db.String(64), nullable=True, comment="User id of a workspace member")
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    priority = db.Column(db.String(20), nullable=False, default="medium")
    deadline = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(30), nullable=False, default=TASK_INITIAL_STATUS)

    def to_dict(self):
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "created_by": self.created_by,
            "assigned_to": self.assigned_to,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "status": self.status,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Task {self.id}: {self.title[:40]} [{self.status}]>"
