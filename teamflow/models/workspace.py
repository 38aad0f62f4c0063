"""
Teamflow Workspace Core
Workspace directory models.

Models:
    - Workspace: tenant boundary, carries the immutable invite code
    - WorkspaceMember: one row per (workspace, user) with role + capability flags
    - Profile: display names written by the external profile store (read-only here)
"""

from teamflow.models import db
from teamflow.models.base import VersionedMixin, utcnow


# ── Constants ────────────────────────────────────────────────────────────────

ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"
MEMBER_ROLES = {ROLE_ADMIN, ROLE_MEMBER}


class Workspace(db.Model):
    """Tenant boundary grouping members, tasks and meetings."""

    __tablename__ = "workspaces"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    created_by = db.Column(db.String(64), nullable=False, index=True)
    invite_code = db.Column(
        db.String(32), nullable=False, unique=True,
        comment="Set once at creation; never rewritten",
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    members = db.relationship(
        "WorkspaceMember", backref="workspace", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self, include_invite_code=False):
        d = {
            "id": self.id,
            "name": self.name,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_invite_code:
            d["invite_code"] = self.invite_code
        return d

    def __repr__(self):
        return f"<Workspace {self.id}: {self.name}>"


class WorkspaceMember(VersionedMixin, db.Model):
    """
    A user's role and capability flags within one workspace.

    Stored flags are ignored for admins; use ``effective_can_create_*``.
    """

    __tablename__ = "workspace_members"
    __table_args__ = (
        db.UniqueConstraint("workspace_id", "user_id", name="uq_workspace_members_ws_user"),
        db.Index("ix_workspace_members_ws_role", "workspace_id", "role"),
    )

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(
        db.Integer, db.ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(db.String(64), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default=ROLE_MEMBER)
    can_create_tasks = db.Column(db.Boolean, nullable=False, default=False)
    can_create_meetings = db.Column(db.Boolean, nullable=False, default=False)
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def effective_can_create_tasks(self) -> bool:
        return self.is_admin or bool(self.can_create_tasks)

    @property
    def effective_can_create_meetings(self) -> bool:
        return self.is_admin or bool(self.can_create_meetings)

    def to_dict(self):
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "user_id": self.user_id,
            "role": self.role,
            "can_create_tasks": self.effective_can_create_tasks,
            "can_create_meetings": self.effective_can_create_meetings,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
            "version": self.version,
        }

    def __repr__(self):
        return f"<WorkspaceMember ws={self.workspace_id} user={self.user_id} role={self.role}>"


class Profile(db.Model):
    """Display-name record owned by the external profile store."""

    __tablename__ = "profiles"

    id = db.Column(db.String(64), primary_key=True, comment="User id from the identity provider")
    full_name = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Profile {self.id}: {self.full_name}>"
