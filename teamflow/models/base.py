"""
WorkspaceModel - Abstract base class for workspace-scoped, versioned rows.

Tasks and meetings inherit from WorkspaceModel instead of db.Model directly.
This adds:
  - workspace_id FK column with index
  - version column used by the optimistic compare-and-swap writer
  - created_at / updated_at timestamps
  - query_for_workspace(workspace_id) classmethod
"""

from datetime import datetime, timezone

from teamflow.models import db


def utcnow():
    return datetime.now(timezone.utc)


class VersionedMixin:
    """Integer version bumped by every accepted write (see services/helpers/versioning)."""

    version = db.Column(db.Integer, nullable=False, default=1)


class WorkspaceModel(VersionedMixin, db.Model):
    """Abstract base for workspace-scoped tables."""
    __abstract__ = True

    workspace_id = db.Column(
        db.Integer,
        db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @classmethod
    def query_for_workspace(cls, workspace_id):
        """Return a query filtered by workspace_id."""
        return cls.query.filter_by(workspace_id=workspace_id)
