"""
Workspace Directory Service.

Owns workspace records and membership rows, and resolves a
(workspace, user) pair to a WorkspaceMember for every request.

Business rules enforced here (never in blueprints):
    - exactly one membership row per (workspace, user): a second join raises
      AlreadyMemberError, both on the pre-check and on the unique constraint
    - invite codes are unique and immutable; a generator collision raises
      AlreadyExistsError instead of overwriting
    - a workspace keeps at least one admin: removing or demoting the last one
      raises LastAdminProtectedError
    - membership is re-resolved on every call; a revoked member is refused
      immediately

Services flush; the caller (blueprint) owns the commit.
"""

from __future__ import annotations

import logging
import secrets
import string

from flask import current_app, has_app_context
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from teamflow.core.exceptions import (
    AlreadyExistsError,
    AlreadyMemberError,
    LastAdminProtectedError,
    NotAMemberError,
    NotFoundError,
    ValidationError,
)
from teamflow.models import db
from teamflow.models.audit import AUDIT_ENTITY_TYPES, AuditLog, write_audit
from teamflow.models.workspace import (
    MEMBER_ROLES,
    ROLE_ADMIN,
    ROLE_MEMBER,
    Workspace,
    WorkspaceMember,
)
from teamflow.services.helpers.versioning import check_version, compare_and_swap, delete_if_version
from teamflow.services.permission import check_permission

logger = logging.getLogger(__name__)

INVITE_CODE_LENGTH = 8
_INVITE_ALPHABET = string.ascii_uppercase + string.digits


# ── Invite codes ──────────────────────────────────────────────────────────────


def generate_invite_code() -> str:
    """Default invite-code generator: 8 random upper-case alphanumerics."""
    return "".join(secrets.choice(_INVITE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def _next_invite_code() -> str:
    generator = None
    if has_app_context():
        generator = current_app.config.get("INVITE_CODE_GENERATOR")
    return (generator or generate_invite_code)()


# ── Lookups ───────────────────────────────────────────────────────────────────


def get_workspace_or_404(workspace_id: int) -> Workspace:
    ws = db.session.get(Workspace, workspace_id)
    if ws is None:
        raise NotFoundError(resource="Workspace", resource_id=workspace_id)
    return ws


def resolve_membership(workspace_id: int, user_id: str | None) -> WorkspaceMember:
    """Resolve the user's membership row in a workspace.

    Raises:
        NotFoundError: The workspace does not exist.
        NotAMemberError: No membership row for the user.
    """
    get_workspace_or_404(workspace_id)
    member = None
    if user_id:
        member = (
            WorkspaceMember.query
            .filter_by(workspace_id=workspace_id, user_id=user_id)
            .first()
        )
    if member is None:
        logger.warning("Membership refused: user=%s workspace=%s", user_id, workspace_id)
        raise NotAMemberError(workspace_id, user_id)
    return member


def _admin_count(workspace_id: int) -> int:
    """Count admins, locking their rows where the backend supports it."""
    rows = db.session.execute(
        select(WorkspaceMember.id)
        .where(WorkspaceMember.workspace_id == workspace_id, WorkspaceMember.role == ROLE_ADMIN)
        .with_for_update()
    ).all()
    return len(rows)


# ── Workspace lifecycle ───────────────────────────────────────────────────────


def create_workspace(name: str, acting_user_id: str, invite_code: str | None = None) -> Workspace:
    """Create a workspace; the creator becomes its first admin.

    Raises:
        ValidationError: Empty name.
        AlreadyExistsError: The invite code is already taken.
    """
    if name is not None and not isinstance(name, str):
        raise ValidationError("name must be a string", details={"name": "invalid"})
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})

    code = invite_code or _next_invite_code()
    if Workspace.query.filter_by(invite_code=code).first() is not None:
        raise AlreadyExistsError("Workspace", "invite_code", code)

    ws = Workspace(name=name, created_by=acting_user_id, invite_code=code)
    try:
        db.session.add(ws)
        db.session.flush()  # unique invite_code enforced here
    except IntegrityError:
        db.session.rollback()
        raise AlreadyExistsError("Workspace", "invite_code", code)

    db.session.add(WorkspaceMember(
        workspace_id=ws.id,
        user_id=acting_user_id,
        role=ROLE_ADMIN,
        can_create_tasks=True,
        can_create_meetings=True,
    ))
    db.session.flush()

    write_audit(
        entity_type="workspace", entity_id=ws.id, action="workspace.create",
        actor=acting_user_id, workspace_id=ws.id, diff={"name": {"old": None, "new": name}},
    )
    logger.info("Workspace %s created by %s", ws.id, acting_user_id)
    return ws


def get_workspace(workspace_id: int, acting_user_id: str) -> tuple[Workspace, WorkspaceMember]:
    member = resolve_membership(workspace_id, acting_user_id)
    check_permission(member, "view_workspace", acting_user_id=acting_user_id)
    return member.workspace, member


def list_user_workspaces(user_id: str) -> list[dict]:
    """Workspaces the user belongs to, with their role in each."""
    rows = (
        db.session.query(Workspace, WorkspaceMember)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .filter(WorkspaceMember.user_id == user_id)
        .order_by(Workspace.name)
        .all()
    )
    return [
        {**ws.to_dict(include_invite_code=m.is_admin), "role": m.role}
        for ws, m in rows
    ]


# ── Membership ────────────────────────────────────────────────────────────────


def join_workspace(invite_code: str, acting_user_id: str) -> WorkspaceMember:
    """Join the workspace owning ``invite_code`` as a plain member.

    Raises:
        NotFoundError: Unknown invite code.
        AlreadyMemberError: The user already belongs to the workspace.
    """
    if invite_code is not None and not isinstance(invite_code, str):
        raise ValidationError("invite_code must be a string", details={"invite_code": "invalid"})
    code = (invite_code or "").strip()
    if not code:
        raise ValidationError("invite_code is required", details={"invite_code": "required"})

    ws = Workspace.query.filter_by(invite_code=code).first()
    if ws is None:
        raise NotFoundError(resource="Invite code")

    existing = WorkspaceMember.query.filter_by(workspace_id=ws.id, user_id=acting_user_id).first()
    if existing is not None:
        raise AlreadyMemberError(ws.id, acting_user_id)

    member = WorkspaceMember(
        workspace_id=ws.id,
        user_id=acting_user_id,
        role=ROLE_MEMBER,
        can_create_tasks=False,
        can_create_meetings=False,
    )
    try:
        db.session.add(member)
        db.session.flush()  # uq_workspace_members_ws_user catches a concurrent join
    except IntegrityError:
        db.session.rollback()
        raise AlreadyMemberError(ws.id, acting_user_id)

    write_audit(
        entity_type="member", entity_id=member.id, action="member.join",
        actor=acting_user_id, workspace_id=ws.id,
    )
    logger.info("User %s joined workspace %s", acting_user_id, ws.id)
    return member


def list_members(workspace_id: int, acting_user_id: str) -> list[WorkspaceMember]:
    member = resolve_membership(workspace_id, acting_user_id)
    check_permission(member, "view_workspace", acting_user_id=acting_user_id)
    return (
        WorkspaceMember.query
        .filter_by(workspace_id=workspace_id)
        .order_by(WorkspaceMember.joined_at, WorkspaceMember.id)
        .all()
    )


def update_member(
    workspace_id: int,
    target_user_id: str,
    acting_user_id: str,
    expected_version,
    *,
    role: str | None = None,
    can_create_tasks: bool | None = None,
    can_create_meetings: bool | None = None,
) -> WorkspaceMember:
    """Change a member's role or capability flags (admin only).

    Raises:
        ForbiddenError: Actor is not an admin.
        NotAMemberError: Target has no membership.
        StaleWriteError: Target row changed since ``expected_version``.
        LastAdminProtectedError: Demoting the only admin.
    """
    actor = resolve_membership(workspace_id, acting_user_id)
    check_permission(actor, "update_member", target_user_id, acting_user_id)
    target = resolve_membership(workspace_id, target_user_id)
    check_version(target, expected_version)

    if role is not None and (not isinstance(role, str) or role not in MEMBER_ROLES):
        raise ValidationError(
            f"Invalid role. Must be one of: {sorted(MEMBER_ROLES)}", details={"role": "invalid"},
        )

    values = {}
    diff = {}
    if role is not None and role != target.role:
        if target.role == ROLE_ADMIN and _admin_count(workspace_id) <= 1:
            raise LastAdminProtectedError(workspace_id, target_user_id)
        values["role"] = role
        diff["role"] = {"old": target.role, "new": role}
        if role == ROLE_MEMBER:
            # Demotion drops creation rights unless this call grants them again
            can_create_tasks = bool(can_create_tasks)
            can_create_meetings = bool(can_create_meetings)
    for field, new in (("can_create_tasks", can_create_tasks), ("can_create_meetings", can_create_meetings)):
        if new is not None and bool(new) != getattr(target, field):
            values[field] = bool(new)
            diff[field] = {"old": getattr(target, field), "new": bool(new)}

    if not values:
        return target

    compare_and_swap(target, expected_version, **values)
    write_audit(
        entity_type="member", entity_id=target.id, action="member.update",
        actor=acting_user_id, workspace_id=workspace_id, diff=diff,
    )
    logger.info("Member %s in workspace %s updated by %s: %s",
                target_user_id, workspace_id, acting_user_id, sorted(diff))
    return target


def remove_member(workspace_id: int, target_user_id: str, acting_user_id: str, expected_version) -> None:
    """Remove a membership. Admins remove anyone; members may remove themselves.

    Raises:
        ForbiddenError: A non-admin removing someone else.
        NotAMemberError: Actor or target has no membership.
        StaleWriteError: Target row changed since ``expected_version``.
        LastAdminProtectedError: Target is the workspace's only admin.
    """
    actor = resolve_membership(workspace_id, acting_user_id)
    action = "leave_workspace" if target_user_id == acting_user_id else "remove_member"
    check_permission(actor, action, target_user_id, acting_user_id)
    target = actor if target_user_id == acting_user_id else resolve_membership(workspace_id, target_user_id)

    if target.role == ROLE_ADMIN and _admin_count(workspace_id) <= 1:
        logger.warning("Refused to remove last admin %s of workspace %s", target_user_id, workspace_id)
        raise LastAdminProtectedError(workspace_id, target_user_id)
    check_version(target, expected_version)

    member_id = target.id
    delete_if_version(target, expected_version)
    write_audit(
        entity_type="member", entity_id=member_id, action="member.remove",
        actor=acting_user_id, workspace_id=workspace_id,
        diff={"user_id": {"old": target_user_id, "new": None}},
    )
    logger.info("Member %s removed from workspace %s by %s", target_user_id, workspace_id, acting_user_id)


def member_count(workspace_id: int, user_id: str) -> int:
    """Number of membership rows for (workspace, user). Always 0 or 1."""
    return db.session.execute(
        select(func.count(WorkspaceMember.id))
        .where(WorkspaceMember.workspace_id == workspace_id, WorkspaceMember.user_id == user_id)
    ).scalar_one()


# ── Audit feed ────────────────────────────────────────────────────────────────


def list_audit_entries(
    workspace_id: int,
    acting_user_id: str,
    *,
    entity_type: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[AuditLog], int]:
    """Audit rows for a workspace, newest first (admin only)."""
    member = resolve_membership(workspace_id, acting_user_id)
    check_permission(member, "view_audit", acting_user_id=acting_user_id)

    q = AuditLog.query.filter_by(workspace_id=workspace_id)
    if entity_type:
        if entity_type not in AUDIT_ENTITY_TYPES:
            raise ValidationError(
                f"Invalid entity_type. Must be one of: {sorted(AUDIT_ENTITY_TYPES)}",
                details={"entity_type": "invalid"},
            )
        q = q.filter_by(entity_type=entity_type)
    total = q.count()
    items = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).offset(offset).limit(limit).all()
    return items, total
