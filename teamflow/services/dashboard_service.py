"""
Member Dashboard Summary.

Per-workspace figures for the acting user:
  - tasks assigned to them, counted by status
  - completed vs. still open, plus urgent-and-open
  - today's meetings (UTC day) they participate in
"""

import logging
from datetime import datetime, time, timedelta, timezone

from sqlalchemy import func

from teamflow.models import db
from teamflow.models.meeting import Meeting, MeetingParticipant
from teamflow.models.task import TASK_STATUSES, Task
from teamflow.services.permission import check_permission
from teamflow.services.workspace_service import resolve_membership

logger = logging.getLogger(__name__)


def get_member_summary(workspace_id: int, acting_user_id: str, now: datetime | None = None) -> dict:
    """Dashboard figures for ``acting_user_id`` in one workspace."""
    member = resolve_membership(workspace_id, acting_user_id)
    check_permission(member, "view_task", acting_user_id=acting_user_id)

    rows = (
        db.session.query(Task.status, func.count(Task.id))
        .filter(Task.workspace_id == workspace_id, Task.assigned_to == acting_user_id)
        .group_by(Task.status)
        .all()
    )
    by_status = {status: 0 for status in sorted(TASK_STATUSES)}
    by_status.update({status: count for status, count in rows})
    total = sum(by_status.values())
    completed = by_status["completed"]

    urgent_open = (
        Task.query_for_workspace(workspace_id)
        .filter(
            Task.assigned_to == acting_user_id,
            Task.priority == "urgent",
            Task.status != "completed",
        )
        .count()
    )

    now = now or datetime.now(timezone.utc)
    day_start = datetime.combine(now.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)
    day_end = day_start + timedelta(days=1)
    today_meetings = (
        Meeting.query_for_workspace(workspace_id)
        .join(MeetingParticipant, MeetingParticipant.meeting_id == Meeting.id)
        .filter(
            MeetingParticipant.user_id == acting_user_id,
            Meeting.start_time >= day_start,
            Meeting.start_time < day_end,
        )
        .order_by(Meeting.start_time, Meeting.id)
        .all()
    )

    logger.debug("member_summary workspace_id=%s user=%s tasks=%s", workspace_id, acting_user_id, total)
    return {
        "workspace_id": workspace_id,
        "user_id": acting_user_id,
        "tasks": {
            "total": total,
            "completed": completed,
            "open": total - completed,
            "urgent_open": urgent_open,
            "by_status": by_status,
            "completion_rate": round(completed / total * 100) if total else 0,
        },
        "today_meetings": {
            "count": len(today_meetings),
            "items": [m.to_dict() for m in today_meetings],
        },
    }
