"""
Workspace-scoped query helpers.

Every get-by-id on a workspace-owned row goes through these helpers instead
of ``db.session.get(Model, pk)``. A bare primary-key lookup would let a member
of workspace A read or mutate a task of workspace B just by guessing its id.

A row that exists in another workspace is indistinguishable from a missing
row: both raise NotFoundError.

Usage:
    task = get_scoped(Task, task_id, workspace_id=workspace_id)
"""

import logging

from sqlalchemy import select

from teamflow.core.exceptions import NotFoundError
from teamflow.models import db

logger = logging.getLogger(__name__)


def get_scoped(model, pk, *, workspace_id: int | None):
    """Fetch a single entity by PK, constrained to ``workspace_id``.

    Raises:
        ValueError: If no workspace scope was supplied, or the model has no
                    ``workspace_id`` column.
        NotFoundError: If the entity does not exist inside that workspace.
    """
    if workspace_id is None:
        raise ValueError(
            f"{model.__name__} id={pk} requires a workspace_id scope. "
            "Unscoped lookups are forbidden."
        )
    if not hasattr(model, "workspace_id"):
        raise ValueError(f"{model.__name__} has no workspace_id column")

    stmt = select(model).where(model.id == pk, model.workspace_id == workspace_id)
    obj = db.session.execute(stmt).scalar_one_or_none()
    if obj is None:
        logger.debug("Scoped lookup miss: %s id=%s workspace=%s", model.__name__, pk, workspace_id)
        raise NotFoundError(resource=model.__name__, resource_id=pk, workspace_id=workspace_id)
    return obj

