"""Audit trail — append-only records of admin actions on platform tables."""

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from openclique.logging_config import get_logger
from openclique.models import AuditLog

logger = get_logger(__name__)


async def append_audit_log(
    db: AsyncSession,
    actor_id: UUID | None,
    action: str,
    target_table: str,
    target_id: str,
    old_values: dict[str, Any],
    new_values: dict[str, Any],
) -> AuditLog:
    """
    Insert one audit record.

    Args:
        db: Database session
        actor_id: Admin performing the action (None for system actions)
        action: e.g. 'quest_status_paused', 'quest_review_approve', 'quest_deleted'
        target_table: Table of the affected row
        target_id: Primary key of the affected row, as text
        old_values: Relevant fields before the change
        new_values: Relevant fields after the change
    """
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        target_table=target_table,
        target_id=target_id,
        old_values=old_values,
        new_values=new_values,
    )
    db.add(entry)
    await db.flush()

    logger.info(
        "audit_logged",
        action=action,
        target_table=target_table,
        target_id=target_id,
    )
    return entry
