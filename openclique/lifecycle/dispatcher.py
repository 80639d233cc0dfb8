"""Best-effort execution of lifecycle side effects.

Runs after the primary quest write has committed. Each side effect gets its
own savepoint; a failure rolls back only that savepoint, is logged, and never
reaches the caller.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from openclique.lifecycle.effects import (
    AuditRecord,
    NotificationRequest,
    OpsEventRecord,
    SideEffect,
)
from openclique.logging_config import get_logger
from openclique.services.audit_service import append_audit_log
from openclique.services.notification_service import create_notification
from openclique.services.ops_event_service import log_ops_event

logger = get_logger(__name__)


async def _apply(db: AsyncSession, effect: SideEffect, redis) -> None:
    if isinstance(effect, AuditRecord):
        await append_audit_log(
            db,
            actor_id=effect.actor_id,
            action=effect.action,
            target_table=effect.target_table,
            target_id=effect.target_id,
            old_values=effect.old_values,
            new_values=effect.new_values,
        )
    elif isinstance(effect, OpsEventRecord):
        await log_ops_event(
            db,
            event_type=effect.event_type,
            entity_refs=effect.entity_refs,
            before_state=effect.before_state,
            after_state=effect.after_state,
            metadata=effect.metadata,
            redis=redis,
        )
    elif isinstance(effect, NotificationRequest):
        await create_notification(
            db,
            user_id=effect.user_id,
            notification_type=effect.notification_type,
            title=effect.title,
            body=effect.body,
            link=effect.link,
            metadata=effect.metadata,
        )
    else:
        raise TypeError(f"Unknown side effect: {type(effect).__name__}")


def _describe(effect: SideEffect) -> str:
    if isinstance(effect, AuditRecord):
        return f"audit:{effect.action}"
    if isinstance(effect, OpsEventRecord):
        return f"ops:{effect.event_type}"
    return f"notification:{effect.notification_type}"


async def dispatch_side_effects(
    db: AsyncSession,
    effects: Iterable[SideEffect],
    redis=None,
) -> int:
    """Execute side effects independently and commit the ones that succeeded.

    Returns the number of side effects that were written.
    """
    written = 0
    for effect in effects:
        try:
            async with db.begin_nested():
                await _apply(db, effect, redis)
        except Exception as e:
            logger.warning("side_effect_failed", effect=_describe(effect), error=str(e))
            continue
        written += 1

    if written:
        try:
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("side_effect_commit_failed", count=written, error=str(e))
            return 0
    return written
