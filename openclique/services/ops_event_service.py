"""Ops event logging — insert to DB + publish to Redis."""

import json
from typing import Any

from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from openclique.logging_config import get_logger
from openclique.models import OpsEvent

logger = get_logger(__name__)


def ops_channel(entity_refs: dict[str, Any]) -> str:
    """Pub/sub channel for an event: per quest when the event names one."""
    quest_id = entity_refs.get("quest_id")
    return f"ops:quest:{quest_id}" if quest_id else "ops:events"


async def log_ops_event(
    db: AsyncSession,
    event_type: str,
    entity_refs: dict[str, Any],
    before_state: dict[str, Any],
    after_state: dict[str, Any],
    metadata: dict[str, Any] | None = None,
    redis=None,
) -> OpsEvent:
    """
    Insert an ops event and publish it to Redis pub/sub.

    Args:
        db: Database session
        event_type: e.g. 'quest_status_changed'
        entity_refs: Ids of the entities involved, e.g. {'quest_id': ...}
        before_state: State before the change
        after_state: State after the change
        metadata: Additional context (optional)
        redis: Redis connection (optional; publishing is skipped without one)
    """
    entry = OpsEvent(
        event_type=event_type,
        entity_refs=entity_refs,
        before_state=before_state,
        after_state=after_state,
        metadata_=metadata or {},
    )
    db.add(entry)
    await db.flush()

    if redis is not None:
        channel = ops_channel(entity_refs)
        event = json.dumps({
            "id": str(entry.id),
            "event_type": event_type,
            "entity_refs": entity_refs,
            "before": before_state,
            "after": after_state,
            "metadata": metadata or {},
        }, default=str)
        try:
            await redis.publish(channel, event)
        except (RedisError, OSError) as e:
            logger.warning("redis_publish_failed", channel=channel, error=str(e))

    logger.info("ops_event_logged", event_type=event_type, entity_refs=entity_refs)
    return entry
