"""Notification service — creates user-facing notifications for quest events."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from openclique.logging_config import get_logger
from openclique.models import Notification, QuestSignup, SignupStatus

logger = get_logger(__name__)

# Signups that still expect the quest to happen
NOTIFIABLE_SIGNUP_STATUSES = (SignupStatus.pending.value, SignupStatus.confirmed.value)


async def create_notification(
    db: AsyncSession,
    user_id: UUID,
    notification_type: str,
    title: str,
    body: str,
    link: str | None = None,
    metadata: dict | None = None,
) -> Notification:
    """Insert a single notification."""
    notif = Notification(
        user_id=user_id,
        notification_type=notification_type,
        title=title,
        body=body,
        link=link,
        metadata_=metadata or {},
    )
    db.add(notif)
    await db.flush()
    logger.info(
        "notification_created",
        user_id=str(user_id),
        notification_type=notification_type,
    )
    return notif


async def resolve_participant_ids(db: AsyncSession, quest_id: UUID) -> list[UUID]:
    """User ids with a pending or confirmed signup for the quest."""
    result = await db.execute(
        select(QuestSignup.user_id).where(
            QuestSignup.quest_id == quest_id,
            QuestSignup.status.in_(NOTIFIABLE_SIGNUP_STATUSES),
        )
    )
    return list(result.scalars().all())
