"""Quest lifecycle operations — status transitions, review, soft delete, priority flag.

Every public operation performs one read and one UPDATE against a single
quest row, commits, then hands its audit/ops/notification side effects to the
dispatcher. Operations return a ``LifecycleResult`` and never raise: validation
errors are caught at the operation boundary, and store errors become
``persistence_failure``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from openclique.config import get_settings
from openclique.exceptions import (
    ConcurrentModificationError,
    PersistenceError,
    QuestLifecycleError,
    QuestNotFoundError,
)
from openclique.lifecycle.dispatcher import dispatch_side_effects
from openclique.lifecycle.effects import LifecyclePlan, NotificationRequest
from openclique.lifecycle.planner import (
    parse_review_action,
    participant_notifications,
    plan_review,
    plan_soft_delete,
    plan_transition,
)
from openclique.lifecycle.types import (
    LifecycleResult,
    QuestSnapshot,
    ReviewAction,
    ReviewOptions,
    TransitionOptions,
)
from openclique.logging_config import get_logger
from openclique.models import Quest, QuestSignup, QuestStatus, SignupStatus
from openclique.services.notification_service import resolve_participant_ids

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _version_checked(flag: bool | None) -> bool:
    return get_settings().version_checked_updates if flag is None else flag


async def load_quest(db: AsyncSession, quest_id: UUID) -> Quest:
    """Fetch a live (not soft-deleted) quest, refreshing any cached instance."""
    result = await db.execute(
        select(Quest)
        .where(Quest.id == quest_id, Quest.deleted_at.is_(None))
        .execution_options(populate_existing=True)
    )
    quest = result.scalar_one_or_none()
    if quest is None:
        raise QuestNotFoundError(str(quest_id))
    return quest


async def _write_plan(
    db: AsyncSession,
    quest_id: UUID,
    plan: LifecyclePlan,
    version_checked: bool,
) -> None:
    """Apply the plan's update as one statement and commit it."""
    stmt = (
        update(Quest)
        .where(Quest.id == quest_id)
        .values(**plan.update.values())
        .execution_options(synchronize_session=False)
    )
    guarded = version_checked and plan.expected_status is not None
    if guarded:
        stmt = stmt.where(Quest.status == plan.expected_status.value)

    try:
        result = await db.execute(stmt)
        if guarded and result.rowcount == 0:
            await db.rollback()
            raise ConcurrentModificationError(str(quest_id), plan.expected_status.value)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError(str(e)) from e


async def _participant_requests(
    db: AsyncSession,
    quest: QuestSnapshot,
    new_status: QuestStatus,
    reason: str | None,
) -> tuple[NotificationRequest, ...]:
    try:
        user_ids = await resolve_participant_ids(db, quest.id)
    except Exception as e:
        await db.rollback()
        logger.warning(
            "participant_lookup_failed", quest_id=str(quest.id), error=str(e)
        )
        return ()
    return participant_notifications(quest, new_status, reason, user_ids)


async def _fail(db: AsyncSession, operation: str, quest_id: UUID, exc: QuestLifecycleError) -> LifecycleResult:
    if db.in_transaction():
        await db.rollback()
    logger.info(
        "quest_operation_rejected",
        operation=operation,
        quest_id=str(quest_id),
        error=exc.error_type.value,
        message=exc.message,
    )
    return LifecycleResult.from_error(exc)


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------


async def transition_quest_status(
    db: AsyncSession,
    quest_id: UUID,
    new_status: QuestStatus | str,
    options: TransitionOptions | None = None,
    actor_id: UUID | None = None,
    redis=None,
    version_checked: bool | None = None,
) -> LifecycleResult:
    """Move a quest along one edge of the transition graph, with audit trail."""
    options = options or TransitionOptions()
    try:
        quest = QuestSnapshot.from_model(await load_quest(db, quest_id))
        plan = plan_transition(quest, new_status, options, _utcnow(), actor_id)
        await _write_plan(db, quest_id, plan, _version_checked(version_checked))
    except QuestLifecycleError as e:
        return await _fail(db, "transition", quest_id, e)
    except SQLAlchemyError as e:
        return await _fail(db, "transition", quest_id, PersistenceError(str(e)))
    except Exception as e:
        logger.exception("quest_operation_failed", operation="transition", quest_id=str(quest_id))
        return await _fail(db, "transition", quest_id, PersistenceError(str(e)))

    target = plan.target_status
    logger.info(
        "quest_status_changed",
        quest_id=str(quest_id),
        from_status=quest.status.value,
        to_status=target.value,
        actor_id=str(actor_id) if actor_id else None,
    )

    side_effects = list(plan.side_effects)
    if options.notify_users:
        side_effects.extend(await _participant_requests(db, quest, target, options.reason))
    await dispatch_side_effects(db, side_effects, redis=redis)

    return LifecycleResult.ok(target)


async def pause_quest(
    db: AsyncSession,
    quest_id: UUID,
    reason: str,
    actor_id: UUID | None = None,
    redis=None,
) -> LifecycleResult:
    """Pause a quest and tell its creator and participants."""
    return await transition_quest_status(
        db,
        quest_id,
        QuestStatus.paused,
        TransitionOptions(reason=reason, notify_creator=True, notify_users=True),
        actor_id=actor_id,
        redis=redis,
    )


async def resume_quest(
    db: AsyncSession,
    quest_id: UUID,
    actor_id: UUID | None = None,
    redis=None,
) -> LifecycleResult:
    """Put a paused quest back live; clears the pause fields."""
    return await transition_quest_status(
        db,
        quest_id,
        QuestStatus.open,
        TransitionOptions(notify_creator=True),
        actor_id=actor_id,
        redis=redis,
    )


async def cancel_quest(
    db: AsyncSession,
    quest_id: UUID,
    reason: str,
    actor_id: UUID | None = None,
    redis=None,
) -> LifecycleResult:
    """Cancel a quest and tell its creator and participants."""
    return await transition_quest_status(
        db,
        quest_id,
        QuestStatus.cancelled,
        TransitionOptions(reason=reason, notify_creator=True, notify_users=True),
        actor_id=actor_id,
        redis=redis,
    )


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


async def perform_review_action(
    db: AsyncSession,
    quest_id: UUID,
    action: ReviewAction | str,
    options: ReviewOptions | None = None,
    actor_id: UUID | None = None,
    redis=None,
) -> LifecycleResult:
    """Record an admin review decision, optionally publishing the quest."""
    options = options or ReviewOptions()
    try:
        review_action = parse_review_action(action)
        quest = QuestSnapshot.from_model(await load_quest(db, quest_id))
        plan = plan_review(quest, review_action, options, _utcnow(), actor_id)
        # The publish escape hatch is not a transition-graph edge; never version-check it
        await _write_plan(db, quest_id, plan, version_checked=False)
    except QuestLifecycleError as e:
        return await _fail(db, "review", quest_id, e)
    except SQLAlchemyError as e:
        return await _fail(db, "review", quest_id, PersistenceError(str(e)))
    except Exception as e:
        logger.exception("quest_operation_failed", operation="review", quest_id=str(quest_id))
        return await _fail(db, "review", quest_id, PersistenceError(str(e)))

    published = review_action is ReviewAction.approve and options.should_publish
    logger.info(
        "quest_reviewed",
        quest_id=str(quest_id),
        action=review_action.value,
        published=published,
        revision_count=quest.revision_count + 1,
    )
    await dispatch_side_effects(db, plan.side_effects, redis=redis)

    return LifecycleResult.ok(QuestStatus.open if published else quest.status)


# ---------------------------------------------------------------------------
# Soft delete / priority flag
# ---------------------------------------------------------------------------


async def count_active_signups(db: AsyncSession, quest_id: UUID) -> int:
    """Signups referencing the quest that have not dropped out."""
    result = await db.execute(
        select(func.count())
        .select_from(QuestSignup)
        .where(
            QuestSignup.quest_id == quest_id,
            QuestSignup.status != SignupStatus.dropped.value,
        )
    )
    return result.scalar() or 0


async def soft_delete_quest(
    db: AsyncSession,
    quest_id: UUID,
    reason: str,
    actor_id: UUID | None = None,
    version_checked: bool | None = None,
) -> LifecycleResult:
    """Hide a cancelled or revoked quest that no longer has active signups."""
    try:
        quest = QuestSnapshot.from_model(await load_quest(db, quest_id))
        active = await count_active_signups(db, quest_id)
        plan = plan_soft_delete(quest, reason, active, _utcnow(), actor_id)
        await _write_plan(db, quest_id, plan, _version_checked(version_checked))
    except QuestLifecycleError as e:
        return await _fail(db, "soft_delete", quest_id, e)
    except SQLAlchemyError as e:
        return await _fail(db, "soft_delete", quest_id, PersistenceError(str(e)))
    except Exception as e:
        logger.exception("quest_operation_failed", operation="soft_delete", quest_id=str(quest_id))
        return await _fail(db, "soft_delete", quest_id, PersistenceError(str(e)))

    logger.info("quest_soft_deleted", quest_id=str(quest_id), status=quest.status.value)
    await dispatch_side_effects(db, plan.side_effects)
    return LifecycleResult.ok()


async def toggle_priority_flag(db: AsyncSession, quest_id: UUID) -> bool:
    """Flip the quest's priority flag. Returns False if the quest is missing or the write fails."""
    try:
        result = await db.execute(
            select(Quest.priority_flag).where(
                Quest.id == quest_id, Quest.deleted_at.is_(None)
            )
        )
        current = result.scalar_one_or_none()
        if current is None:
            await db.rollback()
            return False
        await db.execute(
            update(Quest)
            .where(Quest.id == quest_id, Quest.deleted_at.is_(None))
            .values(priority_flag=not current)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.warning("priority_flag_toggle_failed", quest_id=str(quest_id), error=str(e))
        return False
    return True
