"""Pure planning functions for quest lifecycle operations.

Planners take a ``QuestSnapshot`` plus the request and return a
``LifecyclePlan``; they never touch the database. Validation failures raise
``QuestLifecycleError`` subclasses before any write is attempted.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from openclique.exceptions import (
    ActiveReferencesError,
    InvalidQuestStateError,
    InvalidReviewActionError,
    MissingReasonError,
)
from openclique.lifecycle import messages
from openclique.lifecycle.effects import (
    AuditRecord,
    EnterCancelled,
    EnterPaused,
    EnterRevoked,
    FieldEffect,
    LeavePaused,
    LifecyclePlan,
    MarkDeleted,
    NotificationRequest,
    OpsEventRecord,
    Publish,
    QuestUpdate,
    RecordReview,
    SetStatus,
    SideEffect,
)
from openclique.lifecycle.state_machine import (
    DELETABLE_STATUSES,
    requires_reason,
    validate_transition,
)
from openclique.lifecycle.types import (
    REVIEW_OUTCOMES,
    QuestSnapshot,
    ReviewAction,
    ReviewOptions,
    TransitionOptions,
)
from openclique.models import QuestStatus

QUESTS_TABLE = "quests"


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _quest_link(quest_id: UUID) -> str:
    return f"/quests/{quest_id}"


def status_field_effects(
    current: QuestStatus,
    target: QuestStatus,
    reason: str | None,
    now: datetime,
) -> tuple[FieldEffect, ...]:
    """Field effects for moving current -> target (the edge is assumed valid)."""
    effects: list[FieldEffect] = [SetStatus(status=target, previous_status=current)]
    if target is QuestStatus.paused:
        effects.append(EnterPaused(at=now, reason=reason or None))
    elif target is QuestStatus.revoked:
        effects.append(EnterRevoked(at=now, reason=reason))
    elif target is QuestStatus.cancelled:
        effects.append(EnterCancelled(at=now, reason=reason))
    if current is QuestStatus.paused and target is QuestStatus.open:
        effects.append(LeavePaused())
    return tuple(effects)


def plan_transition(
    quest: QuestSnapshot,
    new_status: QuestStatus,
    options: TransitionOptions,
    now: datetime,
    actor_id: UUID | None = None,
) -> LifecyclePlan:
    """Plan a status transition: validate the edge and reason, then build the update."""
    current = quest.status
    validate_transition(current, new_status)
    new_status = QuestStatus(new_status)
    if requires_reason(new_status) and _blank(options.reason):
        raise MissingReasonError(new_status.value)

    update = QuestUpdate(status_field_effects(current, new_status, options.reason, now))

    side_effects: list[SideEffect] = [
        AuditRecord(
            action=f"quest_status_{new_status.value}",
            target_table=QUESTS_TABLE,
            target_id=str(quest.id),
            old_values={"status": current.value},
            new_values={
                "status": new_status.value,
                "reason": options.reason,
                "admin_notes": options.admin_notes,
            },
            actor_id=actor_id,
        ),
        OpsEventRecord(
            event_type="quest_status_changed",
            entity_refs={"quest_id": str(quest.id)},
            before_state={"status": current.value},
            after_state={"status": new_status.value, "reason": options.reason},
            metadata={"admin_notes": options.admin_notes},
        ),
    ]

    if options.notify_creator and quest.creator_id is not None:
        side_effects.append(
            NotificationRequest(
                user_id=quest.creator_id,
                notification_type="general",
                title=messages.status_change_title(quest.title),
                body=messages.status_change_body(quest.title, new_status, options.reason),
                link=_quest_link(quest.id),
                metadata={"quest_id": str(quest.id), "status": new_status.value},
            )
        )

    return LifecyclePlan(
        update=update,
        side_effects=tuple(side_effects),
        expected_status=current,
        target_status=new_status,
    )


def participant_notifications(
    quest: QuestSnapshot,
    new_status: QuestStatus,
    reason: str | None,
    user_ids: Iterable[UUID],
) -> tuple[NotificationRequest, ...]:
    """Notices for signed-up users; empty when the status is not announced to them."""
    notice = messages.participant_notice(quest.title, new_status, reason)
    if notice is None:
        return ()
    title, body = notice
    seen: set[UUID] = set()
    requests = []
    for user_id in user_ids:
        if user_id in seen:
            continue
        seen.add(user_id)
        requests.append(
            NotificationRequest(
                user_id=user_id,
                notification_type="general",
                title=title,
                body=body,
                link=_quest_link(quest.id),
                metadata={"quest_id": str(quest.id), "status": new_status.value},
            )
        )
    return tuple(requests)


def parse_review_action(action: str | ReviewAction) -> ReviewAction:
    try:
        return ReviewAction(action)
    except ValueError:
        raise InvalidReviewActionError(str(action)) from None


def plan_review(
    quest: QuestSnapshot,
    action: ReviewAction,
    options: ReviewOptions,
    now: datetime,
    actor_id: UUID | None = None,
) -> LifecyclePlan:
    """Plan a review decision.

    Review status is a flat field, so any action is accepted from any prior
    review status. Approve-and-publish sets the quest live directly.
    """
    review_status = REVIEW_OUTCOMES[action]
    admin_notes = options.admin_notes or None
    publish = action is ReviewAction.approve and options.should_publish

    effects: list[FieldEffect] = [
        RecordReview(
            review_status=review_status,
            admin_notes=admin_notes,
        )
    ]
    if publish:
        effects.append(Publish(at=now))

    side_effects: list[SideEffect] = [
        AuditRecord(
            action=f"quest_review_{action.value}",
            target_table=QUESTS_TABLE,
            target_id=str(quest.id),
            old_values={"review_status": quest.review_status.value},
            new_values={
                "review_status": review_status.value,
                "status": QuestStatus.open.value if publish else None,
                "admin_notes": options.admin_notes,
            },
            actor_id=actor_id,
        )
    ]
    if quest.creator_id is not None:
        side_effects.append(
            NotificationRequest(
                user_id=quest.creator_id,
                notification_type=messages.REVIEW_NOTIFICATION_TYPES[action.value],
                title=messages.review_title(quest.title),
                body=messages.review_body(quest.title, action.value, options.admin_notes),
                link=_quest_link(quest.id),
                metadata={"quest_id": str(quest.id), "review_status": review_status.value},
            )
        )

    return LifecyclePlan(
        update=QuestUpdate(tuple(effects)),
        side_effects=tuple(side_effects),
        expected_status=quest.status,
    )


def check_deletable(quest: QuestSnapshot) -> None:
    if quest.status not in DELETABLE_STATUSES:
        raise InvalidQuestStateError("Quest must be cancelled or revoked before deletion")


def plan_soft_delete(
    quest: QuestSnapshot,
    reason: str,
    active_signups: int,
    now: datetime,
    actor_id: UUID | None = None,
) -> LifecyclePlan:
    """Plan a soft delete; the reason lands in the audit trail only."""
    check_deletable(quest)
    if active_signups > 0:
        raise ActiveReferencesError(active_signups)

    return LifecyclePlan(
        update=QuestUpdate((MarkDeleted(at=now),)),
        side_effects=(
            AuditRecord(
                action="quest_deleted",
                target_table=QUESTS_TABLE,
                target_id=str(quest.id),
                old_values={"status": quest.status.value},
                new_values={"deleted_at": now.isoformat(), "reason": reason},
                actor_id=actor_id,
            ),
        ),
        expected_status=quest.status,
    )
