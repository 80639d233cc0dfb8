"""Value types shared by the lifecycle planner, dispatcher and service."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from uuid import UUID

from openclique.exceptions import LifecycleErrorCode, QuestLifecycleError
from openclique.models import Quest, QuestStatus, ReviewStatus


class ReviewAction(str, enum.Enum):
    approve = "approve"
    reject = "reject"
    request_changes = "request_changes"


REVIEW_OUTCOMES: dict[ReviewAction, ReviewStatus] = {
    ReviewAction.approve: ReviewStatus.approved,
    ReviewAction.reject: ReviewStatus.rejected,
    ReviewAction.request_changes: ReviewStatus.needs_changes,
}


@dataclass(frozen=True)
class TransitionOptions:
    reason: str | None = None
    admin_notes: str | None = None
    notify_creator: bool = False
    notify_users: bool = False


@dataclass(frozen=True)
class ReviewOptions:
    admin_notes: str | None = None
    should_publish: bool = False


@dataclass(frozen=True)
class QuestSnapshot:
    """The slice of a quest row the planner reads."""

    id: UUID
    title: str
    status: QuestStatus
    review_status: ReviewStatus
    revision_count: int = 0
    creator_id: UUID | None = None

    @classmethod
    def from_model(cls, quest: Quest) -> QuestSnapshot:
        return cls(
            id=quest.id,
            title=quest.title,
            status=QuestStatus(quest.status),
            review_status=ReviewStatus(quest.review_status),
            revision_count=quest.revision_count or 0,
            creator_id=quest.creator_id,
        )


@dataclass(frozen=True)
class LifecycleResult:
    """Outcome of a lifecycle operation. Operations never raise; they return this."""

    success: bool
    error: LifecycleErrorCode | None = None
    message: str | None = None
    new_status: QuestStatus | None = None

    @classmethod
    def ok(cls, new_status: QuestStatus | None = None) -> LifecycleResult:
        return cls(success=True, new_status=new_status)

    @classmethod
    def from_error(cls, exc: QuestLifecycleError) -> LifecycleResult:
        return cls(success=False, error=exc.error_type, message=exc.message)
