"""Admin quest endpoints — lifecycle transitions, review decisions, soft delete."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from openclique.auth import require_admin
from openclique.database import get_db
from openclique.exceptions import LifecycleErrorCode, QuestNotFoundError
from openclique.lifecycle import service
from openclique.lifecycle.state_machine import (
    DELETABLE_STATUSES,
    REVIEW_STATUS_DISPLAY,
    STATUS_DISPLAY,
    TERMINAL_STATUSES,
    get_allowed_transitions,
    requires_reason,
)
from openclique.lifecycle.types import LifecycleResult, ReviewOptions, TransitionOptions
from openclique.models import QuestStatus, ReviewStatus, User
from openclique.redis import get_redis
from openclique.schemas import (
    AllowedTransition,
    LifecycleResultResponse,
    PriorityFlagResponse,
    QuestTransitionsResponse,
    ReviewActionRequest,
    SoftDeleteRequest,
    StatusTransitionRequest,
)

router = APIRouter(prefix="/api/admin/quests", tags=["admin-quests"])

ERROR_STATUS_CODES: dict[LifecycleErrorCode, int] = {
    LifecycleErrorCode.not_found: 404,
    LifecycleErrorCode.invalid_transition: 422,
    LifecycleErrorCode.missing_reason: 422,
    LifecycleErrorCode.invalid_state: 422,
    LifecycleErrorCode.invalid_action: 422,
    LifecycleErrorCode.has_active_references: 409,
    LifecycleErrorCode.concurrent_modification: 409,
    LifecycleErrorCode.persistence_failure: 503,
}


def _to_response(result: LifecycleResult) -> JSONResponse | LifecycleResultResponse:
    body = LifecycleResultResponse(
        success=result.success,
        error=result.error,
        message=result.message,
        new_status=result.new_status,
    )
    if result.success:
        return body
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(result.error, 400),
        content=body.model_dump(mode="json"),
    )


@router.get("/{quest_id}/transitions", response_model=QuestTransitionsResponse)
async def get_quest_transitions(
    quest_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Current status plus the statuses an admin may move the quest to next."""
    try:
        quest = await service.load_quest(db, quest_id)
    except QuestNotFoundError:
        raise HTTPException(status_code=404, detail="Quest not found")

    current = QuestStatus(quest.status)
    review_status = ReviewStatus(quest.review_status)
    allowed = [
        AllowedTransition(
            status=target,
            label=STATUS_DISPLAY[target],
            requires_reason=requires_reason(target),
        )
        for target in sorted(get_allowed_transitions(current), key=lambda s: s.value)
    ]
    return QuestTransitionsResponse(
        quest_id=quest.id,
        status=current,
        status_label=STATUS_DISPLAY[current],
        review_status=review_status,
        review_status_label=REVIEW_STATUS_DISPLAY[review_status],
        terminal=current in TERMINAL_STATUSES,
        deletable=current in DELETABLE_STATUSES,
        allowed=allowed,
    )


@router.post("/{quest_id}/status", response_model=LifecycleResultResponse)
async def transition_status(
    quest_id: UUID,
    body: StatusTransitionRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Move a quest to a new operational status."""
    result = await service.transition_quest_status(
        db,
        quest_id,
        body.status,
        TransitionOptions(
            reason=body.reason,
            admin_notes=body.admin_notes,
            notify_creator=body.notify_creator,
            notify_users=body.notify_users,
        ),
        actor_id=admin.id,
        redis=get_redis(),
    )
    return _to_response(result)


@router.post("/{quest_id}/review", response_model=LifecycleResultResponse)
async def review_quest(
    quest_id: UUID,
    body: ReviewActionRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Approve, reject or request changes on a quest's content."""
    result = await service.perform_review_action(
        db,
        quest_id,
        body.action,
        ReviewOptions(admin_notes=body.admin_notes, should_publish=body.should_publish),
        actor_id=admin.id,
        redis=get_redis(),
    )
    return _to_response(result)


@router.post("/{quest_id}/delete", response_model=LifecycleResultResponse)
async def delete_quest(
    quest_id: UUID,
    body: SoftDeleteRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Soft-delete a cancelled or revoked quest with no active signups."""
    result = await service.soft_delete_quest(db, quest_id, body.reason, actor_id=admin.id)
    return _to_response(result)


@router.post("/{quest_id}/priority", response_model=PriorityFlagResponse)
async def toggle_priority(
    quest_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Flip the admin triage flag."""
    success = await service.toggle_priority_flag(db, quest_id)
    if not success:
        raise HTTPException(status_code=404, detail="Quest not found or update failed")
    return PriorityFlagResponse(quest_id=quest_id, success=True)
