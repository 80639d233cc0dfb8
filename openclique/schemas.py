"""Pydantic v2 request/response schemas for the admin quest endpoints."""

from uuid import UUID

from pydantic import BaseModel, Field

from openclique.exceptions import LifecycleErrorCode
from openclique.lifecycle.types import ReviewAction
from openclique.models import QuestStatus, ReviewStatus


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class StatusTransitionRequest(BaseModel):
    status: QuestStatus
    reason: str | None = Field(default=None, max_length=2000)
    admin_notes: str | None = Field(default=None, max_length=5000)
    notify_creator: bool = False
    notify_users: bool = False


class ReviewActionRequest(BaseModel):
    action: ReviewAction
    admin_notes: str | None = Field(default=None, max_length=5000)
    should_publish: bool = False


class SoftDeleteRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class LifecycleResultResponse(BaseModel):
    success: bool
    error: LifecycleErrorCode | None = None
    message: str | None = None
    new_status: QuestStatus | None = None


class AllowedTransition(BaseModel):
    status: QuestStatus
    label: str
    requires_reason: bool


class QuestTransitionsResponse(BaseModel):
    quest_id: UUID
    status: QuestStatus
    status_label: str
    review_status: ReviewStatus
    review_status_label: str
    terminal: bool
    deletable: bool
    allowed: list[AllowedTransition]


class PriorityFlagResponse(BaseModel):
    quest_id: UUID
    success: bool
