"""Quest lifecycle engine: transition graph, review workflow, soft delete."""

from openclique.lifecycle.service import (
    cancel_quest,
    pause_quest,
    perform_review_action,
    resume_quest,
    soft_delete_quest,
    toggle_priority_flag,
    transition_quest_status,
)
from openclique.lifecycle.state_machine import (
    get_allowed_transitions,
    is_transition_allowed,
    requires_reason,
    validate_transition,
)
from openclique.lifecycle.types import (
    LifecycleResult,
    ReviewAction,
    ReviewOptions,
    TransitionOptions,
)

__all__ = [
    "LifecycleResult",
    "ReviewAction",
    "ReviewOptions",
    "TransitionOptions",
    "cancel_quest",
    "get_allowed_transitions",
    "is_transition_allowed",
    "pause_quest",
    "perform_review_action",
    "requires_reason",
    "resume_quest",
    "soft_delete_quest",
    "toggle_priority_flag",
    "transition_quest_status",
    "validate_transition",
]
