"""Test data factories for the quest lifecycle service."""

from tests.factories.quest_factory import create_quest, create_signup, create_user

__all__ = ["create_quest", "create_signup", "create_user"]
