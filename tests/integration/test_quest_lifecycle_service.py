"""Integration tests for the quest lifecycle service against a real (SQLite) database."""

from __future__ import annotations

import itertools
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from openclique.config import get_settings
from openclique.exceptions import LifecycleErrorCode
from openclique.lifecycle import service
from openclique.lifecycle.service import (
    cancel_quest,
    pause_quest,
    perform_review_action,
    resume_quest,
    soft_delete_quest,
    toggle_priority_flag,
    transition_quest_status,
)
from openclique.lifecycle.state_machine import is_transition_allowed
from openclique.lifecycle.types import ReviewOptions, TransitionOptions
from openclique.models import AuditLog, Notification, OpsEvent, Quest, QuestStatus
from tests.factories import create_quest, create_signup, create_user


async def _audit_rows(db, quest_id) -> list[AuditLog]:
    result = await db.execute(
        select(AuditLog).where(AuditLog.target_id == str(quest_id)).order_by(AuditLog.created_at)
    )
    return list(result.scalars().all())


async def _notifications(db, user_id) -> list[Notification]:
    result = await db.execute(select(Notification).where(Notification.user_id == user_id))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------


class TestTransitionQuestStatus:
    @pytest.mark.asyncio
    async def test_not_found(self, db):
        result = await transition_quest_status(db, uuid4(), QuestStatus.open)

        assert result.success is False
        assert result.error is LifecycleErrorCode.not_found

    @pytest.mark.asyncio
    async def test_soft_deleted_quest_is_not_found(self, db):
        quest = await create_quest(db, status="cancelled")
        assert (await soft_delete_quest(db, quest.id, "cleanup")).success

        result = await transition_quest_status(db, quest.id, QuestStatus.open)
        assert result.error is LifecycleErrorCode.not_found

    @pytest.mark.asyncio
    async def test_every_invalid_edge_is_rejected_without_writes(self, db):
        invalid = [
            (source, target)
            for source, target in itertools.product(QuestStatus, repeat=2)
            if not is_transition_allowed(source, target)
        ]
        for source, target in invalid:
            quest = await create_quest(db, status=source.value)

            result = await transition_quest_status(
                db, quest.id, target, TransitionOptions(reason="because")
            )

            assert result.success is False, (source, target)
            assert result.error is LifecycleErrorCode.invalid_transition
            assert source.value in result.message and target.value in result.message
            await db.refresh(quest)
            assert quest.status == source.value
            assert quest.previous_status is None
            assert await _audit_rows(db, quest.id) == []

    @pytest.mark.asyncio
    async def test_unknown_target_status(self, db):
        quest = await create_quest(db, status="open")
        result = await transition_quest_status(db, quest.id, "archived")
        assert result.error is LifecycleErrorCode.invalid_transition

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", ["cancelled", "revoked"])
    async def test_missing_reason(self, db, target):
        quest = await create_quest(db, status="open")

        result = await transition_quest_status(db, quest.id, target)

        assert result.error is LifecycleErrorCode.missing_reason
        await db.refresh(quest)
        assert quest.status == "open"

    @pytest.mark.asyncio
    async def test_cancel_reason_round_trips(self, db):
        quest = await create_quest(db, status="closed")
        reason = "Organizer is ill; refunds issued"

        result = await transition_quest_status(
            db, quest.id, QuestStatus.cancelled, TransitionOptions(reason=reason)
        )

        assert result.success is True
        assert result.new_status is QuestStatus.cancelled
        await db.refresh(quest)
        assert quest.status == "cancelled"
        assert quest.previous_status == "closed"
        assert quest.cancelled_reason == reason
        assert quest.cancelled_at is not None

    @pytest.mark.asyncio
    async def test_revoke_reason_round_trips(self, db):
        quest = await create_quest(db, status="paused", paused_reason="weather")

        result = await transition_quest_status(
            db, quest.id, QuestStatus.revoked, TransitionOptions(reason="Unsafe venue")
        )

        assert result.success is True
        await db.refresh(quest)
        assert quest.revoked_reason == "Unsafe venue"
        assert quest.revoked_at is not None

    @pytest.mark.asyncio
    async def test_pause_then_resume_scenario(self, db):
        quest = await create_quest(db, status="open")

        paused = await transition_quest_status(
            db, quest.id, QuestStatus.paused, TransitionOptions(reason="venue unavailable")
        )
        assert paused.success is True
        await db.refresh(quest)
        assert quest.status == "paused"
        assert quest.previous_status == "open"
        assert quest.paused_reason == "venue unavailable"
        assert quest.paused_at is not None

        resumed = await transition_quest_status(db, quest.id, QuestStatus.open)
        assert resumed.success is True
        await db.refresh(quest)
        assert quest.status == "open"
        assert quest.previous_status == "paused"
        assert quest.paused_at is None
        assert quest.paused_reason is None

    @pytest.mark.asyncio
    async def test_completed_to_cancelled_scenario(self, db):
        quest = await create_quest(db, status="completed")

        result = await transition_quest_status(
            db, quest.id, QuestStatus.cancelled, TransitionOptions(reason="x")
        )

        assert result.success is False
        assert result.error is LifecycleErrorCode.invalid_transition
        await db.refresh(quest)
        assert quest.status == "completed"
        assert quest.cancelled_reason is None
        assert quest.previous_status is None

    @pytest.mark.asyncio
    async def test_one_audit_and_one_ops_event(self, db):
        admin = await create_user(db, is_admin=True)
        quest = await create_quest(db, status="draft")

        result = await transition_quest_status(
            db,
            quest.id,
            QuestStatus.open,
            TransitionOptions(admin_notes="looks good"),
            actor_id=admin.id,
        )

        assert result.success is True
        (audit,) = await _audit_rows(db, quest.id)
        assert audit.action == "quest_status_open"
        assert audit.actor_id == admin.id
        assert audit.old_values == {"status": "draft"}
        assert audit.new_values["status"] == "open"
        assert audit.new_values["admin_notes"] == "looks good"

        events = (await db.execute(select(OpsEvent))).scalars().all()
        assert len(events) == 1
        assert events[0].event_type == "quest_status_changed"
        assert events[0].entity_refs == {"quest_id": str(quest.id)}
        assert events[0].before_state == {"status": "draft"}

    @pytest.mark.asyncio
    async def test_creator_notified_when_requested(self, db):
        creator = await create_user(db)
        quest = await create_quest(db, status="open", creator_id=creator.id, title="Trivia Night")

        await transition_quest_status(
            db, quest.id, QuestStatus.closed, TransitionOptions(notify_creator=True)
        )

        (notice,) = await _notifications(db, creator.id)
        assert notice.title == "Quest Update: Trivia Night"
        assert notice.body == 'Your quest "Trivia Night" is now closed for signups'

    @pytest.mark.asyncio
    async def test_creator_not_notified_by_default(self, db):
        creator = await create_user(db)
        quest = await create_quest(db, status="open", creator_id=creator.id)

        await transition_quest_status(db, quest.id, QuestStatus.closed)

        assert await _notifications(db, creator.id) == []

    @pytest.mark.asyncio
    async def test_notify_users_reaches_pending_and_confirmed_signups(self, db):
        quest = await create_quest(db, status="open", title="Pottery Class")
        confirmed = await create_user(db)
        pending = await create_user(db)
        dropped = await create_user(db)
        await create_signup(db, quest.id, confirmed.id, status="confirmed")
        await create_signup(db, quest.id, pending.id, status="pending")
        await create_signup(db, quest.id, dropped.id, status="dropped")

        result = await transition_quest_status(
            db,
            quest.id,
            QuestStatus.cancelled,
            TransitionOptions(reason="Studio flooded", notify_users=True),
        )

        assert result.success is True
        for user in (confirmed, pending):
            (notice,) = await _notifications(db, user.id)
            assert notice.title == "Quest Cancelled: Pottery Class"
            assert "Studio flooded" in notice.body
        assert await _notifications(db, dropped.id) == []

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_fail_transition(self, db, monkeypatch):
        from openclique.lifecycle import dispatcher

        async def broken_audit(*args, **kwargs):
            raise SQLAlchemyError("audit_log unavailable")

        monkeypatch.setattr(dispatcher, "append_audit_log", broken_audit)
        quest = await create_quest(db, status="open")

        result = await transition_quest_status(db, quest.id, QuestStatus.closed)

        assert result.success is True
        await db.refresh(quest)
        assert quest.status == "closed"
        assert await _audit_rows(db, quest.id) == []

    @pytest.mark.asyncio
    async def test_persistence_failure(self, db, monkeypatch):
        quest = await create_quest(db, status="open")

        async def failing_commit():
            raise SQLAlchemyError("connection reset by peer")

        with monkeypatch.context() as m:
            m.setattr(db, "commit", failing_commit)
            result = await transition_quest_status(db, quest.id, QuestStatus.closed)

        assert result.success is False
        assert result.error is LifecycleErrorCode.persistence_failure
        assert "connection reset by peer" in result.message
        await db.refresh(quest)
        assert quest.status == "open"
        assert quest.previous_status is None

    @pytest.mark.asyncio
    async def test_ops_event_failure_does_not_fail_transition(self, db, monkeypatch):
        from openclique.lifecycle import dispatcher

        monkeypatch.setattr(
            dispatcher, "log_ops_event", AsyncMock(side_effect=SQLAlchemyError("ops_events locked"))
        )
        quest = await create_quest(db, status="open")

        result = await transition_quest_status(db, quest.id, QuestStatus.closed)

        assert result.success is True
        assert (await db.execute(select(OpsEvent))).scalars().all() == []
        assert len(await _audit_rows(db, quest.id)) == 1

    @pytest.mark.asyncio
    async def test_notification_driver_error_does_not_fail_transition(self, db, monkeypatch):
        from openclique.lifecycle import dispatcher

        monkeypatch.setattr(
            dispatcher,
            "create_notification",
            AsyncMock(side_effect=ConnectionResetError("connection reset by peer")),
        )
        creator = await create_user(db)
        quest = await create_quest(db, status="open", creator_id=creator.id)

        result = await transition_quest_status(
            db, quest.id, QuestStatus.closed, TransitionOptions(notify_creator=True)
        )

        assert result.success is True
        assert result.new_status is QuestStatus.closed
        await db.refresh(quest)
        assert quest.status == "closed"
        assert len(await _audit_rows(db, quest.id)) == 1
        assert await _notifications(db, creator.id) == []

    @pytest.mark.asyncio
    async def test_participant_lookup_error_still_succeeds(self, db, monkeypatch):
        monkeypatch.setattr(
            service, "resolve_participant_ids", AsyncMock(side_effect=OSError("socket closed"))
        )
        quest = await create_quest(db, status="open")

        result = await transition_quest_status(
            db, quest.id, QuestStatus.paused, TransitionOptions(notify_users=True)
        )

        assert result.success is True
        await db.refresh(quest)
        assert quest.status == "paused"

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_persistence_failure(self, db, monkeypatch):
        quest = await create_quest(db, status="open")
        monkeypatch.setattr(
            service, "load_quest", AsyncMock(side_effect=ConnectionResetError("connection reset"))
        )

        transition = await transition_quest_status(db, quest.id, QuestStatus.closed)
        review = await perform_review_action(db, quest.id, "approve")
        delete = await soft_delete_quest(db, quest.id, "cleanup")

        for result in (transition, review, delete):
            assert result.success is False
            assert result.error is LifecycleErrorCode.persistence_failure
            assert "connection reset" in result.message


class TestVersionCheckedUpdates:
    @pytest.fixture(autouse=True)
    def racing_loader(self, monkeypatch):
        """Another writer closes the quest between our read and our write."""
        real_load = service.load_quest

        async def load_then_close(db, quest_id):
            quest = await real_load(db, quest_id)
            await db.execute(
                update(Quest)
                .where(Quest.id == quest_id)
                .values(status="closed")
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            return quest

        monkeypatch.setattr(service, "load_quest", load_then_close)

    @pytest.mark.asyncio
    async def test_stale_read_reports_concurrent_modification(self, db):
        quest = await create_quest(db, status="open")

        result = await transition_quest_status(
            db, quest.id, QuestStatus.paused, version_checked=True
        )

        assert result.error is LifecycleErrorCode.concurrent_modification
        await db.refresh(quest)
        assert quest.status == "closed"

    @pytest.mark.asyncio
    async def test_enabled_from_settings(self, db, monkeypatch):
        monkeypatch.setenv("OPENCLIQUE_VERSION_CHECKED_UPDATES", "true")
        get_settings.cache_clear()
        quest = await create_quest(db, status="open")

        result = await transition_quest_status(db, quest.id, QuestStatus.paused)

        assert result.error is LifecycleErrorCode.concurrent_modification

    @pytest.mark.asyncio
    async def test_last_write_wins_by_default(self, db):
        quest = await create_quest(db, status="open")

        result = await transition_quest_status(db, quest.id, QuestStatus.paused)

        assert result.success is True
        await db.refresh(quest)
        assert quest.status == "paused"
        assert quest.previous_status == "open"


class TestConvenienceOperations:
    @pytest.mark.asyncio
    async def test_pause_and_resume(self, db):
        creator = await create_user(db)
        participant = await create_user(db)
        quest = await create_quest(db, status="open", creator_id=creator.id, title="Book Club")
        await create_signup(db, quest.id, participant.id)

        assert (await pause_quest(db, quest.id, "host travelling")).success
        assert len(await _notifications(db, creator.id)) == 1
        (notice,) = await _notifications(db, participant.id)
        assert notice.title == "Quest Paused: Book Club"

        result = await resume_quest(db, quest.id)
        assert result.new_status is QuestStatus.open
        await db.refresh(quest)
        assert quest.paused_at is None

    @pytest.mark.asyncio
    async def test_resume_requires_paused(self, db):
        quest = await create_quest(db, status="open")
        result = await resume_quest(db, quest.id)
        assert result.error is LifecycleErrorCode.invalid_transition

    @pytest.mark.asyncio
    async def test_cancel(self, db):
        quest = await create_quest(db, status="paused")
        result = await cancel_quest(db, quest.id, "Venue closed permanently")
        assert result.new_status is QuestStatus.cancelled
        await db.refresh(quest)
        assert quest.cancelled_reason == "Venue closed permanently"


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


class TestPerformReviewAction:
    @pytest.mark.asyncio
    async def test_approve_and_publish_scenario(self, db):
        creator = await create_user(db)
        quest = await create_quest(
            db, status="draft", review_status="pending", creator_id=creator.id, title="City Walk"
        )

        result = await perform_review_action(
            db, quest.id, "approve", ReviewOptions(should_publish=True)
        )

        assert result.success is True
        assert result.new_status is QuestStatus.open
        await db.refresh(quest)
        assert quest.status == "open"
        assert quest.review_status == "approved"
        assert quest.revision_count == 1
        assert quest.published_at is not None

        (notice,) = await _notifications(db, creator.id)
        assert notice.notification_type == "quest_approved"
        assert "has been approved" in notice.body

    @pytest.mark.asyncio
    async def test_publish_bypasses_transition_table(self, db):
        quest = await create_quest(db, status="revoked", revoked_reason="spam")

        result = await perform_review_action(
            db, quest.id, "approve", ReviewOptions(should_publish=True)
        )

        assert result.success is True
        await db.refresh(quest)
        assert quest.status == "open"
        assert quest.published_at is not None

    @pytest.mark.asyncio
    async def test_revision_count_bumped_once_per_action(self, db):
        quest = await create_quest(db, status="draft")

        for action, publish in [
            ("request_changes", False),
            ("reject", True),
            ("approve", False),
            ("approve", True),
        ]:
            result = await perform_review_action(
                db, quest.id, action, ReviewOptions(should_publish=publish)
            )
            assert result.success is True

        await db.refresh(quest)
        assert quest.revision_count == 4

    @pytest.mark.asyncio
    async def test_concurrent_review_is_not_lost(self, db, monkeypatch):
        real_load = service.load_quest

        async def load_then_review_elsewhere(db, quest_id):
            quest = await real_load(db, quest_id)
            await db.execute(
                update(Quest)
                .where(Quest.id == quest_id)
                .values(revision_count=Quest.revision_count + 1)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            return quest

        monkeypatch.setattr(service, "load_quest", load_then_review_elsewhere)
        quest = await create_quest(db, status="draft")

        assert (await perform_review_action(db, quest.id, "request_changes")).success

        await db.refresh(quest)
        assert quest.revision_count == 2

    @pytest.mark.asyncio
    async def test_reject_keeps_status_and_sets_notes(self, db):
        quest = await create_quest(db, status="draft", admin_notes="old notes")

        result = await perform_review_action(
            db, quest.id, "reject", ReviewOptions(admin_notes="Off-platform payment link")
        )

        assert result.new_status is QuestStatus.draft
        await db.refresh(quest)
        assert quest.status == "draft"
        assert quest.review_status == "rejected"
        assert quest.admin_notes == "Off-platform payment link"

    @pytest.mark.asyncio
    async def test_admin_notes_cleared_when_absent(self, db):
        quest = await create_quest(db, status="draft", admin_notes="old notes")
        await perform_review_action(db, quest.id, "request_changes")
        await db.refresh(quest)
        assert quest.admin_notes is None
        assert quest.review_status == "needs_changes"

    @pytest.mark.asyncio
    async def test_one_audit_record_with_prior_review_status(self, db):
        quest = await create_quest(db, status="draft", review_status="needs_changes")

        await perform_review_action(db, quest.id, "approve")

        (audit,) = await _audit_rows(db, quest.id)
        assert audit.action == "quest_review_approve"
        assert audit.old_values == {"review_status": "needs_changes"}

    @pytest.mark.asyncio
    async def test_not_found(self, db):
        result = await perform_review_action(db, uuid4(), "approve")
        assert result.error is LifecycleErrorCode.not_found

    @pytest.mark.asyncio
    async def test_invalid_action(self, db):
        quest = await create_quest(db)
        result = await perform_review_action(db, quest.id, "escalate")
        assert result.error is LifecycleErrorCode.invalid_action
        await db.refresh(quest)
        assert quest.revision_count == 0


# ---------------------------------------------------------------------------
# Soft delete / priority
# ---------------------------------------------------------------------------


class TestSoftDeleteQuest:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["open", "draft", "closed", "completed"])
    async def test_invalid_state(self, db, status):
        quest = await create_quest(db, status=status)

        result = await soft_delete_quest(db, quest.id, "cleanup")

        assert result.error is LifecycleErrorCode.invalid_state
        await db.refresh(quest)
        assert quest.deleted_at is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["cancelled", "revoked"])
    async def test_deletes_terminal_quest_without_signups(self, db, status):
        quest = await create_quest(db, status=status)
        dropped_user = await create_user(db)
        await create_signup(db, quest.id, dropped_user.id, status="dropped")

        result = await soft_delete_quest(db, quest.id, "duplicate listing")

        assert result.success is True
        await db.refresh(quest)
        assert quest.deleted_at is not None
        (audit,) = await _audit_rows(db, quest.id)
        assert audit.action == "quest_deleted"
        assert audit.new_values["reason"] == "duplicate listing"

    @pytest.mark.asyncio
    async def test_active_signups_block_deletion(self, db):
        quest = await create_quest(db, status="cancelled")
        user = await create_user(db)
        await create_signup(db, quest.id, user.id, status="standby")

        result = await soft_delete_quest(db, quest.id, "cleanup")

        assert result.error is LifecycleErrorCode.has_active_references
        await db.refresh(quest)
        assert quest.deleted_at is None

    @pytest.mark.asyncio
    async def test_not_found(self, db):
        result = await soft_delete_quest(db, uuid4(), "cleanup")
        assert result.error is LifecycleErrorCode.not_found


class TestTogglePriorityFlag:
    @pytest.mark.asyncio
    async def test_toggles_back_and_forth(self, db):
        quest = await create_quest(db)

        assert await toggle_priority_flag(db, quest.id) is True
        await db.refresh(quest)
        assert quest.priority_flag is True

        assert await toggle_priority_flag(db, quest.id) is True
        await db.refresh(quest)
        assert quest.priority_flag is False

    @pytest.mark.asyncio
    async def test_missing_quest(self, db):
        assert await toggle_priority_flag(db, uuid4()) is False

    @pytest.mark.asyncio
    async def test_soft_deleted_quest_is_not_toggled(self, db):
        quest = await create_quest(db, status="cancelled")
        assert (await soft_delete_quest(db, quest.id, "duplicate listing")).success

        assert await toggle_priority_flag(db, quest.id) is False
        await db.refresh(quest)
        assert quest.priority_flag is False
