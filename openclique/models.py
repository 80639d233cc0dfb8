"""SQLAlchemy ORM models for quests, signups, notifications and the audit trail."""

import enum
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Text,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import Boolean, DateTime, Integer

# JSONB on Postgres, plain JSON elsewhere (the test suite runs on SQLite).
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class QuestStatus(str, enum.Enum):
    draft = "draft"
    open = "open"
    closed = "closed"
    completed = "completed"
    cancelled = "cancelled"
    paused = "paused"
    revoked = "revoked"


class ReviewStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    needs_changes = "needs_changes"


class SignupStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    standby = "standby"
    dropped = "dropped"
    no_show = "no_show"
    completed = "completed"


def _check_in(column: str, enum_cls: type[enum.Enum]) -> str:
    values = ",".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_email", "email"),
        CheckConstraint(
            "status IN ('active','suspended','banned')", name="ck_user_status"
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    username: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------


class Quest(Base):
    __tablename__ = "quests"
    __table_args__ = (
        Index("idx_quests_status", "status"),
        Index("idx_quests_review_status", "review_status"),
        Index("idx_quests_creator", "creator_id"),
        CheckConstraint(_check_in("status", QuestStatus), name="ck_quest_status"),
        CheckConstraint(
            "previous_status IS NULL OR " + _check_in("previous_status", QuestStatus),
            name="ck_quest_previous_status",
        ),
        CheckConstraint(
            _check_in("review_status", ReviewStatus), name="ck_quest_review_status"
        ),
        CheckConstraint("revision_count >= 0", name="ck_quest_revision_count"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    creator_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL")
    )

    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=QuestStatus.draft.value
    )
    previous_status: Mapped[str | None] = mapped_column(Text)
    review_status: Mapped[str] = mapped_column(
        Text, nullable=False, default=ReviewStatus.pending.value
    )
    revision_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    admin_notes: Mapped[str | None] = mapped_column(Text)
    priority_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    paused_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paused_reason: Mapped[str | None] = mapped_column(Text)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    revoked_reason: Mapped[str | None] = mapped_column(Text)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_reason: Mapped[str | None] = mapped_column(Text)

    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class QuestSignup(Base):
    __tablename__ = "quest_signups"
    __table_args__ = (
        Index("idx_signups_quest_status", "quest_id", "status"),
        CheckConstraint(_check_in("status", SignupStatus), name="ck_signup_status"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    quest_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("quests.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=SignupStatus.pending.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("idx_notifications_user_read", "user_id", "read_at"),
        Index("idx_notifications_user_created", "user_id", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    notification_type: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str | None] = mapped_column(Text)
    metadata_: Mapped[dict] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# ---------------------------------------------------------------------------
# Audit trail / ops events (append-only)
# ---------------------------------------------------------------------------


class AuditLog(Base):
    __tablename__ = "audit_log"
    __table_args__ = (
        Index("idx_audit_target", "target_table", "target_id", "created_at"),
        Index("idx_audit_actor", "actor_id"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    actor_id: Mapped[UUID | None] = mapped_column(Uuid)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    target_table: Mapped[str] = mapped_column(Text, nullable=False)
    target_id: Mapped[str] = mapped_column(Text, nullable=False)
    old_values: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    new_values: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class OpsEvent(Base):
    __tablename__ = "ops_events"
    __table_args__ = (
        Index("idx_ops_events_type", "event_type", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    event_type: Mapped[str] = mapped_column(Text, nullable=False)
    entity_refs: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    before_state: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    after_state: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    metadata_: Mapped[dict] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
