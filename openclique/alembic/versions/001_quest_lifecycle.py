"""Create users, quests, quest_signups, notifications, audit_log and ops_events.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

QUEST_STATUSES = "'draft','open','closed','completed','cancelled','paused','revoked'"
REVIEW_STATUSES = "'pending','approved','rejected','needs_changes'"
SIGNUP_STATUSES = "'pending','confirmed','standby','dropped','no_show','completed'"


def _id_column() -> sa.Column:
    return sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()"))


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def upgrade() -> None:
    op.create_table(
        "users",
        _id_column(),
        sa.Column("username", sa.Text(), nullable=False, unique=True),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'active'")),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at(),
        sa.CheckConstraint("status IN ('active','suspended','banned')", name="ck_user_status"),
    )
    op.create_index("idx_users_email", "users", ["email"])

    op.create_table(
        "quests",
        _id_column(),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("creator_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("previous_status", sa.Text(), nullable=True),
        sa.Column("review_status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("revision_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("priority_flag", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("paused_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paused_reason", sa.Text(), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_reason", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(f"status IN ({QUEST_STATUSES})", name="ck_quest_status"),
        sa.CheckConstraint(
            f"previous_status IS NULL OR previous_status IN ({QUEST_STATUSES})",
            name="ck_quest_previous_status",
        ),
        sa.CheckConstraint(f"review_status IN ({REVIEW_STATUSES})", name="ck_quest_review_status"),
        sa.CheckConstraint("revision_count >= 0", name="ck_quest_revision_count"),
    )
    op.create_index("idx_quests_status", "quests", ["status"])
    op.create_index("idx_quests_review_status", "quests", ["review_status"])
    op.create_index("idx_quests_creator", "quests", ["creator_id"])

    op.create_table(
        "quest_signups",
        _id_column(),
        sa.Column("quest_id", UUID(as_uuid=True), sa.ForeignKey("quests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        _created_at(),
        sa.CheckConstraint(f"status IN ({SIGNUP_STATUSES})", name="ck_signup_status"),
    )
    op.create_index("idx_signups_quest_status", "quest_signups", ["quest_id", "status"])

    op.create_table(
        "notifications",
        _id_column(),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("notification_type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("link", sa.Text(), nullable=True),
        sa.Column("metadata", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("idx_notifications_user_read", "notifications", ["user_id", "read_at"])
    op.create_index("idx_notifications_user_created", "notifications", ["user_id", "created_at"])

    op.create_table(
        "audit_log",
        _id_column(),
        sa.Column("actor_id", UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("target_table", sa.Text(), nullable=False),
        sa.Column("target_id", sa.Text(), nullable=False),
        sa.Column("old_values", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("new_values", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        _created_at(),
    )
    op.create_index("idx_audit_target", "audit_log", ["target_table", "target_id", "created_at"])
    op.create_index("idx_audit_actor", "audit_log", ["actor_id"])

    op.create_table(
        "ops_events",
        _id_column(),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("entity_refs", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("before_state", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("after_state", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("metadata", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        _created_at(),
    )
    op.create_index("idx_ops_events_type", "ops_events", ["event_type", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_ops_events_type", table_name="ops_events")
    op.drop_table("ops_events")
    op.drop_index("idx_audit_actor", table_name="audit_log")
    op.drop_index("idx_audit_target", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("idx_notifications_user_created", table_name="notifications")
    op.drop_index("idx_notifications_user_read", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("idx_signups_quest_status", table_name="quest_signups")
    op.drop_table("quest_signups")
    op.drop_index("idx_quests_creator", table_name="quests")
    op.drop_index("idx_quests_review_status", table_name="quests")
    op.drop_index("idx_quests_status", table_name="quests")
    op.drop_table("quests")
    op.drop_index("idx_users_email", table_name="users")
    op.drop_table("users")
