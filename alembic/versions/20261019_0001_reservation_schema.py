"""Reservation schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


role_enum = sa.Enum("customer", "admin", name="role_enum", native_enum=False)
reservation_status_enum = sa.Enum(
    "pending",
    "confirmed",
    "rejected",
    "cancelled",
    name="reservation_status_enum",
    native_enum=False,
)
change_request_status_enum = sa.Enum(
    "pending",
    "approved",
    "rejected",
    name="change_request_status_enum",
    native_enum=False,
)
notification_type_enum = sa.Enum(
    "approval",
    "confirmation",
    "rejection",
    "cancellation",
    "change_approved",
    "change_rejected",
    name="notification_type_enum",
    native_enum=False,
)
notification_channel_enum = sa.Enum("kakao", "sms", name="notification_channel_enum", native_enum=False)
notification_status_enum = sa.Enum("pending", "sent", "failed", name="notification_status_enum", native_enum=False)
outbox_status_enum = sa.Enum("pending", "processed", name="outbox_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.create_table(
        "roles",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", role_enum, nullable=False),
        sa.UniqueConstraint("name", name="uq_roles_name"),
    )

    op.create_table(
        "users",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("depositor_name", sa.String(length=100), nullable=True),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], name="fk_users_role_id_roles", ondelete="RESTRICT"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=False)

    op.create_table(
        "refresh_tokens",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("token_id", sa.String(length=64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_refresh_tokens_user_id_users", ondelete="CASCADE"),
        sa.UniqueConstraint("token_id", name="uq_refresh_tokens_token_id"),
    )
    op.create_index("ix_refresh_tokens_token_id", "refresh_tokens", ["token_id"], unique=False)

    op.create_table(
        "classes",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("max_participants", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.CheckConstraint("duration_minutes > 0", name="ck_classes_duration_positive"),
        sa.CheckConstraint("price >= 0", name="ck_classes_price_non_negative"),
        sa.CheckConstraint("max_participants >= 1", name="ck_classes_max_participants_positive"),
    )
    op.create_index("ix_classes_is_active", "classes", ["is_active"], unique=False)

    op.create_table(
        "class_schedules",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("class_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("schedule_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("max_participants", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(
            ["class_id"],
            ["classes.id"],
            name="fk_class_schedules_class_id_classes",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("class_id", "schedule_date", "start_time", name="uq_class_schedules_slot"),
        sa.CheckConstraint(
            "max_participants IS NULL OR max_participants >= 1",
            name="ck_class_schedules_max_participants_positive",
        ),
    )
    op.create_index("ix_class_schedules_class_id", "class_schedules", ["class_id"], unique=False)
    op.create_index("ix_class_schedules_schedule_date", "class_schedules", ["schedule_date"], unique=False)

    op.create_table(
        "reservations",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("class_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("schedule_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("customer_name", sa.String(length=100), nullable=False),
        sa.Column("customer_phone", sa.String(length=32), nullable=False),
        sa.Column("depositor_name", sa.String(length=100), nullable=True),
        sa.Column("desired_date", sa.Date(), nullable=False),
        sa.Column("desired_time", sa.Time(), nullable=False),
        sa.Column("num_people", sa.Integer(), nullable=False),
        sa.Column("customer_memo", sa.Text(), nullable=True),
        sa.Column("status", reservation_status_enum, nullable=False),
        sa.Column("admin_memo", sa.Text(), nullable=True),
        sa.Column("reject_reason", sa.Text(), nullable=True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("cancellation_requested", sa.Boolean(), nullable=False),
        sa.Column("change_token", sa.String(length=64), nullable=False),
        sa.Column("google_calendar_event_id", sa.String(length=255), nullable=True),
        sa.Column("google_sheets_row", sa.Integer(), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_reservations_user_id_users", ondelete="SET NULL"),
        sa.ForeignKeyConstraint(
            ["class_id"],
            ["classes.id"],
            name="fk_reservations_class_id_classes",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["schedule_id"],
            ["class_schedules.id"],
            name="fk_reservations_schedule_id_class_schedules",
            ondelete="SET NULL",
        ),
        sa.UniqueConstraint("change_token", name="uq_reservations_change_token"),
        sa.CheckConstraint("num_people >= 1", name="ck_reservations_num_people_positive"),
        sa.CheckConstraint(
            "cancellation_requested = false OR status = 'confirmed'",
            name="ck_reservations_cancellation_requested_only_when_confirmed",
        ),
    )
    op.create_index("ix_reservations_user_id", "reservations", ["user_id"], unique=False)
    op.create_index("ix_reservations_class_id", "reservations", ["class_id"], unique=False)
    op.create_index("ix_reservations_schedule_id", "reservations", ["schedule_id"], unique=False)
    op.create_index("ix_reservations_desired_date", "reservations", ["desired_date"], unique=False)
    op.create_index("ix_reservations_status", "reservations", ["status"], unique=False)
    op.create_index("ix_reservations_google_sheets_row", "reservations", ["google_sheets_row"], unique=False)

    op.create_table(
        "change_requests",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("reservation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("original_date", sa.Date(), nullable=False),
        sa.Column("original_time", sa.Time(), nullable=False),
        sa.Column("schedule_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("requested_date", sa.Date(), nullable=False),
        sa.Column("requested_time", sa.Time(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", change_request_status_enum, nullable=False),
        sa.Column("reject_reason", sa.Text(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["reservation_id"],
            ["reservations.id"],
            name="fk_change_requests_reservation_id_reservations",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["schedule_id"],
            ["class_schedules.id"],
            name="fk_change_requests_schedule_id_class_schedules",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_change_requests_reservation_id", "change_requests", ["reservation_id"], unique=False)
    op.create_index("ix_change_requests_status", "change_requests", ["status"], unique=False)
    op.create_index(
        "uq_change_requests_one_pending_per_reservation",
        "change_requests",
        ["reservation_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "notifications",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("reservation_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("type", notification_type_enum, nullable=False),
        sa.Column("channel", notification_channel_enum, nullable=False),
        sa.Column("recipient_phone", sa.String(length=32), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", notification_status_enum, nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["reservation_id"],
            ["reservations.id"],
            name="fk_notifications_reservation_id_reservations",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_notifications_reservation_id", "notifications", ["reservation_id"], unique=False)
    op.create_index("ix_notifications_type", "notifications", ["type"], unique=False)
    op.create_index("ix_notifications_status", "notifications", ["status"], unique=False)

    op.create_table(
        "audit_logs",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=128), nullable=False),
        sa.Column("entity_id", sa.String(length=128), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], name="fk_audit_logs_actor_id_users", ondelete="SET NULL"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)

    op.create_table(
        "outbox_events",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("aggregate_type", sa.String(length=64), nullable=False),
        sa.Column("aggregate_id", sa.String(length=64), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_outbox_events_aggregate_type", "outbox_events", ["aggregate_type"], unique=False)
    op.create_index("ix_outbox_events_aggregate_id", "outbox_events", ["aggregate_id"], unique=False)
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"], unique=False)
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"], unique=False)


def downgrade() -> None:
    op.drop_table("outbox_events")
    op.drop_table("audit_logs")
    op.drop_table("notifications")
    op.drop_index("uq_change_requests_one_pending_per_reservation", table_name="change_requests")
    op.drop_table("change_requests")
    op.drop_table("reservations")
    op.drop_table("class_schedules")
    op.drop_table("classes")
    op.drop_table("refresh_tokens")
    op.drop_table("users")
    op.drop_table("roles")
