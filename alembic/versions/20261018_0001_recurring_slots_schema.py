"""Recurring slots and bookings schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


day_of_week_enum = sa.Enum(
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
    name="day_of_week_enum",
    native_enum=False,
)
enrollment_status_enum = sa.Enum(
    "active", "expired", "suspended", "cancelled", name="enrollment_status_enum", native_enum=False
)
booking_status_enum = sa.Enum(
    "booked", "completed", "cancelled", "no-show", name="booking_status_enum", native_enum=False
)
booking_type_enum = sa.Enum("single", "weekly", name="booking_type_enum", native_enum=False)
outbox_status_enum = sa.Enum("pending", "processed", "failed", name="outbox_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.create_table(
        "tutor_profiles",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("user_id", name="uq_tutor_profiles_user_id"),
    )

    op.create_table(
        "enrollments",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("batch_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("student_name", sa.String(length=128), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=False),
        sa.Column("status", enrollment_status_enum, nullable=False),
        sa.Column("sessions_allowed", sa.Integer(), nullable=True),
        sa.Column("sessions_used", sa.Integer(), nullable=False),
        sa.CheckConstraint("sessions_used >= 0", name="ck_enrollments_sessions_used_non_negative"),
    )
    op.create_index("ix_enrollments_batch_id", "enrollments", ["batch_id"], unique=False)
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"], unique=False)
    op.create_index(
        "ix_enrollments_batch_id_student_id",
        "enrollments",
        ["batch_id", "student_id"],
        unique=True,
    )

    op.create_table(
        "recurring_slots",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("batch_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tutor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tutor_name", sa.String(length=128), nullable=False),
        sa.Column("day_of_week", day_of_week_enum, nullable=False),
        sa.Column("time_of_day", sa.String(length=5), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("max_occupants", sa.Integer(), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("effective_start_date", sa.Date(), nullable=False),
        sa.Column("effective_end_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.CheckConstraint(
            "duration_minutes BETWEEN 15 AND 180",
            name="ck_recurring_slots_duration_minutes_range",
        ),
        sa.CheckConstraint("max_occupants BETWEEN 1 AND 10", name="ck_recurring_slots_max_occupants_range"),
        sa.CheckConstraint(
            "effective_end_date IS NULL OR effective_end_date > effective_start_date",
            name="ck_recurring_slots_effective_range",
        ),
    )
    op.create_index("ix_recurring_slots_batch_id", "recurring_slots", ["batch_id"], unique=False)
    op.create_index("ix_recurring_slots_tutor_id", "recurring_slots", ["tutor_id"], unique=False)
    op.create_index(
        "ix_recurring_slots_batch_id_is_active",
        "recurring_slots",
        ["batch_id", "is_active"],
        unique=False,
    )
    op.create_index(
        "uq_recurring_slots_tutor_day_time_active",
        "recurring_slots",
        ["tutor_id", "day_of_week", "time_of_day"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "slot_bookings",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("slot_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("enrollment_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", booking_status_enum, nullable=False),
        sa.Column("booking_type", booking_type_enum, nullable=False),
        sa.Column("weekly_end_date", sa.Date(), nullable=True),
        sa.Column("attendance_marked", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("cancelled_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=200), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["slot_id"],
            ["recurring_slots.id"],
            name="fk_slot_bookings_slot_id_recurring_slots",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["enrollment_id"],
            ["enrollments.id"],
            name="fk_slot_bookings_enrollment_id_enrollments",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_slot_bookings_starts_at", "slot_bookings", ["starts_at"], unique=False)
    op.create_index(
        "ix_slot_bookings_slot_id_session_date_status",
        "slot_bookings",
        ["slot_id", "session_date", "status"],
        unique=False,
    )
    op.create_index(
        "ix_slot_bookings_enrollment_id_status",
        "slot_bookings",
        ["enrollment_id", "status"],
        unique=False,
    )
    op.create_index(
        "uq_slot_bookings_slot_date_enrollment_active",
        "slot_bookings",
        ["slot_id", "session_date", "enrollment_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )

    op.create_table(
        "outbox_events",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("aggregate_type", sa.String(length=128), nullable=False),
        sa.Column("aggregate_id", sa.String(length=128), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retries", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_outbox_events_aggregate_type", "outbox_events", ["aggregate_type"], unique=False)
    op.create_index("ix_outbox_events_aggregate_id", "outbox_events", ["aggregate_id"], unique=False)
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"], unique=False)
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_outbox_events_status", table_name="outbox_events")
    op.drop_index("ix_outbox_events_event_type", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_id", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_type", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("uq_slot_bookings_slot_date_enrollment_active", table_name="slot_bookings")
    op.drop_index("ix_slot_bookings_enrollment_id_status", table_name="slot_bookings")
    op.drop_index("ix_slot_bookings_slot_id_session_date_status", table_name="slot_bookings")
    op.drop_index("ix_slot_bookings_starts_at", table_name="slot_bookings")
    op.drop_table("slot_bookings")

    op.drop_index("uq_recurring_slots_tutor_day_time_active", table_name="recurring_slots")
    op.drop_index("ix_recurring_slots_batch_id_is_active", table_name="recurring_slots")
    op.drop_index("ix_recurring_slots_tutor_id", table_name="recurring_slots")
    op.drop_index("ix_recurring_slots_batch_id", table_name="recurring_slots")
    op.drop_table("recurring_slots")

    op.drop_index("ix_enrollments_batch_id_student_id", table_name="enrollments")
    op.drop_index("ix_enrollments_student_id", table_name="enrollments")
    op.drop_index("ix_enrollments_batch_id", table_name="enrollments")
    op.drop_table("enrollments")

    op.drop_table("tutor_profiles")
