# backend/alembic/versions/001_initial_schema.py
"""Initial schema - catalog snapshot, provider schedules, appointments

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates every table of the booking engine. On PostgreSQL the appointments
table also gets a generated ``appointment_span`` column and an exclusion
constraint so two non-terminal appointments of one provider can never
overlap, whatever the application layer does.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _create_extension_prefer_extensions_schema(extension_name: str) -> None:
    """Create extension using extensions schema when available."""

    bind = op.get_bind()
    if bind is None or bind.dialect.name != "postgresql":
        return

    op.execute(
        f"""
        DO $$
        BEGIN
            IF NOT EXISTS (SELECT 1 FROM pg_extension WHERE extname = '{extension_name}') THEN
                IF EXISTS (SELECT 1 FROM pg_namespace WHERE nspname = 'extensions') THEN
                    EXECUTE 'CREATE EXTENSION IF NOT EXISTS {extension_name} WITH SCHEMA extensions';
                ELSE
                    EXECUTE 'CREATE EXTENSION IF NOT EXISTS {extension_name}';
                END IF;
            END IF;
        END
        $$;
        """
    )


def upgrade() -> None:
    """Create booking engine schema."""
    print("Creating booking engine schema...")

    bind = op.get_bind()
    is_postgres = bind is not None and bind.dialect.name == "postgresql"

    op.create_table(
        "services",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("reference_duration_minutes", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "reference_duration_minutes > 0", name="ck_services_duration_positive"
        ),
    )

    op.create_table(
        "provider_day_schedules",
        sa.Column("provider_id", sa.String(64), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("is_working", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("work_blocks", sa.JSON(), nullable=False),
        sa.Column("break_blocks", sa.JSON(), nullable=False),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.PrimaryKeyConstraint("provider_id", "day_of_week"),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_day_schedules_weekday"),
    )

    op.create_table(
        "service_schedule_configs",
        sa.Column("provider_id", sa.String(64), nullable=False),
        sa.Column("service_id", sa.String(26), nullable=False),
        sa.Column(
            "restrict_to_time_ranges", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("time_ranges", sa.JSON(), nullable=False),
        sa.Column("days_of_week", sa.JSON(), nullable=False),
        sa.Column(
            "use_intelligent_scheduling", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column(
            "prioritize_even_spacing", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column(
            "prioritize_consecutive_slots", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("time_of_day_preference", sa.String(20), nullable=True),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.PrimaryKeyConstraint("provider_id", "service_id"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
        sa.CheckConstraint(
            "time_of_day_preference IS NULL OR "
            "time_of_day_preference IN ('morning', 'afternoon', 'evening')",
            name="ck_service_configs_time_of_day",
        ),
    )

    op.create_table(
        "execution_time_overrides",
        sa.Column("provider_id", sa.String(64), nullable=False),
        sa.Column("service_id", sa.String(26), nullable=False),
        sa.Column("execution_time_minutes", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.PrimaryKeyConstraint("provider_id", "service_id"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
        sa.CheckConstraint("execution_time_minutes > 0", name="ck_execution_time_positive"),
    )

    op.create_table(
        "blocked_time_slots",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("provider_id", sa.String(64), nullable=False),
        sa.Column("blocked_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("start_time < end_time", name="ck_blocked_time_order"),
    )
    op.create_index(
        "ix_blocked_time_provider_date", "blocked_time_slots", ["provider_id", "blocked_date"]
    )

    op.create_table(
        "appointments",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("provider_id", sa.String(64), nullable=False),
        sa.Column("service_id", sa.String(26), nullable=False),
        sa.Column("client_id", sa.String(64), nullable=False),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancellation_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_by", sa.String(64), nullable=True),
        sa.Column("completion_code_hash", sa.String(64), nullable=True),
        sa.Column("completion_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'canceled', 'no_show')",
            name="ck_appointments_status",
        ),
        sa.CheckConstraint("duration_minutes > 0", name="ck_appointments_duration_positive"),
        sa.CheckConstraint("start_time < end_time", name="ck_appointments_time_order"),
    )
    op.create_index("ix_appointments_id", "appointments", ["id"])
    op.create_index("ix_appointments_status", "appointments", ["status"])
    op.create_index(
        "ix_appointments_provider_date", "appointments", ["provider_id", "appointment_date"]
    )
    op.create_index("ix_appointments_client", "appointments", ["client_id"])

    if is_postgres:
        print("Adding appointment overlap exclusion constraint...")
        _create_extension_prefer_extensions_schema("btree_gist")
        op.execute(
            """
            ALTER TABLE appointments
              ADD COLUMN IF NOT EXISTS appointment_span tsrange
              GENERATED ALWAYS AS (
                tsrange(
                  (appointment_date::timestamp + start_time),
                  (appointment_date::timestamp + end_time),
                  '[)'
                )
              ) STORED
            """
        )
        op.execute(
            """
            ALTER TABLE appointments
              ADD CONSTRAINT appointments_no_overlap_per_provider
              EXCLUDE USING gist (
                provider_id WITH =,
                appointment_span WITH &&
              )
              WHERE (status IN ('pending', 'confirmed'))
            """
        )

    print("Booking engine schema created")


def downgrade() -> None:
    """Drop booking engine schema."""
    bind = op.get_bind()
    if bind is not None and bind.dialect.name == "postgresql":
        op.execute(
            "ALTER TABLE appointments DROP CONSTRAINT IF EXISTS appointments_no_overlap_per_provider"
        )
        op.execute("ALTER TABLE appointments DROP COLUMN IF EXISTS appointment_span")

    op.drop_index("ix_appointments_client", table_name="appointments")
    op.drop_index("ix_appointments_provider_date", table_name="appointments")
    op.drop_index("ix_appointments_status", table_name="appointments")
    op.drop_index("ix_appointments_id", table_name="appointments")
    op.drop_table("appointments")
    op.drop_index("ix_blocked_time_provider_date", table_name="blocked_time_slots")
    op.drop_table("blocked_time_slots")
    op.drop_table("execution_time_overrides")
    op.drop_table("service_schedule_configs")
    op.drop_table("provider_day_schedules")
    op.drop_table("services")
