"""Appointment scheduling tables"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

revision: str = "20261019_01_appointments"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: Sequence[str] | None = None

ACTIVE_STATUS_CLAUSE = "status IN ('scheduled', 'confirmed', 'in-progress')"


def upgrade() -> None:
    op.create_table(
        "appointments",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("patient_ref", sa.String(length=64), nullable=False),
        sa.Column("provider_ref", sa.String(length=64), nullable=False),
        sa.Column("calendar_date", sa.Date(), nullable=False),
        sa.Column("time_of_day", sa.String(length=8), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="scheduled"),
        sa.Column("appointment_type", sa.String(length=32), nullable=False, server_default="consultation"),
        sa.Column("reason", sa.String(length=500), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("patient_notes", sa.String(length=1000), nullable=True),
        sa.Column("cancelled_by", sa.String(length=16), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=200), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_appointments_patient_ref", "appointments", ["patient_ref"])
    op.create_index("ix_appointments_provider_ref", "appointments", ["provider_ref"])
    op.create_index("ix_appointments_calendar_date", "appointments", ["calendar_date"])
    op.create_index("ix_appointments_start_at", "appointments", ["start_at"])
    op.create_index("ix_appointments_status", "appointments", ["status"])
    op.create_index(
        "uq_appointments_provider_active_slot",
        "appointments",
        ["provider_ref", "calendar_date", "time_of_day"],
        unique=True,
        sqlite_where=sa.text(ACTIVE_STATUS_CLAUSE),
        postgresql_where=sa.text(ACTIVE_STATUS_CLAUSE),
    )

    op.create_table(
        "appointment_reminders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("appointment_id", sa.String(length=32), sa.ForeignKey("appointments.id"), nullable=False),
        sa.Column("channel", sa.String(length=16), nullable=False),
        sa.Column("scheduled_for", sa.DateTime(), nullable=False),
        sa.Column("sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_appointment_reminders_appointment_id", "appointment_reminders", ["appointment_id"])
    op.create_index("ix_appointment_reminders_scheduled_for", "appointment_reminders", ["scheduled_for"])

    op.create_table(
        "appointment_status_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("appointment_id", sa.String(length=32), sa.ForeignKey("appointments.id"), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("changed_at", sa.DateTime(), nullable=False),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_appointment_status_history_appointment_id", "appointment_status_history", ["appointment_id"])


def downgrade() -> None:
    op.drop_table("appointment_status_history")
    op.drop_table("appointment_reminders")
    op.drop_index("uq_appointments_provider_active_slot", table_name="appointments")
    op.drop_table("appointments")
