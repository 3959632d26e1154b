from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import JSON, Column, DateTime, Index, text
from sqlmodel import Field, SQLModel

from docsona.models.base import TimestampMixin

ACTIVE_STATUS_CLAUSE = "status IN ('scheduled', 'confirmed', 'in-progress')"


class AppointmentRecord(TimestampMixin, SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            "uq_appointments_provider_active_slot",
            "provider_ref",
            "calendar_date",
            "time_of_day",
            unique=True,
            sqlite_where=text(ACTIVE_STATUS_CLAUSE),
            postgresql_where=text(ACTIVE_STATUS_CLAUSE),
        ),
    )

    id: str = Field(primary_key=True, max_length=32)
    patient_ref: str = Field(index=True, max_length=64)
    provider_ref: str = Field(index=True, max_length=64)
    calendar_date: date = Field(index=True)
    time_of_day: str = Field(max_length=8)
    start_at: datetime = Field(sa_type=DateTime(), index=True)
    duration_minutes: int = Field(default=30)
    status: str = Field(default="scheduled", max_length=32, index=True)
    appointment_type: str = Field(default="consultation", max_length=32)
    reason: str = Field(max_length=500)
    location: str = Field(max_length=255)
    room: Optional[str] = Field(default=None, max_length=50)
    symptoms: List[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False, default=list),
    )
    patient_notes: Optional[str] = Field(default=None, max_length=1000)
    doctor_notes: Optional[str] = Field(default=None, max_length=1000)
    follow_up_required: bool = Field(default=False)
    follow_up_date: Optional[date] = Field(default=None)
    cancelled_by: Optional[str] = Field(default=None, max_length=16)
    cancellation_reason: Optional[str] = Field(default=None, max_length=200)
    cancelled_at: Optional[datetime] = Field(default=None, sa_type=DateTime())


class AppointmentReminderRecord(TimestampMixin, SQLModel, table=True):
    __tablename__ = "appointment_reminders"

    id: Optional[int] = Field(default=None, primary_key=True)
    appointment_id: str = Field(foreign_key="appointments.id", index=True, max_length=32)
    channel: str = Field(max_length=16)
    scheduled_for: datetime = Field(sa_type=DateTime(), index=True)
    sent: bool = Field(default=False)
    sent_at: Optional[datetime] = Field(default=None, sa_type=DateTime())


class AppointmentStatusHistory(TimestampMixin, SQLModel, table=True):
    __tablename__ = "appointment_status_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    appointment_id: str = Field(foreign_key="appointments.id", index=True, max_length=32)
    status: str = Field(max_length=32)
    changed_at: datetime = Field(sa_type=DateTime())
    note: Optional[str] = Field(default=None, max_length=255)
