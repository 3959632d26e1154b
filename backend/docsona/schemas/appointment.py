from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from docsona.scheduling import Appointment, InvalidTimeFormat, normalize_time_of_day

AppointmentType = Literal["consultation", "follow-up", "emergency", "routine", "specialist"]
CancelledBy = Literal["patient", "provider", "system"]


def _validate_time_of_day(value: str) -> str:
    try:
        return normalize_time_of_day(value)
    except InvalidTimeFormat as exc:
        raise ValueError("Valid time format is required (HH:MM AM/PM)") from exc


class AppointmentBookRequest(BaseModel):
    patient_ref: str = Field(min_length=1, max_length=64)
    provider_ref: str = Field(min_length=1, max_length=64)
    calendar_date: date
    time_of_day: str
    duration_minutes: Optional[int] = Field(default=None, ge=15, le=120)
    reason: str = Field(min_length=1, max_length=500)
    location: str = Field(min_length=1, max_length=255)
    appointment_type: AppointmentType = "consultation"
    room: Optional[str] = Field(default=None, max_length=50)
    symptoms: List[str] = Field(default_factory=list)
    patient_notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("time_of_day")
    @classmethod
    def check_time_of_day(cls, value: str) -> str:
        return _validate_time_of_day(value)


class AppointmentRescheduleRequest(BaseModel):
    calendar_date: date
    time_of_day: str

    @field_validator("time_of_day")
    @classmethod
    def check_time_of_day(cls, value: str) -> str:
        return _validate_time_of_day(value)


class AppointmentCancelRequest(BaseModel):
    cancelled_by: CancelledBy = "patient"
    reason: Optional[str] = Field(default=None, max_length=200)


class AppointmentVisitNotesRequest(BaseModel):
    doctor_notes: Optional[str] = Field(default=None, max_length=1000)
    follow_up_required: bool = False
    follow_up_date: Optional[date] = None


class ReminderRead(BaseModel):
    channel: str
    scheduled_for: datetime
    sent: bool
    sent_at: Optional[datetime] = None


class CancellationRead(BaseModel):
    cancelled_by: str
    reason: Optional[str] = None
    cancelled_at: datetime


class AppointmentStatusRead(BaseModel):
    status: str
    changed_at: datetime
    note: Optional[str] = None


class AppointmentRead(BaseModel):
    id: str
    patient_ref: str
    provider_ref: str
    calendar_date: date
    time_of_day: str
    duration_minutes: int
    status: str
    appointment_type: str
    reason: str
    location: str
    room: Optional[str] = None
    symptoms: List[str] = Field(default_factory=list)
    patient_notes: Optional[str] = None
    doctor_notes: Optional[str] = None
    follow_up_required: bool = False
    follow_up_date: Optional[date] = None
    cancellation: Optional[CancellationRead] = None
    reminders: List[ReminderRead] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    appointment_instant: datetime
    end_instant: datetime
    end_time_of_day: str
    is_upcoming: bool
    is_past: bool
    can_cancel: bool
    can_reschedule: bool
    status_history: List[AppointmentStatusRead] = Field(default_factory=list)

    @classmethod
    def from_entity(
        cls,
        appointment: Appointment,
        *,
        now: datetime,
        cancel_window_hours: float = 24,
        reschedule_window_hours: float = 2,
        status_history: Optional[List[AppointmentStatusRead]] = None,
    ) -> "AppointmentRead":
        cancellation = appointment.cancellation
        return cls(
            id=appointment.id,
            patient_ref=appointment.patient_ref,
            provider_ref=appointment.provider_ref,
            calendar_date=appointment.calendar_date,
            time_of_day=appointment.time_of_day,
            duration_minutes=appointment.duration_minutes,
            status=appointment.status,
            appointment_type=appointment.appointment_type,
            reason=appointment.reason,
            location=appointment.location,
            room=appointment.room,
            symptoms=list(appointment.symptoms),
            patient_notes=appointment.patient_notes,
            doctor_notes=appointment.doctor_notes,
            follow_up_required=appointment.follow_up_required,
            follow_up_date=appointment.follow_up_date,
            cancellation=(
                CancellationRead(
                    cancelled_by=cancellation.cancelled_by,
                    reason=cancellation.reason,
                    cancelled_at=cancellation.cancelled_at,
                )
                if cancellation
                else None
            ),
            reminders=[
                ReminderRead(
                    channel=reminder.channel,
                    scheduled_for=reminder.scheduled_for,
                    sent=reminder.sent,
                    sent_at=reminder.sent_at,
                )
                for reminder in appointment.reminders
            ],
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
            appointment_instant=appointment.appointment_instant,
            end_instant=appointment.end_instant,
            end_time_of_day=appointment.end_time_of_day,
            is_upcoming=appointment.is_upcoming(now),
            is_past=appointment.is_past(now),
            can_cancel=appointment.can_cancel(now, cancel_window_hours),
            can_reschedule=appointment.can_reschedule(now, reschedule_window_hours),
            status_history=status_history or [],
        )


class AvailableSlotsRead(BaseModel):
    provider_ref: str
    calendar_date: date
    duration_minutes: int
    slots: List[str] = Field(default_factory=list)
