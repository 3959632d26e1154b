from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Optional, Tuple

from docsona.scheduling.errors import (
    InvalidAppointmentData,
    InvalidStatusTransition,
    PastAppointmentError,
)
from docsona.scheduling.timeofday import (
    add_minutes,
    combine,
    diff_hours,
    format_time_of_day,
    normalize_time_of_day,
)

SCHEDULED = "scheduled"
CONFIRMED = "confirmed"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"
CANCELLED = "cancelled"
NO_SHOW = "no-show"

STATUSES = (SCHEDULED, CONFIRMED, IN_PROGRESS, COMPLETED, CANCELLED, NO_SHOW)
TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED, NO_SHOW})
ACTIVE_STATUSES = frozenset({SCHEDULED, CONFIRMED, IN_PROGRESS})

APPOINTMENT_TYPES = ("consultation", "follow-up", "emergency", "routine", "specialist")
CANCELLED_BY = ("patient", "provider", "system")

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 120
MAX_REASON_LENGTH = 500
MAX_NOTES_LENGTH = 1000
MAX_ROOM_LENGTH = 50
MAX_SYMPTOM_LENGTH = 200
MAX_CANCELLATION_REASON_LENGTH = 200

DEFAULT_CANCEL_WINDOW_HOURS = 24
DEFAULT_RESCHEDULE_WINDOW_HOURS = 2

ALLOWED_TRANSITIONS = {
    CONFIRMED: frozenset({SCHEDULED}),
    IN_PROGRESS: frozenset({SCHEDULED, CONFIRMED}),
    COMPLETED: frozenset({IN_PROGRESS, CONFIRMED}),
    CANCELLED: frozenset({SCHEDULED, CONFIRMED}),
    NO_SHOW: frozenset({SCHEDULED, CONFIRMED}),
}


@dataclass(frozen=True)
class Reminder:
    channel: str
    scheduled_for: datetime
    sent: bool = False
    sent_at: Optional[datetime] = None

    def mark_sent(self, at: datetime) -> "Reminder":
        return replace(self, sent=True, sent_at=at)


@dataclass(frozen=True)
class Cancellation:
    cancelled_by: str
    reason: Optional[str]
    cancelled_at: datetime


@dataclass(frozen=True)
class Appointment:
    """A booked visit between a patient and a provider.

    Instances are immutable; every state change returns a new instance.
    ``status`` and ``cancellation`` only change through the transition
    methods below and the operations in :mod:`docsona.scheduling.operations`.
    """

    id: str
    patient_ref: str
    provider_ref: str
    calendar_date: date
    time_of_day: str
    reason: str
    location: str
    duration_minutes: int = 30
    status: str = SCHEDULED
    appointment_type: str = "consultation"
    patient_notes: Optional[str] = None
    room: Optional[str] = None
    symptoms: Tuple[str, ...] = ()
    doctor_notes: Optional[str] = None
    follow_up_required: bool = False
    follow_up_date: Optional[date] = None
    cancellation: Optional[Cancellation] = None
    reminders: Tuple[Reminder, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        for name in ("id", "patient_ref", "provider_ref"):
            if not str(getattr(self, name) or "").strip():
                raise InvalidAppointmentData(f"{name} is required")
        object.__setattr__(self, "time_of_day", normalize_time_of_day(self.time_of_day))
        if isinstance(self.calendar_date, datetime) or not isinstance(self.calendar_date, date):
            raise InvalidAppointmentData("calendar_date must be a date without a time component")
        if isinstance(self.duration_minutes, bool) or not isinstance(self.duration_minutes, int):
            raise InvalidAppointmentData("duration_minutes must be an integer")
        if not MIN_DURATION_MINUTES <= self.duration_minutes <= MAX_DURATION_MINUTES:
            raise InvalidAppointmentData(
                f"duration_minutes must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES}"
            )
        if self.status not in STATUSES:
            raise InvalidAppointmentData(f"Unknown status '{self.status}'")
        if self.appointment_type not in APPOINTMENT_TYPES:
            raise InvalidAppointmentData(f"Unknown appointment type '{self.appointment_type}'")
        if not (self.reason or "").strip():
            raise InvalidAppointmentData("Reason for appointment is required")
        if len(self.reason) > MAX_REASON_LENGTH:
            raise InvalidAppointmentData(f"Reason cannot exceed {MAX_REASON_LENGTH} characters")
        if not (self.location or "").strip():
            raise InvalidAppointmentData("Appointment location is required")
        if self.patient_notes is not None and len(self.patient_notes) > MAX_NOTES_LENGTH:
            raise InvalidAppointmentData(f"Patient notes cannot exceed {MAX_NOTES_LENGTH} characters")
        if self.doctor_notes is not None and len(self.doctor_notes) > MAX_NOTES_LENGTH:
            raise InvalidAppointmentData(f"Doctor notes cannot exceed {MAX_NOTES_LENGTH} characters")
        if self.room is not None and len(self.room) > MAX_ROOM_LENGTH:
            raise InvalidAppointmentData(f"Room cannot exceed {MAX_ROOM_LENGTH} characters")
        symptoms = tuple(symptom.strip() for symptom in self.symptoms if symptom and symptom.strip())
        if any(len(symptom) > MAX_SYMPTOM_LENGTH for symptom in symptoms):
            raise InvalidAppointmentData(f"Symptoms cannot exceed {MAX_SYMPTOM_LENGTH} characters each")
        object.__setattr__(self, "symptoms", symptoms)
        if self.follow_up_date is not None and not self.follow_up_required:
            raise InvalidAppointmentData("follow_up_date requires follow_up_required")
        if (self.cancellation is not None) != (self.status == CANCELLED):
            raise InvalidAppointmentData("cancellation is recorded only for cancelled appointments")
        object.__setattr__(self, "reminders", tuple(self.reminders))

    @classmethod
    def create(
        cls,
        *,
        patient_ref: str,
        provider_ref: str,
        calendar_date: date,
        time_of_day: str,
        reason: str,
        location: str,
        now: datetime,
        duration_minutes: int = 30,
        appointment_type: str = "consultation",
        patient_notes: Optional[str] = None,
        room: Optional[str] = None,
        symptoms: Tuple[str, ...] = (),
        appointment_id: Optional[str] = None,
    ) -> "Appointment":
        appointment = cls(
            id=appointment_id or uuid.uuid4().hex,
            patient_ref=patient_ref,
            provider_ref=provider_ref,
            calendar_date=calendar_date,
            time_of_day=time_of_day,
            reason=reason,
            location=location,
            duration_minutes=duration_minutes,
            appointment_type=appointment_type,
            patient_notes=patient_notes,
            room=room,
            symptoms=tuple(symptoms),
            created_at=now,
            updated_at=now,
        )
        if appointment.appointment_instant <= now:
            raise PastAppointmentError(appointment.appointment_instant)
        return appointment

    @property
    def appointment_instant(self) -> datetime:
        return combine(self.calendar_date, self.time_of_day)

    @property
    def end_instant(self) -> datetime:
        return add_minutes(self.appointment_instant, self.duration_minutes)

    @property
    def end_time_of_day(self) -> str:
        end = self.end_instant
        return format_time_of_day(end.hour, end.minute)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def hours_until(self, now: datetime) -> float:
        return diff_hours(self.appointment_instant, now)

    def is_upcoming(self, now: datetime) -> bool:
        return self.appointment_instant > now and self.status in (SCHEDULED, CONFIRMED)

    def is_past(self, now: datetime) -> bool:
        return self.appointment_instant < now

    def can_cancel(self, now: datetime, window_hours: float = DEFAULT_CANCEL_WINDOW_HOURS) -> bool:
        return self.status == SCHEDULED and self.hours_until(now) > window_hours

    def can_reschedule(self, now: datetime, window_hours: float = DEFAULT_RESCHEDULE_WINDOW_HOURS) -> bool:
        return self.status == SCHEDULED and self.hours_until(now) > window_hours

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.appointment_instant < end and start < self.end_instant

    @property
    def pending_reminders(self) -> Tuple[Reminder, ...]:
        return tuple(reminder for reminder in self.reminders if not reminder.sent)

    def _transition(self, target: str, now: datetime, **changes: object) -> "Appointment":
        if self.status not in ALLOWED_TRANSITIONS[target]:
            raise InvalidStatusTransition(self.status, target)
        if target in TERMINAL_STATUSES:
            changes.setdefault("reminders", tuple(reminder for reminder in self.reminders if reminder.sent))
        return replace(self, status=target, updated_at=now, **changes)

    def confirm(self, now: datetime) -> "Appointment":
        return self._transition(CONFIRMED, now)

    def start(self, now: datetime) -> "Appointment":
        return self._transition(IN_PROGRESS, now)

    def complete(self, now: datetime) -> "Appointment":
        return self._transition(COMPLETED, now)

    def mark_no_show(self, now: datetime) -> "Appointment":
        return self._transition(NO_SHOW, now)

    def cancel(self, *, cancelled_by: str, reason: Optional[str], now: datetime) -> "Appointment":
        if cancelled_by not in CANCELLED_BY:
            raise InvalidAppointmentData(f"cancelled_by must be one of {', '.join(CANCELLED_BY)}")
        if reason is not None and len(reason) > MAX_CANCELLATION_REASON_LENGTH:
            raise InvalidAppointmentData(
                f"Cancellation reason cannot exceed {MAX_CANCELLATION_REASON_LENGTH} characters"
            )
        return self._transition(
            CANCELLED,
            now,
            cancellation=Cancellation(cancelled_by=cancelled_by, reason=reason, cancelled_at=now),
        )

    def record_visit_notes(
        self,
        *,
        doctor_notes: Optional[str],
        follow_up_required: bool,
        follow_up_date: Optional[date],
        now: datetime,
    ) -> "Appointment":
        if self.status == CANCELLED:
            raise InvalidAppointmentData("Visit notes cannot be recorded for a cancelled appointment")
        if follow_up_date is not None and follow_up_date < self.calendar_date:
            raise InvalidAppointmentData("follow_up_date cannot be before the appointment date")
        return replace(
            self,
            doctor_notes=doctor_notes,
            follow_up_required=follow_up_required,
            follow_up_date=follow_up_date,
            updated_at=now,
        )
