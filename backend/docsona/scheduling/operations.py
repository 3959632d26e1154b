"""State-changing operations on appointments.

Every operation takes the provider's current appointments as a snapshot and
returns the new appointment together with the event to publish. Nothing is
written or sent here; callers persist the result and dispatch the event, and
must hold a per-provider lock (or an equivalent database constraint) across
the read of the snapshot and the write.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from docsona.scheduling.entity import IN_PROGRESS, Appointment
from docsona.scheduling.errors import (
    CancelWindowError,
    InvalidStatusTransition,
    PastAppointmentError,
    RescheduleWindowError,
    SlotConflictError,
)
from docsona.scheduling.policy import SchedulingPolicy
from docsona.scheduling.reminders import reschedule_reminders, schedule_reminders
from docsona.scheduling.slots import find_conflict
from docsona.scheduling.timeofday import add_minutes, combine, normalize_time_of_day

APPOINTMENT_CONFIRMED = "appointment.confirmed"
APPOINTMENT_RESCHEDULED = "appointment.rescheduled"
APPOINTMENT_CANCELLED = "appointment.cancelled"

DEFAULT_POLICY = SchedulingPolicy()


@dataclass(frozen=True)
class AppointmentEvent:
    name: str
    appointment: Appointment
    reason: Optional[str] = None
    previous_date: Optional[date] = None
    previous_time_of_day: Optional[str] = None


@dataclass(frozen=True)
class OperationResult:
    appointment: Appointment
    event: AppointmentEvent


def _ensure_free(
    existing: Iterable[Appointment],
    *,
    provider_ref: str,
    start: datetime,
    duration_minutes: int,
    exclude_id: Optional[str] = None,
) -> None:
    conflict = find_conflict(
        existing,
        provider_ref=provider_ref,
        start=start,
        end=add_minutes(start, duration_minutes),
        exclude_id=exclude_id,
    )
    if conflict is not None:
        raise SlotConflictError(conflict.id)


def book(
    *,
    patient_ref: str,
    provider_ref: str,
    calendar_date: date,
    time_of_day: str,
    reason: str,
    location: str,
    existing: Iterable[Appointment],
    now: datetime,
    duration_minutes: Optional[int] = None,
    appointment_type: str = "consultation",
    patient_notes: Optional[str] = None,
    room: Optional[str] = None,
    symptoms: Sequence[str] = (),
    policy: SchedulingPolicy = DEFAULT_POLICY,
) -> OperationResult:
    appointment = Appointment.create(
        patient_ref=patient_ref,
        provider_ref=provider_ref,
        calendar_date=calendar_date,
        time_of_day=time_of_day,
        reason=reason,
        location=location,
        duration_minutes=policy.default_duration_minutes if duration_minutes is None else duration_minutes,
        appointment_type=appointment_type,
        patient_notes=patient_notes,
        room=room,
        symptoms=tuple(symptoms),
        now=now,
    )
    _ensure_free(
        existing,
        provider_ref=provider_ref,
        start=appointment.appointment_instant,
        duration_minutes=appointment.duration_minutes,
    )
    appointment = replace(
        appointment,
        reminders=schedule_reminders(
            appointment.appointment_instant,
            policy.reminder_channels,
            lead_hours=policy.reminder_lead_hours,
            now=now,
        ),
    )
    return OperationResult(appointment, AppointmentEvent(APPOINTMENT_CONFIRMED, appointment))


def reschedule(
    appointment: Appointment,
    *,
    calendar_date: date,
    time_of_day: str,
    existing: Iterable[Appointment],
    now: datetime,
    policy: SchedulingPolicy = DEFAULT_POLICY,
) -> OperationResult:
    if not appointment.can_reschedule(now, policy.reschedule_window_hours):
        raise RescheduleWindowError(appointment.hours_until(now), policy.reschedule_window_hours)

    new_start = combine(calendar_date, time_of_day)
    if new_start <= now:
        raise PastAppointmentError(new_start)

    _ensure_free(
        existing,
        provider_ref=appointment.provider_ref,
        start=new_start,
        duration_minutes=appointment.duration_minutes,
        exclude_id=appointment.id,
    )

    updated = replace(
        appointment,
        calendar_date=calendar_date,
        time_of_day=normalize_time_of_day(time_of_day),
        reminders=reschedule_reminders(
            appointment.reminders,
            new_start,
            policy.reminder_channels,
            lead_hours=policy.reminder_lead_hours,
            now=now,
        ),
        updated_at=now,
    )
    event = AppointmentEvent(
        APPOINTMENT_RESCHEDULED,
        updated,
        previous_date=appointment.calendar_date,
        previous_time_of_day=appointment.time_of_day,
    )
    return OperationResult(updated, event)


def cancel(
    appointment: Appointment,
    *,
    cancelled_by: str,
    reason: Optional[str],
    now: datetime,
    policy: SchedulingPolicy = DEFAULT_POLICY,
) -> OperationResult:
    if appointment.is_terminal or appointment.status == IN_PROGRESS:
        raise InvalidStatusTransition(appointment.status, "cancelled")
    if not appointment.can_cancel(now, policy.cancel_window_hours):
        raise CancelWindowError(appointment.hours_until(now), policy.cancel_window_hours)

    cancelled = appointment.cancel(cancelled_by=cancelled_by, reason=reason, now=now)
    return OperationResult(cancelled, AppointmentEvent(APPOINTMENT_CANCELLED, cancelled, reason=reason))
