from __future__ import annotations

import threading
import zlib
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Callable, Iterator, List, Optional, Tuple

import structlog
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from docsona.core.config import settings
from docsona.models import AppointmentRecord, AppointmentReminderRecord, AppointmentStatusHistory
from docsona.scheduling import (
    ACTIVE_STATUSES,
    Appointment,
    Cancellation,
    OperationResult,
    Reminder,
    SchedulingPolicy,
    SlotConflictError,
    available_slots,
    book,
    cancel,
    reschedule,
)
from docsona.schemas.appointment import (
    AppointmentBookRequest,
    AppointmentCancelRequest,
    AppointmentRead,
    AppointmentRescheduleRequest,
    AppointmentStatusRead,
    AppointmentVisitNotesRequest,
    AvailableSlotsRead,
)
from docsona.services.notifications import dispatch_event

logger = structlog.get_logger(__name__)


class AppointmentNotFoundError(Exception):
    pass


PROVIDER_LOCK_STRIPES = 64
_provider_locks: List[threading.Lock] = [threading.Lock() for _ in range(PROVIDER_LOCK_STRIPES)]


@contextmanager
def provider_lock(provider_ref: str) -> Iterator[None]:
    """Serialise conflict check and write for one provider within this process.

    Across processes the partial unique index on ``appointments`` rejects a
    second active booking at the same start time.

    Providers are hashed onto a fixed set of locks, so two providers may
    occasionally share one.
    """
    with _provider_locks[zlib.crc32(provider_ref.encode("utf-8")) % PROVIDER_LOCK_STRIPES]:
        yield


def get_policy() -> SchedulingPolicy:
    return SchedulingPolicy(
        cancel_window_hours=settings.cancel_window_hours,
        reschedule_window_hours=settings.reschedule_window_hours,
        reminder_lead_hours=settings.reminder_lead_hours,
        reminder_channels=tuple(settings.reminder_channels),
        business_hours_start=settings.business_hours_start,
        business_hours_end=settings.business_hours_end,
        slot_minutes=settings.slot_minutes,
        default_duration_minutes=settings.default_duration_minutes,
    )


def _resolve_now(now: Optional[datetime]) -> datetime:
    return now or datetime.now()


def to_entity(session: Session, record: AppointmentRecord) -> Appointment:
    reminder_rows = session.exec(
        select(AppointmentReminderRecord)
        .where(AppointmentReminderRecord.appointment_id == record.id)
        .order_by(AppointmentReminderRecord.scheduled_for, AppointmentReminderRecord.id)
    ).all()
    cancellation = None
    if record.status == "cancelled":
        cancellation = Cancellation(
            cancelled_by=record.cancelled_by or "system",
            reason=record.cancellation_reason,
            cancelled_at=record.cancelled_at or record.updated_at,
        )
    return Appointment(
        id=record.id,
        patient_ref=record.patient_ref,
        provider_ref=record.provider_ref,
        calendar_date=record.calendar_date,
        time_of_day=record.time_of_day,
        reason=record.reason,
        location=record.location,
        duration_minutes=record.duration_minutes,
        status=record.status,
        appointment_type=record.appointment_type,
        room=record.room,
        symptoms=tuple(record.symptoms or ()),
        patient_notes=record.patient_notes,
        doctor_notes=record.doctor_notes,
        follow_up_required=record.follow_up_required,
        follow_up_date=record.follow_up_date,
        cancellation=cancellation,
        reminders=tuple(
            Reminder(
                channel=row.channel,
                scheduled_for=row.scheduled_for,
                sent=row.sent,
                sent_at=row.sent_at,
            )
            for row in reminder_rows
        ),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _write_entity(session: Session, appointment: Appointment, record: Optional[AppointmentRecord] = None) -> AppointmentRecord:
    if record is None:
        record = AppointmentRecord(id=appointment.id, created_at=appointment.created_at)
    record.patient_ref = appointment.patient_ref
    record.provider_ref = appointment.provider_ref
    record.calendar_date = appointment.calendar_date
    record.time_of_day = appointment.time_of_day
    record.start_at = appointment.appointment_instant
    record.duration_minutes = appointment.duration_minutes
    record.status = appointment.status
    record.appointment_type = appointment.appointment_type
    record.reason = appointment.reason
    record.location = appointment.location
    record.room = appointment.room
    record.symptoms = list(appointment.symptoms)
    record.patient_notes = appointment.patient_notes
    record.doctor_notes = appointment.doctor_notes
    record.follow_up_required = appointment.follow_up_required
    record.follow_up_date = appointment.follow_up_date
    cancellation = appointment.cancellation
    record.cancelled_by = cancellation.cancelled_by if cancellation else None
    record.cancellation_reason = cancellation.reason if cancellation else None
    record.cancelled_at = cancellation.cancelled_at if cancellation else None
    record.updated_at = appointment.updated_at
    session.add(record)
    session.flush()

    existing_rows = session.exec(
        select(AppointmentReminderRecord).where(AppointmentReminderRecord.appointment_id == appointment.id)
    ).all()
    for row in existing_rows:
        session.delete(row)
    for reminder in appointment.reminders:
        session.add(
            AppointmentReminderRecord(
                appointment_id=appointment.id,
                channel=reminder.channel,
                scheduled_for=reminder.scheduled_for,
                sent=reminder.sent,
                sent_at=reminder.sent_at,
                created_at=appointment.updated_at,
                updated_at=appointment.updated_at,
            )
        )
    return record


def _add_status_history(
    session: Session,
    appointment_id: str,
    status: str,
    changed_at: datetime,
    note: Optional[str] = None,
) -> None:
    session.add(
        AppointmentStatusHistory(
            appointment_id=appointment_id,
            status=status,
            changed_at=changed_at,
            note=note,
            created_at=changed_at,
            updated_at=changed_at,
        )
    )


def _build_appointment_read(session: Session, appointment: Appointment, now: datetime) -> AppointmentRead:
    history_entries = session.exec(
        select(AppointmentStatusHistory)
        .where(AppointmentStatusHistory.appointment_id == appointment.id)
        .order_by(AppointmentStatusHistory.changed_at.desc(), AppointmentStatusHistory.id.desc())
    ).all()
    return AppointmentRead.from_entity(
        appointment,
        now=now,
        cancel_window_hours=settings.cancel_window_hours,
        reschedule_window_hours=settings.reschedule_window_hours,
        status_history=[
            AppointmentStatusRead(status=entry.status, changed_at=entry.changed_at, note=entry.note)
            for entry in history_entries
        ],
    )


def _provider_snapshot(session: Session, provider_ref: str, calendar_date: date) -> List[Appointment]:
    # Neighbouring days are included because an appointment may run past midnight.
    rows = session.exec(
        select(AppointmentRecord).where(
            AppointmentRecord.provider_ref == provider_ref,
            AppointmentRecord.calendar_date >= calendar_date - timedelta(days=1),
            AppointmentRecord.calendar_date <= calendar_date + timedelta(days=1),
            AppointmentRecord.status.in_(sorted(ACTIVE_STATUSES)),
        )
    ).all()
    return [to_entity(session, row) for row in rows]


def _get_record(session: Session, appointment_id: str) -> AppointmentRecord:
    record = session.get(AppointmentRecord, appointment_id)
    if not record:
        raise AppointmentNotFoundError
    return record


def _slot_conflict(session: Session, appointment: Appointment) -> SlotConflictError:
    conflicting = session.exec(
        select(AppointmentRecord).where(
            AppointmentRecord.provider_ref == appointment.provider_ref,
            AppointmentRecord.calendar_date == appointment.calendar_date,
            AppointmentRecord.time_of_day == appointment.time_of_day,
            AppointmentRecord.status.in_(sorted(ACTIVE_STATUSES)),
            AppointmentRecord.id != appointment.id,
        )
    ).first()
    return SlotConflictError(conflicting.id if conflicting else None)


def book_appointment(
    session: Session,
    *,
    data: AppointmentBookRequest,
    now: Optional[datetime] = None,
) -> AppointmentRead:
    now = _resolve_now(now)
    with provider_lock(data.provider_ref):
        result = book(
            patient_ref=data.patient_ref,
            provider_ref=data.provider_ref,
            calendar_date=data.calendar_date,
            time_of_day=data.time_of_day,
            duration_minutes=data.duration_minutes,
            reason=data.reason,
            location=data.location,
            appointment_type=data.appointment_type,
            patient_notes=data.patient_notes,
            room=data.room,
            symptoms=data.symptoms,
            existing=_provider_snapshot(session, data.provider_ref, data.calendar_date),
            now=now,
            policy=get_policy(),
        )
        appointment = result.appointment
        try:
            _write_entity(session, appointment)
            _add_status_history(session, appointment.id, appointment.status, now)
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise _slot_conflict(session, appointment) from exc

    logger.info(
        "appointment_booked",
        appointment_id=appointment.id,
        provider_ref=appointment.provider_ref,
        calendar_date=appointment.calendar_date.isoformat(),
        time_of_day=appointment.time_of_day,
    )
    dispatch_event(result.event)
    return _build_appointment_read(session, appointment, now)


def reschedule_appointment(
    session: Session,
    *,
    appointment_id: str,
    data: AppointmentRescheduleRequest,
    now: Optional[datetime] = None,
) -> AppointmentRead:
    now = _resolve_now(now)
    record = _get_record(session, appointment_id)
    with provider_lock(record.provider_ref):
        session.refresh(record)
        current = to_entity(session, record)
        result = reschedule(
            current,
            calendar_date=data.calendar_date,
            time_of_day=data.time_of_day,
            existing=_provider_snapshot(session, current.provider_ref, data.calendar_date),
            now=now,
            policy=get_policy(),
        )
        appointment = result.appointment
        note = (
            f"from={current.calendar_date.isoformat()} {current.time_of_day}; "
            f"to={appointment.calendar_date.isoformat()} {appointment.time_of_day}"
        )
        try:
            _write_entity(session, appointment, record)
            _add_status_history(session, appointment.id, "rescheduled", now, note)
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise _slot_conflict(session, appointment) from exc

    logger.info(
        "appointment_rescheduled",
        appointment_id=appointment.id,
        previous_date=current.calendar_date.isoformat(),
        previous_time_of_day=current.time_of_day,
        calendar_date=appointment.calendar_date.isoformat(),
        time_of_day=appointment.time_of_day,
    )
    dispatch_event(result.event)
    return _build_appointment_read(session, appointment, now)


def cancel_appointment(
    session: Session,
    *,
    appointment_id: str,
    request: AppointmentCancelRequest,
    now: Optional[datetime] = None,
) -> AppointmentRead:
    now = _resolve_now(now)
    record = _get_record(session, appointment_id)
    with provider_lock(record.provider_ref):
        session.refresh(record)
        result: OperationResult = cancel(
            to_entity(session, record),
            cancelled_by=request.cancelled_by,
            reason=request.reason,
            now=now,
            policy=get_policy(),
        )
        appointment = result.appointment
        _write_entity(session, appointment, record)
        _add_status_history(session, appointment.id, appointment.status, now, request.reason)
        session.commit()

    logger.info(
        "appointment_cancelled",
        appointment_id=appointment.id,
        cancelled_by=request.cancelled_by,
    )
    dispatch_event(result.event)
    return _build_appointment_read(session, appointment, now)


def _transition_appointment(
    session: Session,
    appointment_id: str,
    transition: Callable[[Appointment, datetime], Appointment],
    now: Optional[datetime],
) -> AppointmentRead:
    now = _resolve_now(now)
    record = _get_record(session, appointment_id)
    with provider_lock(record.provider_ref):
        session.refresh(record)
        appointment = transition(to_entity(session, record), now)
        _write_entity(session, appointment, record)
        _add_status_history(session, appointment.id, appointment.status, now)
        session.commit()
    logger.info("appointment_status_changed", appointment_id=appointment.id, status=appointment.status)
    return _build_appointment_read(session, appointment, now)


def record_visit_notes(
    session: Session,
    *,
    appointment_id: str,
    data: AppointmentVisitNotesRequest,
    now: Optional[datetime] = None,
) -> AppointmentRead:
    now = _resolve_now(now)
    record = _get_record(session, appointment_id)
    with provider_lock(record.provider_ref):
        session.refresh(record)
        appointment = to_entity(session, record).record_visit_notes(
            doctor_notes=data.doctor_notes,
            follow_up_required=data.follow_up_required,
            follow_up_date=data.follow_up_date,
            now=now,
        )
        _write_entity(session, appointment, record)
        session.commit()
    logger.info(
        "appointment_visit_notes_recorded",
        appointment_id=appointment.id,
        follow_up_required=appointment.follow_up_required,
    )
    return _build_appointment_read(session, appointment, now)


def confirm_appointment(session: Session, *, appointment_id: str, now: Optional[datetime] = None) -> AppointmentRead:
    return _transition_appointment(session, appointment_id, Appointment.confirm, now)


def start_appointment(session: Session, *, appointment_id: str, now: Optional[datetime] = None) -> AppointmentRead:
    return _transition_appointment(session, appointment_id, Appointment.start, now)


def complete_appointment(session: Session, *, appointment_id: str, now: Optional[datetime] = None) -> AppointmentRead:
    return _transition_appointment(session, appointment_id, Appointment.complete, now)


def mark_no_show(session: Session, *, appointment_id: str, now: Optional[datetime] = None) -> AppointmentRead:
    return _transition_appointment(session, appointment_id, Appointment.mark_no_show, now)


def get_appointment(session: Session, appointment_id: str, *, now: Optional[datetime] = None) -> AppointmentRead:
    now = _resolve_now(now)
    record = _get_record(session, appointment_id)
    return _build_appointment_read(session, to_entity(session, record), now)


def list_appointments(
    session: Session,
    *,
    page: int = 1,
    page_size: int = 25,
    patient_ref: Optional[str] = None,
    provider_ref: Optional[str] = None,
    status: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[List[AppointmentRead], int]:
    now = _resolve_now(now)
    statement = select(AppointmentRecord)
    count_stmt = select(func.count()).select_from(AppointmentRecord)

    filters = []
    if patient_ref:
        filters.append(AppointmentRecord.patient_ref == patient_ref)
    if provider_ref:
        filters.append(AppointmentRecord.provider_ref == provider_ref)
    if status:
        filters.append(AppointmentRecord.status == status)

    if filters:
        statement = statement.where(*filters)
        count_stmt = count_stmt.where(*filters)

    statement = statement.order_by(AppointmentRecord.start_at)
    total = session.exec(count_stmt).one()
    rows = session.exec(statement.offset((page - 1) * page_size).limit(page_size)).all()
    return [_build_appointment_read(session, to_entity(session, row), now) for row in rows], total


def list_upcoming_appointments(
    session: Session,
    *,
    patient_ref: str,
    limit: int = 10,
    now: Optional[datetime] = None,
) -> List[AppointmentRead]:
    now = _resolve_now(now)
    rows = session.exec(
        select(AppointmentRecord)
        .where(
            AppointmentRecord.patient_ref == patient_ref,
            AppointmentRecord.start_at > now,
            AppointmentRecord.status.in_(("scheduled", "confirmed")),
        )
        .order_by(AppointmentRecord.start_at)
        .limit(limit)
    ).all()
    return [_build_appointment_read(session, to_entity(session, row), now) for row in rows]


def list_past_appointments(
    session: Session,
    *,
    patient_ref: str,
    page: int = 1,
    page_size: int = 10,
    now: Optional[datetime] = None,
) -> Tuple[List[AppointmentRead], int]:
    now = _resolve_now(now)
    filters = (AppointmentRecord.patient_ref == patient_ref, AppointmentRecord.start_at < now)
    total = session.exec(select(func.count()).select_from(AppointmentRecord).where(*filters)).one()
    rows = session.exec(
        select(AppointmentRecord)
        .where(*filters)
        .order_by(AppointmentRecord.start_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()
    return [_build_appointment_read(session, to_entity(session, row), now) for row in rows], total


def get_available_slots(
    session: Session,
    *,
    provider_ref: str,
    calendar_date: date,
    duration_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> AvailableSlotsRead:
    now = _resolve_now(now)
    policy = get_policy()
    duration = policy.slot_minutes if duration_minutes is None else duration_minutes
    slots = available_slots(
        provider_ref,
        calendar_date,
        _provider_snapshot(session, provider_ref, calendar_date),
        now=now,
        window_start=policy.business_hours_start,
        window_end=policy.business_hours_end,
        granularity_minutes=policy.slot_minutes,
        duration_minutes=duration,
    )
    return AvailableSlotsRead(
        provider_ref=provider_ref,
        calendar_date=calendar_date,
        duration_minutes=duration,
        slots=list(slots),
    )
