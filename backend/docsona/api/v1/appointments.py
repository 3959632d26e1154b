from __future__ import annotations

from datetime import date, datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from docsona.api.deps import get_db, get_now
from docsona.scheduling import (
    CancelWindowError,
    InvalidStatusTransition,
    PastAppointmentError,
    RescheduleWindowError,
    SchedulingError,
    SlotConflictError,
)
from docsona.schemas import (
    AppointmentBookRequest,
    AppointmentCancelRequest,
    AppointmentRead,
    AppointmentRescheduleRequest,
    AppointmentVisitNotesRequest,
    AvailableSlotsRead,
    Pagination,
)
from docsona.services import (
    AppointmentNotFoundError,
    book_appointment,
    cancel_appointment,
    complete_appointment,
    confirm_appointment,
    get_appointment,
    get_available_slots,
    list_appointments,
    list_past_appointments,
    list_upcoming_appointments,
    mark_no_show,
    record_visit_notes,
    reschedule_appointment,
    start_appointment,
)

router = APIRouter(prefix="/appointments", tags=["appointments"])

NOT_FOUND_DETAIL = "Appointment not found"


def _scheduling_error(exc: SchedulingError) -> HTTPException:
    payload = {"message": exc.message, "code": exc.code}
    if isinstance(exc, SlotConflictError):
        payload["conflicting_id"] = exc.conflicting_id
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=payload)
    if isinstance(exc, InvalidStatusTransition):
        payload["current"] = exc.current
        payload["target"] = exc.target
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=payload)
    if isinstance(exc, (RescheduleWindowError, CancelWindowError)):
        payload["hours_remaining"] = round(exc.hours_remaining, 2)
    elif isinstance(exc, PastAppointmentError):
        payload["requested"] = str(exc.requested)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=payload)


@router.get("/available-slots", response_model=AvailableSlotsRead)
def list_available_slots(
    provider_ref: str,
    calendar_date: date = Query(..., alias="date"),
    duration_minutes: int | None = Query(default=None, ge=15, le=120),
    session: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> AvailableSlotsRead:
    return get_available_slots(
        session,
        provider_ref=provider_ref,
        calendar_date=calendar_date,
        duration_minutes=duration_minutes,
        now=now,
    )


@router.get("/", response_model=Pagination[AppointmentRead])
def list_appointment_records(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=25, ge=1),
    patient_ref: str | None = None,
    provider_ref: str | None = None,
    status_filter: str | None = None,
    session: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> Pagination[AppointmentRead]:
    page_size = min(page_size, 100)
    items, total = list_appointments(
        session,
        page=page,
        page_size=page_size,
        patient_ref=patient_ref,
        provider_ref=provider_ref,
        status=status_filter,
        now=now,
    )
    return Pagination[AppointmentRead](items=items, page=page, page_size=page_size, total=total)


@router.get("/upcoming", response_model=List[AppointmentRead])
def list_upcoming_records(
    patient_ref: str,
    session: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> List[AppointmentRead]:
    return list_upcoming_appointments(session, patient_ref=patient_ref, now=now)


@router.get("/past", response_model=Pagination[AppointmentRead])
def list_past_records(
    patient_ref: str,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    session: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> Pagination[AppointmentRead]:
    items, total = list_past_appointments(
        session,
        patient_ref=patient_ref,
        page=page,
        page_size=page_size,
        now=now,
    )
    return Pagination[AppointmentRead](items=items, page=page, page_size=page_size, total=total)


@router.post("/", response_model=AppointmentRead, status_code=status.HTTP_201_CREATED)
def book_appointment_record(
    payload: AppointmentBookRequest,
    session: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> AppointmentRead:
    try:
        return book_appointment(session, data=payload, now=now)
    except SchedulingError as exc:
        raise _scheduling_error(exc) from exc


@router.get("/{appointment_id}", response_model=AppointmentRead)
def get_appointment_record(
    appointment_id: str,
    session: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> AppointmentRead:
    try:
        return get_appointment(session, appointment_id, now=now)
    except AppointmentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL) from exc


@router.put("/{appointment_id}/reschedule", response_model=AppointmentRead)
def reschedule_appointment_record(
    appointment_id: str,
    payload: AppointmentRescheduleRequest,
    session: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> AppointmentRead:
    try:
        return reschedule_appointment(session, appointment_id=appointment_id, data=payload, now=now)
    except AppointmentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL) from exc
    except SchedulingError as exc:
        raise _scheduling_error(exc) from exc


@router.put("/{appointment_id}/cancel", response_model=AppointmentRead)
def cancel_appointment_record(
    appointment_id: str,
    payload: AppointmentCancelRequest,
    session: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> AppointmentRead:
    try:
        return cancel_appointment(session, appointment_id=appointment_id, request=payload, now=now)
    except AppointmentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL) from exc
    except SchedulingError as exc:
        raise _scheduling_error(exc) from exc


@router.put("/{appointment_id}/visit-notes", response_model=AppointmentRead)
def record_visit_notes_record(
    appointment_id: str,
    payload: AppointmentVisitNotesRequest,
    session: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> AppointmentRead:
    try:
        return record_visit_notes(session, appointment_id=appointment_id, data=payload, now=now)
    except AppointmentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL) from exc
    except SchedulingError as exc:
        raise _scheduling_error(exc) from exc

def _change_status(transition, session: Session, appointment_id: str, now: datetime) -> AppointmentRead:
    try:
        return transition(session, appointment_id=appointment_id, now=now)
    except AppointmentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL) from exc
    except SchedulingError as exc:
        raise _scheduling_error(exc) from exc


@router.post("/{appointment_id}/confirm", response_model=AppointmentRead)
def confirm_appointment_record(
    appointment_id: str,
    session: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> AppointmentRead:
    return _change_status(confirm_appointment, session, appointment_id, now)


@router.post("/{appointment_id}/start", response_model=AppointmentRead)
def start_appointment_record(
    appointment_id: str,
    session: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> AppointmentRead:
    return _change_status(start_appointment, session, appointment_id, now)


@router.post("/{appointment_id}/complete", response_model=AppointmentRead)
def complete_appointment_record(
    appointment_id: str,
    session: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> AppointmentRead:
    return _change_status(complete_appointment, session, appointment_id, now)


@router.post("/{appointment_id}/no-show", response_model=AppointmentRead)
def mark_no_show_record(
    appointment_id: str,
    session: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> AppointmentRead:
    return _change_status(mark_no_show, session, appointment_id, now)
