from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, List, Optional

from docsona.scheduling.entity import Appointment
from docsona.scheduling.timeofday import combine, format_time_of_day


def find_conflict(
    appointments: Iterable[Appointment],
    *,
    provider_ref: str,
    start: datetime,
    end: datetime,
    exclude_id: Optional[str] = None,
) -> Optional[Appointment]:
    """First active appointment of ``provider_ref`` overlapping ``[start, end)``."""
    for appointment in appointments:
        if appointment.provider_ref != provider_ref or not appointment.is_active:
            continue
        if exclude_id is not None and appointment.id == exclude_id:
            continue
        if appointment.overlaps(start, end):
            return appointment
    return None


class SlotSequence:
    """Free slot start times for one provider on one date.

    Iterating the sequence recomputes it from the captured snapshot, so it
    can be traversed any number of times.
    """

    def __init__(
        self,
        *,
        provider_ref: str,
        calendar_date: date,
        booked: Iterable[Appointment],
        now: datetime,
        window_start: str = "09:00 AM",
        window_end: str = "05:00 PM",
        granularity_minutes: int = 30,
        duration_minutes: Optional[int] = None,
        exclude_id: Optional[str] = None,
    ) -> None:
        if granularity_minutes <= 0:
            raise ValueError("granularity_minutes must be positive")
        if duration_minutes is not None and duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")
        self.provider_ref = provider_ref
        self.calendar_date = calendar_date
        self.booked: List[Appointment] = [
            appointment
            for appointment in booked
            if appointment.provider_ref == provider_ref and appointment.is_active
        ]
        self.now = now
        self.window_start = combine(calendar_date, window_start)
        self.window_end = combine(calendar_date, window_end)
        self.granularity = timedelta(minutes=granularity_minutes)
        self.duration = timedelta(minutes=granularity_minutes if duration_minutes is None else duration_minutes)
        self.exclude_id = exclude_id

    def __iter__(self) -> Iterator[str]:
        if self.calendar_date < self.now.date():
            return
        current = self.window_start
        while current + self.granularity <= self.window_end:
            if current > self.now and find_conflict(
                self.booked,
                provider_ref=self.provider_ref,
                start=current,
                end=current + self.duration,
                exclude_id=self.exclude_id,
            ) is None:
                yield format_time_of_day(current.hour, current.minute)
            current += self.granularity

    def __repr__(self) -> str:
        return f"SlotSequence(provider_ref={self.provider_ref!r}, calendar_date={self.calendar_date.isoformat()})"


def available_slots(
    provider_ref: str,
    calendar_date: date,
    booked: Iterable[Appointment],
    *,
    now: datetime,
    window_start: str = "09:00 AM",
    window_end: str = "05:00 PM",
    granularity_minutes: int = 30,
    duration_minutes: Optional[int] = None,
    exclude_id: Optional[str] = None,
) -> SlotSequence:
    return SlotSequence(
        provider_ref=provider_ref,
        calendar_date=calendar_date,
        booked=booked,
        now=now,
        window_start=window_start,
        window_end=window_end,
        granularity_minutes=granularity_minutes,
        duration_minutes=duration_minutes,
        exclude_id=exclude_id,
    )
