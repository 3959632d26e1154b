"""Conversions between 12-hour ``"HH:MM AM/PM"`` strings and naive datetimes.

Instants are local wall-clock ``datetime`` objects without tzinfo.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import NamedTuple

from docsona.scheduling.errors import InvalidTimeFormat

TIME_OF_DAY_PATTERN = re.compile(r"^(0?[1-9]|1[0-2]):([0-5][0-9]) (AM|PM)$")


class TimeOfDay(NamedTuple):
    hour24: int
    minute: int

    def __str__(self) -> str:
        return format_time_of_day(self.hour24, self.minute)

    @property
    def minutes_since_midnight(self) -> int:
        return self.hour24 * 60 + self.minute


def parse_time_of_day(value: str) -> TimeOfDay:
    if not isinstance(value, str):
        raise InvalidTimeFormat(value)
    match = TIME_OF_DAY_PATTERN.match(value)
    if match is None:
        raise InvalidTimeFormat(value)
    hour, minute, period = int(match.group(1)), int(match.group(2)), match.group(3)
    if period == "AM":
        hour24 = 0 if hour == 12 else hour
    else:
        hour24 = 12 if hour == 12 else hour + 12
    return TimeOfDay(hour24, minute)


def format_time_of_day(hour24: int, minute: int) -> str:
    if not (0 <= hour24 <= 23 and 0 <= minute <= 59):
        raise InvalidTimeFormat(f"{hour24}:{minute}")
    period = "PM" if hour24 >= 12 else "AM"
    display_hour = hour24 % 12 or 12
    return f"{display_hour:02d}:{minute:02d} {period}"


def normalize_time_of_day(value: str) -> str:
    """Return the canonical zero-padded spelling of ``value``."""
    return str(parse_time_of_day(value))


def combine(calendar_date: date, time_of_day: str) -> datetime:
    parsed = parse_time_of_day(time_of_day)
    return datetime.combine(calendar_date, time(parsed.hour24, parsed.minute))


def add_minutes(instant: datetime, minutes: int) -> datetime:
    return instant + timedelta(minutes=minutes)


def diff_hours(a: datetime, b: datetime) -> float:
    return (a - b).total_seconds() / 3600
