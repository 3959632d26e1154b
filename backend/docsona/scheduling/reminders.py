from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional, Tuple

from docsona.scheduling.entity import Reminder


def schedule_reminders(
    instant: datetime,
    channels: Iterable[str],
    *,
    lead_hours: float = 24,
    now: Optional[datetime] = None,
) -> Tuple[Reminder, ...]:
    """One unsent reminder per channel, ``lead_hours`` before ``instant``.

    Fire times that are not after ``now`` are skipped.
    """
    fire_at = instant - timedelta(hours=lead_hours)
    if now is not None and fire_at <= now:
        return ()
    return tuple(Reminder(channel=channel, scheduled_for=fire_at) for channel in channels)


def reschedule_reminders(
    reminders: Iterable[Reminder],
    instant: datetime,
    channels: Iterable[str],
    *,
    lead_hours: float = 24,
    now: Optional[datetime] = None,
) -> Tuple[Reminder, ...]:
    sent = tuple(reminder for reminder in reminders if reminder.sent)
    return sent + schedule_reminders(instant, channels, lead_hours=lead_hours, now=now)


def clear_pending_reminders(reminders: Iterable[Reminder]) -> Tuple[Reminder, ...]:
    return tuple(reminder for reminder in reminders if reminder.sent)


def due_reminders(reminders: Iterable[Reminder], now: datetime) -> Tuple[Reminder, ...]:
    return tuple(reminder for reminder in reminders if not reminder.sent and reminder.scheduled_for <= now)
