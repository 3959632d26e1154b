from __future__ import annotations

import asyncio
from datetime import datetime
from typing import List, Optional

import structlog
from sqlmodel import Session, select

from docsona.core.config import settings
from docsona.db.session import get_session
from docsona.models import AppointmentRecord, AppointmentReminderRecord
from docsona.scheduling import ACTIVE_STATUSES, Reminder
from docsona.services.appointments import to_entity
from docsona.services.notifications import send_reminder

logger = structlog.get_logger(__name__)


def dispatch_due_reminders(session: Session, now: Optional[datetime] = None) -> int:
    """Send every unsent reminder that is due and mark it as sent."""
    now = now or datetime.now()
    rows = session.exec(
        select(AppointmentReminderRecord, AppointmentRecord)
        .join(AppointmentRecord, AppointmentRecord.id == AppointmentReminderRecord.appointment_id)
        .where(
            AppointmentReminderRecord.sent == False,  # noqa: E712
            AppointmentReminderRecord.scheduled_for <= now,
            AppointmentRecord.status.in_(sorted(ACTIVE_STATUSES)),
        )
        .order_by(AppointmentReminderRecord.scheduled_for)
    ).all()

    delivered = 0
    for reminder_row, record in rows:
        reminder = Reminder(channel=reminder_row.channel, scheduled_for=reminder_row.scheduled_for)
        try:
            send_reminder(to_entity(session, record), reminder)
        except Exception:
            # Left unsent so the next run retries it.
            logger.exception(
                "reminder_delivery_failed",
                appointment_id=record.id,
                channel=reminder_row.channel,
            )
            continue
        reminder_row.sent = True
        reminder_row.sent_at = now
        reminder_row.updated_at = now
        session.add(reminder_row)
        session.commit()
        delivered += 1

    if rows:
        logger.info("reminders_dispatched", count=delivered, failed=len(rows) - delivered)
    return delivered


class BackgroundService:
    def __init__(self, interval_seconds: int) -> None:
        self.interval_seconds = interval_seconds
        self._tasks: List[asyncio.Task] = []
        self._running = False

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._tasks.append(asyncio.create_task(self._run()))

    async def shutdown(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self._running = False

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                await asyncio.to_thread(self._dispatch_once)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("reminder_dispatch_failed")

    def _dispatch_once(self) -> None:
        with get_session() as session:
            dispatch_due_reminders(session)


_service: BackgroundService | None = None


def start_background_services() -> None:
    global _service
    if _service is None:
        _service = BackgroundService(settings.reminder_dispatch_interval_seconds)
        _service.start()


def stop_background_services() -> None:
    global _service
    if _service is not None:
        service = _service
        _service = None
        asyncio.create_task(service.shutdown())
