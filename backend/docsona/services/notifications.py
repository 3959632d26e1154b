from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

import structlog

from docsona.core.config import settings
from docsona.scheduling import (
    APPOINTMENT_CANCELLED,
    APPOINTMENT_CONFIRMED,
    APPOINTMENT_RESCHEDULED,
    Appointment,
    AppointmentEvent,
    Reminder,
)

logger = structlog.get_logger(__name__)


@dataclass
class NotificationMessage:
    channel: str
    recipient: str
    subject: Optional[str] = None
    body: str = ""


class NotificationBackend:
    """Very small stub backend that records the outgoing payload."""

    def send_email(self, *, to: str, subject: str, body: str) -> NotificationMessage:
        return NotificationMessage(channel="email", recipient=to, subject=subject, body=body)

    def send_sms(self, *, to: str, body: str) -> NotificationMessage:
        return NotificationMessage(channel="sms", recipient=to, body=body)

    def send_push(self, *, to: str, title: str, body: str) -> NotificationMessage:
        return NotificationMessage(channel="push", recipient=to, subject=title, body=body)


_backend: NotificationBackend = NotificationBackend()


def get_notification_backend() -> NotificationBackend:
    return _backend


def set_notification_backend(backend: NotificationBackend) -> None:
    global _backend
    _backend = backend


def reset_notification_backend() -> None:
    set_notification_backend(NotificationBackend())


def _format_date(value: date) -> str:
    return value.isoformat()


def _send(channel: str, *, recipient: str, subject: str, body: str) -> NotificationMessage:
    backend = get_notification_backend()
    if channel == "email":
        return backend.send_email(to=recipient, subject=subject, body=body)
    if channel == "sms":
        return backend.send_sms(to=recipient, body=body)
    if channel == "push":
        return backend.send_push(to=recipient, title=subject, body=body)
    raise ValueError(f"Unsupported notification channel '{channel}'")


def _send_for_patient(
    appointment: Appointment,
    *,
    subject: str,
    body: str,
    channels: Optional[Iterable[str]] = None,
) -> List[NotificationMessage]:
    messages = [
        _send(channel, recipient=appointment.patient_ref, subject=subject, body=body)
        for channel in (channels if channels is not None else settings.reminder_channels)
    ]
    logger.info(
        "notification_sent",
        appointment_id=appointment.id,
        subject=subject,
        channels=[message.channel for message in messages],
    )
    return messages


def notify_appointment_confirmed(appointment: Appointment) -> List[NotificationMessage]:
    body = (
        f"Your appointment on {_format_date(appointment.calendar_date)} at {appointment.time_of_day} "
        f"({appointment.location}) has been confirmed."
    )
    return _send_for_patient(appointment, subject="Appointment Confirmed", body=body)


def notify_appointment_rescheduled(
    appointment: Appointment,
    *,
    previous_date: Optional[date],
    previous_time_of_day: Optional[str],
) -> List[NotificationMessage]:
    body = f"Your appointment has been rescheduled to {_format_date(appointment.calendar_date)} at {appointment.time_of_day}."
    if previous_date and previous_time_of_day:
        body += f" Previous time: {_format_date(previous_date)} at {previous_time_of_day}."
    return _send_for_patient(appointment, subject="Appointment Rescheduled", body=body)


def notify_appointment_cancelled(appointment: Appointment, *, reason: Optional[str]) -> List[NotificationMessage]:
    body = (
        f"Your appointment on {_format_date(appointment.calendar_date)} at {appointment.time_of_day} "
        "has been cancelled."
    )
    if reason:
        body += f" Reason: {reason}"
    return _send_for_patient(appointment, subject="Appointment Cancelled", body=body)


def send_reminder(appointment: Appointment, reminder: Reminder) -> NotificationMessage:
    body = (
        f"Reminder: you have an appointment on {_format_date(appointment.calendar_date)} "
        f"at {appointment.time_of_day} ({appointment.location})."
    )
    return _send_for_patient(
        appointment,
        subject="Appointment Reminder",
        body=body,
        channels=[reminder.channel],
    )[0]


def dispatch_event(event: AppointmentEvent) -> List[NotificationMessage]:
    if event.name == APPOINTMENT_CONFIRMED:
        return notify_appointment_confirmed(event.appointment)
    if event.name == APPOINTMENT_RESCHEDULED:
        return notify_appointment_rescheduled(
            event.appointment,
            previous_date=event.previous_date,
            previous_time_of_day=event.previous_time_of_day,
        )
    if event.name == APPOINTMENT_CANCELLED:
        return notify_appointment_cancelled(event.appointment, reason=event.reason)
    raise ValueError(f"Unknown appointment event '{event.name}'")
