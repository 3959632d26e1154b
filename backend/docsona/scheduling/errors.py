from __future__ import annotations

from typing import Optional


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling core."""

    code = "SCHEDULING_ERROR"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class InvalidTimeFormat(SchedulingError, ValueError):
    code = "INVALID_TIME_FORMAT"

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid time of day {value!r}, expected 'HH:MM AM/PM'")
        self.value = value


class InvalidAppointmentData(SchedulingError, ValueError):
    code = "INVALID_APPOINTMENT"


class PastAppointmentError(SchedulingError):
    code = "PAST_APPOINTMENT"

    def __init__(self, requested: object) -> None:
        super().__init__(f"Appointment cannot be scheduled in the past ({requested})")
        self.requested = requested


class SlotConflictError(SchedulingError):
    code = "SLOT_CONFLICT"

    def __init__(self, conflicting_id: Optional[str]) -> None:
        super().__init__("This time slot is already booked")
        self.conflicting_id = conflicting_id


class _WindowError(SchedulingError):
    operation = ""

    def __init__(self, hours_remaining: float, required_hours: float) -> None:
        super().__init__(
            f"Appointment cannot be {self.operation} (too close to appointment time: "
            f"{hours_remaining:.2f}h remaining, more than {required_hours:g}h required)"
        )
        self.hours_remaining = hours_remaining
        self.required_hours = required_hours


class RescheduleWindowError(_WindowError):
    code = "RESCHEDULE_WINDOW"
    operation = "rescheduled"


class CancelWindowError(_WindowError):
    code = "CANCEL_WINDOW"
    operation = "cancelled"


class InvalidStatusTransition(SchedulingError):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move appointment from '{current}' to '{target}'")
        self.current = current
        self.target = target
