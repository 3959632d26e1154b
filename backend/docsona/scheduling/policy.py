from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

REMINDER_CHANNELS = ("email", "sms", "push")


@dataclass(frozen=True)
class SchedulingPolicy:
    """Tunable windows and defaults consulted by the scheduling operations."""

    cancel_window_hours: float = 24
    reschedule_window_hours: float = 2
    reminder_lead_hours: float = 24
    reminder_channels: Tuple[str, ...] = ("email",)
    business_hours_start: str = "09:00 AM"
    business_hours_end: str = "05:00 PM"
    slot_minutes: int = 30
    default_duration_minutes: int = 30

    def __post_init__(self) -> None:
        unknown = [channel for channel in self.reminder_channels if channel not in REMINDER_CHANNELS]
        if unknown:
            raise ValueError(f"Unsupported reminder channel(s): {', '.join(unknown)}")
        if self.slot_minutes <= 0:
            raise ValueError("slot_minutes must be positive")
