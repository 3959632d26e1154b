from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    project_name: str = "DocSona Scheduling"
    database_url: str = Field(
        default="sqlite:///./docsona.db",
        description="SQLModel compatible database URI",
    )
    business_hours_start: str = "09:00 AM"
    business_hours_end: str = "05:00 PM"
    slot_minutes: int = 30
    default_duration_minutes: int = 30
    cancel_window_hours: float = 24
    reschedule_window_hours: float = 2
    reminder_lead_hours: float = 24
    reminder_channels: List[str] = Field(
        default_factory=lambda: ["email"],
        description="Delivery channels a reminder is scheduled on (email, sms, push)",
    )
    reminder_dispatch_interval_seconds: int = 60 * 5  # every 5 minutes
    log_level: str = "INFO"
    log_format: str = "json"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
