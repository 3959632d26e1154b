from __future__ import annotations


from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import declarative_mixin
from sqlmodel import Field


@declarative_mixin
class TimestampMixin:
    """Created/updated timestamp columns for SQLModel tables.

    Values are naive local wall-clock datetimes supplied by the service layer;
    the server default only covers rows written outside of it.
    """

    created_at: datetime = Field(
        default=None,
        sa_type=DateTime(),
        sa_column_kwargs={
            "nullable": False,
            "server_default": func.now(),
        },
    )
    updated_at: datetime = Field(
        default=None,
        sa_type=DateTime(),
        sa_column_kwargs={
            "nullable": False,
            "server_default": func.now(),
        },
    )
