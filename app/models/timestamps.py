"""
Timestamp helpers shared by all tables.

Timestamps are naive UTC and stored in plain ``TIMESTAMP WITHOUT TIME ZONE``
columns. Each field gets its own explicit column so SQLModel does not apply
its timezone-aware datetime type.
"""
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime
from sqlmodel import Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def timestamp_field(*, required: bool = True, index: bool = False) -> Any:
    """Field for a naive UTC timestamp. Required fields default to now."""
    column = Column(DateTime(timezone=False), nullable=not required, index=index)
    if required:
        return Field(default_factory=utcnow, sa_column=column)
    return Field(default=None, sa_column=column)
