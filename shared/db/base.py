"""Common column mixin for control-plane ORM models.

Each service declares its own ``DeclarativeBase`` so that the two schemas
keep separate metadata, and mixes in ``TimestampedModel`` for the shared
``id`` / ``created_at`` / ``updated_at`` columns.
"""
from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def new_uuid() -> uuid.UUID:
    """Return a new random UUID4."""
    return uuid.uuid4()


class TimestampedModel:
    """Mixin providing the UUID primary key and audit timestamps."""

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=new_uuid)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
