"""SQLAlchemy declarative base, ULID primary keys and row timestamps."""

from __future__ import annotations

from datetime import datetime, timezone
from sqlalchemy import String, DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from ulid import ULID


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Client-generated row id (26-char ULID string)."""
    return str(ULID())


class Base(DeclarativeBase):
    pass


class ULIDMixin:
    """Mixin that provides a ULID primary key and created_at timestamp."""

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class TouchedMixin:
    """Adds updated_at, bumped on every ORM or core UPDATE that sets it."""

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
