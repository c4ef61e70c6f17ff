"""SQLAlchemy declarative base and shared mixins for all ORM models.

Provides:
- Base: the DeclarativeBase subclass all models inherit from
- UTCDateTime: timezone-aware UTC datetime column type
- utcnow(): the default factory for timestamp columns
- TimestampMixin: created_at / updated_at columns

Column types are the generic SQLAlchemy ones (``sa.Uuid``, ``UTCDateTime``)
so that the same models run on PostgreSQL and on the SQLite databases used
in tests.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


class UTCDateTime(sa.TypeDecorator):
    """A ``DateTime(timezone=True)`` that always round-trips aware UTC values.

    PostgreSQL returns aware datetimes already; SQLite stores naive strings.
    Values are converted to UTC on the way in and tagged as UTC on the way
    out, so callers can compare against aware datetimes on every backend.
    Naive input is taken to be UTC.
    """

    impl = sa.DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):  # type: ignore[no-untyped-def]
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):  # type: ignore[no-untyped-def]
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Shared declarative base for all Coding Analytics models."""

    type_annotation_map = {
        uuid.UUID: sa.Uuid(),
        datetime: UTCDateTime(),
    }


class TimestampMixin:
    """Adds created_at and updated_at columns.

    Both are filled application-side so the values are identical on every
    backend; ``updated_at`` is refreshed by the ORM on UPDATE.
    """

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
