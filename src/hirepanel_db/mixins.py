"""Reusable SQLAlchemy mixins and helpers for HirePanel models."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from .types import UTCDateTime, UUIDType

__all__ = ["TimestampMixin", "UUIDPrimaryKeyMixin", "generate_uuid7", "utc_now"]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(tz=UTC)


def _resolve_uuid7() -> Callable[[], uuid.UUID]:
    maybe_uuid7 = getattr(uuid, "uuid7", None)
    if callable(maybe_uuid7):
        return maybe_uuid7
    return uuid.uuid4


_uuid7_factory = _resolve_uuid7()


def generate_uuid7() -> uuid.UUID:
    """Return a sortable UUID (uuid7 where the interpreter provides it)."""

    return _uuid7_factory()


class UUIDPrimaryKeyMixin:
    """Mixin that supplies a UUID primary key column."""

    @declared_attr.directive
    def id(cls) -> Mapped[uuid.UUID]:  # noqa: N805 - SQLAlchemy declared attr
        return mapped_column(
            "id",
            UUIDType(),
            primary_key=True,
            default=generate_uuid7,
        )


class TimestampMixin:
    """Mixin that records created/updated timestamps as timezone-aware datetimes."""

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utc_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )
