"""Append-only audit log rows."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..metadata import Base
from ..mixins import UUIDPrimaryKeyMixin, utc_now
from ..types import UTCDateTime, UUIDType


class AuditLogEntry(UUIDPrimaryKeyMixin, Base):
    """Single audit event recorded after a successful mutation."""

    __tablename__ = "audit_logs"

    event_type: Mapped[str] = mapped_column(String(60), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default="info")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="success")
    actor_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    target_user_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    entity_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_audit_logs_target_user_id", "target_user_id"),
        Index("ix_audit_logs_created_at", "created_at"),
    )


__all__ = ["AuditLogEntry"]
