"""Audit log sinks.

Appends are fire-and-forget: a failing sink is logged and never undoes or
fails the RBAC mutation that produced the entry.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hirepanel.common.logging import log_context
from hirepanel_db.models import AuditLogEntry

logger = logging.getLogger(__name__)


class AuditCategory(str, enum.Enum):
    AUTH = "AUTH"
    USER = "USER"


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AuditEventType(str, enum.Enum):
    ROLE_ASSIGNED = "ROLE_ASSIGNED"
    ROLE_REMOVED = "ROLE_REMOVED"
    ROLE_FALLBACK_APPLIED = "ROLE_FALLBACK_APPLIED"
    ROLE_CREATED = "ROLE_CREATED"
    ROLE_UPDATED = "ROLE_UPDATED"
    ROLE_DELETED = "ROLE_DELETED"


@dataclass(frozen=True)
class AuditEntry:
    """One audit record describing a successful mutation."""

    event_type: AuditEventType
    category: AuditCategory
    action: AuditAction
    description: str
    actor_id: UUID | None = None
    target_user_id: UUID | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    severity: str = "info"
    status: str = "success"


class AuditSink(Protocol):
    def append(self, entry: AuditEntry) -> None: ...


class InMemoryAuditSink:
    """Collects entries in a list; used by tests and local tooling."""

    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    def append(self, entry: AuditEntry) -> None:
        self.entries.append(entry)

    def of_type(self, event_type: AuditEventType) -> list[AuditEntry]:
        return [entry for entry in self.entries if entry.event_type == event_type]


class DatabaseAuditSink:
    """Writes entries to ``audit_logs`` through the caller's session.

    Each append runs in its own savepoint, so the entry commits together with
    the mutation and a failed insert only drops the entry.
    """

    def __init__(self, *, session: Session) -> None:
        self._session = session

    def append(self, entry: AuditEntry) -> None:
        row = AuditLogEntry(
            event_type=entry.event_type.value,
            category=entry.category.value,
            action=entry.action.value,
            severity=entry.severity,
            status=entry.status,
            actor_id=entry.actor_id,
            target_user_id=entry.target_user_id,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            description=entry.description,
            details=_jsonable(entry.details),
        )
        try:
            with self._session.begin_nested():
                self._session.add(row)
        except SQLAlchemyError:
            logger.warning(
                "audit.append.failed",
                extra=log_context(
                    user_id=entry.target_user_id,
                    actor_id=entry.actor_id,
                    event_type=entry.event_type.value,
                ),
                exc_info=True,
            )


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    if isinstance(value, UUID):
        return str(value)
    return value


__all__ = [
    "AuditAction",
    "AuditCategory",
    "AuditEntry",
    "AuditEventType",
    "AuditSink",
    "DatabaseAuditSink",
    "InMemoryAuditSink",
]
