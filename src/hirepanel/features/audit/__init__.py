"""Audit log sinks for RBAC mutations."""

from .service import (
    AuditAction,
    AuditCategory,
    AuditEntry,
    AuditEventType,
    AuditSink,
    DatabaseAuditSink,
    InMemoryAuditSink,
)

__all__ = [
    "AuditAction",
    "AuditCategory",
    "AuditEntry",
    "AuditEventType",
    "AuditSink",
    "DatabaseAuditSink",
    "InMemoryAuditSink",
]
