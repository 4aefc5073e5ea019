"""RBAC facade wiring the role store, assignments, resolver and session cache."""

from __future__ import annotations

from sqlalchemy.orm import Session

from hirepanel.features.audit import AuditSink, DatabaseAuditSink
from hirepanel.features.users import SqlUserDirectory, UserDirectory
from hirepanel.settings import Settings, get_settings

from .assignments import AssignmentService
from .resolver import PermissionResolver
from .roles import RoleStore
from .session_cache import SessionPermissionCache


class RbacService:
    """All RBAC components bound to one database session."""

    def __init__(
        self,
        *,
        session: Session,
        settings: Settings | None = None,
        directory: UserDirectory | None = None,
        audit: AuditSink | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.audit = audit or DatabaseAuditSink(session=session)
        self.directory = directory or SqlUserDirectory(session=session)
        self.roles = RoleStore(session=session, settings=self.settings, audit=self.audit)
        self.assignments = AssignmentService(
            session=session,
            settings=self.settings,
            roles=self.roles,
            directory=self.directory,
            audit=self.audit,
        )
        self.resolver = PermissionResolver(session=session, assignments=self.assignments)
        self.session_cache = SessionPermissionCache(
            session=session,
            resolver=self.resolver,
            assignments=self.assignments,
        )

    def sync_registry(self) -> None:
        self.roles.sync_registry()


__all__ = ["RbacService"]
