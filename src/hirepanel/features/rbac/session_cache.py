"""Session Permission Cache.

A :class:`SessionPermissionSnapshot` is built at sign-in and embedded in
the user's session. It is never pushed to: callers compare its version with
the server-side permission state and rebuild it when they differ. When no
snapshot is available the permissions are resolved live.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from hirepanel.core.rbac import Action, Resource, is_valid, key_of
from hirepanel_db import utc_now
from hirepanel_db.models import Role

from .assignments import AssignmentService
from .resolver import PermissionResolver
from .state import current_permission_state

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RoleRef:
    id: UUID
    name: str
    color: str

    @classmethod
    def from_role(cls, role: Role) -> RoleRef:
        return cls(id=role.id, name=role.name, color=role.color)


@dataclass(frozen=True, slots=True)
class SessionPermissionSnapshot:
    """Cached permission set plus the version it was resolved at."""

    user_id: UUID
    permissions: frozenset[str]
    primary_role: RoleRef | None
    last_updated: datetime
    version: int

    def to_claims(self) -> dict[str, Any]:
        """Serialize for embedding in a session token."""

        return {
            "user_id": str(self.user_id),
            "permissions": sorted(self.permissions),
            "primary_role": (
                {
                    "id": str(self.primary_role.id),
                    "name": self.primary_role.name,
                    "color": self.primary_role.color,
                }
                if self.primary_role
                else None
            ),
            "permissions_last_updated": self.last_updated.isoformat(),
            "permissions_version": self.version,
        }

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> SessionPermissionSnapshot:
        role = claims.get("primary_role")
        return cls(
            user_id=UUID(str(claims["user_id"])),
            permissions=frozenset(claims.get("permissions") or ()),
            primary_role=(
                RoleRef(id=UUID(str(role["id"])), name=role["name"], color=role["color"])
                if role
                else None
            ),
            last_updated=datetime.fromisoformat(claims["permissions_last_updated"]),
            version=int(claims.get("permissions_version", 0)),
        )


@dataclass(frozen=True, slots=True)
class PermissionContext:
    """Explicit permission input handed to the permission gate."""

    user_id: UUID
    permissions: frozenset[str]
    snapshot: SessionPermissionSnapshot | None = None

    def has(self, resource: Resource | str, action: Action | str) -> bool:
        return is_valid(resource, action) and key_of(resource, action) in self.permissions

    def missing(self, *pairs: tuple[Resource | str, Action | str]) -> list[str]:
        """Keys from ``pairs`` that this context does not grant."""

        return [
            f"{getattr(resource, 'value', resource)}:{getattr(action, 'value', action)}"
            for resource, action in pairs
            if not self.has(resource, action)
        ]


class SessionPermissionCache:
    """Builds, validates and refreshes session permission snapshots."""

    def __init__(
        self,
        *,
        session: Session,
        resolver: PermissionResolver,
        assignments: AssignmentService,
    ) -> None:
        self._session = session
        self._resolver = resolver
        self._assignments = assignments

    def build(self, user_id: UUID) -> SessionPermissionSnapshot:
        """Resolve a fresh snapshot, e.g. on sign-in."""

        version, _ = current_permission_state(self._session, user_id)
        permissions = self._resolver.resolve(user_id)
        primary = self._assignments.get_primary_role(user_id)
        snapshot = SessionPermissionSnapshot(
            user_id=user_id,
            permissions=permissions,
            primary_role=RoleRef.from_role(primary) if primary else None,
            last_updated=utc_now(),
            version=version,
        )
        logger.debug(
            "rbac.session_snapshot.built",
            extra={"user_id": str(user_id), "version": version},
        )
        return snapshot

    def permissions_changed_at(self, user_id: UUID) -> datetime | None:
        _, changed_at = current_permission_state(self._session, user_id)
        return changed_at

    def is_stale(self, snapshot: SessionPermissionSnapshot) -> bool:
        version, _ = current_permission_state(self._session, snapshot.user_id)
        return version != snapshot.version

    def refresh(self, snapshot: SessionPermissionSnapshot) -> SessionPermissionSnapshot:
        """Return ``snapshot`` while it is current, otherwise a rebuilt one."""

        if not self.is_stale(snapshot):
            return snapshot
        logger.info(
            "rbac.session_snapshot.stale",
            extra={"user_id": str(snapshot.user_id), "version": snapshot.version},
        )
        return self.build(snapshot.user_id)

    def permissions_for(
        self,
        user_id: UUID,
        snapshot: SessionPermissionSnapshot | None = None,
    ) -> frozenset[str]:
        return self.context_for(user_id, snapshot).permissions

    def context_for(
        self,
        user_id: UUID,
        snapshot: SessionPermissionSnapshot | None = None,
    ) -> PermissionContext:
        """Permission context for a request, reusing ``snapshot`` when still valid."""

        if snapshot is not None and snapshot.user_id == user_id:
            current = self.refresh(snapshot)
            return PermissionContext(
                user_id=user_id, permissions=current.permissions, snapshot=current
            )
        return PermissionContext(user_id=user_id, permissions=self._resolver.resolve(user_id))


__all__ = [
    "PermissionContext",
    "RoleRef",
    "SessionPermissionCache",
    "SessionPermissionSnapshot",
]
