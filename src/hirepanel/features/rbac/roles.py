"""Role Store: persisted roles, their permission grants and registry sync."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hirepanel.common.logging import log_context
from hirepanel.core.rbac import (
    BUILTIN_ROLES,
    PERMISSIONS,
    DuplicateNameError,
    FallbackRoleMisconfiguredError,
    InvalidRequestError,
    RbacError,
    RoleInUseError,
    RoleNotFoundError,
    SystemRoleProtectedError,
    TransientStoreError,
    validate_keys,
)
from hirepanel.core.rbac.errors import translate_store_errors
from hirepanel.features.audit import (
    AuditAction,
    AuditCategory,
    AuditEntry,
    AuditEventType,
    AuditSink,
    DatabaseAuditSink,
)
from hirepanel.settings import Settings
from hirepanel_db.models import Permission, Role, RolePermission, UserRole

from .assignments import AssignmentService, RemovalResult
from .state import touch_permission_states

logger = logging.getLogger(__name__)

MAX_ROLE_NAME_LENGTH = 100
DEFAULT_ROLE_COLOR = "blue"


@dataclass(frozen=True)
class RolePatch:
    """Partial role update. ``None`` leaves a field unchanged."""

    name: str | None = None
    description: str | None = None
    color: str | None = None
    is_active: bool | None = None
    permission_keys: Sequence[str] | None = None


def _normalize_role_name(value: str) -> str:
    candidate = value.strip()
    if not candidate:
        raise InvalidRequestError("Role name is required")
    if len(candidate) > MAX_ROLE_NAME_LENGTH:
        raise InvalidRequestError(f"Role name must be at most {MAX_ROLE_NAME_LENGTH} characters")
    return candidate


def _normalize_description(value: str | None) -> str | None:
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def _normalize_color(value: str | None) -> str:
    candidate = (value or "").strip().lower()
    return candidate or DEFAULT_ROLE_COLOR


def _collect_grants(keys: Iterable[str]) -> tuple[str, ...]:
    normalized = validate_keys(keys)
    if not normalized:
        raise InvalidRequestError("At least one permission is required")
    return normalized


class RoleStore:
    """Owns Role, Permission and RolePermission rows."""

    def __init__(
        self,
        *,
        session: Session,
        settings: Settings,
        audit: AuditSink | None = None,
    ) -> None:
        self._session = session
        self._settings = settings
        self._audit = audit or DatabaseAuditSink(session=session)

    # ------------- registry sync -----------------

    def sync_permission_registry(self) -> None:
        """Upsert the permission catalog and drop rows it no longer lists."""

        logger.debug("rbac.permissions.sync.start")
        existing = {
            permission.key: permission
            for permission in self._session.scalars(select(Permission)).all()
        }
        desired_keys = {definition.key for definition in PERMISSIONS}

        for definition in PERMISSIONS:
            current = existing.get(definition.key)
            if current is None:
                self._session.add(
                    Permission(
                        key=definition.key,
                        resource=definition.resource.value,
                        action=definition.action.value,
                        category=definition.category,
                        description=definition.description,
                    )
                )
                continue
            current.category = definition.category
            current.description = definition.description

        stale_keys = set(existing) - desired_keys
        if stale_keys:
            self._session.execute(delete(Permission).where(Permission.key.in_(tuple(stale_keys))))
        self._session.flush()

        logger.debug(
            "rbac.permissions.sync.success",
            extra=log_context(total=len(PERMISSIONS), removed=len(stale_keys)),
        )

    def ensure_builtin_roles(self) -> list[Role]:
        """Create any built-in role that is missing. Existing roles are left alone."""

        created: list[Role] = []
        for definition in BUILTIN_ROLES:
            if self.get_role_by_name(definition.name) is not None:
                continue
            role = Role(
                name=definition.name,
                description=definition.description,
                color=definition.color,
                is_system=definition.is_system,
                is_active=True,
                position=self._next_position(),
            )
            self._session.add(role)
            self._session.flush()
            self._sync_role_permissions(role=role, permission_keys=definition.permissions)
            created.append(role)
        if created:
            logger.info(
                "rbac.builtin_roles.created",
                extra=log_context(roles=[role.name for role in created]),
            )
        return created

    def sync_registry(self) -> None:
        """Sync the permission catalog and seed built-in roles."""

        with translate_store_errors("registry sync"):
            self.sync_permission_registry()
            self.ensure_builtin_roles()
        self.check_fallback_role()

    # ------------- reads -------------------------

    def list_permissions(self) -> list[Permission]:
        stmt = select(Permission).order_by(Permission.category, Permission.resource, Permission.key)
        return list(self._session.scalars(stmt))

    def list_roles(self) -> list[Role]:
        """All roles in creation order."""

        return list(self._session.scalars(select(Role).order_by(Role.position)))

    def get_role(self, role_id: UUID) -> Role:
        role = self._session.get(Role, role_id)
        if role is None:
            raise RoleNotFoundError(f"Role {role_id} not found")
        return role

    def get_role_by_name(self, name: str) -> Role | None:
        stmt = select(Role).where(func.lower(Role.name) == name.strip().lower()).limit(1)
        return self._session.scalars(stmt).first()

    def require_active_role(self, role_id: UUID) -> Role:
        role = self._session.get(Role, role_id)
        if role is None:
            raise RoleNotFoundError(f"Role {role_id} not found")
        if not role.is_active:
            raise RoleNotFoundError(f"Role '{role.name}' is inactive and cannot be assigned")
        return role

    def fallback_role(self) -> Role:
        """Return the configured fallback role or fail loudly."""

        name = self._settings.fallback_role_name
        role = self.get_role_by_name(name)
        if role is None:
            raise FallbackRoleMisconfiguredError(name, "missing")
        if not role.is_active:
            raise FallbackRoleMisconfiguredError(name, "inactive")
        if role.is_system:
            raise FallbackRoleMisconfiguredError(name, "a system role")
        return role

    def check_fallback_role(self) -> bool:
        try:
            self.fallback_role()
        except FallbackRoleMisconfiguredError as exc:
            logger.error("rbac.fallback_role.misconfigured", extra=log_context(detail=str(exc)))
            return False
        return True

    def holder_ids(self, role_id: UUID) -> list[UUID]:
        stmt = (
            select(UserRole.user_id)
            .where(UserRole.role_id == role_id)
            .order_by(UserRole.assigned_at, UserRole.user_id)
        )
        return list(self._session.scalars(stmt))

    def assignment_counts(self) -> dict[UUID, int]:
        stmt = select(UserRole.role_id, func.count()).group_by(UserRole.role_id)
        return {role_id: int(count) for role_id, count in self._session.execute(stmt).all()}

    # ------------- role CRUD ---------------------

    def create_role(
        self,
        *,
        name: str,
        description: str | None = None,
        color: str | None = None,
        permission_keys: Sequence[str],
        actor_id: UUID | None = None,
    ) -> Role:
        normalized_name = _normalize_role_name(name)
        grants = _collect_grants(permission_keys)

        with translate_store_errors("create role"):
            self._ensure_name_available(normalized_name)
            try:
                with self._session.begin_nested():
                    role = Role(
                        name=normalized_name,
                        description=_normalize_description(description),
                        color=_normalize_color(color),
                        is_system=False,
                        is_active=True,
                        position=self._next_position(),
                        created_by_id=actor_id,
                        updated_by_id=actor_id,
                    )
                    self._session.add(role)
                    self._session.flush()
                    self._sync_role_permissions(role=role, permission_keys=grants)
            except IntegrityError as exc:
                raise self._name_conflict_or_race("create role", normalized_name) from exc
            self._session.refresh(role, attribute_names=["permission_links"])

        logger.info(
            "rbac.role.create",
            extra=log_context(role_id=role.id, actor_id=actor_id, role=role.name),
        )
        self._record(
            AuditEventType.ROLE_CREATED,
            AuditAction.CREATE,
            role,
            actor_id=actor_id,
            description=f"Role '{role.name}' created",
            details={"permissions": sorted(grants)},
        )
        return role

    def update_role(
        self,
        role_id: UUID,
        patch: RolePatch,
        *,
        actor_id: UUID | None = None,
    ) -> Role:
        with translate_store_errors("update role"):
            return self._update_role(role_id, patch, actor_id=actor_id)

    def _update_role(
        self,
        role_id: UUID,
        patch: RolePatch,
        *,
        actor_id: UUID | None,
    ) -> Role:
        role = self.get_role(role_id)

        new_name: str | None = None
        if patch.name is not None:
            candidate = _normalize_role_name(patch.name)
            if candidate != role.name:
                if role.is_system:
                    raise SystemRoleProtectedError(role.name, "system roles cannot be renamed")
                if candidate.lower() != role.name.lower():
                    self._ensure_name_available(candidate)
                new_name = candidate

        if patch.is_active is False and role.is_system and role.is_active:
            raise SystemRoleProtectedError(role.name, "system roles cannot be deactivated")

        grants: tuple[str, ...] | None = None
        if patch.permission_keys is not None:
            grants = _collect_grants(patch.permission_keys)
            if (
                role.is_system
                and self._settings.is_frozen_system_role(role.name)
                and set(grants) != role.permission_keys
            ):
                raise SystemRoleProtectedError(
                    role.name, "its permission grants are frozen by deployment policy"
                )

        before = sorted(role.permission_keys)
        changes: dict[str, object] = {}
        try:
            with self._session.begin_nested():
                if new_name is not None:
                    changes["name"] = {"from": role.name, "to": new_name}
                    role.name = new_name
                if patch.description is not None:
                    role.description = _normalize_description(patch.description)
                    changes["description"] = role.description
                if patch.color is not None:
                    role.color = _normalize_color(patch.color)
                    changes["color"] = role.color
                if patch.is_active is not None and patch.is_active != role.is_active:
                    role.is_active = patch.is_active
                    changes["is_active"] = role.is_active
                if grants is not None and self._sync_role_permissions(
                    role=role, permission_keys=grants
                ):
                    changes["permissions"] = {"before": before, "after": sorted(grants)}
                    # Holders' effective permissions changed; stale their snapshots.
                    touch_permission_states(self._session, self.holder_ids(role.id))
                role.updated_by_id = actor_id
                self._session.flush()
        except IntegrityError as exc:
            if new_name is None:
                raise TransientStoreError(
                    "update role failed: a concurrent write conflicted, retry"
                ) from exc
            raise self._name_conflict_or_race("update role", new_name) from exc

        self._session.refresh(role, attribute_names=["permission_links"])
        logger.info(
            "rbac.role.update",
            extra=log_context(
                role_id=role.id, actor_id=actor_id, role=role.name, fields=sorted(changes)
            ),
        )
        if changes:
            self._record(
                AuditEventType.ROLE_UPDATED,
                AuditAction.UPDATE,
                role,
                actor_id=actor_id,
                description=f"Role '{role.name}' updated",
                details=changes,
            )
        return role

    def delete_role(
        self,
        role_id: UUID,
        *,
        cascade: bool = False,
        actor_id: UUID | None = None,
    ) -> list[RemovalResult]:
        """Delete a non-system role.

        With ``cascade=True`` every holder first loses the role through the
        assignment service's removal path, so each user keeps at least one
        role. Returns the per-user removal results (empty without cascade).
        """

        results: list[RemovalResult] = []
        with translate_store_errors("delete role"):
            role = self.get_role(role_id)
            if role.is_system:
                raise SystemRoleProtectedError(role.name, "system roles cannot be deleted")

            holders = self.holder_ids(role.id)
            if holders and not cascade:
                raise RoleInUseError(role.name, len(holders))

            role_name = role.name
            with self._session.begin_nested():
                if holders:
                    assignments = AssignmentService(
                        session=self._session,
                        settings=self._settings,
                        roles=self,
                        audit=self._audit,
                    )
                    for user_id in holders:
                        results.append(
                            assignments.remove_role(
                                user_id=user_id, role_id=role.id, actor_id=actor_id
                            )
                        )
                # Users whose only role is the fallback role keep it.
                remaining = self.holder_ids(role.id)
                if remaining:
                    raise RoleInUseError(role_name, len(remaining))
                self._session.delete(role)
                self._session.flush()

        logger.info(
            "rbac.role.delete",
            extra=log_context(
                role_id=role_id, actor_id=actor_id, role=role_name, cascaded_users=len(results)
            ),
        )
        self._record(
            AuditEventType.ROLE_DELETED,
            AuditAction.DELETE,
            role,
            actor_id=actor_id,
            description=f"Role '{role_name}' deleted",
            details={
                "cascade": cascade,
                "removed_from": [str(result.user_id) for result in results],
                "fallback_applied_to": [
                    str(result.user_id) for result in results if result.fallback_applied
                ],
            },
        )
        return results

    # ------------- internals ---------------------

    def _ensure_name_available(self, name: str) -> None:
        if self.get_role_by_name(name) is not None:
            raise DuplicateNameError(name)

    def _name_conflict_or_race(self, operation: str, name: str) -> RbacError:
        """Pick the error for a failed role write: taken name, else a lost position race."""

        if self.get_role_by_name(name) is not None:
            return DuplicateNameError(name)
        return TransientStoreError(f"{operation} failed: a concurrent write conflicted, retry")

    def _next_position(self) -> int:
        current = self._session.scalar(select(func.max(Role.position)))
        return int(current or 0) + 1

    def _sync_role_permissions(self, *, role: Role, permission_keys: Sequence[str]) -> bool:
        """Make ``role`` grant exactly ``permission_keys``. Returns True on change."""

        current = {
            link.permission.key: link.permission_id
            for link in self._session.scalars(
                select(RolePermission).where(RolePermission.role_id == role.id)
            )
        }
        desired = set(permission_keys)
        additions = desired - set(current)
        removals = set(current) - desired

        if additions:
            permission_ids = dict(
                self._session.execute(
                    select(Permission.key, Permission.id).where(
                        Permission.key.in_(tuple(additions))
                    )
                ).all()
            )
            missing = sorted(additions - set(permission_ids))
            if missing:
                # Catalog entry not synced into the permissions table yet.
                raise InvalidRequestError(f"Permissions not provisioned: {', '.join(missing)}")
            self._session.add_all(
                RolePermission(role_id=role.id, permission_id=permission_ids[key])
                for key in sorted(additions)
            )

        if removals:
            self._session.execute(
                delete(RolePermission).where(
                    RolePermission.role_id == role.id,
                    RolePermission.permission_id.in_([current[key] for key in removals]),
                )
            )

        self._session.flush()
        if additions or removals:
            self._session.expire(role, ["permission_links"])
        return bool(additions or removals)

    def _record(
        self,
        event_type: AuditEventType,
        action: AuditAction,
        role: Role,
        *,
        actor_id: UUID | None,
        description: str,
        details: dict[str, object],
    ) -> None:
        self._audit.append(
            AuditEntry(
                event_type=event_type,
                category=AuditCategory.AUTH,
                action=action,
                description=description,
                actor_id=actor_id,
                entity_type="role",
                entity_id=str(role.id),
                details=details,
            )
        )


__all__ = ["DEFAULT_ROLE_COLOR", "RolePatch", "RoleStore"]
