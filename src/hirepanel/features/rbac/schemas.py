"""Pydantic schemas for the RBAC API."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from hirepanel.common.schema import BaseSchema
from hirepanel_db.models import Permission, Role

from .assignments import BulkResult, RemovalResult
from .session_cache import SessionPermissionSnapshot


class PermissionOut(BaseSchema):
    """Serialized permission catalog entry."""

    key: str
    resource: str
    action: str
    category: str
    description: str

    @classmethod
    def from_model(cls, permission: Permission) -> PermissionOut:
        return cls.model_validate(permission)


class RoleOut(BaseSchema):
    """Serialized role with its grants."""

    id: UUID
    name: str
    description: str | None = None
    color: str
    is_system: bool
    is_active: bool
    permissions: list[str]
    user_count: int | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, role: Role, *, user_count: int | None = None) -> RoleOut:
        return cls(
            id=role.id,
            name=role.name,
            description=role.description,
            color=role.color,
            is_system=role.is_system,
            is_active=role.is_active,
            permissions=sorted(role.permission_keys),
            user_count=user_count,
            created_at=role.created_at,
            updated_at=role.updated_at,
        )


class RoleCreate(BaseSchema):
    """Payload for creating a custom role."""

    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    color: str | None = Field(default=None, max_length=32)
    permissions: list[str] = Field(min_length=1)


class RoleUpdate(BaseSchema):
    """Partial role update; omitted fields stay unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    color: str | None = Field(default=None, max_length=32)
    is_active: bool | None = None
    permissions: list[str] | None = None


class UserOut(BaseSchema):
    id: UUID
    email: str
    display_name: str | None = None
    is_active: bool


class UserRolesOut(BaseSchema):
    """A user's roles in assignment order; the first one is the primary role."""

    user_id: UUID
    roles: list[RoleOut]
    primary_role_id: UUID | None = None


class RoleUsersOut(BaseSchema):
    """Users holding a role plus active users that could be given it."""

    role_id: UUID
    users: list[UserOut]
    available: list[UserOut] = Field(default_factory=list)


class RemovalOut(BaseSchema):
    success: bool
    user_id: UUID
    role_id: UUID
    role_name: str
    fallback_applied: bool
    fallback_role_name: str | None = None
    message: str

    @classmethod
    def from_result(cls, result: RemovalResult) -> RemovalOut:
        return cls(
            success=result.success,
            user_id=result.user_id,
            role_id=result.role_id,
            role_name=result.role_name,
            fallback_applied=result.fallback_applied,
            fallback_role_name=result.fallback_role_name,
            message=result.message,
        )


class RoleDeleteOut(BaseSchema):
    role_id: UUID
    removed: list[RemovalOut] = Field(default_factory=list)


class BulkRequest(BaseSchema):
    user_ids: list[UUID]


class BulkOut(BaseSchema):
    role_id: UUID
    requested: int
    applied: list[UUID]
    skipped: list[UUID]
    rejected: dict[UUID, str]
    fallback_applied: list[UUID]

    @classmethod
    def from_result(cls, result: BulkResult) -> BulkOut:
        return cls(
            role_id=result.role_id,
            requested=result.requested,
            applied=list(result.applied),
            skipped=list(result.skipped),
            rejected=dict(result.rejected),
            fallback_applied=list(result.fallback_applied),
        )


class RoleRefOut(BaseSchema):
    id: UUID
    name: str
    color: str


class PermissionSetOut(BaseSchema):
    """Effective permissions of a user."""

    user_id: UUID
    permissions: list[str]
    primary_role: RoleRefOut | None = None
    version: int | None = None
    last_updated: datetime | None = None

    @classmethod
    def from_snapshot(cls, snapshot: SessionPermissionSnapshot) -> PermissionSetOut:
        role = snapshot.primary_role
        return cls(
            user_id=snapshot.user_id,
            permissions=sorted(snapshot.permissions),
            primary_role=(
                RoleRefOut(id=role.id, name=role.name, color=role.color) if role else None
            ),
            version=snapshot.version,
            last_updated=snapshot.last_updated,
        )


__all__ = [
    "BulkOut",
    "BulkRequest",
    "PermissionOut",
    "PermissionSetOut",
    "RemovalOut",
    "RoleCreate",
    "RoleDeleteOut",
    "RoleOut",
    "RoleRefOut",
    "RoleUpdate",
    "RoleUsersOut",
    "UserOut",
    "UserRolesOut",
]
