"""RBAC models: permission catalog rows, roles and user assignments."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..metadata import Base
from ..mixins import TimestampMixin, UUIDPrimaryKeyMixin, utc_now
from ..types import UTCDateTime, UUIDType
from .user import User


class Permission(UUIDPrimaryKeyMixin, Base):
    """Persisted copy of a catalog entry; rows are managed by registry sync."""

    __tablename__ = "permissions"

    key: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    resource: Mapped[str] = mapped_column(String(60), nullable=False)
    action: Mapped[str] = mapped_column(String(60), nullable=False)
    category: Mapped[str] = mapped_column(String(60), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("resource", "action", name="uq_permissions_resource_action"),
    )


class Role(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Named bundle of permission grants."""

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(32), nullable=False, default="blue")
    is_system: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
    )
    # Monotonic creation sequence; listings order by it.
    position: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    created_by_id: Mapped[UUID | None] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_by_id: Mapped[UUID | None] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    permission_links: Mapped[list[RolePermission]] = relationship(
        "RolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def permission_keys(self) -> frozenset[str]:
        return frozenset(link.permission.key for link in self.permission_links)


class RolePermission(Base):
    """Bridge table linking roles and permissions."""

    __tablename__ = "role_permissions"

    role_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
    )
    permission_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
    )

    role: Mapped[Role] = relationship("Role", back_populates="permission_links")
    permission: Mapped[Permission] = relationship("Permission", lazy="joined")


class UserRole(Base):
    """Assignment of a role to a user.

    Rows are written only by the assignment service.
    """

    __tablename__ = "user_roles"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("roles.id", ondelete="NO ACTION"), primary_key=True
    )
    assigned_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utc_now
    )
    assigned_by_id: Mapped[UUID | None] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    role: Mapped[Role] = relationship("Role", lazy="joined")
    user: Mapped[User] = relationship("User", foreign_keys=[user_id])

    __table_args__ = (Index("ix_user_roles_role_id", "role_id"),)


class UserPermissionState(Base):
    """Per-user permission version.

    Bumped whenever the user's effective permissions may have changed, and
    locked by assignment mutations to serialize them per user.
    """

    __tablename__ = "user_permission_states"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    changed_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utc_now
    )


__all__ = ["Permission", "Role", "RolePermission", "UserPermissionState", "UserRole"]
