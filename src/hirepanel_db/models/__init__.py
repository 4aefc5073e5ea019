"""Central exports for HirePanel SQLAlchemy models."""

from .audit import AuditLogEntry
from .rbac import Permission, Role, RolePermission, UserPermissionState, UserRole
from .user import User

__all__ = [
    "AuditLogEntry",
    "Permission",
    "Role",
    "RolePermission",
    "User",
    "UserPermissionState",
    "UserRole",
]
