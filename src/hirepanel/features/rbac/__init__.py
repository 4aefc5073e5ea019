"""Role-based access control feature: roles, assignments and permission resolution."""

from .assignments import AssignmentService, BulkResult, RemovalResult
from .resolver import PermissionResolver
from .roles import RolePatch, RoleStore
from .service import RbacService
from .session_cache import (
    PermissionContext,
    RoleRef,
    SessionPermissionCache,
    SessionPermissionSnapshot,
)

__all__ = [
    "AssignmentService",
    "BulkResult",
    "PermissionContext",
    "PermissionResolver",
    "RbacService",
    "RemovalResult",
    "RolePatch",
    "RoleRef",
    "RoleStore",
    "SessionPermissionCache",
    "SessionPermissionSnapshot",
]
