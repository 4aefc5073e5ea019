"""RBAC contracts and registries shared across features."""

from .errors import (
    AssignmentNotFoundError,
    BulkLimitExceededError,
    DuplicateAssignmentError,
    DuplicateNameError,
    FallbackRoleMisconfiguredError,
    InvalidRequestError,
    RbacError,
    RbacPolicyError,
    RbacValidationError,
    RoleInUseError,
    RoleNotFoundError,
    SystemRoleProtectedError,
    TransientStoreError,
    UnknownPermissionError,
    UserInactiveError,
    UserNotFoundError,
)
from .registry import (
    BUILTIN_ROLE_BY_NAME,
    BUILTIN_ROLES,
    PERMISSION_REGISTRY,
    PERMISSIONS,
    all_permissions,
    is_valid,
    key_of,
    parse_key,
    validate_keys,
)
from .types import Action, BuiltinRoleDef, PermissionDef, Resource, permission_key

__all__ = [
    "Action",
    "AssignmentNotFoundError",
    "BUILTIN_ROLES",
    "BUILTIN_ROLE_BY_NAME",
    "BuiltinRoleDef",
    "BulkLimitExceededError",
    "DuplicateAssignmentError",
    "DuplicateNameError",
    "FallbackRoleMisconfiguredError",
    "InvalidRequestError",
    "PERMISSIONS",
    "PERMISSION_REGISTRY",
    "PermissionDef",
    "RbacError",
    "RbacPolicyError",
    "RbacValidationError",
    "Resource",
    "RoleInUseError",
    "RoleNotFoundError",
    "SystemRoleProtectedError",
    "TransientStoreError",
    "UnknownPermissionError",
    "UserInactiveError",
    "UserNotFoundError",
    "all_permissions",
    "is_valid",
    "key_of",
    "parse_key",
    "permission_key",
    "validate_keys",
]
