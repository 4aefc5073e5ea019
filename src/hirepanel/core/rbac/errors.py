"""RBAC error taxonomy.

Validation errors are caller-correctable, policy errors mean the requested
mutation conflicts with an invariant, transient errors are safe to retry.
Every class carries the Problem Details type and HTTP status it maps to.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError, OperationalError


class RbacError(Exception):
    """Base class for RBAC failures surfaced to administrators."""

    error_type = "bad_request"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ---------------------------------------------------------------------------
# Validation errors
# ---------------------------------------------------------------------------


class RbacValidationError(RbacError, ValueError):
    """The request references something that does not exist or is malformed."""

    error_type = "validation_error"
    status_code = 422


class RoleNotFoundError(RbacValidationError):
    error_type = "not_found"
    status_code = 404


class UserNotFoundError(RbacValidationError):
    error_type = "not_found"
    status_code = 404


class AssignmentNotFoundError(RbacValidationError):
    error_type = "not_found"
    status_code = 404


class UserInactiveError(RbacValidationError):
    pass


class UnknownPermissionError(RbacValidationError):
    def __init__(self, keys: str | list[str]) -> None:
        self.keys = [keys] if isinstance(keys, str) else list(keys)
        joined = ", ".join(self.keys)
        super().__init__(f"Unknown permission(s): {joined}")


class InvalidRequestError(RbacValidationError):
    """Request payload failed validation (blank role name, no permissions, ...)."""


class BulkLimitExceededError(RbacValidationError):
    def __init__(self, *, requested: int, limit: int) -> None:
        self.requested = requested
        self.limit = limit
        super().__init__(f"Cannot process more than {limit} users at once ({requested} requested)")


# ---------------------------------------------------------------------------
# Policy errors
# ---------------------------------------------------------------------------


class RbacPolicyError(RbacError):
    """The mutation conflicts with an RBAC invariant; state is unchanged."""

    error_type = "conflict"
    status_code = 409


class DuplicateAssignmentError(RbacPolicyError):
    def __init__(self, role_name: str) -> None:
        self.role_name = role_name
        super().__init__(f"User is already assigned to the '{role_name}' role")


class DuplicateNameError(RbacPolicyError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"A role named '{name}' already exists")


class SystemRoleProtectedError(RbacPolicyError):
    def __init__(self, role_name: str, reason: str) -> None:
        self.role_name = role_name
        super().__init__(f"System role '{role_name}' is protected: {reason}")


class RoleInUseError(RbacPolicyError):
    def __init__(self, role_name: str, assigned_count: int) -> None:
        self.role_name = role_name
        self.assigned_count = assigned_count
        noun = "user" if assigned_count == 1 else "users"
        super().__init__(
            f"Cannot delete role '{role_name}': it is assigned to {assigned_count} {noun}"
        )


# ---------------------------------------------------------------------------
# Infrastructure errors
# ---------------------------------------------------------------------------


class TransientStoreError(RbacError):
    """The store was unavailable or a concurrent write won; the caller may retry."""

    error_type = "service_unavailable"
    status_code = 503


class FallbackRoleMisconfiguredError(RbacError):
    """The configured fallback role is missing, inactive or a system role."""

    error_type = "internal_error"
    status_code = 500

    def __init__(self, role_name: str, reason: str) -> None:
        self.role_name = role_name
        super().__init__(f"Fallback role '{role_name}' is {reason}")


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    """Re-raise lock timeouts and connection failures as ``TransientStoreError``."""

    try:
        yield
    except OperationalError as exc:
        raise TransientStoreError(f"{operation} failed: the data store is unavailable") from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise TransientStoreError(
                f"{operation} failed: lost connection to the data store"
            ) from exc
        raise


__all__ = [
    "AssignmentNotFoundError",
    "BulkLimitExceededError",
    "DuplicateAssignmentError",
    "DuplicateNameError",
    "FallbackRoleMisconfiguredError",
    "InvalidRequestError",
    "RbacError",
    "RbacPolicyError",
    "RbacValidationError",
    "RoleInUseError",
    "RoleNotFoundError",
    "SystemRoleProtectedError",
    "TransientStoreError",
    "UnknownPermissionError",
    "UserInactiveError",
    "UserNotFoundError",
    "translate_store_errors",
]
