"""Canonical permission catalog and built-in roles.

The catalog is the closed universe of checkable capabilities. Every role
grant is validated against it, and keys are checked for uniqueness when
this module is imported.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .errors import UnknownPermissionError
from .types import Action, BuiltinRoleDef, PermissionDef, Resource, permission_key


def _permissions(
    resource: Resource,
    category: str,
    actions: Mapping[Action, str],
) -> tuple[PermissionDef, ...]:
    return tuple(
        PermissionDef(resource=resource, action=action, category=category, description=text)
        for action, text in actions.items()
    )


PERMISSIONS: tuple[PermissionDef, ...] = (
    # Recruiting ----------------------------------------------------------
    *_permissions(
        Resource.JOBS,
        "Recruiting",
        {
            Action.VIEW: "Browse job postings, including drafts.",
            Action.CREATE: "Create new job postings.",
            Action.EDIT: "Edit existing job postings.",
            Action.DELETE: "Delete job postings.",
            Action.PUBLISH: "Publish or unpublish job postings.",
            Action.FEATURE: "Mark job postings as featured.",
            Action.CLONE: "Duplicate an existing job posting.",
            Action.EXPORT: "Export job data.",
        },
    ),
    *_permissions(
        Resource.APPLICATIONS,
        "Recruiting",
        {
            Action.VIEW: "View candidate applications.",
            Action.CREATE: "Create applications on behalf of candidates.",
            Action.EDIT: "Edit application details.",
            Action.DELETE: "Delete applications.",
            Action.STATUS_CHANGE: "Move applications between pipeline stages.",
            Action.ASSIGN: "Assign applications to reviewers.",
            Action.NOTES: "Read and write internal application notes.",
            Action.BULK_ACTIONS: "Apply actions to many applications at once.",
            Action.EXPORT: "Export application data.",
        },
    ),
    *_permissions(
        Resource.INTERVIEWS,
        "Recruiting",
        {
            Action.VIEW: "View scheduled interviews.",
            Action.CREATE: "Schedule interviews.",
            Action.EDIT: "Edit interview details and feedback.",
            Action.DELETE: "Cancel interviews.",
            Action.RESCHEDULE: "Reschedule interviews.",
            Action.CALENDAR: "Access the interview calendar.",
        },
    ),
    # Communication -------------------------------------------------------
    *_permissions(
        Resource.EMAILS,
        "Communication",
        {
            Action.VIEW: "View sent candidate emails.",
            Action.SEND: "Send emails to candidates.",
            Action.TEMPLATES: "Manage email templates.",
            Action.AUTOMATION: "Configure automated emails.",
        },
    ),
    *_permissions(
        Resource.WEEKLY_DIGEST,
        "Communication",
        {
            Action.VIEW: "View the weekly digest configuration.",
            Action.EDIT: "Change digest recipients and content.",
            Action.SEND: "Send the weekly digest on demand.",
        },
    ),
    # Insights ------------------------------------------------------------
    *_permissions(
        Resource.ANALYTICS,
        "Insights",
        {
            Action.VIEW: "View hiring analytics dashboards.",
            Action.EXPORT: "Export analytics data.",
            Action.ADVANCED: "Use advanced analytics and custom reports.",
        },
    ),
    *_permissions(
        Resource.AUDIT_LOGS,
        "Insights",
        {
            Action.VIEW: "View audit and security logs.",
            Action.EXPORT: "Export audit logs.",
        },
    ),
    # Administration ------------------------------------------------------
    *_permissions(
        Resource.USERS,
        "Administration",
        {
            Action.VIEW: "View platform users.",
            Action.CREATE: "Create platform users.",
            Action.EDIT: "Edit platform users.",
            Action.DELETE: "Delete platform users.",
            Action.ROLES: "Change which roles a user holds.",
            Action.IMPERSONATE: "Sign in as another user for support.",
        },
    ),
    *_permissions(
        Resource.ROLES,
        "Administration",
        {
            Action.VIEW: "View roles and their permissions.",
            Action.CREATE: "Create roles.",
            Action.EDIT: "Edit roles and their permission grants.",
            Action.DELETE: "Delete non-system roles.",
            Action.ASSIGN: "Assign roles to users and remove them.",
        },
    ),
    *_permissions(
        Resource.SETTINGS,
        "Administration",
        {
            Action.VIEW: "View platform settings.",
            Action.EDIT_SYSTEM: "Change system-level settings.",
            Action.EDIT_BRANDING: "Change logos, colors and themes.",
            Action.EDIT_NOTIFICATIONS: "Change notification settings.",
            Action.INTEGRATIONS: "Manage third-party integrations.",
        },
    ),
)


def _build_registry(definitions: Iterable[PermissionDef]) -> dict[str, PermissionDef]:
    registry: dict[str, PermissionDef] = {}
    for definition in definitions:
        if definition.key in registry:
            raise RuntimeError(f"Duplicate permission key in catalog: {definition.key}")
        registry[definition.key] = definition
    return registry


PERMISSION_REGISTRY: dict[str, PermissionDef] = _build_registry(PERMISSIONS)

_ALL_KEYS: tuple[str, ...] = tuple(PERMISSION_REGISTRY)

BUILTIN_ROLES: tuple[BuiltinRoleDef, ...] = (
    BuiltinRoleDef(
        name="Super Admin",
        description="Full platform access, including role and system administration.",
        permissions=_ALL_KEYS,
        color="red",
        is_system=True,
    ),
    BuiltinRoleDef(
        name="Admin",
        description="Day-to-day administration without system-level settings.",
        permissions=tuple(
            key
            for key in _ALL_KEYS
            if key not in {"settings:edit_system", "users:impersonate", "roles:delete"}
        ),
        color="purple",
        is_system=True,
    ),
    BuiltinRoleDef(
        name="HR",
        description="Recruiters working the hiring pipeline.",
        permissions=(
            "jobs:view",
            "jobs:create",
            "jobs:edit",
            "applications:view",
            "applications:edit",
            "applications:status_change",
            "applications:notes",
            "interviews:view",
            "interviews:create",
            "interviews:edit",
            "interviews:reschedule",
            "interviews:calendar",
            "emails:view",
            "emails:send",
        ),
        color="green",
    ),
    BuiltinRoleDef(
        name="User",
        description="Default minimal-privilege role that keeps a user signed in.",
        permissions=("jobs:view",),
        color="gray",
    ),
)

BUILTIN_ROLE_BY_NAME: dict[str, BuiltinRoleDef] = {role.name: role for role in BUILTIN_ROLES}


# ---------------------------------------------------------------------------
# Catalog operations
# ---------------------------------------------------------------------------


def all_permissions() -> frozenset[tuple[Resource, Action]]:
    """Every valid ``(resource, action)`` pair."""

    return frozenset((definition.resource, definition.action) for definition in PERMISSIONS)


def _coerce_pair(
    resource: Resource | str,
    action: Action | str,
) -> tuple[Resource, Action] | None:
    try:
        return Resource(resource), Action(action)
    except ValueError:
        return None


def key_of(resource: Resource | str, action: Action | str) -> str:
    """Return the catalog key for ``(resource, action)``; pairs outside the catalog raise."""

    pair = _coerce_pair(resource, action)
    if pair is None or permission_key(*pair) not in PERMISSION_REGISTRY:
        raise UnknownPermissionError(f"{_raw(resource)}:{_raw(action)}")
    return permission_key(*pair)


def is_valid(resource: Resource | str, action: Action | str) -> bool:
    pair = _coerce_pair(resource, action)
    return pair is not None and permission_key(*pair) in PERMISSION_REGISTRY


def parse_key(key: str) -> PermissionDef:
    """Look up a catalog entry by its ``resource:action`` key."""

    definition = PERMISSION_REGISTRY.get(key.strip().lower())
    if definition is None:
        raise UnknownPermissionError(key)
    return definition


def validate_keys(keys: Iterable[str]) -> tuple[str, ...]:
    """Normalize and de-duplicate ``keys``, rejecting any not in the catalog.

    Order of first appearance is preserved. All unknown keys are reported
    together.
    """

    normalized: list[str] = []
    unknown: list[str] = []
    seen: set[str] = set()
    for raw in keys:
        key = raw.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        if key in PERMISSION_REGISTRY:
            normalized.append(key)
        else:
            unknown.append(raw)
    if unknown:
        raise UnknownPermissionError(unknown)
    return tuple(normalized)


def _raw(value: Resource | Action | str) -> str:
    return getattr(value, "value", str(value))


__all__ = [
    "BUILTIN_ROLES",
    "BUILTIN_ROLE_BY_NAME",
    "PERMISSIONS",
    "PERMISSION_REGISTRY",
    "all_permissions",
    "is_valid",
    "key_of",
    "parse_key",
    "validate_keys",
]
