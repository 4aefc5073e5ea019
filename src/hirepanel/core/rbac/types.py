"""RBAC type definitions: the closed resource/action vocabulary."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Resource(str, enum.Enum):
    """Things an administrator can act on."""

    JOBS = "jobs"
    APPLICATIONS = "applications"
    USERS = "users"
    INTERVIEWS = "interviews"
    ANALYTICS = "analytics"
    SETTINGS = "settings"
    EMAILS = "emails"
    WEEKLY_DIGEST = "weekly_digest"
    AUDIT_LOGS = "audit_logs"
    ROLES = "roles"


class Action(str, enum.Enum):
    """Verbs that combine with a resource to form a permission."""

    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    PUBLISH = "publish"
    FEATURE = "feature"
    CLONE = "clone"
    EXPORT = "export"
    STATUS_CHANGE = "status_change"
    ASSIGN = "assign"
    NOTES = "notes"
    BULK_ACTIONS = "bulk_actions"
    IMPERSONATE = "impersonate"
    ROLES = "roles"
    RESCHEDULE = "reschedule"
    CALENDAR = "calendar"
    ADVANCED = "advanced"
    EDIT_SYSTEM = "edit_system"
    EDIT_BRANDING = "edit_branding"
    EDIT_NOTIFICATIONS = "edit_notifications"
    INTEGRATIONS = "integrations"
    SEND = "send"
    TEMPLATES = "templates"
    AUTOMATION = "automation"


def permission_key(resource: Resource, action: Action) -> str:
    """Canonical ``resource:action`` string for a pair."""

    return f"{resource.value}:{action.value}"


@dataclass(frozen=True)
class PermissionDef:
    """Static permission definition."""

    resource: Resource
    action: Action
    category: str
    description: str

    @property
    def key(self) -> str:
        return permission_key(self.resource, self.action)


@dataclass(frozen=True)
class BuiltinRoleDef:
    """Role seeded at startup when missing."""

    name: str
    description: str
    permissions: tuple[str, ...]
    color: str = "blue"
    is_system: bool = False


__all__ = ["Action", "BuiltinRoleDef", "PermissionDef", "Resource", "permission_key"]
