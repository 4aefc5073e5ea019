"""Permission Resolver: union of permission keys across a user's roles."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from hirepanel.core.rbac import Action, Resource, is_valid, key_of

from .assignments import AssignmentService
from .state import current_permission_state, memo_for

logger = logging.getLogger(__name__)


class PermissionResolver:
    """Read-only resolver over current roles and assignments.

    Results are memoized per database session and keyed by the user's
    permission version, so any assignment change or grant edit is picked up
    on the next call.
    """

    def __init__(self, *, session: Session, assignments: AssignmentService) -> None:
        self._session = session
        self._assignments = assignments
        self._memo = memo_for(session)

    def resolve(self, user_id: UUID) -> frozenset[str]:
        """Return the set of permission keys ``user_id`` currently holds."""

        version, _ = current_permission_state(self._session, user_id)
        cached = self._memo.get(user_id)
        if cached is not None and cached[0] == version:
            return cached[1]

        roles = self._assignments.list_user_roles(user_id)
        permissions = frozenset().union(*(role.permission_keys for role in roles))
        self._memo[user_id] = (version, permissions)
        logger.debug(
            "rbac.permissions.resolved",
            extra={"user_id": str(user_id), "roles": len(roles), "permissions": len(permissions)},
        )
        return permissions

    def invalidate(self, user_id: UUID) -> None:
        self._memo.pop(user_id, None)

    def has_permission(self, user_id: UUID, resource: Resource | str, action: Action | str) -> bool:
        if not is_valid(resource, action):
            return False
        return key_of(resource, action) in self.resolve(user_id)

    def has_any_permission_for_resource(self, user_id: UUID, resource: Resource | str) -> bool:
        try:
            prefix = f"{Resource(resource).value}:"
        except ValueError:
            return False
        return any(key.startswith(prefix) for key in self.resolve(user_id))

    def check_permissions(
        self,
        user_id: UUID,
        checks: Iterable[tuple[Resource | str, Action | str]],
    ) -> dict[str, bool]:
        """Evaluate many ``(resource, action)`` pairs with one resolution."""

        granted = self.resolve(user_id)
        results: dict[str, bool] = {}
        for resource, action in checks:
            key = f"{getattr(resource, 'value', resource)}:{getattr(action, 'value', action)}"
            results[key] = is_valid(resource, action) and key in granted
        return results


__all__ = ["PermissionResolver"]
