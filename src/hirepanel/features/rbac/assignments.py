"""User-role assignment service.

This is the only writer of ``user_roles``. It enforces the no-lockout rule:
an active user never ends up with zero roles. Removing a user's last role
swaps in the configured fallback role inside the same savepoint.

Every mutation locks the user's ``user_permission_states`` row first, so
concurrent mutations for one user run one after another while different
users never contend.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hirepanel.common.logging import log_context
from hirepanel.core.rbac import (
    AssignmentNotFoundError,
    BulkLimitExceededError,
    DuplicateAssignmentError,
    InvalidRequestError,
    RbacError,
    RoleNotFoundError,
    UserInactiveError,
    UserNotFoundError,
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
from hirepanel.features.users import DirectoryUser, SqlUserDirectory, UserDirectory
from hirepanel.settings import Settings
from hirepanel_db import utc_now
from hirepanel_db.models import Role, User, UserRole

from .state import bump_permission_state, lock_permission_state

if TYPE_CHECKING:
    from .roles import RoleStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemovalResult:
    """Outcome of a successful role removal."""

    user_id: UUID
    role_id: UUID
    role_name: str
    fallback_applied: bool
    message: str
    fallback_role_name: str | None = None
    success: bool = True


@dataclass(frozen=True)
class BulkResult:
    """Outcome of a bulk assign/remove call."""

    role_id: UUID
    requested: int
    applied: tuple[UUID, ...] = ()
    skipped: tuple[UUID, ...] = ()
    rejected: dict[UUID, str] = field(default_factory=dict)
    fallback_applied: tuple[UUID, ...] = ()


class AssignmentService:
    """Assign and remove roles for users."""

    def __init__(
        self,
        *,
        session: Session,
        settings: Settings,
        roles: RoleStore,
        directory: UserDirectory | None = None,
        audit: AuditSink | None = None,
    ) -> None:
        self._session = session
        self._settings = settings
        self._roles = roles
        self._directory = directory or SqlUserDirectory(session=session)
        self._audit = audit or DatabaseAuditSink(session=session)

    # ------------- read path ---------------------

    def require_user(self, user_id: UUID) -> DirectoryUser:
        user = self._directory.get_user(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    def list_user_roles(self, user_id: UUID) -> list[Role]:
        """The user's roles, earliest assignment first."""

        self.require_user(user_id)
        return [assignment.role for assignment in self._assignments_for(user_id)]

    def get_primary_role(self, user_id: UUID) -> Role | None:
        """First assigned role; ties on ``assigned_at`` break by role creation order."""

        roles = self.list_user_roles(user_id)
        return roles[0] if roles else None

    def list_role_users(self, role_id: UUID) -> list[DirectoryUser]:
        self._roles.get_role(role_id)
        stmt = (
            select(User)
            .join(UserRole, UserRole.user_id == User.id)
            .where(UserRole.role_id == role_id)
            .order_by(User.email)
        )
        return [DirectoryUser.from_model(user) for user in self._session.scalars(stmt)]

    def list_available_users(self, role_id: UUID) -> list[DirectoryUser]:
        """Active users that do not hold ``role_id`` yet."""

        self._roles.get_role(role_id)
        holders = select(UserRole.user_id).where(UserRole.role_id == role_id)
        stmt = (
            select(User)
            .where(User.is_active.is_(True), User.id.not_in(holders))
            .order_by(User.email)
        )
        return [DirectoryUser.from_model(user) for user in self._session.scalars(stmt)]

    # ------------- mutations ---------------------

    def assign_role(
        self,
        *,
        user_id: UUID,
        role_id: UUID,
        actor_id: UUID | None = None,
    ) -> list[Role]:
        """Give ``user_id`` the role and return their updated role list."""

        with translate_store_errors("assign role"):
            role = self._roles.require_active_role(role_id)
            user = self.require_user(user_id)
            if not user.is_active:
                raise UserInactiveError(f"User {user.label} is inactive")

            try:
                with self._session.begin_nested():
                    state = lock_permission_state(self._session, user_id)
                    before = self._assignments_for(user_id)
                    if any(assignment.role_id == role_id for assignment in before):
                        raise DuplicateAssignmentError(role.name)
                    self._session.add(
                        UserRole(
                            user_id=user_id,
                            role_id=role_id,
                            assigned_at=utc_now(),
                            assigned_by_id=actor_id,
                        )
                    )
                    bump_permission_state(self._session, state)
                    self._session.flush()
            except IntegrityError as exc:
                error = self._explain_integrity_error(user_id=user_id, role=role)
                if error is None:
                    raise
                raise error from exc

            after = self._assignments_for(user_id)

        logger.info(
            "rbac.assign.success",
            extra=log_context(user_id=user_id, role_id=role_id, actor_id=actor_id, role=role.name),
        )
        self._record(
            AuditEventType.ROLE_ASSIGNED,
            user_id=user_id,
            actor_id=actor_id,
            description=f"Role '{role.name}' assigned to {user.label}",
            details={
                "role": role.name,
                "before": [assignment.role.name for assignment in before],
                "after": [assignment.role.name for assignment in after],
                "fallback_applied": False,
            },
        )
        return [assignment.role for assignment in after]

    def remove_role(
        self,
        *,
        user_id: UUID,
        role_id: UUID,
        actor_id: UUID | None = None,
    ) -> RemovalResult:
        """Take the role away, substituting the fallback role if it was the last one.

        Either the role is gone and the user still holds another role (or
        the fallback), or nothing changed. Removing the fallback role from a
        user who holds nothing else re-binds it, so the user keeps it.
        """

        with translate_store_errors("remove role"):
            user = self.require_user(user_id)
            with self._session.begin_nested():
                state = lock_permission_state(self._session, user_id)
                before = self._assignments_for(user_id)
                target = next((a for a in before if a.role_id == role_id), None)
                if target is None:
                    raise AssignmentNotFoundError(
                        f"User {user.label} is not assigned to role {role_id}"
                    )
                role = target.role

                fallback: Role | None = None
                if len(before) == 1:
                    fallback = self._roles.fallback_role()

                if fallback is not None and fallback.id == role_id:
                    target.assigned_at = utc_now()
                    target.assigned_by_id = actor_id
                else:
                    self._session.delete(target)
                    self._session.flush()
                    if fallback is not None:
                        self._session.add(
                            UserRole(
                                user_id=user_id,
                                role_id=fallback.id,
                                assigned_at=utc_now(),
                                assigned_by_id=actor_id,
                            )
                        )
                bump_permission_state(self._session, state)
                self._session.flush()

            after = self._assignments_for(user_id)

        if fallback is not None:
            message = (
                f"{role.name} removed; {fallback.name} assigned automatically "
                "to preserve system access"
            )
            logger.info(
                "rbac.remove.fallback_applied",
                extra=log_context(
                    user_id=user_id,
                    role_id=role_id,
                    actor_id=actor_id,
                    role=role.name,
                    fallback_role=fallback.name,
                ),
            )
        else:
            message = f"{role.name} removed"
            logger.info(
                "rbac.remove.success",
                extra=log_context(
                    user_id=user_id, role_id=role_id, actor_id=actor_id, role=role.name
                ),
            )

        self._record(
            AuditEventType.ROLE_FALLBACK_APPLIED if fallback else AuditEventType.ROLE_REMOVED,
            user_id=user_id,
            actor_id=actor_id,
            description=f"{message} ({user.label})",
            details={
                "role": role.name,
                "before": [assignment.role.name for assignment in before],
                "after": [assignment.role.name for assignment in after],
                "fallback_applied": fallback is not None,
                "fallback_role": fallback.name if fallback else None,
            },
        )
        return RemovalResult(
            user_id=user_id,
            role_id=role_id,
            role_name=role.name,
            fallback_applied=fallback is not None,
            fallback_role_name=fallback.name if fallback else None,
            message=message,
        )

    # ------------- bulk --------------------------

    def bulk_assign(
        self,
        *,
        role_id: UUID,
        user_ids: Sequence[UUID],
        actor_id: UUID | None = None,
    ) -> BulkResult:
        """Assign one role to many users; users already holding it are skipped."""

        unique_ids = self._check_bulk_request(user_ids)
        self._roles.require_active_role(role_id)

        applied: list[UUID] = []
        skipped: list[UUID] = []
        rejected: dict[UUID, str] = {}
        for user_id in unique_ids:
            try:
                self.assign_role(user_id=user_id, role_id=role_id, actor_id=actor_id)
            except DuplicateAssignmentError:
                skipped.append(user_id)
            except (UserNotFoundError, UserInactiveError) as exc:
                rejected[user_id] = exc.message
            else:
                applied.append(user_id)

        logger.info(
            "rbac.bulk_assign.complete",
            extra=log_context(
                role_id=role_id,
                actor_id=actor_id,
                requested=len(unique_ids),
                applied=len(applied),
                skipped=len(skipped),
                rejected=len(rejected),
            ),
        )
        return BulkResult(
            role_id=role_id,
            requested=len(unique_ids),
            applied=tuple(applied),
            skipped=tuple(skipped),
            rejected=rejected,
        )

    def bulk_remove(
        self,
        *,
        role_id: UUID,
        user_ids: Sequence[UUID],
        actor_id: UUID | None = None,
    ) -> BulkResult:
        """Remove one role from many users, each through :meth:`remove_role`."""

        unique_ids = self._check_bulk_request(user_ids)
        self._roles.get_role(role_id)

        applied: list[UUID] = []
        skipped: list[UUID] = []
        fallback_applied: list[UUID] = []
        rejected: dict[UUID, str] = {}
        for user_id in unique_ids:
            try:
                result = self.remove_role(user_id=user_id, role_id=role_id, actor_id=actor_id)
            except AssignmentNotFoundError:
                skipped.append(user_id)
            except UserNotFoundError as exc:
                rejected[user_id] = exc.message
            else:
                applied.append(user_id)
                if result.fallback_applied:
                    fallback_applied.append(user_id)

        logger.info(
            "rbac.bulk_remove.complete",
            extra=log_context(
                role_id=role_id,
                actor_id=actor_id,
                requested=len(unique_ids),
                applied=len(applied),
                skipped=len(skipped),
                fallback_applied=len(fallback_applied),
            ),
        )
        return BulkResult(
            role_id=role_id,
            requested=len(unique_ids),
            applied=tuple(applied),
            skipped=tuple(skipped),
            rejected=rejected,
            fallback_applied=tuple(fallback_applied),
        )

    # ------------- internals ---------------------

    def _assignments_for(self, user_id: UUID) -> list[UserRole]:
        stmt = (
            select(UserRole)
            .join(Role, Role.id == UserRole.role_id)
            .where(UserRole.user_id == user_id)
            .order_by(UserRole.assigned_at, Role.position)
        )
        return list(self._session.scalars(stmt))

    def _explain_integrity_error(self, *, user_id: UUID, role: Role) -> RbacError | None:
        """Name the constraint a failed assignment insert ran into, if it is ours."""

        exists = select(UserRole.user_id).where(
            UserRole.user_id == user_id, UserRole.role_id == role.id
        )
        if self._session.scalar(exists) is not None:
            return DuplicateAssignmentError(role.name)
        if self._session.scalar(select(User.id).where(User.id == user_id)) is None:
            return UserNotFoundError(f"User {user_id} not found")
        if self._session.scalar(select(Role.id).where(Role.id == role.id)) is None:
            return RoleNotFoundError(f"Role '{role.name}' not found")
        return None

    def _check_bulk_request(self, user_ids: Iterable[UUID]) -> list[UUID]:
        unique_ids = list(dict.fromkeys(user_ids))
        if not unique_ids:
            raise InvalidRequestError("At least one user id is required")
        limit = self._settings.bulk_assignment_limit
        if len(unique_ids) > limit:
            raise BulkLimitExceededError(requested=len(unique_ids), limit=limit)
        return unique_ids

    def _record(
        self,
        event_type: AuditEventType,
        *,
        user_id: UUID,
        actor_id: UUID | None,
        description: str,
        details: dict[str, object],
    ) -> None:
        self._audit.append(
            AuditEntry(
                event_type=event_type,
                category=AuditCategory.AUTH,
                action=AuditAction.UPDATE,
                description=description,
                actor_id=actor_id,
                target_user_id=user_id,
                entity_type="user",
                entity_id=str(user_id),
                details=details,
            )
        )


__all__ = ["AssignmentService", "BulkResult", "RemovalResult"]
