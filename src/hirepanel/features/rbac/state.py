"""Per-user permission state: lock row, version stamp and resolver memo."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hirepanel_db import utc_now
from hirepanel_db.models import UserPermissionState

_MEMO_KEY = "rbac_resolved_permissions"


def lock_permission_state(session: Session, user_id: UUID) -> UserPermissionState:
    """Lock (creating on first use) the state row that serializes a user's mutations."""

    state = _select_for_update(session, user_id)
    if state is not None:
        return state
    try:
        with session.begin_nested():
            session.add(UserPermissionState(user_id=user_id, version=0, changed_at=utc_now()))
    except IntegrityError:
        # Another transaction created the row first (lock theirs) or the user is gone.
        state = _select_for_update(session, user_id)
        if state is None:
            raise
        return state
    state = _select_for_update(session, user_id)
    if state is None:  # pragma: no cover - the row exists after the insert above
        raise RuntimeError(f"permission state for user {user_id} could not be created")
    return state


def bump_permission_state(session: Session, state: UserPermissionState) -> int:
    state.version += 1
    state.changed_at = utc_now()
    forget_resolved_permissions(session, [state.user_id])
    return state.version


def touch_permission_states(session: Session, user_ids: Iterable[UUID]) -> None:
    """Bump the version of every listed user, e.g. after a role's grants change."""

    for user_id in dict.fromkeys(user_ids):
        bump_permission_state(session, lock_permission_state(session, user_id))


def current_permission_state(session: Session, user_id: UUID) -> tuple[int, datetime | None]:
    """Return ``(version, changed_at)`` for ``user_id``; ``(0, None)`` before any change."""

    row = session.execute(
        select(UserPermissionState.version, UserPermissionState.changed_at).where(
            UserPermissionState.user_id == user_id
        )
    ).one_or_none()
    if row is None:
        return 0, None
    return int(row.version), row.changed_at


def memo_for(session: Session) -> dict[UUID, tuple[int, frozenset[str]]]:
    return session.info.setdefault(_MEMO_KEY, {})


def forget_resolved_permissions(session: Session, user_ids: Iterable[UUID]) -> None:
    memo = memo_for(session)
    for user_id in user_ids:
        memo.pop(user_id, None)


def _select_for_update(session: Session, user_id: UUID) -> UserPermissionState | None:
    stmt = (
        select(UserPermissionState)
        .where(UserPermissionState.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return session.execute(stmt).scalar_one_or_none()


__all__ = [
    "bump_permission_state",
    "current_permission_state",
    "forget_resolved_permissions",
    "lock_permission_state",
    "memo_for",
    "touch_permission_states",
]
