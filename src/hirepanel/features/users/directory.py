"""Read-only view of the platform user directory."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from hirepanel_db.models import User


@dataclass(frozen=True, slots=True)
class DirectoryUser:
    id: UUID
    email: str
    display_name: str | None
    is_active: bool

    @property
    def label(self) -> str:
        return self.display_name or self.email

    @classmethod
    def from_model(cls, user: User) -> DirectoryUser:
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            is_active=user.is_active,
        )


class UserDirectory(Protocol):
    """Existence and active-status lookups for users."""

    def get_user(self, user_id: UUID) -> DirectoryUser | None: ...

    def list_users(self, *, active_only: bool = False) -> Sequence[DirectoryUser]: ...


class SqlUserDirectory:
    """Directory backed by the ``users`` table."""

    def __init__(self, *, session: Session) -> None:
        self._session = session

    def get_user(self, user_id: UUID) -> DirectoryUser | None:
        user = self._session.get(User, user_id)
        if user is None:
            return None
        return DirectoryUser.from_model(user)

    def list_users(self, *, active_only: bool = False) -> list[DirectoryUser]:
        stmt = select(User).order_by(User.email)
        if active_only:
            stmt = stmt.where(User.is_active.is_(True))
        return [DirectoryUser.from_model(user) for user in self._session.scalars(stmt)]


__all__ = ["DirectoryUser", "SqlUserDirectory", "UserDirectory"]
