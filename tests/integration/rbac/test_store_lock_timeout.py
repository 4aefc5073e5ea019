from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from uuid import UUID

import pytest
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from hirepanel.core.rbac import TransientStoreError
from hirepanel.features.audit import InMemoryAuditSink
from hirepanel.features.rbac import RbacService
from hirepanel.settings import Settings
from hirepanel_db.models import User


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'hirepanel.sqlite'}",
        database_lock_timeout_ms=200,
    )


@contextmanager
def _competing_writer(settings: Settings) -> Iterator[None]:
    """Hold the database write lock from a second connection."""

    holder = sqlite3.connect(make_url(settings.database_url).database, isolation_level=None)
    try:
        holder.execute("BEGIN IMMEDIATE")
        yield
    finally:
        holder.execute("ROLLBACK")
        holder.close()


def _service(session: Session, settings: Settings) -> RbacService:
    return RbacService(session=session, settings=settings, audit=InMemoryAuditSink())


def _role_names(
    session_factory: sessionmaker[Session], settings: Settings, user_id: UUID
) -> list[str]:
    with session_factory() as session:
        service = _service(session, settings)
        return [role.name for role in service.assignments.list_user_roles(user_id)]


@pytest.fixture()
def recruiter(
    session_factory: sessionmaker[Session], settings: Settings, seeded: None
) -> tuple[UUID, dict[str, UUID]]:
    with session_factory() as session, session.begin():
        service = _service(session, settings)
        user = User(email="recruiter@example.com", display_name="Recruiter", is_active=True)
        session.add(user)
        session.flush()
        role_ids = {role.name: role.id for role in service.roles.list_roles()}
        service.assignments.assign_role(user_id=user.id, role_id=role_ids["HR"])
        return user.id, role_ids


def test_mutations_blocked_by_competing_writer_are_transient(
    session_factory: sessionmaker[Session],
    settings: Settings,
    recruiter: tuple[UUID, dict[str, UUID]],
) -> None:
    user_id, role_ids = recruiter

    with _competing_writer(settings):
        with session_factory() as session:
            with pytest.raises(TransientStoreError) as excinfo:
                _service(session, settings).assignments.remove_role(
                    user_id=user_id, role_id=role_ids["HR"]
                )
        assert isinstance(excinfo.value.__cause__, OperationalError)
        assert excinfo.value.status_code == 503

        with session_factory() as session:
            with pytest.raises(TransientStoreError):
                _service(session, settings).assignments.assign_role(
                    user_id=user_id, role_id=role_ids["Admin"]
                )

        with session_factory() as session:
            with pytest.raises(TransientStoreError):
                _service(session, settings).roles.create_role(
                    name="Coordinator", permission_keys=["jobs:view"]
                )

    assert _role_names(session_factory, settings, user_id) == ["HR"]
    with session_factory() as session:
        assert _service(session, settings).roles.get_role_by_name("Coordinator") is None
