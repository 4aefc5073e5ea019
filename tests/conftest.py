from __future__ import annotations

import itertools
import os
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from hirepanel.features.audit import InMemoryAuditSink
from hirepanel.features.rbac import RbacService
from hirepanel.settings import Settings, reload_settings
from hirepanel_db import build_engine, build_session_factory
from hirepanel_db.models import Role, User
from hirepanel_db.schema import create_schema


def pytest_collection_modifyitems(config, items) -> None:
    for item in items:
        path_str = str(Path(str(item.fspath)))
        if "/tests/integration/" in path_str:
            item.add_marker(pytest.mark.integration)
        elif "/tests/unit/" in path_str:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep HIREPANEL_* overrides from the outer environment out of tests."""

    for var in list(os.environ):
        if var.startswith("HIREPANEL_"):
            monkeypatch.delenv(var, raising=False)
    reload_settings()
    yield
    monkeypatch.undo()
    reload_settings()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'hirepanel.sqlite'}",
        database_lock_timeout_ms=10_000,
    )


@pytest.fixture()
def engine(settings: Settings) -> Iterator[Engine]:
    engine = build_engine(settings)
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return build_session_factory(engine)


@pytest.fixture()
def seeded(session_factory: sessionmaker[Session], settings: Settings) -> None:
    """Permission catalog and built-in roles, committed."""

    with session_factory() as session, session.begin():
        RbacService(session=session, settings=settings, audit=InMemoryAuditSink()).sync_registry()


@pytest.fixture()
def session(session_factory: sessionmaker[Session], seeded: None) -> Iterator[Session]:
    with session_factory() as session:
        yield session
        session.rollback()


@pytest.fixture()
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture()
def rbac(session: Session, settings: Settings, audit_sink: InMemoryAuditSink) -> RbacService:
    return RbacService(session=session, settings=settings, audit=audit_sink)


@pytest.fixture()
def roles(rbac: RbacService) -> dict[str, Role]:
    """Seeded roles keyed by name."""

    return {role.name: role for role in rbac.roles.list_roles()}


@pytest.fixture()
def make_user(session: Session) -> Callable[..., User]:
    counter = itertools.count(1)

    def _make(*, email: str | None = None, is_active: bool = True) -> User:
        index = next(counter)
        user = User(
            email=email or f"user{index}@example.com",
            display_name=f"User {index}",
            is_active=is_active,
        )
        session.add(user)
        session.flush()
        return user

    return _make
