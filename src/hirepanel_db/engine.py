"""Engine construction for HirePanel (SQLite and PostgreSQL)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

logger = logging.getLogger(__name__)

__all__ = [
    "DatabaseSettingsProtocol",
    "build_engine",
    "build_session_factory",
    "is_sqlite_memory_url",
    "is_sqlite_url",
]


class DatabaseSettingsProtocol(Protocol):
    """Structural type for the database settings consumed here."""

    database_url: str
    database_echo: bool
    database_pool_size: int
    database_max_overflow: int
    database_pool_timeout: int
    database_lock_timeout_ms: int


def is_sqlite_url(url: URL | str) -> bool:
    return make_url(url).get_backend_name() == "sqlite"


def is_sqlite_memory_url(url: URL) -> bool:
    database = (url.database or "").strip()
    if not database or database == ":memory:":
        return True
    if database.startswith("file:"):
        query = dict(url.query or {})
        if query.get("mode") == "memory":
            return True
    return False


def _ensure_sqlite_database_directory(url: URL) -> None:
    database = (url.database or "").strip()
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    path = Path(database)
    if not path.is_absolute():
        path = Path.cwd() / path
    path.parent.mkdir(parents=True, exist_ok=True)


def build_engine(settings: DatabaseSettingsProtocol) -> Engine:
    """Create a synchronous engine for ``settings.database_url``.

    SQLite connections open every transaction with ``BEGIN IMMEDIATE`` so
    that writers serialize on the database lock instead of failing on
    upgrade. PostgreSQL sessions get a ``lock_timeout`` so blocked row locks
    surface as ``OperationalError`` rather than hanging.
    """

    url = make_url(settings.database_url)
    connect_args: dict[str, Any] = {}
    engine_kwargs: dict[str, Any] = {
        "echo": settings.database_echo,
        "pool_pre_ping": True,
    }
    lock_timeout_ms = int(settings.database_lock_timeout_ms)

    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = lock_timeout_ms / 1000
        if is_sqlite_memory_url(url):
            engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["poolclass"] = NullPool
            _ensure_sqlite_database_directory(url)
    else:
        engine_kwargs["pool_size"] = settings.database_pool_size
        engine_kwargs["max_overflow"] = settings.database_max_overflow
        engine_kwargs["pool_timeout"] = settings.database_pool_timeout
        if url.get_backend_name() == "postgresql":
            connect_args["options"] = f"-c lock_timeout={lock_timeout_ms}"

    if connect_args:
        engine_kwargs["connect_args"] = connect_args

    engine = create_engine(url, **engine_kwargs)

    if url.get_backend_name() == "sqlite":

        @event.listens_for(engine, "connect")
        def _configure_sqlite(dbapi_connection, _connection_record) -> None:
            # Hand transaction control to SQLAlchemy so BEGIN/SAVEPOINT work.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.execute(f"PRAGMA busy_timeout={lock_timeout_ms}")
            finally:
                cursor.close()

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn) -> None:
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    logger.debug(
        "db.engine.created",
        extra={"backend": url.get_backend_name(), "database": url.database},
    )
    return engine


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)
