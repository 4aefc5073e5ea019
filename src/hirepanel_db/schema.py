"""Schema bootstrap helpers."""

from __future__ import annotations

from sqlalchemy.engine import Engine

from . import models  # noqa: F401 - registers tables on the metadata
from .metadata import metadata

__all__ = ["create_schema", "drop_schema"]


def create_schema(engine: Engine) -> None:
    """Create every HirePanel table that does not exist yet."""

    metadata.create_all(engine)


def drop_schema(engine: Engine) -> None:
    metadata.drop_all(engine)
