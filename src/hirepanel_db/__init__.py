"""Shared database schema for HirePanel."""

from .engine import DatabaseSettingsProtocol, build_engine, build_session_factory, is_sqlite_url
from .metadata import NAMING_CONVENTION, Base, metadata
from .mixins import TimestampMixin, UUIDPrimaryKeyMixin, generate_uuid7, utc_now
from .types import UTCDateTime, UUIDType

__all__ = [
    "Base",
    "metadata",
    "NAMING_CONVENTION",
    "UUIDType",
    "UTCDateTime",
    "UUIDPrimaryKeyMixin",
    "TimestampMixin",
    "generate_uuid7",
    "utc_now",
    "DatabaseSettingsProtocol",
    "build_engine",
    "build_session_factory",
    "is_sqlite_url",
]
