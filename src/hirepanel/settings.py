"""HirePanel service settings (pydantic-settings)."""

from __future__ import annotations

import json
from collections.abc import Callable
from functools import lru_cache
from typing import Any, TypeVar

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hirepanel import __version__

ALLOWED_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
ALLOWED_LOG_FORMATS = frozenset({"console", "json"})
DEFAULT_DATABASE_URL = "sqlite:///./data/hirepanel.sqlite"


def hirepanel_settings_config() -> SettingsConfigDict:
    """Return the standard HirePanel ``BaseSettings`` config dict."""

    return SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HIREPANEL_",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        enable_decoding=False,
        str_strip_whitespace=True,
    )


T = TypeVar("T")


def create_settings_accessors(
    settings_type: type[T],
) -> tuple[Callable[[], T], Callable[[], T]]:
    """Create ``get_settings`` and ``reload_settings`` helpers for a settings class."""

    @lru_cache(maxsize=1)
    def _build() -> T:
        return settings_type()

    def get_settings() -> T:
        return _build()

    def reload_settings() -> T:
        _build.cache_clear()
        return _build()

    return get_settings, reload_settings


def normalize_log_format(value: str, *, env_var: str = "HIREPANEL_LOG_FORMAT") -> str:
    normalized = value.strip().lower()
    if normalized not in ALLOWED_LOG_FORMATS:
        allowed = ", ".join(sorted(ALLOWED_LOG_FORMATS))
        raise ValueError(f"{env_var} must be one of: {allowed}.")
    return normalized


def normalize_log_level(value: str | None, *, env_var: str) -> str | None:
    if value is None:
        return None
    normalized = value.strip().upper()
    if normalized not in ALLOWED_LOG_LEVELS:
        allowed = ", ".join(sorted(ALLOWED_LOG_LEVELS))
        raise ValueError(f"{env_var} must be one of: {allowed}.")
    return normalized


class Settings(BaseSettings):
    """Runtime configuration for the HirePanel RBAC service."""

    model_config = hirepanel_settings_config()

    app_name: str = "HirePanel RBAC"
    app_version: str = __version__

    # Database
    database_url: str = DEFAULT_DATABASE_URL
    database_echo: bool = False
    database_pool_size: int = Field(5, ge=1)
    database_max_overflow: int = Field(10, ge=0)
    database_pool_timeout: int = Field(30, gt=0)
    database_lock_timeout_ms: int = Field(5_000, gt=0)
    database_log_level: str | None = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    # RBAC policy
    fallback_role_name: str = "User"
    frozen_system_roles: list[str] = Field(default_factory=list)
    bulk_assignment_limit: int = Field(100, gt=0)
    sync_registry_on_startup: bool = True

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        return normalize_log_level(str(value), env_var="HIREPANEL_LOG_LEVEL") or "INFO"

    @field_validator("database_log_level", mode="before")
    @classmethod
    def _normalize_database_log_level(cls, value: Any) -> str | None:
        if value is None:
            return None
        return normalize_log_level(str(value), env_var="HIREPANEL_DATABASE_LOG_LEVEL")

    @field_validator("log_format", mode="before")
    @classmethod
    def _normalize_log_format(cls, value: Any) -> str:
        return normalize_log_format(str(value))

    @field_validator("frozen_system_roles", mode="before")
    @classmethod
    def _split_role_names(cls, value: Any) -> Any:
        # Environment values arrive undecoded: JSON lists or comma-separated names.
        if isinstance(value, str):
            if value.strip().startswith("["):
                return json.loads(value)
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @model_validator(mode="after")
    def _validate_policy(self) -> Settings:
        if not self.fallback_role_name:
            raise ValueError("HIREPANEL_FALLBACK_ROLE_NAME must not be blank.")
        return self

    def is_frozen_system_role(self, name: str) -> bool:
        wanted = name.strip().casefold()
        return any(entry.casefold() == wanted for entry in self.frozen_system_roles)


get_settings, reload_settings = create_settings_accessors(Settings)

__all__ = [
    "ALLOWED_LOG_FORMATS",
    "ALLOWED_LOG_LEVELS",
    "Settings",
    "create_settings_accessors",
    "get_settings",
    "normalize_log_format",
    "normalize_log_level",
    "reload_settings",
]
