"""Shared FastAPI dependencies for the HirePanel API."""

from __future__ import annotations

from starlette.requests import HTTPConnection

from hirepanel.settings import Settings, get_settings


def get_app_settings(conn: HTTPConnection) -> Settings:
    """Settings the application was created with, falling back to the environment."""

    settings = getattr(conn.app.state, "settings", None)
    if isinstance(settings, Settings):
        return settings
    return get_settings()


__all__ = ["get_app_settings"]
