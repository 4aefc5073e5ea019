"""FastAPI lifespan helpers for the HirePanel application."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import Lifespan
from sqlalchemy.engine import make_url

from hirepanel.db import get_session_factory_from_app, init_db, shutdown_db
from hirepanel.features.rbac import RbacService
from hirepanel.settings import Settings

logger = logging.getLogger(__name__)


def create_application_lifespan(
    *,
    settings: Settings,
) -> Lifespan[FastAPI]:
    """Return the FastAPI lifespan handler used by the app factory."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.settings = settings
        safe_url = make_url(settings.database_url).render_as_string(hide_password=True)
        logger.info("db.init.start", extra={"database_url": safe_url})
        init_db(app, settings)
        logger.info("db.init.complete", extra={"database_url": safe_url})

        session_factory = get_session_factory_from_app(app)

        def _sync_rbac_registry() -> None:
            with session_factory() as session:
                service = RbacService(session=session, settings=settings)
                with session.begin():
                    service.sync_registry()
            logger.info("rbac.registry.sync.complete")

        try:
            if settings.sync_registry_on_startup:
                await asyncio.to_thread(_sync_rbac_registry)
            yield
        finally:
            shutdown_db(app)

    return lifespan


__all__ = ["create_application_lifespan"]
