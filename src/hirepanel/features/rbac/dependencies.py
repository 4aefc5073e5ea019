"""FastAPI dependencies: RBAC services and the permission gate."""

from __future__ import annotations

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import SecurityScopes
from sqlalchemy.orm import Session

from hirepanel.app.dependencies import get_app_settings
from hirepanel.core.rbac import Action, Resource, key_of
from hirepanel.core.rbac.errors import translate_store_errors
from hirepanel.db import get_db_read, get_db_write
from hirepanel.settings import Settings

from .service import RbacService
from .session_cache import PermissionContext, SessionPermissionSnapshot

logger = logging.getLogger(__name__)


def get_rbac_service(
    session: Annotated[Session, Depends(get_db_read)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> RbacService:
    return RbacService(session=session, settings=settings)


def get_rbac_write_service(
    session: Annotated[Session, Depends(get_db_write)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> RbacService:
    return RbacService(session=session, settings=settings)


def get_current_user_id(request: Request) -> UUID:
    """Identity of the signed-in administrator.

    The authentication layer stores it on ``request.state.user_id``.
    """

    user_id = getattr(request.state, "user_id", None)
    if user_id is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return UUID(str(user_id))


def get_session_snapshot(request: Request) -> SessionPermissionSnapshot | None:
    """Snapshot embedded in the caller's session by the authentication layer, if any."""

    return getattr(request.state, "permission_snapshot", None)


def get_permission_context(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    snapshot: Annotated[SessionPermissionSnapshot | None, Depends(get_session_snapshot)],
    service: Annotated[RbacService, Depends(get_rbac_service)],
) -> PermissionContext:
    """Caller's permissions: the session snapshot if current, otherwise a live resolve."""

    with translate_store_errors("resolve permissions"):
        return service.session_cache.context_for(user_id, snapshot)


def _permission_gate(
    security_scopes: SecurityScopes,
    context: Annotated[PermissionContext, Depends(get_permission_context)],
) -> PermissionContext:
    missing = [key for key in security_scopes.scopes if key not in context.permissions]
    if missing:
        logger.info(
            "rbac.permission.denied",
            extra={"user_id": str(context.user_id), "missing": missing},
        )
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return context


def require_permission(resource: Resource | str, action: Action | str) -> Any:
    """Dependency requiring ``resource:action``; unknown pairs fail at import time."""

    return Security(_permission_gate, scopes=[key_of(resource, action)])


__all__ = [
    "get_current_user_id",
    "get_permission_context",
    "get_rbac_service",
    "get_rbac_write_service",
    "get_session_snapshot",
    "require_permission",
]
