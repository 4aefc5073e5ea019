"""Centralized FastAPI exception handlers with structured logging."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from hirepanel.common.logging import log_context
from hirepanel.common.problem_details import (
    ProblemDetailsErrorItem,
    build_problem_details,
    error_items_from_pydantic,
)
from hirepanel.core.rbac import (
    FallbackRoleMisconfiguredError,
    RbacError,
    TransientStoreError,
)

_UNHANDLED_LOGGER = logging.getLogger("hirepanel.errors")
_HTTP_LOGGER = logging.getLogger("hirepanel.http")
_RBAC_LOGGER = logging.getLogger("hirepanel.rbac.errors")
_PROBLEM_MEDIA_TYPE = "application/problem+json"


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _problem_response(
    *,
    request: Request,
    status_code: int,
    detail: str | dict[str, object] | None,
    errors: list[ProblemDetailsErrorItem] | None = None,
    error_type: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    problem = build_problem_details(
        status_code=status_code,
        instance=str(request.url.path),
        request_id=_request_id(request),
        detail=detail,
        errors=errors,
        error_type=error_type,
    )
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(by_alias=True, exclude_none=True),
        media_type=_PROBLEM_MEDIA_TYPE,
        headers=headers,
    )


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler: opaque 500 plus an ERROR log with the stack trace."""
    _UNHANDLED_LOGGER.exception(
        "unhandled_exception",
        extra=log_context(
            path=str(request.url.path),
            method=request.method,
            exception_type=type(exc).__name__,
        ),
    )
    return _problem_response(request=request, status_code=500, detail="Internal server error")


def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        _HTTP_LOGGER.error(
            "http_exception",
            extra=log_context(
                path=str(request.url.path),
                method=request.method,
                status_code=exc.status_code,
                detail=exc.detail,
            ),
        )
    detail = exc.detail if isinstance(exc.detail, (str, dict)) else None
    if exc.status_code == 500:
        detail = "Internal server error"
    return _problem_response(
        request=request,
        status_code=exc.status_code,
        detail=detail,
        headers=getattr(exc, "headers", None),
    )


def request_validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    return _problem_response(
        request=request,
        status_code=422,
        detail="Invalid request",
        errors=error_items_from_pydantic(exc.errors()),
    )


def rbac_error_handler(request: Request, exc: RbacError) -> JSONResponse:
    """Map RBAC errors to Problem Details with their declared status."""

    headers: dict[str, str] | None = None
    if isinstance(exc, TransientStoreError):
        headers = {"Retry-After": "1"}
        _RBAC_LOGGER.warning(
            "rbac.store.transient",
            extra=log_context(path=str(request.url.path), detail=exc.message),
            exc_info=exc.__cause__,
        )
    elif isinstance(exc, FallbackRoleMisconfiguredError):
        _RBAC_LOGGER.error(
            "rbac.fallback_role.misconfigured",
            extra=log_context(path=str(request.url.path), role=exc.role_name),
        )
    return _problem_response(
        request=request,
        status_code=exc.status_code,
        detail=exc.message,
        error_type=exc.error_type,
        headers=headers,
    )


def store_unavailable_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """Store failures outside an RBAC operation, e.g. a lock timeout on a plain read."""

    error = TransientStoreError("The data store is unavailable, retry shortly")
    error.__cause__ = exc
    return rbac_error_handler(request, error)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RbacError, rbac_error_handler)
    app.add_exception_handler(OperationalError, store_unavailable_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    "http_exception_handler",
    "rbac_error_handler",
    "register_exception_handlers",
    "request_validation_exception_handler",
    "store_unavailable_handler",
    "unhandled_exception_handler",
]
