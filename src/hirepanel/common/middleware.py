"""Custom FastAPI middleware components."""

from __future__ import annotations

import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from .logging import bind_request_context, clear_request_context

_REQUEST_LOGGER = logging.getLogger("hirepanel.request")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach correlation IDs and emit structured request logs."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint):
        correlation_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = correlation_id
        bind_request_context(correlation_id)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            _REQUEST_LOGGER.exception(
                "request.error",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            raise
        else:
            _REQUEST_LOGGER.info(
                "request.complete",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
        finally:
            clear_request_context()

        response.headers["X-Request-ID"] = correlation_id
        return response


def register_middleware(app: FastAPI) -> None:
    app.add_middleware(RequestContextMiddleware)


__all__ = ["RequestContextMiddleware", "register_middleware"]
