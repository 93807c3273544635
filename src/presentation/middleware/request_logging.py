"""
Request logging middleware.

Each request gets a request id (the caller's ``X-Request-ID`` when present)
that is bound into structlog's context variables for the lifetime of the
request, so every deletion event logged while serving it can be correlated.
One ``http.request`` event is written per response.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

logger: structlog.stdlib.BoundLogger = structlog.get_logger("user_deletion.request")


def _level_for(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code >= 400:
        return "warning"
    return "info"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Binds request context and logs method, path, status and duration."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("http.request_failed", duration_ms=self._elapsed_ms(started))
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        getattr(logger, _level_for(response.status_code))(
            "http.request",
            status_code=response.status_code,
            duration_ms=self._elapsed_ms(started),
            client_ip=request.client.host if request.client else None,
        )
        return response

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)
