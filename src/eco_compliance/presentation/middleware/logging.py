"""Access logging middleware: one ``http_request`` event per request."""
from __future__ import annotations

import time
from typing import Awaitable, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger("eco_compliance.access")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status code and duration of every request."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        log_kwargs: dict[str, object] = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        request_id: str = getattr(request.state, "request_id", "")
        if request_id:
            log_kwargs["request_id"] = request_id
        if request.url.query:
            log_kwargs["query"] = str(request.url.query)

        if response.status_code >= 500:
            logger.error("http_request", **log_kwargs)
        elif response.status_code >= 400:
            logger.warning("http_request", **log_kwargs)
        else:
            logger.info("http_request", **log_kwargs)
        return response
