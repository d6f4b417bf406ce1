"""Request ID middleware.

Every request and response carries an ``X-Request-ID`` header.  An incoming
value is preserved; otherwise a new UUID-4 is generated.  The id is bound to
the structlog context so every log line of the request includes it.
"""
from __future__ import annotations

import uuid
from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from eco_compliance.infrastructure.logging import bind_log_context, clear_log_context

_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get(_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        clear_log_context()
        bind_log_context(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            clear_log_context()
        response.headers[_HEADER] = request_id
        return response
