"""Global exception handlers -- map service exceptions to HTTP responses.

A denied deployment is a normal 200 response.  Everything here means the
service could not produce a decision, or the caller sent something it cannot
act on.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from eco_compliance.domain.exceptions import (
    ComplianceServiceError,
    DuplicateApplicationError,
    DuplicateEnvironmentError,
    EngineContractViolationError,
    EngineUnavailableError,
    InvalidArgumentError,
    NotFoundError,
    PersistenceError,
    PolicyEngineError,
    PolicyResolutionError,
)

logger = structlog.get_logger(__name__)

_STATUS_BY_EXCEPTION: tuple[tuple[type[ComplianceServiceError], int], ...] = (
    (InvalidArgumentError, 422),
    (NotFoundError, 404),
    (DuplicateEnvironmentError, 409),
    (DuplicateApplicationError, 409),
    (EngineUnavailableError, 503),
    (EngineContractViolationError, 502),
    (PolicyEngineError, 502),
    (PolicyResolutionError, 500),
    (PersistenceError, 503),
    (ComplianceServiceError, 500),
)


def _error_response(
    status: int,
    code: str,
    message: str,
    details: Any = None,
    request_id: str | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "details": details if details is not None else {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }
    if request_id:
        body["error"]["request_id"] = request_id
    return JSONResponse(status_code=status, content=jsonable_encoder(body))


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _make_handler(status: int):
    async def handler(request: Request, exc: ComplianceServiceError) -> JSONResponse:
        if status >= 500:
            logger.error(
                "request_failed",
                error_code=exc.error_code,
                error=exc.message,
                path=request.url.path,
                context=exc.context,
            )
        else:
            logger.info("request_rejected", error_code=exc.error_code, error=exc.message, path=request.url.path)
        return _error_response(status, exc.error_code, exc.message, exc.context, _request_id(request))

    return handler


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {
                "field": ".".join(str(part) for part in error.get("loc", [])),
                "message": error.get("msg", ""),
            }
            for error in exc.errors()
        ]
        return _error_response(422, "VALIDATION_ERROR", "Invalid request", details, _request_id(request))

    for exc_class, status in _STATUS_BY_EXCEPTION:
        app.add_exception_handler(exc_class, _make_handler(status))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_exception", error=str(exc), error_type=type(exc).__name__, path=request.url.path)
        return _error_response(500, "INTERNAL_ERROR", "An unexpected error occurred", None, _request_id(request))
