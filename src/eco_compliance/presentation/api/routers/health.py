"""Liveness and readiness probes."""
from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from eco_compliance import __version__
from eco_compliance.presentation.api.dependencies import Container, get_container

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])


class LivenessResponse(BaseModel):
    status: str = "healthy"
    service: str
    version: str = __version__


class DependencyCheck(BaseModel):
    name: str
    status: str = "ok"
    latency_ms: float | None = None


class ReadinessResponse(BaseModel):
    status: str = Field(description="ready | not_ready")
    checks: list[DependencyCheck] = Field(default_factory=list)


@router.get("/health", response_model=LivenessResponse)
async def liveness(container: Container = Depends(get_container)) -> LivenessResponse:
    return LivenessResponse(service=container.settings.app_name)


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness(container: Container = Depends(get_container)) -> JSONResponse:
    """503 unless both the database and the policy engine answer."""
    checks: list[DependencyCheck] = []

    start = time.perf_counter()
    db_ok = await container.database_healthy()
    checks.append(DependencyCheck(
        name="database",
        status="ok" if db_ok else "unavailable",
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
    ))

    start = time.perf_counter()
    engine_ok = await container.policy_engine.is_healthy()
    checks.append(DependencyCheck(
        name="policy_engine",
        status="ok" if engine_ok else "unavailable",
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
    ))

    ready = db_ok and engine_ok
    if not ready:
        logger.warning("readiness_degraded", checks=[c.model_dump() for c in checks])
    body = ReadinessResponse(status="ready" if ready else "not_ready", checks=checks)
    return JSONResponse(status_code=200 if ready else 503, content=body.model_dump())
