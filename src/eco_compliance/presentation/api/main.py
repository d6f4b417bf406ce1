"""Compliance service API -- FastAPI application entry point."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI

from eco_compliance import __version__
from eco_compliance.infrastructure.config import Settings, get_settings
from eco_compliance.infrastructure.logging import setup_logging
from eco_compliance.infrastructure.persistence import init_db
from eco_compliance.presentation.api.dependencies import Container, build_container
from eco_compliance.presentation.api.routers import applications, audit, compliance, health
from eco_compliance.presentation.exceptions import register_exception_handlers
from eco_compliance.presentation.middleware import LoggingMiddleware, RequestIDMiddleware

logger = structlog.get_logger(__name__)

_SHUTDOWN_DRAIN_SECONDS = 5.0


def create_app(settings: Settings | None = None, container: Container | None = None) -> FastAPI:
    """Build and configure the FastAPI application.

    ``container`` replaces the production wiring, which is how tests inject
    fakes.
    """
    settings = settings or (container.settings if container else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(level=settings.log_level, json_output=settings.log_json, log_file=settings.log_file)
        c: Container = app.state.container
        if c.db_engine is not None:
            await init_db(c.db_engine)
        logger.info(
            "service_started",
            service=settings.app_name,
            environment=settings.environment,
            version=__version__,
            failure_mode=settings.engine_failure_mode.value,
        )
        try:
            yield
        finally:
            await c.task_runner.drain(timeout=_SHUTDOWN_DRAIN_SECONDS)
            c.task_runner.cancel_all()
            if c.db_engine is not None:
                await c.db_engine.dispose()
            logger.info("service_stopped", service=settings.app_name)

    app = FastAPI(
        title="Compliance Evaluation Service",
        version=__version__,
        description="Evaluates security scan results against environment policies and gates deployments.",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.container = container or build_container(settings)

    # Starlette runs the last added middleware first.
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(compliance.router)
    app.include_router(applications.router)
    app.include_router(audit.router)

    return app


def run() -> None:
    """Entry point for the ``eco-compliance`` console script."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "eco_compliance.presentation.api.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    run()
