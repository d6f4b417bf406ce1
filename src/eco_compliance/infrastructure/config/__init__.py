"""Centralized configuration for the compliance service."""
from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings

from eco_compliance.application.use_cases.evaluate_compliance import (
    EngineFailureMode,
    EvaluationOptions,
)


class Settings(BaseSettings):
    """Service configuration loaded from ``COMPLIANCE_*`` environment variables."""

    app_name: str = "eco-compliance"
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8095

    # Logging
    log_level: str = "info"
    log_json: bool = False
    log_file: str | None = None

    # Data store
    database_url: str = "sqlite+aiosqlite:///./compliance.db"
    database_echo: bool = False

    # Policy engine
    opa_url: str = "http://localhost:8181"
    opa_timeout_seconds: float = 10.0
    opa_max_retries: int = 3
    policy_root_package: str = "compliance"
    engine_failure_mode: EngineFailureMode = EngineFailureMode.ERROR

    # Evaluation
    scan_clock_skew_seconds: int = 300

    # Notifications
    notification_recipients: list[str] = []

    model_config = {"env_prefix": "COMPLIANCE_", "env_file": ".env", "extra": "ignore"}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().lower()
        if level not in {"debug", "info", "warning", "error", "critical"}:
            raise ValueError(f"Unknown log level '{v}'")
        return level

    @field_validator("opa_max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("opa_max_retries must be at least 1")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in {"production", "prod"}

    def evaluation_options(self) -> EvaluationOptions:
        return EvaluationOptions(
            failure_mode=self.engine_failure_mode,
            scan_clock_skew=timedelta(seconds=self.scan_clock_skew_seconds),
            extra_recipients=tuple(self.notification_recipients),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
