"""Tests for environment-driven settings."""
from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from eco_compliance.application.use_cases.evaluate_compliance import EngineFailureMode
from eco_compliance.infrastructure.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("COMPLIANCE_ENGINE_FAILURE_MODE", raising=False)
        settings = Settings(_env_file=None)
        assert settings.engine_failure_mode is EngineFailureMode.ERROR
        assert settings.scan_clock_skew_seconds == 300
        assert not settings.is_production

    def test_reads_prefixed_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COMPLIANCE_OPA_URL", "http://opa.internal:8181")
        monkeypatch.setenv("COMPLIANCE_ENGINE_FAILURE_MODE", "deny")
        monkeypatch.setenv("COMPLIANCE_ENVIRONMENT", "production")
        monkeypatch.setenv("COMPLIANCE_NOTIFICATION_RECIPIENTS", '["secops@example.com"]')

        settings = Settings(_env_file=None)

        assert settings.opa_url == "http://opa.internal:8181"
        assert settings.engine_failure_mode is EngineFailureMode.DENY
        assert settings.notification_recipients == ["secops@example.com"]
        assert settings.is_production

    def test_log_level_normalised(self) -> None:
        assert Settings(_env_file=None, log_level=" WARNING ").log_level == "warning"

    def test_unknown_log_level(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="verbose")

    def test_retries_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, opa_max_retries=0)

    def test_evaluation_options(self) -> None:
        settings = Settings(
            _env_file=None,
            engine_failure_mode="allow",
            scan_clock_skew_seconds=60,
            notification_recipients=["secops@example.com"],
        )
        options = settings.evaluation_options()
        assert options.failure_mode is EngineFailureMode.ALLOW
        assert options.scan_clock_skew == timedelta(seconds=60)
        assert options.extra_recipients == ("secops@example.com",)
