"""Compliance evaluation aggregate root."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from pydantic import ConfigDict, Field, field_validator, model_validator

from eco_compliance.domain.entities.base import NIL_UUID, AggregateRoot, utcnow
from eco_compliance.domain.events import ComplianceEvaluationCompleted
from eco_compliance.domain.exceptions import InvalidArgumentError
from eco_compliance.domain.value_objects import PolicyDecision, RiskTier, ScanResult, Severity


class ComplianceEvaluation(AggregateRoot):
    """Outcome of evaluating one set of scan results for one environment.

    The risk tier is a snapshot taken at evaluation time.  Vulnerability
    counts are summed over every scan result without deduplicating findings
    reported by more than one tool.
    """
    model_config = ConfigDict(frozen=True)

    application_id: uuid.UUID
    application_name: str = ""
    environment: str
    risk_tier: RiskTier
    scan_results: tuple[ScanResult, ...]
    decision: PolicyDecision
    evaluated_at: datetime = Field(default_factory=utcnow)

    @field_validator("application_id")
    @classmethod
    def validate_application_id(cls, v: uuid.UUID) -> uuid.UUID:
        if v == NIL_UUID:
            raise InvalidArgumentError("Application ID cannot be empty")
        return v

    @field_validator("environment", mode="before")
    @classmethod
    def normalise_environment(cls, v: object) -> str:
        if not isinstance(v, str) or not v.strip():
            raise InvalidArgumentError("Environment cannot be empty")
        return v.strip().lower()

    @field_validator("risk_tier", mode="before")
    @classmethod
    def validate_risk_tier(cls, v: object) -> RiskTier:
        if not isinstance(v, str):
            raise InvalidArgumentError(f"Invalid risk tier '{v}'")
        return RiskTier.from_string(v)

    @field_validator("evaluated_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="before")
    @classmethod
    def require_inputs(cls, data: Any) -> Any:
        if isinstance(data, dict):
            if not data.get("scan_results"):
                raise InvalidArgumentError("At least one scan result is required")
            if data.get("decision") is None:
                raise InvalidArgumentError("Policy decision is required")
        return data

    @classmethod
    def create(
        cls,
        application_id: uuid.UUID,
        environment: str,
        risk_tier: str | RiskTier,
        scan_results: Iterable[ScanResult],
        decision: PolicyDecision | None,
        application_name: str = "",
        evaluated_at: datetime | None = None,
    ) -> ComplianceEvaluation:
        if application_id is None or application_id == NIL_UUID:
            raise InvalidArgumentError("Application ID cannot be empty")
        evaluation = cls(
            application_id=application_id,
            application_name=application_name,
            environment=environment,
            risk_tier=risk_tier,
            scan_results=tuple(scan_results or ()),
            decision=decision,
            evaluated_at=evaluated_at or utcnow(),
        )
        evaluation.raise_event(ComplianceEvaluationCompleted(
            aggregate_id=str(evaluation.id),
            payload={
                "application_id": str(evaluation.application_id),
                "environment": evaluation.environment,
                "risk_tier": evaluation.risk_tier.value,
                "allowed": evaluation.decision.allowed,
                "violations": list(evaluation.decision.violations),
                "critical": evaluation.critical_count,
                "high": evaluation.high_count,
            },
        ))
        return evaluation

    # ------------------------------------------------------------------
    # Derived counts
    # ------------------------------------------------------------------

    def get_severity_count(self, severity: Severity | str) -> int:
        sev = Severity.from_string(severity)
        return sum(result.count(sev) for result in self.scan_results)

    def get_total_vulnerability_count(self) -> int:
        return sum(result.total_count for result in self.scan_results)

    def aggregated_counts(self) -> dict[str, int]:
        counts = {s.value: self.get_severity_count(s) for s in Severity}
        counts["total"] = self.get_total_vulnerability_count()
        return counts

    @property
    def critical_count(self) -> int:
        return self.get_severity_count(Severity.CRITICAL)

    @property
    def high_count(self) -> int:
        return self.get_severity_count(Severity.HIGH)

    @property
    def medium_count(self) -> int:
        return self.get_severity_count(Severity.MEDIUM)

    @property
    def low_count(self) -> int:
        return self.get_severity_count(Severity.LOW)

    @property
    def is_allowed(self) -> bool:
        return self.decision.allowed

    @property
    def is_blocked(self) -> bool:
        return not self.decision.allowed

    @property
    def has_critical_vulnerabilities(self) -> bool:
        return self.critical_count > 0
