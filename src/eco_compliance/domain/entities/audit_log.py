"""Write-once audit record of a compliance decision.

One ``AuditLog`` is created per evaluation.  The model is frozen and the
repository port exposes no update or delete, so a recorded outcome can never
be revised in place.
"""
from __future__ import annotations

import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from pydantic import ConfigDict, Field, field_validator, model_validator

from eco_compliance.domain.entities.base import NIL_UUID, AggregateRoot, utcnow
from eco_compliance.domain.exceptions import InvalidArgumentError
from eco_compliance.domain.value_objects import DecisionEvidence, RiskTier

_COUNT_FIELDS = (
    ("critical_count", "Critical"),
    ("high_count", "High"),
    ("medium_count", "Medium"),
    ("low_count", "Low"),
)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_uuid(value: Any) -> uuid.UUID | None:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise InvalidArgumentError(f"Application ID '{value}' is not a valid identifier") from None


class AuditLog(AggregateRoot):
    """Immutable snapshot of one evaluation's inputs, outcome and evidence."""
    model_config = ConfigDict(frozen=True)

    evaluation_id: str
    application_id: uuid.UUID
    application_name: str
    environment: str
    risk_tier: RiskTier
    allowed: bool
    reason: str
    violations: tuple[str, ...] = ()
    evidence: DecisionEvidence
    evaluation_duration_ms: int
    critical_count: int = 0
    high_count: int = 0
    medium_count: int = 0
    low_count: int = 0
    evaluated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="before")
    @classmethod
    def validate_record(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if _is_blank(data.get("evaluation_id")):
            raise InvalidArgumentError("Evaluation ID cannot be empty")
        app_id = _as_uuid(data.get("application_id"))
        if app_id is None or app_id == NIL_UUID:
            raise InvalidArgumentError("Application ID cannot be empty")
        if _is_blank(data.get("application_name")):
            raise InvalidArgumentError("Application name cannot be empty")
        if _is_blank(data.get("environment")):
            raise InvalidArgumentError("Environment cannot be empty")
        if _is_blank(data.get("reason")):
            raise InvalidArgumentError("Reason cannot be empty")
        if data.get("evidence") is None:
            raise InvalidArgumentError("Evidence is required")
        for key, label in _COUNT_FIELDS:
            if (data.get(key) or 0) < 0:
                raise InvalidArgumentError(f"{label} count cannot be negative")
        if (data.get("evaluation_duration_ms") or 0) < 0:
            raise InvalidArgumentError("Evaluation duration cannot be negative")
        return {
            **data,
            "evaluation_id": data["evaluation_id"].strip(),
            "application_id": app_id,
            "application_name": data["application_name"].strip(),
            "environment": data["environment"].strip().lower(),
            "reason": data["reason"].strip(),
        }

    @field_validator("risk_tier", mode="before")
    @classmethod
    def validate_risk_tier(cls, v: object) -> RiskTier:
        if not isinstance(v, str):
            raise InvalidArgumentError(f"Invalid risk tier '{v}'")
        return RiskTier.from_string(v)

    @field_validator("violations", mode="before")
    @classmethod
    def freeze_violations(cls, v: object) -> tuple[str, ...]:
        return tuple(v or ())  # type: ignore[arg-type]

    @field_validator("evaluated_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def create(
        cls,
        evaluation_id: str,
        application_id: uuid.UUID,
        application_name: str,
        environment: str,
        risk_tier: str | RiskTier,
        allowed: bool,
        reason: str,
        violations: Iterable[str] | None,
        evidence: DecisionEvidence | None,
        evaluation_duration_ms: int,
        critical_count: int,
        high_count: int,
        medium_count: int,
        low_count: int,
        evaluated_at: datetime,
    ) -> AuditLog:
        return cls(
            evaluation_id=evaluation_id,
            application_id=application_id,
            application_name=application_name,
            environment=environment,
            risk_tier=risk_tier,
            allowed=allowed,
            reason=reason,
            violations=tuple(violations or ()),
            evidence=evidence,
            evaluation_duration_ms=evaluation_duration_ms,
            critical_count=critical_count,
            high_count=high_count,
            medium_count=medium_count,
            low_count=low_count,
            evaluated_at=evaluated_at,
        )

    @property
    def total_vulnerability_count(self) -> int:
        return self.critical_count + self.high_count + self.medium_count + self.low_count

    @property
    def is_blocked(self) -> bool:
        return not self.allowed

    @property
    def has_critical_vulnerabilities(self) -> bool:
        return self.critical_count > 0

    @property
    def has_high_or_critical_vulnerabilities(self) -> bool:
        return self.critical_count > 0 or self.high_count > 0

    def verify_integrity(self) -> bool:
        return self.evidence.verify_integrity()


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class AuditStatistics:
    """Aggregate figures over a window of audit records."""

    total_evaluations: int = 0
    allowed_count: int = 0
    blocked_count: int = 0
    total_critical_vulnerabilities: int = 0
    total_high_vulnerabilities: int = 0
    evaluations_by_environment: dict[str, int] = field(default_factory=dict)
    evaluations_by_risk_tier: dict[str, int] = field(default_factory=dict)
    window_start: datetime | None = None
    window_end: datetime | None = None

    @property
    def blocked_percentage(self) -> float:
        if self.total_evaluations == 0:
            return 0.0
        return round(self.blocked_count / self.total_evaluations * 100, 2)

    @classmethod
    def from_logs(
        cls,
        logs: Iterable[AuditLog],
        window_start: datetime | None = None,
        window_end: datetime | None = None,
    ) -> AuditStatistics:
        records = list(logs)
        blocked = sum(1 for log in records if log.is_blocked)
        return cls(
            total_evaluations=len(records),
            allowed_count=len(records) - blocked,
            blocked_count=blocked,
            total_critical_vulnerabilities=sum(log.critical_count for log in records),
            total_high_vulnerabilities=sum(log.high_count for log in records),
            evaluations_by_environment=dict(Counter(log.environment for log in records)),
            evaluations_by_risk_tier=dict(Counter(log.risk_tier.value for log in records)),
            window_start=window_start,
            window_end=window_end,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_evaluations": self.total_evaluations,
            "allowed_count": self.allowed_count,
            "blocked_count": self.blocked_count,
            "blocked_percentage": self.blocked_percentage,
            "total_critical_vulnerabilities": self.total_critical_vulnerabilities,
            "total_high_vulnerabilities": self.total_high_vulnerabilities,
            "evaluations_by_environment": self.evaluations_by_environment,
            "evaluations_by_risk_tier": self.evaluations_by_risk_tier,
            "window_start": self.window_start.isoformat() if self.window_start else None,
            "window_end": self.window_end.isoformat() if self.window_end else None,
        }
