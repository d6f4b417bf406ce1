"""Allow/deny verdict returned by the policy engine."""
from __future__ import annotations

import enum
from typing import Any, Iterable

from pydantic import Field, field_validator, model_validator

from eco_compliance.domain.entities.base import ValueObject
from eco_compliance.domain.exceptions import InvalidArgumentError


class DecisionSource(str, enum.Enum):
    """Where a decision came from."""

    POLICY_ENGINE = "policy_engine"
    FAIL_CLOSED = "fail_closed"
    FAIL_OPEN = "fail_open"


class PolicyDecision(ValueObject):
    """Allow flag plus the ordered violations that explain a denial.

    A denial always carries at least one violation and an allow carries
    none.  The check runs on every construction path.
    """

    allowed: bool
    violations: tuple[str, ...] = ()
    reason: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    evaluation_duration_ms: int = 0
    policy_package: str | None = None
    source: DecisionSource = DecisionSource.POLICY_ENGINE

    @field_validator("violations", mode="before")
    @classmethod
    def validate_violations(cls, v: object) -> tuple[str, ...]:
        if v is None:
            return ()
        if isinstance(v, str):
            raise InvalidArgumentError("Violations must be a list of messages")
        messages = []
        for item in v:  # type: ignore[attr-defined]
            if not isinstance(item, str) or not item.strip():
                raise InvalidArgumentError("Violation messages cannot be empty")
            messages.append(item.strip())
        return tuple(messages)

    @field_validator("reason", mode="before")
    @classmethod
    def normalise_reason(cls, v: object) -> str | None:
        if isinstance(v, str):
            return v.strip() or None
        return v  # type: ignore[return-value]

    @model_validator(mode="after")
    def check_decision_invariant(self) -> PolicyDecision:
        if not self.allowed and not self.violations:
            raise InvalidArgumentError("Denied decisions must have at least one violation")
        if self.allowed and self.violations:
            raise InvalidArgumentError("Allowed decisions cannot carry violations")
        if self.evaluation_duration_ms < 0:
            raise InvalidArgumentError("Evaluation duration cannot be negative")
        return self

    @classmethod
    def create(
        cls,
        allowed: bool,
        violations: Iterable[str] | None = None,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
        evaluation_duration_ms: int = 0,
        policy_package: str | None = None,
        source: DecisionSource = DecisionSource.POLICY_ENGINE,
    ) -> PolicyDecision:
        return cls(
            allowed=allowed,
            violations=tuple(violations or ()),
            reason=reason,
            details=details or {},
            evaluation_duration_ms=evaluation_duration_ms,
            policy_package=policy_package,
            source=source,
        )

    @classmethod
    def allow(cls, **kwargs: Any) -> PolicyDecision:
        return cls.create(allowed=True, **kwargs)

    @classmethod
    def deny(cls, violations: Iterable[str], **kwargs: Any) -> PolicyDecision:
        return cls.create(allowed=False, violations=violations, **kwargs)

    @property
    def is_blocked(self) -> bool:
        return not self.allowed

    def get_reason(self) -> str:
        if self.reason:
            return self.reason
        if self.allowed:
            return "All compliance checks passed"
        if len(self.violations) == 1:
            return self.violations[0]
        return f"{len(self.violations)} policy violations found"
