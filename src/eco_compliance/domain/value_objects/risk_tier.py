"""Risk tier of an application environment."""
from __future__ import annotations

import enum

from eco_compliance.domain.exceptions import InvalidArgumentError


class RiskTier(str, enum.Enum):
    """Sensitivity classification that informs which policy applies.

    Thresholds per tier live in the policy engine; the predicates below are
    selection heuristics only.
    """

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def is_critical(self) -> bool:
        return self is RiskTier.CRITICAL

    @property
    def is_high_or_above(self) -> bool:
        return self in {RiskTier.CRITICAL, RiskTier.HIGH}

    @classmethod
    def from_string(cls, raw: str | RiskTier) -> RiskTier:
        if isinstance(raw, RiskTier):
            return raw
        normalised = (raw or "").strip().lower()
        if not normalised:
            raise InvalidArgumentError("Risk tier cannot be empty")
        try:
            return cls(normalised)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise InvalidArgumentError(
                f"Invalid risk tier '{raw}'. Valid values: {valid}",
                context={"risk_tier": raw},
            ) from None
