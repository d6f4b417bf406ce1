"""Severity of a reported vulnerability."""
from __future__ import annotations

import enum

from eco_compliance.domain.exceptions import InvalidArgumentError


class Severity(str, enum.Enum):
    """Closed set of vulnerability severities."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_string(cls, raw: str | Severity) -> Severity:
        """Parse a case-insensitive string into a Severity member."""
        if isinstance(raw, Severity):
            return raw
        normalised = (raw or "").strip().lower()
        try:
            return cls(normalised)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise InvalidArgumentError(
                f"Unknown severity '{raw}'. Valid values: {valid}",
                context={"severity": raw},
            ) from None
