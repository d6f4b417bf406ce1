"""Vulnerability and scan result value objects."""
from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from pydantic import ValidationError, field_validator

from eco_compliance.domain.entities.base import ValueObject
from eco_compliance.domain.exceptions import InvalidArgumentError
from eco_compliance.domain.value_objects.severity import Severity


def _require_text(value: object, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{label} cannot be empty")
    return value.strip()


class Vulnerability(ValueObject):
    """A single finding reported by one tool.

    Two tools reporting the same CVE yield two distinct instances; identity
    beyond ``id`` is not tracked.
    """

    id: str
    title: str = ""
    severity: Severity
    cvss_score: float
    package_name: str
    current_version: str
    fixed_version: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: object) -> str:
        return _require_text(v, "Vulnerability ID")

    @field_validator("package_name", mode="before")
    @classmethod
    def validate_package_name(cls, v: object) -> str:
        return _require_text(v, "Package name")

    @field_validator("current_version", mode="before")
    @classmethod
    def validate_current_version(cls, v: object) -> str:
        return _require_text(v, "Current version")

    @field_validator("severity", mode="before")
    @classmethod
    def validate_severity(cls, v: object) -> Severity:
        if not isinstance(v, str):
            raise InvalidArgumentError(f"Unknown severity '{v}'")
        return Severity.from_string(v)

    @field_validator("cvss_score", mode="before")
    @classmethod
    def validate_cvss_score(cls, v: object) -> float:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise InvalidArgumentError(f"CVSS score must be a number, got {v!r}")
        if not 0.0 <= float(v) <= 10.0:
            raise InvalidArgumentError(f"CVSS score must be between 0 and 10, got {v}")
        return float(v)

    @field_validator("fixed_version", mode="before")
    @classmethod
    def normalise_fixed_version(cls, v: object) -> str | None:
        if isinstance(v, str):
            return v.strip() or None
        return v  # type: ignore[return-value]

    @classmethod
    def create(
        cls,
        id: str,
        severity: str | Severity,
        cvss_score: float,
        package_name: str,
        current_version: str,
        title: str = "",
        fixed_version: str | None = None,
    ) -> Vulnerability:
        try:
            return cls(
                id=id,
                title=(title or "").strip(),
                severity=severity,
                cvss_score=cvss_score,
                package_name=package_name,
                current_version=current_version,
                fixed_version=fixed_version,
            )
        except ValidationError as exc:
            raise InvalidArgumentError(f"Invalid vulnerability: {exc.errors()[0]['msg']}") from exc

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.CRITICAL

    @property
    def has_fix(self) -> bool:
        return self.fixed_version is not None


class ScanResult(ValueObject):
    """One tool's report for one scan.

    Severity counts are derived from ``vulnerabilities`` on every access.
    """

    tool: str
    tool_version: str
    scan_date: datetime
    project_id: str | None = None
    vulnerabilities: tuple[Vulnerability, ...] = ()

    @field_validator("tool", mode="before")
    @classmethod
    def normalise_tool(cls, v: object) -> str:
        return _require_text(v, "Tool name").lower()

    @field_validator("tool_version", mode="before")
    @classmethod
    def validate_tool_version(cls, v: object) -> str:
        return _require_text(v, "Tool version")

    @field_validator("scan_date")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("project_id", mode="before")
    @classmethod
    def normalise_project_id(cls, v: object) -> str | None:
        if isinstance(v, str):
            return v.strip() or None
        return v  # type: ignore[return-value]

    @classmethod
    def create(
        cls,
        tool: str,
        tool_version: str,
        scan_date: datetime,
        vulnerabilities: Iterable[Vulnerability] | None = None,
        project_id: str | None = None,
        reference_time: datetime | None = None,
        clock_skew: timedelta = timedelta(0),
    ) -> ScanResult:
        """Build a scan result, rejecting scan dates after ``reference_time``.

        ``reference_time`` defaults to now; ``clock_skew`` tolerates scanners
        whose clocks run slightly ahead of ours.
        """
        try:
            result = cls(
                tool=tool,
                tool_version=tool_version,
                scan_date=scan_date,
                project_id=project_id,
                vulnerabilities=tuple(vulnerabilities or ()),
            )
        except ValidationError as exc:
            raise InvalidArgumentError(f"Invalid scan result: {exc.errors()[0]['msg']}") from exc

        now = reference_time or datetime.now(timezone.utc)
        if result.scan_date > now + clock_skew:
            raise InvalidArgumentError(
                "Scan date cannot be in the future",
                context={"tool": result.tool, "scan_date": result.scan_date.isoformat()},
            )
        return result

    def count(self, severity: Severity) -> int:
        return sum(1 for v in self.vulnerabilities if v.severity is severity)

    def severity_counts(self) -> dict[Severity, int]:
        counts = Counter(v.severity for v in self.vulnerabilities)
        return {s: counts.get(s, 0) for s in Severity}

    @property
    def critical_count(self) -> int:
        return self.count(Severity.CRITICAL)

    @property
    def high_count(self) -> int:
        return self.count(Severity.HIGH)

    @property
    def medium_count(self) -> int:
        return self.count(Severity.MEDIUM)

    @property
    def low_count(self) -> int:
        return self.count(Severity.LOW)

    @property
    def total_count(self) -> int:
        return len(self.vulnerabilities)

    def summary(self) -> dict[str, Any]:
        return {
            "critical": self.critical_count,
            "high": self.high_count,
            "medium": self.medium_count,
            "low": self.low_count,
            "total": self.total_count,
        }
