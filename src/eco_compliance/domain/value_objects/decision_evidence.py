"""Point-in-time snapshot of everything that went into a decision.

The three payloads are stored verbatim so the decision can be replayed
against the policy engine later.  A SHA-256 digest over the canonical JSON
of the payloads and capture time makes later tampering detectable.
"""
from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone

import structlog
from pydantic import Field, field_validator

from eco_compliance.domain.entities.base import ValueObject, utcnow
from eco_compliance.domain.exceptions import InvalidArgumentError

logger = structlog.get_logger(__name__)


class DecisionEvidence(ValueObject):
    """Raw scan input, exact engine request and exact engine response.

    ``captured_at`` takes part in equality: two snapshots taken at different
    instants are different evidence even with identical payloads.
    """

    scan_results_json: str
    policy_input_json: str
    policy_output_json: str
    captured_at: datetime = Field(default_factory=utcnow)
    content_hash: str = ""

    @field_validator("captured_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def create(
        cls,
        scan_results_json: str,
        policy_input_json: str,
        policy_output_json: str,
        captured_at: datetime | None = None,
    ) -> DecisionEvidence:
        """Factory that validates the payloads and seals them with a hash."""
        if not scan_results_json or not scan_results_json.strip():
            raise InvalidArgumentError("Scan results JSON cannot be empty")
        if not policy_input_json or not policy_input_json.strip():
            raise InvalidArgumentError("Policy input JSON cannot be empty")
        if not policy_output_json or not policy_output_json.strip():
            raise InvalidArgumentError("Policy output JSON cannot be empty")

        captured = captured_at or utcnow()
        if captured.tzinfo is None:
            captured = captured.replace(tzinfo=timezone.utc)
        content_hash = cls._compute_content_hash(
            scan_results_json, policy_input_json, policy_output_json, captured,
        )
        return cls(
            scan_results_json=scan_results_json,
            policy_input_json=policy_input_json,
            policy_output_json=policy_output_json,
            captured_at=captured,
            content_hash=content_hash,
        )

    def verify_integrity(self) -> bool:
        """Recompute the content hash and compare to the stored value."""
        expected = self._compute_content_hash(
            self.scan_results_json,
            self.policy_input_json,
            self.policy_output_json,
            self.captured_at,
        )
        is_valid = expected == self.content_hash
        if not is_valid:
            logger.warning(
                "evidence_integrity_mismatch",
                expected=expected[:16] + "...",
                actual=self.content_hash[:16] + "...",
            )
        return is_valid

    @staticmethod
    def _compute_content_hash(
        scan_results_json: str,
        policy_input_json: str,
        policy_output_json: str,
        captured_at: datetime,
    ) -> str:
        canonical = json.dumps(
            {
                "scan_results": scan_results_json,
                "policy_input": policy_input_json,
                "policy_output": policy_output_json,
                "captured_at": captured_at.astimezone(timezone.utc).isoformat(),
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
