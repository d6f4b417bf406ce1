"""Turns submitted scan payloads into validated domain value objects."""
from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any, Sequence

import structlog

from eco_compliance.application.dto import ScanResultPayload
from eco_compliance.domain.exceptions import InvalidArgumentError
from eco_compliance.domain.value_objects import ScanResult, Vulnerability

logger = structlog.get_logger(__name__)


def canonical_json(payload: Any) -> str:
    """Serialise *payload* deterministically (sorted keys, no whitespace)."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)


class ScanIngestionService:
    """Validates scan payloads one by one; the first structural error wins."""

    def __init__(self, clock_skew: timedelta = timedelta(0)) -> None:
        self._clock_skew = clock_skew

    def ingest(
        self,
        payloads: Sequence[ScanResultPayload],
        reference_time: datetime,
    ) -> list[ScanResult]:
        if not payloads:
            raise InvalidArgumentError("At least one scan result is required")

        results: list[ScanResult] = []
        for index, payload in enumerate(payloads):
            try:
                vulnerabilities = [
                    Vulnerability.create(
                        id=v.id,
                        title=v.title,
                        severity=v.severity,
                        cvss_score=v.cvss_score,
                        package_name=v.package_name,
                        current_version=v.current_version,
                        fixed_version=v.fixed_version,
                    )
                    for v in payload.vulnerabilities
                ]
                result = ScanResult.create(
                    tool=payload.tool,
                    tool_version=payload.tool_version,
                    scan_date=payload.scan_date,
                    vulnerabilities=vulnerabilities,
                    project_id=payload.project_id,
                    reference_time=reference_time,
                    clock_skew=self._clock_skew,
                )
            except InvalidArgumentError as exc:
                exc.context.setdefault("scan_index", index)
                exc.context.setdefault("tool", payload.tool)
                raise
            results.append(result)

        logger.debug(
            "scan_results_ingested",
            scans=len(results),
            vulnerabilities=sum(r.total_count for r in results),
        )
        return results

    @staticmethod
    def raw_payload_json(payloads: Sequence[ScanResultPayload]) -> str:
        return canonical_json([p.model_dump(mode="json", by_alias=True) for p in payloads])
