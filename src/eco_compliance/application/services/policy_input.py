"""Builds the structured input document sent to the policy engine."""
from __future__ import annotations

from typing import Any, Sequence

from eco_compliance.domain.entities.application import Application, EnvironmentConfig
from eco_compliance.domain.value_objects import ScanResult, Severity


def build_policy_input(
    application: Application,
    environment: EnvironmentConfig,
    scan_results: Sequence[ScanResult],
) -> dict[str, Any]:
    """Return the ``input`` document for one evaluation.

    Every finding is listed individually, including the same CVE reported
    by several tools.
    """
    aggregated = {s.value: sum(r.count(s) for r in scan_results) for s in Severity}
    aggregated["total"] = sum(r.total_count for r in scan_results)
    return {
        "application": {
            "name": application.name,
            "environment": environment.name,
            "risk_tier": environment.risk_tier.value,
            "owner": application.owner,
            "required_tools": [t.value for t in environment.security_tools],
            "policies": [p.package for p in environment.policies],
        },
        "scan_results": [
            {
                "tool": r.tool,
                "tool_version": r.tool_version,
                "scan_date": r.scan_date.isoformat(),
                "project_id": r.project_id,
                "vulnerabilities": [
                    {
                        "id": v.id,
                        "title": v.title,
                        "severity": v.severity.value,
                        "cvss_score": v.cvss_score,
                        "package_name": v.package_name,
                        "current_version": v.current_version,
                        "fixed_version": v.fixed_version,
                    }
                    for v in r.vulnerabilities
                ],
                "counts": r.summary(),
            }
            for r in scan_results
        ],
        "aggregated_counts": aggregated,
        "metadata": dict(environment.metadata),
    }
