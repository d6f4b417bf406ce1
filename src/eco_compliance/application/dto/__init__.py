"""Data transfer objects exchanged with callers.

Field names are snake_case in Python and camelCase on the wire.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Generic, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from eco_compliance.domain.entities.application import Application, EnvironmentConfig
from eco_compliance.domain.entities.audit_log import AuditLog, AuditStatistics
from eco_compliance.domain.entities.compliance_evaluation import ComplianceEvaluation
from eco_compliance.domain.value_objects import PolicyDecision, ScanResult

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Evaluation command
# ============================================================================

class VulnerabilityPayload(CamelModel):
    """A finding as reported by a scanner."""

    id: str = Field(validation_alias=AliasChoices("id", "cveId", "cve_id"))
    title: str = Field(default="", validation_alias=AliasChoices("title", "description"))
    severity: str
    cvss_score: float = Field(validation_alias=AliasChoices("cvssScore", "cvss_score", "score"))
    package_name: str
    current_version: str
    fixed_version: str | None = None


class ScanResultPayload(CamelModel):
    """One scanner run as submitted by the pipeline."""

    tool: str = Field(validation_alias=AliasChoices("tool", "toolName", "tool_name"))
    tool_version: str
    scan_date: datetime = Field(validation_alias=AliasChoices("scanDate", "scan_date", "scannedAt"))
    project_id: str | None = None
    vulnerabilities: list[VulnerabilityPayload] = Field(default_factory=list)


class EvaluateComplianceRequest(CamelModel):
    """Request to evaluate one set of scans for one application environment."""

    application_id: uuid.UUID
    environment: str
    scan_results: list[ScanResultPayload] = Field(default_factory=list)


# ============================================================================
# Evaluation results
# ============================================================================

class SeverityCountsDTO(CamelModel):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    total: int = 0


class PolicyDecisionDTO(CamelModel):
    allow: bool
    violations: list[str]
    reason: str
    policy_package: str | None = None
    decision_source: str
    evaluation_duration_ms: int = 0

    @classmethod
    def from_value(cls, decision: PolicyDecision) -> PolicyDecisionDTO:
        return cls(
            allow=decision.allowed,
            violations=list(decision.violations),
            reason=decision.get_reason(),
            policy_package=decision.policy_package,
            decision_source=decision.source.value,
            evaluation_duration_ms=decision.evaluation_duration_ms,
        )


class ScanResultSummaryDTO(CamelModel):
    tool: str
    tool_version: str
    scan_date: datetime
    project_id: str | None = None
    counts: SeverityCountsDTO

    @classmethod
    def from_value(cls, result: ScanResult) -> ScanResultSummaryDTO:
        return cls(
            tool=result.tool,
            tool_version=result.tool_version,
            scan_date=result.scan_date,
            project_id=result.project_id,
            counts=SeverityCountsDTO(**result.summary()),
        )


class ComplianceEvaluationDTO(CamelModel):
    """Outcome returned to the pipeline."""

    evaluation_id: uuid.UUID
    passed: bool
    policy_decision: PolicyDecisionDTO
    aggregated_counts: SeverityCountsDTO
    application_id: uuid.UUID
    application_name: str
    environment: str
    risk_tier: str
    evaluated_at: datetime
    scan_results: list[ScanResultSummaryDTO] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, evaluation: ComplianceEvaluation) -> ComplianceEvaluationDTO:
        return cls(
            evaluation_id=evaluation.id,
            passed=evaluation.is_allowed,
            policy_decision=PolicyDecisionDTO.from_value(evaluation.decision),
            aggregated_counts=SeverityCountsDTO(**evaluation.aggregated_counts()),
            application_id=evaluation.application_id,
            application_name=evaluation.application_name,
            environment=evaluation.environment,
            risk_tier=evaluation.risk_tier.value,
            evaluated_at=evaluation.evaluated_at,
            scan_results=[ScanResultSummaryDTO.from_value(r) for r in evaluation.scan_results],
        )


# ============================================================================
# Applications
# ============================================================================

class EnvironmentConfigDTO(CamelModel):
    id: uuid.UUID
    name: str
    risk_tier: str
    security_tools: list[str]
    policies: list[str]
    metadata: dict[str, str]
    is_active: bool
    is_production: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, env: EnvironmentConfig) -> EnvironmentConfigDTO:
        return cls(
            id=env.id,
            name=env.name,
            risk_tier=env.risk_tier.value,
            security_tools=[t.value for t in env.security_tools],
            policies=[p.package for p in env.policies],
            metadata=dict(env.metadata),
            is_active=env.is_active,
            is_production=env.is_production,
            created_at=env.created_at,
            updated_at=env.updated_at,
        )


class ApplicationDTO(CamelModel):
    id: uuid.UUID
    name: str
    owner: str
    is_active: bool
    environments: list[EnvironmentConfigDTO]
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_entity(cls, app: Application) -> ApplicationDTO:
        return cls(
            id=app.id,
            name=app.name,
            owner=app.owner,
            is_active=app.is_active,
            environments=[EnvironmentConfigDTO.from_entity(e) for e in app.environments],
            created_at=app.created_at,
            updated_at=app.updated_at,
            version=app.version,
        )


# ============================================================================
# Audit
# ============================================================================

class DecisionEvidenceDTO(CamelModel):
    scan_results_json: str
    policy_input_json: str
    policy_output_json: str
    captured_at: datetime
    content_hash: str
    integrity_verified: bool


class AuditLogDTO(CamelModel):
    id: uuid.UUID
    evaluation_id: str
    application_id: uuid.UUID
    application_name: str
    environment: str
    risk_tier: str
    allowed: bool
    reason: str
    violations: list[str]
    evaluation_duration_ms: int
    counts: SeverityCountsDTO
    evaluated_at: datetime
    evidence: DecisionEvidenceDTO | None = None

    @classmethod
    def from_entity(cls, log: AuditLog, include_evidence: bool = True) -> AuditLogDTO:
        evidence = None
        if include_evidence:
            evidence = DecisionEvidenceDTO(
                scan_results_json=log.evidence.scan_results_json,
                policy_input_json=log.evidence.policy_input_json,
                policy_output_json=log.evidence.policy_output_json,
                captured_at=log.evidence.captured_at,
                content_hash=log.evidence.content_hash,
                integrity_verified=log.verify_integrity(),
            )
        return cls(
            id=log.id,
            evaluation_id=log.evaluation_id,
            application_id=log.application_id,
            application_name=log.application_name,
            environment=log.environment,
            risk_tier=log.risk_tier.value,
            allowed=log.allowed,
            reason=log.reason,
            violations=list(log.violations),
            evaluation_duration_ms=log.evaluation_duration_ms,
            counts=SeverityCountsDTO(
                critical=log.critical_count,
                high=log.high_count,
                medium=log.medium_count,
                low=log.low_count,
                total=log.total_vulnerability_count,
            ),
            evaluated_at=log.evaluated_at,
            evidence=evidence,
        )


class AuditStatisticsDTO(CamelModel):
    total_evaluations: int
    allowed_count: int
    blocked_count: int
    blocked_percentage: float
    total_critical_vulnerabilities: int
    total_high_vulnerabilities: int
    evaluations_by_environment: dict[str, int]
    evaluations_by_risk_tier: dict[str, int]
    window_start: datetime | None = None
    window_end: datetime | None = None

    @classmethod
    def from_value(cls, stats: AuditStatistics) -> AuditStatisticsDTO:
        return cls(
            total_evaluations=stats.total_evaluations,
            allowed_count=stats.allowed_count,
            blocked_count=stats.blocked_count,
            blocked_percentage=stats.blocked_percentage,
            total_critical_vulnerabilities=stats.total_critical_vulnerabilities,
            total_high_vulnerabilities=stats.total_high_vulnerabilities,
            evaluations_by_environment=stats.evaluations_by_environment,
            evaluations_by_risk_tier=stats.evaluations_by_risk_tier,
            window_start=stats.window_start,
            window_end=stats.window_end,
        )


class PaginatedDTO(CamelModel, Generic[T]):
    items: list[T]
    total: int
    skip: int
    limit: int

    @property
    def has_next(self) -> bool:
        return self.skip + len(self.items) < self.total


__all__ = [
    "CamelModel",
    "VulnerabilityPayload",
    "ScanResultPayload",
    "EvaluateComplianceRequest",
    "SeverityCountsDTO",
    "PolicyDecisionDTO",
    "ScanResultSummaryDTO",
    "ComplianceEvaluationDTO",
    "EnvironmentConfigDTO",
    "ApplicationDTO",
    "DecisionEvidenceDTO",
    "AuditLogDTO",
    "AuditStatisticsDTO",
    "PaginatedDTO",
]
