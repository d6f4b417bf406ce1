"""SQLAlchemy repository implementations -- infrastructure adapters for domain ports.

Each repository:
* Accepts an ``AsyncSession`` owned by :class:`SqlAlchemyUnitOfWork`.
* Converts between ORM models and domain entities.
* Never commits; the unit of work decides.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from eco_compliance.domain.entities.application import Application, EnvironmentConfig
from eco_compliance.domain.entities.audit_log import AuditLog
from eco_compliance.domain.entities.compliance_evaluation import ComplianceEvaluation
from eco_compliance.domain.exceptions import NotFoundError
from eco_compliance.domain.repositories import (
    ApplicationRepository,
    AuditLogRepository,
    ComplianceEvaluationRepository,
)
from eco_compliance.domain.value_objects import (
    DecisionEvidence,
    PolicyDecision,
    RiskTier,
    ScanResult,
)
from eco_compliance.infrastructure.persistence.models import (
    ApplicationModel,
    AuditLogModel,
    ComplianceEvaluationModel,
    EnvironmentConfigModel,
)

logger = structlog.get_logger(__name__)


def _aware(value: datetime) -> datetime:
    """SQLite drops tzinfo; every timestamp we store is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ===================================================================
# SQLAlchemyApplicationRepository
# ===================================================================

class SQLAlchemyApplicationRepository(ApplicationRepository):
    """Concrete ``ApplicationRepository``; environments are stored as child rows."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_id(self, application_id: uuid.UUID) -> Application | None:
        model = await self._session.get(ApplicationModel, str(application_id))
        return self._to_entity(model) if model else None

    async def find_by_name(self, name: str) -> Application | None:
        result = await self._session.execute(
            select(ApplicationModel).where(ApplicationModel.name == name.strip())
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def find_by_policy_segment(self, segment: str) -> Application | None:
        result = await self._session.execute(
            select(ApplicationModel).where(ApplicationModel.policy_segment == segment)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def list_applications(
        self, skip: int = 0, limit: int = 50, active_only: bool = False,
    ) -> tuple[list[Application], int]:
        base_filter = [ApplicationModel.is_active.is_(True)] if active_only else []

        count_q = select(func.count()).select_from(ApplicationModel).where(*base_filter)
        total = (await self._session.execute(count_q)).scalar() or 0

        page_q = (
            select(ApplicationModel)
            .where(*base_filter)
            .order_by(ApplicationModel.name)
            .offset(skip)
            .limit(limit)
        )
        models = (await self._session.execute(page_q)).scalars().all()
        return [self._to_entity(m) for m in models], total

    async def save(self, application: Application) -> Application:
        model = ApplicationModel(
            id=str(application.id),
            name=application.name,
            policy_segment=application.policy_segment,
            owner=application.owner,
            is_active=application.is_active,
            created_at=application.created_at,
            updated_at=application.updated_at,
            version=application.version,
            environments=[self._env_to_model(env) for env in application.environments],
        )
        self._session.add(model)
        await self._session.flush()
        logger.debug("application_saved", application_id=model.id, name=model.name)
        return application

    async def update(self, application: Application) -> Application:
        model = await self._session.get(ApplicationModel, str(application.id))
        if model is None:
            raise NotFoundError("Application", str(application.id))

        model.name = application.name
        model.policy_segment = application.policy_segment
        model.owner = application.owner
        model.is_active = application.is_active
        model.updated_at = application.updated_at
        model.version = application.version

        existing = {env.id: env for env in model.environments}
        for env in application.environments:
            env_model = existing.get(str(env.id))
            if env_model is None:
                model.environments.append(self._env_to_model(env))
                continue
            env_model.risk_tier = env.risk_tier.value
            env_model.security_tools = [t.value for t in env.security_tools]
            env_model.policies = [p.package for p in env.policies]
            env_model.env_metadata = dict(env.metadata)
            env_model.is_active = env.is_active
            env_model.updated_at = env.updated_at

        await self._session.flush()
        logger.debug("application_updated", application_id=model.id, version=model.version)
        return application

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _env_to_model(env: EnvironmentConfig) -> EnvironmentConfigModel:
        return EnvironmentConfigModel(
            id=str(env.id),
            application_id=str(env.application_id),
            name=env.name,
            risk_tier=env.risk_tier.value,
            security_tools=[t.value for t in env.security_tools],
            policies=[p.package for p in env.policies],
            env_metadata=dict(env.metadata),
            is_active=env.is_active,
            created_at=env.created_at,
            updated_at=env.updated_at,
        )

    @staticmethod
    def _to_entity(model: ApplicationModel) -> Application:
        app_id = uuid.UUID(model.id)
        environments = tuple(
            EnvironmentConfig(
                id=uuid.UUID(env.id),
                application_id=app_id,
                name=env.name,
                risk_tier=env.risk_tier,
                security_tools=tuple(env.security_tools),
                policies=tuple(env.policies),
                metadata=dict(env.env_metadata or {}),
                is_active=env.is_active,
                created_at=_aware(env.created_at),
                updated_at=_aware(env.updated_at),
            )
            for env in model.environments
        )
        return Application(
            id=app_id,
            name=model.name,
            owner=model.owner,
            is_active=model.is_active,
            environments=environments,
            version=model.version,
            created_at=_aware(model.created_at),
            updated_at=_aware(model.updated_at),
        )


# ===================================================================
# SQLAlchemyComplianceEvaluationRepository
# ===================================================================

class SQLAlchemyComplianceEvaluationRepository(ComplianceEvaluationRepository):
    """Insert-only store of evaluations with their scans and decision as JSON."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, evaluation: ComplianceEvaluation) -> None:
        self._session.add(self._to_model(evaluation))
        await self._session.flush()

    async def find_by_id(self, evaluation_id: uuid.UUID) -> ComplianceEvaluation | None:
        model = await self._session.get(ComplianceEvaluationModel, str(evaluation_id))
        return self._to_entity(model) if model else None

    async def list_by_application(
        self, application_id: uuid.UUID, skip: int = 0, limit: int = 50,
    ) -> tuple[list[ComplianceEvaluation], int]:
        app_filter = ComplianceEvaluationModel.application_id == str(application_id)
        total = (await self._session.execute(
            select(func.count()).select_from(ComplianceEvaluationModel).where(app_filter)
        )).scalar() or 0
        models = (await self._session.execute(
            select(ComplianceEvaluationModel)
            .where(app_filter)
            .order_by(ComplianceEvaluationModel.evaluated_at.desc())
            .offset(skip)
            .limit(limit)
        )).scalars().all()
        return [self._to_entity(m) for m in models], total

    async def list_recent(self, since: datetime, limit: int = 100) -> list[ComplianceEvaluation]:
        return await self._fetch(
            select(ComplianceEvaluationModel)
            .where(ComplianceEvaluationModel.evaluated_at >= since)
            .order_by(ComplianceEvaluationModel.evaluated_at.desc())
            .limit(limit)
        )

    async def list_blocked(self, since: datetime, limit: int = 100) -> list[ComplianceEvaluation]:
        return await self._fetch(
            select(ComplianceEvaluationModel)
            .where(
                ComplianceEvaluationModel.allowed.is_(False),
                ComplianceEvaluationModel.evaluated_at >= since,
            )
            .order_by(ComplianceEvaluationModel.evaluated_at.desc())
            .limit(limit)
        )

    async def _fetch(self, query: Select[Any]) -> list[ComplianceEvaluation]:
        models = (await self._session.execute(query)).scalars().all()
        return [self._to_entity(m) for m in models]

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_model(evaluation: ComplianceEvaluation) -> ComplianceEvaluationModel:
        return ComplianceEvaluationModel(
            id=str(evaluation.id),
            application_id=str(evaluation.application_id),
            application_name=evaluation.application_name,
            environment=evaluation.environment,
            risk_tier=evaluation.risk_tier.value,
            allowed=evaluation.decision.allowed,
            decision=evaluation.decision.model_dump(mode="json"),
            scan_results=[r.model_dump(mode="json") for r in evaluation.scan_results],
            critical_count=evaluation.critical_count,
            high_count=evaluation.high_count,
            medium_count=evaluation.medium_count,
            low_count=evaluation.low_count,
            total_count=evaluation.get_total_vulnerability_count(),
            evaluated_at=evaluation.evaluated_at,
            created_at=evaluation.created_at,
        )

    @staticmethod
    def _to_entity(model: ComplianceEvaluationModel) -> ComplianceEvaluation:
        return ComplianceEvaluation(
            id=uuid.UUID(model.id),
            application_id=uuid.UUID(model.application_id),
            application_name=model.application_name,
            environment=model.environment,
            risk_tier=model.risk_tier,
            scan_results=tuple(ScanResult.model_validate(r) for r in model.scan_results),
            decision=PolicyDecision.model_validate(model.decision),
            evaluated_at=_aware(model.evaluated_at),
            created_at=_aware(model.created_at),
            updated_at=_aware(model.created_at),
        )


# ===================================================================
# SQLAlchemyAuditLogRepository
# ===================================================================

class SQLAlchemyAuditLogRepository(AuditLogRepository):
    """Audit trail store. Exposes inserts and reads only."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, audit_log: AuditLog) -> None:
        self._session.add(self._to_model(audit_log))
        await self._session.flush()

    async def find_by_id(self, audit_log_id: uuid.UUID) -> AuditLog | None:
        model = await self._session.get(AuditLogModel, str(audit_log_id))
        return self._to_entity(model) if model else None

    async def find_by_evaluation_id(self, evaluation_id: str) -> AuditLog | None:
        result = await self._session.execute(
            select(AuditLogModel).where(AuditLogModel.evaluation_id == evaluation_id)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def list_by_application(
        self,
        application_id: uuid.UUID,
        environment: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[AuditLog], int]:
        filters = [AuditLogModel.application_id == str(application_id)]
        if environment:
            filters.append(AuditLogModel.environment == environment.strip().lower())

        total = (await self._session.execute(
            select(func.count()).select_from(AuditLogModel).where(*filters)
        )).scalar() or 0
        logs = await self._fetch(
            select(AuditLogModel)
            .where(*filters)
            .order_by(AuditLogModel.evaluated_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return logs, total

    async def list_blocked(self, since: datetime, limit: int = 100) -> list[AuditLog]:
        return await self._fetch(
            select(AuditLogModel)
            .where(AuditLogModel.allowed.is_(False), AuditLogModel.evaluated_at >= since)
            .order_by(AuditLogModel.evaluated_at.desc())
            .limit(limit)
        )

    async def list_with_critical_vulnerabilities(self, since: datetime, limit: int = 100) -> list[AuditLog]:
        return await self._fetch(
            select(AuditLogModel)
            .where(AuditLogModel.critical_count > 0, AuditLogModel.evaluated_at >= since)
            .order_by(AuditLogModel.evaluated_at.desc())
            .limit(limit)
        )

    async def list_by_risk_tier(self, risk_tier: RiskTier, since: datetime, limit: int = 100) -> list[AuditLog]:
        return await self._fetch(
            select(AuditLogModel)
            .where(AuditLogModel.risk_tier == risk_tier.value, AuditLogModel.evaluated_at >= since)
            .order_by(AuditLogModel.evaluated_at.desc())
            .limit(limit)
        )

    async def list_between(self, start: datetime, end: datetime) -> list[AuditLog]:
        return await self._fetch(
            select(AuditLogModel)
            .where(AuditLogModel.evaluated_at >= start, AuditLogModel.evaluated_at <= end)
            .order_by(AuditLogModel.evaluated_at)
        )

    async def _fetch(self, query: Select[Any]) -> list[AuditLog]:
        models = (await self._session.execute(query)).scalars().all()
        return [self._to_entity(m) for m in models]

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_model(log: AuditLog) -> AuditLogModel:
        evidence = log.evidence
        return AuditLogModel(
            id=str(log.id),
            evaluation_id=log.evaluation_id,
            application_id=str(log.application_id),
            application_name=log.application_name,
            environment=log.environment,
            risk_tier=log.risk_tier.value,
            allowed=log.allowed,
            reason=log.reason,
            violations=list(log.violations),
            scan_results_json=evidence.scan_results_json,
            policy_input_json=evidence.policy_input_json,
            policy_output_json=evidence.policy_output_json,
            evidence_captured_at=evidence.captured_at,
            evidence_hash=evidence.content_hash,
            evaluation_duration_ms=log.evaluation_duration_ms,
            critical_count=log.critical_count,
            high_count=log.high_count,
            medium_count=log.medium_count,
            low_count=log.low_count,
            total_vulnerability_count=log.total_vulnerability_count,
            evaluated_at=log.evaluated_at,
            created_at=log.created_at,
        )

    @staticmethod
    def _to_entity(model: AuditLogModel) -> AuditLog:
        evidence = DecisionEvidence(
            scan_results_json=model.scan_results_json,
            policy_input_json=model.policy_input_json,
            policy_output_json=model.policy_output_json,
            captured_at=_aware(model.evidence_captured_at),
            content_hash=model.evidence_hash,
        )
        return AuditLog(
            id=uuid.UUID(model.id),
            evaluation_id=model.evaluation_id,
            application_id=uuid.UUID(model.application_id),
            application_name=model.application_name,
            environment=model.environment,
            risk_tier=model.risk_tier,
            allowed=model.allowed,
            reason=model.reason,
            violations=tuple(model.violations or ()),
            evidence=evidence,
            evaluation_duration_ms=model.evaluation_duration_ms,
            critical_count=model.critical_count,
            high_count=model.high_count,
            medium_count=model.medium_count,
            low_count=model.low_count,
            evaluated_at=_aware(model.evaluated_at),
            created_at=_aware(model.created_at),
            updated_at=_aware(model.created_at),
        )


__all__ = [
    "SQLAlchemyApplicationRepository",
    "SQLAlchemyComplianceEvaluationRepository",
    "SQLAlchemyAuditLogRepository",
]
