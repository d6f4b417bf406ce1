"""Read-side use cases over evaluations and audit logs."""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Callable

from eco_compliance.application.dto import (
    AuditLogDTO,
    AuditStatisticsDTO,
    ComplianceEvaluationDTO,
    PaginatedDTO,
)
from eco_compliance.domain.entities.audit_log import AuditStatistics
from eco_compliance.domain.entities.base import utcnow
from eco_compliance.domain.exceptions import InvalidArgumentError, NotFoundError
from eco_compliance.domain.repositories import UnitOfWork
from eco_compliance.domain.value_objects import RiskTier

DEFAULT_LOOKBACK = timedelta(days=30)


class _QueryUseCase:
    def __init__(self, uow_factory: Callable[[], UnitOfWork], clock: Callable[[], datetime] = utcnow) -> None:
        self._uow_factory = uow_factory
        self._clock = clock

    def _since(self, since: datetime | None) -> datetime:
        return since or self._clock() - DEFAULT_LOOKBACK


# ---------------------------------------------------------------------------
# Evaluations
# ---------------------------------------------------------------------------

class GetEvaluationUseCase(_QueryUseCase):
    async def execute(self, evaluation_id: uuid.UUID) -> ComplianceEvaluationDTO:
        async with self._uow_factory() as uow:
            evaluation = await uow.evaluations.find_by_id(evaluation_id)
        if evaluation is None:
            raise NotFoundError("ComplianceEvaluation", evaluation_id)
        return ComplianceEvaluationDTO.from_entity(evaluation)


class ListEvaluationsByApplicationUseCase(_QueryUseCase):
    async def execute(
        self, application_id: uuid.UUID, skip: int = 0, limit: int = 50,
    ) -> PaginatedDTO[ComplianceEvaluationDTO]:
        async with self._uow_factory() as uow:
            evaluations, total = await uow.evaluations.list_by_application(application_id, skip=skip, limit=limit)
        return PaginatedDTO[ComplianceEvaluationDTO](
            items=[ComplianceEvaluationDTO.from_entity(e) for e in evaluations],
            total=total,
            skip=skip,
            limit=limit,
        )


class ListRecentEvaluationsUseCase(_QueryUseCase):
    async def execute(self, days: int = 7, limit: int = 100) -> list[ComplianceEvaluationDTO]:
        if days < 1:
            raise InvalidArgumentError("days must be at least 1")
        since = self._clock() - timedelta(days=days)
        async with self._uow_factory() as uow:
            evaluations = await uow.evaluations.list_recent(since, limit=limit)
        return [ComplianceEvaluationDTO.from_entity(e) for e in evaluations]


class ListBlockedEvaluationsUseCase(_QueryUseCase):
    async def execute(self, since: datetime | None = None, limit: int = 100) -> list[ComplianceEvaluationDTO]:
        async with self._uow_factory() as uow:
            evaluations = await uow.evaluations.list_blocked(self._since(since), limit=limit)
        return [ComplianceEvaluationDTO.from_entity(e) for e in evaluations]


# ---------------------------------------------------------------------------
# Audit logs
# ---------------------------------------------------------------------------

class GetAuditLogUseCase(_QueryUseCase):
    async def execute(self, audit_log_id: uuid.UUID) -> AuditLogDTO:
        async with self._uow_factory() as uow:
            log = await uow.audit_logs.find_by_id(audit_log_id)
        if log is None:
            raise NotFoundError("AuditLog", audit_log_id)
        return AuditLogDTO.from_entity(log)


class GetAuditLogByEvaluationUseCase(_QueryUseCase):
    async def execute(self, evaluation_id: str) -> AuditLogDTO:
        async with self._uow_factory() as uow:
            log = await uow.audit_logs.find_by_evaluation_id(evaluation_id)
        if log is None:
            raise NotFoundError("AuditLog", evaluation_id, message=f"No audit log for evaluation '{evaluation_id}'")
        return AuditLogDTO.from_entity(log)


class ListAuditLogsByApplicationUseCase(_QueryUseCase):
    async def execute(
        self,
        application_id: uuid.UUID,
        environment: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> PaginatedDTO[AuditLogDTO]:
        env = environment.strip().lower() if environment else None
        async with self._uow_factory() as uow:
            logs, total = await uow.audit_logs.list_by_application(
                application_id, environment=env, skip=skip, limit=limit,
            )
        return PaginatedDTO[AuditLogDTO](
            items=[AuditLogDTO.from_entity(log, include_evidence=False) for log in logs],
            total=total,
            skip=skip,
            limit=limit,
        )


class ListBlockedDecisionsUseCase(_QueryUseCase):
    async def execute(self, since: datetime | None = None, limit: int = 100) -> list[AuditLogDTO]:
        async with self._uow_factory() as uow:
            logs = await uow.audit_logs.list_blocked(self._since(since), limit=limit)
        return [AuditLogDTO.from_entity(log, include_evidence=False) for log in logs]


class ListCriticalVulnerabilityLogsUseCase(_QueryUseCase):
    async def execute(self, since: datetime | None = None, limit: int = 100) -> list[AuditLogDTO]:
        async with self._uow_factory() as uow:
            logs = await uow.audit_logs.list_with_critical_vulnerabilities(self._since(since), limit=limit)
        return [AuditLogDTO.from_entity(log, include_evidence=False) for log in logs]


class ListAuditLogsByRiskTierUseCase(_QueryUseCase):
    async def execute(
        self, risk_tier: str, since: datetime | None = None, limit: int = 100,
    ) -> list[AuditLogDTO]:
        tier = RiskTier.from_string(risk_tier)
        async with self._uow_factory() as uow:
            logs = await uow.audit_logs.list_by_risk_tier(tier, self._since(since), limit=limit)
        return [AuditLogDTO.from_entity(log, include_evidence=False) for log in logs]


class GetAuditStatisticsUseCase(_QueryUseCase):
    async def execute(
        self, start: datetime | None = None, end: datetime | None = None,
    ) -> AuditStatisticsDTO:
        window_end = end or self._clock()
        window_start = start or window_end - DEFAULT_LOOKBACK
        if window_start > window_end:
            raise InvalidArgumentError("Statistics window start must not be after its end")
        async with self._uow_factory() as uow:
            logs = await uow.audit_logs.list_between(window_start, window_end)
        stats = AuditStatistics.from_logs(logs, window_start=window_start, window_end=window_end)
        return AuditStatisticsDTO.from_value(stats)


__all__ = [
    "GetEvaluationUseCase",
    "ListEvaluationsByApplicationUseCase",
    "ListRecentEvaluationsUseCase",
    "ListBlockedEvaluationsUseCase",
    "GetAuditLogUseCase",
    "GetAuditLogByEvaluationUseCase",
    "ListAuditLogsByApplicationUseCase",
    "ListBlockedDecisionsUseCase",
    "ListCriticalVulnerabilityLogsUseCase",
    "ListAuditLogsByRiskTierUseCase",
    "GetAuditStatisticsUseCase",
]
