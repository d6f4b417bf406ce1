"""Audit trail endpoints. Read-only."""
from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query

from eco_compliance.application.dto import AuditLogDTO, AuditStatisticsDTO, PaginatedDTO
from eco_compliance.application.use_cases.queries import (
    GetAuditLogByEvaluationUseCase,
    GetAuditLogUseCase,
    GetAuditStatisticsUseCase,
    ListAuditLogsByApplicationUseCase,
    ListAuditLogsByRiskTierUseCase,
    ListBlockedDecisionsUseCase,
    ListCriticalVulnerabilityLogsUseCase,
)
from eco_compliance.presentation.api import dependencies as deps

router = APIRouter(prefix="/api/v1/audit", tags=["audit"])


@router.get("/blocked", response_model=list[AuditLogDTO])
async def list_blocked(
    since: datetime | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    use_case: ListBlockedDecisionsUseCase = Depends(deps.get_list_blocked_decisions),
) -> list[AuditLogDTO]:
    return await use_case.execute(since=since, limit=limit)


@router.get("/critical-vulnerabilities", response_model=list[AuditLogDTO])
async def list_critical(
    since: datetime | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    use_case: ListCriticalVulnerabilityLogsUseCase = Depends(deps.get_list_critical_vulnerability_logs),
) -> list[AuditLogDTO]:
    return await use_case.execute(since=since, limit=limit)


@router.get("/risk-tier/{risk_tier}", response_model=list[AuditLogDTO])
async def list_by_risk_tier(
    risk_tier: str,
    since: datetime | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    use_case: ListAuditLogsByRiskTierUseCase = Depends(deps.get_list_audit_logs_by_risk_tier),
) -> list[AuditLogDTO]:
    return await use_case.execute(risk_tier, since=since, limit=limit)


@router.get("/statistics", response_model=AuditStatisticsDTO)
async def statistics(
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    use_case: GetAuditStatisticsUseCase = Depends(deps.get_audit_statistics),
) -> AuditStatisticsDTO:
    return await use_case.execute(start=start, end=end)


@router.get("/evaluation/{evaluation_id}", response_model=AuditLogDTO)
async def get_by_evaluation(
    evaluation_id: str,
    use_case: GetAuditLogByEvaluationUseCase = Depends(deps.get_get_audit_log_by_evaluation),
) -> AuditLogDTO:
    return await use_case.execute(evaluation_id)


@router.get("/application/{application_id}", response_model=PaginatedDTO[AuditLogDTO])
async def list_by_application(
    application_id: uuid.UUID,
    environment: str | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    use_case: ListAuditLogsByApplicationUseCase = Depends(deps.get_list_audit_logs_by_application),
) -> PaginatedDTO[AuditLogDTO]:
    return await use_case.execute(application_id, environment=environment, skip=skip, limit=limit)


@router.get("/{audit_log_id}", response_model=AuditLogDTO)
async def get_audit_log(
    audit_log_id: uuid.UUID,
    use_case: GetAuditLogUseCase = Depends(deps.get_get_audit_log),
) -> AuditLogDTO:
    return await use_case.execute(audit_log_id)
