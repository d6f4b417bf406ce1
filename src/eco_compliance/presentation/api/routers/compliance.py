"""Compliance evaluation endpoints."""
from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status

from eco_compliance.application.dto import (
    ComplianceEvaluationDTO,
    EvaluateComplianceRequest,
    PaginatedDTO,
)
from eco_compliance.application.use_cases.evaluate_compliance import EvaluateComplianceUseCase
from eco_compliance.application.use_cases.queries import (
    GetEvaluationUseCase,
    ListBlockedEvaluationsUseCase,
    ListEvaluationsByApplicationUseCase,
    ListRecentEvaluationsUseCase,
)
from eco_compliance.presentation.api import dependencies as deps

router = APIRouter(prefix="/api/v1/compliance", tags=["compliance"])


@router.post(
    "/evaluate",
    response_model=ComplianceEvaluationDTO,
    status_code=status.HTTP_200_OK,
    summary="Evaluate scan results for a deployment",
)
async def evaluate(
    body: EvaluateComplianceRequest,
    use_case: EvaluateComplianceUseCase = Depends(deps.get_evaluate_compliance),
) -> ComplianceEvaluationDTO:
    """A denied deployment is still a 200 response with ``passed: false``."""
    return await use_case.execute(body)


@router.get("/recent", response_model=list[ComplianceEvaluationDTO])
async def list_recent(
    days: int = Query(7, ge=1, le=365),
    limit: int = Query(100, ge=1, le=1000),
    use_case: ListRecentEvaluationsUseCase = Depends(deps.get_list_recent_evaluations),
) -> list[ComplianceEvaluationDTO]:
    return await use_case.execute(days=days, limit=limit)


@router.get("/blocked", response_model=list[ComplianceEvaluationDTO])
async def list_blocked(
    since: datetime | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    use_case: ListBlockedEvaluationsUseCase = Depends(deps.get_list_blocked_evaluations),
) -> list[ComplianceEvaluationDTO]:
    return await use_case.execute(since=since, limit=limit)


@router.get("/application/{application_id}", response_model=PaginatedDTO[ComplianceEvaluationDTO])
async def list_by_application(
    application_id: uuid.UUID,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    use_case: ListEvaluationsByApplicationUseCase = Depends(deps.get_list_evaluations_by_application),
) -> PaginatedDTO[ComplianceEvaluationDTO]:
    return await use_case.execute(application_id, skip=skip, limit=limit)


@router.get("/{evaluation_id}", response_model=ComplianceEvaluationDTO)
async def get_evaluation(
    evaluation_id: uuid.UUID,
    use_case: GetEvaluationUseCase = Depends(deps.get_get_evaluation),
) -> ComplianceEvaluationDTO:
    return await use_case.execute(evaluation_id)
