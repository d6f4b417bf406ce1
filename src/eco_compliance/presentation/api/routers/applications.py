"""Application and environment configuration endpoints."""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from eco_compliance.application.dto import ApplicationDTO, PaginatedDTO
from eco_compliance.application.use_cases.application_management import (
    AddEnvironmentUseCase,
    DeactivateApplicationUseCase,
    DeactivateEnvironmentUseCase,
    GetApplicationByNameUseCase,
    GetApplicationUseCase,
    ListApplicationsUseCase,
    ReactivateApplicationUseCase,
    RegisterApplicationUseCase,
    UpdateApplicationOwnerUseCase,
    UpdateEnvironmentUseCase,
)
from eco_compliance.presentation.api import dependencies as deps
from eco_compliance.presentation.api.schemas import (
    AddEnvironmentRequest,
    RegisterApplicationRequest,
    UpdateEnvironmentRequest,
    UpdateOwnerRequest,
)

router = APIRouter(prefix="/api/v1/applications", tags=["applications"])


@router.post("", response_model=ApplicationDTO, status_code=status.HTTP_201_CREATED)
async def register_application(
    body: RegisterApplicationRequest,
    use_case: RegisterApplicationUseCase = Depends(deps.get_register_application),
) -> ApplicationDTO:
    return await use_case.execute(name=body.name, owner=body.owner)


@router.get("", response_model=PaginatedDTO[ApplicationDTO])
async def list_applications(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    active_only: bool = Query(False, alias="activeOnly"),
    use_case: ListApplicationsUseCase = Depends(deps.get_list_applications),
) -> PaginatedDTO[ApplicationDTO]:
    return await use_case.execute(skip=skip, limit=limit, active_only=active_only)


@router.get("/by-name/{name}", response_model=ApplicationDTO)
async def get_application_by_name(
    name: str,
    use_case: GetApplicationByNameUseCase = Depends(deps.get_get_application_by_name),
) -> ApplicationDTO:
    return await use_case.execute(name)


@router.get("/{application_id}", response_model=ApplicationDTO)
async def get_application(
    application_id: uuid.UUID,
    use_case: GetApplicationUseCase = Depends(deps.get_get_application),
) -> ApplicationDTO:
    return await use_case.execute(application_id)


@router.patch("/{application_id}/owner", response_model=ApplicationDTO)
async def update_owner(
    application_id: uuid.UUID,
    body: UpdateOwnerRequest,
    use_case: UpdateApplicationOwnerUseCase = Depends(deps.get_update_owner),
) -> ApplicationDTO:
    return await use_case.execute(application_id, body.owner)


@router.post("/{application_id}/deactivate", response_model=ApplicationDTO)
async def deactivate_application(
    application_id: uuid.UUID,
    use_case: DeactivateApplicationUseCase = Depends(deps.get_deactivate_application),
) -> ApplicationDTO:
    return await use_case.execute(application_id)


@router.post("/{application_id}/reactivate", response_model=ApplicationDTO)
async def reactivate_application(
    application_id: uuid.UUID,
    use_case: ReactivateApplicationUseCase = Depends(deps.get_reactivate_application),
) -> ApplicationDTO:
    return await use_case.execute(application_id)


# ---------------------------------------------------------------------------
# Environments
# ---------------------------------------------------------------------------

@router.post(
    "/{application_id}/environments",
    response_model=ApplicationDTO,
    status_code=status.HTTP_201_CREATED,
)
async def add_environment(
    application_id: uuid.UUID,
    body: AddEnvironmentRequest,
    use_case: AddEnvironmentUseCase = Depends(deps.get_add_environment),
) -> ApplicationDTO:
    return await use_case.execute(
        application_id,
        name=body.name,
        risk_tier=body.risk_tier,
        security_tools=body.security_tools,
        policies=body.policies,
        metadata=body.metadata,
    )


@router.put("/{application_id}/environments/{environment}", response_model=ApplicationDTO)
async def update_environment(
    application_id: uuid.UUID,
    environment: str,
    body: UpdateEnvironmentRequest,
    use_case: UpdateEnvironmentUseCase = Depends(deps.get_update_environment),
) -> ApplicationDTO:
    return await use_case.execute(
        application_id,
        name=environment,
        risk_tier=body.risk_tier,
        security_tools=body.security_tools,
        policies=body.policies,
        metadata=body.metadata,
    )


@router.post("/{application_id}/environments/{environment}/deactivate", response_model=ApplicationDTO)
async def deactivate_environment(
    application_id: uuid.UUID,
    environment: str,
    use_case: DeactivateEnvironmentUseCase = Depends(deps.get_deactivate_environment),
) -> ApplicationDTO:
    return await use_case.execute(application_id, environment)
