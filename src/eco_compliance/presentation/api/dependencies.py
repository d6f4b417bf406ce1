"""FastAPI dependency injection providers.

Every collaborator lives on a :class:`Container` stored in
``app.state.container``.  Tests build their own container (fake policy
engine, in-memory unit of work) and hand it to ``create_app``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import structlog
from fastapi import Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from eco_compliance.application.events import EventBus, register_audit_trail_handlers
from eco_compliance.application.interfaces import NotificationService, PolicyEngineClient
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
from eco_compliance.application.use_cases.evaluate_compliance import EvaluateComplianceUseCase
from eco_compliance.application.use_cases.queries import (
    GetAuditLogByEvaluationUseCase,
    GetAuditLogUseCase,
    GetAuditStatisticsUseCase,
    GetEvaluationUseCase,
    ListAuditLogsByApplicationUseCase,
    ListAuditLogsByRiskTierUseCase,
    ListBlockedDecisionsUseCase,
    ListBlockedEvaluationsUseCase,
    ListCriticalVulnerabilityLogsUseCase,
    ListEvaluationsByApplicationUseCase,
    ListRecentEvaluationsUseCase,
)
from eco_compliance.domain.repositories import UnitOfWork
from eco_compliance.domain.services.policy_resolver import PolicyResolver
from eco_compliance.infrastructure.config import Settings
from eco_compliance.infrastructure.external.opa_client import OpaClient
from eco_compliance.infrastructure.notifications import LoggingNotificationService
from eco_compliance.infrastructure.persistence import (
    SqlAlchemyUnitOfWork,
    create_engine,
    create_session_factory,
)
from eco_compliance.infrastructure.tasks import TaskRunner

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Container
# ---------------------------------------------------------------------------

@dataclass
class Container:
    settings: Settings
    uow_factory: Callable[[], UnitOfWork]
    policy_engine: PolicyEngineClient
    notifier: NotificationService
    task_runner: TaskRunner
    event_bus: EventBus
    resolver: PolicyResolver
    db_engine: AsyncEngine | None = None

    async def database_healthy(self) -> bool:
        if self.db_engine is None:
            return True
        try:
            async with self.db_engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.warning("database_health_check_failed", error=str(exc))
            return False
        return True


def build_container(
    settings: Settings,
    policy_engine: PolicyEngineClient | None = None,
    notifier: NotificationService | None = None,
) -> Container:
    """Wire the production object graph from settings."""
    db_engine = create_engine(settings.database_url, echo=settings.database_echo)
    session_factory = create_session_factory(db_engine)

    bus = EventBus()
    register_audit_trail_handlers(bus)

    return Container(
        settings=settings,
        uow_factory=lambda: SqlAlchemyUnitOfWork(session_factory),
        policy_engine=policy_engine or OpaClient(
            settings.opa_url,
            timeout=settings.opa_timeout_seconds,
            max_retries=settings.opa_max_retries,
        ),
        notifier=notifier or LoggingNotificationService(),
        task_runner=TaskRunner(),
        event_bus=bus,
        resolver=PolicyResolver(root_package=settings.policy_root_package),
        db_engine=db_engine,
    )


def get_container(request: Request) -> Container:
    return request.app.state.container


# ---------------------------------------------------------------------------
# Use case providers
# ---------------------------------------------------------------------------

def get_evaluate_compliance(c: Container = Depends(get_container)) -> EvaluateComplianceUseCase:
    return EvaluateComplianceUseCase(
        uow_factory=c.uow_factory,
        policy_engine=c.policy_engine,
        notifier=c.notifier,
        task_scheduler=c.task_runner,
        event_bus=c.event_bus,
        resolver=c.resolver,
        options=c.settings.evaluation_options(),
    )


def _application_use_case(cls: type) -> Callable[[Container], object]:
    def provider(c: Container = Depends(get_container)) -> object:
        return cls(c.uow_factory, c.event_bus)

    provider.__name__ = f"get_{cls.__name__}"
    return provider


def _query_use_case(cls: type) -> Callable[[Container], object]:
    def provider(c: Container = Depends(get_container)) -> object:
        return cls(c.uow_factory)

    provider.__name__ = f"get_{cls.__name__}"
    return provider


get_register_application = _application_use_case(RegisterApplicationUseCase)
get_get_application = _application_use_case(GetApplicationUseCase)
get_get_application_by_name = _application_use_case(GetApplicationByNameUseCase)
get_list_applications = _application_use_case(ListApplicationsUseCase)
get_update_owner = _application_use_case(UpdateApplicationOwnerUseCase)
get_deactivate_application = _application_use_case(DeactivateApplicationUseCase)
get_reactivate_application = _application_use_case(ReactivateApplicationUseCase)
get_add_environment = _application_use_case(AddEnvironmentUseCase)
get_update_environment = _application_use_case(UpdateEnvironmentUseCase)
get_deactivate_environment = _application_use_case(DeactivateEnvironmentUseCase)

get_get_evaluation = _query_use_case(GetEvaluationUseCase)
get_list_evaluations_by_application = _query_use_case(ListEvaluationsByApplicationUseCase)
get_list_recent_evaluations = _query_use_case(ListRecentEvaluationsUseCase)
get_list_blocked_evaluations = _query_use_case(ListBlockedEvaluationsUseCase)
get_get_audit_log = _query_use_case(GetAuditLogUseCase)
get_get_audit_log_by_evaluation = _query_use_case(GetAuditLogByEvaluationUseCase)
get_list_audit_logs_by_application = _query_use_case(ListAuditLogsByApplicationUseCase)
get_list_blocked_decisions = _query_use_case(ListBlockedDecisionsUseCase)
get_list_critical_vulnerability_logs = _query_use_case(ListCriticalVulnerabilityLogsUseCase)
get_list_audit_logs_by_risk_tier = _query_use_case(ListAuditLogsByRiskTierUseCase)
get_audit_statistics = _query_use_case(GetAuditStatisticsUseCase)
