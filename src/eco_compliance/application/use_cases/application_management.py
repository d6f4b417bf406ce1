"""Application management use cases: register applications and configure environments."""
from __future__ import annotations

import uuid
from typing import Callable, Iterable

import structlog

from eco_compliance.application.dto import ApplicationDTO, PaginatedDTO
from eco_compliance.application.events import EventBus
from eco_compliance.domain.entities.application import Application
from eco_compliance.domain.exceptions import DuplicateApplicationError, NotFoundError
from eco_compliance.domain.repositories import UnitOfWork

logger = structlog.get_logger(__name__)


class _ApplicationUseCase:
    def __init__(self, uow_factory: Callable[[], UnitOfWork], event_bus: EventBus) -> None:
        self._uow_factory = uow_factory
        self._bus = event_bus

    @staticmethod
    async def _load(uow: UnitOfWork, application_id: uuid.UUID) -> Application:
        application = await uow.applications.find_by_id(application_id)
        if application is None:
            raise NotFoundError("Application", application_id)
        return application

    async def _mutate(
        self,
        application_id: uuid.UUID,
        change: Callable[[Application], object],
    ) -> ApplicationDTO:
        async with self._uow_factory() as uow:
            application = await self._load(uow, application_id)
            change(application)
            await uow.applications.update(application)
            await uow.commit()
        await self._bus.publish_all(application.collect_events())
        return ApplicationDTO.from_entity(application)


class RegisterApplicationUseCase(_ApplicationUseCase):
    """Register a new application under a unique name."""

    async def execute(self, name: str, owner: str) -> ApplicationDTO:
        application = Application.create(name=name, owner=owner)
        async with self._uow_factory() as uow:
            if await uow.applications.find_by_name(application.name) is not None:
                raise DuplicateApplicationError(application.name)
            clash = await uow.applications.find_by_policy_segment(application.policy_segment)
            if clash is not None:
                raise DuplicateApplicationError(application.name, conflicting_name=clash.name)
            await uow.applications.save(application)
            await uow.commit()

        await self._bus.publish_all(application.collect_events())
        logger.info("application_registered", application_id=str(application.id), name=application.name)
        return ApplicationDTO.from_entity(application)


class GetApplicationUseCase(_ApplicationUseCase):
    async def execute(self, application_id: uuid.UUID) -> ApplicationDTO:
        async with self._uow_factory() as uow:
            application = await self._load(uow, application_id)
        return ApplicationDTO.from_entity(application)


class GetApplicationByNameUseCase(_ApplicationUseCase):
    async def execute(self, name: str) -> ApplicationDTO:
        async with self._uow_factory() as uow:
            application = await uow.applications.find_by_name(name.strip())
        if application is None:
            raise NotFoundError("Application", name)
        return ApplicationDTO.from_entity(application)


class ListApplicationsUseCase(_ApplicationUseCase):
    async def execute(
        self, skip: int = 0, limit: int = 50, active_only: bool = False,
    ) -> PaginatedDTO[ApplicationDTO]:
        async with self._uow_factory() as uow:
            applications, total = await uow.applications.list_applications(
                skip=skip, limit=limit, active_only=active_only,
            )
        return PaginatedDTO[ApplicationDTO](
            items=[ApplicationDTO.from_entity(a) for a in applications],
            total=total,
            skip=skip,
            limit=limit,
        )


class UpdateApplicationOwnerUseCase(_ApplicationUseCase):
    async def execute(self, application_id: uuid.UUID, owner: str) -> ApplicationDTO:
        dto = await self._mutate(application_id, lambda app: app.update_owner(owner))
        logger.info("application_owner_updated", application_id=str(application_id))
        return dto


class DeactivateApplicationUseCase(_ApplicationUseCase):
    async def execute(self, application_id: uuid.UUID) -> ApplicationDTO:
        dto = await self._mutate(application_id, lambda app: app.deactivate())
        logger.info("application_deactivated", application_id=str(application_id))
        return dto


class ReactivateApplicationUseCase(_ApplicationUseCase):
    async def execute(self, application_id: uuid.UUID) -> ApplicationDTO:
        dto = await self._mutate(application_id, lambda app: app.reactivate())
        logger.info("application_reactivated", application_id=str(application_id))
        return dto


class AddEnvironmentUseCase(_ApplicationUseCase):
    """Attach a new environment configuration to an application."""

    async def execute(
        self,
        application_id: uuid.UUID,
        name: str,
        risk_tier: str,
        security_tools: Iterable[str],
        policies: Iterable[str],
        metadata: dict[str, str] | None = None,
    ) -> ApplicationDTO:
        dto = await self._mutate(
            application_id,
            lambda app: app.add_environment(
                name=name,
                risk_tier=risk_tier,
                security_tools=list(security_tools),
                policies=list(policies),
                metadata=metadata,
            ),
        )
        logger.info("environment_added", application_id=str(application_id), environment=name)
        return dto


class UpdateEnvironmentUseCase(_ApplicationUseCase):
    async def execute(
        self,
        application_id: uuid.UUID,
        name: str,
        risk_tier: str | None = None,
        security_tools: Iterable[str] | None = None,
        policies: Iterable[str] | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ApplicationDTO:
        dto = await self._mutate(
            application_id,
            lambda app: app.update_environment(
                name=name,
                risk_tier=risk_tier,
                security_tools=list(security_tools) if security_tools is not None else None,
                policies=list(policies) if policies is not None else None,
                metadata=metadata,
            ),
        )
        logger.info("environment_updated", application_id=str(application_id), environment=name)
        return dto


class DeactivateEnvironmentUseCase(_ApplicationUseCase):
    async def execute(self, application_id: uuid.UUID, name: str) -> ApplicationDTO:
        dto = await self._mutate(application_id, lambda app: app.deactivate_environment(name))
        logger.info("environment_deactivated", application_id=str(application_id), environment=name)
        return dto


__all__ = [
    "RegisterApplicationUseCase",
    "GetApplicationUseCase",
    "GetApplicationByNameUseCase",
    "ListApplicationsUseCase",
    "UpdateApplicationOwnerUseCase",
    "DeactivateApplicationUseCase",
    "ReactivateApplicationUseCase",
    "AddEnvironmentUseCase",
    "UpdateEnvironmentUseCase",
    "DeactivateEnvironmentUseCase",
]
