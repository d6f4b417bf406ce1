"""Unit tests for application registration and environment configuration."""
from __future__ import annotations

import uuid
from typing import Callable

import pytest

from eco_compliance.application.events import EventBus
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
from eco_compliance.domain.entities.application import Application
from eco_compliance.domain.entities.base import DomainEvent
from eco_compliance.domain.exceptions import (
    DuplicateApplicationError,
    DuplicateEnvironmentError,
    InvalidArgumentError,
    NotFoundError,
)
from eco_compliance.domain.value_objects import RiskTier
from tests.fixtures.factories import ApplicationFactory
from tests.fixtures.fakes import InMemoryStore, InMemoryUnitOfWork

pytestmark = pytest.mark.asyncio

UowFactory = Callable[[], InMemoryUnitOfWork]


@pytest.fixture
def published(event_bus: EventBus) -> list[DomainEvent]:
    events: list[DomainEvent] = []

    async def record(event: DomainEvent) -> None:
        events.append(event)

    for event_type in (
        "application.registered",
        "application.environment_added",
        "application.environment_updated",
        "application.owner_changed",
        "application.deactivated",
        "application.reactivated",
    ):
        event_bus.subscribe(event_type, record)
    return events


class TestRegisterApplication:
    async def test_register(
        self,
        uow_factory: UowFactory,
        event_bus: EventBus,
        store: InMemoryStore,
        published: list[DomainEvent],
    ) -> None:
        dto = await RegisterApplicationUseCase(uow_factory, event_bus).execute(
            "checkout-service", "checkout-team@example.com",
        )
        assert dto.name == "checkout-service"
        assert dto.is_active
        assert dto.environments == []
        assert dto.id in store.applications
        assert [e.event_type for e in published] == ["application.registered"]

    async def test_duplicate_name(
        self, uow_factory: UowFactory, event_bus: EventBus, payment_api: Application, store: InMemoryStore,
    ) -> None:
        with pytest.raises(DuplicateApplicationError):
            await RegisterApplicationUseCase(uow_factory, event_bus).execute("payment-api", "someone@example.com")
        assert len(store.applications) == 1

    @pytest.mark.parametrize("name", ["payment_api", "payment.api", "Payment-API"])
    async def test_policy_segment_collision(
        self, uow_factory: UowFactory, event_bus: EventBus, payment_api: Application, store: InMemoryStore, name: str,
    ) -> None:
        with pytest.raises(DuplicateApplicationError, match="share policy packages") as exc_info:
            await RegisterApplicationUseCase(uow_factory, event_bus).execute(name, "someone@example.com")
        assert exc_info.value.context == {"name": name, "conflicting_name": "payment-api"}
        assert list(store.applications) == [payment_api.id]

    async def test_name_without_policy_segment(
        self, uow_factory: UowFactory, event_bus: EventBus, store: InMemoryStore,
    ) -> None:
        with pytest.raises(InvalidArgumentError):
            await RegisterApplicationUseCase(uow_factory, event_bus).execute("---", "owner@example.com")
        assert store.applications == {}

    async def test_invalid_name(self, uow_factory: UowFactory, event_bus: EventBus, store: InMemoryStore) -> None:
        with pytest.raises(InvalidArgumentError):
            await RegisterApplicationUseCase(uow_factory, event_bus).execute("x", "owner@example.com")
        assert store.applications == {}


class TestReadApplications:
    async def test_get_by_id(self, uow_factory: UowFactory, event_bus: EventBus, payment_api: Application) -> None:
        dto = await GetApplicationUseCase(uow_factory, event_bus).execute(payment_api.id)
        assert dto.name == "payment-api"
        assert dto.environments[0].name == "production"
        assert dto.environments[0].risk_tier == "critical"
        assert dto.environments[0].is_production

    async def test_get_missing(self, uow_factory: UowFactory, event_bus: EventBus) -> None:
        with pytest.raises(NotFoundError):
            await GetApplicationUseCase(uow_factory, event_bus).execute(uuid.uuid4())

    async def test_get_by_name(self, uow_factory: UowFactory, event_bus: EventBus, payment_api: Application) -> None:
        dto = await GetApplicationByNameUseCase(uow_factory, event_bus).execute(" payment-api ")
        assert dto.id == payment_api.id

    async def test_list_paginates_and_filters(
        self, uow_factory: UowFactory, event_bus: EventBus, store: InMemoryStore,
    ) -> None:
        for name in ("alpha-api", "bravo-api", "charlie-api"):
            store.put_application(ApplicationFactory.create(name=name))
        retired = ApplicationFactory.create(name="delta-api")
        retired.deactivate()
        store.put_application(retired)

        use_case = ListApplicationsUseCase(uow_factory, event_bus)
        page = await use_case.execute(skip=0, limit=2)
        assert [a.name for a in page.items] == ["alpha-api", "bravo-api"]
        assert page.total == 4
        assert page.has_next

        active = await use_case.execute(active_only=True)
        assert [a.name for a in active.items] == ["alpha-api", "bravo-api", "charlie-api"]
        assert not active.has_next


class TestApplicationLifecycle:
    async def test_update_owner(
        self,
        uow_factory: UowFactory,
        event_bus: EventBus,
        payment_api: Application,
        store: InMemoryStore,
        published: list[DomainEvent],
    ) -> None:
        dto = await UpdateApplicationOwnerUseCase(uow_factory, event_bus).execute(
            payment_api.id, "platform-team@example.com",
        )
        assert dto.owner == "platform-team@example.com"
        assert dto.version == payment_api.version + 1
        assert store.applications[payment_api.id].owner == "platform-team@example.com"
        assert published[0].payload == {
            "old_owner": "payments-team@example.com",
            "new_owner": "platform-team@example.com",
        }

    async def test_deactivate_and_reactivate(
        self, uow_factory: UowFactory, event_bus: EventBus, payment_api: Application, store: InMemoryStore,
    ) -> None:
        await DeactivateApplicationUseCase(uow_factory, event_bus).execute(payment_api.id)
        assert not store.applications[payment_api.id].is_active

        dto = await ReactivateApplicationUseCase(uow_factory, event_bus).execute(payment_api.id)
        assert dto.is_active
        assert store.applications[payment_api.id].is_active

    async def test_missing_application(self, uow_factory: UowFactory, event_bus: EventBus, store: InMemoryStore) -> None:
        with pytest.raises(NotFoundError):
            await DeactivateApplicationUseCase(uow_factory, event_bus).execute(uuid.uuid4())
        assert store.commits == 0


class TestEnvironments:
    async def test_add_environment(
        self,
        uow_factory: UowFactory,
        event_bus: EventBus,
        payment_api: Application,
        store: InMemoryStore,
        published: list[DomainEvent],
    ) -> None:
        dto = await AddEnvironmentUseCase(uow_factory, event_bus).execute(
            payment_api.id,
            name="Staging",
            risk_tier="high",
            security_tools=["snyk"],
            policies=["compliance.global.staging"],
            metadata={"vertical": "fintech"},
        )
        names = [e.name for e in dto.environments]
        assert names == ["production", "staging"]
        staging = store.applications[payment_api.id].get_environment("staging")
        assert staging.risk_tier is RiskTier.HIGH
        assert staging.vertical == "fintech"
        assert published[0].event_type == "application.environment_added"

    async def test_duplicate_environment(
        self, uow_factory: UowFactory, event_bus: EventBus, payment_api: Application, store: InMemoryStore,
    ) -> None:
        with pytest.raises(DuplicateEnvironmentError):
            await AddEnvironmentUseCase(uow_factory, event_bus).execute(
                payment_api.id, "PRODUCTION", "high", ["snyk"], ["compliance.global.production"],
            )
        assert len(store.applications[payment_api.id].environments) == 1

    async def test_unsupported_tool_rejected(
        self, uow_factory: UowFactory, event_bus: EventBus, payment_api: Application,
    ) -> None:
        with pytest.raises(InvalidArgumentError, match="Unsupported security tool"):
            await AddEnvironmentUseCase(uow_factory, event_bus).execute(
                payment_api.id, "qa", "low", ["not-a-scanner"], ["compliance.global.qa"],
            )

    async def test_update_environment_keeps_unspecified_fields(
        self, uow_factory: UowFactory, event_bus: EventBus, payment_api: Application, store: InMemoryStore,
    ) -> None:
        await UpdateEnvironmentUseCase(uow_factory, event_bus).execute(
            payment_api.id, "production", risk_tier="high",
        )
        env = store.applications[payment_api.id].get_environment("production")
        assert env.risk_tier is RiskTier.HIGH
        assert [t.value for t in env.security_tools] == ["snyk", "prismacloud"]
        assert [p.package for p in env.policies] == ["compliance.global.production"]

    async def test_update_unknown_environment(
        self, uow_factory: UowFactory, event_bus: EventBus, payment_api: Application,
    ) -> None:
        with pytest.raises(NotFoundError):
            await UpdateEnvironmentUseCase(uow_factory, event_bus).execute(payment_api.id, "qa", risk_tier="low")

    async def test_deactivate_environment(
        self, uow_factory: UowFactory, event_bus: EventBus, payment_api: Application, store: InMemoryStore,
    ) -> None:
        dto = await DeactivateEnvironmentUseCase(uow_factory, event_bus).execute(payment_api.id, "production")
        assert dto.environments[0].is_active is False
        assert not store.applications[payment_api.id].get_environment("production").is_active
