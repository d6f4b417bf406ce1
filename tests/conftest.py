"""Root conftest -- shared fixtures for all test suites."""
from __future__ import annotations

from typing import Callable, Iterator

import pytest

from eco_compliance.application.events import EventBus
from eco_compliance.application.use_cases.evaluate_compliance import (
    EvaluateComplianceUseCase,
    EvaluationOptions,
)
from eco_compliance.domain.entities.application import Application
from tests.fixtures.factories import FIXED_NOW, ApplicationFactory
from tests.fixtures.fakes import (
    FakePolicyEngine,
    InMemoryStore,
    InMemoryUnitOfWork,
    RecordingNotifier,
    RecordingScheduler,
    engine_response,
)

GLOBAL_PRODUCTION = "compliance.global.production"


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def uow_factory(store: InMemoryStore) -> Callable[[], InMemoryUnitOfWork]:
    return lambda: InMemoryUnitOfWork(store)


@pytest.fixture
def policy_engine() -> FakePolicyEngine:
    return FakePolicyEngine({GLOBAL_PRODUCTION: engine_response(allow=True)})


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def scheduler() -> Iterator[RecordingScheduler]:
    scheduler = RecordingScheduler()
    yield scheduler
    scheduler.close()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def payment_api(store: InMemoryStore) -> Application:
    """``payment-api`` with a critical-tier production environment."""
    app = ApplicationFactory.create(name="payment-api", owner="payments-team@example.com")
    return store.put_application(app)


@pytest.fixture
def make_use_case(
    uow_factory: Callable[[], InMemoryUnitOfWork],
    policy_engine: FakePolicyEngine,
    notifier: RecordingNotifier,
    scheduler: RecordingScheduler,
    event_bus: EventBus,
) -> Callable[..., EvaluateComplianceUseCase]:
    def build(options: EvaluationOptions | None = None, **overrides: object) -> EvaluateComplianceUseCase:
        kwargs: dict[str, object] = {
            "uow_factory": uow_factory,
            "policy_engine": policy_engine,
            "notifier": notifier,
            "task_scheduler": scheduler,
            "event_bus": event_bus,
            "options": options,
            "clock": lambda: FIXED_NOW,
        }
        kwargs.update(overrides)
        return EvaluateComplianceUseCase(**kwargs)  # type: ignore[arg-type]

    return build
