"""Unit tests for the compliance evaluation use case."""
from __future__ import annotations

import asyncio
import json
import uuid
from typing import Callable

import pytest

from eco_compliance.application.events import EventBus
from eco_compliance.application.interfaces import PolicyEngineResponse
from eco_compliance.application.use_cases.evaluate_compliance import (
    EngineFailureMode,
    EvaluateComplianceUseCase,
    EvaluationOptions,
)
from eco_compliance.domain.entities.application import Application
from eco_compliance.domain.entities.base import DomainEvent
from eco_compliance.domain.exceptions import (
    EngineContractViolationError,
    EngineUnavailableError,
    InvalidArgumentError,
    NotFoundError,
    PersistenceError,
    PolicyResolutionError,
)
from eco_compliance.domain.value_objects import PolicyReference
from tests.conftest import GLOBAL_PRODUCTION
from tests.fixtures.factories import FIXED_NOW, ApplicationFactory, evaluation_request, scan_payload
from tests.fixtures.fakes import (
    FakePolicyEngine,
    InMemoryStore,
    InMemoryUnitOfWork,
    RecordingNotifier,
    RecordingScheduler,
    engine_response,
)

pytestmark = pytest.mark.asyncio

UseCaseFactory = Callable[..., EvaluateComplianceUseCase]


def _assert_nothing_persisted(store: InMemoryStore) -> None:
    assert store.evaluations == {}
    assert store.audit_logs == {}


class _StalledPolicyEngine(FakePolicyEngine):
    """Never answers; ``entered`` is set once a request is in flight."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()

    async def evaluate(self, policy: PolicyReference, input_json: str) -> PolicyEngineResponse:
        self.calls.append((policy.package, input_json))
        self.entered.set()
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


class TestSuccessfulEvaluation:
    async def test_clean_scans_pass(
        self,
        make_use_case: UseCaseFactory,
        payment_api: Application,
        store: InMemoryStore,
        scheduler: RecordingScheduler,
    ) -> None:
        request = evaluation_request(payment_api.id, scans=[scan_payload("snyk"), scan_payload("prismacloud")])

        result = await make_use_case().execute(request)

        assert result.passed is True
        assert result.policy_decision.allow is True
        assert result.policy_decision.violations == []
        assert result.policy_decision.reason == "All compliance checks passed"
        assert result.policy_decision.policy_package == GLOBAL_PRODUCTION
        assert result.policy_decision.decision_source == "policy_engine"
        assert result.aggregated_counts.total == 0
        assert result.application_name == "payment-api"
        assert result.risk_tier == "critical"
        assert result.evaluated_at == FIXED_NOW
        assert len(result.scan_results) == 2

        assert list(store.evaluations) == [result.evaluation_id]
        assert len(store.audit_logs) == 1
        assert scheduler.names == []

    async def test_critical_findings_blocked(
        self,
        make_use_case: UseCaseFactory,
        payment_api: Application,
        policy_engine: FakePolicyEngine,
        store: InMemoryStore,
    ) -> None:
        policy_engine.responses[GLOBAL_PRODUCTION] = engine_response(
            allow=False,
            violations=["Critical vulnerability found in payment-api production"],
        )
        request = evaluation_request(
            payment_api.id,
            scans=[
                scan_payload("snyk", severities=("critical", "high", "medium")),
                scan_payload("prismacloud", severities=("critical", "low")),
            ],
        )

        result = await make_use_case().execute(request)

        assert result.passed is False
        assert result.policy_decision.allow is False
        assert result.policy_decision.violations == ["Critical vulnerability found in payment-api production"]
        assert result.aggregated_counts.model_dump() == {
            "critical": 2, "high": 1, "medium": 1, "low": 1, "total": 5,
        }

        log = next(iter(store.audit_logs.values()))
        assert log.evaluation_id == str(result.evaluation_id)
        assert not log.allowed
        assert log.reason == "Critical vulnerability found in payment-api production"
        assert log.critical_count == 2
        assert log.evaluation_duration_ms >= 0

    async def test_camel_case_response(self, make_use_case: UseCaseFactory, payment_api: Application) -> None:
        result = await make_use_case().execute(evaluation_request(payment_api.id))
        body = result.model_dump(mode="json", by_alias=True)
        assert {"passed", "policyDecision", "aggregatedCounts", "evaluationId"} <= set(body)
        assert {"allow", "violations", "reason"} <= set(body["policyDecision"])


class TestEvidence:
    async def test_evidence_matches_engine_input(
        self,
        make_use_case: UseCaseFactory,
        payment_api: Application,
        policy_engine: FakePolicyEngine,
        store: InMemoryStore,
    ) -> None:
        request = evaluation_request(payment_api.id, scans=[scan_payload(severities=("high",))])
        await make_use_case().execute(request)

        log = next(iter(store.audit_logs.values()))
        sent_package, sent_input = policy_engine.calls[0]
        assert sent_package == GLOBAL_PRODUCTION
        assert log.evidence.policy_input_json == sent_input
        assert log.evidence.policy_output_json == policy_engine.responses[GLOBAL_PRODUCTION].raw
        assert log.verify_integrity()

        policy_input = json.loads(sent_input)
        assert policy_input["application"]["name"] == "payment-api"
        assert policy_input["application"]["risk_tier"] == "critical"
        assert policy_input["application"]["required_tools"] == ["snyk", "prismacloud"]
        assert policy_input["aggregated_counts"]["high"] == 1
        assert policy_input["scan_results"][0]["vulnerabilities"][0]["id"] == "CVE-2026-0001"

        raw_scans = json.loads(log.evidence.scan_results_json)
        assert raw_scans[0]["tool"] == "snyk"
        assert raw_scans[0]["vulnerabilities"][0]["cvssScore"] == 7.5


class TestLookupAndIngestion:
    async def test_unknown_application(
        self, make_use_case: UseCaseFactory, policy_engine: FakePolicyEngine, store: InMemoryStore,
    ) -> None:
        with pytest.raises(NotFoundError):
            await make_use_case().execute(evaluation_request(uuid.uuid4()))
        assert policy_engine.calls == []
        _assert_nothing_persisted(store)

    async def test_unknown_environment(self, make_use_case: UseCaseFactory, payment_api: Application) -> None:
        with pytest.raises(NotFoundError, match="Environment 'qa' not found"):
            await make_use_case().execute(evaluation_request(payment_api.id, environment="qa"))

    async def test_environment_name_is_case_insensitive(
        self, make_use_case: UseCaseFactory, payment_api: Application,
    ) -> None:
        result = await make_use_case().execute(evaluation_request(payment_api.id, environment="PRODUCTION"))
        assert result.environment == "production"

    async def test_inactive_application(
        self, make_use_case: UseCaseFactory, store: InMemoryStore,
    ) -> None:
        app = ApplicationFactory.create(name="legacy-api")
        app.deactivate()
        store.put_application(app)
        with pytest.raises(NotFoundError):
            await make_use_case().execute(evaluation_request(app.id))

    async def test_inactive_environment(self, make_use_case: UseCaseFactory, store: InMemoryStore) -> None:
        app = ApplicationFactory.create(name="batch-jobs")
        app.deactivate_environment("production")
        store.put_application(app)
        with pytest.raises(NotFoundError, match="not active"):
            await make_use_case().execute(evaluation_request(app.id))

    async def test_empty_scan_results(
        self,
        make_use_case: UseCaseFactory,
        payment_api: Application,
        policy_engine: FakePolicyEngine,
        store: InMemoryStore,
    ) -> None:
        with pytest.raises(InvalidArgumentError, match="At least one scan result is required"):
            await make_use_case().execute(evaluation_request(payment_api.id, scans=[]))
        assert policy_engine.calls == []
        _assert_nothing_persisted(store)

    async def test_future_scan_rejected(
        self, make_use_case: UseCaseFactory, payment_api: Application, policy_engine: FakePolicyEngine,
    ) -> None:
        future = scan_payload("prismacloud")
        future["scanDate"] = "2026-03-02T12:00:00+00:00"
        with pytest.raises(InvalidArgumentError, match="Scan date cannot be in the future") as exc_info:
            await make_use_case().execute(evaluation_request(payment_api.id, scans=[scan_payload(), future]))
        assert exc_info.value.context["scan_index"] == 1
        assert exc_info.value.context["tool"] == "prismacloud"
        assert policy_engine.calls == []

    async def test_unknown_severity_rejected(self, make_use_case: UseCaseFactory, payment_api: Application) -> None:
        scan = scan_payload(severities=("high",))
        scan["vulnerabilities"][0]["severity"] = "urgent"
        with pytest.raises(InvalidArgumentError, match="Unknown severity"):
            await make_use_case().execute(evaluation_request(payment_api.id, scans=[scan]))


class TestPolicyResolution:
    async def test_falls_back_through_tiers(
        self, make_use_case: UseCaseFactory, store: InMemoryStore,
    ) -> None:
        app = ApplicationFactory.create(name="card-vault", metadata={"vertical": "fintech"})
        store.put_application(app)
        engine = FakePolicyEngine({
            "compliance.verticals.fintech.production": engine_response(allow=True),
            GLOBAL_PRODUCTION: engine_response(allow=False, violations=["never used"]),
        })

        result = await make_use_case(policy_engine=engine).execute(evaluation_request(app.id))

        assert engine.called_packages == [
            "compliance.applications.card_vault.production",
            "compliance.verticals.fintech.production",
        ]
        assert result.policy_decision.policy_package == "compliance.verticals.fintech.production"
        assert result.passed

    async def test_application_tier_wins(self, make_use_case: UseCaseFactory, payment_api: Application) -> None:
        engine = FakePolicyEngine({
            "compliance.applications.payment_api.production": engine_response(
                allow=False, violations=["PCI scan missing"],
            ),
            GLOBAL_PRODUCTION: engine_response(allow=True),
        })
        result = await make_use_case(policy_engine=engine).execute(evaluation_request(payment_api.id))
        assert engine.called_packages == ["compliance.applications.payment_api.production"]
        assert not result.passed

    async def test_missing_override_does_not_fall_back(
        self, make_use_case: UseCaseFactory, store: InMemoryStore, policy_engine: FakePolicyEngine,
    ) -> None:
        app = ApplicationFactory.create(name="edge-proxy", metadata={"policy_override": "custom.strict"})
        store.put_application(app)

        with pytest.raises(PolicyResolutionError):
            await make_use_case().execute(evaluation_request(app.id))
        assert policy_engine.called_packages == ["custom.strict"]
        _assert_nothing_persisted(store)

    async def test_no_tier_defined(self, make_use_case: UseCaseFactory, payment_api: Application, store: InMemoryStore) -> None:
        with pytest.raises(PolicyResolutionError) as exc_info:
            await make_use_case(policy_engine=FakePolicyEngine()).execute(evaluation_request(payment_api.id))
        assert exc_info.value.environment == "production"
        _assert_nothing_persisted(store)


class TestEngineFailures:
    async def test_unavailable_surfaces_by_default(
        self,
        make_use_case: UseCaseFactory,
        payment_api: Application,
        store: InMemoryStore,
        scheduler: RecordingScheduler,
    ) -> None:
        engine = FakePolicyEngine({GLOBAL_PRODUCTION: EngineUnavailableError("timed out")})
        with pytest.raises(EngineUnavailableError):
            await make_use_case(policy_engine=engine).execute(evaluation_request(payment_api.id))
        _assert_nothing_persisted(store)
        assert scheduler.names == []

    async def test_unavailable_mid_hierarchy_does_not_fall_back(
        self, make_use_case: UseCaseFactory, payment_api: Application,
    ) -> None:
        engine = FakePolicyEngine({
            "compliance.applications.payment_api.production": EngineUnavailableError("connection refused"),
            GLOBAL_PRODUCTION: engine_response(allow=True),
        })
        with pytest.raises(EngineUnavailableError):
            await make_use_case(policy_engine=engine).execute(evaluation_request(payment_api.id))
        assert engine.called_packages == ["compliance.applications.payment_api.production"]

    async def test_fail_closed(
        self, make_use_case: UseCaseFactory, payment_api: Application, store: InMemoryStore,
    ) -> None:
        engine = FakePolicyEngine({GLOBAL_PRODUCTION: EngineUnavailableError("timed out")})
        use_case = make_use_case(
            policy_engine=engine, options=EvaluationOptions(failure_mode=EngineFailureMode.DENY),
        )

        result = await use_case.execute(evaluation_request(payment_api.id))

        assert result.passed is False
        assert result.policy_decision.decision_source == "fail_closed"
        assert result.policy_decision.violations == ["Policy engine unavailable: timed out"]
        log = next(iter(store.audit_logs.values()))
        assert json.loads(log.evidence.policy_output_json)["decision_source"] == "fail_closed"

    async def test_fail_open(self, make_use_case: UseCaseFactory, payment_api: Application) -> None:
        engine = FakePolicyEngine({GLOBAL_PRODUCTION: EngineUnavailableError("timed out")})
        use_case = make_use_case(
            policy_engine=engine, options=EvaluationOptions(failure_mode=EngineFailureMode.ALLOW),
        )
        result = await use_case.execute(evaluation_request(payment_api.id))
        assert result.passed is True
        assert result.policy_decision.decision_source == "fail_open"

    async def test_deny_without_violations_is_contract_violation(
        self, make_use_case: UseCaseFactory, payment_api: Application, store: InMemoryStore,
    ) -> None:
        engine = FakePolicyEngine({GLOBAL_PRODUCTION: engine_response(allow=False)})
        with pytest.raises(EngineContractViolationError, match="at least one violation"):
            await make_use_case(policy_engine=engine).execute(evaluation_request(payment_api.id))
        _assert_nothing_persisted(store)

    async def test_contract_violation_never_falls_back_to_open(
        self, make_use_case: UseCaseFactory, payment_api: Application,
    ) -> None:
        engine = FakePolicyEngine({GLOBAL_PRODUCTION: EngineContractViolationError("allow missing")})
        use_case = make_use_case(
            policy_engine=engine, options=EvaluationOptions(failure_mode=EngineFailureMode.ALLOW),
        )
        with pytest.raises(EngineContractViolationError):
            await use_case.execute(evaluation_request(payment_api.id))


class TestPersistence:
    async def test_commit_failure_leaves_nothing(
        self,
        make_use_case: UseCaseFactory,
        payment_api: Application,
        store: InMemoryStore,
        scheduler: RecordingScheduler,
    ) -> None:
        use_case = make_use_case(
            uow_factory=lambda: InMemoryUnitOfWork(store, commit_error=PersistenceError("disk full")),
        )
        with pytest.raises(PersistenceError):
            await use_case.execute(evaluation_request(payment_api.id))
        _assert_nothing_persisted(store)
        assert store.rollbacks == 1
        assert scheduler.names == []

    async def test_cancelled_during_engine_call_leaves_nothing(
        self,
        make_use_case: UseCaseFactory,
        payment_api: Application,
        store: InMemoryStore,
        scheduler: RecordingScheduler,
        event_bus: EventBus,
    ) -> None:
        completed: list[DomainEvent] = []

        async def record(event: DomainEvent) -> None:
            completed.append(event)

        event_bus.subscribe("compliance.evaluation_completed", record)
        engine = _StalledPolicyEngine()
        task = asyncio.create_task(make_use_case(policy_engine=engine).execute(evaluation_request(payment_api.id)))
        await asyncio.wait_for(engine.entered.wait(), timeout=1)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        _assert_nothing_persisted(store)
        assert scheduler.names == []
        assert completed == []

    async def test_each_request_gets_its_own_record(
        self, make_use_case: UseCaseFactory, payment_api: Application, store: InMemoryStore,
    ) -> None:
        use_case = make_use_case()
        first = await use_case.execute(evaluation_request(payment_api.id))
        second = await use_case.execute(evaluation_request(payment_api.id))
        assert first.evaluation_id != second.evaluation_id
        assert len(store.evaluations) == 2
        assert len(store.audit_logs) == 2


class TestNotifications:
    async def test_blocked_and_critical_notifications(
        self,
        make_use_case: UseCaseFactory,
        payment_api: Application,
        policy_engine: FakePolicyEngine,
        scheduler: RecordingScheduler,
        notifier: RecordingNotifier,
    ) -> None:
        policy_engine.responses[GLOBAL_PRODUCTION] = engine_response(allow=False, violations=["Critical CVE"])
        use_case = make_use_case(options=EvaluationOptions(extra_recipients=("secops@example.com",)))

        result = await use_case.execute(
            evaluation_request(payment_api.id, scans=[scan_payload(severities=("critical", "high"))]),
        )

        assert scheduler.names == [
            f"notify-blocked-{result.evaluation_id}",
            f"notify-critical-{result.evaluation_id}",
        ]
        assert notifier.blocked == []
        await scheduler.run_all()
        assert notifier.blocked[0]["violations"] == ["Critical CVE"]
        assert notifier.blocked[0]["recipients"] == ["payments-team@example.com", "secops@example.com"]
        assert notifier.critical[0]["critical_count"] == 1
        assert notifier.critical[0]["high_count"] == 1

    async def test_allowed_with_critical_still_alerts(
        self, make_use_case: UseCaseFactory, payment_api: Application, scheduler: RecordingScheduler,
    ) -> None:
        result = await make_use_case().execute(
            evaluation_request(payment_api.id, scans=[scan_payload(severities=("critical",))]),
        )
        assert result.passed
        assert scheduler.names == [f"notify-critical-{result.evaluation_id}"]

    async def test_scheduler_failure_does_not_change_outcome(
        self,
        make_use_case: UseCaseFactory,
        payment_api: Application,
        policy_engine: FakePolicyEngine,
        store: InMemoryStore,
    ) -> None:
        policy_engine.responses[GLOBAL_PRODUCTION] = engine_response(allow=False, violations=["Critical CVE"])
        use_case = make_use_case(task_scheduler=RecordingScheduler(submit_error=RuntimeError("loop closed")))

        result = await use_case.execute(evaluation_request(payment_api.id))

        assert result.passed is False
        assert len(store.audit_logs) == 1


class TestEvents:
    async def test_completion_event_published_after_commit(
        self,
        make_use_case: UseCaseFactory,
        payment_api: Application,
        event_bus: EventBus,
        store: InMemoryStore,
    ) -> None:
        seen: list[tuple[DomainEvent, int]] = []

        async def handler(event: DomainEvent) -> None:
            seen.append((event, len(store.evaluations)))

        event_bus.subscribe("compliance.evaluation_completed", handler)
        result = await make_use_case().execute(evaluation_request(payment_api.id))

        assert len(seen) == 1
        event, persisted = seen[0]
        assert event.aggregate_id == str(result.evaluation_id)
        assert persisted == 1

    async def test_failing_handler_is_isolated(
        self, make_use_case: UseCaseFactory, payment_api: Application, event_bus: EventBus,
    ) -> None:
        async def broken(event: DomainEvent) -> None:
            raise RuntimeError("boom")

        event_bus.subscribe("compliance.evaluation_completed", broken)
        result = await make_use_case().execute(evaluation_request(payment_api.id))
        assert result.passed
