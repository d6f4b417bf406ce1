"""Unit tests for the read-side use cases."""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Callable

import pytest

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
from eco_compliance.domain.entities.application import Application
from eco_compliance.domain.entities.audit_log import AuditLog
from eco_compliance.domain.entities.compliance_evaluation import ComplianceEvaluation
from eco_compliance.domain.exceptions import InvalidArgumentError, NotFoundError
from tests.fixtures.factories import FIXED_NOW, make_audit_log, make_evaluation
from tests.fixtures.fakes import InMemoryStore, InMemoryUnitOfWork

pytestmark = pytest.mark.asyncio

UowFactory = Callable[[], InMemoryUnitOfWork]


def _clock() -> datetime:
    return FIXED_NOW


@pytest.fixture
def history(store: InMemoryStore, payment_api: Application) -> list[tuple[ComplianceEvaluation, AuditLog]]:
    """Four evaluations of payment-api spread over the last 45 days."""
    records = []
    for days_ago, allowed, severities, environment, tier in (
        (0, True, ("high",), "production", "critical"),
        (2, False, ("critical", "high"), "production", "critical"),
        (10, True, (), "staging", "medium"),
        (45, False, ("critical",), "production", "critical"),
    ):
        evaluation = make_evaluation(
            payment_api,
            allowed=allowed,
            severities=severities,
            evaluated_at=FIXED_NOW - timedelta(days=days_ago),
            environment=environment,
            risk_tier=tier,
        )
        log = make_audit_log(evaluation)
        store.evaluations[evaluation.id] = evaluation
        store.audit_logs[log.id] = log
        records.append((evaluation, log))
    return records


class TestEvaluationQueries:
    async def test_get_evaluation(self, uow_factory: UowFactory, history: list) -> None:
        evaluation, _ = history[1]
        dto = await GetEvaluationUseCase(uow_factory).execute(evaluation.id)
        assert dto.evaluation_id == evaluation.id
        assert dto.passed is False
        assert dto.policy_decision.violations == ["Critical vulnerabilities present"]

    async def test_get_missing_evaluation(self, uow_factory: UowFactory) -> None:
        with pytest.raises(NotFoundError):
            await GetEvaluationUseCase(uow_factory).execute(uuid.uuid4())

    async def test_list_by_application_newest_first(
        self, uow_factory: UowFactory, payment_api: Application, history: list,
    ) -> None:
        page = await ListEvaluationsByApplicationUseCase(uow_factory).execute(payment_api.id, skip=1, limit=2)
        assert page.total == 4
        assert [e.evaluation_id for e in page.items] == [history[1][0].id, history[2][0].id]
        assert page.has_next

    async def test_list_recent(self, uow_factory: UowFactory, history: list) -> None:
        recent = await ListRecentEvaluationsUseCase(uow_factory, clock=_clock).execute(days=7)
        assert [e.evaluation_id for e in recent] == [history[0][0].id, history[1][0].id]

    async def test_list_recent_rejects_zero_days(self, uow_factory: UowFactory) -> None:
        with pytest.raises(InvalidArgumentError):
            await ListRecentEvaluationsUseCase(uow_factory, clock=_clock).execute(days=0)

    async def test_list_blocked_defaults_to_thirty_days(self, uow_factory: UowFactory, history: list) -> None:
        blocked = await ListBlockedEvaluationsUseCase(uow_factory, clock=_clock).execute()
        assert [e.evaluation_id for e in blocked] == [history[1][0].id]

        everything = await ListBlockedEvaluationsUseCase(uow_factory, clock=_clock).execute(
            since=FIXED_NOW - timedelta(days=60),
        )
        assert len(everything) == 2


class TestAuditQueries:
    async def test_get_audit_log_with_evidence(self, uow_factory: UowFactory, history: list) -> None:
        _, log = history[0]
        dto = await GetAuditLogUseCase(uow_factory).execute(log.id)
        assert dto.evidence is not None
        assert dto.evidence.integrity_verified
        assert dto.evidence.content_hash == log.evidence.content_hash

    async def test_get_by_evaluation(self, uow_factory: UowFactory, history: list) -> None:
        evaluation, log = history[1]
        dto = await GetAuditLogByEvaluationUseCase(uow_factory).execute(str(evaluation.id))
        assert dto.id == log.id
        assert dto.allowed is False

    async def test_get_by_unknown_evaluation(self, uow_factory: UowFactory) -> None:
        with pytest.raises(NotFoundError, match="No audit log for evaluation"):
            await GetAuditLogByEvaluationUseCase(uow_factory).execute("missing")

    async def test_list_by_application_filters_environment(
        self, uow_factory: UowFactory, payment_api: Application, history: list,
    ) -> None:
        page = await ListAuditLogsByApplicationUseCase(uow_factory).execute(payment_api.id, environment="Staging")
        assert page.total == 1
        assert page.items[0].environment == "staging"
        assert page.items[0].evidence is None

    async def test_blocked_and_critical(self, uow_factory: UowFactory, history: list) -> None:
        blocked = await ListBlockedDecisionsUseCase(uow_factory, clock=_clock).execute()
        assert [log.id for log in blocked] == [history[1][1].id]

        critical = await ListCriticalVulnerabilityLogsUseCase(uow_factory, clock=_clock).execute()
        assert [log.counts.critical for log in critical] == [1]

    async def test_by_risk_tier(self, uow_factory: UowFactory, history: list) -> None:
        logs = await ListAuditLogsByRiskTierUseCase(uow_factory, clock=_clock).execute("MEDIUM")
        assert [log.environment for log in logs] == ["staging"]

    async def test_by_unknown_risk_tier(self, uow_factory: UowFactory) -> None:
        with pytest.raises(InvalidArgumentError):
            await ListAuditLogsByRiskTierUseCase(uow_factory, clock=_clock).execute("extreme")

    async def test_statistics_over_default_window(self, uow_factory: UowFactory, history: list) -> None:
        stats = await GetAuditStatisticsUseCase(uow_factory, clock=_clock).execute()
        assert stats.total_evaluations == 3
        assert stats.blocked_count == 1
        assert stats.blocked_percentage == 33.33
        assert stats.total_critical_vulnerabilities == 1
        assert stats.evaluations_by_environment == {"production": 2, "staging": 1}
        assert stats.window_end == FIXED_NOW

    async def test_statistics_rejects_inverted_window(self, uow_factory: UowFactory) -> None:
        with pytest.raises(InvalidArgumentError):
            await GetAuditStatisticsUseCase(uow_factory, clock=_clock).execute(
                start=FIXED_NOW, end=FIXED_NOW - timedelta(days=1),
            )
