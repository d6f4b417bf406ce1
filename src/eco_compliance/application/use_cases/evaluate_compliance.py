"""Compliance evaluation use case.

Runs one request through a fixed sequence::

    lookup -> ingest -> resolve -> delegate -> persist -> notify -> respond

Every step is awaited in order.  The evaluation and its audit log are
written in a single unit of work, so a failure or cancellation before the
commit leaves nothing behind.  Notifications run as detached tasks after the
commit and cannot change the recorded outcome.
"""
from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

import structlog

from eco_compliance.application.dto import ComplianceEvaluationDTO, EvaluateComplianceRequest
from eco_compliance.application.events import EventBus
from eco_compliance.application.interfaces import (
    BackgroundTaskScheduler,
    NotificationService,
    PolicyEngineClient,
)
from eco_compliance.application.services.policy_input import build_policy_input
from eco_compliance.application.services.scan_ingestion import ScanIngestionService, canonical_json
from eco_compliance.domain.entities.application import Application, EnvironmentConfig
from eco_compliance.domain.entities.audit_log import AuditLog
from eco_compliance.domain.entities.base import utcnow
from eco_compliance.domain.entities.compliance_evaluation import ComplianceEvaluation
from eco_compliance.domain.exceptions import (
    EngineContractViolationError,
    EngineUnavailableError,
    InvalidArgumentError,
    NotFoundError,
    PolicyNotFoundError,
    PolicyResolutionError,
)
from eco_compliance.domain.repositories import UnitOfWork
from eco_compliance.domain.services.policy_resolver import PolicyResolver, PolicyTier
from eco_compliance.domain.value_objects import DecisionEvidence, DecisionSource, PolicyDecision

logger = structlog.get_logger(__name__)


class EngineFailureMode(str, enum.Enum):
    """What to do when the policy engine cannot be reached.

    ``ERROR`` surfaces ``EngineUnavailableError`` and records nothing.
    ``DENY`` records a fail-closed denial.  ``ALLOW`` records a fail-open
    allow and must be chosen explicitly.
    """

    ERROR = "error"
    DENY = "deny"
    ALLOW = "allow"


@dataclass(frozen=True)
class EvaluationOptions:
    failure_mode: EngineFailureMode = EngineFailureMode.ERROR
    scan_clock_skew: timedelta = timedelta(minutes=5)
    extra_recipients: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class _EngineOutcome:
    decision: PolicyDecision
    raw_output: str


class EvaluateComplianceUseCase:
    """Evaluate submitted scans for one application environment."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        policy_engine: PolicyEngineClient,
        notifier: NotificationService,
        task_scheduler: BackgroundTaskScheduler,
        event_bus: EventBus,
        resolver: PolicyResolver | None = None,
        options: EvaluationOptions | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self._engine = policy_engine
        self._notifier = notifier
        self._tasks = task_scheduler
        self._bus = event_bus
        self._resolver = resolver or PolicyResolver()
        self._options = options or EvaluationOptions()
        self._clock = clock
        self._ingestion = ScanIngestionService(clock_skew=self._options.scan_clock_skew)

    async def execute(self, request: EvaluateComplianceRequest) -> ComplianceEvaluationDTO:
        started = time.perf_counter()
        evaluated_at = self._clock()
        log = logger.bind(application_id=str(request.application_id), environment=request.environment)

        application, environment = await self._lookup(request.application_id, request.environment)
        scan_results = self._ingestion.ingest(request.scan_results, reference_time=evaluated_at)

        policy_input_json = canonical_json(build_policy_input(application, environment, scan_results))
        outcome = await self._decide(application, environment, policy_input_json)

        evaluation = ComplianceEvaluation.create(
            application_id=application.id,
            application_name=application.name,
            environment=environment.name,
            risk_tier=environment.risk_tier,
            scan_results=scan_results,
            decision=outcome.decision,
            evaluated_at=evaluated_at,
        )
        evidence = DecisionEvidence.create(
            scan_results_json=self._ingestion.raw_payload_json(request.scan_results),
            policy_input_json=policy_input_json,
            policy_output_json=outcome.raw_output,
        )
        audit_log = AuditLog.create(
            evaluation_id=str(evaluation.id),
            application_id=application.id,
            application_name=application.name,
            environment=environment.name,
            risk_tier=environment.risk_tier,
            allowed=outcome.decision.allowed,
            reason=outcome.decision.get_reason(),
            violations=outcome.decision.violations,
            evidence=evidence,
            evaluation_duration_ms=int((time.perf_counter() - started) * 1000),
            critical_count=evaluation.critical_count,
            high_count=evaluation.high_count,
            medium_count=evaluation.medium_count,
            low_count=evaluation.low_count,
            evaluated_at=evaluated_at,
        )

        async with self._uow_factory() as uow:
            await uow.evaluations.add(evaluation)
            await uow.audit_logs.add(audit_log)
            await uow.commit()

        log.info(
            "compliance_evaluation_completed",
            evaluation_id=str(evaluation.id),
            allowed=evaluation.is_allowed,
            decision_source=outcome.decision.source.value,
            policy_package=outcome.decision.policy_package,
            critical=evaluation.critical_count,
            high=evaluation.high_count,
            total=evaluation.get_total_vulnerability_count(),
            duration_ms=audit_log.evaluation_duration_ms,
        )

        await self._bus.publish_all(evaluation.collect_events())
        self._dispatch_notifications(application, evaluation)
        return ComplianceEvaluationDTO.from_entity(evaluation)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _lookup(
        self, application_id: uuid.UUID, environment_name: str,
    ) -> tuple[Application, EnvironmentConfig]:
        async with self._uow_factory() as uow:
            application = await uow.applications.find_by_id(application_id)
        if application is None or not application.is_active:
            raise NotFoundError("Application", application_id)
        environment = application.get_environment(environment_name)
        if not environment.is_active:
            raise NotFoundError(
                "Environment", environment_name,
                message=f"Environment '{environment_name}' is not active",
            )
        return application, environment

    async def _decide(
        self,
        application: Application,
        environment: EnvironmentConfig,
        policy_input_json: str,
    ) -> _EngineOutcome:
        candidates = self._resolver.candidates(
            application_name=application.name,
            environment=environment.name,
            vertical=environment.vertical,
            explicit_override=environment.policy_override,
        )
        for candidate in candidates:
            started = time.perf_counter()
            try:
                response = await self._engine.evaluate(candidate.reference, policy_input_json)
            except PolicyNotFoundError:
                logger.info(
                    "policy_candidate_not_found",
                    tier=candidate.tier.value,
                    package=candidate.package,
                )
                if candidate.tier is PolicyTier.OVERRIDE:
                    break
                continue
            except EngineUnavailableError as exc:
                return self._on_engine_unavailable(exc, candidate.package, started)

            duration_ms = int((time.perf_counter() - started) * 1000)
            try:
                decision = PolicyDecision.create(
                    allowed=response.allow,
                    violations=response.violations,
                    reason=response.reason,
                    details=response.result,
                    evaluation_duration_ms=duration_ms,
                    policy_package=candidate.package,
                )
            except InvalidArgumentError as exc:
                logger.error(
                    "policy_engine_contract_violation",
                    package=candidate.package,
                    error=exc.message,
                )
                raise EngineContractViolationError(
                    f"Policy engine response violates the decision contract: {exc.message}",
                    context={"package": candidate.package},
                ) from exc
            return _EngineOutcome(decision=decision, raw_output=response.raw)

        logger.error(
            "policy_resolution_failed",
            application=application.name,
            environment=environment.name,
            candidates=[c.package for c in candidates],
        )
        raise PolicyResolutionError(environment.name, [c.package for c in candidates])

    def _on_engine_unavailable(
        self, exc: EngineUnavailableError, package: str, started: float,
    ) -> _EngineOutcome:
        mode = self._options.failure_mode
        logger.error("policy_engine_unavailable", package=package, failure_mode=mode.value, error=exc.message)
        if mode is EngineFailureMode.ERROR:
            raise exc

        duration_ms = int((time.perf_counter() - started) * 1000)
        if mode is EngineFailureMode.DENY:
            decision = PolicyDecision.deny(
                [f"Policy engine unavailable: {exc.message}"],
                evaluation_duration_ms=duration_ms,
                policy_package=package,
                source=DecisionSource.FAIL_CLOSED,
            )
        else:
            logger.warning("policy_engine_fail_open_applied", package=package)
            decision = PolicyDecision.allow(
                reason="Policy engine unavailable; fail-open override applied",
                evaluation_duration_ms=duration_ms,
                policy_package=package,
                source=DecisionSource.FAIL_OPEN,
            )
        raw_output = canonical_json({
            "error": exc.error_code,
            "detail": exc.message,
            "decision_source": decision.source.value,
            "allow": decision.allowed,
            "violations": list(decision.violations),
        })
        return _EngineOutcome(decision=decision, raw_output=raw_output)

    def _dispatch_notifications(self, application: Application, evaluation: ComplianceEvaluation) -> None:
        recipients = [application.owner, *self._options.extra_recipients]
        jobs = []
        if evaluation.is_blocked:
            jobs.append((
                f"notify-blocked-{evaluation.id}",
                lambda: self._notifier.notify_blocked(
                    application_name=application.name,
                    environment=evaluation.environment,
                    violations=list(evaluation.decision.violations),
                    recipients=recipients,
                ),
            ))
        if evaluation.has_critical_vulnerabilities:
            jobs.append((
                f"notify-critical-{evaluation.id}",
                lambda: self._notifier.notify_critical_vulnerabilities(
                    application_name=application.name,
                    environment=evaluation.environment,
                    critical_count=evaluation.critical_count,
                    high_count=evaluation.high_count,
                    recipients=recipients,
                ),
            ))
        for name, make_coro in jobs:
            coro = make_coro()
            try:
                self._tasks.submit(name, coro)
            except Exception as exc:
                coro.close()
                logger.error(
                    "notification_dispatch_failed",
                    task=name,
                    evaluation_id=str(evaluation.id),
                    error=str(exc),
                )
