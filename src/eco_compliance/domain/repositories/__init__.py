"""Domain repository interfaces (ports): abstract contracts for persistence."""
from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from types import TracebackType

from eco_compliance.domain.entities.application import Application
from eco_compliance.domain.entities.audit_log import AuditLog
from eco_compliance.domain.entities.compliance_evaluation import ComplianceEvaluation
from eco_compliance.domain.value_objects import RiskTier


class ApplicationRepository(ABC):
    """Application aggregate repository port.

    Implementations enforce uniqueness of both the name and the policy
    segment as a backstop to the checks done by the registration use case.
    """

    @abstractmethod
    async def find_by_id(self, application_id: uuid.UUID) -> Application | None: ...

    @abstractmethod
    async def find_by_name(self, name: str) -> Application | None: ...

    @abstractmethod
    async def find_by_policy_segment(self, segment: str) -> Application | None: ...

    @abstractmethod
    async def list_applications(
        self, skip: int = 0, limit: int = 50, active_only: bool = False,
    ) -> tuple[list[Application], int]: ...

    @abstractmethod
    async def save(self, application: Application) -> Application: ...

    @abstractmethod
    async def update(self, application: Application) -> Application: ...


class ComplianceEvaluationRepository(ABC):
    """Evaluation repository port. Evaluations are inserted once and never changed."""

    @abstractmethod
    async def add(self, evaluation: ComplianceEvaluation) -> None: ...

    @abstractmethod
    async def find_by_id(self, evaluation_id: uuid.UUID) -> ComplianceEvaluation | None: ...

    @abstractmethod
    async def list_by_application(
        self, application_id: uuid.UUID, skip: int = 0, limit: int = 50,
    ) -> tuple[list[ComplianceEvaluation], int]: ...

    @abstractmethod
    async def list_recent(self, since: datetime, limit: int = 100) -> list[ComplianceEvaluation]: ...

    @abstractmethod
    async def list_blocked(self, since: datetime, limit: int = 100) -> list[ComplianceEvaluation]: ...


class AuditLogRepository(ABC):
    """Audit log repository port: insert and query only."""

    @abstractmethod
    async def add(self, audit_log: AuditLog) -> None: ...

    @abstractmethod
    async def find_by_id(self, audit_log_id: uuid.UUID) -> AuditLog | None: ...

    @abstractmethod
    async def find_by_evaluation_id(self, evaluation_id: str) -> AuditLog | None: ...

    @abstractmethod
    async def list_by_application(
        self,
        application_id: uuid.UUID,
        environment: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[AuditLog], int]: ...

    @abstractmethod
    async def list_blocked(self, since: datetime, limit: int = 100) -> list[AuditLog]: ...

    @abstractmethod
    async def list_with_critical_vulnerabilities(self, since: datetime, limit: int = 100) -> list[AuditLog]: ...

    @abstractmethod
    async def list_by_risk_tier(self, risk_tier: RiskTier, since: datetime, limit: int = 100) -> list[AuditLog]: ...

    @abstractmethod
    async def list_between(self, start: datetime, end: datetime) -> list[AuditLog]: ...


class UnitOfWork(ABC):
    """Transactional boundary spanning the evaluation and audit repositories.

    Usage::

        async with uow:
            await uow.evaluations.add(evaluation)
            await uow.audit_logs.add(audit_log)
            await uow.commit()

    Leaving the block without ``commit`` (including on cancellation) rolls
    everything back.
    """

    applications: ApplicationRepository
    evaluations: ComplianceEvaluationRepository
    audit_logs: AuditLogRepository

    async def __aenter__(self) -> UnitOfWork:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.rollback()

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...


__all__ = [
    "ApplicationRepository",
    "ComplianceEvaluationRepository",
    "AuditLogRepository",
    "UnitOfWork",
]
