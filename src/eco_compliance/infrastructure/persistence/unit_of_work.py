"""SQLAlchemy-backed unit of work."""
from __future__ import annotations

from types import TracebackType

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from eco_compliance.domain.exceptions import PersistenceError
from eco_compliance.domain.repositories import UnitOfWork
from eco_compliance.infrastructure.persistence.repositories import (
    SQLAlchemyApplicationRepository,
    SQLAlchemyAuditLogRepository,
    SQLAlchemyComplianceEvaluationRepository,
)

logger = structlog.get_logger(__name__)


class SqlAlchemyUnitOfWork(UnitOfWork):
    """One session, one transaction.

    A fresh session is opened on ``__aenter__``; anything not committed when
    the block exits is rolled back.  Driver errors surface as
    :class:`PersistenceError`.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: AsyncSession | None = None

    async def __aenter__(self) -> SqlAlchemyUnitOfWork:
        self._session = self._session_factory()
        self.applications = SQLAlchemyApplicationRepository(self._session)
        self.evaluations = SQLAlchemyComplianceEvaluationRepository(self._session)
        self.audit_logs = SQLAlchemyAuditLogRepository(self._session)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            await self.rollback()
        finally:
            if self._session is not None:
                await self._session.close()
                self._session = None
        if isinstance(exc, SQLAlchemyError):
            logger.error("persistence_failed", error=str(exc), error_type=type(exc).__name__)
            raise PersistenceError(f"Database operation failed: {type(exc).__name__}") from exc

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("Unit of work is not active")
        return self._session

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except StaleDataError as exc:
            raise PersistenceError(
                "Record was modified by another transaction",
                context={"error_type": "concurrent_modification"},
            ) from exc
        except IntegrityError as exc:
            raise PersistenceError(
                "Write violates a database constraint",
                context={"error_type": "integrity"},
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Commit failed: {type(exc).__name__}") from exc

    async def rollback(self) -> None:
        if self._session is not None:
            await self._session.rollback()


__all__ = ["SqlAlchemyUnitOfWork"]
