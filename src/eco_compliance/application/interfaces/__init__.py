"""Ports for the collaborators the application layer depends on."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Coroutine, Sequence

from pydantic import BaseModel, ConfigDict, Field

from eco_compliance.domain.value_objects import PolicyReference


class PolicyEngineResponse(BaseModel):
    """Verdict parsed from the policy engine, plus the raw body it arrived in."""
    model_config = ConfigDict(frozen=True)

    allow: bool
    violations: list[str] = Field(default_factory=list)
    reason: str | None = None
    result: dict[str, Any] = Field(default_factory=dict)
    raw: str


class PolicyEngineClient(ABC):
    """External policy engine (OPA or compatible).

    ``evaluate`` raises :class:`~eco_compliance.domain.exceptions.PolicyNotFoundError`
    when the package is undefined, ``EngineUnavailableError`` when the engine
    cannot be reached and ``EngineContractViolationError`` when the answer is
    malformed.
    """

    @abstractmethod
    async def evaluate(self, policy: PolicyReference, input_json: str) -> PolicyEngineResponse: ...

    @abstractmethod
    async def is_healthy(self) -> bool: ...


class NotificationService(ABC):
    """Outbound notifications about evaluation outcomes."""

    @abstractmethod
    async def notify_blocked(
        self,
        application_name: str,
        environment: str,
        violations: Sequence[str],
        recipients: Sequence[str],
    ) -> None: ...

    @abstractmethod
    async def notify_critical_vulnerabilities(
        self,
        application_name: str,
        environment: str,
        critical_count: int,
        high_count: int,
        recipients: Sequence[str],
    ) -> None: ...


class BackgroundTaskScheduler(ABC):
    """Runs coroutines detached from the request that created them."""

    @abstractmethod
    def submit(self, name: str, coro: Coroutine[Any, Any, Any]) -> None: ...


__all__ = [
    "PolicyEngineResponse",
    "PolicyEngineClient",
    "NotificationService",
    "BackgroundTaskScheduler",
]
