"""Exception hierarchy for the compliance evaluation service.

Every exception carries a machine-readable ``error_code`` and an arbitrary
``context`` dict for structured logging.  The presentation layer maps these
classes to HTTP status codes via global exception handlers, so callers can
tell "the deployment is non-compliant" (a normal denied decision, never an
exception) apart from "the service could not make a decision".
"""
from __future__ import annotations

from typing import Any


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class ComplianceServiceError(Exception):
    """Root exception for every compliance service failure.

    Attributes:
        message:    Human-readable description.
        error_code: Machine-readable code (e.g. ``"NOT_FOUND"``).
        context:    Arbitrary key-value context for structured logging.
    """

    def __init__(
        self,
        message: str = "Compliance service error",
        error_code: str = "COMPLIANCE_ERROR",
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.context: dict[str, Any] = context or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}("
            f"error_code={self.error_code!r}, "
            f"message={self.message!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise the exception for API error responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }


# ---------------------------------------------------------------------------
# Input / aggregate exceptions
# ---------------------------------------------------------------------------

class InvalidArgumentError(ComplianceServiceError):
    """Malformed or missing input. Never retried."""

    def __init__(self, message: str = "Invalid argument", **kwargs: Any) -> None:
        super().__init__(message, error_code=kwargs.pop("error_code", "INVALID_ARGUMENT"), **kwargs)


class NotFoundError(ComplianceServiceError):
    """Application, environment, evaluation or audit record does not exist."""

    def __init__(self, entity_type: str, entity_id: Any, message: str | None = None, **kwargs: Any) -> None:
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(
            message or f"{entity_type} '{entity_id}' not found",
            error_code=kwargs.pop("error_code", "NOT_FOUND"),
            context={"entity_type": entity_type, "entity_id": str(entity_id)},
            **kwargs,
        )


class DuplicateEnvironmentError(ComplianceServiceError):
    """An environment with the same name is already configured on the application."""

    def __init__(self, environment: str, **kwargs: Any) -> None:
        self.environment = environment
        super().__init__(
            f"Environment '{environment}' already exists",
            error_code=kwargs.pop("error_code", "DUPLICATE_ENVIRONMENT"),
            context={"environment": environment},
            **kwargs,
        )


class DuplicateApplicationError(ComplianceServiceError):
    """An application with the same name, or the same policy segment, is already registered."""

    def __init__(self, name: str, conflicting_name: str | None = None, **kwargs: Any) -> None:
        self.name = name
        self.conflicting_name = conflicting_name
        context: dict[str, Any] = {"name": name}
        if conflicting_name is None or conflicting_name == name:
            message = f"Application '{name}' already exists"
        else:
            message = (
                f"Application '{name}' would share policy packages with "
                f"existing application '{conflicting_name}'"
            )
            context["conflicting_name"] = conflicting_name
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "DUPLICATE_APPLICATION"),
            context=context,
            **kwargs,
        )


# ---------------------------------------------------------------------------
# Policy engine exceptions
# ---------------------------------------------------------------------------

class PolicyEngineError(ComplianceServiceError):
    """Base class for failures talking to the external policy engine."""


class EngineUnavailableError(PolicyEngineError):
    """The policy engine could not be reached or did not answer in time."""

    def __init__(self, message: str = "Policy engine unavailable", **kwargs: Any) -> None:
        super().__init__(message, error_code=kwargs.pop("error_code", "ENGINE_UNAVAILABLE"), **kwargs)


class EngineContractViolationError(PolicyEngineError):
    """The policy engine answered with a payload that breaks the decision contract."""

    def __init__(self, message: str = "Policy engine response violates the decision contract", **kwargs: Any) -> None:
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "ENGINE_CONTRACT_VIOLATION"),
            **kwargs,
        )


class PolicyNotFoundError(PolicyEngineError):
    """The policy engine has no package under the requested identifier."""

    def __init__(self, package: str, **kwargs: Any) -> None:
        self.package = package
        super().__init__(
            f"Policy package '{package}' is not defined",
            error_code=kwargs.pop("error_code", "POLICY_NOT_FOUND"),
            context={"package": package},
            **kwargs,
        )


class PolicyResolutionError(ComplianceServiceError):
    """No tier of the policy hierarchy resolved, not even the global default.

    This is a deployment/configuration fault, not an evaluation outcome.
    """

    def __init__(self, environment: str, candidates: list[str], **kwargs: Any) -> None:
        self.environment = environment
        self.candidates = candidates
        super().__init__(
            f"No policy package resolved for environment '{environment}'",
            error_code=kwargs.pop("error_code", "POLICY_RESOLUTION_FAILED"),
            context={"environment": environment, "candidates": candidates},
            **kwargs,
        )


# ---------------------------------------------------------------------------
# Persistence exceptions
# ---------------------------------------------------------------------------

class PersistenceError(ComplianceServiceError):
    """The atomic write of an evaluation and its audit log could not complete."""

    def __init__(self, message: str = "Persistence failure", **kwargs: Any) -> None:
        super().__init__(message, error_code=kwargs.pop("error_code", "PERSISTENCE_FAILURE"), **kwargs)


__all__ = [
    "ComplianceServiceError",
    "InvalidArgumentError",
    "NotFoundError",
    "DuplicateEnvironmentError",
    "DuplicateApplicationError",
    "PolicyEngineError",
    "EngineUnavailableError",
    "EngineContractViolationError",
    "PolicyNotFoundError",
    "PolicyResolutionError",
    "PersistenceError",
]
