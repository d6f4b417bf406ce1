"""Domain events raised by the compliance aggregates."""
from __future__ import annotations

from eco_compliance.domain.entities.base import DomainEvent


# --- Application ---
class ApplicationRegistered(DomainEvent):
    event_type: str = "application.registered"
    aggregate_type: str = "Application"

class EnvironmentAdded(DomainEvent):
    event_type: str = "application.environment_added"
    aggregate_type: str = "Application"

class EnvironmentConfigUpdated(DomainEvent):
    event_type: str = "application.environment_updated"
    aggregate_type: str = "Application"

class ApplicationOwnerChanged(DomainEvent):
    event_type: str = "application.owner_changed"
    aggregate_type: str = "Application"

class ApplicationDeactivated(DomainEvent):
    event_type: str = "application.deactivated"
    aggregate_type: str = "Application"

class ApplicationReactivated(DomainEvent):
    event_type: str = "application.reactivated"
    aggregate_type: str = "Application"


# --- Evaluation ---
class ComplianceEvaluationCompleted(DomainEvent):
    event_type: str = "compliance.evaluation_completed"
    aggregate_type: str = "ComplianceEvaluation"


__all__ = [
    "ApplicationRegistered",
    "EnvironmentAdded",
    "EnvironmentConfigUpdated",
    "ApplicationOwnerChanged",
    "ApplicationDeactivated",
    "ApplicationReactivated",
    "ComplianceEvaluationCompleted",
]
