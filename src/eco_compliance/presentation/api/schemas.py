"""Request bodies for the application management endpoints."""
from __future__ import annotations

from pydantic import Field

from eco_compliance.application.dto import CamelModel


class RegisterApplicationRequest(CamelModel):
    name: str = Field(..., min_length=1, description="Unique application name.")
    owner: str = Field(..., min_length=1, description="Owning team or contact.")


class UpdateOwnerRequest(CamelModel):
    owner: str = Field(..., min_length=1)


class AddEnvironmentRequest(CamelModel):
    name: str = Field(..., min_length=1, description="Environment name, e.g. 'production'.")
    risk_tier: str = Field(..., description="low | medium | high | critical")
    security_tools: list[str] = Field(..., description="Required scanners, e.g. ['snyk', 'prismacloud'].")
    policies: list[str] = Field(..., description="Assigned policy packages.")
    metadata: dict[str, str] = Field(
        default_factory=dict,
        description="Free-form tags; 'vertical' and 'policy_override' steer policy resolution.",
    )


class UpdateEnvironmentRequest(CamelModel):
    """Fields left out keep their current value."""

    risk_tier: str | None = None
    security_tools: list[str] | None = None
    policies: list[str] | None = None
    metadata: dict[str, str] | None = None
