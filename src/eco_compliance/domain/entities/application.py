"""Application aggregate root and its environment configurations."""
from __future__ import annotations

import re
import uuid
from typing import Any, Iterable

from pydantic import ConfigDict, Field, ValidationError, field_validator, model_validator

from eco_compliance.domain.entities.base import AggregateRoot, Entity, utcnow
from eco_compliance.domain.events import (
    ApplicationDeactivated,
    ApplicationOwnerChanged,
    ApplicationReactivated,
    ApplicationRegistered,
    EnvironmentAdded,
    EnvironmentConfigUpdated,
)
from eco_compliance.domain.exceptions import (
    DuplicateEnvironmentError,
    InvalidArgumentError,
    NotFoundError,
)
from eco_compliance.domain.value_objects import (
    PolicyReference,
    RiskTier,
    SecurityToolKind,
    package_segment,
)

_APPLICATION_NAME_RE = re.compile(r"^[A-Za-z0-9._-]+$")
_ENVIRONMENT_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$")
_PRODUCTION_NAMES = frozenset({"production", "prod"})

MAX_OWNER_LENGTH = 200
MAX_ENVIRONMENT_NAME_LENGTH = 50


def normalise_environment_name(raw: object) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidArgumentError("Environment name cannot be empty")
    name = raw.strip().lower()
    if len(name) > MAX_ENVIRONMENT_NAME_LENGTH:
        raise InvalidArgumentError(
            f"Environment name cannot exceed {MAX_ENVIRONMENT_NAME_LENGTH} characters"
        )
    if not _ENVIRONMENT_NAME_RE.match(name):
        raise InvalidArgumentError(
            f"Environment name '{raw}' may only contain lowercase letters, digits and hyphens"
        )
    return name


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    location = ".".join(str(part) for part in err.get("loc", ()))
    return f"{location}: {err['msg']}" if location else err["msg"]


class EnvironmentConfig(Entity):
    """Compliance settings of one deployment environment.

    Instances are immutable; the owning :class:`Application` swaps in a new
    instance (same id) whenever the configuration changes.
    """
    model_config = ConfigDict(frozen=True)

    application_id: uuid.UUID
    name: str
    risk_tier: RiskTier
    security_tools: tuple[SecurityToolKind, ...]
    policies: tuple[PolicyReference, ...]
    metadata: dict[str, str] = Field(default_factory=dict)
    is_active: bool = True

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: object) -> str:
        return normalise_environment_name(v)

    @field_validator("risk_tier", mode="before")
    @classmethod
    def validate_risk_tier(cls, v: object) -> RiskTier:
        if not isinstance(v, str):
            raise InvalidArgumentError(f"Invalid risk tier '{v}'")
        return RiskTier.from_string(v)

    @field_validator("security_tools", mode="before")
    @classmethod
    def validate_security_tools(cls, v: object) -> tuple[SecurityToolKind, ...]:
        tools: list[SecurityToolKind] = []
        for raw in v or ():  # type: ignore[union-attr]
            tool = SecurityToolKind.from_string(raw)
            if tool not in tools:
                tools.append(tool)
        if not tools:
            raise InvalidArgumentError("At least one security tool must be configured")
        return tuple(tools)

    @field_validator("policies", mode="before")
    @classmethod
    def validate_policies(cls, v: object) -> tuple[PolicyReference, ...]:
        policies: list[PolicyReference] = []
        for raw in v or ():  # type: ignore[union-attr]
            policy = PolicyReference.of(raw)
            if policy not in policies:
                policies.append(policy)
        if not policies:
            raise InvalidArgumentError("At least one policy must be assigned")
        return tuple(policies)

    @property
    def is_production(self) -> bool:
        return self.name in _PRODUCTION_NAMES

    @property
    def vertical(self) -> str | None:
        """Business vertical tag used by policy resolution, if configured."""
        return self.metadata.get("vertical") or None

    @property
    def policy_override(self) -> PolicyReference | None:
        raw = self.metadata.get("policy_override")
        return PolicyReference.of(raw) if raw and raw.strip() else None


class Application(AggregateRoot):
    """Application aggregate root.

    Environments are only reachable through the aggregate methods below;
    ``environments`` is a read-only tuple view and every assignment to it is
    re-validated, so duplicate names cannot slip in.
    """
    model_config = ConfigDict(validate_assignment=True)

    name: str
    owner: str
    is_active: bool = True
    environments: tuple[EnvironmentConfig, ...] = ()

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: object) -> str:
        if not isinstance(v, str) or not v.strip():
            raise InvalidArgumentError("Application name cannot be empty")
        name = v.strip()
        if not 3 <= len(name) <= 100:
            raise InvalidArgumentError("Application name must be between 3 and 100 characters")
        if not _APPLICATION_NAME_RE.match(name):
            raise InvalidArgumentError(
                "Application name can only contain letters, digits, hyphen, underscore and dot"
            )
        package_segment(name)
        return name

    @field_validator("owner", mode="before")
    @classmethod
    def validate_owner(cls, v: object) -> str:
        if not isinstance(v, str) or not v.strip():
            raise InvalidArgumentError("Application owner cannot be empty")
        owner = v.strip()
        if len(owner) > MAX_OWNER_LENGTH:
            raise InvalidArgumentError(f"Application owner cannot exceed {MAX_OWNER_LENGTH} characters")
        return owner

    @field_validator("environments", mode="after")
    @classmethod
    def validate_unique_environments(
        cls, v: tuple[EnvironmentConfig, ...],
    ) -> tuple[EnvironmentConfig, ...]:
        seen: set[str] = set()
        for env in v:
            if env.name in seen:
                raise DuplicateEnvironmentError(env.name)
            seen.add(env.name)
        return v

    @model_validator(mode="after")
    def check_environment_ownership(self) -> Application:
        for env in self.environments:
            if env.application_id != self.id:
                raise InvalidArgumentError(
                    f"Environment '{env.name}' belongs to another application"
                )
        return self

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def create(cls, name: str, owner: str) -> Application:
        try:
            app = cls(name=name, owner=owner)
        except ValidationError as exc:
            raise InvalidArgumentError(f"Invalid application: {_first_error(exc)}") from exc
        app.raise_event(ApplicationRegistered(
            aggregate_id=str(app.id),
            payload={"name": app.name, "owner": app.owner},
        ))
        return app

    # ------------------------------------------------------------------
    # Environments
    # ------------------------------------------------------------------

    def find_environment(self, name: str) -> EnvironmentConfig | None:
        normalised = (name or "").strip().lower()
        return next((e for e in self.environments if e.name == normalised), None)

    def get_environment(self, name: str) -> EnvironmentConfig:
        env = self.find_environment(name)
        if env is None:
            raise NotFoundError("Environment", name, message=f"Environment '{name}' not found")
        return env

    def add_environment(
        self,
        name: str,
        risk_tier: str | RiskTier,
        security_tools: Iterable[str | SecurityToolKind],
        policies: Iterable[str | PolicyReference],
        metadata: dict[str, str] | None = None,
    ) -> EnvironmentConfig:
        normalised = normalise_environment_name(name)
        if self.find_environment(normalised) is not None:
            raise DuplicateEnvironmentError(normalised)

        env = self._build_environment(
            application_id=self.id,
            name=normalised,
            risk_tier=risk_tier,
            security_tools=tuple(security_tools or ()),
            policies=tuple(policies or ()),
            metadata=dict(metadata or {}),
        )
        self.environments = (*self.environments, env)
        self.increment_version()
        self.raise_event(EnvironmentAdded(
            aggregate_id=str(self.id),
            payload={"environment": env.name, "risk_tier": env.risk_tier.value},
        ))
        return env

    def update_environment(
        self,
        name: str,
        risk_tier: str | RiskTier | None = None,
        security_tools: Iterable[str | SecurityToolKind] | None = None,
        policies: Iterable[str | PolicyReference] | None = None,
        metadata: dict[str, str] | None = None,
    ) -> EnvironmentConfig:
        current = self.get_environment(name)
        updated = self._build_environment(
            id=current.id,
            application_id=self.id,
            name=current.name,
            risk_tier=risk_tier if risk_tier is not None else current.risk_tier,
            security_tools=tuple(security_tools) if security_tools is not None else current.security_tools,
            policies=tuple(policies) if policies is not None else current.policies,
            metadata=dict(metadata) if metadata is not None else dict(current.metadata),
            is_active=current.is_active,
            created_at=current.created_at,
            updated_at=utcnow(),
        )
        self._replace_environment(updated)
        self.raise_event(EnvironmentConfigUpdated(
            aggregate_id=str(self.id),
            payload={
                "environment": updated.name,
                "risk_tier": updated.risk_tier.value,
                "security_tools": [t.value for t in updated.security_tools],
                "policies": [p.package for p in updated.policies],
            },
        ))
        return updated

    def deactivate_environment(self, name: str) -> EnvironmentConfig:
        current = self.get_environment(name)
        if not current.is_active:
            return current
        updated = current.model_copy(update={"is_active": False, "updated_at": utcnow()})
        self._replace_environment(updated)
        self.raise_event(EnvironmentConfigUpdated(
            aggregate_id=str(self.id),
            payload={"environment": updated.name, "is_active": False},
        ))
        return updated

    def _replace_environment(self, updated: EnvironmentConfig) -> None:
        self.environments = tuple(
            updated if e.id == updated.id else e for e in self.environments
        )
        self.increment_version()

    @staticmethod
    def _build_environment(**values: Any) -> EnvironmentConfig:
        try:
            return EnvironmentConfig(**values)
        except ValidationError as exc:
            raise InvalidArgumentError(f"Invalid environment configuration: {_first_error(exc)}") from exc

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def update_owner(self, owner: str) -> None:
        previous = self.owner
        self.owner = owner
        if self.owner == previous:
            return
        self.increment_version()
        self.raise_event(ApplicationOwnerChanged(
            aggregate_id=str(self.id),
            payload={"old_owner": previous, "new_owner": self.owner},
        ))

    def deactivate(self) -> None:
        if not self.is_active:
            return
        self.is_active = False
        self.increment_version()
        self.raise_event(ApplicationDeactivated(aggregate_id=str(self.id), payload={"name": self.name}))

    def reactivate(self) -> None:
        if self.is_active:
            return
        self.is_active = True
        self.increment_version()
        self.raise_event(ApplicationReactivated(aggregate_id=str(self.id), payload={"name": self.name}))

    @property
    def policy_segment(self) -> str:
        """Path segment of this application's own policy packages."""
        return package_segment(self.name)

    @property
    def active_environments(self) -> tuple[EnvironmentConfig, ...]:
        return tuple(e for e in self.environments if e.is_active)
