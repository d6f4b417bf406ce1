"""Hierarchical policy package resolution.

Packages are looked up from most to least specific::

    compliance.applications.<application segment>.<environment>
    compliance.verticals.<vertical>.<environment>
    compliance.global.<environment>

An explicit override short-circuits the hierarchy.  The resolver itself does
no I/O: it orders candidates and, given an existence check, picks the first
one that exists.  The global tier must exist for every environment; when
even that is missing the deployment is misconfigured.  Application segments
are unique per registered application (see ``Application.policy_segment``).
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable

import structlog

from eco_compliance.domain.exceptions import InvalidArgumentError, PolicyResolutionError
from eco_compliance.domain.value_objects import PolicyReference, package_segment

logger = structlog.get_logger(__name__)


class PolicyTier(str, enum.Enum):
    OVERRIDE = "override"
    APPLICATION = "application"
    VERTICAL = "vertical"
    GLOBAL = "global"


@dataclass(frozen=True, slots=True)
class PolicyCandidate:
    tier: PolicyTier
    reference: PolicyReference

    @property
    def package(self) -> str:
        return self.reference.package


class PolicyResolver:
    """Maps (application, vertical, environment, override) to a policy package."""

    def __init__(self, root_package: str = "compliance") -> None:
        root = root_package.strip().strip(".")
        if not root:
            raise InvalidArgumentError("Policy root package cannot be empty")
        self._root = root

    @property
    def root_package(self) -> str:
        return self._root

    def candidates(
        self,
        application_name: str,
        environment: str,
        vertical: str | None = None,
        explicit_override: PolicyReference | str | None = None,
    ) -> list[PolicyCandidate]:
        """Return the candidates to probe, most specific first."""
        if explicit_override is not None and str(explicit_override).strip():
            return [PolicyCandidate(PolicyTier.OVERRIDE, PolicyReference.of(explicit_override))]

        env = package_segment(environment)
        ordered = [
            PolicyCandidate(
                PolicyTier.APPLICATION,
                PolicyReference.of(f"{self._root}.applications.{package_segment(application_name)}.{env}"),
            ),
        ]
        if vertical is not None and vertical.strip():
            ordered.append(PolicyCandidate(
                PolicyTier.VERTICAL,
                PolicyReference.of(f"{self._root}.verticals.{package_segment(vertical)}.{env}"),
            ))
        ordered.append(PolicyCandidate(
            PolicyTier.GLOBAL,
            PolicyReference.of(f"{self._root}.global.{env}"),
        ))
        return ordered

    def resolve(
        self,
        application_name: str,
        environment: str,
        exists: Callable[[PolicyReference], bool],
        vertical: str | None = None,
        explicit_override: PolicyReference | str | None = None,
    ) -> PolicyCandidate:
        """Return the first candidate for which ``exists`` is true.

        An override is returned unconditionally.
        """
        ordered = self.candidates(application_name, environment, vertical, explicit_override)
        if ordered[0].tier is PolicyTier.OVERRIDE:
            return ordered[0]
        for candidate in ordered:
            if exists(candidate.reference):
                logger.debug(
                    "policy_resolved",
                    application=application_name,
                    environment=environment,
                    tier=candidate.tier.value,
                    package=candidate.package,
                )
                return candidate
        raise PolicyResolutionError(environment, [c.package for c in ordered])
