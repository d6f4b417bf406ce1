"""Supported security scanning tools."""
from __future__ import annotations

import enum

from eco_compliance.domain.exceptions import InvalidArgumentError


class SecurityToolKind(str, enum.Enum):
    """Whitelist of scanners an environment may require."""

    SNYK = "snyk"
    PRISMA_CLOUD = "prismacloud"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @classmethod
    def from_string(cls, raw: str | SecurityToolKind) -> SecurityToolKind:
        if isinstance(raw, SecurityToolKind):
            return raw
        normalised = (raw or "").strip().lower()
        if not normalised:
            raise InvalidArgumentError("Security tool name cannot be empty")
        normalised = _ALIASES.get(normalised, normalised)
        try:
            return cls(normalised)
        except ValueError:
            raise InvalidArgumentError(
                f"Unsupported security tool: {raw}",
                context={"tool": raw},
            ) from None


_ALIASES: dict[str, str] = {
    "prisma": SecurityToolKind.PRISMA_CLOUD.value,
    "prisma-cloud": SecurityToolKind.PRISMA_CLOUD.value,
}

_DISPLAY_NAMES: dict[SecurityToolKind, str] = {
    SecurityToolKind.SNYK: "Snyk",
    SecurityToolKind.PRISMA_CLOUD: "Prisma Cloud",
}
