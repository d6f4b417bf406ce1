"""Reference to a policy package held by the external policy engine."""
from __future__ import annotations

import re

from pydantic import field_validator

from eco_compliance.domain.entities.base import ValueObject
from eco_compliance.domain.exceptions import InvalidArgumentError

_SEGMENT_RE = re.compile(r"[^a-z0-9_]+")


def package_segment(raw: str) -> str:
    """Turn a free-form name into a valid package path segment.

    The mapping is lossy (``payment-api`` and ``payment_api`` share a
    segment), so callers that key packages by name must keep segments unique.
    """
    segment = _SEGMENT_RE.sub("_", raw.strip().lower()).strip("_")
    if not segment:
        raise InvalidArgumentError(f"Cannot derive a policy package segment from '{raw}'")
    if segment[0].isdigit():
        segment = f"_{segment}"
    return segment


class PolicyReference(ValueObject):
    """Dotted policy package identifier, e.g. ``compliance.global.production``.

    The identifier is opaque here; only the engine knows whether it exists.
    """

    package: str

    @field_validator("package", mode="before")
    @classmethod
    def validate_package(cls, v: object) -> str:
        if not isinstance(v, str) or not v.strip():
            raise InvalidArgumentError("Policy package cannot be empty")
        return v.strip()

    @classmethod
    def of(cls, package: str | PolicyReference) -> PolicyReference:
        if isinstance(package, PolicyReference):
            return package
        return cls(package=package)

    @property
    def path(self) -> str:
        """Slash-separated form used by the engine's data API."""
        return self.package.replace(".", "/")

    def __str__(self) -> str:
        return self.package
