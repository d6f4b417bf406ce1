"""Open Policy Agent client for the policy engine port.

Evaluation posts ``{"input": ...}`` to ``/v1/data/<package path>``.  OPA
answers ``200 {}`` (no ``result`` key) for an undefined package, which is
reported as :class:`PolicyNotFoundError` so the resolver can fall back to
the next tier.
"""
from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from eco_compliance.application.interfaces import PolicyEngineClient, PolicyEngineResponse
from eco_compliance.domain.exceptions import (
    EngineContractViolationError,
    EngineUnavailableError,
    PolicyNotFoundError,
)
from eco_compliance.domain.value_objects import PolicyReference
from eco_compliance.infrastructure.external import HTTPClientBase

logger = structlog.get_logger(__name__)

_JSON_HEADERS = {"Content-Type": "application/json"}


class OpaClient(HTTPClientBase, PolicyEngineClient):
    """Policy engine adapter speaking the OPA Data API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8181",
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_seconds: float = 0.2,
    ) -> None:
        super().__init__(base_url, timeout=timeout, max_retries=max_retries, backoff_seconds=backoff_seconds)

    async def evaluate(self, policy: PolicyReference, input_json: str) -> PolicyEngineResponse:
        path = f"/v1/data/{policy.path}"
        # The input document is embedded verbatim so the evidence matches the wire.
        body = f'{{"input":{input_json}}}'
        try:
            response = await self.post(path, content=body, headers=_JSON_HEADERS)
        except httpx.TimeoutException as exc:
            raise EngineUnavailableError(
                f"Policy engine timed out after {self._timeout}s",
                context={"package": policy.package},
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise EngineUnavailableError(
                f"Policy engine returned HTTP {exc.response.status_code}",
                context={"package": policy.package, "status_code": exc.response.status_code},
            ) from exc
        except httpx.RequestError as exc:
            raise EngineUnavailableError(
                f"Policy engine unreachable: {exc}",
                context={"package": policy.package},
            ) from exc

        raw = response.text
        parsed = self._parse(raw, policy)
        logger.info(
            "policy_evaluated",
            package=policy.package,
            allow=parsed.allow,
            violations=len(parsed.violations),
        )
        return parsed

    async def is_healthy(self) -> bool:
        try:
            await self.get("/health")
        except httpx.HTTPError as exc:
            logger.warning("opa_health_check_failed", url=self.base_url, error=str(exc))
            return False
        return True

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @classmethod
    def _parse(cls, raw: str, policy: PolicyReference) -> PolicyEngineResponse:
        try:
            document = json.loads(raw)
        except ValueError as exc:
            raise EngineContractViolationError(
                "Policy engine returned a non-JSON body",
                context={"package": policy.package},
            ) from exc
        if not isinstance(document, dict):
            raise EngineContractViolationError(
                "Policy engine response must be a JSON object",
                context={"package": policy.package},
            )
        if "result" not in document:
            raise PolicyNotFoundError(policy.package)

        result = document["result"]
        if not isinstance(result, dict):
            raise EngineContractViolationError(
                f"Policy package '{policy.package}' did not produce a decision object",
                context={"package": policy.package},
            )
        allow = result.get("allow")
        if not isinstance(allow, bool):
            raise EngineContractViolationError(
                f"Policy package '{policy.package}' returned a non-boolean 'allow'",
                context={"package": policy.package, "allow": allow},
            )
        reason = result.get("reason")
        return PolicyEngineResponse(
            allow=allow,
            violations=cls._parse_violations(result.get("violations"), policy),
            reason=reason if isinstance(reason, str) else None,
            result=result,
            raw=raw,
        )

    @staticmethod
    def _parse_violations(value: Any, policy: PolicyReference) -> list[str]:
        if value is None:
            return []
        # Rego partial sets serialise as arrays; some policies emit an object keyed by rule.
        items = list(value.values()) if isinstance(value, dict) else value
        if not isinstance(items, list):
            raise EngineContractViolationError(
                f"Policy package '{policy.package}' returned malformed violations",
                context={"package": policy.package},
            )
        messages: list[str] = []
        for item in items:
            if isinstance(item, str):
                messages.append(item)
            elif isinstance(item, dict) and isinstance(item.get("message"), str):
                messages.append(item["message"])
            else:
                raise EngineContractViolationError(
                    f"Policy package '{policy.package}' returned a violation without a message",
                    context={"package": policy.package, "violation": item},
                )
        return messages


__all__ = ["OpaClient"]
