"""External service clients: HTTP client base with retries."""
from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

logger = structlog.get_logger(__name__)


class HTTPClientBase:
    """Async HTTP client with timeout and bounded retries.

    5xx responses and transport errors are retried with exponential backoff.
    Timeouts and 4xx responses are raised at once.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_seconds: float = 0.2,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._backoff = backoff_seconds

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = self._url(path)
        for attempt in range(self._max_retries):
            try:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.request(method, url, **kwargs)
                    response.raise_for_status()
                    return response
            except httpx.HTTPStatusError as e:
                logger.warning("http_error", url=url, status=e.response.status_code, attempt=attempt + 1)
                if e.response.status_code < 500 or attempt == self._max_retries - 1:
                    raise
            except httpx.TimeoutException:
                # Not retried: ``timeout`` bounds the whole call.
                logger.warning("http_timeout", url=url, timeout=self._timeout, attempt=attempt + 1)
                raise
            except httpx.RequestError as e:
                logger.warning("http_request_error", url=url, error=str(e), attempt=attempt + 1)
                if attempt == self._max_retries - 1:
                    raise
            await asyncio.sleep(self._backoff * (2 ** attempt))
        raise RuntimeError("unreachable")  # pragma: no cover

    async def get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        return await self._request("GET", path, params=params)

    async def post(
        self,
        path: str,
        content: str | bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        return await self._request("POST", path, content=content, headers=headers)


__all__ = ["HTTPClientBase"]
