"""
PageKit Kernel — JSON fetch capability

The single IO primitive the engine consumes: fetch_json(url, method, body)
→ decoded JSON, or FetchError. Wraps an httpx.AsyncClient which can be
injected (tests pass one built on httpx.MockTransport).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0


class FetchError(Exception):
    """Non-2xx response, transport failure, or undecodable JSON."""

    def __init__(self, status: int | None, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"HTTP {self.status}: {self.message}"


def error_message(payload: Any) -> str | None:
    """A user-visible message carried in an error or ACK body, if any."""
    if isinstance(payload, dict):
        for key in ("message", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return None


class HttpJsonClient:
    """
    Async JSON client.

    Usage:
        client = HttpJsonClient()
        rows = await client.fetch_json("https://x/agg", "POST", {"page": ...})
        await client.aclose()
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def fetch_json(
        self,
        url: str,
        method: str = "GET",
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Perform one request and decode the JSON body.

        Raises:
            FetchError: on non-2xx, network failure, or invalid JSON.
        """
        try:
            response = await self._client.request(
                method.upper(),
                url,
                json=body,
                params=_clean_params(params),
            )
        except httpx.HTTPError as e:
            logger.warning("fetch %s %s failed: %s", method, url, e)
            raise FetchError(None, str(e) or e.__class__.__name__) from e

        if response.status_code < 200 or response.status_code >= 300:
            message = response.reason_phrase or "Request failed"
            try:
                message = error_message(response.json()) or message
            except ValueError:
                pass
            logger.warning("fetch %s %s returned %s", method, url, response.status_code)
            raise FetchError(response.status_code, message)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning("fetch %s %s returned invalid JSON", method, url)
            raise FetchError(response.status_code, "Invalid JSON response") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _clean_params(params: dict[str, Any] | None) -> dict[str, str] | None:
    """Drop None values and stringify the rest; booleans as true/false."""
    if not params:
        return None
    cleaned: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        else:
            cleaned[key] = str(value)
    return cleaned
