"""
HTTP transport for NIS calls.

Defines the seam where the concrete HTTP implementation plugs in. NisClient
depends on this protocol, not on httpx directly, so tests can hand it a
FakeTransport with canned responses.

Failure mapping (HttpxTransport):
    - timeout                 → TransportError(error_code="TIMEOUT")
    - connect failure         → TransportError(error_code="CONNECTION_FAILED")
    - other httpx errors      → TransportError(error_code="HTTP_ERROR")
    - status >= 400           → TransportError(error_code="HTTP_ERROR", status_code=...)
    - body not a JSON object  → TransportError(error_code="INVALID_JSON")
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from nemkit.errors import TransportError

log = logging.getLogger(__name__)


@runtime_checkable
class HttpTransport(Protocol):
    """Async JSON-over-HTTP transport."""

    async def get_json(
        self, url: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """GET url and return the parsed JSON object.

        Raises:
            TransportError: On any transport-level failure.
        """
        ...

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON body and return the parsed JSON object.

        Raises:
            TransportError: On any transport-level failure.
        """
        ...


class HttpxTransport:
    """Default transport using httpx.AsyncClient."""

    def __init__(self, timeout: float = 30.0, headers: dict[str, str] | None = None) -> None:
        self._timeout = timeout
        self._headers = headers or {}

    async def get_json(
        self, url: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        return await self._request("GET", url, params=params)

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", url, json_body=payload)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        log.debug("%s %s", method, url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    headers={"Accept": "application/json", **self._headers},
                )
        except httpx.TimeoutException as e:
            raise TransportError(
                f"request timed out after {self._timeout}s",
                error_code="TIMEOUT",
                details={"url": url, "timeout_s": self._timeout},
            ) from e
        except httpx.ConnectError as e:
            raise TransportError(
                f"failed to connect to {url}",
                error_code="CONNECTION_FAILED",
                details={"url": url},
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"HTTP error: {e}",
                error_code="HTTP_ERROR",
                details={"url": url, "error": str(e)},
            ) from e

        if response.status_code >= 400:
            raise TransportError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                error_code="HTTP_ERROR",
                details={
                    "url": url,
                    "status_code": response.status_code,
                    "body_preview": response.text[:200] if response.text else "",
                },
                status_code=response.status_code,
            )

        try:
            result = response.json()
        except json.JSONDecodeError as e:
            raise TransportError(
                "response was not valid JSON",
                error_code="INVALID_JSON",
                details={"url": url, "status_code": response.status_code},
                status_code=response.status_code,
            ) from e

        if not isinstance(result, dict):
            raise TransportError(
                "response JSON was not an object",
                error_code="INVALID_JSON",
                details={"url": url, "type": type(result).__name__},
                status_code=response.status_code,
            )
        return result
