"""OpenAI-compatible HTTP transport."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from cachet._http import DEFAULT_BASE_URL
from cachet.errors import ParseError
from cachet.providers._errors import error_from_status, wrap_transport_error

logger = logging.getLogger(__name__)


class HttpTransport:
    """Bearer-authenticated JSON transport over ``httpx.AsyncClient``.

    The HTTP client is created on first use, so constructing a transport
    performs no network I/O.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 60.0,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize with an API key; *http_transport* overrides the socket layer."""
        self._api_key = api_key
        self.base_url = base_url
        self.timeout_s = timeout_s
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None

    def __repr__(self) -> str:
        return f"HttpTransport(base_url={self.base_url!r}, api_key=[REDACTED])"

    def _get_client(self) -> httpx.AsyncClient:
        """Lazily initialize and return the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout_s,
                transport=self._http_transport,
            )
        return self._client

    async def send(self, path: str, payload: dict[str, Any]) -> Any:
        """POST *payload* as JSON and return the decoded response body."""
        phase = path.strip("/").replace("/", ".") or "request"
        client = self._get_client()
        logger.debug("POST %s", path)

        try:
            response = await client.post(path, json=payload)
        except asyncio.CancelledError:
            raise
        except httpx.RequestError as e:
            raise wrap_transport_error(e, phase=phase) from e

        if not response.is_success:
            raise error_from_status(
                response.status_code, response.text, response.headers, phase=phase
            )

        try:
            return response.json()
        except ValueError as e:
            raise ParseError(
                f"{phase} response body is not valid JSON: {e}", field="$"
            ) from e

    async def aclose(self) -> None:
        """Close underlying async client resources."""
        client = self._client
        if client is None:
            return
        self._client = None
        await client.aclose()
