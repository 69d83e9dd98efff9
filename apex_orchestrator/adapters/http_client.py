"""Shared httpx plumbing for HTTP-backed capability adapters."""

from typing import Any, Dict, Optional

import httpx

from ..observability.logging import CapabilityLogger
from .base import CancellationSignal, CapabilityAdapter
from .errors import ErrorMapper


class HTTPCapabilityAdapter(CapabilityAdapter):
    """
    Base for adapters that talk JSON over HTTP.

    The ``httpx.AsyncClient`` is created lazily and closed by ``close()``.
    Tests pass an ``httpx.MockTransport`` through ``transport``.
    """

    health_path: str = "/health"

    def __init__(
        self,
        name: str,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.log = CapabilityLogger(name, self.kind.value)

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self.timeout,
                transport=self._transport
            )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        signal: Optional[CancellationSignal] = None,
        **kwargs
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            asyncio.CancelledError: If ``signal`` is already set
            CapabilityError: Mapped from any httpx failure
        """
        if signal is not None:
            signal.raise_if_cancelled()
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ErrorMapper.map_error(e, self.name) from e

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"text": response.text}

    async def health_check(self) -> bool:
        try:
            response = await self.client.get(self.health_path)
        except httpx.HTTPError as e:
            self.log.warning("Health check failed", error=str(e))
            return False
        return response.status_code < 400

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
