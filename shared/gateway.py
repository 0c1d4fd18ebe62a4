"""Upstream gateway: HTTP calls to the external quantum optimization service.

Failures are classified into `upstream_timeout` or `upstream_unavailable`
and re-raised as `ServiceError`. Nothing here retries; that is left to the
caller.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from shared.config import Settings
from shared.errors import ServiceError

logger = logging.getLogger(__name__)

# no pool cap; every request gets its own connection immediately
UNLIMITED = httpx.Limits(max_connections=None, max_keepalive_connections=None)


class QuantumGateway:
    """Client for the optimizer's /optimize, /rebalance and /health endpoints."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    @property
    def base_url(self) -> str:
        return self.settings.quantum_base_url

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.quantum_api_key:
            headers["Authorization"] = f"Bearer {self.settings.quantum_api_key}"
        return headers

    def _url(self, path: str) -> str:
        if not self.base_url:
            raise ServiceError("upstream_unavailable", "QUANTUM_BASE_URL not set")
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _send(self, method: str, path: str, body: Optional[Dict[str, Any]], timeout: float) -> httpx.Response:
        """One request with `timeout` as a hard deadline covering connect, send and read."""
        url = self._url(path)
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=timeout, limits=UNLIMITED) as client:
                return await asyncio.wait_for(
                    client.request(method, url, json=body, headers=self._headers()),
                    timeout=timeout,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.error(f"Quantum {method} {path} timed out after {timeout:.1f}s")
            raise ServiceError("upstream_timeout", "Quantum API request timed out") from exc
        except httpx.HTTPError as exc:
            logger.error(f"Quantum {method} {path} failed: {exc}")
            raise ServiceError("upstream_unavailable", "Quantum API request failed") from exc

    async def request_json(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        timeout_seconds: Optional[float] = None,
    ) -> Any:
        """Parsed JSON body of a 2xx response."""
        timeout = timeout_seconds if timeout_seconds is not None else self.settings.request_timeout_seconds
        response = await self._send(method, path, body, timeout)

        if not response.is_success:
            kind = "upstream_timeout" if response.status_code == 504 else "upstream_unavailable"
            text = response.text or response.reason_phrase or ""
            logger.error(f"Quantum {method} {path} returned {response.status_code}")
            raise ServiceError(
                kind,
                f"Quantum API error {response.status_code}: {text}",
                upstream_status=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ServiceError(
                "upstream_unavailable",
                "Quantum API returned non-JSON content",
                upstream_status=response.status_code,
            ) from exc

    async def optimize(self, body: Dict[str, Any]) -> Any:
        return await self.request_json("POST", "/optimize", body)

    async def rebalance(self, body: Dict[str, Any]) -> Any:
        return await self.request_json("POST", "/rebalance", body)

    async def check_health(self) -> int:
        """Status code of GET /health, whatever it is."""
        response = await self._send("GET", "/health", None, self.settings.health_timeout_seconds)
        return response.status_code
