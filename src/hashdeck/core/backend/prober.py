"""
Backend liveness probe.

One GET against the status endpoint.  The result is all-or-nothing: the
backend has no granular health signal, so a 2xx answer marks the engine, the
API and the relay endpoint ready together, and anything else marks all three
down.  ``probe()`` never raises.
"""

from __future__ import annotations

import asyncio

import httpx
import structlog

from hashdeck.core.models import ReadinessVector

logger = structlog.get_logger()


class BackendProber:
    def __init__(
        self,
        status_url: str,
        *,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._status_url = status_url
        self._timeout = timeout
        self._transport = transport

    @property
    def status_url(self) -> str:
        return self._status_url

    async def _get(self) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            return await client.get(self._status_url)

    async def probe(self) -> ReadinessVector:
        """Return a fresh readiness vector; failure is encoded, not raised."""
        try:
            # httpx bounds each phase; the outer deadline bounds the whole call
            response = await asyncio.wait_for(self._get(), timeout=self._timeout)
        except (httpx.HTTPError, httpx.InvalidURL, TimeoutError) as exc:
            logger.info(
                "backend_probe",
                url=self._status_url,
                healthy=False,
                error=str(exc) or type(exc).__name__,
            )
            return ReadinessVector.from_probe(False)

        healthy = response.is_success
        logger.info(
            "backend_probe", url=self._status_url, healthy=healthy, status=response.status_code
        )
        return ReadinessVector.from_probe(healthy)
