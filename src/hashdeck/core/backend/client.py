"""
Request/response calls to the mining backend.

Transport failures are translated into the bridge error taxonomy here so the
command bridge never sees httpx exceptions:

  connect/read failures  -> BackendUnreachable
  timeouts               -> BackendTimeout
  non-2xx answers        -> BackendError (except stop, which forwards the body)
  undecodable bodies     -> MalformedResponse (bad JSON or content-encoding)
  other request errors   -> BackendUnreachable
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from hashdeck.core.exceptions import (
    BackendError,
    BackendTimeout,
    BackendUnreachable,
    MalformedResponse,
)
from hashdeck.core.models import MiningJobResult, StatsSnapshot

logger = structlog.get_logger()

MINE_PATH = "/api/mine"
STOP_PATH = "/api/stop"
STATS_PATH = "/api/stats"

_ERROR_BODY_LIMIT = 200

# Sentinel: use the client's default timeout
_DEFAULT = object()


class BackendClient:
    """Async client for the backend's job, stop and stats endpoints."""

    def __init__(
        self,
        api_url: str,
        *,
        request_timeout: float = 10.0,
        job_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._job_timeout = job_timeout
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            timeout=request_timeout,
            transport=transport,
        )

    @property
    def api_url(self) -> str:
        return self._api_url

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        timeout: Any = _DEFAULT,
        raise_for_status: bool = True,
    ) -> Any:
        kwargs: dict[str, Any] = {}
        if json is not None:
            kwargs["json"] = json
        if timeout is not _DEFAULT:
            kwargs["timeout"] = timeout

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise BackendTimeout(f"{method} {path} timed out") from exc
        except httpx.DecodingError as exc:
            raise MalformedResponse(f"{method} {path}: undecodable body: {exc}") from exc
        except httpx.TransportError as exc:
            raise BackendUnreachable(f"{method} {path} failed: {exc}") from exc
        except httpx.RequestError as exc:
            # Redirect loops and other request-level failures
            raise BackendUnreachable(f"{method} {path} failed: {exc}") from exc

        if raise_for_status and response.is_error:
            body = response.text[:_ERROR_BODY_LIMIT].strip()
            message = f"HTTP {response.status_code}"
            if body:
                message = f"{message}: {body}"
            raise BackendError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponse(f"{method} {path}: response is not valid JSON") from exc

    async def start_job(self, difficulty: int) -> MiningJobResult:
        """Run one mining job and wait for it to finish.

        The difficulty is forwarded untouched; range checks belong to the
        caller.
        """
        logger.info("job_requested", difficulty=difficulty)
        payload = await self._request(
            "POST",
            MINE_PATH,
            json={"target_difficulty": difficulty},
            timeout=self._job_timeout,
        )
        result = MiningJobResult.from_payload(payload)
        logger.info(
            "job_completed",
            nonce=result.nonce,
            hash=result.hash,
            iterations=result.iterations,
        )
        return result

    async def stop_job(self) -> Any:
        """Ask the backend to stop mining; returns its acknowledgment as-is."""
        return await self._request("POST", STOP_PATH, raise_for_status=False)

    async def fetch_stats(self) -> StatsSnapshot:
        payload = await self._request("GET", STATS_PATH)
        return StatsSnapshot.from_payload(payload)
