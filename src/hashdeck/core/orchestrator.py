"""
Orchestrator — composition root of the control process.

Builds the prober, backend client, relay channel, event hub, surface
lifecycle and command bridge from a ``HashdeckConfig``, and is the only
writer of process-wide status (termination and exit code).  UI surfaces
receive the bridge and an event stream; they never see the relay or the
surface state machine directly.

Usage::

    async with Orchestrator(config) as orchestrator:
        exit_code = await orchestrator.run()
"""

from __future__ import annotations

import asyncio
from types import TracebackType

import httpx
import structlog

from hashdeck.core.backend.client import BackendClient
from hashdeck.core.backend.prober import BackendProber
from hashdeck.core.bridge import CommandBridge
from hashdeck.core.config import HashdeckConfig
from hashdeck.core.events import EventHub, EventStream
from hashdeck.core.models import ProcessStatus, SurfaceState
from hashdeck.core.relay import Connector, RelayChannel
from hashdeck.core.surfaces import SurfaceHost, SurfaceLifecycle, SurfaceTransition

logger = structlog.get_logger()


class Orchestrator:
    def __init__(
        self,
        config: HashdeckConfig,
        *,
        surface_host: SurfaceHost | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        relay_connector: Connector | None = None,
    ) -> None:
        self._config = config
        self._hub = EventHub(max_pending=config.stats_buffer)
        self._prober = BackendProber(
            config.status_url,
            timeout=config.probe_timeout,
            transport=http_transport,
        )
        self._client = BackendClient(
            config.api_url,
            request_timeout=config.request_timeout,
            job_timeout=config.job_timeout,
            transport=http_transport,
        )
        self._relay = RelayChannel(
            hub=self._hub,
            connector=relay_connector,
            open_timeout=config.relay_open_timeout,
            max_pending=config.stats_buffer,
        )
        self._surfaces = SurfaceLifecycle(
            surface_host,
            keep_alive_when_empty=config.keep_alive_without_surfaces,
            on_empty=self._on_surfaces_empty,
        )
        self._bridge = CommandBridge(
            prober=self._prober,
            client=self._client,
            relay=self._relay,
            surfaces=self._surfaces,
            terminate=self.terminate,
            default_relay_url=config.relay_url,
        )
        self._terminated = asyncio.Event()
        self._exit_code: int | None = None
        self._closed = False

    @property
    def config(self) -> HashdeckConfig:
        return self._config

    @property
    def bridge(self) -> CommandBridge:
        return self._bridge

    @property
    def terminated(self) -> bool:
        return self._terminated.is_set()

    def subscribe(self) -> EventStream:
        """Return a fresh event stream for one UI surface."""
        return self._hub.subscribe()

    def status(self) -> ProcessStatus:
        return ProcessStatus(
            relay=self._relay.state,
            surfaces=self._surfaces.state,
            latest_stats=self._hub.latest_stats,
            terminated=self.terminated,
            exit_code=self._exit_code,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        logger.info(
            "orchestrator_started",
            api_url=self._config.api_url,
            relay_url=self._config.relay_url,
        )
        await self._surfaces.start()

    async def activate(self) -> SurfaceTransition:
        """Platform re-activation: reopen the launcher when nothing is live."""
        return await self._surfaces.activate()

    def terminate(self, exit_code: int = 0) -> None:
        if self._terminated.is_set():
            return
        self._exit_code = exit_code
        logger.info("orchestrator_terminating", exit_code=exit_code)
        self._terminated.set()

    async def wait_terminated(self) -> int:
        await self._terminated.wait()
        return self._exit_code or 0

    async def aclose(self) -> None:
        """Release the relay, the HTTP client and every subscriber stream."""
        if self._closed:
            return
        self._closed = True
        await self._relay.close()
        await self._client.aclose()
        self._hub.close()
        logger.info("orchestrator_closed")

    async def run(self) -> int:
        await self.start()
        try:
            return await self.wait_terminated()
        finally:
            await self.aclose()

    async def __aenter__(self) -> Orchestrator:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Surface policy
    # ------------------------------------------------------------------

    def _on_surfaces_empty(self) -> None:
        # Defer one loop iteration so a racing creation request can win
        asyncio.get_running_loop().call_soon(self._terminate_if_still_empty)

    def _terminate_if_still_empty(self) -> None:
        if self._surfaces.state is SurfaceState.NONE:
            self.terminate(0)
        else:
            logger.info("surfaces_revived", state=self._surfaces.state.value)
