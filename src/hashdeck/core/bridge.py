"""
Command bridge — the only way a UI surface talks to the control process.

The bridge exposes a fixed set of named operations (``OPERATIONS``).  Each
one returns a ``BridgeResult``: success with data, or a failure tagged with
an ``ErrorKind``.  Nothing raises across the bridge; component errors are
converted here and logged.

Relay operations are serialised by a single lock.  A ``connect-relay`` or
``disconnect-relay`` arriving while another relay operation is in flight is
rejected with BUSY rather than queued.

Usage::

    result = await bridge.invoke("start-job", 20)
    if result.success:
        print(result.data.nonce)
    else:
        print(result.error, result.message)
"""

from __future__ import annotations

import asyncio
import functools
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog

from hashdeck.core.backend.client import BackendClient
from hashdeck.core.backend.prober import BackendProber
from hashdeck.core.exceptions import (
    BridgeError,
    ErrorKind,
    InvalidArguments,
    NotConnected,
    RelayBusy,
    UnknownOperation,
)
from hashdeck.core.models import (
    MiningJobResult,
    ReadinessVector,
    RelayState,
    StatsSnapshot,
    SurfaceKind,
)
from hashdeck.core.relay import RelayChannel
from hashdeck.core.surfaces import SurfaceLifecycle, SurfaceTransition

logger = structlog.get_logger()

OPERATIONS: tuple[str, ...] = (
    "check-status",
    "open-surface",
    "close-surface",
    "terminate",
    "connect-relay",
    "disconnect-relay",
    "start-job",
    "stop-job",
    "fetch-stats",
)


@dataclass(frozen=True)
class BridgeResult:
    success: bool
    data: Any = None
    error: ErrorKind | None = None
    message: str = ""

    @classmethod
    def ok(cls, data: Any = None) -> BridgeResult:
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, exc: BridgeError) -> BridgeResult:
        return cls(success=False, error=exc.kind, message=str(exc) or exc.kind.value)

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {
                "success": False,
                "error": self.message,
                "kind": self.error.value if self.error else None,
            }
        data = self.data
        if hasattr(data, "to_dict"):
            data = data.to_dict()
        return {"success": True, "data": data}


_Op = TypeVar("_Op", bound=Callable[..., Awaitable[Any]])


def _bridged(operation: str) -> Callable[[_Op], Callable[..., Awaitable[BridgeResult]]]:
    """Wrap a bridge coroutine so BridgeErrors become failed results."""

    def decorator(fn: _Op) -> Callable[..., Awaitable[BridgeResult]]:
        @functools.wraps(fn)
        async def wrapper(self: CommandBridge, *args: Any, **kwargs: Any) -> BridgeResult:
            try:
                data = await fn(self, *args, **kwargs)
            except BridgeError as exc:
                logger.warning(
                    "bridge_call_failed",
                    operation=operation,
                    kind=exc.kind.value,
                    error=str(exc),
                )
                return BridgeResult.failure(exc)
            logger.debug("bridge_call_ok", operation=operation)
            return BridgeResult.ok(data)

        return wrapper

    return decorator


def _surface_kind(kind: SurfaceKind | str) -> SurfaceKind:
    try:
        return SurfaceKind(kind)
    except ValueError as exc:
        raise InvalidArguments(f"Unknown surface kind {kind!r}") from exc


class CommandBridge:
    def __init__(
        self,
        *,
        prober: BackendProber,
        client: BackendClient,
        relay: RelayChannel,
        surfaces: SurfaceLifecycle,
        terminate: Callable[[], None],
        default_relay_url: str,
    ) -> None:
        self._prober = prober
        self._client = client
        self._relay = relay
        self._surfaces = surfaces
        self._terminate = terminate
        self._default_relay_url = default_relay_url
        self._relay_lock = asyncio.Lock()
        self._operations: dict[str, Callable[..., Awaitable[BridgeResult]]] = {
            "check-status": self.check_status,
            "open-surface": self.open_surface,
            "close-surface": self.close_surface,
            "terminate": self.terminate,
            "connect-relay": self.connect_relay,
            "disconnect-relay": self.disconnect_relay,
            "start-job": self.start_job,
            "stop-job": self.stop_job,
            "fetch-stats": self.fetch_stats,
        }

    @property
    def operations(self) -> tuple[str, ...]:
        return OPERATIONS

    async def invoke(self, operation: str, *args: Any) -> BridgeResult:
        """Dispatch a named operation; unknown names fail without side effects."""
        handler = self._operations.get(operation)
        if handler is None:
            exc = UnknownOperation(f"Unknown bridge operation {operation!r}")
            logger.warning("bridge_unknown_operation", operation=operation)
            return BridgeResult.failure(exc)
        try:
            inspect.signature(handler).bind(*args)
        except TypeError as err:
            return BridgeResult.failure(InvalidArguments(f"{operation}: {err}"))
        return await handler(*args)

    # ------------------------------------------------------------------
    # Status and surfaces
    # ------------------------------------------------------------------

    @_bridged("check-status")
    async def check_status(self) -> ReadinessVector:
        return await self._prober.probe()

    @_bridged("open-surface")
    async def open_surface(
        self, kind: SurfaceKind | str = SurfaceKind.DASHBOARD
    ) -> SurfaceTransition:
        return await self._surfaces.open(_surface_kind(kind))

    @_bridged("close-surface")
    async def close_surface(
        self, kind: SurfaceKind | str = SurfaceKind.LAUNCHER
    ) -> SurfaceTransition:
        kind = _surface_kind(kind)
        transition = await self._surfaces.close(kind)
        if kind is SurfaceKind.DASHBOARD and self._relay.state.is_open:
            # The relay feeds the dashboard; it does not outlive it
            async with self._relay_lock:
                await self._relay.close()
        return transition

    @_bridged("terminate")
    async def terminate(self) -> None:
        self._terminate()

    # ------------------------------------------------------------------
    # Relay
    # ------------------------------------------------------------------

    def _claim_relay(self, operation: str) -> None:
        if self._relay_lock.locked():
            raise RelayBusy(f"{operation} rejected: another relay operation is in progress")

    @_bridged("connect-relay")
    async def connect_relay(self, address: str | None = None) -> RelayState:
        self._claim_relay("connect-relay")
        async with self._relay_lock:
            await self._relay.connect(address or self._default_relay_url)
            return self._relay.state

    @_bridged("disconnect-relay")
    async def disconnect_relay(self) -> RelayState:
        self._claim_relay("disconnect-relay")
        async with self._relay_lock:
            if not await self._relay.close():
                raise NotConnected("Not connected")
            return self._relay.state

    # ------------------------------------------------------------------
    # Jobs and stats
    # ------------------------------------------------------------------

    @_bridged("start-job")
    async def start_job(self, difficulty: int) -> MiningJobResult:
        return await self._client.start_job(difficulty)

    @_bridged("stop-job")
    async def stop_job(self) -> Any:
        return await self._client.stop_job()

    @_bridged("fetch-stats")
    async def fetch_stats(self) -> StatsSnapshot:
        return await self._client.fetch_stats()
