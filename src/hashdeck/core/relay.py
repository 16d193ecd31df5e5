"""
Relay channel — the single persistent WebSocket to the backend.

State machine::

    DISCONNECTED --connect--> CONNECTING --handshake ok--> CONNECTED
                                   |                           |
                                   +--handshake error--> FAILED <--transport error
                                                                |
    CONNECTED --close() / remote close--> DISCONNECTED          |
    FAILED --connect--> CONNECTING  (no automatic retry)  <-----+

At most one connection exists: ``connect`` on an open relay closes the old
one first, so DISCONNECTED is always observed before the next CONNECTING.

Every inbound frame is a JSON ``StatsSnapshot``.  Frames that fail to decode
are logged and dropped without touching state or the connection.

Each ``connect`` returns a fresh ``RelayHandle`` whose event stream ends once
that connection terminates.  Events are also published to the hub supplied
by the orchestrator.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

import structlog
import websockets
from websockets.exceptions import ConnectionClosedOK, WebSocketException

from hashdeck.core.events import DEFAULT_MAX_PENDING, EventHub, EventStream
from hashdeck.core.exceptions import InvalidRelayAddress, MalformedResponse, NotConnected
from hashdeck.core.models import (
    RelayEvent,
    RelayPhase,
    RelayState,
    RelayStateChanged,
    StatsReceived,
    StatsSnapshot,
)

logger = structlog.get_logger()

Connector = Callable[..., Awaitable[Any]]


def validate_relay_address(address: str) -> str:
    """Return ``address`` if it is a usable ws(s) URL, else raise InvalidRelayAddress."""
    try:
        parsed = urlparse(address)
        # .port raises ValueError for a non-numeric or out-of-range port
        parsed.port  # noqa: B018
    except ValueError as exc:
        raise InvalidRelayAddress(f"Malformed relay address {address!r}: {exc}") from exc
    if parsed.scheme not in ("ws", "wss") or not parsed.hostname:
        raise InvalidRelayAddress(f"Relay address must be a ws:// or wss:// URL, got {address!r}")
    return address


def decode_frame(frame: str | bytes) -> StatsSnapshot:
    """Decode one relay frame; raises MalformedResponse on any problem."""
    try:
        payload = json.loads(frame)
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedResponse(f"frame is not valid JSON: {exc}") from exc
    return StatsSnapshot.from_payload(payload)


@dataclass
class RelayHandle:
    """One relay connection attempt and its event stream."""

    address: str
    events: EventStream
    dropped_frames: int = 0
    finished: bool = False
    _connection: Any = field(default=None, repr=False)
    _reader: asyncio.Task[None] | None = field(default=None, repr=False)


class RelayChannel:
    def __init__(
        self,
        *,
        hub: EventHub | None = None,
        connector: Connector | None = None,
        open_timeout: float = 10.0,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        self._hub = hub
        self._connector = connector or websockets.connect
        self._open_timeout = open_timeout
        self._max_pending = max_pending
        self._state = RelayState.disconnected()
        self._handle: RelayHandle | None = None

    @property
    def state(self) -> RelayState:
        return self._state

    @property
    def handle(self) -> RelayHandle | None:
        return self._handle

    # ------------------------------------------------------------------
    # Event plumbing
    # ------------------------------------------------------------------

    def _emit(self, handle: RelayHandle, event: RelayEvent) -> None:
        handle.events.publish(event)
        if self._hub is not None:
            self._hub.publish(event)

    def _transition(self, handle: RelayHandle, state: RelayState) -> None:
        if not self._state.can_transition_to(state.phase):
            raise ValueError(
                f"Invalid transition: {self._state.phase.value} -> {state.phase.value}"
            )
        self._state = state
        logger.info("relay_state", address=handle.address, **state.to_dict())
        self._emit(handle, RelayStateChanged(state))

    def _finish(self, handle: RelayHandle, state: RelayState) -> None:
        """Report the end of ``handle``'s connection exactly once."""
        if handle.finished:
            return
        handle.finished = True
        try:
            self._transition(handle, state)
        finally:
            handle.events.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def connect(self, address: str) -> RelayHandle:
        """Open a connection to ``address``, replacing any open one.

        Returns once the attempt has settled as CONNECTED or FAILED.
        Raises InvalidRelayAddress before any state change.
        """
        validate_relay_address(address)
        await self.close()

        handle = RelayHandle(address=address, events=EventStream(self._max_pending))
        self._handle = handle
        self._transition(handle, RelayState.connecting())

        try:
            connection = await self._connector(address, open_timeout=self._open_timeout)
        except (OSError, WebSocketException) as exc:
            # TimeoutError is an OSError subclass
            self._finish(handle, RelayState.failed(str(exc) or type(exc).__name__))
            return handle
        except Exception as exc:  # noqa: BLE001
            logger.warning("relay_connect_error", address=address, error=repr(exc))
            self._finish(handle, RelayState.failed(str(exc) or type(exc).__name__))
            return handle

        if handle.finished:
            # close() ran while the handshake was pending
            with contextlib.suppress(OSError, WebSocketException):
                await connection.close()
            return handle

        handle._connection = connection
        self._transition(handle, RelayState.connected())
        handle._reader = asyncio.create_task(self._read_frames(handle, connection))
        return handle

    async def send(self, payload: Mapping[str, Any]) -> None:
        """Send one JSON application frame on the open connection."""
        handle = self._handle
        if handle is None or self._state.phase is not RelayPhase.CONNECTED:
            raise NotConnected("Relay is not connected")
        await handle._connection.send(json.dumps(dict(payload)))

    async def close(self) -> bool:
        """Close the open connection.  Returns False if nothing was open."""
        handle = self._handle
        if handle is None or handle.finished:
            return False

        reader = handle._reader
        if reader is not None and not reader.done():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        if handle._connection is not None:
            with contextlib.suppress(OSError, WebSocketException):
                await handle._connection.close()

        self._finish(handle, RelayState.disconnected())
        return True

    # ------------------------------------------------------------------
    # Reader
    # ------------------------------------------------------------------

    def _handle_frame(self, handle: RelayHandle, frame: str | bytes) -> None:
        try:
            stats = decode_frame(frame)
        except MalformedResponse as exc:
            handle.dropped_frames += 1
            logger.warning("relay_frame_dropped", address=handle.address, error=str(exc))
            return
        self._emit(handle, StatsReceived(stats))

    async def _read_frames(self, handle: RelayHandle, connection: Any) -> None:
        try:
            async for frame in connection:
                self._handle_frame(handle, frame)
        except ConnectionClosedOK:
            self._finish(handle, RelayState.disconnected("closed by backend"))
        except (WebSocketException, OSError) as exc:
            self._finish(handle, RelayState.failed(str(exc) or type(exc).__name__))
        except Exception as exc:  # noqa: BLE001
            logger.exception("relay_reader_error", address=handle.address)
            self._finish(handle, RelayState.failed(str(exc) or type(exc).__name__))
        else:
            self._finish(handle, RelayState.disconnected("closed by backend"))
