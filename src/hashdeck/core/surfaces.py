"""
Surface lifecycle — the launcher/dashboard state machine.

The live surfaces are a set of ``SurfaceKind``; ``SurfaceState`` is that set
by name.  At most one surface of each kind exists: opening a live surface
focuses it instead of creating another.

Transitions::

    open dashboard     LAUNCHER_ONLY -> BOTH
                       DASHBOARD_ONLY / BOTH -> (focus, unchanged)
                       NONE -> DASHBOARD_ONLY   (creation racing shutdown)
    close launcher     BOTH -> DASHBOARD_ONLY,  LAUNCHER_ONLY -> NONE
    close dashboard    BOTH -> LAUNCHER_ONLY,   DASHBOARD_ONLY -> NONE
    activate           NONE -> LAUNCHER_ONLY    (keep-alive platforms)

Closing a surface that is not live is a no-op.  Entering NONE calls
``on_empty`` unless the platform keeps the process alive without surfaces.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

import structlog

from hashdeck.core.exceptions import SurfaceUnavailable
from hashdeck.core.models import SurfaceKind, SurfaceState

logger = structlog.get_logger()


class SurfaceAction(StrEnum):
    CREATED = "created"
    FOCUSED = "focused"
    CLOSED = "closed"
    NOOP = "noop"


@dataclass(frozen=True)
class SurfaceTransition:
    kind: SurfaceKind
    action: SurfaceAction
    previous: SurfaceState
    current: SurfaceState

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind.value,
            "action": self.action.value,
            "previous": self.previous.value,
            "current": self.current.value,
        }


class SurfaceHost(Protocol):
    """Realises surfaces in a concrete UI toolkit."""

    async def create(self, kind: SurfaceKind) -> None: ...

    async def focus(self, kind: SurfaceKind) -> None: ...

    async def destroy(self, kind: SurfaceKind) -> None: ...


class NullSurfaceHost:
    """Headless host: surfaces exist only as state."""

    async def create(self, kind: SurfaceKind) -> None:
        return None

    async def focus(self, kind: SurfaceKind) -> None:
        return None

    async def destroy(self, kind: SurfaceKind) -> None:
        return None


class SurfaceLifecycle:
    def __init__(
        self,
        host: SurfaceHost | None = None,
        *,
        keep_alive_when_empty: bool = False,
        on_empty: Callable[[], None] | None = None,
    ) -> None:
        self._host: SurfaceHost = host or NullSurfaceHost()
        self._keep_alive = keep_alive_when_empty
        self._on_empty = on_empty
        # The launcher is the initial surface; start() asks the host to show it
        self._live: frozenset[SurfaceKind] = frozenset({SurfaceKind.LAUNCHER})
        self._started = False

    @property
    def state(self) -> SurfaceState:
        return SurfaceState.from_kinds(self._live)

    @property
    def keep_alive_when_empty(self) -> bool:
        return self._keep_alive

    def is_open(self, kind: SurfaceKind) -> bool:
        return kind in self._live

    async def start(self) -> SurfaceTransition:
        """Realise the initial launcher surface through the host."""
        if self._started or SurfaceKind.LAUNCHER not in self._live:
            return self._noop(SurfaceKind.LAUNCHER)
        await self._create(SurfaceKind.LAUNCHER)
        self._started = True
        logger.info("surface_started", kind=SurfaceKind.LAUNCHER.value, state=self.state.value)
        return self._noop(SurfaceKind.LAUNCHER, SurfaceAction.CREATED)

    async def open(self, kind: SurfaceKind) -> SurfaceTransition:
        if kind in self._live:
            await self._host.focus(kind)
            transition = self._noop(kind, SurfaceAction.FOCUSED)
            logger.info("surface_focused", kind=kind.value, state=transition.current.value)
            return transition
        await self._create(kind)
        return self._commit(kind, SurfaceAction.CREATED, self._live | {kind})

    async def close(self, kind: SurfaceKind) -> SurfaceTransition:
        if kind not in self._live:
            return self._noop(kind)
        transition = self._commit(kind, SurfaceAction.CLOSED, self._live - {kind})
        await self._host.destroy(kind)
        if transition.current is SurfaceState.NONE:
            self._handle_empty()
        return transition

    async def activate(self) -> SurfaceTransition:
        """Platform re-activation: bring back a launcher when nothing is open."""
        if self._live:
            return self._noop(SurfaceKind.LAUNCHER)
        await self._create(SurfaceKind.LAUNCHER)
        return self._commit(
            SurfaceKind.LAUNCHER, SurfaceAction.CREATED, frozenset({SurfaceKind.LAUNCHER})
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _create(self, kind: SurfaceKind) -> None:
        try:
            await self._host.create(kind)
        except SurfaceUnavailable:
            raise
        except Exception as exc:  # noqa: BLE001 - any host failure is reported uniformly
            raise SurfaceUnavailable(f"Cannot create {kind.value} surface: {exc}") from exc

    def _commit(
        self, kind: SurfaceKind, action: SurfaceAction, live: frozenset[SurfaceKind]
    ) -> SurfaceTransition:
        previous = self.state
        self._live = live
        transition = SurfaceTransition(kind, action, previous, self.state)
        logger.info(
            "surface_transition",
            kind=kind.value,
            action=action.value,
            previous=previous.value,
            current=transition.current.value,
        )
        return transition

    def _noop(
        self, kind: SurfaceKind, action: SurfaceAction = SurfaceAction.NOOP
    ) -> SurfaceTransition:
        return SurfaceTransition(kind, action, self.state, self.state)

    def _handle_empty(self) -> None:
        if self._keep_alive:
            logger.info("surfaces_empty", keep_alive=True)
            return
        logger.info("surfaces_empty", keep_alive=False)
        if self._on_empty is not None:
            self._on_empty()
