"""Base class for screens that realise a surface."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from textual.screen import Screen

from hashdeck.core.models import SurfaceKind

if TYPE_CHECKING:
    from hashdeck.core.bridge import BridgeResult, CommandBridge
    from hashdeck.core.events import EventStream
    from hashdeck.ui.app import HashdeckApp


class SurfaceScreen(Screen):  # type: ignore[type-arg]
    """A screen owned by the surface host.

    Subclasses talk to the control process through ``self.bridge`` only.
    """

    surface: ClassVar[SurfaceKind]

    def __init__(self) -> None:
        super().__init__()
        self._event_stream: EventStream | None = None

    @property
    def hashdeck(self) -> HashdeckApp:
        return self.app  # type: ignore[return-value]

    @property
    def bridge(self) -> CommandBridge:
        return self.hashdeck.bridge

    def subscribe(self) -> EventStream:
        self._event_stream = self.hashdeck.subscribe()
        return self._event_stream

    def release(self) -> None:
        """Called by the host when the surface is destroyed."""
        if self._event_stream is not None:
            self._event_stream.close()
            self._event_stream = None
        self.workers.cancel_node(self)

    def report_failure(self, action: str, result: BridgeResult) -> None:
        self.notify(f"{action}: {result.message}", severity="error")

    # ------------------------------------------------------------------
    # Actions shared by every surface
    # ------------------------------------------------------------------

    def action_close_surface(self) -> None:
        # App-level worker: destroying this screen cancels its own workers
        self.app.run_worker(self._close_surface(), group="surfaces")

    async def _close_surface(self) -> None:
        result = await self.bridge.close_surface(self.surface)
        if not result.success:
            self.app.notify(f"Close failed: {result.message}", severity="error")
