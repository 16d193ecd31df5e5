"""
Hashdeck UI — Textual application shell.

Launched by ``hashdeck`` (no args) or ``hashdeck ui``.  The app owns an
``Orchestrator`` whose surfaces are realised as screens by
``ScreenSurfaceHost``; when the orchestrator terminates, the app exits with
its exit code.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from textual.app import App, ComposeResult
from textual.binding import Binding

from hashdeck import __version__
from hashdeck.core.bridge import CommandBridge
from hashdeck.core.config import HashdeckConfig
from hashdeck.core.events import EventStream
from hashdeck.core.models import ProcessStatus, SurfaceKind
from hashdeck.core.orchestrator import Orchestrator
from hashdeck.core.surfaces import SurfaceTransition
from hashdeck.ui.host import ScreenSurfaceHost
from hashdeck.ui.screens.dashboard import DashboardScreen
from hashdeck.ui.screens.idle import IdleScreen
from hashdeck.ui.screens.launcher import LauncherScreen


class HashdeckApp(App):  # type: ignore[type-arg]
    """Hashdeck interactive terminal UI."""

    TITLE = f"Hashdeck {__version__}"
    CSS_PATH = str(Path(__file__).parent / "css" / "hashdeck.tcss")

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", show=True, priority=True),
    ]

    def __init__(
        self,
        config: HashdeckConfig,
        **orchestrator_options: Any,
    ) -> None:
        """``orchestrator_options`` are passed through (test transports and connectors)."""
        super().__init__()
        self.surface_host = ScreenSurfaceHost(
            self,
            {SurfaceKind.LAUNCHER: LauncherScreen, SurfaceKind.DASHBOARD: DashboardScreen},
            idle_factory=IdleScreen if config.keep_alive_without_surfaces else None,
        )
        self._orchestrator = Orchestrator(
            config,
            surface_host=self.surface_host,
            **orchestrator_options,
        )

    @property
    def orchestrator(self) -> Orchestrator:
        return self._orchestrator

    @property
    def bridge(self) -> CommandBridge:
        return self._orchestrator.bridge

    def subscribe(self) -> EventStream:
        return self._orchestrator.subscribe()

    def status(self) -> ProcessStatus:
        return self._orchestrator.status()

    async def activate(self) -> SurfaceTransition:
        return await self._orchestrator.activate()

    def compose(self) -> ComposeResult:
        # Surfaces are pushed by the host once the orchestrator starts.
        return iter([])

    async def on_mount(self) -> None:
        await self._orchestrator.start()
        self.run_worker(self._exit_when_terminated(), group="lifecycle")

    async def on_unmount(self) -> None:
        await self._orchestrator.aclose()

    async def _exit_when_terminated(self) -> None:
        exit_code = await self._orchestrator.wait_terminated()
        await self._orchestrator.aclose()
        self.exit(return_code=exit_code)

    async def action_quit(self) -> None:
        await self.bridge.terminate()


def run(config: HashdeckConfig, **kwargs: Any) -> int:
    """Entry point called from the CLI.  Returns the process exit code."""
    app = HashdeckApp(config, **kwargs)
    app.run()
    return app.return_code or 0
