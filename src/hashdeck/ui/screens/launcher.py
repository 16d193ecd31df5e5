"""
LauncherScreen — the first surface; probes the backend, opens the dashboard
and closes itself once the dashboard is up.

Widget tree::

    Header
    #launcher-root  (Container)
      #brand-header     (Label)
      #brand-tagline    (Label)
      #readiness        (Container — one Label per readiness row)
      #launcher-hint    (Label — engine start hint when the backend is down)
      .launcher-nav     (Horizontal — Launch / Refresh buttons)
    Footer

Keybindings:
  enter / l — launch dashboard
  r         — re-check backend status
  w         — close launcher
"""

from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.widgets import Button, Footer, Header, Label

from hashdeck.core.models import ReadinessVector, SurfaceKind
from hashdeck.ui.screens.surface import SurfaceScreen
from hashdeck.ui.state import (
    ENGINE_HINT,
    LAUNCHING_LABEL,
    launch_allowed,
    launch_label,
    readiness_lines,
)

_ROW_IDS = ("ready-engine", "ready-api", "ready-relay")


class LauncherScreen(SurfaceScreen):
    """Backend readiness summary and dashboard launcher."""

    surface = SurfaceKind.LAUNCHER

    BINDINGS = [
        Binding("enter", "launch", "Launch", show=True),
        Binding("l", "launch", "Launch", show=False),
        Binding("r", "refresh", "Re-check", show=True),
        Binding("w", "close_surface", "Close", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._readiness = ReadinessVector.from_probe(False)
        self._launching = False

    @property
    def readiness(self) -> ReadinessVector:
        return self._readiness

    def compose(self) -> ComposeResult:
        yield Header(show_clock=False)
        with Container(id="launcher-root"):
            yield Label("Hashdeck", id="brand-header")
            yield Label("Control shell for the local mining engine", id="brand-tagline")
            with Container(id="readiness"):
                for row_id in _ROW_IDS:
                    yield Label("Checking...", id=row_id, classes="readiness-row")
            yield Label("", id="launcher-hint")
            with Horizontal(classes="launcher-nav"):
                yield Button("Launch Dashboard", id="btn-launch", variant="primary")
                yield Button("Re-check", id="btn-refresh")
        yield Footer()

    def on_mount(self) -> None:
        self.action_refresh()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render_readiness(self, readiness: ReadinessVector) -> None:
        self._readiness = readiness
        for row_id, line in zip(_ROW_IDS, readiness_lines(readiness), strict=True):
            label = self.query_one(f"#{row_id}", Label)
            label.update(f"{line.label}: {line.text}")
            label.set_class(line.ready, "-ready")
            label.set_class(not line.ready, "-down")

        hint = self.query_one("#launcher-hint", Label)
        hint.update("" if readiness.engine_up else ENGINE_HINT)

        button = self.query_one("#btn-launch", Button)
        button.label = LAUNCHING_LABEL if self._launching else launch_label(readiness)
        button.variant = "primary" if readiness.all_ready else "warning"
        button.disabled = self._launching or not launch_allowed(readiness)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-launch":
            self.action_launch()
        elif event.button.id == "btn-refresh":
            self.action_refresh()

    def action_refresh(self) -> None:
        self.run_worker(self._probe(), exclusive=True, group="probe")

    async def _probe(self) -> None:
        result = await self.bridge.check_status()
        if result.success:
            self._render_readiness(result.data)
        else:
            self.report_failure("Status check failed", result)
            self._render_readiness(ReadinessVector.from_probe(False))

    def action_launch(self) -> None:
        if self._launching or not launch_allowed(self._readiness):
            return
        self._launching = True
        self._render_readiness(self._readiness)
        # App-level worker: closing the launcher cancels this screen's workers
        self.app.run_worker(self._launch(), group="surfaces")

    async def _launch(self) -> None:
        """Open the dashboard, then close the launcher once it is up."""
        result = await self.bridge.open_surface(SurfaceKind.DASHBOARD)
        if not result.success:
            self.app.notify(f"Failed to launch dashboard: {result.message}", severity="error")
            self._launching = False
            self._render_readiness(self._readiness)
            return
        closed = await self.bridge.close_surface(SurfaceKind.LAUNCHER)
        if not closed.success:
            self.app.notify(f"Close failed: {closed.message}", severity="error")
