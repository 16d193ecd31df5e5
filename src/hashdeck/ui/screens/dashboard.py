"""
DashboardScreen — live stats, relay control and mining jobs.

Widget tree::

    Header
    #dashboard-root  (Container)
      #stats-row       (Horizontal — hash rate / total hashes / difficulty / status)
      #relay-row       (Horizontal)
        #relay-status    (Label)
        #btn-connect     (Button — Connect / Disconnect)
      #job-row         (Horizontal)
        #difficulty      (Input)
        #btn-start       (Button)
        #btn-stop        (Button)
      #activity-log    (RichLog)
    Footer

Keybindings:
  c — connect / disconnect the relay
  m — start mining at the entered difficulty
  s — stop mining
  w — close dashboard
"""

from __future__ import annotations

from datetime import datetime

from rich.text import Text
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.widgets import Button, Footer, Header, Input, Label, RichLog, Static

from hashdeck.core.events import EventStream
from hashdeck.core.models import RelayStateChanged, SurfaceKind
from hashdeck.ui.screens.surface import SurfaceScreen
from hashdeck.ui.state import (
    DASHBOARD_GREETING,
    DashboardState,
    format_count,
    format_hash_rate,
    job_result_lines,
    relay_event_log_line,
    relay_status_text,
    validate_difficulty,
)

_LOG_STYLES = {"info": "", "success": "green", "error": "red"}


class DashboardScreen(SurfaceScreen):
    """Live mining dashboard."""

    surface = SurfaceKind.DASHBOARD

    BINDINGS = [
        Binding("c", "toggle_relay", "Connect", show=True),
        Binding("m", "start_job", "Mine", show=True),
        Binding("s", "stop_job", "Stop", show=True),
        Binding("w", "close_surface", "Close", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._view = DashboardState()

    @property
    def view(self) -> DashboardState:
        return self._view

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Container(id="dashboard-root"):
            with Horizontal(id="stats-row"):
                yield Static("0.00 H/s", id="stat-rate", classes="stat-card")
                yield Static("0", id="stat-total", classes="stat-card")
                yield Static("0", id="stat-difficulty", classes="stat-card")
                yield Static("Idle", id="stat-status", classes="stat-card")
            with Horizontal(id="relay-row"):
                yield Label("Disconnected", id="relay-status")
                yield Button("Connect", id="btn-connect", variant="success")
            with Horizontal(id="job-row"):
                yield Input(value="4", placeholder="Difficulty (1-32)", id="difficulty")
                yield Button("Start Mining", id="btn-start", variant="primary")
                yield Button("Stop", id="btn-stop", variant="error")
            yield RichLog(id="activity-log", wrap=True)
        yield Footer()

    def on_mount(self) -> None:
        status = self.hashdeck.status()
        self._view = DashboardState(relay=status.relay, stats=status.latest_stats)
        self._render_view()
        self.log_line(DASHBOARD_GREETING)
        self.run_worker(self._consume(self.subscribe()), group="events")

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def log_line(self, message: str, severity: str = "info") -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        line = Text(f"[{stamp}] {message}", style=_LOG_STYLES.get(severity, ""))
        self.query_one("#activity-log", RichLog).write(line)

    def _set_view(self, state: DashboardState) -> None:
        self._view = state
        self._render_view()

    def _render_view(self) -> None:
        state = self._view
        stats = state.stats
        if stats is not None:
            self.query_one("#stat-rate", Static).update(format_hash_rate(stats.hash_rate))
            self.query_one("#stat-total", Static).update(format_count(stats.total_hashes))
            self.query_one("#stat-difficulty", Static).update(str(stats.current_difficulty))
        self.query_one("#stat-status", Static).update(state.mining_text)

        relay_label = self.query_one("#relay-status", Label)
        relay_label.update(relay_status_text(state.relay))
        relay_label.set_class(state.connected, "-connected")

        connect = self.query_one("#btn-connect", Button)
        connect.label = state.connect_label
        connect.variant = "error" if state.connected else "success"
        connect.disabled = state.relay_pending
        self.query_one("#btn-start", Button).disabled = not state.can_start
        self.query_one("#btn-stop", Button).disabled = not state.can_stop

    async def _consume(self, events: EventStream) -> None:
        async for event in events:
            if isinstance(event, RelayStateChanged):
                entry = relay_event_log_line(event)
                if entry is not None:
                    self.log_line(*entry)
            self._set_view(self._view.apply(event))

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        handlers = {
            "btn-connect": self.action_toggle_relay,
            "btn-start": self.action_start_job,
            "btn-stop": self.action_stop_job,
        }
        handler = handlers.get(event.button.id or "")
        if handler is not None:
            handler()

    def action_toggle_relay(self) -> None:
        if self._view.relay_pending:
            return
        self.run_worker(self._toggle_relay(), group="relay")

    async def _toggle_relay(self) -> None:
        self._set_view(self._view.with_relay_pending(True))
        try:
            if self._view.connected:
                result = await self.bridge.disconnect_relay()
                if result.success:
                    self.log_line("Disconnected from WebSocket")
                else:
                    self.log_line(f"Disconnect failed: {result.message}", "error")
            else:
                self.log_line("Connecting to WebSocket...")
                result = await self.bridge.connect_relay()
                if not result.success:
                    self.log_line(f"Connection failed: {result.message}", "error")
        finally:
            self._set_view(self._view.with_relay_pending(False))

    def action_start_job(self) -> None:
        if not self._view.can_start:
            return
        try:
            difficulty = validate_difficulty(self.query_one("#difficulty", Input).value)
        except ValueError as exc:
            self.log_line(str(exc), "error")
            return
        self.run_worker(self._start_job(difficulty), group="job")

    async def _start_job(self, difficulty: int) -> None:
        self.log_line(f"Starting mining with difficulty {difficulty}...")
        self._set_view(self._view.with_job_pending(True))
        try:
            result = await self.bridge.start_job(difficulty)
            if result.success:
                for line in job_result_lines(result.data):
                    self.log_line(line, "success")
            else:
                self.log_line(f"Mining failed: {result.message}", "error")
        finally:
            self._set_view(self._view.with_job_pending(False))

    def action_stop_job(self) -> None:
        if not self._view.can_stop:
            return
        self.run_worker(self._stop_job(), group="stop")

    async def _stop_job(self) -> None:
        self.log_line("Stopping mining...")
        result = await self.bridge.stop_job()
        if result.success:
            self.log_line("Mining stopped")
        else:
            self.log_line(f"Failed to stop: {result.message}", "error")
        self._set_view(self._view.with_job_pending(False))
