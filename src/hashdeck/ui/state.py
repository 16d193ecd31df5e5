"""
UI state types — pure Python, no Textual imports.

These can be constructed and tested without a running Textual app.  Screens
render what these functions return and nothing else.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from hashdeck.core.models import (
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    MiningJobResult,
    ReadinessVector,
    RelayEvent,
    RelayPhase,
    RelayState,
    RelayStateChanged,
    StatsReceived,
    StatsSnapshot,
)

ENGINE_HINT = "Mining engine is not running. Start it with: cd backend/miner && cargo run"
DASHBOARD_GREETING = "Dashboard ready. Start the Rust backend with: cd backend/miner && cargo run"


# ---------------------------------------------------------------------------
# Launcher
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReadinessLine:
    label: str
    text: str
    ready: bool


def readiness_lines(readiness: ReadinessVector) -> list[ReadinessLine]:
    """Status rows shown on the launcher, in display order."""
    return [
        ReadinessLine(
            "Mining engine", "Ready" if readiness.engine_up else "Not Running", readiness.engine_up
        ),
        ReadinessLine("API server", "Online" if readiness.api_up else "Offline", readiness.api_up),
        ReadinessLine(
            "Live relay",
            "Available" if readiness.relay_up else "Unavailable",
            readiness.relay_up,
        ),
    ]


LAUNCHING_LABEL = "Launching..."


def launch_label(readiness: ReadinessVector) -> str:
    if readiness.all_ready:
        return "Launch Dashboard"
    return "Launch Dashboard (Limited)"


def launch_allowed(readiness: ReadinessVector) -> bool:
    """Launching is always allowed; an offline backend only limits the dashboard."""
    return True


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_hash_rate(rate: float) -> str:
    if rate >= 1_000_000:
        return f"{rate / 1_000_000:.2f} MH/s"
    if rate >= 1_000:
        return f"{rate / 1_000:.2f} KH/s"
    return f"{rate:.2f} H/s"


def format_count(value: int) -> str:
    return f"{value:,}"


def validate_difficulty(raw: str) -> int:
    """Parse the difficulty input.  Raises ValueError with a user-facing message."""
    try:
        value = int(raw.strip())
    except ValueError:
        raise ValueError(
            f"Difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}"
        ) from None
    if not MIN_DIFFICULTY <= value <= MAX_DIFFICULTY:
        raise ValueError(f"Difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}")
    return value


def job_result_lines(result: MiningJobResult) -> list[str]:
    """Log lines for a finished job: nonce, then hash, then iteration count."""
    return [
        f"Mining completed! Nonce: {result.nonce}",
        f"Hash: {result.hash}",
        f"Iterations: {format_count(result.iterations)}",
    ]


def relay_status_text(state: RelayState) -> str:
    if state.phase is RelayPhase.CONNECTED:
        return "Connected"
    if state.phase is RelayPhase.CONNECTING:
        return "Connecting..."
    if state.phase is RelayPhase.FAILED:
        return f"Failed: {state.reason}" if state.reason else "Failed"
    return "Disconnected"


# ---------------------------------------------------------------------------
# Dashboard state machine
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DashboardState:
    """
    Immutable view-model for the dashboard.

    Transitions are made by calling the ``with_*`` methods / ``apply`` which
    return new instances.
    """

    relay: RelayState = RelayState()
    stats: StatsSnapshot | None = None
    job_pending: bool = False
    relay_pending: bool = False

    @property
    def connected(self) -> bool:
        return self.relay.phase is RelayPhase.CONNECTED

    @property
    def can_start(self) -> bool:
        return self.connected and not self.job_pending

    @property
    def can_stop(self) -> bool:
        return self.job_pending

    @property
    def connect_label(self) -> str:
        return "Disconnect" if self.connected else "Connect"

    @property
    def mining_text(self) -> str:
        if self.stats is None:
            return "Idle"
        return "Mining" if self.stats.is_mining else "Idle"

    def apply(self, event: RelayEvent) -> DashboardState:
        if isinstance(event, RelayStateChanged):
            return replace(self, relay=event.state)
        if isinstance(event, StatsReceived):
            return replace(self, stats=event.stats)
        return self

    def with_job_pending(self, pending: bool) -> DashboardState:
        return replace(self, job_pending=pending)

    def with_relay_pending(self, pending: bool) -> DashboardState:
        return replace(self, relay_pending=pending)


def relay_event_log_line(event: RelayStateChanged) -> tuple[str, str] | None:
    """Return (message, severity) for a state change worth logging, else None."""
    phase = event.state.phase
    if phase is RelayPhase.CONNECTED:
        return "Connected to mining engine", "success"
    if phase is RelayPhase.FAILED:
        return f"Relay failed: {event.state.reason}", "error"
    if phase is RelayPhase.DISCONNECTED:
        return "Disconnected from mining engine", "error"
    return None


__all__ = [
    "DASHBOARD_GREETING",
    "DashboardState",
    "ENGINE_HINT",
    "ReadinessLine",
    "format_count",
    "format_hash_rate",
    "job_result_lines",
    "LAUNCHING_LABEL",
    "launch_allowed",
    "launch_label",
    "readiness_lines",
    "relay_event_log_line",
    "relay_status_text",
    "validate_difficulty",
]
