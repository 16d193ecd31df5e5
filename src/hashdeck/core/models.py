"""
Core data model — pure dataclasses shared by every Hashdeck component.

Backend payloads are decoded here (``from_payload``) so that every consumer,
whether an HTTP response or a relay frame, applies the same rules.  Decoding
failures raise ``MalformedResponse``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from hashdeck.core.exceptions import MalformedResponse

# SHA-256d digest rendered as lowercase hex
HASH_HEX_LENGTH = 64

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 32


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReadinessVector:
    """Liveness summary derived from a single probe.

    The backend exposes one combined health signal, so a reachable API is
    taken to mean the engine and the relay endpoint are up as well.
    """

    engine_up: bool = False
    api_up: bool = False
    relay_up: bool = False

    @classmethod
    def from_probe(cls, healthy: bool) -> ReadinessVector:
        return cls(engine_up=healthy, api_up=healthy, relay_up=healthy)

    @property
    def all_ready(self) -> bool:
        return self.engine_up and self.api_up and self.relay_up

    def to_dict(self) -> dict[str, bool]:
        return {"engine": self.engine_up, "api": self.api_up, "relay": self.relay_up}


# ---------------------------------------------------------------------------
# Relay state
# ---------------------------------------------------------------------------


class RelayPhase(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


VALID_RELAY_TRANSITIONS: dict[RelayPhase, frozenset[RelayPhase]] = {
    RelayPhase.DISCONNECTED: frozenset({RelayPhase.CONNECTING}),
    RelayPhase.CONNECTING: frozenset(
        {RelayPhase.CONNECTED, RelayPhase.FAILED, RelayPhase.DISCONNECTED}
    ),
    RelayPhase.CONNECTED: frozenset({RelayPhase.DISCONNECTED, RelayPhase.FAILED}),
    RelayPhase.FAILED: frozenset({RelayPhase.CONNECTING}),
}


@dataclass(frozen=True)
class RelayState:
    phase: RelayPhase = RelayPhase.DISCONNECTED
    reason: str = ""

    @classmethod
    def disconnected(cls, reason: str = "") -> RelayState:
        return cls(RelayPhase.DISCONNECTED, reason)

    @classmethod
    def connecting(cls) -> RelayState:
        return cls(RelayPhase.CONNECTING)

    @classmethod
    def connected(cls) -> RelayState:
        return cls(RelayPhase.CONNECTED)

    @classmethod
    def failed(cls, reason: str) -> RelayState:
        return cls(RelayPhase.FAILED, reason)

    @property
    def is_open(self) -> bool:
        """True while a connection is being attempted or is established."""
        return self.phase in (RelayPhase.CONNECTING, RelayPhase.CONNECTED)

    def can_transition_to(self, target: RelayPhase) -> bool:
        return target in VALID_RELAY_TRANSITIONS[self.phase]

    def to_dict(self) -> dict[str, str]:
        out = {"state": self.phase.value}
        if self.reason:
            out["reason"] = self.reason
        return out


# ---------------------------------------------------------------------------
# Surfaces
# ---------------------------------------------------------------------------


class SurfaceKind(StrEnum):
    LAUNCHER = "launcher"
    DASHBOARD = "dashboard"


class SurfaceState(StrEnum):
    LAUNCHER_ONLY = "launcher_only"
    DASHBOARD_ONLY = "dashboard_only"
    BOTH = "both"
    NONE = "none"

    @classmethod
    def from_kinds(cls, kinds: frozenset[SurfaceKind]) -> SurfaceState:
        return _STATE_BY_KINDS[kinds]

    @property
    def kinds(self) -> frozenset[SurfaceKind]:
        return _KINDS_BY_STATE[self]


_STATE_BY_KINDS: dict[frozenset[SurfaceKind], SurfaceState] = {
    frozenset({SurfaceKind.LAUNCHER}): SurfaceState.LAUNCHER_ONLY,
    frozenset({SurfaceKind.DASHBOARD}): SurfaceState.DASHBOARD_ONLY,
    frozenset({SurfaceKind.LAUNCHER, SurfaceKind.DASHBOARD}): SurfaceState.BOTH,
    frozenset(): SurfaceState.NONE,
}
_KINDS_BY_STATE = {state: kinds for kinds, state in _STATE_BY_KINDS.items()}


# ---------------------------------------------------------------------------
# Backend payloads
# ---------------------------------------------------------------------------


def _require_mapping(payload: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise MalformedResponse(f"{what}: expected a JSON object, got {type(payload).__name__}")
    return payload


def _require_count(payload: Mapping[str, Any], key: str, what: str) -> int:
    if key not in payload:
        raise MalformedResponse(f"{what}: missing field {key!r}")
    value = payload[key]
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise MalformedResponse(f"{what}: field {key!r} must be a non-negative integer")
    return value


@dataclass(frozen=True)
class MiningJobResult:
    nonce: int
    hash: str
    iterations: int

    @classmethod
    def from_payload(cls, payload: Any) -> MiningJobResult:
        data = _require_mapping(payload, "job result")
        digest = data.get("hash")
        if not isinstance(digest, str):
            raise MalformedResponse("job result: field 'hash' must be a string")
        return cls(
            nonce=_require_count(data, "nonce", "job result"),
            hash=digest,
            iterations=_require_count(data, "iterations", "job result"),
        )

    @property
    def has_digest(self) -> bool:
        """False when the backend exhausted the nonce space without a match."""
        if len(self.hash) != HASH_HEX_LENGTH:
            return False
        try:
            int(self.hash, 16)
        except ValueError:
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        return {"nonce": self.nonce, "hash": self.hash, "iterations": self.iterations}


@dataclass(frozen=True)
class StatsSnapshot:
    hash_rate: float
    total_hashes: int
    current_difficulty: int
    is_mining: bool

    @classmethod
    def from_payload(cls, payload: Any) -> StatsSnapshot:
        data = _require_mapping(payload, "stats")
        rate = data.get("hash_rate")
        if isinstance(rate, bool) or not isinstance(rate, int | float):
            raise MalformedResponse("stats: field 'hash_rate' must be a number")
        mining = data.get("is_mining")
        if not isinstance(mining, bool):
            raise MalformedResponse("stats: field 'is_mining' must be a boolean")
        return cls(
            hash_rate=float(rate),
            total_hashes=_require_count(data, "total_hashes", "stats"),
            current_difficulty=_require_count(data, "current_difficulty", "stats"),
            is_mining=mining,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash_rate": self.hash_rate,
            "total_hashes": self.total_hashes,
            "current_difficulty": self.current_difficulty,
            "is_mining": self.is_mining,
        }


# ---------------------------------------------------------------------------
# Relay events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RelayStateChanged:
    state: RelayState


@dataclass(frozen=True)
class StatsReceived:
    stats: StatsSnapshot


RelayEvent = RelayStateChanged | StatsReceived


# ---------------------------------------------------------------------------
# Process status
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProcessStatus:
    """Point-in-time view of orchestrator-owned state."""

    relay: RelayState
    surfaces: SurfaceState
    latest_stats: StatsSnapshot | None = None
    terminated: bool = False
    exit_code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "relay": self.relay.to_dict(),
            "surfaces": self.surfaces.value,
            "latest_stats": self.latest_stats.to_dict() if self.latest_stats else None,
            "terminated": self.terminated,
            "exit_code": self.exit_code,
        }


__all__ = [
    "HASH_HEX_LENGTH",
    "MAX_DIFFICULTY",
    "MIN_DIFFICULTY",
    "MiningJobResult",
    "ProcessStatus",
    "ReadinessVector",
    "RelayEvent",
    "RelayPhase",
    "RelayState",
    "RelayStateChanged",
    "StatsReceived",
    "StatsSnapshot",
    "SurfaceKind",
    "SurfaceState",
    "VALID_RELAY_TRANSITIONS",
]
