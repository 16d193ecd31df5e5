"""Shared fixtures: an in-memory backend (httpx.MockTransport) and relay connection."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
import structlog

from hashdeck.core.config import HashdeckConfig

# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------

_OVERRIDE_VARS = ("HASHDECK_CONFIG", "HASHDECK_API_URL", "HASHDECK_RELAY_URL", "HASHDECK_LOG_LEVEL")


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "hashdeck-home"
    monkeypatch.setenv("HASHDECK_HOME", str(home))
    for name in _OVERRIDE_VARS:
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


# ---------------------------------------------------------------------------
# Fake HTTP backend
# ---------------------------------------------------------------------------

DEFAULT_STATS = {
    "hash_rate": 1523.5,
    "total_hashes": 120000,
    "current_difficulty": 0,
    "is_mining": False,
}

DEFAULT_JOB = {
    "nonce": 48213,
    "hash": "0000" + "ab" * 30,
    "iterations": 48214,
    "block_header": "00" * 80,
}


class FakeBackend:
    """Serves /api/stats, /api/mine and /api/stop through httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.mine_bodies: list[Any] = []
        self.down = False
        self.stats_status = 200
        self.stats_body: Any = dict(DEFAULT_STATS)
        self.mine_status = 200
        self.mine_body: Any = dict(DEFAULT_JOB)
        self.stop_status = 200
        self.stop_body: Any = {"status": "stopped"}
        self.raise_on: dict[str, Exception] = {}

    def _respond(self, status: int, body: Any) -> httpx.Response:
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if self.down:
            raise httpx.ConnectError("Connection refused", request=request)
        if path in self.raise_on:
            raise self.raise_on[path]
        if path == "/api/stats" and request.method == "GET":
            return self._respond(self.stats_status, self.stats_body)
        if path == "/api/mine" and request.method == "POST":
            body = json.loads(request.content)
            self.mine_bodies.append(body)
            if self.mine_status == 422:
                return httpx.Response(422, text="target_difficulty out of range")
            return self._respond(self.mine_status, self.mine_body)
        if path == "/api/stop" and request.method == "POST":
            return self._respond(self.stop_status, self.stop_body)
        return httpx.Response(404, text="not found")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


# ---------------------------------------------------------------------------
# Fake relay connection
# ---------------------------------------------------------------------------


class _End:
    def __init__(self, exc: BaseException | None = None) -> None:
        self.exc = exc


class FakeConnection:
    """Async-iterable stand-in for a websockets client connection."""

    def __init__(self) -> None:
        self._frames: asyncio.Queue[Any] = asyncio.Queue()
        self.sent: list[str] = []
        self.closed = False

    def feed(self, frame: str | bytes | dict[str, Any]) -> None:
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self._frames.put_nowait(frame)

    def end(self, exc: BaseException | None = None) -> None:
        """Terminate the frame stream, optionally with an exception."""
        self._frames.put_nowait(_End(exc))

    def __aiter__(self) -> FakeConnection:
        return self

    async def __anext__(self) -> Any:
        item = await self._frames.get()
        if isinstance(item, _End):
            if item.exc is not None:
                raise item.exc
            raise StopAsyncIteration
        return item

    async def send(self, data: str) -> None:
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True
        self.end()


class FakeConnector:
    """Replaces ``websockets.connect``; records calls and hands out FakeConnections."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.connections: list[FakeConnection] = []
        self.fail_with: BaseException | None = None
        self.gate: asyncio.Event | None = None
        self.preload: list[str | bytes | dict[str, Any]] = []

    async def __call__(self, address: str, **kwargs: Any) -> FakeConnection:
        self.calls.append((address, kwargs))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        connection = FakeConnection()
        for frame in self.preload:
            connection.feed(frame)
        self.connections.append(connection)
        return connection

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]


@pytest.fixture()
def connector() -> FakeConnector:
    return FakeConnector()


# ---------------------------------------------------------------------------
# Config / orchestrator
# ---------------------------------------------------------------------------


@pytest.fixture()
def config() -> HashdeckConfig:
    return HashdeckConfig(keep_alive_without_surfaces=False)


@pytest.fixture()
def orchestrator_factory(
    backend: FakeBackend, connector: FakeConnector, config: HashdeckConfig
) -> Callable[..., Any]:
    """Build an Orchestrator wired to the fake backend and relay."""
    from hashdeck.core.orchestrator import Orchestrator

    def _make(**overrides: Any) -> Orchestrator:
        options: dict[str, Any] = {
            "http_transport": backend.transport,
            "relay_connector": connector,
        }
        cfg = overrides.pop("config", config)
        options.update(overrides)
        return Orchestrator(cfg, **options)

    return _make

