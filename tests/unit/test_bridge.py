"""
Unit tests for hashdeck.core.bridge — CommandBridge operations and results.

The bridge is exercised through a headless Orchestrator wired to the fake
backend (httpx.MockTransport) and fake relay connector from conftest.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from hashdeck.core.bridge import OPERATIONS, BridgeResult
from hashdeck.core.exceptions import ErrorKind, NotConnected
from hashdeck.core.models import ReadinessVector, RelayPhase, SurfaceKind, SurfaceState

# ---------------------------------------------------------------------------
# BridgeResult
# ---------------------------------------------------------------------------


class TestBridgeResult:
    def test_ok_to_dict_serialises_data(self) -> None:
        result = BridgeResult.ok(ReadinessVector.from_probe(True))
        assert result.to_dict() == {
            "success": True,
            "data": {"engine": True, "api": True, "relay": True},
        }

    def test_failure_to_dict(self) -> None:
        result = BridgeResult.failure(NotConnected("Not connected"))
        assert result.to_dict() == {
            "success": False,
            "error": "Not connected",
            "kind": "not_connected",
        }


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class TestDispatch:
    def test_operation_names(self, orchestrator_factory) -> None:
        bridge = orchestrator_factory().bridge
        assert bridge.operations == OPERATIONS
        assert set(OPERATIONS) == {
            "check-status",
            "open-surface",
            "close-surface",
            "terminate",
            "connect-relay",
            "disconnect-relay",
            "start-job",
            "stop-job",
            "fetch-stats",
        }

    @pytest.mark.asyncio()
    async def test_unknown_operation_has_no_side_effects(
        self, orchestrator_factory, backend, connector
    ) -> None:
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("format-disk")
        assert not result.success
        assert result.error is ErrorKind.UNKNOWN_OPERATION
        assert backend.requests == []
        assert connector.calls == []

    @pytest.mark.asyncio()
    async def test_wrong_arguments(self, orchestrator_factory, backend) -> None:
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("fetch-stats", "extra")
            missing = await orchestrator.bridge.invoke("start-job")
        assert result.error is ErrorKind.INVALID_ARGUMENTS
        assert missing.error is ErrorKind.INVALID_ARGUMENTS
        assert backend.requests == []

    @pytest.mark.asyncio()
    async def test_unknown_surface_kind(self, orchestrator_factory) -> None:
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("open-surface", "settings")
            assert result.error is ErrorKind.INVALID_ARGUMENTS
            assert orchestrator.status().surfaces is SurfaceState.LAUNCHER_ONLY


# ---------------------------------------------------------------------------
# Status, jobs and stats
# ---------------------------------------------------------------------------


class TestBackendOperations:
    @pytest.mark.asyncio()
    async def test_check_status(self, orchestrator_factory, backend) -> None:
        async with orchestrator_factory() as orchestrator:
            up = await orchestrator.bridge.invoke("check-status")
            backend.down = True
            down = await orchestrator.bridge.invoke("check-status")
        assert up.success and up.data.all_ready
        # An unreachable backend is a readiness answer, not a failure
        assert down.success and not down.data.api_up

    @pytest.mark.asyncio()
    async def test_start_job(self, orchestrator_factory, backend) -> None:
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("start-job", 20)
        assert result.success
        assert result.to_dict()["data"] == {
            "nonce": 48213,
            "hash": "0000" + "ab" * 30,
            "iterations": 48214,
        }
        assert backend.mine_bodies == [{"target_difficulty": 20}]

    @pytest.mark.asyncio()
    async def test_out_of_range_difficulty_reaches_backend(
        self, orchestrator_factory, backend
    ) -> None:
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("start-job", 33)
        assert backend.mine_bodies == [{"target_difficulty": 33}]
        assert result.error is ErrorKind.BACKEND_ERROR
        assert "422" in result.message

    @pytest.mark.asyncio()
    async def test_start_job_unreachable(self, orchestrator_factory, backend) -> None:
        backend.down = True
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.start_job(4)
        assert result.error is ErrorKind.UNREACHABLE

    @pytest.mark.asyncio()
    async def test_stop_job_while_job_in_flight(self, orchestrator_factory, backend) -> None:
        release = asyncio.Event()
        original = backend.handler

        async def slow_handler(request):
            if request.url.path == "/api/mine":
                await release.wait()
            return original(request)

        async with orchestrator_factory(http_transport=httpx.MockTransport(slow_handler)) as orch:
            job = asyncio.create_task(orch.bridge.invoke("start-job", 24))
            await asyncio.sleep(0.01)
            stop = await orch.bridge.invoke("stop-job")
            assert stop.success
            assert stop.data == {"status": "stopped"}
            assert not job.done()
            release.set()
            assert (await job).success

    @pytest.mark.asyncio()
    async def test_fetch_stats(self, orchestrator_factory) -> None:
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("fetch-stats")
        assert result.success
        assert result.data.total_hashes == 120000

    @pytest.mark.asyncio()
    async def test_fetch_stats_malformed(self, orchestrator_factory, backend) -> None:
        backend.stats_body = {"hash_rate": "n/a"}
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("fetch-stats")
        assert result.error is ErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        ("operation", "args", "path", "exc", "kind"),
        [
            (
                "fetch-stats",
                (),
                "/api/stats",
                httpx.DecodingError("bad gzip"),
                ErrorKind.MALFORMED_RESPONSE,
            ),
            ("start-job", (4,), "/api/mine", httpx.TooManyRedirects("loop"), ErrorKind.UNREACHABLE),
            ("stop-job", (), "/api/stop", httpx.TooManyRedirects("loop"), ErrorKind.UNREACHABLE),
        ],
    )
    async def test_request_errors_come_back_tagged(
        self, orchestrator_factory, backend, operation, args, path, exc, kind
    ) -> None:
        backend.raise_on[path] = exc
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke(operation, *args)
        assert not result.success
        assert result.error is kind


# ---------------------------------------------------------------------------
# Relay
# ---------------------------------------------------------------------------


class TestRelayOperations:
    @pytest.mark.asyncio()
    async def test_connect_uses_configured_address(
        self, orchestrator_factory, connector, config
    ) -> None:
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("connect-relay")
            assert result.success
            assert result.data.phase is RelayPhase.CONNECTED
        assert connector.calls[0][0] == config.relay_url

    @pytest.mark.asyncio()
    async def test_handshake_failure_is_a_settled_state(
        self, orchestrator_factory, connector
    ) -> None:
        connector.fail_with = ConnectionRefusedError(111, "Connection refused")
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("connect-relay", "ws://localhost:3000/ws")
        assert result.success
        assert result.data.phase is RelayPhase.FAILED

    @pytest.mark.asyncio()
    async def test_invalid_address(self, orchestrator_factory, connector) -> None:
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("connect-relay", "localhost:3000")
            assert orchestrator.status().relay.phase is RelayPhase.DISCONNECTED
        assert result.error is ErrorKind.INVALID_ADDRESS
        assert connector.calls == []

    @pytest.mark.asyncio()
    async def test_out_of_range_port_is_invalid_address(
        self, orchestrator_factory, connector
    ) -> None:
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("connect-relay", "ws://localhost:99999/ws")
            assert orchestrator.status().relay.phase is RelayPhase.DISCONNECTED
        assert result.error is ErrorKind.INVALID_ADDRESS
        assert connector.calls == []

    @pytest.mark.asyncio()
    async def test_connector_value_error_is_a_settled_state(
        self, orchestrator_factory, connector
    ) -> None:
        connector.fail_with = ValueError("unsupported URI")
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("connect-relay")
            assert orchestrator.status().relay.phase is RelayPhase.FAILED
        assert result.success
        assert result.data.reason == "unsupported URI"

    @pytest.mark.asyncio()
    async def test_disconnect_without_connection(self, orchestrator_factory) -> None:
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("disconnect-relay")
        assert result.error is ErrorKind.NOT_CONNECTED
        assert result.message == "Not connected"

    @pytest.mark.asyncio()
    async def test_connect_then_disconnect(self, orchestrator_factory, connector) -> None:
        async with orchestrator_factory() as orchestrator:
            await orchestrator.bridge.invoke("connect-relay")
            result = await orchestrator.bridge.invoke("disconnect-relay")
            assert result.success
            assert result.data.phase is RelayPhase.DISCONNECTED
        assert connector.last.closed

    @pytest.mark.asyncio()
    async def test_concurrent_relay_operations_are_busy(
        self, orchestrator_factory, connector
    ) -> None:
        connector.gate = asyncio.Event()
        async with orchestrator_factory() as orchestrator:
            bridge = orchestrator.bridge
            first = asyncio.create_task(bridge.invoke("connect-relay"))
            await asyncio.sleep(0)
            await asyncio.sleep(0)

            second = await bridge.invoke("connect-relay")
            disconnect = await bridge.invoke("disconnect-relay")
            assert second.error is ErrorKind.BUSY
            assert disconnect.error is ErrorKind.BUSY

            connector.gate.set()
            assert (await first).data.phase is RelayPhase.CONNECTED
        assert len(connector.calls) == 1


# ---------------------------------------------------------------------------
# Surfaces
# ---------------------------------------------------------------------------


class TestSurfaceOperations:
    @pytest.mark.asyncio()
    async def test_open_surface_defaults_to_dashboard(self, orchestrator_factory) -> None:
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("open-surface")
            assert result.data.current is SurfaceState.BOTH

    @pytest.mark.asyncio()
    async def test_closing_dashboard_closes_relay(self, orchestrator_factory, connector) -> None:
        async with orchestrator_factory() as orchestrator:
            bridge = orchestrator.bridge
            await bridge.invoke("open-surface", "dashboard")
            await bridge.invoke("connect-relay")
            result = await bridge.invoke("close-surface", SurfaceKind.DASHBOARD)
            assert result.data.current is SurfaceState.LAUNCHER_ONLY
            assert orchestrator.status().relay.phase is RelayPhase.DISCONNECTED
        assert connector.last.closed

    @pytest.mark.asyncio()
    async def test_closing_launcher_keeps_relay(self, orchestrator_factory) -> None:
        async with orchestrator_factory() as orchestrator:
            bridge = orchestrator.bridge
            await bridge.invoke("open-surface")
            await bridge.invoke("connect-relay")
            await bridge.invoke("close-surface", "launcher")
            assert orchestrator.status().relay.phase is RelayPhase.CONNECTED
            assert orchestrator.status().surfaces is SurfaceState.DASHBOARD_ONLY

    @pytest.mark.asyncio()
    async def test_terminate(self, orchestrator_factory) -> None:
        async with orchestrator_factory() as orchestrator:
            result = await orchestrator.bridge.invoke("terminate")
            assert result.success
            assert orchestrator.terminated
            assert await orchestrator.wait_terminated() == 0
