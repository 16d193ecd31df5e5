"""Unit tests for hashdeck.core.backend — prober and request/response client."""

from __future__ import annotations

import httpx
import pytest

from hashdeck.core.backend import BackendClient, BackendProber
from hashdeck.core.exceptions import (
    BackendError,
    BackendTimeout,
    BackendUnreachable,
    MalformedResponse,
)

STATUS_URL = "http://localhost:3000/api/stats"
API_URL = "http://localhost:3000"


# ---------------------------------------------------------------------------
# BackendProber
# ---------------------------------------------------------------------------


class TestBackendProber:
    @pytest.mark.asyncio()
    async def test_healthy_backend(self, backend) -> None:
        prober = BackendProber(STATUS_URL, transport=backend.transport)
        readiness = await prober.probe()
        assert readiness.all_ready
        assert backend.paths() == ["/api/stats"]

    @pytest.mark.asyncio()
    async def test_unreachable_backend_reports_all_down(self, backend) -> None:
        backend.down = True
        prober = BackendProber(STATUS_URL, transport=backend.transport)
        readiness = await prober.probe()
        assert readiness.to_dict() == {"engine": False, "api": False, "relay": False}

    @pytest.mark.asyncio()
    async def test_error_status_reports_all_down(self, backend) -> None:
        backend.stats_status = 503
        prober = BackendProber(STATUS_URL, transport=backend.transport)
        assert not (await prober.probe()).api_up

    @pytest.mark.asyncio()
    async def test_timeout_reports_all_down(self, backend) -> None:
        backend.raise_on["/api/stats"] = httpx.ReadTimeout("slow")
        prober = BackendProber(STATUS_URL, timeout=0.5, transport=backend.transport)
        assert not (await prober.probe()).engine_up

    @pytest.mark.asyncio()
    async def test_each_probe_is_fresh(self, backend) -> None:
        prober = BackendProber(STATUS_URL, transport=backend.transport)
        assert (await prober.probe()).all_ready
        backend.down = True
        assert not (await prober.probe()).all_ready
        backend.down = False
        assert (await prober.probe()).all_ready


# ---------------------------------------------------------------------------
# BackendClient
# ---------------------------------------------------------------------------


class TestStartJob:
    @pytest.mark.asyncio()
    async def test_posts_target_difficulty(self, backend) -> None:
        client = BackendClient(API_URL, transport=backend.transport)
        try:
            result = await client.start_job(20)
        finally:
            await client.aclose()
        assert backend.mine_bodies == [{"target_difficulty": 20}]
        assert result.nonce == 48213
        assert result.iterations == 48214

    @pytest.mark.asyncio()
    async def test_difficulty_forwarded_unchecked(self, backend) -> None:
        backend.mine_status = 422
        client = BackendClient(API_URL, transport=backend.transport)
        try:
            with pytest.raises(BackendError) as excinfo:
                await client.start_job(33)
        finally:
            await client.aclose()
        assert backend.mine_bodies == [{"target_difficulty": 33}]
        assert excinfo.value.status_code == 422
        assert "422" in str(excinfo.value)

    @pytest.mark.asyncio()
    async def test_unreachable(self, backend) -> None:
        backend.down = True
        client = BackendClient(API_URL, transport=backend.transport)
        try:
            with pytest.raises(BackendUnreachable):
                await client.start_job(4)
        finally:
            await client.aclose()

    @pytest.mark.asyncio()
    async def test_timeout(self, backend) -> None:
        backend.raise_on["/api/mine"] = httpx.ReadTimeout("job took too long")
        client = BackendClient(API_URL, job_timeout=1.0, transport=backend.transport)
        try:
            with pytest.raises(BackendTimeout):
                await client.start_job(30)
        finally:
            await client.aclose()

    @pytest.mark.asyncio()
    async def test_non_json_body(self, backend) -> None:
        backend.mine_body = "<html>oops</html>"
        client = BackendClient(API_URL, transport=backend.transport)
        try:
            with pytest.raises(MalformedResponse):
                await client.start_job(4)
        finally:
            await client.aclose()

    @pytest.mark.asyncio()
    async def test_missing_fields(self, backend) -> None:
        backend.mine_body = {"nonce": 1}
        client = BackendClient(API_URL, transport=backend.transport)
        try:
            with pytest.raises(MalformedResponse):
                await client.start_job(4)
        finally:
            await client.aclose()


class TestStopAndStats:
    @pytest.mark.asyncio()
    async def test_stop_returns_acknowledgment(self, backend) -> None:
        client = BackendClient(API_URL, transport=backend.transport)
        try:
            assert await client.stop_job() == {"status": "stopped"}
        finally:
            await client.aclose()
        request = backend.requests[-1]
        assert request.method == "POST"
        assert request.url.path == "/api/stop"

    @pytest.mark.asyncio()
    async def test_stop_forwards_error_body(self, backend) -> None:
        backend.stop_status = 500
        backend.stop_body = {"error": "engine busy"}
        client = BackendClient(API_URL, transport=backend.transport)
        try:
            assert await client.stop_job() == {"error": "engine busy"}
        finally:
            await client.aclose()

    @pytest.mark.asyncio()
    async def test_fetch_stats(self, backend) -> None:
        client = BackendClient(API_URL, transport=backend.transport)
        try:
            stats = await client.fetch_stats()
        finally:
            await client.aclose()
        assert stats.hash_rate == 1523.5
        assert stats.current_difficulty == 0
        assert not stats.is_mining

    @pytest.mark.asyncio()
    async def test_fetch_stats_error_status(self, backend) -> None:
        backend.stats_status = 500
        backend.stats_body = "internal"
        client = BackendClient(API_URL, transport=backend.transport)
        try:
            with pytest.raises(BackendError, match="HTTP 500: internal"):
                await client.fetch_stats()
        finally:
            await client.aclose()

    @pytest.mark.asyncio()
    async def test_bad_content_encoding_is_malformed(self, backend) -> None:
        backend.raise_on["/api/stats"] = httpx.DecodingError("bad gzip stream")
        client = BackendClient(API_URL, transport=backend.transport)
        try:
            with pytest.raises(MalformedResponse, match="undecodable body"):
                await client.fetch_stats()
        finally:
            await client.aclose()

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("path", ["/api/mine", "/api/stop"])
    async def test_redirect_loop_is_unreachable(self, backend, path: str) -> None:
        backend.raise_on[path] = httpx.TooManyRedirects("Exceeded maximum allowed redirects.")
        client = BackendClient(API_URL, transport=backend.transport)
        try:
            with pytest.raises(BackendUnreachable):
                if path == "/api/mine":
                    await client.start_job(4)
                else:
                    await client.stop_job()
        finally:
            await client.aclose()

    @pytest.mark.asyncio()
    async def test_trailing_slash_in_api_url(self, backend) -> None:
        client = BackendClient(API_URL + "/", transport=backend.transport)
        try:
            await client.fetch_stats()
        finally:
            await client.aclose()
        assert backend.paths() == ["/api/stats"]
