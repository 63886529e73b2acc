"""Tests for ResilientClient using httpx.MockTransport."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from resilio.client import ResilientClient
from resilio.context import Resilience
from resilio.exceptions import (
    AuthError,
    ClientError,
    ConnectionError_,
    NotFoundError,
    OfflineError,
    RateLimitError,
    ServerError,
    TimeoutError_,
)
from resilio.models import RetryConfig, TTLClass

PREFIX = "/console/v1"


@pytest.fixture()
def resilience(fast_config, notifier):
    r = Resilience.create(fast_config, notifier=notifier)
    yield r
    r.close()


def _client(fast_config, resilience, router, **kwargs) -> ResilientClient:
    return ResilientClient(
        fast_config.api, resilience, transport=httpx.MockTransport(router), **kwargs
    )


# ------------------------------------------------------------------ #
# Reads and caching
# ------------------------------------------------------------------ #


class TestReads:
    @pytest.mark.asyncio
    async def test_get_unwraps_data_envelope(self, fast_config, resilience, router) -> None:
        router.add("GET", f"{PREFIX}/gates", httpx.Response(200, json={"data": [{"id": "g1"}]}))
        async with _client(fast_config, resilience, router) as client:
            assert await client.get("/gates") == [{"id": "g1"}]

    @pytest.mark.asyncio
    async def test_payload_without_envelope_is_returned_as_is(self, fast_config, resilience, router) -> None:
        router.add("GET", f"{PREFIX}/me", httpx.Response(200, json={"name": "me", "data": None}))
        async with _client(fast_config, resilience, router) as client:
            assert await client.get("/me") == {"name": "me", "data": None}

    @pytest.mark.asyncio
    async def test_text_body(self, fast_config, resilience, router) -> None:
        router.add("GET", f"{PREFIX}/ping", httpx.Response(200, text="pong"))
        async with _client(fast_config, resilience, router) as client:
            assert await client.get("/ping") == "pong"

    @pytest.mark.asyncio
    async def test_second_get_is_served_from_cache(self, fast_config, resilience, router) -> None:
        router.add("GET", f"{PREFIX}/gates", httpx.Response(200, json={"data": [1]}))
        async with _client(fast_config, resilience, router) as client:
            await client.get("/gates")
            assert await client.get("/gates") == [1]
        assert router.calls("GET", f"{PREFIX}/gates") == 1

    @pytest.mark.asyncio
    async def test_cached_none_payload_is_a_hit(self, fast_config, resilience, router) -> None:
        router.add("GET", f"{PREFIX}/empty", httpx.Response(204))
        async with _client(fast_config, resilience, router) as client:
            assert await client.get("/empty") is None
            assert await client.get("/empty") is None
        assert router.calls("GET", f"{PREFIX}/empty") == 1

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_lookup(self, fast_config, resilience, router) -> None:
        router.add(
            "GET",
            f"{PREFIX}/gates",
            [httpx.Response(200, json={"data": [1]}), httpx.Response(200, json={"data": [2]})],
        )
        async with _client(fast_config, resilience, router) as client:
            await client.get("/gates")
            assert await client.get("/gates", force_refresh=True) == [2]
            assert await client.get("/gates") == [2]

    @pytest.mark.asyncio
    async def test_query_params_are_part_of_the_key(self, fast_config, resilience, router) -> None:
        router.add("GET", f"{PREFIX}/gates", lambda request: httpx.Response(
            200, json={"data": request.url.params.get("limit")}
        ))
        async with _client(fast_config, resilience, router) as client:
            assert await client.get("/gates", params={"limit": 5}) == "5"
            assert await client.get("/gates", params={"limit": 10}) == "10"
        assert router.calls("GET", f"{PREFIX}/gates") == 2

    @pytest.mark.asyncio
    async def test_gates_use_long_ttl(self, fast_config, resilience, router) -> None:
        router.add("GET", f"{PREFIX}/gates", httpx.Response(200, json={"data": []}))
        router.add("GET", f"{PREFIX}/users", httpx.Response(200, json={"data": []}))
        router.add("GET", f"{PREFIX}/volatile", httpx.Response(200, json={"data": []}))
        async with _client(fast_config, resilience, router) as client:
            await client.get("/gates")
            await client.get("/users")
            await client.get("/volatile", ttl_class=TTLClass.SHORT)

        ttls = {e.key.split(PREFIX)[1]: e.ttl for e in resilience.cache.stats().entries}
        assert ttls == {"/gates:": 3600, "/users:": 300, "/volatile:": 30}

    @pytest.mark.asyncio
    async def test_concurrent_misses_each_fetch(self, fast_config, resilience, router) -> None:
        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.01)
            return httpx.Response(200, json={"data": "v"})

        router.add("GET", f"{PREFIX}/gates", slow)
        async with _client(fast_config, resilience, router) as client:
            results = await asyncio.gather(client.get("/gates"), client.get("/gates"))

        assert results == ["v", "v"]
        assert router.calls("GET", f"{PREFIX}/gates") == 2


# ------------------------------------------------------------------ #
# Writes
# ------------------------------------------------------------------ #


class TestWrites:
    @pytest.mark.asyncio
    async def test_write_is_not_cached(self, fast_config, resilience, router) -> None:
        router.add("POST", f"{PREFIX}/gates", httpx.Response(201, json={"data": {"id": "new"}}))
        async with _client(fast_config, resilience, router) as client:
            await client.post("/gates", json_body={"name": "new"})
            await client.post("/gates", json_body={"name": "new"})
        assert router.calls("POST", f"{PREFIX}/gates") == 2
        assert len(resilience.cache.cache) == 0

    @pytest.mark.asyncio
    async def test_write_invalidates_base_path(self, fast_config, resilience, router) -> None:
        router.add(
            "GET",
            f"{PREFIX}/gates",
            [httpx.Response(200, json={"data": ["old"]}), httpx.Response(200, json={"data": ["new"]})],
        )
        router.add("POST", f"{PREFIX}/gates", httpx.Response(201, json={}))
        router.add("GET", f"{PREFIX}/experiments", httpx.Response(200, json={"data": ["e"]}))

        async with _client(fast_config, resilience, router) as client:
            await client.get("/gates")
            await client.get("/experiments")
            await client.post("/gates", json_body={"name": "g"})
            assert await client.get("/gates") == ["new"]
            await client.get("/experiments")

        assert router.calls("GET", f"{PREFIX}/experiments") == 1

    @pytest.mark.asyncio
    async def test_json_body_is_sent(self, fast_config, resilience, router) -> None:
        router.add("PATCH", f"{PREFIX}/gates/g1", lambda request: httpx.Response(
            200, json={"data": request.read().decode()}
        ))
        async with _client(fast_config, resilience, router) as client:
            body = await client.patch("/gates/g1", json_body={"enabled": True})
        assert '"enabled"' in body


# ------------------------------------------------------------------ #
# Errors and retries
# ------------------------------------------------------------------ #


class TestErrors:
    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, fast_config, resilience, router) -> None:
        router.add(
            "GET",
            f"{PREFIX}/gates",
            [httpx.Response(503, json={"message": "busy"}), httpx.Response(200, json={"data": [1]})],
        )
        async with _client(fast_config, resilience, router) as client:
            assert await client.get("/gates") == [1]
        assert router.calls("GET", f"{PREFIX}/gates") == 2

    @pytest.mark.asyncio
    async def test_rate_limit_exhausts_and_raises(self, fast_config, resilience, router) -> None:
        router.add("GET", f"{PREFIX}/gates", httpx.Response(429, json={"message": "slow down"}))
        async with _client(fast_config, resilience, router) as client:
            with pytest.raises(RateLimitError) as exc_info:
                await client.get("/gates", retry=RetryConfig(max_retries=2, base_delay=0.001))
        assert exc_info.value.status_code == 429
        assert "slow down" in str(exc_info.value)
        assert router.calls("GET", f"{PREFIX}/gates") == 3

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self, fast_config, resilience, router) -> None:
        async with _client(fast_config, resilience, router) as client:
            with pytest.raises(NotFoundError) as exc_info:
                await client.get("/missing")
        assert exc_info.value.url.endswith("/missing")
        assert router.calls("GET", f"{PREFIX}/missing") == 1

    @pytest.mark.asyncio
    async def test_bad_request_maps_to_client_error(self, fast_config, resilience, router) -> None:
        router.add("POST", f"{PREFIX}/gates", httpx.Response(400, json={"error": "name required"}))
        async with _client(fast_config, resilience, router) as client:
            with pytest.raises(ClientError) as exc_info:
                await client.post("/gates", json_body={})
        assert exc_info.value.body == {"error": "name required"}
        assert str(exc_info.value) == "HTTP 400: name required"

    @pytest.mark.asyncio
    async def test_auth_failure_clears_cache(self, fast_config, resilience, router) -> None:
        router.add("GET", f"{PREFIX}/gates", httpx.Response(200, json={"data": [1]}))
        router.add("GET", f"{PREFIX}/experiments", httpx.Response(401, json={"message": "bad key"}))
        async with _client(fast_config, resilience, router) as client:
            await client.get("/gates")
            with pytest.raises(AuthError):
                await client.get("/experiments")
        assert len(resilience.cache.cache) == 0
        assert router.calls("GET", f"{PREFIX}/experiments") == 1

    @pytest.mark.asyncio
    async def test_timeout_maps_to_timeout_error(self, fast_config, resilience, router) -> None:
        router.add("GET", f"{PREFIX}/gates", httpx.ReadTimeout("timed out"))
        async with _client(fast_config, resilience, router) as client:
            with pytest.raises(TimeoutError_) as exc_info:
                await client.get("/gates", timeout=0.5)
        assert "Request timeout after 0.5s" in str(exc_info.value)
        assert router.calls("GET", f"{PREFIX}/gates") == fast_config.retry.max_retries + 1

    @pytest.mark.asyncio
    async def test_transport_error_maps_to_connection_error(self, fast_config, resilience, router) -> None:
        router.add("GET", f"{PREFIX}/gates", [httpx.ConnectError("refused"), httpx.Response(200, json={"data": 1})])
        async with _client(fast_config, resilience, router) as client:
            assert await client.get("/gates") == 1

        router.add("GET", f"{PREFIX}/x", httpx.ConnectError("refused"))
        async with _client(fast_config, resilience, router) as client:
            with pytest.raises(ConnectionError_):
                await client.get("/x", retry=RetryConfig(max_retries=0))


# ------------------------------------------------------------------ #
# Headers and credentials
# ------------------------------------------------------------------ #


class TestHeaders:
    @pytest.mark.asyncio
    async def test_api_key_and_static_headers(self, fast_config, resilience, router) -> None:
        router.add("GET", f"{PREFIX}/gates", httpx.Response(200, json={"data": []}))
        async with _client(fast_config, resilience, router, api_key="secret") as client:
            await client.get("/gates")
        request = router.requests[0]
        assert request.headers["STATSIG-API-KEY"] == "secret"
        assert request.headers["STATSIG-API-VERSION"] == "20240601"
        assert request.headers["User-Agent"].startswith("resilio/")

    @pytest.mark.asyncio
    async def test_api_key_resolved_from_source(
        self, fast_config, resilience, router, monkeypatch
    ) -> None:
        monkeypatch.setenv("TEST_CONSOLE_KEY", "from-env")
        fast_config.api.api_key_source = "env:TEST_CONSOLE_KEY"
        router.add("GET", f"{PREFIX}/gates", httpx.Response(200, json={"data": []}))
        async with _client(fast_config, resilience, router) as client:
            await client.get("/gates")
        assert router.requests[0].headers["STATSIG-API-KEY"] == "from-env"

    @pytest.mark.asyncio
    async def test_no_key_header_without_key(self, fast_config, resilience, router) -> None:
        router.add("GET", f"{PREFIX}/gates", httpx.Response(200, json={"data": []}))
        async with _client(fast_config, resilience, router) as client:
            await client.get("/gates")
        assert "STATSIG-API-KEY" not in router.requests[0].headers


# ------------------------------------------------------------------ #
# Offline support
# ------------------------------------------------------------------ #


class TestOffline:
    @pytest.mark.asyncio
    async def test_offline_fallback(self, fast_config, resilience, router, notifier) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            notifier.set_online(False)
            raise httpx.ConnectError("no route to host")

        router.add("GET", f"{PREFIX}/gates", handler)
        async with _client(fast_config, resilience, router) as client:
            result = await client.with_offline_fallback(
                lambda: client.get("/gates"), lambda: ["stale"]
            )
        assert result == ["stale"]

    @pytest.mark.asyncio
    async def test_offline_without_fallback_raises(self, fast_config, resilience, router, notifier) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            notifier.set_online(False)
            raise httpx.ConnectError("no route to host")

        router.add("GET", f"{PREFIX}/gates", handler)
        async with _client(fast_config, resilience, router) as client:
            with pytest.raises(OfflineError):
                await client.get("/gates")
        assert router.calls("GET", f"{PREFIX}/gates") == 1

    @pytest.mark.asyncio
    async def test_deferred_request_replayed_on_reconnect(
        self, fast_config, resilience, router, notifier
    ) -> None:
        router.add("POST", f"{PREFIX}/gates/g1/overrides", httpx.Response(200, json={"data": "saved"}))
        async with _client(fast_config, resilience, router) as client:
            notifier.set_online(False)
            client.defer("overrides", "POST", "/gates/g1/overrides", json_body={"userIDs": ["u1"]})
            assert resilience.queue.get_retry_queue_status() == {"overrides": 1}

            notifier.set_online(True)
            await resilience.tracker.wait_for_pending()

        assert router.calls("POST", f"{PREFIX}/gates/g1/overrides") == 1
        assert resilience.queue.get_retry_queue_status() == {"overrides": 0}
