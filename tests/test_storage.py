# =============================================================================
# CORRIDOR ACCESS SYSTEM - SESSION STORAGE TESTS
# =============================================================================
# File: tests/test_storage.py
# Description: Redis-backed session data, the in-process store and the
#              Redis request rate limiter
# =============================================================================

from datetime import date

import pytest

from auth.dependencies import ServiceProvider
from core.context import RequestContext
from session import MemorySessionStore, RedisSessionStore

from tests.conftest import DEFAULT_IP, DEFAULT_PASSWORD, DEFAULT_UA, issued_cookies


class TestRedisSessionStore:

    async def test_save_load_delete(self, redis_adapter):
        store = RedisSessionStore(redis_adapter)

        await store.save("abc", {"user": {"id": "u-1"}}, ttl=120)

        assert await store.load("abc") == {"user": {"id": "u-1"}}
        assert 0 < await redis_adapter.ttl("session:abc") <= 120

        await store.delete("abc")
        assert await store.load("abc") is None

    async def test_rename_keeps_data(self, redis_adapter):
        store = RedisSessionStore(redis_adapter)
        await store.save("old", {"n": 1}, ttl=120)

        assert await store.rename("old", "new") is True
        assert await store.load("old") is None
        assert await store.load("new") == {"n": 1}
        assert await store.rename("missing", "other") is False

    async def test_corrupt_payload_discarded(self, redis_adapter):
        store = RedisSessionStore(redis_adapter)
        await redis_adapter.set("session:bad", "not json", ttl=60)

        assert await store.load("bad") is None
        assert await redis_adapter.get("session:bad") is None

    async def test_login_over_redis(self, redis_adapter, uow, registry, geo, clock, create_user):
        provider = ServiceProvider(
            uow=uow,
            store=RedisSessionStore(redis_adapter),
            registry=registry,
            geo_locator=geo,
            clock=clock,
        )
        await create_user()

        login = provider.bind(RequestContext(client_ip=DEFAULT_IP, user_agent=DEFAULT_UA))
        result = await login.auth.login("officer@example.com", DEFAULT_PASSWORD)
        assert result.success is True

        follow_up = provider.bind(
            RequestContext(client_ip=DEFAULT_IP, user_agent=DEFAULT_UA, cookies=issued_cookies(login))
        )
        await follow_up.session.start()

        assert follow_up.auth.user().email == "officer@example.com"
        assert await redis_adapter.get(f"session:{follow_up.session.get_id()}") is not None


class TestMemorySessionStore:

    async def test_returns_copies(self, store):
        await store.save("abc", {"user": {"id": "u-1"}}, ttl=60)

        loaded = await store.load("abc")
        loaded["user"]["id"] = "changed"

        assert (await store.load("abc"))["user"]["id"] == "u-1"

    async def test_unserialisable_data_raises(self, store):
        await store.save("abc", {"__user_id": "u-1"}, ttl=60)

        with pytest.raises(TypeError):
            await store.save("abc", {"__user_id": "u-1", "when": date(2026, 1, 1)}, ttl=60)

        assert await store.load("abc") == {"__user_id": "u-1"}

    async def test_expiry_follows_clock(self, clock):
        store = MemorySessionStore(clock)
        await store.save("abc", {}, ttl=60)

        clock.advance(59)
        assert await store.load("abc") == {}

        clock.advance(1)
        assert await store.load("abc") is None
        assert len(store) == 0


class TestRateLimiter:

    async def test_strict_endpoint_limited(self, app, async_client, redis_adapter):
        app.state.redis = redis_adapter
        body = {"email": "ghost@example.com"}

        statuses = [
            (await async_client.post("/api/v1/auth/forgot-password", json=body)).status_code
            for _ in range(4)
        ]

        assert statuses == [200, 200, 200, 429]

    async def test_headers_and_exempt_paths(self, app, async_client, redis_adapter):
        app.state.redis = redis_adapter

        response = await async_client.get("/api/v1/auth/csrf-token")
        health = await async_client.get("/health")

        assert response.headers["X-RateLimit-Limit"] == "60"
        assert response.headers["X-RateLimit-Remaining"] == "59"
        assert "X-RateLimit-Limit" not in health.headers

    async def test_limited_response_body(self, app, async_client, redis_adapter):
        app.state.redis = redis_adapter
        for _ in range(3):
            await async_client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})

        response = await async_client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})

        assert response.json()["error_code"] == "RATE_LIMIT_EXCEEDED"
        assert int(response.headers["Retry-After"]) > 0

    async def test_rotating_forwarded_for_still_limited(self, app, async_client, redis_adapter):
        app.state.redis = redis_adapter

        statuses = [
            (
                await async_client.post(
                    "/api/v1/auth/forgot-password",
                    json={"email": "ghost@example.com"},
                    headers={"X-Forwarded-For": f"203.0.113.{n}"},
                )
            ).status_code
            for n in range(4)
        ]

        assert statuses == [200, 200, 200, 429]
