# =============================================================================
# CORRIDOR ACCESS SYSTEM - END-TO-END API TESTS
# =============================================================================
# File: tests/test_api_e2e.py
# Description: End-to-end tests through the ASGI app: middleware, guards,
#              cookies and the JSON error contract
# =============================================================================
#
# TEST COVERAGE:
# ┌─────────────────────────────────────────────────────────────────────────────┐
# │  ENDPOINT CATEGORY     │ ENDPOINTS TESTED                                  │
# ├─────────────────────────────────────────────────────────────────────────────┤
# │  HEALTH                │ /, /health, /health/ready, /health/live           │
# │  AUTH                  │ register, login, logout, me, csrf-token,          │
# │                        │ forgot-password                                   │
# │  SESSIONS              │ GET /, GET /current, DELETE /others, DELETE /{id} │
# │  ACCESS                │ permissions, check, roles, debug                  │
# └─────────────────────────────────────────────────────────────────────────────┘
#
# EXECUTION:
#   pytest tests/test_api_e2e.py -v
# =============================================================================

from typing import Any, Dict

import pytest
from httpx import ASGITransport, AsyncClient

from core.config import get_settings
from db.factory import DBFactory

from tests.conftest import DEFAULT_PASSWORD, DEFAULT_UA


API = "/api/v1"


# =============================================================================
# TEST UTILITIES
# =============================================================================

async def register(client: AsyncClient, data: Dict[str, Any]):
    return await client.post(f"{API}/auth/register", json=data)


async def login(client: AsyncClient, email: str = "officer@example.com", password: str = DEFAULT_PASSWORD):
    return await client.post(f"{API}/auth/login", json={"email": email, "password": password})


async def signed_in(client: AsyncClient, sample_user_data: Dict[str, Any]) -> str:
    """Register and log in; returns the CSRF token of the new session."""
    assert (await register(client, sample_user_data)).status_code == 201
    response = await login(client)
    assert response.status_code == 200
    return response.json()["csrf_token"]


# =============================================================================
# HEALTH
# =============================================================================

class TestHealth:

    async def test_root(self, async_client):
        response = await async_client.get("/")

        assert response.status_code == 200
        assert response.json()["docs"] == "/docs"

    async def test_liveness_and_health(self, async_client):
        for path in ("/health", "/health/live"):
            response = await async_client.get(path)
            assert response.status_code == 200
            assert response.json()["status"] == "healthy"

    async def test_readiness_reports_components(self, async_client, db_adapter):
        DBFactory.use(db_adapter)
        try:
            response = await async_client.get("/health/ready")
        finally:
            DBFactory.reset()

        body = response.json()
        assert body["components"]["database"]["status"] == "healthy"
        assert body["components"]["redis"]["status"] == "disabled"
        assert body["status"] == "healthy"

    async def test_health_does_not_start_a_session(self, async_client):
        response = await async_client.get("/health")

        assert get_settings().session_cookie_name not in response.cookies

    async def test_security_headers(self, async_client):
        response = await async_client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "X-Request-ID" in response.headers


# =============================================================================
# REGISTRATION
# =============================================================================

class TestRegisterEndpoint:

    async def test_register_created(self, async_client, sample_user_data):
        response = await register(async_client, sample_user_data)

        assert response.status_code == 201
        body = response.json()
        assert body["user_id"]
        assert body["authenticated"] is False

    async def test_register_with_auto_login(self, async_client, sample_user_data):
        response = await register(async_client, {**sample_user_data, "auto_login": True})

        assert response.json()["authenticated"] is True
        me = await async_client.get(f"{API}/auth/me")
        assert me.status_code == 200
        assert me.json()["email"] == "officer@example.com"

    async def test_register_invalid_fields(self, async_client):
        response = await register(async_client, {"email": "not-an-email", "password": "short", "name": ""})

        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert {"email", "password"} <= set(body["details"]["errors"])

    async def test_register_duplicate_email(self, async_client, sample_user_data):
        await register(async_client, sample_user_data)

        response = await register(async_client, {**sample_user_data, "username": "other_name"})

        assert response.status_code == 409
        assert response.json()["error_code"] == "USER_EXISTS"


# =============================================================================
# LOGIN / LOGOUT
# =============================================================================

class TestLoginEndpoint:

    async def test_login_sets_session_cookie(self, async_client, sample_user_data):
        await register(async_client, sample_user_data)

        response = await login(async_client)

        assert response.status_code == 200
        body = response.json()
        assert body["user"]["email"] == "officer@example.com"
        assert body["csrf_token"]
        assert get_settings().session_cookie_name in response.cookies

    async def test_login_by_username(self, async_client, sample_user_data):
        await register(async_client, sample_user_data)

        response = await async_client.post(
            f"{API}/auth/login",
            json={"username": "field_officer", "password": DEFAULT_PASSWORD},
        )

        assert response.status_code == 200

    async def test_wrong_password_is_generic_401(self, async_client, sample_user_data):
        await register(async_client, sample_user_data)

        wrong_password = await login(async_client, password="nope-nope")
        unknown_user = await login(async_client, email="ghost@example.com")

        assert wrong_password.status_code == 401
        assert unknown_user.status_code == 401
        assert wrong_password.json()["message"] == unknown_user.json()["message"]
        assert wrong_password.json()["error_code"] == "INVALID_CREDENTIALS"

    async def test_throttled_after_repeated_failures(self, async_client, sample_user_data):
        await register(async_client, sample_user_data)
        for _ in range(5):
            assert (await login(async_client, password="nope-nope")).status_code == 401

        response = await login(async_client)

        assert response.status_code == 429
        body = response.json()
        assert body["error_code"] == "LOGIN_THROTTLED"
        assert "blocked_until" in body["details"]

    async def test_forwarded_for_from_untrusted_peer_ignored(self, app, async_client, sample_user_data):
        """Failures sent with a forged X-Forwarded-For count against the real peer."""
        await register(async_client, sample_user_data)
        forged = {"X-Forwarded-For": "203.0.113.7"}
        for _ in range(5):
            await async_client.post(
                f"{API}/auth/login", json={"email": "junk@example.com", "password": "nope-nope"}, headers=forged
            )

        transport = ASGITransport(app=app, client=("203.0.113.7", 40000))
        async with AsyncClient(transport=transport, base_url="http://test") as victim:
            response = await login(victim)

        assert response.status_code == 200

    async def test_forwarded_for_from_trusted_proxy_used(self, async_client, sample_user_data, monkeypatch):
        monkeypatch.setattr(get_settings(), "trusted_proxies", "127.0.0.1")
        await register(async_client, sample_user_data)
        for _ in range(5):
            await async_client.post(
                f"{API}/auth/login",
                json={"email": "junk@example.com", "password": "nope-nope"},
                headers={"X-Forwarded-For": "203.0.113.7"},
            )

        blocked = await async_client.post(
            f"{API}/auth/login",
            json={"email": "officer@example.com", "password": DEFAULT_PASSWORD},
            headers={"X-Forwarded-For": "203.0.113.7"},
        )
        other_client = await async_client.post(
            f"{API}/auth/login",
            json={"email": "officer@example.com", "password": DEFAULT_PASSWORD},
            headers={"X-Forwarded-For": "198.51.100.4"},
        )

        assert blocked.status_code == 429
        assert other_client.status_code == 200

    async def test_logout_requires_csrf_token(self, async_client, sample_user_data):
        csrf_token = await signed_in(async_client, sample_user_data)

        missing = await async_client.post(f"{API}/auth/logout")
        assert missing.status_code == 419
        assert missing.json()["status"] == "Token Mismatch"

        response = await async_client.post(f"{API}/auth/logout", headers={"X-CSRF-Token": csrf_token})
        assert response.status_code == 200

        me = await async_client.get(f"{API}/auth/me")
        assert me.status_code == 401

    async def test_logout_accepts_form_token(self, async_client, sample_user_data):
        csrf_token = await signed_in(async_client, sample_user_data)

        response = await async_client.post(f"{API}/auth/logout", data={"_token": csrf_token})

        assert response.status_code == 200


# =============================================================================
# CURRENT USER / CSRF / PASSWORD FLOWS
# =============================================================================

class TestAccountEndpoints:

    async def test_me_requires_authentication(self, async_client):
        response = await async_client.get(f"{API}/auth/me")

        assert response.status_code == 401
        body = response.json()
        assert body["status"] == "Unauthorized"
        assert body["message"] == "Authentication required"

    async def test_me_returns_profile(self, async_client, sample_user_data):
        await signed_in(async_client, sample_user_data)

        response = await async_client.get(f"{API}/auth/me")

        assert response.status_code == 200
        body = response.json()
        assert body["username"] == "field_officer"
        assert body["roles"] == ["user"]

    async def test_csrf_token_stable_until_refresh(self, async_client):
        first = (await async_client.get(f"{API}/auth/csrf-token")).json()
        second = (await async_client.get(f"{API}/auth/csrf-token")).json()
        refreshed = (await async_client.get(f"{API}/auth/csrf-token", params={"refresh": "true"})).json()

        assert first["token"] == second["token"]
        assert refreshed["token"] != first["token"]
        assert first["expires_in"] > 0

    async def test_forgot_password_same_answer(self, async_client, sample_user_data, notifier):
        await register(async_client, sample_user_data)

        known = await async_client.post(f"{API}/auth/forgot-password", json={"email": "officer@example.com"})
        unknown = await async_client.post(f"{API}/auth/forgot-password", json={"email": "ghost@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()
        assert [email for email, _ in notifier.sent] == ["officer@example.com"]

    async def test_reset_password_with_bad_token(self, async_client):
        response = await async_client.post(
            f"{API}/auth/reset-password",
            json={"token": "f" * 64, "new_password": "Another#Pass1"},
        )

        assert response.status_code == 401
        assert response.json()["error_code"] == "TOKEN_INVALID"


# =============================================================================
# SESSIONS
# =============================================================================

class TestSessionEndpoints:

    async def test_requires_authentication(self, async_client):
        assert (await async_client.get(f"{API}/sessions")).status_code == 401

    async def test_list_and_current(self, async_client, sample_user_data):
        await signed_in(async_client, sample_user_data)

        listing = (await async_client.get(f"{API}/sessions")).json()
        current = (await async_client.get(f"{API}/sessions/current")).json()

        assert listing["total"] == 1
        assert listing["sessions"][0]["session_id"] == current["session_id"]
        assert listing["sessions"][0]["is_current"] is True

    async def test_terminate_other_devices(self, app, async_client, sample_user_data):
        csrf_token = await signed_in(async_client, sample_user_data)

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test", headers={"User-Agent": DEFAULT_UA}) as phone:
            assert (await login(phone)).status_code == 200
            assert (await async_client.get(f"{API}/sessions")).json()["total"] == 2

            response = await async_client.delete(
                f"{API}/sessions/others", headers={"X-CSRF-Token": csrf_token}
            )
            assert response.status_code == 200
            assert response.json()["message"] == "Terminated 1 other session(s)"

            assert (await phone.get(f"{API}/auth/me")).status_code == 401

        assert (await async_client.get(f"{API}/auth/me")).status_code == 200

    async def test_delete_unknown_session(self, async_client, sample_user_data):
        csrf_token = await signed_in(async_client, sample_user_data)

        response = await async_client.delete(
            f"{API}/sessions/{'0' * 64}", headers={"X-CSRF-Token": csrf_token}
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "SESSION_NOT_FOUND"

    async def test_cleanup_needs_admin(self, async_client, sample_user_data):
        csrf_token = await signed_in(async_client, sample_user_data)

        response = await async_client.post(f"{API}/sessions/cleanup", headers={"X-CSRF-Token": csrf_token})

        assert response.status_code == 403


# =============================================================================
# ACCESS
# =============================================================================

class TestAccessEndpoints:

    async def test_effective_permissions(self, async_client, sample_user_data):
        await signed_in(async_client, sample_user_data)

        body = (await async_client.get(f"{API}/access/permissions")).json()

        assert body["roles"] == ["user"]
        assert "projects.view" in body["permissions"]
        assert body["is_admin"] is False

    @pytest.mark.parametrize(
        "permission,params,allowed",
        [
            ("projects.view", {}, True),
            ("users.delete", {}, False),
            ("role", {"value": "user"}, True),
            ("role", {"value": "manager"}, False),
            ("projects.view", {"attribute": "department", "attribute_value": "roads"}, True),
            ("projects.view", {"attribute": "department", "attribute_value": "water"}, False),
        ],
    )
    async def test_check(self, async_client, sample_user_data, permission, params, allowed):
        await signed_in(async_client, sample_user_data)

        response = await async_client.get(f"{API}/access/check/{permission}", params=params)

        assert response.status_code == 200
        assert response.json()["allowed"] is allowed

    async def test_role_permissions(self, async_client, sample_user_data):
        await signed_in(async_client, sample_user_data)

        body = (await async_client.get(f"{API}/access/roles/admin")).json()

        assert body["implied_roles"] == ["user"]
        assert "system.admin" in body["permissions"]

    async def test_debug_forbidden_for_non_admin(self, async_client, sample_user_data):
        await signed_in(async_client, sample_user_data)

        response = await async_client.get(f"{API}/access/debug")

        assert response.status_code == 403
        assert response.json()["message"] == "Administrator access required"

    async def test_debug_for_admin(self, async_client, create_user):
        user_id = await create_user(roles=["admin"])
        await login(async_client)

        response = await async_client.get(f"{API}/access/debug")

        assert response.status_code == 200
        body = response.json()
        assert body["access"]["current_role"] == "admin"
        assert body["session"]["user_id"] == user_id
