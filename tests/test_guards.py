# =============================================================================
# CORRIDOR ACCESS SYSTEM - ROUTE GUARD TESTS
# =============================================================================
# File: tests/test_guards.py
# Description: Auth, guest, admin, permission and CSRF guard responses
# =============================================================================

import json

from api.middleware.guards import RouteGuard

from tests.conftest import DEFAULT_PASSWORD, issued_cookies


def _body(response):
    return json.loads(response.body)


async def _signed_in(make_context, create_user, roles, path="/api/v1/test", method="GET"):
    await create_user(roles=roles)
    login = make_context()
    await login.auth.login("officer@example.com", DEFAULT_PASSWORD)
    context = make_context(cookies=issued_cookies(login), path=path, method=method)
    await context.session.start()
    return context


class TestAuthGuard:

    async def test_api_request_gets_401_json(self, make_context):
        context = make_context(path="/api/v1/projects")
        await context.session.start()

        outcome = await RouteGuard(context).auth_guard()

        assert not outcome
        assert outcome.response.status_code == 401
        body = _body(outcome.response)
        assert body["status"] == "Unauthorized"
        assert body["message"] == "Authentication required"
        assert "timestamp" in body and "server_time" in body
        assert context.session.get("security.intended_url") == "/api/v1/projects"

    async def test_web_request_redirects_to_signin(self, make_context):
        context = make_context(path="/projects/42")
        await context.session.start()

        outcome = await RouteGuard(context).auth_guard()

        assert outcome.response.status_code == 302
        assert outcome.response.headers["location"] == "/auth/signin"

    async def test_signed_in_passes(self, make_context, create_user):
        context = await _signed_in(make_context, create_user, ["officer"])

        assert await RouteGuard(context).auth_guard()
        assert context.principal is not None


class TestGuestGuard:

    async def test_anonymous_passes(self, make_context):
        context = make_context(path="/auth/signin")
        await context.session.start()

        assert await RouteGuard(context).guest_guard()

    async def test_signed_in_redirected_to_intended_url(self, make_context, create_user):
        context = await _signed_in(make_context, create_user, ["officer"], path="/auth/signin")
        await context.session.set("security.intended_url", "/projects/7")

        outcome = await RouteGuard(context).guest_guard()

        assert outcome.response.headers["location"] == "/projects/7"
        assert context.session.get("security.intended_url") is None

    async def test_signed_in_redirected_to_default(self, make_context, create_user):
        context = await _signed_in(make_context, create_user, ["officer"], path="/auth/signin")

        outcome = await RouteGuard(context).guest_guard()

        assert outcome.response.headers["location"] == "/dashboard"


class TestAdminGuard:

    async def test_admin_passes(self, make_context, create_user):
        context = await _signed_in(make_context, create_user, ["admin"])

        assert await RouteGuard(context).admin_guard()

    async def test_manager_is_not_guard_admin(self, make_context, create_user):
        context = await _signed_in(make_context, create_user, ["manager"])

        outcome = await RouteGuard(context).admin_guard()

        assert outcome.response.status_code == 403

    async def test_web_non_admin_redirected(self, make_context, create_user):
        context = await _signed_in(make_context, create_user, ["officer"], path="/admin")

        outcome = await RouteGuard(context).admin_guard()

        assert outcome.response.headers["location"] == "/dashboard"


class TestPermissionGuard:

    async def test_permission_granted(self, make_context, create_user):
        context = await _signed_in(make_context, create_user, ["officer"])

        assert await RouteGuard(context).permission_guard("projects.edit")

    async def test_permission_denied(self, make_context, create_user):
        context = await _signed_in(make_context, create_user, ["officer"])

        outcome = await RouteGuard(context).permission_guard("users.delete")

        assert outcome.response.status_code == 403
        assert _body(outcome.response)["message"] == "Insufficient permissions"


class TestCsrfGuard:

    async def test_safe_methods_pass(self, make_context):
        context = make_context(method="GET")
        await context.session.start()

        assert await RouteGuard(context).csrf_guard(None)

    async def test_matching_token_passes(self, make_context):
        context = make_context(method="POST")
        token = await context.auth.issue_csrf_token()

        assert await RouteGuard(context).csrf_guard(token.token)

    async def test_mismatch_api_gets_419(self, make_context):
        context = make_context(method="POST")
        await context.auth.issue_csrf_token()

        outcome = await RouteGuard(context).csrf_guard("forged")

        assert outcome.response.status_code == 419
        body = _body(outcome.response)
        assert body["status"] == "Token Mismatch"
        assert body["message"] == "CSRF token validation failed"

    async def test_missing_token_web_redirects_with_flash(self, make_context):
        context = make_context(method="POST", path="/projects/save")
        await context.auth.issue_csrf_token()

        outcome = await RouteGuard(context).csrf_guard(None)

        assert outcome.response.headers["location"] == "/auth/signin"
        assert await context.session.keep_flash("error") == "Session expired. Please login again."
