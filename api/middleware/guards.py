# =============================================================================
# CORRIDOR ACCESS SYSTEM - ROUTE GUARDS
# =============================================================================
# File: api/middleware/guards.py
# Description: Authentication, guest, admin, CSRF and permission guards
#              exposed as FastAPI dependencies
# =============================================================================

from typing import Any, Callable, Dict, Optional
import logging

from fastapi import Depends, Request, status
from starlette.responses import JSONResponse, RedirectResponse, Response

from auth.dependencies import get_request_context
from core.config import settings, Settings
from core.context import RequestContext
from core.security import tokens_match
from utils.helpers import format_timestamp, mask_ip, utc_now


logger = logging.getLogger(__name__)

STATE_CHANGING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
GUARD_ADMIN_ROLES = frozenset({"admin", "superadmin"})
CSRF_HEADER = "X-CSRF-Token"
CSRF_FIELD = "_token"


class GuardInterrupt(Exception):
    """Stops route execution with a prepared response."""

    def __init__(self, response: Response):
        super().__init__(response.status_code)
        self.response = response


class GuardOutcome:
    """Either allowed, or denied with the response to send instead."""

    def __init__(self, allowed: bool, response: Optional[Response] = None):
        self.allowed = allowed
        self.response = response

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls) -> "GuardOutcome":
        return cls(True)

    @classmethod
    def deny(cls, response: Response) -> "GuardOutcome":
        return cls(False, response)


class RouteGuard:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    ROUTE GUARD                                           │
    │  Allow, or answer with a redirect (web) or a JSON error (API)           │
    └─────────────────────────────────────────────────────────────────────────┘

    Guards read the request-scoped services on the RequestContext. An
    allowed auth check leaves the resolved Principal on the context for
    the handler.

    Responses:
        - unauthenticated → 401 JSON / redirect to sign-in
        - not admin       → 403 JSON / redirect to default route
        - missing perm    → 403 JSON / redirect to default route
        - CSRF mismatch   → 419 JSON / redirect to sign-in
    """

    def __init__(self, context: RequestContext, config: Optional[Settings] = None):
        self._ctx = context
        self._config = config or settings

    def _json(self, status_code: int, body: Dict[str, Any]) -> JSONResponse:
        now = utc_now()
        body.setdefault("timestamp", format_timestamp(now))
        return JSONResponse(status_code=status_code, content=body)

    def _redirect(self, url: str) -> RedirectResponse:
        return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)

    async def auth_guard(self) -> GuardOutcome:
        if self._ctx.auth.check():
            return GuardOutcome.allow()

        await self._ctx.session.set("security.intended_url", self._ctx.path)
        if self._ctx.wants_json:
            return GuardOutcome.deny(
                self._json(
                    status.HTTP_401_UNAUTHORIZED,
                    {
                        "status": "Unauthorized",
                        "message": "Authentication required",
                        "server_time": int(utc_now().timestamp()),
                    },
                )
            )
        return GuardOutcome.deny(self._redirect(self._config.signin_route))

    async def guest_guard(self) -> GuardOutcome:
        if not self._ctx.auth.check():
            return GuardOutcome.allow()

        intended = self._ctx.session.get("security.intended_url")
        if intended:
            await self._ctx.session.remove("security.intended_url")
            return GuardOutcome.deny(self._redirect(intended))
        return GuardOutcome.deny(self._redirect(self._config.default_route))

    async def admin_guard(self) -> GuardOutcome:
        outcome = await self.auth_guard()
        if not outcome:
            return outcome

        if GUARD_ADMIN_ROLES.intersection(self._ctx.principal.roles):
            return GuardOutcome.allow()
        return self._forbidden("Administrator access required")

    async def permission_guard(self, permission: str) -> GuardOutcome:
        outcome = await self.auth_guard()
        if not outcome:
            return outcome

        if self._ctx.access.can(permission):
            return GuardOutcome.allow()
        logger.info(f"Permission {permission} denied for user {self._ctx.principal.id}")
        return self._forbidden("Insufficient permissions", permission=permission)

    def _forbidden(self, message: str, **extra: Any) -> GuardOutcome:
        if self._ctx.wants_json:
            return GuardOutcome.deny(
                self._json(status.HTTP_403_FORBIDDEN, {"status": "Forbidden", "message": message, **extra})
            )
        return GuardOutcome.deny(self._redirect(self._config.default_route))

    async def csrf_guard(self, submitted: Optional[str]) -> GuardOutcome:
        """
        Compare a submitted token with ``security.csrf_token`` for
        state-changing methods; safe methods always pass.
        """
        if self._ctx.method not in STATE_CHANGING_METHODS:
            return GuardOutcome.allow()

        expected = self._ctx.session.get("security.csrf_token")
        if tokens_match(expected, submitted):
            return GuardOutcome.allow()

        logger.warning(f"CSRF token mismatch from {mask_ip(self._ctx.client_ip)} on {self._ctx.path}")
        if self._ctx.wants_json:
            return GuardOutcome.deny(
                self._json(
                    419,
                    {"status": "Token Mismatch", "message": "CSRF token validation failed"},
                )
            )
        await self._ctx.session.flash("error", "Session expired. Please login again.")
        return GuardOutcome.deny(self._redirect(self._config.signin_route))


# =============================================================================
# FASTAPI DEPENDENCIES
# =============================================================================

def get_route_guard(context: RequestContext = Depends(get_request_context)) -> RouteGuard:
    return RouteGuard(context)


def _enforce(outcome: GuardOutcome) -> None:
    if not outcome:
        raise GuardInterrupt(outcome.response)


async def require_auth(guard: RouteGuard = Depends(get_route_guard)) -> None:
    _enforce(await guard.auth_guard())


async def require_guest(guard: RouteGuard = Depends(get_route_guard)) -> None:
    _enforce(await guard.guest_guard())


async def require_admin(guard: RouteGuard = Depends(get_route_guard)) -> None:
    _enforce(await guard.admin_guard())


async def submitted_csrf_token(request: Request) -> Optional[str]:
    """Token from the X-CSRF-Token header, else the ``_token`` form field."""
    token = request.headers.get(CSRF_HEADER)
    if token:
        return token
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        value = form.get(CSRF_FIELD)
        return value if isinstance(value, str) else None
    return None


async def require_csrf(
    guard: RouteGuard = Depends(get_route_guard),
    submitted: Optional[str] = Depends(submitted_csrf_token),
) -> None:
    _enforce(await guard.csrf_guard(submitted))


def require_permission(permission: str) -> Callable:
    """
    Dependency factory: ``Depends(require_permission("projects.edit"))``.
    """
    async def dependency(guard: RouteGuard = Depends(get_route_guard)) -> None:
        _enforce(await guard.permission_guard(permission))

    return dependency


async def guard_interrupt_handler(request: Request, exc: GuardInterrupt) -> Response:
    return exc.response
