# =============================================================================
# CORRIDOR ACCESS SYSTEM - AUTH DEPENDENCIES
# =============================================================================
# File: auth/dependencies.py
# Description: Wiring of request-scoped services and the FastAPI
#              dependencies that hand them to routes
# =============================================================================

from typing import Annotated, Callable, Optional
from datetime import datetime

from fastapi import Depends, Request

from auth.service import AuthService, ResetNotifier
from core.config import settings, Settings
from core.context import Principal, RequestContext
from core.exceptions import AuthenticationError, ConfigurationError
from core.security import PasswordManager, password_manager
from db.base import UnitOfWork
from permission.access import AccessControl
from permission.registry import PermissionRegistry
from session.device import DeviceClassifier, UserAgentDeviceClassifier
from session.geo import GeoLocator, NullGeoLocator
from session.manager import SessionManager
from session.storage import SessionStore
from utils.helpers import utc_now


# =============================================================================
# SERVICE PROVIDER
# =============================================================================

class ServiceProvider:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    SERVICE PROVIDER                                      │
    │  Application-scoped collaborators → request-scoped services             │
    └─────────────────────────────────────────────────────────────────────────┘

    Lives on ``app.state.services``. For every request the session
    middleware calls ``bind()`` which attaches a SessionManager,
    AuthService and AccessControl to that request's RequestContext. Only
    the PermissionRegistry is shared between requests.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        store: SessionStore,
        registry: Optional[PermissionRegistry] = None,
        device_classifier: Optional[DeviceClassifier] = None,
        geo_locator: Optional[GeoLocator] = None,
        config: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
        passwords: Optional[PasswordManager] = None,
        reset_notifier: Optional[ResetNotifier] = None,
    ):
        self.uow = uow
        self.store = store
        self.registry = registry or PermissionRegistry()
        self.device_classifier = device_classifier or UserAgentDeviceClassifier()
        self.geo_locator = geo_locator or NullGeoLocator()
        self.config = config or settings
        self.clock = clock
        self.passwords = passwords or password_manager
        self.reset_notifier = reset_notifier

    def bind(self, context: RequestContext) -> RequestContext:
        context.session = SessionManager(
            context,
            self.store,
            self.uow,
            device_classifier=self.device_classifier,
            geo_locator=self.geo_locator,
            config=self.config,
            clock=self.clock,
        )
        context.auth = AuthService(
            context,
            context.session,
            self.uow,
            config=self.config,
            clock=self.clock,
            passwords=self.passwords,
            reset_notifier=self.reset_notifier,
        )
        context.access = AccessControl(context, self.registry)
        return context


# =============================================================================
# REQUEST DEPENDENCIES
# =============================================================================

def get_request_context(request: Request) -> RequestContext:
    """
    Context built by SessionMiddleware for this request.

    Raises:
        ConfigurationError: If the middleware is not installed
    """
    context = getattr(request.state, "context", None)
    if context is None:
        raise ConfigurationError("SessionMiddleware is not installed")
    return context


ContextDep = Annotated[RequestContext, Depends(get_request_context)]


def get_service_provider(request: Request) -> ServiceProvider:
    provider = getattr(request.app.state, "services", None)
    if provider is None:
        raise ConfigurationError("Service provider is not configured")
    return provider


ProviderDep = Annotated[ServiceProvider, Depends(get_service_provider)]


def get_session_manager(context: ContextDep) -> SessionManager:
    return context.session


def get_auth_service(context: ContextDep) -> AuthService:
    return context.auth


def get_access_control(context: ContextDep) -> AccessControl:
    return context.access


SessionDep = Annotated[SessionManager, Depends(get_session_manager)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
AccessDep = Annotated[AccessControl, Depends(get_access_control)]


def get_current_principal(context: ContextDep) -> Principal:
    """
    Signed-in identity; use behind ``require_auth``.

    Raises:
        AuthenticationError: If the request is anonymous
    """
    principal = context.auth.user()
    if principal is None:
        raise AuthenticationError()
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
