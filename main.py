# =============================================================================
# CORRIDOR ACCESS SYSTEM - MAIN APPLICATION
# =============================================================================
# File: main.py
# Description: FastAPI application entry point with lifecycle management
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.v1 import api_router, health_api_router
from api.middleware import (
    GuardInterrupt,
    LoggingMiddleware,
    RateLimiterMiddleware,
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
    SessionMiddleware,
    guard_interrupt_handler,
)
from auth.dependencies import ServiceProvider
from core.config import settings
from core.exceptions import AuthSystemException
from db.factory import DBFactory
from permission import PermissionRegistry
from session import (
    MemorySessionStore,
    RedisSessionStore,
    UserAgentDeviceClassifier,
    build_geo_locator,
)


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle manager.

    - Startup: connect datastores, create tables (development), build the
      ServiceProvider the session middleware binds per request
    - Shutdown: close all connections
    """
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode")

    try:
        await DBFactory.connect_all()
        logger.info("Database connections established")

        if settings.is_development:
            await DBFactory.create_tables()
            logger.info("Database tables created/verified")

        db_adapter = DBFactory.get_db_adapter()
        redis_adapter = DBFactory.get_redis_adapter()
        app.state.redis = redis_adapter

        if redis_adapter is not None and settings.session_store == "redis":
            store = RedisSessionStore(redis_adapter)
        else:
            logger.warning("Session data is kept in process memory")
            store = MemorySessionStore()

        app.state.services = ServiceProvider(
            uow=db_adapter.get_session,
            store=store,
            registry=PermissionRegistry(),
            device_classifier=UserAgentDeviceClassifier(),
            geo_locator=build_geo_locator(settings),
            config=settings,
        )
        logger.info(f"{settings.app_name} started successfully")

    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    yield

    logger.info(f"Shutting down {settings.app_name}")
    await DBFactory.disconnect_all()
    logger.info(f"{settings.app_name} shutdown complete")


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_application() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        FastAPI: Configured application instance
    """
    app = FastAPI(
        title=settings.app_name,
        description="Session, authentication and permission services for the corridor permit system",
        version="1.0.0",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    # =========================================================================
    # MIDDLEWARE STACK (last added = outermost)
    # =========================================================================

    # Session (innermost - binds request-scoped services)
    app.add_middleware(SessionMiddleware)

    # Rate Limiting
    app.add_middleware(RateLimiterMiddleware)

    # Security Headers
    app.add_middleware(SecurityHeadersMiddleware)

    # Logging (captures request/response info)
    app.add_middleware(LoggingMiddleware)

    # Request ID (adds tracking ID)
    app.add_middleware(RequestIDMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining"],
    )

    # =========================================================================
    # EXCEPTION HANDLERS
    # =========================================================================

    app.add_exception_handler(GuardInterrupt, guard_interrupt_handler)

    @app.exception_handler(AuthSystemException)
    async def auth_exception_handler(
        request: Request,
        exc: AuthSystemException,
    ) -> JSONResponse:
        """Handle application exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        """Handle standard HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "error_code": f"HTTP_{exc.status_code}",
                "message": exc.detail,
                "details": {},
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled exception")

        if settings.is_production:
            message = "An internal error occurred"
        else:
            message = str(exc)

        return JSONResponse(
            status_code=500,
            content={
                "error": True,
                "error_code": "INTERNAL_ERROR",
                "message": message,
                "details": {},
            },
        )

    # =========================================================================
    # ROUTES
    # =========================================================================

    app.include_router(api_router)
    app.include_router(health_api_router)

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint with API info."""
        return {
            "name": settings.app_name,
            "version": "1.0.0",
            "status": "running",
            "docs": "/docs" if settings.is_development else None,
        }

    return app


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = create_application()


# =============================================================================
# ENTRYPOINT
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
