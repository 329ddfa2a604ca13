"""
Main Application Entry Point
============================

Responsibilities:
- Initialize FastAPI application
- Configure middleware stack
- Register API routers
- Set up exception handlers
- Provide health check endpoints
- Mount the Socket.IO server around the HTTP application

Run with:
    uvicorn statuspage.main:app

IMPORTANT:
    Database tables are managed via Alembic migrations.
    Do NOT use Base.metadata.create_all() in production.
"""

import asyncio
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from statuspage.api import incidents, public, services
from statuspage.core.config import settings
from statuspage.core.exceptions import StatusPageError
from statuspage.core.logging import configure_logging, get_logger
from statuspage.db.session import check_database_connection
from statuspage.middleware.request_context import RequestContextMiddleware
from statuspage.middleware.security import RateLimitMiddleware, SecurityHeadersMiddleware
from statuspage.realtime.socketio import registry, sio, transport
from statuspage.routes import auth_routes

configure_logging()

# Initialize logger
logger = get_logger(__name__)


# =====================================
# Application Lifespan Handler
# =====================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
    - Bind the Socket.IO transport to the serving event loop
    - Check database connection

    Shutdown:
    - Log open real-time connections
    """
    logger.info(
        "application_starting",
        app_name=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    transport.bind_loop(asyncio.get_running_loop())

    if not check_database_connection():
        logger.error("database_unavailable_on_startup")
    else:
        logger.info("database_connection_established")

    try:
        yield
    finally:
        logger.info("application_shutdown", open_connections=len(registry))


# =====================================
# FastAPI App Initialization
# =====================================

fastapi_app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Status Page - Multi-Tenant Incident & Service Status Backend

    ## Features

    * **Multi-Tenant Architecture**: Complete data isolation between organizations
    * **Incident Lifecycle**: Transactional incidents with an append-only audit log
    * **Real-time Updates**: Socket.IO fan-out scoped to each organization
    * **Public Status Pages**: Anonymous read endpoints addressed by slug

    ## Authentication

    Use `/api/v1/auth/login` to obtain an access token and send it as
    `Authorization: Bearer <token>`. Socket.IO clients pass the same token
    as `auth.token`.

    ## Authorization

    * `viewer`: read the staff dashboard
    * `editor`: create and update incidents and services
    * `admin`: everything, including deletes
    """,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)


# =====================================
# Middleware
# =====================================

fastapi_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ORIGINS != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)
# Order matters: last added runs first
fastapi_app.add_middleware(SecurityHeadersMiddleware)
fastapi_app.add_middleware(RateLimitMiddleware)
fastapi_app.add_middleware(RequestContextMiddleware)


# =====================================
# Exception Handlers
# =====================================

@fastapi_app.exception_handler(StatusPageError)
async def status_page_exception_handler(request: Request, exc: StatusPageError):
    """Convert application exceptions to JSON error responses."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_rejected",
        exception_type=type(exc).__name__,
        message=exc.message,
        status_code=exc.status_code,
        retryable=exc.retryable,
        path=request.url.path,
    )

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.message,
            "details": exc.details,
            "retryable": exc.retryable,
        },
        headers=headers,
    )


@fastapi_app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning("request_validation_failed", path=request.url.path, errors=errors)

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "message": "Validation error",
            "details": {"errors": errors},
        },
    )


@fastapi_app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected exceptions.

    Logs the error and returns a generic error message.
    """
    logger.error(
        "unhandled_exception",
        exception_type=type(exc).__name__,
        message=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )

    if settings.is_production:
        content = {"success": False, "message": "An unexpected error occurred", "details": {}}
    else:
        content = {"success": False, "message": str(exc), "details": {"type": type(exc).__name__}}

    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


# =====================================
# Register Routers
# =====================================

fastapi_app.include_router(auth_routes.router, prefix=settings.API_PREFIX)
fastapi_app.include_router(incidents.router, prefix=settings.API_PREFIX)
fastapi_app.include_router(services.router, prefix=settings.API_PREFIX)
fastapi_app.include_router(public.router, prefix=settings.API_PREFIX)


# =====================================
# Health Check Endpoints
# =====================================

@fastapi_app.get("/", tags=["Health"], summary="Basic Health Check")
def health_check():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@fastapi_app.get("/health", tags=["Health"], summary="Detailed Health Check")
def detailed_health_check():
    db_healthy = check_database_connection()

    return {
        "status": "healthy" if db_healthy else "degraded",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "checks": {
            "database": "healthy" if db_healthy else "unhealthy",
            "realtime_connections": len(registry),
        },
    }


@fastapi_app.get("/ready", tags=["Health"], summary="Readiness Check")
def readiness_check():
    if not check_database_connection():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "database_unavailable"},
        )
    return {"status": "ready"}


# =====================================
# ASGI entry point (HTTP + Socket.IO)
# =====================================

app = socketio.ASGIApp(
    sio,
    other_asgi_app=fastapi_app,
    socketio_path=settings.SOCKETIO_PATH,
)
