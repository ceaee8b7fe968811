"""FastAPI main application for the voter dashboard backend."""

from contextlib import asynccontextmanager

import asyncpg
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.routes import auth, campaigns, locations, users, voters
from app.core.config import settings
from app.core.database import close_db_pool, init_db_pool, pool_status
from app.core.exceptions import (
    AccessControlError,
    InconsistentScopeError,
    OutOfScopeError,
    UnknownRoleError,
)
from app.core.logging_config import get_logger, security_logger, setup_logging
from app.core.rate_limiting import InMemoryRateLimitStore, LoginRateLimiter
from app.core.responses import error_envelope, success_response
from app.services.locations import LocationHierarchy

setup_logging()
logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if settings.ENVIRONMENT == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - runs on startup and shutdown."""
    logger.info("Starting voter dashboard backend...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    app.state.location_hierarchy = LocationHierarchy.from_directory(settings.LOCATION_DATA_DIR)
    app.state.login_rate_limiter = LoginRateLimiter(
        InMemoryRateLimitStore(),
        max_attempts=settings.LOGIN_MAX_ATTEMPTS,
        window_seconds=settings.LOGIN_WINDOW_SECONDS,
    )

    # Tests provide their own connections
    if settings.ENVIRONMENT != "test":
        await init_db_pool(settings)

    yield

    if settings.ENVIRONMENT != "test":
        await close_db_pool()
    logger.info("Shutting down voter dashboard backend...")


app = FastAPI(
    title="Voter Dashboard Backend",
    description="""
    Role-based voter management over the division → district → upazila →
    union → village hierarchy.

    ## Roles

    - **super_admin**: all voters, may delete and assign every other role
    - **division_admin** … **village_admin**: voters inside the assigned
      location and everything below it

    Include the JWT token in the Authorization header:

    ```
    Authorization: Bearer <your_jwt_token>
    ```
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(SecurityHeadersMiddleware)

_dev = settings.ENVIRONMENT == "development"
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if _dev else settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"] if _dev else ["Authorization", "Content-Type", "Accept", "Origin"],
)


# Exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with standardized error responses."""
    if isinstance(exc.detail, dict):
        return error_envelope(
            exc.detail.get("message"), exc.status_code, errors=exc.detail.get("errors")
        )
    return error_envelope(exc.detail, exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors as ``{field.path: message}``."""
    errors = {
        ".".join(str(loc) for loc in error["loc"]): error["msg"] for error in exc.errors()
    }
    return error_envelope("Validation failed", 422, errors=errors)


@app.exception_handler(AccessControlError)
async def access_control_exception_handler(request: Request, exc: AccessControlError):
    """
    Role/scope failures raised below the route layer.

    Inconsistent locations in a request body are client errors (422); every
    other access-control failure is a denial (403) that does not say why.
    """
    if isinstance(exc, InconsistentScopeError):
        return error_envelope(str(exc), 422)

    if isinstance(exc, UnknownRoleError):
        logger.error(f"Unknown role reached the service layer: {exc}")
    elif isinstance(exc, OutOfScopeError):
        security_logger.log_unauthorized_access(
            resource=f"{request.method} {request.url.path}", reason=str(exc)
        )

    return error_envelope("Access denied", 403)


@app.exception_handler(asyncpg.exceptions.PostgresError)
async def database_exception_handler(
    request: Request, exc: asyncpg.exceptions.PostgresError
):
    """Handle database errors."""
    logger.error(f"Database error: {exc}", exc_info=True)
    return error_envelope("Database error occurred", 500)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return error_envelope("An unexpected error occurred", 500)


ROUTERS = (auth.router, users.router, locations.router, voters.router, campaigns.router)

v1_router = APIRouter(prefix="/v1")
for router in ROUTERS:
    v1_router.include_router(router)
app.include_router(v1_router)

# Also at root level for the latest version
for router in ROUTERS:
    app.include_router(router)


@app.get("/health")
async def health_check():
    """Health check: API status and loaded reference data."""
    hierarchy = getattr(app.state, "location_hierarchy", None)
    checks = {
        "api": {"status": "healthy"},
        "locations": {
            "status": "healthy" if hierarchy and hierarchy.divisions() else "degraded",
            "divisions": len(hierarchy.divisions()) if hierarchy else 0,
        },
        "database_pool": pool_status(),
    }
    return success_response(data={"status": "healthy", "checks": checks})
