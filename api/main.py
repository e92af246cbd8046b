"""
api/main.py -- FastAPI application entry point for Work Mesh.

Run with:      uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- CORS headers for the dashboard origin; credentials
                              allowed so the refresh cookie can travel
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan opens both stores and builds the token issuer, auth flow, secure
link generator and mailer on app.state; shutdown closes the stores.

Every response body is the JSON envelope described in api/models.py. The
exception handlers below are the only place domain errors become HTTP.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, envelope
from api.routes.auth import router as auth_router
from api.routes.employees import router as employees_router
from api.routes.project_requests import router as project_requests_router
from api.routes.projects import router as projects_router
from auth.flow import AuthFlow
from auth.store import CredentialStore
from auth.tokens import TokenIssuer
from core.config import Settings, get_settings
from core.errors import AppError
from notify.mailer import Mailer
from staffing.links import SecureLinkGenerator
from staffing.store import StaffingStore

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("workmesh.api")

_STARTED_AT = time.monotonic()


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def init_state(
    app: FastAPI,
    settings: Settings,
    credential_store: CredentialStore,
    staffing_store: StaffingStore,
    mailer: Optional[Mailer] = None,
) -> None:
    """Attach settings, stores and the services built on them to app.state.

    The lifespan below and the test suite both go through here, so routes see
    the same object graph either way.
    """
    issuer = TokenIssuer(settings)
    app.state.settings = settings
    app.state.credential_store = credential_store
    app.state.staffing_store = staffing_store
    app.state.token_issuer = issuer
    app.state.auth_flow = AuthFlow(credential_store, issuer)
    app.state.link_generator = SecureLinkGenerator(staffing_store)
    app.state.mailer = mailer or Mailer(settings)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores on startup and close them on shutdown."""
    settings = get_settings()
    logger.info("Work Mesh API starting up (environment=%s)", settings.environment)
    init_state(
        app,
        settings,
        CredentialStore(settings.auth_db_url, settings.bcrypt_rounds),
        StaffingStore(settings.staffing_db_url),
    )
    if not app.state.mailer.enabled:
        logger.warning("SMTP_HOST not set -- client invitation emails will only be logged")

    yield

    app.state.credential_store.close()
    app.state.staffing_store.close()
    logger.info("Work Mesh API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

_settings = get_settings()

app = FastAPI(
    title="Work Mesh API",
    description="Multi-tenant staffing: organizations, employees, projects and client intake links.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(employees_router, prefix="/api", tags=["Employees"])
app.include_router(projects_router, prefix="/api", tags=["Projects"])
app.include_router(project_requests_router, prefix="/api", tags=["Project Requests"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str, errors: Optional[dict] = None) -> JSONResponse:
    body = ErrorResponse(message=message, status_code=status_code, errors=errors)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.message, exc.errors)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with a field -> message mapping when the body or path fails validation."""
    errors: dict[str, str] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "path", "query")]
        errors.setdefault(".".join(loc) or "body", err.get("msg", "Invalid value"))
    return _error(400, "Validation failed", errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unmatched routes say which method and path were not found."""
    if exc.status_code == 404:
        return _error(404, f"Not found: {request.method} {request.url.path}")
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429; Retry-After is the length of the exceeded limit's window in seconds."""
    retry_after = exc.limit.limit.get_expiry() if exc.limit is not None else 60
    response = _error(429, "Too many requests. Please try again later.")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The exception is logged with its traceback; the client only ever sees a
    generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error")


# ---------------------------------------------------------------------------
# Index and health
#
# Defined directly in main.py so they are reachable regardless of router
# registration state. No rate limit -- health checks must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api", tags=["Health"])
async def index() -> dict:
    return envelope(
        {
            "name": "Work Mesh API",
            "version": API_VERSION,
            "endpoints": {
                "auth": "/api/auth",
                "employees": "/api/employees",
                "projects": "/api/projects",
                "projectRequests": "/api/project-requests",
                "health": "/api/health",
            },
        }
    )


@app.get("/api/health", tags=["Health"])
async def health() -> dict:
    """Liveness: no authentication, no database access."""
    return envelope(
        {
            "status": "ok",
            "version": API_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptimeSeconds": round(time.monotonic() - _STARTED_AT, 3),
        }
    )
