"""
api/main.py -- FastAPI application entry point for userauth.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- adds CORS headers for the origins in CORS_ORIGINS
  2. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter

Lifespan builds the Database handle, the stores and the services once and
puts them on app.state; shutdown disposes the engine. Route handlers read
their collaborators from request.app.state -- nothing is a module global.

Error boundary: services raise core.errors types. The handlers below turn
them, and every other failure, into the same ErrorResponse envelope.
"""

from __future__ import annotations

import logging
import time
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import DataError, IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.service import AuthService, TokenManager
from auth.store import TokenStore, UserStore
from auth.users import UserService
from core.config import get_settings
from core.errors import ApiError
from db.database import Database
from mail.sender import EmailSender

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("userauth.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the database handle and services on startup; dispose on shutdown.

    Startup order follows the dependency graph:
      Database -> stores -> UserService / TokenManager -> AuthService.
    EmailSender depends only on settings.
    """
    settings = get_settings()
    logger.info("userauth API starting up")

    database = Database(settings.database_url, pool_size=settings.db_pool_size, pool_timeout=settings.db_pool_timeout)
    database.create_all()
    user_store = UserStore(database)
    token_store = TokenStore(database)

    app.state.database = database
    app.state.users = UserService(user_store)
    app.state.tokens = TokenManager(settings, token_store, user_store)
    app.state.auth = AuthService(app.state.users, app.state.tokens)
    app.state.email = EmailSender(settings)
    logger.info("Database ready (%s)", database.engine.url.render_as_string(hide_password=True))

    yield

    database.close()
    logger.info("userauth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="userauth API",
    description="User registration, login, token rotation and user management.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in get_settings().cors_origins.split(",") if o.strip()],
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


def _traceback(exc: BaseException) -> str | None:
    """Formatted traceback in debug mode, None otherwise."""
    if not get_settings().debug:
        return None
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render a typed failure raised by a service or dependency.

    Non-operational errors are programming mistakes: their message is
    replaced with the generic one unless DEBUG is on.
    """
    if exc.is_operational:
        return _error(exc.status_code, exc.code, exc.message)
    logger.error("Non-operational %s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    if get_settings().debug:
        return _error(exc.status_code, exc.code, exc.message, _traceback(exc))
    return _error(exc.status_code, exc.code, ApiError.default_message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the request body or query params fail validation."""
    return _error(400, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(IntegrityError)
@app.exception_handler(DataError)
async def database_input_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Constraint violations and bad values the database rejected are client errors."""
    logger.info("Database rejected input on %s %s: %s", request.method, request.url.path, type(exc).__name__)
    return _error(400, "validation_error", "Request validation failed.", _traceback(exc))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for routing failures (404, 405) and any HTTPException."""
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback is always logged. It reaches the response body only in
    DEBUG mode; otherwise the client receives a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", ApiError.default_message, _traceback(exc))


# ---------------------------------------------------------------------------
# Health endpoint
#
# Not rate limited -- load balancers and monitors must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", response_model=HealthResponse, tags=["Health"])
def health(request: Request) -> JSONResponse:
    """Return API liveness, version and database reachability.

    503 with status "degraded" when the database does not answer.
    """
    db_ok = request.app.state.database.ping()
    body = HealthResponse(
        status="healthy" if db_ok else "degraded",
        version=API_VERSION,
        components={"app": "ok", "database": "ok" if db_ok else "error"},
    )
    return JSONResponse(status_code=200 if db_ok else 503, content=body.model_dump())
