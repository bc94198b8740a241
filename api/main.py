"""
api/main.py -- FastAPI application entry point for AuthGate.

Run with:      uvicorn asgi:app --reload

Middleware stack (Starlette runs the last one added first):
  1. log_requests          -- one access log line per request
  2. SlowAPIMiddleware     -- enforces per-route limits from api.limiter (login)
  3. PreflightMiddleware   -- answers OPTIONS /api/v1/auth/register for any origin
  4. CORSMiddleware        -- adds CORS headers for allowed browser origins
  5. TrustedHostMiddleware -- rejects requests with unexpected Host headers

Registration is throttled inside its route by the sliding window limiter on
app.state.register_limiter, not by slowapi.

Lifespan handles startup (credential store, registration limiter, sweep task)
and shutdown (cancel sweep task, close DB connection) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.responses import error_response
from api.routes.v1.auth import router as auth_router
from api.routes.v1.forms import router as forms_router
from api.preflight import PreflightMiddleware
from api.routes.v1.register import PREFLIGHT_HEADERS, REGISTER_PATH
from api.routes.v1.register import router as register_router
from auth.store import UserStore
from core.config import get_settings
from core.errors import AppError
from core.ratelimit import SlidingWindowRateLimiter

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authgate.api")

# ---------------------------------------------------------------------------
# Background sweep task
# ---------------------------------------------------------------------------


async def _sweep_loop(app: FastAPI, interval: float) -> None:
    """Forget idle rate-limit keys every `interval` seconds.

    Without this the limiter keeps one entry per client ever seen.
    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(interval)
        removed = app.state.register_limiter.sweep()
        if removed:
            logger.info("Rate limiter sweep removed %d idle key(s)", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters: the sweep task references app.state.register_limiter,
    so the limiter must exist first.
    """
    settings = get_settings()
    logger.info("AuthGate API starting up")
    app.state.user_store = UserStore(settings.database_url)
    logger.info("Credential store initialized")
    app.state.register_limiter = SlidingWindowRateLimiter(
        limit=settings.register_rate_limit,
        window_seconds=settings.register_rate_window_seconds,
    )
    logger.info(
        "Registration limiter: %d requests / %.0fs",
        settings.register_rate_limit,
        settings.register_rate_window_seconds,
    )
    app.state.sweep_task = asyncio.create_task(_sweep_loop(app, settings.rate_limit_sweep_seconds))

    yield

    app.state.sweep_task.cancel()
    app.state.user_store.close()
    logger.info("AuthGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="AuthGate API",
    description="Account registration, sign-in, and session state.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps the existing stack, so each call below sits outside
# the previous one. PreflightMiddleware must be added after CORSMiddleware.
# ---------------------------------------------------------------------------

API_PREFIX = "/api/v1"

_settings = get_settings()

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(
    PreflightMiddleware,
    paths=[API_PREFIX + REGISTER_PATH],
    headers=PREFLIGHT_HEADERS,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


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

app.include_router(auth_router, prefix=API_PREFIX, tags=["Auth"])
app.include_router(register_router, prefix=API_PREFIX, tags=["Auth"])
app.include_router(forms_router, prefix=API_PREFIX, tags=["Forms"])
# Web pages are mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {error, code} envelope so clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Application and catalog errors carry their own status and code."""
    return error_response(exc)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a slowapi limit (login) is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    return error_response(
        AppError("Too many requests, please try again later", 429, "RATE_LIMIT_EXCEEDED"),
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 when a typed request body fails validation.

    The pydantic error list is logged, not returned.
    """
    logger.info("Request validation failed on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error="Request validation failed.", code="VALIDATION_ERROR").model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for FastAPI/Starlette HTTP exceptions (404, 405, ...)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail), code=f"HTTP_{exc.status_code}").model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    resolve_error() maps it to a catalog entry or the auth/unknown fallback.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response(exc)


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit applied -- health checks from load balancers must not be
# throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and credential store reachability."""
    components = {"app": "ok", "database": "ok"}
    try:
        request.app.state.user_store.ping()
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        components["database"] = "error"
    status = "healthy" if components["database"] == "ok" else "degraded"
    return HealthResponse(status=status, version=VERSION, components=components)
