"""
api/routes/v1/register.py -- Account registration endpoint.

Routes:
  POST    /api/v1/auth/register -- create an account (core.pipeline.register_user)
  OPTIONS /api/v1/auth/register -- CORS preflight, 204 with PREFLIGHT_HEADERS

The preflight is answered by api.preflight.PreflightMiddleware ahead of
CORSMiddleware, which would otherwise reject origins outside allowed_origins.

The handler only adapts HTTP to the pipeline: it derives the rate-limit key
from forwarding headers, decodes the body, and shapes the result. Every
rejection arrives as an exception and leaves through error_response(), so no
internal detail crosses the boundary.

Rate limiting: the sliding window limiter lives on app.state.register_limiter
(created in the lifespan) and is shared by every request in the process.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from api.models import RegisterResponse
from api.responses import error_response, retry_after_headers
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings
from core.errors import AppError
from core.pipeline import register_user
from core.ratelimit import SlidingWindowRateLimiter, client_key

logger = logging.getLogger("authgate.api.register")

router = APIRouter()

REGISTER_PATH = "/auth/register"

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "86400",
}


@router.post(REGISTER_PATH, response_model=RegisterResponse)
async def register(request: Request) -> JSONResponse:
    """Register a new account from a JSON body {email, password}."""
    if not get_settings().self_registration_enabled:
        logger.info("Registration attempt rejected: self-registration disabled")
        return error_response(AppError("Self-registration is disabled", 403, "REGISTRATION_DISABLED"))

    limiter: SlidingWindowRateLimiter = request.app.state.register_limiter
    user_store: UserStore = request.app.state.user_store
    key = client_key(request.headers)

    try:
        body = await request.json()
    except ValueError:
        body = None

    try:
        # bcrypt and the store are blocking; keep them off the event loop.
        result = await run_in_threadpool(
            register_user, body, key, limiter=limiter, store=user_store, hasher=hash_password
        )
    except AppError as exc:
        headers = retry_after_headers(limiter.retry_after(key)) if exc.status_code == 429 else None
        return error_response(exc, headers=headers)

    return JSONResponse(status_code=200, content=RegisterResponse(**result).model_dump())
