"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token locations are checked in priority order:
  1. JWT cookie ("access_token") -- set by POST /auth/login.
  2. Authorization: Bearer <token> header -- API clients.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises auth/unauthorized (401).
require_admin() wraps get_current_user() and raises FORBIDDEN (403).

Errors are raised as core.errors types, not HTTPException, so they flow
through the same resolve_error() handler as every other failure.

Layer rule: no imports from web/. fastapi is imported for Request because
this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import User
from auth.session import is_admin
from auth.tokens import ACCESS_COOKIE, decode_access_token
from core.errors import UNAUTHORIZED, AppError, AuthError


def try_get_current_user(request: Request) -> User | None:
    """Attempt to authenticate the request via cookie or Bearer header.

    Returns the authenticated User on success, None on any failure.
    Never raises -- callers that need a hard 401 should use get_current_user().
    """
    user_store = request.app.state.user_store

    token: str | None = request.cookies.get(ACCESS_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]

    if not token:
        return None
    payload = decode_access_token(token)
    if payload is None:
        return None
    user = user_store.get_by_id(payload["user_id"])
    if user and user.is_active:
        return user
    return None


def get_current_user(request: Request) -> User:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise AuthError(UNAUTHORIZED)
    return user


def require_admin(request: Request) -> User:
    """Require the admin role. 401 if unauthenticated, 403 if not admin."""
    user = get_current_user(request)
    if not is_admin(user):
        raise AppError("Admin access required", 403, "FORBIDDEN")
    return user
