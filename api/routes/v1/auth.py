"""
api/routes/v1/auth.py -- Sign-in, session, and user listing endpoints.

Routes:
  POST /api/v1/auth/login     -- email/password sign-in; sets JWT cookie
  POST /api/v1/auth/logout    -- clears cookie; 200
  GET  /api/v1/auth/me        -- current user info (requires auth)
  GET  /api/v1/auth/session   -- {phase, user}; always 200, drives client guards
  GET  /api/v1/auth/users     -- list all users (admin only)

Security:
  [H2] POST /login is rate-limited per IP (Settings.login_rate_limit).
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on login responses.
  Wrong email and wrong password produce the same auth/invalid-credentials error.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginRequest, LoginResponse, MeResponse, SessionResponse, UserResponse
from api.responses import error_response
from auth.dependencies import get_current_user, require_admin, try_get_current_user
from auth.guard import snapshot_for
from auth.models import User
from auth.store import UserStore
from auth.tokens import ACCESS_COOKIE, authenticate_user, create_access_token, set_auth_cookie
from core.config import get_settings
from core.errors import INVALID_CREDENTIALS, AuthError

logger = logging.getLogger("authgate.api.auth")

# Auth policy:
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:   public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/session:  public -- reports "unauthenticated" instead of 401
# - GET  /api/v1/auth/me:       requires auth (get_current_user)
# - GET  /api/v1/auth/users:    requires admin (require_admin)
router = APIRouter()


@limiter.limit(get_settings().login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set JWT cookie."""
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        logger.info("Failed sign-in attempt")
        return error_response(AuthError(INVALID_CREDENTIALS), headers={"Cache-Control": "no-store"})  # [M5]

    settings = get_settings()
    token = create_access_token(user.id, user.email, user.role)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=settings.token_expire_seconds,
            email=user.email,
            role=user.role,
        ).model_dump(),
    )
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/logout")
async def logout() -> JSONResponse:
    """Clear the JWT cookie and end the session."""
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie(ACCESS_COOKIE)
    return resp


@router.get("/auth/session", response_model=SessionResponse)
def session(request: Request) -> SessionResponse:
    """Report the caller's session phase. Never 401 -- guards decide what to do with it."""
    snapshot = snapshot_for(try_get_current_user(request))
    return SessionResponse(**snapshot.to_dict())


@router.get("/auth/me", response_model=MeResponse)
async def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse(
        user_id=current_user.id,
        email=current_user.email,
        name=current_user.name,
        role=current_user.role,
    )


@router.get("/auth/users", response_model=list[UserResponse])
def list_users(
    request: Request,
    current_user: User = Depends(require_admin),
) -> list[UserResponse]:
    """List all user accounts. Admin only."""
    user_store: UserStore = request.app.state.user_store
    return [
        UserResponse(
            id=u.id,
            email=u.email,
            name=u.name,
            role=u.role,
            is_active=u.is_active,
            created_at=u.created_at or "",
        )
        for u in user_store.list_users()
    ]
