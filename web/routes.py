"""
web/routes.py -- Guarded HTML pages for AuthGate.

Every page resolves its session through auth.guard.SessionGuard backed by the
request's cookie (RequestSessionSource). The guard's navigate callback is a
_Navigator that records the first redirect target; the handler turns that
into a 302. Pages are minimal HTML stubs.

Routes:
  GET  /              -- home (public; shows the signed-in email if any)
  GET  /login         -- sign-in page; signed-in visitors go to ?next= or /
  POST /login         -- handle the sign-in form; cookie + redirect to ?next=
  GET  /signup        -- sign-up page; signed-in visitors go to /
  POST /signup        -- handle the sign-up form; register, sign in, /protected
  GET  /protected     -- requires a session, else /login?next=/protected
  GET  /admin         -- requires a session and the admin role
  GET  /unauthorized  -- shown when the admin check fails
  POST /logout        -- clear cookie, redirect /login

The form handlers read urlencoded form posts and reuse the same pipeline and
credential check as the JSON API, so both surfaces reject identically.
"""

import logging
from html import escape
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from api.limiter import limiter
from api.responses import retry_after_headers
from auth.guard import LOGIN_PATH, GuardPolicy, RequestSessionSource, SessionGuard
from auth.models import SessionUser
from auth.session import is_admin
from auth.store import UserStore
from auth.tokens import ACCESS_COOKIE, authenticate_user, create_access_token, hash_password, set_auth_cookie
from core.config import get_settings
from core.errors import INVALID_CREDENTIALS, AppError, resolve_error
from core.pipeline import register_user
from core.ratelimit import client_key

logger = logging.getLogger("authgate.web")

router = APIRouter()

SIGNUP_PATH = "/signup"
SIGNUP_SUCCESS_PATH = "/protected"
UNAUTHORIZED_PATH = "/unauthorized"

# Whitelist for ?error= on /login [M3]. Unknown values render no message.
_ERROR_MESSAGES = {
    "invalid_credentials": INVALID_CREDENTIALS.message,
}


# ---------------------------------------------------------------------------
# Guard helpers
# ---------------------------------------------------------------------------


class _Navigator:
    """navigate callback for a server-rendered page: keep the first target only."""

    def __init__(self) -> None:
        self.target: Optional[str] = None

    def __call__(self, path: str) -> None:
        if self.target is None:
            self.target = path


def _safe_next(next_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths. [C2]

    Rejects absolute and protocol-relative URLs ("//host") so a crafted
    ?next= cannot send the browser off-site.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return "/"


def _login_url(next_url: str, **params: str) -> str:
    if next_url != "/":
        params["next"] = next_url
    return f"{LOGIN_PATH}?{urlencode(params)}" if params else LOGIN_PATH


def _guard(request: Request, policy: GuardPolicy) -> tuple[SessionGuard, _Navigator]:
    navigator = _Navigator()
    return SessionGuard(RequestSessionSource(request), navigate=navigator, policy=policy), navigator


def _page(title: str, body: str, status_code: int = 200) -> HTMLResponse:
    html = (
        "<!doctype html>\n"
        f"<html><head><title>{escape(title)} - AuthGate</title></head>\n"
        f"<body><main>{body}</main></body></html>\n"
    )
    return HTMLResponse(html, status_code=status_code)


def _user_line(user: SessionUser) -> str:
    return f"<p>Signed in as <strong>{escape(user.email)}</strong> ({escape(user.role)})</p>"


def _error_line(message: Optional[str]) -> str:
    return f'<p role="alert">{escape(message)}</p>' if message else ""


def _login_page(next_url: str, error_msg: Optional[str] = None) -> HTMLResponse:
    return _page(
        "Sign in",
        "<h1>Sign in</h1>"
        + _error_line(error_msg)
        + f'<form method="post" action="{escape(_login_url(next_url))}">'
        '<input name="email" type="email" autocomplete="email">'
        '<input name="password" type="password" autocomplete="current-password">'
        '<button type="submit">Sign in</button></form>'
        f'<p><a href="{SIGNUP_PATH}">Create an account</a></p>',
    )


def _signup_page(error_msg: Optional[str] = None, status_code: int = 200) -> HTMLResponse:
    return _page(
        "Sign up",
        "<h1>Create an account</h1>"
        + _error_line(error_msg)
        + f'<form method="post" action="{SIGNUP_PATH}">'
        '<input name="email" type="email" autocomplete="email">'
        '<input name="password" type="password" autocomplete="new-password">'
        '<button type="submit">Sign up</button></form>'
        f'<p><a href="{LOGIN_PATH}">Already registered? Sign in</a></p>',
        status_code=status_code,
    )


def _signed_in_redirect(user_id: int, email: str, role: str, target: str) -> RedirectResponse:
    resp = RedirectResponse(target, status_code=302)
    set_auth_cookie(resp, create_access_token(user_id, email, role))
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
async def home(request: Request) -> HTMLResponse:
    guard, _ = _guard(request, GuardPolicy())
    await guard.resolve()
    links = '<p><a href="/protected">Protected page</a></p>'
    body = guard.render(
        _user_line(guard.user) + links if guard.user else "",
        fallback='<p><a href="/login">Sign in</a> or <a href="/signup">create an account</a>.</p>',
    )
    return _page("Home", "<h1>AuthGate</h1>" + body)


@router.get(LOGIN_PATH, response_class=HTMLResponse)
async def login_page(request: Request, next: Optional[str] = None, error: Optional[str] = None) -> HTMLResponse:
    next_url = _safe_next(next)
    guard, navigator = _guard(request, GuardPolicy.redirect_if_authenticated(next_url))
    await guard.resolve()
    if navigator.target:
        return RedirectResponse(navigator.target, status_code=302)
    return _login_page(next_url, _ERROR_MESSAGES.get(error or ""))


@limiter.limit(get_settings().login_rate_limit)  # [H2] must be ABOVE @router
@router.post(LOGIN_PATH, response_class=HTMLResponse)
def login_post(
    request: Request,
    email: str = Form(default=""),
    password: str = Form(default=""),
) -> RedirectResponse:
    """Handle the sign-in form. Failures go back to /login with a whitelisted error."""
    user_store: UserStore = request.app.state.user_store
    next_url = _safe_next(request.query_params.get("next"))  # [C2]
    user = authenticate_user(user_store, email, password)  # [C1] timing equalization
    if user is None:
        logger.info("Failed sign-in attempt from login form")
        return RedirectResponse(_login_url(next_url, error="invalid_credentials"), status_code=302)
    return _signed_in_redirect(user.id, user.email, user.role, next_url)


@router.get(SIGNUP_PATH, response_class=HTMLResponse)
async def signup_page(request: Request) -> HTMLResponse:
    guard, navigator = _guard(request, GuardPolicy.redirect_if_authenticated("/"))
    await guard.resolve()
    if navigator.target:
        return RedirectResponse(navigator.target, status_code=302)
    return _signup_page()


@router.post(SIGNUP_PATH, response_class=HTMLResponse)
def signup_post(
    request: Request,
    email: str = Form(default=""),
    password: str = Form(default=""),
) -> Response:
    """Handle the sign-up form: register, then sign the new account in.

    Rejections re-render the form with the pipeline's message and status.
    """
    if not get_settings().self_registration_enabled:
        logger.info("Sign-up form rejected: self-registration disabled")
        return _signup_page("Self-registration is disabled", status_code=403)

    register_limiter = request.app.state.register_limiter
    key = client_key(request.headers)
    try:
        result = register_user(
            {"email": email, "password": password},
            key,
            limiter=register_limiter,
            store=request.app.state.user_store,
            hasher=hash_password,
        )
    except AppError as exc:
        info = resolve_error(exc)
        page = _signup_page(info.message, status_code=info.http_status)
        if info.http_status == 429:
            page.headers.update(retry_after_headers(register_limiter.retry_after(key)))
        return page

    user = result["user"]
    return _signed_in_redirect(user["id"], user["email"], "user", SIGNUP_SUCCESS_PATH)


@router.get("/protected", response_class=HTMLResponse)
async def protected_page(request: Request) -> HTMLResponse:
    guard, navigator = _guard(request, GuardPolicy.require_auth(f"{LOGIN_PATH}?next={request.url.path}"))

    def content(user: SessionUser) -> HTMLResponse:
        return _page("Protected", "<h1>Protected</h1>" + _user_line(user))

    page = await guard.protect(content)()
    if page is None:
        return RedirectResponse(navigator.target or LOGIN_PATH, status_code=302)
    return page


@router.get("/admin", response_class=HTMLResponse)
async def admin_page(request: Request) -> HTMLResponse:
    guard, navigator = _guard(request, GuardPolicy.require_auth(f"{LOGIN_PATH}?next={request.url.path}"))
    await guard.resolve()
    if navigator.target:
        return RedirectResponse(navigator.target, status_code=302)
    if not is_admin(guard.user):
        logger.info("Non-admin user %s denied /admin", guard.user.id if guard.user else "-")
        return RedirectResponse(UNAUTHORIZED_PATH, status_code=302)
    return _page("Admin", "<h1>Admin</h1>" + _user_line(guard.user))


@router.get(UNAUTHORIZED_PATH, response_class=HTMLResponse)
async def unauthorized_page() -> HTMLResponse:
    return _page(
        "Unauthorized",
        "<h1>Unauthorized</h1><p>You do not have access to that page.</p>" '<p><a href="/">Home</a></p>',
    )


@router.post("/logout")
async def logout() -> RedirectResponse:
    resp = RedirectResponse(LOGIN_PATH, status_code=302)
    resp.delete_cookie(ACCESS_COOKIE)
    return resp
