"""
auth/guard.py -- Session guard: gate views on an asynchronous session source.

State machine:

    Loading --fetch resolves--> Authenticated | Unauthenticated
    Authenticated | Unauthenticated --refresh()--> Loading

A guard starts in Loading and only leaves it when its SessionSource answers.
Nothing is rendered and no redirect decision is taken while Loading.
Redirects fire on *entering* a phase, so each transition navigates at most
once; observing the same phase twice in a row does not navigate again.

Policies:
    GuardPolicy.require_auth("/login")          -- Unauthenticated -> navigate
    GuardPolicy.redirect_if_authenticated("/")  -- Authenticated -> navigate

is_ready flips to True the first time Loading is exited and stays True for
the life of the guard, including later refreshes.

One guard belongs to one view. The source is injected; the guard never reads
global session state. close() models unmount: a fetch still in flight keeps
running but its result is discarded.

Client-visible errors set through set_error() clear themselves after
ERROR_DISMISS_SECONDS.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol

from fastapi import Request

from auth.dependencies import try_get_current_user
from auth.models import SessionUser, User
from auth.session import session_user
from core.errors import format_auth_error

logger = logging.getLogger("authgate.guard")

ERROR_DISMISS_SECONDS = 5.0
LOGIN_PATH = "/login"
HOME_PATH = "/"


class SessionPhase(str, Enum):
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class SessionSnapshot:
    phase: SessionPhase
    user: Optional[SessionUser] = None

    @classmethod
    def for_user(cls, user: Optional[SessionUser]) -> SessionSnapshot:
        if user is None:
            return cls(SessionPhase.UNAUTHENTICATED)
        return cls(SessionPhase.AUTHENTICATED, user)

    def to_dict(self) -> dict:
        return {"phase": self.phase.value, "user": self.user.to_dict() if self.user else None}


class SessionSource(Protocol):
    async def fetch(self) -> SessionSnapshot: ...


Navigate = Callable[[str], None]


@dataclass(frozen=True)
class GuardPolicy:
    required: bool = False
    redirect_to: Optional[str] = None

    @classmethod
    def require_auth(cls, redirect_to: str = LOGIN_PATH) -> GuardPolicy:
        return cls(required=True, redirect_to=redirect_to)

    @classmethod
    def redirect_if_authenticated(cls, redirect_to: str = HOME_PATH) -> GuardPolicy:
        return cls(required=False, redirect_to=redirect_to)

    def redirect_for(self, phase: SessionPhase) -> Optional[str]:
        """Navigation target on entering phase, or None."""
        if phase is SessionPhase.UNAUTHENTICATED and self.required:
            return self.redirect_to or LOGIN_PATH
        if phase is SessionPhase.AUTHENTICATED and not self.required and self.redirect_to:
            return self.redirect_to
        return None


class SessionGuard:
    """Guard instance bound to a single view.

    Usage:
        guard = SessionGuard(source, navigate=router.push, policy=GuardPolicy.require_auth())
        await guard.resolve()
        page = guard.render(content, loading=spinner, fallback=None)
    """

    def __init__(
        self,
        source: SessionSource,
        navigate: Optional[Navigate] = None,
        policy: GuardPolicy = GuardPolicy(),
        *,
        on_error: Optional[Callable[[str], None]] = None,
        error_dismiss_seconds: float = ERROR_DISMISS_SECONDS,
    ) -> None:
        self.policy = policy
        self._source = source
        self._navigate = navigate
        self._on_error = on_error
        self._error_dismiss_seconds = error_dismiss_seconds
        self._phase = SessionPhase.LOADING
        self._user: Optional[SessionUser] = None
        self._error: Optional[str] = None
        self._ready = False
        self._closed = False
        self._fetch: Optional[asyncio.Future] = None
        self._dismiss: Optional[asyncio.TimerHandle] = None
        self.last_redirect: Optional[str] = None

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def user(self) -> Optional[SessionUser]:
        return self._user

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_loading(self) -> bool:
        return self._phase is SessionPhase.LOADING

    @property
    def is_authenticated(self) -> bool:
        return self._phase is SessionPhase.AUTHENTICATED

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(self._phase, self._user)

    # ------------------------------------------------------------------
    # Fetch lifecycle
    # ------------------------------------------------------------------

    async def resolve(self) -> SessionSnapshot:
        """Fetch the session once. Concurrent callers share the same fetch."""
        if self._fetch is None:
            self._fetch = asyncio.ensure_future(self._load())
        await asyncio.shield(self._fetch)
        return self.snapshot

    async def refresh(self) -> SessionSnapshot:
        """Re-enter Loading and fetch again, e.g. after sign-out.

        If a fetch is already in flight, wait for it instead of starting a
        second one.
        """
        if self._fetch is not None and not self._fetch.done():
            await asyncio.shield(self._fetch)
            return self.snapshot
        self.observe(SessionSnapshot(SessionPhase.LOADING))
        self._fetch = asyncio.ensure_future(self._load())
        await asyncio.shield(self._fetch)
        return self.snapshot

    async def _load(self) -> None:
        try:
            snapshot = await self._source.fetch()
        except Exception as exc:
            logger.warning("Session fetch failed: %s", type(exc).__name__)
            if self._closed:
                return
            self.observe(SessionSnapshot(SessionPhase.UNAUTHENTICATED))
            self.set_error(format_auth_error(exc))
            return
        if self._closed:
            logger.debug("Discarding session result for closed guard")
            return
        self.observe(snapshot)

    def observe(self, snapshot: SessionSnapshot) -> None:
        """Apply a phase reported by the session source."""
        if self._closed:
            return
        previous = self._phase
        self._phase = snapshot.phase
        self._user = snapshot.user if snapshot.phase is SessionPhase.AUTHENTICATED else None
        if snapshot.phase is SessionPhase.LOADING:
            return
        self._ready = True
        if snapshot.phase is previous:
            return
        target = self.policy.redirect_for(snapshot.phase)
        if target is not None:
            self.last_redirect = target
            if self._navigate is not None:
                self._navigate(target)

    def close(self) -> None:
        """Unmount. Later fetch results are ignored; pending error timers are cancelled."""
        self._closed = True
        if self._dismiss is not None:
            self._dismiss.cancel()
            self._dismiss = None

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def set_error(self, message: Optional[str]) -> None:
        if self._dismiss is not None:
            self._dismiss.cancel()
            self._dismiss = None
        self._error = message
        if message is None:
            return
        if self._on_error is not None:
            self._on_error(message)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Outside an event loop the error stays until clear_error().
            return
        self._dismiss = loop.call_later(self._error_dismiss_seconds, self.clear_error)

    def clear_error(self) -> None:
        self._dismiss = None
        self._error = None

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, content: Any, loading: Any = None, fallback: Any = None) -> Any:
        """Pick what a view shows: loading placeholder, fallback, or content."""
        if self.is_loading:
            return loading
        if not self.is_authenticated:
            return fallback
        return content

    def protect(self, view: Callable[..., Any]) -> Callable[..., Any]:
        """Wrap view so it only runs once the session is Authenticated.

        The resolved identity is passed as the user= keyword argument. The
        wrapper returns None while the session is not authenticated.
        """

        @functools.wraps(view)
        async def guarded(*args: Any, **kwargs: Any) -> Any:
            await self.resolve()
            if not self.is_authenticated:
                return None
            result = view(*args, user=self.user, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            return result

        return guarded


def snapshot_for(user: Optional[User]) -> SessionSnapshot:
    return SessionSnapshot.for_user(session_user(user))


class RequestSessionSource:
    """SessionSource backed by the current request's session cookie / Bearer token."""

    def __init__(self, request: Request) -> None:
        self._request = request

    async def fetch(self) -> SessionSnapshot:
        user = await asyncio.to_thread(try_get_current_user, self._request)
        return snapshot_for(user)
