"""
tests/test_guard.py -- SessionGuard state machine (auth.guard).

The session source is a fake injected through the constructor, so every
transition is driven explicitly. Async code runs under asyncio.run.

Coverage:
  - initial phase is Loading; nothing renders and nothing navigates
  - require_auth + Unauthenticated -> exactly one redirect to /login
  - redirect_if_authenticated + Authenticated -> one redirect to /
  - refresh() re-enters Loading and re-resolves
  - concurrent resolve() calls share one fetch
  - fetch failure -> Unauthenticated plus a formatted, auto-dismissed error
  - close() discards late results
"""

from __future__ import annotations

import asyncio
from typing import Optional

from auth.guard import (
    GuardPolicy,
    SessionGuard,
    SessionPhase,
    SessionSnapshot,
    snapshot_for,
)
from auth.models import SessionUser, User
from core.errors import UNAUTHORIZED, UNKNOWN, AuthError

ALICE = SessionUser(id="1", email="alice@example.com", name="Alice", role="user")


class FakeSource:
    """Returns queued snapshots (or raises queued exceptions) in order."""

    def __init__(self, *results) -> None:
        self.results = list(results)
        self.calls = 0
        self.gate: Optional[asyncio.Event] = None

    async def fetch(self) -> SessionSnapshot:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, BaseException):
            raise result
        return result


UNAUTH = SessionSnapshot(SessionPhase.UNAUTHENTICATED)
AUTH = SessionSnapshot(SessionPhase.AUTHENTICATED, ALICE)


class TestRedirects:
    def test_required_and_unauthenticated_redirects_once(self) -> None:
        navigations: list[str] = []
        rendered: list[object] = []

        async def scenario() -> None:
            guard = SessionGuard(FakeSource(UNAUTH), navigations.append, GuardPolicy.require_auth())
            assert guard.is_loading
            assert guard.render("secret", loading="spinner") == "spinner"
            await guard.resolve()
            await guard.resolve()
            guard.observe(UNAUTH)
            rendered.append(guard.render("secret", loading="spinner", fallback=None))

        asyncio.run(scenario())
        assert navigations == ["/login"]
        assert rendered == [None]

    def test_redirect_if_authenticated(self) -> None:
        navigations: list[str] = []

        async def scenario() -> SessionGuard:
            guard = SessionGuard(FakeSource(AUTH), navigations.append, GuardPolicy.redirect_if_authenticated())
            await guard.resolve()
            return guard

        guard = asyncio.run(scenario())
        assert navigations == ["/"]
        assert guard.is_authenticated
        assert guard.user == ALICE

    def test_no_policy_never_navigates(self) -> None:
        navigations: list[str] = []

        async def scenario() -> None:
            guard = SessionGuard(FakeSource(UNAUTH), navigations.append)
            await guard.resolve()
            assert guard.is_ready

        asyncio.run(scenario())
        assert navigations == []

    def test_custom_redirect_target(self) -> None:
        navigations: list[str] = []

        async def scenario() -> None:
            guard = SessionGuard(FakeSource(UNAUTH), navigations.append, GuardPolicy.require_auth("/signin"))
            await guard.resolve()

        asyncio.run(scenario())
        assert navigations == ["/signin"]


class TestLifecycle:
    def test_content_renders_when_authenticated(self) -> None:
        async def scenario() -> object:
            guard = SessionGuard(FakeSource(AUTH), policy=GuardPolicy.require_auth())
            await guard.resolve()
            return guard.render("secret", loading="spinner", fallback="login")

        assert asyncio.run(scenario()) == "secret"

    def test_refresh_reenters_loading(self) -> None:
        navigations: list[str] = []
        phases: list[SessionPhase] = []

        async def scenario() -> None:
            source = FakeSource(AUTH, UNAUTH)
            guard = SessionGuard(source, navigations.append, GuardPolicy.require_auth())
            await guard.resolve()
            phases.append(guard.phase)
            source.gate = asyncio.Event()
            refresh = asyncio.ensure_future(guard.refresh())
            await asyncio.sleep(0)
            phases.append(guard.phase)
            assert guard.is_ready
            source.gate.set()
            await refresh
            phases.append(guard.phase)
            assert source.calls == 2

        asyncio.run(scenario())
        assert phases == [SessionPhase.AUTHENTICATED, SessionPhase.LOADING, SessionPhase.UNAUTHENTICATED]
        assert navigations == ["/login"]

    def test_concurrent_resolve_shares_fetch(self) -> None:
        async def scenario() -> int:
            source = FakeSource(AUTH)
            source.gate = asyncio.Event()
            guard = SessionGuard(source)
            first = asyncio.ensure_future(guard.resolve())
            second = asyncio.ensure_future(guard.resolve())
            await asyncio.sleep(0)
            source.gate.set()
            await asyncio.gather(first, second)
            return source.calls

        assert asyncio.run(scenario()) == 1

    def test_close_discards_late_result(self) -> None:
        navigations: list[str] = []

        async def scenario() -> SessionGuard:
            source = FakeSource(UNAUTH)
            source.gate = asyncio.Event()
            guard = SessionGuard(source, navigations.append, GuardPolicy.require_auth())
            pending = asyncio.ensure_future(guard.resolve())
            await asyncio.sleep(0)
            guard.close()
            source.gate.set()
            await pending
            return guard

        guard = asyncio.run(scenario())
        assert guard.closed
        assert guard.is_loading
        assert navigations == []

    def test_protect_passes_user(self) -> None:
        async def scenario() -> tuple[object, object]:
            allowed = SessionGuard(FakeSource(AUTH), policy=GuardPolicy.require_auth())
            denied = SessionGuard(FakeSource(UNAUTH), policy=GuardPolicy.require_auth())

            async def view(user: SessionUser) -> str:
                return f"hello {user.email}"

            return await allowed.protect(view)(), await denied.protect(view)()

        ok, blocked = asyncio.run(scenario())
        assert ok == "hello alice@example.com"
        assert blocked is None


class TestErrors:
    def test_fetch_failure_is_unauthenticated_with_message(self) -> None:
        navigations: list[str] = []
        seen: list[str] = []

        async def scenario() -> SessionGuard:
            guard = SessionGuard(
                FakeSource(AuthError(UNAUTHORIZED)),
                navigations.append,
                GuardPolicy.require_auth(),
                on_error=seen.append,
            )
            await guard.resolve()
            return guard

        guard = asyncio.run(scenario())
        assert guard.phase is SessionPhase.UNAUTHENTICATED
        assert navigations == ["/login"]
        assert seen == [UNAUTHORIZED.message]

    def test_unknown_failure_uses_generic_message(self) -> None:
        async def scenario() -> Optional[str]:
            guard = SessionGuard(FakeSource(RuntimeError("socket closed")))
            await guard.resolve()
            return guard.error

        assert asyncio.run(scenario()) == UNKNOWN.message

    def test_error_auto_dismisses(self) -> None:
        async def scenario() -> tuple[Optional[str], Optional[str]]:
            guard = SessionGuard(FakeSource(UNAUTH), error_dismiss_seconds=0.01)
            guard.set_error("Something failed")
            before = guard.error
            await asyncio.sleep(0.05)
            return before, guard.error

        assert asyncio.run(scenario()) == ("Something failed", None)

    def test_error_without_loop_persists(self) -> None:
        guard = SessionGuard(FakeSource(UNAUTH))
        guard.set_error("Stuck")
        assert guard.error == "Stuck"
        guard.clear_error()
        assert guard.error is None


def test_snapshot_for_store_user() -> None:
    user = User(email="bob@example.com", id=3, role="admin")
    snapshot = snapshot_for(user)
    assert snapshot.phase is SessionPhase.AUTHENTICATED
    assert snapshot.user.id == "3"
    assert snapshot.to_dict()["user"]["role"] == "admin"
    assert snapshot_for(None).to_dict() == {"phase": "unauthenticated", "user": None}
