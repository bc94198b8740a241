"""
auth/client.py -- HTTP client for the AuthGate API, plus a SessionSource on top of it.

Module-level defaults mirror a browser talking to the API: one requests
Session per client so the access_token cookie set by sign_in() rides along
on later calls.

Non-2xx responses raise AppError built from the {error, code} envelope, so
callers surface the server's message and code unchanged. Transport failures
raise AppError with the auth/unknown catalog message -- the caller never
sees raw socket errors.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import requests

from auth.guard import SessionPhase, SessionSnapshot
from auth.models import SessionUser
from core.errors import UNKNOWN, AppError

logger = logging.getLogger("authgate.client")

_TIMEOUT = 10


class AuthClient:
    def __init__(self, base_url: str, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.max_redirects = 3

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def register(self, email: str, password: str) -> dict[str, Any]:
        return self._request("POST", "/api/v1/auth/register", json={"email": email, "password": password})

    def sign_in(self, email: str, password: str) -> dict[str, Any]:
        return self._request("POST", "/api/v1/auth/login", json={"email": email, "password": password})

    def sign_out(self) -> dict[str, Any]:
        return self._request("POST", "/api/v1/auth/logout")

    def session(self) -> SessionSnapshot:
        data = self._request("GET", "/api/v1/auth/session")
        phase = SessionPhase(data.get("phase", SessionPhase.UNAUTHENTICATED.value))
        user = data.get("user")
        if phase is SessionPhase.AUTHENTICATED and user:
            return SessionSnapshot(phase, SessionUser.from_dict(user))
        return SessionSnapshot(SessionPhase.UNAUTHENTICATED)

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = self._session.request(method, f"{self.base_url}{path}", timeout=_TIMEOUT, **kwargs)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise AppError(UNKNOWN.message, 503, UNKNOWN.code) from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if resp.ok:
            return data
        raise AppError(data.get("error") or UNKNOWN.message, resp.status_code, data.get("code"))


class HttpSessionSource:
    """SessionSource that asks the API who is signed in.

    requests is blocking, so the call runs in a worker thread.
    """

    def __init__(self, client: AuthClient) -> None:
        self._client = client

    async def fetch(self) -> SessionSnapshot:
        return await asyncio.to_thread(self._client.session)
