"""
api/preflight.py -- Fixed CORS preflight answers for public endpoints.

CORSMiddleware answers every OPTIONS request that carries Origin and
Access-Control-Request-Method itself, checked against allowed_origins.
Registration must accept preflights from any origin, so its path is answered
here with a 204 and the permissive header set before CORSMiddleware sees it.

Pure ASGI rather than BaseHTTPMiddleware: the request body is never read and
no response is wrapped.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send


class PreflightMiddleware:
    """Answer OPTIONS on the given paths with 204 and fixed headers."""

    def __init__(self, app: ASGIApp, paths: Iterable[str], headers: Mapping[str, str]) -> None:
        self.app = app
        self.paths = frozenset(paths)
        self.headers = dict(headers)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["method"] == "OPTIONS" and scope["path"] in self.paths:
            response = Response(status_code=204, headers=self.headers)
            await response(scope, receive, send)
            return
        await self.app(scope, receive, send)
