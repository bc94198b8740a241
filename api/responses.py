"""
api/responses.py -- Uniform error response shaping.

Every error leaving the API goes through error_response(), which reduces the
failure with core.errors.resolve_error() and renders the {error, code}
envelope. Route handlers that need extra headers (Retry-After, Cache-Control)
call it directly; everything else reaches it via the exception handlers in
api/main.py.
"""

from __future__ import annotations

import math
from typing import Optional

from fastapi.responses import JSONResponse

from api.models import ErrorResponse
from core.errors import resolve_error


def error_response(error: object, headers: Optional[dict[str, str]] = None) -> JSONResponse:
    info = resolve_error(error)
    return JSONResponse(
        status_code=info.http_status,
        content=ErrorResponse(error=info.message, code=info.code).model_dump(),
        headers=headers,
    )


def retry_after_headers(seconds: float) -> dict[str, str]:
    """Retry-After in whole seconds, never below 1."""
    return {"Retry-After": str(max(1, math.ceil(seconds)))}
