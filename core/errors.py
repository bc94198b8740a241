"""
core/errors.py -- Closed error catalog and failure-to-response mapping.

Every failure that leaves the system is re-expressed as an ErrorInfo
(message, HTTP status, optional code). Three kinds of input:

  AppError   -- raised by application code with an explicit message, status
                and code. Surfaced verbatim.
  AuthError  -- AppError tagged with a catalog entry. Code, status and default
                message come from the entry.
  anything   -- compatibility boundary for errors raised outside this code
                base: if str(exc) contains a catalog code, that entry is used;
                otherwise the generic auth/unknown fallback with status 500.

The raw text of an unknown exception is never returned to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.models import ErrorInfo


@dataclass(frozen=True)
class AuthErrorEntry:
    code: str
    message: str
    status: int = 400


INVALID_CREDENTIALS = AuthErrorEntry("auth/invalid-credentials", "Invalid email or password", 401)
USER_EXISTS = AuthErrorEntry("auth/user-exists", "An account with this email already exists", 400)
WEAK_PASSWORD = AuthErrorEntry("auth/weak-password", "Password should be at least 8 characters long", 400)
INVALID_EMAIL = AuthErrorEntry("auth/invalid-email", "Please enter a valid email address", 400)
USER_NOT_FOUND = AuthErrorEntry("auth/user-not-found", "No account found with this email", 404)
UNAUTHORIZED = AuthErrorEntry("auth/unauthorized", "You must be signed in to access this page", 401)
OAUTH_ACCOUNT_NOT_LINKED = AuthErrorEntry(
    "auth/oauth-account-not-linked", "This account is already linked to a different provider", 400
)
SESSION_REQUIRED = AuthErrorEntry("auth/session-required", "Please sign in to continue", 401)
DATABASE_ERROR = AuthErrorEntry("auth/database-error", "An error occurred while accessing the database", 500)
UNKNOWN = AuthErrorEntry("auth/unknown", "An unexpected error occurred. Please try again", 500)

CATALOG: tuple[AuthErrorEntry, ...] = (
    INVALID_CREDENTIALS,
    USER_EXISTS,
    WEAK_PASSWORD,
    INVALID_EMAIL,
    USER_NOT_FOUND,
    UNAUTHORIZED,
    OAUTH_ACCOUNT_NOT_LINKED,
    SESSION_REQUIRED,
    DATABASE_ERROR,
    UNKNOWN,
)

_BY_CODE: dict[str, AuthErrorEntry] = {entry.code: entry for entry in CATALOG}


class AppError(Exception):
    """Application error with an explicit user-safe message, status and code."""

    def __init__(self, message: str, status_code: int = 400, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(message=self.message, http_status=self.status_code, code=self.code)


class AuthError(AppError):
    """AppError carrying a catalog entry directly -- no string matching needed."""

    def __init__(self, entry: AuthErrorEntry, message: Optional[str] = None) -> None:
        super().__init__(message or entry.message, entry.status, entry.code)
        self.entry = entry


def lookup(code: str) -> Optional[AuthErrorEntry]:
    return _BY_CODE.get(code)


def get_auth_error(error: object) -> AuthErrorEntry:
    """Map an arbitrary error to a catalog entry (compatibility boundary).

    Tagged AuthErrors map to their entry. Other exceptions match when their
    text contains a catalog code; the first catalog match wins.
    """
    if isinstance(error, AuthError):
        return error.entry
    if isinstance(error, BaseException):
        text = str(error)
        for entry in CATALOG:
            if entry is not UNKNOWN and entry.code in text:
                return entry
    return UNKNOWN


def format_auth_error(error: object) -> str:
    """Return the user-facing message for any error, AuthErrorEntry included."""
    if isinstance(error, AuthErrorEntry):
        return error.message
    if isinstance(error, AppError):
        return error.message
    return get_auth_error(error).message


def resolve_error(error: object) -> ErrorInfo:
    """Reduce any failure to an ErrorInfo safe to send to a client."""
    if isinstance(error, AppError):
        return error.to_info()
    entry = get_auth_error(error)
    return ErrorInfo(message=entry.message, http_status=entry.status, code=entry.code)
