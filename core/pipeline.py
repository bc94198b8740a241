"""
core/pipeline.py -- Registration request pipeline.

rate limit -> required fields -> email format -> password rules ->
common-password check -> duplicate account -> create -> success envelope.

Each step short-circuits by raising AppError with a stable code. The route
layer turns the error into a response via core.errors.resolve_error(); this
module never builds HTTP responses itself.

The common-password check deliberately runs even though the default password
rule set already contains no_common_passwords. Both must pass independently
so that narrowing password_rules never lets a denylisted password through.

The credential store is injected. It is called at most twice: one read
(find_by_email) and one write (create). Store failures are not retried; any
exception the store raises, whatever its backend, becomes DATABASE_ERROR,
except an IntegrityError on create, which means a concurrent duplicate.
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Optional, Protocol

from sqlalchemy.exc import IntegrityError

from core.errors import DATABASE_ERROR, INVALID_EMAIL, USER_EXISTS, AppError
from core.ratelimit import SlidingWindowRateLimiter
from core.validation import RULE_SETS, Rule, email_format, is_common_password, validate_field

logger = logging.getLogger("authgate.pipeline")

REQUIRED_FIELDS = ("email", "password")
REGISTERED_MESSAGE = "User created successfully"


class CredentialStore(Protocol):
    def find_by_email(self, email: str) -> Optional[Any]: ...

    def create(self, email: str, password_hash: str) -> Any: ...


def check_required(body: Mapping[str, Any], fields: Sequence[str]) -> None:
    """Raise MISSING_FIELD for the first field that is absent or empty."""
    for name in fields:
        if not body.get(name):
            raise AppError(f"{name} is required", 400, "MISSING_FIELD")


def register_user(
    body: Any,
    client_key: str,
    *,
    limiter: SlidingWindowRateLimiter,
    store: CredentialStore,
    hasher: Callable[[str], str],
    password_rules: Sequence[Rule] = RULE_SETS["password"],
) -> dict[str, Any]:
    """Run the registration pipeline and return the success envelope.

    body is the decoded JSON request body (None when it could not be parsed).
    Raises AppError on every rejection.
    """
    if not limiter.allow(client_key):
        logger.info("Registration rate limit exceeded for %s", client_key)
        raise AppError("Too many requests, please try again later", 429, "RATE_LIMIT_EXCEEDED")

    if not isinstance(body, Mapping):
        raise AppError("Request body must be a JSON object", 400, "INVALID_BODY")

    check_required(body, REQUIRED_FIELDS)
    email, password = body["email"], body["password"]
    if not isinstance(email, str) or not isinstance(password, str):
        raise AppError("email and password must be strings", 400, "INVALID_BODY")

    if validate_field(email, (email_format,)):
        raise AppError(INVALID_EMAIL.message, 400, "INVALID_EMAIL")

    password_errors = validate_field(password, password_rules)
    if password_errors:
        raise AppError(password_errors[0], 400, "INVALID_PASSWORD")

    if is_common_password(password):
        raise AppError("Please choose a stronger password", 400, "COMMON_PASSWORD")

    try:
        existing = store.find_by_email(email)
    except Exception as exc:
        logger.error("Credential store lookup failed: %s", type(exc).__name__)
        raise AppError(DATABASE_ERROR.message, 500, "DATABASE_ERROR") from exc
    if existing is not None:
        logger.info("Registration rejected: account already exists")
        raise AppError(USER_EXISTS.message, 400, "USER_EXISTS")

    password_hash = hasher(password)
    try:
        user = store.create(email, password_hash)
    except IntegrityError as exc:
        # A concurrent request created the same email between lookup and insert.
        raise AppError(USER_EXISTS.message, 400, "USER_EXISTS") from exc
    except Exception as exc:
        logger.error("Credential store create failed: %s", type(exc).__name__)
        raise AppError(DATABASE_ERROR.message, 500, "DATABASE_ERROR") from exc

    logger.info("Registered user id=%s", user.id)
    return {"message": REGISTERED_MESSAGE, "user": {"id": user.id, "email": user.email}}
