"""
auth/forms.py -- Sign-in / sign-up form controller.

Holds the field values and per-field error lists a form view renders.
Typing goes through change(), which debounces validation per field via
core.scheduling. submit() validates the whole form synchronously, then talks
to the API through AuthClient.

A failed submission shows one form-level error (key "form") that clears
itself after FORM_ERROR_DISMISS_SECONDS.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Optional

from auth.client import AuthClient
from core.errors import AppError, format_auth_error
from core.scheduling import FieldValidationScheduler
from core.validation import sign_in_rules, sign_up_rules, validate_form

logger = logging.getLogger("authgate.forms")

FORM_ERROR_KEY = "form"
FORM_ERROR_DISMISS_SECONDS = 5.0
VALIDATION_DELAY_SECONDS = 0.3


class FormMode(str, Enum):
    SIGN_IN = "signin"
    SIGN_UP = "signup"


class AuthForm:
    def __init__(
        self,
        mode: FormMode,
        client: AuthClient,
        *,
        navigate: Optional[Callable[[str], None]] = None,
        success_path: str = "/protected",
        validation_delay: float = VALIDATION_DELAY_SECONDS,
        error_dismiss_seconds: float = FORM_ERROR_DISMISS_SECONDS,
    ) -> None:
        self.mode = mode
        self.values: dict[str, str] = {"email": "", "password": ""}
        self.errors: dict[str, list[str]] = {}
        self.is_loading = False
        self.success_path = success_path
        self._client = client
        self._navigate = navigate
        self._rules = sign_up_rules() if mode is FormMode.SIGN_UP else sign_in_rules()
        self._error_dismiss_seconds = error_dismiss_seconds
        self._dismiss: Optional[asyncio.TimerHandle] = None
        self._scheduler = FieldValidationScheduler(validation_delay, self._field_validated, rule_sets=self._rules)

    @property
    def form_error(self) -> Optional[str]:
        messages = self.errors.get(FORM_ERROR_KEY)
        return messages[0] if messages else None

    def change(self, field: str, value: str) -> None:
        """Record a keystroke and schedule debounced validation for that field."""
        self.values[field] = value
        self._scheduler.schedule(field, value)

    async def settle(self) -> None:
        """Wait for pending debounced validations to fire."""
        await self._scheduler.drain()

    def validate(self) -> bool:
        result = validate_form(self.values, self._rules)
        self.errors = dict(result.errors)
        return result.is_valid

    async def submit(self) -> bool:
        """Validate, then register (sign-up only) and sign in. Returns True on success."""
        self._scheduler.cancel_all()
        if not self.validate():
            return False

        email, password = self.values["email"], self.values["password"]
        self.is_loading = True
        self.errors = {}
        try:
            if self.mode is FormMode.SIGN_UP:
                await asyncio.to_thread(self._client.register, email, password)
            await asyncio.to_thread(self._client.sign_in, email, password)
        except AppError as exc:
            logger.info("Form submission failed: %s", exc.code)
            self._set_form_error(format_auth_error(exc))
            return False
        finally:
            self.is_loading = False

        if self._navigate is not None:
            self._navigate(self.success_path)
        return True

    def close(self) -> None:
        self._scheduler.cancel_all()
        if self._dismiss is not None:
            self._dismiss.cancel()
            self._dismiss = None

    def _field_validated(self, field: str, messages: list[str]) -> None:
        if messages:
            self.errors[field] = messages
        else:
            self.errors.pop(field, None)

    def _set_form_error(self, message: str) -> None:
        if self._dismiss is not None:
            self._dismiss.cancel()
        self.errors[FORM_ERROR_KEY] = [message]
        loop = asyncio.get_running_loop()
        self._dismiss = loop.call_later(self._error_dismiss_seconds, self._clear_form_error)

    def _clear_form_error(self) -> None:
        self._dismiss = None
        self.errors.pop(FORM_ERROR_KEY, None)
