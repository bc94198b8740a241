"""
core/validation.py -- Composable rule-based field and form validation.

A Rule is a predicate plus the message shown when the predicate fails. Rules
are grouped into ordered rule sets per field; forms map field names to rule
sets. Everything here is pure: same input, same output, no state retained.

Rule order matters -- validate_field() reports every failing message in the
order the rules were declared, so the first message is the most basic
problem (e.g. "required" before "too short").
"""

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Optional

from core.models import (
    COMMON_PASSWORDS,
    EMAIL_PATTERN,
    PASSWORD_MIN_LENGTH,
    SPECIAL_CHARACTERS,
    ValidationResult,
)

_EMAIL_RE = re.compile(EMAIL_PATTERN)
_DIGIT_RE = re.compile(r"[0-9]")
_UPPER_RE = re.compile(r"[A-Z]")
_LOWER_RE = re.compile(r"[a-z]")
_SPECIAL_RE = re.compile(f"[{re.escape(SPECIAL_CHARACTERS)}]")


@dataclass(frozen=True)
class Rule:
    test: Callable[[str], bool]
    message: str

    def __call__(self, value: str) -> bool:
        return self.test(value)


RuleSet = Sequence[Rule]
FormRules = Mapping[str, RuleSet]


# ---------------------------------------------------------------------------
# Rule factories and fixed rules
# ---------------------------------------------------------------------------


def required(field_name: str) -> Rule:
    return Rule(lambda value: len(value.strip()) > 0, f"{field_name} is required")


def min_length(length: int) -> Rule:
    return Rule(lambda value: len(value) >= length, f"Must be at least {length} characters long")


def max_length(length: int) -> Rule:
    return Rule(lambda value: len(value) <= length, f"Must be no more than {length} characters long")


def is_valid_email(value: str) -> bool:
    return _EMAIL_RE.fullmatch(value) is not None


def has_special_character(value: str) -> bool:
    return _SPECIAL_RE.search(value) is not None


def is_common_password(value: str) -> bool:
    return value.lower() in COMMON_PASSWORDS


email_format = Rule(is_valid_email, "Please enter a valid email address")
has_number = Rule(lambda value: _DIGIT_RE.search(value) is not None, "Must contain at least one number")
has_uppercase = Rule(lambda value: _UPPER_RE.search(value) is not None, "Must contain at least one uppercase letter")
has_lowercase = Rule(lambda value: _LOWER_RE.search(value) is not None, "Must contain at least one lowercase letter")
has_special_char = Rule(has_special_character, "Must contain at least one special character")
no_common_passwords = Rule(lambda value: not is_common_password(value), "This password is too common")


# ---------------------------------------------------------------------------
# Predefined rule sets
# ---------------------------------------------------------------------------

RULE_SETS: dict[str, tuple[Rule, ...]] = {
    "email": (required("Email"), email_format),
    "password": (
        required("Password"),
        min_length(PASSWORD_MIN_LENGTH),
        has_number,
        has_uppercase,
        has_special_char,
        no_common_passwords,
    ),
    "name": (required("Name"), min_length(2), max_length(50)),
}


def sign_up_rules() -> dict[str, tuple[Rule, ...]]:
    return {"email": RULE_SETS["email"], "password": RULE_SETS["password"]}


def sign_in_rules() -> dict[str, tuple[Rule, ...]]:
    """Sign-in only checks presence of the password; strength rules apply at sign-up."""
    return {"email": RULE_SETS["email"], "password": RULE_SETS["password"][:1]}


def profile_rules() -> dict[str, tuple[Rule, ...]]:
    return {"email": RULE_SETS["email"], "name": RULE_SETS["name"]}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_field(value: Optional[str], rules: RuleSet) -> list[str]:
    """Return the messages of every failing rule, in rule order.

    None is treated as the empty string. An empty rule set always passes.
    """
    text = "" if value is None else value
    return [rule.message for rule in rules if not rule.test(text)]


def validate_form(values: Mapping[str, Optional[str]], rules: FormRules) -> ValidationResult:
    """Validate each declared field. Fields in values without rules are ignored.

    A declared field absent from values is validated as "".
    """
    errors: dict[str, list[str]] = {}
    for field_name, field_rules in rules.items():
        messages = validate_field(values.get(field_name), field_rules)
        if messages:
            errors[field_name] = messages
    return ValidationResult(errors=errors)
