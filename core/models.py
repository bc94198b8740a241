from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# Canonical email shape: local@domain.tld with no whitespace and a single "@"
# on each side of the split. All layers that validate emails import from here.
EMAIL_PATTERN = r"[^\s@]+@[^\s@]+\.[^\s@]+"
PASSWORD_MIN_LENGTH = 8
PASSWORD_STRONG_LENGTH = 12
SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'
# Compared case-insensitively.
COMMON_PASSWORDS = frozenset({"password", "12345678", "qwerty123"})


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a form against its rule sets.

    errors only carries fields that failed; each list keeps rule order.
    """

    errors: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not any(self.errors.values())

    def first_error(self, field_name: str) -> Optional[str]:
        messages = self.errors.get(field_name)
        return messages[0] if messages else None


class StrengthTier(str, Enum):
    VERY_WEAK = "very_weak"
    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"
    VERY_STRONG = "very_strong"


@dataclass(frozen=True)
class StrengthResult:
    score: int  # 0..6
    tier: StrengthTier
    label: str


@dataclass(frozen=True)
class ErrorInfo:
    """User-safe error triple produced by core.errors.resolve_error()."""

    message: str
    http_status: int
    code: Optional[str] = None
