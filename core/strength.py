"""
core/strength.py -- Password strength scoring for UI feedback.

Six independent checks, one point each. The score maps to a tier by taking
the highest threshold the score reaches. The mapping is deliberately coarse:
a score of 1 is still "Very weak".

The empty password has no strength at all -- score_password("") returns None
so callers render nothing instead of a "Very weak" meter.
"""

from typing import Optional

from core.models import PASSWORD_MIN_LENGTH, PASSWORD_STRONG_LENGTH, StrengthResult, StrengthTier
from core.validation import has_lowercase, has_number, has_special_char, has_uppercase

_CHECKS = (
    ("At least 8 characters", lambda p: len(p) >= PASSWORD_MIN_LENGTH),
    ("One uppercase letter", has_uppercase.test),
    ("One lowercase letter", has_lowercase.test),
    ("One number", has_number.test),
    ("One special character", has_special_char.test),
    ("12+ characters (recommended)", lambda p: len(p) >= PASSWORD_STRONG_LENGTH),
)

# Ascending thresholds. Highest threshold <= score wins.
_TIERS = (
    (0, StrengthTier.VERY_WEAK, "Very weak"),
    (2, StrengthTier.WEAK, "Weak"),
    (3, StrengthTier.MEDIUM, "Medium"),
    (4, StrengthTier.STRONG, "Strong"),
    (6, StrengthTier.VERY_STRONG, "Very strong"),
)

MAX_SCORE = len(_CHECKS)


def tier_for_score(score: int) -> tuple[StrengthTier, str]:
    tier, label = _TIERS[0][1], _TIERS[0][2]
    for threshold, candidate, candidate_label in _TIERS:
        if score >= threshold:
            tier, label = candidate, candidate_label
    return tier, label


def score_password(password: str) -> Optional[StrengthResult]:
    """Score a password 0..6 and map it to a tier. Returns None for ""."""
    if not password:
        return None
    score = sum(1 for _, check in _CHECKS if check(password))
    tier, label = tier_for_score(score)
    return StrengthResult(score=score, tier=tier, label=label)


def password_requirements(password: str) -> list[tuple[str, bool]]:
    """Return the ordered (label, met) checklist shown next to the meter."""
    return [(label, bool(check(password))) for label, check in _CHECKS]
