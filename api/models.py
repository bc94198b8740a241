"""
API request and response models for AuthGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.

POST /auth/register has no request model: the registration pipeline reads the
raw JSON body itself so missing fields surface as MISSING_FIELD (400) rather
than FastAPI's generic 422.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models import StrengthResult, ValidationResult

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class FormName(str, Enum):
    signup = "signup"
    signin = "signin"
    profile = "profile"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(min_length=1, max_length=320)
    # Bounds request size; auth.tokens truncates bcrypt input to 72 bytes.
    password: str = Field(min_length=1, max_length=255)


class FormValidateRequest(BaseModel):
    """Request body for POST /api/v1/forms/validate."""

    form: FormName
    values: dict[str, Optional[str]] = Field(default_factory=dict)


class PasswordStrengthRequest(BaseModel):
    password: str = Field(default="", max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    error: str
    code: Optional[str] = None


class RegisteredUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str


class RegisterResponse(BaseModel):
    """Response body for POST /api/v1/auth/register. Only non-sensitive fields."""

    model_config = ConfigDict(frozen=True)

    message: str
    user: RegisteredUser


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str
    expires_in: int
    email: str
    role: str


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    name: Optional[str] = None
    role: str


class SessionUserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: Optional[str] = None
    role: str


class SessionResponse(BaseModel):
    """Response for GET /api/v1/auth/session. Always 200; phase says who is signed in."""

    model_config = ConfigDict(frozen=True)

    phase: str
    user: Optional[SessionUserResponse] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: Optional[str] = None
    role: str
    is_active: bool
    created_at: str


class FormValidateResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    errors: dict[str, list[str]]

    @classmethod
    def from_result(cls, result: ValidationResult) -> "FormValidateResponse":
        return cls(is_valid=result.is_valid, errors=result.errors)


class StrengthDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int
    tier: str
    label: str

    @classmethod
    def from_result(cls, result: StrengthResult) -> "StrengthDetail":
        return cls(score=result.score, tier=result.tier.value, label=result.label)


class RequirementRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    met: bool


class PasswordStrengthResponse(BaseModel):
    """strength is null for the empty password -- nothing to score."""

    model_config = ConfigDict(frozen=True)

    strength: Optional[StrengthDetail] = None
    requirements: list[RequirementRow]


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
