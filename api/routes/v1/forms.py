"""
api/routes/v1/forms.py -- Live form feedback for the sign-up / sign-in UI.

Routes:
  POST /api/v1/forms/validate           -- run a named form's rule sets
  POST /api/v1/forms/password-strength  -- strength tier + requirement checklist

Both are pure functions of the request body; nothing is stored. They exist so
a browser can show the same messages the server will enforce on submit.
"""

from fastapi import APIRouter

from api.models import (
    FormName,
    FormValidateRequest,
    FormValidateResponse,
    PasswordStrengthRequest,
    PasswordStrengthResponse,
    RequirementRow,
    StrengthDetail,
)
from core.strength import password_requirements, score_password
from core.validation import profile_rules, sign_in_rules, sign_up_rules, validate_form

router = APIRouter()

_FORM_RULES = {
    FormName.signup: sign_up_rules,
    FormName.signin: sign_in_rules,
    FormName.profile: profile_rules,
}


@router.post("/forms/validate", response_model=FormValidateResponse)
async def validate(body: FormValidateRequest) -> FormValidateResponse:
    result = validate_form(body.values, _FORM_RULES[body.form]())
    return FormValidateResponse.from_result(result)


@router.post("/forms/password-strength", response_model=PasswordStrengthResponse)
async def password_strength(body: PasswordStrengthRequest) -> PasswordStrengthResponse:
    result = score_password(body.password)
    return PasswordStrengthResponse(
        strength=StrengthDetail.from_result(result) if result is not None else None,
        requirements=[RequirementRow(label=label, met=met) for label, met in password_requirements(body.password)],
    )
