"""
auth/session.py -- Server-side session helpers and the minimal role check.

Works on both store Users and SessionUser summaries; only email and role
are read. Authorization is intentionally minimal: admins may do anything,
everyone else nothing beyond being signed in.
"""

from __future__ import annotations

from typing import Optional, Union

from auth.models import SessionUser, User
from core.errors import SESSION_REQUIRED, UNAUTHORIZED, AuthError

Identity = Union[User, SessionUser]

ADMIN_ROLE = "admin"


def session_user(user: Optional[User]) -> Optional[SessionUser]:
    """Reduce a store User to the identity fields safe to hand to views."""
    if user is None:
        return None
    return SessionUser(id=str(user.id), email=user.email, name=user.name, role=user.role or "user")


def validate_session(user: Optional[Identity]) -> Identity:
    """Return user if it is a usable session identity, else raise a catalog error."""
    if user is None:
        raise AuthError(UNAUTHORIZED)
    if not user.email:
        raise AuthError(SESSION_REQUIRED)
    return user


def is_admin(user: Optional[Identity]) -> bool:
    return user is not None and user.role == ADMIN_ROLE


def has_permission(user: Optional[Identity], required_permissions: list[str]) -> bool:
    """Admins hold every permission; other users only pass when nothing is required."""
    if user is None:
        return False
    return is_admin(user) or not required_permissions
