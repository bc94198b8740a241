"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these only own the shape.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """An account in the credential store.

    hashed_password is a bcrypt hash and never leaves the auth layer; API
    responses are built from id/email/name/role only.
    """

    email: str
    id: int | None = None
    hashed_password: str | None = None
    name: str | None = None
    role: str = "user"  # "user", "admin"
    created_at: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class SessionUser:
    """Non-sensitive identity summary handed to guarded views and session clients."""

    id: str
    email: str
    name: str | None = None
    role: str = "user"

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "name": self.name, "role": self.role}

    @classmethod
    def from_dict(cls, data: dict) -> SessionUser:
        return cls(
            id=str(data.get("id", "")),
            email=data.get("email") or "",
            name=data.get("name"),
            role=data.get("role") or "user",
        )
