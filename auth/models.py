"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the service, stores and routes do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

BEARER = "Bearer"


@dataclass(frozen=True)
class User:
    """An identity record.

    id is assigned by the CredentialStore on creation and is None on the shell
    passed to AuthService.register(). hashed_password is None on that shell
    too -- the service hashes the plaintext onto the copy it persists.

    Frozen so the service can only derive new records (dataclasses.replace)
    rather than mutate a caller's instance.
    """

    email: str
    name: str
    id: str | None = None
    hashed_password: str | None = field(default=None, repr=False)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class LoginCredentials:
    """Transient login input. Never persisted."""

    email: str
    password: str

    def __repr__(self) -> str:
        # Keep the plaintext out of logs and tracebacks.
        return f"LoginCredentials(email={self.email!r}, password='***')"


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a successful login. Built per call, never retained by the core."""

    user: User
    access_token: str
    refresh_token: str
    token_type: str = BEARER
