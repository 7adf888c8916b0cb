"""
auth/ports.py -- Collaborator abstractions consumed by AuthService.

Pattern: Dependency Inversion. AuthService depends on these Protocols; the
concrete adapters (SqlCredentialStore, JwtTokenIssuer) and the in-memory test
doubles satisfy them structurally, without inheriting from them.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from typing import Protocol

from auth.models import User


class CredentialStore(Protocol):
    """
    Abstraction over user persistence.

    Implementations are responsible for:
    - Mapping between storage rows and the `User` domain model.
    - Assigning the opaque `User.id` on creation.
    - Enforcing email uniqueness authoritatively (a UNIQUE constraint or
      equivalent). AuthService's existence check is advisory only.
    """

    def create_user(self, user: User) -> None:
        """Persist a new user.

        Raises DuplicateEmailError on a uniqueness violation and StoreError on
        any other failure.
        """

        ...

    def get_user_by_email(self, email: str) -> User | None:
        """Return the user with the given email, or None. Raises StoreError on failure."""

        ...


class TokenIssuer(Protocol):
    """
    Abstraction over token minting and validation.

    validate_token() is not called by AuthService; it is surfaced for
    downstream authorization checks that only need a yes/no answer
    (auth/dependencies.py needs the claims too, so it decodes instead).
    """

    def generate_token(self, user_id: str) -> str:
        """Mint an access token bound to user_id. Raises TokenError on failure."""

        ...

    def generate_refresh_token(self, user_id: str) -> str:
        """Mint a refresh token bound to user_id. Raises TokenError on failure."""

        ...

    def validate_token(self, token: str) -> bool:
        """Return True if `token` is a live access token issued by this issuer."""

        ...
