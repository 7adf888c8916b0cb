"""
auth/errors.py -- Error taxonomy for the credential-issuance core.

Two families live here:

  AuthError and its subclasses are what AuthService raises. Each carries a
  machine-readable `code` and a human-readable `message`. The HTTP layer maps
  the class to a status code; nothing in auth/ knows about HTTP.

  StoreError / DuplicateEmailError / TokenError are raised by collaborator
  adapters (auth/store.py, auth/tokens.py, or any test double). AuthService
  translates each of them into exactly one AuthError kind.

OperationCancelled is deliberately outside the AuthError family: it reports a
caller-side cancellation or deadline, not an authentication outcome.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every failure AuthService reports to its caller."""

    code: str = "auth_error"
    default_message: str = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class InvalidInput(AuthError):
    """Malformed or missing required fields. Caller error, not retried."""

    code = "invalid_input"
    default_message = "Invalid input."


class InvalidCredentials(AuthError):
    """Unknown email or wrong password -- deliberately indistinguishable."""

    code = "invalid_credentials"
    default_message = "Invalid credentials."


class UserAlreadyExists(AuthError):
    code = "user_already_exists"
    default_message = "User already exists."


class TokenIssuanceFailed(AuthError):
    code = "token_issuance_failed"
    default_message = "Failed to generate access token."


class PersistenceFailed(AuthError):
    code = "persistence_failed"
    default_message = "Failed to create user."


# ---------------------------------------------------------------------------
# Collaborator-side errors
# ---------------------------------------------------------------------------


class StoreError(Exception):
    """A CredentialStore operation could not complete."""


class DuplicateEmailError(StoreError):
    """create_user() hit the store's unique-email constraint."""


class TokenError(Exception):
    """A TokenIssuer could not mint a token."""


class OperationCancelled(Exception):
    """The caller's RequestContext was cancelled or its deadline passed."""
