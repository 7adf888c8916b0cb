"""
auth/service.py -- AuthService: login and registration orchestration.

Pattern: Application service over injected collaborators. AuthService holds a
CredentialStore and a TokenIssuer (auth/ports.py) plus a PasswordHasher, set
once at construction. It keeps no other state, performs no I/O itself and
needs no locking -- concurrent calls are independent.

Error policy:
  Every collaborator failure is translated into exactly one AuthError kind and
  raised with the original exception chained as __cause__. Nothing is logged
  or swallowed here; the transport layer decides what to log and which status
  code to return.

Enumeration resistance:
  An unknown email, a failed lookup and a wrong password all raise the same
  InvalidCredentials, and all three run one bcrypt comparison so their timing
  matches too.

Layer rule: no imports from api/, auth/store.py or auth/tokens.py.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone

from auth.context import RequestContext
from auth.errors import (
    DuplicateEmailError,
    InvalidCredentials,
    InvalidInput,
    PersistenceFailed,
    StoreError,
    TokenError,
    TokenIssuanceFailed,
    UserAlreadyExists,
)
from auth.models import BEARER, LoginCredentials, LoginResult, User
from auth.passwords import MAX_PASSWORD_BYTES, PasswordHasher
from auth.ports import CredentialStore, TokenIssuer

MIN_PASSWORD_LENGTH = 8


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """Stateless orchestrator for login and registration.

    Usage:
        service = AuthService(SqlCredentialStore(url), JwtTokenIssuer(secret))
        service.register(User(email="a@x.com", name="A"), "longenough")
        result = service.login(LoginCredentials("a@x.com", "longenough"))
    """

    __slots__ = ("_store", "_tokens", "_hasher")

    def __init__(
        self,
        store: CredentialStore,
        tokens: TokenIssuer,
        hasher: PasswordHasher | None = None,
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._hasher = hasher or PasswordHasher()

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, credentials: LoginCredentials, ctx: RequestContext | None = None) -> LoginResult:
        """Authenticate by email/password and issue a bearer token pair.

        Raises:
            InvalidInput:        email or password empty. The store is not called.
            InvalidCredentials:  unknown email, failed lookup, or wrong password.
            TokenIssuanceFailed: the issuer could not mint either token.
            OperationCancelled:  ctx was cancelled before a collaborator call.
        """
        email = normalize_email(credentials.email)
        if not email or not credentials.password:
            raise InvalidInput("Email and password are required.")

        _check(ctx)
        try:
            user = self._store.get_user_by_email(email)
        except StoreError as exc:
            # Same cost and same error as a wrong password.
            self._hasher.verify(credentials.password, None)
            raise InvalidCredentials() from exc

        if not self._hasher.verify(credentials.password, user.hashed_password if user else None):
            raise InvalidCredentials()

        _check(ctx)
        try:
            access_token = self._tokens.generate_token(user.id)
        except TokenError as exc:
            raise TokenIssuanceFailed() from exc

        _check(ctx)
        try:
            refresh_token = self._tokens.generate_refresh_token(user.id)
        except TokenError as exc:
            raise TokenIssuanceFailed("Failed to generate refresh token.") from exc

        return LoginResult(
            user=user,
            access_token=access_token,
            refresh_token=refresh_token,
            token_type=BEARER,
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, user: User, password: str, ctx: RequestContext | None = None) -> None:
        """Validate, duplicate-check, stamp and persist a new user.

        The existence check is advisory: two concurrent registrations for the
        same email can both pass it. The store's uniqueness constraint is the
        authority, and a DuplicateEmailError from create_user() is reported as
        UserAlreadyExists, not PersistenceFailed.

        A lookup that errors (rather than finding a user) does not block
        registration; create_user() still gets the final say.

        The caller's `user` is not modified.
        """
        email = normalize_email(user.email)
        _validate_registration(email, user.name, password)

        _check(ctx)
        try:
            existing = self._store.get_user_by_email(email)
        except StoreError:
            existing = None
        if existing is not None:
            raise UserAlreadyExists()

        now = datetime.now(timezone.utc)
        record = dataclasses.replace(
            user,
            email=email,
            name=user.name.strip(),
            hashed_password=self._hasher.hash(password),
            created_at=now,
            updated_at=now,
        )

        _check(ctx)
        try:
            self._store.create_user(record)
        except DuplicateEmailError as exc:
            raise UserAlreadyExists() from exc
        except StoreError as exc:
            raise PersistenceFailed() from exc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _check(ctx: RequestContext | None) -> None:
    if ctx is not None:
        ctx.check()


def _validate_registration(email: str, name: str, password: str) -> None:
    if not email or not name.strip():
        raise InvalidInput("Email and name are required.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise InvalidInput(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long.")
