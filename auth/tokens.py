"""
auth/tokens.py -- JWT access and refresh tokens.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry the
       user id as `sub`, a `type` claim ("access" or "refresh"), `iat`, `exp`
       and a random `jti`. The jti makes every issued token distinct even when
       two are minted for the same user in the same second.

  Token types: validate_token() accepts access tokens only. A refresh token
       presented as a bearer credential is rejected, so a leaked long-lived
       refresh token cannot be used directly against protected routes.
       Refresh-token exchange, rotation and revocation are not implemented.

  Verification returns None / False on any failure -- the route layer turns
       that into a 401.

JwtTokenIssuer satisfies the TokenIssuer protocol in auth/ports.py.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.errors import TokenError

if TYPE_CHECKING:
    from core.config import Settings

_ALGORITHM = "HS256"

ACCESS = "access"
REFRESH = "refresh"


class JwtTokenIssuer:
    """Mint and verify HS256 JWTs bound to a user id.

    Usage:
        issuer = JwtTokenIssuer(secret_key, access_expire_seconds=3600)
        token = issuer.generate_token(user.id)
        issuer.validate_token(token)  # True
    """

    def __init__(
        self,
        secret_key: str,
        access_expire_seconds: int = 3600,
        refresh_expire_seconds: int = 7 * 24 * 3600,
    ) -> None:
        self._secret_key = secret_key
        self.access_expire_seconds = access_expire_seconds
        self.refresh_expire_seconds = refresh_expire_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtTokenIssuer:
        return cls(
            settings.secret_key,
            access_expire_seconds=settings.access_token_expire_seconds,
            refresh_expire_seconds=settings.refresh_token_expire_seconds,
        )

    # ------------------------------------------------------------------
    # Encode
    # ------------------------------------------------------------------

    def generate_token(self, user_id: str) -> str:
        return self._encode(user_id, ACCESS, self.access_expire_seconds)

    def generate_refresh_token(self, user_id: str) -> str:
        return self._encode(user_id, REFRESH, self.refresh_expire_seconds)

    def _encode(self, user_id: str, token_type: str, expire_seconds: int) -> str:
        if not user_id:
            raise TokenError("Cannot issue a token without a user id")
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "type": token_type,
            "iat": now,
            "exp": now + timedelta(seconds=expire_seconds),
            "jti": secrets.token_hex(16),
        }
        try:
            return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)
        except JWTError as exc:
            raise TokenError("Failed to sign token") from exc

    # ------------------------------------------------------------------
    # Decode / validate
    # ------------------------------------------------------------------

    def decode_token(self, token: str, expected_type: str = ACCESS) -> dict | None:
        """Decode and verify a JWT. Returns the claims dict or None on any failure.

        Returning None (rather than raising) keeps callers simple: any invalid,
        expired or wrongly typed token is treated as unauthenticated.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError:
            return None
        if not payload.get("sub") or payload.get("type") != expected_type:
            return None
        return payload

    def validate_token(self, token: str) -> bool:
        return self.decode_token(token, ACCESS) is not None
