"""
auth/passwords.py -- bcrypt password hashing with timing equalization.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection feeds bcrypt a password longer than 72 bytes, which bcrypt 4.x
rejects. Direct usage has no compatibility shim.

bcrypt only looks at the first 72 bytes of its input. 5.x raises on anything
longer; 4.x silently truncates, so a stored 72-byte password would also
match itself plus any suffix. AuthService rejects such passwords at
registration (MAX_PASSWORD_BYTES) and verify() reports any longer input as a
mismatch before bcrypt sees it, on every bcrypt release.

The dummy hash lets AuthService run a full bcrypt comparison even when the
email is unknown, so response time does not reveal whether an address is
registered.
"""

from __future__ import annotations

import bcrypt

MAX_PASSWORD_BYTES = 72

_DUMMY_PASSWORD = b"credcore_timing_dummy"


class PasswordHasher:
    """bcrypt hash/verify bound to one cost factor.

    The dummy hash is computed once per instance, at construction, so the
    first login against an unknown email is not measurably slower than later
    ones.
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        self._dummy_hash = bcrypt.hashpw(_DUMMY_PASSWORD, bcrypt.gensalt(rounds=rounds)).decode("utf-8")

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt hash of the plaintext password."""
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str | None) -> bool:
        """Return True if `plain` matches `hashed`.

        A missing hash, or a plaintext longer than MAX_PASSWORD_BYTES, is
        compared against the dummy hash so the caller pays the same bcrypt
        cost, then reported as a mismatch.
        """
        if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
            self._check(plain.encode("utf-8")[:MAX_PASSWORD_BYTES].decode("utf-8", "ignore"), self._dummy_hash)
            return False
        if not hashed:
            self._check(plain, self._dummy_hash)
            return False
        return self._check(plain, hashed)

    @staticmethod
    def _check(plain: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # Over-long input or a malformed stored hash.
            return False
