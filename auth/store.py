"""
auth/store.py -- SQLAlchemy Core persistence for user records.

Pattern: Repository + Data Mapper. SqlCredentialStore is the repository and
satisfies the CredentialStore protocol; _row_to_user / _user_to_row are the
mappers. AuthService never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is the authoritative duplicate guard. AuthService checks for
  an existing user first, but two concurrent registrations can both pass that
  check; the second INSERT then fails here and surfaces as
  DuplicateEmailError.

Errors:
  Every SQLAlchemyError is re-raised as StoreError (or DuplicateEmailError for
  a unique-email violation) so callers depend on auth.errors, not on the
  driver.

Timestamps are stored as ISO 8601 strings and mapped back to aware datetimes.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateEmailError, StoreError
from auth.models import User

logger = logging.getLogger("credcore.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),  # uuid4 hex
    Column("email", String(320), nullable=False, unique=True),
    Column("name", String(255), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SqlCredentialStore:
    """CredentialStore backed by any SQLAlchemy URL (SQLite by default).

    Usage:
        store = SqlCredentialStore("sqlite:///credcore.db")
        store.create_user(User(email="a@x.com", name="A", hashed_password=h, ...))
        user = store.get_user_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str, **engine_kwargs) -> None:
        """engine_kwargs are passed through to create_engine (e.g. poolclass)."""
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def create_user(self, user: User) -> None:
        """Insert a new user under a freshly assigned opaque id.

        Raises DuplicateEmailError if the email is already taken and
        StoreError on any other database failure.
        """
        if user.hashed_password is None or user.created_at is None or user.updated_at is None:
            raise StoreError("User record must carry a password hash and timestamps")
        try:
            with self.engine.connect() as conn:
                conn.execute(_users.insert().values(id=uuid.uuid4().hex, **_user_to_row(user)))
                conn.commit()
        except IntegrityError as exc:
            # id is a fresh uuid4, so the only constraint left to hit is UNIQUE(email).
            raise DuplicateEmailError(f"Email already registered: {user.email}") from exc
        except SQLAlchemyError as exc:
            logger.error("create_user failed: %s", exc.__class__.__name__)
            raise StoreError("Failed to insert user") from exc

    def get_user_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        except SQLAlchemyError as exc:
            logger.error("get_user_by_email failed: %s", exc.__class__.__name__)
            raise StoreError("Failed to look up user") from exc
        return _row_to_user(row) if row is not None else None

    def get_user_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found.

        Not part of the CredentialStore protocol -- used by the bearer-token
        dependency to resolve a token's subject.
        """
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        except SQLAlchemyError as exc:
            logger.error("get_user_by_id failed: %s", exc.__class__.__name__)
            raise StoreError("Failed to look up user") from exc
        return _row_to_user(row) if row is not None else None

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(_users.select().limit(1))
        except SQLAlchemyError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _user_to_row(user: User) -> dict:
    return {
        "email": user.email,
        "name": user.name,
        "hashed_password": user.hashed_password,
        "created_at": user.created_at.isoformat(),
        "updated_at": user.updated_at.isoformat(),
    }


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        hashed_password=row.hashed_password,
        created_at=datetime.fromisoformat(row.created_at),
        updated_at=datetime.fromisoformat(row.updated_at),
    )
