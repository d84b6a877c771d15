"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper. UserStore and RefreshTokenStore are the
repositories; _row_to_user / _row_to_refresh_token are the mappers. The
service layer never touches SQL directly and depends only on the narrow
UserRepository / RefreshTokenRepository protocols, so any backing store
(relational, document, key-value) can stand in.

Security:
  All queries use bound parameters. No f-strings in SQL.

  users.email is UNIQUE at the SQL level. A duplicate insert surfaces as
  ConflictError; two concurrent registrations for one email cannot both win.

  refresh_tokens only ever holds SHA-256 digests. The conditional delete
  reports whether a row was removed. rotate() runs it together with the
  insert of the replacement in one transaction, and AuthService treats its
  result as the single gate for handing out a new token pair: two concurrent
  redemptions of one refresh token cannot both succeed, and a failed insert
  leaves the old token in place.

Expiry:
  Lookups treat rows with expires_at in the past as absent. purge_expired()
  physically removes them; api/main.py runs it periodically (the
  time-to-live mechanism).

Timestamps are ISO 8601 UTC strings with fixed microsecond precision, so
lexicographic comparison in SQL matches chronological order.

Layer rule: no imports from api/ or notes/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from auth.errors import ConflictError, StoreUnavailableError
from auth.models import RefreshToken, User
from core.config import get_settings

logger = logging.getLogger("noteauth.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(32), nullable=False),
    Column("hashed_token", String(44), nullable=False),  # base64(SHA-256)
    Column("expires_at", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
    Index("ix_refresh_tokens_user_hash", "user_id", "hashed_token"),
    Index("ix_refresh_tokens_expires_at", "expires_at"),
)


# ---------------------------------------------------------------------------
# Ports
# ---------------------------------------------------------------------------


class UserRepository(Protocol):
    def create_user(self, user: User) -> User: ...
    def get_by_email(self, email: str) -> User | None: ...
    def get_by_id(self, user_id: str) -> User | None: ...


class RefreshTokenRepository(Protocol):
    def save(self, record: RefreshToken) -> None: ...
    def find_by_user_id_and_hashed_token(self, user_id: str, hashed_token: str) -> RefreshToken | None: ...
    def delete_by_user_id_and_hashed_token(self, user_id: str, hashed_token: str) -> bool: ...
    def rotate(self, user_id: str, hashed_token: str, replacement: RefreshToken) -> bool: ...


# ---------------------------------------------------------------------------
# Engine + error helpers (shared with notes/store.py)
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_store_engine(db_url: str, timeout: float | None = None) -> Engine:
    """Build an Engine whose every wait is bounded by ``timeout`` seconds.

    SQLite: the driver's busy timeout bounds lock waits. Other backends: the
    pool checkout timeout bounds connection waits.
    """
    if timeout is None:
        timeout = get_settings().store_timeout_seconds
    if db_url.startswith("sqlite"):
        engine = create_engine(db_url, connect_args={"check_same_thread": False, "timeout": timeout})
        event.listen(engine, "connect", _set_wal_mode)
        return engine
    return create_engine(db_url, pool_timeout=timeout, pool_pre_ping=True)


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate driver timeouts and connection failures into StoreUnavailableError."""
    try:
        yield
    except (OperationalError, PoolTimeoutError) as exc:
        logger.warning("Store operation %s failed: %s", operation, exc.__class__.__name__)
        raise StoreUnavailableError() from exc


def to_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore()
        store.create_user(User(email="a@b.io", hashed_password=hasher.encode("secret")))
        user = store.get_by_email("a@b.io")
        store.close()
    """

    def __init__(self, db_url: str | None = None, timeout: float | None = None) -> None:
        self.engine: Engine = create_store_engine(db_url or get_settings().auth_db_url, timeout)
        with store_errors("create_schema"):
            _metadata.create_all(self.engine)

    def create_user(self, user: User) -> User:
        """Insert a new user and return it with created_at filled in.

        Raises ConflictError if the email already exists.
        """
        created_at = _now_iso()
        try:
            with store_errors("create_user"), self.engine.begin() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user.id,
                        email=user.email,
                        hashed_password=user.hashed_password,
                        created_at=created_at,
                    )
                )
        except IntegrityError as exc:
            raise ConflictError() from exc
        return User(id=user.id, email=user.email, hashed_password=user.hashed_password, created_at=created_at)

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with store_errors("get_by_email"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        with store_errors("get_by_id"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except OperationalError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


class RefreshTokenStore:
    """Repository for RefreshToken records (hashes only, never raw tokens)."""

    def __init__(self, db_url: str | None = None, timeout: float | None = None) -> None:
        self.engine: Engine = create_store_engine(db_url or get_settings().auth_db_url, timeout)
        with store_errors("create_schema"):
            _metadata.create_all(self.engine)

    def save(self, record: RefreshToken) -> None:
        with store_errors("save_refresh_token"), self.engine.begin() as conn:
            conn.execute(_insert_refresh_token(record))

    def find_by_user_id_and_hashed_token(self, user_id: str, hashed_token: str) -> RefreshToken | None:
        """Exact-match lookup. Expired records are treated as absent."""
        with store_errors("find_refresh_token"), self.engine.connect() as conn:
            row = conn.execute(
                _refresh_tokens.select().where(
                    (_refresh_tokens.c.user_id == user_id)
                    & (_refresh_tokens.c.hashed_token == hashed_token)
                    & (_refresh_tokens.c.expires_at > _now_iso())
                )
            ).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def delete_by_user_id_and_hashed_token(self, user_id: str, hashed_token: str) -> bool:
        """Delete a record. Idempotent.

        Returns True if a row was removed, False if nothing matched. The
        DELETE is a single statement, so of two concurrent callers at most one
        sees True.
        """
        with store_errors("delete_refresh_token"), self.engine.begin() as conn:
            result = conn.execute(_delete_refresh_token(user_id, hashed_token))
        return result.rowcount > 0

    def rotate(self, user_id: str, hashed_token: str, replacement: RefreshToken) -> bool:
        """Consume one record and save its replacement in a single transaction.

        Returns False, writing nothing, if the record to consume was already
        gone. If the insert fails the delete is rolled back, so the old token
        stays redeemable.
        """
        with store_errors("rotate_refresh_token"), self.engine.begin() as conn:
            result = conn.execute(_delete_refresh_token(user_id, hashed_token))
            if result.rowcount == 0:
                return False
            conn.execute(_insert_refresh_token(replacement))
        return True

    def purge_expired(self) -> int:
        """Remove every record whose expires_at has passed. Returns the number removed."""
        with store_errors("purge_refresh_tokens"), self.engine.begin() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.expires_at <= _now_iso()))
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


def _insert_refresh_token(record: RefreshToken):
    return _refresh_tokens.insert().values(
        user_id=record.user_id,
        hashed_token=record.hashed_token,
        expires_at=to_iso(record.expires_at),
        created_at=to_iso(record.created_at),
    )


def _delete_refresh_token(user_id: str, hashed_token: str):
    return _refresh_tokens.delete().where(
        (_refresh_tokens.c.user_id == user_id) & (_refresh_tokens.c.hashed_token == hashed_token)
    )


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
    )


def _row_to_refresh_token(row) -> RefreshToken:
    return RefreshToken(
        user_id=row.user_id,
        hashed_token=row.hashed_token,
        expires_at=from_iso(row.expires_at),
        created_at=from_iso(row.created_at),
    )
