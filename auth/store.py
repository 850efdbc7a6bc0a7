"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(username) is enforced by the database, not by a read-then-write
  check in code. Two concurrent registrations for one name race on the
  index: exactly one INSERT wins, the other gets IntegrityError, which
  create_user() turns into DuplicateIdentifierError.

Lifecycle:
  __init__ only builds the engine (no I/O). connect() creates the schema and
  proves the database answers; the lifespan wraps it in connect_with_retry().

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is the
kernel and has no reverse dependencies.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.passwords import BcryptHasher, PasswordHasher
from core.errors import DuplicateIdentifierError, UserNotFoundError

logger = logging.getLogger("userapi.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),  # salt embedded by the hasher
    Column("favourites", Text, nullable=False, server_default="[]"),  # JSON list
    Column("history", Text, nullable=False, server_default="[]"),  # JSON list
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block behind a writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///users.db", hasher=BcryptHasher())
        store.connect()
        store.create_user("alice", "s3cret")
        user = store.get_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str, hasher: PasswordHasher | None = None) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        self.hasher = hasher or BcryptHasher()

    def connect(self) -> None:
        """Create the schema if needed and check the database responds.

        Raises whatever the driver raises when the database is unreachable;
        connect_with_retry() decides whether to try again.
        """
        _metadata.create_all(self.engine)
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("User store ready (%s)", self.engine.url.render_as_string(hide_password=True))

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def create_user(self, username: str, password: str) -> User:
        """Hash password with a fresh salt, insert the user, return the stored record.

        Raises:
            DuplicateIdentifierError: username is already registered. Nothing
                is written in that case.
        """
        hashed = self.hasher.hash(password)
        created_at = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=username,
                        hashed_password=hashed,
                        favourites="[]",
                        history="[]",
                        created_at=created_at,
                    )
                )
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise DuplicateIdentifierError(username) from exc
        logger.info("Registered user %r (id=%s)", username, user_id)
        return User(id=user_id, username=username, hashed_password=hashed, created_at=created_at)

    def get_by_username(self, username: str) -> User:
        """Look up a user by exact username (case-sensitive).

        Raises:
            UserNotFoundError: no such username.
        """
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        if row is None:
            raise UserNotFoundError(username)
        return _row_to_user(row)

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_users)).scalar() or 0

    # ------------------------------------------------------------------
    # Resource collections (read-only)
    # ------------------------------------------------------------------

    def get_favourites(self, user_id: int) -> list[str]:
        """Return the user's favourites list, or [] if the user no longer exists."""
        user = self.get_by_id(user_id)
        return user.favourites if user is not None else []

    def get_history(self, user_id: int) -> list[str]:
        """Return the user's history list, or [] if the user no longer exists."""
        user = self.get_by_id(user_id)
        return user.history if user is not None else []

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        hashed_password=row.hashed_password,
        favourites=json.loads(row.favourites or "[]"),
        history=json.loads(row.history or "[]"),
        created_at=row.created_at,
    )
