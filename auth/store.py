"""
auth/store.py -- SQLAlchemy Core persistence layer for identity records.

Pattern: Repository + Data Mapper.
UserStore is the repository (it satisfies auth.directory.UserDirectory);
_row_to_user is the mapper. The credential manager never touches SQL.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  username and email each carry a UNIQUE constraint, so the database decides
  races between concurrent registrations. IntegrityError is translated into
  DuplicateRecordError with the colliding column when the driver names it
  (SQLite reports "UNIQUE constraint failed: users.email"; PostgreSQL reports
  the constraint name "users_email_key").

Lookup tie-break:
  find_by_username_or_email() orders exact username matches ahead of email
  matches, then by id. The result never depends on physical row order.

DB path: auth/allin_identity.db by default; any SQLAlchemy URL is accepted.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text, case, create_engine, event, or_, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from auth.errors import DirectoryError, DuplicateRecordError, RecordNotFoundError
from auth.models import DEFAULT_ROLE, User

logger = logging.getLogger("allin.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("phone", String(64), nullable=False),
    Column("role", String(30), nullable=False, server_default=DEFAULT_ROLE),
    Column("balance", Float, nullable=False, server_default="0"),
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_UNIQUE_FIELDS = ("username", "email")


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL lets readers proceed while a registration is being written. Set per
    connection because SQLite PRAGMAs are not inherited from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_memory_db(db_url: str) -> bool:
    """Return True for SQLite URLs that live in memory rather than in a file."""
    database = make_url(db_url).database or ""
    return database in ("", ":memory:") or "mode=memory" in db_url


def _conflicting_field(exc: IntegrityError) -> str | None:
    """Return which unique column an IntegrityError refers to, if it can be told."""
    message = str(getattr(exc, "orig", exc)).lower()
    for name in _UNIQUE_FIELDS:
        if f"users.{name}" in message or f"users_{name}_key" in message or f"({name})" in message:
            return name
    return None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore()
        created = store.create_user(User(username="alex", email="alex@x.com", phone="+1555",
                                          hashed_password=hash_password("Password1")))
        user = store.find_by_username_or_email("alex")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        engine_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            if _is_memory_db(db_url):
                # One shared connection, or every pool thread gets its own empty database.
                engine_args["poolclass"] = StaticPool
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> User:
        """Insert a new user and return the stored record.

        Raises DuplicateRecordError if the username or email already exists,
        DirectoryError on any other database failure.
        """
        created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=user.username,
                        email=user.email,
                        phone=user.phone,
                        role=user.role,
                        balance=user.balance,
                        hashed_password=user.hashed_password,
                        created_at=created_at,
                    )
                )
                conn.commit()
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise DuplicateRecordError(_conflicting_field(exc)) from exc
        except SQLAlchemyError as exc:
            raise DirectoryError("create user failed") from exc
        return User(
            id=user_id,
            username=user.username,
            email=user.email,
            phone=user.phone,
            role=user.role,
            balance=user.balance,
            hashed_password=user.hashed_password,
            created_at=created_at,
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_username(self, username: str) -> User:
        """Look up a user by exact username (case-sensitive)."""
        return self._fetch_one(_users.select().where(_users.c.username == username))

    def find_by_email(self, email: str) -> User:
        """Look up a user by exact email address (case-sensitive)."""
        return self._fetch_one(_users.select().where(_users.c.email == email))

    def find_by_username_or_email(self, identifier: str) -> User:
        """Return the user whose username or email equals identifier.

        A username match is preferred over an email match belonging to a
        different user; remaining ties go to the lowest id.
        """
        username_first = case((_users.c.username == identifier, 0), else_=1)
        query = (
            _users.select()
            .where(or_(_users.c.username == identifier, _users.c.email == identifier))
            .order_by(username_first, _users.c.id)
            .limit(1)
        )
        return self._fetch_one(query)

    def get_by_id(self, user_id: int) -> User:
        """Look up a user by primary key."""
        return self._fetch_one(_users.select().where(_users.c.id == user_id))

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by the health check."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()

    def _fetch_one(self, query) -> User:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).fetchone()
        except SQLAlchemyError as exc:
            raise DirectoryError("user lookup failed") from exc
        if row is None:
            raise RecordNotFoundError("user not found")
        return _row_to_user(row)


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        phone=row.phone,
        role=row.role,
        balance=row.balance,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
    )
