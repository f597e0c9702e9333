"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts and sessions.

Pattern: Repository + Data Mapper. AccountStore and SessionStore are the
repositories; _row_to_account / _row_to_session are the mappers. Service and
route code never touches SQL directly.

Atomicity guarantees the identity core relies on:
  Unique insert: UNIQUE(email) is enforced by the database. A concurrent
      duplicate create surfaces as IntegrityError, mapped to UniqueViolation.

  Compare-and-clear: redeem_reset_token() is a single conditional UPDATE.
      The WHERE clause matches only while the stored token still equals the
      presented one, so of two concurrent redemptions exactly one sees
      rowcount == 1.

  Idempotent delete: delete_session() ignores rowcount.

Errors: driver exceptions never leave this module. IntegrityError on the
email column becomes UniqueViolation; every other SQLAlchemyError becomes
StorageError, with the original chained as __cause__ for server-side logs.

Security:
  All queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Float, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import NotFound, StorageError, UniqueViolation
from auth.models import DEFAULT_ROLE, Account, Role, Session

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("display_name", String(255)),
    Column("role", String(30), nullable=False, server_default=DEFAULT_ROLE.value),
    Column("reset_token", String(128), nullable=False, server_default=""),  # "" = no pending reset
    Column("created_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", String(64), primary_key=True),
    Column("account_id", String(32), nullable=False, index=True),
    # Epoch seconds (UTC). REAL keeps range queries for purge_expired() simple.
    Column("expires_at", Float, nullable=False, index=True),
    Column("created_at", Float, nullable=False),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine for db_url and make sure both tables exist.

    Pass the same engine to AccountStore and SessionStore to share one pool.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
        event.listen(engine, "connect", _set_wal_mode)
    _metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account records, keyed by unique email.

    Usage:
        store = AccountStore(make_engine("sqlite:///:memory:"))
        store.create(Account(email="a@x.com", password_hash=hasher.hash("password1")))
        account = store.get_by_email("a@x.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create(self, account: Account) -> str:
        """Insert a new account and return its assigned id.

        Raises UniqueViolation if the email is already taken, including when a
        concurrent request inserted it first.
        """
        account_id = uuid.uuid4().hex
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _accounts.insert().values(
                        id=account_id,
                        email=account.email,
                        password_hash=account.password_hash,
                        display_name=account.display_name,
                        role=Role(account.role).value,
                        reset_token="",
                        created_at=_now_iso(),
                    )
                )
        except IntegrityError as exc:
            raise UniqueViolation() from exc
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return account_id

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by exact email (case-sensitive). Returns None if not found."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_accounts.select().where(_accounts.c.email == email)).fetchone()
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return _row_to_account(row) if row is not None else None

    def get_by_id(self, account_id: str) -> Account:
        """Look up an account by id. Raises NotFound if it does not exist."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        if row is None:
            raise NotFound()
        return _row_to_account(row)

    def set_reset_token(self, email: str, token: str) -> bool:
        """Store token as the pending reset for email, overwriting any previous one.

        Returns True if an account was updated, False if email was not found.
        The write is committed before this method returns.
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_accounts.update().where(_accounts.c.email == email).values(reset_token=token))
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return result.rowcount > 0

    def redeem_reset_token(self, email: str, token: str, password_hash: str) -> bool:
        """Atomically swap in password_hash and clear the reset token.

        Succeeds only if the stored token is non-empty and equal to token at
        the moment the UPDATE runs. Returns True on success, False otherwise
        (unknown email, no pending reset, mismatch, or already redeemed).
        """
        if not token:
            return False
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _accounts.update()
                    .where(
                        (_accounts.c.email == email)
                        & (_accounts.c.reset_token == token)
                        & (_accounts.c.reset_token != "")
                    )
                    .values(password_hash=password_hash, reset_token="")
                )
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return result.rowcount == 1


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SessionStore:
    """Repository for Session records. Expiry policy lives in SessionManager."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def insert(self, session: Session) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _sessions.insert().values(
                        id=session.id,
                        account_id=session.account_id,
                        expires_at=session.expires_at.timestamp(),
                        created_at=session.created_at.timestamp(),
                    )
                )
        except SQLAlchemyError as exc:
            raise StorageError() from exc

    def get(self, session_id: str) -> Session | None:
        """Return the session record or None. Does not check expiry."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_sessions.select().where(_sessions.c.id == session_id)).fetchone()
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return _row_to_session(row) if row is not None else None

    def delete(self, session_id: str) -> None:
        """Delete a session. Deleting an absent session is not an error."""
        try:
            with self.engine.begin() as conn:
                conn.execute(_sessions.delete().where(_sessions.c.id == session_id))
        except SQLAlchemyError as exc:
            raise StorageError() from exc

    def delete_expired(self, now: datetime) -> int:
        """Delete every session with expires_at <= now. Returns rows removed."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= now.timestamp()))
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        display_name=row.display_name,
        role=Role(row.role),
        reset_token=row.reset_token or "",
        created_at=row.created_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        account_id=row.account_id,
        expires_at=datetime.fromtimestamp(row.expires_at, tz=timezone.utc),
        created_at=datetime.fromtimestamp(row.created_at, tz=timezone.utc),
    )
