"""Data access layer for QuizMark without external ORM dependencies."""

from __future__ import annotations

import datetime
import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence
from urllib.parse import urlparse

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import dict_row

from config.settings import Settings

logger = logging.getLogger(__name__)

# Exceptions raised by either backend for a failed store operation.
STORE_ERRORS: tuple[type[BaseException], ...] = (sqlite3.Error, psycopg.Error)


class DatabaseConfigurationError(RuntimeError):
    """Raised when DATABASE_URL is missing."""


class DuplicateUsernameError(ValueError):
    """Raised when an account with the same username already exists."""


class Account:
    """A registered quiz-taker as stored in the accounts table."""

    def __init__(
        self,
        *,
        id: int,
        username: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        created_at: Optional[datetime.datetime],
    ) -> None:
        self.id = id
        self.username = username
        self.first_name = first_name
        self.last_name = last_name
        self.password_hash = password_hash
        self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Account id={self.id} username={self.username!r}>"


class StoreSession:
    """One short-lived connection and the SQL dialect it speaks."""

    def __init__(self, connection, backend: str) -> None:
        self.connection = connection
        self.backend = backend  # "sqlite" or "postgres"

    def _adapt(self, query: str) -> str:
        if self.backend == "sqlite":
            return query.replace("%s", "?")
        return query

    def bind_timestamp(self, value: datetime.datetime) -> object:
        # sqlite stores ISO text; psycopg binds datetimes natively.
        if self.backend == "sqlite":
            return value.isoformat(sep=" ")
        return value

    def execute(self, query: str, params: Sequence[object] = ()) -> None:
        cur = self.connection.cursor()
        try:
            cur.execute(self._adapt(query), tuple(params))
        finally:
            cur.close()

    def fetchone(self, query: str, params: Sequence[object] = ()) -> Optional[dict]:
        cur = self.connection.cursor()
        try:
            cur.execute(self._adapt(query), tuple(params))
            row = cur.fetchone()
            if row is None:
                return None
            if self.backend == "sqlite":
                row = dict(row)
            return row
        finally:
            cur.close()

    def fetchall(self, query: str, params: Sequence[object] = ()) -> list[dict]:
        cur = self.connection.cursor()
        try:
            cur.execute(self._adapt(query), tuple(params))
            rows = cur.fetchall() or []
            if self.backend == "sqlite":
                return [dict(row) for row in rows]
            return list(rows)
        finally:
            cur.close()

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()


def _normalize_sqlite_path(database_url: str) -> str:
    parsed = urlparse(database_url)
    path = parsed.path or ""
    if path.startswith("/"):
        path = path[1:]
    if path in {"", ":memory:"}:
        return ":memory:"
    if parsed.netloc:
        path = f"{parsed.netloc}/{path}"
    return path


def mask_database_url(database_url: Optional[str]) -> str:
    """Return the URL with credentials removed, safe for logs."""
    if not database_url:
        return "<unset>"
    if "@" not in database_url:
        return database_url
    scheme = database_url.split("://", 1)[0]
    return f"{scheme}://***@{database_url.rsplit('@', 1)[-1]}"


def open_session(settings: Settings) -> StoreSession:
    """Open a fresh connection for a single request."""
    database_url = settings.DATABASE_URL
    if not database_url:
        raise DatabaseConfigurationError("DATABASE_URL is not configured.")

    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    if database_url.startswith("sqlite"):
        conn = sqlite3.connect(
            _normalize_sqlite_path(database_url),
            timeout=settings.DB_CONNECT_TIMEOUT_SECONDS,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        return StoreSession(conn, "sqlite")

    kwargs: dict[str, object] = {"connect_timeout": settings.DB_CONNECT_TIMEOUT_SECONDS}
    if settings.DATABASE_SSLMODE:
        kwargs["sslmode"] = settings.DATABASE_SSLMODE
    conn = psycopg.connect(database_url, row_factory=dict_row, **kwargs)
    return StoreSession(conn, "postgres")


def _close_connection(connection) -> None:
    try:
        connection.close()
    except STORE_ERRORS as exc:
        logger.warning(f"Error while closing store connection: {exc}")


def release_session(session: StoreSession, timeout: float) -> None:
    """Close the session's connection, waiting at most ``timeout`` seconds."""
    closer = threading.Thread(
        target=_close_connection,
        args=(session.connection,),
        name="store-release",
        daemon=True,
    )
    closer.start()
    closer.join(timeout)
    if closer.is_alive():
        logger.warning(
            f"Store connection did not close within {timeout}s; abandoning it."
        )


@contextmanager
def store_session(settings: Settings) -> Iterator[StoreSession]:
    """Open a connection, hand it to the caller, and always release it."""
    session = open_session(settings)
    try:
        yield session
    finally:
        release_session(session, settings.DB_CLOSE_TIMEOUT_SECONDS)


def ensure_accounts_table(session: StoreSession) -> None:
    """Create the accounts table if it does not already exist."""
    if session.backend == "postgres":
        session.execute(
            """
            CREATE TABLE IF NOT EXISTS accounts (
                id SERIAL PRIMARY KEY,
                username TEXT UNIQUE NOT NULL,
                first_name TEXT NOT NULL,
                last_name TEXT NOT NULL,
                password_hash TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );
            """
        )
    else:
        session.execute(
            """
            CREATE TABLE IF NOT EXISTS accounts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                first_name TEXT NOT NULL,
                last_name TEXT NOT NULL,
                password_hash TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
    session.commit()


def ensure_progress_table(session: StoreSession) -> None:
    """Create the progress table if it does not already exist."""
    if session.backend == "postgres":
        session.execute(
            """
            CREATE TABLE IF NOT EXISTS progress (
                id SERIAL PRIMARY KEY,
                username TEXT NOT NULL,
                item_id INTEGER NOT NULL,
                completed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                UNIQUE (username, item_id)
            );
            """
        )
    else:
        session.execute(
            """
            CREATE TABLE IF NOT EXISTS progress (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL,
                item_id INTEGER NOT NULL,
                completed_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (username, item_id)
            );
            """
        )
    session.commit()


def init_db(session: StoreSession) -> None:
    """Create every table used by the application."""
    ensure_accounts_table(session)
    ensure_progress_table(session)


def _parse_timestamp(value: object) -> Optional[datetime.datetime]:
    if value is None or isinstance(value, datetime.datetime):
        return value
    return datetime.datetime.fromisoformat(str(value))


def _row_to_account(row: Optional[dict]) -> Optional[Account]:
    if not row:
        return None

    return Account(
        id=row["id"],
        username=row["username"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        password_hash=row["password_hash"],
        created_at=_parse_timestamp(row.get("created_at")),
    )


def get_account(session: StoreSession, username: str) -> Optional[Account]:
    if not username:
        return None

    row = session.fetchone(
        "SELECT * FROM accounts WHERE username = %s",
        (username,),
    )
    return _row_to_account(row)


def create_account(
    session: StoreSession,
    *,
    username: str,
    first_name: str,
    last_name: str,
    password_hash: str,
) -> Account:
    try:
        session.execute(
            """
            INSERT INTO accounts (username, first_name, last_name, password_hash)
            VALUES (%s, %s, %s, %s);
            """,
            (username, first_name, last_name, password_hash),
        )
        session.commit()
    except (sqlite3.IntegrityError, pg_errors.UniqueViolation) as exc:
        session.rollback()
        raise DuplicateUsernameError(f'Username "{username}" is already taken.') from exc

    account = get_account(session, username)
    if account is None:
        raise RuntimeError("Failed to retrieve created account.")
    return account


def upsert_progress(
    session: StoreSession,
    *,
    username: str,
    item_id: int,
    completed_at: Optional[datetime.datetime] = None,
) -> None:
    """Insert the (username, item_id) completion or refresh its timestamp."""
    timestamp = completed_at or datetime.datetime.now(datetime.timezone.utc)
    session.execute(
        """
        INSERT INTO progress (username, item_id, completed_at)
        VALUES (%s, %s, %s)
        ON CONFLICT (username, item_id)
        DO UPDATE SET completed_at = excluded.completed_at;
        """,
        (username, item_id, session.bind_timestamp(timestamp)),
    )
    session.commit()


def list_leaderboard(session: StoreSession) -> list[dict[str, object]]:
    """Return every account with its count of distinct completed items.

    Accounts without completions are included with a count of zero. Rows are
    ordered by completions (descending) and then username (ascending).
    """
    return session.fetchall(
        """
        SELECT
            a.username,
            a.first_name,
            a.last_name,
            COUNT(DISTINCT p.item_id) AS questions_done
        FROM accounts a
        LEFT JOIN progress p ON p.username = a.username
        GROUP BY a.username, a.first_name, a.last_name
        ORDER BY questions_done DESC, a.username ASC;
        """
    )
