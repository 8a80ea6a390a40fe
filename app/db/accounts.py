"""
Account storage.

Two interchangeable stores share the same surface:

- `SqliteAccountStore`: embedded, file-backed (default).
- `PostgresAccountStore`: client-server, via psycopg2.

Both declare `visitor_id` UNIQUE, so two concurrent signups from the same
device cannot both be inserted: the loser of the race gets `DuplicateDevice`
even though it passed the read-only duplicate check.
"""

import sqlite3
from dataclasses import dataclass
from typing import Callable, Optional

import psycopg2
from psycopg2.errors import UniqueViolation

from app.db.connection import get_sqlite_connection
from app.services.errors import DuplicateDevice, StorageError


@dataclass(frozen=True)
class Account:
    id: int
    username: str
    password_hash: str
    visitor_id: str


class SqliteAccountStore:
    """SQLite-backed account table. Each call opens a short-lived connection."""

    def __init__(self, path) -> None:
        self._path = path

    def _connect(self) -> sqlite3.Connection:
        return get_sqlite_connection(self._path)

    def initialize(self) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS accounts (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        username TEXT NOT NULL,
                        password_hash TEXT NOT NULL,
                        visitor_id TEXT NOT NULL UNIQUE
                    )
                    """
                )
        except sqlite3.Error as e:
            raise StorageError(cause=str(e))
        finally:
            conn.close()

    def count_by_visitor_id(self, visitor_id: str) -> int:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT COUNT(*) FROM accounts WHERE visitor_id = ?",
                (visitor_id,),
            ).fetchone()
            return int(row[0])
        except sqlite3.Error as e:
            raise StorageError(cause=str(e))
        finally:
            conn.close()

    def count_accounts(self) -> int:
        conn = self._connect()
        try:
            return int(conn.execute("SELECT COUNT(*) FROM accounts").fetchone()[0])
        except sqlite3.Error as e:
            raise StorageError(cause=str(e))
        finally:
            conn.close()

    def get_account(self, account_id: int) -> Optional[Account]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT id, username, password_hash, visitor_id FROM accounts WHERE id = ?",
                (account_id,),
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(cause=str(e))
        finally:
            conn.close()

        if not row:
            return None
        return Account(id=row[0], username=row[1], password_hash=row[2], visitor_id=row[3])

    def insert_account(self, username: str, password_hash: str, visitor_id: str) -> int:
        """
        Insert one account and return its generated id.

        Raises:
            DuplicateDevice: the visitor id is already stored.
            StorageError: any other integrity or driver failure.
        """
        conn = self._connect()
        try:
            # The connection context manager commits on success, rolls back on error.
            with conn:
                cur = conn.execute(
                    "INSERT INTO accounts (username, password_hash, visitor_id) VALUES (?, ?, ?)",
                    (username, password_hash, visitor_id),
                )
                return int(cur.lastrowid)
        except sqlite3.IntegrityError as e:
            if "accounts.visitor_id" in str(e):
                raise DuplicateDevice()
            raise StorageError("Account conflicts with existing data", cause=str(e), status_code=409)
        except sqlite3.Error as e:
            raise StorageError(cause=str(e))
        finally:
            conn.close()


class PostgresAccountStore:
    """
    Postgres-backed account table.

    `connection_factory` returns a new psycopg2 connection on each call,
    typically `lambda: get_connection(settings)`.
    """

    def __init__(self, connection_factory: Callable) -> None:
        self._connection_factory = connection_factory

    def initialize(self) -> None:
        conn = self._connection_factory()
        try:
            with conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        CREATE TABLE IF NOT EXISTS accounts (
                            id BIGSERIAL PRIMARY KEY,
                            username TEXT NOT NULL,
                            password_hash TEXT NOT NULL,
                            visitor_id TEXT NOT NULL UNIQUE
                        )
                        """
                    )
        except psycopg2.Error as e:
            raise StorageError(cause=str(e))
        finally:
            conn.close()

    def count_by_visitor_id(self, visitor_id: str) -> int:
        conn = self._connection_factory()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT COUNT(*) FROM accounts WHERE visitor_id = %s",
                    (visitor_id,),
                )
                return int(cur.fetchone()[0])
        except psycopg2.Error as e:
            raise StorageError(cause=str(e))
        finally:
            conn.close()

    def count_accounts(self) -> int:
        conn = self._connection_factory()
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(*) FROM accounts")
                return int(cur.fetchone()[0])
        except psycopg2.Error as e:
            raise StorageError(cause=str(e))
        finally:
            conn.close()

    def get_account(self, account_id: int) -> Optional[Account]:
        conn = self._connection_factory()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, username, password_hash, visitor_id FROM accounts WHERE id = %s",
                    (account_id,),
                )
                row = cur.fetchone()
        except psycopg2.Error as e:
            raise StorageError(cause=str(e))
        finally:
            conn.close()

        if not row:
            return None
        return Account(id=row[0], username=row[1], password_hash=row[2], visitor_id=row[3])

    def insert_account(self, username: str, password_hash: str, visitor_id: str) -> int:
        conn = self._connection_factory()
        try:
            # Using the connection as a context manager ensures commit/rollback is handled.
            with conn:
                with conn.cursor() as cur:
                    cur.execute(
                        "INSERT INTO accounts (username, password_hash, visitor_id) "
                        "VALUES (%s, %s, %s) RETURNING id",
                        (username, password_hash, visitor_id),
                    )
                    return int(cur.fetchone()[0])
        except UniqueViolation:
            # Unique constraint on `accounts.visitor_id` violated → device already registered.
            raise DuplicateDevice()
        except psycopg2.IntegrityError as e:
            raise StorageError("Account conflicts with existing data", cause=str(e), status_code=409)
        except psycopg2.Error as e:
            raise StorageError(cause=str(e))
        finally:
            conn.close()
