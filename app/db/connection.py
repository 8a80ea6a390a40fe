import sqlite3
from pathlib import Path

import psycopg2

from app.config import Settings


def get_connection(settings: Settings):
    return psycopg2.connect(
        host=settings.db_host,
        database=settings.db_name,
        user=settings.db_user,
        password=settings.db_password,
    )


def get_sqlite_connection(path) -> sqlite3.Connection:
    """Open the file-backed database, creating its directory on first use."""
    db_path = Path(path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn
