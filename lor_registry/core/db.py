"""
SQLite foundation for the durable registry store.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

from .config import ensure_db_directory, SQLITE_TIMEOUT_SEC


@contextmanager
def get_db(db_path: str, timeout: float = SQLITE_TIMEOUT_SEC) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection.

    The connection runs in autocommit mode; callers that write open an
    explicit transaction with ``transaction()``.
    """
    conn = sqlite3.connect(db_path, timeout=timeout, isolation_level=None)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Cursor, None, None]:
    """Run a write transaction holding the database RESERVED lock from the start."""
    cursor = conn.cursor()
    cursor.execute("BEGIN IMMEDIATE")
    try:
        yield cursor
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


def init_db(db_path: str, timeout: float = SQLITE_TIMEOUT_SEC):
    """Initialize the database with required tables."""
    ensure_db_directory(db_path)
    with get_db(db_path, timeout) as conn:
        with transaction(conn) as cursor:
            # Registry-wide values: owner identity and the next student id
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS registry_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS students (
                    id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL,
                    course TEXT NOT NULL,
                    requested BOOLEAN NOT NULL DEFAULT FALSE,
                    approved BOOLEAN NOT NULL DEFAULT FALSE,
                    CHECK (approved = 0 OR requested = 1)
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS approvers (
                    identity TEXT PRIMARY KEY
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    ts TIMESTAMP NOT NULL,
                    actor TEXT NOT NULL,
                    action TEXT NOT NULL,
                    student_id INTEGER,
                    outcome TEXT NOT NULL,
                    detail TEXT
                )
            ''')

            cursor.execute('CREATE INDEX IF NOT EXISTS idx_events_student_id ON events(student_id)')

            cursor.execute(
                "INSERT OR IGNORE INTO registry_meta (key, value) VALUES ('next_student_id', '0')"
            )


def health_check(db_path: str, timeout: float = SQLITE_TIMEOUT_SEC):
    """Check database health."""
    try:
        with get_db(db_path, timeout) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            tables = cursor.fetchall()

            # Check if required tables exist
            table_names = [table[0] for table in tables]
            required_tables = ['registry_meta', 'students', 'approvers', 'events']

            return all(table in table_names for table in required_tables)
    except sqlite3.Error:
        return False
