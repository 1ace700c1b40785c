"""Shared SQLite helpers for WAL-mode connections."""

import sqlite3
from pathlib import Path


def wal_connect(db_path: str | Path, timeout: float = 5.0) -> sqlite3.Connection:
    """Open SQLite connection with WAL journal mode.

    Transactions are managed explicitly by callers (isolation_level=None),
    so atomic read-modify-write can use BEGIN IMMEDIATE.

    Args:
        db_path: Path to database file.
        timeout: Seconds to wait on a locked database before failing.
    """
    conn = sqlite3.connect(str(db_path), timeout=timeout, isolation_level=None)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(f"PRAGMA busy_timeout={int(timeout * 1000)}")
    return conn
