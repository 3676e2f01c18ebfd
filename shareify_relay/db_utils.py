"""
Database Utilities

Centralized SQLite connection setup.

Features:
- WAL mode for file-backed databases
- Row factory for dict-like access

Usage:
    from shareify_relay.db_utils import get_sqlite_connection

    conn = get_sqlite_connection("path/to/credentials.db")
"""

import sqlite3
from pathlib import Path
from typing import Union
import logging

logger = logging.getLogger(__name__)


def get_sqlite_connection(
    database: Union[str, Path],
    check_same_thread: bool = False,
    timeout: float = 30.0
) -> sqlite3.Connection:
    """
    Create a SQLite connection with the pragmas the stores rely on.

    Args:
        database: Path to SQLite database file, or ":memory:"
        check_same_thread: Whether sqlite3 should reject cross-thread use
        timeout: Connection timeout in seconds (default 30)

    Returns:
        Configured SQLite connection
    """
    conn = sqlite3.connect(
        str(database),
        check_same_thread=check_same_thread,
        timeout=timeout
    )

    if str(database) != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")

    conn.row_factory = sqlite3.Row

    logger.debug(f"SQLite connection created for {database}")

    return conn
