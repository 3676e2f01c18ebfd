"""
Credential Store - persisted tokens, login credentials and client identity

A small key/value table in SQLite. Credentials are stored in plaintext so
the client can log in again without prompting; protect the data directory
accordingly.
"""

import logging
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import Optional, Union

from shareify_relay.db_utils import get_sqlite_connection

logger = logging.getLogger(__name__)

# ===== Preference keys (shared with the mobile and web clients) =====

CLIENT_ID = "client_id"
JWT_TOKEN = "jwt_token"
SHAREIFY_JWT = "shareify_jwt"
USER_EMAIL = "user_email"
USER_PASSWORD = "user_password"
SERVER_USERNAME = "server_username"
SERVER_PASSWORD = "server_password"


class CredentialStore:
    """Thread-safe key/value store backed by a single SQLite connection"""

    def __init__(self, database: Union[str, Path] = ":memory:"):
        self.database = database
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection = get_sqlite_connection(database)
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS preferences (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            self._conn.commit()

    # ===== Generic access =====

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM preferences WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO preferences (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
            self._conn.commit()

    def set_many(self, **values: str) -> None:
        """Write several keys in one transaction"""
        with self._lock:
            self._conn.executemany(
                "INSERT INTO preferences (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                list(values.items()),
            )
            self._conn.commit()

    def delete(self, *keys: str) -> None:
        with self._lock:
            self._conn.executemany(
                "DELETE FROM preferences WHERE key = ?", [(k,) for k in keys]
            )
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ===== Client identity =====

    def ensure_client_id(self) -> str:
        """
        Return the persisted client id, creating it on first use.

        The id is never rotated; it scopes the keyring entry of the RSA key pair.
        """
        existing = self.get(CLIENT_ID)
        if existing:
            return existing

        client_id = str(uuid.uuid4())
        self.set(CLIENT_ID, client_id)
        logger.info(f"Created new client identity {client_id}")
        return client_id

    # ===== Tokens =====

    @property
    def bridge_token(self) -> Optional[str]:
        return self.get(JWT_TOKEN) or None

    @property
    def shareify_token(self) -> Optional[str]:
        return self.get(SHAREIFY_JWT) or None

    def bridge_credentials(self) -> Optional[tuple[str, str]]:
        """(email, password) for bridge re-login, if both are stored"""
        email = self.get(USER_EMAIL)
        password = self.get(USER_PASSWORD)
        if not email or not password:
            return None
        return email, password

    def server_credentials(self) -> Optional[tuple[str, str]]:
        """(username, password) for Shareify server re-login, if both are stored"""
        username = self.get(SERVER_USERNAME)
        password = self.get(SERVER_PASSWORD)
        if not username or not password:
            return None
        return username, password
