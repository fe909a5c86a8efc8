import os
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

from src.shared.telemetry import Telemetry, measure_time

# Bump together with a new step in _MIGRATIONS.
SCHEMA_VERSION = 1

_MIGRATIONS: dict[int, str] = {
    1: """
        CREATE TABLE IF NOT EXISTS kv_store
        (
            key        TEXT PRIMARY KEY,
            value      TEXT NOT NULL,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
    """,
}


class DatabaseManager:
    """
    Owns the SQLite file behind the key/value store:
    1. One shared connection, re-opened if something closed it.
    2. Schema versioning through PRAGMA user_version.
    """

    def __init__(self, db_path: str = "data/ranczo.db") -> None:
        self.db_path = db_path
        self.telemetry = Telemetry("DatabaseManager")
        self._shared_connection: sqlite3.Connection | None = None

        self._ensure_parent_dir()
        self._migrate_schema()

    @property
    def is_memory(self) -> bool:
        return self.db_path == ":memory:"

    def get_connection(self) -> sqlite3.Connection:
        conn = self._shared_connection
        if conn is not None:
            try:
                conn.execute("SELECT 1")
                return conn
            except sqlite3.ProgrammingError:
                self.telemetry.log_warning("Connection was closed, reopening", path=self.db_path)
                self._shared_connection = None

        # Store calls arrive from worker threads (asyncio.to_thread)
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        if not self.is_memory:
            conn.execute("PRAGMA journal_mode=WAL")
        self._shared_connection = conn
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Commits on success, rolls back and re-raises on sqlite errors."""
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise

    def schema_version(self) -> int:
        return self.get_connection().execute("PRAGMA user_version").fetchone()[0]

    def close(self) -> None:
        if self._shared_connection is not None:
            self._shared_connection.close()
            self._shared_connection = None

    def _ensure_parent_dir(self) -> None:
        if self.is_memory:
            return
        parent = os.path.dirname(self.db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)

    @measure_time("db_migrate_schema")
    def _migrate_schema(self) -> None:
        try:
            current = self.schema_version()
            for version in range(current + 1, SCHEMA_VERSION + 1):
                with self.transaction() as conn:
                    conn.execute(_MIGRATIONS[version])
                    conn.execute(f"PRAGMA user_version = {version}")
                self.telemetry.log_info("Schema migrated", version=version)
        except sqlite3.Error as e:
            self.telemetry.log_error("Schema migration failed", e, path=self.db_path)
