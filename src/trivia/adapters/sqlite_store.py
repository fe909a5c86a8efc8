import asyncio
import sqlite3
import threading

from src.trivia.adapters.db_manager import DatabaseManager
from src.trivia.domain.ports import IKeyValueStore
from src.shared.telemetry import Telemetry


class SQLiteKeyValueStore(IKeyValueStore):
    """
    Key/value gateway on top of a single SQLite table.
    Blocking sqlite3 calls run in a worker thread; a lock serialises them
    because the connection is shared.
    """

    def __init__(self, db_manager: DatabaseManager) -> None:
        self.telemetry = Telemetry("SQLiteKeyValueStore")
        self.db_manager = db_manager
        self._lock = threading.Lock()

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(self._get, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)

    def _get(self, key: str) -> str | None:
        with self._lock:
            try:
                row = (
                    self.db_manager.get_connection()
                    .execute("SELECT value FROM kv_store WHERE key = ?", (key,))
                    .fetchone()
                )
            except sqlite3.Error as e:
                self.telemetry.log_error("get failed", e, key=key)
                return None
        return row[0] if row else None

    def _set(self, key: str, value: str) -> None:
        with self._lock:
            try:
                with self.db_manager.transaction() as conn:
                    conn.execute(
                        "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                        "ON CONFLICT(key) DO UPDATE SET "
                        "value = excluded.value, updated_at = CURRENT_TIMESTAMP",
                        (key, value),
                    )
            except sqlite3.Error as e:
                self.telemetry.log_error("set failed", e, key=key)

    def _remove(self, key: str) -> None:
        with self._lock:
            try:
                with self.db_manager.transaction() as conn:
                    conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            except sqlite3.Error as e:
                self.telemetry.log_error("remove failed", e, key=key)
