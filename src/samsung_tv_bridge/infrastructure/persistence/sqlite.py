from typing import Optional, Any
import json
import aiosqlite
import logging
from pathlib import Path
from datetime import datetime

from samsung_tv_bridge.domain.errors import PersistenceError
from samsung_tv_bridge.domain.ports import KeyValueStorePort

logger = logging.getLogger(__name__)


class SQLiteStateStore(KeyValueStorePort):
    """
    Implements KeyValueStorePort using an SQLite database for JSON documents.
    Table schema:
      - key TEXT PRIMARY KEY
      - timestamp TEXT NOT NULL (format: 'DD-MM-YYYY HH:MM:SS')
      - value TEXT NOT NULL (JSON-encoded)
    """
    def __init__(self, db_path: str):
        self.db_path = db_path
        self.connection = None
        self._closing = False

    async def initialize(self) -> None:
        """Open database connection and create table if needed."""
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            self.connection = await aiosqlite.connect(self.db_path)
            await self.connection.execute(
                '''
                CREATE TABLE IF NOT EXISTS state_store (
                  key TEXT PRIMARY KEY,
                  timestamp TEXT NOT NULL,
                  value TEXT NOT NULL
                )
                '''
            )
            await self.connection.commit()
            logger.info(f"SQLite state store initialized at {self.db_path}")
        except (aiosqlite.Error, OSError) as e:
            logger.critical(f"SQLite error during initialization: {e}")
            raise PersistenceError(f"Failed to initialize database: {e}") from e

    async def close(self) -> None:
        """Close database connection."""
        if self.connection:
            self._closing = True
            logger.info("Closing SQLite state store connection")
            try:
                await self.connection.close()
            except aiosqlite.Error as e:
                logger.error(f"Error closing database connection: {e}")
            finally:
                self.connection = None
                self._closing = False

    async def get_item(self, key: str) -> Optional[Any]:
        """Return the JSON-decoded document for `key`, or None if missing."""
        self._ensure_open("get", key)
        try:
            cursor = await self.connection.execute(
                'SELECT value FROM state_store WHERE key = ?', (key,)
            )
            row = await cursor.fetchone()
            await cursor.close()
        except aiosqlite.Error as e:
            logger.error(f"SQLite error during get operation for key '{key}': {e}")
            raise PersistenceError(f"Failed to read '{key}': {e}") from e

        if not row:
            return None

        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            logger.error(f"JSON decode error for key '{key}': {e}")
            raise PersistenceError(f"Stored value for '{key}' is not valid JSON") from e

    async def update_item(self, key: str, value: Any) -> None:
        """Persist `value` as JSON under `key`, replacing any previous value."""
        self._ensure_open("update", key)
        try:
            text = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f"JSON encode error for key '{key}': {e}")
            raise PersistenceError(f"Value for '{key}' is not JSON-serializable: {e}") from e

        timestamp = datetime.now().strftime('%d-%m-%Y %H:%M:%S')
        try:
            await self.connection.execute(
                '''
                INSERT INTO state_store (key, timestamp, value)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    timestamp = excluded.timestamp,
                    value = excluded.value
                ''',
                (key, timestamp, text)
            )
            await self.connection.commit()
        except aiosqlite.Error as e:
            logger.error(f"SQLite error during update operation for key '{key}': {e}")
            await self.connection.rollback()
            raise PersistenceError(f"Failed to write '{key}': {e}") from e

    def _ensure_open(self, operation: str, key: str) -> None:
        if not self.connection:
            raise PersistenceError(f"Database connection not initialized during {operation} of '{key}'")
        if self._closing:
            raise PersistenceError(f"Attempted to {operation} key '{key}' while database is closing")
