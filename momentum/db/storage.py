"""Key-value persistence providers.

The stores in ``repository`` only ever see the ``KeyValueStorage`` protocol,
so the same code runs against sqlite in the bot and a dict in tests.
"""

import logging
from pathlib import Path
from typing import Dict, Protocol

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


class KeyValueStorage(Protocol):
    """String blobs by key. Failures are logged, never raised."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class MemoryStorage:
    """Dict-backed storage for tests and throwaway sessions."""

    def __init__(self, data: Dict[str, str] | None = None):
        self.data: Dict[str, str] = dict(data or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)


class NamespacedStorage:
    """Prefixes every key so several users can share one backend."""

    def __init__(self, inner: KeyValueStorage, namespace: str):
        self.inner = inner
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> str | None:
        return await self.inner.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        await self.inner.set(self._key(key), value)

    async def remove(self, key: str) -> None:
        await self.inner.remove(self._key(key))


class SqliteStorage:
    """Storage on the ``kv`` table of a sqlite database."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection and create the kv table if needed."""
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA_PATH.read_text())
        await self._db.commit()
        logger.info(f"Connected to database at {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Database connection closed")

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if self._db is None:
            raise RuntimeError("Database not connected")
        return self._db

    async def get(self, key: str) -> str | None:
        try:
            async with self.db.execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
                return row["value"] if row else None
        except (aiosqlite.Error, RuntimeError) as e:
            logger.error(f"Failed to read {key!r}: {e}")
            return None

    async def set(self, key: str, value: str) -> None:
        try:
            await self.db.execute(
                """
                INSERT INTO kv (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = datetime('now')
                """,
                (key, value),
            )
            await self.db.commit()
        except (aiosqlite.Error, RuntimeError) as e:
            logger.error(f"Failed to write {key!r}: {e}")

    async def remove(self, key: str) -> None:
        try:
            await self.db.execute("DELETE FROM kv WHERE key = ?", (key,))
            await self.db.commit()
        except (aiosqlite.Error, RuntimeError) as e:
            logger.error(f"Failed to remove {key!r}: {e}")
