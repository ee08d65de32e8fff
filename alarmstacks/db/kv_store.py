"""Typed key-value stores backing chain state."""

import json
import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import aiosqlite

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Typed get/set/remove over string keys.

    A read of a missing key and a read of a value with the wrong type
    both return None.
    """

    def get_bool(self, key: str) -> bool | None: ...
    def get_int(self, key: str) -> int | None: ...
    def get_double(self, key: str) -> float | None: ...
    def get_string(self, key: str) -> str | None: ...
    def get_string_array(self, key: str) -> list[str] | None: ...

    def set_bool(self, value: bool, key: str) -> None: ...
    def set_int(self, value: int, key: str) -> None: ...
    def set_double(self, value: float, key: str) -> None: ...
    def set_string(self, value: str, key: str) -> None: ...
    def set_string_array(self, value: list[str], key: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Dict-backed store implementing KeyValueStore."""

    def __init__(self, values: dict[str, Any] | None = None):
        self._values: dict[str, Any] = dict(values or {})

    def _write(self, key: str, value: Any) -> None:
        self._values[key] = value

    def _delete(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._values)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    # Getters

    def get_bool(self, key: str) -> bool | None:
        value = self._values.get(key)
        return value if isinstance(value, bool) else None

    def get_int(self, key: str) -> int | None:
        value = self._values.get(key)
        # bool is an int subclass but never a number here
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value)
        return None

    def get_double(self, key: str) -> float | None:
        value = self._values.get(key)
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return float(value)
        return None

    def get_string(self, key: str) -> str | None:
        value = self._values.get(key)
        return value if isinstance(value, str) else None

    def get_string_array(self, key: str) -> list[str] | None:
        value = self._values.get(key)
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return list(value)
        return None

    # Setters

    def set_bool(self, value: bool, key: str) -> None:
        self._write(key, bool(value))

    def set_int(self, value: int, key: str) -> None:
        self._write(key, int(value))

    def set_double(self, value: float, key: str) -> None:
        self._write(key, float(value))

    def set_string(self, value: str, key: str) -> None:
        self._write(key, str(value))

    def set_string_array(self, value: list[str], key: str) -> None:
        self._write(key, [str(item) for item in value])

    def remove(self, key: str) -> None:
        self._delete(key)


class SqliteKeyValueStore(MemoryKeyValueStore):
    """SQLite-backed store.

    Reads and writes hit an in-memory snapshot so the engine stays
    synchronous; `commit()` flushes every changed or removed key in one
    transaction.
    """

    def __init__(self, db_path: Path):
        super().__init__()
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._dirty: set[str] = set()

    async def connect(self) -> None:
        """Open database connection and load the snapshot."""
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        logger.info(f"Connected to key-value store at {self.db_path}")
        await self.reload()

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Key-value store connection closed")

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if self._db is None:
            raise RuntimeError("Database not connected")
        return self._db

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._dirty)

    async def reload(self) -> None:
        """Replace the snapshot with the table contents, dropping pending changes."""
        values: dict[str, Any] = {}
        async with self.db.execute("SELECT key, value FROM kv") as cursor:
            rows = await cursor.fetchall()
            for row in rows:
                try:
                    values[row["key"]] = json.loads(row["value"])
                except json.JSONDecodeError:
                    logger.warning(f"Skipping undecodable value for key {row['key']!r}")
        self._values = values
        self._dirty.clear()
        logger.debug(f"Loaded {len(values)} keys")

    async def commit(self) -> None:
        """Persist pending writes and removals."""
        if not self._dirty:
            return

        upserts = []
        deletes = []
        for key in sorted(self._dirty):
            if key in self._values:
                upserts.append((key, json.dumps(self._values[key])))
            else:
                deletes.append((key,))

        await self.db.executemany(
            "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", upserts
        )
        await self.db.executemany("DELETE FROM kv WHERE key = ?", deletes)
        await self.db.commit()

        logger.debug(f"Committed {len(upserts)} writes, {len(deletes)} removals")
        self._dirty.clear()

    def _write(self, key: str, value: Any) -> None:
        super()._write(key, value)
        self._dirty.add(key)

    def _delete(self, key: str) -> None:
        if key in self._values:
            self._dirty.add(key)
        super()._delete(key)
