"""Data access layer for axiom-log."""

import json
import logging
from pathlib import Path
from typing import Any

import aiosqlite

from .engine import get_db_path

logger = logging.getLogger(__name__)


class CollectionRepository:
    """Repository for the JSON-array collections (``entries``, ``plans``)."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def read(self, name: str) -> Any:
        """Read a collection's decoded payload.

        Returns ``None`` if the collection is missing or its JSON is corrupt.
        """
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT payload FROM collections WHERE name = ?", (name,)
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning("Stored %s collection is not valid JSON: %s", name, e)
            return None

    async def write(self, name: str, records: list[dict]) -> None:
        """Replace a collection's payload."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO collections (name, payload, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(name) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (name, json.dumps(records)),
            )
            await db.commit()

    async def write_many(self, collections: dict[str, list[dict]]) -> None:
        """Replace several collections in one transaction."""
        async with aiosqlite.connect(self.db_path) as db:
            for name, records in collections.items():
                await db.execute(
                    """
                    INSERT INTO collections (name, payload, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(name) DO UPDATE SET
                        payload = excluded.payload,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (name, json.dumps(records)),
                )
            await db.commit()


class MetaRepository:
    """Key/value repository for sync bookkeeping and credentials."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def get(self, key: str, default: Any = None) -> Any:
        """Get a JSON-decoded value."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("SELECT value FROM meta WHERE key = ?", (key,))
            row = await cursor.fetchone()
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt meta value for %s", key)
            return default

    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-encodable value."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO meta (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, json.dumps(value)),
            )
            await db.commit()

    async def delete(self, *keys: str) -> None:
        """Remove one or more keys."""
        async with aiosqlite.connect(self.db_path) as db:
            for key in keys:
                await db.execute("DELETE FROM meta WHERE key = ?", (key,))
            await db.commit()
