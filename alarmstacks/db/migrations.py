"""Database migration runner for the key-value store."""

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


async def init_database(db: aiosqlite.Connection) -> None:
    """Create the kv table from schema.sql."""
    schema_path = Path(__file__).parent / "schema.sql"
    schema_sql = schema_path.read_text()

    await db.executescript(schema_sql)
    await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    await db.commit()


async def run_migrations(db_path: Path) -> None:
    """Bring the database at `db_path` up to SCHEMA_VERSION."""
    async with aiosqlite.connect(db_path) as db:
        async with db.execute("PRAGMA user_version") as cursor:
            row = await cursor.fetchone()
            version = row[0] if row else 0

        if version >= SCHEMA_VERSION:
            logger.debug(f"Database at {db_path} is current (version {version})")
            return

        await init_database(db)
        logger.info(f"Database initialized at {db_path} (version {SCHEMA_VERSION})")
