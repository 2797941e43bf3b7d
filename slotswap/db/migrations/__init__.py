"""Versioned schema migrations.

Files here are named ``NNN_description.sql`` and applied in version order,
each in its own transaction, recording the version in ``schema_migrations``.
"""

import logging
from pathlib import Path
from typing import Any

from slotswap.db.core import _get_connection

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent

_CREATE_MIGRATIONS_TABLE = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        description TEXT
    );
"""


async def get_current_version() -> int:
    """Highest applied version, 0 on a fresh database."""
    async with _get_connection() as conn:
        await conn.execute(_CREATE_MIGRATIONS_TABLE)
        cur = await conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
        row = await cur.fetchone()
    return int(row[0]) if row and row[0] else 0


async def apply_migration(version: int, sql: str, description: str = "") -> bool:
    """Run one migration; False if the database already has it."""
    if version <= await get_current_version():
        logger.debug("Skipping migration %03d, already applied", version)
        return False

    async with _get_connection() as conn:
        try:
            async with conn.transaction():
                await conn.execute(sql)
                await conn.execute(
                    "INSERT INTO schema_migrations (version, description) VALUES (%s, %s)",
                    (version, description),
                )
        except Exception as e:
            logger.error("Migration %03d (%s) failed: %s", version, description, e)
            raise
    logger.info("Applied migration %03d: %s", version, description)
    return True


def discover_migrations() -> list[dict[str, Any]]:
    found = []
    for path in sorted(MIGRATIONS_DIR.glob("*.sql")):
        prefix, _, rest = path.stem.partition("_")
        if not prefix.isdigit():
            continue
        found.append({
            "version": int(prefix),
            "filename": path.name,
            "description": rest,
            "path": path,
        })
    return sorted(found, key=lambda m: m["version"])


async def get_pending_migrations() -> list[dict[str, Any]]:
    current = await get_current_version()
    return [m for m in discover_migrations() if m["version"] > current]


async def run_migrations() -> int:
    """Apply every pending migration; returns how many ran."""
    count = 0
    for migration in await get_pending_migrations():
        if await apply_migration(migration["version"], migration["path"].read_text(), migration["description"]):
            count += 1
    return count
