import logging

from slotswap.db.migrations import get_current_version, run_migrations

logger = logging.getLogger(__name__)


async def _ensure_schema() -> None:
    """Apply whatever migrations the database has not seen yet."""
    before = await get_current_version()
    if await run_migrations():
        logger.info("Schema migrated: version %d -> %d", before, await get_current_version())
    else:
        logger.info("Schema at version %d, nothing to migrate", before)
