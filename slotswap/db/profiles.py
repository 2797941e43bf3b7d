"""Profile repository."""

import logging
from uuid import UUID

import psycopg
from psycopg import errors as pg_errors

from slotswap.db.core import _get_connection
from slotswap.errors import BadRequestError
from slotswap.models.profiles import Profile

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_NAME = "User"

PROFILE_COLUMNS = "id, name, email, created_at"


def _row_to_profile(row) -> Profile:
    return Profile(id=row[0], name=row[1], email=row[2], created_at=row[3])


async def profiles_ensure(profile_id: UUID, email: str, name: str | None = None) -> Profile:
    """Create the profile for a newly established identity, or return the existing one."""
    async with _get_connection() as conn:
        try:
            await conn.execute(
                """INSERT INTO profiles (id, name, email) VALUES (%s, %s, %s)
                   ON CONFLICT (id) DO NOTHING""",
                (profile_id, name or DEFAULT_PROFILE_NAME, email),
            )
        except pg_errors.UniqueViolation:
            raise BadRequestError(detail="Email already registered", email=email) from None
        row = await (await conn.execute(
            f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE id = %s", (profile_id,)
        )).fetchone()
        return _row_to_profile(row)


async def profiles_get(profile_id: UUID) -> Profile | None:
    async with _get_connection() as conn:
        row = await (await conn.execute(
            f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE id = %s", (profile_id,)
        )).fetchone()
        return _row_to_profile(row) if row else None


async def profiles_lock(conn: psycopg.AsyncConnection, profile_id: UUID) -> Profile | None:
    row = await (await conn.execute(
        f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE id = %s FOR UPDATE", (profile_id,)
    )).fetchone()
    return _row_to_profile(row) if row else None


async def profiles_delete(conn: psycopg.AsyncConnection, profile_id: UUID) -> bool:
    """Delete a profile; owned events and swap requests go with it (ON DELETE CASCADE)."""
    cur = await conn.execute("DELETE FROM profiles WHERE id = %s", (profile_id,))
    deleted = cur.rowcount > 0
    if deleted:
        logger.info("Deleted profile %s", profile_id)
    return deleted
