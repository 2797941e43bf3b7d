"""Event repository: owner calendars, marketplace listing and row locks."""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

import psycopg
from psycopg import errors as pg_errors

from slotswap.db.core import _get_connection
from slotswap.errors import NotFoundError, ValidationError
from slotswap.models.events import Event, EventStatus

logger = logging.getLogger(__name__)

EVENT_COLUMNS = "id, owner_id, title, start_time, end_time, status, created_at, updated_at"


def _row_to_event(row) -> Event:
    return Event(
        id=row[0],
        owner_id=row[1],
        title=row[2],
        start_time=row[3],
        end_time=row[4],
        status=row[5],
        created_at=row[6],
        updated_at=row[7],
    )


async def events_insert(
    owner_id: UUID,
    title: str,
    start_time: datetime,
    end_time: datetime,
) -> Event:
    async with _get_connection() as conn:
        try:
            row = await (await conn.execute(
                f"""INSERT INTO events (owner_id, title, start_time, end_time, status)
                    VALUES (%s, %s, %s, %s, 'BUSY')
                    RETURNING {EVENT_COLUMNS}""",
                (owner_id, title, start_time, end_time),
            )).fetchone()
        except pg_errors.CheckViolation as e:
            raise ValidationError(detail="End time must be after start time", field="end_time") from e
        except pg_errors.ForeignKeyViolation as e:
            raise NotFoundError(detail="Profile not found", profile_id=str(owner_id)) from e
    return _row_to_event(row)


async def events_get(event_id: UUID) -> Event | None:
    async with _get_connection() as conn:
        row = await (await conn.execute(
            f"SELECT {EVENT_COLUMNS} FROM events WHERE id = %s", (event_id,)
        )).fetchone()
        return _row_to_event(row) if row else None


async def events_list_for_owner(owner_id: UUID, status: EventStatus | None = None) -> list[Event]:
    clauses = ["owner_id = %s"]
    params: list[Any] = [owner_id]
    if status is not None:
        clauses.append("status = %s::event_status")
        params.append(status.value)
    where = " AND ".join(clauses)
    async with _get_connection() as conn:
        rows = await conn.execute(
            f"SELECT {EVENT_COLUMNS} FROM events WHERE {where} ORDER BY start_time ASC",
            tuple(params),
        )
        return [_row_to_event(row) async for row in rows]


async def events_list_marketplace(viewer_id: UUID) -> list[dict[str, Any]]:
    """Every other profile's swappable event, soonest first, with owner details."""
    async with _get_connection() as conn:
        rows = await conn.execute(
            """SELECT e.id, e.owner_id, e.title, e.start_time, e.end_time, e.status, p.name, p.email
               FROM events e
               JOIN profiles p ON p.id = e.owner_id
               WHERE e.status = 'SWAPPABLE' AND e.owner_id <> %s
               ORDER BY e.start_time ASC""",
            (viewer_id,),
        )
        result = []
        async for row in rows:
            result.append(
                {
                    "id": row[0],
                    "owner_id": row[1],
                    "title": row[2],
                    "start_time": row[3],
                    "end_time": row[4],
                    "status": row[5],
                    "owner_name": row[6],
                    "owner_email": row[7],
                }
            )
        return result


async def events_lock(conn: psycopg.AsyncConnection, event_ids: list[UUID]) -> dict[UUID, Event]:
    """Lock the given events for the rest of the transaction.

    Rows are locked in ascending id order so concurrent transactions touching
    the same pair cannot deadlock.
    """
    rows = await conn.execute(
        f"SELECT {EVENT_COLUMNS} FROM events WHERE id = ANY(%s) ORDER BY id FOR UPDATE",
        (sorted(set(event_ids)),),
    )
    events = [_row_to_event(row) async for row in rows]
    return {event.id: event for event in events}


async def events_save(conn: psycopg.AsyncConnection, event: Event) -> Event:
    """Write back the owner and status of a locked event."""
    row = await (await conn.execute(
        f"""UPDATE events SET owner_id = %s, status = %s::event_status
            WHERE id = %s
            RETURNING {EVENT_COLUMNS}""",
        (event.owner_id, event.status.value, event.id),
    )).fetchone()
    return _row_to_event(row)


async def events_delete(conn: psycopg.AsyncConnection, event_id: UUID) -> None:
    await conn.execute("DELETE FROM events WHERE id = %s", (event_id,))
    logger.info("Deleted event %s", event_id)
