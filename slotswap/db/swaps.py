"""Swap request repository.

Write-path helpers take the caller's transaction connection; the listing
queries are read-side views that join both events and both parties' names.
"""

from typing import Any, Literal
from uuid import UUID

import psycopg

from slotswap.db.core import _get_connection
from slotswap.models.swaps import SwapRequest, SwapStatus

SWAP_COLUMNS = (
    "id, requester_id, requester_event_id, owner_id, owner_event_id, status, created_at, updated_at"
)

_VIEW_SELECT = """
    SELECT s.id, s.status, s.created_at, s.updated_at, s.requester_id, s.owner_id,
           rp.name, op.name,
           re.id, re.title, re.start_time, re.end_time,
           oe.id, oe.title, oe.start_time, oe.end_time
    FROM swap_requests s
    JOIN profiles rp ON rp.id = s.requester_id
    JOIN profiles op ON op.id = s.owner_id
    JOIN events re ON re.id = s.requester_event_id
    JOIN events oe ON oe.id = s.owner_event_id
"""


def _row_to_swap(row) -> SwapRequest:
    return SwapRequest(
        id=row[0],
        requester_id=row[1],
        requester_event_id=row[2],
        owner_id=row[3],
        owner_event_id=row[4],
        status=row[5],
        created_at=row[6],
        updated_at=row[7],
    )


def _row_to_view(row) -> dict[str, Any]:
    return {
        "id": row[0],
        "status": row[1],
        "created_at": row[2],
        "updated_at": row[3],
        "requester_id": row[4],
        "owner_id": row[5],
        "requester_name": row[6],
        "owner_name": row[7],
        "requester_event": {
            "id": row[8],
            "title": row[9],
            "start_time": row[10],
            "end_time": row[11],
        },
        "owner_event": {
            "id": row[12],
            "title": row[13],
            "start_time": row[14],
            "end_time": row[15],
        },
    }


async def swaps_insert(
    conn: psycopg.AsyncConnection,
    requester_id: UUID,
    requester_event_id: UUID,
    owner_id: UUID,
    owner_event_id: UUID,
) -> SwapRequest:
    row = await (await conn.execute(
        f"""INSERT INTO swap_requests (requester_id, requester_event_id, owner_id, owner_event_id, status)
            VALUES (%s, %s, %s, %s, 'PENDING')
            RETURNING {SWAP_COLUMNS}""",
        (requester_id, requester_event_id, owner_id, owner_event_id),
    )).fetchone()
    return _row_to_swap(row)


async def swaps_lock(conn: psycopg.AsyncConnection, request_id: UUID) -> SwapRequest | None:
    row = await (await conn.execute(
        f"SELECT {SWAP_COLUMNS} FROM swap_requests WHERE id = %s FOR UPDATE", (request_id,)
    )).fetchone()
    return _row_to_swap(row) if row else None


async def swaps_lock_pending_for_profile(
    conn: psycopg.AsyncConnection, profile_id: UUID
) -> list[SwapRequest]:
    rows = await conn.execute(
        f"""SELECT {SWAP_COLUMNS} FROM swap_requests
            WHERE status = 'PENDING' AND (requester_id = %s OR owner_id = %s)
            ORDER BY id
            FOR UPDATE""",
        (profile_id, profile_id),
    )
    return [_row_to_swap(row) async for row in rows]


async def swaps_set_status(
    conn: psycopg.AsyncConnection, request_id: UUID, status: SwapStatus
) -> SwapRequest:
    row = await (await conn.execute(
        f"""UPDATE swap_requests SET status = %s::swap_status
            WHERE id = %s
            RETURNING {SWAP_COLUMNS}""",
        (status.value, request_id),
    )).fetchone()
    return _row_to_swap(row)


async def swaps_get_view(request_id: UUID, viewer_id: UUID) -> dict[str, Any] | None:
    """A single request as seen by one of its parties; None for anyone else."""
    async with _get_connection() as conn:
        row = await (await conn.execute(
            _VIEW_SELECT + " WHERE s.id = %s AND (s.requester_id = %s OR s.owner_id = %s)",
            (request_id, viewer_id, viewer_id),
        )).fetchone()
        return _row_to_view(row) if row else None


async def swaps_list_views(
    profile_id: UUID, role: Literal["owner", "requester"]
) -> list[dict[str, Any]]:
    """Requests where the profile is the owner (incoming) or requester (outgoing), newest first."""
    column = "s.owner_id" if role == "owner" else "s.requester_id"
    async with _get_connection() as conn:
        rows = await conn.execute(
            _VIEW_SELECT + f" WHERE {column} = %s ORDER BY s.created_at DESC",
            (profile_id,),
        )
        return [_row_to_view(row) async for row in rows]
