"""Swap service: applies state-machine operations to storage.

Each write runs in a single transaction: lock the rows involved, re-check
every precondition against the locked rows with ``slotswap.machine``, then
write. A failed check raises before anything is written and the transaction
rolls back, so callers see either the full effect or none of it.

Concurrent requests for the same event serialize on the row lock; the loser
re-reads the event as SWAP_PENDING and fails with InvalidStateError.

When Postgres aborts a transaction on a deadlock (account deletion locks the
profile before its events, the other writers lock events first) the whole
operation is re-run from the start, up to ``CONFLICT_RETRIES`` times, before the
TransactionConflictError reaches the caller.
"""

import functools
import logging
from datetime import datetime
from uuid import UUID

from slotswap import db, machine
from slotswap.errors import NotFoundError, TransactionConflictError
from slotswap.models.events import Event, EventStatus
from slotswap.models.swaps import SwapOutcome, SwapRequest

logger = logging.getLogger(__name__)

CONFLICT_RETRIES = 3


def _retry_on_conflict(func):
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        for attempt in range(1, CONFLICT_RETRIES + 1):
            try:
                return await func(*args, **kwargs)
            except TransactionConflictError:
                if attempt == CONFLICT_RETRIES:
                    raise
                logger.info(
                    "%s aborted by a concurrent transaction, retrying (%d/%d)",
                    func.__name__, attempt, CONFLICT_RETRIES,
                )

    return wrapper


async def _lock_event(conn, event_id: UUID) -> Event:
    locked = await db.events_lock(conn, [event_id])
    event = locked.get(event_id)
    if event is None:
        raise NotFoundError(detail="Event not found", event_id=str(event_id))
    return event


async def _lock_pair(conn, requester_event_id: UUID, owner_event_id: UUID) -> tuple[Event, Event]:
    locked = await db.events_lock(conn, [requester_event_id, owner_event_id])
    for event_id in (requester_event_id, owner_event_id):
        if event_id not in locked:
            raise NotFoundError(detail="Event not found", event_id=str(event_id))
    return locked[requester_event_id], locked[owner_event_id]


async def create_event(actor: UUID, title: str, start_time: datetime, end_time: datetime) -> Event:
    title = machine.validate_event_input(title, start_time, end_time)
    event = await db.events_insert(actor, title, start_time, end_time)
    logger.info("Created event id=%s owner=%s", event.id, actor)
    return event


async def get_event(actor: UUID, event_id: UUID) -> Event:
    """Own events are always visible; other profiles' only while swappable."""
    event = await db.events_get(event_id)
    if event is None or (event.owner_id != actor and event.status != EventStatus.SWAPPABLE):
        raise NotFoundError(detail="Event not found", event_id=str(event_id))
    return event


@_retry_on_conflict
async def mark_swappable(actor: UUID, event_id: UUID) -> Event:
    async with db.transaction() as conn:
        event = await _lock_event(conn, event_id)
        updated = await db.events_save(conn, machine.mark_swappable(event, actor))
    logger.info("Event %s marked swappable by %s", event_id, actor)
    return updated


@_retry_on_conflict
async def mark_busy(actor: UUID, event_id: UUID) -> Event:
    async with db.transaction() as conn:
        event = await _lock_event(conn, event_id)
        updated = await db.events_save(conn, machine.mark_busy(event, actor))
    logger.info("Event %s marked busy by %s", event_id, actor)
    return updated


@_retry_on_conflict
async def delete_event(actor: UUID, event_id: UUID) -> None:
    async with db.transaction() as conn:
        event = await _lock_event(conn, event_id)
        machine.check_delete(event, actor)
        await db.events_delete(conn, event_id)


@_retry_on_conflict
async def create_swap_request(
    actor: UUID,
    requester_event_id: UUID,
    owner_event_id: UUID,
    owner: UUID | None = None,
) -> SwapOutcome:
    async with db.transaction() as conn:
        requester_event, owner_event = await _lock_pair(conn, requester_event_id, owner_event_id)
        requester_event, owner_event = machine.open_swap(requester_event, owner_event, actor, owner)
        request = await db.swaps_insert(
            conn,
            requester_id=actor,
            requester_event_id=requester_event.id,
            owner_id=owner_event.owner_id,
            owner_event_id=owner_event.id,
        )
        requester_event = await db.events_save(conn, requester_event)
        owner_event = await db.events_save(conn, owner_event)
    logger.info(
        "Swap request %s created: %s offers %s for %s",
        request.id, actor, requester_event_id, owner_event_id,
    )
    return SwapOutcome(request=request, requester_event=requester_event, owner_event=owner_event)


@_retry_on_conflict
async def _respond(actor: UUID, request_id: UUID, respond) -> SwapOutcome:
    async with db.transaction() as conn:
        request = await db.swaps_lock(conn, request_id)
        if request is None:
            raise NotFoundError(detail="Swap request not found", request_id=str(request_id))
        requester_event, owner_event = await _lock_pair(
            conn, request.requester_event_id, request.owner_event_id
        )
        request, requester_event, owner_event = respond(request, requester_event, owner_event, actor)
        requester_event = await db.events_save(conn, requester_event)
        owner_event = await db.events_save(conn, owner_event)
        request = await db.swaps_set_status(conn, request.id, request.status)
    return SwapOutcome(request=request, requester_event=requester_event, owner_event=owner_event)


async def accept_swap_request(actor: UUID, request_id: UUID) -> SwapOutcome:
    outcome = await _respond(actor, request_id, machine.accept_swap)
    logger.info("Swap request %s accepted by %s", request_id, actor)
    return outcome


async def reject_swap_request(actor: UUID, request_id: UUID) -> SwapOutcome:
    outcome = await _respond(actor, request_id, machine.reject_swap)
    logger.info("Swap request %s rejected by %s", request_id, actor)
    return outcome


@_retry_on_conflict
async def delete_profile(actor: UUID) -> list[SwapRequest]:
    """Delete the actor's profile, first releasing every pending swap it takes part in.

    Returns the requests that were released, now REJECTED.
    """
    released: list[SwapRequest] = []
    async with db.transaction() as conn:
        if await db.profiles_lock(conn, actor) is None:
            raise NotFoundError(detail="Profile not found", profile_id=str(actor))
        for request in await db.swaps_lock_pending_for_profile(conn, actor):
            requester_event, owner_event = await _lock_pair(
                conn, request.requester_event_id, request.owner_event_id
            )
            request, requester_event, owner_event = machine.release_swap(
                request, requester_event, owner_event
            )
            await db.events_save(conn, requester_event)
            await db.events_save(conn, owner_event)
            released.append(await db.swaps_set_status(conn, request.id, request.status))
        await db.profiles_delete(conn, actor)
    logger.info("Profile %s deleted, %d pending swaps released", actor, len(released))
    return released
