import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from slotswap import db, swaps
from slotswap.dependencies import Actor, require_database
from slotswap.models.events import CreateEventRequest, Event, EventsResponse, EventStatus

logger = logging.getLogger("slotswap.events")
router = APIRouter(prefix="/events", tags=["events"], dependencies=[Depends(require_database)])


@router.post("", status_code=201, response_model=Event)
async def create_event(req: CreateEventRequest, actor: Actor) -> Event:
    logger.info("POST /events actor=%s", actor)
    return await swaps.create_event(actor, req.title, req.start_time, req.end_time)


@router.get("", response_model=EventsResponse)
async def list_my_events(
    actor: Actor,
    status: Optional[EventStatus] = Query(None, description="Only events in this status"),
) -> EventsResponse:
    events = await db.events_list_for_owner(actor, status=status)
    return EventsResponse(events=events)


@router.get("/{event_id}", response_model=Event)
async def get_event(event_id: UUID, actor: Actor) -> Event:
    return await swaps.get_event(actor, event_id)


@router.post("/{event_id}/swappable", response_model=Event)
async def mark_swappable(event_id: UUID, actor: Actor) -> Event:
    logger.info("POST /events/%s/swappable actor=%s", event_id, actor)
    return await swaps.mark_swappable(actor, event_id)


@router.post("/{event_id}/busy", response_model=Event)
async def mark_busy(event_id: UUID, actor: Actor) -> Event:
    logger.info("POST /events/%s/busy actor=%s", event_id, actor)
    return await swaps.mark_busy(actor, event_id)


@router.delete("/{event_id}", status_code=204)
async def delete_event(event_id: UUID, actor: Actor) -> Response:
    logger.info("DELETE /events/%s actor=%s", event_id, actor)
    await swaps.delete_event(actor, event_id)
    return Response(status_code=204)
