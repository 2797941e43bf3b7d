import logging
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends

from slotswap import db, swaps
from slotswap.dependencies import Actor, OptionalBus, require_database
from slotswap.errors import NotFoundError
from slotswap.models.swaps import (
    CreateSwapRequest,
    SwapOutcome,
    SwapRequestsResponse,
    SwapRequestView,
    SwapStatus,
)
from slotswap.producers.swap_producer import publish_swap_change

logger = logging.getLogger("slotswap.swap_requests")
router = APIRouter(
    prefix="/swap-requests",
    tags=["swap-requests"],
    dependencies=[Depends(require_database)],
)


async def _listing(actor: UUID, role: Literal["owner", "requester"]) -> SwapRequestsResponse:
    views = [SwapRequestView.model_validate(v) for v in await db.swaps_list_views(actor, role)]
    pending = sum(1 for v in views if v.status == SwapStatus.PENDING)
    return SwapRequestsResponse(requests=views, pending_count=pending)


@router.post("", status_code=201, response_model=SwapOutcome)
async def create_swap_request(req: CreateSwapRequest, actor: Actor, bus: OptionalBus) -> SwapOutcome:
    logger.info(
        "POST /swap-requests actor=%s offers=%s wants=%s",
        actor, req.requester_event_id, req.owner_event_id,
    )
    outcome = await swaps.create_swap_request(
        actor, req.requester_event_id, req.owner_event_id, owner=req.owner_id
    )
    await publish_swap_change(bus, "created", outcome.request)
    return outcome


@router.get("/incoming", response_model=SwapRequestsResponse)
async def list_incoming(actor: Actor) -> SwapRequestsResponse:
    return await _listing(actor, "owner")


@router.get("/outgoing", response_model=SwapRequestsResponse)
async def list_outgoing(actor: Actor) -> SwapRequestsResponse:
    return await _listing(actor, "requester")


@router.get("/{request_id}", response_model=SwapRequestView)
async def get_swap_request(request_id: UUID, actor: Actor) -> SwapRequestView:
    view = await db.swaps_get_view(request_id, actor)
    if view is None:
        raise NotFoundError(detail="Swap request not found", request_id=str(request_id))
    return SwapRequestView.model_validate(view)


@router.post("/{request_id}/accept", response_model=SwapOutcome)
async def accept_swap_request(request_id: UUID, actor: Actor, bus: OptionalBus) -> SwapOutcome:
    logger.info("POST /swap-requests/%s/accept actor=%s", request_id, actor)
    outcome = await swaps.accept_swap_request(actor, request_id)
    await publish_swap_change(bus, "accepted", outcome.request)
    return outcome


@router.post("/{request_id}/reject", response_model=SwapOutcome)
async def reject_swap_request(request_id: UUID, actor: Actor, bus: OptionalBus) -> SwapOutcome:
    logger.info("POST /swap-requests/%s/reject actor=%s", request_id, actor)
    outcome = await swaps.reject_swap_request(actor, request_id)
    await publish_swap_change(bus, "rejected", outcome.request)
    return outcome
