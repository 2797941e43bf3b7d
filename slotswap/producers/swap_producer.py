import logging
from datetime import datetime, timezone
from typing import Literal

from slotswap.bus import EventBus
from slotswap.events import SwapChangeEvent
from slotswap.models.swaps import SwapRequest

logger = logging.getLogger("slotswap.notifications")

SwapAction = Literal["created", "accepted", "rejected"]


def build_swap_event(action: SwapAction, request: SwapRequest) -> SwapChangeEvent:
    return {
        "type": "swap_request",
        "action": action,
        "request_id": str(request.id),
        "status": request.status.value,
        "requester_id": str(request.requester_id),
        "owner_id": str(request.owner_id),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def publish_swap_change(
    event_bus: EventBus | None, action: SwapAction, request: SwapRequest
) -> None:
    """Notify both parties of a committed change.

    Runs after the transaction commits, so a bus failure is logged and
    never reported to the caller.
    """
    if event_bus is None:
        return
    event = build_swap_event(action, request)
    for profile_id in (request.requester_id, request.owner_id):
        try:
            await event_bus.publish_swap(profile_id, event)
        except Exception as e:
            logger.warning("Failed to publish %s for request %s to %s: %s", action, request.id, profile_id, e)
