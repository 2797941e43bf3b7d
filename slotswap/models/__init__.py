from slotswap.models.events import Event, EventStatus
from slotswap.models.profiles import Profile
from slotswap.models.swaps import SwapRequest, SwapStatus

__all__ = [
    "Event",
    "EventStatus",
    "Profile",
    "SwapRequest",
    "SwapStatus",
]
