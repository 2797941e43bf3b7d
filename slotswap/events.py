from typing import Literal, TypedDict


class SwapChangeEvent(TypedDict):
    type: Literal["swap_request"]
    action: Literal["created", "accepted", "rejected"]
    request_id: str
    status: str
    requester_id: str
    owner_id: str
    timestamp: str


class PingEvent(TypedDict):
    type: Literal["ping"]

