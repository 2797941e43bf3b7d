from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel

from slotswap.models.events import Event


class SwapStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class SwapRequest(BaseModel):
    id: UUID
    requester_id: UUID
    requester_event_id: UUID
    owner_id: UUID
    owner_event_id: UUID
    status: SwapStatus = SwapStatus.PENDING
    created_at: datetime
    updated_at: datetime


class CreateSwapRequest(BaseModel):
    requester_event_id: UUID
    owner_event_id: UUID
    owner_id: UUID | None = None


class SwapOutcome(BaseModel):
    """A swap request together with both events as committed."""

    request: SwapRequest
    requester_event: Event
    owner_event: Event


class EventSummary(BaseModel):
    id: UUID
    title: str
    start_time: datetime
    end_time: datetime


class SwapRequestView(BaseModel):
    id: UUID
    status: SwapStatus
    created_at: datetime
    updated_at: datetime
    requester_id: UUID
    owner_id: UUID
    requester_name: str
    owner_name: str
    requester_event: EventSummary
    owner_event: EventSummary


class SwapRequestsResponse(BaseModel):
    requests: list[SwapRequestView]
    pending_count: int
