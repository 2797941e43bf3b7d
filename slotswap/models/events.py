from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class EventStatus(str, Enum):
    BUSY = "BUSY"
    SWAPPABLE = "SWAPPABLE"
    SWAP_PENDING = "SWAP_PENDING"


class Event(BaseModel):
    id: UUID
    owner_id: UUID
    title: str
    start_time: datetime
    end_time: datetime
    status: EventStatus = EventStatus.BUSY
    created_at: datetime
    updated_at: datetime


class CreateEventRequest(BaseModel):
    title: str
    start_time: datetime
    end_time: datetime


class EventsResponse(BaseModel):
    events: list[Event]


class MarketplaceEvent(BaseModel):
    id: UUID
    owner_id: UUID
    title: str
    start_time: datetime
    end_time: datetime
    status: EventStatus
    owner_name: str
    owner_email: str


class MarketplaceResponse(BaseModel):
    events: list[MarketplaceEvent]
