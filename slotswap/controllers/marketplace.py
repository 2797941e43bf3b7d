from fastapi import APIRouter, Depends

from slotswap import db
from slotswap.dependencies import Actor, require_database
from slotswap.models.events import MarketplaceResponse

router = APIRouter(tags=["marketplace"], dependencies=[Depends(require_database)])


@router.get("/marketplace", response_model=MarketplaceResponse)
async def list_marketplace(actor: Actor) -> MarketplaceResponse:
    events = await db.events_list_marketplace(actor)
    return MarketplaceResponse(events=events)
