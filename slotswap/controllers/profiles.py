import logging

from fastapi import APIRouter, Depends, Response

from slotswap import db, swaps
from slotswap.dependencies import Actor, OptionalBus, require_database
from slotswap.errors import NotFoundError
from slotswap.models.profiles import EnsureProfileRequest, Profile
from slotswap.producers.swap_producer import publish_swap_change

logger = logging.getLogger("slotswap.profiles")
router = APIRouter(prefix="/profiles", tags=["profiles"], dependencies=[Depends(require_database)])


@router.post("", response_model=Profile)
async def ensure_profile(req: EnsureProfileRequest, actor: Actor) -> Profile:
    logger.info("POST /profiles actor=%s", actor)
    return await db.profiles_ensure(actor, email=req.email, name=req.name)


@router.get("/me", response_model=Profile)
async def get_my_profile(actor: Actor) -> Profile:
    profile = await db.profiles_get(actor)
    if profile is None:
        raise NotFoundError(detail="Profile not found", profile_id=str(actor))
    return profile


@router.delete("/me", status_code=204)
async def delete_my_profile(actor: Actor, bus: OptionalBus) -> Response:
    logger.info("DELETE /profiles/me actor=%s", actor)
    released = await swaps.delete_profile(actor)
    for request in released:
        await publish_swap_change(bus, "rejected", request)
    return Response(status_code=204)
