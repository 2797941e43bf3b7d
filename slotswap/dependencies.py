"""Dependency injection for FastAPI endpoints.

FastAPI dependencies for the acting profile, the notification bus and the
database gate. Identity is resolved here, once per request, and
handed to the service layer as an explicit ``actor`` argument.

Usage in controllers:
    from slotswap.dependencies import Actor, OptionalBus

    @router.post("/events/{event_id}/swappable")
    async def mark_swappable(event_id: UUID, actor: Actor) -> Event:
        return await swaps.mark_swappable(actor, event_id)
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Request

from slotswap import state
from slotswap.bus import EventBus
from slotswap.config import get_settings
from slotswap.errors import ServiceUnavailableError, UnauthorizedError


def parse_profile_id(raw: str | None) -> UUID:
    """Parse an identity value carried by a header or query parameter.

    Raises:
        UnauthorizedError: If the value is missing or not a UUID.
    """
    if not raw or not raw.strip():
        raise UnauthorizedError(detail="Missing profile identity")
    try:
        return UUID(raw.strip())
    except ValueError:
        raise UnauthorizedError(detail="Malformed profile identity") from None


def get_actor(request: Request) -> UUID:
    """Get the acting profile id from the identity header.

    Returns:
        The profile id the upstream gateway authenticated.
    """
    header = get_settings().auth.profile_header
    return parse_profile_id(request.headers.get(header))


def get_optional_event_bus() -> EventBus | None:
    """Get the EventBus if available, or None."""
    return state.event_bus


def require_database() -> None:
    """Fail fast when the database was not initialized at startup."""
    if not state.db_enabled:
        raise ServiceUnavailableError(detail="Database not available")


Actor = Annotated[UUID, Depends(get_actor)]
OptionalBus = Annotated[EventBus | None, Depends(get_optional_event_bus)]
