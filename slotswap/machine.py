"""Event and swap-request state machine.

Pure transition logic: every function takes the acting profile explicitly,
checks preconditions against the records it is given and returns updated
copies. Nothing here touches storage; callers apply the results inside one
transaction (see ``slotswap.swaps``).

Event status transitions:

    BUSY          --mark_swappable-->  SWAPPABLE
    SWAPPABLE     --mark_busy------->  BUSY
    SWAPPABLE     --request_swap---->  SWAP_PENDING
    SWAP_PENDING  --accept_swap----->  BUSY
    SWAP_PENDING  --reject_swap----->  SWAPPABLE

Swap request transitions: PENDING -> ACCEPTED | REJECTED, both terminal.
"""

from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from enum import Enum
from typing import Final
from uuid import UUID

from slotswap.errors import (
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    SelfSwapError,
    ValidationError,
)
from slotswap.models.events import Event, EventStatus
from slotswap.models.swaps import SwapRequest, SwapStatus

TITLE_MAX_LENGTH: Final[int] = 100


class EventAction(str, Enum):
    MARK_SWAPPABLE = "mark_swappable"
    MARK_BUSY = "mark_busy"
    REQUEST_SWAP = "request_swap"
    ACCEPT_SWAP = "accept_swap"
    REJECT_SWAP = "reject_swap"


class SwapAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


EVENT_TRANSITIONS: Final[dict[tuple[EventStatus, EventAction], EventStatus]] = {
    (EventStatus.BUSY, EventAction.MARK_SWAPPABLE): EventStatus.SWAPPABLE,
    (EventStatus.SWAPPABLE, EventAction.MARK_BUSY): EventStatus.BUSY,
    (EventStatus.SWAPPABLE, EventAction.REQUEST_SWAP): EventStatus.SWAP_PENDING,
    (EventStatus.SWAP_PENDING, EventAction.ACCEPT_SWAP): EventStatus.BUSY,
    (EventStatus.SWAP_PENDING, EventAction.REJECT_SWAP): EventStatus.SWAPPABLE,
}

SWAP_TRANSITIONS: Final[dict[tuple[SwapStatus, SwapAction], SwapStatus]] = {
    (SwapStatus.PENDING, SwapAction.ACCEPT): SwapStatus.ACCEPTED,
    (SwapStatus.PENDING, SwapAction.REJECT): SwapStatus.REJECTED,
}


def next_event_status(status: EventStatus, action: EventAction) -> EventStatus:
    try:
        return EVENT_TRANSITIONS[(status, action)]
    except KeyError:
        raise InvalidTransitionError(
            detail=f"Cannot {action.value.replace('_', ' ')} an event that is {status.value}",
            status=status.value,
            action=action.value,
        ) from None


def next_swap_status(status: SwapStatus, action: SwapAction) -> SwapStatus:
    try:
        return SWAP_TRANSITIONS[(status, action)]
    except KeyError:
        raise InvalidTransitionError(
            detail=f"Cannot {action.value} a swap request that is {status.value}",
            status=status.value,
            action=action.value,
        ) from None


def require_owner(event: Event, actor: UUID) -> None:
    if event.owner_id != actor:
        raise ForbiddenError(detail="You do not own this event", event_id=str(event.id))


def validate_event_input(title: str, start_time: datetime, end_time: datetime) -> str:
    """Validate a new event's fields and return the normalized title."""
    title = (title or "").strip()
    if not title:
        raise ValidationError(detail="Title is required", field="title")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(
            detail=f"Title must be at most {TITLE_MAX_LENGTH} characters", field="title"
        )
    if start_time.tzinfo is None or end_time.tzinfo is None:
        raise ValidationError(
            detail="start_time and end_time must include a timezone offset", field="start_time"
        )
    if end_time <= start_time:
        raise ValidationError(detail="End time must be after start time", field="end_time")
    return title


def mark_swappable(event: Event, actor: UUID) -> Event:
    require_owner(event, actor)
    status = next_event_status(event.status, EventAction.MARK_SWAPPABLE)
    return event.model_copy(update={"status": status})


def mark_busy(event: Event, actor: UUID) -> Event:
    require_owner(event, actor)
    status = next_event_status(event.status, EventAction.MARK_BUSY)
    return event.model_copy(update={"status": status})


def check_delete(event: Event, actor: UUID) -> None:
    require_owner(event, actor)
    if event.status == EventStatus.SWAP_PENDING:
        raise InvalidStateError(
            detail="Cannot delete an event while a swap is pending",
            event_id=str(event.id),
        )


def open_swap(
    requester_event: Event,
    owner_event: Event,
    requester: UUID,
    owner: UUID | None = None,
) -> tuple[Event, Event]:
    """Check a new swap request and return both events moved to SWAP_PENDING.

    ``owner`` defaults to the current owner of ``owner_event``.
    """
    if owner is None:
        owner = owner_event.owner_id
    if requester == owner or requester_event.id == owner_event.id:
        raise SelfSwapError()
    require_owner(requester_event, requester)
    if owner_event.owner_id != owner:
        raise InvalidStateError(
            detail="The requested event no longer belongs to that profile",
            event_id=str(owner_event.id),
        )
    for event in (requester_event, owner_event):
        if event.status != EventStatus.SWAPPABLE:
            raise InvalidStateError(
                detail=f"Event '{event.title}' is not swappable",
                event_id=str(event.id),
                status=event.status.value,
            )
    pending = next_event_status(EventStatus.SWAPPABLE, EventAction.REQUEST_SWAP)
    return (
        requester_event.model_copy(update={"status": pending}),
        owner_event.model_copy(update={"status": pending}),
    )


def _check_response(
    request: SwapRequest,
    requester_event: Event,
    owner_event: Event,
    actor: UUID,
    action: SwapAction,
) -> SwapStatus:
    if request.owner_id != actor:
        raise ForbiddenError(
            detail="Only the owner of the requested event can respond",
            request_id=str(request.id),
        )
    status = next_swap_status(request.status, action)
    if requester_event.id != request.requester_event_id or owner_event.id != request.owner_event_id:
        raise InvalidStateError(detail="Events do not match the swap request", request_id=str(request.id))
    if requester_event.owner_id != request.requester_id or owner_event.owner_id != request.owner_id:
        raise InvalidStateError(detail="Event ownership changed while pending", request_id=str(request.id))
    return status


def accept_swap(
    request: SwapRequest,
    requester_event: Event,
    owner_event: Event,
    actor: UUID,
) -> tuple[SwapRequest, Event, Event]:
    """Accept: the events exchange owners, both become BUSY."""
    status = _check_response(request, requester_event, owner_event, actor, SwapAction.ACCEPT)
    return (
        request.model_copy(update={"status": status}),
        requester_event.model_copy(update={
            "owner_id": request.owner_id,
            "status": next_event_status(requester_event.status, EventAction.ACCEPT_SWAP),
        }),
        owner_event.model_copy(update={
            "owner_id": request.requester_id,
            "status": next_event_status(owner_event.status, EventAction.ACCEPT_SWAP),
        }),
    )


def reject_swap(
    request: SwapRequest,
    requester_event: Event,
    owner_event: Event,
    actor: UUID,
) -> tuple[SwapRequest, Event, Event]:
    """Reject: both events go back to SWAPPABLE, owners untouched."""
    status = _check_response(request, requester_event, owner_event, actor, SwapAction.REJECT)
    return (
        request.model_copy(update={"status": status}),
        requester_event.model_copy(update={
            "status": next_event_status(requester_event.status, EventAction.REJECT_SWAP),
        }),
        owner_event.model_copy(update={
            "status": next_event_status(owner_event.status, EventAction.REJECT_SWAP),
        }),
    )


def release_swap(
    request: SwapRequest,
    requester_event: Event,
    owner_event: Event,
) -> tuple[SwapRequest, Event, Event]:
    """Resolve a pending request as rejected without the owner's response.

    Used when one party's account is removed; either side may trigger it.
    """
    status = next_swap_status(request.status, SwapAction.REJECT)
    return (
        request.model_copy(update={"status": status}),
        requester_event.model_copy(update={
            "status": next_event_status(requester_event.status, EventAction.REJECT_SWAP),
        }),
        owner_event.model_copy(update={
            "status": next_event_status(owner_event.status, EventAction.REJECT_SWAP),
        }),
    )


def pending_invariant_violations(
    events: Iterable[Event],
    requests: Iterable[SwapRequest],
) -> list[str]:
    """List events breaking "SWAP_PENDING iff exactly one PENDING request references it"."""
    refs: Counter[UUID] = Counter()
    for request in requests:
        if request.status == SwapStatus.PENDING:
            refs[request.requester_event_id] += 1
            refs[request.owner_event_id] += 1
    violations = []
    for event in events:
        count = refs.get(event.id, 0)
        pending = event.status == EventStatus.SWAP_PENDING
        if pending and count != 1:
            violations.append(f"{event.id}: SWAP_PENDING with {count} pending requests")
        elif not pending and count:
            violations.append(f"{event.id}: {event.status.value} with {count} pending requests")
    return violations
