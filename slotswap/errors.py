"""Error taxonomy for SlotSwap and its JSON rendering.

The state machine, the stores and the routers all raise these. Each error
reaches only the caller whose operation failed, and a failed write has
always been rolled back by the time it is rendered.

    raise InvalidStateError(detail="Event is already pending", event_id=str(event.id))

renders as

    409 {"error": "invalid_state", "detail": "Event is already pending",
         "context": {"event_id": "..."}}

``register_exception_handlers(app)`` wires the handlers into FastAPI.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    error: str
    detail: str | None = None
    error_code: str | None = None
    context: dict[str, Any] | None = None


class APIError(Exception):
    """Base of the taxonomy; subclasses set the status and the ``error`` tag.

    Extra keyword arguments become the ``context`` object of the response,
    e.g. the id of the event that blocked the operation.
    """

    status_code: int = 500
    error: str = "internal_error"
    detail: str = "An unexpected error occurred"

    def __init__(self, detail: str | None = None, error_code: str | None = None, **context: Any) -> None:
        self.detail = detail or type(self).detail
        self.error_code = error_code
        self.context = context or None
        super().__init__(self.detail)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=self.error, detail=self.detail, error_code=self.error_code, context=self.context
        )


class BadRequestError(APIError):
    status_code = 400
    error = "bad_request"
    detail = "Invalid request"


class SelfSwapError(BadRequestError):
    """Requester and owner of a swap are the same profile."""

    error = "self_swap"
    detail = "Cannot swap with yourself"


class UnauthorizedError(APIError):
    """No usable profile identity on the request."""

    status_code = 401
    error = "unauthorized"
    detail = "Authentication required"


class ForbiddenError(APIError):
    """The actor does not own the event or is not the party allowed to respond."""

    status_code = 403
    error = "forbidden"
    detail = "Access denied"


class NotFoundError(APIError):
    status_code = 404
    error = "not_found"
    detail = "Resource not found"


class InvalidTransitionError(APIError):
    """The (status, action) pair is not in the transition table."""

    status_code = 409
    error = "invalid_transition"
    detail = "Status transition not allowed"


class InvalidStateError(InvalidTransitionError):
    """A precondition on current status or ownership failed, e.g. the event is already pending."""

    error = "invalid_state"
    detail = "Operation not allowed in the current state"


class TransactionConflictError(APIError):
    """Postgres aborted the transaction on a deadlock or serialization failure; safe to retry."""

    status_code = 409
    error = "transaction_conflict"
    detail = "Concurrent update, retry the request"


class ValidationError(APIError):
    """Malformed event input: empty or oversized title, inverted time range."""

    status_code = 422
    error = "validation_error"
    detail = "Invalid input"


class DatabaseError(APIError):
    status_code = 500
    error = "database_error"
    detail = "Database operation failed"


class ServiceUnavailableError(APIError):
    """A backend (database, Redis) was not brought up at startup."""

    status_code = 503
    error = "service_unavailable"
    detail = "Service temporarily unavailable"


def _render(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body.model_dump(exclude_none=True)))


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    logger.warning(
        "%s %s -> %d %s: %s",
        request.method, request.url.path, exc.status_code, exc.error, exc.detail,
    )
    return _render(exc.status_code, exc.to_response())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Pydantic body and query failures use the same shape as ValidationError."""
    errors = exc.errors()
    detail = errors[0].get("msg", "Invalid input") if errors else "Invalid input"
    fields = [".".join(str(part) for part in e.get("loc", ())) for e in errors]
    logger.info("%s %s -> 422 validation_error: %s", request.method, request.url.path, detail)
    return _render(422, ErrorResponse(error="validation_error", detail=detail, context={"fields": fields}))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _render(500, ErrorResponse(error="internal_error", detail="An unexpected error occurred"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, general_exception_handler)
