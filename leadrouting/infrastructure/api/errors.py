"""Map routing errors onto HTTP status codes."""

from fastapi import HTTPException

from leadrouting.domain.errors import (
    NotFoundError,
    RoutingError,
    StateConflictError,
    ValidationError,
)


def http_error(exc: RoutingError) -> HTTPException:
    if isinstance(exc, ValidationError):
        status = 400
    elif isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, StateConflictError):
        status = 409
    else:
        # NoEligibleAgent, AgentNotEligible, CalendarExhausted
        status = 422
    return HTTPException(
        status_code=status,
        detail={"error": type(exc).__name__, "message": str(exc)},
    )
