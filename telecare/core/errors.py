"""
Error taxonomy for the scheduling core.

Every public operation either returns a typed result or raises one of these.
The HTTP layer maps them onto status codes; only ``UpstreamFailure`` is
eligible for automatic retry.
"""

from typing import Any, Dict, Optional


class SchedulingError(Exception):
    """Base class for all scheduling errors."""

    code = "SCHEDULING_ERROR"
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.kind,
            "detail": self.message,
            "code": self.code,
        }


class ValidationError(SchedulingError):
    """Malformed or out-of-range input. Not retryable as-is."""

    code = "VALIDATION_ERROR"
    http_status = 400


class InvalidTransition(SchedulingError):
    """State machine violation. Re-fetch current state before retrying."""

    code = "INVALID_TRANSITION"
    http_status = 409


class SlotUnavailable(SchedulingError):
    """The slot was taken or closed. Re-list and pick another."""

    code = "SLOT_UNAVAILABLE"
    http_status = 409


class NotFound(SchedulingError):
    """Referenced entity does not exist."""

    code = "NOT_FOUND"
    http_status = 404

    @classmethod
    def for_entity(cls, entity: str, entity_id: Any) -> "NotFound":
        return cls(f"{entity} {entity_id} not found", {"entity": entity, "id": str(entity_id)})


class Forbidden(SchedulingError):
    """The acting profile is not a party to the entity."""

    code = "FORBIDDEN"
    http_status = 403


class UpstreamFailure(SchedulingError):
    """Persistence or identity collaborator unreachable, timed out or errored."""

    code = "UPSTREAM_FAILURE"
    http_status = 503
    retryable = True
