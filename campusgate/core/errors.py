"""
Domain error taxonomy.

Services raise these; the API layer maps each category to one HTTP status
(see ``STATUS_BY_CATEGORY``) and renders ``{"error": {...}}``.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Machine-readable error codes."""

    INVALID_INPUT = "INVALID_INPUT"
    INVALID_DATES = "INVALID_DATES"
    FIELD_NOT_MUTABLE = "FIELD_NOT_MUTABLE"
    REG_LIMIT_DECREASE = "REG_LIMIT_DECREASE"
    DEADLINE_MOVED_EARLIER = "DEADLINE_MOVED_EARLIER"
    INVALID_FORM_ANSWER = "INVALID_FORM_ANSWER"
    REASON_TOO_SHORT = "REASON_TOO_SHORT"

    EVENT_NOT_OPEN = "EVENT_NOT_OPEN"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"
    ILLEGAL_TRANSITION = "ILLEGAL_TRANSITION"
    CONFIG_INVALID = "CONFIG_INVALID"
    EVENT_NOT_DRAFT = "EVENT_NOT_DRAFT"
    PARTICIPATION_NOT_ACTIVE = "PARTICIPATION_NOT_ACTIVE"

    DUPLICATE_PARTICIPATION = "DUPLICATE_PARTICIPATION"
    CAPACITY_EXHAUSTED = "CAPACITY_EXHAUSTED"
    PURCHASE_LIMIT_EXCEEDED = "PURCHASE_LIMIT_EXCEEDED"
    LEDGER_CONTENTION = "LEDGER_CONTENTION"
    EVENT_NOT_ONGOING = "EVENT_NOT_ONGOING"
    TICKET_EVENT_MISMATCH = "TICKET_EVENT_MISMATCH"
    PARTICIPATION_NOT_CONFIRMED = "PARTICIPATION_NOT_CONFIRMED"

    NOT_FOUND = "NOT_FOUND"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    category = "domain"
    default_code = ErrorCode.INVALID_INPUT

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        field: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.field = field

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict:
        body = {"code": self.code.value, "message": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(DomainError):
    """Malformed or out-of-policy input. Never retried."""

    category = "validation"


class PreconditionError(DomainError):
    """The event/participation is not in the right status or time window."""

    category = "precondition"
    default_code = ErrorCode.EVENT_NOT_OPEN


class ConflictError(DomainError):
    """Competing state: duplicates, exhausted capacity, wrong event."""

    category = "conflict"
    default_code = ErrorCode.CAPACITY_EXHAUSTED


class NotFoundError(DomainError):
    """Unresolved id or payload."""

    category = "not_found"
    default_code = ErrorCode.NOT_FOUND


class RegistrationLimitDecreaseError(ValidationError):
    def __init__(self) -> None:
        super().__init__(
            "registration limit can only increase",
            code=ErrorCode.REG_LIMIT_DECREASE,
            field="reg_limit",
        )


class DuplicateParticipationError(ConflictError):
    def __init__(self) -> None:
        super().__init__(
            "You already have an active participation for this event",
            code=ErrorCode.DUPLICATE_PARTICIPATION,
        )


class CapacityExhaustedError(ConflictError):
    def __init__(self, message: str = "Registration limit reached") -> None:
        super().__init__(message, code=ErrorCode.CAPACITY_EXHAUSTED)


class LedgerContentionError(ConflictError):
    """Raised after the bounded optimistic retries are used up."""

    def __init__(self) -> None:
        super().__init__(
            "Registration failed due to high demand. Please try again.",
            code=ErrorCode.LEDGER_CONTENTION,
        )


class EventNotOngoingError(ConflictError):
    def __init__(self) -> None:
        super().__init__(
            "event must be ongoing to complete",
            code=ErrorCode.EVENT_NOT_ONGOING,
        )


STATUS_BY_CATEGORY = {
    "validation": 400,
    "not_found": 404,
    "conflict": 409,
    "precondition": 412,
}
