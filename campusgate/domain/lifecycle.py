"""Event lifecycle rules.

Pure functions over an event-like object (anything with `status`, `type`,
`start_date`, `end_date`, `reg_deadline`, `reg_limit`, `form_schema`,
`merch_config`). No I/O here; the event service applies the outcome.

    DRAFT -> PUBLISHED -> CLOSED
                  \\          \\
                   +----------+--> COMPLETED   (only while effectively ONGOING)

ONGOING is never stored: it is the display status of a PUBLISHED or CLOSED
event while `start_date <= now <= end_date`.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from campusgate.core.errors import (
    ErrorCode,
    EventNotOngoingError,
    PreconditionError,
    RegistrationLimitDecreaseError,
    ValidationError,
)
from campusgate.schemas.event import MerchEventConfig, NormalEventConfig


class EventStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ONGOING = "ONGOING"
    CLOSED = "CLOSED"
    COMPLETED = "COMPLETED"


class EventType(str, Enum):
    NORMAL = "NORMAL"
    MERCH = "MERCH"


# Organizer-initiated transitions on the stored status. COMPLETED is
# additionally gated on the effective status (see check_transition).
TRANSITIONS = {
    EventStatus.DRAFT: frozenset({EventStatus.PUBLISHED}),
    EventStatus.PUBLISHED: frozenset({EventStatus.CLOSED, EventStatus.COMPLETED}),
    EventStatus.CLOSED: frozenset({EventStatus.COMPLETED}),
    EventStatus.COMPLETED: frozenset(),
}

PUBLISHED_MUTABLE_FIELDS = frozenset({"description", "reg_deadline", "reg_limit"})

PUBLISHED_UPDATE_MESSAGE = "published events only allow updating description/deadline-extension/limit-increase"


def effective_status(event, now: datetime) -> EventStatus:
    """Display status computed at read time; never persisted."""
    stored = EventStatus(event.status)
    if stored in (EventStatus.PUBLISHED, EventStatus.CLOSED) and event.start_date <= now <= event.end_date:
        return EventStatus.ONGOING
    return stored


def validate_dates(start_date: datetime, end_date: datetime, reg_deadline: datetime) -> None:
    if end_date <= start_date:
        raise ValidationError("endDate must be after startDate", code=ErrorCode.INVALID_DATES, field="end_date")
    if reg_deadline > start_date:
        raise ValidationError(
            "regDeadline must be before or equal to startDate",
            code=ErrorCode.INVALID_DATES,
            field="reg_deadline",
        )


def check_published_update(event, changes: dict) -> None:
    """Field-mutability rules once an event has left DRAFT."""
    disallowed = sorted(set(changes) - PUBLISHED_MUTABLE_FIELDS)
    if disallowed:
        raise ValidationError(PUBLISHED_UPDATE_MESSAGE, code=ErrorCode.FIELD_NOT_MUTABLE, field=disallowed[0])

    if "reg_limit" in changes:
        if event.type != EventType.NORMAL.value:
            raise ValidationError(
                "registration limit applies to NORMAL events only",
                code=ErrorCode.FIELD_NOT_MUTABLE,
                field="reg_limit",
            )
        if changes["reg_limit"] < event.reg_limit:
            raise RegistrationLimitDecreaseError()

    if "reg_deadline" in changes:
        if changes["reg_deadline"] < event.reg_deadline:
            raise ValidationError(
                "registration deadline can only be extended",
                code=ErrorCode.DEADLINE_MOVED_EARLIER,
                field="reg_deadline",
            )
        validate_dates(event.start_date, event.end_date, changes["reg_deadline"])


def check_publishable(event) -> None:
    """Per-type config must be present and valid before publishing."""
    try:
        if event.type == EventType.NORMAL.value:
            if event.form_schema is None:
                raise PreconditionError("normalForm is required for NORMAL events", code=ErrorCode.CONFIG_INVALID)
            if not event.reg_limit or event.reg_limit < 1:
                raise PreconditionError("regLimit is required for NORMAL events", code=ErrorCode.CONFIG_INVALID)
            NormalEventConfig.model_validate(event.form_schema)
        else:
            if event.merch_config is None:
                raise PreconditionError("merchConfig is required for MERCH events", code=ErrorCode.CONFIG_INVALID)
            MerchEventConfig.model_validate(event.merch_config)
    except PydanticValidationError as exc:
        raise PreconditionError(
            f"event config is invalid: {exc.errors()[0]['msg']}",
            code=ErrorCode.CONFIG_INVALID,
        ) from exc


def check_transition(event, target: EventStatus, now: datetime) -> bool:
    """Validate a status change. Returns False when it is a no-op."""
    if target is EventStatus.ONGOING:
        raise ValidationError(
            "ONGOING is derived from the event dates and cannot be set",
            code=ErrorCode.ILLEGAL_TRANSITION,
            field="status",
        )

    current = EventStatus(event.status)
    if target is current:
        return False

    if target is EventStatus.COMPLETED and current is not EventStatus.DRAFT:
        if effective_status(event, now) is not EventStatus.ONGOING:
            raise EventNotOngoingError()
        return True

    if target not in TRANSITIONS[current]:
        raise PreconditionError(
            f"cannot change status from {current.value} to {target.value}",
            code=ErrorCode.ILLEGAL_TRANSITION,
        )

    if target is EventStatus.PUBLISHED:
        check_publishable(event)
    return True


def registration_window_error(event, now: datetime) -> Optional[str]:
    """Reason registration is closed, or None when it is open.

    A CLOSED event never admits, even while its display status is ONGOING.
    """
    if event.status != EventStatus.PUBLISHED.value:
        return "Event is not open for participation"
    if effective_status(event, now) not in (EventStatus.PUBLISHED, EventStatus.ONGOING):
        return "Event is not open for participation"
    if now > event.reg_deadline:
        return "Registration deadline has passed"
    if now > event.end_date:
        return "Event has already ended"
    return None
