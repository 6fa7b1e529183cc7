"""
Event service: creation, field-mutability rules and the status state machine.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from campusgate.core.errors import ErrorCode, NotFoundError, PreconditionError, ValidationError
from campusgate.core.locks import event_key, variant_key
from campusgate.core.logging import get_logger
from campusgate.core.metrics import status_transitions
from campusgate.db.base import utcnow
from campusgate.domain import lifecycle
from campusgate.domain.lifecycle import EventStatus, EventType
from campusgate.models.event import Event
from campusgate.models.ledger import StockLedger
from campusgate.models.participation import Participation
from campusgate.models.user import User
from campusgate.schemas.event import EventCreate, EventResponse, NormalEventConfig
from campusgate.services import ledger_service
from campusgate.services.interfaces.gate import AdmissionGate
from campusgate.services.interfaces.notifier import EventAnnouncement
from campusgate.services.notification_service import NotificationDispatcher

logger = get_logger(__name__)


def _config_columns(config) -> dict:
    """Split a tagged config into the event's type and JSON columns."""
    if isinstance(config, NormalEventConfig):
        return {
            "type": EventType.NORMAL.value,
            "form_schema": config.model_dump(mode="json", exclude={"type"}),
            "merch_config": None,
        }
    return {
        "type": EventType.MERCH.value,
        "form_schema": None,
        "merch_config": config.model_dump(mode="json", exclude={"type"}),
    }


def to_response(event: Event, now: Optional[datetime] = None) -> EventResponse:
    now = now or utcnow()
    return EventResponse.model_validate({
        **{column.key: getattr(event, column.key) for column in Event.__table__.columns},
        "display_status": lifecycle.effective_status(event, now).value,
    })


async def create_event(db: AsyncSession, event_data: EventCreate) -> Event:
    """Create a DRAFT event."""
    organizer = await db.get(User, event_data.organizer_id)
    if not organizer or organizer.role != "organizer":
        raise NotFoundError("Organizer not found")

    lifecycle.validate_dates(event_data.start_date, event_data.end_date, event_data.reg_deadline)

    columns = _config_columns(event_data.config)
    reg_limit = event_data.reg_limit
    if columns["type"] == EventType.NORMAL.value:
        reg_limit = reg_limit or 1
    elif reg_limit is not None:
        raise ValidationError(
            "registration limit applies to NORMAL events only",
            code=ErrorCode.INVALID_INPUT,
            field="reg_limit",
        )

    event = Event(
        organizer_id=organizer.id,
        name=event_data.name,
        description=event_data.description,
        eligibility=event_data.eligibility,
        reg_fee=event_data.reg_fee,
        reg_deadline=event_data.reg_deadline,
        start_date=event_data.start_date,
        end_date=event_data.end_date,
        reg_limit=reg_limit,
        status=EventStatus.DRAFT.value,
        **columns,
    )
    db.add(event)
    await db.commit()
    await db.refresh(event)

    logger.info("event_created", event_id=event.id, event_type=event.type, organizer_id=organizer.id)
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    result = await db.execute(
        select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()
    if not event:
        raise NotFoundError("Event not found")
    return event


async def get_owned_event(db: AsyncSession, event_id: int, organizer_id: int) -> Event:
    """Look an event up by (id, organizer); someone else's event does not exist."""
    event = await get_event(db, event_id)
    if event.organizer_id != organizer_id:
        raise NotFoundError("Event not found")
    return event


def _apply_draft_changes(event: Event, changes: dict) -> None:
    start = changes.get("start_date", event.start_date)
    end = changes.get("end_date", event.end_date)
    deadline = changes.get("reg_deadline", event.reg_deadline)
    lifecycle.validate_dates(start, end, deadline)

    config = changes.pop("config", None)
    columns = _config_columns(config) if config is not None else {}
    next_type = columns.get("type", event.type)

    if next_type == EventType.MERCH.value:
        if changes.get("reg_limit") is not None:
            raise ValidationError(
                "registration limit applies to NORMAL events only",
                code=ErrorCode.INVALID_INPUT,
                field="reg_limit",
            )
        changes["reg_limit"] = None
    elif event.reg_limit is None and "reg_limit" not in changes:
        changes["reg_limit"] = 1

    for key, value in {**columns, **changes}.items():
        setattr(event, key, value)


async def update_event(
    db: AsyncSession,
    event_id: int,
    organizer_id: int,
    changes: dict,
    gate: Optional[AdmissionGate] = None,
) -> Event:
    """
    Apply an organizer's partial update.

    DRAFT events are fully editable. From PUBLISHED on, only description,
    a later deadline and a larger registration limit are accepted; anything
    else rejects the whole update and leaves the stored event untouched.
    """
    if not changes:
        raise ValidationError("No fields to update", code=ErrorCode.INVALID_INPUT)

    event = await get_owned_event(db, event_id, organizer_id)
    changes = dict(changes)

    if event.status == EventStatus.DRAFT.value:
        _apply_draft_changes(event, changes)
    else:
        lifecycle.check_published_update(event, changes)
        for key, value in changes.items():
            setattr(event, key, value)
        if "reg_limit" in changes:
            await ledger_service.raise_limit(db, event.id, changes["reg_limit"])

    await db.commit()
    await db.refresh(event)

    if "reg_limit" in changes and event.status != EventStatus.DRAFT.value and gate is not None:
        capacity = await ledger_service.get_capacity(db, event.id)
        if capacity is not None:
            await gate.sync(event_key(event.id), capacity.limit, capacity.consumed)

    logger.info("event_updated", event_id=event.id, fields=sorted(changes))
    return event


async def _sync_gate(db: AsyncSession, event: Event, gate: AdmissionGate) -> None:
    if event.type == EventType.NORMAL.value:
        capacity = await ledger_service.get_capacity(db, event.id)
        await gate.sync(event_key(event.id), capacity.limit, capacity.consumed)
        return
    rows = await db.execute(select(StockLedger).where(StockLedger.event_id == event.id))
    for row in rows.scalars().all():
        await gate.sync(variant_key(event.id, row.sku), row.stock, row.reserved)


async def change_status(
    db: AsyncSession,
    event_id: int,
    organizer_id: int,
    new_status: str,
    notifier: Optional[NotificationDispatcher] = None,
    gate: Optional[AdmissionGate] = None,
    now: Optional[datetime] = None,
) -> Event:
    """Drive the lifecycle state machine for one event."""
    now = now or utcnow()
    event = await get_owned_event(db, event_id, organizer_id)
    target = EventStatus(new_status)

    previous = event.status
    if not lifecycle.check_transition(event, target, now):
        return event

    if target is EventStatus.PUBLISHED:
        await ledger_service.open_ledger(db, event)

    event.status = target.value
    await db.commit()
    await db.refresh(event)

    status_transitions.labels(to_status=target.value).inc()
    logger.info("event_status_changed", event_id=event.id, from_status=previous, to_status=target.value)

    if target is EventStatus.PUBLISHED:
        if gate is not None:
            await _sync_gate(db, event, gate)
        if notifier is not None:
            organizer = await db.get(User, event.organizer_id)
            notifier.dispatch(EventAnnouncement(
                organizer_name=organizer.name,
                event_name=event.name,
                event_type=event.type,
                reg_deadline=event.reg_deadline,
                start_date=event.start_date,
                end_date=event.end_date,
            ))
    return event


async def delete_event(db: AsyncSession, event_id: int, organizer_id: int) -> None:
    event = await get_owned_event(db, event_id, organizer_id)
    if event.status != EventStatus.DRAFT.value:
        raise PreconditionError("Only draft events can be deleted", code=ErrorCode.EVENT_NOT_DRAFT)

    # Drafts never admit anyone, so this is a guard against manual inserts.
    count = await db.scalar(select(func.count()).select_from(Participation).where(Participation.event_id == event.id))
    if count:
        raise PreconditionError("Event has participations", code=ErrorCode.EVENT_NOT_DRAFT)

    await db.delete(event)
    await db.commit()
    logger.info("event_deleted", event_id=event_id, organizer_id=organizer_id)
