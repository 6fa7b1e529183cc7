"""
Admission controller: registration (NORMAL) and purchase (MERCH).

Preconditions are checked in order and the first failure wins:
  (a) the event is open: stored PUBLISHED, effectively PUBLISHED/ONGOING,
      deadline and end date not passed
  (b) the participant matches the event's eligibility category
  (c) no active participation exists for (event, participant)
  (d) capacity: a free slot (NORMAL) or enough variant stock (MERCH);
      a quantity above the per-participant limit is rejected as invalid
      input before anything is held

(c), (d) and the participation insert run as one unit: inside the
per-event asyncio lock, in one transaction that is committed before the
lock is released. The ledger's versioned update and the partial unique
index on active participations keep the same guarantees across worker
processes. A failure anywhere rolls the transaction back and gives back
what the admission gate held, so a rejected request has no side effect.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campusgate.core.errors import (
    CapacityExhaustedError,
    DomainError,
    DuplicateParticipationError,
    ErrorCode,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from campusgate.core.locks import event_key, ledger_locks, variant_key
from campusgate.core.logging import get_logger
from campusgate.core.metrics import admission_latency, record_admission
from campusgate.db.base import utcnow
from campusgate.domain import eligibility, forms, lifecycle
from campusgate.domain.lifecycle import EventType
from campusgate.models.event import Event
from campusgate.models.participation import ACTIVE_STATUSES, Participation
from campusgate.models.payment import Payment
from campusgate.models.user import User
from campusgate.schemas.participation import MerchPurchase, NormalRegistration
from campusgate.services import ledger_service, ticket_service
from campusgate.services.event_service import get_owned_event
from campusgate.services.interfaces.gate import AdmissionGate
from campusgate.services.interfaces.optimistic_gate import OptimisticGate

logger = get_logger(__name__)


@dataclass(frozen=True)
class AdmissionResult:
    participation_id: int
    status: str
    ticket_id: Optional[str] = None
    payment_id: Optional[int] = None


async def _find_active(db: AsyncSession, event_id: int, participant_id: int) -> Optional[Participation]:
    result = await db.execute(
        select(Participation).where(
            Participation.event_id == event_id,
            Participation.participant_id == participant_id,
            Participation.status.in_(ACTIVE_STATUSES),
        )
    )
    return result.scalars().first()


def _find_variant(event: Event, sku: str) -> dict:
    for variant in event.merch_config["variants"]:
        if variant["sku"] == sku:
            return variant
    raise ValidationError("Invalid merch variant sku", code=ErrorCode.INVALID_INPUT, field="sku")


def _check_purchase_limit(event: Event, quantity: int) -> None:
    limit = event.merch_config["per_participant_limit"]
    if quantity > limit:
        raise ValidationError(
            f"At most {limit} units per participant",
            code=ErrorCode.PURCHASE_LIMIT_EXCEEDED,
            field="quantity",
        )


async def _admit_normal(
    db: AsyncSession,
    event: Event,
    participant_id: int,
    request: NormalRegistration,
    team_name: Optional[str],
    now: datetime,
) -> AdmissionResult:
    responses = forms.validate_answers(event.form_schema or {}, request.answers)
    await ledger_service.reserve_slot(db, event.id)

    participation = Participation(
        event_id=event.id,
        participant_id=participant_id,
        event_type=EventType.NORMAL.value,
        status="confirmed",
        team_name=team_name,
        form_responses=responses,
    )
    db.add(participation)
    await db.flush()
    ticket = await ticket_service.mint_ticket(db, participation, now)
    return AdmissionResult(participation.id, participation.status, ticket_id=ticket.id)


async def _admit_merch(
    db: AsyncSession,
    event: Event,
    participant_id: int,
    request: MerchPurchase,
    team_name: Optional[str],
) -> AdmissionResult:
    variant = _find_variant(event, request.sku)
    await ledger_service.reserve_stock(db, event.id, request.sku, request.quantity)

    unit_price = max(Decimal("0"), Decimal(str(event.reg_fee)) + Decimal(str(variant.get("price_delta", 0))))
    total = unit_price * request.quantity

    participation = Participation(
        event_id=event.id,
        participant_id=participant_id,
        event_type=EventType.MERCH.value,
        status="pending",
        team_name=team_name,
        sku=request.sku,
        variant_label=variant["label"],
        quantity=request.quantity,
        unit_price=unit_price,
        total_amount=total,
    )
    db.add(participation)
    await db.flush()

    payment = Payment(
        participation_id=participation.id,
        status="pending",
        amount=total,
        method=request.payment_method,
        proof_ref=request.proof_ref,
    )
    db.add(payment)
    await db.flush()
    return AdmissionResult(participation.id, participation.status, payment_id=payment.id)


async def try_admit(
    db: AsyncSession,
    event_id: int,
    participant_id: int,
    request: Union[NormalRegistration, MerchPurchase],
    team_name: Optional[str] = None,
    gate: Optional[AdmissionGate] = None,
    now: Optional[datetime] = None,
) -> AdmissionResult:
    """Admit one participant to one event, or raise the specific reason why not."""
    now = now or utcnow()
    gate = gate or OptimisticGate()

    event = await db.get(Event, event_id)
    if not event:
        raise NotFoundError("Event not found")
    event_type = event.type

    participant = await db.get(User, participant_id)
    if not participant or participant.role != "participant":
        raise NotFoundError("Participant not found")

    if request.type != event_type:
        record_admission(event_type, ErrorCode.INVALID_INPUT.value)
        raise ValidationError(
            f"This event only accepts {event_type} requests",
            code=ErrorCode.INVALID_INPUT,
            field="type",
        )

    # (a) lifecycle window
    window_error = lifecycle.registration_window_error(event, now)
    if window_error:
        record_admission(event_type, ErrorCode.REGISTRATION_CLOSED.value)
        raise PreconditionError(window_error, code=ErrorCode.REGISTRATION_CLOSED)

    # (b) eligibility
    if not eligibility.is_eligible(event.eligibility, participant.participant_type):
        record_admission(event_type, ErrorCode.NOT_ELIGIBLE.value)
        raise PreconditionError("You are not eligible for this event", code=ErrorCode.NOT_ELIGIBLE)

    if event_type == EventType.NORMAL.value:
        gate_key, units = event_key(event.id), 1
    else:
        gate_key, units = variant_key(event.id, request.sku), request.quantity

    with admission_latency.time():
        async with ledger_locks(event_key(event.id)):
            # (c) one active participation per (event, participant)
            if await _find_active(db, event.id, participant_id):
                record_admission(event_type, ErrorCode.DUPLICATE_PARTICIPATION.value)
                raise DuplicateParticipationError()

            if event_type == EventType.MERCH.value:
                _find_variant(event, request.sku)
                try:
                    _check_purchase_limit(event, request.quantity)
                except ValidationError as e:
                    record_admission(event_type, e.code.value)
                    raise

            if not await gate.admit(gate_key, units):
                record_admission(event_type, ErrorCode.CAPACITY_EXHAUSTED.value)
                raise CapacityExhaustedError()

            # (d) capacity + insert, committed as one unit
            try:
                if event_type == EventType.NORMAL.value:
                    result = await _admit_normal(db, event, participant_id, request, team_name, now)
                else:
                    result = await _admit_merch(db, event, participant_id, request, team_name)
                await db.commit()
            except IntegrityError:
                await db.rollback()
                await gate.release(gate_key, units)
                if await _find_active(db, event_id, participant_id) is None:
                    record_admission(event_type, "error")
                    logger.error("admission_integrity_error", event_id=event_id, participant_id=participant_id)
                    raise
                record_admission(event_type, ErrorCode.DUPLICATE_PARTICIPATION.value)
                logger.warning("admission_integrity_conflict", event_id=event_id, participant_id=participant_id)
                raise DuplicateParticipationError() from None
            except DomainError as e:
                await db.rollback()
                await gate.release(gate_key, units)
                record_admission(event_type, e.code.value)
                logger.info(
                    "admission_rejected",
                    event_id=event_id,
                    participant_id=participant_id,
                    code=e.code.value,
                )
                raise
            except Exception as e:
                await db.rollback()
                await gate.release(gate_key, units)
                record_admission(event_type, "error")
                logger.error(
                    "admission_failed",
                    event_id=event_id,
                    participant_id=participant_id,
                    error=str(e),
                )
                raise

    record_admission(event_type, "admitted")
    logger.info(
        "participation_admitted",
        participation_id=result.participation_id,
        event_id=event_id,
        participant_id=participant_id,
        status=result.status,
    )
    return result


async def get_participation(db: AsyncSession, participation_id: int) -> Participation:
    result = await db.execute(
        select(Participation)
        .where(Participation.id == participation_id)
        .execution_options(populate_existing=True)
    )
    participation = result.scalar_one_or_none()
    if not participation:
        raise NotFoundError("Participation not found")
    return participation


async def _release_gate(gate: AdmissionGate, participation: Participation) -> None:
    if participation.event_type == EventType.NORMAL.value:
        await gate.release(event_key(participation.event_id), 1)
    else:
        await gate.release(variant_key(participation.event_id, participation.sku), participation.quantity)


async def _close_participation(db: AsyncSession, participation: Participation, status: str) -> bool:
    """
    Move an active participation to `status`, release its ledger hold and
    close a pending payment, all in one commit. Returns False if another
    request closed it first.
    """
    now = utcnow()
    result = await db.execute(
        update(Participation)
        .where(Participation.id == participation.id, Participation.status.in_(ACTIVE_STATUSES))
        .values(status=status, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        return False

    await ledger_service.release_for(db, participation, reason=status)
    await db.execute(
        update(Payment)
        .where(Payment.participation_id == participation.id, Payment.status == "pending")
        .values(status="rejected", updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return True


async def cancel_participation(
    db: AsyncSession,
    participation_id: int,
    participant_id: int,
    gate: Optional[AdmissionGate] = None,
) -> Participation:
    """
    Participant cancels an active participation and frees what it held.
    A pending merch payment is closed as rejected so it can no longer be
    approved.
    """
    gate = gate or OptimisticGate()
    participation = await get_participation(db, participation_id)
    if participation.participant_id != participant_id:
        raise NotFoundError("Participation not found")

    if not participation.is_active:
        raise PreconditionError(
            f"Participation is already {participation.status}",
            code=ErrorCode.PARTICIPATION_NOT_ACTIVE,
        )

    async with ledger_locks(event_key(participation.event_id)):
        if not await _close_participation(db, participation, "cancelled"):
            raise PreconditionError("Participation is no longer active", code=ErrorCode.PARTICIPATION_NOT_ACTIVE)

    await _release_gate(gate, participation)

    participation = await get_participation(db, participation_id)
    logger.info(
        "participation_cancelled",
        participation_id=participation.id,
        event_id=participation.event_id,
        participant_id=participant_id,
    )
    return participation


async def reject_participation(
    db: AsyncSession,
    participation_id: int,
    reviewer_id: int,
    gate: Optional[AdmissionGate] = None,
) -> Participation:
    """
    Organizer (own events) or admin turns an active participation down.

    The slot or stock goes back to the event and a pending payment is
    closed. Rejecting a participation that is already cancelled or rejected
    changes nothing.
    """
    gate = gate or OptimisticGate()
    participation = await get_participation(db, participation_id)

    reviewer = await db.get(User, reviewer_id)
    if reviewer is None or reviewer.role not in ("organizer", "admin"):
        raise NotFoundError("Participation not found")
    if reviewer.role == "organizer":
        event = await db.get(Event, participation.event_id)
        if event.organizer_id != reviewer_id:
            raise NotFoundError("Participation not found")

    if not participation.is_active:
        return participation

    async with ledger_locks(event_key(participation.event_id)):
        rejected = await _close_participation(db, participation, "rejected")

    if rejected:
        await _release_gate(gate, participation)
        logger.info(
            "participation_rejected",
            participation_id=participation_id,
            event_id=participation.event_id,
            reviewer_id=reviewer_id,
        )
    return await get_participation(db, participation_id)


async def list_event_participations(
    db: AsyncSession,
    event_id: int,
    organizer_id: int,
    status: Optional[str] = None,
) -> list[Participation]:
    """All participations of an organizer's event, oldest first."""
    await get_owned_event(db, event_id, organizer_id)
    query = select(Participation).where(Participation.event_id == event_id)
    if status:
        query = query.where(Participation.status == status)
    result = await db.execute(query.order_by(Participation.created_at, Participation.id))
    return list(result.scalars().all())


async def list_participant_participations(db: AsyncSession, participant_id: int) -> list[Participation]:
    """A participant's own history, newest first, cancelled and rejected included."""
    participant = await db.get(User, participant_id)
    if not participant or participant.role != "participant":
        raise NotFoundError("Participant not found")
    result = await db.execute(
        select(Participation)
        .where(Participation.participant_id == participant_id)
        .order_by(Participation.created_at.desc(), Participation.id.desc())
    )
    return list(result.scalars().all())
