"""
Payment review for MERCH purchases.

pending -> approved | rejected, terminal either way. A decision against a
payment that is no longer pending is reported back with applied=False and
changes nothing.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from campusgate.core.errors import ErrorCode, NotFoundError, ValidationError
from campusgate.core.locks import event_key, ledger_locks, variant_key
from campusgate.core.logging import get_logger
from campusgate.core.metrics import payment_decisions
from campusgate.db.base import utcnow
from campusgate.models.event import Event
from campusgate.models.participation import Participation
from campusgate.models.payment import Payment
from campusgate.models.ticket import Ticket
from campusgate.models.user import User
from campusgate.services import ledger_service, ticket_service
from campusgate.services.interfaces.gate import AdmissionGate
from campusgate.services.interfaces.optimistic_gate import OptimisticGate

logger = get_logger(__name__)

DECISIONS = {"approve": "approved", "reject": "rejected"}


@dataclass
class PaymentDecision:
    applied: bool
    payment: Payment
    participation: Participation
    ticket: Optional[Ticket] = None


async def _get_payment(db: AsyncSession, payment_id: int) -> Payment:
    result = await db.execute(
        select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
    )
    payment = result.unique().scalar_one_or_none()
    if not payment:
        raise NotFoundError("Payment not found")
    return payment


async def _check_reviewer(db: AsyncSession, reviewer_id: int, event_id: int) -> None:
    """Admins review any payment; organizers only their own events'."""
    reviewer = await db.get(User, reviewer_id)
    if reviewer is not None and reviewer.role == "admin":
        return
    event = await db.get(Event, event_id)
    if reviewer is None or reviewer.role != "organizer" or event.organizer_id != reviewer_id:
        raise NotFoundError("Payment not found")


async def _reload(db: AsyncSession, payment_id: int) -> tuple[Payment, Participation]:
    payment = await _get_payment(db, payment_id)
    participation = await db.get(Participation, payment.participation_id, populate_existing=True)
    return payment, participation


async def decide_payment(
    db: AsyncSession,
    payment_id: int,
    reviewer_id: int,
    decision: str,
    gate: Optional[AdmissionGate] = None,
    now: Optional[datetime] = None,
) -> PaymentDecision:
    if decision not in DECISIONS:
        raise ValidationError("decision must be approve or reject", code=ErrorCode.INVALID_INPUT, field="decision")

    now = now or utcnow()
    gate = gate or OptimisticGate()
    payment = await _get_payment(db, payment_id)
    participation = await db.get(Participation, payment.participation_id)
    await _check_reviewer(db, reviewer_id, participation.event_id)

    async with ledger_locks(event_key(participation.event_id)):
        # check-and-set: only the first decision on a pending payment applies
        result = await db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == "pending")
            .values(status=DECISIONS[decision], reviewed_by=reviewer_id, reviewed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            payment_decisions.labels(decision=decision, applied="false").inc()
            logger.info("payment_decision_noop", payment_id=payment_id, decision=decision)
            payment, participation = await _reload(db, payment_id)
            ticket = await ticket_service.find_ticket_for(db, participation.id)
            return PaymentDecision(False, payment, participation, ticket)

        ticket = None
        released = False
        if decision == "approve":
            await db.execute(
                update(Participation)
                .where(Participation.id == participation.id, Participation.status == "pending")
                .values(status="confirmed", updated_at=now)
                .execution_options(synchronize_session=False)
            )
            participation = await db.get(Participation, participation.id, populate_existing=True)
            ticket = await ticket_service.find_ticket_for(db, participation.id)
            if ticket is None and participation.status == "confirmed":
                ticket = await ticket_service.mint_ticket(db, participation, now)
        else:
            moved = await db.execute(
                update(Participation)
                .where(Participation.id == participation.id, Participation.status == "pending")
                .values(status="rejected", updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if moved.rowcount == 1:
                await ledger_service.release_for(db, participation, reason="rejected")
                released = True
        await db.commit()

    if released:
        await gate.release(variant_key(participation.event_id, participation.sku), participation.quantity)

    payment_decisions.labels(decision=decision, applied="true").inc()
    logger.info(
        "payment_decided",
        payment_id=payment_id,
        participation_id=participation.id,
        decision=decision,
        reviewer_id=reviewer_id,
    )
    payment, participation = await _reload(db, payment_id)
    return PaymentDecision(True, payment, participation, ticket)


async def approve_payment(
    db: AsyncSession,
    payment_id: int,
    reviewer_id: int,
    gate: Optional[AdmissionGate] = None,
    now: Optional[datetime] = None,
) -> PaymentDecision:
    return await decide_payment(db, payment_id, reviewer_id, "approve", gate=gate, now=now)


async def reject_payment(
    db: AsyncSession,
    payment_id: int,
    reviewer_id: int,
    gate: Optional[AdmissionGate] = None,
    now: Optional[datetime] = None,
) -> PaymentDecision:
    return await decide_payment(db, payment_id, reviewer_id, "reject", gate=gate, now=now)
