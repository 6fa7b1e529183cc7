"""
Tests for the admission gate strategies.
"""

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError

from campusgate.core.errors import CapacityExhaustedError
from campusgate.models.participation import Participation
from campusgate.schemas.participation import MerchPurchase, NormalRegistration
from campusgate.services import admission_service, event_service, ledger_service, payment_service, ticket_service
from campusgate.services.gate_factory import build_admission_gate
from campusgate.services.interfaces.gate import AdmissionGate
from campusgate.services.interfaces.optimistic_gate import OptimisticGate
from campusgate.services.redis_gate import RedisGate
from tests.conftest import VALID_ANSWERS


class BrokenScript:
    async def __call__(self, keys=None, args=None):
        raise ConnectionError("redis down")


class BrokenRedis:
    """Every call fails as if the server were unreachable."""

    def register_script(self, script):
        return BrokenScript()

    async def decrby(self, key, amount):
        raise ConnectionError("redis down")

    def pipeline(self, transaction=True):
        raise ConnectionError("redis down")


class CountingGate(AdmissionGate):
    """In-memory gate recording holds, for checking release paths."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        self.held = 0

    async def admit(self, key: str, units: int = 1) -> bool:
        if self.held + units > self.capacity:
            return False
        self.held += units
        return True

    async def release(self, key: str, units: int = 1) -> None:
        self.held -= units

    async def sync(self, key: str, capacity: int, held: int) -> None:
        self.capacity, self.held = capacity, held


@pytest.mark.asyncio
async def test_redis_gate_fails_open():
    gate = RedisGate(BrokenRedis())

    assert await gate.admit("event:1", 1) is True
    await gate.release("event:1", 1)
    await gate.sync("event:1", 10, 0)


@pytest.mark.asyncio
async def test_redis_gate_without_client_admits():
    gate = RedisGate(None)
    assert await gate.admit("event:1", 5) is True


@pytest.mark.asyncio
async def test_default_gate_is_optimistic():
    assert isinstance(await build_admission_gate(), OptimisticGate)


@pytest.mark.asyncio
async def test_gate_rejection_fails_fast(db_session, normal_event, participant):
    gate = CountingGate(capacity=0)

    with pytest.raises(CapacityExhaustedError):
        await admission_service.try_admit(
            db_session, normal_event.id, participant.id, NormalRegistration(answers=VALID_ANSWERS), gate=gate
        )

    ledger = await ledger_service.get_capacity(db_session, normal_event.id)
    assert ledger.consumed == 0


@pytest.mark.asyncio
async def test_gate_hold_released_when_ledger_rejects(db_session, make_event, make_participants):
    """The gate is advisory: when the ledger says full, the hold is given back."""
    event = await make_event(reg_limit=1)
    first, second = await make_participants(2)
    gate = CountingGate(capacity=10)
    request = NormalRegistration(answers=VALID_ANSWERS)

    await admission_service.try_admit(db_session, event.id, first.id, request, gate=gate)
    with pytest.raises(CapacityExhaustedError):
        await admission_service.try_admit(db_session, event.id, second.id, request, gate=gate)

    assert gate.held == 1


@pytest.mark.asyncio
async def test_cancel_releases_gate(db_session, normal_event, participant):
    gate = CountingGate(capacity=5)
    admitted = await admission_service.try_admit(
        db_session, normal_event.id, participant.id, NormalRegistration(answers=VALID_ANSWERS), gate=gate
    )

    await admission_service.cancel_participation(db_session, admitted.participation_id, participant.id, gate=gate)
    assert gate.held == 0


@pytest.mark.asyncio
async def test_limit_increase_syncs_gate(db_session, normal_event, organizer):
    gate = CountingGate(capacity=0)
    await event_service.update_event(db_session, normal_event.id, organizer.id, {"reg_limit": 9}, gate=gate)

    assert gate.capacity == 9


@pytest.mark.asyncio
async def test_database_failure_releases_gate(db_session, normal_event, participant, monkeypatch):
    """A non-domain failure inside the critical section still gives the hold back."""
    gate = CountingGate(capacity=5)

    async def locked(db, event_id):
        raise OperationalError("UPDATE capacity_ledger", {}, Exception("database is locked"))

    monkeypatch.setattr(ledger_service, "reserve_slot", locked)

    with pytest.raises(OperationalError):
        await admission_service.try_admit(
            db_session, normal_event.id, participant.id, NormalRegistration(answers=VALID_ANSWERS), gate=gate
        )

    assert gate.held == 0
    assert await db_session.scalar(select(func.count()).select_from(Participation)) == 0


@pytest.mark.asyncio
async def test_integrity_error_without_active_row_is_not_a_duplicate(
    db_session, normal_event, participant, monkeypatch
):
    gate = CountingGate(capacity=5)

    async def colliding_ticket(db, participation, now=None):
        raise IntegrityError("INSERT INTO tickets", {}, Exception("UNIQUE constraint failed: tickets.id"))

    monkeypatch.setattr(ticket_service, "mint_ticket", colliding_ticket)

    with pytest.raises(IntegrityError):
        await admission_service.try_admit(
            db_session, normal_event.id, participant.id, NormalRegistration(answers=VALID_ANSWERS), gate=gate
        )

    assert gate.held == 0
    ledger = await ledger_service.get_capacity(db_session, normal_event.id)
    assert ledger.consumed == 0


@pytest.mark.asyncio
async def test_payment_reject_without_ledger_release_keeps_gate_hold(db_session, merch_event, participant, organizer):
    gate = CountingGate(capacity=5)
    purchase = await admission_service.try_admit(
        db_session,
        merch_event.id,
        participant.id,
        MerchPurchase(sku="HOODIE-M", quantity=1, payment_method="upi"),
        gate=gate,
    )
    # Participation closed out of band while its payment is still pending.
    await db_session.execute(
        update(Participation).where(Participation.id == purchase.participation_id).values(status="cancelled")
    )
    await db_session.commit()

    decision = await payment_service.reject_payment(db_session, purchase.payment_id, organizer.id, gate=gate)

    assert decision.applied is True
    assert gate.held == 1
    stock = await ledger_service.get_stock(db_session, merch_event.id, "HOODIE-M")
    assert stock.reserved == 1


@pytest.mark.asyncio
async def test_reject_participation_releases_gate(db_session, normal_event, participant, organizer):
    gate = CountingGate(capacity=5)
    admitted = await admission_service.try_admit(
        db_session, normal_event.id, participant.id, NormalRegistration(answers=VALID_ANSWERS), gate=gate
    )

    await admission_service.reject_participation(db_session, admitted.participation_id, organizer.id, gate=gate)
    assert gate.held == 0

    await admission_service.reject_participation(db_session, admitted.participation_id, organizer.id, gate=gate)
    assert gate.held == 0
