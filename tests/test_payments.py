"""
Tests for the merch payment review workflow.
"""

import pytest
from httpx import AsyncClient

from campusgate.core.errors import NotFoundError
from campusgate.schemas.participation import MerchPurchase
from campusgate.services import admission_service, ledger_service, payment_service


async def buy(db, event, participant, quantity=1):
    return await admission_service.try_admit(
        db, event.id, participant.id, MerchPurchase(sku="HOODIE-M", quantity=quantity, payment_method="upi"),
    )


@pytest.mark.asyncio
async def test_approve_confirms_and_issues_ticket(db_session, merch_event, participant, organizer):
    purchase = await buy(db_session, merch_event, participant)

    decision = await payment_service.approve_payment(db_session, purchase.payment_id, organizer.id)

    assert decision.applied is True
    assert decision.payment.status == "approved"
    assert decision.payment.reviewed_by == organizer.id
    assert decision.participation.status == "confirmed"
    assert decision.ticket is not None
    assert decision.participation.ticket_id == decision.ticket.id

    stock = await ledger_service.get_stock(db_session, merch_event.id, "HOODIE-M")
    assert stock.reserved == 1


@pytest.mark.asyncio
async def test_reject_releases_stock(db_session, merch_event, participant, organizer):
    purchase = await buy(db_session, merch_event, participant, quantity=2)

    decision = await payment_service.reject_payment(db_session, purchase.payment_id, organizer.id)

    assert decision.applied is True
    assert decision.payment.status == "rejected"
    assert decision.participation.status == "rejected"
    assert decision.ticket is None

    stock = await ledger_service.get_stock(db_session, merch_event.id, "HOODIE-M")
    assert stock.reserved == 0


@pytest.mark.asyncio
async def test_second_decision_is_reported_noop(db_session, merch_event, participant, organizer):
    purchase = await buy(db_session, merch_event, participant)
    first = await payment_service.approve_payment(db_session, purchase.payment_id, organizer.id)

    again = await payment_service.reject_payment(db_session, purchase.payment_id, organizer.id)

    assert again.applied is False
    assert again.payment.status == "approved"
    assert again.participation.status == "confirmed"
    assert again.ticket.id == first.ticket.id

    stock = await ledger_service.get_stock(db_session, merch_event.id, "HOODIE-M")
    assert stock.reserved == 1


@pytest.mark.asyncio
async def test_rejected_buyer_can_buy_again(db_session, merch_event, participant, organizer):
    purchase = await buy(db_session, merch_event, participant)
    await payment_service.reject_payment(db_session, purchase.payment_id, organizer.id)

    retry = await buy(db_session, merch_event, participant)
    assert retry.status == "pending"


@pytest.mark.asyncio
async def test_admin_can_review_any_event(db_session, merch_event, participant, admin):
    purchase = await buy(db_session, merch_event, participant)

    decision = await payment_service.approve_payment(db_session, purchase.payment_id, admin.id)
    assert decision.applied is True


@pytest.mark.asyncio
async def test_other_organizer_cannot_review(db_session, merch_event, participant, other_organizer):
    purchase = await buy(db_session, merch_event, participant)

    with pytest.raises(NotFoundError):
        await payment_service.approve_payment(db_session, purchase.payment_id, other_organizer.id)


@pytest.mark.asyncio
async def test_cancelled_purchase_cannot_be_approved(db_session, merch_event, participant, organizer):
    purchase = await buy(db_session, merch_event, participant)
    await admission_service.cancel_participation(db_session, purchase.participation_id, participant.id)

    decision = await payment_service.approve_payment(db_session, purchase.payment_id, organizer.id)

    assert decision.applied is False
    assert decision.participation.status == "cancelled"
    assert decision.ticket is None


@pytest.mark.asyncio
async def test_decision_endpoint(client: AsyncClient, db_session, merch_event, participant, organizer):
    purchase = await buy(db_session, merch_event, participant)

    response = await client.post(
        f"/api/v1/payments/{purchase.payment_id}/decision",
        json={"reviewer_id": organizer.id, "decision": "approve"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["applied"] is True
    assert data["payment"]["status"] == "approved"
    assert data["participation"]["status"] == "confirmed"
    assert data["ticket"]["id"] == data["participation"]["ticket_id"]

    repeat = await client.post(
        f"/api/v1/payments/{purchase.payment_id}/decision",
        json={"reviewer_id": organizer.id, "decision": "approve"},
    )
    assert repeat.status_code == 200
    assert repeat.json()["applied"] is False


@pytest.mark.asyncio
async def test_decision_endpoint_unknown_payment(client: AsyncClient, organizer):
    response = await client.post(
        "/api/v1/payments/999/decision",
        json={"reviewer_id": organizer.id, "decision": "reject"},
    )
    assert response.status_code == 404
