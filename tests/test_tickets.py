"""
Tests for ticket issuance and the signed QR payload.
"""

from datetime import datetime, timezone

import jwt
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from campusgate.core.config import get_settings
from campusgate.core.errors import NotFoundError, PreconditionError
from campusgate.models.ticket import Ticket
from campusgate.schemas.participation import MerchPurchase, NormalRegistration
from campusgate.services import admission_service, ticket_service
from tests.conftest import VALID_ANSWERS


def test_ticket_id_format():
    ticket_id = ticket_service.generate_ticket_id(datetime(2026, 3, 1, tzinfo=timezone.utc))
    prefix, time_part, suffix = ticket_id.split("-")

    assert prefix == "TKT"
    assert int(time_part, 36) == int(datetime(2026, 3, 1, tzinfo=timezone.utc).timestamp() * 1000)
    assert len(suffix) == 8


def test_qr_payload_round_trip():
    issued_at = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)
    payload = ticket_service.build_qr_payload("TKT-1-ABCDEF01", 7, 42, 3, issued_at)

    claims = ticket_service.decode_qr_payload(payload)
    assert claims == ticket_service.TicketClaims("TKT-1-ABCDEF01", 7, 42, 3)
    assert ticket_service.looks_like_payload(payload)
    assert not ticket_service.looks_like_payload("TKT-1-ABCDEF01")


def test_forged_payload_does_not_resolve():
    forged = jwt.encode(
        {"ticket_id": "TKT-1-X", "event_id": 1, "participation_id": 1, "user_id": 1},
        "not-the-secret",
        algorithm=get_settings().ALGORITHM,
    )
    with pytest.raises(NotFoundError):
        ticket_service.decode_qr_payload(forged)


def test_payload_missing_claims_does_not_resolve():
    settings = get_settings()
    partial = jwt.encode({"ticket_id": "TKT-1-X"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    with pytest.raises(NotFoundError):
        ticket_service.decode_qr_payload(partial)


@pytest.mark.asyncio
async def test_issue_is_idempotent(db_session, normal_event, participant):
    admitted = await admission_service.try_admit(
        db_session, normal_event.id, participant.id, NormalRegistration(answers=VALID_ANSWERS)
    )

    ticket = await ticket_service.issue_ticket(db_session, admitted.participation_id)

    assert ticket.id == admitted.ticket_id
    assert await db_session.scalar(select(func.count()).select_from(Ticket)) == 1

    claims = ticket_service.decode_qr_payload(ticket.qr_payload)
    assert claims.participation_id == admitted.participation_id
    assert claims.event_id == normal_event.id
    assert claims.user_id == participant.id


@pytest.mark.asyncio
async def test_issue_requires_confirmed(db_session, merch_event, participant):
    pending = await admission_service.try_admit(
        db_session, merch_event.id, participant.id,
        MerchPurchase(sku="HOODIE-M", quantity=1, payment_method="cash"),
    )

    with pytest.raises(PreconditionError):
        await ticket_service.issue_ticket(db_session, pending.participation_id)


@pytest.mark.asyncio
async def test_get_ticket_endpoint(client: AsyncClient, db_session, normal_event, participant):
    admitted = await admission_service.try_admit(
        db_session, normal_event.id, participant.id, NormalRegistration(answers=VALID_ANSWERS)
    )

    response = await client.get(f"/api/v1/tickets/{admitted.ticket_id}")
    assert response.status_code == 200
    assert response.json()["participation_id"] == admitted.participation_id

    missing = await client.get("/api/v1/tickets/TKT-NOPE")
    assert missing.status_code == 404
