"""
Tests for attendance scanning, organizer overrides and the audit trail.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from campusgate.core.errors import ConflictError, ErrorCode, NotFoundError, ValidationError
from campusgate.models.attendance import AttendanceAuditEntry
from campusgate.models.ticket import Ticket
from campusgate.schemas.participation import MerchPurchase, NormalRegistration
from campusgate.services import admission_service, attendance_service
from tests.conftest import VALID_ANSWERS


async def register(db, event, participant):
    return await admission_service.try_admit(db, event.id, participant.id, NormalRegistration(answers=VALID_ANSWERS))


async def audit_count(db, participation_id: int) -> int:
    return await db.scalar(
        select(func.count()).select_from(AttendanceAuditEntry).where(
            AttendanceAuditEntry.participation_id == participation_id
        )
    )


@pytest.mark.asyncio
async def test_scan_twice_is_idempotent(db_session, normal_event, participant):
    """First scan marks, second reports already marked; one audit entry."""
    admitted = await register(db_session, normal_event, participant)

    first = await attendance_service.mark_by_scan(db_session, normal_event.id, admitted.ticket_id)
    second = await attendance_service.mark_by_scan(db_session, normal_event.id, admitted.ticket_id)

    assert first.already_marked is False
    assert second.already_marked is True
    assert first.participant_id == participant.id

    entries = await attendance_service.list_audit_entries(db_session, normal_event.id, normal_event.organizer_id)
    assert [(e.action, e.actor, e.previous_state, e.next_state) for e in entries] == [
        ("scan_mark_present", "scanner", False, True)
    ]

    attendance = await attendance_service.get_attendance(db_session, admitted.participation_id)
    assert attendance.is_present is True
    assert attendance.marked_at is not None


@pytest.mark.asyncio
async def test_scan_by_qr_payload(db_session, normal_event, participant):
    admitted = await register(db_session, normal_event, participant)
    ticket = await db_session.get(Ticket, admitted.ticket_id)

    result = await attendance_service.mark_by_scan(db_session, normal_event.id, ticket.qr_payload)

    assert result.already_marked is False
    assert result.ticket_id == admitted.ticket_id


@pytest.mark.asyncio
async def test_scan_unknown_ticket(db_session, normal_event):
    with pytest.raises(NotFoundError):
        await attendance_service.mark_by_scan(db_session, normal_event.id, "TKT-UNKNOWN-00000000")
    with pytest.raises(NotFoundError):
        await attendance_service.mark_by_scan(db_session, normal_event.id, "a.b.c")


@pytest.mark.asyncio
async def test_scan_at_wrong_event(db_session, make_event, normal_event, participant):
    admitted = await register(db_session, normal_event, participant)
    other_event = await make_event()

    with pytest.raises(ConflictError) as exc_info:
        await attendance_service.mark_by_scan(db_session, other_event.id, admitted.ticket_id)
    assert exc_info.value.code is ErrorCode.TICKET_EVENT_MISMATCH
    assert await audit_count(db_session, admitted.participation_id) == 0


@pytest.mark.asyncio
async def test_scan_cancelled_participation(db_session, normal_event, participant):
    admitted = await register(db_session, normal_event, participant)
    await admission_service.cancel_participation(db_session, admitted.participation_id, participant.id)

    with pytest.raises(ConflictError) as exc_info:
        await attendance_service.mark_by_scan(db_session, normal_event.id, admitted.ticket_id)
    assert exc_info.value.code is ErrorCode.PARTICIPATION_NOT_CONFIRMED


@pytest.mark.asyncio
async def test_override_requires_reason(db_session, normal_event, participant, organizer):
    """A reason shorter than three characters fails and writes nothing."""
    admitted = await register(db_session, normal_event, participant)

    with pytest.raises(ValidationError) as exc_info:
        await attendance_service.override_by_organizer(
            db_session, normal_event.id, organizer.id, admitted.participation_id, True, " ok "
        )
    assert exc_info.value.code is ErrorCode.REASON_TOO_SHORT
    assert await audit_count(db_session, admitted.participation_id) == 0


@pytest.mark.asyncio
async def test_override_marks_and_unmarks(db_session, normal_event, participant, organizer):
    admitted = await register(db_session, normal_event, participant)
    pid = admitted.participation_id

    marked = await attendance_service.override_by_organizer(
        db_session, normal_event.id, organizer.id, pid, True, "scanner offline"
    )
    repeat = await attendance_service.override_by_organizer(
        db_session, normal_event.id, organizer.id, pid, True, "scanner offline"
    )
    unmarked = await attendance_service.override_by_organizer(
        db_session, normal_event.id, organizer.id, pid, False, "left early"
    )

    assert (marked.already_in_state, repeat.already_in_state, unmarked.already_in_state) == (False, True, False)
    assert unmarked.is_present is False

    entries = await attendance_service.list_audit_entries(db_session, normal_event.id, organizer.id, pid)
    assert [(e.action, e.actor, e.reason) for e in entries] == [
        ("manual_mark_present", f"organizer:{organizer.id}", "scanner offline"),
        ("manual_mark_absent", f"organizer:{organizer.id}", "left early"),
    ]


@pytest.mark.asyncio
async def test_override_absent_on_unmarked_is_noop(db_session, normal_event, participant, organizer):
    admitted = await register(db_session, normal_event, participant)

    result = await attendance_service.override_by_organizer(
        db_session, normal_event.id, organizer.id, admitted.participation_id, False, "never came"
    )

    assert result.already_in_state is True
    assert await audit_count(db_session, admitted.participation_id) == 0


@pytest.mark.asyncio
async def test_scan_after_manual_mark_is_already_marked(db_session, normal_event, participant, organizer):
    admitted = await register(db_session, normal_event, participant)
    await attendance_service.override_by_organizer(
        db_session, normal_event.id, organizer.id, admitted.participation_id, True, "walked in"
    )

    scan = await attendance_service.mark_by_scan(db_session, normal_event.id, admitted.ticket_id)
    assert scan.already_marked is True
    assert await audit_count(db_session, admitted.participation_id) == 1


@pytest.mark.asyncio
async def test_override_requires_confirmed(db_session, merch_event, participant, organizer):
    pending = await admission_service.try_admit(
        db_session, merch_event.id, participant.id,
        MerchPurchase(sku="HOODIE-M", quantity=1, payment_method="cash"),
    )

    with pytest.raises(ConflictError):
        await attendance_service.override_by_organizer(
            db_session, merch_event.id, organizer.id, pending.participation_id, True, "paid at desk"
        )


@pytest.mark.asyncio
async def test_override_by_other_organizer(db_session, normal_event, participant, other_organizer):
    admitted = await register(db_session, normal_event, participant)

    with pytest.raises(NotFoundError):
        await attendance_service.override_by_organizer(
            db_session, normal_event.id, other_organizer.id, admitted.participation_id, True, "not mine"
        )


@pytest.mark.asyncio
async def test_attendance_endpoints(client: AsyncClient, db_session, normal_event, participant, organizer):
    admitted = await register(db_session, normal_event, participant)
    base = f"/api/v1/events/{normal_event.id}/attendance"

    first = await client.post(f"{base}/scan", json={"ticket_id": admitted.ticket_id})
    second = await client.post(f"{base}/scan", json={"ticket_id": admitted.ticket_id})
    assert first.status_code == 200
    assert first.json()["already_marked"] is False
    assert second.json()["already_marked"] is True

    short = await client.post(
        f"{base}/override",
        json={"organizer_id": organizer.id, "participation_id": admitted.participation_id,
              "present": False, "reason": "no"},
    )
    assert short.status_code == 400
    assert short.json()["error"]["code"] == "REASON_TOO_SHORT"

    audit = await client.get(f"{base}/audit", params={"organizer_id": organizer.id})
    assert audit.status_code == 200
    assert [entry["action"] for entry in audit.json()] == ["scan_mark_present"]


@pytest.mark.asyncio
async def test_scan_request_needs_exactly_one_source(client: AsyncClient, normal_event):
    response = await client.post(f"/api/v1/events/{normal_event.id}/attendance/scan", json={})
    assert response.status_code == 422
