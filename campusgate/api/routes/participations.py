"""
Registration / purchase endpoints with concurrency-safe admission.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from campusgate.db.session import get_db
from campusgate.schemas.participation import (
    AdmissionResponse,
    CancelRequest,
    ParticipationResponse,
    RegistrationCreate,
    RejectRequest,
)
from campusgate.services import admission_service
from campusgate.services.gate_factory import get_admission_gate
from campusgate.services.interfaces.gate import AdmissionGate

router = APIRouter(prefix="/participations", tags=["Participations"])


@router.post("", response_model=AdmissionResponse, status_code=status.HTTP_201_CREATED)
async def create_participation(
    registration: RegistrationCreate,
    db: AsyncSession = Depends(get_db),
    gate: AdmissionGate = Depends(get_admission_gate),
):
    """
    Register for a NORMAL event or buy from a MERCH event.

    Checks run in order (open, eligible, not already registered, capacity)
    and the first failure is returned with its own error code. Capacity is
    reserved and the participation inserted as one unit, so a full event is
    never overbooked under concurrent requests.
    """
    result = await admission_service.try_admit(
        db,
        registration.event_id,
        registration.participant_id,
        registration.request,
        team_name=registration.team_name,
        gate=gate,
    )
    return AdmissionResponse(
        participation_id=result.participation_id,
        status=result.status,
        ticket_id=result.ticket_id,
        payment_id=result.payment_id,
    )


@router.patch("/{participation_id}/cancel", response_model=ParticipationResponse)
async def cancel_participation_endpoint(
    participation_id: int,
    cancel: CancelRequest,
    db: AsyncSession = Depends(get_db),
    gate: AdmissionGate = Depends(get_admission_gate),
):
    """Cancel and release the slot or stock back to the event."""
    return await admission_service.cancel_participation(db, participation_id, cancel.participant_id, gate=gate)


@router.get("/{participation_id}", response_model=ParticipationResponse)
async def get_participation_endpoint(
    participation_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await admission_service.get_participation(db, participation_id)


@router.patch("/{participation_id}/reject", response_model=ParticipationResponse)
async def reject_participation_endpoint(
    participation_id: int,
    reject: RejectRequest,
    db: AsyncSession = Depends(get_db),
    gate: AdmissionGate = Depends(get_admission_gate),
):
    """Organizer or admin rejects; already closed participations come back unchanged."""
    return await admission_service.reject_participation(db, participation_id, reject.reviewer_id, gate=gate)
