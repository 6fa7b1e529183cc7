"""
Event endpoints: drafting, field updates and the status state machine.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from campusgate.db.session import get_db
from campusgate.schemas.event import EventCreate, EventResponse, EventStatusChange, EventUpdate
from campusgate.schemas.participation import ParticipationResponse, ParticipationStatusName
from campusgate.services import admission_service, event_service
from campusgate.services.gate_factory import get_admission_gate
from campusgate.services.interfaces.gate import AdmissionGate
from campusgate.services.notification_service import NotificationDispatcher, get_notifier

router = APIRouter(prefix="/events", tags=["Events"])


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a DRAFT event owned by the organizer."""
    event = await event_service.create_event(db, event_data)
    return event_service.to_response(event)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event with its display status computed now."""
    event = await event_service.get_event(db, event_id)
    return event_service.to_response(event)


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: int,
    update: EventUpdate,
    db: AsyncSession = Depends(get_db),
    gate: AdmissionGate = Depends(get_admission_gate),
):
    """
    Partial update.

    Published events only accept a description change, a later deadline or a
    larger registration limit; any other field rejects the whole request.
    """
    event = await event_service.update_event(db, event_id, update.organizer_id, update.changes(), gate=gate)
    return event_service.to_response(event)


@router.patch("/{event_id}/status", response_model=EventResponse)
async def change_status_endpoint(
    event_id: int,
    change: EventStatusChange,
    db: AsyncSession = Depends(get_db),
    gate: AdmissionGate = Depends(get_admission_gate),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    event = await event_service.change_status(
        db, event_id, change.organizer_id, change.status, notifier=notifier, gate=gate,
    )
    return event_service.to_response(event)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event_endpoint(
    event_id: int,
    organizer_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Delete a DRAFT event."""
    await event_service.delete_event(db, event_id, organizer_id)


@router.get("/{event_id}/participations", response_model=list[ParticipationResponse])
async def list_event_participations_endpoint(
    event_id: int,
    organizer_id: int = Query(...),
    participation_status: Optional[ParticipationStatusName] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    """Participants of one of the organizer's events, optionally filtered by status."""
    return await admission_service.list_event_participations(db, event_id, organizer_id, participation_status)
