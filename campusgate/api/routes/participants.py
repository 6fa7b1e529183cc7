"""
Participant-facing views of their own participations.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from campusgate.db.session import get_db
from campusgate.schemas.participation import ParticipationResponse
from campusgate.services import admission_service

router = APIRouter(prefix="/participants", tags=["Participants"])


@router.get("/{participant_id}/participations", response_model=list[ParticipationResponse])
async def list_my_participations(
    participant_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await admission_service.list_participant_participations(db, participant_id)
