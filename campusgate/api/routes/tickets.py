"""
Ticket lookup.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from campusgate.db.session import get_db
from campusgate.schemas.ticket import TicketResponse
from campusgate.services import ticket_service

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket_endpoint(
    ticket_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await ticket_service.get_ticket(db, ticket_id)
