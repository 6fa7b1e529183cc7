"""
Pydantic schemas for the merch payment review workflow.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel

from campusgate.schemas.participation import ParticipationResponse
from campusgate.schemas.ticket import TicketResponse


class PaymentDecisionRequest(BaseModel):
    reviewer_id: int
    decision: Literal["approve", "reject"]


class PaymentResponse(BaseModel):
    id: int
    participation_id: int
    status: str
    amount: Decimal
    method: str
    proof_ref: Optional[str]
    reviewed_by: Optional[int]
    reviewed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PaymentDecisionResponse(BaseModel):
    applied: bool
    payment: PaymentResponse
    participation: ParticipationResponse
    ticket: Optional[TicketResponse] = None
