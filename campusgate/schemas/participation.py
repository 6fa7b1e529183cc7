"""
Pydantic schemas for registration, purchase and cancellation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

PaymentMethod = Literal["upi", "bank_transfer", "cash", "card", "other"]
ParticipationStatusName = Literal["pending", "confirmed", "cancelled", "rejected"]


class NormalRegistration(BaseModel):
    type: Literal["NORMAL"] = "NORMAL"
    answers: dict[str, Any] = Field(default_factory=dict)


class MerchPurchase(BaseModel):
    type: Literal["MERCH"] = "MERCH"
    sku: str = Field(..., min_length=1, max_length=80)
    quantity: int = Field(1, ge=1, le=100)
    payment_method: PaymentMethod
    proof_ref: Optional[str] = Field(None, max_length=500)


AdmissionRequest = Annotated[Union[NormalRegistration, MerchPurchase], Field(discriminator="type")]


class RegistrationCreate(BaseModel):
    event_id: int
    participant_id: int
    team_name: Optional[str] = Field(None, min_length=1, max_length=120)
    request: AdmissionRequest


class AdmissionResponse(BaseModel):
    participation_id: int
    status: str
    ticket_id: Optional[str] = None
    payment_id: Optional[int] = None


class CancelRequest(BaseModel):
    participant_id: int


class RejectRequest(BaseModel):
    reviewer_id: int


class ParticipationResponse(BaseModel):
    id: int
    event_id: int
    participant_id: int
    event_type: str
    status: str
    ticket_id: Optional[str]
    team_name: Optional[str]
    form_responses: Optional[list[dict]]
    sku: Optional[str]
    variant_label: Optional[str]
    quantity: Optional[int]
    unit_price: Optional[Decimal]
    total_amount: Optional[Decimal]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
