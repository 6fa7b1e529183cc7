"""
Payment review endpoint for merch purchases.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from campusgate.db.session import get_db
from campusgate.schemas.payment import PaymentDecisionRequest, PaymentDecisionResponse
from campusgate.services import payment_service
from campusgate.services.gate_factory import get_admission_gate
from campusgate.services.interfaces.gate import AdmissionGate

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/{payment_id}/decision", response_model=PaymentDecisionResponse)
async def decide_payment_endpoint(
    payment_id: int,
    decision: PaymentDecisionRequest,
    db: AsyncSession = Depends(get_db),
    gate: AdmissionGate = Depends(get_admission_gate),
):
    """
    Approve or reject a pending payment.

    Approval confirms the participation and issues its ticket; rejection
    releases the reserved stock. Deciding an already-decided payment returns
    the current state with `applied: false`.
    """
    result = await payment_service.decide_payment(
        db, payment_id, decision.reviewer_id, decision.decision, gate=gate,
    )
    return PaymentDecisionResponse.model_validate(result, from_attributes=True)
