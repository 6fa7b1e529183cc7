from campusgate.schemas.event import (
    EventCreate, EventUpdate, EventStatusChange, EventResponse,
    NormalEventConfig, MerchEventConfig, MerchVariant, FormField,
)
from campusgate.schemas.participation import (
    RegistrationCreate, NormalRegistration, MerchPurchase,
    AdmissionResponse, CancelRequest, ParticipationResponse,
)
from campusgate.schemas.ticket import TicketResponse
from campusgate.schemas.payment import PaymentDecisionRequest, PaymentResponse, PaymentDecisionResponse
from campusgate.schemas.attendance import (
    ScanRequest, ScanResponse, OverrideRequest, OverrideResponse, AuditEntryResponse,
)

__all__ = [
    "EventCreate", "EventUpdate", "EventStatusChange", "EventResponse",
    "NormalEventConfig", "MerchEventConfig", "MerchVariant", "FormField",
    "RegistrationCreate", "NormalRegistration", "MerchPurchase",
    "AdmissionResponse", "CancelRequest", "ParticipationResponse",
    "TicketResponse",
    "PaymentDecisionRequest", "PaymentResponse", "PaymentDecisionResponse",
    "ScanRequest", "ScanResponse", "OverrideRequest", "OverrideResponse", "AuditEntryResponse",
]
