from datetime import datetime

from pydantic import BaseModel


class TicketResponse(BaseModel):
    id: str
    participation_id: int
    event_id: int
    participant_id: int
    event_type: str
    qr_payload: str
    issued_at: datetime

    model_config = {"from_attributes": True}
