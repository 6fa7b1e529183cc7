"""
Pydantic schemas for attendance scanning, overrides and the audit trail.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class ScanRequest(BaseModel):
    ticket_id: Optional[str] = Field(None, min_length=1, max_length=40)
    qr_payload: Optional[str] = Field(None, min_length=1, max_length=4000)

    @model_validator(mode="after")
    def check_one_source(self) -> "ScanRequest":
        if bool(self.ticket_id) == bool(self.qr_payload):
            raise ValueError("provide exactly one of ticket_id or qr_payload")
        return self

    @property
    def token(self) -> str:
        return self.qr_payload or self.ticket_id


class ScanResponse(BaseModel):
    already_marked: bool
    ticket_id: str
    participant_id: int
    participation_id: int


class OverrideRequest(BaseModel):
    organizer_id: int
    participation_id: int
    present: bool
    reason: str = Field("", max_length=500)


class OverrideResponse(BaseModel):
    already_in_state: bool
    participant_id: int
    participation_id: int
    is_present: bool


class AuditEntryResponse(BaseModel):
    id: int
    participation_id: int
    event_id: int
    actor: str
    action: str
    reason: Optional[str]
    previous_state: bool
    next_state: bool
    created_at: datetime

    model_config = {"from_attributes": True}
