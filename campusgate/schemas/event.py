"""
Pydantic schemas for event-related request/response validation.

Per-type configuration is a discriminated union on `type`, so a NORMAL event
can only carry a form schema and a MERCH event only a variant list.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

FormFieldType = Literal["text", "textarea", "number", "select", "checkbox", "file"]
EventStatusName = Literal["DRAFT", "PUBLISHED", "ONGOING", "CLOSED", "COMPLETED"]


class FormField(BaseModel):
    key: str = Field(..., min_length=1, max_length=80)
    label: str = Field(..., min_length=1, max_length=120)
    type: FormFieldType
    required: bool = False
    options: Optional[list[Annotated[str, Field(min_length=1, max_length=80)]]] = Field(None, max_length=40)
    order: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_options(self) -> "FormField":
        needs_options = self.type in ("select", "checkbox")
        if needs_options and not self.options:
            raise ValueError("options are required for select/checkbox fields")
        if not needs_options and self.options:
            raise ValueError("options are only allowed for select/checkbox fields")
        return self


class NormalEventConfig(BaseModel):
    type: Literal["NORMAL"] = "NORMAL"
    fields: list[FormField] = Field(default_factory=list, max_length=60)
    is_form_locked: bool = False

    @model_validator(mode="after")
    def check_unique_keys(self) -> "NormalEventConfig":
        keys = [field.key for field in self.fields]
        if len(keys) != len(set(keys)):
            raise ValueError("form field keys must be unique")
        return self


class MerchVariant(BaseModel):
    sku: str = Field(..., min_length=1, max_length=60)
    label: str = Field(..., min_length=1, max_length=120)
    stock: int = Field(..., ge=0)
    price_delta: Decimal = Decimal("0")


class MerchEventConfig(BaseModel):
    type: Literal["MERCH"] = "MERCH"
    variants: list[MerchVariant] = Field(..., min_length=1, max_length=200)
    per_participant_limit: int = Field(1, ge=1, le=1000)

    @model_validator(mode="after")
    def check_unique_skus(self) -> "MerchEventConfig":
        skus = [variant.sku for variant in self.variants]
        if len(skus) != len(set(skus)):
            raise ValueError("variant skus must be unique")
        return self


EventConfig = Annotated[Union[NormalEventConfig, MerchEventConfig], Field(discriminator="type")]


def _assume_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Datetimes without an offset are taken as UTC, like the UTCDateTime column."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class EventCreate(BaseModel):
    organizer_id: int
    name: str = Field(..., min_length=1, max_length=160)
    description: str = Field("", max_length=5000)
    eligibility: str = Field("all", min_length=1, max_length=160)
    reg_fee: Decimal = Field(Decimal("0"), ge=0)
    reg_deadline: datetime
    start_date: datetime
    end_date: datetime
    reg_limit: Optional[int] = Field(None, ge=1)
    config: EventConfig

    @field_validator("reg_deadline", "start_date", "end_date")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _assume_utc(value)


class EventUpdate(BaseModel):
    """Partial update. Only the keys present in the request are applied."""

    organizer_id: int
    name: Optional[str] = Field(None, min_length=1, max_length=160)
    description: Optional[str] = Field(None, max_length=5000)
    eligibility: Optional[str] = Field(None, min_length=1, max_length=160)
    reg_fee: Optional[Decimal] = Field(None, ge=0)
    reg_deadline: Optional[datetime] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    reg_limit: Optional[int] = Field(None, ge=1)
    config: Optional[EventConfig] = None

    @field_validator("reg_deadline", "start_date", "end_date")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _assume_utc(value)

    def changes(self) -> dict:
        return {
            key: getattr(self, key)
            for key in self.model_fields_set
            if key != "organizer_id" and getattr(self, key) is not None
        }


class EventStatusChange(BaseModel):
    organizer_id: int
    status: EventStatusName


class EventResponse(BaseModel):
    id: int
    organizer_id: int
    name: str
    description: str
    type: str
    status: str
    display_status: str
    eligibility: str
    reg_fee: Decimal
    reg_deadline: datetime
    start_date: datetime
    end_date: datetime
    reg_limit: Optional[int]
    form_schema: Optional[dict]
    merch_config: Optional[dict]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
