"""
Event model: a NORMAL registration event or a MERCH sale.

Key design decisions:
- `type` is the tag of a tagged union; `form_schema` is only set for NORMAL
  events and `merch_config` only for MERCH events (JSON columns).
- `status` stores DRAFT/PUBLISHED/CLOSED/COMPLETED only. ONGOING is derived
  from the wall clock at read time and never persisted.
- Remaining capacity does not live here; see CapacityLedger/StockLedger.
"""

from sqlalchemy import JSON, CheckConstraint, Column, ForeignKey, Index, Integer, Numeric, String, Text

from campusgate.db.base import Base, TimestampMixin, UTCDateTime


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(160), nullable=False)
    description = Column(Text, nullable=False, default="")
    type = Column(String(10), nullable=False)  # NORMAL, MERCH
    status = Column(String(12), nullable=False, default="DRAFT")
    eligibility = Column(String(160), nullable=False, default="all")
    reg_fee = Column(Numeric(10, 2), nullable=False, default=0)
    reg_deadline = Column(UTCDateTime(), nullable=False)
    start_date = Column(UTCDateTime(), nullable=False)
    end_date = Column(UTCDateTime(), nullable=False)
    reg_limit = Column(Integer, nullable=True)  # NORMAL only

    form_schema = Column(JSON, nullable=True)  # {"fields": [...], "is_form_locked": bool}
    merch_config = Column(JSON, nullable=True)  # {"variants": [...], "per_participant_limit": int}

    __table_args__ = (
        CheckConstraint("type IN ('NORMAL', 'MERCH')", name="check_event_type"),
        CheckConstraint(
            "status IN ('DRAFT', 'PUBLISHED', 'CLOSED', 'COMPLETED')",
            name="check_event_status",
        ),
        CheckConstraint("end_date > start_date", name="check_event_dates"),
        CheckConstraint("reg_deadline <= start_date", name="check_event_deadline"),
        CheckConstraint("reg_limit IS NULL OR reg_limit >= 1", name="check_event_reg_limit"),
        Index("ix_events_status_start", "status", "start_date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, name={self.name}, type={self.type}, status={self.status})>"
