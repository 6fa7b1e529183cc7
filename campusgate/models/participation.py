"""
Participation: one participant's registration (NORMAL) or purchase (MERCH).

Key design decisions:
- Partial unique index on (event_id, participant_id) over active statuses
  (pending, confirmed) enforces at most one active participation per pair,
  while cancelled/rejected rows are kept for audit and analytics.
- `event_type` is a snapshot of the event tag; NORMAL rows carry
  `form_responses`, MERCH rows carry the purchase columns.
- Rows are never deleted.
"""

from sqlalchemy import JSON, CheckConstraint, Column, ForeignKey, Index, Integer, Numeric, String, text
from sqlalchemy.orm import relationship

from campusgate.db.base import Base, TimestampMixin

ACTIVE_STATUSES = ("pending", "confirmed")

_active_clause = text("status IN ('pending', 'confirmed')")


class Participation(Base, TimestampMixin):
    __tablename__ = "participations"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    participant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_type = Column(String(10), nullable=False)
    status = Column(String(12), nullable=False, default="pending")
    ticket_id = Column(String(40), nullable=True)
    team_name = Column(String(120), nullable=True)

    # NORMAL
    form_responses = Column(JSON, nullable=True)

    # MERCH
    sku = Column(String(60), nullable=True)
    variant_label = Column(String(120), nullable=True)
    quantity = Column(Integer, nullable=True)
    unit_price = Column(Numeric(10, 2), nullable=True)
    total_amount = Column(Numeric(10, 2), nullable=True)

    event = relationship("Event", lazy="joined")
    payment = relationship("Payment", back_populates="participation", uselist=False, lazy="selectin")

    __table_args__ = (
        Index(
            "uq_active_participation",
            "event_id",
            "participant_id",
            unique=True,
            postgresql_where=_active_clause,
            sqlite_where=_active_clause,
        ),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'rejected')",
            name="check_participation_status",
        ),
        CheckConstraint("quantity IS NULL OR quantity > 0", name="check_participation_quantity"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Participation(id={self.id}, event={self.event_id}, "
            f"participant={self.participant_id}, status={self.status})>"
        )
