"""
Payment for a MERCH purchase. Only a proof reference and the reviewer's
decision are recorded; no money moves through this service.
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from campusgate.db.base import Base, TimestampMixin, UTCDateTime


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    participation_id = Column(Integer, ForeignKey("participations.id"), nullable=False, unique=True)
    status = Column(String(10), nullable=False, default="pending")  # pending, approved, rejected
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(String(20), nullable=False)
    proof_ref = Column(String(500), nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(UTCDateTime(), nullable=True)

    participation = relationship("Participation", back_populates="payment", lazy="joined")

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="check_payment_status"),
        CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, participation={self.participation_id}, status={self.status})>"
