"""
Ticket: immutable proof of a confirmed participation.

`id` is the public ticket code (TKT-<base36 time>-<hex>). The unique
constraint on participation_id makes issuance idempotent under races.
"""

from sqlalchemy import Column, ForeignKey, Integer, String, Text

from campusgate.db.base import Base, UTCDateTime, utcnow


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(String(40), primary_key=True)
    participation_id = Column(Integer, ForeignKey("participations.id"), nullable=False, unique=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    participant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_type = Column(String(10), nullable=False)
    qr_payload = Column(Text, nullable=False)
    issued_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, participation={self.participation_id})>"
