"""
Capacity ledger rows: the single source of truth for admission decisions.

- CapacityLedger: one row per NORMAL event, `consumed` counts active
  participations and never exceeds `limit`.
- StockLedger: one row per MERCH variant, `reserved` counts units held by
  active purchases and never exceeds `stock`.

Both carry a `version` column for optimistic check-and-increment, and CHECK
constraints as the final safety net.
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, UniqueConstraint

from campusgate.db.base import Base, TimestampMixin


class CapacityLedger(Base, TimestampMixin):
    __tablename__ = "capacity_ledger"

    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True)
    limit = Column("slot_limit", Integer, nullable=False)
    consumed = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("consumed >= 0", name="check_capacity_consumed_non_negative"),
        CheckConstraint("consumed <= slot_limit", name="check_capacity_consumed_lte_limit"),
    )

    @property
    def available(self) -> int:
        return self.limit - self.consumed

    def __repr__(self) -> str:
        return f"<CapacityLedger(event={self.event_id}, consumed={self.consumed}/{self.limit})>"


class StockLedger(Base, TimestampMixin):
    __tablename__ = "stock_ledger"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String(60), nullable=False)
    stock = Column(Integer, nullable=False)
    reserved = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("event_id", "sku", name="uq_stock_event_sku"),
        CheckConstraint("reserved >= 0", name="check_stock_reserved_non_negative"),
        CheckConstraint("reserved <= stock", name="check_stock_reserved_lte_stock"),
    )

    @property
    def available(self) -> int:
        return self.stock - self.reserved

    def __repr__(self) -> str:
        return f"<StockLedger(event={self.event_id}, sku={self.sku}, reserved={self.reserved}/{self.stock})>"
