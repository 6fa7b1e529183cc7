"""
Capacity ledger with concurrency-safe check-and-increment.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Problem:
  Two participants race for the last slot. Both read consumed=limit-1,
  both increment, both get admitted. Result: overbooking.

Solution:
  Every ledger row carries a `version` column.

  1. Read the row's current counters and version
  2. UPDATE capacity_ledger SET consumed = consumed + N, version = version + 1
     WHERE event_id = :id AND version = :read_version AND consumed + N <= limit
  3. rowcount == 0 means someone else moved the row first -> re-read and retry

  Retries are bounded by LEDGER_MAX_RETRIES; after that the caller gets a
  transient LedgerContentionError instead of a silent drop. The CHECK
  constraints on the tables are the final safety net.

  Within one worker the admission service additionally serializes the
  critical section per event with an asyncio lock (core.locks), so version
  conflicts only occur between processes.

Releases (cancel/reject) are plain atomic decrements that also bump the
version so in-flight optimistic reservations re-read.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from campusgate.core.config import get_settings
from campusgate.core.errors import (
    CapacityExhaustedError,
    ErrorCode,
    LedgerContentionError,
    PreconditionError,
    ValidationError,
)
from campusgate.core.logging import get_logger
from campusgate.core.metrics import ledger_releases, ledger_retries
from campusgate.domain.lifecycle import EventType
from campusgate.models.event import Event
from campusgate.models.ledger import CapacityLedger, StockLedger
from campusgate.models.participation import Participation

logger = get_logger(__name__)


async def open_ledger(db: AsyncSession, event: Event) -> None:
    """Materialize ledger rows for an event being published. Idempotent."""
    if event.type == EventType.NORMAL.value:
        existing = await db.get(CapacityLedger, event.id)
        if existing is None:
            db.add(CapacityLedger(event_id=event.id, limit=event.reg_limit, consumed=0))
    else:
        rows = await db.execute(select(StockLedger.sku).where(StockLedger.event_id == event.id))
        known = set(rows.scalars().all())
        for variant in event.merch_config["variants"]:
            if variant["sku"] not in known:
                db.add(StockLedger(event_id=event.id, sku=variant["sku"], stock=variant["stock"], reserved=0))
    await db.flush()
    logger.info("ledger_opened", event_id=event.id, event_type=event.type)


async def get_capacity(db: AsyncSession, event_id: int) -> Optional[CapacityLedger]:
    result = await db.execute(
        select(CapacityLedger)
        .where(CapacityLedger.event_id == event_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_stock(db: AsyncSession, event_id: int, sku: str) -> Optional[StockLedger]:
    result = await db.execute(
        select(StockLedger)
        .where(StockLedger.event_id == event_id, StockLedger.sku == sku)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def reserve_slot(db: AsyncSession, event_id: int) -> CapacityLedger:
    """Take one admission slot for a NORMAL event."""
    max_attempts = get_settings().LEDGER_MAX_RETRIES

    for attempt in range(1, max_attempts + 1):
        row = await get_capacity(db, event_id)
        if row is None:
            raise PreconditionError("Event is not open for participation", code=ErrorCode.EVENT_NOT_OPEN)

        if row.consumed >= row.limit:
            logger.warning("ledger_exhausted", event_id=event_id, consumed=row.consumed, limit=row.limit)
            raise CapacityExhaustedError()

        result = await db.execute(
            update(CapacityLedger)
            .where(
                CapacityLedger.event_id == event_id,
                CapacityLedger.version == row.version,
                CapacityLedger.consumed < CapacityLedger.limit,
            )
            .values(consumed=CapacityLedger.consumed + 1, version=CapacityLedger.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return await get_capacity(db, event_id)

        ledger_retries.inc()
        logger.info("ledger_retry", event_id=event_id, attempt=attempt, reason="version_conflict")

    raise LedgerContentionError()


async def reserve_stock(db: AsyncSession, event_id: int, sku: str, quantity: int) -> StockLedger:
    """Hold `quantity` units of one merch variant."""
    max_attempts = get_settings().LEDGER_MAX_RETRIES

    for attempt in range(1, max_attempts + 1):
        row = await get_stock(db, event_id, sku)
        if row is None:
            raise ValidationError("Invalid merch variant sku", code=ErrorCode.INVALID_INPUT, field="sku")

        if row.available < quantity:
            logger.warning(
                "ledger_exhausted",
                event_id=event_id,
                sku=sku,
                requested=quantity,
                available=row.available,
            )
            raise CapacityExhaustedError("Requested stock unavailable")

        result = await db.execute(
            update(StockLedger)
            .where(
                StockLedger.id == row.id,
                StockLedger.version == row.version,
                StockLedger.reserved + quantity <= StockLedger.stock,
            )
            .values(reserved=StockLedger.reserved + quantity, version=StockLedger.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return await get_stock(db, event_id, sku)

        ledger_retries.inc()
        logger.info("ledger_retry", event_id=event_id, sku=sku, attempt=attempt, reason="version_conflict")

    raise LedgerContentionError()


async def release_slot(db: AsyncSession, event_id: int, reason: str) -> None:
    result = await db.execute(
        update(CapacityLedger)
        .where(CapacityLedger.event_id == event_id, CapacityLedger.consumed >= 1)
        .values(consumed=CapacityLedger.consumed - 1, version=CapacityLedger.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning("ledger_release_underflow", event_id=event_id, reason=reason)
        return
    ledger_releases.labels(reason=reason).inc()


async def release_stock(db: AsyncSession, event_id: int, sku: str, quantity: int, reason: str) -> None:
    result = await db.execute(
        update(StockLedger)
        .where(
            StockLedger.event_id == event_id,
            StockLedger.sku == sku,
            StockLedger.reserved >= quantity,
        )
        .values(reserved=StockLedger.reserved - quantity, version=StockLedger.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning("ledger_release_underflow", event_id=event_id, sku=sku, reason=reason)
        return
    ledger_releases.labels(reason=reason).inc()


async def release_for(db: AsyncSession, participation: Participation, reason: str) -> None:
    """Give back whatever an active participation was holding."""
    if participation.event_type == EventType.NORMAL.value:
        await release_slot(db, participation.event_id, reason)
    else:
        await release_stock(db, participation.event_id, participation.sku, participation.quantity, reason)


async def raise_limit(db: AsyncSession, event_id: int, new_limit: int) -> None:
    """Apply a registration-limit increase to the ledger (never decreases)."""
    await db.execute(
        update(CapacityLedger)
        .where(CapacityLedger.event_id == event_id, CapacityLedger.limit <= new_limit)
        .values(limit=new_limit, version=CapacityLedger.version + 1)
        .execution_options(synchronize_session=False)
    )
