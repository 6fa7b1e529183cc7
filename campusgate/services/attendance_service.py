"""
Attendance ledger: scan marking, organizer overrides and the audit trail.

Presence changes are check-and-set updates on the attendance row
(`UPDATE ... WHERE is_present = <old>`), so of two racing scans of the same
ticket exactly one sees rowcount 1 and reports a new mark. An audit entry
is written only for a mark that actually changed state, in the same
transaction as the change.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from campusgate.core.config import get_settings
from campusgate.core.errors import ConflictError, ErrorCode, NotFoundError, ValidationError
from campusgate.core.logging import get_logger
from campusgate.core.metrics import record_attendance
from campusgate.db.base import utcnow
from campusgate.models.attendance import SCANNER_ACTOR, Attendance, AttendanceAuditEntry
from campusgate.models.participation import Participation
from campusgate.models.ticket import Ticket
from campusgate.services import ticket_service
from campusgate.services.event_service import get_owned_event

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScanResult:
    already_marked: bool
    ticket_id: str
    participant_id: int
    participation_id: int


@dataclass(frozen=True)
class OverrideResult:
    already_in_state: bool
    participant_id: int
    participation_id: int
    is_present: bool


def _dialect_insert(db: AsyncSession):
    if db.get_bind().dialect.name == "postgresql":
        return pg_insert
    return sqlite_insert


async def _ensure_attendance(db: AsyncSession, participation: Participation) -> None:
    """Create the attendance row on first mark; concurrent creators collapse to one."""
    insert = _dialect_insert(db)
    await db.execute(
        insert(Attendance)
        .values(participation_id=participation.id, event_id=participation.event_id, is_present=False)
        .on_conflict_do_nothing(index_elements=["participation_id"])
    )


async def _set_presence(
    db: AsyncSession,
    participation: Participation,
    present: bool,
    actor: str,
    action: str,
    now: datetime,
    reason: Optional[str] = None,
) -> bool:
    """Move presence to `present`. Returns False if it was already there."""
    await _ensure_attendance(db, participation)
    result = await db.execute(
        update(Attendance)
        .where(Attendance.participation_id == participation.id, Attendance.is_present == (not present))
        .values(is_present=present, marked_at=now if present else None)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.commit()
        return False

    db.add(AttendanceAuditEntry(
        participation_id=participation.id,
        event_id=participation.event_id,
        actor=actor,
        action=action,
        reason=reason,
        previous_state=not present,
        next_state=present,
        created_at=now,
    ))
    await db.commit()
    return True


async def _resolve_scan(db: AsyncSession, token: str) -> tuple[Ticket, Participation]:
    token = token.strip()
    if ticket_service.looks_like_payload(token):
        claims = ticket_service.decode_qr_payload(token)
        participation = await db.get(Participation, claims.participation_id, populate_existing=True)
        ticket = await db.get(Ticket, claims.ticket_id)
        if (
            participation is None
            or ticket is None
            or ticket.participation_id != participation.id
            or participation.participant_id != claims.user_id
            or participation.event_id != claims.event_id
        ):
            raise NotFoundError("Ticket not found")
        return ticket, participation

    ticket = await db.get(Ticket, token)
    if ticket is None:
        raise NotFoundError("Ticket not found")
    participation = await db.get(Participation, ticket.participation_id, populate_existing=True)
    if participation is None:
        raise NotFoundError("Ticket not found")
    return ticket, participation


async def mark_by_scan(
    db: AsyncSession,
    event_id: int,
    token: str,
    now: Optional[datetime] = None,
) -> ScanResult:
    """Mark a ticket holder present. Re-scanning is a successful no-op."""
    now = now or utcnow()
    ticket, participation = await _resolve_scan(db, token)

    if participation.event_id != event_id:
        logger.warning("scan_event_mismatch", ticket_id=ticket.id, event_id=event_id)
        raise ConflictError("Ticket belongs to a different event", code=ErrorCode.TICKET_EVENT_MISMATCH)
    if participation.status != "confirmed":
        raise ConflictError(
            f"Participation is {participation.status}",
            code=ErrorCode.PARTICIPATION_NOT_CONFIRMED,
        )

    changed = await _set_presence(db, participation, True, SCANNER_ACTOR, "scan_mark_present", now)
    record_attendance("scan", changed)
    logger.info(
        "attendance_marked",
        source="scan",
        ticket_id=ticket.id,
        participation_id=participation.id,
        already_marked=not changed,
    )
    return ScanResult(
        already_marked=not changed,
        ticket_id=ticket.id,
        participant_id=participation.participant_id,
        participation_id=participation.id,
    )


async def override_by_organizer(
    db: AsyncSession,
    event_id: int,
    organizer_id: int,
    participation_id: int,
    present: bool,
    reason: str,
    now: Optional[datetime] = None,
) -> OverrideResult:
    """Organizer sets presence by hand; the reason goes into the audit trail."""
    reason = (reason or "").strip()
    min_length = get_settings().OVERRIDE_REASON_MIN_LENGTH
    if len(reason) < min_length:
        raise ValidationError(
            f"reason must be at least {min_length} characters",
            code=ErrorCode.REASON_TOO_SHORT,
            field="reason",
        )

    now = now or utcnow()
    await get_owned_event(db, event_id, organizer_id)

    participation = await db.get(Participation, participation_id, populate_existing=True)
    if participation is None or participation.event_id != event_id:
        raise NotFoundError("Participation not found")
    if participation.status != "confirmed":
        raise ConflictError(
            f"Participation is {participation.status}",
            code=ErrorCode.PARTICIPATION_NOT_CONFIRMED,
        )

    action = "manual_mark_present" if present else "manual_mark_absent"
    changed = await _set_presence(
        db, participation, present, f"organizer:{organizer_id}", action, now, reason=reason,
    )
    record_attendance("manual", changed)
    logger.info(
        "attendance_marked",
        source="manual",
        participation_id=participation.id,
        organizer_id=organizer_id,
        present=present,
        already_in_state=not changed,
    )
    return OverrideResult(
        already_in_state=not changed,
        participant_id=participation.participant_id,
        participation_id=participation.id,
        is_present=present,
    )


async def get_attendance(db: AsyncSession, participation_id: int) -> Optional[Attendance]:
    result = await db.execute(
        select(Attendance)
        .where(Attendance.participation_id == participation_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_audit_entries(
    db: AsyncSession,
    event_id: int,
    organizer_id: int,
    participation_id: Optional[int] = None,
) -> list[AttendanceAuditEntry]:
    await get_owned_event(db, event_id, organizer_id)
    query = select(AttendanceAuditEntry).where(AttendanceAuditEntry.event_id == event_id)
    if participation_id is not None:
        query = query.where(AttendanceAuditEntry.participation_id == participation_id)
    result = await db.execute(query.order_by(AttendanceAuditEntry.created_at, AttendanceAuditEntry.id))
    return list(result.scalars().all())
