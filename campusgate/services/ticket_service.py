"""
Ticket issuance.

A ticket is minted once per confirmed participation. Its QR payload is a
signed JWT carrying the ticket, event, participation and user ids, so a
scanner can resolve the participation from the payload alone and a forged
or torn payload fails verification instead of matching the wrong record.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campusgate.core.config import get_settings
from campusgate.core.errors import ErrorCode, NotFoundError, PreconditionError
from campusgate.core.logging import get_logger
from campusgate.core.metrics import tickets_issued
from campusgate.db.base import utcnow
from campusgate.models.participation import Participation
from campusgate.models.ticket import Ticket

logger = get_logger(__name__)

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


@dataclass(frozen=True)
class TicketClaims:
    ticket_id: str
    event_id: int
    participation_id: int
    user_id: int


def _base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def generate_ticket_id(now: datetime) -> str:
    time_part = _base36(int(now.timestamp() * 1000))
    return f"TKT-{time_part}-{secrets.token_hex(4).upper()}"


def build_qr_payload(
    ticket_id: str,
    event_id: int,
    participation_id: int,
    user_id: int,
    issued_at: datetime,
) -> str:
    settings = get_settings()
    claims = {
        "ticket_id": ticket_id,
        "event_id": event_id,
        "participation_id": participation_id,
        "user_id": user_id,
        "issued_at": issued_at.isoformat(),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_qr_payload(payload: str) -> TicketClaims:
    """Verify a QR payload. Unverifiable input resolves to nothing."""
    settings = get_settings()
    try:
        claims = jwt.decode(
            payload,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"require": ["ticket_id", "event_id", "participation_id", "user_id"]},
        )
        return TicketClaims(
            ticket_id=str(claims["ticket_id"]),
            event_id=int(claims["event_id"]),
            participation_id=int(claims["participation_id"]),
            user_id=int(claims["user_id"]),
        )
    except (jwt.PyJWTError, TypeError, ValueError):
        logger.warning("ticket_payload_rejected")
        raise NotFoundError("Ticket not found") from None


def looks_like_payload(value: str) -> bool:
    return value.count(".") == 2


async def get_ticket(db: AsyncSession, ticket_id: str) -> Ticket:
    ticket = await db.get(Ticket, ticket_id)
    if not ticket:
        raise NotFoundError("Ticket not found")
    return ticket


async def find_ticket_for(db: AsyncSession, participation_id: int) -> Optional[Ticket]:
    result = await db.execute(select(Ticket).where(Ticket.participation_id == participation_id))
    return result.scalar_one_or_none()


async def mint_ticket(db: AsyncSession, participation: Participation, now: Optional[datetime] = None) -> Ticket:
    """Create the ticket inside the caller's transaction (no commit)."""
    issued_at = now or utcnow()
    ticket_id = generate_ticket_id(issued_at)
    ticket = Ticket(
        id=ticket_id,
        participation_id=participation.id,
        event_id=participation.event_id,
        participant_id=participation.participant_id,
        event_type=participation.event_type,
        qr_payload=build_qr_payload(
            ticket_id,
            participation.event_id,
            participation.id,
            participation.participant_id,
            issued_at,
        ),
        issued_at=issued_at,
    )
    db.add(ticket)
    participation.ticket_id = ticket_id
    await db.flush()
    tickets_issued.inc()
    logger.info("ticket_issued", ticket_id=ticket_id, participation_id=participation.id)
    return ticket


async def issue_ticket(db: AsyncSession, participation_id: int, now: Optional[datetime] = None) -> Ticket:
    """Idempotent issuance: returns the existing ticket if there is one."""
    existing = await find_ticket_for(db, participation_id)
    if existing:
        return existing

    participation = await db.get(Participation, participation_id)
    if not participation:
        raise NotFoundError("Participation not found")
    if participation.status != "confirmed":
        raise PreconditionError(
            "Tickets are only issued for confirmed participations",
            code=ErrorCode.PARTICIPATION_NOT_ACTIVE,
        )

    try:
        ticket = await mint_ticket(db, participation, now)
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent issuer; theirs is the ticket.
        await db.rollback()
        existing = await find_ticket_for(db, participation_id)
        if existing is None:
            raise
        return existing
    return ticket
