"""
Attendance and its append-only audit trail.

Attendance rows are created lazily on the first mark, one per participation.
AttendanceAuditEntry rows are written once per actual state change and are
never updated or deleted.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Index, Integer, String

from campusgate.db.base import Base, UTCDateTime, utcnow

SCANNER_ACTOR = "scanner"


class Attendance(Base):
    __tablename__ = "attendance"

    id = Column(Integer, primary_key=True, index=True)
    participation_id = Column(Integer, ForeignKey("participations.id"), nullable=False, unique=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    is_present = Column(Boolean, nullable=False, default=False)
    marked_at = Column(UTCDateTime(), nullable=True)

    def __repr__(self) -> str:
        return f"<Attendance(participation={self.participation_id}, present={self.is_present})>"


class AttendanceAuditEntry(Base):
    __tablename__ = "attendance_audit"

    id = Column(Integer, primary_key=True, index=True)
    participation_id = Column(Integer, ForeignKey("participations.id"), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    actor = Column(String(40), nullable=False)  # "scanner" or "organizer:<id>"
    action = Column(String(30), nullable=False)
    reason = Column(String(500), nullable=True)
    previous_state = Column(Boolean, nullable=False)
    next_state = Column(Boolean, nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "action IN ('scan_mark_present', 'manual_mark_present', 'manual_mark_absent')",
            name="check_audit_action",
        ),
        Index("ix_attendance_audit_participation", "participation_id", "created_at"),
        Index("ix_attendance_audit_event", "event_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AttendanceAuditEntry(participation={self.participation_id}, action={self.action})>"
