"""
User profile: organizers own events, participants register for them.

Authentication lives outside this service; only the fields the admission
engine reads are kept (role, participant_type for eligibility, name for
announcements).
"""

from sqlalchemy import CheckConstraint, Column, Integer, String

from campusgate.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(160), nullable=False)
    role = Column(String(20), nullable=False, default="participant")  # participant, organizer, admin
    participant_type = Column(String(40), nullable=True)  # iiit, non-iiit

    __table_args__ = (
        CheckConstraint("role IN ('participant', 'organizer', 'admin')", name="check_user_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
