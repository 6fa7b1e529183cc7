from campusgate.models.user import User
from campusgate.models.event import Event
from campusgate.models.ledger import CapacityLedger, StockLedger
from campusgate.models.participation import Participation
from campusgate.models.ticket import Ticket
from campusgate.models.payment import Payment
from campusgate.models.attendance import Attendance, AttendanceAuditEntry

__all__ = [
    "User", "Event", "CapacityLedger", "StockLedger", "Participation",
    "Ticket", "Payment", "Attendance", "AttendanceAuditEntry",
]
