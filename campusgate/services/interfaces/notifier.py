"""
Outbound notifier interface (external collaborator).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class EventAnnouncement:
    organizer_name: str
    event_name: str
    event_type: str
    reg_deadline: datetime
    start_date: datetime
    end_date: datetime

    def content(self) -> str:
        return "\n".join([
            f"new event published by {self.organizer_name}",
            f"event: {self.event_name}",
            f"type: {self.event_type}",
            f"registration deadline: {self.reg_deadline.isoformat()}",
            f"starts: {self.start_date.isoformat()}",
            f"ends: {self.end_date.isoformat()}",
        ])


class Notifier(ABC):
    @abstractmethod
    async def send(self, announcement: EventAnnouncement) -> None:
        """Deliver one announcement. May raise; callers treat delivery as best-effort."""
