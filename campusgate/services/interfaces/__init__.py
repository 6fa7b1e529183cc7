"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .gate import AdmissionGate
from .notifier import EventAnnouncement, Notifier
from .optimistic_gate import OptimisticGate

__all__ = ['AdmissionGate', 'OptimisticGate', 'Notifier', 'EventAnnouncement']
