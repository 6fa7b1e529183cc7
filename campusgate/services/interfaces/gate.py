"""
Admission gate strategy interface.
Allows swapping the fail-fast pre-check in front of the capacity ledger
without touching the admission logic. The database ledger is always
authoritative; a gate may only reject early.
"""

from abc import ABC, abstractmethod


class AdmissionGate(ABC):
    """
    Interface for admission gate strategies.

    Implementations:
    - OptimisticGate: no pre-check, the ledger's versioned update decides
    - RedisGate: fast check-and-hold in Redis before the database
    """

    @abstractmethod
    async def admit(self, key: str, units: int = 1) -> bool:
        """
        Check whether a reservation attempt should proceed.

        Args:
            key: Ledger key (event or event variant)
            units: Units requested

        Returns:
            True if admitted (proceed to the ledger)
            False if rejected (fail fast)
        """

    @abstractmethod
    async def release(self, key: str, units: int = 1) -> None:
        """Give back units held by admit() (failed reservation, cancel, reject)."""

    @abstractmethod
    async def sync(self, key: str, capacity: int, held: int) -> None:
        """Reconcile gate state with the ledger (publish, limit increase)."""
