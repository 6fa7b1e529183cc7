"""
Optimistic gate - no pre-check.
Relies entirely on the versioned ledger update.
"""

from campusgate.services.interfaces.gate import AdmissionGate


class OptimisticGate(AdmissionGate):
    """
    Always admit; the ledger's check-and-increment handles contention.

    Use when:
    - Normal load, a few hundred participants per event
    - Simplicity preferred over fail-fast
    """

    async def admit(self, key: str, units: int = 1) -> bool:
        return True

    async def release(self, key: str, units: int = 1) -> None:
        pass

    async def sync(self, key: str, capacity: int, held: int) -> None:
        pass
