"""
Admission gate factory.
Configures which admission gate strategy to use.
"""

from typing import Optional

from campusgate.core.config import get_settings
from campusgate.infrastructure.redis_client import get_redis
from campusgate.services.interfaces.gate import AdmissionGate
from campusgate.services.interfaces.optimistic_gate import OptimisticGate
from campusgate.services.redis_gate import RedisGate

_gate: Optional[AdmissionGate] = None


async def build_admission_gate() -> AdmissionGate:
    """
    Build the configured gate.

    - optimistic: no pre-check (default)
    - redis: Lua check-and-hold, falls back to optimistic when Redis is off
    """
    if get_settings().ADMISSION_STRATEGY == "redis":
        client = await get_redis()
        if client is not None:
            return RedisGate(client)
    return OptimisticGate()


async def get_admission_gate() -> AdmissionGate:
    """Admission gate singleton (FastAPI dependency)."""
    global _gate
    if _gate is None:
        _gate = await build_admission_gate()
    return _gate


def reset_admission_gate() -> None:
    global _gate
    _gate = None
