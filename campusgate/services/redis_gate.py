"""
Redis admission gate for high-contention events.
Implements AdmissionGate using an atomic Lua check-and-hold.

Circuit Breaker Pattern:
  On Redis failure the gate "fails open" (admits the request).
  The capacity ledger in the database remains authoritative, so a Redis
  outage degrades to plain optimistic locking instead of blocking
  registrations.
"""

from pathlib import Path
from typing import Optional

import redis.asyncio as redis

from campusgate.core.logging import get_logger
from campusgate.core.metrics import redis_circuit_breaker_open, redis_connection_errors
from campusgate.services.interfaces.gate import AdmissionGate

logger = get_logger(__name__)

SCRIPT_PATH = Path(__file__).resolve().parent.parent / "infrastructure" / "admission_gate.lua"
ADMISSION_SCRIPT = SCRIPT_PATH.read_text()


def _capacity_key(key: str) -> str:
    return f"gate:capacity:{key}"


def _held_key(key: str) -> str:
    return f"gate:held:{key}"


class RedisGate(AdmissionGate):
    """
    Fail fast at the Redis gate before touching the ledger rows.

    Use when:
    - Flash sales / hundreds of participants racing for a few slots
    - The database needs protection from retry storms
    """

    def __init__(self, client: Optional[redis.Redis]):
        self.redis = client
        self.script = client.register_script(ADMISSION_SCRIPT) if client is not None else None

    def _trip(self, operation: str, error: Exception) -> None:
        redis_connection_errors.inc()
        redis_circuit_breaker_open.set(1)
        logger.warning("admission_gate_unavailable", operation=operation, error=str(error))

    async def admit(self, key: str, units: int = 1) -> bool:
        if self.script is None:
            return True
        try:
            result = await self.script(keys=[_capacity_key(key), _held_key(key)], args=[units])
        except Exception as e:
            self._trip("admit", e)
            return True
        redis_circuit_breaker_open.set(0)
        return bool(result)

    async def release(self, key: str, units: int = 1) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.decrby(_held_key(key), units)
        except Exception as e:
            self._trip("release", e)

    async def sync(self, key: str, capacity: int, held: int) -> None:
        if self.redis is None:
            return
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(_capacity_key(key), capacity)
                pipe.set(_held_key(key), held)
                await pipe.execute()
        except Exception as e:
            self._trip("sync", e)
