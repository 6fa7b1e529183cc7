"""
In-process keyed locks.

One ``asyncio.Lock`` per ledger key (``event:<id>``) so that admissions for
the same event run their check-and-reserve one at a time inside a worker.
Locks are held in a weak dictionary and disappear once nobody awaits them.
Cross-process safety comes from the versioned ledger rows, not from here.
"""

import asyncio
import weakref


class KeyedLock:
    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def __call__(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


ledger_locks = KeyedLock()


def event_key(event_id: int) -> str:
    return f"event:{event_id}"


def variant_key(event_id: int, sku: str) -> str:
    return f"event:{event_id}:sku:{sku}"
