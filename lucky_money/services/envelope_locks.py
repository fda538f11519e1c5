"""Envelope Locks — per-token asyncio locks that serialize claims on one envelope.

Invariants:
    - Two holders of the same token never run concurrently
    - Different tokens never share a lock
    - An entry exists only while some task holds or waits for it

Design Decisions:
    - Module-level registry: single event loop per process, so dict updates
      between awaits are atomic. Cross-process safety comes from the
      compare-and-set in storage, not from this lock
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator


class EnvelopeLocks:
    """Reference-counted registry of asyncio.Lock keyed by envelope token."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, token: str) -> AsyncGenerator[None, None]:
        lock = self._locks.get(token)
        if lock is None:
            lock = self._locks[token] = asyncio.Lock()
        self._holders[token] = self._holders.get(token, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[token] -= 1
            if self._holders[token] == 0:
                del self._holders[token]
                del self._locks[token]

    def __len__(self) -> int:
        return len(self._locks)


envelope_locks = EnvelopeLocks()
