"""
Per-URL serialization.

Ingestion and crawling of the same registration URL must never overlap,
or a late writer could overwrite a newer registration. Both pipelines
share one RegistrationLocks instance and hold the URL's lock for the
whole read-validate-store sequence. Different URLs proceed concurrently.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator


class RegistrationLocks:
    """One asyncio.Lock per registration URL, dropped once nobody holds or awaits it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._users: dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, url: str) -> AsyncIterator[None]:
        """Hold the lock for ``url`` for the duration of the block."""
        self._users[url] += 1
        lock = self._locks[url]
        try:
            async with lock:
                yield
        finally:
            self._users[url] -= 1
            if self._users[url] == 0:
                del self._users[url]
                del self._locks[url]

    def is_locked(self, url: str) -> bool:
        lock = self._locks.get(url)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
