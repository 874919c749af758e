import asyncio
import contextlib
from typing import AsyncIterator, Dict, Tuple


class KeyedLocks:
    """
    One asyncio.Lock per key, dropped once no task holds or waits on it.

    Entries are refcounted so a lock is never replaced while a waiter is
    still queued on it.
    """

    def __init__(self):
        self._entries: Dict[str, Tuple[asyncio.Lock, int]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def locked(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry[0].locked()

    @contextlib.asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock, refs = self._entries.get(key) or (asyncio.Lock(), 0)
        self._entries[key] = (lock, refs + 1)
        try:
            async with lock:
                yield
        finally:
            lock, refs = self._entries[key]
            if refs <= 1:
                del self._entries[key]
            else:
                self._entries[key] = (lock, refs - 1)
