# backend/kisanvaani/utils/cache.py
import asyncio
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


# -----------------------------
# In-memory time-expiring cache for upstream payloads
# -----------------------------
class ExternalDataCache:
    """
    Process-local cache keyed by request signature.

    Entries are stored with the time they were fetched; anything older than
    ``ttl`` seconds is treated as absent. ``get_or_fetch`` runs the fetch
    function on a miss and stores whatever it resolves to; a fetch that raises
    stores nothing. Concurrent misses on the same key await one shared fetch.
    """

    def __init__(self, ttl: int = 1800, clock: Callable[[], float] = time.time):
        # _data: key -> (value, fetched_at)
        self._data: dict[str, tuple[Any, float]] = {}
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._inflight: dict[str, asyncio.Future] = {}

    @property
    def ttl(self) -> int:
        return self._ttl

    def _now(self) -> float:
        return self._clock()

    def _fresh(self, fetched_at: float, now: float) -> bool:
        return now - fetched_at < self._ttl

    def get(self, key: str, default: Any = None) -> Any:
        now = self._now()
        with self._lock:
            item = self._data.get(key)
            if not item:
                return default
            value, fetched_at = item
            if not self._fresh(fetched_at, now):
                # expired → drop
                self._data.pop(key, None)
                return default
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = (value, self._now())

    async def get_or_fetch(self, key: str, fetch_fn: Callable[[], Awaitable[T]]) -> T:
        hit = self.get(key)
        if hit is not None:
            logger.debug("📦 Cache hit for: %s", key)
            return hit

        pending = self._inflight.get(key)
        if pending is not None:
            logger.debug("⏳ Joining in-flight fetch for: %s", key)
            return await asyncio.shield(pending)

        fut = asyncio.get_running_loop().create_future()
        self._inflight[key] = fut
        try:
            value = await fetch_fn()
        except Exception as e:
            fut.set_exception(e)
            # waiters re-raise; mark retrieved so an unobserved failure is not logged
            fut.exception()
            raise
        except BaseException:
            fut.cancel()
            raise
        else:
            self.set(key, value)
            fut.set_result(value)
            return value
        finally:
            self._inflight.pop(key, None)

    def clear(self) -> int:
        """Remove every entry regardless of age; returns count removed."""
        with self._lock:
            n = len(self._data)
            self._data.clear()
        logger.info("🗑️ API cache cleared (%d entries)", n)
        return n

    def keys(self) -> Iterable[str]:
        with self._lock:
            return list(self._data.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def sweep(self) -> int:
        """Remove expired keys proactively; returns count removed."""
        now = self._now()
        removed = 0
        with self._lock:
            for k in list(self._data.keys()):
                _, fetched_at = self._data[k]
                if not self._fresh(fetched_at, now):
                    self._data.pop(k, None)
                    removed += 1
        return removed


async def run_sweeper(cache: ExternalDataCache, every_sec: int = 3600):
    """Background task: periodically drop expired entries."""
    while True:
        await asyncio.sleep(every_sec)
        try:
            n = cache.sweep()
            if n:
                logger.info("🧹 Cache sweep removed %d expired keys", n)
        except Exception:
            logger.exception("Cache sweep error")
