"""
Reference data cache.

Lookup lists (address types, contact titles, ...) rarely change, so a
client fetches each one at most once and keeps it for its lifetime.
Concurrent callers asking for the same list while it is being fetched
share the one in-flight request instead of issuing their own.
"""

import asyncio
import threading
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class SlotState(str, Enum):
    EMPTY = "empty"
    PENDING = "pending"
    RESOLVED = "resolved"


@dataclass
class CacheSlot:
    """
    One cache slot: either a fetch in flight or its result, never both.
    """
    state: SlotState
    task: asyncio.Task | None = None
    value: Any = None


class ReferenceCache:
    """
    Fetch-once cache for a fixed set of lookup types.

    - Types outside the whitelist always go to the network
    - At most one fetch per type is in flight at any time
    - Failed fetches are not cached; the next call retries
    - Resolved values are never evicted

    Example:
        cache = ReferenceCache({"addresstypes"})
        types = await cache.get_or_load("addresstypes", lambda: fetch("addresstypes"))
    """

    def __init__(self, cacheable: Iterable[str]):
        self.cacheable = frozenset(cacheable)

        self._slots: dict[str, CacheSlot] = {}
        self._lock = threading.Lock()

        # Statistics
        self._hits = 0
        self._misses = 0
        self._joins = 0

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return the cached value for ``key``, loading it on first use.

        Args:
            key: Lookup type name
            loader: Coroutine factory performing the network fetch

        Returns:
            The cached or freshly loaded value
        """
        if key not in self.cacheable:
            return await loader()

        # Check-and-insert happens without yielding to the event loop
        with self._lock:
            slot = self._slots.get(key)

            if slot is not None and slot.state is SlotState.RESOLVED:
                self._hits += 1
                return slot.value

            if slot is not None and slot.state is SlotState.PENDING:
                self._joins += 1
                task = slot.task
            else:
                self._misses += 1
                task = asyncio.ensure_future(loader())
                self._slots[key] = CacheSlot(state=SlotState.PENDING, task=task)
                task.add_done_callback(lambda t: self._settle(key, t))
                logger.debug("Fetching reference list", type=key)

        # A cancelled caller must not cancel the fetch other callers share
        return await asyncio.shield(task)

    def _settle(self, key: str, task: asyncio.Future) -> None:
        with self._lock:
            slot = self._slots.get(key)
            if slot is None or slot.task is not task:
                return

            if task.cancelled() or task.exception() is not None:
                del self._slots[key]
                logger.debug("Reference list fetch failed, slot cleared", type=key)
                return

            self._slots[key] = CacheSlot(state=SlotState.RESOLVED, value=task.result())

    def state(self, key: str) -> SlotState:
        slot = self._slots.get(key)
        return slot.state if slot is not None else SlotState.EMPTY

    def clear(self) -> None:
        """Drop every resolved value. In-flight fetches are left to finish."""
        with self._lock:
            self._slots = {
                key: slot for key, slot in self._slots.items()
                if slot.state is SlotState.PENDING
            }

    def __contains__(self, key: str) -> bool:
        return self.state(key) is SlotState.RESOLVED

    def __len__(self) -> int:
        return len(self._slots)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics for monitoring."""
        total = self._hits + self._misses + self._joins
        hit_rate = (self._hits + self._joins) / total if total > 0 else 0.0

        return {
            "size": len(self._slots),
            "cacheable_types": len(self.cacheable),
            "hits": self._hits,
            "misses": self._misses,
            "joins": self._joins,
            "hit_rate": round(hit_rate, 4),
        }
