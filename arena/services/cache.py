"""
Short-lived memoization for expensive reads.

Entries store the in-flight task, not the finished value, so concurrent
callers asking for the same key during a load share one backing-store read.
A failed load is evicted so the next caller retries.

Caches are per instance. Readers in another process may see data up to the
TTL stale after a write here.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from arena.config import Config
from arena.utils.logger import setup_logger

logger = setup_logger(__name__)


class TTLCache:
    """TTL-based cache of awaitable loads keyed by string."""

    def __init__(self, default_ttl: Optional[float] = None):
        self.default_ttl = Config.CACHE_TTL_SECONDS if default_ttl is None else default_ttl
        self._entries: Dict[str, Tuple[float, asyncio.Future]] = {}  # key -> (expires_at, task)

    async def cached(self, key: str, loader: Callable[[], Awaitable[Any]], ttl: Optional[float] = None) -> Any:
        """Return the value for `key`, calling `loader` only on a miss."""
        now = time.monotonic()
        entry = self._entries.get(key)
        if entry is not None:
            expires_at, task = entry
            if now < expires_at:
                logger.debug(f"Cache hit for '{key}'")
                # Shield so one cancelled waiter does not cancel the shared load
                return await asyncio.shield(task)
            self._entries.pop(key, None)

        logger.debug(f"Cache miss for '{key}', loading")
        ttl = self.default_ttl if ttl is None else ttl
        task = asyncio.ensure_future(loader())
        self._entries[key] = (now + ttl, task)
        task.add_done_callback(lambda done, k=key: self._evict_failed(k, done))
        return await asyncio.shield(task)

    def _evict_failed(self, key: str, task: asyncio.Future):
        if task.cancelled() or task.exception() is not None:
            entry = self._entries.get(key)
            if entry is not None and entry[1] is task:
                self._entries.pop(key, None)
                logger.debug(f"Evicted failed load for '{key}'")

    def invalidate(self, *keys: str):
        """Drop the given keys."""
        for key in keys:
            if self._entries.pop(key, None) is not None:
                logger.debug(f"Invalidated cache key '{key}'")

    def invalidate_all(self):
        """Clear the entire cache."""
        logger.debug("Clearing entire cache")
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and time.monotonic() < entry[0]

    def __len__(self):
        return len(self._entries)
