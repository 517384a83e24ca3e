"""
In-memory TTL cache with single-flight refresh.

One ``TTLCache`` instance backs one cache tier (raw NCBI responses, research
digests, guidelines...). Entries are replaced wholesale and only on success; a
stale entry is never served but stays in place until a refresh succeeds.

Concurrent misses for the same key share one in-flight task: the first caller
starts the computation, later callers await the same task (or get
``RefreshInProgressError`` when they asked not to wait). Callers that stop
waiting do not cancel the run.
"""

import asyncio
import hashlib
import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from anesthesia_hub.constants import RESEARCH_CACHE_TTL

logger = logging.getLogger(__name__)


def cache_key(namespace: str, params: dict[str, Any]) -> str:
    """Return a deterministic hex digest for the given namespace and params."""
    raw = json.dumps({"ns": namespace, **params}, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()


class RefreshInProgressError(Exception):
    """A refresh for this key is already running; retry shortly."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Refresh already in progress for '{key}'; try again shortly")


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    cached_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.cached_at < self.ttl


class TTLCache:
    """Keyed cache where each entry expires ``ttl`` seconds after it was written."""

    def __init__(
        self,
        name: str = "cache",
        ttl: float = RESEARCH_CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._entries)

    # -- Plain access ----------------------------------------------------------

    def peek(self, key: str) -> CacheEntry | None:
        """Return the raw entry (fresh or stale) without any freshness check."""
        return self._entries.get(key)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value if present and fresh, otherwise ``default``."""
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Cache miss [%s] %s", self.name, key)
            return default
        if not entry.is_fresh(self._clock()):
            logger.debug("Cache stale [%s] %s", self.name, key)
            return default
        logger.debug("Cache hit [%s] %s", self.name, key)
        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        self._entries[key] = CacheEntry(
            value=value,
            cached_at=self._clock(),
            ttl=ttl if ttl is not None else self.ttl,
        )

    def invalidate(self, key: str) -> bool:
        """Drop one entry ahead of expiry. Returns True if an entry was removed."""
        removed = self._entries.pop(key, None) is not None
        logger.info("Invalidated [%s] %s (removed=%s)", self.name, key, removed)
        return removed

    def clear(self) -> None:
        self._entries.clear()

    def in_flight(self, key: str) -> bool:
        return key in self._in_flight

    # -- Single-flight ---------------------------------------------------------

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        *,
        ttl: float | None = None,
        wait: bool = True,
    ) -> Any:
        """Return the fresh cached value, or run ``compute`` once and cache its result.

        Raises ``RefreshInProgressError`` when ``wait`` is False and another caller
        is already computing this key. Exceptions from ``compute`` propagate to every
        waiting caller and leave any previous entry untouched.
        """
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self._clock()):
            logger.debug("Cache hit [%s] %s", self.name, key)
            return entry.value

        task = self._in_flight.get(key)
        if task is None:
            logger.info("Cache refresh [%s] %s", self.name, key)
            task = asyncio.ensure_future(self._run(key, compute, ttl))
            self._in_flight[key] = task
            task.add_done_callback(lambda t: self._finish(key, t))
        elif not wait:
            raise RefreshInProgressError(key)
        else:
            logger.debug("Joining in-flight refresh [%s] %s", self.name, key)

        return await asyncio.shield(task)

    async def _run(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        ttl: float | None,
    ) -> Any:
        value = await compute()
        self.set(key, value, ttl)
        return value

    def _finish(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Cache refresh failed [%s] %s: %s", self.name, key, exc)
