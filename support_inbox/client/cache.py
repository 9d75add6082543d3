# support_inbox/client/cache.py
"""
Client-side query cache.

Entries are keyed by tuples such as ``("ticket", 7)`` or
``("tickets", (("page", 1), ("status", "open")))``. A key prefix like
``("tickets",)`` addresses every list view at once.

Each entry remembers the fetcher that filled it (or the one handed to `set`),
so invalidating a prefix can re-run those reads. In-flight reads are tracked per key: concurrent readers of
one key share a single request, and ``cancel`` aborts them without letting a
late response write into the cache.
"""

import asyncio
import copy
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

CacheKey = tuple
Fetcher = Callable[[], Awaitable[Any]]


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


@dataclass
class CacheEntry:
    data: Any = MISSING
    error: Exception | None = None
    stale: bool = False
    fetcher: Fetcher | None = field(default=None, repr=False)

    @property
    def has_data(self) -> bool:
        return self.data is not MISSING


def matches(key: CacheKey, prefix: CacheKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryCache:
    def __init__(self):
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._inflight: dict[CacheKey, asyncio.Task] = {}

    def entry(self, key: CacheKey) -> CacheEntry | None:
        return self._entries.get(key)

    def get(self, key: CacheKey, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None or not entry.has_data:
            return default
        return entry.data

    def set(self, key: CacheKey, data: Any, fetcher: Fetcher | None = None) -> None:
        entry = self._entries.setdefault(key, CacheEntry())
        if fetcher is not None:
            entry.fetcher = fetcher
        entry.data = data
        entry.error = None
        entry.stale = False

    def keys(self, prefix: CacheKey = ()) -> list[CacheKey]:
        return [key for key in self._entries if matches(key, prefix)]

    def entries(self, prefix: CacheKey = ()) -> list[tuple[CacheKey, Any]]:
        """(key, data) for every entry under prefix that currently holds data."""
        return [
            (key, entry.data)
            for key, entry in self._entries.items()
            if matches(key, prefix) and entry.has_data
        ]

    def snapshot(self, keys: Iterable[CacheKey]) -> dict[CacheKey, Any]:
        """Deep copies of the current values, MISSING for keys without data."""
        taken = {}
        for key in keys:
            entry = self._entries.get(key)
            taken[key] = copy.deepcopy(entry.data) if entry and entry.has_data else MISSING
        return taken

    def restore(self, snapshot: dict[CacheKey, Any]) -> None:
        for key, data in snapshot.items():
            if data is MISSING:
                entry = self._entries.get(key)
                if entry is not None:
                    entry.data = MISSING
            else:
                self.set(key, copy.deepcopy(data))

    def is_fetching(self, key: CacheKey) -> bool:
        task = self._inflight.get(key)
        return task is not None and not task.done()

    async def cancel(self, prefix: CacheKey) -> None:
        """Abort in-flight reads under prefix and wait until they are gone."""
        while True:
            tasks = [
                task
                for key, task in self._inflight.items()
                if matches(key, prefix) and not task.done()
            ]
            if not tasks:
                return
            for task in tasks:
                task.cancel()
            await asyncio.wait(tasks)

    async def fetch(
        self, key: CacheKey, fetcher: Fetcher | None = None, force: bool = False
    ) -> Any:
        """Read key through fetcher (or the one registered earlier) and cache the result.

        If the read is cancelled, the currently cached value is returned instead.
        A failed read leaves the previous data in place, records the error on
        the entry, and re-raises it. With force, a read already in flight for
        key is cancelled and replaced instead of joined.
        """
        entry = self._entries.setdefault(key, CacheEntry())
        if fetcher is not None:
            entry.fetcher = fetcher
        if entry.fetcher is None:
            raise KeyError(f"no fetcher registered for {key!r}")

        task = self._inflight.get(key)
        if force and task is not None and not task.done():
            task.cancel()
            task = None
        if task is None or task.done():
            task = asyncio.ensure_future(self._run_fetch(key, entry.fetcher))
            self._inflight[key] = task

        await asyncio.wait({task})
        if task.cancelled():
            return self.get(key)
        return task.result()

    async def _run_fetch(self, key: CacheKey, fetcher: Fetcher) -> Any:
        try:
            data = await fetcher()
        except asyncio.CancelledError:
            logger.debug("cache_fetch_cancelled", key=key)
            raise
        except Exception as exc:
            self._entries.setdefault(key, CacheEntry()).error = exc
            logger.info("cache_fetch_failed", key=key, error=str(exc))
            raise
        else:
            self.set(key, data)
            return data
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    async def refetch(self, key: CacheKey) -> None:
        # failures stay recorded on the entry next to the old data
        try:
            await self.fetch(key, force=True)
        except Exception:
            logger.info("cache_refetch_failed", key=key)

    def invalidate(self, prefix: CacheKey) -> list[asyncio.Task]:
        """Mark entries under prefix stale and start a refetch for those with a fetcher."""
        tasks = []
        for key in self.keys(prefix):
            entry = self._entries[key]
            entry.stale = True
            if entry.fetcher is not None:
                tasks.append(asyncio.ensure_future(self.refetch(key)))
        return tasks
