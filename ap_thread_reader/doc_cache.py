from __future__ import annotations

import asyncio
import functools
import time
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Any, Awaitable, Callable, Sequence

from cachetools import TLRUCache

ClockFn = Callable[[], float]

_THIRTY_DAYS = 30 * 24 * 60 * 60


@dataclass(frozen=True)
class CacheRule:
    pattern: str
    ttl_seconds: float

    def matches(self, url: str) -> bool:
        return fnmatchcase(url, self.pattern)


def default_cache_rules(
    *,
    context_ttl_seconds: float = _THIRTY_DAYS,
    object_ttl_seconds: float = 300,
) -> tuple[CacheRule, ...]:
    # JSON-LD contexts barely change; ActivityPub objects do.
    return (
        CacheRule("https://www.w3.org/*", context_ttl_seconds),
        CacheRule("https://w3id.org/*", context_ttl_seconds),
        CacheRule("*://*/*", object_ttl_seconds),
    )


class DocumentCache:
    """
    In-memory TTL cache for fetched JSON documents.

    The first matching rule decides the TTL; URLs matching no rule are not
    cached. Concurrent `get_or_fetch` calls for the same URL share a single
    in-flight fetch, which settles into the cache even if every waiter was
    cancelled. Failed fetches are never cached.
    """

    def __init__(
        self,
        rules: Sequence[CacheRule] | None = None,
        *,
        max_entries: int = 2048,
        clock: ClockFn | None = None,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._rules = tuple(rules) if rules is not None else default_cache_rules()
        self._store: TLRUCache[str, Any] = TLRUCache(
            maxsize=int(max_entries),
            ttu=self._expires_at,
            timer=clock or time.monotonic,
        )
        self._in_flight: dict[str, asyncio.Future[Any]] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        self._store.expire()
        return len(self._store)

    def _expires_at(self, url: str, value: Any, now: float) -> float:
        return now + (self.ttl_for(url) or 0.0)

    def ttl_for(self, url: str) -> float | None:
        for rule in self._rules:
            if rule.matches(url):
                return rule.ttl_seconds
        return None

    def get(self, url: str) -> Any | None:
        return self._store.get(url)

    def put(self, url: str, value: Any) -> None:
        ttl = self.ttl_for(url)
        if ttl is None or ttl <= 0:
            return
        self._store[url] = value

    def clear(self) -> None:
        self._store.clear()

    def _settle(self, url: str, task: asyncio.Future[Any]) -> None:
        if self._in_flight.get(url) is task:
            del self._in_flight[url]
        if task.cancelled() or task.exception() is not None:
            return
        value = task.result()
        if value is not None:
            self.put(url, value)

    async def get_or_fetch(self, url: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        cached = self.get(url)
        if cached is not None:
            self.hits += 1
            return cached

        pending = self._in_flight.get(url)
        if pending is not None:
            self.hits += 1
            return await asyncio.shield(pending)

        self.misses += 1
        task = asyncio.ensure_future(fetch())
        self._in_flight[url] = task
        # Registered before shield() so the cache is filled before any waiter resumes.
        task.add_done_callback(functools.partial(self._settle, url))
        return await asyncio.shield(task)
