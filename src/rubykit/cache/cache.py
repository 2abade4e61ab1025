"""In-memory response cache with lazy time-to-live expiry.

:class:`ResponseCache` maps string keys (see :func:`~rubykit.cache.keys.generate_key`)
to :class:`CacheEntry` records.  An entry is *fresh* while
``now - timestamp < ttl`` and *stale* afterwards.  Staleness is evaluated at
read time only: there is no background sweep, and a stale entry stays in
memory until it is read, overwritten, deleted, cleared, or purged by
:meth:`ResponseCache.cleanup`.

Every upstream call made by the clients goes through
:meth:`ResponseCache.get_or_fetch`, which returns a fresh cached value or
awaits the supplied producer and stores its result.  Failures are never
cached.

See Also:
    :class:`~rubykit.models.CacheConfig` -- the Pydantic model that
    controls ``enabled`` and ``ttl_seconds``.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar, cast

from rubykit.models import CacheConfig
from rubykit.output import get_output

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload together with its insertion time and lifetime.

    Attributes:
        data: The cached value, opaque to the cache.
        timestamp: Insertion time in seconds, as reported by the cache's clock.
        ttl: Seconds the entry stays fresh after *timestamp*.
    """

    data: Any
    timestamp: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.timestamp < self.ttl


class ResponseCache:
    """TTL cache owned by a single client.

    Holds heterogeneous payloads: each caller narrows the value it gets back
    to the type it stored under that key namespace.  All access goes
    through the methods below; entries are immutable.

    Args:
        config: ``enabled`` flag and default ``ttl_seconds``.  Defaults to
            :class:`~rubykit.models.CacheConfig` defaults (enabled, 300 s).
        clock: Callable returning the current time in seconds.  Injected by
            tests to simulate the passage of time.

    Example::

        from rubykit.cache import ResponseCache
        from rubykit.models import CacheConfig

        cache = ResponseCache(CacheConfig(ttl_seconds=60))
        cache.set("gem:rails", {"version": "7.0.0"})
        cache.get("gem:rails")      # {'version': '7.0.0'}
    """

    def __init__(self, config: Optional[CacheConfig] = None, clock: Clock = time.time) -> None:
        self._config = config or CacheConfig()
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._inflight: dict[str, asyncio.Future[Any]] = {}

    @property
    def enabled(self) -> bool:
        """Whether :meth:`get_or_fetch` reads and writes the cache."""
        return self._config.enabled

    @property
    def default_ttl(self) -> float:
        """TTL in seconds applied when :meth:`set` is called without one."""
        return self._config.ttl_seconds

    # ------------------------------------------------------------------ #
    # Store operations
    # ------------------------------------------------------------------ #

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value for *key*, or *default* on a miss.

        A stale entry counts as a miss and is removed as a side effect.

        Args:
            key: Cache key.
            default: Value returned when the key is absent or stale.

        Returns:
            The cached payload, or *default*.
        """
        entry = self._fresh_entry(key)
        if entry is None:
            return default
        return entry.data

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store *value* under *key*, replacing any existing entry.

        A zero or negative *ttl* is accepted and makes the entry stale on
        the next read.

        Args:
            key: Cache key.
            value: Payload to store.
            ttl: Lifetime in seconds; :attr:`default_ttl` when ``None``.
        """
        self._entries[key] = CacheEntry(
            data=value,
            timestamp=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )

    def has(self, key: str) -> bool:
        """Return ``True`` if *key* holds a fresh entry."""
        return self._fresh_entry(key) is not None

    def delete(self, key: str) -> bool:
        """Remove *key* whether fresh or stale.

        A fetch for *key* already in progress is detached: it still answers
        its current callers, but its result is not stored and later callers
        start a new fetch.

        Returns:
            ``True`` if an entry existed before removal.
        """
        self._inflight.pop(key, None)
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Remove all entries from the cache and detach every fetch in progress."""
        self._entries.clear()
        self._inflight.clear()

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the raw entry for *key*, fresh or stale, without side effects.

        Meant for diagnostics and tests; normal reads go through :meth:`get`.
        """
        return self._entries.get(key)

    def cleanup(self) -> int:
        """Purge every stale entry.

        Returns:
            The number of entries removed.
        """
        now = self._clock()
        stale = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``enabled`` (bool), ``size`` (physical entry
            count, stale entries included), ``keys`` (list of str) and
            ``ttl_seconds`` (the default TTL).
        """
        return {
            "enabled": self.enabled,
            "size": len(self._entries),
            "keys": list(self._entries),
            "ttl_seconds": self.default_ttl,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    # ------------------------------------------------------------------ #
    # Fetch-or-populate
    # ------------------------------------------------------------------ #

    async def get_or_fetch(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: Optional[float] = None,
        *,
        bypass: bool = False,
    ) -> T:
        """Return the fresh value for *key*, or await *producer* and cache its result.

        When another call is already awaiting a producer for the same key,
        this call waits for that outcome instead of invoking *producer*.
        If the producer raises, the exception propagates unchanged to every
        waiter, nothing is stored, and any stale entry for *key* is left as
        it was.

        Args:
            key: Cache key, usually from :func:`~rubykit.cache.keys.generate_key`.
            producer: Zero-argument coroutine function performing the upstream call.
            ttl: Lifetime of the stored result; :attr:`default_ttl` when ``None``.
            bypass: Skip the cache entirely for this call (always run the
                producer, never read or write).  Also implied when the
                cache is disabled.

        Returns:
            The cached or freshly produced value.
        """
        output = get_output()

        if bypass or not self.enabled:
            return await producer()

        # Non-purging read: a stale entry must survive a failing producer.
        entry = self._fresh_entry(key, purge=False)
        if entry is not None:
            output.debug(f"Cache hit: {key}")
            return cast(T, entry.data)

        pending = self._inflight.get(key)
        if pending is not None:
            output.debug(f"Cache wait: {key}")
            # shield: a cancelled waiter must not cancel the shared fetch
            return cast(T, await asyncio.shield(pending))

        output.debug(f"Cache miss: {key}")
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            value = await producer()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except BaseException as exc:
            future.set_exception(exc)
            # Mark retrieved so an unobserved failure is not logged by asyncio.
            future.exception()
            raise
        else:
            # A clear() or delete() during the fetch detaches it: the result
            # predates the invalidation and must not be stored.
            if self._inflight.get(key) is future:
                self.set(key, value, ttl)
            else:
                output.debug(f"Cache discard: {key}")
            future.set_result(value)
            return value
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _fresh_entry(self, key: str, purge: bool = True) -> Optional[CacheEntry]:
        """Return the entry for *key* if fresh; a stale one is deleted when *purge*."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock()):
            if purge:
                del self._entries[key]
            return None
        return entry
