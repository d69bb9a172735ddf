"""In-process read-through caches, one homogeneous map per entity type.

A ``CacheKind`` names an entity type together with its key and value types
(the capability mapping). ``Caching`` owns one ``TypedCache`` per kind, so an
account key can never shadow a transfer key, and lookups dispatch on the kind
without inspecting values.

Entries are snapshots: values are shallow-copied on the way in and on the way
out, so a caller mutating what it got back never affects other readers. The
cache never talks to the store; it is not authoritative.
"""

import asyncio
import copy
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from src.pl_account.domain.models import Account
from src.pl_transfer.domain.models import Transfer

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class CacheKind(Generic[K, V]):
    name: str


ACCOUNTS: CacheKind[str, Account] = CacheKind("account")
TRANSFERS: CacheKind[str, Transfer] = CacheKind("transfer")


@dataclass(frozen=True)
class CacheConfig:
    max_capacity: int
    time_to_idle: float | None = None  # seconds without a read before eviction


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    evictions: int
    size: int


class TypedCache(Generic[K, V]):
    """Size-bounded LRU map with optional time-to-idle expiry.

    ``max_capacity == 0`` disables the cache (every lookup misses).
    """

    def __init__(
        self,
        name: str,
        max_capacity: int,
        time_to_idle: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_capacity < 0:
            raise ValueError("max_capacity must be >= 0")
        if time_to_idle is not None and time_to_idle <= 0:
            raise ValueError("time_to_idle must be positive or None")
        self.name = name
        self._max_capacity = max_capacity
        self._tti = time_to_idle
        self._clock = clock
        # key -> (snapshot, last read/write time); order = least recently used first
        self._entries: OrderedDict[K, tuple[V, float]] = OrderedDict()
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: K) -> V | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            value, last_access = entry
            now = self._clock()
            if self._tti is not None and now - last_access >= self._tti:
                del self._entries[key]
                self._evictions += 1
                self._misses += 1
                return None
            self._entries[key] = (value, now)
            self._entries.move_to_end(key)
            self._hits += 1
        return copy.copy(value)

    async def insert(
        self,
        key: K,
        value: V,
        *,
        replace_if: Callable[[V, V], bool] | None = None,
    ) -> None:
        """Store a snapshot of ``value`` under ``key``.

        With ``replace_if``, a live entry is only overwritten when
        ``replace_if(current, value)`` is true; otherwise the insert is a no-op.
        """
        if self._max_capacity == 0:
            return
        snapshot = copy.copy(value)
        async with self._lock:
            now = self._clock()
            current = self._entries.get(key)
            if current is not None and replace_if is not None:
                cached, last_access = current
                expired = self._tti is not None and now - last_access >= self._tti
                if not expired and not replace_if(cached, snapshot):
                    return
            self._entries[key] = (snapshot, now)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_capacity:
                self._entries.popitem(last=False)
                self._evictions += 1

    async def invalidate(self, key: K) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            size=len(self._entries),
        )


class Caching:
    """Holds one TypedCache per configured CacheKind."""

    def __init__(
        self,
        configs: Mapping[CacheKind[Any, Any], CacheConfig],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._caches: dict[CacheKind[Any, Any], TypedCache[Any, Any]] = {
            kind: TypedCache(kind.name, cfg.max_capacity, cfg.time_to_idle, clock)
            for kind, cfg in configs.items()
        }

    def get_cache(self, kind: CacheKind[K, V]) -> TypedCache[K, V]:
        try:
            return self._caches[kind]
        except KeyError:
            raise KeyError(f"No cache configured for entity type {kind.name!r}") from None

    async def lookup(self, kind: CacheKind[K, V], key: K) -> V | None:
        return await self.get_cache(kind).get(key)

    async def cache_data(
        self,
        kind: CacheKind[K, V],
        key: K,
        value: V,
        *,
        replace_if: Callable[[V, V], bool] | None = None,
    ) -> None:
        await self.get_cache(kind).insert(key, value, replace_if=replace_if)

    async def invalidate(self, kind: CacheKind[K, V], key: K) -> None:
        await self.get_cache(kind).invalidate(key)

    def stats(self) -> dict[str, CacheStats]:
        return {kind.name: cache.stats() for kind, cache in self._caches.items()}
