"""
Cache Service

Key/value stores for normalized bundles and UI state, plus the TTL gate that
decides whether a stored bundle may be served for the current filters.
A read never deletes anything: expired or mismatched entries are only
ignored, so they stay available to the degraded fallback path.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Protocol

from streamhub.config import settings
from streamhub.database import session_scope
from streamhub.services.db_service import (
    delete_cache_entries,
    delete_cache_entry,
    get_cache_entry,
    upsert_cache_entry,
)
from streamhub.services.fetch_types import NormalizedBundle, deserialize_bundle, serialize_bundle


logger = logging.getLogger(__name__)


def epoch_ms() -> int:
    return int(time.time() * 1000)


class CacheStore(Protocol):
    """Persistence collaborator. Entries are {"data": ..., "timestamp": epoch-ms}."""

    async def get(self, key: str) -> dict | None:
        ...

    async def set(self, key: str, data: Any, timestamp: int) -> None:
        ...

    async def clear(self, key: str) -> None:
        ...

    async def clear_all(self) -> None:
        ...


class MemoryCacheStore:
    """In-process store, used in tests and when no database is configured."""

    def __init__(self) -> None:
        self._entries: dict[str, dict] = {}

    async def get(self, key: str) -> dict | None:
        entry = self._entries.get(key)
        return dict(entry) if entry is not None else None

    async def set(self, key: str, data: Any, timestamp: int) -> None:
        # Round-trip through JSON so callers never share mutable state with the store
        self._entries[key] = {"data": json.loads(json.dumps(data)), "timestamp": timestamp}

    async def clear(self, key: str) -> None:
        self._entries.pop(key, None)

    async def clear_all(self) -> None:
        self._entries.clear()


class SqlCacheStore:
    """Store backed by the cache_entries table."""

    async def get(self, key: str) -> dict | None:
        async with session_scope() as session:
            entry = await get_cache_entry(session, key)
            if entry is None:
                return None
            raw, timestamp = entry.data, entry.timestamp

        try:
            return {"data": json.loads(raw), "timestamp": timestamp}
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring undecodable cache entry %s: %s", key, exc)
            return None

    async def set(self, key: str, data: Any, timestamp: int) -> None:
        async with session_scope() as session:
            await upsert_cache_entry(session, key, json.dumps(data), timestamp)

    async def clear(self, key: str) -> None:
        async with session_scope() as session:
            await delete_cache_entry(session, key)

    async def clear_all(self) -> None:
        async with session_scope() as session:
            await delete_cache_entries(session)


class TTLCacheGate:
    """
    Serves cached bundles only when they are fresh and were produced under
    the same normalization inputs (the fingerprint) as the current request.
    """

    def __init__(
        self,
        store: CacheStore,
        ttl_seconds: int | None = None,
        clock_ms: Callable[[], int] = epoch_ms,
    ) -> None:
        self.store = store
        self.ttl_ms = (ttl_seconds if ttl_seconds is not None else settings.cache_ttl_hours * 3600) * 1000
        self.clock_ms = clock_ms

    def _matching_bundle(self, entry: dict | None, key: str, fingerprint: dict) -> NormalizedBundle | None:
        if entry is None:
            return None
        data = entry.get("data")
        if not isinstance(data, dict) or data.get("fingerprint") != fingerprint:
            logger.debug("Cache entry %s was written for different filters", key)
            return None
        try:
            return deserialize_bundle(data.get("bundle") or {})
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed cached bundle %s: %s", key, exc)
            return None

    async def read(self, key: str, fingerprint: dict) -> NormalizedBundle | None:
        """
        Return the cached bundle if present, within TTL and fingerprint-matching.

        Args:
            key: Provider cache key
            fingerprint: Normalization inputs of the current request

        Returns:
            The cached bundle or None
        """
        entry = await self.store.get(key)
        if entry is None:
            return None

        age = self.clock_ms() - int(entry.get("timestamp") or 0)
        if age > self.ttl_ms:
            logger.debug("Cache entry %s expired (age %sms)", key, age)
            return None

        return self._matching_bundle(entry, key, fingerprint)

    async def read_fallback(self, key: str, fingerprint: dict) -> NormalizedBundle | None:
        """Like read, but ignores the TTL. Used only when the upstream fetch failed."""
        return self._matching_bundle(await self.store.get(key), key, fingerprint)

    async def write(self, key: str, bundle: NormalizedBundle, fingerprint: dict) -> None:
        await self.store.set(
            key,
            {"bundle": serialize_bundle(bundle), "fingerprint": fingerprint},
            self.clock_ms(),
        )

    async def invalidate(self, key: str) -> None:
        await self.store.clear(key)

    async def invalidate_all(self) -> None:
        await self.store.clear_all()
        logger.info("All cache entries purged")

    async def age_ms(self, key: str) -> int | None:
        entry = await self.store.get(key)
        if entry is None:
            return None
        return self.clock_ms() - int(entry.get("timestamp") or 0)

    async def is_fresh(self, key: str) -> bool:
        age = await self.age_ms(key)
        return age is not None and age < self.ttl_ms
