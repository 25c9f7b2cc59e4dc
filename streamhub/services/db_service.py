"""
Database operations for the stream aggregation service

This module contains all database CRUD operations for cache entries and
watch progress rows.
"""
import logging
from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from streamhub.models import CacheEntry, WatchProgress


logger = logging.getLogger(__name__)


async def get_cache_entry(db: AsyncSession, key: str) -> CacheEntry | None:
    result = await db.execute(select(CacheEntry).where(CacheEntry.key == key))
    return result.scalar_one_or_none()


async def upsert_cache_entry(db: AsyncSession, key: str, data: str, timestamp: int) -> None:
    """
    Store a cache entry, replacing any previous value for the key.

    Args:
        db: Database session
        key: Cache key
        data: JSON-encoded payload
        timestamp: Write time in epoch milliseconds
    """
    stmt = sqlite_insert(CacheEntry).values(key=key, data=data, timestamp=timestamp)
    stmt = stmt.on_conflict_do_update(
        index_elements=[CacheEntry.key],
        set_={"data": stmt.excluded.data, "timestamp": stmt.excluded.timestamp},
    )
    await db.execute(stmt)
    logger.debug("Stored cache entry %s (%s bytes)", key, len(data))


async def delete_cache_entry(db: AsyncSession, key: str) -> int:
    result = await db.execute(delete(CacheEntry).where(CacheEntry.key == key))
    return result.rowcount or 0


async def delete_cache_entries(db: AsyncSession, keys: Sequence[str] | None = None) -> int:
    """
    Delete cache entries.

    Args:
        db: Database session
        keys: Keys to delete; None deletes every entry

    Returns:
        Number of deleted entries
    """
    stmt = delete(CacheEntry)
    if keys is not None:
        stmt = stmt.where(CacheEntry.key.in_(list(keys)))
    result = await db.execute(stmt)
    deleted = result.rowcount or 0
    logger.info("Deleted %s cache entries", deleted)
    return deleted


async def upsert_watch_progress(db: AsyncSession, row: WatchProgress) -> None:
    await db.merge(row)


async def get_watch_progress(db: AsyncSession, key: str) -> WatchProgress | None:
    return await db.get(WatchProgress, key)


async def delete_watch_progress(db: AsyncSession, key: str) -> int:
    result = await db.execute(delete(WatchProgress).where(WatchProgress.key == key))
    return result.rowcount or 0


async def delete_series_progress(db: AsyncSession, tmdb_id: int, *, keep_key: str | None = None) -> int:
    """Delete every episode row of a series, optionally sparing one key."""
    stmt = delete(WatchProgress).where(
        WatchProgress.media_type == "tv",
        WatchProgress.tmdb_id == tmdb_id,
    )
    if keep_key is not None:
        stmt = stmt.where(WatchProgress.key != keep_key)
    result = await db.execute(stmt)
    return result.rowcount or 0


async def list_series_progress(db: AsyncSession, tmdb_id: int) -> list[WatchProgress]:
    result = await db.execute(
        select(WatchProgress)
        .where(WatchProgress.media_type == "tv", WatchProgress.tmdb_id == tmdb_id)
        .order_by(WatchProgress.timestamp.desc())
    )
    return list(result.scalars().all())


async def list_unfinished_progress(db: AsyncSession) -> list[WatchProgress]:
    """Rows below 100% progress, newest first."""
    result = await db.execute(
        select(WatchProgress)
        .where(WatchProgress.progress < 100)
        .order_by(WatchProgress.timestamp.desc())
    )
    return list(result.scalars().all())
