"""
Watch progress tracking

Stores playback position per movie and per TV episode. A series keeps a
single episode row: saving progress for one episode removes the others.
"""
import logging
from typing import Callable

from streamhub.database import session_scope
from streamhub.models import WatchProgress
from streamhub.services.cache_service import epoch_ms
from streamhub.services.db_service import (
    delete_series_progress,
    delete_watch_progress,
    get_watch_progress,
    list_series_progress,
    list_unfinished_progress,
    upsert_watch_progress,
)


logger = logging.getLogger(__name__)


def movie_key(tmdb_id: int) -> str:
    return f"movie_{tmdb_id}"


def tv_key(tmdb_id: int, season: int, episode: int) -> str:
    return f"tv_{tmdb_id}_s{season}_e{episode}"


def _percent(current_time: float, duration: float) -> float:
    return (current_time / duration) * 100 if duration > 0 else 0.0


def progress_to_dict(row: WatchProgress) -> dict:
    payload = {
        "tmdb_id": row.tmdb_id,
        "type": row.media_type,
        "current_time": row.current_time,
        "duration": row.duration,
        "progress": row.progress,
        "timestamp": row.timestamp,
    }
    if row.media_type == "tv":
        payload["season"] = row.season
        payload["episode"] = row.episode
    return payload


class WatchProgressService:
    def __init__(self, clock_ms: Callable[[], int] = epoch_ms) -> None:
        self.clock_ms = clock_ms

    async def save_movie_progress(self, tmdb_id: int, current_time: float, duration: float) -> dict:
        """
        Save movie watch progress.

        Args:
            tmdb_id: TMDB movie ID
            current_time: Playback position in seconds
            duration: Total duration in seconds

        Returns:
            The stored progress record
        """
        row = WatchProgress(
            key=movie_key(tmdb_id),
            media_type="movie",
            tmdb_id=tmdb_id,
            season=None,
            episode=None,
            current_time=round(current_time),
            duration=round(duration),
            progress=_percent(current_time, duration),
            timestamp=self.clock_ms(),
        )
        async with session_scope() as session:
            await upsert_watch_progress(session, row)
        return progress_to_dict(row)

    async def save_tv_progress(
        self,
        tmdb_id: int,
        season: int,
        episode: int,
        current_time: float,
        duration: float,
    ) -> dict:
        """Save episode progress and drop progress of every other episode of the series."""
        key = tv_key(tmdb_id, season, episode)
        row = WatchProgress(
            key=key,
            media_type="tv",
            tmdb_id=tmdb_id,
            season=int(season),
            episode=int(episode),
            current_time=round(current_time),
            duration=round(duration),
            progress=_percent(current_time, duration),
            timestamp=self.clock_ms(),
        )
        async with session_scope() as session:
            removed = await delete_series_progress(session, tmdb_id, keep_key=key)
            await upsert_watch_progress(session, row)
        if removed:
            logger.debug("Cleared %s older episode(s) of series %s", removed, tmdb_id)
        return progress_to_dict(row)

    async def get_movie_progress(self, tmdb_id: int) -> dict | None:
        async with session_scope() as session:
            row = await get_watch_progress(session, movie_key(tmdb_id))
            return progress_to_dict(row) if row else None

    async def get_tv_progress(self, tmdb_id: int, season: int, episode: int) -> dict | None:
        async with session_scope() as session:
            row = await get_watch_progress(session, tv_key(tmdb_id, season, episode))
            return progress_to_dict(row) if row else None

    async def clear_movie_progress(self, tmdb_id: int) -> None:
        async with session_scope() as session:
            await delete_watch_progress(session, movie_key(tmdb_id))

    async def clear_tv_progress(self, tmdb_id: int, season: int | None = None, episode: int | None = None) -> None:
        """Clear one episode, or the whole series when season/episode are omitted."""
        async with session_scope() as session:
            if season is not None and episode is not None:
                await delete_watch_progress(session, tv_key(tmdb_id, season, episode))
            else:
                await delete_series_progress(session, tmdb_id)

    async def get_last_watched_episode(self, tmdb_id: int) -> dict | None:
        async with session_scope() as session:
            rows = await list_series_progress(session, tmdb_id)
            return progress_to_dict(rows[0]) if rows else None

    async def get_continue_watching(self) -> list[dict]:
        """Movies and episodes below 100% progress, most recent first."""
        async with session_scope() as session:
            rows = await list_unfinished_progress(session)
            return [progress_to_dict(row) for row in rows]


watch_progress_service = WatchProgressService()
