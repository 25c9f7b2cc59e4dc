"""
Match API adapter

Matches come with a list of (source, id) pairs that are resolved to embed
URLs only at playback time. Titles must name a matchup, teams are checked
against the alias tables, and unless all streams are allowed each match's
stream language is verified against the stream-detail endpoint.
"""
from __future__ import annotations

import asyncio
import logging
import re
from datetime import tzinfo
from typing import Any

from streamhub.config import settings
from streamhub.errors import ConfigurationError, FetchError, ParseError
from streamhub.services.categories import CATEGORY_MAPPINGS, AppCategory, map_category
from streamhub.services.fetch_types import Event, FilterParams, NormalizedBundle
from streamhub.services.providers.common import (
    Clock,
    attach_branding,
    cache_key_for,
    empty_bundle,
    filter_fingerprint,
    passes_day_filter,
)
from streamhub.services.team_matcher import TeamMatch, match_teams
from streamhub.utils.http_client import HttpFetcher
from streamhub.utils.timezone import resolve_viewer_timezone, utc_now


logger = logging.getLogger(__name__)

SUPPORTED_TEAM_CATEGORIES = (
    AppCategory.BASKETBALL,
    AppCategory.WOMENS_BASKETBALL,
    AppCategory.SOCCER,
    AppCategory.FOOTBALL,
    AppCategory.BASEBALL,
    AppCategory.HOCKEY,
    AppCategory.MOTORSPORTS,
    AppCategory.FIGHTING,
    AppCategory.TENNIS,
)

# Categories whose leagues are too many to track; no team match is required
TEAM_CHECK_EXEMPT = (AppCategory.SOCCER, AppCategory.FOOTBALL)

WOMENS_MARKERS = ("wnba", "women's", "women ", "(w)", " ladies", "woman")

_VS_RE = re.compile(r"\bvs\b", re.IGNORECASE)


def is_womens_basketball(title: str) -> bool:
    lowered = title.lower()
    return any(marker in lowered for marker in WOMENS_MARKERS)


def is_english(language: Any) -> bool:
    return isinstance(language, str) and language.strip().lower() == "english"


def filter_streams_by_language(streams: Any, *, allow_all_streams: bool = False) -> list[dict]:
    """Keep English streams, or any stream with an embed URL when all streams are allowed."""
    if not isinstance(streams, list):
        return []
    if allow_all_streams:
        return [stream for stream in streams if isinstance(stream, dict) and stream.get("embedUrl")]
    return [stream for stream in streams if isinstance(stream, dict) and is_english(stream.get("language"))]


class _TeamMatchCache:
    """Memoizes team matching per category for a single title."""

    def __init__(self, title: str) -> None:
        self.title = title
        self._matches: dict[AppCategory, TeamMatch] = {}

    def get(self, category: AppCategory) -> TeamMatch:
        if category not in self._matches:
            self._matches[category] = match_teams(category, self.title)
        return self._matches[category]

    def first_matching_category(self) -> AppCategory | None:
        for category in SUPPORTED_TEAM_CATEGORIES:
            if self.get(category).matched_teams:
                return category
        return None


class StreamedProvider:
    provider_id = "streamed"

    def __init__(
        self,
        http: HttpFetcher,
        clock: Clock = utc_now,
        *,
        tz: tzinfo | None = None,
        base_url: str | None = None,
        language_check_concurrency: int | None = None,
    ) -> None:
        self.http = http
        self.clock = clock
        self.tz = tz if tz is not None else resolve_viewer_timezone(settings.viewer_timezone)
        self.base_url = (settings.streamed_base_url if base_url is None else base_url).rstrip("/")
        self.language_check_concurrency = max(
            1, language_check_concurrency or settings.language_check_concurrency
        )

    @property
    def api_base(self) -> str:
        return f"{self.base_url}/api"

    def cache_key(self) -> str:
        return cache_key_for(self.provider_id)

    def fingerprint(self, filters: FilterParams) -> dict:
        return filter_fingerprint(filters)

    async def fetch_raw(self) -> Any:
        if not self.base_url:
            raise ConfigurationError("streamed_base_url is not configured")
        return await self.http.fetch_json(f"{self.api_base}/matches/all")

    def normalize_poster(self, poster: Any) -> str:
        if not isinstance(poster, str) or not poster:
            return ""
        if poster.startswith("http"):
            return poster
        return f"{self.base_url}{poster}"

    async def get_stream_details(self, source: str, stream_id: str) -> list[dict]:
        """Stream variants for one (source, id) pair."""
        details = await self.http.fetch_json(f"{self.api_base}/stream/{source}/{stream_id}")
        return details if isinstance(details, list) else []

    async def get_stream_language(self, stream_id: str, source: str) -> str | None:
        """Language of the first stream variant, or None if it cannot be determined."""
        try:
            details = await self.get_stream_details(source, stream_id)
        except FetchError as exc:
            logger.warning("Failed to fetch language for stream %s/%s: %s", source, stream_id, exc)
            return None
        if not details or not isinstance(details[0], dict):
            return None
        return details[0].get("language") or None

    async def normalize(self, raw: Any, filters: FilterParams) -> NormalizedBundle:
        bundle = empty_bundle()
        if not isinstance(raw, list):
            return bundle

        candidates: list[Event] = []
        for record in raw:
            try:
                event = self._build_event(record, filters)
            except ParseError as exc:
                logger.warning("Skipping malformed %s record: %s", self.provider_id, exc)
                continue
            if event is not None:
                candidates.append(event)

        if not filters.allow_all_streams:
            keep = await self._check_languages(candidates)
            candidates = [event for event, kept in zip(candidates, keep) if kept]

        for event in candidates:
            bundle[event.category].append(attach_branding(event))
        return bundle

    def _build_event(self, record: Any, filters: FilterParams) -> Event | None:
        if not isinstance(record, dict):
            raise ParseError(f"expected an object, got {type(record).__name__}")

        sources = record.get("sources")
        if isinstance(sources, list):
            sources = [item for item in sources if isinstance(item, dict)]
        if not isinstance(sources, list) or not sources:
            return None

        title = record.get("title") or "Unknown Event"
        if not isinstance(title, str):
            raise ParseError(f"match title must be text, got {type(title).__name__}")
        if not _VS_RE.search(title):
            return None

        if record.get("id") is None:
            raise ParseError(f"match {title!r} has no id")

        teams = _TeamMatchCache(title)
        category = map_category(record.get("category"), CATEGORY_MAPPINGS[self.provider_id])
        if category is None:
            category = teams.first_matching_category()
        if category is None:
            return None

        if category is AppCategory.BASKETBALL and is_womens_basketball(title):
            category = AppCategory.WOMENS_BASKETBALL

        if category not in TEAM_CHECK_EXEMPT and not teams.get(category).matched_teams:
            fallback = teams.first_matching_category()
            if fallback is not None:
                category = fallback
            elif not filters.allow_all_streams:
                return None

        date_value = record.get("date")
        starts_at = None
        if isinstance(date_value, (int, float)) and not isinstance(date_value, bool):
            starts_at = int(date_value // 1000)

        event = Event(
            id=f"streamed_{record['id']}",
            name=title,
            category=category,
            source=self.provider_id,
            starts_at=starts_at,
            ends_at=None,
            tag="Streamed",
            poster=self.normalize_poster(record.get("poster")),
            extras={
                "sources": sources,
                "primary_source": sources[0],
            },
        )
        if not passes_day_filter(event, filters, self.clock, self.tz):
            return None
        return event

    async def _check_languages(self, events: list[Event]) -> list[bool]:
        """Run language lookups in a bounded pool; results keep input order."""
        semaphore = asyncio.Semaphore(self.language_check_concurrency)

        async def check(event: Event) -> bool:
            primary = event.extras.get("primary_source") or {}
            async with semaphore:
                language = await self.get_stream_language(primary.get("id"), primary.get("source"))
            if language and not is_english(language):
                logger.debug("Dropping %s: stream language %r", event.id, language)
                return False
            return True

        return list(await asyncio.gather(*(check(event) for event in events)))

    async def resolve_playback_target(self, event: Event, selection: dict | None = None) -> str | None:
        """
        Resolve an embed URL by walking the candidate sources in order.

        Args:
            event: Normalized event carrying its source list in extras
            selection: Optional {"source_override": {...}, "allow_all_streams": bool}

        Returns:
            Embed URL of the first playable stream, or None
        """
        selection = selection or {}
        allow_all = bool(selection.get("allow_all_streams", False))
        sources = event.extras.get("sources") or []

        seen: set[str] = set()
        candidates = []
        for item in [selection.get("source_override"), event.extras.get("primary_source"), *sources]:
            if not isinstance(item, dict) or not item.get("source") or not item.get("id"):
                continue
            key = f"{item['source']}:{item['id']}"
            if key in seen:
                continue
            seen.add(key)
            candidates.append(item)

        if not candidates:
            logger.warning("No source available for %s event %s", self.provider_id, event.id)
            return None

        for candidate in candidates:
            details = await self.get_stream_details(candidate["source"], candidate["id"])
            playable = filter_streams_by_language(details, allow_all_streams=allow_all)
            if playable:
                return playable[0].get("embedUrl")

        logger.warning(
            "%s event %s returned no playable sources after filtering (allow_all=%s)",
            self.provider_id,
            event.id,
            allow_all,
        )
        return None
