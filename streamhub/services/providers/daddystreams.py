"""
Channel schedule adapter

The payload is keyed by a human day banner; only the first banner (the
current day's schedule) is used. Each banner maps source category labels to
events carrying a UTC "HH:MM" time and a list of broadcast channels.
"""
from __future__ import annotations

import logging
from datetime import tzinfo
from typing import Any

from streamhub.config import settings
from streamhub.errors import ConfigurationError, ParseError
from streamhub.services.categories import CATEGORY_MAPPINGS, AppCategory, map_category
from streamhub.services.fetch_types import Channel, Event, FilterParams, NormalizedBundle
from streamhub.services.providers.common import (
    Clock,
    attach_branding,
    cache_key_for,
    empty_bundle,
    filter_fingerprint,
    optional_text,
    passes_day_filter,
)
from streamhub.utils.http_client import HttpFetcher
from streamhub.utils.timezone import clock_to_epoch_seconds, day_label_to_key, resolve_viewer_timezone, utc_now


logger = logging.getLogger(__name__)

CHANNEL_EXCLUDE_KEYWORDS = (
    "uk",
    "ca",
    "deportes",
    "cz",
    "nl",
    "argentina",
    "mexico",
    "brazil",
    "israel",
    "serbia",
    "france",
    "russia",
    "ontario",
)


def normalize_channels(raw_channels: Any) -> list[Channel]:
    """Coerce channel records and drop the ones whose name hits the exclusion keywords."""
    if not isinstance(raw_channels, list):
        return []

    channels = []
    for item in raw_channels:
        if not isinstance(item, dict) or item.get("channel_id") is None:
            continue
        name = item.get("channel_name") or "Unknown Channel"
        if not isinstance(name, str):
            continue
        lowered = name.lower()
        if any(keyword in lowered for keyword in CHANNEL_EXCLUDE_KEYWORDS):
            continue
        channels.append(Channel(channel_id=str(item["channel_id"]), channel_name=name))
    return channels


class DaddyStreamsProvider:
    provider_id = "daddystreams"

    def __init__(
        self,
        http: HttpFetcher,
        clock: Clock = utc_now,
        *,
        tz: tzinfo | None = None,
        schedule_url: str | None = None,
        embed_base: str | None = None,
    ) -> None:
        self.http = http
        self.clock = clock
        self.tz = tz if tz is not None else resolve_viewer_timezone(settings.viewer_timezone)
        self.schedule_url = settings.daddystreams_url if schedule_url is None else schedule_url
        self.embed_base = (embed_base or settings.daddystreams_embed_base).rstrip("/")

    def cache_key(self) -> str:
        return cache_key_for(self.provider_id)

    def fingerprint(self, filters: FilterParams) -> dict:
        return filter_fingerprint(filters)

    async def fetch_raw(self) -> Any:
        if not self.schedule_url:
            raise ConfigurationError("daddystreams_url is not configured")
        return await self.http.fetch_json(self.schedule_url)

    async def normalize(self, raw: Any, filters: FilterParams) -> NormalizedBundle:
        bundle = empty_bundle()
        if not isinstance(raw, dict) or not raw:
            return bundle

        day_label = next(iter(raw))
        day_schedule = raw[day_label]
        if not isinstance(day_schedule, dict):
            logger.warning("Schedule for %r is not a mapping, nothing to normalize", day_label)
            return bundle

        day_key = day_label_to_key(day_label, self.clock())
        mappings = CATEGORY_MAPPINGS[self.provider_id]

        for source_category, events in day_schedule.items():
            category = map_category(source_category, mappings)
            if category is None or not isinstance(events, list):
                continue

            for record in events:
                try:
                    event = self._build_event(record, category, day_key)
                except ParseError as exc:
                    logger.warning("Skipping malformed %s record: %s", self.provider_id, exc)
                    continue
                if event is None or not passes_day_filter(event, filters, self.clock, self.tz):
                    continue
                bundle[category].append(attach_branding(event))

        return bundle

    def _build_event(self, record: Any, category: AppCategory, day_key: str) -> Event | None:
        if not isinstance(record, dict):
            raise ParseError(f"expected an object, got {type(record).__name__}")

        channels = normalize_channels(record.get("channels"))
        if not channels:
            return None

        name = record.get("event") or record.get("name") or "Unknown Event"
        if not isinstance(name, str):
            raise ParseError(f"event name must be text, got {type(name).__name__}")
        time_text = record.get("time")
        event_id = record.get("id") or f"{name}_{time_text or 'time'}_{day_key}"

        return Event(
            id=str(event_id),
            name=name,
            category=category,
            source=self.provider_id,
            starts_at=clock_to_epoch_seconds(time_text, day_key),
            ends_at=None,
            channels=channels,
            tag=channels[0].channel_name,
            poster=optional_text(record.get("poster")),
        )

    async def resolve_playback_target(self, event: Event, selection: dict | None = None) -> str | None:
        channel_id = (selection or {}).get("channel_id")
        if not channel_id and event.channels:
            channel_id = event.channels[0].channel_id
        if not channel_id:
            logger.warning("Channel ID is required for %s event %s", self.provider_id, event.id)
            return None
        return f"{self.embed_base}/stream-{channel_id}.php"
