"""
Feed adapter with explicit timestamps

Payload shape: {"success": bool, "streams": [{"category": ..., "streams": [...]}]}.
Each stream carries its own start/end timestamps and an iframe or uri_name
used to build the player URL.
"""
from __future__ import annotations

import logging
from datetime import tzinfo
from typing import Any

from streamhub.config import settings
from streamhub.errors import ConfigurationError, ParseError
from streamhub.services.categories import CATEGORY_MAPPINGS, AppCategory, map_category
from streamhub.services.fetch_types import Event, FilterParams, NormalizedBundle
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
from streamhub.utils.timezone import resolve_viewer_timezone, to_epoch_seconds, utc_now


logger = logging.getLogger(__name__)

EXCLUDED_STREAM_NAMES = frozenset({"24/7 cows", "master stream test"})


def parse_timestamp(value: Any) -> int | None:
    if not value:
        return None
    return to_epoch_seconds(value)


class PPTVProvider:
    provider_id = "pptv"

    def __init__(
        self,
        http: HttpFetcher,
        clock: Clock = utc_now,
        *,
        tz: tzinfo | None = None,
        feed_url: str | None = None,
        stream_base: str | None = None,
    ) -> None:
        self.http = http
        self.clock = clock
        self.tz = tz if tz is not None else resolve_viewer_timezone(settings.viewer_timezone)
        self.feed_url = settings.pptv_url if feed_url is None else feed_url
        self.stream_base = (stream_base or settings.pptv_stream_base).rstrip("/")

    def cache_key(self) -> str:
        return cache_key_for(self.provider_id)

    def fingerprint(self, filters: FilterParams) -> dict:
        return filter_fingerprint(filters)

    async def fetch_raw(self) -> Any:
        if not self.feed_url:
            raise ConfigurationError("pptv_url is not configured")
        return await self.http.fetch_json(self.feed_url)

    async def normalize(self, raw: Any, filters: FilterParams) -> NormalizedBundle:
        bundle = empty_bundle()
        if not isinstance(raw, dict) or not raw.get("success") or not isinstance(raw.get("streams"), list):
            return bundle

        mappings = CATEGORY_MAPPINGS[self.provider_id]
        for group in raw["streams"]:
            if not isinstance(group, dict):
                continue
            category = map_category(group.get("category") or group.get("category_name"), mappings)
            if category is None or not isinstance(group.get("streams"), list):
                continue

            for record in group["streams"]:
                try:
                    event = self._build_event(record, category)
                except ParseError as exc:
                    logger.warning("Skipping malformed %s record: %s", self.provider_id, exc)
                    continue
                if event is None or not passes_day_filter(event, filters, self.clock, self.tz):
                    continue
                bundle[category].append(attach_branding(event))

        return bundle

    def _build_event(self, record: Any, category: AppCategory) -> Event | None:
        if not isinstance(record, dict):
            raise ParseError(f"expected an object, got {type(record).__name__}")
        if record.get("id") is None:
            raise ParseError(f"stream {record.get('name')!r} has no id")

        name = record.get("name") or "Unknown Event"
        if not isinstance(name, str):
            raise ParseError(f"stream {record['id']!r} has a non-text name")
        if name.strip().lower() in EXCLUDED_STREAM_NAMES:
            return None

        iframe = optional_text(record.get("iframe")) or None
        uri_name = optional_text(record.get("uri_name")) or None
        if iframe is None and uri_name is None:
            logger.debug("Skipping %s stream %s without a play target", self.provider_id, record["id"])
            return None

        starts_at = parse_timestamp(record.get("starts_at"))
        ends_at = parse_timestamp(record.get("ends_at"))
        if starts_at is not None and ends_at is not None and ends_at < starts_at:
            logger.debug("Discarding end time before start time for %s stream %s", self.provider_id, record["id"])
            ends_at = None

        return Event(
            id=str(record["id"]),
            name=name,
            category=category,
            source=self.provider_id,
            starts_at=starts_at,
            ends_at=ends_at,
            always_live=record.get("always_live") == 1,
            tag=optional_text(record.get("tag"), "PPTV"),
            poster=optional_text(record.get("poster")),
            extras={
                "iframe": iframe,
                "uri_name": uri_name,
                "allow_past_streams": record.get("allowpaststreams") == 1,
            },
        )

    async def resolve_playback_target(self, event: Event, selection: dict | None = None) -> str | None:
        iframe = event.extras.get("iframe")
        if iframe:
            return iframe
        uri_name = event.extras.get("uri_name")
        if uri_name:
            return f"{self.stream_base}/{uri_name}"
        logger.warning("No embed URL available for %s event %s", self.provider_id, event.id)
        return None
