"""
HTML listing adapter

The listing page has one `.row` per stream with date, category and name
cells and an embed button whose onclick opens the player for a channel.
Listing times are wall-clock times in the viewer's zone.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import tzinfo
from typing import Any

from lxml import html as lxml_html
from lxml.etree import ParserError

from streamhub.config import settings
from streamhub.errors import ConfigurationError
from streamhub.services.categories import CATEGORY_MAPPINGS, map_category
from streamhub.services.fetch_types import Channel, Event, FilterParams, NormalizedBundle
from streamhub.services.providers.common import (
    Clock,
    attach_branding,
    cache_key_for,
    empty_bundle,
    filter_fingerprint,
    passes_day_filter,
)
from streamhub.utils.http_client import HttpFetcher
from streamhub.utils.timezone import local_wall_time_to_epoch_seconds, resolve_viewer_timezone, utc_now


logger = logging.getLogger(__name__)

PLAYER_URL = "https://sharkstreams.net/player.php?channel={channel_id}"

_OPEN_EMBED_RE = re.compile(r"openEmbed\('([^']+)'\)")
_CHANNEL_RE = re.compile(r"channel=(\d+)")


def _class_xpath(*classes: str) -> str:
    return " and ".join(
        f"contains(concat(' ', normalize-space(@class), ' '), ' {name} ')" for name in classes
    )


_ROW_XPATH = f"//*[{_class_xpath('row')}]"


@dataclass(slots=True)
class ListingRow:
    date_time: str
    category: str
    name: str
    embed_url: str
    channel_id: str


def _first(row, *classes: str):
    found = row.xpath(f".//*[{_class_xpath(*classes)}]")
    return found[0] if found else None


def parse_listing(document: str) -> list[ListingRow]:
    """
    Extract listing rows from the page HTML.

    Rows missing any cell, the onclick handler or a channel id are skipped.
    """
    if not document or not document.strip():
        return []
    try:
        tree = lxml_html.fromstring(document)
    except (ParserError, ValueError) as exc:
        logger.warning("Could not parse listing HTML: %s", exc)
        return []

    rows = []
    for row in tree.xpath(_ROW_XPATH):
        date_el = _first(row, "ch-date")
        category_el = _first(row, "ch-category")
        name_el = _first(row, "ch-name")
        button = _first(row, "hd-link", "secondary")
        if date_el is None or category_el is None or name_el is None or button is None:
            logger.debug("Skipping listing row without the expected cells")
            continue

        embed_match = _OPEN_EMBED_RE.search(button.get("onclick") or "")
        embed_url = embed_match.group(1) if embed_match else None
        channel_match = _CHANNEL_RE.search(embed_url) if embed_url else None
        if not embed_url or not channel_match:
            logger.debug("Skipping listing row without an embed channel")
            continue

        rows.append(
            ListingRow(
                date_time=date_el.text_content().strip(),
                category=category_el.text_content().strip(),
                name=name_el.text_content().strip(),
                embed_url=embed_url,
                channel_id=channel_match.group(1),
            )
        )
    return rows


class SharkStreamsProvider:
    provider_id = "sharkstreams"

    def __init__(
        self,
        http: HttpFetcher,
        clock: Clock = utc_now,
        *,
        tz: tzinfo | None = None,
        listing_url: str | None = None,
    ) -> None:
        self.http = http
        self.clock = clock
        self.tz = tz if tz is not None else resolve_viewer_timezone(settings.viewer_timezone)
        self.listing_url = settings.sharkstreams_url if listing_url is None else listing_url

    def cache_key(self) -> str:
        return cache_key_for(self.provider_id)

    def fingerprint(self, filters: FilterParams) -> dict:
        return filter_fingerprint(filters)

    async def fetch_raw(self) -> Any:
        if not self.listing_url:
            raise ConfigurationError("sharkstreams_url is not configured")
        return await self.http.fetch_text(self.listing_url)

    async def normalize(self, raw: Any, filters: FilterParams) -> NormalizedBundle:
        bundle = empty_bundle()
        if not isinstance(raw, str):
            return bundle

        mappings = CATEGORY_MAPPINGS[self.provider_id]
        for row in parse_listing(raw):
            category = map_category(row.category, mappings)
            if category is None:
                continue

            event = Event(
                id=f"shark_{row.channel_id}_{row.date_time}",
                name=row.name,
                category=category,
                source=self.provider_id,
                starts_at=local_wall_time_to_epoch_seconds(row.date_time, self.tz),
                ends_at=None,
                channels=[Channel(channel_id=row.channel_id, channel_name=row.category)],
                tag=row.category,
                extras={"embed_url": row.embed_url},
            )
            if not passes_day_filter(event, filters, self.clock, self.tz):
                continue
            bundle[category].append(attach_branding(event))

        return bundle

    async def resolve_playback_target(self, event: Event, selection: dict | None = None) -> str | None:
        channel_id = (selection or {}).get("channel_id")
        if not channel_id and event.channels:
            channel_id = event.channels[0].channel_id
        if not channel_id:
            logger.warning("Channel ID is required for %s event %s", self.provider_id, event.id)
            return None
        return PLAYER_URL.format(channel_id=channel_id)
