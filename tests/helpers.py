"""Test helpers: fixed clock, canned fetcher and event factory."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from streamhub.errors import FetchError
from streamhub.services.categories import AppCategory
from streamhub.services.fetch_types import Channel, Event

# 2025-10-06T12:00:00Z
FIXED_NOW = datetime(2025, 10, 6, 12, 0, tzinfo=timezone.utc)
FIXED_NOW_TS = int(FIXED_NOW.timestamp())


def fixed_clock() -> datetime:
    return FIXED_NOW


class FakeFetcher:
    """Stand-in for HttpFetcher serving canned payloads by URL."""

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[str] = []

    def _lookup(self, url: str) -> Any:
        self.calls.append(url)
        if url not in self.responses:
            raise FetchError(f"No canned response for {url}", url=url, status_code=404)
        value = self.responses[url]
        if isinstance(value, Exception):
            raise value
        return value

    async def fetch_json(self, url: str) -> Any:
        return self._lookup(url)

    async def fetch_text(self, url: str) -> str:
        return self._lookup(url)


def make_event(
    event_id: str = "evt-1",
    *,
    name: str = "Lakers vs Celtics",
    category: AppCategory = AppCategory.BASKETBALL,
    source: str = "pptv",
    starts_at: int | None = FIXED_NOW_TS,
    ends_at: int | None = None,
    always_live: bool = False,
    channels: list[Channel] | None = None,
    extras: dict | None = None,
) -> Event:
    return Event(
        id=event_id,
        name=name,
        category=category,
        source=source,
        starts_at=starts_at,
        ends_at=ends_at,
        always_live=always_live,
        channels=channels or [],
        extras=extras or {},
    )


