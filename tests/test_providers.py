"""Tests for the four source adapters and the provider registry."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from streamhub.errors import ConfigurationError
from streamhub.services.categories import AppCategory
from streamhub.services.fetch_types import FilterParams
from streamhub.services.providers import (
    DaddyStreamsProvider,
    PPTVProvider,
    SharkStreamsProvider,
    StreamedProvider,
    StreamProvider,
    available_providers,
    build_providers,
    get_provider,
)
from streamhub.services.providers.daddystreams import normalize_channels
from streamhub.services.providers.sharkstreams import parse_listing
from streamhub.services.providers.streamed import filter_streams_by_language, is_womens_basketball

from tests.helpers import FIXED_NOW_TS, FakeFetcher, fixed_clock, make_event

DAY_LABEL = "Monday 06th Oct 2025 - Schedule Time UK GMT"
STREAMED_BASE = "https://streamed.test"
DEFAULT_FILTERS = FilterParams()


def schedule_payload(channel_name: str = "USA Channel 1", **event_fields) -> dict:
    event = {
        "event": "Lakers vs Celtics",
        "time": "02:00",
        "channels": [{"channel_id": 1, "channel_name": channel_name}],
    }
    event.update(event_fields)
    return {DAY_LABEL: {"NBA": [event]}}


def daddy(fetcher=None, **kwargs) -> DaddyStreamsProvider:
    kwargs.setdefault("schedule_url", "https://schedule.test/today.json")
    kwargs.setdefault("embed_base", "https://embed.test")
    return DaddyStreamsProvider(fetcher or FakeFetcher(), fixed_clock, tz=timezone.utc, **kwargs)


def streamed(fetcher=None) -> StreamedProvider:
    return StreamedProvider(
        fetcher or FakeFetcher(),
        fixed_clock,
        tz=timezone.utc,
        base_url=STREAMED_BASE,
        language_check_concurrency=2,
    )


def match(match_id="m1", title="Lakers vs Warriors", category="other", **fields) -> dict:
    record = {
        "id": match_id,
        "title": title,
        "category": category,
        "date": FIXED_NOW_TS * 1000,
        "sources": [{"source": "alpha", "id": f"{match_id}-a"}],
    }
    record.update(fields)
    return record


class TestDaddyStreamsProvider:
    """Daily schedule keyed by a human day banner."""

    @pytest.mark.asyncio
    async def test_normalizes_clock_time_on_day_banner(self):
        bundle = await daddy().normalize(schedule_payload(), DEFAULT_FILTERS)

        events = bundle[AppCategory.BASKETBALL]
        assert len(events) == 1
        event = events[0]
        expected = int(datetime(2025, 10, 6, 2, 0, tzinfo=timezone.utc).timestamp())
        assert event.starts_at == expected
        assert event.category is AppCategory.BASKETBALL
        assert [channel.channel_name for channel in event.channels] == ["USA Channel 1"]
        assert event.id == "Lakers vs Celtics_02:00_2025-10-06"
        assert event.tag == "USA Channel 1"

    @pytest.mark.asyncio
    async def test_event_without_surviving_channels_is_dropped(self):
        bundle = await daddy().normalize(schedule_payload("UK Sports 1"), DEFAULT_FILTERS)
        assert bundle[AppCategory.BASKETBALL] == []

    @pytest.mark.asyncio
    async def test_only_first_banner_is_used(self):
        payload = schedule_payload()
        payload["Tuesday 07th Oct 2025"] = {"NBA": [{"event": "Later", "time": "03:00", "channels": [{"channel_id": 2, "channel_name": "ESPN"}]}]}

        bundle = await daddy().normalize(payload, DEFAULT_FILTERS)

        assert [event.name for event in bundle[AppCategory.BASKETBALL]] == ["Lakers vs Celtics"]

    @pytest.mark.asyncio
    async def test_source_id_wins_over_composite(self):
        bundle = await daddy().normalize(schedule_payload(id="abc"), DEFAULT_FILTERS)
        assert bundle[AppCategory.BASKETBALL][0].id == "abc"

    @pytest.mark.asyncio
    async def test_malformed_record_is_skipped(self):
        payload = schedule_payload()
        payload[DAY_LABEL]["NBA"].insert(0, "not a record")

        bundle = await daddy().normalize(payload, DEFAULT_FILTERS)

        assert len(bundle[AppCategory.BASKETBALL]) == 1

    @pytest.mark.asyncio
    async def test_previous_day_hidden_unless_show_ended(self):
        payload = {"Sunday 05th Oct 2025": schedule_payload()[DAY_LABEL]}

        hidden = await daddy().normalize(payload, DEFAULT_FILTERS)
        shown = await daddy().normalize(payload, FilterParams(show_ended=True))

        assert hidden[AppCategory.BASKETBALL] == []
        assert len(shown[AppCategory.BASKETBALL]) == 1

    @pytest.mark.asyncio
    async def test_unmapped_category_and_bad_payload(self):
        provider = daddy()
        assert all(not events for events in (await provider.normalize({DAY_LABEL: {"Curling": []}}, DEFAULT_FILTERS)).values())
        assert all(not events for events in (await provider.normalize([], DEFAULT_FILTERS)).values())

    @pytest.mark.asyncio
    async def test_fetch_raw_reads_configured_url(self):
        fetcher = FakeFetcher({"https://schedule.test/today.json": schedule_payload()})
        assert await daddy(fetcher).fetch_raw() == schedule_payload()
        assert fetcher.calls == ["https://schedule.test/today.json"]

    @pytest.mark.asyncio
    async def test_missing_url_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            await daddy(schedule_url="").fetch_raw()

    @pytest.mark.asyncio
    async def test_playback_uses_selected_or_first_channel(self):
        provider = daddy()
        event = (await provider.normalize(schedule_payload(), DEFAULT_FILTERS))[AppCategory.BASKETBALL][0]

        assert await provider.resolve_playback_target(event) == "https://embed.test/stream-1.php"
        assert await provider.resolve_playback_target(event, {"channel_id": "44"}) == "https://embed.test/stream-44.php"
        assert await provider.resolve_playback_target(make_event(channels=[])) is None

    def test_channel_keywords_are_case_insensitive_substrings(self):
        channels = normalize_channels(
            [
                {"channel_id": 1, "channel_name": "ESPN"},
                {"channel_id": 2, "channel_name": "TSN Ontario"},
                {"channel_id": 3, "channel_name": "beIN Sports FRANCE"},
                {"channel_name": "No id"},
            ]
        )
        assert [channel.channel_id for channel in channels] == ["1"]

    def test_non_text_channel_name_is_skipped(self):
        channels = normalize_channels([{"channel_id": 1, "channel_name": 42}, {"channel_id": 2, "channel_name": "ESPN"}])
        assert [channel.channel_id for channel in channels] == ["2"]

    @pytest.mark.asyncio
    async def test_non_text_event_name_skips_only_that_record(self):
        payload = schedule_payload()
        bad = dict(payload[DAY_LABEL]["NBA"][0], event=["Lakers", "Celtics"], poster=7)
        payload[DAY_LABEL]["NBA"].insert(0, bad)

        bundle = await daddy().normalize(payload, DEFAULT_FILTERS)

        assert [event.name for event in bundle[AppCategory.BASKETBALL]] == ["Lakers vs Celtics"]


class TestStreamedProvider:
    """Match API with team gating and language verification."""

    @pytest.mark.asyncio
    async def test_category_inferred_from_teams(self):
        provider = streamed()
        with patch.object(StreamedProvider, "get_stream_language", AsyncMock(return_value="English")):
            bundle = await provider.normalize([match()], DEFAULT_FILTERS)

        events = bundle[AppCategory.BASKETBALL]
        assert len(events) == 1
        assert events[0].id == "streamed_m1"
        assert events[0].starts_at == FIXED_NOW_TS
        assert len(events[0].team_branding.logos) == 2
        assert events[0].extras["primary_source"] == {"source": "alpha", "id": "m1-a"}

    @pytest.mark.asyncio
    async def test_title_without_vs_is_dropped(self):
        provider = streamed()
        with patch.object(StreamedProvider, "get_stream_language", AsyncMock(return_value="English")):
            bundle = await provider.normalize(
                [match(title="Press Conference", category="basketball")],
                FilterParams(allow_all_streams=True, show_ended=True),
            )
        assert all(not events for events in bundle.values())

    @pytest.mark.asyncio
    async def test_non_english_stream_is_dropped_and_order_kept(self):
        languages = {"m1-a": "English", "m2-a": "Spanish", "m3-a": None}

        async def fake_language(stream_id, source):
            return languages[stream_id]

        records = [
            match("m1", "Lakers vs Warriors"),
            match("m2", "Celtics vs Knicks"),
            match("m3", "Bulls vs Heat"),
        ]
        provider = streamed()
        with patch.object(StreamedProvider, "get_stream_language", AsyncMock(side_effect=fake_language)):
            bundle = await provider.normalize(records, DEFAULT_FILTERS)

        assert [event.id for event in bundle[AppCategory.BASKETBALL]] == ["streamed_m1", "streamed_m3"]

    @pytest.mark.asyncio
    async def test_allow_all_skips_language_lookup(self):
        provider = streamed()
        mock = AsyncMock(return_value="Spanish")
        with patch.object(StreamedProvider, "get_stream_language", mock):
            bundle = await provider.normalize([match()], FilterParams(allow_all_streams=True))

        mock.assert_not_called()
        assert len(bundle[AppCategory.BASKETBALL]) == 1

    @pytest.mark.asyncio
    async def test_unmatched_teams_dropped_unless_allow_all(self):
        record = match(title="Alpha Club vs Omega Club", category="basketball")
        provider = streamed()
        with patch.object(StreamedProvider, "get_stream_language", AsyncMock(return_value="English")):
            strict = await provider.normalize([record], DEFAULT_FILTERS)
            relaxed = await provider.normalize([record], FilterParams(allow_all_streams=True))

        assert strict[AppCategory.BASKETBALL] == []
        assert len(relaxed[AppCategory.BASKETBALL]) == 1

    @pytest.mark.asyncio
    async def test_soccer_is_exempt_from_team_check(self):
        provider = streamed()
        with patch.object(StreamedProvider, "get_stream_language", AsyncMock(return_value="English")):
            bundle = await provider.normalize([match(title="Arsenal vs Chelsea", category="football")], DEFAULT_FILTERS)
        assert len(bundle[AppCategory.SOCCER]) == 1

    @pytest.mark.asyncio
    async def test_record_without_id_is_skipped(self):
        record = match()
        del record["id"]
        provider = streamed()
        with patch.object(StreamedProvider, "get_stream_language", AsyncMock(return_value="English")):
            bundle = await provider.normalize([record, match("m2")], DEFAULT_FILTERS)
        assert [event.id for event in bundle[AppCategory.BASKETBALL]] == ["streamed_m2"]

    @pytest.mark.asyncio
    async def test_non_text_title_skips_only_that_record(self):
        provider = streamed()
        with patch.object(StreamedProvider, "get_stream_language", AsyncMock(return_value="English")):
            bundle = await provider.normalize([match("m1", title={"home": "Lakers"}), match("m2")], DEFAULT_FILTERS)
        assert [event.id for event in bundle[AppCategory.BASKETBALL]] == ["streamed_m2"]

    @pytest.mark.asyncio
    async def test_non_object_sources_are_ignored(self):
        records = [
            match("m1", sources=["alpha", None]),
            match("m2", poster=["x"], sources=["alpha", {"source": "bravo", "id": "m2-b"}]),
        ]
        provider = streamed()
        with patch.object(StreamedProvider, "get_stream_language", AsyncMock(return_value="English")):
            bundle = await provider.normalize(records, DEFAULT_FILTERS)

        events = bundle[AppCategory.BASKETBALL]
        assert [event.id for event in events] == ["streamed_m2"]
        assert events[0].extras["primary_source"] == {"source": "bravo", "id": "m2-b"}
        assert events[0].poster == ""

    @pytest.mark.asyncio
    async def test_womens_title_moves_to_wnba(self):
        provider = streamed()
        with patch.object(StreamedProvider, "get_stream_language", AsyncMock(return_value="English")):
            bundle = await provider.normalize([match(title="WNBA: Aces vs Liberty", category="basketball")], DEFAULT_FILTERS)

        assert bundle[AppCategory.BASKETBALL] == []
        assert [event.id for event in bundle[AppCategory.WOMENS_BASKETBALL]] == ["streamed_m1"]

    @pytest.mark.asyncio
    async def test_teams_from_another_league_move_the_event(self):
        provider = streamed()
        with patch.object(StreamedProvider, "get_stream_language", AsyncMock(return_value="English")):
            bundle = await provider.normalize([match(title="Lakers vs Warriors", category="hockey")], DEFAULT_FILTERS)

        assert bundle[AppCategory.HOCKEY] == []
        assert [event.id for event in bundle[AppCategory.BASKETBALL]] == ["streamed_m1"]

    @pytest.mark.asyncio
    async def test_language_lookup_failure_keeps_event(self):
        # No canned response: the fetcher raises FetchError
        provider = streamed(FakeFetcher())
        bundle = await provider.normalize([match()], DEFAULT_FILTERS)
        assert len(bundle[AppCategory.BASKETBALL]) == 1

    @pytest.mark.asyncio
    async def test_fetch_raw_hits_matches_endpoint(self):
        fetcher = FakeFetcher({f"{STREAMED_BASE}/api/matches/all": [match()]})
        assert await streamed(fetcher).fetch_raw() == [match()]

    @pytest.mark.asyncio
    async def test_playback_walks_candidates_until_english(self):
        fetcher = FakeFetcher(
            {
                f"{STREAMED_BASE}/api/stream/alpha/m1-a": [{"language": "Spanish", "embedUrl": "https://embed/es"}],
                f"{STREAMED_BASE}/api/stream/bravo/m1-b": [{"language": "English", "embedUrl": "https://embed/en"}],
            }
        )
        provider = streamed(fetcher)
        sources = [{"source": "alpha", "id": "m1-a"}, {"source": "bravo", "id": "m1-b"}]
        event = make_event(source="streamed", extras={"sources": sources, "primary_source": sources[0]})

        assert await provider.resolve_playback_target(event) == "https://embed/en"
        assert await provider.resolve_playback_target(event, {"allow_all_streams": True}) == "https://embed/es"
        # primary source listed twice is only requested once per resolution
        assert fetcher.calls.count(f"{STREAMED_BASE}/api/stream/alpha/m1-a") == 2

    @pytest.mark.asyncio
    async def test_playback_without_sources(self):
        assert await streamed().resolve_playback_target(make_event(source="streamed")) is None

    def test_womens_markers(self):
        assert is_womens_basketball("Aces vs Liberty (W)") is True
        assert is_womens_basketball("WNBA: Aces vs Liberty") is True
        assert is_womens_basketball("Lakers vs Warriors") is False

    def test_filter_streams_by_language(self):
        streams = [{"language": "english", "embedUrl": "a"}, {"language": "French", "embedUrl": "b"}, {"language": "French"}]
        assert filter_streams_by_language(streams) == [streams[0]]
        assert filter_streams_by_language(streams, allow_all_streams=True) == streams[:2]
        assert filter_streams_by_language(None) == []


LISTING_HTML = """
<html><body>
  <div class="row">
    <span class="ch-date">2025-10-06 20:00:00</span>
    <span class="ch-category">NBA</span>
    <span class="ch-name">Lakers vs Warriors</span>
    <a class="hd-link secondary" onclick="window.openEmbed('https://sharkstreams.net/player.php?channel=123')">Embed</a>
  </div>
  <div class="row">
    <span class="ch-date">2025-10-06 21:00:00</span>
    <span class="ch-category">NHL</span>
    <span class="ch-name">Missing button</span>
  </div>
  <div class="row">
    <span class="ch-date">2025-10-06 22:00:00</span>
    <span class="ch-category">Cricket</span>
    <span class="ch-name">India vs Australia</span>
    <a class="hd-link secondary" onclick="window.openEmbed('https://sharkstreams.net/player.php?channel=9')">Embed</a>
  </div>
</body></html>
"""


class TestSharkStreamsProvider:
    """Scraped HTML listing."""

    def test_parse_listing_skips_incomplete_rows(self):
        rows = parse_listing(LISTING_HTML)
        assert [row.channel_id for row in rows] == ["123", "9"]
        assert rows[0].date_time == "2025-10-06 20:00:00"
        assert rows[0].embed_url == "https://sharkstreams.net/player.php?channel=123"

    def test_parse_empty_document(self):
        assert parse_listing("") == []
        assert parse_listing("   ") == []

    @pytest.mark.asyncio
    async def test_normalize_maps_rows(self):
        provider = SharkStreamsProvider(FakeFetcher(), fixed_clock, tz=timezone.utc, listing_url="https://shark.test/")
        bundle = await provider.normalize(LISTING_HTML, DEFAULT_FILTERS)

        events = bundle[AppCategory.BASKETBALL]
        assert len(events) == 1
        event = events[0]
        assert event.id == "shark_123_2025-10-06 20:00:00"
        assert event.starts_at == int(datetime(2025, 10, 6, 20, 0, tzinfo=timezone.utc).timestamp())
        assert event.channels[0].channel_id == "123"
        assert len(event.team_branding.logos) == 2
        assert await provider.resolve_playback_target(event) == "https://sharkstreams.net/player.php?channel=123"

    @pytest.mark.asyncio
    async def test_fetch_raw_reads_text(self):
        fetcher = FakeFetcher({"https://shark.test/": LISTING_HTML})
        provider = SharkStreamsProvider(fetcher, fixed_clock, tz=timezone.utc, listing_url="https://shark.test/")
        assert await provider.fetch_raw() == LISTING_HTML


def pptv_payload() -> dict:
    return {
        "success": True,
        "streams": [
            {
                "category": "Basketball",
                "streams": [
                    {
                        "id": 1,
                        "name": "Lakers vs Celtics",
                        "starts_at": FIXED_NOW_TS,
                        "ends_at": FIXED_NOW_TS + 7200,
                        "iframe": "https://pptv.test/embed/1",
                    },
                    {"id": 2, "name": " 24/7 COWS ", "starts_at": FIXED_NOW_TS},
                    {"id": 3, "name": "Bad times", "starts_at": FIXED_NOW_TS, "ends_at": FIXED_NOW_TS - 60, "uri_name": "bad-times"},
                    {"name": "No id"},
                ],
            },
            {
                "category": "24/7 Streams",
                "streams": [
                    {"id": 4, "name": "Classic Games", "always_live": 1, "iframe": "https://pptv.test/embed/4", "starts_at": (FIXED_NOW_TS - 5 * 86400) * 1000},
                ],
            },
        ],
    }


class TestPPTVProvider:
    """Feed with explicit timestamps."""

    def provider(self, fetcher=None) -> PPTVProvider:
        return PPTVProvider(
            fetcher or FakeFetcher(),
            fixed_clock,
            tz=timezone.utc,
            feed_url="https://pptv.test/api/streams",
            stream_base="https://pptv.test/stream/",
        )

    @pytest.mark.asyncio
    async def test_denylist_and_bad_records(self):
        bundle = await self.provider().normalize(pptv_payload(), DEFAULT_FILTERS)
        assert [event.id for event in bundle[AppCategory.BASKETBALL]] == ["1", "3"]

    @pytest.mark.asyncio
    async def test_end_before_start_is_discarded(self):
        bundle = await self.provider().normalize(pptv_payload(), DEFAULT_FILTERS)
        assert bundle[AppCategory.BASKETBALL][1].ends_at is None
        assert bundle[AppCategory.BASKETBALL][0].ends_at == FIXED_NOW_TS + 7200

    @pytest.mark.asyncio
    async def test_always_live_bypasses_day_filter(self):
        bundle = await self.provider().normalize(pptv_payload(), DEFAULT_FILTERS)
        events = bundle[AppCategory.TWENTY_FOUR_SEVEN]
        assert len(events) == 1
        assert events[0].always_live is True
        assert events[0].starts_at == FIXED_NOW_TS - 5 * 86400

    @pytest.mark.asyncio
    async def test_record_without_play_target_is_dropped(self):
        payload = pptv_payload()
        payload["streams"][0]["streams"].append({"id": 5, "name": "Heat vs Bulls", "starts_at": FIXED_NOW_TS, "iframe": ""})

        bundle = await self.provider().normalize(payload, DEFAULT_FILTERS)

        assert [event.id for event in bundle[AppCategory.BASKETBALL]] == ["1", "3"]

    @pytest.mark.asyncio
    async def test_non_text_fields_skip_only_that_record(self):
        payload = pptv_payload()
        payload["streams"][0]["streams"].insert(0, {"id": 6, "name": 123, "iframe": "https://pptv.test/embed/6"})
        payload["streams"][0]["streams"].append(
            {"id": 7, "name": "Heat vs Bulls", "starts_at": FIXED_NOW_TS, "uri_name": "heat-bulls", "tag": 5, "poster": {}}
        )

        bundle = await self.provider().normalize(payload, DEFAULT_FILTERS)

        events = bundle[AppCategory.BASKETBALL]
        assert [event.id for event in events] == ["1", "3", "7"]
        assert events[2].tag == "PPTV"
        assert events[2].poster == ""

    @pytest.mark.asyncio
    async def test_unsuccessful_payload_is_empty(self):
        bundle = await self.provider().normalize({"success": False, "streams": []}, DEFAULT_FILTERS)
        assert all(not events for events in bundle.values())

    @pytest.mark.asyncio
    async def test_playback_prefers_iframe(self):
        provider = self.provider()
        bundle = await provider.normalize(pptv_payload(), DEFAULT_FILTERS)
        with_iframe, with_uri = bundle[AppCategory.BASKETBALL]

        assert await provider.resolve_playback_target(with_iframe) == "https://pptv.test/embed/1"
        assert await provider.resolve_playback_target(with_uri) == "https://pptv.test/stream/bad-times"
        assert await provider.resolve_playback_target(make_event()) is None


class TestRegistry:
    def test_available_providers(self):
        assert available_providers() == ["daddystreams", "pptv", "sharkstreams", "streamed"]

    def test_get_provider(self):
        provider = get_provider("pptv", FakeFetcher(), fixed_clock)
        assert isinstance(provider, PPTVProvider)
        assert isinstance(provider, StreamProvider)
        assert provider.cache_key() == "schedule_pptv"

    def test_unknown_provider_lists_available(self):
        with pytest.raises(KeyError, match="Available: daddystreams, pptv, sharkstreams, streamed"):
            get_provider("nope", FakeFetcher())

    def test_build_providers_shares_fetcher(self):
        fetcher = FakeFetcher()
        providers = build_providers(fetcher, fixed_clock)
        assert set(providers) == set(available_providers())
        assert all(provider.http is fetcher for provider in providers.values())

    def test_fingerprint_reflects_filters(self):
        provider = get_provider("streamed", FakeFetcher())
        assert provider.fingerprint(FilterParams(allow_all_streams=True)) == {
            "allowAllStreams": True,
            "showEnded": False,
        }
