"""
Aggregation orchestrator

Runs one refresh cycle for the active provider: serve from cache when
possible, otherwise fetch and normalize, fall back to stale cache on
network failure, and publish the resulting bundle. Overlapping refreshes
are not serialized; a result is dropped if the provider or filters changed
while it was being produced, otherwise the last completed refresh wins.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime

from streamhub.errors import ConfigurationError, FetchError
from streamhub.services.cache_service import TTLCacheGate
from streamhub.services.categories import AppCategory
from streamhub.services.fetch_types import Event, FilterParams, NormalizedBundle
from streamhub.services.providers import StreamProvider
from streamhub.services.providers.common import Clock, empty_bundle
from streamhub.services.selection_service import SelectionStore
from streamhub.services.stream_status import StreamStatus, sort_events
from streamhub.utils.logging_helpers import log_bundle_summary, log_refresh_end, log_refresh_start
from streamhub.utils.timezone import utc_now


logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Using cached data (network error)"


@dataclass(slots=True)
class RefreshResult:
    provider: str
    bundle: NormalizedBundle | None = None
    degraded: bool = False
    error: str | None = None
    from_cache: bool = False
    discarded: bool = False

    @property
    def ok(self) -> bool:
        return self.bundle is not None and not self.discarded

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "ok": self.ok,
            "degraded": self.degraded,
            "from_cache": self.from_cache,
            "discarded": self.discarded,
            "error": self.error,
            "events": sum(len(events) for events in (self.bundle or {}).values()),
        }


class StreamAggregator:
    """Publishes the normalized bundle of the selected provider."""

    def __init__(
        self,
        providers: dict[str, StreamProvider],
        cache: TTLCacheGate,
        selection: SelectionStore,
        clock: Clock = utc_now,
    ) -> None:
        self.providers = providers
        self.cache = cache
        self.selection = selection
        self.clock = clock
        self.bundle: NormalizedBundle = empty_bundle()
        self.published_provider: str | None = None
        self.last_result: RefreshResult | None = None
        self.last_updated: datetime | None = None
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def _provider(self, provider_id: str) -> StreamProvider:
        try:
            return self.providers[provider_id]
        except KeyError:
            available = ", ".join(sorted(self.providers))
            raise KeyError(f"Unknown provider '{provider_id}'. Available: {available}") from None

    async def refresh(self, force_refresh: bool = False) -> RefreshResult:
        """
        Run one refresh cycle for the active provider.

        Args:
            force_refresh: Skip the cache read and always hit the network

        Returns:
            RefreshResult describing what was published (if anything)

        Raises:
            ConfigurationError: If the provider is misconfigured (no fallback)
        """
        provider_id = self.selection.provider
        filters = replace(self.selection.filters)
        generation = self._generation
        provider = self._provider(provider_id)
        key = provider.cache_key()
        fingerprint = provider.fingerprint(filters)

        log_refresh_start(logger, provider_id, forced=force_refresh)

        result: RefreshResult | None = None
        if not force_refresh:
            cached = await self.cache.read(key, fingerprint)
            if cached is not None:
                result = RefreshResult(provider=provider_id, bundle=cached, from_cache=True)

        if result is None:
            result = await self._fetch(provider, filters, key, fingerprint, generation)

        if generation != self._generation:
            logger.info(
                "Discarding %s refresh result: selection changed while it was running",
                provider_id,
            )
            result.discarded = True
            log_refresh_end(logger, provider_id, "discarded")
            return result

        self.last_result = result
        if result.bundle is None:
            log_refresh_end(logger, provider_id, "failed")
            return result

        await self._publish(provider_id, result.bundle)
        outcome = "degraded" if result.degraded else ("cached" if result.from_cache else "fresh")
        log_refresh_end(logger, provider_id, outcome)
        return result

    async def _fetch(
        self,
        provider: StreamProvider,
        filters: FilterParams,
        key: str,
        fingerprint: dict,
        generation: int,
    ) -> RefreshResult:
        provider_id = provider.provider_id
        try:
            raw = await provider.fetch_raw()
            bundle = await provider.normalize(raw, filters)
        except ConfigurationError:
            logger.error("Provider %s is misconfigured", provider_id, exc_info=True)
            raise
        except FetchError as exc:
            logger.error("Fetch failed for %s: %s", provider_id, exc)
            fallback = await self.cache.read_fallback(key, fingerprint)
            if fallback is None:
                return RefreshResult(provider=provider_id, error=str(exc) or "Failed to load streams")
            logger.warning("Serving stale cache for %s after fetch error", provider_id)
            return RefreshResult(
                provider=provider_id,
                bundle=fallback,
                degraded=True,
                error=FALLBACK_MESSAGE,
                from_cache=True,
            )

        if generation == self._generation:
            await self.cache.write(key, bundle, fingerprint)
        log_bundle_summary(logger, provider_id, bundle)
        return RefreshResult(provider=provider_id, bundle=bundle)

    async def _publish(self, provider_id: str, bundle: NormalizedBundle) -> None:
        self.bundle = bundle
        self.published_provider = provider_id
        self.last_updated = self.clock()
        await self.ensure_initial_category(bundle)

    async def ensure_initial_category(self, bundle: NormalizedBundle) -> None:
        """Select the first populated category unless the user already picked one."""
        if self.selection.user_selected_category:
            return
        for category, events in bundle.items():
            if events:
                logger.info("Auto-selecting first populated category %s", category.value)
                await self.selection.set_category(category, user_selected=True)
                return

    async def select_provider(self, provider_id: str) -> RefreshResult | None:
        self._provider(provider_id)
        if provider_id == self.selection.provider:
            return None
        self._generation += 1
        await self.selection.set_provider(provider_id)
        return await self.refresh(force_refresh=True)

    async def select_category(self, category: AppCategory) -> None:
        await self.selection.set_category(category)

    async def update_filters(self, filters: FilterParams) -> RefreshResult | None:
        if filters == self.selection.filters:
            return None
        self._generation += 1
        await self.selection.set_filters(filters)
        return await self.refresh(force_refresh=True)

    async def clear_cache(self) -> RefreshResult:
        """User-initiated purge of every stored entry followed by a forced refresh."""
        await self.cache.invalidate_all()
        return await self.refresh(force_refresh=True)

    def find_event(self, event_id: str) -> Event | None:
        for events in self.bundle.values():
            for event in events:
                if event.id == event_id:
                    return event
        return None

    def events_for(
        self,
        category: AppCategory | None = None,
        now: datetime | None = None,
    ) -> list[tuple[Event, StreamStatus]]:
        """Published events of a category (default: the selected one), classified and sorted."""
        events = self.bundle.get(category or self.selection.category, [])
        return sort_events(events, now or self.clock())

    async def resolve_playback(self, event_id: str, selection: dict | None = None) -> str | None:
        """
        Late-bind the playback URL of a published event.

        Raises:
            LookupError: If no published event has this id
        """
        event = self.find_event(event_id)
        if event is None:
            raise LookupError(f"Event '{event_id}' is not in the published schedule")

        options = {"allow_all_streams": self.selection.filters.allow_all_streams}
        options.update(selection or {})
        return await self._provider(event.source).resolve_playback_target(event, options)
