"""
Source adapter interface.

Every upstream source is an independent class satisfying StreamProvider;
adapters share pure helpers from providers.common rather than a base class.
"""
from typing import Any, Protocol, runtime_checkable

from streamhub.services.fetch_types import Event, FilterParams, NormalizedBundle


@runtime_checkable
class StreamProvider(Protocol):
    provider_id: str

    async def fetch_raw(self) -> Any:
        """
        Retrieve the raw schedule payload.

        Raises:
            FetchError: If the upstream cannot be reached on any route
            ConfigurationError: If the adapter has no source URL configured
        """
        ...

    async def normalize(self, raw: Any, filters: FilterParams) -> NormalizedBundle:
        """Turn a raw payload into a bundle holding every category key."""
        ...

    async def resolve_playback_target(self, event: Event, selection: dict | None = None) -> str | None:
        """Late-bind a playable URL for an event, or None if nothing is playable."""
        ...

    def cache_key(self) -> str:
        ...

    def fingerprint(self, filters: FilterParams) -> dict:
        ...
