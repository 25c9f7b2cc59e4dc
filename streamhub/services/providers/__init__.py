"""Source adapter registry."""
from streamhub.services.providers.base import StreamProvider
from streamhub.services.providers.common import Clock
from streamhub.services.providers.daddystreams import DaddyStreamsProvider
from streamhub.services.providers.pptv import PPTVProvider
from streamhub.services.providers.sharkstreams import SharkStreamsProvider
from streamhub.services.providers.streamed import StreamedProvider
from streamhub.utils.http_client import HttpFetcher
from streamhub.utils.timezone import utc_now

_PROVIDERS: dict[str, type] = {
    DaddyStreamsProvider.provider_id: DaddyStreamsProvider,
    PPTVProvider.provider_id: PPTVProvider,
    SharkStreamsProvider.provider_id: SharkStreamsProvider,
    StreamedProvider.provider_id: StreamedProvider,
}


def available_providers() -> list[str]:
    return sorted(_PROVIDERS)


def get_provider(name: str, http: HttpFetcher, clock: Clock = utc_now) -> StreamProvider:
    """Return a provider instance by name.

    Raises ``KeyError`` if *name* is not registered.
    Available names: daddystreams, pptv, sharkstreams, streamed
    """
    try:
        cls = _PROVIDERS[name]
    except KeyError:
        available = ", ".join(available_providers())
        raise KeyError(
            f"Unknown provider '{name}'. Available: {available}"
        ) from None
    return cls(http, clock)


def build_providers(http: HttpFetcher, clock: Clock = utc_now) -> dict[str, StreamProvider]:
    """Instantiate every registered provider around one shared fetcher."""
    return {name: get_provider(name, http, clock) for name in available_providers()}


__all__ = [
    "StreamProvider",
    "DaddyStreamsProvider",
    "PPTVProvider",
    "SharkStreamsProvider",
    "StreamedProvider",
    "available_providers",
    "get_provider",
    "build_providers",
]
