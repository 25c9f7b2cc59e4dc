"""
Pure helpers shared by the source adapters.
"""
from datetime import datetime, tzinfo
from typing import Any, Callable

from streamhub.services.categories import AppCategory
from streamhub.services.fetch_types import Event, FilterParams, NormalizedBundle
from streamhub.services.team_matcher import team_branding
from streamhub.utils.timezone import is_on_current_local_day


Clock = Callable[[], datetime]


def empty_bundle() -> NormalizedBundle:
    """Bundle with every category present, in enumeration order."""
    return {category: [] for category in AppCategory}


def passes_day_filter(
    event: Event,
    filters: FilterParams,
    clock: Clock,
    tz: tzinfo | None = None,
) -> bool:
    """Apply the show-ended / current-day filter. Always-live events always pass."""
    if filters.show_ended or event.always_live:
        return True
    return is_on_current_local_day(event.starts_at, clock, tz)


def optional_text(value: Any, default: str = "") -> str:
    """Return value if it is a non-empty string, else default."""
    return value if isinstance(value, str) and value else default


def attach_branding(event: Event) -> Event:
    event.team_branding = team_branding(event.category, event.name)
    return event


def cache_key_for(provider_id: str) -> str:
    return f"schedule_{provider_id}"


def filter_fingerprint(filters: FilterParams) -> dict:
    """Normalization inputs a cached bundle depends on."""
    return {
        "allowAllStreams": filters.allow_all_streams,
        "showEnded": filters.show_ended,
    }
