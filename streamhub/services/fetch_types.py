"""
Shared dataclasses used across the stream aggregation pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from streamhub.services.categories import AppCategory


@dataclass(slots=True)
class Channel:
    """One playable channel of an event."""
    channel_id: str
    channel_name: str

    def to_dict(self) -> dict:
        return {"channel_id": self.channel_id, "channel_name": self.channel_name}


@dataclass(slots=True)
class TeamBranding:
    """Logo and team display hints derived from the event title."""
    logos: list[str] = field(default_factory=list)
    team_names: list[str] = field(default_factory=list)
    league_logo: str | None = None
    has_matchup: bool = False

    def to_dict(self) -> dict:
        return {
            "logos": list(self.logos),
            "team_names": list(self.team_names),
            "league_logo": self.league_logo,
            "has_matchup": self.has_matchup,
        }


@dataclass(slots=True)
class FilterParams:
    """User toggles that change what adapters emit."""
    allow_all_streams: bool = False
    show_ended: bool = False


@dataclass(slots=True)
class Event:
    """In-memory representation of a normalized schedule entry."""
    id: str
    name: str
    category: AppCategory
    source: str
    starts_at: int | None = None
    ends_at: int | None = None
    always_live: bool = False
    hide_schedule: bool = False
    channels: list[Channel] = field(default_factory=list)
    team_branding: TeamBranding = field(default_factory=TeamBranding)
    tag: str = ""
    poster: str = ""
    extras: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "source": self.source,
            "starts_at": self.starts_at,
            "ends_at": self.ends_at,
            "always_live": self.always_live,
            "hide_schedule": self.hide_schedule,
            "channels": [channel.to_dict() for channel in self.channels],
            "team_branding": self.team_branding.to_dict(),
            "tag": self.tag,
            "poster": self.poster,
            "extras": dict(self.extras),
        }

    @classmethod
    def from_dict(cls, payload: dict) -> Event:
        branding = payload.get("team_branding") or {}
        return cls(
            id=str(payload["id"]),
            name=payload.get("name", ""),
            category=AppCategory(payload["category"]),
            source=payload.get("source", ""),
            starts_at=payload.get("starts_at"),
            ends_at=payload.get("ends_at"),
            always_live=bool(payload.get("always_live", False)),
            hide_schedule=bool(payload.get("hide_schedule", False)),
            channels=[
                Channel(channel_id=str(item["channel_id"]), channel_name=item.get("channel_name", ""))
                for item in payload.get("channels") or []
            ],
            team_branding=TeamBranding(
                logos=list(branding.get("logos") or []),
                team_names=list(branding.get("team_names") or []),
                league_logo=branding.get("league_logo"),
                has_matchup=bool(branding.get("has_matchup", False)),
            ),
            tag=payload.get("tag", ""),
            poster=payload.get("poster", ""),
            extras=dict(payload.get("extras") or {}),
        )


NormalizedBundle = dict[AppCategory, list[Event]]


def serialize_bundle(bundle: NormalizedBundle) -> dict[str, list[dict]]:
    """Convert a bundle into JSON-compatible form keyed by category value."""
    return {category.value: [event.to_dict() for event in events] for category, events in bundle.items()}


def deserialize_bundle(payload: dict[str, list[dict]]) -> NormalizedBundle:
    """Rebuild a bundle stored by serialize_bundle, in enumeration order."""
    bundle: NormalizedBundle = {category: [] for category in AppCategory}
    for key, events in payload.items():
        category = AppCategory.from_value(key)
        if category is None:
            continue
        bundle[category] = [Event.from_dict(item) for item in events]
    return bundle


__all__ = [
    "Channel",
    "TeamBranding",
    "FilterParams",
    "Event",
    "NormalizedBundle",
    "serialize_bundle",
    "deserialize_bundle",
]
