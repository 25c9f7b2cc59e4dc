from pydantic import BaseModel, Field, field_validator

from streamhub.services.categories import AppCategory
from streamhub.services.fetch_types import Event
from streamhub.services.providers import available_providers
from streamhub.services.stream_status import StreamStatus


class ChannelResponse(BaseModel):
    channel_id: str
    channel_name: str


class TeamBrandingResponse(BaseModel):
    logos: list[str] = Field(default_factory=list)
    team_names: list[str] = Field(default_factory=list)
    league_logo: str | None = None
    has_matchup: bool = False


class StatusResponse(BaseModel):
    """Temporal status computed at response time"""
    label: str = Field(..., description="LIVE, Scheduled, Starting Soon, Upcoming or Ended")
    category: str = Field(..., description="live, upcoming or ended")
    color: str = Field(..., description="Display hint")


class EventResponse(BaseModel):
    """Single normalized event with its computed status"""
    id: str
    name: str
    category: AppCategory
    source: str
    starts_at: int | None = Field(None, description="Epoch seconds")
    ends_at: int | None = Field(None, description="Epoch seconds")
    always_live: bool = False
    hide_schedule: bool = False
    channels: list[ChannelResponse] = Field(default_factory=list)
    team_branding: TeamBrandingResponse
    tag: str = ""
    poster: str = ""
    status: StatusResponse

    @classmethod
    def from_event(cls, event: Event, status: StreamStatus) -> "EventResponse":
        return cls(
            id=event.id,
            name=event.name,
            category=event.category,
            source=event.source,
            starts_at=event.starts_at,
            ends_at=event.ends_at,
            always_live=event.always_live,
            hide_schedule=event.hide_schedule,
            channels=[ChannelResponse(**channel.to_dict()) for channel in event.channels],
            team_branding=TeamBrandingResponse(**event.team_branding.to_dict()),
            tag=event.tag,
            poster=event.poster,
            status=StatusResponse(label=status.label, category=status.category, color=status.color),
        )


class StreamsResponse(BaseModel):
    """Published bundle grouped by category"""
    provider: str | None
    selected_category: AppCategory
    last_updated: str | None = Field(None, description="ISO8601 time of the last publish")
    degraded: bool = False
    error: str | None = None
    streams: dict[str, list[EventResponse]]


class RefreshResponse(BaseModel):
    provider: str
    ok: bool
    degraded: bool
    from_cache: bool
    discarded: bool
    error: str | None = None
    events: int


class ProvidersResponse(BaseModel):
    providers: list[str]
    active: str


class SelectionRequest(BaseModel):
    """Partial update of the active provider and/or category"""
    provider: str | None = None
    category: AppCategory | None = None

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str | None) -> str | None:
        if v is not None and v not in available_providers():
            raise ValueError(f"Unknown provider: {v}. Must be one of {available_providers()}")
        return v


class SelectionResponse(BaseModel):
    provider: str
    category: AppCategory
    user_selected_category: bool


class SettingsPayload(BaseModel):
    """Filter parameters"""
    allow_all_streams: bool = Field(False, description="Keep streams with unrecognized teams or languages")
    show_ended: bool = Field(False, description="Keep events outside the current day")


class PlaybackResponse(BaseModel):
    event_id: str
    url: str


class MovieProgressRequest(BaseModel):
    current_time: float = Field(..., ge=0, description="Playback position in seconds")
    duration: float = Field(..., ge=0, description="Total duration in seconds")


class ProgressResponse(BaseModel):
    tmdb_id: int
    type: str
    current_time: int
    duration: int
    progress: float
    timestamp: int
    season: int | None = None
    episode: int | None = None
