"""
Stream status classification

Derives the temporal state of an event at a given instant. Status is
computed at read time and never stored with the cached bundle.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Literal
import logging

from streamhub.config import settings
from streamhub.services.fetch_types import Event
from streamhub.utils.timezone import to_epoch_seconds, utc_now


logger = logging.getLogger(__name__)


StatusCategory = Literal["live", "upcoming", "ended"]

SORT_RANK: dict[str, int] = {"live": 0, "upcoming": 1, "ended": 2}


@dataclass(slots=True, frozen=True)
class StreamStatus:
    label: str
    category: StatusCategory
    sort_rank: int
    color: str


LIVE = StreamStatus("LIVE", "live", SORT_RANK["live"], "success")
SCHEDULED = StreamStatus("Scheduled", "upcoming", SORT_RANK["upcoming"], "default")
STARTING_SOON = StreamStatus("Starting Soon", "upcoming", SORT_RANK["upcoming"], "warning")
UPCOMING = StreamStatus("Upcoming", "upcoming", SORT_RANK["upcoming"], "info")
ENDED = StreamStatus("Ended", "ended", SORT_RANK["ended"], "warning")


def _now_seconds(now: datetime | int | float) -> int:
    seconds = to_epoch_seconds(now)
    if seconds is None:
        logger.debug("Invalid reference time %r, using current time", now)
        return to_epoch_seconds(utc_now())
    return seconds


def classify(
    event: Event,
    now: datetime | int | float,
    *,
    starting_soon_minutes: int | None = None,
    assumed_duration_minutes: int | None = None,
) -> StreamStatus:
    """
    Classify an event as live, upcoming or ended at the instant `now`.

    Args:
        event: Normalized event
        now: Reference instant (datetime or epoch seconds)
        starting_soon_minutes: Threshold for "Starting Soon" (settings default)
        assumed_duration_minutes: Live window when the event has no end (settings default)

    Returns:
        The event's StreamStatus
    """
    if event.always_live:
        return LIVE

    if event.starts_at is None:
        return SCHEDULED

    if starting_soon_minutes is None:
        starting_soon_minutes = settings.starting_soon_minutes
    if assumed_duration_minutes is None:
        assumed_duration_minutes = settings.assumed_duration_minutes
    soon_seconds = starting_soon_minutes * 60
    assumed_seconds = assumed_duration_minutes * 60
    current = _now_seconds(now)

    if current < event.starts_at:
        if event.starts_at - current <= soon_seconds:
            return STARTING_SOON
        return UPCOMING

    if event.ends_at is not None:
        return LIVE if current <= event.ends_at else ENDED

    return LIVE if current - event.starts_at <= assumed_seconds else ENDED


def sort_key(event: Event, status: StreamStatus) -> tuple[int, int, int]:
    """Live before upcoming before ended; by start time, unknown start last."""
    if event.starts_at is None:
        return (status.sort_rank, 1, 0)
    return (status.sort_rank, 0, event.starts_at)


def sort_events(
    events: Iterable[Event],
    now: datetime | int | float,
    *,
    starting_soon_minutes: int | None = None,
    assumed_duration_minutes: int | None = None,
) -> list[tuple[Event, StreamStatus]]:
    """Classify and order events for display. The sort is stable."""
    classified = [
        (
            event,
            classify(
                event,
                now,
                starting_soon_minutes=starting_soon_minutes,
                assumed_duration_minutes=assumed_duration_minutes,
            ),
        )
        for event in events
    ]
    classified.sort(key=lambda pair: sort_key(*pair))
    return classified
