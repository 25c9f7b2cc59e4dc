"""
Date and Time utilities

Reconciles the timestamp encodings used by the upstream sources (epoch
seconds/ms, ISO strings, "HH:MM" clock times under a human day banner,
local wall-clock text) into epoch seconds, and answers whether an instant
falls on the viewer's current calendar day.
"""
from datetime import date, datetime, timezone, tzinfo
from typing import Any, Callable
from zoneinfo import ZoneInfo
import logging
import math
import re

logger = logging.getLogger(__name__)

# Values above this are epoch milliseconds, below are epoch seconds
EPOCH_MS_THRESHOLD = 1e12

_DAY_LABEL_RE = re.compile(r"(\d{1,2})(?:st|nd|rd|th)?\s+([A-Za-z]{3,9})\s+(\d{4})")
_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


class DateFormatError(ValueError):
    """Raised when date format is invalid"""
    pass


def _normalize_iso8601_string(date_str: str) -> str:
    """Normalize ISO8601 string by replacing 'Z' with '+00:00'"""
    return date_str.replace('Z', '+00:00') if date_str.endswith('Z') else date_str


def parse_iso8601_to_utc(date_str: str) -> datetime:
    """
    Parse ISO8601 date string and convert to UTC datetime

    Args:
        date_str: ISO8601 datetime string (e.g., '2025-10-09T00:00:00Z' or '2025-10-09T00:00:00+01:00')

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        DateFormatError: If the date string format is invalid
    """
    try:
        normalized = _normalize_iso8601_string(date_str.strip())
        dt = datetime.fromisoformat(normalized)
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (ValueError, AttributeError) as e:
        raise DateFormatError(f"Invalid ISO8601 datetime format: '{date_str}'") from e


def _from_number(value: float) -> int | None:
    if math.isnan(value) or math.isinf(value):
        return None
    seconds = value / 1000 if value > EPOCH_MS_THRESHOLD else value
    return math.floor(seconds)


def to_epoch_seconds(value: Any) -> int | None:
    """
    Convert a heterogeneous timestamp into whole epoch seconds.

    Accepts datetimes (naive ones are taken as UTC), numbers and numeric
    strings (epoch milliseconds when greater than 1e12, else seconds) and
    ISO8601 strings. Returns None instead of raising on anything else.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return math.floor(value.timestamp())

    if isinstance(value, (int, float)):
        return _from_number(float(value))

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return _from_number(float(text))
        except ValueError:
            pass
        try:
            return math.floor(parse_iso8601_to_utc(text).timestamp())
        except DateFormatError:
            logger.debug("Unparseable timestamp value: %r", value)
            return None

    return None


def day_label_to_key(label: str | None, now: datetime | None = None) -> str:
    """
    Reduce a human day banner to a YYYY-MM-DD key.

    "Monday 06th Oct 2025 - Schedule Time UK GMT" -> "2025-10-06". Labels that
    are themselves ISO dates are accepted as-is; anything else falls back to
    today's date in UTC.
    """
    if label:
        match = _DAY_LABEL_RE.search(label)
        if match:
            day = match.group(1).zfill(2)
            month = MONTHS.get(match.group(2)[:3].lower(), 1)
            return f"{match.group(3)}-{month:02d}-{day}"
        try:
            return parse_iso8601_to_utc(label).date().isoformat()
        except DateFormatError:
            logger.debug("Day label %r has no recognizable date, using today (UTC)", label)

    reference = now or datetime.now(timezone.utc)
    return reference.astimezone(timezone.utc).date().isoformat()


def clock_to_epoch_seconds(clock: str | None, day_key: str | None) -> int | None:
    """Combine an "HH:MM" UTC clock time with a YYYY-MM-DD day key."""
    if not isinstance(clock, str) or not isinstance(day_key, str) or not clock or not day_key:
        return None
    match = _CLOCK_RE.match(clock.strip())
    if not match:
        return None
    try:
        day = date.fromisoformat(day_key)
        dt = datetime(
            day.year, day.month, day.day,
            int(match.group(1)), int(match.group(2)),
            tzinfo=timezone.utc,
        )
    except ValueError:
        return None
    return math.floor(dt.timestamp())


def resolve_viewer_timezone(name: str | None) -> tzinfo | None:
    """Return the configured viewer zone, or None for the host's local zone."""
    if not name:
        return None
    if name == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def _to_viewer(dt: datetime, tz: tzinfo | None) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz) if tz is not None else dt.astimezone()


def local_wall_time_to_epoch_seconds(text: str | None, tz: tzinfo | None = None) -> int | None:
    """Parse "YYYY-MM-DD HH:MM:SS" wall-clock text in the viewer's zone."""
    if not text:
        return None
    try:
        naive = datetime.strptime(text.strip(), "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return None
    if tz is not None:
        aware = naive.replace(tzinfo=tz)
    else:
        aware = naive.astimezone()
    return math.floor(aware.timestamp())


def is_on_current_local_day(
    epoch_seconds: int | float | None,
    now_provider: Callable[[], datetime],
    tz: tzinfo | None = None,
) -> bool:
    """
    Check whether an instant falls on the viewer's current calendar day.

    Day membership is compared in the viewer's zone, not UTC and not the
    source zone. An unknown instant counts as today.
    """
    if epoch_seconds is None:
        return True

    target = to_epoch_seconds(epoch_seconds)
    if target is None:
        return False

    target_day = _to_viewer(datetime.fromtimestamp(target, tz=timezone.utc), tz).date()
    current_day = _to_viewer(now_provider(), tz).date()
    return target_day == current_day


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
