from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


DEFAULT_PROXY_PREFIXES = [
    "https://corsproxy.io/?",
    "https://api.allorigins.win/raw?url=",
]


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class CustomSettings(BaseSettings):
    """Application settings loaded from environment variables.

    Validates configuration at startup to catch misconfiguration early.
    """

    database_path: str = "./data/streamhub.db"
    log_level: str = "INFO"

    refresh_interval_sec: int = 60  # Aggregate poll interval
    refresh_max_overlap: int = 3  # Concurrent refresh ticks allowed to run
    cache_ttl_hours: int = 24

    starting_soon_minutes: int = 60
    assumed_duration_minutes: int = 180  # Used when a source gives no end time
    viewer_timezone: str = ""  # Empty means the host's local zone

    http_timeout_sec: float = 20.0
    proxy_prefixes: str = ",".join(DEFAULT_PROXY_PREFIXES)  # Comma-separated, tried in order

    daddystreams_url: str = "https://daddylivestream.com/schedule/schedule-generated.php"
    daddystreams_embed_base: str = "https://dlhd.dad/embed"
    streamed_base_url: str = "https://streamed.pk"
    sharkstreams_url: str = "https://sharkstreams.net/"
    pptv_url: str = "https://old.ppv.to/api/streams"
    pptv_stream_base: str = "https://old.ppv.to/stream"

    logo_base_url: str = "/logos"
    language_check_concurrency: int = 1  # 1 keeps lookups sequential

    default_provider: str = "pptv"
    default_category: str = "Basketball"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("proxy_prefixes", mode="after")
    @classmethod
    def validate_proxy_prefixes(cls, value: str) -> str:
        """Validate proxy prefixes are HTTP/HTTPS."""
        for prefix in _split_csv(value):
            if not prefix.lower().startswith(("http://", "https://")):
                raise ValueError(f"Proxy prefix must be HTTP/HTTPS: {prefix}")
        return value

    @property
    def proxy_prefix_list(self) -> list[str]:
        return _split_csv(self.proxy_prefixes)

    @field_validator(
        "daddystreams_url",
        "daddystreams_embed_base",
        "streamed_base_url",
        "sharkstreams_url",
        "pptv_url",
        "pptv_stream_base",
    )
    @classmethod
    def validate_source_urls(cls, value: str, info) -> str:
        """Validate source URLs are HTTP/HTTPS (empty disables the source)."""
        if value and not value.lower().startswith(("http://", "https://")):
            raise ValueError(f"{info.field_name} must be HTTP/HTTPS: {value}")
        return value

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, value: str) -> str:
        """Validate database path is accessible."""
        path = Path(value)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            return value
        except (OSError, PermissionError) as exc:
            raise ValueError(f"Cannot access database path '{value}': {exc}") from exc

    @field_validator(
        "refresh_interval_sec",
        "refresh_max_overlap",
        "cache_ttl_hours",
        "starting_soon_minutes",
        "assumed_duration_minutes",
        "language_check_concurrency",
    )
    @classmethod
    def validate_positive_ints(cls, value: int, info) -> int:
        """Ensure integer settings are positive."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    @field_validator("http_timeout_sec")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("http_timeout_sec must be > 0")
        return value

    @field_validator("viewer_timezone")
    @classmethod
    def validate_viewer_timezone(cls, value: str) -> str:
        """Validate IANA timezone name."""
        if not value or value == "UTC":
            return value
        try:
            ZoneInfo(value)
            return value
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Invalid viewer_timezone: {value}") from exc

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if normalized not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return normalized

    @model_validator(mode="after")
    def validate_sources_configuration(self):
        """Validate cross-field configuration."""
        configured = [
            url for url in (
                self.daddystreams_url,
                self.streamed_base_url,
                self.sharkstreams_url,
                self.pptv_url,
            ) if url
        ]
        if not configured:
            logger.warning("No stream sources configured - refresh will not retrieve any data")
        return self

    def __init__(self, **data):
        """Initialize settings and log configuration."""
        super().__init__(**data)

        logger.info("Configuration loaded:")
        logger.info("  Database: %s", self.database_path)
        logger.info("  Refresh Interval: %ss (max overlap %s)", self.refresh_interval_sec, self.refresh_max_overlap)
        logger.info("  Cache TTL: %s hours", self.cache_ttl_hours)
        logger.info(
            "  Status Windows: starting soon <= %s min, assumed duration %s min",
            self.starting_soon_minutes,
            self.assumed_duration_minutes,
        )
        logger.info("  Viewer Timezone: %s", self.viewer_timezone or "host local")
        logger.info("  Proxy Prefixes: %s configured", len(self.proxy_prefix_list))
        logger.info("  Language Check Concurrency: %s", self.language_check_concurrency)
        logger.info("  Defaults: provider=%s category=%s", self.default_provider, self.default_category)


settings = CustomSettings()


def setup_logging() -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
