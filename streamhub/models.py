"""
SQLAlchemy ORM Models for the stream aggregation service

Key/value cache entries (normalized bundles and UI state slots) and watch
progress rows.
"""
from sqlalchemy import BigInteger, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models"""
    pass


class CacheEntry(Base):
    """Cache entry holding a JSON payload and its write time (epoch ms)"""
    __tablename__ = "cache_entries"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    data: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return f"<CacheEntry(key={self.key}, timestamp={self.timestamp})>"


class WatchProgress(Base):
    """Playback position of a movie or a single TV episode"""
    __tablename__ = "watch_progress"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    media_type: Mapped[str] = mapped_column(String, nullable=False)
    tmdb_id: Mapped[int] = mapped_column(Integer, nullable=False)
    season: Mapped[int | None] = mapped_column(Integer, nullable=True)
    episode: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_time: Mapped[int] = mapped_column("playback_time", Integer, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    progress: Mapped[float] = mapped_column(Float, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_watch_progress_series", "media_type", "tmdb_id"),
    )

    def __repr__(self) -> str:
        return f"<WatchProgress(key={self.key}, progress={self.progress:.1f})>"
