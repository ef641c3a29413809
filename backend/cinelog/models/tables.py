"""SQLAlchemy ORM models — all database tables."""

import enum
from datetime import datetime, date
from typing import Optional, List
from sqlalchemy import (
    Integer, String, Text, Boolean, DateTime, Date,
    ForeignKey, Index, UniqueConstraint, JSON,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from cinelog.database import Base


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JsonList = JSON().with_variant(JSONB(), "postgresql")


class WatchLocation(str, enum.Enum):
    ON_DEMAND = "ON_DEMAND"
    CINEMA = "CINEMA"
    TV = "TV"


class StreamingService(str, enum.Enum):
    HOME_MEDIA_LIBRARY = "HOME_MEDIA_LIBRARY"
    OTHER = "OTHER"


class ActionVia(str, enum.Enum):
    WEBHOOK = "WEBHOOK"


class ActionSource(str, enum.Enum):
    JELLYFIN = "JELLYFIN"


# ── Webhook configuration ────────────────────────────────────────

class WebhookConfig(Base):
    __tablename__ = "jellyfin_webhook_config"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    api_key: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    username_filter: Mapped[Optional[str]] = mapped_column(String(200))  # Jellyfin username, case-insensitive
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ── Movies ───────────────────────────────────────────────────────

class Movie(Base):
    __tablename__ = "movies"
    __table_args__ = (
        UniqueConstraint("user_id", "tmdb_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    tmdb_id: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    original_title: Mapped[Optional[str]] = mapped_column(String(500))
    release_year: Mapped[Optional[int]] = mapped_column(Integer)
    runtime: Mapped[Optional[int]] = mapped_column(Integer)  # minutes
    overview: Mapped[Optional[str]] = mapped_column(Text)
    genres: Mapped[list] = mapped_column(JsonList, default=list)
    director: Mapped[Optional[str]] = mapped_column(String(300))
    cast: Mapped[list] = mapped_column(JsonList, default=list)
    poster_path: Mapped[Optional[str]] = mapped_column(String(200))  # filled by the poster backfill
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    watches: Mapped[List["MovieWatch"]] = relationship(back_populates="movie")


class MovieWatch(Base):
    __tablename__ = "movie_watches"
    __table_args__ = (
        Index("idx_movie_watches_user", "user_id", "watched_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    movie_id: Mapped[int] = mapped_column(ForeignKey("movies.id", ondelete="CASCADE"))
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    watched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    watch_location: Mapped[str] = mapped_column(String(20), nullable=False)
    streaming_service: Mapped[Optional[str]] = mapped_column(String(40))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    movie: Mapped[Movie] = relationship(back_populates="watches")
    tags: Mapped[List["ExternalActionTag"]] = relationship(back_populates="movie_watch")


# ── TV shows ─────────────────────────────────────────────────────

class TvShow(Base):
    __tablename__ = "tv_shows"
    __table_args__ = (
        UniqueConstraint("user_id", "tmdb_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    tmdb_id: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    original_title: Mapped[Optional[str]] = mapped_column(String(500))
    first_air_date: Mapped[Optional[date]] = mapped_column(Date)
    last_air_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[Optional[str]] = mapped_column(String(50))  # Returning Series | Ended | Canceled
    overview: Mapped[Optional[str]] = mapped_column(Text)
    poster_path: Mapped[Optional[str]] = mapped_column(String(200))
    network: Mapped[Optional[str]] = mapped_column(String(200))
    genres: Mapped[list] = mapped_column(JsonList, default=list)
    cast: Mapped[list] = mapped_column(JsonList, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    seasons: Mapped[List["TvShowSeason"]] = relationship(back_populates="tv_show")


class TvShowSeason(Base):
    __tablename__ = "tv_show_seasons"
    __table_args__ = (
        UniqueConstraint("tv_show_id", "season_number"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    tv_show_id: Mapped[int] = mapped_column(ForeignKey("tv_shows.id", ondelete="CASCADE"))
    season_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(500))
    overview: Mapped[Optional[str]] = mapped_column(Text)
    air_date: Mapped[Optional[date]] = mapped_column(Date)
    episode_count: Mapped[int] = mapped_column(Integer, default=0)
    poster_path: Mapped[Optional[str]] = mapped_column(String(200))

    tv_show: Mapped[TvShow] = relationship(back_populates="seasons")
    episodes: Mapped[List["TvShowEpisode"]] = relationship(back_populates="season")


class TvShowEpisode(Base):
    __tablename__ = "tv_show_episodes"
    __table_args__ = (
        UniqueConstraint("season_id", "episode_number"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    season_id: Mapped[int] = mapped_column(ForeignKey("tv_show_seasons.id", ondelete="CASCADE"))
    episode_number: Mapped[int] = mapped_column(Integer, nullable=False)
    # Everything below stays NULL on stub episodes
    name: Mapped[Optional[str]] = mapped_column(String(500))
    overview: Mapped[Optional[str]] = mapped_column(Text)
    air_date: Mapped[Optional[date]] = mapped_column(Date)
    runtime: Mapped[Optional[int]] = mapped_column(Integer)
    still_path: Mapped[Optional[str]] = mapped_column(String(200))

    season: Mapped[TvShowSeason] = relationship(back_populates="episodes")


class TvShowWatch(Base):
    __tablename__ = "tv_show_watches"
    __table_args__ = (
        Index("idx_tv_show_watches_user", "user_id", "watched_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    tv_show_id: Mapped[int] = mapped_column(ForeignKey("tv_shows.id", ondelete="CASCADE"))
    episode_id: Mapped[Optional[int]] = mapped_column(ForeignKey("tv_show_episodes.id", ondelete="SET NULL"))
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    watched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    watch_location: Mapped[str] = mapped_column(String(20), nullable=False)
    streaming_service: Mapped[Optional[str]] = mapped_column(String(40))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    tags: Mapped[List["ExternalActionTag"]] = relationship(back_populates="tv_show_watch")


# ── Provenance ───────────────────────────────────────────────────

class ExternalActionTag(Base):
    """Marks a watch row as created by an automated integration."""
    __tablename__ = "external_action_tags"

    id: Mapped[int] = mapped_column(primary_key=True)
    movie_watch_id: Mapped[Optional[int]] = mapped_column(ForeignKey("movie_watches.id", ondelete="CASCADE"))
    tv_show_watch_id: Mapped[Optional[int]] = mapped_column(ForeignKey("tv_show_watches.id", ondelete="CASCADE"))
    via: Mapped[str] = mapped_column(String(20), nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    movie_watch: Mapped[Optional[MovieWatch]] = relationship(back_populates="tags")
    tv_show_watch: Mapped[Optional[TvShowWatch]] = relationship(back_populates="tags")
