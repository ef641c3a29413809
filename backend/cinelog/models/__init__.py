"""Re-export all SQLAlchemy models for Alembic and import convenience."""

from cinelog.models.tables import (  # noqa: F401
    WebhookConfig,
    Movie, MovieWatch,
    TvShow, TvShowSeason, TvShowEpisode, TvShowWatch,
    ExternalActionTag,
    WatchLocation, StreamingService, ActionVia, ActionSource,
)
