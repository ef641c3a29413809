"""Watch recording for webhook-originated playbacks."""

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from cinelog.models.tables import (
    ActionSource, ActionVia, ExternalActionTag, Movie, MovieWatch,
    StreamingService, TvShow, TvShowEpisode, TvShowWatch, WatchLocation,
)

logger = logging.getLogger(__name__)


class WatchRecorder:
    """Appends one watch row per accepted playback. Never updates or merges."""

    def __init__(self, db: AsyncSession, source: ActionSource = ActionSource.JELLYFIN):
        self.db = db
        self.source = source

    def _tag(self) -> ExternalActionTag:
        return ExternalActionTag(via=ActionVia.WEBHOOK.value, source=self.source.value)

    async def record_movie_watch(self, user_id: str, movie: Movie) -> MovieWatch:
        # The payload carries no reliable playback timestamp, so the
        # watch is dated at processing time.
        watch = MovieWatch(
            movie_id=movie.id,
            user_id=user_id,
            watched_at=datetime.now(timezone.utc),
            watch_location=WatchLocation.ON_DEMAND.value,
            streaming_service=StreamingService.HOME_MEDIA_LIBRARY.value,
            tags=[self._tag()],
        )
        self.db.add(watch)
        await self.db.commit()
        logger.info(f"Recorded watch {watch.id} for movie '{movie.title}'")
        return watch

    async def record_episode_watch(
        self,
        user_id: str,
        show: TvShow,
        episode: TvShowEpisode,
    ) -> TvShowWatch:
        watch = TvShowWatch(
            tv_show_id=show.id,
            episode_id=episode.id,
            user_id=user_id,
            watched_at=datetime.now(timezone.utc),
            watch_location=WatchLocation.ON_DEMAND.value,
            streaming_service=StreamingService.HOME_MEDIA_LIBRARY.value,
            tags=[self._tag()],
        )
        self.db.add(watch)
        await self.db.commit()
        logger.info(f"Recorded watch {watch.id} for '{show.title}' episode id={episode.id}")
        return watch
