"""Catalog resolution for incoming watches.

Maps a TMDB id (plus season/episode numbers for TV) to local catalog rows,
creating whatever is missing from TMDB metadata. TV resolves top-down:
show, then season (created together with its whole episode list), then
episode.

Every create is an insert-if-absent on the table's unique key, followed by
a commit, so two deliveries racing on the same uncached title converge on
a single row, and a failure further down the hierarchy keeps what was
already created.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cinelog.clients.tmdb import TmdbClient
from cinelog.database import ModelT, insert_if_absent, insert_many_if_absent
from cinelog.models.tables import Movie, TvShow, TvShowEpisode, TvShowSeason
from cinelog.services.mapping import (
    episode_values, movie_values, season_values, tv_show_values,
)

logger = logging.getLogger(__name__)


@dataclass
class ResolvedEpisode:
    show: TvShow
    season: TvShowSeason
    episode: TvShowEpisode


class CatalogResolver:
    """Finds or lazily creates Movie / TvShow / TvShowSeason / TvShowEpisode rows."""

    def __init__(self, tmdb: TmdbClient, db: AsyncSession):
        self.tmdb = tmdb
        self.db = db

    # ── Movies ───────────────────────────────────────────────────

    async def resolve_movie(self, user_id: str, tmdb_id: int) -> Movie:
        key = {"user_id": user_id, "tmdb_id": str(tmdb_id)}

        movie = await self._find(Movie, key)
        if movie:
            logger.info(f"Movie tmdb={tmdb_id} already cached (id={movie.id})")
            return movie

        logger.info(f"Movie tmdb={tmdb_id} not cached, fetching from TMDB")
        data = await self.tmdb.get_movie(tmdb_id)

        movie, created = await insert_if_absent(self.db, Movie, key, movie_values(data))
        await self.db.commit()
        if created:
            logger.info(f"Created movie '{movie.title}' (id={movie.id})")
        else:
            logger.info(f"Movie tmdb={tmdb_id} was created concurrently (id={movie.id})")
        return movie

    # ── TV ───────────────────────────────────────────────────────

    async def resolve_episode(
        self,
        user_id: str,
        tmdb_id: int,
        season_number: int,
        episode_number: int,
    ) -> ResolvedEpisode:
        """Resolve show → season → episode, creating each level only if missing.

        An episode TMDB does not know about (yet) is recorded as a stub
        holding only its number, so the watch can still be tracked.
        """
        show = await self.resolve_show(user_id, tmdb_id)
        season, episodes, fetched = await self._resolve_season(show, tmdb_id, season_number)

        episode = episodes.get(episode_number)
        if episode is None:
            # A freshly fetched season is already current; a cached one may
            # predate the episode's airing.
            episode = await self._create_missing_episode(
                season, tmdb_id, episode_number, refresh=not fetched,
            )

        return ResolvedEpisode(show=show, season=season, episode=episode)

    async def resolve_show(self, user_id: str, tmdb_id: int) -> TvShow:
        key = {"user_id": user_id, "tmdb_id": str(tmdb_id)}

        show = await self._find(TvShow, key)
        if show:
            return show

        logger.info(f"TV show tmdb={tmdb_id} not cached, fetching from TMDB")
        data = await self.tmdb.get_tv_show(tmdb_id)

        show, created = await insert_if_absent(self.db, TvShow, key, tv_show_values(data))
        await self.db.commit()
        if created:
            logger.info(f"Created TV show '{show.title}' (id={show.id})")
        return show

    async def _resolve_season(
        self,
        show: TvShow,
        tmdb_id: int,
        season_number: int,
    ) -> tuple[TvShowSeason, dict[int, TvShowEpisode], bool]:
        """Returns (season, episodes by number, whether TMDB was consulted)."""
        key = {"tv_show_id": show.id, "season_number": season_number}

        season = await self._find(TvShowSeason, key)
        if season:
            return season, await self._load_episodes(season), False

        logger.info(f"Season {season_number} of '{show.title}' not cached, fetching from TMDB")
        data = await self.tmdb.get_tv_season(tmdb_id, season_number)

        season, created = await insert_if_absent(self.db, TvShowSeason, key, season_values(data))
        # Idempotent per episode, so safe even if another delivery won the season insert
        inserted = await insert_many_if_absent(
            self.db,
            TvShowEpisode,
            ("season_id", "episode_number"),
            [{"season_id": season.id, **episode_values(e)} for e in data.episodes],
        )
        await self.db.commit()
        if created:
            logger.info(f"Created season {season_number} (id={season.id}) with {inserted} episodes")

        return season, await self._load_episodes(season), True

    async def _create_missing_episode(
        self,
        season: TvShowSeason,
        tmdb_id: int,
        episode_number: int,
        refresh: bool,
    ) -> TvShowEpisode:
        values: dict[str, Any] = {}

        if refresh:
            logger.info(
                f"Episode {episode_number} not in cached season {season.season_number}, "
                f"refreshing season from TMDB"
            )
            data = await self.tmdb.get_tv_season(tmdb_id, season.season_number)
            tmdb_episode = data.find_episode(episode_number)
            if tmdb_episode:
                values = episode_values(tmdb_episode)
                values.pop("episode_number")

        if not values:
            logger.info(
                f"Episode {episode_number} of season {season.season_number} not found on TMDB, "
                f"creating stub episode"
            )

        key = {"season_id": season.id, "episode_number": episode_number}
        episode, _ = await insert_if_absent(self.db, TvShowEpisode, key, values)
        await self.db.commit()
        return episode

    # ── Lookups ──────────────────────────────────────────────────

    async def _find(self, model: type[ModelT], key: dict[str, Any]) -> Optional[ModelT]:
        result = await self.db.execute(select(model).filter_by(**key))
        return result.scalar_one_or_none()

    async def _load_episodes(self, season: TvShowSeason) -> dict[int, TvShowEpisode]:
        result = await self.db.execute(
            select(TvShowEpisode).where(TvShowEpisode.season_id == season.id)
        )
        return {e.episode_number: e for e in result.scalars()}
