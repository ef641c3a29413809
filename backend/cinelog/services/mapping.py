"""Map TMDB payloads onto catalog column values."""

from datetime import date, datetime
from typing import Optional

from cinelog.clients.tmdb import (
    TmdbCastMember, TmdbCrewMember, TmdbEpisode, TmdbGenre,
    TmdbMovie, TmdbTvSeason, TmdbTvShow,
)

CAST_LIMIT = 10
MIN_RELEASE_YEAR = 1800
MAX_RELEASE_YEAR = 3000


def map_release_year(release_date: Optional[str]) -> Optional[int]:
    """Year from the first four characters of a TMDB date, if plausible."""
    if not release_date:
        return None
    try:
        year = int(release_date[:4])
    except ValueError:
        return None
    if year < MIN_RELEASE_YEAR or year > MAX_RELEASE_YEAR:
        return None
    return year


def map_director(crew: list[TmdbCrewMember]) -> Optional[str]:
    director = next((c for c in crew if (c.job or "").lower() == "director"), None)
    return director.name if director else None


def map_cast(cast: list[TmdbCastMember], limit: int = CAST_LIMIT) -> list[str]:
    """Top billed names. Entries without an order sort after ordered ones."""
    ordered = sorted(cast, key=lambda c: (c.order is None, c.order or 0))
    return [c.name for c in ordered if c.name.strip()][:limit]


def map_genres(genres: list[TmdbGenre]) -> list[str]:
    return [g.name for g in genres]


def parse_date(value: Optional[str]) -> Optional[date]:
    """Lenient date parsing. Anything unparseable maps to None."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


# ── Row builders ─────────────────────────────────────────────────

def movie_values(movie: TmdbMovie) -> dict:
    """Column values for a new Movie row (minus user_id / tmdb_id)."""
    return {
        "title": movie.title,
        "original_title": _blank_to_none(movie.original_title),
        "release_year": map_release_year(movie.release_date),
        "runtime": movie.runtime,
        "poster_path": None,
        "overview": _blank_to_none(movie.overview),
        "genres": map_genres(movie.genres),
        "director": map_director(movie.credits.crew),
        "cast": map_cast(movie.credits.cast),
    }


def tv_show_values(show: TmdbTvShow) -> dict:
    return {
        "title": show.name,
        "original_title": show.original_name,
        "first_air_date": parse_date(show.first_air_date),
        "last_air_date": parse_date(show.last_air_date),
        "status": show.status,
        "overview": show.overview,
        "poster_path": show.poster_path,
        "genres": map_genres(show.genres),
        "network": show.networks[0].name if show.networks else None,
        "cast": map_cast(show.credits.cast),
    }


def season_values(season: TmdbTvSeason) -> dict:
    return {
        "name": season.name,
        "overview": season.overview,
        "air_date": parse_date(season.air_date),
        "poster_path": season.poster_path,
        "episode_count": len(season.episodes),
    }


def episode_values(episode: TmdbEpisode) -> dict:
    return {
        "episode_number": episode.episode_number,
        "name": episode.name,
        "overview": episode.overview,
        "air_date": parse_date(episode.air_date),
        "runtime": episode.runtime,
        "still_path": episode.still_path,
    }
