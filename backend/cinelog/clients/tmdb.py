"""TMDB client — movie, TV show and season metadata.

Only the three lookups the watch pipeline needs: movie with credits,
show with credits, and a season with its embedded episode list.
Responses are validated into pydantic models so the mapping code
works on typed data.
"""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, Field

from cinelog.errors import MetadataError, MetadataFetchError, MetadataNotFound

logger = logging.getLogger(__name__)


# ── Response models ──────────────────────────────────────────────

class TmdbGenre(BaseModel):
    id: int
    name: str


class TmdbCastMember(BaseModel):
    name: str
    order: Optional[int] = None


class TmdbCrewMember(BaseModel):
    name: str
    job: Optional[str] = None


class TmdbCredits(BaseModel):
    cast: list[TmdbCastMember] = Field(default_factory=list)
    crew: list[TmdbCrewMember] = Field(default_factory=list)


class TmdbMovie(BaseModel):
    id: int
    title: str
    original_title: Optional[str] = None
    release_date: Optional[str] = None
    runtime: Optional[int] = None
    poster_path: Optional[str] = None
    overview: Optional[str] = None
    genres: list[TmdbGenre] = Field(default_factory=list)
    credits: TmdbCredits = Field(default_factory=TmdbCredits)


class TmdbNetwork(BaseModel):
    name: str


class TmdbTvShow(BaseModel):
    id: int
    name: str
    original_name: Optional[str] = None
    first_air_date: Optional[str] = None
    last_air_date: Optional[str] = None
    status: Optional[str] = None
    overview: Optional[str] = None
    poster_path: Optional[str] = None
    genres: list[TmdbGenre] = Field(default_factory=list)
    networks: list[TmdbNetwork] = Field(default_factory=list)
    credits: TmdbCredits = Field(default_factory=TmdbCredits)


class TmdbEpisode(BaseModel):
    id: int
    episode_number: int
    name: Optional[str] = None
    overview: Optional[str] = None
    air_date: Optional[str] = None
    runtime: Optional[int] = None
    still_path: Optional[str] = None


class TmdbTvSeason(BaseModel):
    id: int
    season_number: int
    name: Optional[str] = None
    overview: Optional[str] = None
    air_date: Optional[str] = None
    poster_path: Optional[str] = None
    episodes: list[TmdbEpisode] = Field(default_factory=list)

    def find_episode(self, episode_number: int) -> Optional[TmdbEpisode]:
        return next((e for e in self.episodes if e.episode_number == episode_number), None)


# ── Client ───────────────────────────────────────────────────────

class TmdbClient:
    """The Movie Database API v3 client."""

    BASE_URL = "https://api.themoviedb.org/3"

    def __init__(
        self,
        api_key: Optional[str],
        language: str = "en-US",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or ""
        self.language = language
        self.timeout = timeout
        self._transport = transport
        # Detect auth mode: JWT (v4 bearer) vs plain key (v3 query param)
        self._is_bearer = self.api_key.startswith("eyJ")

    async def _get(self, path: str, kind: str, params: dict | None = None) -> dict:
        """Make authenticated GET request to TMDB.

        A 404 becomes MetadataNotFound, any other failure (bad status or
        transport error) becomes MetadataFetchError. ``kind`` is the
        human-readable entity name used in the error message.
        """
        if not self.api_key:
            raise MetadataFetchError("TMDB API key not configured")

        all_params = {"language": self.language, **(params or {})}
        headers = {}

        if self._is_bearer:
            headers["Authorization"] = f"Bearer {self.api_key}"
        else:
            all_params["api_key"] = self.api_key

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(f"{self.BASE_URL}{path}", params=all_params, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"TMDB request {path} failed: {e}")
            raise MetadataFetchError(f"Failed to fetch {kind} details from TMDB") from e

        if resp.status_code == 404:
            raise MetadataNotFound(f"{kind[:1].upper()}{kind[1:]} not found on TMDB")
        if resp.is_error:
            logger.warning(f"TMDB request {path} returned {resp.status_code}")
            raise MetadataFetchError(f"Failed to fetch {kind} details from TMDB")
        return resp.json()

    # ── Movie details ────────────────────────────────────────────

    async def get_movie(self, tmdb_id: int | str) -> TmdbMovie:
        """Movie details with credits."""
        data = await self._get(f"/movie/{tmdb_id}", "movie", {"append_to_response": "credits"})
        return TmdbMovie.model_validate(data)

    # ── TV details ───────────────────────────────────────────────

    async def get_tv_show(self, tmdb_id: int | str) -> TmdbTvShow:
        """TV show details with credits."""
        data = await self._get(f"/tv/{tmdb_id}", "TV show", {"append_to_response": "credits"})
        return TmdbTvShow.model_validate(data)

    async def get_tv_season(self, tmdb_id: int | str, season_number: int) -> TmdbTvSeason:
        """Season details including the full episode list, in one call."""
        data = await self._get(f"/tv/{tmdb_id}/season/{season_number}", "TV season")
        return TmdbTvSeason.model_validate(data)

    # ── Test connection ──────────────────────────────────────────

    async def test_connection(self) -> bool:
        """Test TMDB API key validity."""
        try:
            await self._get("/configuration", "configuration")
            return True
        except MetadataError:
            return False
