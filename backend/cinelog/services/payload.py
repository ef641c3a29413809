"""Parsing of Jellyfin webhook bodies.

The Jellyfin webhook plugin renders its payload from a user-editable
template, so every field may arrive as a number, a numeric string, an
empty string or not at all. Parsing never raises for field content:
it yields either a validated event or a ParseFailure explaining why
the delivery has to be skipped. Only an undecodable body is an error.
"""

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from cinelog.errors import ValidationError

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass(frozen=True)
class PlaybackEvent:
    """A movie playback-stop notification."""
    tmdb_id: int
    total_ticks: int = 0
    current_ticks: int = 0
    username: Optional[str] = None

    @property
    def watch_percentage(self) -> float:
        if self.total_ticks <= 0:
            return 0.0
        return self.current_ticks / self.total_ticks


@dataclass(frozen=True)
class EpisodePlaybackEvent(PlaybackEvent):
    """An episode playback-stop notification. tmdb_id is the show's id."""
    season_number: int = 0
    episode_number: int = 0


@dataclass(frozen=True)
class ParseFailure:
    reason: str


MovieParseResult = Union[PlaybackEvent, ParseFailure]
EpisodeParseResult = Union[EpisodePlaybackEvent, ParseFailure]


def _json_int(literal: str) -> Optional[int]:
    # Literals past the interpreter's int-string digit limit read as unusable
    try:
        return int(literal)
    except ValueError:
        return None


def decode_body(raw: bytes) -> dict[str, Any]:
    """Decode the request body. Non-object JSON decodes to an empty payload."""
    try:
        body = json.loads(raw, parse_int=_json_int)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError("Invalid JSON body") from e
    return body if isinstance(body, dict) else {}


def coerce_int(value: Any) -> Optional[int]:
    """Integer from a number or a string with a leading integer, else None.

    "603" -> 603, "42abc" -> 42, 8e9 -> 8000000000, "abc" / None / True -> None.
    Digit runs too long to convert are unusable too.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if not match:
            return None
        try:
            return int(match.group(1))
        except ValueError:
            return None
    return None


def _ticks(body: dict, name: str) -> int:
    return coerce_int(body.get(name)) or 0


def _username(body: dict) -> Optional[str]:
    value = body.get("NotificationUsername") or body.get("notificationUsername")
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _tmdb_id(body: dict) -> Optional[int]:
    tmdb_id = coerce_int(body.get("tmdbId"))
    return tmdb_id if tmdb_id and tmdb_id > 0 else None


def parse_movie_event(body: dict[str, Any]) -> MovieParseResult:
    tmdb_id = _tmdb_id(body)
    if tmdb_id is None:
        return ParseFailure("no TMDB ID available")

    return PlaybackEvent(
        tmdb_id=tmdb_id,
        total_ticks=_ticks(body, "totalRunTimeInTicks"),
        current_ticks=_ticks(body, "currentRunTimeInTicks"),
        username=_username(body),
    )


def parse_episode_event(body: dict[str, Any]) -> EpisodeParseResult:
    tmdb_id = _tmdb_id(body)
    season_number = coerce_int(body.get("seasonNumber"))
    episode_number = coerce_int(body.get("episodeNumber"))

    # Season 0 holds specials; episode numbering starts at 1
    if (
        tmdb_id is None
        or season_number is None or season_number < 0
        or episode_number is None or episode_number < 1
    ):
        return ParseFailure("missing required fields (tmdbId, seasonNumber, episodeNumber)")

    return EpisodePlaybackEvent(
        tmdb_id=tmdb_id,
        total_ticks=_ticks(body, "totalRunTimeInTicks"),
        current_ticks=_ticks(body, "currentRunTimeInTicks"),
        username=_username(body),
        season_number=season_number,
        episode_number=episode_number,
    )
