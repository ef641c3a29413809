"""Webhook gateway — turns a Jellyfin playback-stop delivery into a watch.

Flow per delivery: authenticate the API key, decode and parse the body,
apply the completion threshold, then resolve the catalog entry and record
the watch. Deliveries that cannot or should not produce a watch are
reported as skipped with a 200, since Jellyfin retries anything else.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cinelog.clients.tmdb import TmdbClient
from cinelog.errors import (
    AuthenticationError, AuthorizationError, UnclassifiedError, WebhookError,
)
from cinelog.models.tables import WebhookConfig
from cinelog.services.catalog import CatalogResolver
from cinelog.services.payload import (
    ParseFailure, PlaybackEvent, decode_body, parse_episode_event, parse_movie_event,
)
from cinelog.services.recorder import WatchRecorder

logger = logging.getLogger(__name__)

WATCH_THRESHOLD = 0.75  # fraction of runtime that counts as a watch


@dataclass
class WebhookResult:
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    skipped: bool = False

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": True, "message": self.message}
        if self.skipped:
            body["skipped"] = True
        else:
            body["data"] = self.data
        return body


class WebhookGateway:
    """Entry point for both Jellyfin webhook variants (movie and episode)."""

    def __init__(self, db: AsyncSession, tmdb: TmdbClient):
        self.db = db
        self.resolver = CatalogResolver(tmdb, db)
        self.recorder = WatchRecorder(db)

    async def authenticate(self, api_key: Optional[str]) -> WebhookConfig:
        if not api_key or not api_key.strip():
            logger.info("Rejected webhook: missing API key")
            raise AuthenticationError("Missing API key")

        result = await self.db.execute(
            select(WebhookConfig).where(WebhookConfig.api_key == api_key.strip())
        )
        config = result.scalar_one_or_none()
        if config is None:
            logger.info("Rejected webhook: invalid API key")
            raise AuthenticationError("Invalid API key")
        if not config.is_enabled:
            logger.info(f"Rejected webhook for user {config.user_id}: webhook disabled")
            raise AuthorizationError("Webhook is disabled")
        return config

    # ── Entry points ─────────────────────────────────────────────

    async def handle_movie_playback_event(self, api_key: Optional[str], raw_body: bytes) -> WebhookResult:
        return await self._guard("movie", self._handle_movie(api_key, raw_body))

    async def handle_episode_playback_event(self, api_key: Optional[str], raw_body: bytes) -> WebhookResult:
        return await self._guard("episode", self._handle_episode(api_key, raw_body))

    async def _handle_movie(self, api_key: Optional[str], raw_body: bytes) -> WebhookResult:
        config = await self.authenticate(api_key)
        event = parse_movie_event(decode_body(raw_body))

        skip = self._skip_reason(config, event)
        if skip:
            logger.info(f"Skipping movie webhook for user {config.user_id}: {skip}")
            return WebhookResult(message=f"Webhook processed but skipped - {skip}", skipped=True)

        movie = await self.resolver.resolve_movie(config.user_id, event.tmdb_id)
        watch = await self.recorder.record_movie_watch(config.user_id, movie)
        return WebhookResult(
            message=f'Watch tracked for "{movie.title}"',
            data={"movieId": movie.id, "watchId": watch.id, "movieTitle": movie.title},
        )

    async def _handle_episode(self, api_key: Optional[str], raw_body: bytes) -> WebhookResult:
        config = await self.authenticate(api_key)
        event = parse_episode_event(decode_body(raw_body))

        skip = self._skip_reason(config, event)
        if skip:
            logger.info(f"Skipping episode webhook for user {config.user_id}: {skip}")
            return WebhookResult(message=f"Webhook processed but skipped - {skip}", skipped=True)

        resolved = await self.resolver.resolve_episode(
            config.user_id, event.tmdb_id, event.season_number, event.episode_number,
        )
        watch = await self.recorder.record_episode_watch(
            config.user_id, resolved.show, resolved.episode,
        )
        return WebhookResult(
            message=(
                f'Watch tracked for "{resolved.show.title}" '
                f"S{event.season_number}E{event.episode_number}"
            ),
            data={
                "tvShowId": resolved.show.id,
                "seasonId": resolved.season.id,
                "episodeId": resolved.episode.id,
                "watchId": watch.id,
            },
        )

    # ── Helpers ──────────────────────────────────────────────────

    def _skip_reason(
        self,
        config: WebhookConfig,
        event: Union[PlaybackEvent, ParseFailure],
    ) -> Optional[str]:
        if isinstance(event, ParseFailure):
            return event.reason

        pct = event.watch_percentage
        if pct < WATCH_THRESHOLD:
            return f"watch percentage {pct * 100:.2f}% below {WATCH_THRESHOLD * 100:.0f}% threshold"

        wanted = (config.username_filter or "").strip()
        if wanted and (event.username or "").lower() != wanted.lower():
            return f"user {event.username!r} does not match username filter"
        return None

    async def _guard(self, kind: str, handler: Awaitable[WebhookResult]) -> WebhookResult:
        """Let classified errors through, wrap everything else as UnclassifiedError."""
        try:
            return await handler
        except WebhookError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error while tracking {kind} watch")
            raise UnclassifiedError() from e
