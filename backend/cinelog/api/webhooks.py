"""Webhook receivers for Jellyfin playback events."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from cinelog.api.deps import get_webhook_gateway
from cinelog.services.gateway import WebhookGateway

router = APIRouter()


@router.post("/webhooks/jellyfin")
async def jellyfin_movie_webhook(
    request: Request,
    x_api_key: Optional[str] = Header(default=None),
    gateway: WebhookGateway = Depends(get_webhook_gateway),
):
    """Jellyfin sends movie playback-stop events here.

    Configure in Jellyfin: Dashboard → Plugins → Webhook → Generic Destination
    URL: http://<cinelog>/api/v1/webhooks/jellyfin, header ``x-api-key``,
    template fields tmdbId, totalRunTimeInTicks, currentRunTimeInTicks.
    """
    result = await gateway.handle_movie_playback_event(x_api_key, await request.body())
    return result.to_response()


@router.post("/webhooks/jellyfin/tv")
async def jellyfin_episode_webhook(
    request: Request,
    x_api_key: Optional[str] = Header(default=None),
    gateway: WebhookGateway = Depends(get_webhook_gateway),
):
    """Episode playback-stop events. The template adds seasonNumber and episodeNumber;
    tmdbId is the series' TMDB id."""
    result = await gateway.handle_episode_playback_event(x_api_key, await request.body())
    return result.to_response()
