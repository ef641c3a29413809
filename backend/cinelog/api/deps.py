"""Per-request dependencies shared by the routers."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cinelog.clients.tmdb import TmdbClient
from cinelog.config import settings
from cinelog.database import get_db
from cinelog.services.gateway import WebhookGateway


def get_tmdb_client() -> TmdbClient:
    return TmdbClient(
        settings.tmdb_api_key,
        language=settings.tmdb_language,
        timeout=settings.tmdb_timeout_seconds,
    )


def get_webhook_gateway(
    db: AsyncSession = Depends(get_db),
    tmdb: TmdbClient = Depends(get_tmdb_client),
) -> WebhookGateway:
    """One session and one TMDB client for the whole delivery."""
    return WebhookGateway(db, tmdb)
