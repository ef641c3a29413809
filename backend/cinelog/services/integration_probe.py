"""Probe configured integrations on startup and report status."""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from cinelog.clients.tmdb import TmdbClient
from cinelog.config import Settings

logger = logging.getLogger(__name__)


async def probe_all(settings: Settings, engine: AsyncEngine, tmdb: TmdbClient | None = None) -> dict:
    """Check reachability of the database and TMDB. Returns status dict."""
    results = {"database": await _probe_database(engine)}

    if settings.has_tmdb:
        tmdb = tmdb or TmdbClient(settings.tmdb_api_key, timeout=5.0)
        ok = await tmdb.test_connection()
        results["tmdb"] = {"status": "ok" if ok else "error"}
    else:
        results["tmdb"] = {"status": "not_configured"}

    for name, status in results.items():
        if status["status"] != "ok":
            logger.warning(f"Integration {name}: {status}")
    return results


async def _probe_database(engine: AsyncEngine) -> dict:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as e:
        return {"status": "error", "detail": str(e)[:200]}
