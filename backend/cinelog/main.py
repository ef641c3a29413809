"""Cinelog — FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cinelog import __version__
from cinelog.config import settings
from cinelog.errors import MetadataError, WebhookError
from cinelog.api import health, setup, webhooks

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup: create tables, probe integrations
    from cinelog.database import engine, init_db
    from cinelog.services.integration_probe import probe_all

    await init_db()
    app.state.integrations = await probe_all(settings, engine)
    yield
    # Shutdown: release pooled connections
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="Personal media tracking backend — Jellyfin watch reconciliation",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
)


@app.exception_handler(WebhookError)
async def webhook_error_handler(request: Request, exc: WebhookError):
    """Render pipeline failures as ``{"error": message}`` with their status."""
    # Unexpected errors are logged with their traceback where they get wrapped
    if isinstance(exc, MetadataError):
        logger.error(f"{request.url.path} failed with {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# ── Mount routers ────────────────────────────────────────────────
app.include_router(health.router,    prefix="/api/v1", tags=["system"])
app.include_router(webhooks.router,  prefix="/api/v1", tags=["webhooks"])
app.include_router(setup.router,     prefix="/api/v1", tags=["setup"])
