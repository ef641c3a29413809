"""Jellyfin webhook setup endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel
from typing import Optional

from cinelog.database import get_db
from cinelog.models.tables import WebhookConfig
from cinelog.services.webhook_config import (
    disable_webhook_config, get_webhook_config, issue_webhook_config,
)

router = APIRouter()


class WebhookSetup(BaseModel):
    username_filter: Optional[str] = None


def _config_response(config: WebhookConfig) -> dict:
    return {
        "user_id": config.user_id,
        "api_key": config.api_key,
        "is_enabled": config.is_enabled,
        "username_filter": config.username_filter,
    }


@router.get("/setup/webhook/{user_id}")
async def webhook_status(user_id: str, db: AsyncSession = Depends(get_db)):
    """Current webhook config for a user."""
    config = await get_webhook_config(db, user_id)
    if config is None:
        raise HTTPException(404, f"No webhook configured for user {user_id}")
    return _config_response(config)


@router.post("/setup/webhook/{user_id}")
async def enable_webhook(
    user_id: str,
    body: Optional[WebhookSetup] = None,
    db: AsyncSession = Depends(get_db),
):
    """Enable the webhook, issuing the API key Jellyfin sends as ``x-api-key``."""
    config = await issue_webhook_config(db, user_id, (body or WebhookSetup()).username_filter)
    return _config_response(config)


@router.delete("/setup/webhook/{user_id}")
async def disable_webhook(user_id: str, db: AsyncSession = Depends(get_db)):
    """Disable the webhook; deliveries get 403 until it is re-enabled."""
    try:
        config = await disable_webhook_config(db, user_id)
    except LookupError as e:
        raise HTTPException(404, str(e))
    return _config_response(config)
