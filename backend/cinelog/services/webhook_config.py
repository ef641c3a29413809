"""Webhook configuration issuance and toggling.

Exposed to the settings UI through the setup router; this is the only
writer of WebhookConfig rows.
"""

import logging
import secrets
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cinelog.models.tables import WebhookConfig

logger = logging.getLogger(__name__)


def generate_api_key() -> str:
    """64 hex characters (32 random bytes)."""
    return secrets.token_hex(32)


async def get_webhook_config(db: AsyncSession, user_id: str) -> Optional[WebhookConfig]:
    result = await db.execute(select(WebhookConfig).where(WebhookConfig.user_id == user_id))
    return result.scalar_one_or_none()


async def issue_webhook_config(
    db: AsyncSession,
    user_id: str,
    username_filter: Optional[str] = None,
) -> WebhookConfig:
    """Enable the webhook for a user, issuing an API key on first use.

    An existing config keeps its key and is re-enabled.
    """
    config = await get_webhook_config(db, user_id)
    if config is None:
        config = WebhookConfig(user_id=user_id, api_key=generate_api_key())
        db.add(config)
        logger.info(f"Issued webhook API key for user {user_id}")

    config.is_enabled = True
    config.username_filter = (username_filter or "").strip() or None
    await db.commit()
    return config


async def disable_webhook_config(db: AsyncSession, user_id: str) -> WebhookConfig:
    config = await get_webhook_config(db, user_id)
    if config is None:
        raise LookupError(f"No webhook configured for user {user_id}")

    config.is_enabled = False
    await db.commit()
    logger.info(f"Disabled webhook for user {user_id}")
    return config
