"""Error taxonomy for the webhook pipeline.

Every error carries the HTTP status and the message rendered to the media
server as ``{"error": message}``. Skipped events are not errors; see
``cinelog.services.gateway.WebhookResult``.
"""


class WebhookError(Exception):
    """Base class for failures that terminate a webhook delivery."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(WebhookError):
    status_code = 401
    default_message = "Invalid API key"


class AuthorizationError(WebhookError):
    status_code = 403
    default_message = "Webhook is disabled"


class ValidationError(WebhookError):
    status_code = 400
    default_message = "Invalid JSON body"


class MetadataError(WebhookError):
    """TMDB could not supply the metadata needed to create a catalog entry."""


class MetadataNotFound(MetadataError):
    default_message = "Not found on TMDB"


class MetadataFetchError(MetadataError):
    default_message = "Failed to fetch details from TMDB"


class UnclassifiedError(WebhookError):
    """Anything unexpected. The original exception is chained as __cause__."""
