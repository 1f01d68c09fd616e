class WebhookError(Exception):
    """Base class for failures on the webhook ingestion path."""


class MalformedPayload(WebhookError):
    """Request body could not be parsed into a mapping."""


class SignatureMismatch(WebhookError):
    """Provided signature does not authenticate the payload."""


class ValidationError(WebhookError):
    """A field required to build a normalized transaction is missing or invalid."""

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class PersistenceFailure(WebhookError):
    """The store rejected or failed a write."""
