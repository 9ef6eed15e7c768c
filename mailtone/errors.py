"""Error taxonomy for the tone-aware auto-reply pipeline."""


class ValidationError(ValueError):
    """Raised when an inbound message is malformed (missing from/to).

    Raised before the message enters the lifecycle, so nothing is stored.
    Not a MailtoneError; callers report it as a rejected request, not a
    processing failure.
    """


class MailtoneError(Exception):
    """Base class for failures raised while processing a stored message."""


class ClassificationError(MailtoneError):
    """Raised when the tone classifier fails for a message."""


class PersistenceError(MailtoneError):
    """Raised when the message store is unavailable or a write fails."""


class TemplateNotFound(MailtoneError, KeyError):
    """Raised when a template key is absent from the template store."""

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"template {self.key!r} not found"


class ReplyDeliveryError(MailtoneError):
    """Raised when the reply transport fails to send a reply."""


class InvalidTransitionError(MailtoneError):
    """Raised when a lifecycle transition is not allowed from the current status."""
