"""Error taxonomy for the chat endpoint.

Every error carries the HTTP status it maps to and the message that is
returned to the caller in the ``{"error": ...}`` body.
"""

from __future__ import annotations


class ChatError(Exception):
    """Base class for failures surfaced by the chat endpoint."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ChatError):
    """The request was rejected before reaching the pipeline."""

    status_code = 400
    default_message = "Invalid request"


class InvalidRequestBody(ValidationError):
    default_message = "Invalid request body"


class EmptyQuery(ValidationError):
    default_message = "Query is required"


class QueryTooLong(ValidationError):
    def __init__(self, max_length: int) -> None:
        self.max_length = max_length
        super().__init__(f"Query too long. Maximum {max_length} characters allowed.")


class RateLimitExceeded(ChatError):
    status_code = 429
    default_message = "Rate limit exceeded. Please wait a minute."

    def __init__(self, retry_after: int = 60) -> None:
        self.retry_after = retry_after
        super().__init__()


class ConfigurationMissing(ChatError):
    """A provider credential or endpoint required at request time is unset."""

    def __init__(self, setting: str) -> None:
        self.setting = setting
        super().__init__(f"{setting} not configured")


class CollaboratorError(ChatError):
    """Failure reported by one of the external services."""


class EmbeddingError(CollaboratorError):
    pass


class SearchError(CollaboratorError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Search error: {detail}")


class TitleLookupError(CollaboratorError):
    pass


class GenerationError(CollaboratorError):
    pass


__all__ = [
    "ChatError",
    "CollaboratorError",
    "ConfigurationMissing",
    "EmbeddingError",
    "EmptyQuery",
    "GenerationError",
    "InvalidRequestBody",
    "QueryTooLong",
    "RateLimitExceeded",
    "SearchError",
    "TitleLookupError",
    "ValidationError",
]
