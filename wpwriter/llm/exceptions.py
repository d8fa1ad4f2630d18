"""
Error handling for LLM operations.

Every failure that ends a call carries rich context:
- Provider and model that were being called
- HTTP status code and response body where one exists
- The underlying httpx exception as ``__cause__`` for transport failures
"""

from __future__ import annotations


class LLMError(Exception):
    """Base LLM error with rich context."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        model: str = "unknown",
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.response_data = response_data or {}


class TransportError(LLMError):
    """Request could not be sent or the response could not be read."""


class HTTPStatusError(LLMError):
    """Endpoint answered with a status outside the success range."""

    def __init__(
        self,
        message: str,
        status_code: int,
        response_text: str = "",
        **kwargs,
    ):
        super().__init__(message, status_code=status_code, **kwargs)
        self.response_text = response_text


class EmptyResponseError(LLMError):
    """Response carried no body where a stream was expected."""


class StreamingError(LLMError):
    """Streaming-specific errors."""


class SlugGenerationError(LLMError):
    """No usable slug could be extracted from the endpoint's answer."""


class ProviderError(LLMError):
    """Provider-specific configuration or setup errors."""
