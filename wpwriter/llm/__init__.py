"""
LLM integration for article authoring.

This package provides:
- Streaming chat completions over SSE with cooperative cancellation
- SEO slug generation for article titles
- Typed errors with provider, model and status context
"""

from __future__ import annotations

from .client import (
    CancellationToken,
    ChatStreamSession,
    StreamingChatClient,
    send_chat_stream,
)
from .exceptions import (
    EmptyResponseError,
    HTTPStatusError,
    LLMError,
    ProviderError,
    SlugGenerationError,
    StreamingError,
    TransportError,
)
from .models import (
    ChatMessage,
    MessageRole,
    StreamCallbacks,
    StreamOutcome,
    StreamRequestConfig,
)
from .slug import fallback_slug, generate_seo_slug, generate_seo_slug_or_fallback
from .streaming import EventFrame, SSEFrameParser, StreamState

__all__ = [
    # Client
    "CancellationToken",
    "ChatStreamSession",
    "StreamingChatClient",
    "send_chat_stream",
    # Models
    "ChatMessage",
    "EventFrame",
    "MessageRole",
    "SSEFrameParser",
    "StreamCallbacks",
    "StreamOutcome",
    "StreamRequestConfig",
    "StreamState",
    # Exceptions
    "EmptyResponseError",
    "HTTPStatusError",
    "LLMError",
    "ProviderError",
    "SlugGenerationError",
    "StreamingError",
    "TransportError",
    # Slugs
    "fallback_slug",
    "generate_seo_slug",
    "generate_seo_slug_or_fallback",
]
