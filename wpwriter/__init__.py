"""AI writing core: streaming chat ingestion and slug generation."""

from __future__ import annotations

from .config import Configuration, ProviderSettings
from .llm import (
    CancellationToken,
    ChatMessage,
    LLMError,
    StreamCallbacks,
    StreamingChatClient,
    StreamOutcome,
    StreamRequestConfig,
    StreamState,
    generate_seo_slug,
    send_chat_stream,
)

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "ChatMessage",
    "Configuration",
    "LLMError",
    "ProviderSettings",
    "StreamCallbacks",
    "StreamOutcome",
    "StreamRequestConfig",
    "StreamState",
    "StreamingChatClient",
    "generate_seo_slug",
    "send_chat_stream",
]
