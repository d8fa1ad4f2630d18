"""
Core chat dataclasses shared by the streaming client and the slug helper.

This module provides:
- Message structures sent to OpenAI-compatible endpoints
- The request description for one streaming call
- Caller callbacks and the settled outcome of a call
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

from .streaming.models import EventFrame, StreamState

if TYPE_CHECKING:
    from .client import CancellationToken

DEFAULT_STREAM_TIMEOUT = 60.0


class MessageRole(str, Enum):
    """OpenAI-compatible message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """One message of the conversation sent to the remote model."""
    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    id: str | None = None

    def to_payload(self) -> dict[str, str]:
        """Wire shape; the caller-side ``id`` is never sent."""
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class StreamRequestConfig:
    """Fully specifies one streaming call."""
    endpoint: str
    messages: Sequence[ChatMessage]
    api_key: str | None = None
    model: str | None = None
    # Legacy credential, only sent when no api_key is present
    app_id: str | None = None
    timeout: float = DEFAULT_STREAM_TIMEOUT
    cancellation_token: CancellationToken | None = None

    def build_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        elif self.app_id:
            headers["X-App-Id"] = self.app_id
        return headers

    def build_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "messages": [message.to_payload() for message in self.messages],
            "stream": True,
        }
        if self.model:
            payload["model"] = self.model
        return payload


@dataclass(frozen=True)
class StreamCallbacks:
    """Caller-supplied hooks for one streaming call."""
    on_update: Callable[[str], None]
    on_complete: Callable[[], None]
    on_error: Callable[[Exception], None]
    on_aborted: Callable[[], None] | None = None
    on_event: Callable[[EventFrame], None] | None = None
    on_retry: Callable[[int], None] | None = None


@dataclass(frozen=True)
class StreamOutcome:
    """Settled result of a streaming call."""
    state: StreamState
    content: str
    error: Exception | None = None
    stats: dict[str, int] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.state is StreamState.COMPLETED
