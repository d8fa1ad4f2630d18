"""
Streaming functionality for LLM clients.

- SSE frame parsing independent of chunk boundaries
- Append-only accumulation of chat-completion deltas
"""

from __future__ import annotations

from .models import AccumulatorState, EventFrame, StreamChunk, StreamState
from .parser import (
    BATCH_SEPARATOR,
    DONE_SENTINEL,
    ChunkAccumulator,
    SSEFrameParser,
    split_batched_payload,
)

__all__ = [
    "BATCH_SEPARATOR",
    "DONE_SENTINEL",
    "AccumulatorState",
    "ChunkAccumulator",
    "EventFrame",
    "SSEFrameParser",
    "StreamChunk",
    "StreamState",
    "split_batched_payload",
]
