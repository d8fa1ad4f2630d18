"""
Streaming-specific dataclasses for SSE ingestion.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class StreamState(Enum):
    """Lifecycle of one streaming call."""
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERRORED = "errored"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (StreamState.COMPLETED, StreamState.ERRORED, StreamState.ABORTED)


@dataclass(frozen=True)
class EventFrame:
    """One dispatched Server-Sent Event."""
    data: str
    event: str | None = None
    id: str | None = None
    retry: int | None = None


@dataclass(frozen=True)
class StreamChunk:
    """Content delta together with the accumulated text so far."""
    content: str
    accumulated_content: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class AccumulatorState:
    """Mutable state for chunk accumulation."""
    content_buffer: str = ""
    total_payloads: int = 0
    content_chunks: int = 0
    error_chunks: int = 0
    done_markers: int = 0
    first_chunk_time: float | None = None
    last_chunk_time: float | None = None

    def update_timing(self, timestamp: float) -> None:
        """Update timing information for latency tracking."""
        if self.first_chunk_time is None:
            self.first_chunk_time = timestamp
        self.last_chunk_time = timestamp

    @property
    def streaming_duration(self) -> float:
        """Time between the first and the last content delta."""
        if self.first_chunk_time is None or self.last_chunk_time is None:
            return 0.0
        return self.last_chunk_time - self.first_chunk_time
