"""
Centralized logging and error classification utilities.

This module provides decorators and helpers that keep logging consistent
across the streaming client and the slug helper:

Features:
- Structured logging with contextual key/value information
- Error category classification for log records
- Operation timing for async calls
- Context-carrying loggers for per-call state
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import httpx
import structlog
from pydantic import ValidationError

# Type variables for generic decorators
P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]


def configure_structlog(*, colors: bool = True) -> None:
    """Configure structlog rendering only; stdlib handlers are left alone."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=colors),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(level: str | int = "INFO", *, colors: bool = True) -> None:
    """Configure stdlib logging and structlog rendering, for applications."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format="%(message)s")
    logging.getLogger().setLevel(level)
    configure_structlog(colors=colors)


# Configure structured logging
configure_structlog()

logger = structlog.get_logger(__name__)


class LLMErrorHandler:
    """Maps exceptions to a stable category for log records."""

    @staticmethod
    def classify_error(error: BaseException) -> str:
        """
        Classify an error for logging.

        Args:
            error: The exception to classify

        Returns:
            One of ``timeout_error``, ``transport_error``, ``protocol_error``,
            ``slug_error``, ``configuration_error``, ``validation_error``,
            ``streaming_error`` or ``unknown_error``
        """
        from .llm.exceptions import (
            EmptyResponseError,
            HTTPStatusError,
            ProviderError,
            SlugGenerationError,
            StreamingError,
            TransportError,
        )

        cause = error.__cause__
        if isinstance(error, TimeoutError | httpx.TimeoutException) or isinstance(
            cause, TimeoutError | httpx.TimeoutException
        ):
            return "timeout_error"
        if isinstance(error, TransportError | httpx.TransportError | ConnectionError):
            return "transport_error"
        if isinstance(error, HTTPStatusError | EmptyResponseError):
            return "protocol_error"
        if isinstance(error, SlugGenerationError):
            return "slug_error"
        if isinstance(error, ProviderError):
            return "configuration_error"
        if isinstance(error, ValidationError | ValueError | TypeError):
            return "validation_error"
        if isinstance(error, StreamingError):
            return "streaming_error"
        return "unknown_error"


def log_operation(
    operation: str,
    *,
    log_args: bool = False,
    log_result: bool = False,
    log_timing: bool = True,
    context: dict[str, Any] | None = None,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Decorator for logging async operations with structured context.

    Args:
        operation: Description of the operation being performed
        log_args: Whether to log function arguments
        log_result: Whether to log function result
        log_timing: Whether to log execution timing
        context: Additional context to include in logs

    Returns:
        Decorated function with logging
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            operation_logger = logger.bind(
                operation=operation,
                function=func.__name__,
                **(context or {}),
            )

            log_data = {}
            if log_args:
                log_data.update({"args": args, "kwargs": kwargs})

            operation_logger.info("Operation started", **log_data)
            start_time = time.perf_counter() if log_timing else None

            try:
                result = await func(*args, **kwargs)

                end_log_data: dict[str, Any] = {}
                if log_timing and start_time is not None:
                    duration = round((time.perf_counter() - start_time) * 1000, 2)
                    end_log_data["duration_ms"] = duration
                if log_result:
                    end_log_data["result"] = result

                operation_logger.info(
                    "Operation completed successfully", **end_log_data
                )
                return result

            except Exception as e:
                error_log_data: dict[str, Any] = {
                    "error_type": type(e).__name__,
                    "error_category": LLMErrorHandler.classify_error(e),
                    "error_message": str(e),
                }
                if log_timing and start_time is not None:
                    duration = round((time.perf_counter() - start_time) * 1000, 2)
                    error_log_data["duration_ms"] = duration

                operation_logger.error("Operation failed", **error_log_data)
                raise

        return wrapper
    return decorator


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
    log_timing: bool = True,
):
    """
    Async context manager for operation logging.

    Args:
        operation: Description of the operation
        context: Additional context for logging
        log_timing: Whether to log operation timing

    Yields:
        Bound logger for the operation
    """
    operation_logger = logger.bind(operation=operation, **(context or {}))

    operation_logger.info("Operation started")
    start_time = time.perf_counter() if log_timing else None

    try:
        yield operation_logger

        log_data: dict[str, Any] = {}
        if log_timing and start_time is not None:
            duration = round((time.perf_counter() - start_time) * 1000, 2)
            log_data["duration_ms"] = duration

        operation_logger.info("Operation completed successfully", **log_data)

    except Exception as e:
        error_log_data: dict[str, Any] = {
            "error_type": type(e).__name__,
            "error_category": LLMErrorHandler.classify_error(e),
            "error_message": str(e),
        }
        if log_timing and start_time is not None:
            duration = round((time.perf_counter() - start_time) * 1000, 2)
            error_log_data["duration_ms"] = duration

        operation_logger.error("Operation failed", **error_log_data)
        raise


class ContextualLogger:
    """Logger that maintains context across related operations."""

    def __init__(self, base_context: dict[str, Any] | None = None):
        self.base_context = base_context or {}
        self._logger = logger.bind(**self.base_context)

    def bind(self, **context: Any) -> ContextualLogger:
        """Create a new logger with additional context."""
        return ContextualLogger({**self.base_context, **context})

    def info(self, message: str, **context: Any) -> None:
        self._logger.info(message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._logger.warning(message, **context)

    def error(self, message: str, **context: Any) -> None:
        self._logger.error(message, **context)

    def debug(self, message: str, **context: Any) -> None:
        self._logger.debug(message, **context)
