"""Error handling for the trend pipeline.

Failures are isolated per topic: a topic that cannot be scored is logged and
skipped, and the next topic is processed as usual. This module provides the
exception taxonomy, an async retry decorator for flaky collaborators and a
context manager that times and logs one unit of topic work.

Key Components:
- Exception classes for pipeline, collaborator and filter failures
- Async retry decorator with exponential backoff
- TopicContext for per-topic logging
"""

import asyncio
import logging
import time
from functools import wraps
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class TrendPipelineError(Exception):
    """Base exception for trend pipeline errors."""

    def __init__(self, message: str, topic: Optional[str] = None, **context):
        """Initialize pipeline error with context.

        Args:
            message: Error message
            topic: Topic being processed when the error occurred
            **context: Additional context information
        """
        super().__init__(message)
        self.topic = topic
        self.context = context
        self.timestamp = time.time()

    def __str__(self):
        base = super().__str__()
        if self.topic:
            return f"[{self.topic}] {base}"
        return base


class TopicProcessingError(TrendPipelineError):
    """A topic could not be scored or persisted."""


class CollaboratorError(TrendPipelineError):
    """An external collaborator (document source, LLM, database) failed."""

    def __init__(
        self,
        message: str,
        source: str,
        status_code: Optional[int] = None,
        topic: Optional[str] = None,
        **context,
    ):
        """Initialize collaborator error.

        Args:
            message: Error message
            source: Name of the collaborator that failed
            status_code: HTTP status code if applicable
            topic: Topic being processed
            **context: Additional context
        """
        super().__init__(message, topic, **context)
        self.source = source
        self.status_code = status_code


class SemanticFilterError(CollaboratorError):
    """The semantic filter returned nothing usable."""

    def __init__(self, message: str, topic: Optional[str] = None, **context):
        super().__init__(message, source="semantic_filter", topic=topic, **context)


def async_retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: tuple = (Exception,),
):
    """Decorator to retry a coroutine function with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay in seconds before first retry
        backoff_factor: Multiplier for delay between retries
        exceptions: Tuple of exception types to catch and retry

    Returns:
        Decorated coroutine function with retry logic

    Example:
        @async_retry_with_backoff(max_retries=2, exceptions=(httpx.TransportError,))
        async def fetch():
            ...
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            delay = initial_delay
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < max_retries:
                        logger.warning(
                            "Attempt %d/%d failed for %s: %s. Retrying in %.2fs...",
                            attempt + 1,
                            max_retries + 1,
                            func.__name__,
                            e,
                            delay,
                        )
                        await asyncio.sleep(delay)
                        delay *= backoff_factor
                    else:
                        logger.error(
                            "All %d attempts failed for %s: %s", max_retries + 1, func.__name__, e
                        )

            raise last_exception

        return wrapper

    return decorator


class TopicContext:
    """Context manager timing and logging the processing of one topic.

    Usage:
        with TopicContext("score_topic", topic="ai") as ctx:
            ctx.add_info("documents", 42)
    """

    def __init__(self, operation: str, topic: Optional[str] = None):
        self.operation = operation
        self.topic = topic
        self.info: dict[str, Any] = {}
        self.start_time: Optional[float] = None

    def __enter__(self):
        self.start_time = time.time()
        logger.debug("Starting %s", self.operation, extra={"extra_fields": {"topic": self.topic}})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.time() - self.start_time if self.start_time else 0

        if exc_type is None:
            logger.debug(
                "%s completed in %.2fs",
                self.operation,
                duration,
                extra={"extra_fields": {"topic": self.topic, **self.info}},
            )
        else:
            logger.error(
                "%s failed after %.2fs: %s",
                self.operation,
                duration,
                exc_val,
                extra={"extra_fields": {"topic": self.topic, **self.info}},
            )

        # Don't suppress the exception
        return False

    def add_info(self, key: str, value: Any):
        self.info[key] = value


__all__ = [
    "TrendPipelineError",
    "TopicProcessingError",
    "CollaboratorError",
    "SemanticFilterError",
    "async_retry_with_backoff",
    "TopicContext",
]
