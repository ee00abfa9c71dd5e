#!/usr/bin/env python3
"""
Error handling and retry utilities for podforge.
"""

import logging
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import get_config
from .domain.enums import BoardErrorType
from .logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

INVALID_RESOURCE_CODE = "INVALID_RESOURCE"

# Messages the generation service uses when it refuses a source outright
INVALID_RESOURCE_MARKERS = (
    INVALID_RESOURCE_CODE,
    "invalid resource",
    "could not import",
    "unable to import",
    "source could not be added",
    "source failed to process",
    "source processing failed",
)


class PodforgeError(Exception):
    """Base exception for podforge-specific errors."""

    pass


class ValidationError(PodforgeError):
    """Raised when data validation fails."""

    pass


class NetworkError(PodforgeError):
    """Raised when network operations fail."""

    pass


class AudioError(PodforgeError):
    """Raised when audio processing fails."""

    pass


class RateLimitLogError(PodforgeError):
    """Raised when the generation rate log cannot be read or written.

    Always fatal for a batch: treating an unreadable log as empty would
    under-count usage.
    """

    pass


class QuotaExhaustedError(PodforgeError):
    """Raised when no generation slot is left at the moment of generation."""

    pass


class GenerationError(PodforgeError):
    """Raised when the generation adapter fails."""

    pass


class NotebookLMCliError(GenerationError):
    """Raised when a notebooklm CLI invocation fails."""

    def __init__(self, message: str, stderr: str = "", command: str = ""):
        super().__init__(message)
        self.stderr = stderr
        self.command = command

    def __str__(self) -> str:
        base = super().__str__()
        if self.stderr:
            return f"{base}: {self.stderr.strip()}"
        return base


class InvalidResourceError(GenerationError):
    """Raised when the generation service explicitly rejects a source."""

    code = INVALID_RESOURCE_CODE

    def __init__(self, message: str, source_url: Optional[str] = None):
        super().__init__(message)
        self.source_url = source_url


class BoardError(PodforgeError):
    """Raised when the work-item board cannot be read or updated."""

    def __init__(self, error_type: BoardErrorType, message: str, cause: Any = None):
        super().__init__(message)
        self.error_type = error_type
        self.cause = cause


class PublishError(PodforgeError):
    """Raised when an episode cannot be uploaded."""

    pass


def is_invalid_resource_error(exc: BaseException) -> bool:
    """Check whether an exception means the source can never be processed.

    The structured ``InvalidResourceError`` is authoritative. Adapters that
    only surface text are matched against the known rejection messages.
    """
    if isinstance(exc, InvalidResourceError):
        return True
    if getattr(exc, "code", None) == INVALID_RESOURCE_CODE:
        return True
    message = str(exc).lower()
    return any(marker.lower() in message for marker in INVALID_RESOURCE_MARKERS)


def with_async_retries(
    stop_after: Optional[int] = None,
    wait_multiplier: float = 1.0,
    wait_min: float = 2.0,
    wait_max: float = 10.0,
    retry_on: Tuple[Type[Exception], ...] = (
        httpx.TransportError,
        NetworkError,
    ),
) -> Callable[[F], F]:
    """
    Decorator to add retry logic to coroutine functions.

    Transport failures are retried with exponential backoff and surface as
    NetworkError once attempts run out. Other exceptions propagate on the
    first failure.

    Args:
        stop_after: Maximum number of attempts (defaults to config)
        wait_multiplier: Exponential backoff multiplier
        wait_min: Minimum wait time between retries
        wait_max: Maximum wait time between retries
        retry_on: Exception types to retry on
    """
    if stop_after is None:
        stop_after = get_config().max_retries

    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(stop_after),
                wait=wait_exponential(multiplier=wait_multiplier, min=wait_min, max=wait_max),
                retry=retry_if_exception_type(retry_on),
                before_sleep=before_sleep_log(logger, logging.WARNING),  # type: ignore[arg-type]
                reraise=True,
            ):
                with attempt:
                    try:
                        return await func(*args, **kwargs)
                    except Exception as e:
                        if isinstance(e, retry_on) and not isinstance(e, NetworkError):
                            logger.warning(
                                "Retryable error occurred", error=str(e), function=func.__name__
                            )
                            raise NetworkError(f"Network operation failed: {e}") from e
                        raise

        return wrapper  # type: ignore[return-value]

    return decorator
