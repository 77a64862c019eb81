"""Error classification and retry for collaborator calls.

Maps exceptions raised by the data layer onto the engine's error taxonomy,
turns them into messages fit for a toast, and retries transient failures
with exponential backoff.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

from ledgerlens.domain.errors import (
    ActionError,
    ConflictError,
    TransportError,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorCategory(Enum):
    """Classification of failures for retry and messaging decisions."""

    VALIDATION = "validation"  # Bad input - never retry
    CONFLICT = "conflict"  # Stale record - needs a reload
    TRANSIENT = "transient"  # Network issues, timeouts - safe to retry
    PERMANENT = "permanent"  # Rejected for good - don't retry


TRANSIENT_ERROR_TYPES = (
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
    OSError,
)

TRANSIENT_ERROR_MESSAGES = (
    "timeout",
    "timed out",
    "network",
    "connection refused",
    "connection reset",
    "temporarily unavailable",
    "service unavailable",
    "too many requests",
)

PERMANENT_ERROR_MESSAGES = (
    "unauthorized",
    "forbidden",
    "not authenticated",
    "permission denied",
    "not found",
    "csrf",
)


def classify_error(exception: Exception) -> ErrorCategory:
    """Classify an exception to decide between retrying, reloading or failing.

    Args:
        exception: The exception to classify

    Returns:
        ErrorCategory for the failure
    """
    if isinstance(exception, ValidationError):
        return ErrorCategory.VALIDATION
    if isinstance(exception, ConflictError):
        return ErrorCategory.CONFLICT
    if isinstance(exception, TRANSIENT_ERROR_TYPES):
        return ErrorCategory.TRANSIENT

    error_msg = str(exception).lower()

    if "version" in error_msg or "conflict" in error_msg or "stale" in error_msg:
        return ErrorCategory.CONFLICT

    for indicator in PERMANENT_ERROR_MESSAGES:
        if indicator in error_msg:
            return ErrorCategory.PERMANENT

    for indicator in TRANSIENT_ERROR_MESSAGES:
        if indicator in error_msg:
            return ErrorCategory.TRANSIENT

    if isinstance(exception, (TransportError, ActionError)):
        return ErrorCategory.TRANSIENT

    logger.warning(f"Unclassified error {type(exception).__name__}: {exception}")
    return ErrorCategory.PERMANENT


def get_user_message(exception: Exception) -> str:
    """Get a user-facing message for an exception.

    Args:
        exception: The exception to describe

    Returns:
        Human-readable error message
    """
    category = classify_error(exception)

    if category == ErrorCategory.VALIDATION:
        return str(exception)

    if category == ErrorCategory.CONFLICT:
        return (
            "This transaction was changed elsewhere. "
            "Please refresh and try again."
        )

    if category == ErrorCategory.TRANSIENT:
        if isinstance(exception, (TransportError, ActionError)) and str(exception):
            return str(exception)
        return "A temporary error occurred. Please try again."

    return f"Operation failed: {exception}"


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    backoff_factor: float = 2.0,
    on_retry: Optional[Callable[[int, float, Exception], None]] = None,
) -> T:
    """Execute an async operation with exponential backoff retry.

    Only transient failures are retried; validation, conflict and permanent
    errors propagate immediately.

    Args:
        operation: Async callable to execute
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        backoff_factor: Multiplier for delay after each retry
        on_retry: Optional callback(attempt, delay, error) called before each retry

    Returns:
        Result of the operation

    Raises:
        Exception: The last exception if all retries fail
    """
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            if classify_error(e) != ErrorCategory.TRANSIENT:
                raise

            if attempt >= max_retries:
                logger.error(f"Max retries ({max_retries}) exceeded: {e}")
                raise

            logger.warning(
                f"Transient error (attempt {attempt + 1}/{max_retries + 1}), "
                f"retrying in {delay:.1f}s: {e}"
            )
            if on_retry:
                on_retry(attempt + 1, delay, e)

            await asyncio.sleep(delay)
            delay = min(delay * backoff_factor, max_delay)

    raise RuntimeError("Retry loop completed without result or exception")
