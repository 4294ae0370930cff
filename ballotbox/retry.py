"""
Retry with exponential backoff for operations rejected by a concurrent change.

The orchestrator never retries on its own. Callers that want to absorb
ConflictError (busy database, lost race on a ballot) wrap the call here.
"""

import time
import functools
from typing import Callable, Optional, Tuple, Type

from .errors import ConflictError


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 0.05,
    max_delay: float = 2.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (ConflictError,),
    on_retry: Optional[Callable] = None,
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential calculation (delay *= base)
        exceptions: Tuple of exceptions to catch and retry
        on_retry: Optional callback function(attempt, exception, delay)

    Example:
        @exponential_backoff(max_retries=5)
        def bump(ballot_id, candidate_id):
            return adjust_vote(ballot_id, candidate_id, 1, db_path=db)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {str(e)}"
                        ) from e

                    current_delay = min(delay, max_delay)
                    if on_retry:
                        on_retry(attempt + 1, e, current_delay)
                    time.sleep(current_delay)
                    delay *= exponential_base

        return wrapper
    return decorator


def retry_on_conflict(func: Callable, *args, max_retries: int = 3, on_retry: Optional[Callable] = None, **kwargs):
    """
    Call func once, retrying on ConflictError.

    Raises:
        RetryError: If every attempt conflicted
    """
    wrapped = exponential_backoff(max_retries=max_retries, on_retry=on_retry)(func)
    return wrapped(*args, **kwargs)


def is_conflict_error(exception: Exception) -> bool:
    """
    Determine if an exception means the operation lost a race and may be retried.

    Args:
        exception: Exception to check

    Returns:
        True for ConflictError and raw SQLite lock/busy errors
    """
    if isinstance(exception, ConflictError):
        return True

    error_str = str(exception).lower()
    conflict_keywords = [
        'database is locked',
        'database is busy',
        'database table is locked',
        'sqlite_busy',
    ]
    return any(keyword in error_str for keyword in conflict_keywords)
