"""
Retry logic with exponential backoff for handling transient failures.

Provides a decorator for retrying whole operations, and a per-page state
machine used by the bulk fetcher, which must keep going after a page
gives up instead of raising.
"""

import time
import functools
from typing import Callable, Type, Tuple, Optional


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


def backoff_delay(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
) -> float:
    """
    Delay to wait after the given failed attempt (1-based).

    attempt 1 -> base_delay, attempt 2 -> base_delay * exponential_base, ...
    capped at max_delay.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be 1 or greater, got {attempt}")
    return min(base_delay * exponential_base ** (attempt - 1), max_delay)


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
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
        @exponential_backoff(max_retries=3, base_delay=1.0)
        def fetch_snapshot(url):
            return requests.get(url)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(1, max_retries + 2):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt > max_retries:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {str(e)}"
                        ) from e

                    current_delay = backoff_delay(attempt, base_delay, max_delay, exponential_base)
                    if on_retry:
                        on_retry(attempt, e, current_delay)
                    time.sleep(current_delay)

        return wrapper
    return decorator


class PageAttempt:
    """
    Retry state of a single page request.

    States:
    - PENDING: Not requested yet
    - REQUESTING: A request is in flight
    - RETRY_WAIT: Last request failed, waiting before the next one
    - SUCCEEDED: Page retrieved
    - PERMANENTLY_FAILED: Retry budget exhausted
    """

    PENDING = "pending"
    REQUESTING = "requesting"
    RETRY_WAIT = "retry_wait"
    SUCCEEDED = "succeeded"
    PERMANENTLY_FAILED = "permanently_failed"

    def __init__(
        self,
        page: int,
        max_attempts: int = 3,
        base_delay: float = 5.0,
        max_delay: float = 60.0,
    ):
        """
        Args:
            page: Page index this state belongs to
            max_attempts: Total requests allowed, first one included
            base_delay: Delay after the first failure, in seconds
            max_delay: Upper bound on any single delay
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.page = page
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

        self.attempts = 0
        self.state = self.PENDING
        self.last_error: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.state in (self.SUCCEEDED, self.PERMANENTLY_FAILED)

    def start(self):
        """Move into REQUESTING and count the attempt."""
        if self.state not in (self.PENDING, self.RETRY_WAIT):
            raise RuntimeError(f"Page {self.page} cannot be requested from state {self.state}")
        self.attempts += 1
        self.state = self.REQUESTING

    def succeed(self):
        if self.state != self.REQUESTING:
            raise RuntimeError(f"Page {self.page} cannot succeed from state {self.state}")
        self.state = self.SUCCEEDED

    def fail(self, reason: str) -> Optional[float]:
        """
        Record a failed attempt.

        Returns:
            Seconds to wait before the next attempt, or None when the page
            is now PERMANENTLY_FAILED.
        """
        if self.state != self.REQUESTING:
            raise RuntimeError(f"Page {self.page} cannot fail from state {self.state}")
        self.last_error = reason
        if self.attempts >= self.max_attempts:
            self.state = self.PERMANENTLY_FAILED
            return None
        self.state = self.RETRY_WAIT
        return backoff_delay(self.attempts, self.base_delay, self.max_delay)
