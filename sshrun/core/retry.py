"""
Bounded retry for transient end-of-stream failures
"""
import functools
from typing import Callable, Optional, Tuple, Type, TypeVar

from .constants import DEFAULT_RETRY_ATTEMPTS
from .logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """
    Re-invoke an operation when it fails with a retryable error.

    The whole operation runs again from the beginning on every attempt,
    so any state it builds (sessions, output buffers) must be created
    inside it. There is no delay between attempts. Errors that are not
    instances of ``retry_on`` propagate immediately; after the last
    attempt the final error propagates unchanged.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_on: Tuple[Type[BaseException], ...] = (EOFError,),
        on_retry: Optional[Callable[[int, BaseException], None]] = None,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.retry_on = retry_on
        self.on_retry = on_retry

    def call(self, operation: Callable[[], T], label: str = "operation") -> T:
        """Run ``operation`` under this policy and return its result."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                return operation()
            except self.retry_on as exc:
                if attempt == self.max_attempts:
                    logger.error(
                        f"{label} failed after {attempt} attempt(s): {exc!r}"
                    )
                    raise
                logger.warning(
                    f"{label} failed (attempt {attempt}/{self.max_attempts}): {exc!r}; retrying"
                )
                if self.on_retry:
                    self.on_retry(attempt, exc)
        raise AssertionError("unreachable")


def retried(
    max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
    retry_on: Tuple[Type[BaseException], ...] = (EOFError,),
):
    """Decorator form of :class:`RetryPolicy`."""

    def decorator(fn):
        policy = RetryPolicy(max_attempts=max_attempts, retry_on=retry_on)

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            return policy.call(lambda: fn(*args, **kwargs), label=fn.__name__)

        return wrapper

    return decorator
