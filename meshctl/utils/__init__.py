"""Utility functions and helpers for the meshctl application."""
import functools
import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from ..config import Config
from ..errors import MeshctlError

T = TypeVar('T')

logger = logging.getLogger(__name__)


class RetryError(MeshctlError):
    """Raised when a retried call keeps failing."""

    def __init__(self, message: str, attempts: int):
        self.attempts = attempts
        super().__init__(message)


def retry(
    attempts: Optional[int] = None,
    delay: Optional[float] = None,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    sleep: Optional[Callable[[float], None]] = None,
):
    """Decorator for retrying a function with exponential backoff.

    Args:
        attempts: Total number of calls to make before giving up
        delay: Initial delay between attempts in seconds
        exceptions: Tuple of exceptions to catch and retry on
        sleep: Function used to wait between attempts (default: time.sleep)

    Returns:
        Decorated function with retry logic
    """
    if attempts is None:
        attempts = Config.MAX_RETRIES
    if delay is None:
        delay = Config.RETRY_DELAY
    attempts = max(1, attempts)

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            last_exception = None

            for attempt in range(attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < attempts - 1:
                        wait_time = delay * (2 ** attempt)  # Exponential backoff
                        logger.warning(
                            f"Attempt {attempt + 1} failed: {str(e)}. "
                            f"Retrying in {wait_time:.2f}s..."
                        )
                        (sleep or time.sleep)(wait_time)

            raise RetryError(
                f"Failed after {attempts} attempts. Last error: {str(last_exception)}",
                attempts,
            ) from last_exception
        return wrapper
    return decorator
