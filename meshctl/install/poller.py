"""Readiness polling for deployed workloads."""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type

from ..config import Config
from ..errors import PollCancelled, ReadinessTimeout, TransientQueryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollPolicy:
    """How often and for how long to query a readiness predicate.

    ``retry_on`` lists the query errors that count as "not ready yet"; any
    other error raised by the predicate ends the poll immediately.
    """
    interval: float = 0.1
    max_attempts: int = 600
    deadline: Optional[float] = None
    cancel: Optional[threading.Event] = None
    retry_on: Tuple[Type[BaseException], ...] = (TransientQueryError,)
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic

    @classmethod
    def default(cls) -> "PollPolicy":
        return cls(interval=Config.POLL_INTERVAL, max_attempts=Config.POLL_MAX_ATTEMPTS)


def wait_until_ready(predicate: Callable[[], bool], policy: Optional[PollPolicy] = None,
                     description: str = "workload") -> int:
    """Query ``predicate`` until it reports ready.

    Args:
        predicate: Returns True once the workload has converged
        policy: Poll settings (default: PollPolicy.default())
        description: Used in log and error messages

    Returns:
        int: Number of queries it took

    Raises:
        ReadinessTimeout: If the attempts or the deadline run out
        PollCancelled: If the cancel event is set
    """
    policy = policy or PollPolicy.default()
    started = policy.clock()
    logger.info(f"⏳ Waiting for {description} to be ready...")

    for attempt in range(1, policy.max_attempts + 1):
        if policy.cancel is not None and policy.cancel.is_set():
            raise PollCancelled(f"waiting for {description} was cancelled after {attempt - 1} attempt(s)")

        try:
            if predicate():
                logger.info(f"✅ {description} is ready")
                return attempt
        except policy.retry_on as e:
            logger.debug(f"Readiness query for {description} failed, retrying: {e}")

        if attempt == policy.max_attempts:
            break
        if policy.deadline is not None and policy.clock() - started >= policy.deadline:
            raise ReadinessTimeout(
                f"{description} not ready within {policy.deadline:.1f}s ({attempt} attempts)"
            )
        policy.sleep(policy.interval)

    raise ReadinessTimeout(f"{description} not ready after {policy.max_attempts} attempts")
