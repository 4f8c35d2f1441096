"""Polling with a bounded time budget.

Every wait in the bootstrap (join token, kubeconfig, API server, chart
workloads) goes through :func:`wait_until` so each can be given an interval,
a backoff factor and a timeout. A timeout of None keeps polling forever.
"""
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..config import WaitPolicy
from ..exceptions import WaitTimeoutError
from ..logging import get_logger

logger = get_logger("polling")


@dataclass
class PollPolicy:
    interval: float = 5.0
    timeout: Optional[float] = None
    backoff: float = 1.0
    max_interval: float = 30.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    @classmethod
    def from_settings(cls, policy: WaitPolicy, **kwargs) -> 'PollPolicy':
        return cls(
            interval=policy.interval,
            timeout=policy.timeout,
            backoff=policy.backoff,
            max_interval=policy.max_interval,
            **kwargs,
        )


def wait_until(predicate: Callable[[], bool], description: str, policy: PollPolicy) -> int:
    """Call ``predicate`` until it returns True.

    Args:
        predicate: Condition to poll
        description: Human readable name of the condition, used in logs and errors
        policy: Interval, backoff and timeout to apply

    Returns:
        int: Number of attempts it took

    Raises:
        WaitTimeoutError: If the condition is still false when the timeout expires
    """
    start = policy.clock()
    delay = policy.interval
    attempt = 0

    while True:
        attempt += 1
        if predicate():
            logger.debug(f"{description} satisfied after {attempt} attempt(s)")
            return attempt

        elapsed = policy.clock() - start
        if policy.timeout is not None and elapsed + delay > policy.timeout:
            logger.error(f"❌ Gave up waiting for {description} after {elapsed:.0f}s")
            raise WaitTimeoutError(description, policy.timeout, attempt)

        logger.info(f"⏳ Waiting for {description}... (attempt {attempt}, next check in {delay:.0f}s)")
        policy.sleep(delay)
        delay = min(delay * policy.backoff, policy.max_interval)
