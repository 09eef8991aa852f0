import time
import logging
from threading import Condition
from typing import Any, Callable, TypeVar

import requests

from solana_deploy_finder.errors import ThrottlingRetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """
    Serialization gate for remote calls.

    At most one task runs through a gate at any moment; callers that arrive
    while it is busy wait their turn in arrival order. Every component that
    talks to the RPC node shares one instance, so the whole process never has
    more than one request in flight.

    Attributes:
        in_flight: True while a task is executing
        completed: Number of tasks that have finished (successfully or not)
    """

    def __init__(self):
        self._condition = Condition()
        self._next_ticket = 0
        self._now_serving = 0
        self.in_flight = False
        self.completed = 0

    def run(self, task: Callable[[], T]) -> T:
        """
        Run task once every earlier caller has finished.

        No timeout is applied here; the task is expected to carry its own.
        """
        with self._condition:
            ticket = self._next_ticket
            self._next_ticket += 1
            while ticket != self._now_serving:
                self._condition.wait()
            self.in_flight = True

        try:
            return task()
        finally:
            with self._condition:
                self.in_flight = False
                self.completed += 1
                self._now_serving += 1
                self._condition.notify_all()

    @property
    def waiting(self) -> int:
        """Number of callers queued behind the running task."""
        with self._condition:
            return max(0, self._next_ticket - self._now_serving - (1 if self.in_flight else 0))


def is_throttling_error(error: BaseException) -> bool:
    """
    True if the error means the node wants us to slow down (HTTP 429 or the
    JSON-RPC equivalent).
    """
    if getattr(error, "is_throttling", False):
        return True
    if isinstance(error, requests.HTTPError) and error.response is not None:
        return error.response.status_code == 429
    return False


def backoff_delay(attempt: int, base_delay: float) -> float:
    """
    Exponential delay for a 0-based attempt: base_delay * 2 ** attempt.

    No jitter and no upper bound, so the schedule is exactly reproducible.
    """
    return base_delay * (2 ** attempt)


class BackoffRetrier:
    """
    Retry a remote call while it keeps failing with throttling errors.

    Any other exception propagates on the first occurrence. After max_attempts
    consecutive throttling failures ThrottlingRetryExhausted is raised.

    Example:
        retrier = BackoffRetrier(max_attempts=5, base_delay=8.0)
        batch = retrier.invoke(lambda: client.get_signatures_for_address(program_id))
    """

    def __init__(
        self,
        max_attempts: int = 5,
        base_delay: float = 8.0,
        sleep: Callable[[float], Any] = time.sleep,
        is_retryable: Callable[[BaseException], bool] = is_throttling_error,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.sleep = sleep
        self.is_retryable = is_retryable

    def invoke(self, task: Callable[[], T]) -> T:
        last_error: Exception | None = None

        for attempt in range(self.max_attempts):
            try:
                return task()
            except Exception as e:
                if not self.is_retryable(e):
                    raise
                last_error = e

            # Don't sleep after the last attempt
            if attempt < self.max_attempts - 1:
                delay = backoff_delay(attempt, self.base_delay)
                logger.warning(f"Rate limit hit. Retrying after {delay:.1f}s...")
                logger.debug(f"Retry attempt {attempt + 1} of {self.max_attempts - 1} after throttling: {last_error}")
                self.sleep(delay)

        logger.error(f"Request still throttled after {self.max_attempts} attempts")
        raise ThrottlingRetryExhausted(self.max_attempts, last_error) from last_error


class RemoteCallPolicy:
    """
    The way every remote call is made: through the gate first, then the
    retrier. Each attempt takes its own turn at the gate, so backoff sleeps
    never hold the gate.
    """

    def __init__(self, gate: RateLimiter, retrier: BackoffRetrier):
        self.gate = gate
        self.retrier = retrier
        self.calls = 0

    def call(self, func: Callable[..., T], *args, **kwargs) -> T:
        def attempt():
            self.calls += 1
            return func(*args, **kwargs)

        return self.retrier.invoke(lambda: self.gate.run(attempt))
