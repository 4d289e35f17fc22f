"""Retry with exponential backoff for calls to external services.

The loop keeps its attempt counter, delay and elapsed time as explicit state and
classifies each failure into a tagged ``AttemptStatus``. Only ``RETRYABLE``
attempts are retried; a ``FATAL`` attempt ends the loop immediately. Exhausting
the policy is reported as a ``RetryOutcome``, not raised, so callers can decide
how to classify the failure.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from doccs_sync.core.errors import RetryableError
from doccs_sync.core.logging import get_logger

logger = get_logger(__name__)


class AttemptStatus(str, Enum):
    """Classification of a single attempt."""

    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass
class RetryPolicy:
    """Backoff policy. Delays are in milliseconds."""

    max_attempts: int = 5
    initial_delay_ms: float = 5000
    max_delay_ms: float = 60000
    backoff_factor: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("delays must not be negative")

    def next_delay(self, current_delay_ms: float) -> float:
        """Delay to use after ``current_delay_ms`` has been waited."""
        return min(current_delay_ms * self.backoff_factor, self.max_delay_ms)


@dataclass
class AttemptRecord:
    """What happened on one attempt. Passed to the ``on_attempt`` hook."""

    attempt: int
    status: AttemptStatus
    duration_ms: float
    backoff_delay_ms: float = 0
    error: Optional[Exception] = None
    value: Any = None

    @property
    def error_type(self) -> Optional[str]:
        return type(self.error).__name__ if self.error else None


@dataclass
class RetryState:
    """Mutable loop state for one ``RetryExecutor.run`` call."""

    attempt: int = 1
    delay_ms: float = 0
    started_at: float = field(default_factory=time.monotonic)

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started_at) * 1000


@dataclass
class RetryOutcome:
    """Final result of a retried call."""

    status: AttemptStatus
    attempts: int
    elapsed_ms: float
    value: Any = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.status == AttemptStatus.SUCCESS

    @property
    def exhausted(self) -> bool:
        """True when the last failure was retryable but attempts ran out."""
        return self.status == AttemptStatus.RETRYABLE


def classify_attempt_error(error: Exception) -> AttemptStatus:
    """Tag a failure as retryable or fatal."""
    if isinstance(error, RetryableError):
        return AttemptStatus.RETRYABLE
    return AttemptStatus.FATAL


class RetryExecutor:
    """Runs an async callable under a ``RetryPolicy``."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        classify: Callable[[Exception], AttemptStatus] = classify_attempt_error,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the executor.

        Args:
            policy: Backoff policy, defaults to 5 attempts from 5s up to 60s.
            classify: Maps a raised exception to RETRYABLE or FATAL.
            sleep: Coroutine taking seconds, replaced in tests.
        """
        self.policy = policy or RetryPolicy()
        self._classify = classify
        self._sleep = sleep

    async def run(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        component: str = "unknown",
        on_attempt: Optional[Callable[[AttemptRecord], None]] = None,
        **kwargs,
    ) -> RetryOutcome:
        """Call ``func`` until it succeeds, fails fatally or attempts run out.

        Args:
            func: Async callable to execute.
            *args: Positional arguments for func.
            component: Component name for logging.
            on_attempt: Hook called once per attempt, success or failure.
            **kwargs: Keyword arguments for func.

        Returns:
            RetryOutcome describing the last attempt.
        """
        state = RetryState(delay_ms=self.policy.initial_delay_ms)

        while True:
            attempt_started = time.monotonic()
            try:
                value = await func(*args, **kwargs)
            except Exception as e:
                status = self._classify(e)
                will_retry = (
                    status == AttemptStatus.RETRYABLE
                    and state.attempt < self.policy.max_attempts
                )
                record = AttemptRecord(
                    attempt=state.attempt,
                    status=status,
                    duration_ms=(time.monotonic() - attempt_started) * 1000,
                    backoff_delay_ms=state.delay_ms if will_retry else 0,
                    error=e,
                )
                if on_attempt:
                    on_attempt(record)

                if status == AttemptStatus.FATAL:
                    logger.warning(
                        "retry_not_possible",
                        component=component,
                        attempt=state.attempt,
                        error=str(e),
                    )
                    return RetryOutcome(
                        status=status,
                        attempts=state.attempt,
                        elapsed_ms=state.elapsed_ms,
                        error=e,
                    )

                if state.attempt >= self.policy.max_attempts:
                    logger.warning(
                        "retries_exhausted",
                        component=component,
                        attempts=state.attempt,
                        error=str(e),
                    )
                    return RetryOutcome(
                        status=status,
                        attempts=state.attempt,
                        elapsed_ms=state.elapsed_ms,
                        error=e,
                    )

                logger.info(
                    "retrying_operation",
                    component=component,
                    attempt=state.attempt,
                    max_attempts=self.policy.max_attempts,
                    delay_ms=state.delay_ms,
                )
                await self._sleep(state.delay_ms / 1000)
                state.delay_ms = self.policy.next_delay(state.delay_ms)
                state.attempt += 1
                continue

            if on_attempt:
                on_attempt(AttemptRecord(
                    attempt=state.attempt,
                    status=AttemptStatus.SUCCESS,
                    duration_ms=(time.monotonic() - attempt_started) * 1000,
                    value=value,
                ))
            return RetryOutcome(
                status=AttemptStatus.SUCCESS,
                attempts=state.attempt,
                elapsed_ms=state.elapsed_ms,
                value=value,
            )
