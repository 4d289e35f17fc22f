"""DOCCS lookups with retry, backoff and per-attempt network metrics."""

import re
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union

from doccs_sync.core import get_logger
from doccs_sync.core.errors import EmptyResponseError
from doccs_sync.core.resilience import (
    AttemptRecord,
    AttemptStatus,
    RetryExecutor,
    RetryPolicy,
)
from doccs_sync.reporting.report import NetworkMetricSample, Report

logger = get_logger(__name__)

# Two digits, one letter, four digits, e.g. 07A4571
DIN_PATTERN = re.compile(r"^[0-9]{2}[A-Za-z][0-9]{4}$")

EMPTY_RESPONSE_ERROR = EmptyResponseError.__name__
RESPONSE_ERROR = "ResponseError"


class LookupTransport(Protocol):
    async def lookup(self, din: str) -> Any: ...


def validate_identifier(din: Any) -> bool:
    """True when ``din`` is a well-formed DIN."""
    return isinstance(din, str) and DIN_PATTERN.fullmatch(din) is not None


@dataclass
class LookupFailure:
    """A lookup that did not produce data."""

    error: str
    user_displayable_message: str

    @property
    def is_empty_response(self) -> bool:
        return self.error == EMPTY_RESPONSE_ERROR


class LookupClient:
    """Network access to DOCCS for one sync run."""

    def __init__(
        self,
        transport: LookupTransport,
        policy: Optional[RetryPolicy] = None,
        executor: Optional[RetryExecutor] = None,
    ):
        self.transport = transport
        self.executor = executor or RetryExecutor(policy)

    async def fetch_external(self, din: str, report: Report) -> Union[Any, LookupFailure]:
        """Look up ``din``, recording one network sample per attempt into ``report``.

        Returns the decoded lookup body, or a ``LookupFailure`` whose ``error``
        is ``EmptyResponseError`` when retries ran out on empty responses and
        ``ResponseError`` for any other failure.
        """

        def record_attempt(attempt: AttemptRecord) -> None:
            succeeded = attempt.status == AttemptStatus.SUCCESS
            report.add_network_metric(NetworkMetricSample(
                duration_ms=attempt.duration_ms,
                success=succeeded,
                error_type=attempt.error_type,
                is_empty=(
                    not attempt.value if succeeded
                    else isinstance(attempt.error, EmptyResponseError)
                ),
                retry_attempt=attempt.attempt - 1,
                backoff_delay_ms=attempt.backoff_delay_ms,
            ))

        outcome = await self.executor.run(
            self.transport.lookup,
            din,
            component="doccs_lookup",
            on_attempt=record_attempt,
        )

        if outcome.succeeded:
            logger.debug("lookup_succeeded", din=din, attempts=outcome.attempts)
            return outcome.value

        error = outcome.error
        message = getattr(error, "message", None) or str(error)
        if outcome.exhausted and isinstance(error, EmptyResponseError):
            logger.warning(
                "lookup_empty_after_retries",
                din=din,
                attempts=outcome.attempts,
                elapsed_ms=round(outcome.elapsed_ms),
            )
            return LookupFailure(error=EMPTY_RESPONSE_ERROR, user_displayable_message=message)

        logger.warning(
            "lookup_failed",
            din=din,
            error_type=type(error).__name__,
            error=message,
        )
        return LookupFailure(error=RESPONSE_ERROR, user_displayable_message=message)
