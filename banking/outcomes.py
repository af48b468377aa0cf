"""
Typed outcomes for ledger calls.

Engine methods raise; surfaces that need a value to branch on (the menu, batch
callers) run them through `settle()` and get back an Outcome that is
COMMITTED, REJECTED or FAILED. Only FAILED outcomes are worth retrying.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from banking.exceptions import ErrorKind, LedgerError, LedgerRejection

logger = logging.getLogger(__name__)


class OutcomeStatus(str, enum.Enum):
    COMMITTED = "COMMITTED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


def outcome_status_for(error: LedgerError) -> OutcomeStatus:
    if isinstance(error, LedgerRejection):
        return OutcomeStatus.REJECTED
    return OutcomeStatus.FAILED


@dataclass(frozen=True)
class Outcome:
    status: OutcomeStatus
    value: Any = None
    error: Optional[LedgerError] = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.COMMITTED

    @property
    def reason(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    @classmethod
    def committed(cls, value: Any) -> Outcome:
        return cls(OutcomeStatus.COMMITTED, value=value)

    @classmethod
    def from_error(cls, error: LedgerError) -> Outcome:
        return cls(outcome_status_for(error), error=error)


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, LedgerError) and exc.retryable


async def settle(
    operation: Callable[..., Awaitable[Any]],
    *args: Any,
    retries: int = 0,
    backoff: float = 0.05,
    **kwargs: Any,
) -> Outcome:
    """
    Runs a ledger operation and captures how it ended.

    Args:
        operation: Coroutine function, e.g. ``engine.transfer``
        retries: Extra attempts after a retryable failure (contention,
            storage). Rejections are never retried.
        backoff: Initial wait in seconds, doubled on every retry

    Returns:
        Outcome carrying the return value or the final error
    """
    try:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(retries + 1),
            wait=wait_exponential(multiplier=backoff, max=backoff * 16),
            before_sleep=lambda state: logger.warning(
                f"Retrying {getattr(operation, '__name__', 'operation')} "
                f"after {state.outcome.exception().kind.value} (attempt {state.attempt_number})"
            ),
            reraise=True,
        ):
            with attempt:
                value = await operation(*args, **kwargs)
    except LedgerError as exc:
        return Outcome.from_error(exc)
    return Outcome.committed(value)
