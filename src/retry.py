"""Retry-with-backoff wrapper for fallible collaborator calls."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from tenacity import RetryCallState, RetryError, Retrying, stop_after_attempt, wait_exponential

from src.pipeline_config import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhaustedError(RuntimeError):
    """Raised when a wrapped call still fails after its whole attempt budget."""

    def __init__(self, label: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"{label} failed after {attempts} attempt(s): {last_error}")
        self.label = label
        self.attempts = attempts
        self.last_error = last_error


def with_retries(
    fn: Callable[[], T],
    label: str,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``fn`` and retry it with exponential backoff on any exception.

    Nothing here assumes ``fn`` is idempotent; callers only wrap calls that
    are safe to repeat (remote inference, reads).

    Args:
        fn: Zero-argument callable to execute.
        label: Human-readable name used in logs and in the final error.
        policy: Attempt budget and base delay (defaults to 3 x 1000 ms).
        sleep: Sleep function in seconds; injectable for tests.

    Returns:
        Whatever ``fn`` returns on its first successful attempt.

    Raises:
        RetryExhaustedError: After the last attempt fails. The final
            exception is available as ``last_error`` and ``__cause__``.
    """
    policy = policy or RetryPolicy()

    def _log_retry(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        logger.warning(
            "%s failed (attempt %d/%d). Retrying in %.0fms: %s",
            label,
            state.attempt_number,
            policy.attempts,
            delay * 1000,
            exc,
        )

    retrying = Retrying(
        stop=stop_after_attempt(policy.attempts),
        wait=wait_exponential(multiplier=policy.base_delay_seconds, exp_base=2),
        sleep=sleep,
        before_sleep=_log_retry,
    )

    try:
        return retrying(fn)
    except RetryError as err:
        last = err.last_attempt.exception()
        raise RetryExhaustedError(label, err.last_attempt.attempt_number, last) from last  # type: ignore[arg-type]
