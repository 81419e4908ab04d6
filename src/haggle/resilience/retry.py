"""Retry decorator for outbound API calls, built on tenacity.

Only transport-level failures are retried.  A reply that arrived but could
not be understood is surfaced immediately: asking the same model the same
question again is not a fix for a schema problem.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])


def _exhaustion_handler(api_name: str) -> Callable[[RetryCallState], Any]:
    """Build the callback tenacity runs once every attempt has failed.

    The callback logs the exhaustion and re-raises the last exception, so
    callers see the original error type rather than ``RetryError``.
    """

    def on_exhausted(retry_state: RetryCallState) -> Any:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.error(
            "api_retries_exhausted",
            api_name=api_name,
            attempts=retry_state.attempt_number,
            error=str(exception),
        )
        if exception is not None:
            raise exception
        return None

    return on_exhausted


def _sleep_logger(api_name: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        logger.warning(
            "api_retry_scheduled",
            api_name=api_name,
            attempt=retry_state.attempt_number,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
        )

    return before_sleep


def resilient_api_call(
    api_name: str,
    *,
    retry_on: type[BaseException] | tuple[type[BaseException], ...] = Exception,
    attempts: int = 3,
    initial_wait: float = 1.0,
    max_wait: float = 30.0,
    jitter: float = 5.0,
) -> Callable[[F], F]:
    """Wrap a plain or ``async`` function with bounded exponential backoff.

    Exceptions outside *retry_on* propagate on their first occurrence.  Once
    *attempts* is reached the last exception is re-raised unchanged.

    Args:
        api_name: Name of the remote API, used in log events.
        retry_on: Exception type(s) that trigger another attempt.
        attempts: Maximum number of attempts, including the first.
        initial_wait: First backoff delay in seconds.
        max_wait: Upper bound of a single backoff delay in seconds.
        jitter: Maximum random jitter added to each delay in seconds.

    Returns:
        The decorator.
    """
    policy = retry(
        retry=retry_if_exception_type(retry_on),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential_jitter(initial=initial_wait, max=max_wait, jitter=jitter),
        before_sleep=_sleep_logger(api_name),
        retry_error_callback=_exhaustion_handler(api_name),
        reraise=True,
    )

    def decorator(func: F) -> F:
        return policy(func)  # type: ignore[no-any-return]

    return decorator
