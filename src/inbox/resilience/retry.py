"""Retry decorator for Record Source calls, built on tenacity.

Only :class:`TransientFetchError` is retried.  Rejections (4xx) and
programming errors propagate on the first attempt.
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

from inbox.domain.errors import TransientFetchError

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])

DEFAULT_ATTEMPTS = 3


def _operation_name(retry_state: RetryCallState, default: str) -> str:
    """Prefer an ``operation=`` keyword passed to the wrapped call."""
    return str(retry_state.kwargs.get("operation", default))


def resilient_fetch(
    operation: str,
    attempts: int = DEFAULT_ATTEMPTS,
    initial_wait: float = 0.2,
    max_wait: float = 2.0,
) -> Callable[[F], F]:
    """Create a retry decorator for a Record Source call.

    Returns a tenacity retry decorator configured with:
    - *attempts* attempts maximum
    - Exponential backoff with jitter between *initial_wait* and *max_wait*
    - Warning log before each retry
    - Error log on final failure, original exception re-raised

    Works for both plain and ``async`` functions and bound methods.

    Args:
        operation: Name used in logs when the wrapped call does not pass
            an ``operation`` keyword itself.
        attempts: Total number of attempts.
        initial_wait: First backoff interval in seconds.
        max_wait: Upper bound for a single backoff interval in seconds.

    Returns:
        A decorator that wraps the function with retry logic.
    """

    def before_sleep(retry_state: RetryCallState) -> None:
        logger.warning(
            "record_source_call_retrying",
            operation=_operation_name(retry_state, operation),
            attempt=retry_state.attempt_number,
            wait=retry_state.next_action.sleep if retry_state.next_action else 0,
        )

    def on_final_failure(retry_state: RetryCallState) -> Any:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.error(
            "record_source_call_failed",
            operation=_operation_name(retry_state, operation),
            attempts=retry_state.attempt_number,
            exception=str(exception),
        )
        if retry_state.outcome is None:
            return None
        # Re-raises the last exception.
        return retry_state.outcome.result()

    def decorator(func: F) -> F:
        wrapped = retry(
            retry=retry_if_exception_type(TransientFetchError),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential_jitter(initial=initial_wait, max=max_wait, jitter=initial_wait),
            before_sleep=before_sleep,
            retry_error_callback=on_final_failure,
            reraise=True,
        )(func)

        return wrapped  # type: ignore[no-any-return]

    return decorator
