"""Bounded retry of engine operations that hit transient ledger failures.

The whole operation is re-run, so each attempt opens a fresh transaction;
the failed one has already been rolled back.
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from meeting_cost.config import Settings, settings
from meeting_cost.errors import InternalError, TransientError

logger = structlog.get_logger()

T = TypeVar("T")

MAX_BACKOFF_SECONDS = 5


def retry_transient(
    func: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T]]:
    """Decorator retrying ``TransientError`` with exponential backoff.

    Applied to methods. Attempts and backoff come from the instance's
    ``_config`` (falling back to the global settings), 3 attempts by default.
    Other errors, ``ConflictError`` included, propagate on the first failure.
    When attempts run out the last failure is surfaced as ``InternalError``.

    Args:
        func: Async engine method

    Returns:
        Wrapped method with retry logic
    """

    @functools.wraps(func)
    async def wrapper(self: Any, *args: Any, **kwargs: Any) -> T:
        config: Settings = getattr(self, "_config", None) or settings
        attempts = config.ledger_max_attempts

        @retry(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(
                multiplier=config.ledger_retry_wait_seconds,
                max=MAX_BACKOFF_SECONDS,
            ),
            retry=retry_if_exception_type(TransientError),
            before_sleep=before_sleep_log(logger, log_level=logging.INFO),
            reraise=True,
        )
        async def inner() -> T:
            return await func(self, *args, **kwargs)

        try:
            return await inner()
        except TransientError as e:
            logger.error(
                "transient retries exhausted",
                operation=func.__name__,
                attempts=attempts,
                last_error=e.message,
            )
            raise InternalError(
                f"{func.__name__} failed after {attempts} attempts",
                details={"operation": func.__name__, "cause": e.message},
            ) from e

    return wrapper
