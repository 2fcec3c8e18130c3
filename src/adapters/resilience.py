"""
Upstream boundary - bounded retry for collaborator calls.

Adapters decorate each collaborator call with upstream_call(). A transient
failure (connection loss, timeout, pool exhaustion) is retried once after
the adapter's backoff; a second failure is logged with full detail and
raised as a domain exception. State transitions that are not idempotent
are declared with retry=False and fail on the first error.
"""

import functools
import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

import psycopg
from psycopg_pool import PoolTimeout
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from src.domain.exceptions import IdentityError, UpstreamUnavailable

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

DATABASE_ERRORS: tuple[type[Exception], ...] = (psycopg.OperationalError, PoolTimeout)


def upstream_call(
    operation: str,
    *,
    retry: bool = True,
    transient: tuple[type[Exception], ...] = DATABASE_ERRORS,
    raise_as: type[IdentityError] = UpstreamUnavailable,
) -> Callable[[F], F]:
    """
    Wrap an adapter method in the upstream retry policy.

    The decorated method's instance must expose ``_retry_backoff`` (seconds).

    Args:
        operation: Name used in logs and in the raised exception
        retry: Whether one retry is safe for this operation
        transient: Exception types treated as upstream failures
        raise_as: Domain exception raised after the final failure
    """

    def log_retry(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning("Upstream %s failed, retrying: %r", operation, exc)

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            retrying = Retrying(
                stop=stop_after_attempt(2 if retry else 1),
                wait=wait_fixed(self._retry_backoff),
                retry=retry_if_exception_type(transient),
                before_sleep=log_retry,
                sleep=time.sleep,
                reraise=True,
            )
            try:
                return retrying(func, self, *args, **kwargs)
            except transient as exc:
                logger.error("Upstream %s failed: %r", operation, exc)
                raise raise_as(operation) from exc

        return wrapper  # type: ignore[return-value]

    return decorator
