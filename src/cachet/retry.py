"""Bounded async retry for dispatch calls.

Retry decisions read the typed metadata on Cachet errors (``retryable``,
``status_code``, ``retry_after_s``); message text is never inspected.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import random
import time
from typing import TYPE_CHECKING, TypeVar

import httpx

from cachet._http import RETRYABLE_STATUS_CODES
from cachet.errors import ServiceError, TransportError, exception_chain

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try, and how long to wait in between.

    The wait before retry ``n`` is
    ``min(max_delay_s, initial_delay_s * backoff_multiplier ** (n - 1))``,
    scaled by a uniform draw in ``[0, 1]`` when ``jitter`` is on. A
    Retry-After sent by the service raises the wait to at least that value.
    ``max_elapsed_s`` caps the total time spent, sleeps included.
    """

    max_attempts: int = 3
    initial_delay_s: float = 0.5
    backoff_multiplier: float = 2.0
    max_delay_s: float = 8.0
    jitter: bool = True
    max_elapsed_s: float | None = 30.0

    def __post_init__(self) -> None:
        checks = (
            (self.max_attempts >= 1, "max_attempts must be >= 1"),
            (self.initial_delay_s >= 0, "initial_delay_s must be >= 0"),
            (self.backoff_multiplier > 0, "backoff_multiplier must be > 0"),
            (self.max_delay_s >= 0, "max_delay_s must be >= 0"),
            (
                self.max_elapsed_s is None or self.max_elapsed_s >= 0,
                "max_elapsed_s must be >= 0 or None",
            ),
        )
        for ok, problem in checks:
            if not ok:
                raise ValueError(f"RetryPolicy.{problem}")

    def backoff(self, retry_number: int) -> float:
        """Return the sleep before retry *retry_number* (1-based)."""
        ceiling = min(
            self.max_delay_s,
            self.initial_delay_s * self.backoff_multiplier ** (retry_number - 1),
        )
        if ceiling <= 0:
            return 0.0
        if self.jitter:
            return random.random() * ceiling  # noqa: S311
        return ceiling


def _server_requested_delay(exc: BaseException) -> float | None:
    if not isinstance(exc, ServiceError):
        return None
    delay = exc.retry_after_s
    if isinstance(delay, (int, float)) and delay >= 0:
        return float(delay)
    return None


def _caused_by_network_failure(exc: BaseException) -> bool:
    # Catches raw httpx/timeout errors a custom transport failed to map.
    return any(
        isinstance(e, (TimeoutError, httpx.RequestError))
        for e in exception_chain(exc)
    )


def should_retry(exc: BaseException) -> bool:
    """Classify a dispatch failure as transient (True) or final (False).

    ``TransportError`` follows its ``retryable`` flag. ``ServiceError``
    follows an explicit ``retryable`` flag when one is set, otherwise a
    retryable status code or a Retry-After makes it transient. Parse,
    configuration and cache errors are final. Cancellation is always final.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False
    if isinstance(exc, TransportError):
        return exc.retryable
    if isinstance(exc, ServiceError):
        if exc.retryable is not None:
            return exc.retryable
        if exc.status_code in RETRYABLE_STATUS_CODES:
            return True
        return _server_requested_delay(exc) is not None
    return _caused_by_network_failure(exc)


async def retry_async(
    factory: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    should_retry: Callable[[BaseException], bool] = should_retry,
) -> T:
    """Await ``factory()`` until it succeeds or *policy* gives up.

    The last failure is re-raised unchanged. *factory* is called afresh for
    every attempt.
    """
    deadline = (
        None if policy.max_elapsed_s is None else time.monotonic() + policy.max_elapsed_s
    )
    attempt = 1
    while True:
        try:
            return await factory()
        except Exception as exc:
            if attempt >= policy.max_attempts or not should_retry(exc):
                raise

            delay = policy.backoff(attempt)
            requested = _server_requested_delay(exc)
            if requested is not None and requested > delay:
                delay = requested
            if deadline is not None:
                budget = deadline - time.monotonic()
                if budget <= 0:
                    raise
                delay = min(delay, budget)

            logger.debug(
                "Attempt %d/%d failed with %s, retrying in %.2fs",
                attempt,
                policy.max_attempts,
                type(exc).__name__,
                delay,
            )
            if delay > 0:
                await asyncio.sleep(delay)
            attempt += 1
