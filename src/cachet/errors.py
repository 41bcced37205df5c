"""Cachet exception taxonomy.

Every public failure derives from :class:`CachetError` and may carry a
``hint`` telling the caller what to change. Retry metadata lives on the
exception itself so the dispatcher never has to parse messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class CachetError(Exception):
    """Base class for Cachet failures."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(CachetError):
    """Bad credentials, configuration, or request construction."""


class TransportError(CachetError):
    """No HTTP response arrived (connect failure, reset, timeout)."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        retryable: bool = True,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.retryable, self.phase = retryable, phase


class ServiceError(CachetError):
    """The service answered with a non-2xx status.

    ``retryable`` is None when the mapper made no call, in which case the
    retry predicate falls back to ``status_code`` and ``retry_after_s``.
    ``error_type`` and ``error_code`` echo the service's error body.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool | None = None,
        retry_after_s: float | None = None,
        error_type: str | None = None,
        error_code: str | None = None,
        phase: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status_code = status_code
        self.retryable = retryable
        self.retry_after_s = retry_after_s
        self.error_type = error_type
        self.error_code = error_code
        self.phase = phase


class RateLimitError(ServiceError):
    """HTTP 429."""


class ServerError(ServiceError):
    """HTTP 5xx."""


class AuthenticationError(ServiceError):
    """HTTP 401 or 403: the key was rejected or lacks permission."""


class InvalidRequestError(ServiceError):
    """Any other 4xx: the service refused the request as sent."""


class ParseError(CachetError):
    """A payload does not have the expected shape.

    ``field`` locates the problem, e.g.
    ``choices[0].message.tool_calls[1].function.name`` or ``$`` for the
    document root.
    """

    def __init__(
        self, message: str, *, field: str | None = None, hint: str | None = None
    ) -> None:
        super().__init__(message, hint=hint)
        self.field = field


class CacheError(CachetError):
    """A fingerprint could not be computed or a store failed."""


def exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc*, then every exception reachable via cause or context.

    Each exception is yielded once even when the chain loops.
    """
    pending = [exc]
    visited: set[int] = set()
    while pending:
        current = pending.pop(0)
        if id(current) in visited:
            continue
        visited.add(id(current))
        yield current
        pending.extend(
            linked
            for linked in (current.__cause__, current.__context__)
            if linked is not None
        )
