"""HTTP failure -> typed error mapping.

Transports attach retry metadata here so core retry logic can be bounded and
deterministic without brittle substring matching.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import httpx

from cachet._http import RETRYABLE_STATUS_CODES
from cachet.config import API_KEY_ENV_VAR
from cachet.errors import (
    AuthenticationError,
    InvalidRequestError,
    RateLimitError,
    ServerError,
    ServiceError,
    TransportError,
)

if TYPE_CHECKING:
    from collections.abc import Mapping


def extract_retry_after_s(headers: Mapping[str, str] | None) -> float | None:
    """Return the server-requested retry delay in seconds, if any.

    Understands ``retry-after-ms`` (sent by OpenAI) and the standard
    ``Retry-After`` header in its delta-seconds form.
    """
    if headers is None:
        return None

    raw_ms = headers.get("retry-after-ms")
    if isinstance(raw_ms, str) and raw_ms.strip():
        try:
            ms = float(raw_ms)
        except ValueError:
            ms = -1.0
        if ms >= 0:
            return ms / 1000.0

    raw = headers.get("retry-after")
    if isinstance(raw, str) and raw.strip():
        try:
            seconds = float(raw)
        except ValueError:
            return None
        if seconds >= 0:
            return seconds
    return None


def _error_details(body: str) -> tuple[str | None, str | None, str | None]:
    """Pull ``(message, type, code)`` out of an ``{"error": {...}}`` body."""
    try:
        decoded: Any = json.loads(body)
    except ValueError:
        return None, None, None
    if not isinstance(decoded, dict):
        return None, None, None
    error = decoded.get("error")
    if isinstance(error, str):
        return error, None, None
    if not isinstance(error, dict):
        return None, None, None

    def _s(key: str) -> str | None:
        value = error.get(key)
        return value if isinstance(value, str) else None

    code = error.get("code")
    return _s("message"), _s("type"), str(code) if code is not None else None


def _auth_hint(status_code: int) -> str | None:
    if status_code in {401, 403}:
        return f"Check credentials/permissions (try setting {API_KEY_ENV_VAR} or Config.api_key)."
    return None


def error_from_status(
    status_code: int,
    body: str,
    headers: Mapping[str, str] | None = None,
    *,
    phase: str,
) -> ServiceError:
    """Map a non-2xx response into the matching ServiceError subclass."""
    message, error_type, error_code = _error_details(body)
    retry_after_s = extract_retry_after_s(headers)
    retryable = status_code in RETRYABLE_STATUS_CODES or (
        retry_after_s is not None and status_code >= 429
    )

    err_cls: type[ServiceError]
    if status_code == 429:
        err_cls = RateLimitError
    elif status_code >= 500:
        err_cls = ServerError
    elif status_code in {401, 403}:
        err_cls = AuthenticationError
    else:
        err_cls = InvalidRequestError

    detail = message or body.strip()[:200]
    summary = f"{phase} failed (status={status_code})"
    return err_cls(
        f"{summary}: {detail}" if detail else summary,
        hint=_auth_hint(status_code),
        retryable=retryable,
        status_code=status_code,
        retry_after_s=retry_after_s,
        error_type=error_type,
        error_code=error_code,
        phase=phase,
    )


def wrap_transport_error(exc: BaseException, *, phase: str) -> TransportError:
    """Map an httpx transport exception into TransportError."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    kind = "timed out" if isinstance(exc, httpx.TimeoutException) else "failed"
    cause = str(exc) or type(exc).__name__
    return TransportError(f"{phase} {kind}: {cause}", phase=phase)
