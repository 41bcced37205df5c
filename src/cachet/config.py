"""Configuration: Frozen Config with explicit credential resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path

from dotenv import load_dotenv

from cachet._http import DEFAULT_BASE_URL
from cachet.errors import ConfigurationError
from cachet.retry import RetryPolicy

API_KEY_ENV_VAR = "OPENAI_API_KEY"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"


def resolve_api_key(api_key: str | None = None) -> str | None:
    """Return *api_key* or fall back to ``OPENAI_API_KEY`` (``.env`` aware)."""
    if api_key is not None:
        return api_key
    load_dotenv()
    return os.environ.get(API_KEY_ENV_VAR)


def validate_api_key(api_key: str | None) -> str:
    """Reject missing or blank credentials before any client is built."""
    if not isinstance(api_key, str) or not api_key.strip():
        raise ConfigurationError(
            "API key must be a non-empty string",
            hint=f"Set {API_KEY_ENV_VAR} or pass api_key=...",
        )
    return api_key


@dataclass(frozen=True)
class Config:
    """Immutable configuration for a Cachet client.

    The API key is auto-resolved from ``OPENAI_API_KEY`` when not given.

    Example:
        config = Config(cache_dir="cache")
        # API key is automatically resolved from OPENAI_API_KEY
    """

    #: Auto-resolved from ``OPENAI_API_KEY`` when *None*.
    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    timeout_s: float = 60.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    #: Persist responses as JSON files under this directory instead of memory.
    cache_dir: str | Path | None = None
    #: LRU bound for the in-memory store; *None* keeps every entry.
    cache_max_entries: int | None = None
    #: Collapse concurrent identical cache misses into one network call.
    single_flight: bool = True
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    use_mock: bool = False

    def __post_init__(self) -> None:
        """Auto-resolve API key and validate configuration."""
        if self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s}",
                hint="This bounds each HTTP exchange in seconds.",
            )
        if self.cache_max_entries is not None and self.cache_max_entries < 1:
            raise ConfigurationError(
                f"cache_max_entries must be ≥ 1, got {self.cache_max_entries}",
                hint="Pass None to keep every cached response.",
            )
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"base_url must be an http(s) URL, got {self.base_url!r}",
            )

        if self.api_key is None and not self.use_mock:
            object.__setattr__(self, "api_key", resolve_api_key())

        # Real API calls need a key
        if not self.use_mock:
            validate_api_key(self.api_key)

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Config(api_key={'[REDACTED]' if self.api_key else None}, "
            f"base_url={self.base_url!r}, cache_dir={self.cache_dir!r}, "
            f"use_mock={self.use_mock})"
        )

    __repr__ = __str__
