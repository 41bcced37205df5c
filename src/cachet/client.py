"""OpenAILLM: the caching chat/embedding client."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from cachet.cache import FileCacheStore, MemoryCacheStore
from cachet.config import DEFAULT_EMBEDDING_MODEL, Config, validate_api_key
from cachet.dispatch import Dispatcher
from cachet.providers.openai import HttpTransport

if TYPE_CHECKING:
    from types import TracebackType

    from cachet.cache import CacheStore
    from cachet.providers.base import Transport
    from cachet.retry import RetryPolicy
    from cachet.types import ChatRequest, ChatResponse

logger = logging.getLogger(__name__)


class OpenAILLM:
    """Chat completion client with a per-instance response cache.

    Each instance owns its transport and cache store; clients never share
    cached entries unless they are explicitly handed the same store.

    Example:
        llm = OpenAILLM.with_defaults(api_key)
        response, from_cache = await llm.make_request(request)
    """

    def __init__(
        self,
        transport: Transport,
        *,
        store: CacheStore | None = None,
        retry: RetryPolicy | None = None,
        single_flight: bool = True,
        embedding_model: str = DEFAULT_EMBEDDING_MODEL,
    ) -> None:
        self._dispatcher = Dispatcher(
            transport,
            store if store is not None else MemoryCacheStore(),
            retry_policy=retry,
            single_flight=single_flight,
            embedding_model=embedding_model,
        )

    @classmethod
    def with_defaults(cls, api_key: str) -> OpenAILLM:
        """Build a client for the public OpenAI endpoint with an in-memory cache.

        Raises ConfigurationError for a missing or blank key. No network I/O
        happens until the first request.
        """
        validate_api_key(api_key)
        return cls(HttpTransport(api_key))

    @classmethod
    def from_config(cls, config: Config | None = None) -> OpenAILLM:
        """Build a client from a :class:`Config` (resolved from the env by default)."""
        config = config if config is not None else Config()

        transport: Transport
        if config.use_mock:
            from cachet.providers.mock import MockTransport

            transport = MockTransport()
        else:
            transport = HttpTransport(
                validate_api_key(config.api_key),
                base_url=config.base_url,
                timeout_s=config.timeout_s,
            )

        store: CacheStore
        if config.cache_dir is not None:
            store = FileCacheStore(config.cache_dir)
        else:
            store = MemoryCacheStore(max_entries=config.cache_max_entries)

        return cls(
            transport,
            store=store,
            retry=config.retry,
            single_flight=config.single_flight,
            embedding_model=config.embedding_model,
        )

    @property
    def store(self) -> CacheStore:
        return self._dispatcher.store

    @property
    def transport(self) -> Transport:
        return self._dispatcher.transport

    async def make_request(self, request: ChatRequest) -> tuple[ChatResponse, bool]:
        """Return ``(response, is_from_cache)`` for *request*."""
        return await self._dispatcher.make_request(request)

    async def embed(self, text: str, *, model: str | None = None) -> list[float]:
        """Return the embedding vector for *text* (never cached)."""
        return await self._dispatcher.embed(text, model=model)

    async def aclose(self) -> None:
        """Close the transport. Cleanup failures are logged, never raised."""
        try:
            await self._dispatcher.transport.aclose()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Transport cleanup failed: %s", exc)

    async def __aenter__(self) -> OpenAILLM:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
