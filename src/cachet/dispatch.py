"""Dispatch: cache lookup, retried network call, parse, cache fill."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx

from cachet._http import CHAT_COMPLETIONS_PATH, EMBEDDINGS_PATH
from cachet._singleflight import SingleFlight
from cachet.cache import CacheEntry, canonical_request, fingerprint
from cachet.config import DEFAULT_EMBEDDING_MODEL
from cachet.embedding import encode_embedding_request
from cachet.errors import CacheError, CachetError
from cachet.parser import parse_chat_response, parse_embedding_response
from cachet.providers._errors import wrap_transport_error
from cachet.retry import RetryPolicy, retry_async, should_retry
from cachet.wire import encode_chat_request

if TYPE_CHECKING:
    from cachet.cache import CacheStore
    from cachet.providers.base import Transport
    from cachet.types import ChatRequest, ChatResponse

logger = logging.getLogger(__name__)


class Dispatcher:
    """Serve chat requests from a cache store or the network.

    Owns no global state: the store, transport and in-flight table belong to
    this instance, so two dispatchers never observe each other's entries.
    """

    def __init__(
        self,
        transport: Transport,
        store: CacheStore,
        *,
        retry_policy: RetryPolicy | None = None,
        single_flight: bool = True,
        embedding_model: str = DEFAULT_EMBEDDING_MODEL,
    ) -> None:
        self.transport = transport
        self.store = store
        self.retry_policy = retry_policy or RetryPolicy()
        self.single_flight = single_flight
        self.embedding_model = embedding_model
        self._flights: SingleFlight[ChatResponse] = SingleFlight()

    async def make_request(self, request: ChatRequest) -> tuple[ChatResponse, bool]:
        """Return ``(response, was_cache_hit)`` for *request*.

        Handles:
        - Cache lookup by request fingerprint (no network on a hit)
        - Bounded retry of transient transport/service failures
        - Caching of successfully parsed responses only
        """
        try:
            key = fingerprint(request)
        except CacheError as e:
            logger.warning("Cache bypassed, request could not be fingerprinted: %s", e)
            return await self._fetch(request), False

        cached = self._lookup(key, request)
        if cached is not None:
            logger.debug("Cache hit %s", key[:12])
            return cached, True

        logger.debug("Cache miss %s", key[:12])
        if not self.single_flight:
            response = await self._fetch(request)
            self._store(key, request, response)
            return response, False

        response, origin = await self._flights.run(
            key,
            lookup=lambda k: self._lookup(k, request),
            store=lambda k, v: self._store(k, request, v),
            work=lambda: self._fetch(request),
        )
        if origin == "shared":
            logger.debug("Joined in-flight request %s", key[:12])
        return response, origin == "cache"

    async def embed(self, text: str, *, model: str | None = None) -> list[float]:
        """Embed *text*. Shares the retry contract; never cached."""
        payload = encode_embedding_request(text, model or self.embedding_model)
        body = await retry_async(
            lambda: self._send(EMBEDDINGS_PATH, payload),
            policy=self.retry_policy,
            should_retry=should_retry,
        )
        return parse_embedding_response(body)

    def _lookup(self, key: str, request: ChatRequest) -> ChatResponse | None:
        try:
            entry = self.store.get(key)
        except CacheError as e:
            logger.warning("Cache lookup failed for %s, treating as miss: %s", key[:12], e)
            return None
        if entry is None:
            return None
        if not entry.matches(request):
            logger.warning("Cached request for %s does not match, ignoring entry", key[:12])
            return None
        return entry.response

    def _store(self, key: str, request: ChatRequest, response: ChatResponse) -> None:
        entry = CacheEntry(
            fingerprint=key, request=canonical_request(request), response=response
        )
        try:
            self.store.put(key, entry)
        except CacheError as e:
            logger.warning("Could not cache response for %s: %s", key[:12], e)

    async def _fetch(self, request: ChatRequest) -> ChatResponse:
        payload = encode_chat_request(request)
        body = await retry_async(
            lambda: self._send(CHAT_COMPLETIONS_PATH, payload),
            policy=self.retry_policy,
            should_retry=should_retry,
        )
        # Parsing happens outside the retry loop: a malformed payload would
        # fail the same way again.
        return parse_chat_response(body)

    async def _send(self, path: str, payload: dict[str, Any]) -> Any:
        try:
            return await self.transport.send(path, payload)
        except asyncio.CancelledError:
            raise
        except CachetError:
            raise
        except (httpx.RequestError, TimeoutError) as e:
            raise wrap_transport_error(e, phase=path.strip("/")) from e
