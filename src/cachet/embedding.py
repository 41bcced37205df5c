"""Embeddings: a single uncached round trip."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from cachet._http import DEFAULT_BASE_URL, EMBEDDINGS_PATH
from cachet.config import DEFAULT_EMBEDDING_MODEL, validate_api_key
from cachet.errors import ConfigurationError
from cachet.parser import parse_embedding_response
from cachet.providers.openai import HttpTransport
from cachet.retry import RetryPolicy, retry_async, should_retry

if TYPE_CHECKING:
    import httpx


def encode_embedding_request(text: str, model: str) -> dict[str, Any]:
    if not isinstance(text, str) or not text:
        raise ConfigurationError(
            "Embedding input must be a non-empty string",
            hint="Pass the text to embed, e.g. embed('hello world').",
        )
    return {"input": text, "model": model}


async def make_uncached_embedding_request(
    text: str,
    api_key: str,
    *,
    model: str = DEFAULT_EMBEDDING_MODEL,
    base_url: str = DEFAULT_BASE_URL,
    retry: RetryPolicy | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> list[float]:
    """Embed *text* without any client state.

    Example:
        vector = await make_uncached_embedding_request("hello", api_key)
    """
    validate_api_key(api_key)
    payload = encode_embedding_request(text, model)
    transport = HttpTransport(api_key, base_url=base_url, http_transport=http_transport)
    try:
        body = await retry_async(
            lambda: transport.send(EMBEDDINGS_PATH, payload),
            policy=retry or RetryPolicy(),
            should_retry=should_retry,
        )
    finally:
        await transport.aclose()
    return parse_embedding_response(body)
