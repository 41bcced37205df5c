"""Cachet: a caching async client for hosted LLM chat and embedding APIs.

Public API:
    - OpenAILLM: client with per-instance response cache
    - ChatRequest / Message / ToolDeclaration / ResponseFormat: request model
    - ChatResponse / ToolCall: parsed responses
    - make_uncached_embedding_request(): standalone embedding call
    - Config: configuration dataclass
"""

from __future__ import annotations

import logging

from cachet.cache import (
    CacheEntry,
    CacheStore,
    FileCacheStore,
    MemoryCacheStore,
    fingerprint,
)
from cachet.client import OpenAILLM
from cachet.config import Config
from cachet.embedding import make_uncached_embedding_request
from cachet.errors import (
    AuthenticationError,
    CacheError,
    CachetError,
    ConfigurationError,
    InvalidRequestError,
    ParseError,
    RateLimitError,
    ServerError,
    ServiceError,
    TransportError,
)
from cachet.retry import RetryPolicy
from cachet.types import (
    ChatRequest,
    ChatResponse,
    Choice,
    Message,
    ModelId,
    ResponseFormat,
    ToolCall,
    ToolDeclaration,
    Usage,
)

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("cachet-llm")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("cachet").addHandler(logging.NullHandler())

__all__ = [
    "AuthenticationError",
    "CacheEntry",
    "CacheError",
    "CacheStore",
    "CachetError",
    "ChatRequest",
    "ChatResponse",
    "Choice",
    "Config",
    "ConfigurationError",
    "FileCacheStore",
    "InvalidRequestError",
    "MemoryCacheStore",
    "Message",
    "ModelId",
    "OpenAILLM",
    "ParseError",
    "RateLimitError",
    "ResponseFormat",
    "RetryPolicy",
    "ServerError",
    "ServiceError",
    "ToolCall",
    "ToolDeclaration",
    "TransportError",
    "Usage",
    "fingerprint",
    "make_uncached_embedding_request",
]
