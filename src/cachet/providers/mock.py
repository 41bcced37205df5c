"""Mock transport for offline use and testing."""

from __future__ import annotations

import hashlib
from typing import Any

from cachet._http import CHAT_COMPLETIONS_PATH, EMBEDDINGS_PATH
from cachet.errors import InvalidRequestError


class MockTransport:
    """Answer requests with deterministic synthetic payloads.

    Chat requests echo the last message's content; embedding requests return
    a short vector derived from the input's SHA-256 digest.
    """

    def __init__(self) -> None:
        self.calls = 0

    async def send(self, path: str, payload: dict[str, Any]) -> Any:
        self.calls += 1
        if path == CHAT_COMPLETIONS_PATH:
            messages = payload.get("messages") or [{}]
            text = messages[-1].get("content") or ""
            return {
                "id": f"chatcmpl-mock-{self.calls}",
                "object": "chat.completion",
                "model": payload.get("model"),
                "choices": [
                    {
                        "index": 0,
                        "message": {"role": "assistant", "content": f"echo: {text[:100]}"},
                        "finish_reason": "stop",
                    }
                ],
                "usage": {"prompt_tokens": 10, "completion_tokens": 10, "total_tokens": 20},
            }
        if path == EMBEDDINGS_PATH:
            digest = hashlib.sha256(str(payload.get("input", "")).encode()).digest()
            return {
                "object": "list",
                "data": [
                    {
                        "object": "embedding",
                        "index": 0,
                        "embedding": [b / 255.0 for b in digest[:8]],
                    }
                ],
                "model": payload.get("model"),
            }
        raise InvalidRequestError(f"Mock transport has no route for {path}", status_code=404)

    async def aclose(self) -> None:
        return None
