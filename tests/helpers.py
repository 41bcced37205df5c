"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: it exists to prevent test suites from
growing lots of one-off transport classes as coverage expands.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from cachet.retry import RetryPolicy

# Retries without sleeping.
FAST_RETRY = RetryPolicy(max_attempts=3, initial_delay_s=0.0, jitter=False)


def chat_payload(
    content: str | None = "Hello there, how may I assist you today?",
    *,
    tool_calls: list[dict[str, Any]] | None = None,
    finish_reason: str = "stop",
) -> dict[str, Any]:
    """Build a chat completion body in the service's shape."""
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    return {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "created": 1677652288,
        "model": "gpt-4o-mini",
        "system_fingerprint": "fp_44709d6fcb",
        "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
        "usage": {"prompt_tokens": 9, "completion_tokens": 12, "total_tokens": 21},
    }


def tool_call_payload(
    call_id: str = "call_abc123",
    name: str = "get_current_weather",
    arguments: str = '{\n"location": "Boston, MA"\n}',
) -> dict[str, Any]:
    return {
        "id": call_id,
        "type": "function",
        "function": {"name": name, "arguments": arguments},
    }


@dataclass
class ScriptedTransport:
    """Transport that returns a scripted sequence of payloads/exceptions.

    Once the script runs out, the last default payload is returned.
    """

    script: list[Any] = field(default_factory=list)
    default: Any = field(default_factory=chat_payload)
    calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    closed: bool = False

    async def send(self, path: str, payload: dict[str, Any]) -> Any:
        self.calls.append((path, payload))
        if not self.script:
            return self.default
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class GateTransport(ScriptedTransport):
    """ScriptedTransport with an explicit barrier for concurrency tests."""

    started: asyncio.Event = field(default_factory=asyncio.Event)
    release: asyncio.Event = field(default_factory=asyncio.Event)

    async def send(self, path: str, payload: dict[str, Any]) -> Any:
        self.started.set()
        await self.release.wait()
        return await super().send(path, payload)
