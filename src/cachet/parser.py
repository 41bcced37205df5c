"""Response parser: decoded JSON payloads -> typed responses.

Every failure is a :class:`~cachet.errors.ParseError` whose ``field`` names
the offending location, so callers can tell a truncated reply from a schema
drift without reading the payload.
"""

from __future__ import annotations

import json
from typing import Any

from cachet.errors import ConfigurationError, ParseError
from cachet.types import ChatResponse, Choice, Message, ToolCall, Usage


def _require(obj: dict[str, Any], key: str, path: str) -> Any:
    if key not in obj or obj[key] is None:
        raise ParseError(f"Missing required field '{path}'", field=path)
    return obj[key]


def _expect_object(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ParseError(
            f"Expected an object at '{path}', got {type(value).__name__}",
            field=path,
        )
    return value


def _expect_list(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise ParseError(
            f"Expected an array at '{path}', got {type(value).__name__}",
            field=path,
        )
    return value


def _expect_str(value: Any, path: str) -> str:
    if not isinstance(value, str):
        raise ParseError(
            f"Expected a string at '{path}', got {type(value).__name__}",
            field=path,
        )
    return value


def _optional_str(obj: dict[str, Any], key: str, path: str) -> str | None:
    value = obj.get(key)
    return None if value is None else _expect_str(value, path)


def _optional_int(obj: dict[str, Any], key: str, path: str) -> int | None:
    value = obj.get(key)
    if value is None:
        return None
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ParseError(
            f"Expected an integer at '{path}', got {type(value).__name__}",
            field=path,
        )
    return value


def _parse_tool_call(raw: Any, path: str) -> ToolCall:
    obj = _expect_object(raw, path)
    call_id = _expect_str(_require(obj, "id", f"{path}.id"), f"{path}.id")
    function = _expect_object(
        _require(obj, "function", f"{path}.function"), f"{path}.function"
    )
    name = _expect_str(
        _require(function, "name", f"{path}.function.name"), f"{path}.function.name"
    )
    arguments = function.get("arguments")
    if arguments is None:
        arguments = "{}"
    elif isinstance(arguments, (dict, list)):
        # Some compatible servers send decoded arguments; keep them as text.
        arguments = json.dumps(arguments)
    else:
        arguments = _expect_str(arguments, f"{path}.function.arguments")
    return ToolCall(id=call_id, name=name, arguments=arguments)


def parse_message(raw: Any, path: str = "message") -> Message:
    """Parse one message object (content, tool calls, both, or a refusal)."""
    obj = _expect_object(raw, path)
    role = _expect_str(obj.get("role", "assistant"), f"{path}.role")
    content = _optional_str(obj, "content", f"{path}.content")

    tool_calls: tuple[ToolCall, ...] | None = None
    raw_calls = obj.get("tool_calls")
    if raw_calls is not None:
        calls = _expect_list(raw_calls, f"{path}.tool_calls")
        tool_calls = tuple(
            _parse_tool_call(tc, f"{path}.tool_calls[{i}]")
            for i, tc in enumerate(calls)
        )

    try:
        return Message(
            role=role,  # type: ignore[arg-type]
            content=content,
            tool_calls=tool_calls,
            tool_call_id=_optional_str(obj, "tool_call_id", f"{path}.tool_call_id"),
            name=_optional_str(obj, "name", f"{path}.name"),
            refusal=_optional_str(obj, "refusal", f"{path}.refusal"),
        )
    except ConfigurationError as e:
        raise ParseError(f"Invalid message at '{path}': {e}", field=path) from e


def _parse_usage(raw: Any, path: str) -> Usage:
    obj = _expect_object(raw, path)
    return Usage(
        prompt_tokens=_optional_int(obj, "prompt_tokens", f"{path}.prompt_tokens")
        or 0,
        completion_tokens=_optional_int(
            obj, "completion_tokens", f"{path}.completion_tokens"
        )
        or 0,
        total_tokens=_optional_int(obj, "total_tokens", f"{path}.total_tokens") or 0,
    )


def parse_chat_response(payload: Any) -> ChatResponse:
    """Parse a decoded chat completion body into a :class:`ChatResponse`."""
    root = _expect_object(payload, "$")
    raw_choices = _expect_list(_require(root, "choices", "choices"), "choices")
    if not raw_choices:
        raise ParseError("Response contains no choices", field="choices")

    choices: list[Choice] = []
    for i, raw in enumerate(raw_choices):
        path = f"choices[{i}]"
        obj = _expect_object(raw, path)
        message = parse_message(
            _require(obj, "message", f"{path}.message"), f"{path}.message"
        )
        index = _optional_int(obj, "index", f"{path}.index")
        choices.append(
            Choice(
                index=i if index is None else index,
                message=message,
                finish_reason=_optional_str(
                    obj, "finish_reason", f"{path}.finish_reason"
                ),
            )
        )

    usage = root.get("usage")
    return ChatResponse(
        choices=tuple(choices),
        id=_optional_str(root, "id", "id"),
        model=_optional_str(root, "model", "model"),
        created=_optional_int(root, "created", "created"),
        usage=None if usage is None else _parse_usage(usage, "usage"),
        system_fingerprint=_optional_str(
            root, "system_fingerprint", "system_fingerprint"
        ),
    )


def parse_embedding_response(payload: Any) -> list[float]:
    """Return ``data[0].embedding`` as a list of floats."""
    root = _expect_object(payload, "$")
    data = _expect_list(_require(root, "data", "data"), "data")
    if not data:
        raise ParseError("Embedding response contains no data", field="data")
    first = _expect_object(data[0], "data[0]")
    values = _expect_list(
        _require(first, "embedding", "data[0].embedding"), "data[0].embedding"
    )
    out: list[float] = []
    for i, v in enumerate(values):
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ParseError(
                f"Expected a number at 'data[0].embedding[{i}]'",
                field=f"data[0].embedding[{i}]",
            )
        out.append(float(v))
    return out
