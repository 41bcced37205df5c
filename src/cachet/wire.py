"""Wire codec: data model -> JSON documents sent to (or stored for) the service.

The shapes mirror the Chat Completions API. Decoding lives in
:mod:`cachet.parser`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from cachet.types import model_name

if TYPE_CHECKING:
    from cachet.types import (
        ChatRequest,
        ChatResponse,
        Message,
        ResponseFormat,
        ToolCall,
        ToolDeclaration,
    )


def encode_tool_call(call: ToolCall) -> dict[str, Any]:
    return {
        "id": call.id,
        "type": "function",
        "function": {"name": call.name, "arguments": call.arguments},
    }


def encode_message(message: Message) -> dict[str, Any]:
    out: dict[str, Any] = {"role": message.role}
    if message.content is not None:
        out["content"] = message.content
    if message.name is not None:
        out["name"] = message.name
    if message.tool_calls is not None:
        out["tool_calls"] = [encode_tool_call(tc) for tc in message.tool_calls]
    if message.tool_call_id is not None:
        out["tool_call_id"] = message.tool_call_id
    if message.refusal is not None:
        out["refusal"] = message.refusal
    return out


def encode_tool(tool: ToolDeclaration) -> dict[str, Any]:
    function: dict[str, Any] = {"name": tool.name}
    if tool.description is not None:
        function["description"] = tool.description
    function["parameters"] = tool.parameters
    return {"type": "function", "function": function}


def encode_response_format(response_format: ResponseFormat) -> dict[str, Any]:
    if response_format.type != "json_schema":
        return {"type": response_format.type}
    return {
        "type": "json_schema",
        "json_schema": {
            "name": response_format.name,
            "schema": response_format.schema,
            "strict": response_format.strict,
        },
    }


def encode_tool_choice(tool_choice: str) -> str | dict[str, Any]:
    if tool_choice in ("auto", "required", "none"):
        return tool_choice
    return {"type": "function", "function": {"name": tool_choice}}


def encode_chat_request(
    request: ChatRequest, *, canonical: bool = False
) -> dict[str, Any]:
    """Encode *request* as a Chat Completions request body.

    Chat Completions has no dedicated instructions field, so the instructions
    travel as a leading system message and an empty tool list is omitted.
    With ``canonical=True`` the document instead keeps every field
    distinguishable (instructions under their own key, ``"tools": []`` kept),
    which is the form used for fingerprinting.
    """
    messages = [encode_message(m) for m in request.messages]
    body: dict[str, Any] = {"model": model_name(request.model)}

    if request.instructions is not None:
        if canonical:
            body["instructions"] = request.instructions
        else:
            messages.insert(0, {"role": "system", "content": request.instructions})
    body["messages"] = messages

    if request.tools is not None and (request.tools or canonical):
        body["tools"] = [encode_tool(t) for t in request.tools]
    if request.tool_choice is not None:
        body["tool_choice"] = encode_tool_choice(request.tool_choice)
    if request.temperature is not None:
        body["temperature"] = request.temperature
    if request.top_p is not None:
        body["top_p"] = request.top_p
    if request.max_tokens is not None:
        body["max_tokens"] = request.max_tokens
    if request.seed is not None:
        body["seed"] = request.seed
    if request.response_format is not None:
        body["response_format"] = encode_response_format(request.response_format)
    if request.stop is not None:
        body["stop"] = list(request.stop)
    if request.n is not None:
        body["n"] = request.n
    if request.frequency_penalty is not None:
        body["frequency_penalty"] = request.frequency_penalty
    if request.presence_penalty is not None:
        body["presence_penalty"] = request.presence_penalty
    if request.logit_bias is not None:
        body["logit_bias"] = dict(request.logit_bias)
    if request.user is not None:
        body["user"] = request.user
    return body


def encode_chat_response(response: ChatResponse) -> dict[str, Any]:
    """Encode *response* in the service's own response shape.

    ``parser.parse_chat_response(encode_chat_response(r)) == r`` holds for
    every parsed response, which is what the file cache store relies on.
    """
    body: dict[str, Any] = {"object": "chat.completion"}
    if response.id is not None:
        body["id"] = response.id
    if response.model is not None:
        body["model"] = response.model
    if response.created is not None:
        body["created"] = response.created
    if response.system_fingerprint is not None:
        body["system_fingerprint"] = response.system_fingerprint
    body["choices"] = [
        {
            "index": c.index,
            "message": encode_message(c.message),
            "finish_reason": c.finish_reason,
        }
        for c in response.choices
    ]
    if response.usage is not None:
        body["usage"] = {
            "prompt_tokens": response.usage.prompt_tokens,
            "completion_tokens": response.usage.completion_tokens,
            "total_tokens": response.usage.total_tokens,
        }
    return body
