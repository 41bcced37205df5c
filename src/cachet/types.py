"""Request/response data model.

All values are frozen dataclasses. Sequences are stored as tuples so a
request template can be shared across concurrent calls without copying.
Builder methods (``with_*``) return updated copies.

Example:
    ```python
    request = ChatRequest(
        ModelId.GPT_4O_MINI,
        [Message.user("What is the weather like in Boston?")],
    ).with_tools([ToolDeclaration("get_weather", parameters=schema)])
    ```
"""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from dataclasses import dataclass, field, replace
from enum import Enum
import json
from typing import TYPE_CHECKING, Any, Literal, TypeVar, get_args

from pydantic import BaseModel, ValidationError

from cachet.errors import ConfigurationError, ParseError

if TYPE_CHECKING:
    from collections.abc import Iterable

ModelT = TypeVar("ModelT", bound=BaseModel)

Role = Literal["system", "user", "assistant", "tool"]
ToolChoiceMode = Literal["auto", "required", "none"]

_ROLES: frozenset[str] = frozenset(get_args(Role))
_TOOL_CHOICE_MODES: frozenset[str] = frozenset(get_args(ToolChoiceMode))
_MAX_STOP_SEQUENCES = 4


class ModelId(str, Enum):
    """Well-known model identifiers."""

    GPT_5 = "gpt-5"
    GPT_5_MINI = "gpt-5-mini"
    GPT_5_NANO = "gpt-5-nano"
    GPT_4_1 = "gpt-4.1"
    GPT_4_1_MINI = "gpt-4.1-mini"
    GPT_4O = "gpt-4o"
    GPT_4O_2024_08_06 = "gpt-4o-2024-08-06"
    GPT_4O_MINI = "gpt-4o-mini"
    GPT_3_5_TURBO = "gpt-3.5-turbo"
    TEXT_EMBEDDING_3_SMALL = "text-embedding-3-small"
    TEXT_EMBEDDING_3_LARGE = "text-embedding-3-large"

    def __str__(self) -> str:
        return self.value


def model_name(model: ModelId | str) -> str:
    """Return the wire name for *model*."""
    return model.value if isinstance(model, ModelId) else model


def _normalize_model(model: ModelId | str) -> ModelId | str:
    if isinstance(model, ModelId):
        return model
    if not isinstance(model, str) or not model.strip():
        raise ConfigurationError(
            "model must be a ModelId or a non-empty model name",
            hint="Use ModelId.GPT_4O_MINI or a string such as 'gpt-4o-mini'.",
        )
    try:
        return ModelId(model)
    except ValueError:
        return model


@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the model.

    ``arguments`` is the raw JSON text produced by the model. Its schema is
    defined by the caller, so decoding is left to :meth:`parse_arguments` or
    :meth:`parse_arguments_as`.
    """

    id: str
    name: str
    arguments: str = "{}"

    def parse_arguments(self) -> Any:
        """Decode the raw arguments as plain JSON values."""
        try:
            return json.loads(self.arguments)
        except ValueError as e:
            raise ParseError(
                f"Tool call {self.name!r} has invalid JSON arguments: {e}",
                field="arguments",
            ) from e

    def parse_arguments_as(self, model: type[ModelT]) -> ModelT:
        """Validate the raw arguments against a caller-defined pydantic model."""
        try:
            return model.model_validate_json(self.arguments)
        except ValidationError as e:
            raise ParseError(
                f"Tool call {self.name!r} arguments do not match {model.__name__}",
                field="arguments",
                hint=str(e),
            ) from e


@dataclass(frozen=True)
class Message:
    """A single conversational turn."""

    role: Role
    content: str | None = None
    tool_calls: tuple[ToolCall, ...] | None = None
    tool_call_id: str | None = None
    name: str | None = None
    #: Set by the service when an assistant declines to answer.
    refusal: str | None = None

    def __post_init__(self) -> None:
        """Validate role-specific shape."""
        if self.role not in _ROLES:
            raise ConfigurationError(
                f"Unknown message role: {self.role!r}",
                hint="Use one of: system, user, assistant, tool.",
            )
        if self.content is not None and not isinstance(self.content, str):
            raise ConfigurationError("message content must be a string or None")

        if self.tool_calls is not None:
            calls = tuple(self.tool_calls)
            for call in calls:
                if not isinstance(call, ToolCall):
                    raise ConfigurationError(
                        f"Expected ToolCall, got {type(call).__name__}"
                    )
            object.__setattr__(self, "tool_calls", calls or None)
        if self.tool_calls is not None and self.role != "assistant":
            raise ConfigurationError(
                f"Only assistant messages may carry tool_calls, got role={self.role!r}"
            )

        if self.role == "tool" and not self.tool_call_id:
            raise ConfigurationError(
                "Tool messages require a tool_call_id",
                hint="Echo the id of the ToolCall this message answers.",
            )
        if self.role != "assistant" and self.content is None:
            raise ConfigurationError(f"{self.role} messages require content")
        if self.refusal is not None and self.role != "assistant":
            raise ConfigurationError(
                f"Only assistant messages may carry a refusal, got role={self.role!r}"
            )
        if (
            self.role == "assistant"
            and self.content is None
            and not self.tool_calls
            and self.refusal is None
        ):
            raise ConfigurationError(
                "Assistant messages need content, tool_calls, or a refusal"
            )

    @classmethod
    def system(cls, content: str) -> Message:
        return cls("system", content)

    @classmethod
    def user(cls, content: str, *, name: str | None = None) -> Message:
        return cls("user", content, name=name)

    @classmethod
    def assistant(
        cls,
        content: str | None = None,
        *,
        tool_calls: Iterable[ToolCall] | None = None,
        refusal: str | None = None,
    ) -> Message:
        calls = tuple(tool_calls) if tool_calls is not None else None
        return cls("assistant", content, tool_calls=calls, refusal=refusal)

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> Message:
        return cls("tool", content, tool_call_id=tool_call_id)


@dataclass(frozen=True)
class ToolDeclaration:
    """A function the model may call, described by a JSON schema."""

    name: str
    description: str | None = None
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def __post_init__(self) -> None:
        """Validate the name and freeze a private copy of the schema."""
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConfigurationError("Tool name must be a non-empty string")
        if not isinstance(self.parameters, dict):
            raise ConfigurationError(
                f"Tool {self.name!r} parameters must be a JSON schema dict",
                hint="Pass parameters={'type': 'object', 'properties': {...}}.",
            )
        try:
            json.dumps(self.parameters, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Tool {self.name!r} parameters are not JSON-serializable: {e}"
            ) from e
        object.__setattr__(self, "parameters", deepcopy(self.parameters))

    @classmethod
    def from_model(
        cls,
        name: str,
        model: type[BaseModel],
        description: str | None = None,
    ) -> ToolDeclaration:
        """Declare a tool whose arguments follow a pydantic model."""
        return cls(
            name=name,
            description=description or (model.__doc__ or "").strip() or None,
            parameters=model.model_json_schema(),
        )


ResponseFormatType = Literal["text", "json_object", "json_schema"]
_RESPONSE_FORMAT_TYPES: frozenset[str] = frozenset(get_args(ResponseFormatType))


@dataclass(frozen=True)
class ResponseFormat:
    """Constraint on the shape of the reply (``response_format`` on the wire).

    ``json_object`` asks for any valid JSON document. ``json_schema`` asks for
    JSON matching ``schema``, enforced by the service when ``strict`` is set.
    """

    type: ResponseFormatType = "text"
    name: str | None = None
    schema: dict[str, Any] | None = None
    strict: bool = True

    def __post_init__(self) -> None:
        if self.type not in _RESPONSE_FORMAT_TYPES:
            raise ConfigurationError(
                f"Unknown response format type: {self.type!r}",
                hint="Use 'text', 'json_object' or 'json_schema'.",
            )
        if self.type != "json_schema":
            if self.name is not None or self.schema is not None:
                raise ConfigurationError(
                    f"A {self.type!r} response format takes no name or schema"
                )
            return
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConfigurationError(
                "A json_schema response format needs a non-empty name"
            )
        if not isinstance(self.schema, dict):
            raise ConfigurationError(
                f"Response format {self.name!r} schema must be a dict",
                hint="Pass a JSON schema or use ResponseFormat.from_model(...).",
            )
        try:
            json.dumps(self.schema, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Response format {self.name!r} schema is not JSON-serializable: {e}"
            ) from e
        object.__setattr__(self, "schema", deepcopy(self.schema))

    @classmethod
    def text(cls) -> ResponseFormat:
        return cls("text")

    @classmethod
    def json(cls) -> ResponseFormat:
        return cls("json_object")

    @classmethod
    def json_schema(
        cls, name: str, schema: dict[str, Any], *, strict: bool = True
    ) -> ResponseFormat:
        return cls("json_schema", name=name, schema=schema, strict=strict)

    @classmethod
    def from_model(
        cls, model: type[BaseModel], *, name: str | None = None, strict: bool = True
    ) -> ResponseFormat:
        """Ask for replies that validate against a pydantic model."""
        return cls.json_schema(
            name or model.__name__, model.model_json_schema(), strict=strict
        )


def _number(
    name: str, value: float | None, low: float, high: float
) -> float | None:
    """Validate an optional bounded number and return it as a float."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(
            f"{name} must be a number, got {type(value).__name__}"
        )
    value = float(value)
    if not low <= value <= high:
        raise ConfigurationError(f"{name} must be within [{low:g}, {high:g}], got {value}")
    return value


def _positive_int(name: str, value: int | None) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
    return value


def _stop_sequences(stop: str | Iterable[str] | None) -> tuple[str, ...] | None:
    if stop is None:
        return None
    sequences = (stop,) if isinstance(stop, str) else tuple(stop)
    if not 1 <= len(sequences) <= _MAX_STOP_SEQUENCES:
        raise ConfigurationError(
            f"stop takes 1 to {_MAX_STOP_SEQUENCES} sequences, got {len(sequences)}"
        )
    for s in sequences:
        if not isinstance(s, str) or not s:
            raise ConfigurationError("stop sequences must be non-empty strings")
    return sequences


def _logit_bias(bias: Mapping[int | str, float] | None) -> dict[str, float] | None:
    if bias is None:
        return None
    if not isinstance(bias, Mapping):
        raise ConfigurationError("logit_bias must map token ids to biases")
    out: dict[str, float] = {}
    for token, value in bias.items():
        token_id = str(token)
        if isinstance(token, bool) or not token_id.isdigit():
            raise ConfigurationError(
                f"logit_bias keys must be token ids, got {token!r}",
                hint="Use the integer token id from the model's tokenizer.",
            )
        out[token_id] = _number(f"logit_bias[{token_id}]", value, -100, 100)  # type: ignore[assignment]
    return out


@dataclass(frozen=True)
class ChatRequest:
    """An immutable chat completion request."""

    model: ModelId | str
    messages: tuple[Message, ...]
    instructions: str | None = None
    tools: tuple[ToolDeclaration, ...] | None = None
    #: ``"auto" | "required" | "none"`` or the name of a declared tool.
    tool_choice: str | None = None
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    seed: int | None = None
    user: str | None = None
    response_format: ResponseFormat | None = None
    #: Up to four sequences at which generation stops.
    stop: tuple[str, ...] | None = None
    #: Number of choices to generate.
    n: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    #: Token id (as a decimal string) -> bias in [-100, 100].
    logit_bias: dict[str, float] | None = None

    def __post_init__(self) -> None:
        """Normalize sequences and reject invalid requests at construction."""
        object.__setattr__(self, "model", _normalize_model(self.model))

        messages = tuple(self.messages)
        if not messages:
            raise ConfigurationError(
                "A chat request needs at least one message",
                hint="Pass [Message.user('...')].",
            )
        for m in messages:
            if not isinstance(m, Message):
                raise ConfigurationError(
                    f"Expected Message, got {type(m).__name__}",
                    hint="Use Message.user(), Message.system(), etc.",
                )
        object.__setattr__(self, "messages", messages)

        if self.instructions is not None and not isinstance(self.instructions, str):
            raise ConfigurationError("instructions must be a string")

        if self.tools is not None:
            tools = tuple(self.tools)
            seen: set[str] = set()
            for t in tools:
                if not isinstance(t, ToolDeclaration):
                    raise ConfigurationError(
                        f"Expected ToolDeclaration, got {type(t).__name__}"
                    )
                if t.name in seen:
                    raise ConfigurationError(
                        f"Duplicate tool name: {t.name!r}",
                        hint="Tool names must be unique within a request.",
                    )
                seen.add(t.name)
            object.__setattr__(self, "tools", tools)

        if self.tool_choice is not None and self.tool_choice not in _TOOL_CHOICE_MODES:
            if self.tool_choice not in {t.name for t in self.tools or ()}:
                raise ConfigurationError(
                    f"tool_choice names an undeclared tool: {self.tool_choice!r}",
                    hint="Use 'auto', 'required', 'none' or a declared tool name.",
                )

        if self.response_format is not None and not isinstance(
            self.response_format, ResponseFormat
        ):
            raise ConfigurationError(
                f"Expected ResponseFormat, got {type(self.response_format).__name__}",
                hint="Use ResponseFormat.json() or ResponseFormat.from_model(...).",
            )

        # Integers become floats so equal requests encode identically.
        for name, low, high in (
            ("temperature", 0, 2),
            ("top_p", 0, 1),
            ("frequency_penalty", -2, 2),
            ("presence_penalty", -2, 2),
        ):
            object.__setattr__(self, name, _number(name, getattr(self, name), low, high))
        _positive_int("max_tokens", self.max_tokens)
        _positive_int("n", self.n)
        object.__setattr__(self, "stop", _stop_sequences(self.stop))
        object.__setattr__(self, "logit_bias", _logit_bias(self.logit_bias))

    # Builders. Each returns a new request; the receiver is never modified.

    def with_instructions(self, instructions: str | None) -> ChatRequest:
        return replace(self, instructions=instructions)

    def with_tools(self, tools: Iterable[ToolDeclaration] | None) -> ChatRequest:
        return replace(self, tools=tuple(tools) if tools is not None else None)

    def with_tool_choice(self, tool_choice: str | None) -> ChatRequest:
        return replace(self, tool_choice=tool_choice)

    def with_response_format(
        self, response_format: ResponseFormat | None
    ) -> ChatRequest:
        return replace(self, response_format=response_format)

    def with_temperature(self, temperature: float | None) -> ChatRequest:
        return replace(self, temperature=temperature)

    def with_top_p(self, top_p: float | None) -> ChatRequest:
        return replace(self, top_p=top_p)

    def with_max_tokens(self, max_tokens: int | None) -> ChatRequest:
        return replace(self, max_tokens=max_tokens)

    def with_seed(self, seed: int | None) -> ChatRequest:
        return replace(self, seed=seed)

    def with_stop(self, stop: str | Iterable[str] | None) -> ChatRequest:
        return replace(self, stop=stop)

    def with_n(self, n: int | None) -> ChatRequest:
        return replace(self, n=n)

    def with_penalties(
        self,
        *,
        frequency: float | None = None,
        presence: float | None = None,
    ) -> ChatRequest:
        return replace(self, frequency_penalty=frequency, presence_penalty=presence)

    def with_logit_bias(self, logit_bias: Mapping[int | str, float] | None) -> ChatRequest:
        return replace(self, logit_bias=logit_bias)

    def with_messages(self, messages: Iterable[Message]) -> ChatRequest:
        return replace(self, messages=tuple(messages))

    def with_message(self, message: Message) -> ChatRequest:
        """Return a copy with *message* appended to the history."""
        return replace(self, messages=(*self.messages, message))


@dataclass(frozen=True)
class Usage:
    """Token accounting reported by the service."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class Choice:
    """One candidate reply."""

    index: int
    message: Message
    finish_reason: str | None = None


@dataclass(frozen=True)
class ChatResponse:
    """A parsed chat completion."""

    choices: tuple[Choice, ...]
    id: str | None = None
    model: str | None = None
    created: int | None = None
    usage: Usage | None = None
    system_fingerprint: str | None = None

    @property
    def message(self) -> Message:
        """The first choice's message."""
        return self.choices[0].message

    @property
    def text(self) -> str | None:
        return self.message.content

    @property
    def tool_calls(self) -> tuple[ToolCall, ...]:
        return self.message.tool_calls or ()

    @property
    def refusal(self) -> str | None:
        return self.message.refusal
