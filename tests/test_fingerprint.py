"""Request fingerprint: determinism and sensitivity.

Identical requests must share a key; any single-field difference must not.
"""

from __future__ import annotations

from collections.abc import Callable
import copy

from hypothesis import given, settings
from hypothesis import strategies as st
import pytest

from cachet.cache import canonical_request, fingerprint
from cachet.types import (
    ChatRequest,
    Message,
    ModelId,
    ResponseFormat,
    ToolCall,
    ToolDeclaration,
)
from tests.conftest import WEATHER_SCHEMA

pytestmark = pytest.mark.unit


# =============================================================================
# Strategies
# =============================================================================

_text = st.text(max_size=40)

_tool_calls = st.builds(
    ToolCall,
    id=st.text(min_size=1, max_size=8),
    name=st.text(min_size=1, max_size=8),
    arguments=_text,
)

_messages = st.one_of(
    st.builds(Message.system, _text),
    st.builds(Message.user, _text),
    st.builds(
        Message.assistant,
        _text,
        tool_calls=st.one_of(st.none(), st.lists(_tool_calls, max_size=3)),
    ),
    st.builds(Message.tool, st.text(min_size=1, max_size=8), _text),
)

_schemas = st.dictionaries(
    st.text(min_size=1, max_size=6),
    st.one_of(
        st.integers(),
        st.floats(allow_nan=False, allow_infinity=False),
        _text,
        st.booleans(),
        st.none(),
    ),
    max_size=4,
)

_tools = st.lists(
    st.builds(
        ToolDeclaration,
        name=st.text(alphabet="abcdefghij_", min_size=1, max_size=10),
        description=st.one_of(st.none(), _text),
        parameters=_schemas,
    ),
    max_size=3,
    unique_by=lambda t: t.name,
)

_requests = st.builds(
    ChatRequest,
    model=st.sampled_from(list(ModelId)),
    messages=st.lists(_messages, min_size=1, max_size=5),
    instructions=st.one_of(st.none(), _text),
    tools=st.one_of(st.none(), _tools),
    temperature=st.one_of(
        st.none(),
        st.integers(min_value=0, max_value=2),
        st.floats(min_value=0, max_value=2),
    ),
    seed=st.one_of(st.none(), st.integers(min_value=0, max_value=1000)),
)


# =============================================================================
# Determinism
# =============================================================================


@settings(max_examples=100)
@given(_requests)
def test_equal_requests_share_a_fingerprint(req: ChatRequest) -> None:
    twin = copy.deepcopy(req)
    assert twin == req
    assert fingerprint(twin) == fingerprint(req)


@settings(max_examples=100)
@given(_requests)
def test_fingerprint_is_a_full_sha256_hex_digest(req: ChatRequest) -> None:
    key = fingerprint(req)
    assert len(key) == 64
    assert int(key, 16) >= 0


def test_schema_key_order_does_not_matter() -> None:
    a = {"type": "object", "properties": {"x": {"type": "string"}}}
    b = {"properties": {"x": {"type": "string"}}, "type": "object"}
    base = ChatRequest(ModelId.GPT_4O, [Message.user("hi")])
    assert fingerprint(base.with_tools([ToolDeclaration("t", parameters=a)])) == (
        fingerprint(base.with_tools([ToolDeclaration("t", parameters=b)]))
    )


@pytest.mark.parametrize(
    ("a", "b"),
    [
        ({"temperature": 1}, {"temperature": 1.0}),
        ({"top_p": 1}, {"top_p": 1.0}),
        ({"presence_penalty": -2}, {"presence_penalty": -2.0}),
        ({"logit_bias": {50256: -100}}, {"logit_bias": {"50256": -100.0}}),
        (
            {"tools": [ToolDeclaration("t", parameters={"maximum": 1})]},
            {"tools": [ToolDeclaration("t", parameters={"maximum": 1.0})]},
        ),
        (
            {"response_format": ResponseFormat.json_schema("r", {"minItems": 2})},
            {"response_format": ResponseFormat.json_schema("r", {"minItems": 2.0})},
        ),
    ],
    ids=["temperature", "top_p", "penalty", "logit_bias", "tool_schema", "format_schema"],
)
def test_integral_floats_and_ints_share_a_fingerprint(a, b) -> None:
    left = ChatRequest(ModelId.GPT_4O, [Message.user("hi")], **a)
    right = ChatRequest(ModelId.GPT_4O, [Message.user("hi")], **b)
    assert left == right
    assert fingerprint(left) == fingerprint(right)


@given(st.integers(min_value=-(2**40), max_value=2**40))
def test_schema_bounds_hash_by_value(bound: int) -> None:
    def tool(value: float) -> ChatRequest:
        schema = {
            "type": "object",
            "properties": {"x": {"type": "number", "maximum": value}},
        }
        return ChatRequest(
            ModelId.GPT_4O,
            [Message.user("hi")],
            tools=[ToolDeclaration("t", parameters=schema)],
        )

    assert fingerprint(tool(bound)) == fingerprint(tool(float(bound)))
    assert fingerprint(tool(bound)) != fingerprint(tool(bound + 0.5))


# =============================================================================
# Sensitivity
# =============================================================================

_BASE = ChatRequest(
    ModelId.GPT_4O_MINI,
    [Message.user("first"), Message.assistant("second"), Message.user("third")],
    instructions="Be helpful.",
    tools=(
        ToolDeclaration("get_current_weather", "Weather lookup", WEATHER_SCHEMA),
        ToolDeclaration("get_time", None, {"type": "object", "properties": {}}),
    ),
)


def _swap_schema_detail(r: ChatRequest) -> ChatRequest:
    schema = copy.deepcopy(WEATHER_SCHEMA)
    schema["properties"]["unit"]["enum"] = ["kelvin"]
    assert r.tools is not None
    return r.with_tools([ToolDeclaration("get_current_weather", "Weather lookup", schema), r.tools[1]])


MUTATIONS: dict[str, Callable[[ChatRequest], ChatRequest]] = {
    "model": lambda r: ChatRequest(ModelId.GPT_4O, r.messages, r.instructions, r.tools),
    "custom model": lambda r: ChatRequest("gpt-4o-mini-ft", r.messages, r.instructions, r.tools),
    "message content": lambda r: r.with_messages(
        [Message.user("first!"), *r.messages[1:]]
    ),
    "message order": lambda r: r.with_messages(reversed(r.messages)),
    "message role": lambda r: r.with_messages(
        [Message.system("first"), *r.messages[1:]]
    ),
    "extra message": lambda r: r.with_message(Message.user("")),
    "dropped message": lambda r: r.with_messages(r.messages[:-1]),
    "message name": lambda r: r.with_messages(
        [Message.user("first", name="ada"), *r.messages[1:]]
    ),
    "assistant tool calls": lambda r: r.with_messages(
        [
            r.messages[0],
            Message.assistant("second", tool_calls=[ToolCall("c1", "get_time")]),
            r.messages[2],
        ]
    ),
    "instructions": lambda r: r.with_instructions("Be terse."),
    "no instructions": lambda r: r.with_instructions(None),
    "empty instructions": lambda r: r.with_instructions(""),
    "tool order": lambda r: r.with_tools(reversed(r.tools or ())),
    "tool description": lambda r: r.with_tools(
        [ToolDeclaration("get_current_weather", "Other", WEATHER_SCHEMA), *(r.tools or ())[1:]]
    ),
    "tool schema": _swap_schema_detail,
    "no tools": lambda r: r.with_tools(None),
    "empty tools": lambda r: r.with_tools([]),
    "tool choice": lambda r: r.with_tool_choice("required"),
    "temperature": lambda r: r.with_temperature(0.2),
    "max tokens": lambda r: r.with_max_tokens(64),
    "seed": lambda r: r.with_seed(7),
    "top p": lambda r: r.with_top_p(0.9),
    "assistant refusal": lambda r: r.with_messages(
        [r.messages[0], Message("assistant", "second", refusal="No."), r.messages[2]]
    ),
    "json response format": lambda r: r.with_response_format(ResponseFormat.json()),
    "text response format": lambda r: r.with_response_format(ResponseFormat.text()),
    "schema response format": lambda r: r.with_response_format(
        ResponseFormat.json_schema("weather", WEATHER_SCHEMA)
    ),
    "non-strict response format": lambda r: r.with_response_format(
        ResponseFormat.json_schema("weather", WEATHER_SCHEMA, strict=False)
    ),
    "stop": lambda r: r.with_stop("END"),
    "n": lambda r: r.with_n(2),
    "frequency penalty": lambda r: r.with_penalties(frequency=0.5),
    "presence penalty": lambda r: r.with_penalties(presence=0.5),
    "logit bias": lambda r: r.with_logit_bias({50256: -100}),
}


@pytest.mark.parametrize("mutation", list(MUTATIONS), ids=list(MUTATIONS))
def test_single_field_changes_change_the_fingerprint(mutation: str) -> None:
    mutated = MUTATIONS[mutation](_BASE)
    assert mutated != _BASE
    assert fingerprint(mutated) != fingerprint(_BASE)


def test_all_mutations_are_pairwise_distinct() -> None:
    keys = {name: fingerprint(fn(_BASE)) for name, fn in MUTATIONS.items()}
    keys["base"] = fingerprint(_BASE)
    assert len(set(keys.values())) == len(keys)


def test_instructions_do_not_collide_with_a_system_message() -> None:
    via_instructions = ChatRequest(
        ModelId.GPT_4O, [Message.user("hi")], instructions="Be terse."
    )
    via_message = ChatRequest(
        ModelId.GPT_4O, [Message.system("Be terse."), Message.user("hi")]
    )
    assert canonical_request(via_instructions) != canonical_request(via_message)
    assert fingerprint(via_instructions) != fingerprint(via_message)


def test_fingerprint_does_not_mutate_the_request() -> None:
    before = copy.deepcopy(_BASE)
    fingerprint(_BASE)
    assert before == _BASE
