"""Shared fixtures for the Cachet suite.

Every test runs with OPENAI_* variables cleared and ``.env`` loading
disabled, so results never depend on the developer's shell. Tests marked
``api`` talk to the real service and only run with ``ENABLE_API_TESTS=1``.
"""

from __future__ import annotations

import logging
import os

import pytest

from cachet.types import ChatRequest, Message, ModelId, ToolDeclaration

# -----------------------------------------------------------------------------
# Isolation
# -----------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Make ``load_dotenv`` a no-op unless the test is marked ``allow_dotenv``."""
    if request.node.get_closest_marker("allow_dotenv") is None:
        monkeypatch.setattr("cachet.config.load_dotenv", lambda *_a, **_k: False)


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Drop OPENAI_* variables (kept for ``api`` / ``allow_env_pollution`` tests)."""
    node = request.node
    if "api" in node.keywords or node.get_closest_marker("allow_env_pollution"):
        return
    for name in [n for n in os.environ if n.startswith("OPENAI_")]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def pytest_collection_modifyitems(items):
    if os.getenv("ENABLE_API_TESTS"):
        return
    skip = pytest.mark.skip(reason="set ENABLE_API_TESTS=1 to call the real service")
    for item in items:
        if "api" in item.keywords:
            item.add_marker(skip)


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------

WEATHER_SCHEMA = {
    "type": "object",
    "properties": {
        "location": {
            "type": "string",
            "description": "The city and state, e.g. San Francisco, CA",
        },
        "unit": {"type": "string", "enum": ["celsius", "fahrenheit"]},
    },
    "required": ["location"],
}


@pytest.fixture
def hello_request() -> ChatRequest:
    return ChatRequest(
        ModelId.GPT_4O_MINI,
        [Message.system("You are a helpful assistant."), Message.user("Hello!")],
    )


@pytest.fixture
def weather_request() -> ChatRequest:
    return ChatRequest(
        ModelId.GPT_4O_MINI,
        [Message.user("What is the weather like in Boston?")],
    ).with_tools(
        [
            ToolDeclaration(
                "get_current_weather",
                "Get the current weather in a given location",
                WEATHER_SCHEMA,
            )
        ]
    )


# -----------------------------------------------------------------------------
# Live service
# -----------------------------------------------------------------------------


@pytest.fixture
def openai_api_key() -> str:
    key = os.getenv("OPENAI_API_KEY")
    if not key:
        pytest.skip("OPENAI_API_KEY not set")
    return key


@pytest.fixture
def openai_test_model() -> str:
    # Cheapest chat model that supports tool calls.
    return "gpt-4o-mini"
