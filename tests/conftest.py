"""Shared pytest fixtures for testing."""

import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

TEST_API_URI = "https://graphlit.test/api/v1/graphql"


# =============================================================================
# Environment
# =============================================================================


@pytest.fixture(autouse=True)
def graphlit_env(monkeypatch):
    """Client credentials for every test; no real .env is read."""
    monkeypatch.setenv("GRAPHLIT_ORGANIZATION_ID", "org-123")
    monkeypatch.setenv("GRAPHLIT_ENVIRONMENT_ID", "env-456")
    monkeypatch.setenv("GRAPHLIT_JWT_SECRET", "test-secret-for-signing-tokens-0123456789")
    monkeypatch.setenv("GRAPHLIT_API_URL", TEST_API_URI)
    monkeypatch.setattr("graphlit.config.load_dotenv", lambda *args, **kwargs: False)


# =============================================================================
# Specifications
# =============================================================================


@pytest.fixture
def openai_spec() -> Dict[str, Any]:
    return {
        "id": "spec-openai",
        "name": "GPT-4o",
        "serviceType": "OPEN_AI",
        "systemPrompt": "You are a helpful assistant.",
        "openAI": {"model": "GPT4O_128K", "temperature": 0.2, "completionTokenLimit": 2048},
    }


@pytest.fixture
def anthropic_spec() -> Dict[str, Any]:
    return {
        "id": "spec-anthropic",
        "name": "Claude",
        "serviceType": "ANTHROPIC",
        "anthropic": {"model": "CLAUDE_3_5_SONNET", "temperature": 0.5},
    }


@pytest.fixture
def search_tool() -> Dict[str, Any]:
    return {
        "name": "search",
        "description": "Search the knowledge base",
        "schema": json.dumps({
            "type": "object",
            "properties": {"query": {"type": "string"}},
            "required": ["query"],
        }),
    }


# =============================================================================
# Fake OpenAI stream
# =============================================================================


def openai_chunk(
    content: Optional[str] = None,
    tool_calls: Optional[List[Any]] = None,
    usage: Optional[Dict[str, Any]] = None,
) -> SimpleNamespace:
    """A chat.completions chunk shaped like the openai SDK's objects."""
    choices = []
    if content is not None or tool_calls is not None:
        choices = [SimpleNamespace(delta=SimpleNamespace(content=content, tool_calls=tool_calls))]
    return SimpleNamespace(choices=choices, usage=usage)


def openai_tool_delta(index: int, id: Optional[str] = None, name: Optional[str] = None, arguments: Optional[str] = None):
    return SimpleNamespace(index=index, id=id, function=SimpleNamespace(name=name, arguments=arguments))


class AsyncChunks:
    """Async iterator over a fixed list of chunks."""

    def __init__(self, chunks: List[Any]):
        self._chunks = list(chunks)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._chunks:
            raise StopAsyncIteration
        return self._chunks.pop(0)


def fake_openai_client(*rounds: List[Any]) -> MagicMock:
    """An AsyncOpenAI stand-in whose successive create() calls stream ``rounds``."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=[AsyncChunks(chunks) for chunks in rounds])
    return client


@pytest.fixture
def chunks():
    return SimpleNamespace(
        chunk=openai_chunk,
        tool=openai_tool_delta,
        stream=AsyncChunks,
        client=fake_openai_client,
    )


# =============================================================================
# Fake Graphlit client
# =============================================================================


@pytest.fixture
def graphlit_client(openai_spec):
    """AsyncGraphlit stand-in with mocked conversation resources."""
    client = MagicMock()
    client.conversations.create = AsyncMock(return_value={"id": "conv-1"})
    client.conversations.prompt_conversation = AsyncMock(
        return_value={"conversation": {"id": "conv-1"}, "message": {"role": "ASSISTANT", "message": "Done."}}
    )
    client.conversations.continue_conversation = AsyncMock()
    client.conversations.format_conversation = AsyncMock(
        return_value={
            "message": {"role": "USER", "message": "Formatted: hello"},
            "details": {
                "tokenLimit": 128000,
                "completionTokenLimit": 4096,
                "messages": [{"role": "USER", "message": "Formatted: hello", "tokens": 100}],
            },
        }
    )
    client.conversations.get = AsyncMock(
        return_value={"id": "conv-1", "messages": [{"role": "USER", "message": "Formatted: hello"}]}
    )
    client.conversations.complete_conversation = AsyncMock(return_value={"id": "conv-1"})
    client.specifications.get = AsyncMock(return_value=openai_spec)
    client.contents.extract_text = AsyncMock(return_value=[])
    client.supports_streaming = MagicMock(return_value=True)
    client.get_provider_client = MagicMock(return_value=None)
    return client
