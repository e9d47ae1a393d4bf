"""
Unit tests for streaming providers.

SDK clients are replaced by mocks that yield SDK-shaped chunks, so no
provider package needs to be installed.
"""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from graphlit.exceptions import (
    AgentAbortedError,
    ProviderAuthenticationError,
    ProviderError,
    ProviderRateLimitError,
    ProviderUnavailableError,
)
from graphlit.models import ConversationMessage, ConversationRoleTypes
from graphlit.streaming.events import StreamEventType
from graphlit.streaming.providers import (
    AnthropicStreamProvider,
    BedrockStreamProvider,
    CerebrasStreamProvider,
    CohereStreamProvider,
    GroqStreamProvider,
    MistralStreamProvider,
    OpenAIStreamProvider,
    StreamProviderFactory,
    XaiStreamProvider,
    stream_with_fallback,
)
from graphlit.streaming.providers.bedrock_provider import ThinkingTagParser, is_throttling
from graphlit.streaming.providers.deepseek_provider import ReasoningSplitter
from graphlit.streaming.providers.google_provider import GoogleStreamProvider, clean_schema_for_google
from graphlit.streaming.providers.groq_provider import simplify_schema_for_groq


class StatusError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


class Recorder:
    """Collects provider events and the on_complete call."""

    def __init__(self):
        self.events = []
        self.completed = None

    def on_event(self, event):
        self.events.append(event)

    def on_complete(self, message, tool_calls, usage):
        self.completed = (message, tool_calls, usage)

    def types(self):
        return [e.type for e in self.events]

    def tokens(self):
        return "".join(e.token for e in self.events if e.type == StreamEventType.TOKEN)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def user_messages():
    return [
        ConversationMessage(role=ConversationRoleTypes.SYSTEM, message="Be brief."),
        ConversationMessage(role=ConversationRoleTypes.USER, message="Hello"),
    ]


# =============================================================================
# OpenAI
# =============================================================================


class TestOpenAIStreamProvider:
    """Tests for the OpenAI provider."""

    @pytest.mark.asyncio
    async def test_streams_text_and_tool_calls(self, chunks, openai_spec, user_messages, search_tool, recorder):
        """Test tokens, tool call fragments and usage."""
        client = chunks.client([
            chunks.chunk(content="Let me "),
            chunks.chunk(content="search."),
            chunks.chunk(tool_calls=[chunks.tool(0, id="call_1", name="search", arguments='{"query":')]),
            chunks.chunk(tool_calls=[chunks.tool(0, arguments=' "q3"}')]),
            chunks.chunk(usage={"prompt_tokens": 20, "completion_tokens": 8, "total_tokens": 28}),
        ])
        provider = OpenAIStreamProvider(client=client)

        await provider.stream(openai_spec, user_messages, [search_tool], recorder.on_event, recorder.on_complete)

        message, tool_calls, usage = recorder.completed
        assert message == "Let me search."
        assert tool_calls[0].id == "call_1"
        assert tool_calls[0].name == "search"
        assert json.loads(tool_calls[0].arguments) == {"query": "q3"}
        assert usage["total_tokens"] == 28
        assert recorder.types()[-1] == StreamEventType.TOOL_CALL_PARSED
        assert recorder.types().count(StreamEventType.TOOL_CALL_DELTA) == 2

    @pytest.mark.asyncio
    async def test_request_params(self, chunks, openai_spec, user_messages, search_tool, recorder):
        """Test the chat completions request."""
        client = chunks.client([chunks.chunk(content="Hi")])
        provider = OpenAIStreamProvider(client=client)

        await provider.stream(openai_spec, user_messages, [search_tool], recorder.on_event, recorder.on_complete)

        params = client.chat.completions.create.call_args.kwargs
        assert params["model"] == "gpt-4o"
        assert params["stream"] is True
        assert params["temperature"] == 0.2
        assert params["max_completion_tokens"] == 2048
        assert params["messages"][0] == {"role": "system", "content": "Be brief."}
        assert params["tools"][0]["function"]["parameters"]["required"] == ["query"]

    def test_reasoning_effort(self, user_messages):
        spec = {"serviceType": "OPEN_AI", "openAI": {"model": "O3_MINI_200K", "reasoningEffort": "HIGH"}}

        params = OpenAIStreamProvider().build_params(spec, user_messages, [])

        assert params["reasoning_effort"] == "high"
        assert "tools" not in params

    def test_build_params_accepts_tool_dicts(self, openai_spec, user_messages, search_tool):
        """Test ToolDefinitionInput dicts are accepted as tools."""
        params = OpenAIStreamProvider().build_params(openai_spec, user_messages, [search_tool])

        function = params["tools"][0]["function"]
        assert function["name"] == "search"
        assert function["description"] == "Search the knowledge base"
        assert function["parameters"]["required"] == ["query"]

    @pytest.mark.asyncio
    async def test_aborted_before_start(self, openai_spec, user_messages, recorder):
        """Test a set abort event stops the round before any request."""
        client = MagicMock()
        client.chat.completions.create = AsyncMock()
        abort = asyncio.Event()
        abort.set()

        with pytest.raises(AgentAbortedError):
            await OpenAIStreamProvider(client=client).stream(
                openai_spec, user_messages, None, recorder.on_event, recorder.on_complete, abort_event=abort
            )
        client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_rate_limit_is_mapped(self, openai_spec, user_messages, recorder):
        """Test SDK errors become provider errors."""
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=StatusError("Too many", 429))

        with pytest.raises(ProviderRateLimitError) as exc_info:
            await OpenAIStreamProvider(client=client).stream(
                openai_spec, user_messages, None, recorder.on_event, recorder.on_complete
            )
        assert exc_info.value.status_code == 429

    def test_error_mapping(self):
        provider = OpenAIStreamProvider()

        assert isinstance(provider.map_error(StatusError("bad key", 401)), ProviderAuthenticationError)
        assert isinstance(provider.map_error(ConnectionError("fetch failed")), ProviderUnavailableError)
        generic = provider.map_error(StatusError("bad request", 400))
        assert type(generic) is ProviderError
        assert generic.status_code == 400

    def test_missing_model(self, user_messages):
        """Test an unresolvable model name is a provider error."""
        spec = {"name": "Broken", "serviceType": "OPEN_AI", "openAI": {"model": "GPT_99"}}

        with pytest.raises(ProviderError):
            OpenAIStreamProvider().build_params(spec, user_messages, [])

    def test_xai_base_url(self):
        assert XaiStreamProvider.base_url == "https://api.x.ai/v1"


# =============================================================================
# Anthropic
# =============================================================================


def anthropic_events(*events):
    return [SimpleNamespace(**event) for event in events]


class TestAnthropicStreamProvider:
    """Tests for the Anthropic provider."""

    def _client(self, chunks, events):
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=chunks.stream(events))
        return client

    @pytest.mark.asyncio
    async def test_thinking_text_and_tool_use(self, chunks, anthropic_spec, user_messages, search_tool, recorder):
        """Test a round with a thinking block, text and a tool call."""
        events = anthropic_events(
            {"type": "message_start", "message": SimpleNamespace(usage=SimpleNamespace(input_tokens=50, output_tokens=1))},
            {"type": "content_block_start", "content_block": SimpleNamespace(type="thinking")},
            {"type": "content_block_delta", "delta": SimpleNamespace(type="thinking_delta", thinking="Need data.")},
            {"type": "content_block_delta", "delta": SimpleNamespace(type="signature_delta", signature="sig-1")},
            {"type": "content_block_stop"},
            {"type": "content_block_start", "content_block": SimpleNamespace(type="text")},
            {"type": "content_block_delta", "delta": SimpleNamespace(type="text_delta", text="Searching.")},
            {"type": "content_block_stop"},
            {"type": "content_block_start", "content_block": SimpleNamespace(type="tool_use", id="tu_1", name="search")},
            {"type": "content_block_delta", "delta": SimpleNamespace(type="input_json_delta", partial_json='{"query": "q3"}')},
            {"type": "content_block_stop"},
            {"type": "message_delta", "usage": SimpleNamespace(output_tokens=30)},
            {"type": "message_stop"},
        )
        provider = AnthropicStreamProvider(client=self._client(chunks, events))

        await provider.stream(anthropic_spec, user_messages, [search_tool], recorder.on_event, recorder.on_complete)

        message, tool_calls, usage = recorder.completed
        assert message == '<thinking signature="sig-1">Need data.</thinking>\nSearching.'
        assert tool_calls[0].id == "tu_1"
        assert tool_calls[0].arguments == '{"query": "q3"}'
        assert usage == {"input_tokens": 50, "output_tokens": 30}

        types = recorder.types()
        assert StreamEventType.REASONING_START in types
        reasoning_end = next(e for e in recorder.events if e.type == StreamEventType.REASONING_END)
        assert reasoning_end.signature == "sig-1"
        assert recorder.tokens() == "Searching."

    @pytest.mark.asyncio
    async def test_thinking_not_kept_without_tools(self, chunks, anthropic_spec, user_messages, recorder):
        """Test the thinking prefix is only added when tools were called."""
        events = anthropic_events(
            {"type": "content_block_start", "content_block": SimpleNamespace(type="thinking")},
            {"type": "content_block_delta", "delta": SimpleNamespace(type="thinking_delta", thinking="Hmm.")},
            {"type": "content_block_stop"},
            {"type": "content_block_start", "content_block": SimpleNamespace(type="text")},
            {"type": "content_block_delta", "delta": SimpleNamespace(type="text_delta", text="Answer.")},
            {"type": "content_block_stop"},
            {"type": "message_stop"},
        )
        provider = AnthropicStreamProvider(client=self._client(chunks, events))

        await provider.stream(anthropic_spec, user_messages, None, recorder.on_event, recorder.on_complete)

        assert recorder.completed[0] == "Answer."
        assert recorder.completed[1] == []

    @pytest.mark.asyncio
    async def test_invalid_tool_json_is_dropped(self, chunks, anthropic_spec, user_messages, recorder):
        events = anthropic_events(
            {"type": "content_block_start", "content_block": SimpleNamespace(type="tool_use", id="tu_1", name="search")},
            {"type": "content_block_delta", "delta": SimpleNamespace(type="input_json_delta", partial_json='{"query": ')},
            {"type": "message_stop"},
        )
        provider = AnthropicStreamProvider(client=self._client(chunks, events))

        await provider.stream(anthropic_spec, user_messages, None, recorder.on_event, recorder.on_complete)

        assert recorder.completed[1] == []

    def test_build_params(self, anthropic_spec, user_messages):
        params = AnthropicStreamProvider().build_params(anthropic_spec, user_messages, [])

        assert params["system"] == "Be brief."
        assert params["max_tokens"] == 8192
        assert params["temperature"] == 0.5
        assert params["messages"] == [{"role": "user", "content": "Hello"}]

    def test_build_params_with_thinking(self, user_messages):
        """Test extended thinking forces temperature 1 and a larger token limit."""
        spec = {
            "serviceType": "ANTHROPIC",
            "anthropic": {
                "model": "CLAUDE_3_7_SONNET",
                "temperature": 0.2,
                "enableThinking": True,
                "thinkingTokenLimit": 4000,
            },
        }

        params = AnthropicStreamProvider().build_params(spec, user_messages, [])

        assert params["thinking"] == {"type": "enabled", "budget_tokens": 4000}
        assert params["temperature"] == 1
        assert params["max_tokens"] == 32768

    def test_overloaded_error(self):
        error = AnthropicStreamProvider().map_error(Exception("overloaded_error: try later"))

        assert isinstance(error, ProviderUnavailableError)


# =============================================================================
# OpenAI-compatible services
# =============================================================================


class TestDeepseekReasoning:
    """Tests for the Deepseek markdown reasoning splitter."""

    def test_splits_reasoning_section(self, recorder):
        splitter = ReasoningSplitter(recorder.on_event)

        splitter.feed("Hello\n**Step 1: think**\n  detail\nAnswer here\n")
        splitter.close()

        assert splitter.message == "Hello\nAnswer here\n"
        end = next(e for e in recorder.events if e.type == StreamEventType.REASONING_END)
        assert end.full_content == "**Step 1: think**\n  detail"

    def test_partial_text_is_released(self, recorder):
        """Test text that cannot open a reasoning header is not held back."""
        splitter = ReasoningSplitter(recorder.on_event)

        splitter.feed("Hi th")

        assert recorder.tokens() == "Hi th"


class TestGroqStreamProvider:
    """Tests for Groq schema handling."""

    def test_simplify_schema(self):
        schema = {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search text", "minLength": 1},
                "mode": {"enum": ["fast", "deep"]},
            },
            "required": ["query"],
            "additionalProperties": False,
        }

        simplified = simplify_schema_for_groq(schema)

        assert simplified == {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search text"},
                "mode": {"type": "string", "description": "", "enum": ["fast", "deep"]},
            },
            "required": ["query"],
        }

    def test_problem_models_get_reduced_schema(self, user_messages, search_tool):
        spec = {"serviceType": "GROQ", "groq": {"model": "llama-3.3-70b-versatile"}}

        params = GroqStreamProvider().build_params(spec, user_messages, [search_tool])

        parameters = params["tools"][0]["function"]["parameters"]
        assert parameters == {
            "type": "object",
            "properties": {"query": {"type": "string"}},
            "required": ["query"],
        }


class TestCerebrasStreamProvider:
    """Tests for Cerebras request building."""

    def test_tools_disabled_for_unsupported_models(self, user_messages, search_tool):
        spec = {"serviceType": "CEREBRAS", "cerebras": {"model": "llama3.1-8b", "completionTokenLimit": 512}}

        params = CerebrasStreamProvider().build_params(spec, user_messages, [search_tool])

        assert "tools" not in params
        assert params["stream"] is True
        assert params["max_tokens"] == 512
        assert "max_completion_tokens" not in params

    def test_tool_round_is_not_streamed(self, user_messages, search_tool):
        spec = {"serviceType": "CEREBRAS", "cerebras": {"model": "qwen-3-32b"}}

        params = CerebrasStreamProvider().build_params(spec, user_messages, [search_tool])

        assert params["stream"] is False
        assert params["tools"][0]["function"]["name"] == "search"


# =============================================================================
# Google
# =============================================================================


class TestGoogleStreamProvider:
    """Tests for Gemini request building."""

    def test_clean_schema(self):
        schema = {
            "$schema": "http://json-schema.org/draft-07/schema#",
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "when": {"type": "string", "format": "date-time"},
                "email": {"type": "string", "format": "email"},
                "tags": {"type": "array", "items": {"type": "string", "format": "uri"}},
            },
        }

        cleaned = clean_schema_for_google(schema)

        assert "$schema" not in cleaned
        assert "additionalProperties" not in cleaned
        assert cleaned["properties"]["when"]["format"] == "date-time"
        assert "format" not in cleaned["properties"]["email"]
        assert cleaned["properties"]["tags"]["items"] == {"type": "string"}

    def test_thinking_config(self):
        spec = {
            "serviceType": "GOOGLE",
            "google": {"model": "GEMINI_2_5_FLASH_PREVIEW", "enableThinking": True, "thinkingTokenLimit": 1024},
        }

        config = GoogleStreamProvider().generation_config(spec)

        assert config["thinking_config"] == {"thinking_budget": 1024, "include_thoughts": True}

    def test_no_thinking_config_unless_enabled(self):
        spec = {"serviceType": "GOOGLE", "google": {"model": "GEMINI_1_5_PRO", "thinkingTokenLimit": 1024}}

        assert "thinking_config" not in GoogleStreamProvider().generation_config(spec)


# =============================================================================
# Cohere
# =============================================================================


def cohere_chunk(chunk_type, index=None, **delta_message):
    delta = SimpleNamespace(message=SimpleNamespace(**delta_message)) if delta_message else None
    return SimpleNamespace(type=chunk_type, index=index, delta=delta)


class TestCohereStreamProvider:
    """Tests for the Cohere provider."""

    @pytest.mark.asyncio
    async def test_stream(self, chunks, user_messages, search_tool, recorder):
        spec = {"serviceType": "COHERE", "cohere": {"model": "command-r-plus", "temperature": 0.3}}
        stream = [
            cohere_chunk("content-delta", content=SimpleNamespace(text="Looking")),
            cohere_chunk(
                "tool-call-start",
                index=0,
                tool_calls=SimpleNamespace(id="co_1", function=SimpleNamespace(name="search")),
            ),
            cohere_chunk(
                "tool-call-delta",
                index=0,
                tool_calls=SimpleNamespace(function=SimpleNamespace(arguments='{"query": "q3"}')),
            ),
            cohere_chunk("tool-call-end", index=0),
            SimpleNamespace(
                type="message-end",
                delta=SimpleNamespace(usage=SimpleNamespace(tokens=SimpleNamespace(output_tokens=5))),
            ),
        ]
        client = MagicMock()
        client.chat_stream = MagicMock(return_value=chunks.stream(stream))

        await CohereStreamProvider(client=client).stream(
            spec, user_messages, [search_tool], recorder.on_event, recorder.on_complete
        )

        message, tool_calls, usage = recorder.completed
        assert message == "Looking"
        assert tool_calls[0].id == "co_1"
        assert tool_calls[0].arguments == '{"query": "q3"}'
        assert usage is not None
        assert recorder.types()[-1] == StreamEventType.COMPLETE
        assert client.chat_stream.call_args.kwargs["temperature"] == 0.3

    @pytest.mark.asyncio
    async def test_no_messages(self, recorder):
        spec = {"serviceType": "COHERE", "cohere": {"model": "command-r"}}

        with pytest.raises(ProviderError):
            await CohereStreamProvider(client=MagicMock()).stream(
                spec, [], None, recorder.on_event, recorder.on_complete
            )


# =============================================================================
# Mistral
# =============================================================================


def mistral_chunk(content=None, tool_calls=None, usage=None):
    choices = [SimpleNamespace(delta=SimpleNamespace(content=content, tool_calls=tool_calls))]
    return SimpleNamespace(data=SimpleNamespace(choices=choices, usage=usage))


class TestMistralStreamProvider:
    """Tests for the Mistral provider."""

    @pytest.mark.asyncio
    async def test_stream(self, chunks, user_messages, search_tool, recorder):
        spec = {"serviceType": "MISTRAL", "mistral": {"model": "mistral-large-latest"}}
        stream = [
            mistral_chunk(content="Sure."),
            mistral_chunk(tool_calls=[
                SimpleNamespace(index=0, id="m_1", function=SimpleNamespace(name="search", arguments={"query": "q3"}))
            ]),
        ]
        client = MagicMock()
        client.chat.stream_async = AsyncMock(return_value=chunks.stream(stream))

        with patch.object(MistralStreamProvider, "retry_config", return_value=None):
            await MistralStreamProvider(client=client).stream(
                spec, user_messages, [search_tool], recorder.on_event, recorder.on_complete
            )

        message, tool_calls, _ = recorder.completed
        assert message == "Sure."
        assert json.loads(tool_calls[0].arguments) == {"query": "q3"}
        assert StreamEventType.TOOL_CALL_PARSED in recorder.types()

    @pytest.mark.parametrize("message,expected", [
        ("401 Unauthorized", ProviderAuthenticationError),
        ("Status 429: rate limit", ProviderRateLimitError),
        ("INTERNAL_SERVER_ERROR", ProviderError),
    ])
    def test_error_mapping(self, message, expected):
        assert isinstance(MistralStreamProvider().map_error(Exception(message)), expected)


# =============================================================================
# Bedrock
# =============================================================================


class TestBedrockStreamProvider:
    """Tests for the Bedrock provider."""

    def test_thinking_tag_parser(self, recorder):
        parser = ThinkingTagParser(recorder.on_event)

        parser.feed("Hi <thinking>plan")
        parser.feed(" more</thinking>Answer")

        assert parser.message == "Hi Answer"
        assert parser.reasoning == "plan more"
        assert StreamEventType.REASONING_END in recorder.types()

    @pytest.mark.asyncio
    async def test_converse_stream(self, user_messages, search_tool, recorder):
        spec = {
            "serviceType": "BEDROCK",
            "bedrock": {"model": "anthropic.claude-3-haiku", "modelName": "anthropic.claude-3-haiku", "temperature": 0},
        }
        client = MagicMock()
        client.converse_stream.return_value = {
            "stream": [
                {"contentBlockDelta": {"contentBlockIndex": 0, "delta": {"text": "Checking"}}},
                {"contentBlockStart": {"contentBlockIndex": 1, "start": {"toolUse": {"toolUseId": "b_1", "name": "search"}}}},
                {"contentBlockDelta": {"contentBlockIndex": 1, "delta": {"toolUse": {"input": '{"query": "q3"}'}}}},
                {"contentBlockStop": {"contentBlockIndex": 1}},
                {"metadata": {"usage": {"inputTokens": 12, "outputTokens": 4, "totalTokens": 16}}},
            ]
        }

        await BedrockStreamProvider(client=client).stream(
            spec, user_messages, [search_tool], recorder.on_event, recorder.on_complete
        )

        message, tool_calls, usage = recorder.completed
        assert message == "Checking"
        assert tool_calls[0].arguments == '{"query": "q3"}'
        assert usage == {"prompt_tokens": 12, "completion_tokens": 4, "total_tokens": 16}

        request = client.converse_stream.call_args.kwargs
        assert request["system"] == [{"text": "Be brief."}]
        assert request["inferenceConfig"] == {"maxTokens": 1000, "temperature": 0}
        assert request["toolConfig"]["tools"][0]["toolSpec"]["name"] == "search"

    @pytest.mark.asyncio
    async def test_throttling(self, user_messages, recorder):
        spec = {"serviceType": "BEDROCK", "bedrock": {"model": "m", "modelName": "m"}}
        client = MagicMock()
        client.converse_stream.side_effect = Exception("Too many requests, please wait")

        with pytest.raises(ProviderRateLimitError):
            await BedrockStreamProvider(client=client).stream(
                spec, user_messages, None, recorder.on_event, recorder.on_complete
            )
        assert recorder.types() == [StreamEventType.ERROR]

    def test_is_throttling_from_error_code(self):
        error = Exception("boom")
        error.response = {"Error": {"Code": "ThrottlingException"}}

        assert is_throttling(error)
        assert not is_throttling(Exception("boom"))


# =============================================================================
# Factory and fallback
# =============================================================================


class TestStreamProviderFactory:
    """Tests for provider lookup."""

    def test_create(self):
        client = object()

        provider = StreamProviderFactory.create("OPEN_AI", client)

        assert isinstance(provider, OpenAIStreamProvider)
        assert provider._client is client

    def test_unknown_service(self):
        with pytest.raises(ValueError):
            StreamProviderFactory.create("JINA")

    def test_supports(self):
        assert StreamProviderFactory.supports("BEDROCK")
        assert not StreamProviderFactory.supports(None)
        assert "DEEPSEEK" in StreamProviderFactory.list_providers()


class TestStreamWithFallback:
    """Tests for the non-streaming fallback."""

    @pytest.mark.asyncio
    async def test_replays_words(self, graphlit_client, recorder):
        graphlit_client.conversations.prompt_conversation.return_value = {
            "message": {"role": "ASSISTANT", "message": "Hello big world"}
        }

        message = await stream_with_fallback(
            graphlit_client, "Hi", "conv-1", {"id": "spec-1"}, None, recorder.on_event
        )

        assert message == "Hello big world"
        assert [e.token for e in recorder.events[:-1]] == ["Hello", " big", " world"]
        assert recorder.events[-1].type == StreamEventType.MESSAGE
        kwargs = graphlit_client.conversations.prompt_conversation.call_args.kwargs
        assert kwargs["specification_id"] == "spec-1"
        assert kwargs["require_tool"] is False

    @pytest.mark.asyncio
    async def test_empty_response(self, graphlit_client, recorder):
        graphlit_client.conversations.prompt_conversation.return_value = {"message": None}

        message = await stream_with_fallback(graphlit_client, "Hi", "conv-1", None, None, recorder.on_event)

        assert message == ""
        assert recorder.events == []
