"""
Unit tests for the streaming agent.

Provider rounds are served by a fake OpenAI client installed through
``get_provider_client``.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from graphlit.agent.streaming import run_stream_agent, stream_agent
from graphlit.agent.types import ContextActionType, ContextStrategy, StreamAgentOptions
from graphlit.exceptions import (
    AgentAbortedError,
    GraphlitError,
    ProviderRateLimitError,
    StreamingNotSupportedError,
)
from graphlit.streaming.events import AgentEventType, ToolExecutionStatus


class StatusError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


@pytest.fixture
def events():
    return []


@pytest.fixture
def options():
    return StreamAgentOptions(smoothing_enabled=False)


def of_type(events, event_type):
    return [e for e in events if e.type == event_type]


def failing_client(error):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=error)
    return client


def search_call(chunks):
    return chunks.chunk(tool_calls=[chunks.tool(0, id="call_1", name="search", arguments='{"query": "q3"}')])


class TestStreamAgent:
    """Tests for stream_agent."""

    @pytest.mark.asyncio
    async def test_single_round(self, graphlit_client, chunks, events, options):
        """Test a plain streamed answer is completed on the conversation."""
        provider_client = chunks.client([
            chunks.chunk(content="Hello"),
            chunks.chunk(content=" there"),
            chunks.chunk(usage={"prompt_tokens": 12, "completion_tokens": 2, "total_tokens": 14}),
        ])
        graphlit_client.get_provider_client.return_value = provider_client

        await stream_agent(graphlit_client, "hello", events.append, specification={"id": "spec-openai"}, options=options)

        assert events[0].type == AgentEventType.CONVERSATION_STARTED
        assert events[0].conversation_id == "conv-1"
        assert events[1].type == AgentEventType.CONTEXT_WINDOW
        assert events[1].usage.used_tokens == 100

        completed = of_type(events, AgentEventType.CONVERSATION_COMPLETED)
        assert len(completed) == 1
        assert completed[0].message.message == "Hello there"
        assert completed[0].usage.total_tokens == 14

        graphlit_client.conversations.complete_conversation.assert_awaited_once_with(
            "Hello there", "conv-1", correlation_id=None
        )
        sent = provider_client.chat.completions.create.call_args.kwargs["messages"]
        assert sent == [
            {"role": "system", "content": "You are a helpful assistant."},
            {"role": "user", "content": "Formatted: hello"},
        ]

    @pytest.mark.asyncio
    async def test_tool_round(self, graphlit_client, chunks, events, options, search_tool):
        """Test tool calls are executed locally and fed to the next round."""
        provider_client = chunks.client(
            [search_call(chunks)],
            [chunks.chunk(content="Found 3 results.")],
        )
        graphlit_client.get_provider_client.return_value = provider_client
        calls = []

        async def search(args):
            calls.append(args)
            return {"hits": 3}

        result = await run_stream_agent(
            graphlit_client,
            "Find q3",
            events.append,
            specification={"id": "spec-openai"},
            tools=[search_tool],
            tool_handlers={"search": search},
            options=options,
        )

        assert calls == [{"query": "q3"}]
        assert result.full_message == "Found 3 results."
        assert result.tool_call_count == 1
        assert result.tool_call_names == ["search"]

        second_round = provider_client.chat.completions.create.call_args_list[1].kwargs["messages"]
        assert second_round[2]["tool_calls"][0]["id"] == "call_1"
        assert second_round[3] == {"role": "tool", "content": '{"hits": 3}', "tool_call_id": "call_1"}

        statuses = [e.status for e in of_type(events, AgentEventType.TOOL_UPDATE)]
        assert statuses[-1] == ToolExecutionStatus.COMPLETED
        completed = of_type(events, AgentEventType.CONVERSATION_COMPLETED)
        assert completed[0].message.message == "Found 3 results."
        graphlit_client.conversations.complete_conversation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_handler(self, graphlit_client, chunks, events, options):
        """Test a call without a handler becomes an error TOOL message."""
        provider_client = chunks.client([search_call(chunks)], [chunks.chunk(content="Sorry.")])
        graphlit_client.get_provider_client.return_value = provider_client

        result = await run_stream_agent(
            graphlit_client, "Find q3", events.append, specification={"id": "spec-openai"}, options=options
        )

        tool_message = provider_client.chat.completions.create.call_args_list[1].kwargs["messages"][3]
        assert tool_message["content"] == "Error: No handler found for tool: search"
        assert result.errors == ["No handler found for tool: search"]
        assert of_type(events, AgentEventType.TOOL_UPDATE)[-1].status == ToolExecutionStatus.FAILED

    @pytest.mark.asyncio
    async def test_large_tool_result_is_truncated(self, graphlit_client, chunks, events):
        provider_client = chunks.client([search_call(chunks)], [chunks.chunk(content="Done.")])
        graphlit_client.get_provider_client.return_value = provider_client
        options = StreamAgentOptions(
            smoothing_enabled=False,
            context_strategy=ContextStrategy(tool_result_token_limit=10),
        )

        result = await run_stream_agent(
            graphlit_client,
            "Find q3",
            events.append,
            specification={"id": "spec-openai"},
            tool_handlers={"search": lambda args: "x" * 200},
            options=options,
        )

        assert result.context_actions[0].type == ContextActionType.TRUNCATED_TOOL_RESULT
        tool_message = provider_client.chat.completions.create.call_args_list[1].kwargs["messages"][3]
        assert "[truncated by search:" in tool_message["content"]

    @pytest.mark.asyncio
    async def test_instructions_are_appended(self, graphlit_client, chunks, events):
        """Test extra instructions are added to the last user message."""
        provider_client = chunks.client([chunks.chunk(content="Ok.")])
        graphlit_client.get_provider_client.return_value = provider_client
        options = StreamAgentOptions(smoothing_enabled=False, instructions="Be concise.")

        await stream_agent(graphlit_client, "hello", events.append, specification={"id": "spec-openai"}, options=options)

        sent = provider_client.chat.completions.create.call_args.kwargs["messages"]
        assert sent[-1] == {"role": "user", "content": "Formatted: hello\n\nBe concise."}

    @pytest.mark.asyncio
    async def test_round_limit(self, graphlit_client, chunks, events):
        provider_client = chunks.client([search_call(chunks)], [search_call(chunks)])
        graphlit_client.get_provider_client.return_value = provider_client
        options = StreamAgentOptions(smoothing_enabled=False, max_tool_rounds=1)

        result = await run_stream_agent(
            graphlit_client,
            "Loop",
            events.append,
            specification={"id": "spec-openai"},
            tool_handlers={"search": lambda args: "again"},
            options=options,
        )

        assert provider_client.chat.completions.create.await_count == 1
        assert result.tool_call_count == 1

    @pytest.mark.asyncio
    async def test_fallback_for_non_streaming_service(self, graphlit_client, events, options):
        """Test services without a provider use promptConversation."""
        graphlit_client.specifications.get.return_value = {"id": "spec-jina", "serviceType": "JINA"}

        result = await run_stream_agent(
            graphlit_client, "hello", events.append, specification={"id": "spec-jina"}, options=options
        )

        assert result.full_message == "Done."
        graphlit_client.conversations.complete_conversation.assert_not_called()
        completed = of_type(events, AgentEventType.CONVERSATION_COMPLETED)
        assert completed[0].message.message == "Done."

    @pytest.mark.asyncio
    async def test_existing_conversation(self, graphlit_client, chunks, events, options):
        graphlit_client.get_provider_client.return_value = chunks.client([chunks.chunk(content="Hi")])

        await stream_agent(
            graphlit_client,
            "hello",
            events.append,
            conversation_id="conv-7",
            specification={"id": "spec-openai"},
            options=options,
        )

        graphlit_client.conversations.create.assert_not_called()
        assert graphlit_client.conversations.format_conversation.call_args.kwargs["id"] == "conv-7"

    @pytest.mark.asyncio
    async def test_invalid_tool_arguments_fail_the_call(self, graphlit_client, chunks, events, options, anthropic_spec):
        """Test a tool call dropped for invalid JSON is failed and the run completes."""
        stream = [
            SimpleNamespace(type="content_block_start", content_block=SimpleNamespace(type="text")),
            SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text="Let me search.")),
            SimpleNamespace(type="content_block_stop"),
            SimpleNamespace(
                type="content_block_start",
                content_block=SimpleNamespace(type="tool_use", id="tu_1", name="search"),
            ),
            SimpleNamespace(
                type="content_block_delta",
                delta=SimpleNamespace(type="input_json_delta", partial_json='{"query": '),
            ),
            SimpleNamespace(type="content_block_stop"),
            SimpleNamespace(type="message_stop"),
        ]
        provider_client = MagicMock()
        provider_client.messages.create = AsyncMock(return_value=chunks.stream(stream))
        graphlit_client.get_provider_client.return_value = provider_client
        graphlit_client.specifications.get.return_value = anthropic_spec

        result = await run_stream_agent(
            graphlit_client, "Find q3", events.append, specification={"id": "spec-anthropic"}, options=options
        )

        tool_updates = of_type(events, AgentEventType.TOOL_UPDATE)
        assert tool_updates[-1].tool_call.id == "tu_1"
        assert tool_updates[-1].status == ToolExecutionStatus.FAILED
        assert tool_updates[-1].error == "Invalid tool call arguments"
        assert result.tool_call_count == 0

        completed = of_type(events, AgentEventType.CONVERSATION_COMPLETED)
        assert len(completed) == 1
        assert completed[0].message.message == "Let me search."

def cohere_delta(text):
    return SimpleNamespace(
        type="content-delta",
        index=None,
        delta=SimpleNamespace(message=SimpleNamespace(content=SimpleNamespace(text=text))),
    )


def assert_no_repeated_text(events, final):
    for update in of_type(events, AgentEventType.MESSAGE_UPDATE):
        assert final.startswith(update.message.message)
    completed = of_type(events, AgentEventType.CONVERSATION_COMPLETED)
    assert len(completed) == 1
    assert completed[0].message.message == final


class TestStreamAgentSmoothing:
    """Tests for stream_agent with chunked message updates."""

    @pytest.fixture
    def smoothing(self):
        return StreamAgentOptions(smoothing_enabled=True, chunking_strategy="word", smoothing_delay=1)

    @pytest.mark.asyncio
    async def test_token_stream(self, graphlit_client, chunks, events, smoothing):
        """Test a token-only provider releases every word once."""
        graphlit_client.get_provider_client.return_value = chunks.client([
            chunks.chunk(content="Hello"),
            chunks.chunk(content=" there,"),
            chunks.chunk(content=" my friend."),
        ])

        await stream_agent(
            graphlit_client, "hello", events.append, specification={"id": "spec-openai"}, options=smoothing
        )

        assert_no_repeated_text(events, "Hello there, my friend.")
        graphlit_client.conversations.complete_conversation.assert_awaited_once_with(
            "Hello there, my friend.", "conv-1", correlation_id=None
        )

    @pytest.mark.asyncio
    async def test_token_stream_with_tool_round(self, graphlit_client, chunks, events, smoothing):
        graphlit_client.get_provider_client.return_value = chunks.client(
            [chunks.chunk(content="Searching now."), search_call(chunks)],
            [chunks.chunk(content="Found 3"), chunks.chunk(content=" results.")],
        )

        result = await run_stream_agent(
            graphlit_client,
            "Find q3",
            events.append,
            specification={"id": "spec-openai"},
            tool_handlers={"search": lambda args: {"hits": 3}},
            options=smoothing,
        )

        assert result.full_message == "Found 3 results."
        completed = of_type(events, AgentEventType.CONVERSATION_COMPLETED)
        assert len(completed) == 1
        assert completed[0].message.message == "Searching now.\n\nFound 3 results."

    @pytest.mark.asyncio
    async def test_tokens_with_full_messages(self, graphlit_client, chunks, events, smoothing):
        """Test a provider sending a full message after each token does not repeat text."""
        provider_client = MagicMock()
        provider_client.chat_stream = MagicMock(
            return_value=chunks.stream([cohere_delta("Found "), cohere_delta("three "), cohere_delta("results.")])
        )
        graphlit_client.get_provider_client.return_value = provider_client
        graphlit_client.specifications.get.return_value = {
            "id": "spec-cohere",
            "serviceType": "COHERE",
            "cohere": {"model": "command-r-plus"},
        }

        await stream_agent(
            graphlit_client, "Find q3", events.append, specification={"id": "spec-cohere"}, options=smoothing
        )

        assert_no_repeated_text(events, "Found three results.")
        graphlit_client.conversations.complete_conversation.assert_awaited_once_with(
            "Found three results.", "conv-1", correlation_id=None
        )

    @pytest.mark.asyncio
    async def test_fallback_replay(self, graphlit_client, events, smoothing):
        """Test the word replay of a non-streaming answer is not duplicated."""
        graphlit_client.specifications.get.return_value = {"id": "spec-jina", "serviceType": "JINA"}
        graphlit_client.conversations.prompt_conversation.return_value = {
            "conversation": {"id": "conv-1"},
            "message": {"role": "ASSISTANT", "message": "Found three results."},
        }

        await stream_agent(
            graphlit_client, "Find q3", events.append, specification={"id": "spec-jina"}, options=smoothing
        )

        assert_no_repeated_text(events, "Found three results.")



class TestStreamAgentErrors:
    """Tests for stream_agent failures."""

    @pytest.mark.asyncio
    async def test_aborted_before_start(self, graphlit_client, events):
        abort = asyncio.Event()
        abort.set()

        with pytest.raises(AgentAbortedError):
            await stream_agent(
                graphlit_client, "hello", events.append, options=StreamAgentOptions(abort_event=abort)
            )
        assert events == []

    @pytest.mark.asyncio
    async def test_streaming_not_supported(self, graphlit_client, events, options):
        """Test an error event precedes StreamingNotSupportedError."""
        graphlit_client.supports_streaming.return_value = False

        with pytest.raises(StreamingNotSupportedError):
            await stream_agent(graphlit_client, "hello", events.append, specification={"id": "spec-openai"}, options=options)

        assert len(events) == 1
        assert events[0].type == AgentEventType.ERROR
        assert events[0].error.code == "STREAMING_NOT_SUPPORTED"

    @pytest.mark.asyncio
    async def test_specification_not_found(self, graphlit_client, events, options):
        graphlit_client.specifications.get.return_value = None

        with pytest.raises(GraphlitError) as exc_info:
            await stream_agent(graphlit_client, "hello", events.append, specification={"id": "missing"}, options=options)

        assert exc_info.value.code == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_provider_error(self, graphlit_client, events, options):
        """Test provider failures are emitted as error events and raised."""
        provider_client = failing_client(StatusError("Too many requests", 429))
        graphlit_client.get_provider_client.return_value = provider_client

        with pytest.raises(ProviderRateLimitError):
            await stream_agent(graphlit_client, "hello", events.append, specification={"id": "spec-openai"}, options=options)

        errors = of_type(events, AgentEventType.ERROR)
        assert errors[0].error.message == "OpenAI rate limit exceeded"
        graphlit_client.conversations.complete_conversation.assert_not_called()

    @pytest.mark.asyncio
    async def test_format_failure(self, graphlit_client, events, options):
        graphlit_client.conversations.format_conversation.return_value = {"message": None}

        with pytest.raises(GraphlitError, match="Failed to format conversation"):
            await stream_agent(graphlit_client, "hello", events.append, specification={"id": "spec-openai"}, options=options)
