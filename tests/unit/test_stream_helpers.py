"""
Unit tests for UI stream helpers: aggregation, SSE frames, tool wrapping
and conversation metrics.
"""

import asyncio
import json

import pytest

from graphlit.models import ConversationToolCall
from graphlit.stream_helpers import (
    SSE_PING,
    AggregatedEvent,
    AggregatedEventType,
    ConversationMetrics,
    ServerMapping,
    StreamEventAggregator,
    enhance_tool_calls,
    format_sse_event,
    sse_stream,
    wrap_tool_handlers,
)
from graphlit.streaming.events import StreamEvent, StreamEventType


@pytest.fixture
def aggregator():
    return StreamEventAggregator()


def tool_call(call_id, name="search", arguments=""):
    return ConversationToolCall(id=call_id, name=name, arguments=arguments)


async def collect(frames):
    return [frame async for frame in frames]


class TestStreamEventAggregator:
    """Tests for StreamEventAggregator."""

    def test_tokens_then_final_message(self, aggregator):
        """Test a tool-free stream ends with one final assistant message."""
        started = aggregator.process_event(StreamEvent(StreamEventType.START, conversation_id="conv-1"))
        first = aggregator.process_event(StreamEvent(StreamEventType.TOKEN, token="Hello"))
        second = aggregator.process_event(StreamEvent(StreamEventType.TOKEN, token=" world"))
        final = aggregator.process_event(StreamEvent(StreamEventType.COMPLETE))

        assert started.type == AggregatedEventType.CONVERSATION_STARTED
        assert started.conversation_id == "conv-1"
        assert first.accumulated == "Hello"
        assert second.token == " world"
        assert second.accumulated == "Hello world"
        assert final.type == AggregatedEventType.ASSISTANT_MESSAGE
        assert final.is_final
        assert final.message.message == "Hello world"

    def test_message_replaces_buffer(self, aggregator):
        aggregator.process_event(StreamEvent(StreamEventType.TOKEN, token="Draft"))

        assert aggregator.process_event(StreamEvent(StreamEventType.MESSAGE, message="Final text")) is None
        assert aggregator.process_event(StreamEvent(StreamEventType.COMPLETE)).message.message == "Final text"

    def test_tool_calls_are_buffered(self, aggregator):
        """Test the assistant message waits for every tool call to complete."""
        aggregator.process_event(StreamEvent(StreamEventType.TOKEN, token="Searching."))
        aggregator.process_event(StreamEvent(StreamEventType.TOOL_CALL_START, tool_call=tool_call("c1")))
        aggregator.process_event(StreamEvent(StreamEventType.TOOL_CALL_START, tool_call=tool_call("c2", "fetch")))
        aggregator.process_event(
            StreamEvent(StreamEventType.TOOL_CALL_DELTA, tool_call_id="c1", argument_delta='{"q": ')
        )

        pending = aggregator.process_event(
            StreamEvent(StreamEventType.TOOL_CALL_COMPLETE, tool_call=tool_call("c1", arguments='{"q": "q3"}'))
        )
        emitted = aggregator.process_event(
            StreamEvent(StreamEventType.TOOL_CALL_COMPLETE, tool_call=tool_call("c2", "fetch", '{"url": "x"}'))
        )
        done = aggregator.process_event(StreamEvent(StreamEventType.COMPLETE))

        assert pending is None
        assert emitted.type == AggregatedEventType.ASSISTANT_MESSAGE
        assert not emitted.is_final
        assert emitted.message.message == "Searching."
        assert [(tc.id, tc.arguments) for tc in emitted.message.tool_calls] == [
            ("c1", '{"q": "q3"}'),
            ("c2", '{"url": "x"}'),
        ]
        assert done.type == AggregatedEventType.STREAM_COMPLETE

    def test_error(self, aggregator):
        event = aggregator.process_event(StreamEvent(StreamEventType.ERROR, error="Provider overloaded"))

        assert event.type == AggregatedEventType.ERROR
        assert event.error == "Provider overloaded"

    def test_state_and_reset(self, aggregator):
        aggregator.process_event(StreamEvent(StreamEventType.START, conversation_id="conv-1"))
        aggregator.process_event(StreamEvent(StreamEventType.TOKEN, token="Hi"))
        aggregator.process_event(StreamEvent(StreamEventType.TOOL_CALL_START, tool_call=tool_call("c1")))

        assert aggregator.get_state() == {
            "conversation_id": "conv-1",
            "message_buffer": "Hi",
            "tool_calls_count": 1,
            "has_received_tool_calls": True,
            "is_first_assistant_message": True,
            "token_count": 1,
        }

        aggregator.reset()

        assert aggregator.get_state()["message_buffer"] == ""
        assert aggregator.get_state()["tool_calls_count"] == 0


class TestServerSentEvents:
    """Tests for SSE formatting and streaming."""

    def test_format_text(self):
        assert format_sse_event("hello") == "event: message\ndata: hello\n\n"

    def test_format_json(self):
        assert format_sse_event({"status": "ok"}, "update") == 'event: update\ndata: {"status": "ok"}\n\n'

    def test_format_model(self):
        frame = format_sse_event(tool_call("c1", arguments="{}"), "tool")

        assert frame.startswith("event: tool\ndata: ")
        assert json.loads(frame.split("data: ", 1)[1]) == {"id": "c1", "name": "search", "arguments": "{}"}

    @pytest.mark.asyncio
    async def test_stream_frames(self):
        """Test tuples, events and plain data become named frames."""

        async def events():
            yield ("token", {"text": "Hi"})
            yield AggregatedEvent(AggregatedEventType.TOKEN, token="Hi", accumulated="Hi")
            yield "done"

        frames = await collect(sse_stream(events()))

        assert frames[0] == 'event: token\ndata: {"text": "Hi"}\n\n'
        assert frames[1].startswith("event: token\ndata: ")
        assert json.loads(frames[1].split("data: ", 1)[1])["accumulated"] == "Hi"
        assert frames[2] == "event: message\ndata: done\n\n"

    @pytest.mark.asyncio
    async def test_pings_while_idle(self):
        """Test a ping comment is sent when the source is silent."""

        async def slow_events():
            await asyncio.sleep(0.05)
            yield "late"

        frames = await collect(sse_stream(slow_events(), ping_interval=0.01))

        assert frames[0] == SSE_PING
        assert frames[-1] == "event: message\ndata: late\n\n"


class TestToolHelpers:
    """Tests for tool handler wrapping and server mapping."""

    @pytest.mark.asyncio
    async def test_wrap_reports_results(self):
        emitted = []
        handlers = wrap_tool_handlers(
            {"double": lambda args: args["x"] * 2},
            lambda *args: emitted.append(args),
        )

        assert await handlers["double"]({"x": 21}) == 42

        tool_call_id, result, status, duration = emitted[0]
        assert tool_call_id.startswith("tool_")
        assert result == {"status": "success", "result": 42}
        assert status == "complete"
        assert duration >= 0
        assert handlers["double"].__name__ == "double"

    @pytest.mark.asyncio
    async def test_wrap_reports_errors(self):
        """Test handler errors are reported and re-raised."""
        emitted = []

        async def broken(args):
            raise ValueError("index offline")

        handlers = wrap_tool_handlers({"search": broken}, lambda *args: emitted.append(args))

        with pytest.raises(ValueError):
            await handlers["search"]({})

        assert emitted[0][1] == {"status": "error", "error": "index offline"}
        assert emitted[0][2] == "error"

    def test_enhance_tool_calls(self):
        mappings = [ServerMapping(tool_name="search", server_name="knowledge", server_id="srv-1")]

        enhanced = enhance_tool_calls([tool_call("c1"), {"id": "c2", "name": "fetch"}], mappings)

        assert enhanced[0] == {
            "id": "c1",
            "name": "search",
            "arguments": "",
            "server_name": "knowledge",
            "server_id": "srv-1",
        }
        assert enhanced[1]["server_name"] is None
        assert enhanced[1]["server_id"] is None


class TestConversationMetrics:
    """Tests for ConversationMetrics."""

    def test_counts(self):
        metrics = ConversationMetrics()
        for _ in range(3):
            metrics.record_token()
        metrics.record_tool_call()
        metrics.record_error()

        result = metrics.get_metrics()

        assert result["token_count"] == 3
        assert result["tool_call_count"] == 1
        assert result["error_count"] == 1
        assert result["duration"] >= 0
        assert result["tokens_per_second"] >= 0

    def test_reset(self):
        metrics = ConversationMetrics()
        metrics.record_token()

        metrics.reset()

        assert metrics.get_metrics()["token_count"] == 0
