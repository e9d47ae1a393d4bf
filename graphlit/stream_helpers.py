"""
Stream Helpers

Utilities for serving agent streams to a UI: an aggregator that turns
provider events into whole messages, Server-Sent Events formatting,
tool handler wrapping and simple conversation metrics.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Callable, Dict, List, Optional

from graphlit.agent.tools import invoke_tool_handler
from graphlit.agent.types import ToolHandler
from graphlit.models import BaseModel, ConversationMessage, ConversationRoleTypes, ConversationToolCall
from graphlit.streaming.events import StreamEvent, StreamEventType

logger = logging.getLogger("graphlit.streaming")

SSE_PING = ":\n\n"


# =============================================================================
# Aggregation
# =============================================================================

class AggregatedEventType(str, Enum):
    CONVERSATION_STARTED = "conversation_started"
    TOKEN = "token"
    ASSISTANT_MESSAGE = "assistant_message"
    STREAM_COMPLETE = "stream_complete"
    ERROR = "error"


@dataclass
class AggregatedEvent(BaseModel):
    """An event ready for the UI. Only the fields of its ``type`` are set."""
    type: AggregatedEventType
    conversation_id: Optional[str] = None
    token: Optional[str] = None
    accumulated: Optional[str] = None
    message: Optional[ConversationMessage] = None
    is_final: bool = False
    error: Optional[str] = None


@dataclass
class _BufferedToolCall:
    id: str
    name: str
    arguments: str = ""
    is_complete: bool = False
    start_time: float = field(default_factory=time.monotonic)


class StreamEventAggregator:
    """
    Folds provider ``StreamEvent`` objects into UI-ready events.

    Tokens pass through with the accumulated text. Tool calls are buffered
    until every call has completed, then the assistant message is emitted
    once with all of them. Without tool calls the message is emitted as
    final on ``complete``.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.conversation_id = ""
        self.message_buffer = ""
        self._tool_calls: Dict[str, _BufferedToolCall] = {}
        self._first_assistant_message = True
        self._received_tool_calls = False
        self._token_count = 0

    def process_event(self, event: StreamEvent) -> Optional[AggregatedEvent]:
        event_type = StreamEventType(event.type)

        if event_type == StreamEventType.START:
            self.conversation_id = event.conversation_id or ""
            return AggregatedEvent(AggregatedEventType.CONVERSATION_STARTED, conversation_id=self.conversation_id)

        if event_type == StreamEventType.TOKEN:
            self.message_buffer += event.token
            self._token_count += 1
            return AggregatedEvent(AggregatedEventType.TOKEN, token=event.token, accumulated=self.message_buffer)

        if event_type == StreamEventType.MESSAGE:
            self.message_buffer = event.message
            return None

        if event_type == StreamEventType.TOOL_CALL_START and event.tool_call is not None:
            self._received_tool_calls = True
            self._tool_calls[event.tool_call.id] = _BufferedToolCall(event.tool_call.id, event.tool_call.name)
            return None

        if event_type == StreamEventType.TOOL_CALL_DELTA:
            buffered = self._tool_calls.get(event.tool_call_id or "")
            if buffered is not None:
                buffered.arguments += event.argument_delta
            return None

        if event_type == StreamEventType.TOOL_CALL_COMPLETE and event.tool_call is not None:
            return self._complete_tool_call(event.tool_call)

        if event_type == StreamEventType.COMPLETE:
            if self._first_assistant_message and not self._received_tool_calls:
                return AggregatedEvent(
                    AggregatedEventType.ASSISTANT_MESSAGE,
                    conversation_id=self.conversation_id,
                    message=ConversationMessage(role=ConversationRoleTypes.ASSISTANT, message=self.message_buffer),
                    is_final=True,
                )
            return AggregatedEvent(AggregatedEventType.STREAM_COMPLETE, conversation_id=self.conversation_id)

        if event_type == StreamEventType.ERROR:
            return AggregatedEvent(AggregatedEventType.ERROR, error=event.error)

        return None

    def _complete_tool_call(self, tool_call: ConversationToolCall) -> Optional[AggregatedEvent]:
        buffered = self._tool_calls.get(tool_call.id)
        if buffered is not None:
            buffered.arguments = tool_call.arguments
            buffered.is_complete = True

        if not all(tc.is_complete for tc in self._tool_calls.values()):
            return None
        if not (self._received_tool_calls and self._first_assistant_message):
            return None

        self._first_assistant_message = False
        return AggregatedEvent(
            AggregatedEventType.ASSISTANT_MESSAGE,
            message=ConversationMessage(
                role=ConversationRoleTypes.ASSISTANT,
                message=self.message_buffer,
                tool_calls=[
                    ConversationToolCall(id=tc.id, name=tc.name, arguments=tc.arguments)
                    for tc in self._tool_calls.values()
                ],
            ),
            is_final=False,
        )

    def get_state(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "message_buffer": self.message_buffer,
            "tool_calls_count": len(self._tool_calls),
            "has_received_tool_calls": self._received_tool_calls,
            "is_first_assistant_message": self._first_assistant_message,
            "token_count": self._token_count,
        }


# =============================================================================
# Server-Sent Events
# =============================================================================

def format_sse_event(data: Any, event_name: str = "message") -> str:
    """Format one SSE frame; non-string data is sent as JSON."""
    if isinstance(data, BaseModel):
        data = data.to_dict()
    payload = data if isinstance(data, str) else json.dumps(data, default=str)
    return f"event: {event_name}\ndata: {payload}\n\n"


def _frame(item: Any) -> str:
    if isinstance(item, tuple) and len(item) == 2:
        event_name, data = item
        return format_sse_event(data, event_name)
    event_type = getattr(item, "type", None)
    if isinstance(item, BaseModel) and event_type is not None:
        return format_sse_event(item, getattr(event_type, "value", str(event_type)))
    return format_sse_event(item)


async def sse_stream(events: AsyncIterable[Any], ping_interval: Optional[float] = None) -> AsyncIterator[str]:
    """
    Turn an async stream of events into SSE frames.

    Items may be ``(event_name, data)`` tuples, event dataclasses (named
    after their ``type``) or plain data sent as ``message`` events.

    Args:
        events: Source of events
        ping_interval: Seconds of silence before a ``:`` comment frame
            keeps the connection alive

    Example:
        >>> async for frame in sse_stream(queue_events(), ping_interval=15):
        ...     await response.write(frame.encode())
    """
    iterator = events.__aiter__()
    pending: Optional[asyncio.Future] = None
    try:
        while True:
            if pending is None:
                pending = asyncio.ensure_future(iterator.__anext__())
            done, _ = await asyncio.wait({pending}, timeout=ping_interval)
            if not done:
                yield SSE_PING
                continue
            try:
                item = pending.result()
            except StopAsyncIteration:
                pending = None
                break
            pending = None
            yield _frame(item)
    finally:
        if pending is not None:
            pending.cancel()


# =============================================================================
# Tools
# =============================================================================

# (tool_call_id, result, status, duration_ms); status is complete or error
ToolResultEmitter = Callable[[str, Dict[str, Any], str, float], None]


def _tool_call_id() -> str:
    return f"tool_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def wrap_tool_handlers(handlers: Dict[str, ToolHandler], emit_result: ToolResultEmitter) -> Dict[str, ToolHandler]:
    """Wrap handlers so each result or error is also reported to ``emit_result``."""

    def wrap(name: str, handler: ToolHandler) -> ToolHandler:
        async def wrapped(args: Any, abort_event: Optional[asyncio.Event] = None) -> Any:
            tool_call_id = _tool_call_id()
            started = time.monotonic()
            try:
                result = await invoke_tool_handler(handler, args, abort_event)
            except Exception as e:
                duration = (time.monotonic() - started) * 1000
                emit_result(tool_call_id, {"status": "error", "error": str(e)}, "error", duration)
                raise
            duration = (time.monotonic() - started) * 1000
            emit_result(tool_call_id, {"status": "success", "result": result}, "complete", duration)
            return result

        wrapped.__name__ = name
        return wrapped

    return {name: wrap(name, handler) for name, handler in handlers.items()}


@dataclass
class ServerMapping:
    """Which tool server (e.g. an MCP server) provides a tool."""
    tool_name: str
    server_name: str
    server_id: str


def enhance_tool_calls(tool_calls: List[Any], server_mappings: List[ServerMapping]) -> List[Dict[str, Any]]:
    """Add ``server_name`` and ``server_id`` to each tool call dict."""
    mappings = {m.tool_name: m for m in server_mappings}
    enhanced = []
    for tool_call in tool_calls:
        item = tool_call.to_dict() if isinstance(tool_call, BaseModel) else dict(tool_call)
        mapping = mappings.get(item.get("name"))
        item["server_name"] = mapping.server_name if mapping else None
        item["server_id"] = mapping.server_id if mapping else None
        enhanced.append(item)
    return enhanced


# =============================================================================
# Metrics
# =============================================================================

class ConversationMetrics:
    """Counts tokens, tool calls and errors over a conversation."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._start = time.monotonic()
        self.token_count = 0
        self.tool_call_count = 0
        self.error_count = 0

    def record_token(self) -> None:
        self.token_count += 1

    def record_tool_call(self) -> None:
        self.tool_call_count += 1

    def record_error(self) -> None:
        self.error_count += 1

    def get_metrics(self) -> Dict[str, Any]:
        duration = (time.monotonic() - self._start) * 1000
        return {
            "duration": duration,
            "token_count": self.token_count,
            "tool_call_count": self.tool_call_count,
            "error_count": self.error_count,
            "tokens_per_second": self.token_count / (duration / 1000) if duration > 0 else 0.0,
        }
