"""
UI Event Adapter

Folds the low-level ``StreamEvent`` objects produced by providers into the
``AgentStreamEvent`` dataclasses an application renders: throttled or
smoothed message updates, tool call progress, reasoning updates and a final
``conversation_completed`` event carrying timing metrics and usage.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from graphlit.models import ConversationMessage, ConversationRoleTypes, ConversationToolCall
from graphlit.streaming.chunk_buffer import ChunkBuffer, ChunkingStrategy
from graphlit.streaming.events import (
    AgentErrorInfo,
    AgentStreamEvent,
    ContextWindowEvent,
    ContextWindowUsage,
    ConversationCompletedEvent,
    ConversationStartedEvent,
    ErrorEvent,
    MessageUpdateEvent,
    ReasoningFormat,
    ReasoningUpdateEvent,
    StreamEvent,
    StreamEventType,
    StreamMetrics,
    ToolExecutionStatus,
    ToolUpdateEvent,
    usage_from_provider,
)

logger = logging.getLogger("graphlit.streaming")


EventCallback = Callable[[AgentStreamEvent], None]

_PENDING_STATUSES = (
    ToolExecutionStatus.PREPARING,
    ToolExecutionStatus.EXECUTING,
    ToolExecutionStatus.READY,
)
_DONE_STATUSES = (ToolExecutionStatus.COMPLETED, ToolExecutionStatus.FAILED)


def _now_ms() -> float:
    return time.monotonic() * 1000


@dataclass
class _ActiveToolCall:
    tool_call: ConversationToolCall
    status: ToolExecutionStatus


class UIEventAdapter:
    """
    Transforms provider stream events into UI events.

    Timers are scheduled on the running asyncio loop. Outside a loop, queued
    chunks are released immediately.

    Args:
        on_event: Callback receiving each ``AgentStreamEvent``
        conversation_id: Conversation being streamed
        smoothing_enabled: Buffer tokens into chunks and release one chunk
            every ``smoothing_delay`` milliseconds
        chunking_strategy: ``"character"``, ``"word"``, ``"sentence"`` or a
            custom chunker
        smoothing_delay: Milliseconds between UI updates
        model: Model enum value of the specification
        model_name: Provider model name (e.g. ``"gpt-4o"``)
        model_service: Service type of the specification
    """

    def __init__(
        self,
        on_event: EventCallback,
        conversation_id: str,
        smoothing_enabled: bool = False,
        chunking_strategy: ChunkingStrategy = "word",
        smoothing_delay: float = 30,
        model: Optional[str] = None,
        model_name: Optional[str] = None,
        model_service: Optional[str] = None,
    ):
        self._on_event = on_event
        self.conversation_id = conversation_id
        self.smoothing_delay = smoothing_delay
        self.model = model
        self.model_name = model_name
        self.model_service = model_service

        self._chunk_buffer: Optional[ChunkBuffer] = (
            ChunkBuffer(chunking_strategy or "word") if smoothing_enabled else None
        )
        self._chunk_queue: List[str] = []
        self._timer: Optional[asyncio.TimerHandle] = None

        self.current_message = ""
        self.is_streaming = False
        self._token_count = 0
        self._conversation_start = _now_ms()
        self._stream_start = 0.0
        self._first_token = 0.0
        self._last_token = 0.0
        self._token_delays: List[float] = []
        self._last_update = 0.0

        self._active_tool_calls: Dict[str, _ActiveToolCall] = {}
        self._tool_calls_in_progress = False
        self._had_tool_calls_before_resume = False

        self._context_window: Optional[ContextWindowUsage] = None
        self._final_metrics: Optional[StreamMetrics] = None
        self._usage_data: Optional[Dict[str, Any]] = None

        self.reasoning_content = ""
        self.reasoning_format: Optional[ReasoningFormat] = None
        self.reasoning_signature: Optional[str] = None
        self.is_in_reasoning = False
        self.round_thinking_content: Optional[str] = None

        self._handlers: Dict[StreamEventType, Callable[[StreamEvent], None]] = {
            StreamEventType.START: lambda e: self._handle_start(e.conversation_id or self.conversation_id),
            StreamEventType.TOKEN: lambda e: self._handle_token(e.token),
            StreamEventType.MESSAGE: lambda e: self._handle_message(e.message),
            StreamEventType.TOOL_CALL_START: lambda e: self._handle_tool_call_start(e.tool_call),
            StreamEventType.TOOL_CALL_DELTA: lambda e: self._handle_tool_call_delta(e.tool_call_id, e.argument_delta),
            StreamEventType.TOOL_CALL_PARSED: lambda e: self._handle_tool_call_parsed(e.tool_call),
            StreamEventType.TOOL_CALL_COMPLETE: lambda e: self._handle_tool_call_complete(e.tool_call, e.result, e.error),
            StreamEventType.COMPLETE: lambda e: self._handle_complete(e.tokens),
            StreamEventType.ERROR: lambda e: self._handle_error(e.error or "Unknown error"),
            StreamEventType.CONTEXT_WINDOW: lambda e: self._handle_context_window(e.usage),
            StreamEventType.REASONING_START: lambda e: self._handle_reasoning_start(e.format),
            StreamEventType.REASONING_DELTA: lambda e: self._handle_reasoning_delta(e.content, e.format),
            StreamEventType.REASONING_END: lambda e: self._handle_reasoning_end(e.full_content, e.signature),
        }

    # =========================================================================
    # Public API
    # =========================================================================

    def handle_event(self, event: StreamEvent) -> None:
        """Process one provider event and emit the matching UI events."""
        handler = self._handlers.get(StreamEventType(event.type))
        if handler is not None:
            handler(event)

    def set_tool_result(self, tool_call_id: str, result: Any = None, error: Optional[str] = None) -> None:
        """Record the outcome of a tool the agent executed."""
        tool = self._active_tool_calls.get(tool_call_id)
        if tool is None:
            logger.warning(f"Tool result for unknown tool call: {tool_call_id}")
            return
        self._handle_tool_call_complete(tool.tool_call, result, error)

    def set_usage_data(self, usage: Dict[str, Any]) -> None:
        """Attach the provider's native usage payload to the completion event."""
        self._usage_data = usage
        logger.debug(f"Usage data set: {usage}")

    def set_round_thinking_content(self, thinking_content: str) -> None:
        """Keep this round's thinking text for conversation history."""
        self.round_thinking_content = thinking_content
        logger.debug(f"Thinking content set ({len(thinking_content)} chars)")

    def dispose(self) -> None:
        """Cancel pending timers and drop tool call state."""
        self._cancel_timer()
        self._active_tool_calls.clear()

    @property
    def completion_time(self) -> Optional[float]:
        """Total streaming time in milliseconds."""
        return self._final_metrics.elapsed_time if self._final_metrics else None

    @property
    def ttft(self) -> Optional[float]:
        """Time to first token in milliseconds."""
        return self._final_metrics.ttft if self._final_metrics else None

    @property
    def throughput(self) -> Optional[int]:
        """Streaming throughput in characters per second."""
        return self._final_metrics.streaming_throughput if self._final_metrics else None

    @property
    def tool_calls(self) -> List[ConversationToolCall]:
        return [t.tool_call for t in self._active_tool_calls.values()]

    @property
    def pending_tool_calls(self) -> List[ConversationToolCall]:
        """Tracked tool calls that have not completed or failed yet."""
        return [t.tool_call for t in self._active_tool_calls.values() if t.status in _PENDING_STATUSES]

    # =========================================================================
    # Event handlers
    # =========================================================================

    def _handle_start(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        self.is_streaming = True
        self._stream_start = _now_ms()
        self._first_token = 0.0
        self._last_token = 0.0
        self._token_count = 0
        self._token_delays = []
        self._tool_calls_in_progress = False
        self._had_tool_calls_before_resume = False

        if self._active_tool_calls:
            logger.warning(f"{len(self._active_tool_calls)} tool calls still active at start")
        self._active_tool_calls.clear()

        self._emit(ConversationStartedEvent(conversation_id=conversation_id, model=self.model))

    def _handle_token(self, token: str) -> None:
        now = _now_ms()
        if not self._first_token:
            self._first_token = now
        if self._last_token:
            self._token_delays.append(now - self._last_token)
        self._last_token = now
        self._token_count += 1

        # Separate resumed content from the text before the tool calls
        if self._had_tool_calls_before_resume and not self._tool_calls_in_progress:
            if self.current_message and not self.current_message.endswith("\n\n"):
                self.current_message += "\n\n"
            self._had_tool_calls_before_resume = False

        if self._chunk_buffer is not None:
            self._chunk_queue.extend(self._chunk_buffer.add_token(token))
            self._schedule_chunk_emission()
        else:
            self.current_message += token
            self._schedule_message_update()

    def _handle_message(self, message: str) -> None:
        # The full text supersedes anything still queued for smoothing
        self._cancel_timer()
        self._chunk_queue.clear()
        if self._chunk_buffer is not None:
            self._chunk_buffer.reset()
        self.current_message = message
        self._emit_message_update(is_streaming=False)

    def _handle_tool_call_start(self, tool_call: Optional[ConversationToolCall]) -> None:
        if tool_call is None:
            return
        logger.debug(f"Tool call start - ID: {tool_call.id}, Name: {tool_call.name}")

        self._drain_pending_text()
        if self.current_message:
            self._emit_message_update(is_streaming=True)

        tracked = ConversationToolCall(id=tool_call.id, name=tool_call.name, arguments="")
        self._active_tool_calls[tool_call.id] = _ActiveToolCall(tracked, ToolExecutionStatus.PREPARING)
        self._tool_calls_in_progress = True
        self._had_tool_calls_before_resume = True

        self._emit(ToolUpdateEvent(tool_call=tracked, status=ToolExecutionStatus.PREPARING))

    def _handle_tool_call_delta(self, tool_call_id: Optional[str], argument_delta: str) -> None:
        tool = self._active_tool_calls.get(tool_call_id or "")
        if tool is None:
            logger.warning(f"Tool call delta for unknown tool ID: {tool_call_id}")
            return

        tool.tool_call.arguments += argument_delta
        if tool.status == ToolExecutionStatus.PREPARING:
            tool.status = ToolExecutionStatus.EXECUTING

        self._emit(ToolUpdateEvent(tool_call=tool.tool_call, status=ToolExecutionStatus.EXECUTING))

    def _handle_tool_call_parsed(self, tool_call: Optional[ConversationToolCall]) -> None:
        if tool_call is None:
            return
        tool = self._active_tool_calls.get(tool_call.id)
        if tool is not None:
            tool.tool_call.arguments = tool_call.arguments
            tool.status = ToolExecutionStatus.READY
        else:
            logger.warning(f"Tool call parsed for untracked tool ID: {tool_call.id}, creating entry")
            tool = _ActiveToolCall(
                ConversationToolCall(id=tool_call.id, name=tool_call.name, arguments=tool_call.arguments),
                ToolExecutionStatus.READY,
            )
            self._active_tool_calls[tool_call.id] = tool
            self._tool_calls_in_progress = True
            self._had_tool_calls_before_resume = True

        self._emit(ToolUpdateEvent(tool_call=tool.tool_call, status=ToolExecutionStatus.READY))

    def _handle_tool_call_complete(
        self,
        tool_call: Optional[ConversationToolCall],
        result: Any = None,
        error: Optional[str] = None,
    ) -> None:
        if tool_call is None:
            return
        tool = self._active_tool_calls.get(tool_call.id)
        if tool is not None:
            tool.status = ToolExecutionStatus.FAILED if error else ToolExecutionStatus.COMPLETED
            self._emit(ToolUpdateEvent(tool_call=tool.tool_call, status=tool.status, result=result, error=error))
        else:
            logger.warning(f"Tool call complete for unknown tool ID: {tool_call.id}")

        if self._active_tool_calls and all(t.status in _DONE_STATUSES for t in self._active_tool_calls.values()):
            self._tool_calls_in_progress = False

    def _handle_complete(self, tokens: Optional[int]) -> None:
        self._drain_pending_text()
        self.is_streaming = False

        completed_at = _now_ms()
        final = ConversationMessage(
            role=ConversationRoleTypes.ASSISTANT,
            message=self.current_message,
            tokens=tokens,
            tool_calls=self.tool_calls,
            model=self.model,
            model_name=self.model_name,
            model_service=self.model_service,
        )
        if self._stream_start:
            total = completed_at - self._stream_start
            final.throughput = round(len(self.current_message) / total * 1000) if total > 0 else 0
            final.completion_time = total / 1000

        metrics = self._build_metrics(completed_at)
        metrics.llm_tokens = tokens or None
        self._final_metrics = metrics

        # Tool execution continues; completion comes after the last round
        if any(t.status in _PENDING_STATUSES for t in self._active_tool_calls.values()):
            logger.debug(f"Skipping conversation_completed, {len(self._active_tool_calls)} tool calls pending")
            return

        usage = None
        if self._usage_data:
            usage = usage_from_provider(self._usage_data, model=self.model, provider=self.model_service)

        self._emit(
            ConversationCompletedEvent(
                message=final,
                metrics=metrics,
                context_window=self._context_window,
                usage=usage,
            )
        )

    def _handle_error(self, error: str) -> None:
        self.is_streaming = False
        self._emit(
            ErrorEvent(
                error=AgentErrorInfo(message=error, recoverable=False),
                conversation_id=self.conversation_id,
            )
        )

    def _handle_context_window(self, usage: Optional[ContextWindowUsage]) -> None:
        if usage is None:
            return
        self._context_window = usage
        logger.debug(f"Context window: {usage.used_tokens}/{usage.max_tokens} ({usage.percentage}%)")
        self._emit(ContextWindowEvent(usage=usage))

    def _handle_reasoning_start(self, format: Optional[ReasoningFormat]) -> None:
        self.is_in_reasoning = True
        self.reasoning_format = format
        self.reasoning_content = ""

    def _handle_reasoning_delta(self, content: str, format: Optional[ReasoningFormat]) -> None:
        self.reasoning_content += content
        self.reasoning_format = format or self.reasoning_format
        if self.reasoning_format is None:
            return
        self._emit(ReasoningUpdateEvent(content=self.reasoning_content, format=self.reasoning_format))

    def _handle_reasoning_end(self, full_content: str, signature: Optional[str]) -> None:
        self.is_in_reasoning = False
        self.reasoning_content = full_content
        self.reasoning_signature = signature
        if self.reasoning_format is not None:
            self._emit(ReasoningUpdateEvent(content=full_content, format=self.reasoning_format, is_complete=True))

    # =========================================================================
    # Smoothing
    # =========================================================================

    def _drain_pending_text(self) -> None:
        """Move queued chunks and buffered text into the message."""
        self._cancel_timer()
        if self._chunk_queue:
            self.current_message += "".join(self._chunk_queue)
            self._chunk_queue.clear()
        if self._chunk_buffer is not None:
            self.current_message += "".join(self._chunk_buffer.flush())

    def _schedule_message_update(self) -> None:
        elapsed = _now_ms() - self._last_update
        if elapsed >= self.smoothing_delay:
            self._emit_message_update(is_streaming=True)
        elif self._timer is None:
            self._call_later(self.smoothing_delay - elapsed, lambda: self._emit_message_update(is_streaming=True))

    def _schedule_chunk_emission(self) -> None:
        if self._timer is not None or not self._chunk_queue:
            return
        elapsed = _now_ms() - self._last_update
        if elapsed >= self.smoothing_delay:
            self._emit_next_chunk()
        else:
            self._call_later(self.smoothing_delay - elapsed, self._emit_next_chunk)

    def _emit_next_chunk(self) -> None:
        self._timer = None
        if not self._chunk_queue:
            return

        self.current_message += self._chunk_queue.pop(0)
        self._emit_message_update(is_streaming=True)

        if self._chunk_queue:
            self._call_later(self.smoothing_delay, self._emit_next_chunk)

    def _call_later(self, delay_ms: float, callback: Callable[[], None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to defer on; release immediately
            callback()
            return
        self._timer = loop.call_later(delay_ms / 1000, callback)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # =========================================================================
    # Emission
    # =========================================================================

    def _build_metrics(self, now: float) -> StreamMetrics:
        metrics = StreamMetrics(
            elapsed_time=now - self._stream_start if self._stream_start else 0,
            conversation_duration=now - self._conversation_start,
        )
        if self._first_token and self._stream_start:
            metrics.ttft = self._first_token - self._stream_start
            streaming_time = now - self._first_token
            if streaming_time > 0:
                metrics.streaming_throughput = round(len(self.current_message) / streaming_time * 1000)
        if self._token_count:
            metrics.token_count = self._token_count
        if self._token_delays:
            metrics.avg_token_delay = round(sum(self._token_delays) / len(self._token_delays))
        return metrics

    def _emit_message_update(self, is_streaming: bool) -> None:
        now = _now_ms()
        self._last_update = now
        self._cancel_timer()

        message = ConversationMessage(
            role=ConversationRoleTypes.ASSISTANT,
            message=self.current_message,
            model=self.model,
            model_name=self.model_name,
            model_service=self.model_service,
        )
        if self._stream_start:
            elapsed = now - self._stream_start
            message.throughput = round(len(self.current_message) / elapsed * 1000) if elapsed > 0 else 0
            if elapsed > 0:
                message.completion_time = elapsed / 1000

        self._emit(MessageUpdateEvent(message=message, is_streaming=is_streaming, metrics=self._build_metrics(now)))

    def _emit(self, event: AgentStreamEvent) -> None:
        self._on_event(event)
