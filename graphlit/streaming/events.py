"""
Streaming Events

Two event vocabularies live here. Providers emit low-level ``StreamEvent``
objects while they read an LLM stream; the ``UIEventAdapter`` folds those
into the higher level ``AgentStreamEvent`` dataclasses that applications
render.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from graphlit.models import BaseModel, ConversationMessage, ConversationToolCall


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReasoningFormat(str, Enum):
    """How a provider surfaces model reasoning."""
    THINKING_TAG = "thinking_tag"
    MARKDOWN = "markdown"


class ToolExecutionStatus(str, Enum):
    """Lifecycle of a streamed tool call."""
    PREPARING = "preparing"
    EXECUTING = "executing"
    READY = "ready"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# Provider events
# =============================================================================

class StreamEventType(str, Enum):
    """Types of low-level streaming events."""

    # Lifecycle
    START = "start"
    COMPLETE = "complete"
    ERROR = "error"

    # Content
    TOKEN = "token"
    MESSAGE = "message"

    # Tool calls
    TOOL_CALL_START = "tool_call_start"
    TOOL_CALL_DELTA = "tool_call_delta"
    TOOL_CALL_PARSED = "tool_call_parsed"
    TOOL_CALL_COMPLETE = "tool_call_complete"

    # Context
    CONTEXT_WINDOW = "context_window"

    # Reasoning
    REASONING_START = "reasoning_start"
    REASONING_DELTA = "reasoning_delta"
    REASONING_END = "reasoning_end"


@dataclass
class ContextWindowUsage(BaseModel):
    """Token usage of the current context window."""
    used_tokens: int
    max_tokens: int
    percentage: float
    remaining_tokens: int


@dataclass
class StreamEvent:
    """Event emitted by a provider while streaming."""

    type: StreamEventType
    timestamp: float = field(default_factory=time.time)

    # start
    conversation_id: Optional[str] = None

    # token / message
    token: str = ""
    message: str = ""

    # tool calls
    tool_call: Optional[ConversationToolCall] = None
    tool_call_id: Optional[str] = None
    argument_delta: str = ""
    result: Any = None
    error: Optional[str] = None

    # complete
    tokens: Optional[int] = None

    # context_window
    usage: Optional[ContextWindowUsage] = None

    # reasoning
    format: Optional[ReasoningFormat] = None
    content: str = ""
    full_content: str = ""
    signature: Optional[str] = None

    @classmethod
    def start(cls, conversation_id: str) -> "StreamEvent":
        return cls(StreamEventType.START, conversation_id=conversation_id)

    @classmethod
    def token_delta(cls, token: str) -> "StreamEvent":
        return cls(StreamEventType.TOKEN, token=token)

    @classmethod
    def full_message(cls, message: str) -> "StreamEvent":
        return cls(StreamEventType.MESSAGE, message=message)

    @classmethod
    def tool_start(cls, id: str, name: str) -> "StreamEvent":
        return cls(StreamEventType.TOOL_CALL_START, tool_call=ConversationToolCall(id=id, name=name))

    @classmethod
    def tool_delta(cls, tool_call_id: str, argument_delta: str) -> "StreamEvent":
        return cls(
            StreamEventType.TOOL_CALL_DELTA,
            tool_call_id=tool_call_id,
            argument_delta=argument_delta,
        )

    @classmethod
    def tool_parsed(cls, tool_call: ConversationToolCall) -> "StreamEvent":
        return cls(StreamEventType.TOOL_CALL_PARSED, tool_call=tool_call)

    @classmethod
    def tool_complete(
        cls,
        tool_call: ConversationToolCall,
        result: Any = None,
        error: Optional[str] = None,
    ) -> "StreamEvent":
        return cls(StreamEventType.TOOL_CALL_COMPLETE, tool_call=tool_call, result=result, error=error)

    @classmethod
    def completed(cls, tokens: Optional[int] = None) -> "StreamEvent":
        return cls(StreamEventType.COMPLETE, tokens=tokens)

    @classmethod
    def failed(cls, error: str) -> "StreamEvent":
        return cls(StreamEventType.ERROR, error=error)

    @classmethod
    def context_window(cls, usage: ContextWindowUsage) -> "StreamEvent":
        return cls(StreamEventType.CONTEXT_WINDOW, usage=usage)

    @classmethod
    def reasoning_start(cls, format: ReasoningFormat) -> "StreamEvent":
        return cls(StreamEventType.REASONING_START, format=format)

    @classmethod
    def reasoning_delta(cls, content: str, format: ReasoningFormat) -> "StreamEvent":
        return cls(StreamEventType.REASONING_DELTA, content=content, format=format)

    @classmethod
    def reasoning_end(cls, full_content: str, signature: Optional[str] = None) -> "StreamEvent":
        return cls(StreamEventType.REASONING_END, full_content=full_content, signature=signature)


# =============================================================================
# UI events
# =============================================================================

class AgentEventType(str, Enum):
    """Types of UI-level agent events."""
    CONVERSATION_STARTED = "conversation_started"
    MESSAGE_UPDATE = "message_update"
    TOOL_UPDATE = "tool_update"
    CONVERSATION_COMPLETED = "conversation_completed"
    ERROR = "error"
    CONTEXT_WINDOW = "context_window"
    REASONING_UPDATE = "reasoning_update"


@dataclass
class StreamMetrics(BaseModel):
    """
    Timing metrics attached to message updates and completion.

    All durations are milliseconds; throughput values are characters per
    second.
    """
    elapsed_time: float = 0
    conversation_duration: float = 0
    ttft: Optional[float] = None
    token_count: Optional[int] = None
    llm_tokens: Optional[int] = None
    avg_token_delay: Optional[int] = None
    streaming_throughput: Optional[int] = None


@dataclass
class TokenUsage(BaseModel):
    """Provider-reported token usage, normalized across providers."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    model: Optional[str] = None
    provider: Optional[str] = None


@dataclass
class AgentErrorInfo(BaseModel):
    message: str
    code: Optional[str] = None
    recoverable: bool = False


class AgentStreamEvent(BaseModel):
    """Base class for UI events; each subclass fixes ``type``."""

    type: AgentEventType


@dataclass
class ConversationStartedEvent(AgentStreamEvent):
    conversation_id: str
    timestamp: datetime = field(default_factory=_utc_now)
    model: Optional[str] = None
    type: AgentEventType = field(default=AgentEventType.CONVERSATION_STARTED, init=False)


@dataclass
class MessageUpdateEvent(AgentStreamEvent):
    message: ConversationMessage
    is_streaming: bool
    metrics: Optional[StreamMetrics] = None
    type: AgentEventType = field(default=AgentEventType.MESSAGE_UPDATE, init=False)


@dataclass
class ToolUpdateEvent(AgentStreamEvent):
    tool_call: ConversationToolCall
    status: ToolExecutionStatus
    result: Any = None
    error: Optional[str] = None
    type: AgentEventType = field(default=AgentEventType.TOOL_UPDATE, init=False)


@dataclass
class ConversationCompletedEvent(AgentStreamEvent):
    message: ConversationMessage
    metrics: Optional[StreamMetrics] = None
    context_window: Optional[ContextWindowUsage] = None
    usage: Optional[TokenUsage] = None
    type: AgentEventType = field(default=AgentEventType.CONVERSATION_COMPLETED, init=False)


@dataclass
class ErrorEvent(AgentStreamEvent):
    error: AgentErrorInfo
    conversation_id: Optional[str] = None
    timestamp: datetime = field(default_factory=_utc_now)
    type: AgentEventType = field(default=AgentEventType.ERROR, init=False)


@dataclass
class ContextWindowEvent(AgentStreamEvent):
    usage: ContextWindowUsage
    timestamp: datetime = field(default_factory=_utc_now)
    type: AgentEventType = field(default=AgentEventType.CONTEXT_WINDOW, init=False)


@dataclass
class ReasoningUpdateEvent(AgentStreamEvent):
    content: str
    format: ReasoningFormat
    is_complete: bool = False
    type: AgentEventType = field(default=AgentEventType.REASONING_UPDATE, init=False)


def usage_from_provider(data: Dict[str, Any], model: Optional[str] = None, provider: Optional[str] = None) -> TokenUsage:
    """Normalize a provider's native usage payload (any key convention)."""
    prompt = data.get("prompt_tokens") or data.get("promptTokens") or data.get("input_tokens") or 0
    completion = (
        data.get("completion_tokens") or data.get("completionTokens") or data.get("output_tokens") or 0
    )
    total = (
        data.get("total_tokens")
        or data.get("totalTokens")
        or (data.get("input_tokens") or 0) + (data.get("output_tokens") or 0)
        or 0
    )
    return TokenUsage(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=total,
        model=model,
        provider=provider,
    )
