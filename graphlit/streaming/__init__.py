"""
Streaming

Local LLM streaming: provider adapters, chunked token smoothing and the
UI event adapter used by streaming agents.
"""

from graphlit.streaming.chunk_buffer import ChunkBuffer, ChunkingStrategy, split_graphemes
from graphlit.streaming.events import (
    AgentErrorInfo,
    AgentEventType,
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
    TokenUsage,
    ToolExecutionStatus,
    ToolUpdateEvent,
)
from graphlit.streaming.providers import StreamProviderFactory, provider_sdk_installed
from graphlit.streaming.ui_event_adapter import UIEventAdapter

__all__ = [
    # Chunking
    "ChunkBuffer",
    "ChunkingStrategy",
    "split_graphemes",
    # Provider events
    "StreamEvent",
    "StreamEventType",
    "ReasoningFormat",
    "ToolExecutionStatus",
    "ContextWindowUsage",
    # UI events
    "AgentStreamEvent",
    "AgentEventType",
    "AgentErrorInfo",
    "ConversationStartedEvent",
    "MessageUpdateEvent",
    "ToolUpdateEvent",
    "ConversationCompletedEvent",
    "ErrorEvent",
    "ContextWindowEvent",
    "ReasoningUpdateEvent",
    "StreamMetrics",
    "TokenUsage",
    # Adapters
    "UIEventAdapter",
    "StreamProviderFactory",
    "provider_sdk_installed",
]
