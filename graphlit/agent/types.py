"""
Agent Types

Options and results for ``prompt_agent``, ``stream_agent`` and the
multi-turn ``run_agent`` harness.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from graphlit.config import Limits
from graphlit.helpers.context_management import ContextStrategy
from graphlit.helpers.stuck_detector import StuckEvaluation
from graphlit.models import BaseModel, ConversationMessage, ConversationToolCall
from graphlit.streaming.chunk_buffer import ChunkingStrategy
from graphlit.streaming.events import ContextWindowUsage

# handler(args) or handler(args, abort_event); may be sync or async
ToolHandler = Callable[..., Union[Any, Awaitable[Any]]]


# =============================================================================
# Options
# =============================================================================

@dataclass
class AgentOptions(BaseModel):
    """
    Options for ``prompt_agent``.

    Attributes:
        max_tool_rounds: Tool calling rounds before the agent stops
        timeout: Overall timeout in seconds
        context_strategy: Tool result and round limits
    """
    max_tool_rounds: int = Limits.DEFAULT_MAX_TOOL_ROUNDS
    timeout: float = Limits.DEFAULT_AGENT_TIMEOUT_SECONDS
    context_strategy: Optional[ContextStrategy] = None


@dataclass
class StreamAgentOptions(BaseModel):
    """
    Options for ``stream_agent``.

    Attributes:
        max_tool_rounds: Tool calling rounds before the agent stops
        abort_event: Set to cancel the stream
        smoothing_enabled: Release text in chunks at a steady rate
        chunking_strategy: ``"character"``, ``"word"``, ``"sentence"`` or a
            custom chunker
        smoothing_delay: Milliseconds between UI updates
        context_strategy: Tool result and round limits
        instructions: Extra instructions appended to the user prompt
    """
    max_tool_rounds: int = Limits.DEFAULT_MAX_TOOL_ROUNDS
    abort_event: Optional[asyncio.Event] = None
    smoothing_enabled: bool = True
    chunking_strategy: ChunkingStrategy = Limits.DEFAULT_CHUNKING_STRATEGY
    smoothing_delay: float = Limits.DEFAULT_SMOOTHING_DELAY_MS
    context_strategy: Optional[ContextStrategy] = None
    instructions: Optional[str] = None


# =============================================================================
# Results
# =============================================================================

@dataclass
class ToolCallResult(BaseModel):
    id: str
    name: str
    arguments: Any = None
    result: Any = None
    error: Optional[str] = None
    duration: Optional[float] = None  # ms


@dataclass
class UsageInfo(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost: Optional[float] = None
    model: Optional[str] = None


@dataclass
class AgentError(BaseModel):
    message: str
    code: Optional[str] = None
    recoverable: bool = False
    details: Optional[Dict[str, Any]] = None


@dataclass
class AgentMetrics(BaseModel):
    """Timing of an agent run; times are milliseconds."""
    total_time: float = 0
    llm_time: Optional[float] = None
    tool_time: Optional[float] = None
    ttft: Optional[float] = None
    tokens_per_second: Optional[float] = None
    tool_executions: Optional[int] = None
    rounds: Optional[int] = None


class ContextActionType(str, Enum):
    TRUNCATED_TOOL_RESULT = "truncated_tool_result"
    WINDOWED_TOOL_ROUNDS = "windowed_tool_rounds"


@dataclass
class ContextManagementAction(BaseModel):
    """
    A trimming step taken to keep the context window in budget.

    ``tool_name``, ``original_tokens`` and ``truncated_tokens`` describe a
    truncated tool result; ``dropped_rounds`` and ``kept_rounds`` describe
    windowed tool rounds.
    """
    type: ContextActionType
    tool_name: Optional[str] = None
    original_tokens: Optional[int] = None
    truncated_tokens: Optional[int] = None
    dropped_rounds: Optional[int] = None
    kept_rounds: Optional[int] = None

    @classmethod
    def truncated(cls, tool_name: str, original_tokens: int, truncated_tokens: int) -> "ContextManagementAction":
        return cls(
            ContextActionType.TRUNCATED_TOOL_RESULT,
            tool_name=tool_name,
            original_tokens=original_tokens,
            truncated_tokens=truncated_tokens,
        )

    @classmethod
    def windowed(cls, dropped_rounds: int, kept_rounds: int) -> "ContextManagementAction":
        return cls(ContextActionType.WINDOWED_TOOL_ROUNDS, dropped_rounds=dropped_rounds, kept_rounds=kept_rounds)


@dataclass
class AgentResult(BaseModel):
    """Result of ``prompt_agent``. On failure ``error`` is set and ``message`` is empty."""
    message: str
    conversation_id: str
    conversation_message: Optional[ConversationMessage] = None
    tool_calls: List[ConversationToolCall] = field(default_factory=list)
    tool_results: List[ToolCallResult] = field(default_factory=list)
    metrics: Optional[AgentMetrics] = None
    usage: Optional[UsageInfo] = None
    context_window: Optional[ContextWindowUsage] = None
    context_actions: List[ContextManagementAction] = field(default_factory=list)
    error: Optional[AgentError] = None


@dataclass
class StreamingLoopResult:
    """What one ``stream_agent`` run produced, for the harness."""
    full_message: str = ""
    tool_call_count: int = 0
    tool_call_names: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    context_window: Optional[ContextWindowUsage] = None
    context_actions: List[ContextManagementAction] = field(default_factory=list)


# =============================================================================
# Harness
# =============================================================================

class HarnessStatus(str, Enum):
    COMPLETED = "completed"
    BUDGET_EXHAUSTED = "budget_exhausted"
    STUCK = "stuck"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass
class TurnResult(BaseModel):
    """One harness turn. ``tool_calls`` holds the sorted tool names called."""
    turn_number: int
    prompt: str
    response_text: str
    tool_calls: List[str] = field(default_factory=list)
    tool_call_count: int = 0
    duration_ms: float = 0
    task_complete: bool = False
    context_window_usage: Optional[ContextWindowUsage] = None
    context_actions: List[ContextManagementAction] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class BudgetSnapshot(BaseModel):
    turns_used: int
    turns_remaining: int
    tool_calls_used: int
    tool_calls_remaining: int
    wall_clock_ms: float
    wall_clock_ms_remaining: float
    context_window_percent: Optional[float] = None


@dataclass
class QualityAssessment(BaseModel):
    """LLM-as-judge scores (0 to 10) for a finished run."""
    completeness: float = 0
    quality: float = 0
    efficiency: float = 0
    overall: float = 0
    issues: List[str] = field(default_factory=list)


@dataclass
class RunAgentOptions(BaseModel):
    """
    Options for the ``run_agent`` harness.

    Budgets:
        max_turns: Turns before the run is cut off (25)
        max_wall_clock_ms: Wall clock budget (300000)
        max_tool_calls: Tool calls across all turns (100)
        wind_down_turns: Turns reserved for wrapping up (2)
        adaptive_budget: Scale the budgets by the prompt's classified
            complexity (1x to 3x)

    ``on_turn_complete`` and ``on_budget_warning`` may be sync or async;
    ``on_stream_event`` is called synchronously with each UI event.
    """
    specification: Optional[Dict[str, Any]] = None
    conversation_id: Optional[str] = None
    tools: List[Dict[str, Any]] = field(default_factory=list)
    tool_handlers: Dict[str, ToolHandler] = field(default_factory=dict)
    augmented_filter: Optional[Dict[str, Any]] = None
    fallbacks: Optional[List[Dict[str, Any]]] = None

    max_turns: int = 25
    max_wall_clock_ms: int = 300000
    max_tool_calls: int = 100
    wind_down_turns: int = 2
    adaptive_budget: bool = False

    on_turn_complete: Optional[Callable[[TurnResult], Any]] = None
    on_budget_warning: Optional[Callable[[BudgetSnapshot], Any]] = None
    on_stream_event: Optional[Callable[[Any], Any]] = None

    abort_event: Optional[asyncio.Event] = None
    context_strategy: Optional[ContextStrategy] = None
    correlation_id: Optional[str] = None

    quality_assessment: bool = False
    quality_assessment_specification: Optional[Dict[str, Any]] = None

    smoothing_enabled: bool = True
    chunking_strategy: ChunkingStrategy = Limits.DEFAULT_CHUNKING_STRATEGY
    smoothing_delay: float = Limits.DEFAULT_SMOOTHING_DELAY_MS


@dataclass
class RunAgentResult(BaseModel):
    agent_id: str
    conversation_id: str
    status: HarnessStatus
    final_message: str = ""
    task_complete_summary: Optional[str] = None
    turns: int = 0
    total_tool_calls: int = 0
    wall_clock_ms: float = 0
    context_window_at_end: Optional[ContextWindowUsage] = None
    turn_results: List[TurnResult] = field(default_factory=list)
    error: Optional[str] = None
    stuck_pattern: Optional[str] = None
    quality_assessment: Optional[QualityAssessment] = None


__all__ = [
    "ToolHandler",
    "ContextStrategy",
    "AgentOptions",
    "StreamAgentOptions",
    "ToolCallResult",
    "UsageInfo",
    "AgentError",
    "AgentMetrics",
    "ContextWindowUsage",
    "ContextActionType",
    "ContextManagementAction",
    "AgentResult",
    "StreamingLoopResult",
    "HarnessStatus",
    "TurnResult",
    "BudgetSnapshot",
    "StuckEvaluation",
    "QualityAssessment",
    "RunAgentOptions",
    "RunAgentResult",
]
