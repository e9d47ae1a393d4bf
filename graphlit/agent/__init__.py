"""
Agents

``prompt_agent`` (server-side model calls), ``stream_agent`` (local
provider streaming with UI events) and the multi-turn ``run_agent``
harness. Use them through :class:`~graphlit.client.AsyncGraphlit`.
"""

from graphlit.agent.harness import TASK_COMPLETE_TOOL, run_agent
from graphlit.agent.prompt import prompt_agent
from graphlit.agent.streaming import stream_agent
from graphlit.agent.types import (
    AgentError,
    AgentMetrics,
    AgentOptions,
    AgentResult,
    BudgetSnapshot,
    ContextActionType,
    ContextManagementAction,
    ContextStrategy,
    ContextWindowUsage,
    HarnessStatus,
    QualityAssessment,
    RunAgentOptions,
    RunAgentResult,
    StreamAgentOptions,
    StuckEvaluation,
    ToolCallResult,
    ToolHandler,
    TurnResult,
    UsageInfo,
)

__all__ = [
    "prompt_agent",
    "stream_agent",
    "run_agent",
    "TASK_COMPLETE_TOOL",
    "AgentOptions",
    "StreamAgentOptions",
    "RunAgentOptions",
    "AgentResult",
    "RunAgentResult",
    "AgentError",
    "AgentMetrics",
    "ToolCallResult",
    "ToolHandler",
    "UsageInfo",
    "ContextStrategy",
    "ContextWindowUsage",
    "ContextActionType",
    "ContextManagementAction",
    "HarnessStatus",
    "TurnResult",
    "BudgetSnapshot",
    "StuckEvaluation",
    "QualityAssessment",
]
