"""
Turn Evaluator

Budget enforcement and per-turn instructions for the multi-turn agent
harness.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Tuple

from graphlit.streaming.events import ContextWindowUsage

if TYPE_CHECKING:
    from graphlit.agent.types import TurnResult

logger = logging.getLogger("graphlit.agent")

MAX_MULTIPLIER = 3.0

# (prompt, text, tools) -> extractText results
ExtractFn = Callable[[str, str, List[Dict[str, Any]]], Awaitable[Optional[List[Optional[Dict[str, Any]]]]]]

CLASSIFICATION_TOOL = {
    "name": "classify_complexity",
    "description": "Classify the complexity of a task to determine resource allocation.",
    "schema": json.dumps({
        "type": "object",
        "properties": {
            "multiplier": {
                "type": "number",
                "description": (
                    "Budget multiplier from 1.0 (simple) to 3.0 (highly complex). "
                    "1.0 = simple single-item task, 1.5 = moderate multi-step task, "
                    "2.0 = complex multi-item research, 3.0 = comprehensive deep analysis."
                ),
                "minimum": 1.0,
                "maximum": 3.0,
            },
            "reason": {
                "type": "string",
                "description": "Brief explanation of the complexity assessment.",
            },
        },
        "required": ["multiplier", "reason"],
    }),
}

CLASSIFICATION_PROMPT = (
    "Evaluate the following task and classify its complexity. Consider:\n"
    "- Task scope: single-item vs multi-item vs comprehensive\n"
    "- Research depth required: surface summary vs deep analysis\n"
    "- Number of distinct sub-tasks\n"
    "- Expected tool call volume\n\n"
    "Call the classify_complexity tool with your assessment."
)

STUCK_DESCRIPTIONS = {
    "repeating_tool_calls": "calling the same tools repeatedly with similar arguments",
    "repeating_responses": "generating very similar responses across multiple turns",
    "error_loop": "encountering errors on all tool calls for multiple consecutive turns",
    "empty_turns": "producing empty turns with no tool calls or progress",
}


@dataclass
class BudgetConfig:
    max_turns: int
    max_wall_clock_ms: int
    max_tool_calls: int
    wind_down_turns: int
    initial_prompt: str


@dataclass
class TurnInstructionConfig:
    turn_number: int
    turns_remaining: int
    is_winding_down: bool
    stuck_pattern: Optional[str] = None
    context_window_percent: Optional[float] = None
    original_task_summary: Optional[str] = None
    needs_summarization: bool = False


def _all_failed(turn: "TurnResult") -> bool:
    return turn.tool_call_count > 0 and len(turn.errors or []) >= turn.tool_call_count


class TurnEvaluator:
    """
    Budget limits, wind-down and turn instructions for one harness run.

    Limits can be scaled once up front by :meth:`adjust_budget` and a
    single extension can be granted for a run making steady progress.
    """

    def __init__(self, config: BudgetConfig):
        self.max_turns = config.max_turns
        self.max_wall_clock_ms = config.max_wall_clock_ms
        self.max_tool_calls = config.max_tool_calls
        self.wind_down_turns = config.wind_down_turns
        self.initial_prompt = config.initial_prompt
        self.extension_granted = False

    # =========================================================================
    # Adaptive budget
    # =========================================================================

    async def classify_complexity(self, prompt: str, extract: ExtractFn) -> Tuple[float, str]:
        """
        Ask the model for a budget multiplier between 1.0 and 3.0.

        Returns:
            ``(multiplier, reason)``; ``(1.0, ...)`` when classification fails
        """
        try:
            results = await extract(CLASSIFICATION_PROMPT, prompt, [CLASSIFICATION_TOOL])
            result = results[0] if results else None
            if result and result.get("value"):
                parsed = json.loads(result["value"])
                multiplier = min(MAX_MULTIPLIER, max(1.0, float(parsed["multiplier"])))
                return multiplier, parsed.get("reason", "")
        except Exception as e:
            logger.warning(f"Complexity classification failed, using 1x budget: {e}")
        return 1.0, "Default (classification unavailable)"

    def adjust_budget(self, multiplier: float) -> None:
        self.max_turns = math.ceil(self.max_turns * multiplier)
        self.max_wall_clock_ms = math.ceil(self.max_wall_clock_ms * multiplier)
        self.max_tool_calls = math.ceil(self.max_tool_calls * multiplier)

    # =========================================================================
    # Wind-down and extension
    # =========================================================================

    def should_wind_down(
        self,
        turn: int,
        elapsed_ms: float,
        total_tool_calls: int,
        context_window: Optional[ContextWindowUsage] = None,
    ) -> bool:
        if turn >= self.max_turns - self.wind_down_turns:
            return True
        if elapsed_ms > self.max_wall_clock_ms * 0.8:
            return True
        if context_window is not None and context_window.percentage > 90:
            return True
        return total_tool_calls > self.max_tool_calls * 0.9

    def should_grant_extension(
        self,
        turn_results: List["TurnResult"],
        context_percent: Optional[float] = None,
    ) -> Tuple[bool, int]:
        """
        Grant ``wind_down_turns * 2`` extra turns, once, to a run that is
        actively and successfully using tools with context to spare.
        """
        if self.extension_granted or len(turn_results) < 3:
            return False, 0
        if context_percent is not None and context_percent >= 60:
            return False, 0

        recent = turn_results[-3:]
        if any(_all_failed(t) for t in recent):
            return False, 0
        if not any(t.tool_call_count > 0 for t in recent):
            return False, 0

        extra = self.wind_down_turns * 2
        self.extension_granted = True
        self.max_turns += extra
        return True, extra

    # =========================================================================
    # Instructions
    # =========================================================================

    def build_turn_instructions(self, config: TurnInstructionConfig) -> Optional[str]:
        """Instructions for the next turn, or None for a plain continuation."""
        parts = []

        if config.stuck_pattern:
            description = STUCK_DESCRIPTIONS.get(config.stuck_pattern, config.stuck_pattern)
            parts.append(
                f"You appear to be {description}. "
                "Take a different approach: try alternative tools, different arguments, "
                "or reconsider your strategy. If the task cannot be completed with "
                "available tools, call task_complete with a summary of what was accomplished "
                "and what remains."
            )

        if config.is_winding_down:
            parts.append(
                f"You are running low on remaining capacity ({config.turns_remaining} turn(s) remaining). "
                "Wrap up your work: synthesize your findings, provide your final answer, "
                "and call task_complete. Do not start new lines of investigation."
            )

        if config.context_window_percent is not None and config.context_window_percent > 85:
            parts.append(
                f"Context window is at {config.context_window_percent}% capacity. "
                "Be concise in your responses and tool usage to avoid running out of context."
            )

        if config.needs_summarization:
            parts.append(
                "Before continuing, summarize your progress so far in a few sentences. "
                "This will help manage context window usage for the remaining work."
            )

        if config.original_task_summary:
            parts.append(f"Reminder: your original task is: {config.original_task_summary}")

        return "\n\n".join(parts) if parts else None

    def is_budget_exhausted(self, turn: int, elapsed_ms: float, total_tool_calls: int) -> bool:
        return (
            turn >= self.max_turns
            or elapsed_ms >= self.max_wall_clock_ms
            or total_tool_calls >= self.max_tool_calls
        )
