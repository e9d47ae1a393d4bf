"""
Agent Harness

Runs ``stream_agent`` turn after turn until the model calls the built-in
``task_complete`` tool, a budget runs out, the run gets stuck in a loop
or it is cancelled.

Each turn the :class:`~graphlit.helpers.turn_evaluator.TurnEvaluator`
decides what to tell the model (wind down, change approach, be concise)
and the :class:`~graphlit.helpers.stuck_detector.StuckDetector` checks
the finished turn for loops.
"""

from __future__ import annotations

import inspect
import json
import logging
import time
import uuid
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from graphlit.agent.streaming import run_stream_agent
from graphlit.agent.types import (
    BudgetSnapshot,
    HarnessStatus,
    QualityAssessment,
    RunAgentOptions,
    RunAgentResult,
    StreamAgentOptions,
    TurnResult,
)
from graphlit.exceptions import AgentAbortedError, GraphlitError
from graphlit.helpers.stuck_detector import StuckDetector
from graphlit.helpers.turn_evaluator import BudgetConfig, TurnEvaluator, TurnInstructionConfig
from graphlit.resources.base import entity_reference, entity_references
from graphlit.streaming.events import ContextWindowUsage

if TYPE_CHECKING:
    from graphlit.client import AsyncGraphlit

logger = logging.getLogger("graphlit.agent")

TASK_COMPLETE = "task_complete"

TASK_COMPLETE_TOOL = {
    "name": TASK_COMPLETE,
    "description": (
        "Call this when the task is finished, or when it cannot be completed with the "
        "available tools. Summarize what was accomplished."
    ),
    "schema": json.dumps({
        "type": "object",
        "properties": {
            "summary": {
                "type": "string",
                "description": "Summary of what was accomplished and anything left undone.",
            },
        },
        "required": ["summary"],
    }),
}

TASK_COMPLETE_INSTRUCTION = (
    "Work on the task step by step using the available tools. "
    "When the task is finished, give your final answer and call task_complete."
)

CONTINUE_PROMPT = "Continue working on the task."

# Restate the original task every N turns
TASK_REMINDER_INTERVAL = 5
SUMMARIZATION_THRESHOLD = 75

QUALITY_TOOL = {
    "name": "assess_quality",
    "description": "Score how well an agent completed a task.",
    "schema": json.dumps({
        "type": "object",
        "properties": {
            "completeness": {"type": "number", "minimum": 0, "maximum": 10},
            "quality": {"type": "number", "minimum": 0, "maximum": 10},
            "efficiency": {"type": "number", "minimum": 0, "maximum": 10},
            "overall": {"type": "number", "minimum": 0, "maximum": 10},
            "issues": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["completeness", "quality", "efficiency", "overall"],
    }),
}

QUALITY_PROMPT = (
    "You are reviewing the work of an AI agent. Score the final response from 0 to 10 for "
    "completeness (did it address the whole task), quality (accuracy and clarity) and "
    "efficiency (turns and tool calls used), give an overall score, and list any issues. "
    "Call the assess_quality tool with your assessment."
)


async def _notify(callback: Optional[Callable[[Any], Any]], payload: Any) -> None:
    if callback is None:
        return
    result = callback(payload)
    if inspect.isawaitable(result):
        await result


class _TaskCompletion:
    """Handler state for the built-in ``task_complete`` tool."""

    def __init__(self) -> None:
        self.called = False
        self.summary: Optional[str] = None

    def __call__(self, args: Dict[str, Any]) -> str:
        self.called = True
        self.summary = (args or {}).get("summary")
        return "Task marked as complete."


class _Harness:
    def __init__(self, client: "AsyncGraphlit", prompt: str, options: RunAgentOptions):
        self.client = client
        self.prompt = prompt
        self.options = options
        self.agent_id = str(uuid.uuid4())
        self.started = time.monotonic()

        self.evaluator = TurnEvaluator(
            BudgetConfig(
                max_turns=options.max_turns,
                max_wall_clock_ms=options.max_wall_clock_ms,
                max_tool_calls=options.max_tool_calls,
                wind_down_turns=options.wind_down_turns,
                initial_prompt=prompt,
            )
        )
        self.detector = StuckDetector()
        self.completion = _TaskCompletion()

        self.tools: List[Dict[str, Any]] = list(options.tools or []) + [TASK_COMPLETE_TOOL]
        self.tool_handlers = dict(options.tool_handlers or {})
        self.tool_handlers[TASK_COMPLETE] = self.completion

        self.conversation_id = options.conversation_id
        self.turn_results: List[TurnResult] = []
        self.total_tool_calls = 0
        self.final_message = ""
        self.context_window: Optional[ContextWindowUsage] = None

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started) * 1000

    @property
    def specification_id(self) -> Optional[str]:
        return (self.options.specification or {}).get("id")

    def _aborted(self) -> bool:
        return self.options.abort_event is not None and self.options.abort_event.is_set()

    async def _extract(self, prompt: str, text: str, tools: List[Dict[str, Any]], specification_id: Optional[str] = None) -> Any:
        return await self.client.contents.extract_text(
            prompt,
            text,
            tools,
            specification_id=specification_id or self.specification_id,
            correlation_id=self.options.correlation_id,
        )

    # =========================================================================
    # Setup
    # =========================================================================

    async def prepare(self) -> None:
        if self.options.adaptive_budget:
            multiplier, reason = await self.evaluator.classify_complexity(self.prompt, self._extract)
            self.evaluator.adjust_budget(multiplier)
            logger.info(
                f"Agent {self.agent_id[:8]} budget x{multiplier:.1f} ({reason}): "
                f"{self.evaluator.max_turns} turns, {self.evaluator.max_tool_calls} tool calls"
            )

        if not self.conversation_id:
            fallbacks = [f["id"] for f in self.options.fallbacks or [] if f.get("id")]
            created = await self.client.conversations.create(
                {
                    "name": f"Agent {self.agent_id[:8]}",
                    "specification": entity_reference(self.specification_id),
                    "tools": self.tools,
                    "augmentedFilter": self.options.augmented_filter,
                    "fallbacks": entity_references(fallbacks) if fallbacks else None,
                },
                correlation_id=self.options.correlation_id,
            )
            self.conversation_id = (created or {}).get("id")
            if not self.conversation_id:
                raise GraphlitError("Failed to create conversation")

    # =========================================================================
    # Turns
    # =========================================================================

    def snapshot(self, turn: int) -> BudgetSnapshot:
        elapsed = self.elapsed_ms
        return BudgetSnapshot(
            turns_used=turn,
            turns_remaining=max(0, self.evaluator.max_turns - turn),
            tool_calls_used=self.total_tool_calls,
            tool_calls_remaining=max(0, self.evaluator.max_tool_calls - self.total_tool_calls),
            wall_clock_ms=elapsed,
            wall_clock_ms_remaining=max(0.0, self.evaluator.max_wall_clock_ms - elapsed),
            context_window_percent=self.context_window.percentage if self.context_window else None,
        )

    def instructions(self, turn: int, winding_down: bool, stuck_pattern: Optional[str]) -> str:
        percent = self.context_window.percentage if self.context_window else None
        extra = self.evaluator.build_turn_instructions(
            TurnInstructionConfig(
                turn_number=turn,
                turns_remaining=max(0, self.evaluator.max_turns - turn),
                is_winding_down=winding_down,
                stuck_pattern=stuck_pattern,
                context_window_percent=percent,
                original_task_summary=(
                    self.prompt[:500] if turn > 1 and turn % TASK_REMINDER_INTERVAL == 0 else None
                ),
                needs_summarization=bool(
                    any(t.context_actions for t in self.turn_results[-1:])
                    or (percent is not None and percent > SUMMARIZATION_THRESHOLD and not winding_down)
                ),
            )
        )
        return f"{TASK_COMPLETE_INSTRUCTION}\n\n{extra}" if extra else TASK_COMPLETE_INSTRUCTION

    async def run_turn(self, turn: int, winding_down: bool, stuck_pattern: Optional[str]) -> TurnResult:
        turn_prompt = self.prompt if turn == 1 else CONTINUE_PROMPT
        self.completion.called = False
        started = time.monotonic()

        loop = await run_stream_agent(
            self.client,
            turn_prompt,
            self.options.on_stream_event or (lambda event: None),
            conversation_id=self.conversation_id,
            specification=self.options.specification,
            tools=self.tools,
            tool_handlers=self.tool_handlers,
            options=StreamAgentOptions(
                max_tool_rounds=max(1, self.evaluator.max_tool_calls - self.total_tool_calls),
                abort_event=self.options.abort_event,
                smoothing_enabled=self.options.smoothing_enabled,
                chunking_strategy=self.options.chunking_strategy,
                smoothing_delay=self.options.smoothing_delay,
                context_strategy=self.options.context_strategy,
                instructions=self.instructions(turn, winding_down, stuck_pattern),
            ),
            correlation_id=self.options.correlation_id,
        )

        self.total_tool_calls += loop.tool_call_count
        if loop.context_window is not None:
            self.context_window = loop.context_window
        if loop.full_message:
            self.final_message = loop.full_message

        return TurnResult(
            turn_number=turn,
            prompt=turn_prompt,
            response_text=loop.full_message,
            tool_calls=sorted(loop.tool_call_names),
            tool_call_count=loop.tool_call_count,
            duration_ms=(time.monotonic() - started) * 1000,
            task_complete=self.completion.called,
            context_window_usage=loop.context_window,
            context_actions=loop.context_actions,
            errors=loop.errors,
        )

    async def run(self) -> RunAgentResult:
        status: Optional[HarnessStatus] = None
        error: Optional[str] = None
        stuck_pattern: Optional[str] = None
        intervention: Optional[str] = None
        turn = 0

        try:
            await self.prepare()

            while status is None:
                if self._aborted():
                    status = HarnessStatus.CANCELLED
                    break

                if self.evaluator.is_budget_exhausted(turn, self.elapsed_ms, self.total_tool_calls):
                    percent = self.context_window.percentage if self.context_window else None
                    granted, extra = self.evaluator.should_grant_extension(self.turn_results, percent)
                    if granted:
                        logger.info(f"Agent {self.agent_id[:8]} granted {extra} extra turn(s)")
                    if not self.evaluator.is_budget_exhausted(turn, self.elapsed_ms, self.total_tool_calls):
                        continue
                    status = HarnessStatus.BUDGET_EXHAUSTED
                    break

                turn += 1
                winding_down = self.evaluator.should_wind_down(
                    turn, self.elapsed_ms, self.total_tool_calls, self.context_window
                )
                if winding_down:
                    await _notify(self.options.on_budget_warning, self.snapshot(turn - 1))

                result = await self.run_turn(turn, winding_down, intervention)
                intervention = None
                self.turn_results.append(result)
                logger.debug(
                    f"Agent {self.agent_id[:8]} turn {turn}: {result.tool_call_count} tool call(s), "
                    f"{len(result.errors)} error(s), {result.duration_ms:.0f}ms"
                )
                await _notify(self.options.on_turn_complete, result)

                if result.task_complete:
                    status = HarnessStatus.COMPLETED
                    break

                evaluation = self.detector.evaluate(result)
                if evaluation.stuck:
                    status = HarnessStatus.STUCK
                    stuck_pattern = evaluation.pattern
                    logger.warning(f"Agent {self.agent_id[:8]} stuck: {stuck_pattern}")
                elif evaluation.first_occurrence:
                    intervention = evaluation.pattern
                    logger.info(f"Agent {self.agent_id[:8]} intervention: {intervention}")
        except AgentAbortedError:
            status = HarnessStatus.CANCELLED
        except Exception as e:
            status = HarnessStatus.ERROR
            error = e.message if isinstance(e, GraphlitError) else str(e)
            logger.error(f"Agent {self.agent_id[:8]} failed: {error}")

        quality = None
        if self.options.quality_assessment and self.final_message and status != HarnessStatus.CANCELLED:
            quality = await self.assess_quality(turn)

        return RunAgentResult(
            agent_id=self.agent_id,
            conversation_id=self.conversation_id or "",
            status=status,
            final_message=self.final_message,
            task_complete_summary=self.completion.summary,
            turns=turn,
            total_tool_calls=self.total_tool_calls,
            wall_clock_ms=self.elapsed_ms,
            context_window_at_end=self.context_window,
            turn_results=self.turn_results,
            error=error,
            stuck_pattern=stuck_pattern,
            quality_assessment=quality,
        )

    # =========================================================================
    # Quality
    # =========================================================================

    async def assess_quality(self, turns: int) -> Optional[QualityAssessment]:
        text = (
            f"Task:\n{self.prompt}\n\n"
            f"Final response:\n{self.final_message}\n\n"
            f"Turns used: {turns}\nTool calls: {self.total_tool_calls}"
        )
        spec = self.options.quality_assessment_specification or {}
        try:
            results = await self._extract(QUALITY_PROMPT, text, [QUALITY_TOOL], spec.get("id"))
            value = (results[0] or {}).get("value") if results else None
            if not value:
                return None
            return QualityAssessment.from_dict(json.loads(value))
        except (GraphlitError, ValueError, TypeError) as e:
            logger.warning(f"Quality assessment failed: {e}")
            return None


async def run_agent(client: "AsyncGraphlit", prompt: str, options: RunAgentOptions) -> RunAgentResult:
    """
    Run a multi-turn agent until it completes the task or is stopped.

    Args:
        client: Async Graphlit client
        prompt: The task
        options: Specification, tools, budgets and callbacks

    Returns:
        RunAgentResult. Failures do not raise; ``status`` is ``error``.
    """
    return await _Harness(client, prompt, options).run()


__all__ = ["RunAgentOptions", "RunAgentResult", "run_agent", "TASK_COMPLETE_TOOL"]
