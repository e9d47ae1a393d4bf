"""
Unit tests for harness budgeting and turn instructions.
"""

import json
from unittest.mock import AsyncMock

import pytest

from graphlit.agent.types import TurnResult
from graphlit.helpers.turn_evaluator import (
    CLASSIFICATION_PROMPT,
    CLASSIFICATION_TOOL,
    BudgetConfig,
    TurnEvaluator,
    TurnInstructionConfig,
)
from graphlit.streaming.events import ContextWindowUsage


@pytest.fixture
def evaluator():
    return TurnEvaluator(BudgetConfig(
        max_turns=10,
        max_wall_clock_ms=1000,
        max_tool_calls=7,
        wind_down_turns=2,
        initial_prompt="Research competitors",
    ))


def turn(n, tool_count=1, errors=()):
    return TurnResult(
        turn_number=n,
        prompt="Continue",
        response_text=f"Turn {n}",
        tool_calls=["search"] * tool_count,
        tool_call_count=tool_count,
        errors=list(errors),
    )


class TestClassifyComplexity:
    """Tests for adaptive budget classification."""

    @pytest.mark.asyncio
    async def test_multiplier_is_clamped(self, evaluator):
        extract = AsyncMock(return_value=[{"value": json.dumps({"multiplier": 5, "reason": "Huge scope"})}])

        multiplier, reason = await evaluator.classify_complexity("Compare every vendor", extract)

        assert multiplier == 3.0
        assert reason == "Huge scope"
        extract.assert_awaited_once_with(CLASSIFICATION_PROMPT, "Compare every vendor", [CLASSIFICATION_TOOL])

    @pytest.mark.asyncio
    async def test_low_multiplier_is_raised(self, evaluator):
        extract = AsyncMock(return_value=[{"value": json.dumps({"multiplier": 0.2, "reason": "Tiny"})}])

        multiplier, _ = await evaluator.classify_complexity("Hi", extract)

        assert multiplier == 1.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("extract", [
        AsyncMock(side_effect=RuntimeError("extraction failed")),
        AsyncMock(return_value=[]),
        AsyncMock(return_value=[{"value": "not json"}]),
    ])
    async def test_failure_uses_default(self, evaluator, extract):
        """Test classification failures fall back to 1x."""
        assert await evaluator.classify_complexity("Anything", extract) == (
            1.0,
            "Default (classification unavailable)",
        )

    def test_adjust_budget(self, evaluator):
        evaluator.adjust_budget(1.5)

        assert evaluator.max_turns == 15
        assert evaluator.max_wall_clock_ms == 1500
        assert evaluator.max_tool_calls == 11


class TestWindDown:
    """Tests for wind-down and budget exhaustion."""

    def test_turn_threshold(self, evaluator):
        assert not evaluator.should_wind_down(7, 0, 0)
        assert evaluator.should_wind_down(8, 0, 0)

    def test_wall_clock_threshold(self, evaluator):
        assert evaluator.should_wind_down(1, 801, 0)

    def test_context_window_threshold(self, evaluator):
        usage = ContextWindowUsage(used_tokens=91, max_tokens=100, percentage=91, remaining_tokens=9)

        assert evaluator.should_wind_down(1, 0, 0, usage)

    def test_tool_call_threshold(self, evaluator):
        assert not evaluator.should_wind_down(1, 0, 6)
        assert evaluator.should_wind_down(1, 0, 7)

    def test_is_budget_exhausted(self, evaluator):
        assert not evaluator.is_budget_exhausted(9, 999, 6)
        assert evaluator.is_budget_exhausted(10, 0, 0)
        assert evaluator.is_budget_exhausted(1, 1000, 0)
        assert evaluator.is_budget_exhausted(1, 0, 7)


class TestExtension:
    """Tests for the one-time budget extension."""

    def test_granted_once(self, evaluator):
        """Test a productive run gets wind_down_turns * 2 more turns, once."""
        turns = [turn(n) for n in range(3)]

        assert evaluator.should_grant_extension(turns, 40) == (True, 4)
        assert evaluator.max_turns == 14
        assert evaluator.should_grant_extension(turns, 40) == (False, 0)

    def test_needs_three_turns(self, evaluator):
        assert evaluator.should_grant_extension([turn(0), turn(1)]) == (False, 0)

    def test_context_too_full(self, evaluator):
        assert evaluator.should_grant_extension([turn(n) for n in range(3)], 60) == (False, 0)

    def test_failing_turn(self, evaluator):
        turns = [turn(0), turn(1), turn(2, errors=["boom"])]

        assert evaluator.should_grant_extension(turns) == (False, 0)

    def test_no_tool_use(self, evaluator):
        assert evaluator.should_grant_extension([turn(n, tool_count=0) for n in range(3)]) == (False, 0)


class TestTurnInstructions:
    """Tests for per-turn instructions."""

    def test_plain_continuation(self, evaluator):
        config = TurnInstructionConfig(turn_number=2, turns_remaining=8, is_winding_down=False)

        assert evaluator.build_turn_instructions(config) is None

    def test_stuck_and_winding_down(self, evaluator):
        """Test sections are joined in order."""
        config = TurnInstructionConfig(
            turn_number=8,
            turns_remaining=2,
            is_winding_down=True,
            stuck_pattern="repeating_tool_calls",
        )

        instructions = evaluator.build_turn_instructions(config)

        stuck, wind_down = instructions.split("\n\n")
        assert stuck.startswith("You appear to be calling the same tools repeatedly")
        assert "2 turn(s) remaining" in wind_down

    def test_context_and_reminder(self, evaluator):
        config = TurnInstructionConfig(
            turn_number=4,
            turns_remaining=6,
            is_winding_down=False,
            context_window_percent=90,
            original_task_summary="Research competitors",
            needs_summarization=True,
        )

        instructions = evaluator.build_turn_instructions(config)

        assert "Context window is at 90% capacity" in instructions
        assert "summarize your progress" in instructions
        assert instructions.endswith("Reminder: your original task is: Research competitors")
