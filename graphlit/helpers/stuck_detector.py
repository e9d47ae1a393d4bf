"""
Stuck Detection

Watches harness turns for loops: the same tools called over and over,
near-identical responses, turns where every tool failed, or turns that
do nothing. The first hit of a pattern asks for an intervention; the
second ends the run.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Set

from graphlit.models import BaseModel

if TYPE_CHECKING:
    from graphlit.agent.types import TurnResult

STUCK_WINDOW = 5
REPEAT_THRESHOLD = 3
SIMILARITY_THRESHOLD = 0.9
CONSECUTIVE_ERROR_THRESHOLD = 3
CONSECUTIVE_EMPTY_THRESHOLD = 2

_WHITESPACE = re.compile(r"\s+")


@dataclass
class StuckEvaluation(BaseModel):
    """
    Result of evaluating one turn.

    ``stuck`` is only True on the second strike of a pattern; the first
    strike sets ``pattern`` with ``first_occurrence`` True.
    """
    stuck: bool = False
    pattern: Optional[str] = None
    first_occurrence: bool = False


def _trigrams(text: str) -> Set[str]:
    return {text[i:i + 3] for i in range(len(text) - 2)}


def trigram_similarity(a: str, b: str) -> float:
    """Jaccard similarity of character trigrams, 0.0 to 1.0."""
    if a == b:
        return 1.0
    if len(a) < 3 or len(b) < 3:
        return 0.0
    set_a, set_b = _trigrams(a), _trigrams(b)
    intersection = len(set_a & set_b)
    union = len(set_a) + len(set_b) - intersection
    return intersection / union if union else 0.0


def normalize_response(text: str) -> str:
    return _WHITESPACE.sub(" ", (text or "").lower()).strip()[:500]


class StuckDetector:
    """Stateful two-strike loop detector for harness turns."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._tool_history: List[List[str]] = []
        self._response_history: List[str] = []
        self._error_history: List[bool] = []
        self._empty_turns = 0
        self._interventions: Set[str] = set()

    def initialize_from_history(self, turns: List["TurnResult"]) -> None:
        """Replay earlier turns, e.g. when resuming a run."""
        self.reset()
        for turn in turns:
            self.evaluate(turn)

    def evaluate(self, turn: "TurnResult") -> StuckEvaluation:
        """
        Record a finished turn and check for loops.

        Patterns are checked in order: repeating tool calls, repeating
        responses, error loop, empty turns.
        """
        tools = sorted(turn.tool_calls)
        self._tool_history.append(tools)
        self._response_history.append(normalize_response(turn.response_text))
        self._error_history.append(
            turn.tool_call_count > 0 and len(turn.errors or []) >= turn.tool_call_count
        )
        if turn.tool_call_count == 0 and not turn.task_complete:
            self._empty_turns += 1
        else:
            self._empty_turns = 0

        recent_tools = self._tool_history[-STUCK_WINDOW:]
        if tools and len(recent_tools) >= REPEAT_THRESHOLD:
            if sum(1 for past in recent_tools if past == tools) >= REPEAT_THRESHOLD:
                return self._strike("repeating_tool_calls")

        recent_responses = self._response_history[-STUCK_WINDOW:]
        current = recent_responses[-1]
        if current and len(recent_responses) >= REPEAT_THRESHOLD:
            similar = sum(
                1 for past in recent_responses if trigram_similarity(past, current) >= SIMILARITY_THRESHOLD
            )
            if similar >= REPEAT_THRESHOLD:
                return self._strike("repeating_responses")

        recent_errors = self._error_history[-CONSECUTIVE_ERROR_THRESHOLD:]
        if len(recent_errors) >= CONSECUTIVE_ERROR_THRESHOLD and all(recent_errors):
            return self._strike("error_loop")

        if self._empty_turns >= CONSECUTIVE_EMPTY_THRESHOLD:
            return self._strike("empty_turns")

        return StuckEvaluation()

    def _strike(self, pattern: str) -> StuckEvaluation:
        if pattern in self._interventions:
            return StuckEvaluation(stuck=True, pattern=pattern, first_occurrence=False)
        self._interventions.add(pattern)
        return StuckEvaluation(stuck=False, pattern=pattern, first_occurrence=True)
