"""
Unit tests for harness stuck detection.
"""

import pytest

from graphlit.agent.types import TurnResult
from graphlit.helpers.stuck_detector import StuckDetector, normalize_response, trigram_similarity

RESPONSES = [
    "Looking up the quarterly revenue numbers.",
    "Comparing regional sales across Europe.",
    "Summarizing customer churn for last year.",
    "Drafting a memo about hiring plans.",
    "Checking inventory levels in warehouses.",
]


def turn(n, tools=(), response=None, errors=(), complete=False):
    return TurnResult(
        turn_number=n,
        prompt="Continue",
        response_text=RESPONSES[n % len(RESPONSES)] if response is None else response,
        tool_calls=sorted(tools),
        tool_call_count=len(tools),
        errors=list(errors),
        task_complete=complete,
    )


@pytest.fixture
def detector():
    return StuckDetector()


class TestTrigramSimilarity:
    """Tests for response similarity."""

    def test_identical(self):
        assert trigram_similarity("same", "same") == 1.0

    def test_short_strings(self):
        assert trigram_similarity("ab", "abc") == 0.0

    def test_partial_overlap(self):
        assert trigram_similarity("abcdef", "abcxyz") == pytest.approx(1 / 7)

    def test_normalize_response(self):
        assert normalize_response("  Hello\n\n  WORLD ") == "hello world"
        assert len(normalize_response("x" * 800)) == 500


class TestStuckDetector:
    """Tests for StuckDetector."""

    def test_progressing_run(self, detector):
        """Test varied turns never strike."""
        for n, tools in enumerate((["search"], ["fetch"], ["search", "fetch"], ["summarize"])):
            result = detector.evaluate(turn(n, tools))
            assert result.pattern is None
            assert not result.stuck

    def test_repeating_tool_calls_two_strikes(self, detector):
        """Test the first strike intervenes and the second is stuck."""
        results = [detector.evaluate(turn(n, ["search"])) for n in range(4)]

        assert results[1].pattern is None
        assert results[2].pattern == "repeating_tool_calls"
        assert results[2].first_occurrence
        assert not results[2].stuck
        assert results[3].stuck
        assert not results[3].first_occurrence

    def test_repeating_responses(self, detector):
        """Test near-identical responses with different tools."""
        for n, tools in enumerate((["a"], ["b"])):
            detector.evaluate(turn(n, tools, response="I will check the data now."))

        result = detector.evaluate(turn(2, ["c"], response="I will check the  data now!"))

        assert result.pattern == "repeating_responses"

    def test_error_loop(self, detector):
        """Test three turns where every tool call failed."""
        results = [
            detector.evaluate(turn(n, [name], errors=["timeout"]))
            for n, name in enumerate(("search", "fetch", "lookup"))
        ]

        assert results[-1].pattern == "error_loop"

    def test_partial_failures_are_not_an_error_loop(self, detector):
        results = [
            detector.evaluate(turn(n, [name, "other"], errors=["timeout"]))
            for n, name in enumerate(("search", "fetch", "lookup"))
        ]

        assert results[-1].pattern is None

    def test_empty_turns(self, detector):
        """Test two turns in a row without tools or completion."""
        assert detector.evaluate(turn(0)).pattern is None

        assert detector.evaluate(turn(1)).pattern == "empty_turns"

    def test_tool_use_resets_empty_count(self, detector):
        detector.evaluate(turn(0))
        detector.evaluate(turn(1, ["search"]))

        assert detector.evaluate(turn(2)).pattern is None

    def test_initialize_from_history(self, detector):
        """Test replayed turns count toward strikes."""
        detector.initialize_from_history([turn(n, ["search"]) for n in range(3)])

        assert detector.evaluate(turn(3, ["search"])).stuck

    def test_reset(self, detector):
        for n in range(3):
            detector.evaluate(turn(n, ["search"]))

        detector.reset()

        assert detector.evaluate(turn(0, ["search"])).pattern is None
