"""
Unit tests for context window management.
"""

import json

import pytest

from graphlit.helpers.context_management import (
    TokenBudgetTracker,
    count_tool_rounds,
    estimate_tokens,
    is_accurate_token_counting,
    set_token_encoder,
    truncate_tool_result,
    window_tool_rounds,
)
from graphlit.models import ConversationMessage, ConversationRoleTypes, ConversationToolCall


@pytest.fixture(autouse=True)
def heuristic_tokens():
    """Every test starts and ends with the character heuristic."""
    set_token_encoder(None)
    yield
    set_token_encoder(None)


def tool_round(n):
    return [
        ConversationMessage(
            role=ConversationRoleTypes.ASSISTANT,
            message=f"Round {n}",
            tool_calls=[ConversationToolCall(id=f"c{n}", name="search", arguments="{}")],
        ),
        ConversationMessage(role=ConversationRoleTypes.TOOL, message=f"result {n}", tool_call_id=f"c{n}"),
    ]


@pytest.fixture
def three_rounds():
    header = [
        ConversationMessage(role=ConversationRoleTypes.SYSTEM, message="Be brief."),
        ConversationMessage(role=ConversationRoleTypes.USER, message="Research this."),
    ]
    return header + tool_round(1) + tool_round(2) + tool_round(3)


class TestEstimateTokens:
    """Tests for token estimation."""

    def test_heuristic(self):
        """Test the chars / 3.5 heuristic rounds up."""
        assert estimate_tokens("abcdefg") == 2
        assert estimate_tokens("abcdefgh") == 3
        assert estimate_tokens("") == 0
        assert estimate_tokens(None) == 0
        assert not is_accurate_token_counting()

    def test_custom_encoder(self):
        """Test an installed encoder replaces the heuristic."""
        set_token_encoder(lambda text: len(text.split()))

        assert estimate_tokens("one two three") == 3
        assert is_accurate_token_counting()


class TestTokenBudgetTracker:
    """Tests for TokenBudgetTracker."""

    def test_from_details(self):
        """Test seeding from formatConversation details."""
        tracker = TokenBudgetTracker.from_details({
            "tokenLimit": 10000,
            "completionTokenLimit": 1000,
            "messages": [{"tokens": 100}, {"tokens": 50}, None],
        })

        assert tracker.used_tokens == 150
        assert tracker.budget == 8550
        assert tracker.remaining == 8400
        assert tracker.usage_percent == 2

    def test_from_details_defaults(self):
        """Test a missing completion limit falls back to 4096."""
        tracker = TokenBudgetTracker.from_details({"tokenLimit": 128000})

        assert tracker.completion_token_limit == 4096
        assert tracker.used_tokens == 0

    def test_no_token_limit(self):
        assert TokenBudgetTracker.from_details(None) is None
        assert TokenBudgetTracker.from_details({"messages": []}) is None

    def test_add_message(self):
        tracker = TokenBudgetTracker(10000, 1000)

        tracker.add_message("abcdefg")
        tracker.add_message("ignored", server_token_count=10)

        assert tracker.used_tokens == 12

    def test_needs_rebudget(self):
        """Test the rebudget threshold is a fraction of the budget."""
        tracker = TokenBudgetTracker(1000, 0, used_tokens=800)

        assert tracker.usage_percent == 84
        assert tracker.needs_rebudget(0.75)
        assert not tracker.needs_rebudget(0.9)

    def test_usage_snapshot(self):
        tracker = TokenBudgetTracker(1000, 0, used_tokens=95)

        snapshot = tracker.usage_snapshot()

        assert snapshot.used_tokens == 95
        assert snapshot.max_tokens == 1000
        assert snapshot.percentage == 10
        assert snapshot.remaining_tokens == 855

    def test_reset_from_messages(self):
        """Test server token counts win over estimates."""
        tracker = TokenBudgetTracker(1000, 0, used_tokens=500)

        tracker.reset_from_messages([
            ConversationMessage(role=ConversationRoleTypes.USER, message="abcdefg", tokens=40),
            ConversationMessage(role=ConversationRoleTypes.ASSISTANT, message="abcdefg"),
        ])

        assert tracker.used_tokens == 42


class TestTruncateToolResult:
    """Tests for tool result truncation."""

    def test_small_result_unchanged(self):
        assert truncate_tool_result("short", 100, "search") == "short"

    def test_dict_result_is_serialized(self):
        assert truncate_tool_result({"hits": 3}, 100, "search") == '{"hits": 3}'

    def test_text_cut_at_newline(self):
        """Test plain text is cut at the last newline and marked."""
        text = "line\n" * 100

        result = truncate_tool_result(text, 20, "search")

        body, marker = result.split("\n\n[")
        assert body == "line\n" * 13 + "line"
        assert marker == "truncated by search: original ~143 tokens, showing first ~20 tokens]"

    def test_json_cut_at_element(self):
        """Test JSON is cut after the last complete element."""
        data = [{"id": i, "name": "item"} for i in range(50)]

        result = truncate_tool_result(data, 30, "list_items")

        body = result.split("\n\n[truncated by list_items")[0]
        assert body.startswith('[{"id": 0')
        assert body.endswith("}")
        assert len(body) < len(json.dumps(data))


class TestWindowToolRounds:
    """Tests for tool round windowing."""

    def test_count_tool_rounds(self, three_rounds):
        assert count_tool_rounds(three_rounds) == 3
        assert count_tool_rounds(three_rounds[:2]) == 0

    def test_keeps_header_and_latest_rounds(self, three_rounds):
        """Test old rounds are replaced by a system note."""
        windowed = window_tool_rounds(three_rounds, 1)

        assert [m.message for m in windowed[:2]] == ["Be brief.", "Research this."]
        note = windowed[2]
        assert note.role == ConversationRoleTypes.SYSTEM
        assert note.message.startswith("[Context management: 2 earlier tool calling round(s)")
        assert [m.message for m in windowed[3:]] == ["Round 3", "result 3"]

    def test_under_limit_is_unchanged(self, three_rounds):
        assert window_tool_rounds(three_rounds, 5) is three_rounds

    def test_keep_zero_rounds(self, three_rounds):
        windowed = window_tool_rounds(three_rounds, 0)

        assert len(windowed) == 3
        assert "3 earlier tool calling round(s)" in windowed[-1].message
