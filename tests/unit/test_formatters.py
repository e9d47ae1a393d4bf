"""
Unit tests for provider message formatters.
"""

import base64

import pytest

from graphlit.models import ConversationMessage, ConversationRoleTypes, ConversationToolCall
from graphlit.streaming.formatters import (
    format_messages_for_anthropic,
    format_messages_for_bedrock,
    format_messages_for_cohere,
    format_messages_for_google,
    format_messages_for_mistral,
    format_messages_for_openai,
)

IMAGE_DATA = base64.b64encode(b"\x89PNG fake").decode()


@pytest.fixture
def tool_round():
    """System, user, assistant tool call and two tool results."""
    return [
        ConversationMessage(role=ConversationRoleTypes.SYSTEM, message="Be brief."),
        ConversationMessage(role=ConversationRoleTypes.USER, message="  Weather in Paris?  "),
        ConversationMessage(
            role=ConversationRoleTypes.ASSISTANT,
            message="Checking.",
            tool_calls=[
                ConversationToolCall(id="c1", name="weather", arguments='{"city": "Paris"}'),
                ConversationToolCall(id="c2", name="time", arguments=""),
            ],
        ),
        ConversationMessage(role=ConversationRoleTypes.TOOL, message="18C", tool_call_id="c1"),
        ConversationMessage(role=ConversationRoleTypes.TOOL, message="14:00", tool_call_id="c2"),
    ]


@pytest.fixture
def image_message():
    return ConversationMessage(
        role=ConversationRoleTypes.USER,
        message="What is this?",
        mime_type="image/png",
        data=IMAGE_DATA,
    )


class TestCommon:
    """Tests for filtering shared by every formatter."""

    @pytest.mark.parametrize("formatter", [
        format_messages_for_openai,
        format_messages_for_cohere,
        format_messages_for_mistral,
        format_messages_for_google,
    ])
    def test_skips_empty_messages(self, formatter):
        """Test messages without a role or content are dropped."""
        formatted = formatter([
            {"role": None, "message": "orphan"},
            {"role": "USER", "message": "   "},
            {"role": "USER", "message": "kept"},
        ])

        assert len(formatted) == 1


class TestOpenAI:
    """Tests for the OpenAI formatter."""

    def test_tool_round(self, tool_round):
        formatted = format_messages_for_openai(tool_round)

        assert formatted[0] == {"role": "system", "content": "Be brief."}
        assert formatted[1] == {"role": "user", "content": "Weather in Paris?"}
        assert formatted[2]["content"] == "Checking."
        assert formatted[2]["tool_calls"][0] == {
            "id": "c1",
            "type": "function",
            "function": {"name": "weather", "arguments": '{"city": "Paris"}'},
        }
        assert formatted[3] == {"role": "tool", "content": "18C", "tool_call_id": "c1"}

    def test_assistant_without_text(self):
        """Test an assistant tool call message has no content key."""
        formatted = format_messages_for_openai([
            ConversationMessage(
                role=ConversationRoleTypes.ASSISTANT,
                tool_calls=[ConversationToolCall(id="c1", name="search")],
            )
        ])

        assert "content" not in formatted[0]

    def test_image(self, image_message):
        formatted = format_messages_for_openai([image_message])

        parts = formatted[0]["content"]
        assert parts[0] == {"type": "text", "text": "What is this?"}
        assert parts[1]["image_url"]["url"] == f"data:image/png;base64,{IMAGE_DATA}"


class TestAnthropic:
    """Tests for the Anthropic formatter."""

    def test_tool_round(self, tool_round):
        system, formatted = format_messages_for_anthropic(tool_round)

        assert system == "Be brief."
        assert formatted[0] == {"role": "user", "content": "Weather in Paris?"}
        assistant = formatted[1]["content"]
        assert assistant[0] == {"type": "text", "text": "Checking."}
        assert assistant[1] == {"type": "tool_use", "id": "c1", "name": "weather", "input": {"city": "Paris"}}
        assert assistant[2]["input"] == {}

    def test_consecutive_tool_results_are_merged(self, tool_round):
        """Test tool results share one user message."""
        _, formatted = format_messages_for_anthropic(tool_round)

        assert len(formatted) == 3
        results = formatted[2]["content"]
        assert [r["tool_use_id"] for r in results] == ["c1", "c2"]
        assert all(r["type"] == "tool_result" for r in results)

    def test_thinking_block_is_restored(self):
        """Test a leading thinking tag becomes a thinking content block."""
        _, formatted = format_messages_for_anthropic([
            ConversationMessage(
                role=ConversationRoleTypes.ASSISTANT,
                message='<thinking signature="sig-abc">Need the weather.</thinking>\nIt is sunny.',
            )
        ])

        content = formatted[0]["content"]
        assert content[0] == {"type": "thinking", "thinking": "Need the weather.", "signature": "sig-abc"}
        assert content[1] == {"type": "text", "text": "It is sunny."}

    def test_invalid_arguments_become_empty_input(self):
        _, formatted = format_messages_for_anthropic([
            ConversationMessage(
                role=ConversationRoleTypes.ASSISTANT,
                tool_calls=[ConversationToolCall(id="c1", name="search", arguments="{oops")],
            )
        ])

        assert formatted[0]["content"][0]["input"] == {}

    def test_image(self, image_message):
        _, formatted = format_messages_for_anthropic([image_message])

        image = formatted[0]["content"][1]
        assert image["source"] == {"type": "base64", "media_type": "image/png", "data": IMAGE_DATA}


class TestGoogle:
    """Tests for the Google formatter."""

    def test_roles(self, tool_round):
        formatted = format_messages_for_google(tool_round[:3])

        assert [m["role"] for m in formatted] == ["user", "user", "model"]
        assert formatted[2]["parts"][1] == {"function_call": {"name": "weather", "args": {"city": "Paris"}}}

    def test_image_only_message_is_kept(self):
        formatted = format_messages_for_google([
            ConversationMessage(role=ConversationRoleTypes.USER, mime_type="image/png", data=IMAGE_DATA)
        ])

        assert formatted[0]["parts"] == [{"inline_data": {"mime_type": "image/png", "data": IMAGE_DATA}}]


class TestCohere:
    """Tests for the Cohere formatter."""

    def test_tool_plan(self, tool_round):
        """Test assistant text becomes the tool plan when tools are called."""
        formatted = format_messages_for_cohere(tool_round)

        assistant = formatted[2]
        assert assistant["tool_plan"] == "Checking."
        assert "content" not in assistant
        assert assistant["tool_calls"][1]["function"]["arguments"] == "{}"
        assert formatted[3] == {"role": "tool", "tool_call_id": "c1", "content": "18C"}


class TestMistral:
    """Tests for the Mistral formatter."""

    def test_tool_round(self, tool_round):
        formatted = format_messages_for_mistral(tool_round)

        assert formatted[2]["tool_calls"][0] == {
            "id": "c1",
            "function": {"name": "weather", "arguments": '{"city": "Paris"}'},
        }
        assert formatted[4] == {"role": "tool", "content": "14:00", "tool_call_id": "c2"}

    def test_image(self, image_message):
        formatted = format_messages_for_mistral([image_message])

        assert formatted[0]["content"][1] == {
            "type": "image_url",
            "image_url": f"data:image/png;base64,{IMAGE_DATA}",
        }


class TestBedrock:
    """Tests for the Bedrock formatter."""

    def test_tool_round(self, tool_round):
        system, formatted = format_messages_for_bedrock(tool_round)

        assert system == "Be brief."
        assert formatted[0] == {"role": "user", "content": [{"text": "Weather in Paris?"}]}
        assert formatted[1]["content"][1] == {
            "toolUse": {"toolUseId": "c1", "name": "weather", "input": {"city": "Paris"}}
        }
        assert len(formatted) == 3
        assert [b["toolResult"]["toolUseId"] for b in formatted[2]["content"]] == ["c1", "c2"]

    def test_image_is_decoded(self, image_message):
        _, formatted = format_messages_for_bedrock([image_message])

        image = formatted[0]["content"][1]["image"]
        assert image["format"] == "png"
        assert image["source"]["bytes"] == b"\x89PNG fake"
