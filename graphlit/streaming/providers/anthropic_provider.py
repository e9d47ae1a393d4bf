"""
Anthropic streaming provider.

Supports extended thinking: thinking blocks are reported as reasoning
events and, when the model goes on to call tools, the thinking and its
signature are kept at the head of the assistant message so the next
round can replay them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from graphlit.exceptions import ProviderRateLimitError, ProviderUnavailableError
from graphlit.models import ConversationToolCall, ModelServiceTypes, ToolDefinition, to_tool_definitions
from graphlit.streaming.events import ReasoningFormat, StreamEvent
from graphlit.streaming.formatters import format_messages_for_anthropic
from graphlit.streaming.providers.base import (
    BaseStreamProvider,
    OnComplete,
    OnEvent,
    error_status,
    is_valid_json,
    parse_schema,
    usage_to_dict,
)

logger = logging.getLogger("graphlit.streaming")

DEFAULT_MAX_TOKENS = 8192
THINKING_MAX_TOKENS = 32768
CONTEXT_LIMIT = 200000


def anthropic_tools(tools: List[ToolDefinition]) -> List[Dict[str, Any]]:
    return [
        {"name": tool.name, "description": tool.description, "input_schema": parse_schema(tool)}
        for tool in tools
    ]


def thinking_prefix(thinking: str, signature: Optional[str]) -> str:
    signature_attr = f' signature="{signature}"' if signature else ""
    return f"<thinking{signature_attr}>{thinking}</thinking>\n"


class AnthropicStreamProvider(BaseStreamProvider):
    """Streams with the ``anthropic`` SDK's messages API."""

    service_type = ModelServiceTypes.ANTHROPIC
    name = "Anthropic"
    package = "anthropic"
    api_key_env = "ANTHROPIC_API_KEY"

    def _create_client(self) -> Any:
        from anthropic import AsyncAnthropic

        return AsyncAnthropic(api_key=self.api_key)

    def build_params(
        self,
        specification: Dict[str, Any],
        messages: List[Any],
        tools: Optional[List[Any]],
    ) -> Dict[str, Any]:
        tools = to_tool_definitions(tools)
        settings = self.settings(specification)
        system, formatted = format_messages_for_anthropic(messages)

        thinking_budget = settings.get("thinkingTokenLimit") if settings.get("enableThinking") else None
        max_tokens = settings.get("completionTokenLimit") or (
            THINKING_MAX_TOKENS if thinking_budget else DEFAULT_MAX_TOKENS
        )

        params: Dict[str, Any] = {
            "model": self.model_name(specification),
            "messages": formatted,
            "max_tokens": max_tokens,
            "stream": True,
        }
        if settings.get("temperature") is not None:
            params["temperature"] = settings["temperature"]
        if system:
            params["system"] = system
        if tools:
            params["tools"] = anthropic_tools(tools)

        if thinking_budget:
            params["thinking"] = {"type": "enabled", "budget_tokens": thinking_budget}
            # Extended thinking only accepts temperature 1
            params["temperature"] = 1
            if max_tokens + thinking_budget > CONTEXT_LIMIT:
                params["max_tokens"] = max(1000, CONTEXT_LIMIT - thinking_budget)
                logger.warning(
                    f"Reduced Anthropic max_tokens to {params['max_tokens']} "
                    f"to fit thinking budget {thinking_budget}"
                )
        return params

    async def _stream(
        self,
        client: Any,
        specification: Dict[str, Any],
        messages: List[Any],
        tools: List[ToolDefinition],
        on_event: OnEvent,
        on_complete: OnComplete,
        abort_event: Optional[asyncio.Event],
    ) -> None:
        params = self.build_params(specification, messages, tools)
        logger.debug(
            f"[Anthropic] Model={params['model']} | MaxTokens={params['max_tokens']} | "
            f"Thinking={'thinking' in params} | Tools={len(tools)}"
        )

        full_message = ""
        tool_calls: List[ConversationToolCall] = []
        usage: Dict[str, Any] = {}

        active_block: Optional[str] = None
        current_thinking = ""
        current_signature = ""
        complete_thinking = ""
        final_signature: Optional[str] = None

        stream = await client.messages.create(**params)

        async for event in stream:
            self.check_abort(abort_event)
            event_type = event.type

            if event_type == "message_start":
                usage.update(usage_to_dict(getattr(event.message, "usage", None)) or {})

            elif event_type == "message_delta":
                usage.update({k: v for k, v in (usage_to_dict(getattr(event, "usage", None)) or {}).items() if v})

            elif event_type == "content_block_start":
                block = event.content_block
                active_block = block.type
                if block.type == "thinking":
                    current_thinking = ""
                    current_signature = ""
                    on_event(StreamEvent.reasoning_start(ReasoningFormat.THINKING_TAG))
                elif block.type == "tool_use":
                    tool_call = ConversationToolCall(id=block.id, name=block.name)
                    tool_calls.append(tool_call)
                    on_event(StreamEvent.tool_start(tool_call.id, tool_call.name))

            elif event_type == "content_block_delta":
                delta = event.delta
                if delta.type == "thinking_delta":
                    current_thinking += delta.thinking
                    on_event(StreamEvent.reasoning_delta(delta.thinking, ReasoningFormat.THINKING_TAG))
                elif delta.type == "signature_delta":
                    current_signature += delta.signature
                elif delta.type == "text_delta":
                    full_message += delta.text
                    on_event(StreamEvent.token_delta(delta.text))
                elif delta.type == "input_json_delta" and tool_calls:
                    tool_calls[-1].arguments += delta.partial_json
                    on_event(StreamEvent.tool_delta(tool_calls[-1].id, delta.partial_json))

            elif event_type == "content_block_stop":
                if active_block == "thinking":
                    on_event(StreamEvent.reasoning_end(current_thinking, current_signature or None))
                    complete_thinking += current_thinking
                    if current_signature:
                        final_signature = current_signature
                elif active_block == "tool_use" and tool_calls:
                    on_event(StreamEvent.tool_parsed(tool_calls[-1]))
                active_block = None

            elif event_type == "message_stop":
                # Some streams end without closing the last tool block
                if active_block == "tool_use" and tool_calls:
                    if is_valid_json(tool_calls[-1].arguments or "{}"):
                        on_event(StreamEvent.tool_parsed(tool_calls[-1]))
                    else:
                        logger.warning(f"Anthropic stream ended inside tool call {tool_calls[-1].name}")
                active_block = None

        valid_calls = []
        for tool_call in tool_calls:
            if not tool_call.arguments:
                tool_call.arguments = "{}"
            if not is_valid_json(tool_call.arguments):
                logger.warning(f"Dropping Anthropic tool call {tool_call.name} with invalid JSON arguments")
                continue
            valid_calls.append(tool_call)

        if complete_thinking and valid_calls:
            full_message = thinking_prefix(complete_thinking, final_signature) + full_message

        on_complete(full_message.strip(), valid_calls, usage or None)

    def map_error(self, error: Exception) -> Exception:
        message = str(error)
        if "overloaded_error" in message or "Overloaded" in message:
            return ProviderUnavailableError("Anthropic API is overloaded", self.name)
        if error_status(error) == 429 or "rate_limit_error" in message:
            return ProviderRateLimitError("Anthropic rate limit exceeded", self.name)
        return super().map_error(error)
