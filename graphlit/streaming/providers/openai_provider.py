"""
OpenAI streaming provider.

The chat completions loop here is shared by the OpenAI-compatible
services (Groq, Deepseek, xAI).
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from graphlit.exceptions import ProviderRateLimitError, ProviderUnavailableError
from graphlit.models import ConversationToolCall, ModelServiceTypes, ToolDefinition, to_tool_definitions
from graphlit.streaming.events import StreamEvent
from graphlit.streaming.formatters import format_messages_for_openai
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

_NETWORK_CODES = ("ECONNRESET", "ETIMEDOUT")


def openai_tools(tools: List[ToolDefinition]) -> List[Dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": parse_schema(tool),
            },
        }
        for tool in tools
    ]


async def stream_chat_completions(
    client: Any,
    params: Dict[str, Any],
    on_event: OnEvent,
    abort_event: Optional[asyncio.Event] = None,
) -> Tuple[str, List[ConversationToolCall], Optional[Dict[str, Any]]]:
    """
    Run a streaming chat completion and emit provider events.

    Tool call fragments are accumulated by index; each finished call is
    announced with ``tool_call_parsed`` once the stream ends.

    Returns:
        ``(message, tool_calls, usage)``
    """
    full_message = ""
    usage = None
    tool_call_accumulator: Dict[int, ConversationToolCall] = {}

    stream = await client.chat.completions.create(**params)

    async for chunk in stream:
        BaseStreamProvider.check_abort(abort_event)

        chunk_usage = getattr(chunk, "usage", None)
        x_groq = getattr(chunk, "x_groq", None)
        if chunk_usage is None and x_groq is not None:
            chunk_usage = getattr(x_groq, "usage", None)
        if chunk_usage is not None:
            usage = usage_to_dict(chunk_usage)

        if not chunk.choices:
            continue
        delta = chunk.choices[0].delta
        if delta is None:
            continue

        if delta.content:
            full_message += delta.content
            on_event(StreamEvent.token_delta(delta.content))

        for tc in delta.tool_calls or []:
            idx = tc.index or 0
            function = tc.function

            if idx not in tool_call_accumulator:
                tool_call_accumulator[idx] = ConversationToolCall(
                    id=tc.id or f"tool_{int(time.time() * 1000)}_{idx}",
                    name="",
                )
                on_event(StreamEvent.tool_start(
                    tool_call_accumulator[idx].id,
                    (function.name if function else None) or "",
                ))

            tool_call = tool_call_accumulator[idx]
            if function and function.name:
                tool_call.name = function.name
            if function and function.arguments:
                tool_call.arguments += function.arguments
                on_event(StreamEvent.tool_delta(tool_call.id, function.arguments))

    tool_calls = [tool_call_accumulator[i] for i in sorted(tool_call_accumulator)]
    for tool_call in tool_calls:
        if not is_valid_json(tool_call.arguments or "{}"):
            logger.error(f"Invalid JSON arguments for {tool_call.name}")
        on_event(StreamEvent.tool_parsed(tool_call))

    return full_message, tool_calls, usage


class OpenAIStreamProvider(BaseStreamProvider):
    """Streams with the ``openai`` SDK's chat completions API."""

    service_type = ModelServiceTypes.OPEN_AI
    name = "OpenAI"
    package = "openai"
    api_key_env = "OPENAI_API_KEY"
    base_url: Optional[str] = None

    def _create_client(self) -> Any:
        from openai import AsyncOpenAI

        return AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)

    def build_params(
        self,
        specification: Dict[str, Any],
        messages: List[Any],
        tools: Optional[List[Any]],
    ) -> Dict[str, Any]:
        tools = to_tool_definitions(tools)
        settings = self.settings(specification)
        params: Dict[str, Any] = {
            "model": self.model_name(specification),
            "messages": format_messages_for_openai(messages),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if settings.get("temperature") is not None:
            params["temperature"] = settings["temperature"]
        if settings.get("completionTokenLimit"):
            params["max_completion_tokens"] = settings["completionTokenLimit"]
        if tools:
            params["tools"] = openai_tools(tools)

        reasoning_effort = settings.get("reasoningEffort")
        if reasoning_effort:
            params["reasoning_effort"] = str(getattr(reasoning_effort, "value", reasoning_effort)).lower()
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
            f"[{self.name}] Model={params['model']} | Temperature={params.get('temperature')} | "
            f"Tools={len(tools)}"
        )
        message, tool_calls, usage = await stream_chat_completions(client, params, on_event, abort_event)
        on_complete(message, tool_calls, usage)

    def map_error(self, error: Exception) -> Exception:
        message = str(error)
        if error_status(error) == 429 or getattr(error, "code", None) == "rate_limit_exceeded":
            return ProviderRateLimitError(f"{self.name} rate limit exceeded", self.name)
        if (
            "fetch failed" in message
            or getattr(error, "code", None) in _NETWORK_CODES
            or type(error).__name__ in ("APIConnectionError", "APITimeoutError")
        ):
            return ProviderUnavailableError(f"{self.name} network error: {message}", self.name)
        return super().map_error(error)


class XaiStreamProvider(OpenAIStreamProvider):
    """xAI (Grok) through its OpenAI-compatible endpoint."""

    service_type = ModelServiceTypes.XAI
    name = "xAI"
    api_key_env = "XAI_API_KEY"
    base_url = "https://api.x.ai/v1"
