"""Mistral streaming provider."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional

from graphlit.exceptions import ProviderAuthenticationError, ProviderError, ProviderRateLimitError
from graphlit.models import ConversationToolCall, ModelServiceTypes, ToolDefinition
from graphlit.streaming.events import StreamEvent
from graphlit.streaming.formatters import format_messages_for_mistral
from graphlit.streaming.providers.base import (
    BaseStreamProvider,
    OnComplete,
    OnEvent,
    error_status,
    is_valid_json,
    usage_to_dict,
)
from graphlit.streaming.providers.openai_provider import openai_tools

logger = logging.getLogger("graphlit.streaming")

MISMATCH_ERROR = "Not the same number of function calls and responses"


def _arguments(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else json.dumps(value)


def log_tool_mismatch(messages: List[Dict[str, Any]]) -> None:
    """Log tool calls and tool responses that have no counterpart."""
    call_ids = set()
    response_ids = set()
    for message in messages:
        if message["role"] == "assistant":
            call_ids.update(tc["id"] for tc in message.get("tool_calls") or [])
        elif message["role"] == "tool" and message.get("tool_call_id"):
            response_ids.add(message["tool_call_id"])

    unmatched_calls = sorted(call_ids - response_ids)
    unmatched_responses = sorted(response_ids - call_ids)
    logger.error(
        "[Mistral] Tool call/response mismatch. "
        f"Calls without responses: {', '.join(unmatched_calls) or 'none'}; "
        f"responses without calls: {', '.join(unmatched_responses) or 'none'}"
    )


class MistralStreamProvider(BaseStreamProvider):
    """Streams with the ``mistralai`` SDK, using its built-in retry backoff."""

    service_type = ModelServiceTypes.MISTRAL
    name = "Mistral"
    package = "mistralai"
    api_key_env = "MISTRAL_API_KEY"

    def _create_client(self) -> Any:
        from mistralai import Mistral

        return Mistral(api_key=self.api_key)

    @staticmethod
    def retry_config() -> Any:
        from mistralai.utils import BackoffStrategy, RetryConfig

        # 1s initial, 60s cap, 5 minutes overall
        return RetryConfig("backoff", BackoffStrategy(1000, 60000, 2.0, 300000), True)

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
        model_name = self.model_name(specification)
        formatted = format_messages_for_mistral(messages)

        params: Dict[str, Any] = {"model": model_name, "messages": formatted}
        temperature = self.settings(specification).get("temperature")
        if temperature is not None:
            params["temperature"] = temperature
        if tools:
            params["tools"] = openai_tools(tools)

        logger.debug(f"[Mistral] Model={model_name} | Temperature={temperature} | Tools={len(tools)}")

        try:
            stream = await client.chat.stream_async(**params, retries=self.retry_config())
        except Exception as e:
            if MISMATCH_ERROR in str(e):
                log_tool_mismatch(formatted)
            raise

        full_message = ""
        usage = None
        tool_calls: Dict[int, ConversationToolCall] = {}

        async for chunk in stream:
            self.check_abort(abort_event)
            data = chunk.data
            if getattr(data, "usage", None) is not None:
                usage = usage_to_dict(data.usage)
            if not data.choices:
                continue
            delta = data.choices[0].delta

            if isinstance(delta.content, str) and delta.content:
                full_message += delta.content
                on_event(StreamEvent.token_delta(delta.content))

            for tc in getattr(delta, "tool_calls", None) or []:
                idx = getattr(tc, "index", None) or 0
                arguments = _arguments(tc.function.arguments)
                if idx not in tool_calls:
                    tool_calls[idx] = ConversationToolCall(
                        id=tc.id or f"tool_{int(time.time() * 1000)}_{idx}",
                        name=tc.function.name or "",
                        arguments=arguments,
                    )
                    on_event(StreamEvent.tool_start(tool_calls[idx].id, tool_calls[idx].name))
                    if arguments:
                        on_event(StreamEvent.tool_delta(tool_calls[idx].id, arguments))
                else:
                    if tc.function.name:
                        tool_calls[idx].name = tc.function.name
                    if arguments:
                        tool_calls[idx].arguments += arguments
                        on_event(StreamEvent.tool_delta(tool_calls[idx].id, arguments))

        ordered = [tool_calls[i] for i in sorted(tool_calls)]
        for tool_call in ordered:
            if is_valid_json(tool_call.arguments):
                on_event(StreamEvent.tool_parsed(tool_call))
            else:
                logger.warning(f"[Mistral] Skipping tool call with invalid JSON: {tool_call.name}")

        on_complete(full_message, ordered, usage)

    def map_error(self, error: Exception) -> Exception:
        message = str(error)
        status = error_status(error)
        if status == 401 or "401" in message or "Unauthorized" in message:
            return ProviderAuthenticationError(
                "Mistral API authentication failed. Please check your MISTRAL_API_KEY.", self.name
            )
        if status == 429 or "429" in message or "rate limit" in message:
            return ProviderRateLimitError("Mistral API rate limit exceeded. Please try again later.", self.name)
        if status == 500 or "500" in message or "Service unavailable" in message or "INTERNAL_SERVER_ERROR" in message:
            return ProviderError(
                "Mistral API service is temporarily unavailable (500). Please try again later.",
                self.name,
                status_code=500,
            )
        return ProviderError(f"Mistral streaming failed: {message}", self.name, status_code=status)
