"""Cohere streaming provider (v2 chat API)."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from graphlit.exceptions import ProviderError
from graphlit.models import ConversationToolCall, ModelServiceTypes, ToolDefinition
from graphlit.streaming.events import StreamEvent
from graphlit.streaming.formatters import format_messages_for_cohere
from graphlit.streaming.providers.base import BaseStreamProvider, OnComplete, OnEvent, usage_to_dict
from graphlit.streaming.providers.openai_provider import openai_tools

logger = logging.getLogger("graphlit.streaming")


def _path(obj: Any, *names: str) -> Any:
    for name in names:
        if obj is None:
            return None
        obj = obj.get(name) if isinstance(obj, dict) else getattr(obj, name, None)
    return obj


class CohereStreamProvider(BaseStreamProvider):
    """Streams with the ``cohere`` SDK's ``AsyncClientV2``."""

    service_type = ModelServiceTypes.COHERE
    name = "Cohere"
    package = "cohere"
    api_key_env = "COHERE_API_KEY"

    def _create_client(self) -> Any:
        import cohere

        return cohere.AsyncClientV2(api_key=self.api_key)

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
        formatted = format_messages_for_cohere(messages)
        if not formatted:
            raise ProviderError("No messages found for Cohere streaming", self.name)

        params: Dict[str, Any] = {"model": model_name, "messages": formatted}
        temperature = self.settings(specification).get("temperature")
        if temperature is not None:
            params["temperature"] = temperature
        if tools:
            params["tools"] = openai_tools(tools)

        logger.debug(f"[Cohere] Model={model_name} | Temperature={temperature} | Tools={len(tools)}")

        full_message = ""
        tool_calls: List[ConversationToolCall] = []
        usage = None
        token_count = 0
        current_index = -1
        current: Optional[ConversationToolCall] = None

        async for chunk in client.chat_stream(**params):
            self.check_abort(abort_event)
            chunk_type = getattr(chunk, "type", None)

            if chunk_type == "content-delta":
                text = _path(chunk, "delta", "message", "content", "text")
                if text:
                    full_message += text
                    token_count += 1
                    on_event(StreamEvent.token_delta(text))
                    on_event(StreamEvent.full_message(full_message))

            elif chunk_type == "tool-call-start":
                current_index = getattr(chunk, "index", None) or 0
                data = _path(chunk, "delta", "message", "tool_calls")
                if data is not None:
                    current = ConversationToolCall(
                        id=_path(data, "id") or f"cohere_tool_{int(time.time() * 1000)}_{current_index}",
                        name=_path(data, "function", "name") or "",
                    )
                    on_event(StreamEvent.tool_start(current.id, current.name))

            elif chunk_type == "tool-call-delta":
                if current is not None and (getattr(chunk, "index", None) or 0) == current_index:
                    delta = _path(chunk, "delta", "message", "tool_calls", "function", "arguments")
                    if delta:
                        current.arguments += delta
                        on_event(StreamEvent.tool_delta(current.id, delta))

            elif chunk_type == "tool-call-end":
                if current is not None and (getattr(chunk, "index", None) or 0) == current_index:
                    tool_calls.append(current)
                    on_event(StreamEvent.tool_parsed(current))
                    current = None
                    current_index = -1

            elif chunk_type == "message-end":
                raw = _path(chunk, "delta", "usage") or getattr(chunk, "usage", None)
                if raw is not None:
                    usage = usage_to_dict(raw)

        on_event(StreamEvent.completed(token_count))
        on_complete(full_message, tool_calls, usage)
