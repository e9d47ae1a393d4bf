"""Cerebras streaming provider."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from graphlit.models import ConversationToolCall, ModelServiceTypes, ToolDefinition, to_tool_definitions
from graphlit.streaming.events import StreamEvent
from graphlit.streaming.providers.base import OnComplete, OnEvent, usage_to_dict
from graphlit.streaming.providers.openai_provider import OpenAIStreamProvider

logger = logging.getLogger("graphlit.streaming")

# Only this model family accepts tools on Cerebras
TOOL_MODELS = ("qwen-3-32b",)


def supports_tools(model_name: str) -> bool:
    return any(m in model_name.lower() for m in TOOL_MODELS)


class CerebrasStreamProvider(OpenAIStreamProvider):
    """
    Streams with the ``cerebras-cloud-sdk``.

    Tool calls are not streamed: when tools are offered the round is a
    single non-streaming completion.
    """

    service_type = ModelServiceTypes.CEREBRAS
    name = "Cerebras"
    package = "cerebras-cloud-sdk"
    api_key_env = "CEREBRAS_API_KEY"

    def _create_client(self) -> Any:
        from cerebras.cloud.sdk import AsyncCerebras

        return AsyncCerebras(api_key=self.api_key)

    def build_params(
        self,
        specification: Dict[str, Any],
        messages: List[Any],
        tools: Optional[List[Any]],
    ) -> Dict[str, Any]:
        tools = to_tool_definitions(tools)
        model = self.model_name(specification)
        tool_capable = supports_tools(model)
        if tools and not tool_capable:
            logger.warning(f"[Cerebras] Disabling tools for {model}; only qwen-3-32b supports tools")

        params = super().build_params(specification, messages, tools if tool_capable else [])
        params.pop("stream_options", None)
        params.pop("reasoning_effort", None)
        if "max_completion_tokens" in params:
            params["max_tokens"] = params.pop("max_completion_tokens")

        if not tool_capable:
            for message in params["messages"]:
                if message["role"] == "assistant":
                    message.pop("tool_calls", None)
                    message.setdefault("content", "")

        params["stream"] = "tools" not in params
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
            f"[Cerebras] Model={params['model']} | Stream={params['stream']} | "
            f"Tools={len(params.get('tools', []))}"
        )

        full_message = ""
        tool_calls: List[ConversationToolCall] = []
        usage = None
        token_count = 0

        if not params["stream"]:
            response = await client.chat.completions.create(**params)
            if response.choices:
                message = response.choices[0].message
                if message.content:
                    full_message = message.content
                    on_event(StreamEvent.token_delta(message.content))
                    on_event(StreamEvent.full_message(full_message))
                for tc in message.tool_calls or []:
                    tool_call = ConversationToolCall(
                        id=tc.id,
                        name=tc.function.name,
                        arguments=tc.function.arguments or "",
                    )
                    tool_calls.append(tool_call)
                    on_event(StreamEvent.tool_start(tool_call.id, tool_call.name))
                    on_event(StreamEvent.tool_parsed(tool_call))
            usage = usage_to_dict(getattr(response, "usage", None))
            # Approximate for non-streaming
            token_count = len(full_message)
        else:
            accumulator: Dict[int, ConversationToolCall] = {}
            stream = await client.chat.completions.create(**params)
            async for chunk in stream:
                self.check_abort(abort_event)
                token_count += 1

                if chunk.choices:
                    choice = chunk.choices[0]
                    delta = choice.delta
                    if delta is not None and delta.content:
                        full_message += delta.content
                        on_event(StreamEvent.token_delta(delta.content))

                    for tc in (getattr(delta, "tool_calls", None) or []):
                        idx = tc.index or 0
                        function = tc.function
                        if idx not in accumulator:
                            accumulator[idx] = ConversationToolCall(
                                id=tc.id or f"tool_{int(time.time() * 1000)}_{idx}",
                                name=(function.name if function else None) or "",
                            )
                            if accumulator[idx].name:
                                on_event(StreamEvent.tool_start(accumulator[idx].id, accumulator[idx].name))
                        if function and function.arguments:
                            accumulator[idx].arguments += function.arguments

                    if choice.finish_reason == "tool_calls" and accumulator:
                        tool_calls = [accumulator[i] for i in sorted(accumulator)]
                        for tool_call in tool_calls:
                            on_event(StreamEvent.tool_parsed(tool_call))

                if getattr(chunk, "usage", None) is not None:
                    usage = usage_to_dict(chunk.usage)

                on_event(StreamEvent.full_message(full_message))

        on_event(StreamEvent.completed(token_count))
        on_complete(full_message, tool_calls, usage)
