"""
Google (Gemini) streaming provider.

Gemini returns function calls whole rather than as argument fragments,
so each call is announced with start, delta and parsed events at once.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional

from graphlit.models import ConversationToolCall, ModelServiceTypes, ToolDefinition
from graphlit.streaming.events import ReasoningFormat, StreamEvent
from graphlit.streaming.formatters import format_messages_for_google
from graphlit.streaming.providers.base import (
    BaseStreamProvider,
    OnComplete,
    OnEvent,
    parse_schema,
    usage_to_dict,
)

logger = logging.getLogger("graphlit.streaming")

SUPPORTED_FORMATS = ("enum", "date-time")


def clean_schema_for_google(schema: Any) -> Any:
    """Strip JSON schema keywords Gemini rejects."""
    if isinstance(schema, list):
        return [clean_schema_for_google(item) for item in schema]
    if not isinstance(schema, dict):
        return schema

    cleaned = {}
    for key, value in schema.items():
        if key in ("$schema", "additionalProperties"):
            continue
        if key == "format" and isinstance(value, str):
            if value in SUPPORTED_FORMATS:
                cleaned[key] = value
            continue
        cleaned[key] = clean_schema_for_google(value)
    return cleaned


def google_tools(tools: List[ToolDefinition]) -> Optional[List[Dict[str, Any]]]:
    if not tools:
        return None
    return [{
        "function_declarations": [
            {
                "name": tool.name,
                "description": tool.description,
                "parameters": clean_schema_for_google(parse_schema(tool)),
            }
            for tool in tools
        ]
    }]


def _args_to_dict(args: Any) -> Dict[str, Any]:
    if args is None:
        return {}
    if isinstance(args, dict):
        return args
    try:
        return {key: value for key, value in args.items()}
    except AttributeError:
        return dict(args)


def _parts(candidate: Any) -> List[Any]:
    content = getattr(candidate, "content", None)
    return list(getattr(content, "parts", None) or [])


class GoogleStreamProvider(BaseStreamProvider):
    """Streams with the ``google-generativeai`` SDK."""

    service_type = ModelServiceTypes.GOOGLE
    name = "Google"
    package = "google-generativeai"
    api_key_env = "GOOGLE_API_KEY"

    def _create_client(self) -> Any:
        import google.generativeai as genai

        genai.configure(api_key=self.api_key)
        return genai

    def generation_config(self, specification: Dict[str, Any]) -> Dict[str, Any]:
        settings = self.settings(specification)
        config: Dict[str, Any] = {}
        if settings.get("temperature") is not None:
            config["temperature"] = settings["temperature"]
        if settings.get("completionTokenLimit"):
            config["max_output_tokens"] = settings["completionTokenLimit"]

        if settings.get("enableThinking"):
            limit = settings.get("thinkingTokenLimit")
            # 0 disables thinking, unset means dynamic
            budget = 0 if limit == 0 else (limit or -1)
            config["thinking_config"] = {"thinking_budget": budget, "include_thoughts": budget != 0}
        return config

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
        thinking = bool(self.settings(specification).get("enableThinking"))
        formatted = format_messages_for_google(messages)

        logger.debug(f"[Google] Model={model_name} | Thinking={thinking} | Tools={len(tools)}")

        model = client.GenerativeModel(
            model_name=model_name,
            generation_config=self.generation_config(specification),
            tools=google_tools(tools),
        )

        history = formatted[:-1]
        last_parts = formatted[-1]["parts"] if formatted else []
        prompt = last_parts[0].get("text", "") if last_parts else ""

        full_message = ""
        tool_calls: List[ConversationToolCall] = []
        thinking_started = False
        streamed_thoughts = ""

        chat = model.start_chat(history=history)
        response = await chat.send_message_async(prompt, stream=True)

        async for chunk in response:
            self.check_abort(abort_event)
            for candidate in (getattr(chunk, "candidates", None) or [])[:1]:
                for part in _parts(candidate):
                    text = getattr(part, "text", "")
                    if getattr(part, "thought", False):
                        if thinking and text:
                            if not thinking_started:
                                on_event(StreamEvent.reasoning_start(ReasoningFormat.MARKDOWN))
                                thinking_started = True
                            streamed_thoughts += text + "\n"
                        continue

                    if text:
                        full_message += text
                        on_event(StreamEvent.token_delta(text))

                    function_call = getattr(part, "function_call", None)
                    if function_call and getattr(function_call, "name", None):
                        self._add_function_call(function_call, tool_calls, on_event)

        # The aggregated response can hold parts the chunks did not carry
        candidates = getattr(response, "candidates", None) or []
        final_parts = _parts(candidates[0]) if candidates else []

        collected = "".join(
            (getattr(p, "text", "") or "") + "\n" for p in final_parts if thinking and getattr(p, "thought", False)
        )
        if collected:
            if not thinking_started:
                on_event(StreamEvent.reasoning_start(ReasoningFormat.MARKDOWN))
            on_event(StreamEvent.reasoning_end((streamed_thoughts + collected).strip()))
        elif thinking_started and streamed_thoughts:
            on_event(StreamEvent.reasoning_end(streamed_thoughts.strip()))

        for part in final_parts:
            if getattr(part, "thought", False):
                continue
            text = getattr(part, "text", "")
            if text and text not in full_message:
                logger.debug(f"[Google] Adding final text missing from stream: {len(text)} chars")
                full_message += text
                on_event(StreamEvent.token_delta(text))

            function_call = getattr(part, "function_call", None)
            name = getattr(function_call, "name", None) if function_call else None
            if name and not any(tc.name == name for tc in tool_calls):
                self._add_function_call(function_call, tool_calls, on_event)

        usage = None
        metadata = getattr(response, "usage_metadata", None)
        if metadata is not None:
            usage = {
                "prompt_tokens": getattr(metadata, "prompt_token_count", 0) or 0,
                "completion_tokens": getattr(metadata, "candidates_token_count", 0) or 0,
                "total_tokens": getattr(metadata, "total_token_count", 0) or 0,
            }

        on_complete(full_message, tool_calls, usage)

    @staticmethod
    def _add_function_call(function_call: Any, tool_calls: List[ConversationToolCall], on_event: OnEvent) -> None:
        tool_call = ConversationToolCall(
            id=f"google_tool_{int(time.time() * 1000)}_{len(tool_calls)}",
            name=function_call.name,
            arguments=json.dumps(_args_to_dict(getattr(function_call, "args", None))),
        )
        tool_calls.append(tool_call)

        on_event(StreamEvent.tool_start(tool_call.id, tool_call.name))
        on_event(StreamEvent.tool_delta(tool_call.id, tool_call.arguments))
        on_event(StreamEvent.tool_parsed(tool_call))
