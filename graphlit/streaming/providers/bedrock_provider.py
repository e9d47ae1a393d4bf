"""
AWS Bedrock streaming provider.

boto3 is synchronous, so the Converse stream is opened and read through
``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Any, Dict, List, Optional

from graphlit.exceptions import GraphlitError, ProviderRateLimitError
from graphlit.models import ConversationToolCall, ModelServiceTypes, ToolDefinition
from graphlit.streaming.events import ReasoningFormat, StreamEvent
from graphlit.streaming.formatters import format_messages_for_bedrock
from graphlit.streaming.providers.base import BaseStreamProvider, OnComplete, OnEvent, parse_schema

logger = logging.getLogger("graphlit.streaming")

THINKING_START = "<thinking>"
THINKING_END = "</thinking>"
DEFAULT_MAX_TOKENS = 1000
DEFAULT_REGION = "us-east-2"


def bedrock_tool_config(tools: List[ToolDefinition]) -> Dict[str, Any]:
    return {
        "tools": [
            {
                "toolSpec": {
                    "name": tool.name,
                    "description": tool.description,
                    "inputSchema": {"json": parse_schema(tool)},
                }
            }
            for tool in tools
        ]
    }


def is_throttling(error: BaseException) -> bool:
    code = ""
    response = getattr(error, "response", None)
    if isinstance(response, dict):
        code = response.get("Error", {}).get("Code", "")
    message = str(error)
    return (
        code == "ThrottlingException"
        or type(error).__name__ == "ThrottlingException"
        or "Too many tokens" in message
        or "Too many requests" in message
    )


class ThinkingTagParser:
    """Splits streamed text into message tokens and ``<thinking>`` reasoning."""

    def __init__(self, on_event: OnEvent):
        self.on_event = on_event
        self.message = ""
        self.in_thinking = False
        self.reasoning = ""
        self._pending = ""

    def feed(self, text: str) -> None:
        self._pending += text

        if not self.in_thinking and THINKING_START in self._pending:
            before, _, self._pending = self._pending.partition(THINKING_START)
            if before:
                self._emit(before)
            self.in_thinking = True
            self.reasoning = ""
            self.on_event(StreamEvent.reasoning_start(ReasoningFormat.THINKING_TAG))

        if self.in_thinking:
            if THINKING_END in self._pending:
                thought, _, rest = self._pending.partition(THINKING_END)
                self.reasoning += thought
                self.on_event(StreamEvent.reasoning_delta(thought, ReasoningFormat.THINKING_TAG))
                self.on_event(StreamEvent.reasoning_end(self.reasoning))
                self.in_thinking = False
                self._pending = ""
                if rest:
                    self._emit(rest)
            else:
                self.reasoning += self._pending
                self.on_event(StreamEvent.reasoning_delta(self._pending, ReasoningFormat.THINKING_TAG))
                self._pending = ""
        else:
            self._emit(self._pending)
            self._pending = ""

    def _emit(self, text: str) -> None:
        self.message += text
        self.on_event(StreamEvent.token_delta(text))


class BedrockStreamProvider(BaseStreamProvider):
    """Streams with the ``boto3`` ``bedrock-runtime`` Converse API."""

    service_type = ModelServiceTypes.BEDROCK
    name = "Bedrock"
    package = "boto3"

    def _create_client(self) -> Any:
        import boto3

        return boto3.client("bedrock-runtime", region_name=os.environ.get("AWS_REGION", DEFAULT_REGION))

    def build_request(
        self,
        specification: Dict[str, Any],
        messages: List[Any],
        tools: List[ToolDefinition],
    ) -> Dict[str, Any]:
        settings = self.settings(specification)
        system, formatted = format_messages_for_bedrock(messages)

        inference: Dict[str, Any] = {"maxTokens": settings.get("completionTokenLimit") or DEFAULT_MAX_TOKENS}
        if settings.get("temperature") is not None:
            inference["temperature"] = settings["temperature"]
        if settings.get("probability") is not None:
            inference["topP"] = settings["probability"]

        request: Dict[str, Any] = {
            "modelId": self.model_name(specification),
            "messages": formatted,
            "inferenceConfig": inference,
        }
        if system:
            request["system"] = [{"text": system}]
        if tools:
            request["toolConfig"] = bedrock_tool_config(tools)
        return request

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
        request = self.build_request(specification, messages, tools)
        logger.debug(f"[Bedrock] Model={request['modelId']} | Tools={len(tools)}")

        parser = ThinkingTagParser(on_event)
        tool_calls: List[ConversationToolCall] = []
        by_index: Dict[int, ConversationToolCall] = {}
        usage = None
        token_count = 0
        accumulated = ""

        try:
            response = await asyncio.to_thread(client.converse_stream, **request)
            events = iter(response.get("stream") or [])

            while True:
                self.check_abort(abort_event)
                event = await asyncio.to_thread(next, events, None)
                if event is None:
                    break

                if "contentBlockDelta" in event:
                    block = event["contentBlockDelta"]
                    delta = block.get("delta", {})
                    if delta.get("text"):
                        text = delta["text"]
                        # Some models resend the whole block so far
                        if accumulated and text.startswith(accumulated):
                            text = text[len(accumulated):]
                        accumulated += text
                        token_count += 1
                        parser.feed(text)
                        on_event(StreamEvent.full_message(parser.message))
                    elif "toolUse" in delta:
                        tool_call = by_index.get(block.get("contentBlockIndex"))
                        if tool_call is not None and delta["toolUse"].get("input"):
                            tool_call.arguments += delta["toolUse"]["input"]

                elif "contentBlockStart" in event:
                    accumulated = ""
                    start = event["contentBlockStart"]
                    tool_use = start.get("start", {}).get("toolUse")
                    if tool_use is not None:
                        tool_call = ConversationToolCall(
                            id=tool_use.get("toolUseId") or f"tool_{int(time.time() * 1000)}_{len(tool_calls)}",
                            name=tool_use.get("name") or "",
                        )
                        tool_calls.append(tool_call)
                        by_index[start.get("contentBlockIndex")] = tool_call
                        on_event(StreamEvent.tool_start(tool_call.id, tool_call.name))

                elif "contentBlockStop" in event:
                    tool_call = by_index.get(event["contentBlockStop"].get("contentBlockIndex"))
                    if tool_call is not None:
                        on_event(StreamEvent.tool_parsed(tool_call))

                elif "metadata" in event:
                    raw = event["metadata"].get("usage")
                    if raw:
                        usage = {
                            "prompt_tokens": raw.get("inputTokens"),
                            "completion_tokens": raw.get("outputTokens"),
                            "total_tokens": raw.get("totalTokens"),
                        }
        except GraphlitError:
            raise
        except Exception as e:
            if is_throttling(e):
                on_event(StreamEvent.failed(f"Bedrock rate limit: {e}"))
                raise ProviderRateLimitError(str(e), self.name) from e
            on_event(StreamEvent.failed(f"Bedrock streaming error: {e}"))
            raise

        on_event(StreamEvent.completed(token_count))
        on_complete(parser.message, tool_calls, usage)
