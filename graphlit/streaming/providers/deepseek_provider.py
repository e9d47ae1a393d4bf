"""
Deepseek streaming provider.

Deepseek speaks the OpenAI protocol but writes its reasoning inline as
markdown. Lines that open a reasoning section are routed to reasoning
events; indented, bold or blank lines continue the section.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional

from graphlit.models import ConversationToolCall, ModelServiceTypes, ToolDefinition
from graphlit.streaming.events import ReasoningFormat, StreamEvent
from graphlit.streaming.providers.base import OnComplete, OnEvent, is_valid_json, usage_to_dict
from graphlit.streaming.providers.openai_provider import OpenAIStreamProvider

logger = logging.getLogger("graphlit.streaming")


REASONING_PATTERNS = [
    re.compile(r"^🤔\s*Reasoning:", re.IGNORECASE),
    re.compile(r"^\*\*Step\s+\d+:", re.IGNORECASE),
    re.compile(r"^\*\*Reasoning:", re.IGNORECASE),
    re.compile(r"^\*\*Analysis:", re.IGNORECASE),
    re.compile(r"^\*\*Thought\s+\d+:", re.IGNORECASE),
    re.compile(r"^\*\*Consideration:", re.IGNORECASE),
]

_HEADER_PREFIXES = ("*", "🤔")


def is_reasoning_line(line: str) -> bool:
    stripped = line.strip()
    return any(p.match(stripped) for p in REASONING_PATTERNS)


def continues_reasoning(line: str) -> bool:
    return line.startswith(("  ", "\t")) or line.strip().startswith("**") or not line.strip()


class ReasoningSplitter:
    """Line-based router between message tokens and markdown reasoning."""

    def __init__(self, on_event: OnEvent):
        self.on_event = on_event
        self.message = ""
        self.in_reasoning = False
        self._started = False
        self._line = ""
        self._reasoning_lines: List[str] = []

    def feed(self, content: str) -> None:
        for char in content:
            if char == "\n":
                self._finish_line(self._line)
                self._line = ""
            else:
                self._line += char

        # Release partial text that cannot open a reasoning header
        if self._line and not self.in_reasoning and not self._line.lstrip().startswith(_HEADER_PREFIXES):
            self._emit_token(self._line)
            self._line = ""

    def close(self) -> None:
        if self._line:
            if self.in_reasoning:
                self._reasoning_lines.append(self._line)
                self.on_event(StreamEvent.reasoning_delta(self._line, ReasoningFormat.MARKDOWN))
            else:
                self._emit_token(self._line)
            self._line = ""
        if self.in_reasoning:
            self._end_reasoning()

    def _finish_line(self, line: str) -> None:
        if not self.in_reasoning and is_reasoning_line(line):
            self.in_reasoning = True
            if not self._started:
                self.on_event(StreamEvent.reasoning_start(ReasoningFormat.MARKDOWN))
                self._started = True
            self._add_reasoning(line)
        elif self.in_reasoning and continues_reasoning(line):
            self._add_reasoning(line)
        elif self.in_reasoning:
            self._end_reasoning()
            self._emit_token(line + "\n")
        else:
            self._emit_token(line + "\n")

    def _add_reasoning(self, line: str) -> None:
        self._reasoning_lines.append(line)
        self.on_event(StreamEvent.reasoning_delta(line + "\n", ReasoningFormat.MARKDOWN))

    def _end_reasoning(self) -> None:
        self.in_reasoning = False
        self.on_event(StreamEvent.reasoning_end("\n".join(self._reasoning_lines)))

    def _emit_token(self, text: str) -> None:
        self.message += text
        self.on_event(StreamEvent.token_delta(text))


class DeepseekStreamProvider(OpenAIStreamProvider):
    """Streams with the ``openai`` SDK pointed at the Deepseek API."""

    service_type = ModelServiceTypes.DEEPSEEK
    name = "Deepseek"
    api_key_env = "DEEPSEEK_API_KEY"
    base_url = "https://api.deepseek.com"

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
        params.pop("stream_options", None)
        params.pop("reasoning_effort", None)

        splitter = ReasoningSplitter(on_event)
        usage = None
        tool_calls: Dict[int, ConversationToolCall] = {}

        stream = await client.chat.completions.create(**params)
        async for chunk in stream:
            self.check_abort(abort_event)
            if getattr(chunk, "usage", None) is not None:
                usage = usage_to_dict(chunk.usage)
            if not chunk.choices or chunk.choices[0].delta is None:
                continue
            delta = chunk.choices[0].delta

            if delta.content:
                splitter.feed(delta.content)

            for tc in delta.tool_calls or []:
                idx = tc.index or 0
                function = tc.function
                if idx not in tool_calls:
                    tool_calls[idx] = ConversationToolCall(
                        id=tc.id or f"tool_{idx}",
                        name=(function.name if function else None) or "",
                    )
                    on_event(StreamEvent.tool_start(tool_calls[idx].id, tool_calls[idx].name))
                if function and function.name:
                    tool_calls[idx].name = function.name
                if function and function.arguments:
                    tool_calls[idx].arguments += function.arguments
                    on_event(StreamEvent.tool_delta(tool_calls[idx].id, function.arguments))

        splitter.close()

        valid = []
        for tool_call in (tool_calls[i] for i in sorted(tool_calls)):
            if not is_valid_json(tool_call.arguments or "{}"):
                logger.warning(f"Dropping Deepseek tool call {tool_call.name} with invalid JSON arguments")
                continue
            on_event(StreamEvent.tool_parsed(tool_call))
            valid.append(tool_call)

        on_complete(splitter.message, valid, usage)
