"""
LLM Message Formatters

Convert Graphlit conversation messages into the native message shapes of
each provider SDK.

Every formatter skips messages without a role and messages that carry
neither text nor tool calls.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from graphlit.models import (
    ConversationMessage,
    ConversationRoleTypes,
    ConversationToolCall,
    to_conversation_messages,
)

logger = logging.getLogger("graphlit.streaming")

THINKING_BLOCK = re.compile(r'^<thinking(?: signature="([^"]*)")?>(.*?)</thinking>\s*', re.S)


def _parse_arguments(tool_call: ConversationToolCall) -> Any:
    if not tool_call.arguments:
        return {}
    try:
        return json.loads(tool_call.arguments)
    except json.JSONDecodeError:
        logger.warning(f"Invalid JSON arguments for tool {tool_call.name}, sending empty input")
        return {}


def _prepared(messages: List[Any], allow_images: bool = False) -> List[Tuple[ConversationMessage, str]]:
    """Yield ``(message, trimmed_text)`` for messages worth sending."""
    prepared = []
    for message in to_conversation_messages(messages):
        if not message.role:
            continue
        text = (message.message or "").strip()
        has_image = allow_images and bool(message.mime_type and message.data)
        if not text and not message.has_tool_calls and not has_image:
            continue
        prepared.append((message, text))
    return prepared


def _data_uri(message: ConversationMessage) -> str:
    return f"data:{message.mime_type};base64,{message.data}"


# =============================================================================
# OpenAI (also Groq, Cerebras, Deepseek and xAI)
# =============================================================================

def format_messages_for_openai(messages: List[Any]) -> List[Dict[str, Any]]:
    """Format messages for the OpenAI chat completions API."""
    formatted: List[Dict[str, Any]] = []

    for message, text in _prepared(messages):
        role = message.role

        if role == ConversationRoleTypes.SYSTEM:
            formatted.append({"role": "system", "content": text})

        elif role == ConversationRoleTypes.ASSISTANT:
            entry: Dict[str, Any] = {"role": "assistant"}
            if text:
                entry["content"] = text
            if message.tool_calls:
                entry["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.name, "arguments": tc.arguments},
                    }
                    for tc in message.tool_calls
                ]
            formatted.append(entry)

        elif role == ConversationRoleTypes.TOOL:
            formatted.append({
                "role": "tool",
                "content": text,
                "tool_call_id": message.tool_call_id or "",
            })

        elif message.mime_type and message.data:
            parts: List[Dict[str, Any]] = []
            if text:
                parts.append({"type": "text", "text": text})
            parts.append({"type": "image_url", "image_url": {"url": _data_uri(message)}})
            formatted.append({"role": "user", "content": parts})

        else:
            formatted.append({"role": "user", "content": text})

    return formatted


# =============================================================================
# Anthropic
# =============================================================================

def format_messages_for_anthropic(messages: List[Any]) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    """
    Format messages for the Anthropic messages API.

    Returns:
        ``(system_prompt, messages)``. Tool results become user messages
        with ``tool_result`` blocks; consecutive results share one message.
    """
    system: Optional[str] = None
    formatted: List[Dict[str, Any]] = []

    for message, text in _prepared(messages):
        role = message.role

        if role == ConversationRoleTypes.SYSTEM:
            system = text

        elif role == ConversationRoleTypes.ASSISTANT:
            content: List[Dict[str, Any]] = []
            thinking = THINKING_BLOCK.match(text)
            if thinking:
                block = {"type": "thinking", "thinking": thinking.group(2)}
                if thinking.group(1):
                    block["signature"] = thinking.group(1)
                content.append(block)
                text = text[thinking.end():].strip()
            if text:
                content.append({"type": "text", "text": text})
            for tc in message.tool_calls:
                content.append({
                    "type": "tool_use",
                    "id": tc.id,
                    "name": tc.name,
                    "input": _parse_arguments(tc),
                })
            formatted.append({"role": "assistant", "content": content})

        elif role == ConversationRoleTypes.TOOL:
            block = {
                "type": "tool_result",
                "tool_use_id": message.tool_call_id or "",
                "content": text,
            }
            previous = formatted[-1] if formatted else None
            if (
                previous
                and previous["role"] == "user"
                and isinstance(previous["content"], list)
                and all(b.get("type") == "tool_result" for b in previous["content"])
            ):
                previous["content"].append(block)
            else:
                formatted.append({"role": "user", "content": [block]})

        elif message.mime_type and message.data:
            parts: List[Dict[str, Any]] = []
            if text:
                parts.append({"type": "text", "text": text})
            parts.append({
                "type": "image",
                "source": {"type": "base64", "media_type": message.mime_type, "data": message.data},
            })
            formatted.append({"role": "user", "content": parts})

        else:
            formatted.append({"role": "user", "content": text})

    return system, formatted


# =============================================================================
# Google
# =============================================================================

def format_messages_for_google(messages: List[Any]) -> List[Dict[str, Any]]:
    """
    Format messages as Gemini ``user``/``model`` turns.

    The system prompt becomes a leading user turn. Image-only messages are
    kept.
    """
    formatted: List[Dict[str, Any]] = []

    for message, text in _prepared(messages, allow_images=True):
        role = message.role

        if role == ConversationRoleTypes.SYSTEM:
            formatted.append({"role": "user", "parts": [{"text": text}]})

        elif role == ConversationRoleTypes.ASSISTANT:
            parts: List[Dict[str, Any]] = []
            if text:
                parts.append({"text": text})
            for tc in message.tool_calls:
                parts.append({"function_call": {"name": tc.name, "args": _parse_arguments(tc)}})
            formatted.append({"role": "model", "parts": parts})

        elif message.mime_type and message.data:
            parts = []
            if text:
                parts.append({"text": text})
            parts.append({"inline_data": {"mime_type": message.mime_type, "data": message.data}})
            formatted.append({"role": "user", "parts": parts})

        else:
            formatted.append({"role": "user", "parts": [{"text": text}]})

    return formatted


# =============================================================================
# Cohere
# =============================================================================

def format_messages_for_cohere(messages: List[Any]) -> List[Dict[str, Any]]:
    """Format messages for the Cohere v2 chat API."""
    formatted: List[Dict[str, Any]] = []

    for message, text in _prepared(messages):
        role = message.role

        if role == ConversationRoleTypes.SYSTEM:
            formatted.append({"role": "system", "content": text})

        elif role == ConversationRoleTypes.ASSISTANT:
            entry: Dict[str, Any] = {"role": "assistant"}
            if message.tool_calls:
                if text:
                    entry["tool_plan"] = text
                entry["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.name, "arguments": tc.arguments or "{}"},
                    }
                    for tc in message.tool_calls
                ]
            else:
                entry["content"] = text
            formatted.append(entry)

        elif role == ConversationRoleTypes.TOOL:
            formatted.append({
                "role": "tool",
                "tool_call_id": message.tool_call_id or "",
                "content": text,
            })

        else:
            formatted.append({"role": "user", "content": text})

    return formatted


# =============================================================================
# Mistral
# =============================================================================

def format_messages_for_mistral(messages: List[Any]) -> List[Dict[str, Any]]:
    """Format messages for the Mistral chat API."""
    formatted: List[Dict[str, Any]] = []

    for message, text in _prepared(messages):
        role = message.role

        if role == ConversationRoleTypes.SYSTEM:
            formatted.append({"role": "system", "content": text})

        elif role == ConversationRoleTypes.ASSISTANT:
            entry: Dict[str, Any] = {"role": "assistant", "content": text}
            if message.tool_calls:
                entry["tool_calls"] = [
                    {"id": tc.id, "function": {"name": tc.name, "arguments": tc.arguments}}
                    for tc in message.tool_calls
                ]
            formatted.append(entry)

        elif role == ConversationRoleTypes.TOOL:
            formatted.append({
                "role": "tool",
                "content": text,
                "tool_call_id": message.tool_call_id or "",
            })

        elif message.mime_type and message.data:
            parts: List[Dict[str, Any]] = []
            if text:
                parts.append({"type": "text", "text": text})
            parts.append({"type": "image_url", "image_url": _data_uri(message)})
            formatted.append({"role": "user", "content": parts})

        else:
            formatted.append({"role": "user", "content": text})

    return formatted


# =============================================================================
# Bedrock
# =============================================================================

def format_messages_for_bedrock(messages: List[Any]) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    """
    Format messages as Bedrock Converse content blocks.

    Returns:
        ``(system_prompt, messages)``. Images are decoded to raw bytes, as
        boto3 expects. Tool results are ``toolResult`` blocks in user turns.
    """
    system: Optional[str] = None
    formatted: List[Dict[str, Any]] = []

    for message, text in _prepared(messages):
        role = message.role

        if role == ConversationRoleTypes.SYSTEM:
            system = text

        elif role == ConversationRoleTypes.ASSISTANT:
            content: List[Dict[str, Any]] = []
            if text:
                content.append({"text": text})
            for tc in message.tool_calls:
                content.append({
                    "toolUse": {"toolUseId": tc.id, "name": tc.name, "input": _parse_arguments(tc)}
                })
            formatted.append({"role": "assistant", "content": content})

        elif role == ConversationRoleTypes.TOOL:
            block = {
                "toolResult": {
                    "toolUseId": message.tool_call_id or "",
                    "content": [{"text": text}],
                }
            }
            previous = formatted[-1] if formatted else None
            if previous and previous["role"] == "user" and all("toolResult" in b for b in previous["content"]):
                previous["content"].append(block)
            else:
                formatted.append({"role": "user", "content": [block]})

        elif message.mime_type and message.data:
            content = []
            if text:
                content.append({"text": text})
            content.append({
                "image": {
                    "format": message.mime_type.split("/")[-1],
                    "source": {"bytes": base64.b64decode(message.data)},
                }
            })
            formatted.append({"role": "user", "content": content})

        else:
            formatted.append({"role": "user", "content": [{"text": text}]})

    return system, formatted
