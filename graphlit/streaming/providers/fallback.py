"""Non-streaming fallback for services without a local streaming provider."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from graphlit.streaming.events import StreamEvent
from graphlit.streaming.providers.base import OnEvent

logger = logging.getLogger("graphlit.streaming")


async def stream_with_fallback(
    client: Any,
    prompt: str,
    conversation_id: str,
    specification: Optional[Dict[str, Any]],
    tools: Optional[List[Dict[str, Any]]],
    on_event: OnEvent,
    mime_type: Optional[str] = None,
    data: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> str:
    """
    Prompt the conversation server-side and replay the answer word by word.

    Returns:
        The complete message text, or an empty string when the model
        returned nothing.
    """
    logger.info(f"Streaming not available for conversation {conversation_id}, using promptConversation")

    response = await client.conversations.prompt_conversation(
        prompt,
        id=conversation_id,
        specification_id=(specification or {}).get("id"),
        mime_type=mime_type,
        data=data,
        tools=tools,
        require_tool=False,
        include_details=False,
        correlation_id=correlation_id,
    )

    message = ((response or {}).get("message") or {}).get("message")
    if not message:
        return ""

    for i, word in enumerate(message.split(" ")):
        on_event(StreamEvent.token_delta(word if i == 0 else " " + word))
    on_event(StreamEvent.full_message(message))
    return message
