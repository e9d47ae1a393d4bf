"""
Context Window Management

Token estimation, budget tracking and the two trimming strategies used
by streaming agents: truncating oversized tool results and windowing
old tool calling rounds out of the message list.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from graphlit.models import BaseModel, ConversationMessage, ConversationRoleTypes
from graphlit.streaming.events import ContextWindowUsage

logger = logging.getLogger("graphlit.agent")

CHARS_PER_TOKEN = 3.5
DEFAULT_COMPLETION_TOKEN_LIMIT = 4096
BUDGET_CEILING = 0.95

TokenEncoder = Callable[[str], int]

_encoder: Optional[TokenEncoder] = None


# =============================================================================
# Token estimation
# =============================================================================

def set_token_encoder(encoder: Optional[TokenEncoder]) -> None:
    """Install a token counting function, or ``None`` for the heuristic."""
    global _encoder
    _encoder = encoder


def use_tiktoken(encoding: str = "o200k_base") -> None:
    """
    Count tokens with tiktoken instead of the character heuristic.

    Raises:
        ImportError: If tiktoken is not installed
    """
    try:
        import tiktoken
    except ImportError:
        raise ImportError(
            "tiktoken package required. Install with: pip install graphlit-client[tokens]"
        )

    enc = tiktoken.get_encoding(encoding)
    set_token_encoder(lambda text: len(enc.encode(text)))
    logger.debug(f"tiktoken encoder loaded ({encoding})")


def is_accurate_token_counting() -> bool:
    return _encoder is not None


def estimate_tokens(text: Optional[str]) -> int:
    """Token count of ``text``: the installed encoder, else ceil(chars / 3.5)."""
    if not text:
        return 0
    if _encoder is not None:
        return _encoder(text)
    return math.ceil(len(text) / CHARS_PER_TOKEN)


# =============================================================================
# Strategy and budget
# =============================================================================

@dataclass
class ContextStrategy(BaseModel):
    """
    Context window limits applied during agentic tool loops.

    Attributes:
        tool_result_token_limit: Max tokens for a single tool result
        tool_round_limit: Tool rounds kept when windowing
        rebudget_threshold: Budget fraction that triggers windowing
    """
    tool_result_token_limit: int = 8192
    tool_round_limit: int = 10
    rebudget_threshold: float = 0.75


DEFAULT_CONTEXT_STRATEGY = ContextStrategy()


class TokenBudgetTracker:
    """
    Tracks token usage against a model's context budget.

    Seeded with server-side token counts from ``formatConversation``
    details, then grows by estimates as the tool loop adds messages.
    """

    def __init__(self, token_limit: int, completion_token_limit: int, used_tokens: int = 0):
        self.token_limit = token_limit
        self.completion_token_limit = completion_token_limit
        self.used_tokens = used_tokens

    @classmethod
    def from_details(cls, details: Optional[Dict[str, Any]]) -> Optional["TokenBudgetTracker"]:
        """Build a tracker from conversation details, or None without a token limit."""
        if not details or not details.get("tokenLimit"):
            return None
        used = sum((m or {}).get("tokens") or 0 for m in details.get("messages") or [])
        return cls(
            details["tokenLimit"],
            details.get("completionTokenLimit") or DEFAULT_COMPLETION_TOKEN_LIMIT,
            used,
        )

    @property
    def budget(self) -> int:
        return math.floor((self.token_limit - self.completion_token_limit) * BUDGET_CEILING)

    @property
    def remaining(self) -> int:
        return max(0, self.budget - self.used_tokens)

    @property
    def usage_percent(self) -> int:
        if self.budget <= 0:
            return 100
        return round(self.used_tokens / self.budget * 100)

    @property
    def max_tokens(self) -> int:
        return self.token_limit

    def add_message(self, text: Optional[str], server_token_count: Optional[int] = None) -> None:
        self.used_tokens += server_token_count if server_token_count is not None else estimate_tokens(text)

    def needs_rebudget(self, threshold: float) -> bool:
        return self.usage_percent >= threshold * 100

    def reset_from_messages(self, messages: List[ConversationMessage]) -> None:
        self.used_tokens = sum(m.tokens or estimate_tokens(m.message) for m in messages)

    def usage_snapshot(self) -> ContextWindowUsage:
        return ContextWindowUsage(
            used_tokens=self.used_tokens,
            max_tokens=self.token_limit,
            percentage=self.usage_percent,
            remaining_tokens=self.remaining,
        )

    def __repr__(self) -> str:
        return f"TokenBudgetTracker(used={self.used_tokens}, budget={self.budget})"


# =============================================================================
# Trimming
# =============================================================================

def truncate_tool_result(result: Any, max_tokens: int, tool_name: str) -> str:
    """
    Truncate a tool result to roughly ``max_tokens``.

    JSON is cut at the last complete object or array element and plain
    text at the last newline, when those fall in the second half of the
    allowed length. A marker tells the model data was removed.
    """
    text = result if isinstance(result, str) else json.dumps(result, default=str)
    if not text:
        return ""

    original_tokens = estimate_tokens(text)
    if original_tokens <= max_tokens:
        return text

    chars_per_token = len(text) / original_tokens if _encoder is not None else CHARS_PER_TOKEN
    max_chars = math.floor(max_tokens * chars_per_token)
    truncated = text[:max_chars]

    if text.startswith(("{", "[")):
        last_complete = max(truncated.rfind(p) for p in ("},", "}\n", "],", "]\n"))
        if last_complete > max_chars * 0.5:
            truncated = truncated[:last_complete + 1]
    else:
        last_newline = truncated.rfind("\n")
        if last_newline > max_chars * 0.5:
            truncated = truncated[:last_newline]

    truncated_tokens = estimate_tokens(truncated)
    return (
        f"{truncated}\n\n[truncated by {tool_name}: original ~{original_tokens} tokens, "
        f"showing first ~{truncated_tokens} tokens]"
    )


def _tool_round_start(messages: List[ConversationMessage]) -> int:
    for i, message in enumerate(messages):
        if message.role == ConversationRoleTypes.ASSISTANT and message.tool_calls:
            return i
    return len(messages)


def _group_rounds(messages: List[ConversationMessage]) -> List[List[ConversationMessage]]:
    rounds: List[List[ConversationMessage]] = []
    current: List[ConversationMessage] = []
    for message in messages:
        if message.role == ConversationRoleTypes.ASSISTANT and current:
            rounds.append(current)
            current = [message]
        else:
            current.append(message)
    if current:
        rounds.append(current)
    return rounds


def count_tool_rounds(messages: List[ConversationMessage]) -> int:
    return len(_group_rounds(messages[_tool_round_start(messages):]))


def window_tool_rounds(messages: List[ConversationMessage], keep_rounds: int) -> List[ConversationMessage]:
    """
    Drop all but the last ``keep_rounds`` tool rounds.

    The header (system prompt, history and the user prompt, up to the
    first assistant message with tool calls) is always kept, followed by
    a system note saying how many rounds were removed.
    """
    header_end = _tool_round_start(messages)
    rounds = _group_rounds(messages[header_end:])
    if len(rounds) <= keep_rounds:
        return messages

    dropped = len(rounds) - keep_rounds
    kept = rounds[-keep_rounds:] if keep_rounds > 0 else []
    note = ConversationMessage(
        role=ConversationRoleTypes.SYSTEM,
        message=(
            f"[Context management: {dropped} earlier tool calling round(s) were removed to stay within "
            f"token limits. The most recent {keep_rounds} round(s) are preserved below.]"
        ),
    )
    logger.info(f"Windowed tool rounds: dropped {dropped}, kept {len(kept)}")
    return messages[:header_end] + [note] + [m for r in kept for m in r]
