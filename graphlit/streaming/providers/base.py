"""
Streaming Provider Base

Every provider adapter calls one LLM SDK directly, reports progress as
``StreamEvent`` objects and hands the finished round to ``on_complete``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from graphlit.exceptions import (
    AgentAbortedError,
    GraphlitError,
    ProviderAuthenticationError,
    ProviderError,
    ProviderRateLimitError,
    ProviderUnavailableError,
)
from graphlit.model_mapping import get_model_name, get_service_block
from graphlit.models import ConversationToolCall, ModelServiceTypes, ToolDefinition, to_tool_definitions
from graphlit.streaming.events import StreamEvent

logger = logging.getLogger("graphlit.streaming")


OnEvent = Callable[[StreamEvent], None]
OnComplete = Callable[[str, List[ConversationToolCall], Optional[Dict[str, Any]]], None]


def is_valid_json(text: str) -> bool:
    try:
        json.loads(text)
        return True
    except (TypeError, ValueError):
        return False


def parse_schema(tool: ToolDefinition) -> Dict[str, Any]:
    return json.loads(tool.schema) if tool.schema else {}


def error_status(error: BaseException) -> Optional[int]:
    """Best-effort HTTP status of an SDK exception."""
    for attr in ("status_code", "status", "http_status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def usage_to_dict(usage: Any) -> Optional[Dict[str, Any]]:
    """Convert an SDK usage object (pydantic model, dataclass or dict) to a dict."""
    if usage is None:
        return None
    if isinstance(usage, dict):
        return usage
    for method in ("model_dump", "to_dict", "dict"):
        fn = getattr(usage, method, None)
        if callable(fn):
            return fn()
    return {k: v for k, v in vars(usage).items() if not k.startswith("_")}


class BaseStreamProvider(ABC):
    """
    Base class for streaming LLM providers.

    Subclasses set ``service_type``, ``name`` and ``package`` and implement
    ``_create_client`` and ``_stream``.

    Args:
        client: Pre-configured SDK client; created lazily when omitted
        api_key: API key for the lazily created client
    """

    service_type: ModelServiceTypes
    name: str = "provider"
    package: str = ""
    api_key_env: str = ""

    def __init__(self, client: Optional[Any] = None, api_key: Optional[str] = None):
        self._client = client
        self._api_key = api_key

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key or (os.environ.get(self.api_key_env) if self.api_key_env else None)

    async def _get_client(self) -> Any:
        """Get or create the SDK client."""
        if self._client is None:
            try:
                self._client = self._create_client()
            except ImportError:
                raise ImportError(
                    f"{self.package} package required. Install with: pip install {self.package}"
                )
        return self._client

    @abstractmethod
    def _create_client(self) -> Any:
        """Import the SDK and build a default client."""

    async def stream(
        self,
        specification: Dict[str, Any],
        messages: List[Any],
        tools: Optional[List[Any]],
        on_event: OnEvent,
        on_complete: OnComplete,
        abort_event: Optional[asyncio.Event] = None,
    ) -> None:
        """
        Stream one model round.

        Args:
            specification: Full specification dict
            messages: Conversation messages (``ConversationMessage`` or dicts)
            tools: Tool definitions offered to the model
            on_event: Receives provider events as they arrive
            on_complete: Called with ``(message, tool_calls, usage)``
            abort_event: Set to cancel the stream

        Raises:
            AgentAbortedError: If ``abort_event`` was set
            ProviderError: On provider failures
        """
        self.check_abort(abort_event)
        client = await self._get_client()
        started = time.monotonic()

        try:
            await self._stream(
                client,
                specification,
                messages,
                to_tool_definitions(tools),
                on_event,
                on_complete,
                abort_event,
            )
        except GraphlitError:
            raise
        except Exception as e:
            logger.error(f"{self.name} streaming error: {e}")
            raise self.map_error(e) from e

        logger.debug(f"{self.name} round finished in {(time.monotonic() - started) * 1000:.0f}ms")

    @abstractmethod
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
        ...

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def check_abort(abort_event: Optional[asyncio.Event]) -> None:
        if abort_event is not None and abort_event.is_set():
            raise AgentAbortedError()

    def model_name(self, specification: Dict[str, Any]) -> str:
        model = get_model_name(specification)
        if not model:
            raise ProviderError(
                f"No model name found for specification: {specification.get('name')} "
                f"(service: {specification.get('serviceType')})",
                self.name,
            )
        return model

    @staticmethod
    def settings(specification: Dict[str, Any]) -> Dict[str, Any]:
        """The provider block (temperature, token limits, ...) of the specification."""
        return get_service_block(specification)

    def map_error(self, error: Exception) -> Exception:
        """Translate an SDK exception into a ``ProviderError``."""
        status = error_status(error)
        message = str(error)
        code = getattr(error, "code", None)

        if status == 429 or code == "rate_limit_exceeded" or "rate limit" in message.lower():
            return ProviderRateLimitError(f"{self.name} rate limit exceeded", self.name)
        if status == 401:
            return ProviderAuthenticationError(f"{self.name} authentication failed: {message}", self.name)
        if status == 503 or isinstance(error, (ConnectionError, asyncio.TimeoutError)):
            return ProviderUnavailableError(f"{self.name} network error: {message}", self.name)
        return ProviderError(f"{self.name} streaming error: {message}", self.name, status_code=status)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(client={'set' if self._client else 'lazy'})"
