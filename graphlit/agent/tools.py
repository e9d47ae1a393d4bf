"""Tool handler invocation shared by the agents."""

from __future__ import annotations

import asyncio
import inspect
import json
from typing import Any, Dict, List, Optional

from graphlit.agent.types import ToolHandler
from graphlit.models import to_tool_definitions


def _accepts_abort_event(handler: ToolHandler) -> bool:
    try:
        params = inspect.signature(handler).parameters.values()
    except (TypeError, ValueError):
        return False
    positional = [
        p for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    return len(positional) >= 2 or any(p.kind == inspect.Parameter.VAR_POSITIONAL for p in params)


def _is_async_handler(handler: ToolHandler) -> bool:
    return inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
        getattr(handler, "__call__", None)
    )


async def invoke_tool_handler(
    handler: ToolHandler,
    args: Any,
    abort_event: Optional[asyncio.Event] = None,
) -> Any:
    """
    Call a sync or async handler with ``args`` (and ``abort_event`` when it takes one).

    Sync handlers run in a worker thread.
    """
    call_args = (args, abort_event) if _accepts_abort_event(handler) else (args,)
    if _is_async_handler(handler):
        result = handler(*call_args)
    else:
        result = await asyncio.to_thread(handler, *call_args)
    if inspect.isawaitable(result):
        result = await result
    return result


def parse_arguments(arguments: Optional[str]) -> Dict[str, Any]:
    """Parse tool call arguments; empty arguments are ``{}``."""
    return json.loads(arguments) if arguments else {}


def result_content(result: Any) -> str:
    """Text sent back to the model for a tool result."""
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


def tool_inputs(tools: Optional[List[Any]]) -> Optional[List[Dict[str, Any]]]:
    """``ToolDefinitionInput`` dicts for the API from definitions or dicts."""
    if not tools:
        return None
    return [t.to_input() for t in to_tool_definitions(tools)]
