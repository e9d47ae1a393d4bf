"""
Prompt Agent

Non-streaming agent loop: the platform calls the model, this loop runs
the requested tools locally and continues the conversation with their
results until the model stops calling tools.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from graphlit.agent.tools import invoke_tool_handler, parse_arguments, result_content, tool_inputs
from graphlit.agent.types import (
    AgentError,
    AgentMetrics,
    AgentOptions,
    AgentResult,
    ContextManagementAction,
    ToolCallResult,
    ToolHandler,
    UsageInfo,
)
from graphlit.config import Limits
from graphlit.exceptions import GraphlitError
from graphlit.helpers.context_management import estimate_tokens, truncate_tool_result
from graphlit.models import ConversationMessage, ConversationToolCall
from graphlit.resources.base import entity_reference

if TYPE_CHECKING:
    from graphlit.client import AsyncGraphlit

logger = logging.getLogger("graphlit.agent")


class _Run:
    """Mutable state of one ``prompt_agent`` call."""

    def __init__(self) -> None:
        self.conversation_id: Optional[str] = None
        self.message: Optional[ConversationMessage] = None
        self.tool_calls: List[ConversationToolCall] = []
        self.tool_results: List[ToolCallResult] = []
        self.context_actions: List[ContextManagementAction] = []
        self.rounds = 0
        self.llm_ms = 0.0
        self.tool_ms = 0.0
        self.tokens = 0

    def record_response(self, response: Optional[Dict[str, Any]]) -> None:
        raw = (response or {}).get("message")
        self.message = ConversationMessage.from_dict(raw) if raw else None
        if self.message is not None:
            self.tokens += self.message.tokens or 0
            self.tool_calls.extend(self.message.tool_calls)


async def _execute_tool(
    tool_call: ConversationToolCall,
    tool_handlers: Dict[str, ToolHandler],
    options: AgentOptions,
    run: _Run,
) -> Dict[str, str]:
    started = time.monotonic()
    result = ToolCallResult(id=tool_call.id, name=tool_call.name)

    handler = tool_handlers.get(tool_call.name)
    try:
        if handler is None:
            raise GraphlitError(f"No handler found for tool: {tool_call.name}", code="TOOL_ERROR")
        result.arguments = parse_arguments(tool_call.arguments)
        result.result = await asyncio.wait_for(
            invoke_tool_handler(handler, result.arguments),
            timeout=Limits.TOOL_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        result.error = f"Tool {tool_call.name} timed out after {Limits.TOOL_TIMEOUT_SECONDS:.0f}s"
    except Exception as e:
        result.error = str(e)
    result.duration = (time.monotonic() - started) * 1000
    run.tool_results.append(result)

    if result.error:
        logger.warning(f"Tool {tool_call.name} failed: {result.error}")
        content = result.error
    else:
        content = result_content(result.result)
        strategy = options.context_strategy
        if strategy is not None and content:
            original = estimate_tokens(content)
            if original > strategy.tool_result_token_limit:
                content = truncate_tool_result(content, strategy.tool_result_token_limit, tool_call.name)
                run.context_actions.append(
                    ContextManagementAction.truncated(tool_call.name, original, estimate_tokens(content))
                )

    return {"id": tool_call.id, "content": content}


async def _run_rounds(
    client: "AsyncGraphlit",
    prompt: str,
    specification: Optional[Dict[str, Any]],
    tools: Optional[List[Dict[str, Any]]],
    tool_handlers: Dict[str, ToolHandler],
    options: AgentOptions,
    mime_type: Optional[str],
    data: Optional[str],
    correlation_id: Optional[str],
    run: _Run,
) -> None:
    if not run.conversation_id:
        created = await client.conversations.create(
            {
                "name": "Agent conversation",
                "specification": entity_reference((specification or {}).get("id")),
                "tools": tools,
            },
            correlation_id=correlation_id,
        )
        run.conversation_id = (created or {}).get("id")
        if not run.conversation_id:
            raise GraphlitError("Failed to create conversation")

    started = time.monotonic()
    response = await client.conversations.prompt_conversation(
        prompt,
        id=run.conversation_id,
        specification_id=(specification or {}).get("id"),
        mime_type=mime_type,
        data=data,
        tools=tools,
        require_tool=False,
        include_details=False,
        correlation_id=correlation_id,
    )
    run.llm_ms += (time.monotonic() - started) * 1000
    run.record_response(response)
    if run.message is None:
        raise GraphlitError("No message in prompt response")

    while run.message is not None and run.message.has_tool_calls and run.rounds < options.max_tool_rounds:
        run.rounds += 1
        logger.debug(f"Agent round {run.rounds}: {len(run.message.tool_calls)} tool call(s)")

        started = time.monotonic()
        responses = await asyncio.gather(
            *(_execute_tool(tc, tool_handlers, options, run) for tc in run.message.tool_calls)
        )
        run.tool_ms += (time.monotonic() - started) * 1000

        started = time.monotonic()
        response = await client.conversations.continue_conversation(
            run.conversation_id,
            list(responses),
            correlation_id=correlation_id,
        )
        run.llm_ms += (time.monotonic() - started) * 1000
        run.record_response(response)

    if run.message is not None and run.message.has_tool_calls:
        logger.warning(f"Agent stopped after {run.rounds} tool rounds (limit {options.max_tool_rounds})")


async def prompt_agent(
    client: "AsyncGraphlit",
    prompt: str,
    conversation_id: Optional[str] = None,
    specification: Optional[Dict[str, Any]] = None,
    tools: Optional[List[Any]] = None,
    tool_handlers: Optional[Dict[str, ToolHandler]] = None,
    options: Optional[AgentOptions] = None,
    mime_type: Optional[str] = None,
    data: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> AgentResult:
    """
    Prompt a conversation and execute tool calls until the model answers.

    Args:
        client: Async Graphlit client
        prompt: User prompt
        conversation_id: Existing conversation; a new one is created if omitted
        specification: Specification dict (only ``id`` is used)
        tools: Tool definitions the model may call
        tool_handlers: Tool name to handler, sync or async
        options: Round limit, timeout and context strategy
        mime_type: MIME type of an attached image
        data: Base64 image data
        correlation_id: Correlation ID for usage tracking

    Returns:
        AgentResult. Failures do not raise; ``error`` is set instead.
    """
    options = options or AgentOptions()
    tool_handlers = tool_handlers or {}
    run = _Run()
    run.conversation_id = conversation_id
    started = time.monotonic()

    error: Optional[AgentError] = None
    try:
        await asyncio.wait_for(
            _run_rounds(
                client,
                prompt,
                specification,
                tool_inputs(tools),
                tool_handlers,
                options,
                mime_type,
                data,
                correlation_id,
                run,
            ),
            timeout=options.timeout,
        )
    except asyncio.TimeoutError:
        logger.error(f"Agent timed out after {options.timeout}s")
        error = AgentError(message=f"Agent timed out after {options.timeout}s", code="TIMEOUT", recoverable=True)
    except GraphlitError as e:
        logger.error(f"Agent failed: {e.message}")
        error = AgentError(message=e.message, code=e.code or "UNKNOWN", recoverable=e.code == "RATE_LIMIT")
    except Exception as e:
        logger.error(f"Agent failed: {e}")
        error = AgentError(message=str(e), code="UNKNOWN", recoverable=False)

    metrics = AgentMetrics(
        total_time=(time.monotonic() - started) * 1000,
        llm_time=run.llm_ms,
        tool_time=run.tool_ms,
        tool_executions=len(run.tool_results),
        rounds=run.rounds,
    )

    if error is not None:
        return AgentResult(
            message="",
            conversation_id=run.conversation_id or "",
            tool_calls=run.tool_calls,
            tool_results=run.tool_results,
            metrics=metrics,
            context_actions=run.context_actions,
            error=error,
        )

    return AgentResult(
        message=(run.message.message or "") if run.message else "",
        conversation_id=run.conversation_id or "",
        conversation_message=run.message,
        tool_calls=run.tool_calls,
        tool_results=run.tool_results,
        metrics=metrics,
        usage=UsageInfo(
            completion_tokens=run.tokens,
            total_tokens=run.tokens,
            model=run.message.model if run.message else None,
        ),
        context_actions=run.context_actions,
    )
