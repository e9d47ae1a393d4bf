"""
Streaming Agent

Calls the model locally through a provider SDK, streams UI events while it
answers, executes tool calls between rounds and finally records the
completion on the Graphlit conversation.

Example:
    >>> async def on_event(event):
    ...     if event.type == "message_update":
    ...         print(event.message.message)
    >>> await client.stream_agent("What changed in Q3?", on_event, specification=spec)
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from graphlit.agent.tools import invoke_tool_handler, parse_arguments, result_content, tool_inputs
from graphlit.agent.types import (
    ContextManagementAction,
    StreamAgentOptions,
    StreamingLoopResult,
    ToolHandler,
)
from graphlit.config import Limits
from graphlit.exceptions import AgentAbortedError, GraphlitError, StreamingNotSupportedError
from graphlit.helpers.context_management import (
    DEFAULT_CONTEXT_STRATEGY,
    TokenBudgetTracker,
    count_tool_rounds,
    estimate_tokens,
    truncate_tool_result,
    window_tool_rounds,
)
from graphlit.model_mapping import get_model_name, get_service_block, get_service_type
from graphlit.models import (
    ConversationMessage,
    ConversationRoleTypes,
    ConversationToolCall,
    to_conversation_messages,
)
from graphlit.resources.base import entity_reference
from graphlit.streaming.events import AgentErrorInfo, AgentStreamEvent, ErrorEvent, StreamEvent, StreamEventType
from graphlit.streaming.providers import BaseStreamProvider, StreamProviderFactory, stream_with_fallback
from graphlit.streaming.ui_event_adapter import UIEventAdapter

if TYPE_CHECKING:
    from graphlit.client import AsyncGraphlit

logger = logging.getLogger("graphlit.agent")

OnAgentEvent = Callable[[AgentStreamEvent], None]

INVALID_TOOL_ARGUMENTS = "Invalid tool call arguments"


class _Round:
    """Collects what ``on_complete`` reports for one provider round."""

    def __init__(self) -> None:
        self.message = ""
        self.tool_calls: List[ConversationToolCall] = []
        self.tokens: Optional[int] = None

    def on_complete(self, message: str, tool_calls: List[ConversationToolCall], usage: Optional[Dict[str, Any]]) -> None:
        self.message = message
        self.tool_calls = list(tool_calls or [])


def _append_instructions(messages: List[ConversationMessage], instructions: Optional[str]) -> None:
    if not instructions:
        return
    for message in reversed(messages):
        if message.role == ConversationRoleTypes.USER:
            message.message = f"{message.message or ''}\n\n{instructions}"
            return
    messages.append(ConversationMessage(role=ConversationRoleTypes.USER, message=instructions))


async def _build_messages(
    client: "AsyncGraphlit",
    conversation_id: str,
    specification: Optional[Dict[str, Any]],
    formatted_prompt: str,
) -> List[ConversationMessage]:
    messages: List[ConversationMessage] = []

    system_prompt = (specification or {}).get("systemPrompt")
    if system_prompt:
        messages.append(ConversationMessage(role=ConversationRoleTypes.SYSTEM, message=system_prompt))

    # formatConversation has already added the current prompt to the history
    conversation = await client.conversations.get(conversation_id)
    history = to_conversation_messages((conversation or {}).get("messages"))
    if history:
        messages.extend(history)
    else:
        messages.append(ConversationMessage(role=ConversationRoleTypes.USER, message=formatted_prompt))
    return messages


def _fail_dropped_tool_calls(adapter: UIEventAdapter, tool_calls: List[ConversationToolCall]) -> None:
    """Fail tool calls the UI saw but the provider dropped from the round."""
    kept = {tc.id for tc in tool_calls}
    for dropped in adapter.pending_tool_calls:
        if dropped.id not in kept:
            logger.warning(f"Tool call {dropped.name} ({dropped.id}) dropped with invalid arguments")
            adapter.set_tool_result(dropped.id, error=INVALID_TOOL_ARGUMENTS)


async def _execute_tools(
    tool_calls: List[ConversationToolCall],
    tool_handlers: Dict[str, ToolHandler],
    adapter: UIEventAdapter,
    options: StreamAgentOptions,
    messages: List[ConversationMessage],
    result: StreamingLoopResult,
) -> List[ConversationMessage]:
    """Run each tool call in order; returns the TOOL messages added."""
    strategy = options.context_strategy or DEFAULT_CONTEXT_STRATEGY
    tracked = {tc.id for tc in adapter.tool_calls}
    added: List[ConversationMessage] = []

    for tool_call in tool_calls:
        BaseStreamProvider.check_abort(options.abort_event)
        result.tool_call_count += 1
        result.tool_call_names.append(tool_call.name)

        if tool_call.id not in tracked:
            adapter.handle_event(StreamEvent.tool_start(tool_call.id, tool_call.name))
            adapter.handle_event(StreamEvent.tool_parsed(tool_call))

        handler = tool_handlers.get(tool_call.name)
        try:
            if handler is None:
                raise GraphlitError(f"No handler found for tool: {tool_call.name}", code="TOOL_ERROR")
            args = parse_arguments(tool_call.arguments)
            output = await asyncio.wait_for(
                invoke_tool_handler(handler, args, options.abort_event),
                timeout=Limits.TOOL_TIMEOUT_SECONDS,
            )
        except AgentAbortedError:
            raise
        except Exception as e:
            if isinstance(e, asyncio.TimeoutError):
                error = f"Tool {tool_call.name} timed out after {Limits.TOOL_TIMEOUT_SECONDS:.0f}s"
            else:
                error = e.message if isinstance(e, GraphlitError) else str(e)
            logger.error(f"Tool execution error for {tool_call.name}: {error}")
            adapter.set_tool_result(tool_call.id, error=error)
            result.errors.append(error)
            content = f"Error: {error}"
        else:
            adapter.set_tool_result(tool_call.id, output)
            content = result_content(output)
            original = estimate_tokens(content)
            if original > strategy.tool_result_token_limit:
                content = truncate_tool_result(content, strategy.tool_result_token_limit, tool_call.name)
                result.context_actions.append(
                    ContextManagementAction.truncated(tool_call.name, original, estimate_tokens(content))
                )

        message = ConversationMessage(
            role=ConversationRoleTypes.TOOL,
            message=content,
            tool_call_id=tool_call.id,
        )
        messages.append(message)
        added.append(message)

    return added


async def execute_streaming_loop(
    client: "AsyncGraphlit",
    prompt: str,
    conversation_id: str,
    specification: Optional[Dict[str, Any]],
    tools: Optional[List[Dict[str, Any]]],
    tool_handlers: Dict[str, ToolHandler],
    adapter: UIEventAdapter,
    options: StreamAgentOptions,
    mime_type: Optional[str] = None,
    data: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> StreamingLoopResult:
    """
    The tool calling loop of :func:`stream_agent`.

    Raises:
        AgentAbortedError: If the abort event is set between rounds
        GraphlitError: If formatting or a provider round fails
    """
    result = StreamingLoopResult()
    strategy = options.context_strategy or DEFAULT_CONTEXT_STRATEGY
    adapter.handle_event(StreamEvent.start(conversation_id))

    formatted = await client.conversations.format_conversation(
        prompt,
        id=conversation_id,
        specification_id=(specification or {}).get("id"),
        tools=tools,
        include_details=True,
        correlation_id=correlation_id,
    )
    formatted_prompt = ((formatted or {}).get("message") or {}).get("message")
    if not formatted_prompt:
        raise GraphlitError("Failed to format conversation")

    messages = await _build_messages(client, conversation_id, specification, formatted_prompt)
    _append_instructions(messages, options.instructions)

    tracker = TokenBudgetTracker.from_details((formatted or {}).get("details"))
    if tracker is not None:
        result.context_window = tracker.usage_snapshot()
        adapter.handle_event(StreamEvent.context_window(result.context_window))

    provider: Optional[BaseStreamProvider] = None
    service_type = get_service_type(specification)
    if service_type and StreamProviderFactory.supports(service_type) and client.supports_streaming(specification):
        provider = StreamProviderFactory.create(service_type, client.get_provider_client(service_type))

    def on_provider_event(event: StreamEvent) -> None:
        # Completion is emitted once, after the last round
        if event.type == StreamEventType.COMPLETE:
            current.tokens = event.tokens
            return
        adapter.handle_event(event)

    rounds = 0
    full_message = ""
    recorded = False
    current = _Round()

    while rounds < options.max_tool_rounds:
        BaseStreamProvider.check_abort(options.abort_event)
        current = _Round()

        if provider is None:
            full_message = await stream_with_fallback(
                client,
                prompt,
                conversation_id,
                specification,
                tools,
                adapter.handle_event,
                mime_type=mime_type,
                data=data,
                correlation_id=correlation_id,
            )
            # promptConversation has already stored the answer
            recorded = True
            break

        def on_complete(message: str, calls: List[ConversationToolCall], usage: Optional[Dict[str, Any]]) -> None:
            current.on_complete(message, calls, usage)
            if usage:
                adapter.set_usage_data(usage)

        await provider.stream(
            specification or {},
            messages,
            tools,
            on_provider_event,
            on_complete,
            abort_event=options.abort_event,
        )

        full_message = current.message
        if adapter.reasoning_content:
            adapter.set_round_thinking_content(adapter.reasoning_content)
        _fail_dropped_tool_calls(adapter, current.tool_calls)

        if not current.tool_calls:
            break

        assistant = ConversationMessage(
            role=ConversationRoleTypes.ASSISTANT,
            message=current.message,
            tool_calls=current.tool_calls,
        )
        messages.append(assistant)
        tool_messages = await _execute_tools(
            current.tool_calls, tool_handlers, adapter, options, messages, result
        )
        rounds += 1

        if tracker is not None:
            tracker.add_message(assistant.message, current.tokens)
            for message in tool_messages:
                tracker.add_message(message.message)

            if tracker.needs_rebudget(strategy.rebudget_threshold):
                before = count_tool_rounds(messages)
                messages = window_tool_rounds(messages, strategy.tool_round_limit)
                after = count_tool_rounds(messages)
                if after < before:
                    result.context_actions.append(ContextManagementAction.windowed(before - after, after))
                    tracker.reset_from_messages(messages)

            result.context_window = tracker.usage_snapshot()
            adapter.handle_event(StreamEvent.context_window(result.context_window))

    if rounds >= options.max_tool_rounds:
        logger.warning(f"Streaming agent stopped after {rounds} tool rounds (limit {options.max_tool_rounds})")

    result.full_message = full_message.strip()
    if result.full_message and not recorded:
        await client.conversations.complete_conversation(
            result.full_message,
            conversation_id,
            correlation_id=correlation_id,
        )

    adapter.handle_event(StreamEvent.completed(current.tokens))
    return result


async def run_stream_agent(
    client: "AsyncGraphlit",
    prompt: str,
    on_event: OnAgentEvent,
    conversation_id: Optional[str] = None,
    specification: Optional[Dict[str, Any]] = None,
    tools: Optional[List[Any]] = None,
    tool_handlers: Optional[Dict[str, ToolHandler]] = None,
    options: Optional[StreamAgentOptions] = None,
    mime_type: Optional[str] = None,
    data: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> StreamingLoopResult:
    """:func:`stream_agent`, returning what the run produced."""
    options = options or StreamAgentOptions()
    BaseStreamProvider.check_abort(options.abort_event)

    adapter: Optional[UIEventAdapter] = None
    try:
        full_specification = specification
        if specification and specification.get("id"):
            full_specification = await client.specifications.get(specification["id"])
            if not full_specification:
                raise GraphlitError(f"Specification not found: {specification['id']}", code="NOT_FOUND")

        if not client.supports_streaming(full_specification):
            raise StreamingNotSupportedError(
                "Streaming is not supported for this specification. "
                "Use prompt_agent() instead or configure a streaming client."
            )

        inputs = tool_inputs(tools)
        if not conversation_id:
            created = await client.conversations.create(
                {
                    "name": "Streaming agent conversation",
                    "specification": entity_reference((full_specification or {}).get("id")),
                    "tools": inputs,
                },
                correlation_id=correlation_id,
            )
            conversation_id = (created or {}).get("id")
            if not conversation_id:
                raise GraphlitError("Failed to create conversation")

        adapter = UIEventAdapter(
            on_event,
            conversation_id,
            smoothing_enabled=options.smoothing_enabled,
            chunking_strategy=options.chunking_strategy,
            smoothing_delay=options.smoothing_delay,
            model=get_service_block(full_specification).get("model"),
            model_name=get_model_name(full_specification),
            model_service=get_service_type(full_specification),
        )

        return await execute_streaming_loop(
            client,
            prompt,
            conversation_id,
            full_specification,
            inputs,
            tool_handlers or {},
            adapter,
            options,
            mime_type=mime_type,
            data=data,
            correlation_id=correlation_id,
        )
    except Exception as e:
        message = e.message if isinstance(e, GraphlitError) else str(e)
        logger.error(f"Streaming agent failed: {message}")
        if adapter is not None:
            adapter.handle_event(StreamEvent.failed(message))
        else:
            on_event(
                ErrorEvent(
                    error=AgentErrorInfo(message=message, code=getattr(e, "code", None), recoverable=False),
                    conversation_id=conversation_id,
                )
            )
        raise
    finally:
        if adapter is not None:
            adapter.dispose()


async def stream_agent(
    client: "AsyncGraphlit",
    prompt: str,
    on_event: OnAgentEvent,
    conversation_id: Optional[str] = None,
    specification: Optional[Dict[str, Any]] = None,
    tools: Optional[List[Any]] = None,
    tool_handlers: Optional[Dict[str, ToolHandler]] = None,
    options: Optional[StreamAgentOptions] = None,
    mime_type: Optional[str] = None,
    data: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> None:
    """
    Stream an agent run as UI events.

    Args:
        client: Async Graphlit client
        prompt: User prompt
        on_event: Receives ``AgentStreamEvent`` objects (called synchronously)
        conversation_id: Existing conversation; a new one is created if omitted
        specification: Specification dict; with an ``id`` the full
            specification is loaded
        tools: Tool definitions the model may call
        tool_handlers: Tool name to handler, sync or async
        options: Round limit, abort event, smoothing and context strategy
        mime_type: MIME type of an attached image (fallback path only)
        data: Base64 image data (fallback path only)
        correlation_id: Correlation ID for usage tracking

    Raises:
        AgentAbortedError: If the abort event is set
        StreamingNotSupportedError: If no provider can stream the specification
        GraphlitError: On API or provider failures, after an error event
    """
    await run_stream_agent(
        client,
        prompt,
        on_event,
        conversation_id=conversation_id,
        specification=specification,
        tools=tools,
        tool_handlers=tool_handlers,
        options=options,
        mime_type=mime_type,
        data=data,
        correlation_id=correlation_id,
    )
