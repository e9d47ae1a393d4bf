"""
Graphlit Python Client

Python client for the Graphlit platform: GraphQL resources for contents,
feeds, conversations and specifications, plus agents that stream LLM
responses locally through the provider SDKs.

Example:
    >>> from graphlit import AsyncGraphlit
    >>> async with AsyncGraphlit() as client:
    ...     response = await client.conversations.prompt_conversation("Summarize my notes")
    ...     print(response["message"]["message"])
"""

__version__ = "1.0.0"
__author__ = "Graphlit"
__license__ = "MIT"

from graphlit.client import AsyncGraphlit, Graphlit
from graphlit.config import ClientConfig, Limits, RetryConfig
from graphlit.exceptions import (
    AgentAbortedError,
    AuthenticationError,
    ConfigurationError,
    GraphlitError,
    GraphQLError,
    NotFoundError,
    ProviderAuthenticationError,
    ProviderError,
    ProviderRateLimitError,
    ProviderUnavailableError,
    RateLimitError,
    ServerError,
    StreamingNotSupportedError,
    TimeoutError,
    ToolExecutionError,
)
from graphlit.models import (
    ConversationMessage,
    ConversationRoleTypes,
    ConversationToolCall,
    ModelServiceTypes,
    ToolDefinition,
)
from graphlit.agent import (
    AgentOptions,
    AgentResult,
    HarnessStatus,
    RunAgentOptions,
    RunAgentResult,
    StreamAgentOptions,
    ToolCallResult,
)
from graphlit.helpers import ContextStrategy, use_tiktoken
from graphlit.streaming import AgentStreamEvent, StreamEvent, UIEventAdapter

__all__ = [
    # Clients
    "Graphlit",
    "AsyncGraphlit",

    # Configuration
    "ClientConfig",
    "RetryConfig",
    "Limits",

    # Models
    "ConversationMessage",
    "ConversationRoleTypes",
    "ConversationToolCall",
    "ModelServiceTypes",
    "ToolDefinition",

    # Agents
    "AgentOptions",
    "AgentResult",
    "StreamAgentOptions",
    "RunAgentOptions",
    "RunAgentResult",
    "HarnessStatus",
    "ToolCallResult",
    "ContextStrategy",
    "use_tiktoken",

    # Streaming
    "StreamEvent",
    "AgentStreamEvent",
    "UIEventAdapter",

    # Exceptions
    "GraphlitError",
    "ConfigurationError",
    "AuthenticationError",
    "RateLimitError",
    "NotFoundError",
    "ServerError",
    "TimeoutError",
    "GraphQLError",
    "ProviderError",
    "ProviderRateLimitError",
    "ProviderUnavailableError",
    "ProviderAuthenticationError",
    "StreamingNotSupportedError",
    "AgentAbortedError",
    "ToolExecutionError",
]
