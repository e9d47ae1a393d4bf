"""
Graphlit Python SDK - Exceptions

This module contains all custom exceptions used by the SDK.
"""

from typing import Any, Dict, List, Optional


class GraphlitError(Exception):
    """
    Base exception for all Graphlit SDK errors.

    Attributes:
        message: Human-readable error message
        code: Error code if available
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', code='{self.code}')"


class ConfigurationError(GraphlitError):
    """
    Raised when the client is missing required configuration.

    This occurs when the organization ID, environment ID or JWT secret
    is neither passed to the client nor present in the environment.
    """

    def __init__(self, message: str = "Invalid client configuration") -> None:
        super().__init__(message, code="CONFIGURATION_ERROR")


class AuthenticationError(GraphlitError):
    """
    Raised when authentication fails.

    This can occur when:
    - The JWT secret does not match the environment
    - The token has expired
    - The token lacks access to the requested project
    """

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, code="AUTHENTICATION_ERROR")


class RateLimitError(GraphlitError):
    """
    Raised when the API rate limit is exceeded.

    Attributes:
        retry_after: Number of seconds to wait before retrying
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[str] = None,
    ) -> None:
        super().__init__(message, code="RATE_LIMIT")
        self.retry_after = int(retry_after) if retry_after else None

    def __str__(self) -> str:
        base = super().__str__()
        if self.retry_after:
            return f"{base}. Retry after {self.retry_after} seconds."
        return base


class NotFoundError(GraphlitError):
    """
    Raised when a requested resource is not found.

    Attributes:
        resource_type: Type of resource that wasn't found
        resource_id: ID of the resource that wasn't found
    """

    def __init__(
        self,
        message: str = "Resource not found",
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> None:
        super().__init__(message, code="NOT_FOUND")
        self.resource_type = resource_type
        self.resource_id = resource_id

    def __str__(self) -> str:
        if self.resource_type and self.resource_id:
            return f"{self.resource_type} with ID '{self.resource_id}' not found"
        return super().__str__()


class ServerError(GraphlitError):
    """
    Raised when the GraphQL endpoint returns a 5xx status.

    These errors are typically transient and are retried by the client
    before being surfaced.

    Attributes:
        status_code: HTTP status returned by the server
    """

    def __init__(
        self,
        message: str = "Server error",
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, code="SERVER_ERROR")
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code:
            return f"{base} (HTTP {self.status_code})"
        return base


class TimeoutError(GraphlitError):
    """
    Raised when a request or agent run times out.

    Attributes:
        timeout_seconds: The timeout that was exceeded
    """

    def __init__(
        self,
        message: str = "Request timed out",
        timeout_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(message, code="TIMEOUT")
        self.timeout_seconds = timeout_seconds

    def __str__(self) -> str:
        base = super().__str__()
        if self.timeout_seconds:
            return f"{base} after {self.timeout_seconds}s"
        return base


def format_graphql_error(error: Dict[str, Any]) -> str:
    """Render a GraphQL error entry as a single readable line."""
    if not error:
        return "Unknown error"

    parts = [str(error.get("message", "Unknown error"))]

    locations = error.get("locations") or []
    if locations:
        first = locations[0]
        parts.append(f"at line {first.get('line')}, column {first.get('column')}")

    path = error.get("path")
    if path:
        parts.append("\n- Path: " + ".".join(str(p) for p in path))

    return " ".join(parts)


class GraphQLError(GraphlitError):
    """
    Raised when a GraphQL operation returns errors and no usable data.

    Attributes:
        errors: Raw GraphQL error entries from the response
    """

    def __init__(
        self,
        errors: List[Dict[str, Any]],
        message: Optional[str] = None,
    ) -> None:
        self.errors = errors
        super().__init__(
            message or "\n".join(format_graphql_error(e) for e in errors),
            code="GRAPHQL_ERROR",
            details={"errors": errors},
        )


class ProviderError(GraphlitError):
    """
    Raised when an LLM provider SDK call fails during streaming.

    Attributes:
        provider: Name of the provider (openai, anthropic, ...)
        status_code: HTTP-like status describing the failure
    """

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: Optional[int] = None,
        code: str = "PROVIDER_ERROR",
    ) -> None:
        super().__init__(message, code=code)
        self.provider = provider
        self.status_code = status_code


class ProviderRateLimitError(ProviderError):
    """Raised when a provider rejects a request for rate limiting (429)."""

    def __init__(self, message: str, provider: str) -> None:
        super().__init__(message, provider, status_code=429, code="RATE_LIMIT")


class ProviderUnavailableError(ProviderError):
    """Raised when a provider is overloaded or unreachable (503)."""

    def __init__(self, message: str, provider: str) -> None:
        super().__init__(message, provider, status_code=503, code="SERVICE_UNAVAILABLE")


class ProviderAuthenticationError(ProviderError):
    """Raised when a provider rejects the configured API key (401)."""

    def __init__(self, message: str, provider: str) -> None:
        super().__init__(message, provider, status_code=401, code="AUTHENTICATION_ERROR")


class StreamingNotSupportedError(GraphlitError):
    """Raised when streaming is requested for a specification that cannot stream."""

    def __init__(
        self,
        message: str = (
            "Streaming is not supported for this specification. "
            "Use prompt_agent() instead or configure a streaming client."
        ),
    ) -> None:
        super().__init__(message, code="STREAMING_NOT_SUPPORTED")


class AgentAbortedError(GraphlitError):
    """Raised when an agent run is aborted through its abort event."""

    def __init__(self, message: str = "Operation aborted") -> None:
        super().__init__(message, code="ABORTED")


class ToolExecutionError(GraphlitError):
    """
    Raised when a tool handler fails or times out.

    Attributes:
        tool_name: Name of the tool that failed
    """

    def __init__(self, message: str, tool_name: Optional[str] = None) -> None:
        super().__init__(message, code="TOOL_ERROR")
        self.tool_name = tool_name
