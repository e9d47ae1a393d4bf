"""
Graphlit Python SDK - Configuration

This module contains configuration classes and defaults for the SDK.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

from graphlit.exceptions import ConfigurationError


DEFAULT_API_URI = "https://data-scus.graphlit.io/api/v1/graphql"


@dataclass
class RetryConfig:
    """
    Retry policy for the GraphQL transport.

    Attributes:
        max_attempts: Total attempts including the first request
        initial_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for a single backoff delay, in seconds
        jitter: Randomize delays to avoid thundering herds
        retryable_status_codes: HTTP statuses that trigger a retry
    """
    max_attempts: int = 5
    initial_delay: float = 0.3
    max_delay: float = 30.0
    jitter: bool = True
    retryable_status_codes: Tuple[int, ...] = (429, 500, 502, 503, 504)


@dataclass
class ClientConfig:
    """
    Configuration for the Graphlit client.

    Attributes:
        api_uri: GraphQL endpoint URL
        organization_id: Graphlit organization identifier
        environment_id: Graphlit environment (project) identifier
        jwt_secret: Environment JWT secret used to sign tokens
        owner_id: Optional owner for multi-tenant requests
        user_id: Optional user for multi-tenant requests
        timeout: Request timeout in seconds
        max_retries: Connection-level retries on the HTTP transport
        retry: Status-level retry policy
        debug: Enable debug logging
    """
    api_uri: str = DEFAULT_API_URI
    organization_id: Optional[str] = None
    environment_id: Optional[str] = None
    jwt_secret: Optional[str] = None
    owner_id: Optional[str] = None
    user_id: Optional[str] = None
    timeout: float = 60.0
    max_retries: int = 3
    retry: RetryConfig = field(default_factory=RetryConfig)
    debug: bool = False

    @classmethod
    def from_env(
        cls,
        organization_id: Optional[str] = None,
        environment_id: Optional[str] = None,
        jwt_secret: Optional[str] = None,
        owner_id: Optional[str] = None,
        user_id: Optional[str] = None,
        api_uri: Optional[str] = None,
        **kwargs,
    ) -> "ClientConfig":
        """
        Build a configuration from arguments, falling back to the environment.

        A ``.env`` file in the working directory is loaded first, without
        overriding variables that are already set.

        Raises:
            ConfigurationError: If the organization ID, environment ID or
                JWT secret cannot be resolved
        """
        load_dotenv()

        config = cls(
            api_uri=api_uri or os.environ.get("GRAPHLIT_API_URL") or DEFAULT_API_URI,
            organization_id=organization_id or os.environ.get("GRAPHLIT_ORGANIZATION_ID"),
            environment_id=environment_id or os.environ.get("GRAPHLIT_ENVIRONMENT_ID"),
            jwt_secret=jwt_secret or os.environ.get("GRAPHLIT_JWT_SECRET"),
            owner_id=owner_id or os.environ.get("GRAPHLIT_OWNER_ID"),
            user_id=user_id or os.environ.get("GRAPHLIT_USER_ID"),
            **kwargs,
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Ensure the settings needed to sign a token are present."""
        if not self.organization_id:
            raise ConfigurationError("Graphlit organization identifier is required.")
        if not self.environment_id:
            raise ConfigurationError("Graphlit environment identifier is required.")
        if not self.jwt_secret:
            raise ConfigurationError("Graphlit environment JWT secret is required.")


# Default configuration
DEFAULT_RETRY = RetryConfig()


class Limits:
    """Agent and streaming limits."""

    # Tool calling
    DEFAULT_MAX_TOOL_ROUNDS = 1000
    TOOL_TIMEOUT_SECONDS = 30.0

    # prompt_agent
    DEFAULT_AGENT_TIMEOUT_SECONDS = 300.0

    # UI smoothing
    DEFAULT_SMOOTHING_DELAY_MS = 30
    DEFAULT_CHUNKING_STRATEGY = "word"

    # Token (JWT) lifetime
    TOKEN_LIFETIME_SECONDS = 24 * 60 * 60
