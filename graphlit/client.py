"""
Graphlit Python SDK - Main Client

This module provides the Graphlit client classes that serve as the entry
point for all API interactions.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import httpx

from graphlit import __version__
from graphlit.auth import generate_token
from graphlit.config import ClientConfig, Limits, RetryConfig
from graphlit.exceptions import (
    AuthenticationError,
    GraphlitError,
    GraphQLError,
    NotFoundError,
    RateLimitError,
    ServerError,
    TimeoutError,
)
from graphlit.model_mapping import STREAMING_SERVICES, get_service_type, is_streaming_supported
from graphlit.models import ModelServiceTypes
from graphlit.partial_errors import attach_partial_errors, get_partial_errors
from graphlit.resources.alerts import AlertsResource
from graphlit.resources.collections import CollectionsResource
from graphlit.resources.contents import ContentsResource
from graphlit.resources.conversations import ConversationsResource
from graphlit.resources.feeds import FeedsResource
from graphlit.resources.observables import (
    CategoriesResource,
    EventsResource,
    LabelsResource,
    MedicalConditionsResource,
    MedicalContraindicationsResource,
    MedicalDevicesResource,
    MedicalDrugClassesResource,
    MedicalDrugsResource,
    MedicalGuidelinesResource,
    MedicalIndicationsResource,
    MedicalProceduresResource,
    MedicalStudiesResource,
    MedicalTestsResource,
    MedicalTherapiesResource,
    OrganizationsResource,
    PersonsResource,
    PlacesResource,
    ProductsResource,
    ReposResource,
    SoftwaresResource,
)
from graphlit.resources.project import ProjectResource
from graphlit.resources.specifications import SpecificationsResource
from graphlit.resources.users import UsersResource
from graphlit.resources.web import NotificationsResource, WebResource
from graphlit.resources.workflows import WorkflowsResource
from graphlit.streaming.providers import provider_sdk_installed

if TYPE_CHECKING:
    from graphlit.agent.harness import RunAgentOptions, RunAgentResult
    from graphlit.agent.types import AgentOptions, AgentResult, StreamAgentOptions, ToolHandler

logger = logging.getLogger("graphlit")

# Refresh the token this long before it expires
TOKEN_REFRESH_MARGIN_SECONDS = 60


class _GraphlitBase:
    """
    Behaviour shared by the sync and async clients: configuration, token
    handling, response checking, retry policy and resources.
    """

    def __init__(
        self,
        organization_id: Optional[str] = None,
        environment_id: Optional[str] = None,
        jwt_secret: Optional[str] = None,
        owner_id: Optional[str] = None,
        user_id: Optional[str] = None,
        api_uri: Optional[str] = None,
        timeout: float = 60.0,
        max_retries: int = 3,
        retry: Optional[RetryConfig] = None,
        debug: bool = False,
    ) -> None:
        self._config = ClientConfig.from_env(
            organization_id=organization_id,
            environment_id=environment_id,
            jwt_secret=jwt_secret,
            owner_id=owner_id,
            user_id=user_id,
            api_uri=api_uri,
            timeout=timeout,
            max_retries=max_retries,
            retry=retry or RetryConfig(),
            debug=debug,
        )

        # Setup logging
        if debug:
            logging.basicConfig(level=logging.DEBUG)
            logger.setLevel(logging.DEBUG)

        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._generate_token()

        self._init_resources()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def token(self) -> str:
        """The current bearer token, regenerated shortly before it expires."""
        if self._token is None or time.time() >= self._token_expires_at - TOKEN_REFRESH_MARGIN_SECONDS:
            self._generate_token()
        return self._token

    def _generate_token(self) -> None:
        lifetime = Limits.TOKEN_LIFETIME_SECONDS
        self._token = generate_token(
            organization_id=self._config.organization_id,
            environment_id=self._config.environment_id,
            jwt_secret=self._config.jwt_secret,
            owner_id=self._config.owner_id,
            user_id=self._config.user_id,
            expires_in=lifetime,
        )
        self._token_expires_at = time.time() + lifetime

    def refresh_client(self) -> None:
        """Regenerate the bearer token, e.g. after changing owner or user."""
        self._generate_token()

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"graphlit-python/{__version__}",
        }

    def _init_resources(self) -> None:
        """Initialize all API resources."""
        self.project = ProjectResource(self)
        self.alerts = AlertsResource(self)
        self.collections = CollectionsResource(self)
        self.contents = ContentsResource(self)
        self.conversations = ConversationsResource(self)
        self.feeds = FeedsResource(self)
        self.specifications = SpecificationsResource(self)
        self.workflows = WorkflowsResource(self)
        self.users = UsersResource(self)
        self.web = WebResource(self)
        self.notifications = NotificationsResource(self)

        # Observables
        self.categories = CategoriesResource(self)
        self.labels = LabelsResource(self)
        self.persons = PersonsResource(self)
        self.organizations = OrganizationsResource(self)
        self.places = PlacesResource(self)
        self.events = EventsResource(self)
        self.products = ProductsResource(self)
        self.repos = ReposResource(self)
        self.softwares = SoftwaresResource(self)

        # Medical observables
        self.medical_conditions = MedicalConditionsResource(self)
        self.medical_guidelines = MedicalGuidelinesResource(self)
        self.medical_drugs = MedicalDrugsResource(self)
        self.medical_indications = MedicalIndicationsResource(self)
        self.medical_contraindications = MedicalContraindicationsResource(self)
        self.medical_tests = MedicalTestsResource(self)
        self.medical_devices = MedicalDevicesResource(self)
        self.medical_procedures = MedicalProceduresResource(self)
        self.medical_studies = MedicalStudiesResource(self)
        self.medical_drug_classes = MedicalDrugClassesResource(self)
        self.medical_therapies = MedicalTherapiesResource(self)

    # =========================================================================
    # Retry policy
    # =========================================================================

    def _should_retry(self, status_code: int, attempt: int) -> bool:
        policy = self._config.retry
        return attempt < policy.max_attempts and status_code in policy.retryable_status_codes

    def _backoff_delay(self, attempt: int) -> float:
        """Exponential backoff in seconds for the given 1-based attempt."""
        policy = self._config.retry
        delay = min(policy.initial_delay * (2 ** (attempt - 1)), policy.max_delay)
        if policy.jitter:
            delay = random.random() * delay
        return delay

    # =========================================================================
    # Response handling
    # =========================================================================

    def _handle_response(self, response: httpx.Response, operation: str) -> Dict[str, Any]:
        """Check an HTTP response and return the GraphQL ``data`` payload."""
        logger.debug(f"Response status: {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            body = None

        errors: List[Dict[str, Any]] = []
        data = None
        if isinstance(body, dict):
            errors = body.get("errors") or []
            data = body.get("data")

        if response.status_code != 200 and not errors:
            self._raise_for_status(response)

        if errors and not data:
            error = GraphQLError(errors)
            logger.error(error.message)
            raise error

        if not data:
            raise GraphlitError(f"No data returned from {operation}.")

        if errors:
            logger.warning(f"GraphQL {operation} returned partial errors: {len(errors)}")
            return attach_partial_errors(data, errors)

        return data

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        error_message = response.text or f"HTTP {response.status_code}"

        if response.status_code in (401, 403):
            raise AuthenticationError(error_message)
        elif response.status_code == 404:
            raise NotFoundError(error_message)
        elif response.status_code == 429:
            raise RateLimitError(error_message, retry_after=response.headers.get("Retry-After"))
        elif response.status_code >= 500:
            raise ServerError(error_message, status_code=response.status_code)
        else:
            raise GraphlitError(f"HTTP {response.status_code}: {error_message}")

    @staticmethod
    def _extract(data: Any, path: Optional[str]) -> Any:
        """Walk a dotted ``path`` into the response data."""
        if not path:
            return data
        result = data
        for key in path.split("."):
            if not isinstance(result, dict):
                return None
            result = result.get(key)
        return result

    @staticmethod
    def _payload(document: str, variables: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {"query": document, "variables": variables or {}}

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(api_uri='{self._config.api_uri}', "
            f"environment_id='{self._config.environment_id}')"
        )


class Graphlit(_GraphlitBase):
    """
    Client for the Graphlit platform.

    Args:
        organization_id: Graphlit organization ID. Falls back to the
            GRAPHLIT_ORGANIZATION_ID environment variable.
        environment_id: Graphlit environment ID. Falls back to
            GRAPHLIT_ENVIRONMENT_ID.
        jwt_secret: Environment JWT secret. Falls back to GRAPHLIT_JWT_SECRET.
        owner_id: Optional owner for multi-tenant requests (GRAPHLIT_OWNER_ID).
        user_id: Optional user for multi-tenant requests (GRAPHLIT_USER_ID).
        api_uri: GraphQL endpoint. Falls back to GRAPHLIT_API_URL.
        timeout: Request timeout in seconds. Defaults to 60.
        max_retries: Connection retries on the HTTP transport. Defaults to 3.
        retry: Retry policy for retryable HTTP statuses.
        debug: Enable debug logging. Defaults to False.

    Example:
        >>> client = Graphlit()
        >>> content = client.contents.ingest_uri("https://example.com/doc.pdf")
        >>> response = client.conversations.prompt_conversation("Summarize the doc")
        >>> print(response["message"]["message"])

    Attributes:
        project: The current project and its usage
        contents: Content ingestion, querying and transformation
        conversations: Conversations and prompting
        feeds: Feeds
        specifications: LLM specifications
        workflows: Content workflows
        collections: Content collections
        alerts: Alerts
        users: Users
        web: Web mapping and search
        notifications: Notifications
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)

        # Create HTTP client
        self._http_client = self._create_http_client()

        logger.debug(f"Graphlit client initialized with API URI: {self._config.api_uri}")

    def _create_http_client(self) -> httpx.Client:
        """Create and configure the HTTP client."""
        transport = httpx.HTTPTransport(retries=self._config.max_retries)

        return httpx.Client(
            timeout=httpx.Timeout(self._config.timeout),
            transport=transport,
            follow_redirects=True,
        )

    def _post(self, document: str, variables: Optional[Dict[str, Any]], operation: str) -> Dict[str, Any]:
        attempt = 0
        while True:
            attempt += 1
            logger.debug(f"GraphQL {operation} attempt {attempt}")
            try:
                response = self._http_client.post(
                    self._config.api_uri,
                    json=self._payload(document, variables),
                    headers=self._build_headers(),
                )
            except httpx.TimeoutException as e:
                if attempt < self._config.retry.max_attempts:
                    time.sleep(self._backoff_delay(attempt))
                    continue
                raise TimeoutError(f"Request timed out: {e}", timeout_seconds=self._config.timeout)
            except httpx.TransportError as e:
                if attempt < self._config.retry.max_attempts:
                    time.sleep(self._backoff_delay(attempt))
                    continue
                raise GraphlitError(f"Request failed: {e}")

            if self._should_retry(response.status_code, attempt):
                delay = self._backoff_delay(attempt)
                logger.debug(f"Retrying after HTTP {response.status_code} in {delay:.2f}s")
                time.sleep(delay)
                continue

            return self._handle_response(response, operation)

    def query(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Execute a GraphQL query.

        Args:
            document: GraphQL query document
            variables: Query variables

        Returns:
            The response ``data``. Partial errors are attached when the
            response carried both data and errors.

        Raises:
            GraphQLError: If the response carried errors and no data
            AuthenticationError: If the token is rejected
            RateLimitError: If retries are exhausted on HTTP 429
            ServerError: If retries are exhausted on HTTP 5xx
            GraphlitError: For other errors
        """
        return self._post(document, variables, "query")

    def mutate(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a GraphQL mutation. See :meth:`query`."""
        return self._post(document, variables, "mutation")

    def execute(
        self,
        document: str,
        variables: Optional[Dict[str, Any]] = None,
        path: Optional[str] = None,
    ) -> Any:
        """Execute a document and return the field at the dotted ``path``."""
        operation = "mutation" if document.lstrip().startswith("mutation") else "query"
        data = self._post(document, variables, operation)
        return _carry_partial_errors(data, self._extract(data, path))

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        self._http_client.close()
        logger.debug("Graphlit client closed")

    def __enter__(self) -> "Graphlit":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()


class AsyncGraphlit(_GraphlitBase):
    """
    Async client for the Graphlit platform.

    Exposes the same resources as :class:`Graphlit` (each method returns an
    awaitable) plus the streaming agent: :meth:`prompt_agent`,
    :meth:`stream_agent` and :meth:`run_agent`.

    Example:
        >>> async with AsyncGraphlit() as client:
        ...     client.set_openai_client(AsyncOpenAI())
        ...     await client.stream_agent(
        ...         "What's new in my feeds?",
        ...         on_event=print,
        ...         specification={"id": spec_id},
        ...     )
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._http_client: Optional[httpx.AsyncClient] = None
        self._provider_clients: Dict[str, Any] = {}

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._http_client is None:
            transport = httpx.AsyncHTTPTransport(retries=self._config.max_retries)

            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout),
                transport=transport,
                follow_redirects=True,
            )

        return self._http_client

    async def _post(self, document: str, variables: Optional[Dict[str, Any]], operation: str) -> Dict[str, Any]:
        client = await self._get_client()
        attempt = 0
        while True:
            attempt += 1
            logger.debug(f"GraphQL {operation} attempt {attempt}")
            try:
                response = await client.post(
                    self._config.api_uri,
                    json=self._payload(document, variables),
                    headers=self._build_headers(),
                )
            except httpx.TimeoutException as e:
                if attempt < self._config.retry.max_attempts:
                    await asyncio.sleep(self._backoff_delay(attempt))
                    continue
                raise TimeoutError(f"Request timed out: {e}", timeout_seconds=self._config.timeout)
            except httpx.TransportError as e:
                if attempt < self._config.retry.max_attempts:
                    await asyncio.sleep(self._backoff_delay(attempt))
                    continue
                raise GraphlitError(f"Request failed: {e}")

            if self._should_retry(response.status_code, attempt):
                delay = self._backoff_delay(attempt)
                logger.debug(f"Retrying after HTTP {response.status_code} in {delay:.2f}s")
                await asyncio.sleep(delay)
                continue

            return self._handle_response(response, operation)

    async def query(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a GraphQL query. See :meth:`Graphlit.query`."""
        return await self._post(document, variables, "query")

    async def mutate(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a GraphQL mutation. See :meth:`Graphlit.query`."""
        return await self._post(document, variables, "mutation")

    async def execute(
        self,
        document: str,
        variables: Optional[Dict[str, Any]] = None,
        path: Optional[str] = None,
    ) -> Any:
        """Execute a document and return the field at the dotted ``path``."""
        operation = "mutation" if document.lstrip().startswith("mutation") else "query"
        data = await self._post(document, variables, operation)
        return _carry_partial_errors(data, self._extract(data, path))

    # =========================================================================
    # Streaming provider clients
    # =========================================================================

    def _set_provider_client(self, service_type: ModelServiceTypes, client: Any) -> None:
        self._provider_clients[service_type.value] = client

    def get_provider_client(self, service_type: str) -> Optional[Any]:
        """Return the client registered for a service type, if any."""
        return self._provider_clients.get(service_type)

    def set_openai_client(self, client: Any) -> None:
        """Use an ``openai.AsyncOpenAI`` instance for OpenAI streaming."""
        self._set_provider_client(ModelServiceTypes.OPEN_AI, client)

    def set_anthropic_client(self, client: Any) -> None:
        """Use an ``anthropic.AsyncAnthropic`` instance for Anthropic streaming."""
        self._set_provider_client(ModelServiceTypes.ANTHROPIC, client)

    def set_google_client(self, client: Any) -> None:
        """Use a configured ``google.generativeai`` module or compatible object."""
        self._set_provider_client(ModelServiceTypes.GOOGLE, client)

    def set_groq_client(self, client: Any) -> None:
        """Use a ``groq.AsyncGroq`` instance for Groq streaming."""
        self._set_provider_client(ModelServiceTypes.GROQ, client)

    def set_cerebras_client(self, client: Any) -> None:
        """Use a ``cerebras.cloud.sdk.AsyncCerebras`` instance."""
        self._set_provider_client(ModelServiceTypes.CEREBRAS, client)

    def set_cohere_client(self, client: Any) -> None:
        """Use a ``cohere.AsyncClientV2`` instance for Cohere streaming."""
        self._set_provider_client(ModelServiceTypes.COHERE, client)

    def set_mistral_client(self, client: Any) -> None:
        """Use a ``mistralai.Mistral`` instance for Mistral streaming."""
        self._set_provider_client(ModelServiceTypes.MISTRAL, client)

    def set_bedrock_client(self, client: Any) -> None:
        """Use a boto3 ``bedrock-runtime`` client for Bedrock streaming."""
        self._set_provider_client(ModelServiceTypes.BEDROCK, client)

    def set_deepseek_client(self, client: Any) -> None:
        """Use an ``openai.AsyncOpenAI`` instance pointed at the Deepseek API."""
        self._set_provider_client(ModelServiceTypes.DEEPSEEK, client)

    def set_xai_client(self, client: Any) -> None:
        """Use an ``openai.AsyncOpenAI`` instance pointed at the xAI API."""
        self._set_provider_client(ModelServiceTypes.XAI, client)

    def _provider_available(self, service_type: str) -> bool:
        return service_type in self._provider_clients or provider_sdk_installed(service_type)

    def supports_streaming(self, specification: Optional[Dict[str, Any]] = None) -> bool:
        """
        Check if streaming is available.

        Args:
            specification: Full specification. When given, its service type
                must have a streaming provider with a registered client or
                an installed SDK.

        Returns:
            True if streaming is available, False otherwise
        """
        service_type = get_service_type(specification)
        if service_type:
            return is_streaming_supported(service_type) and self._provider_available(service_type)

        return any(self._provider_available(s) for s in STREAMING_SERVICES)

    # =========================================================================
    # Agents
    # =========================================================================

    async def prompt_agent(
        self,
        prompt: str,
        conversation_id: Optional[str] = None,
        specification: Optional[Dict[str, Any]] = None,
        tools: Optional[List[Any]] = None,
        tool_handlers: Optional[Dict[str, "ToolHandler"]] = None,
        options: Optional["AgentOptions"] = None,
        mime_type: Optional[str] = None,
        data: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> "AgentResult":
        """
        Run a non-streaming agent: prompt, execute tool calls, continue.

        See :func:`graphlit.agent.prompt.prompt_agent`.
        """
        from graphlit.agent.prompt import prompt_agent

        return await prompt_agent(
            self,
            prompt,
            conversation_id=conversation_id,
            specification=specification,
            tools=tools,
            tool_handlers=tool_handlers,
            options=options,
            mime_type=mime_type,
            data=data,
            correlation_id=correlation_id,
        )

    async def stream_agent(
        self,
        prompt: str,
        on_event: Callable[[Any], Any],
        conversation_id: Optional[str] = None,
        specification: Optional[Dict[str, Any]] = None,
        tools: Optional[List[Any]] = None,
        tool_handlers: Optional[Dict[str, "ToolHandler"]] = None,
        options: Optional["StreamAgentOptions"] = None,
        mime_type: Optional[str] = None,
        data: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        """
        Run a streaming agent, calling the model locally and emitting UI events.

        See :func:`graphlit.agent.streaming.stream_agent`.
        """
        from graphlit.agent.streaming import stream_agent

        await stream_agent(
            self,
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

    async def run_agent(self, prompt: str, options: "RunAgentOptions") -> "RunAgentResult":
        """
        Run a multi-turn agent harness over :meth:`stream_agent`.

        See :func:`graphlit.agent.harness.run_agent`.
        """
        from graphlit.agent.harness import run_agent

        return await run_agent(self, prompt, options)

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("AsyncGraphlit client closed")

    async def __aenter__(self) -> "AsyncGraphlit":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()


def _carry_partial_errors(data: Any, result: Any) -> Any:
    """Re-attach partial errors from the full response to the extracted field."""
    errors = get_partial_errors(data)
    if not errors or result is data:
        return result
    return attach_partial_errors(result, [e.model_dump() for e in errors])
