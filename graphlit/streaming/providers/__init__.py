"""
Streaming Providers

One adapter per LLM service. SDKs are imported lazily, so every adapter
can be imported without its provider package installed.
"""

import importlib.util
from typing import Any, Dict, List, Optional, Type

from graphlit.models import ModelServiceTypes
from graphlit.streaming.providers.anthropic_provider import AnthropicStreamProvider
from graphlit.streaming.providers.base import BaseStreamProvider
from graphlit.streaming.providers.bedrock_provider import BedrockStreamProvider
from graphlit.streaming.providers.cerebras_provider import CerebrasStreamProvider
from graphlit.streaming.providers.cohere_provider import CohereStreamProvider
from graphlit.streaming.providers.deepseek_provider import DeepseekStreamProvider
from graphlit.streaming.providers.fallback import stream_with_fallback
from graphlit.streaming.providers.google_provider import GoogleStreamProvider
from graphlit.streaming.providers.groq_provider import GroqStreamProvider
from graphlit.streaming.providers.mistral_provider import MistralStreamProvider
from graphlit.streaming.providers.openai_provider import OpenAIStreamProvider, XaiStreamProvider

# Import name of the SDK each service needs
PROVIDER_MODULES: Dict[str, str] = {
    ModelServiceTypes.OPEN_AI.value: "openai",
    ModelServiceTypes.DEEPSEEK.value: "openai",
    ModelServiceTypes.XAI.value: "openai",
    ModelServiceTypes.ANTHROPIC.value: "anthropic",
    ModelServiceTypes.GOOGLE.value: "google.generativeai",
    ModelServiceTypes.GROQ.value: "groq",
    ModelServiceTypes.CEREBRAS.value: "cerebras.cloud.sdk",
    ModelServiceTypes.COHERE.value: "cohere",
    ModelServiceTypes.MISTRAL.value: "mistralai",
    ModelServiceTypes.BEDROCK.value: "boto3",
}


def provider_sdk_installed(service_type: str) -> bool:
    """Check whether the SDK for a service type can be imported."""
    module = PROVIDER_MODULES.get(service_type)
    if module is None:
        return False
    try:
        return importlib.util.find_spec(module) is not None
    except ModuleNotFoundError:
        return False


class StreamProviderFactory:
    """Factory for creating streaming providers by service type."""

    _providers: Dict[str, Type[BaseStreamProvider]] = {
        ModelServiceTypes.OPEN_AI.value: OpenAIStreamProvider,
        ModelServiceTypes.ANTHROPIC.value: AnthropicStreamProvider,
        ModelServiceTypes.GOOGLE.value: GoogleStreamProvider,
        ModelServiceTypes.GROQ.value: GroqStreamProvider,
        ModelServiceTypes.CEREBRAS.value: CerebrasStreamProvider,
        ModelServiceTypes.COHERE.value: CohereStreamProvider,
        ModelServiceTypes.MISTRAL.value: MistralStreamProvider,
        ModelServiceTypes.BEDROCK.value: BedrockStreamProvider,
        ModelServiceTypes.DEEPSEEK.value: DeepseekStreamProvider,
        ModelServiceTypes.XAI.value: XaiStreamProvider,
    }

    @classmethod
    def register(cls, service_type: str, provider_class: Type[BaseStreamProvider]) -> None:
        """Register a provider class for a service type."""
        cls._providers[service_type] = provider_class

    @classmethod
    def create(cls, service_type: str, client: Optional[Any] = None) -> BaseStreamProvider:
        """
        Create a provider instance.

        Raises:
            ValueError: If no provider handles the service type
        """
        provider_class = cls._providers.get(service_type)
        if provider_class is None:
            raise ValueError(f"Unknown streaming service: {service_type}. Available: {cls.list_providers()}")
        return provider_class(client=client)

    @classmethod
    def supports(cls, service_type: Optional[str]) -> bool:
        return service_type in cls._providers

    @classmethod
    def list_providers(cls) -> List[str]:
        return list(cls._providers.keys())


__all__ = [
    "BaseStreamProvider",
    "OpenAIStreamProvider",
    "XaiStreamProvider",
    "AnthropicStreamProvider",
    "GoogleStreamProvider",
    "GroqStreamProvider",
    "CerebrasStreamProvider",
    "DeepseekStreamProvider",
    "CohereStreamProvider",
    "MistralStreamProvider",
    "BedrockStreamProvider",
    "StreamProviderFactory",
    "stream_with_fallback",
    "provider_sdk_installed",
    "PROVIDER_MODULES",
]
