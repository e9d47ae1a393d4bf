"""
Model mapping utilities.

Converts Graphlit specification model enums to the model names expected by
the provider SDKs.
"""

from typing import Any, Dict, Optional

from graphlit.models import ModelServiceTypes


# =============================================================================
# Model maps (GraphQL enum value -> SDK model name)
# =============================================================================

OPENAI_MODEL_MAP: Dict[str, str] = {
    # GPT-4 Turbo
    "GPT4_TURBO_128K": "gpt-4-turbo",
    "GPT4_TURBO_128K_0125": "gpt-4-0125-preview",
    "GPT4_TURBO_128K_1106": "gpt-4-1106-preview",
    "GPT4_TURBO_128K_20240409": "gpt-4-turbo-2024-04-09",
    # GPT-4o
    "GPT4O_128K": "gpt-4o",
    "GPT4O_128K_20240513": "gpt-4o-2024-05-13",
    "GPT4O_128K_20240806": "gpt-4o-2024-08-06",
    "GPT4O_128K_20241120": "gpt-4o-2024-11-20",
    "GPT4O_CHAT_128K": "chatgpt-4o-latest",
    # GPT-4o mini
    "GPT4O_MINI_128K": "gpt-4o-mini",
    "GPT4O_MINI_128K_20240718": "gpt-4o-mini-2024-07-18",
    # GPT-4.1
    "GPT41_1024K": "gpt-4.1",
    "GPT41_1024K_20250414": "gpt-4.1-2025-04-14",
    "GPT41_MINI_1024K": "gpt-4.1-mini",
    "GPT41_MINI_1024K_20250414": "gpt-4.1-mini-2025-04-14",
    "GPT41_NANO_1024K": "gpt-4.1-nano",
    # o1
    "O1_MINI_128K": "o1-mini",
    "O1_MINI_128K_20240912": "o1-mini-2024-09-12",
    "O1_PREVIEW_128K": "o1-preview",
    "O1_PREVIEW_128K_20240912": "o1-preview-2024-09-12",
    # o3
    "O3_MINI_200K": "o3-mini",
    "O3_MINI_200K_20250131": "o3-mini-2025-01-31",
    "O3_200K": "o3",
    "O3_200K_20250416": "o3-2025-04-16",
    # o4
    "O4_MINI_200K": "o4-mini",
    "O4_MINI_200K_20250416": "o4-mini-2025-04-16",
}

ANTHROPIC_MODEL_MAP: Dict[str, str] = {
    # Claude 3
    "CLAUDE_3_OPUS": "claude-3-opus-20240229",
    "CLAUDE_3_OPUS_20240229": "claude-3-opus-20240229",
    "CLAUDE_3_SONNET": "claude-3-sonnet-20240229",
    "CLAUDE_3_SONNET_20240229": "claude-3-sonnet-20240229",
    "CLAUDE_3_HAIKU": "claude-3-haiku-20240307",
    "CLAUDE_3_HAIKU_20240307": "claude-3-haiku-20240307",
    # Claude 3.5
    "CLAUDE_3_5_SONNET": "claude-3-5-sonnet-20241022",
    "CLAUDE_3_5_SONNET_20240620": "claude-3-5-sonnet-20240620",
    "CLAUDE_3_5_SONNET_20241022": "claude-3-5-sonnet-20241022",
    "CLAUDE_3_5_HAIKU": "claude-3-5-haiku-20241022",
    "CLAUDE_3_5_HAIKU_20241022": "claude-3-5-haiku-20241022",
    # Claude 3.7
    "CLAUDE_3_7_SONNET": "claude-3-7-sonnet-20250219",
    "CLAUDE_3_7_SONNET_20250219": "claude-3-7-sonnet-20250219",
    # Claude 4
    "CLAUDE_4_OPUS": "claude-4-opus-20250514",
    "CLAUDE_4_SONNET": "claude-4-sonnet-20250514",
}

GOOGLE_MODEL_MAP: Dict[str, str] = {
    # Gemini 1.5 Pro
    "GEMINI_1_5_PRO": "gemini-1.5-pro",
    "GEMINI_1_5_PRO_001": "gemini-1.5-pro-001",
    "GEMINI_1_5_PRO_002": "gemini-1.5-pro-002",
    # Gemini 1.5 Flash
    "GEMINI_1_5_FLASH": "gemini-1.5-flash",
    "GEMINI_1_5_FLASH_001": "gemini-1.5-flash-001",
    "GEMINI_1_5_FLASH_002": "gemini-1.5-flash-002",
    "GEMINI_1_5_FLASH_8B": "gemini-1.5-flash-8b",
    "GEMINI_1_5_FLASH_8B_001": "gemini-1.5-flash-8b-001",
    # Gemini 2.0
    "GEMINI_2_0_FLASH": "gemini-2.0-flash-exp",
    "GEMINI_2_0_FLASH_001": "gemini-2.0-flash-001",
    "GEMINI_2_0_FLASH_EXPERIMENTAL": "gemini-2.0-flash-exp",
    # Gemini 2.5
    "GEMINI_2_5_FLASH_PREVIEW": "gemini-2.5-flash-preview-05-20",
    "GEMINI_2_5_PRO_PREVIEW": "gemini-2.5-pro-preview-06-05",
}

# Specification field holding each service's settings
SERVICE_BLOCKS: Dict[str, str] = {
    ModelServiceTypes.OPEN_AI.value: "openAI",
    ModelServiceTypes.ANTHROPIC.value: "anthropic",
    ModelServiceTypes.GOOGLE.value: "google",
    ModelServiceTypes.GROQ.value: "groq",
    ModelServiceTypes.CEREBRAS.value: "cerebras",
    ModelServiceTypes.COHERE.value: "cohere",
    ModelServiceTypes.MISTRAL.value: "mistral",
    ModelServiceTypes.BEDROCK.value: "bedrock",
    ModelServiceTypes.DEEPSEEK.value: "deepseek",
    ModelServiceTypes.XAI.value: "xai",
}

_ENUM_MAPS: Dict[str, Dict[str, str]] = {
    ModelServiceTypes.OPEN_AI.value: OPENAI_MODEL_MAP,
    ModelServiceTypes.ANTHROPIC.value: ANTHROPIC_MODEL_MAP,
    ModelServiceTypes.GOOGLE.value: GOOGLE_MODEL_MAP,
}

STREAMING_SERVICES = frozenset(SERVICE_BLOCKS)


def _value(item: Any) -> Optional[str]:
    if item is None:
        return None
    return getattr(item, "value", item)


def get_service_type(specification: Optional[Dict[str, Any]]) -> Optional[str]:
    """Return the service type string of a specification."""
    if not specification:
        return None
    return _value(specification.get("serviceType"))


def get_service_block(specification: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return the provider settings block for the specification's service."""
    block_name = SERVICE_BLOCKS.get(get_service_type(specification) or "")
    if not block_name:
        return {}
    return specification.get(block_name) or {}


def get_model_name(specification: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Get the SDK model name for a specification.

    A custom ``modelName`` on the OpenAI, Anthropic or Google block wins.
    Otherwise the enum map for the service type is consulted; services
    without a map use their block's ``modelName`` or raw model value.

    Args:
        specification: Specification dict as returned by the API

    Returns:
        Model name, or None when it cannot be resolved
    """
    if not specification:
        return None

    for block_name in ("openAI", "anthropic", "google"):
        block = specification.get(block_name) or {}
        if block.get("modelName"):
            return block["modelName"]

    service_type = get_service_type(specification)
    block = get_service_block(specification)
    model = _value(block.get("model"))

    enum_map = _ENUM_MAPS.get(service_type or "")
    if enum_map is not None:
        return enum_map.get(model) if model else None

    return block.get("modelName") or model


def is_streaming_supported(service_type: Optional[str]) -> bool:
    """Check if a service type has a streaming provider."""
    return _value(service_type) in STREAMING_SERVICES
