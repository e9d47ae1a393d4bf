"""Groq streaming provider (OpenAI-compatible)."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from graphlit.exceptions import ProviderError
from graphlit.models import ModelServiceTypes, ToolDefinition, to_tool_definitions
from graphlit.streaming.providers.base import error_status, parse_schema
from graphlit.streaming.providers.openai_provider import OpenAIStreamProvider

# Models whose tool calling breaks on anything but a flat schema
PROBLEM_MODELS = ("llama-3.3", "llama_3_3", "llama3-groq-70b", "llama3-groq-8b")


def simplify_schema_for_groq(schema: Any) -> Dict[str, Any]:
    """Reduce a JSON schema to types, descriptions and enums."""
    if not isinstance(schema, dict):
        return schema
    simplified: Dict[str, Any] = {
        "type": schema.get("type") or "object",
        "properties": {},
        "required": schema.get("required") or [],
    }
    for key, prop in (schema.get("properties") or {}).items():
        prop = prop if isinstance(prop, dict) else {}
        entry = {"type": prop.get("type") or "string", "description": prop.get("description") or ""}
        if isinstance(prop.get("enum"), list):
            entry["enum"] = prop["enum"]
        simplified["properties"][key] = entry
    return simplified


def reduce_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only the top-level properties and required list."""
    return {
        "type": "object",
        "properties": schema.get("properties") or {},
        "required": schema.get("required") or [],
    }


class GroqStreamProvider(OpenAIStreamProvider):
    """Streams with the ``groq`` SDK."""

    service_type = ModelServiceTypes.GROQ
    name = "Groq"
    package = "groq"
    api_key_env = "GROQ_API_KEY"

    def _create_client(self) -> Any:
        from groq import AsyncGroq

        return AsyncGroq(api_key=self.api_key)

    def build_params(
        self,
        specification: Dict[str, Any],
        messages: List[Any],
        tools: Optional[List[Any]],
    ) -> Dict[str, Any]:
        tools = to_tool_definitions(tools)
        model = (self.model_name(specification) or "").lower()
        reducer = reduce_schema if any(m in model for m in PROBLEM_MODELS) else simplify_schema_for_groq
        groq_tools = [
            ToolDefinition(
                name=tool.name,
                description=tool.description,
                schema=json.dumps(reducer(parse_schema(tool))),
            )
            for tool in tools
        ]

        return super().build_params(specification, messages, groq_tools)

    def map_error(self, error: Exception) -> Exception:
        if error_status(error) == 400 and "Failed to call a function" in str(error):
            return ProviderError(
                f"Groq tool calling failed. The model may not support these tool schemas: {error}",
                self.name,
                status_code=400,
            )
        return super().map_error(error)
