"""
Graphlit Python SDK - Data Models

This module contains the enums and data models shared by the GraphQL
resources and the streaming agent. GraphQL payloads are camelCase; models
expose snake_case attributes and convert in both directions.
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake_case(name: str) -> str:
    """Convert a camelCase GraphQL field name to snake_case."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def to_camel_case(name: str) -> str:
    """Convert a snake_case attribute name to camelCase."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BaseModel:
    """Base class for all models with common functionality."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return asdict(self)

    def to_json(self) -> str:
        """Convert model to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaseModel":
        """Create model instance from a snake_case or camelCase dictionary."""
        fields = cls.__dataclass_fields__
        kwargs = {}
        for key, value in data.items():
            name = key if key in fields else to_snake_case(key)
            if name in fields:
                kwargs[name] = value
        return cls(**kwargs)


# =============================================================================
# Enums
# =============================================================================

class ModelServiceTypes(str, Enum):
    """LLM service backing a specification."""
    OPEN_AI = "OPEN_AI"
    AZURE_OPEN_AI = "AZURE_OPEN_AI"
    AZURE_AI = "AZURE_AI"
    ANTHROPIC = "ANTHROPIC"
    GOOGLE = "GOOGLE"
    GROQ = "GROQ"
    CEREBRAS = "CEREBRAS"
    COHERE = "COHERE"
    MISTRAL = "MISTRAL"
    BEDROCK = "BEDROCK"
    DEEPSEEK = "DEEPSEEK"
    XAI = "XAI"
    JINA = "JINA"
    REPLICATE = "REPLICATE"
    VOYAGE = "VOYAGE"


class ConversationRoleTypes(str, Enum):
    """Author of a conversation message."""
    SYSTEM = "SYSTEM"
    USER = "USER"
    ASSISTANT = "ASSISTANT"
    TOOL = "TOOL"


class SpecificationTypes(str, Enum):
    """Purpose of a specification."""
    COMPLETION = "COMPLETION"
    EXTRACTION = "EXTRACTION"
    PREPARATION = "PREPARATION"
    SUMMARIZATION = "SUMMARIZATION"
    CLASSIFICATION = "CLASSIFICATION"
    TEXT_EMBEDDING = "TEXT_EMBEDDING"
    IMAGE_EMBEDDING = "IMAGE_EMBEDDING"


class EntityState(str, Enum):
    """Lifecycle state of a platform entity."""
    CREATED = "CREATED"
    ENABLED = "ENABLED"
    DISABLED = "DISABLED"
    INITIALIZED = "INITIALIZED"
    INGESTED = "INGESTED"
    PREPARED = "PREPARED"
    EXTRACTED = "EXTRACTED"
    INDEXED = "INDEXED"
    ENRICHED = "ENRICHED"
    FINISHED = "FINISHED"
    ERRORED = "ERRORED"
    CLOSED = "CLOSED"
    DELETED = "DELETED"


class ContentTypes(str, Enum):
    """Kind of ingested content."""
    FILE = "FILE"
    PAGE = "PAGE"
    TEXT = "TEXT"
    MEMORY = "MEMORY"
    MESSAGE = "MESSAGE"
    EMAIL = "EMAIL"
    EVENT = "EVENT"
    ISSUE = "ISSUE"
    POST = "POST"


class TextTypes(str, Enum):
    """Format of raw text handed to the platform."""
    PLAIN = "PLAIN"
    MARKDOWN = "MARKDOWN"
    HTML = "HTML"


# =============================================================================
# Conversation Models
# =============================================================================

@dataclass
class ConversationToolCall(BaseModel):
    """A tool call requested by the model."""
    id: str
    name: str
    arguments: str = ""

    def to_input(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}


@dataclass
class ConversationMessage(BaseModel):
    """A single message in a conversation."""
    role: Optional[ConversationRoleTypes] = None
    message: Optional[str] = None
    tool_calls: List[ConversationToolCall] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    mime_type: Optional[str] = None
    data: Optional[str] = None
    tokens: Optional[int] = None
    timestamp: str = field(default_factory=utc_now_iso)
    model: Optional[str] = None
    model_name: Optional[str] = None
    model_service: Optional[str] = None
    throughput: Optional[float] = None
    completion_time: Optional[float] = None

    def __post_init__(self) -> None:
        if isinstance(self.role, str) and not isinstance(self.role, ConversationRoleTypes):
            self.role = ConversationRoleTypes(self.role)
        self.tool_calls = [
            tc if isinstance(tc, ConversationToolCall) else ConversationToolCall.from_dict(tc)
            for tc in (self.tool_calls or [])
            if tc is not None
        ]

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_input(self) -> Dict[str, Any]:
        """Serialize as a ``ConversationMessageInput`` (camelCase, no nulls)."""
        payload: Dict[str, Any] = {
            "role": self.role.value if self.role else None,
            "message": self.message,
            "toolCallId": self.tool_call_id,
            "mimeType": self.mime_type,
            "data": self.data,
            "timestamp": self.timestamp,
        }
        if self.tool_calls:
            payload["toolCalls"] = [tc.to_input() for tc in self.tool_calls]
        return {k: v for k, v in payload.items() if v is not None}


@dataclass
class ToolDefinition(BaseModel):
    """A tool the model may call. ``schema`` is a JSON Schema string."""
    name: str
    description: Optional[str] = None
    schema: str = "{}"

    def parsed_schema(self) -> Dict[str, Any]:
        try:
            return json.loads(self.schema) if self.schema else {}
        except json.JSONDecodeError:
            return {}

    def to_input(self) -> Dict[str, Any]:
        payload = {"name": self.name, "schema": self.schema}
        if self.description:
            payload["description"] = self.description
        return payload


def to_tool_definitions(tools: Optional[List[Any]]) -> List[ToolDefinition]:
    """Accept ToolDefinition objects or ``ToolDefinitionInput`` dicts."""
    result = []
    for tool in tools or []:
        if isinstance(tool, ToolDefinition):
            result.append(tool)
        else:
            schema = tool.get("schema", "{}")
            if not isinstance(schema, str):
                schema = json.dumps(schema)
            result.append(ToolDefinition(name=tool["name"], description=tool.get("description"), schema=schema))
    return result


def to_conversation_messages(messages: Optional[List[Any]]) -> List[ConversationMessage]:
    """Accept ConversationMessage objects or GraphQL message dicts."""
    return [
        m if isinstance(m, ConversationMessage) else ConversationMessage.from_dict(m)
        for m in (messages or [])
        if m is not None
    ]
