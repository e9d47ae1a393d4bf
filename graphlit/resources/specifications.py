"""
Graphlit Python SDK - Specifications Resource

This module provides methods for managing specifications. A specification
selects the LLM service and model, its limits and sampling parameters, and
the retrieval strategy used when prompting conversations.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from graphlit.resources.base import EntityResource


MODEL_BLOCK = """
      tokenLimit
      completionTokenLimit
      model
      modelName
      temperature
      probability
"""

SPECIFICATION_FIELDS = f"""
    id
    name
    creationDate
    owner {{ id }}
    state
    type
    serviceType
    systemPrompt
    customGuidance
    customInstructions
    searchType
    numberSimilar
    strategy {{ type messageLimit embedCitations enableFacets messagesWeight contentsWeight }}
    promptStrategy {{ type }}
    retrievalStrategy {{ type contentLimit }}
    rerankingStrategy {{ serviceType }}
    graphStrategy {{ type generateGraph observableLimit }}
    revisionStrategy {{ type customRevision count }}
    openAI {{ {MODEL_BLOCK} reasoningEffort }}
    anthropic {{ {MODEL_BLOCK} enableThinking thinkingTokenLimit }}
    google {{ {MODEL_BLOCK} enableThinking thinkingTokenLimit }}
    groq {{ {MODEL_BLOCK} }}
    cerebras {{ {MODEL_BLOCK} }}
    cohere {{ {MODEL_BLOCK} }}
    mistral {{ {MODEL_BLOCK} }}
    bedrock {{ {MODEL_BLOCK} }}
    deepseek {{ {MODEL_BLOCK} }}
    xai {{ {MODEL_BLOCK} }}
    tools {{ name description schema }}
"""

SPECIFICATION_EXISTS = """
query SpecificationExists($filter: SpecificationFilter, $correlationId: String) {
  specificationExists(filter: $filter, correlationId: $correlationId) { result }
}
"""

PROMPT_SPECIFICATIONS = """
mutation PromptSpecifications($prompt: String!, $ids: [ID!]!) {
  promptSpecifications(prompt: $prompt, ids: $ids) {
    specification { id }
    messages {
      role
      author
      message
      tokens
      throughput
      completionTime
      timestamp
      modelService
      model
    }
    error
  }
}
"""

QUERY_MODELS = """
query QueryModels($filter: ModelFilter) {
  models(filter: $filter) {
    results {
      name
      type
      serviceType
      model
      modelName
      uri
      description
      availableOn
      features {
        keyFeatures
        strengths
        shortcomings
        reasoning
        structuredOutputs
        toolCalling
        vision
      }
      metadata {
        reasoning
        multilingual
        multimodal
        knowledgeCutoff
        promptCostPerMillion
        completionCostPerMillion
        embeddingsCostPerMillion
        rerankingCostPerMillion
        contextWindowTokens
        maxOutputTokens
      }
    }
  }
}
"""


class SpecificationsResource(EntityResource):
    """
    Resource for managing specifications.

    Example:
        >>> spec = client.specifications.create({
        ...     "name": "GPT-4o",
        ...     "type": "COMPLETION",
        ...     "serviceType": "OPEN_AI",
        ...     "openAI": {"model": "GPT4O_128K", "temperature": 0.2},
        ... })
        >>> full = client.specifications.get(spec["id"])
    """

    type_name = "Specification"
    plural = "Specifications"
    fields = SPECIFICATION_FIELDS
    mutation_fields = "id name state type serviceType"

    def exists(self, filter: Optional[Dict[str, Any]] = None, correlation_id: Optional[str] = None) -> Any:
        """Return True if any specification matches the filter."""
        return self._execute(
            SPECIFICATION_EXISTS,
            {"filter": filter, "correlationId": correlation_id},
            "specificationExists.result",
        )

    def prompt_specifications(self, prompt: str, ids: List[str]) -> Any:
        """Prompt several specifications side by side, for comparison."""
        return self._execute(
            PROMPT_SPECIFICATIONS, {"prompt": prompt, "ids": ids}, "promptSpecifications"
        )

    def query_models(self, filter: Optional[Dict[str, Any]] = None) -> Any:
        """List the models the platform supports, with features and pricing."""
        return self._execute(QUERY_MODELS, {"filter": filter}, "models.results")
