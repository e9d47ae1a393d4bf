"""
Graphlit Python SDK - Conversations Resource

This module provides methods for managing conversations and prompting
models through the platform.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from graphlit.resources.base import EntityResource, entity_reference


MESSAGE_FIELDS = """
    role
    author
    message
    toolCallId
    toolCallResponse
    toolCalls { id name arguments }
    citations {
      content { id name uri type fileType mimeType }
      index
      text
      startTime
      endTime
      pageNumber
      frameNumber
    }
    tokens
    throughput
    ttft
    completionTime
    timestamp
    modelService
    model
    mimeType
    data
"""

CONVERSATION_FIELDS = f"""
    id
    name
    creationDate
    modifiedDate
    owner {{ id }}
    state
    correlationId
    type
    messages {{ {MESSAGE_FIELDS} }}
    specification {{ id name }}
    fallbacks {{ id name }}
    tools {{ name description schema }}
"""

PROMPTED_FIELDS = f"""
    conversation {{ id }}
    message {{ {MESSAGE_FIELDS} }}
    messageCount
"""

DETAILED_PROMPTED_FIELDS = f"""
    conversation {{ id }}
    message {{ {MESSAGE_FIELDS} }}
    messageCount
    details {{
      modelService
      model
      supportsToolCalling
      sourceCount
      observableCount
      toolCount
      renderedSourceCount
      renderedObservableCount
      renderedToolCount
      sourceTokenCount
      tokenLimit
      completionTokenLimit
      messages {{ {MESSAGE_FIELDS} }}
      formattedSources
      formattedTools
      specification
      assistantMessage
    }}
"""

CLEAR_CONVERSATION = """
mutation ClearConversation($id: ID!) {
  clearConversation(id: $id) { id state }
}
"""

CLOSE_CONVERSATION = """
mutation CloseConversation($id: ID!) {
  closeConversation(id: $id) { id state }
}
"""

PROMPT_CONVERSATION = f"""
mutation PromptConversation($prompt: String!, $mimeType: String, $data: String, $id: ID,
                            $specification: EntityReferenceInput, $tools: [ToolDefinitionInput!],
                            $requireTool: Boolean, $includeDetails: Boolean, $correlationId: String) {{
  promptConversation(prompt: $prompt, id: $id, mimeType: $mimeType, data: $data,
                     specification: $specification, tools: $tools, requireTool: $requireTool,
                     includeDetails: $includeDetails, correlationId: $correlationId) {{ {DETAILED_PROMPTED_FIELDS} }}
}}
"""

CONTINUE_CONVERSATION = f"""
mutation ContinueConversation($id: ID!, $responses: [ConversationToolResponseInput!]!,
                              $correlationId: String) {{
  continueConversation(id: $id, responses: $responses, correlationId: $correlationId) {{ {PROMPTED_FIELDS} }}
}}
"""

FORMAT_CONVERSATION = f"""
mutation FormatConversation($prompt: String!, $id: ID, $specification: EntityReferenceInput,
                            $tools: [ToolDefinitionInput!], $systemPrompt: String,
                            $includeDetails: Boolean, $correlationId: String) {{
  formatConversation(prompt: $prompt, id: $id, specification: $specification, tools: $tools,
                     systemPrompt: $systemPrompt, includeDetails: $includeDetails,
                     correlationId: $correlationId) {{ {DETAILED_PROMPTED_FIELDS} }}
}}
"""

COMPLETE_CONVERSATION = f"""
mutation CompleteConversation($completion: String!, $id: ID!, $completionTime: TimeSpan,
                              $ttft: TimeSpan, $throughput: Float, $correlationId: String) {{
  completeConversation(completion: $completion, id: $id, completionTime: $completionTime,
                       ttft: $ttft, throughput: $throughput,
                       correlationId: $correlationId) {{ {PROMPTED_FIELDS} }}
}}
"""

PUBLISH_CONVERSATION = """
mutation PublishConversation($id: ID!, $connector: ContentPublishingConnectorInput!, $name: String,
                             $workflow: EntityReferenceInput, $isSynchronous: Boolean,
                             $correlationId: String) {
  publishConversation(id: $id, connector: $connector, name: $name, workflow: $workflow,
                      isSynchronous: $isSynchronous, correlationId: $correlationId) {
    contents { id name state type fileType mimeType uri }
  }
}
"""

SUGGEST_CONVERSATION = """
mutation SuggestConversation($id: ID!, $count: Int, $correlationId: String) {
  suggestConversation(id: $id, count: $count, correlationId: $correlationId) {
    prompts
  }
}
"""

RETRIEVE_SOURCES = """
mutation RetrieveSources($prompt: String!, $filter: ContentFilter, $augmentedFilter: ContentFilter,
                         $retrievalStrategy: RetrievalStrategyInput,
                         $rerankingStrategy: RerankingStrategyInput, $correlationId: String) {
  retrieveSources(prompt: $prompt, filter: $filter, augmentedFilter: $augmentedFilter,
                  retrievalStrategy: $retrievalStrategy, rerankingStrategy: $rerankingStrategy,
                  correlationId: $correlationId) {
    results {
      type
      content { id }
      text
      metadata
      relevance
      startTime
      endTime
      pageNumber
      frameNumber
    }
  }
}
"""

PROMPT = f"""
mutation Prompt($prompt: String, $mimeType: String, $data: String,
                $specification: EntityReferenceInput, $messages: [ConversationMessageInput!],
                $correlationId: String) {{
  prompt(prompt: $prompt, mimeType: $mimeType, data: $data, specification: $specification,
         messages: $messages, correlationId: $correlationId) {{
    specification {{ id }}
    messages {{ {MESSAGE_FIELDS} }}
    error
  }}
}}
"""

ASK_GRAPHLIT = f"""
mutation AskGraphlit($prompt: String!, $type: SdkTypes, $id: ID,
                     $specification: EntityReferenceInput, $correlationId: String) {{
  askGraphlit(prompt: $prompt, type: $type, id: $id, specification: $specification,
              correlationId: $correlationId) {{ {PROMPTED_FIELDS} }}
}}
"""

REVISE_TEXT = f"""
mutation ReviseText($prompt: String!, $text: String!, $id: ID,
                    $specification: EntityReferenceInput, $correlationId: String) {{
  reviseText(prompt: $prompt, text: $text, id: $id, specification: $specification,
             correlationId: $correlationId) {{ {PROMPTED_FIELDS} }}
}}
"""

REVISE_CONTENT = f"""
mutation ReviseContent($prompt: String!, $content: EntityReferenceInput!, $id: ID,
                       $specification: EntityReferenceInput, $correlationId: String) {{
  reviseContent(prompt: $prompt, content: $content, id: $id, specification: $specification,
                correlationId: $correlationId) {{ {PROMPTED_FIELDS} }}
}}
"""

REVISE_IMAGE = f"""
mutation ReviseImage($prompt: String!, $uri: URL!, $id: ID,
                     $specification: EntityReferenceInput, $correlationId: String) {{
  reviseImage(prompt: $prompt, uri: $uri, id: $id, specification: $specification,
              correlationId: $correlationId) {{ {PROMPTED_FIELDS} }}
}}
"""

REVISE_ENCODED_IMAGE = f"""
mutation ReviseEncodedImage($prompt: String!, $mimeType: String!, $data: String!, $id: ID,
                            $specification: EntityReferenceInput, $correlationId: String) {{
  reviseEncodedImage(prompt: $prompt, mimeType: $mimeType, data: $data, id: $id,
                     specification: $specification,
                     correlationId: $correlationId) {{ {PROMPTED_FIELDS} }}
}}
"""


class ConversationsResource(EntityResource):
    """
    Resource for managing conversations.

    A conversation holds the message history of a RAG chat. Prompting
    retrieves relevant content, calls the specification's model and
    appends the exchange to the conversation.

    Example:
        >>> response = client.conversations.prompt_conversation("What changed in Q3?")
        >>> print(response["message"]["message"])
        >>> conversation_id = response["conversation"]["id"]
    """

    type_name = "Conversation"
    plural = "Conversations"
    fields = CONVERSATION_FIELDS
    mutation_fields = "id name state type"
    supports_upsert = False

    def create(self, entity: Dict[str, Any], correlation_id: Optional[str] = None) -> Any:
        """Create a conversation (name, specification, tools, filter, ...)."""
        document = (
            "mutation CreateConversation($conversation: ConversationInput!, $correlationId: String) {\n"
            "  createConversation(conversation: $conversation, correlationId: $correlationId) "
            f"{{ {self.mutation_fields} }}\n"
            "}"
        )
        return self._execute(
            document,
            {"conversation": entity, "correlationId": correlation_id},
            "createConversation",
        )

    def clear(self, conversation_id: str) -> Any:
        """Remove all messages from a conversation."""
        return self._execute(CLEAR_CONVERSATION, {"id": conversation_id}, "clearConversation")

    def close(self, conversation_id: str) -> Any:
        """Close a conversation to further prompts."""
        return self._execute(CLOSE_CONVERSATION, {"id": conversation_id}, "closeConversation")

    # =========================================================================
    # Prompting
    # =========================================================================

    def prompt_conversation(
        self,
        prompt: str,
        id: Optional[str] = None,
        specification_id: Optional[str] = None,
        mime_type: Optional[str] = None,
        data: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        require_tool: Optional[bool] = None,
        include_details: Optional[bool] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """
        Prompt a conversation, creating it when ``id`` is omitted.

        Args:
            prompt: User prompt
            id: Existing conversation ID
            specification_id: Specification to prompt with
            mime_type: MIME type of an attached image
            data: Base64 image data
            tools: ``ToolDefinitionInput`` dicts the model may call
            require_tool: Force the model to call a tool
            include_details: Return formatting details
            correlation_id: Correlation ID for usage tracking

        Returns:
            ``{"conversation": {"id": ...}, "message": {...}, "messageCount": n}``
        """
        return self._execute(
            PROMPT_CONVERSATION,
            {
                "prompt": prompt,
                "id": id,
                "specification": entity_reference(specification_id),
                "mimeType": mime_type,
                "data": data,
                "tools": tools,
                "requireTool": require_tool,
                "includeDetails": include_details,
                "correlationId": correlation_id,
            },
            "promptConversation",
        )

    def continue_conversation(
        self,
        id: str,
        responses: List[Dict[str, Any]],
        correlation_id: Optional[str] = None,
    ) -> Any:
        """
        Continue a conversation with tool call responses.

        Args:
            id: Conversation ID
            responses: ``{"id": tool_call_id, "content": str}`` dicts
        """
        return self._execute(
            CONTINUE_CONVERSATION,
            {"id": id, "responses": responses, "correlationId": correlation_id},
            "continueConversation",
        )

    def format_conversation(
        self,
        prompt: str,
        id: Optional[str] = None,
        specification_id: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        system_prompt: Optional[str] = None,
        include_details: Optional[bool] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """
        Format a prompt with retrieved sources without calling the model.

        Used by streaming agents, which call the model locally and report
        the completion back with :meth:`complete_conversation`.
        """
        return self._execute(
            FORMAT_CONVERSATION,
            {
                "prompt": prompt,
                "id": id,
                "specification": entity_reference(specification_id),
                "tools": tools,
                "systemPrompt": system_prompt,
                "includeDetails": include_details,
                "correlationId": correlation_id,
            },
            "formatConversation",
        )

    def complete_conversation(
        self,
        completion: str,
        id: str,
        completion_time: Optional[str] = None,
        ttft: Optional[str] = None,
        throughput: Optional[float] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Record a locally generated completion on the conversation."""
        return self._execute(
            COMPLETE_CONVERSATION,
            {
                "completion": completion,
                "id": id,
                "completionTime": completion_time,
                "ttft": ttft,
                "throughput": throughput,
                "correlationId": correlation_id,
            },
            "completeConversation",
        )

    def publish(
        self,
        id: str,
        connector: Dict[str, Any],
        name: Optional[str] = None,
        workflow_id: Optional[str] = None,
        is_synchronous: Optional[bool] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Publish a conversation transcript as new content."""
        return self._execute(
            PUBLISH_CONVERSATION,
            {
                "id": id,
                "connector": connector,
                "name": name,
                "workflow": entity_reference(workflow_id),
                "isSynchronous": is_synchronous,
                "correlationId": correlation_id,
            },
            "publishConversation",
        )

    def suggest(self, id: str, count: Optional[int] = None, correlation_id: Optional[str] = None) -> Any:
        """Suggest follow-up prompts for a conversation."""
        return self._execute(
            SUGGEST_CONVERSATION,
            {"id": id, "count": count, "correlationId": correlation_id},
            "suggestConversation.prompts",
        )

    def retrieve_sources(
        self,
        prompt: str,
        filter: Optional[Dict[str, Any]] = None,
        augmented_filter: Optional[Dict[str, Any]] = None,
        retrieval_strategy: Optional[Dict[str, Any]] = None,
        reranking_strategy: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Retrieve the content sources a prompt would be grounded on."""
        return self._execute(
            RETRIEVE_SOURCES,
            {
                "prompt": prompt,
                "filter": filter,
                "augmentedFilter": augmented_filter,
                "retrievalStrategy": retrieval_strategy,
                "rerankingStrategy": reranking_strategy,
                "correlationId": correlation_id,
            },
            "retrieveSources.results",
        )

    def prompt(
        self,
        prompt: Optional[str] = None,
        mime_type: Optional[str] = None,
        data: Optional[str] = None,
        specification_id: Optional[str] = None,
        messages: Optional[List[Dict[str, Any]]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Prompt a model directly, without a stored conversation."""
        return self._execute(
            PROMPT,
            {
                "prompt": prompt,
                "mimeType": mime_type,
                "data": data,
                "specification": entity_reference(specification_id),
                "messages": messages,
                "correlationId": correlation_id,
            },
            "prompt",
        )

    def ask_graphlit(
        self,
        prompt: str,
        type: Optional[str] = None,
        id: Optional[str] = None,
        specification_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Ask the Graphlit documentation assistant, optionally for an SDK type."""
        return self._execute(
            ASK_GRAPHLIT,
            {
                "prompt": prompt,
                "type": type,
                "id": id,
                "specification": entity_reference(specification_id),
                "correlationId": correlation_id,
            },
            "askGraphlit",
        )

    def revise_text(
        self,
        prompt: str,
        text: str,
        id: Optional[str] = None,
        specification_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Revise text according to a prompt."""
        return self._execute(
            REVISE_TEXT,
            {
                "prompt": prompt,
                "text": text,
                "id": id,
                "specification": entity_reference(specification_id),
                "correlationId": correlation_id,
            },
            "reviseText",
        )

    def revise_content(
        self,
        prompt: str,
        content_id: str,
        id: Optional[str] = None,
        specification_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Revise an ingested content's text according to a prompt."""
        return self._execute(
            REVISE_CONTENT,
            {
                "prompt": prompt,
                "content": {"id": content_id},
                "id": id,
                "specification": entity_reference(specification_id),
                "correlationId": correlation_id,
            },
            "reviseContent",
        )

    def revise_image(
        self,
        prompt: str,
        uri: str,
        id: Optional[str] = None,
        specification_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Revise the description of the image at a URI."""
        return self._execute(
            REVISE_IMAGE,
            {
                "prompt": prompt,
                "uri": uri,
                "id": id,
                "specification": entity_reference(specification_id),
                "correlationId": correlation_id,
            },
            "reviseImage",
        )

    def revise_encoded_image(
        self,
        prompt: str,
        mime_type: str,
        data: str,
        id: Optional[str] = None,
        specification_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Revise the description of a base64-encoded image."""
        return self._execute(
            REVISE_ENCODED_IMAGE,
            {
                "prompt": prompt,
                "mimeType": mime_type,
                "data": data,
                "id": id,
                "specification": entity_reference(specification_id),
                "correlationId": correlation_id,
            },
            "reviseEncodedImage",
        )
