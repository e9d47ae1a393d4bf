"""
Graphlit Python SDK - Contents Resource

This module provides methods for ingesting, querying and transforming
content (files, web pages, text, memories and events).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from graphlit.models import TextTypes
from graphlit.resources.base import EntityResource, entity_reference, entity_references


INGESTED_FIELDS = """
    id
    name
    state
    type
    fileType
    mimeType
    uri
    collections { id name }
    observations { id type observable { id name } }
"""

CONTENT_FIELDS = """
    id
    name
    creationDate
    modifiedDate
    owner { id }
    state
    originalDate
    finishedDate
    workflowDuration
    uri
    description
    markdown
    type
    fileType
    mimeType
    fileName
    fileSize
    fileExtension
    masterUri
    imageUri
    textUri
    audioUri
    transcriptUri
    summary
    customSummary
    keywords
    bullets
    headlines
    posts
    chapters
    questions
    feed { id name }
    collections { id name }
    workflow { id name }
    pages { index text relevance }
    error
"""

INGEST_URI = f"""
mutation IngestUri($name: String, $uri: URL!, $id: ID, $isSynchronous: Boolean,
                   $workflow: EntityReferenceInput, $collections: [EntityReferenceInput!],
                   $observations: [ObservationReferenceInput!], $correlationId: String) {{
  ingestUri(name: $name, uri: $uri, id: $id, isSynchronous: $isSynchronous, workflow: $workflow,
            collections: $collections, observations: $observations,
            correlationId: $correlationId) {{ {INGESTED_FIELDS} }}
}}
"""

INGEST_TEXT = f"""
mutation IngestText($name: String, $text: String!, $textType: TextTypes, $uri: URL, $id: ID,
                    $isSynchronous: Boolean, $workflow: EntityReferenceInput,
                    $collections: [EntityReferenceInput!], $observations: [ObservationReferenceInput!],
                    $correlationId: String) {{
  ingestText(name: $name, text: $text, textType: $textType, uri: $uri, id: $id,
             isSynchronous: $isSynchronous, workflow: $workflow, collections: $collections,
             observations: $observations, correlationId: $correlationId) {{ {INGESTED_FIELDS} }}
}}
"""

INGEST_MEMORY = f"""
mutation IngestMemory($name: String, $text: String!, $textType: TextTypes, $id: ID,
                      $collections: [EntityReferenceInput!], $correlationId: String) {{
  ingestMemory(name: $name, text: $text, textType: $textType, id: $id,
               collections: $collections, correlationId: $correlationId) {{ {INGESTED_FIELDS} }}
}}
"""

INGEST_EVENT = f"""
mutation IngestEvent($markdown: String!, $name: String, $description: String, $eventDate: DateTime,
                     $id: ID, $collections: [EntityReferenceInput!], $correlationId: String) {{
  ingestEvent(markdown: $markdown, name: $name, description: $description, eventDate: $eventDate,
              id: $id, collections: $collections, correlationId: $correlationId) {{ {INGESTED_FIELDS} }}
}}
"""

INGEST_ENCODED_FILE = f"""
mutation IngestEncodedFile($name: String!, $data: String!, $mimeType: String!,
                           $fileCreationDate: DateTime, $fileModifiedDate: DateTime, $id: ID,
                           $isSynchronous: Boolean, $workflow: EntityReferenceInput,
                           $collections: [EntityReferenceInput!],
                           $observations: [ObservationReferenceInput!], $correlationId: String) {{
  ingestEncodedFile(name: $name, data: $data, mimeType: $mimeType,
                    fileCreationDate: $fileCreationDate, fileModifiedDate: $fileModifiedDate,
                    id: $id, isSynchronous: $isSynchronous, workflow: $workflow,
                    collections: $collections, observations: $observations,
                    correlationId: $correlationId) {{ {INGESTED_FIELDS} }}
}}
"""

INGEST_BATCH = f"""
mutation IngestBatch($uris: [URL!]!, $workflow: EntityReferenceInput,
                     $collections: [EntityReferenceInput!],
                     $observations: [ObservationReferenceInput!], $correlationId: String) {{
  ingestBatch(uris: $uris, workflow: $workflow, collections: $collections,
              observations: $observations, correlationId: $correlationId) {{ {INGESTED_FIELDS} }}
}}
"""

INGEST_TEXT_BATCH = f"""
mutation IngestTextBatch($batch: [TextContentInput!]!, $textType: TextTypes,
                         $workflow: EntityReferenceInput, $collections: [EntityReferenceInput!],
                         $observations: [ObservationReferenceInput!], $correlationId: String) {{
  ingestTextBatch(batch: $batch, textType: $textType, workflow: $workflow,
                  collections: $collections, observations: $observations,
                  correlationId: $correlationId) {{ {INGESTED_FIELDS} }}
}}
"""

IS_CONTENT_DONE = """
query IsContentDone($id: ID!) {
  isContentDone(id: $id) { result }
}
"""

QUERY_CONTENTS_FACETS = """
query QueryContentsFacets($filter: ContentFilter, $facets: [ContentFacetInput!], $correlationId: String) {
  contents(filter: $filter, facets: $facets, correlationId: $correlationId) {
    facets {
      type
      value
      range { from to }
      count
      facet
      observable { type observable { id name } }
    }
  }
}
"""

QUERY_CONTENTS_GRAPH = """
query QueryContentsGraph($filter: ContentFilter, $graph: ContentGraphInput, $correlationId: String) {
  contents(filter: $filter, graph: $graph, correlationId: $correlationId) {
    graph {
      nodes { id name type metadata }
      edges { from to relation }
    }
  }
}
"""

SUMMARIZE_TEXT = """
mutation SummarizeText($summarization: SummarizationStrategyInput!, $text: String!,
                       $textType: TextTypes, $correlationId: String) {
  summarizeText(summarization: $summarization, text: $text, textType: $textType,
                correlationId: $correlationId) {
    type
    items { text tokens summarizationTime }
    error
  }
}
"""

SUMMARIZE_CONTENTS = """
mutation SummarizeContents($summarizations: [SummarizationStrategyInput]!, $filter: ContentFilter,
                           $correlationId: String) {
  summarizeContents(summarizations: $summarizations, filter: $filter, correlationId: $correlationId) {
    specification { id }
    content { id }
    type
    items { text tokens summarizationTime }
    error
  }
}
"""

EXTRACTION_FIELDS = """
    specification { id }
    content { id }
    value
    startTime
    endTime
    pageNumber
    error
"""

EXTRACT_TEXT = f"""
mutation ExtractText($prompt: String!, $text: String!, $textType: TextTypes,
                     $specification: EntityReferenceInput!, $tools: [ToolDefinitionInput!]!,
                     $correlationId: String) {{
  extractText(prompt: $prompt, text: $text, textType: $textType, specification: $specification,
              tools: $tools, correlationId: $correlationId) {{ {EXTRACTION_FIELDS} }}
}}
"""

EXTRACT_CONTENTS = f"""
mutation ExtractContents($prompt: String!, $filter: ContentFilter,
                         $specification: EntityReferenceInput!, $tools: [ToolDefinitionInput!]!,
                         $correlationId: String) {{
  extractContents(prompt: $prompt, filter: $filter, specification: $specification,
                  tools: $tools, correlationId: $correlationId) {{ {EXTRACTION_FIELDS} }}
}}
"""

PUBLISHED_FIELDS = """
    contents { id name state type fileType mimeType uri }
    details { summaries publishedContent publishingModel summarizationModel }
"""

PUBLISH_CONTENTS = f"""
mutation PublishContents($summaryPrompt: String, $publishPrompt: String!,
                         $connector: ContentPublishingConnectorInput!, $filter: ContentFilter,
                         $includeDetails: Boolean, $isSynchronous: Boolean, $correlationId: String,
                         $name: String, $summarySpecification: EntityReferenceInput,
                         $publishSpecification: EntityReferenceInput, $workflow: EntityReferenceInput) {{
  publishContents(summaryPrompt: $summaryPrompt, publishPrompt: $publishPrompt,
                  connector: $connector, filter: $filter, includeDetails: $includeDetails,
                  isSynchronous: $isSynchronous, correlationId: $correlationId, name: $name,
                  summarySpecification: $summarySpecification,
                  publishSpecification: $publishSpecification, workflow: $workflow) {{ {PUBLISHED_FIELDS} }}
}}
"""

PUBLISH_TEXT = f"""
mutation PublishText($text: String!, $textType: TextTypes,
                     $connector: ContentPublishingConnectorInput!, $isSynchronous: Boolean,
                     $correlationId: String, $name: String, $workflow: EntityReferenceInput) {{
  publishText(text: $text, textType: $textType, connector: $connector,
              isSynchronous: $isSynchronous, correlationId: $correlationId, name: $name,
              workflow: $workflow) {{ {PUBLISHED_FIELDS} }}
}}
"""

DESCRIBED_FIELDS = """
    role
    author
    message
    tokens
    throughput
    completionTime
    timestamp
    modelService
    model
"""

DESCRIBE_IMAGE = f"""
mutation DescribeImage($prompt: String!, $uri: URL!, $specification: EntityReferenceInput,
                       $correlationId: String) {{
  describeImage(prompt: $prompt, uri: $uri, specification: $specification,
                correlationId: $correlationId) {{ {DESCRIBED_FIELDS} }}
}}
"""

DESCRIBE_ENCODED_IMAGE = f"""
mutation DescribeEncodedImage($prompt: String!, $mimeType: String!, $data: String!,
                              $specification: EntityReferenceInput, $correlationId: String) {{
  describeEncodedImage(prompt: $prompt, mimeType: $mimeType, data: $data,
                       specification: $specification, correlationId: $correlationId) {{ {DESCRIBED_FIELDS} }}
}}
"""

SCREENSHOT_PAGE = f"""
mutation ScreenshotPage($uri: URL!, $maximumHeight: Int, $isSynchronous: Boolean,
                        $workflow: EntityReferenceInput, $collections: [EntityReferenceInput!],
                        $correlationId: String) {{
  screenshotPage(uri: $uri, maximumHeight: $maximumHeight, isSynchronous: $isSynchronous,
                 workflow: $workflow, collections: $collections,
                 correlationId: $correlationId) {{ {INGESTED_FIELDS} }}
}}
"""


class ContentsResource(EntityResource):
    """
    Resource for managing content.

    Content is anything ingested into the project: files, web pages, raw
    text, memories and events. Ingestion is asynchronous unless
    ``is_synchronous`` is set; poll :meth:`is_done` to wait for it.

    Example:
        >>> content = client.contents.ingest_uri(
        ...     "https://example.com/report.pdf", is_synchronous=True
        ... )
        >>> client.contents.get(content["id"])["markdown"][:200]
    """

    type_name = "Content"
    plural = "Contents"
    fields = CONTENT_FIELDS
    supports_upsert = False

    # =========================================================================
    # Ingestion
    # =========================================================================

    def ingest_uri(
        self,
        uri: str,
        name: Optional[str] = None,
        id: Optional[str] = None,
        is_synchronous: Optional[bool] = None,
        workflow_id: Optional[str] = None,
        collection_ids: Optional[List[str]] = None,
        observations: Optional[List[Dict[str, Any]]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """
        Ingest a file or web page by URI.

        Args:
            uri: Location of the content
            name: Optional display name
            id: Optional ID to assign to the new content
            is_synchronous: Block until ingestion finishes
            workflow_id: Workflow to process the content with
            collection_ids: Collections to add the content to
            observations: Observation references to attach
            correlation_id: Correlation ID for usage tracking

        Returns:
            The ingested content (id, name, state, type, ...)
        """
        return self._execute(
            INGEST_URI,
            {
                "uri": uri,
                "name": name,
                "id": id,
                "isSynchronous": is_synchronous,
                "workflow": entity_reference(workflow_id),
                "collections": entity_references(collection_ids),
                "observations": observations,
                "correlationId": correlation_id,
            },
            "ingestUri",
        )

    def ingest_text(
        self,
        text: str,
        name: Optional[str] = None,
        text_type: Optional[TextTypes] = None,
        uri: Optional[str] = None,
        id: Optional[str] = None,
        is_synchronous: Optional[bool] = None,
        workflow_id: Optional[str] = None,
        collection_ids: Optional[List[str]] = None,
        observations: Optional[List[Dict[str, Any]]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Ingest raw text (plain, markdown or HTML)."""
        return self._execute(
            INGEST_TEXT,
            {
                "text": text,
                "name": name,
                "textType": text_type,
                "uri": uri,
                "id": id,
                "isSynchronous": is_synchronous,
                "workflow": entity_reference(workflow_id),
                "collections": entity_references(collection_ids),
                "observations": observations,
                "correlationId": correlation_id,
            },
            "ingestText",
        )

    def ingest_memory(
        self,
        text: str,
        name: Optional[str] = None,
        text_type: Optional[TextTypes] = None,
        id: Optional[str] = None,
        collection_ids: Optional[List[str]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Ingest a short-term memory."""
        return self._execute(
            INGEST_MEMORY,
            {
                "text": text,
                "name": name,
                "textType": text_type,
                "id": id,
                "collections": entity_references(collection_ids),
                "correlationId": correlation_id,
            },
            "ingestMemory",
        )

    def ingest_event(
        self,
        markdown: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        event_date: Optional[str] = None,
        id: Optional[str] = None,
        collection_ids: Optional[List[str]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Ingest an event described in markdown."""
        return self._execute(
            INGEST_EVENT,
            {
                "markdown": markdown,
                "name": name,
                "description": description,
                "eventDate": event_date,
                "id": id,
                "collections": entity_references(collection_ids),
                "correlationId": correlation_id,
            },
            "ingestEvent",
        )

    def ingest_encoded_file(
        self,
        name: str,
        data: str,
        mime_type: str,
        file_creation_date: Optional[str] = None,
        file_modified_date: Optional[str] = None,
        id: Optional[str] = None,
        is_synchronous: Optional[bool] = None,
        workflow_id: Optional[str] = None,
        collection_ids: Optional[List[str]] = None,
        observations: Optional[List[Dict[str, Any]]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """
        Ingest a base64-encoded file.

        Args:
            name: File name, including extension
            data: Base64 file contents
            mime_type: MIME type of the file
        """
        return self._execute(
            INGEST_ENCODED_FILE,
            {
                "name": name,
                "data": data,
                "mimeType": mime_type,
                "fileCreationDate": file_creation_date,
                "fileModifiedDate": file_modified_date,
                "id": id,
                "isSynchronous": is_synchronous,
                "workflow": entity_reference(workflow_id),
                "collections": entity_references(collection_ids),
                "observations": observations,
                "correlationId": correlation_id,
            },
            "ingestEncodedFile",
        )

    def ingest_batch(
        self,
        uris: List[str],
        workflow_id: Optional[str] = None,
        collection_ids: Optional[List[str]] = None,
        observations: Optional[List[Dict[str, Any]]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Ingest several URIs in one call."""
        return self._execute(
            INGEST_BATCH,
            {
                "uris": uris,
                "workflow": entity_reference(workflow_id),
                "collections": entity_references(collection_ids),
                "observations": observations,
                "correlationId": correlation_id,
            },
            "ingestBatch",
        )

    def ingest_text_batch(
        self,
        batch: List[Dict[str, Any]],
        text_type: Optional[TextTypes] = None,
        workflow_id: Optional[str] = None,
        collection_ids: Optional[List[str]] = None,
        observations: Optional[List[Dict[str, Any]]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Ingest several texts (``TextContentInput`` dicts) in one call."""
        return self._execute(
            INGEST_TEXT_BATCH,
            {
                "batch": batch,
                "textType": text_type,
                "workflow": entity_reference(workflow_id),
                "collections": entity_references(collection_ids),
                "observations": observations,
                "correlationId": correlation_id,
            },
            "ingestTextBatch",
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def is_done(self, content_id: str) -> Any:
        """Return True once the content has finished its workflow."""
        return self._execute(IS_CONTENT_DONE, {"id": content_id}, "isContentDone.result")

    def query_facets(
        self,
        filter: Optional[Dict[str, Any]] = None,
        facets: Optional[List[Dict[str, Any]]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Query content facets (counts by type, file type, observable, ...)."""
        return self._execute(
            QUERY_CONTENTS_FACETS,
            {"filter": filter, "facets": facets, "correlationId": correlation_id},
            "contents.facets",
        )

    def query_graph(
        self,
        filter: Optional[Dict[str, Any]] = None,
        graph: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Query the knowledge graph of the matching contents."""
        return self._execute(
            QUERY_CONTENTS_GRAPH,
            {"filter": filter, "graph": graph if graph is not None else {}, "correlationId": correlation_id},
            "contents.graph",
        )

    # =========================================================================
    # Transformations
    # =========================================================================

    def summarize_text(
        self,
        summarization: Dict[str, Any],
        text: str,
        text_type: Optional[TextTypes] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Summarize raw text with a ``SummarizationStrategyInput``."""
        return self._execute(
            SUMMARIZE_TEXT,
            {
                "summarization": summarization,
                "text": text,
                "textType": text_type,
                "correlationId": correlation_id,
            },
            "summarizeText",
        )

    def summarize_contents(
        self,
        summarizations: List[Dict[str, Any]],
        filter: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Summarize the matching contents with one or more strategies."""
        return self._execute(
            SUMMARIZE_CONTENTS,
            {"summarizations": summarizations, "filter": filter, "correlationId": correlation_id},
            "summarizeContents",
        )

    def extract_text(
        self,
        prompt: str,
        text: str,
        tools: List[Dict[str, Any]],
        specification_id: Optional[str] = None,
        text_type: Optional[TextTypes] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """
        Extract structured data from text via tool calling.

        Returns:
            List of extractions; each ``value`` is the JSON arguments the
            model produced for one of ``tools``
        """
        return self._execute(
            EXTRACT_TEXT,
            {
                "prompt": prompt,
                "text": text,
                "textType": text_type,
                "specification": entity_reference(specification_id),
                "tools": tools,
                "correlationId": correlation_id,
            },
            "extractText",
        )

    def extract_contents(
        self,
        prompt: str,
        tools: List[Dict[str, Any]],
        specification_id: Optional[str] = None,
        filter: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Extract structured data from the matching contents."""
        return self._execute(
            EXTRACT_CONTENTS,
            {
                "prompt": prompt,
                "filter": filter,
                "specification": entity_reference(specification_id),
                "tools": tools,
                "correlationId": correlation_id,
            },
            "extractContents",
        )

    def publish_contents(
        self,
        publish_prompt: str,
        connector: Dict[str, Any],
        summary_prompt: Optional[str] = None,
        summary_specification_id: Optional[str] = None,
        publish_specification_id: Optional[str] = None,
        name: Optional[str] = None,
        filter: Optional[Dict[str, Any]] = None,
        workflow_id: Optional[str] = None,
        is_synchronous: Optional[bool] = None,
        include_details: Optional[bool] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Summarize the matching contents and publish the result as new content."""
        return self._execute(
            PUBLISH_CONTENTS,
            {
                "publishPrompt": publish_prompt,
                "connector": connector,
                "summaryPrompt": summary_prompt,
                "summarySpecification": entity_reference(summary_specification_id),
                "publishSpecification": entity_reference(publish_specification_id),
                "name": name,
                "filter": filter,
                "workflow": entity_reference(workflow_id),
                "isSynchronous": is_synchronous,
                "includeDetails": include_details,
                "correlationId": correlation_id,
            },
            "publishContents",
        )

    def publish_text(
        self,
        text: str,
        connector: Dict[str, Any],
        text_type: Optional[TextTypes] = None,
        name: Optional[str] = None,
        workflow_id: Optional[str] = None,
        is_synchronous: Optional[bool] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Publish text (e.g. to audio) as new content."""
        return self._execute(
            PUBLISH_TEXT,
            {
                "text": text,
                "textType": text_type,
                "connector": connector,
                "name": name,
                "workflow": entity_reference(workflow_id),
                "isSynchronous": is_synchronous,
                "correlationId": correlation_id,
            },
            "publishText",
        )

    def describe_image(
        self,
        prompt: str,
        uri: str,
        specification_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Describe the image at a URI with a vision model."""
        return self._execute(
            DESCRIBE_IMAGE,
            {
                "prompt": prompt,
                "uri": uri,
                "specification": entity_reference(specification_id),
                "correlationId": correlation_id,
            },
            "describeImage",
        )

    def describe_encoded_image(
        self,
        prompt: str,
        mime_type: str,
        data: str,
        specification_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Describe a base64-encoded image with a vision model."""
        return self._execute(
            DESCRIBE_ENCODED_IMAGE,
            {
                "prompt": prompt,
                "mimeType": mime_type,
                "data": data,
                "specification": entity_reference(specification_id),
                "correlationId": correlation_id,
            },
            "describeEncodedImage",
        )

    def screenshot_page(
        self,
        uri: str,
        maximum_height: Optional[int] = None,
        is_synchronous: Optional[bool] = None,
        workflow_id: Optional[str] = None,
        collection_ids: Optional[List[str]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Capture a web page screenshot and ingest it as content."""
        return self._execute(
            SCREENSHOT_PAGE,
            {
                "uri": uri,
                "maximumHeight": maximum_height,
                "isSynchronous": is_synchronous,
                "workflow": entity_reference(workflow_id),
                "collections": entity_references(collection_ids),
                "correlationId": correlation_id,
            },
            "screenshotPage",
        )
