"""
Graphlit Python SDK - Project Resource

This module provides methods for the current project and its usage.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from graphlit.resources.base import BaseResource


GET_PROJECT = """
query GetProject {
  project {
    id
    name
    creationDate
    modifiedDate
    state
    environmentType
    platform
    region
    credits
    lastCreditsDate
    workflow { id name }
    specification { id name }
    quota { storage contents credits feeds posts conversations }
  }
}
"""

UPDATE_PROJECT = """
mutation UpdateProject($project: ProjectUpdateInput!) {
  updateProject(project: $project) { id name }
}
"""

USAGE_FIELDS = """
    id
    correlationId
    date
    credits
    name
    metric
    workflow
    entityType
    entityId
    projectId
    ownerId
    uri
    duration
    throughput
    contentType
    fileType
    modelService
    modelName
    processorName
    prompt
    promptTokens
    count
    completion
    completionTokens
    tokens
"""

CREDITS_FIELDS = """
    correlationId
    ownerId
    credits
    storageRatio
    computeRatio
    embeddingRatio
    completionRatio
    ingestionRatio
    indexingRatio
    preparationRatio
    extractionRatio
    enrichmentRatio
    publishingRatio
    searchRatio
    conversationRatio
"""

LOOKUP_USAGE = f"""
query LookupUsage($correlationId: String!) {{
  lookupUsage(correlationId: $correlationId) {{ {USAGE_FIELDS} }}
}}
"""

LOOKUP_CREDITS = f"""
query LookupCredits($correlationId: String!) {{
  lookupCredits(correlationId: $correlationId) {{ {CREDITS_FIELDS} }}
}}
"""

QUERY_TOKENS = """
query QueryTokens($startDate: DateTime!, $duration: TimeSpan!) {
  tokens(startDate: $startDate, duration: $duration) {
    inputTokens
    outputTokens
    embeddingInputTokens
    embeddingOutputTokens
    completionInputTokens
    completionOutputTokens
    extractionInputTokens
    extractionOutputTokens
  }
}
"""

QUERY_USAGE = f"""
query QueryUsage($startDate: DateTime!, $duration: TimeSpan!, $names: [String!],
                 $excludedNames: [String!], $offset: Int, $limit: Int) {{
  usage(startDate: $startDate, duration: $duration, names: $names,
        excludedNames: $excludedNames, offset: $offset, limit: $limit) {{ {USAGE_FIELDS} }}
}}
"""

QUERY_CREDITS = f"""
query QueryCredits($startDate: DateTime!, $duration: TimeSpan!) {{
  credits(startDate: $startDate, duration: $duration) {{ {CREDITS_FIELDS} }}
}}
"""


class ProjectResource(BaseResource):
    """
    Resource for the current project.

    Example:
        >>> project = client.project.get()
        >>> print(project["name"], project["credits"])
    """

    def get(self) -> Any:
        """Get the project the client is authenticated against."""
        return self._execute(GET_PROJECT, path="project")

    def update(self, project: Dict[str, Any]) -> Any:
        """Update project settings (default workflow, specification, callback)."""
        return self._execute(UPDATE_PROJECT, {"project": project}, "updateProject")

    def lookup_usage(self, correlation_id: str) -> Any:
        """Look up usage records recorded under a correlation ID."""
        return self._execute(LOOKUP_USAGE, {"correlationId": correlation_id}, "lookupUsage")

    def lookup_credits(self, correlation_id: str) -> Any:
        """Look up credits consumed under a correlation ID."""
        return self._execute(LOOKUP_CREDITS, {"correlationId": correlation_id}, "lookupCredits")

    def query_tokens(self, start_date: str, duration: str) -> Any:
        """
        Query token usage over a time window.

        Args:
            start_date: ISO-8601 start of the window
            duration: ISO-8601 duration, e.g. ``"PT1H"``
        """
        return self._execute(
            QUERY_TOKENS, {"startDate": start_date, "duration": duration}, "tokens"
        )

    def query_usage(
        self,
        start_date: str,
        duration: str,
        names: Optional[List[str]] = None,
        excluded_names: Optional[List[str]] = None,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        """Query usage records over a time window."""
        return self._execute(
            QUERY_USAGE,
            {
                "startDate": start_date,
                "duration": duration,
                "names": names,
                "excludedNames": excluded_names,
                "offset": offset,
                "limit": limit,
            },
            "usage",
        )

    def query_credits(self, start_date: str, duration: str) -> Any:
        """Query credits over a time window."""
        return self._execute(
            QUERY_CREDITS, {"startDate": start_date, "duration": duration}, "credits"
        )
