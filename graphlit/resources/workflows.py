"""
Graphlit Python SDK - Workflows Resource

This module provides methods for managing workflows. A workflow describes
how ingested content is prepared, extracted, enriched and stored.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from graphlit.resources.base import EntityResource


WORKFLOW_EXISTS = """
query WorkflowExists($filter: WorkflowFilter, $correlationId: String) {
  workflowExists(filter: $filter, correlationId: $correlationId) { result }
}
"""


class WorkflowsResource(EntityResource):
    """
    Resource for managing workflows.

    Example:
        >>> workflow = client.workflows.upsert({
        ...     "name": "Extract entities",
        ...     "extraction": {"jobs": [{"connector": {"type": "MODEL_TEXT"}}]},
        ... })
        >>> client.contents.ingest_uri(uri, workflow_id=workflow["id"])
    """

    type_name = "Workflow"
    plural = "Workflows"
    fields = """
      id
      name
      creationDate
      modifiedDate
      owner { id }
      state
      ingestion { enableEmailCollections }
      indexing { jobs { connector { type contentType fileType } } }
      preparation { disableSmartCapture summarizations { type tokens items prompt } }
      extraction { jobs { connector { type contentTypes fileTypes extractedTypes } } }
      enrichment { link { enableCrawling allowedLinks excludedLinks maximumLinks } }
      storage { policy { type allowDuplicates } }
      actions { connector { type uri } }
    """
    mutation_fields = "id name state"

    def exists(self, filter: Optional[Dict[str, Any]] = None, correlation_id: Optional[str] = None) -> Any:
        """Return True if any workflow matches the filter."""
        return self._execute(
            WORKFLOW_EXISTS,
            {"filter": filter, "correlationId": correlation_id},
            "workflowExists.result",
        )
