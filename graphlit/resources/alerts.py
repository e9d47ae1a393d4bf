"""
Graphlit Python SDK - Alerts Resource

This module provides methods for managing alerts. An alert periodically
summarizes newly ingested content and publishes the result to a connector.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from graphlit.resources.base import EntityResource


ENABLE_ALERT = """
mutation EnableAlert($id: ID!) {
  enableAlert(id: $id) { id state }
}
"""

DISABLE_ALERT = """
mutation DisableAlert($id: ID!) {
  disableAlert(id: $id) { id state }
}
"""


class AlertsResource(EntityResource):
    """
    Resource for managing alerts.

    Example:
        >>> alert = client.alerts.create({
        ...     "name": "Daily digest",
        ...     "type": "PROMPT",
        ...     "publishPrompt": "Summarize today's news",
        ...     "integration": {"type": "SLACK", "slack": {...}},
        ... })
        >>> client.alerts.disable(alert["id"])
    """

    type_name = "Alert"
    plural = "Alerts"
    fields = """
      id
      name
      creationDate
      owner { id }
      state
      correlationId
      type
      summaryPrompt
      publishPrompt
      lastAlertDate
      schedulePolicy { recurrenceType repeatInterval }
      publishing { type }
      integration { type uri }
    """
    mutation_fields = "id name state type"
    supports_upsert = False

    def create(self, entity: Dict[str, Any], correlation_id: Optional[str] = None) -> Any:
        """Create an alert."""
        document = (
            "mutation CreateAlert($alert: AlertInput!, $correlationId: String) {\n"
            f"  createAlert(alert: $alert, correlationId: $correlationId) {{ {self.mutation_fields} }}\n"
            "}"
        )
        return self._execute(
            document, {"alert": entity, "correlationId": correlation_id}, "createAlert"
        )

    def enable(self, alert_id: str) -> Any:
        """Enable a disabled alert."""
        return self._execute(ENABLE_ALERT, {"id": alert_id}, "enableAlert")

    def disable(self, alert_id: str) -> Any:
        """Disable an alert without deleting it."""
        return self._execute(DISABLE_ALERT, {"id": alert_id}, "disableAlert")
