"""
Graphlit Python SDK - Web and Notification Resources
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from graphlit.models import TextTypes
from graphlit.resources.base import BaseResource


MAP_WEB = """
query MapWeb($uri: URL!, $allowedPaths: [String!], $excludedPaths: [String!], $correlationId: String) {
  mapWeb(uri: $uri, allowedPaths: $allowedPaths, excludedPaths: $excludedPaths,
         correlationId: $correlationId) {
    results
  }
}
"""

SEARCH_WEB = """
query SearchWeb($text: String!, $service: SearchServiceTypes, $limit: Int, $correlationId: String) {
  searchWeb(text: $text, service: $service, limit: $limit, correlationId: $correlationId) {
    results { uri text title score }
  }
}
"""

SEND_NOTIFICATION = """
mutation SendNotification($connector: IntegrationConnectorInput!, $text: String!, $textType: TextTypes) {
  sendNotification(connector: $connector, text: $text, textType: $textType) {
    result
  }
}
"""


class WebResource(BaseResource):
    """
    Resource for web mapping and web search.

    Example:
        >>> pages = client.web.map_web("https://www.graphlit.com")
        >>> hits = client.web.search_web("knowledge graphs", limit=5)
    """

    def map_web(
        self,
        uri: str,
        allowed_paths: Optional[List[str]] = None,
        excluded_paths: Optional[List[str]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """List the page URIs reachable from a site root."""
        return self._execute(
            MAP_WEB,
            {
                "uri": uri,
                "allowedPaths": allowed_paths,
                "excludedPaths": excluded_paths,
                "correlationId": correlation_id,
            },
            "mapWeb.results",
        )

    def search_web(
        self,
        text: str,
        service: Optional[str] = None,
        limit: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Search the web through the configured search service."""
        return self._execute(
            SEARCH_WEB,
            {"text": text, "service": service, "limit": limit, "correlationId": correlation_id},
            "searchWeb.results",
        )


class NotificationsResource(BaseResource):
    """Resource for sending notifications through integration connectors."""

    def send(
        self,
        connector: Dict[str, Any],
        text: str,
        text_type: Optional[TextTypes] = None,
    ) -> Any:
        """
        Send a notification.

        Args:
            connector: ``IntegrationConnectorInput`` (Slack, email, webhook, ...)
            text: Notification body
            text_type: Format of ``text``

        Returns:
            True if the notification was accepted
        """
        return self._execute(
            SEND_NOTIFICATION,
            {"connector": connector, "text": text, "textType": text_type},
            "sendNotification.result",
        )

    send_notification = send
