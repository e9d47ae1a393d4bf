"""
Graphlit Python SDK - Feeds Resource

This module provides methods for managing feeds. A feed continuously
ingests content from a source such as a web site, RSS feed, cloud storage
bucket or messaging workspace.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from graphlit.resources.base import EntityResource


ENABLE_FEED = """
mutation EnableFeed($id: ID!) {
  enableFeed(id: $id) { id state }
}
"""

DISABLE_FEED = """
mutation DisableFeed($id: ID!) {
  disableFeed(id: $id) { id state }
}
"""

FEED_EXISTS = """
query FeedExists($filter: FeedFilter, $correlationId: String) {
  feedExists(filter: $filter, correlationId: $correlationId) { result }
}
"""

IS_FEED_DONE = """
query IsFeedDone($id: ID!) {
  isFeedDone(id: $id) { result }
}
"""


class FeedsResource(EntityResource):
    """
    Resource for managing feeds.

    Example:
        >>> feed = client.feeds.create({
        ...     "name": "Graphlit blog",
        ...     "type": "RSS",
        ...     "rss": {"uri": "https://www.graphlit.com/blog/rss.xml", "readLimit": 10},
        ... })
        >>> while not client.feeds.is_done(feed["id"]):
        ...     time.sleep(5)
    """

    type_name = "Feed"
    plural = "Feeds"
    fields = """
      id
      name
      creationDate
      modifiedDate
      owner { id }
      state
      correlationId
      type
      syncMode
      error
      lastPostDate
      lastReadDate
      readCount
      schedulePolicy { recurrenceType repeatInterval }
      workflow { id name }
    """
    mutation_fields = "id name state type"
    supports_upsert = False

    def create(self, entity: Dict[str, Any], correlation_id: Optional[str] = None) -> Any:
        """Create a feed."""
        document = (
            "mutation CreateFeed($feed: FeedInput!, $correlationId: String) {\n"
            f"  createFeed(feed: $feed, correlationId: $correlationId) {{ {self.mutation_fields} }}\n"
            "}"
        )
        return self._execute(document, {"feed": entity, "correlationId": correlation_id}, "createFeed")

    def enable(self, feed_id: str) -> Any:
        """Resume a disabled feed."""
        return self._execute(ENABLE_FEED, {"id": feed_id}, "enableFeed")

    def disable(self, feed_id: str) -> Any:
        """Pause a feed without deleting it."""
        return self._execute(DISABLE_FEED, {"id": feed_id}, "disableFeed")

    def exists(self, filter: Optional[Dict[str, Any]] = None, correlation_id: Optional[str] = None) -> Any:
        """Return True if any feed matches the filter."""
        return self._execute(
            FEED_EXISTS, {"filter": filter, "correlationId": correlation_id}, "feedExists.result"
        )

    def is_done(self, feed_id: str) -> Any:
        """Return True once a one-shot feed has finished ingesting."""
        return self._execute(IS_FEED_DONE, {"id": feed_id}, "isFeedDone.result")
