"""
Graphlit Python SDK - Collections Resource
"""

from __future__ import annotations

from typing import Any, List

from graphlit.resources.base import EntityResource, entity_references


ADD_CONTENTS_TO_COLLECTIONS = """
mutation AddContentsToCollections($contents: [EntityReferenceInput!]!, $collections: [EntityReferenceInput!]!) {
  addContentsToCollections(contents: $contents, collections: $collections) {
    id
    name
    state
    type
    contents { id name }
  }
}
"""

REMOVE_CONTENTS_FROM_COLLECTION = """
mutation RemoveContentsFromCollection($contents: [EntityReferenceInput!]!, $collection: EntityReferenceInput!) {
  removeContentsFromCollection(contents: $contents, collection: $collection) {
    id
    name
    state
    type
    contents { id name }
  }
}
"""


class CollectionsResource(EntityResource):
    """
    Resource for managing collections of content.

    Example:
        >>> collection = client.collections.create({"name": "Research"})
        >>> client.collections.add_contents([content_id], [collection["id"]])
    """

    type_name = "Collection"
    plural = "Collections"
    fields = """
      id
      name
      creationDate
      modifiedDate
      owner { id }
      state
      type
      contents { id name }
    """
    mutation_fields = "id name state type"
    supports_upsert = False

    def add_contents(self, content_ids: List[str], collection_ids: List[str]) -> Any:
        """Add contents to one or more collections."""
        return self._execute(
            ADD_CONTENTS_TO_COLLECTIONS,
            {
                "contents": entity_references(content_ids),
                "collections": entity_references(collection_ids),
            },
            "addContentsToCollections",
        )

    def remove_contents(self, content_ids: List[str], collection_id: str) -> Any:
        """Remove contents from a collection."""
        return self._execute(
            REMOVE_CONTENTS_FROM_COLLECTION,
            {"contents": entity_references(content_ids), "collection": {"id": collection_id}},
            "removeContentsFromCollection",
        )
