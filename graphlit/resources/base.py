"""
Graphlit Python SDK - Base Resource

This module contains the base classes for all GraphQL resources.

Resources are shared by :class:`~graphlit.client.Graphlit` and
:class:`~graphlit.client.AsyncGraphlit`. Each method hands a document to the
client's ``execute``; the sync client returns the result, the async client
returns an awaitable of it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

if TYPE_CHECKING:
    from graphlit.client import AsyncGraphlit, Graphlit


GraphlitClient = Union["Graphlit", "AsyncGraphlit"]


def clean_variables(variables: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop unset (None) variables so the server applies its defaults."""
    if not variables:
        return {}
    return {k: getattr(v, "value", v) for k, v in variables.items() if v is not None}


def entity_reference(entity_id: Optional[str]) -> Optional[Dict[str, str]]:
    """Build an ``EntityReferenceInput`` from an id."""
    return {"id": entity_id} if entity_id else None


def entity_references(entity_ids: Optional[List[str]]) -> Optional[List[Dict[str, str]]]:
    if entity_ids is None:
        return None
    return [{"id": i} for i in entity_ids]


class BaseResource:
    """
    Base class for all GraphQL resources.

    Provides common functionality for executing GraphQL documents
    and extracting their result fields.
    """

    def __init__(self, client: GraphlitClient) -> None:
        """
        Initialize the resource.

        Args:
            client: The Graphlit client instance (sync or async)
        """
        self._client = client

    def _execute(
        self,
        document: str,
        variables: Optional[Dict[str, Any]] = None,
        path: Optional[str] = None,
    ) -> Any:
        """Execute a document, returning the field at ``path``."""
        return self._client.execute(document, clean_variables(variables), path)


class EntityResource(BaseResource):
    """
    Base class for entity families with the standard CRUD surface.

    Subclasses set the GraphQL naming attributes; the documents for
    create, update, upsert, delete, get, query and count are derived
    from them.

    Attributes:
        type_name: GraphQL type name, e.g. ``"Category"``
        plural: Plural used in operation names, e.g. ``"Categories"``
        fields: Selection set returned by get and query
        mutation_fields: Selection set returned by create, update and upsert
        supports_upsert: Whether the platform exposes ``upsert{Type}``
        supports_count: Whether the platform exposes ``count{Plural}``
    """

    type_name: str = ""
    plural: str = ""
    fields: str = "id name"
    mutation_fields: str = "id name"
    supports_upsert: bool = True
    supports_count: bool = True

    @property
    def _field(self) -> str:
        return self.type_name[:1].lower() + self.type_name[1:]

    @property
    def _plural_field(self) -> str:
        return self.plural[:1].lower() + self.plural[1:]

    def _create_document(self) -> str:
        return (
            f"mutation Create{self.type_name}(${self._field}: {self.type_name}Input!) {{\n"
            f"  create{self.type_name}({self._field}: ${self._field}) {{ {self.mutation_fields} }}\n"
            f"}}"
        )

    def _update_document(self) -> str:
        return (
            f"mutation Update{self.type_name}(${self._field}: {self.type_name}UpdateInput!) {{\n"
            f"  update{self.type_name}({self._field}: ${self._field}) {{ {self.mutation_fields} }}\n"
            f"}}"
        )

    def _upsert_document(self) -> str:
        return (
            f"mutation Upsert{self.type_name}(${self._field}: {self.type_name}Input!) {{\n"
            f"  upsert{self.type_name}({self._field}: ${self._field}) {{ {self.mutation_fields} }}\n"
            f"}}"
        )

    def _delete_document(self) -> str:
        return (
            f"mutation Delete{self.type_name}($id: ID!) {{\n"
            f"  delete{self.type_name}(id: $id) {{ id state }}\n"
            f"}}"
        )

    def _delete_many_document(self) -> str:
        return (
            f"mutation Delete{self.plural}($ids: [ID!]!, $isSynchronous: Boolean) {{\n"
            f"  delete{self.plural}(ids: $ids, isSynchronous: $isSynchronous) {{ id state }}\n"
            f"}}"
        )

    def _delete_all_document(self) -> str:
        return (
            f"mutation DeleteAll{self.plural}($filter: {self.type_name}Filter, "
            f"$isSynchronous: Boolean, $correlationId: String) {{\n"
            f"  deleteAll{self.plural}(filter: $filter, isSynchronous: $isSynchronous, "
            f"correlationId: $correlationId) {{ id state }}\n"
            f"}}"
        )

    def _get_document(self) -> str:
        return (
            f"query Get{self.type_name}($id: ID!, $correlationId: String) {{\n"
            f"  {self._field}(id: $id, correlationId: $correlationId) {{ {self.fields} }}\n"
            f"}}"
        )

    def _query_document(self) -> str:
        return (
            f"query Query{self.plural}($filter: {self.type_name}Filter, $correlationId: String) {{\n"
            f"  {self._plural_field}(filter: $filter, correlationId: $correlationId) "
            f"{{ results {{ {self.fields} }} }}\n"
            f"}}"
        )

    def _count_document(self) -> str:
        return (
            f"query Count{self.plural}($filter: {self.type_name}Filter, $correlationId: String) {{\n"
            f"  count{self.plural}(filter: $filter, correlationId: $correlationId) {{ count }}\n"
            f"}}"
        )

    # =========================================================================
    # Operations
    # =========================================================================

    def create(self, entity: Dict[str, Any]) -> Any:
        """Create an entity from an input dict and return its id and name."""
        return self._execute(
            self._create_document(), {self._field: entity}, f"create{self.type_name}"
        )

    def update(self, entity: Dict[str, Any]) -> Any:
        """Update an entity; the input must include its ``id``."""
        return self._execute(
            self._update_document(), {self._field: entity}, f"update{self.type_name}"
        )

    def upsert(self, entity: Dict[str, Any]) -> Any:
        """Create or update an entity matched by name."""
        if not self.supports_upsert:
            raise NotImplementedError(f"{self.type_name} does not support upsert")
        return self._execute(
            self._upsert_document(), {self._field: entity}, f"upsert{self.type_name}"
        )

    def delete(self, entity_id: str) -> Any:
        """Delete an entity by ID."""
        return self._execute(
            self._delete_document(), {"id": entity_id}, f"delete{self.type_name}"
        )

    def delete_many(self, ids: List[str], is_synchronous: Optional[bool] = None) -> Any:
        """Delete several entities by ID."""
        return self._execute(
            self._delete_many_document(),
            {"ids": ids, "isSynchronous": is_synchronous},
            f"delete{self.plural}",
        )

    def delete_all(
        self,
        filter: Optional[Dict[str, Any]] = None,
        is_synchronous: Optional[bool] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Delete every entity matching the filter."""
        return self._execute(
            self._delete_all_document(),
            {"filter": filter, "isSynchronous": is_synchronous, "correlationId": correlation_id},
            f"deleteAll{self.plural}",
        )

    def get(self, entity_id: str, correlation_id: Optional[str] = None) -> Any:
        """Get an entity by ID."""
        return self._execute(
            self._get_document(),
            {"id": entity_id, "correlationId": correlation_id},
            self._field,
        )

    def query(
        self,
        filter: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Query entities; returns ``{"results": [...]}``."""
        return self._execute(
            self._query_document(),
            {"filter": filter, "correlationId": correlation_id},
            self._plural_field,
        )

    def count(
        self,
        filter: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        """Count entities matching the filter."""
        if not self.supports_count:
            raise NotImplementedError(f"{self.type_name} does not support count")
        return self._execute(
            self._count_document(),
            {"filter": filter, "correlationId": correlation_id},
            f"count{self.plural}.count",
        )
