"""
Graphlit Python SDK - Users Resource
"""

from __future__ import annotations

from typing import Any

from graphlit.resources.base import EntityResource


GET_USER = """
query GetUser {
  user {
    id
    name
    creationDate
    modifiedDate
    owner { id }
    state
    type
    identifier
    connectors { id type state }
  }
}
"""

ENABLE_USER = """
mutation EnableUser($id: ID!) {
  enableUser(id: $id) { id state }
}
"""

DISABLE_USER = """
mutation DisableUser($id: ID!) {
  disableUser(id: $id) { id state }
}
"""


class UsersResource(EntityResource):
    """
    Resource for managing users of a multi-tenant project.

    Example:
        >>> user = client.users.create({"name": "Ada", "identifier": "auth0|123"})
        >>> client.users.get()  # the user the token was issued for
    """

    type_name = "User"
    plural = "Users"
    fields = """
      id
      name
      creationDate
      modifiedDate
      state
      type
      identifier
    """
    mutation_fields = "id name state type identifier"
    supports_upsert = False

    def get(self) -> Any:  # type: ignore[override]
        """Get the user identified by the client's ``user_id``."""
        return self._execute(GET_USER, path="user")

    def enable(self, user_id: str) -> Any:
        return self._execute(ENABLE_USER, {"id": user_id}, "enableUser")

    def disable(self, user_id: str) -> Any:
        return self._execute(DISABLE_USER, {"id": user_id}, "disableUser")
