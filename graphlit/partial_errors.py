"""
Partial GraphQL error surfacing.

When a GraphQL response contains both ``data`` and ``errors`` the SDK returns
the partial data so callers keep working. The errors travel alongside the
result as an attribute, so they never show up in the mapping's keys, in
iteration or in ``json.dumps``. Callers opt in with :func:`get_partial_errors`.

Example:
    >>> result = client.contents.query(filter={"limit": 10})
    >>> errors = get_partial_errors(result)
    >>> if errors:
    ...     logger.warning("Partial errors: %s", errors)
"""

from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel


PARTIAL_ERRORS_ATTR = "__graphlit_partial_errors__"


class PartialGraphQLError(BaseModel):
    """Simplified GraphQL error returned alongside partial data."""

    message: str
    path: Optional[List[Union[str, int]]] = None
    extensions: Optional[Dict[str, Any]] = None


class PartialResultDict(dict):
    """Dict result that can carry partial errors."""


class PartialResultList(list):
    """List result that can carry partial errors."""


def attach_partial_errors(data: Any, errors: Sequence[Dict[str, Any]]) -> Any:
    """
    Attach partial errors to a result.

    Only mappings and lists can carry errors; other values are returned
    unchanged. The returned container compares equal to the input.
    """
    if not errors:
        return data

    if isinstance(data, dict):
        wrapped: Any = data if isinstance(data, PartialResultDict) else PartialResultDict(data)
    elif isinstance(data, list):
        wrapped = data if isinstance(data, PartialResultList) else PartialResultList(data)
    else:
        return data

    simplified = [
        PartialGraphQLError(
            message=str(e.get("message", "Unknown error")),
            path=e.get("path"),
            extensions=e.get("extensions"),
        )
        for e in errors
    ]
    setattr(wrapped, PARTIAL_ERRORS_ATTR, simplified)
    return wrapped


def get_partial_errors(result: Any) -> Optional[List[PartialGraphQLError]]:
    """Return the partial errors attached to a result, or ``None``."""
    return getattr(result, PARTIAL_ERRORS_ATTR, None)
