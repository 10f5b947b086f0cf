"""
Data-grid exception hierarchy with fuzzy-match suggestions.

All exceptions inherit from ``DataGridError`` and provide ``to_dict()``
for API-friendly error responses.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .capabilities import InvalidField

PAST_TENSE = {"sort": "sorted", "filter": "filtered", "search": "searched"}

# Rendering order of ``format_invalid_fields``.
ACTION_HEADINGS = {
    "sort": "Cannot sort by invalid fields",
    "filter": "Cannot filter by invalid fields",
    "search": "Cannot search by invalid fields",
    "page": "Cannot page with invalid values",
}


class DataGridError(Exception):
    """Root exception for the data-grid query engine."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class ValidationError(DataGridError):
    """A field, column or request failed validation."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.message = message
        self.path = path
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "VALIDATION_ERROR",
            "message": self.message,
            "path": self.path,
        }


class InvalidFieldSyntaxError(ValidationError):
    """Malformed bracket or relationship notation."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Invalid field notation: '{field}'", path=field)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "INVALID_FIELD_SYNTAX",
            "field": self.field,
        }


class FieldNotFoundError(ValidationError):
    """
    Field path does not resolve against the resource schema.

    Uses fuzzy matching to suggest similar valid field names::

        users.nmae does not exist on User. Did you mean: name?
    """

    def __init__(
        self,
        field: str,
        resource_name: str,
        available_fields: Sequence[str] = (),
        cutoff: float = 0.6,
    ) -> None:
        self.field = field
        self.resource_name = resource_name
        self.available_fields = list(available_fields)
        leaf = field.rsplit(".", 1)[-1]
        self.suggestions = get_close_matches(
            leaf, self.available_fields, n=3, cutoff=cutoff
        )

        message = f"{field} does not exist on {resource_name}"
        if self.suggestions:
            message += f". Did you mean: {', '.join(self.suggestions)}?"
        super().__init__(message, path=field)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "FIELD_NOT_FOUND",
            "field": self.field,
            "resource": self.resource_name,
            "suggestions": self.suggestions,
            "available_fields": sorted(self.available_fields),
        }


class InMemoryCalculationError(ValidationError):
    """A host-evaluated calculation was asked to sort, filter or search."""

    def __init__(self, field: str, action: str) -> None:
        self.field = field
        self.action = action
        past = PAST_TENSE.get(action, action)
        super().__init__(
            f"{field} is an in-memory calculation and cannot be {past}",
            path=field,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "IN_MEMORY_CALCULATION",
            "field": self.field,
            "action": self.action,
        }


class MissingFilterKindError(ValidationError):
    """A filter targets a column with neither a filter kind nor a custom predicate."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(
            f"Column '{field}' declares no filter kind and no custom filter function",
            path=field,
        )


class UrlParameterError(ValidationError):
    """URL parameter map is too large or carries oversized values."""


class QueryValidationError(ValidationError):
    """
    A runtime sort, filter, search or paging request the engine refuses.

    The message lists every offending field with its reason::

        Cannot sort by invalid fields: full_name (field is an in-memory
        calculation and cannot be sorted)
    """

    def __init__(self, invalid_fields: Sequence[InvalidField]) -> None:
        self.invalid_fields = list(invalid_fields)
        super().__init__(format_invalid_fields(self.invalid_fields))

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "QUERY_VALIDATION_ERROR",
            "message": self.message,
            "fields": [
                {"field": f.field, "action": f.action, "reason": f.reason}
                for f in self.invalid_fields
            ],
        }


class FilterKindNotFoundError(DataGridError):
    """
    Unknown filter kind requested.

    Provides fuzzy-matched suggestions for likely intended kinds.
    """

    def __init__(self, kind: str, valid_kinds: Sequence[str]) -> None:
        self.kind = kind
        self.valid_kinds = list(valid_kinds)
        self.suggestions = get_close_matches(kind, self.valid_kinds, n=3, cutoff=0.6)

        message = f"Unknown filter kind: '{kind}'."
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        message += f" Valid kinds: {', '.join(sorted(self.valid_kinds))}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "FILTER_KIND_NOT_FOUND",
            "kind": self.kind,
            "suggestions": self.suggestions,
            "valid_kinds": sorted(self.valid_kinds),
        }


class FilterKindRegistrationError(DataGridError):
    """Registering or removing a filter kind is not allowed."""

    def __init__(self, kind: str, reason: str) -> None:
        self.kind = kind
        self.reason = reason
        super().__init__(f"Cannot register filter kind '{kind}': {reason}")


class ExecutionError(DataGridError):
    """The query-execution collaborator failed."""

    def __init__(self, message: str, resource_name: str | None = None) -> None:
        self.resource_name = resource_name
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "EXECUTION_ERROR",
            "message": str(self),
            "resource": self.resource_name,
        }


def format_invalid_fields(invalid_fields: Sequence[InvalidField]) -> str:
    """Render rejected fields as ``Cannot <action> by invalid fields: ...``."""
    parts: list[str] = []
    for action, heading in ACTION_HEADINGS.items():
        entries = [f for f in invalid_fields if f.action == action]
        if entries:
            listed = ", ".join(f"{f.field} ({f.reason})" for f in entries)
            parts.append(f"{heading}: {listed}")
    return "; ".join(parts)
