"""
Schema introspection contract consumed by the capability resolver.

The engine never inspects a resource directly; it asks a
``SchemaIntrospector``. ``persistence.introspection`` provides the
SQLAlchemy implementation; tests may supply a dict-backed one.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection


class CalculationKind(str, Enum):
    """How a derived attribute is evaluated."""

    NONE = "none"
    EXPRESSION = "expression"
    HOST_EVALUATED = "host_evaluated"


class FieldType(str, Enum):
    """Coarse attribute types used for filter-kind inference and coercion."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    UUID = "uuid"
    ENUM = "enum"
    ARRAY = "array"
    JSON = "json"
    UNKNOWN = "unknown"

    @property
    def numeric(self) -> bool:
        return self in (FieldType.INTEGER, FieldType.FLOAT, FieldType.DECIMAL)


@runtime_checkable
class SchemaIntrospector(Protocol):
    """Minimal questions the resolver asks about a resource type."""

    def attribute_exists(self, resource: Any, name: str) -> bool: ...

    def relation_target(self, resource: Any, name: str) -> Any | None: ...

    def calculation_kind(self, resource: Any, name: str) -> CalculationKind: ...

    def attribute_type(self, resource: Any, name: str) -> FieldType: ...

    def is_structured(self, resource: Any, name: str) -> bool:
        """True when the attribute holds an embedded document (JSON-like)."""
        ...

    def attribute_names(self, resource: Any) -> Collection[str]: ...

    def enum_values(self, resource: Any, name: str) -> list[str]: ...


def resource_name(resource: Any) -> str:
    """Display name for a resource used in warnings."""
    return getattr(resource, "__name__", None) or repr(resource)
