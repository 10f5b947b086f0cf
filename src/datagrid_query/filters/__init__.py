"""
Filter kinds and the default registry.

Usage::

    from datagrid_query.filters import DEFAULT_FILTER_REGISTRY

    kind = DEFAULT_FILTER_REGISTRY.lookup("text")
    value = kind.process("  alice ", column)

Tests and applications that register custom kinds should build an isolated
registry with ``build_default_filter_registry()`` instead of mutating the
shared one after start-up.
"""

from __future__ import annotations

from ..schema import FieldType
from .base import FilterKind, FilterKindRegistry, FilterValue
from .choice import (
    BooleanFilter,
    CheckboxFilter,
    MultiSelectFilter,
    RadioGroupFilter,
    SelectFilter,
)
from .ranges import DateRange, DateRangeFilter, NumberRange, NumberRangeFilter
from .text import TEXT_OPERATORS, TextFilter

_INFERRED_KINDS = {
    FieldType.ENUM: "select",
    FieldType.ARRAY: "multi_select",
    FieldType.DATE: "date_range",
    FieldType.DATETIME: "date_range",
    FieldType.BOOLEAN: "boolean",
    FieldType.INTEGER: "number_range",
    FieldType.FLOAT: "number_range",
    FieldType.DECIMAL: "number_range",
}


def infer_filter_kind(field_type: FieldType) -> str:
    """Pick a filter kind from an attribute type; ``text`` when nothing fits."""
    return _INFERRED_KINDS.get(field_type, "text")


def build_default_filter_registry() -> FilterKindRegistry:
    """Create a registry with all built-in filter kinds."""
    registry = FilterKindRegistry()
    registry.register_all(
        TextFilter(),
        SelectFilter(),
        MultiSelectFilter(),
        BooleanFilter(),
        DateRangeFilter(),
        NumberRangeFilter(),
        CheckboxFilter(),
        RadioGroupFilter(),
        builtin=True,
    )
    return registry


DEFAULT_FILTER_REGISTRY: FilterKindRegistry = build_default_filter_registry()

__all__ = [
    "DEFAULT_FILTER_REGISTRY",
    "TEXT_OPERATORS",
    "BooleanFilter",
    "CheckboxFilter",
    "DateRange",
    "DateRangeFilter",
    "FilterKind",
    "FilterKindRegistry",
    "FilterValue",
    "MultiSelectFilter",
    "NumberRange",
    "NumberRangeFilter",
    "RadioGroupFilter",
    "SelectFilter",
    "TextFilter",
    "build_default_filter_registry",
    "infer_filter_kind",
]
