"""
Column declarations.

A ``ColumnSpec`` is built once per render pass from declarative input and
never mutated; ``CapabilityResolver.resolve_column`` returns a narrowed copy.

Usage::

    columns = [
        ColumnSpec.from_config({"field": "name", "sortable": True, "filterable": True,
                                "filter_kind": "text"}),
        ColumnSpec.from_config({"field": "author.name", "sortable": True}),
        ColumnSpec.from_config({"label": "Actions"}),   # action column
    ]
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .field_notation import (
    FieldReference,
    Invalid,
    field_from_url_safe_key,
    humanize,
    parse_field,
    url_safe_key,
)
from .schema import FieldType
from .sorting import SortDirection

if TYPE_CHECKING:
    from .filters.base import FilterValue

AUTO = "auto"

FilterFunction = Callable[[Any, "FilterValue"], Any]
SortFunction = Callable[[Any, SortDirection], Any]
SearchFunction = Callable[[Any, str], Any]


@dataclass(frozen=True)
class ColumnSpec:
    """
    Immutable column declaration.

    Attributes:
        field: Field reference string, or ``None`` for action columns.
        label: Display label; defaults to the humanized field.
        sortable: Requested (or, once resolved, granted) sortability.
        filterable: Requested (or, once resolved, granted) filterability.
        filter_kind: Registered kind id, ``"auto"`` or ``None``.
        filter_options: Kind options; user values override kind defaults.
        filter_fn: ``(query, FilterValue) -> query`` escape hatch.
        sort_fn: ``(query, SortDirection) -> query`` escape hatch.
        search_fn: ``(model, term) -> clause`` joined into the search OR.
        sort_cycle: Per-column cycle; ``None`` uses the configured default.
        searchable: Include in free-text search.
        field_type: Attribute type, filled in by the resolver.
        sort_warning / filter_warning: Why a capability was withheld.
    """

    field: str | None = None
    label: str = ""
    sortable: bool = False
    filterable: bool = False
    filter_kind: str | None = None
    filter_options: Mapping[str, Any] = dataclasses.field(default_factory=dict)
    filter_fn: FilterFunction | None = None
    sort_fn: SortFunction | None = None
    search_fn: SearchFunction | None = None
    sort_cycle: tuple[SortDirection | None, ...] | None = None
    searchable: bool = False
    field_type: FieldType = FieldType.UNKNOWN
    sort_warning: str | None = None
    filter_warning: str | None = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | ColumnSpec) -> ColumnSpec:
        """
        Build a column from a plain mapping.

        Columns without a field are action columns: never sortable,
        filterable or searchable.
        """
        if isinstance(config, ColumnSpec):
            return config
        known = {f.name for f in dataclasses.fields(cls)}
        values = {k: v for k, v in config.items() if k in known}
        raw_field = values.get("field")
        if raw_field is None:
            values.update(sortable=False, filterable=False, searchable=False)
        else:
            values["field"] = str(raw_field).strip()
            values.setdefault("label", humanize(parse_field(values["field"])))
        if "sort_cycle" in values and values["sort_cycle"] is not None:
            values["sort_cycle"] = tuple(
                None if d is None else SortDirection(d) for d in values["sort_cycle"]
            )
        values["filter_options"] = dict(values.get("filter_options") or {})
        if values.get("filterable") and "filter_kind" not in values:
            values["filter_kind"] = AUTO
        return cls(**values)

    @property
    def is_action(self) -> bool:
        return self.field is None

    @property
    def reference(self) -> FieldReference:
        if self.field is None:
            return Invalid("")
        return parse_field(self.field)

    @property
    def url_key(self) -> str | None:
        return None if self.field is None else url_safe_key(self.field)

    def option(self, key: str, default: Any = None) -> Any:
        return self.filter_options.get(key, default)

    def with_changes(self, **changes: Any) -> ColumnSpec:
        return dataclasses.replace(self, **changes)


def find_column(columns: Iterable[ColumnSpec], key: str) -> ColumnSpec | None:
    """Find a column by field string or by its URL-safe key."""
    wanted = field_from_url_safe_key(key)
    for column in columns:
        if column.field is not None and column.field in (key, wanted):
            return column
    return None
