"""
Capability resolver.

Decides, from schema introspection, whether a field exists and whether it
may be sorted or filtered, and explains why not.

Rules:

- A path segment that does not resolve makes the field nonexistent; the
  warning names the full original field string.
- Host-evaluated calculations can be neither sorted nor filtered, unless
  the column supplies a custom sort/filter function for that capability.
- A caller may always narrow a capability to ``False`` but can never widen
  what the schema forbids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NamedTuple

from .columns import AUTO, ColumnSpec
from .exceptions import PAST_TENSE, FieldNotFoundError
from .field_notation import FieldReference, Invalid, field_path, parse_field, to_notation
from .filters import DEFAULT_FILTER_REGISTRY, infer_filter_kind
from .schema import CalculationKind, FieldType, resource_name

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .filters.base import FilterKindRegistry
    from .schema import SchemaIntrospector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapabilityVerdict:
    """Resolved capabilities of one field against one resource."""

    exists: bool
    sortable: bool
    filterable: bool
    sort_warning: str | None = None
    filter_warning: str | None = None
    field_type: FieldType = FieldType.UNKNOWN
    calculation: CalculationKind = CalculationKind.NONE


class InvalidField(NamedTuple):
    """A runtime sort, filter, search or paging request that was rejected."""

    field: str
    action: str
    reason: str


def _custom_function(column: ColumnSpec, action: str) -> Any:
    return {
        "sort": column.sort_fn,
        "filter": column.filter_fn,
        "search": column.search_fn,
    }.get(action)


class FieldLocation(NamedTuple):
    """Where a reference lands: the owning resource and its attribute."""

    owner: Any
    attribute: str
    json_path: tuple[str, ...]


class CapabilityResolver:
    """Resolve field capabilities through a ``SchemaIntrospector``."""

    def __init__(
        self,
        introspector: SchemaIntrospector,
        registry: FilterKindRegistry | None = None,
    ) -> None:
        self._introspector = introspector
        self._registry = registry or DEFAULT_FILTER_REGISTRY

    @property
    def introspector(self) -> SchemaIntrospector:
        return self._introspector

    # -- path walking ---------------------------------------------------------

    def locate(self, ref: FieldReference | str, resource: Any) -> FieldLocation:
        """
        Walk *ref* against *resource* segment by segment.

        Raises:
            InvalidFieldSyntaxError: If *ref* is ``Invalid``.
            FieldNotFoundError: At the first segment that does not resolve;
                the error always carries the full field string.
        """
        if isinstance(ref, str):
            ref = parse_field(ref)
        relations, attribute, json_path = field_path(ref)
        full = to_notation(ref)
        intro = self._introspector

        current = resource
        for relation in relations:
            target = intro.relation_target(current, relation)
            if target is None:
                raise self._not_found(full, resource, current)
            current = target

        if not intro.attribute_exists(current, attribute):
            raise self._not_found(full, resource, current)
        if json_path and not intro.is_structured(current, attribute):
            raise self._not_found(full, resource, current)
        return FieldLocation(current, attribute, json_path)

    def _not_found(self, field: str, resource: Any, owner: Any) -> FieldNotFoundError:
        return FieldNotFoundError(
            field,
            resource_name(resource),
            sorted(self._introspector.attribute_names(owner)),
        )

    def field_type(self, location: FieldLocation) -> FieldType:
        if location.json_path:
            return FieldType.STRING
        return self._introspector.attribute_type(location.owner, location.attribute)

    # -- verdicts ---------------------------------------------------------------

    def resolve(
        self,
        ref: FieldReference | str,
        resource: Any,
        requested_sortable: bool = True,
        requested_filterable: bool = True,
        *,
        custom_sort: bool = False,
        custom_filter: bool = False,
    ) -> CapabilityVerdict:
        """
        Compute the ``CapabilityVerdict`` for *ref*.

        ``custom_sort`` / ``custom_filter`` mark columns carrying their own
        sort/filter function; such capabilities bypass the schema check.
        """
        if isinstance(ref, str):
            ref = parse_field(ref)

        if isinstance(ref, Invalid):
            warning = f"{ref.raw} is not a valid field reference"
            return CapabilityVerdict(
                exists=False,
                sortable=custom_sort and requested_sortable,
                filterable=custom_filter and requested_filterable,
                sort_warning=None if custom_sort else warning,
                filter_warning=None if custom_filter else warning,
            )

        try:
            location = self.locate(ref, resource)
        except FieldNotFoundError as exc:
            return CapabilityVerdict(
                exists=False,
                sortable=custom_sort and requested_sortable,
                filterable=custom_filter and requested_filterable,
                sort_warning=None if custom_sort else exc.message,
                filter_warning=None if custom_filter else exc.message,
            )

        field = to_notation(ref)
        calc = self._introspector.calculation_kind(location.owner, location.attribute)
        schema_ok = calc is not CalculationKind.HOST_EVALUATED

        sort_warning = filter_warning = None
        if not schema_ok and not custom_sort:
            sort_warning = f"{field} is an in-memory calculation and cannot be sorted"
        if not schema_ok and not custom_filter:
            filter_warning = (
                f"{field} is an in-memory calculation and cannot be filtered"
            )

        return CapabilityVerdict(
            exists=True,
            sortable=(schema_ok or custom_sort) and requested_sortable,
            filterable=(schema_ok or custom_filter) and requested_filterable,
            sort_warning=sort_warning,
            filter_warning=filter_warning,
            field_type=self.field_type(location),
            calculation=calc,
        )

    def check(
        self,
        field: str,
        action: str,
        resource: Any,
        column: ColumnSpec | None = None,
    ) -> InvalidField | None:
        """
        Validate a runtime ``"sort"``, ``"filter"`` or ``"search"`` request
        on *field*.

        Returns ``None`` when allowed, else an ``InvalidField`` naming the
        reason. Column declarations only matter for their custom functions.
        """
        if column is not None and _custom_function(column, action) is not None:
            return None

        ref = parse_field(field)
        if isinstance(ref, Invalid):
            return InvalidField(field, action, "invalid field notation")
        try:
            location = self.locate(ref, resource)
        except FieldNotFoundError:
            return InvalidField(
                field, action, f"field does not exist on {resource_name(resource)}"
            )
        calc = self._introspector.calculation_kind(location.owner, location.attribute)
        if calc is CalculationKind.HOST_EVALUATED:
            past = PAST_TENSE.get(action, action)
            return InvalidField(
                field, action, f"field is an in-memory calculation and cannot be {past}"
            )
        return None

    # -- columns ----------------------------------------------------------------

    def resolve_column(self, column: ColumnSpec, resource: Any) -> ColumnSpec:
        """
        Return *column* narrowed to what *resource* allows.

        Also fills ``field_type``, replaces ``filter_kind="auto"`` with the
        inferred kind and merges the kind's default options under the
        column's own.
        """
        if column.is_action:
            return column.with_changes(sortable=False, filterable=False, searchable=False)

        verdict = self.resolve(
            column.reference,
            resource,
            column.sortable,
            column.filterable,
            custom_sort=column.sort_fn is not None,
            custom_filter=column.filter_fn is not None,
        )
        if column.sortable and not verdict.sortable:
            logger.warning("Sorting disabled for %s: %s", column.field, verdict.sort_warning)
        if column.filterable and not verdict.filterable:
            logger.warning(
                "Filtering disabled for %s: %s", column.field, verdict.filter_warning
            )

        kind = column.filter_kind
        if kind == AUTO:
            kind = infer_filter_kind(verdict.field_type)
            logger.debug("Inferred filter kind %s for %s", kind, column.field)

        searchable = column.searchable and (
            column.search_fn is not None
            or (
                verdict.exists
                and verdict.calculation is not CalculationKind.HOST_EVALUATED
            )
        )
        return column.with_changes(
            sortable=verdict.sortable,
            filterable=verdict.filterable,
            searchable=searchable,
            filter_kind=kind,
            filter_options=self._merge_options(column, kind, resource, verdict),
            field_type=verdict.field_type,
            sort_warning=verdict.sort_warning if column.sortable else None,
            filter_warning=verdict.filter_warning if column.filterable else None,
        )

    def resolve_columns(
        self, columns: Iterable[ColumnSpec], resource: Any
    ) -> list[ColumnSpec]:
        return [self.resolve_column(ColumnSpec.from_config(c), resource) for c in columns]

    def _merge_options(
        self,
        column: ColumnSpec,
        kind: str | None,
        resource: Any,
        verdict: CapabilityVerdict,
    ) -> dict[str, Any]:
        bundle = self._registry.get(kind) if kind else None
        merged: dict[str, Any] = dict(bundle.default_options) if bundle else {}
        if verdict.field_type is FieldType.ENUM and kind in ("select", "multi_select"):
            location = self.locate(column.reference, resource)
            values = self._introspector.enum_values(location.owner, location.attribute)
            merged["options"] = [(value, value) for value in values]
        merged.update(column.filter_options)
        return merged
