"""
Compile a ``FilterValue`` map into SQLAlchemy ``WHERE`` clauses.

Each active filter is resolved in one of two ways:

1. the column's own ``filter_fn(stmt, value)``, used unconditionally when
   present;
2. standard translation: the field reference is walked against the model,
   the target expression is built (column, JSON path element), the filter
   kind's ``build_clause`` produces the predicate and relationship hops wrap
   it in ``any()`` / ``has()``.

Direct use raises on bad input (``MissingFilterKindError``,
``FilterKindNotFoundError``, ``InvalidFieldSyntaxError``,
``FieldNotFoundError``, ``InMemoryCalculationError``); the orchestrator
validates first.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import ColumnElement, String, or_
from sqlalchemy import cast as sa_cast

from ..capabilities import CapabilityResolver
from ..columns import AUTO, find_column
from ..exceptions import InMemoryCalculationError, MissingFilterKindError
from ..field_notation import field_path, parse_field
from ..filters import DEFAULT_FILTER_REGISTRY
from ..schema import CalculationKind, FieldType
from .introspection import SQLAlchemyIntrospector

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlalchemy import Select

    from ..columns import ColumnSpec
    from ..filters.base import FilterKindRegistry, FilterValue
    from ..schema import SchemaIntrospector

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def relation_attributes(model: type[Any], relations: Sequence[str]) -> list[Any]:
    """Instrumented relationship attributes along *relations*, in order."""
    attrs: list[Any] = []
    current = model
    for name in relations:
        rel_attr = getattr(current, name, None)
        if rel_attr is None:
            raise AttributeError(f"Model {current} has no relationship {name}")
        attrs.append(rel_attr)
        current = rel_attr.property.mapper.class_
    return attrs


def attribute_target(owner: type[Any], attribute: str, json_path: Sequence[str]) -> Any:
    """Column expression for *attribute*, descending into a JSON path as text."""
    column = getattr(owner, attribute)
    if not json_path:
        return column
    if len(json_path) == 1:
        return column[json_path[0]].as_string()
    return column[tuple(json_path)].as_string()


def wrap_relations(rel_attrs: Sequence[Any], clause: ColumnElement[bool]) -> ColumnElement[bool]:
    """Nest *clause* inside ``any()`` / ``has()`` for each relationship hop."""
    for rel_attr in reversed(rel_attrs):
        if rel_attr.property.uselist:
            clause = cast("ColumnElement[bool]", rel_attr.any(clause))
        else:
            clause = cast("ColumnElement[bool]", rel_attr.has(clause))
    return clause


# ---------------------------------------------------------------------------
# Translator
# ---------------------------------------------------------------------------


class FilterTranslator:
    """
    Build filter and search predicates for a model.

    Usage::

        translator = FilterTranslator()
        stmt = translator.apply_filters(select(User), User, state.filters, columns)
        stmt = translator.apply_search(stmt, User, state.search, columns)
    """

    def __init__(
        self,
        registry: FilterKindRegistry | None = None,
        introspector: SchemaIntrospector | None = None,
    ) -> None:
        self._registry = registry or DEFAULT_FILTER_REGISTRY
        self._resolver = CapabilityResolver(
            introspector or SQLAlchemyIntrospector(), self._registry
        )

    @property
    def resolver(self) -> CapabilityResolver:
        return self._resolver

    def apply_filters(
        self,
        stmt: Select[Any],
        model: type[Any],
        filters: Mapping[str, FilterValue],
        columns: Sequence[ColumnSpec],
    ) -> Select[Any]:
        """
        Narrow *stmt* by every active filter. Filters combine with AND.

        Raises:
            MissingFilterKindError: A filter targets a column with neither a
                filter kind nor a custom filter function.
        """
        for field, value in filters.items():
            column = find_column(columns, field)
            if column is not None and column.filter_fn is not None:
                stmt = column.filter_fn(stmt, value)
                continue
            if column is None or not column.filter_kind or column.filter_kind == AUTO:
                raise MissingFilterKindError(field)
            stmt = stmt.where(self.build_predicate(model, field, value))
        return stmt

    def build_predicate(
        self, model: type[Any], field: str, value: FilterValue
    ) -> ColumnElement[bool]:
        """Standard translation of one filter on *field*."""
        kind = self._registry.lookup(value.kind)
        ref = parse_field(field)
        relations, attribute, json_path = field_path(ref)
        location = self._resolver.locate(ref, model)
        calc = self._resolver.introspector.calculation_kind(
            location.owner, location.attribute
        )
        if calc is CalculationKind.HOST_EVALUATED:
            raise InMemoryCalculationError(field, "filter")

        target = attribute_target(location.owner, attribute, json_path)
        clause = kind.build_clause(target, value, self._resolver.field_type(location))
        return wrap_relations(relation_attributes(model, relations), clause)

    def apply_search(
        self,
        stmt: Select[Any],
        model: type[Any],
        term: str,
        columns: Sequence[ColumnSpec],
    ) -> Select[Any]:
        """OR a case-insensitive contains over every searchable column."""
        term = (term or "").strip()
        if not term:
            return stmt
        clauses: list[ColumnElement[bool]] = []
        for column in columns:
            if not column.searchable or column.field is None:
                continue
            if column.search_fn is not None:
                clauses.append(column.search_fn(model, term))
                continue
            clauses.append(self._search_clause(model, column.field, term))
        if not clauses:
            logger.debug("Search term ignored: no searchable columns")
            return stmt
        return stmt.where(or_(*clauses))

    def _search_clause(self, model: type[Any], field: str, term: str) -> ColumnElement[bool]:
        ref = parse_field(field)
        relations, attribute, json_path = field_path(ref)
        location = self._resolver.locate(ref, model)
        calc = self._resolver.introspector.calculation_kind(location.owner, location.attribute)
        if calc is CalculationKind.HOST_EVALUATED:
            raise InMemoryCalculationError(field, "search")
        target = attribute_target(location.owner, attribute, json_path)
        if self._resolver.field_type(location) is not FieldType.STRING:
            target = sa_cast(target, String)
        clause = cast("ColumnElement[bool]", target.icontains(term, autoescape=True))
        return wrap_relations(relation_attributes(model, relations), clause)
