"""
Apply a ``SortState`` to a ``Select``.

Entries add their ORDER BY terms in priority order. A column's
``sort_fn(stmt, direction)`` replaces standard ordering for its entry and
keeps its place in that order. Standard ordering of a relationship field
outer-joins each relation hop (aliased, joined once per path) so rows
without the related record are kept. Null-ordering directions
map to ``NULLS FIRST`` / ``NULLS LAST``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, NamedTuple

from sqlalchemy import asc, desc
from sqlalchemy.orm import aliased

from ..capabilities import CapabilityResolver
from ..columns import find_column
from ..exceptions import InMemoryCalculationError
from ..field_notation import field_path, parse_field
from ..schema import CalculationKind, FieldType
from ..sorting import SortDirection
from .introspection import SQLAlchemyIntrospector
from .translator import attribute_target

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import Select

    from ..columns import ColumnSpec
    from ..schema import SchemaIntrospector
    from ..sorting import SortEntry

logger = logging.getLogger(__name__)


class OrderKey(NamedTuple):
    """One standard ordering term, reused for keyset cursors."""

    field: str
    expression: Any
    direction: SortDirection
    field_type: FieldType


def order_clause(expression: Any, direction: SortDirection) -> Any:
    clause = desc(expression) if direction.descending else asc(expression)
    if direction.nulls == "first":
        return clause.nulls_first()
    if direction.nulls == "last":
        return clause.nulls_last()
    return clause


def resolve_ordering(
    stmt: Select[Any],
    model: type[Any],
    sort_state: Sequence[SortEntry],
    columns: Sequence[ColumnSpec] = (),
    introspector: SchemaIntrospector | None = None,
) -> tuple[Select[Any], list[OrderKey]]:
    """
    Order *stmt* entry by entry.

    Returns the statement (relationship joins added, ORDER BY terms appended
    in priority order) and the standard ``OrderKey`` list. Entries handled by
    a ``sort_fn`` order the statement in their slot but have no ``OrderKey``.

    Raises:
        InvalidFieldSyntaxError: On unparseable field notation.
        FieldNotFoundError: If a field does not resolve on *model*.
        InMemoryCalculationError: If a field is evaluated in Python.
    """
    resolver = CapabilityResolver(introspector or SQLAlchemyIntrospector())
    joined: dict[tuple[str, ...], Any] = {}
    keys: list[OrderKey] = []

    for field, raw_direction in sort_state:
        direction = SortDirection(raw_direction)
        column = find_column(columns, field)
        if column is not None and column.sort_fn is not None:
            stmt = column.sort_fn(stmt, direction)
            continue

        ref = parse_field(field)
        relations, attribute, json_path = field_path(ref)
        location = resolver.locate(ref, model)
        calc = resolver.introspector.calculation_kind(location.owner, location.attribute)
        if calc is CalculationKind.HOST_EVALUATED:
            raise InMemoryCalculationError(field, "sort")

        owner: Any = model
        for depth in range(len(relations)):
            path = tuple(relations[: depth + 1])
            if path not in joined:
                rel_attr = getattr(owner, relations[depth])
                alias = aliased(rel_attr.property.mapper.class_)
                stmt = stmt.outerjoin(alias, rel_attr.of_type(alias))
                joined[path] = alias
            owner = joined[path]

        expression = attribute_target(owner, attribute, json_path)
        stmt = stmt.order_by(order_clause(expression, direction))
        keys.append(OrderKey(field, expression, direction, resolver.field_type(location)))

    return stmt, keys


def apply_sorting(
    stmt: Select[Any],
    model: type[Any],
    sort_state: Sequence[SortEntry],
    columns: Sequence[ColumnSpec] = (),
    introspector: SchemaIntrospector | None = None,
) -> Select[Any]:
    """Order *stmt* by *sort_state*; an empty state leaves it untouched."""
    if not sort_state:
        return stmt
    stmt, _ = resolve_ordering(stmt, model, sort_state, columns, introspector)
    logger.debug("Applied sort %s", [f"{f}:{SortDirection(d).value}" for f, d in sort_state])
    return stmt
