"""
Keyset (cursor) pagination over SQLAlchemy statements.

A cursor holds the ordering-key values of a boundary row::

    {"v": ["Alice", "2024-01-05T10:00:00", 42]}

The primary key is always appended as a final ascending tiebreaker so the
ordering is total. For keys ``k1..kn`` the "after" predicate is the usual
OR-expansion::

    k1 > v1
    OR (k1 = v1 AND k2 > v2)
    OR ...

with ``<`` for descending keys, and every comparison flipped when paging
backwards. A ``NULL`` boundary value only takes part through equality; rows
across the null boundary of a nullable key are not reachable by cursor.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import ColumnElement, and_, or_
from sqlalchemy import inspect as sa_inspect

from ..pagination import decode_cursor, encode_cursor
from ..sorting import SortDirection
from ..utils import cast_value
from .introspection import field_type_for
from .ordering import OrderKey

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


def with_tiebreaker(keys: Sequence[OrderKey], model: type[Any]) -> list[OrderKey]:
    """Append the model's primary key columns not already ordered on."""
    mapper = sa_inspect(model)
    out = list(keys)
    present = {k.field for k in keys}
    for column in mapper.primary_key:
        prop = mapper.get_property_by_column(column)
        if prop.key not in present:
            out.append(
                OrderKey(
                    prop.key,
                    getattr(model, prop.key),
                    SortDirection.ASC,
                    field_type_for(column.type),
                )
            )
    return out


def effective_direction(key: OrderKey, backward: bool) -> SortDirection:
    return key.direction.reversed() if backward else key.direction


def keyset_predicate(
    keys: Sequence[OrderKey],
    values: Sequence[Any],
    *,
    backward: bool = False,
) -> ColumnElement[bool]:
    """Rows strictly after (or, *backward*, before) the boundary *values*."""
    terms: list[ColumnElement[bool]] = []
    prefix: list[ColumnElement[bool]] = []
    for key, value in zip(keys, values, strict=True):
        if value is not None:
            descending = effective_direction(key, backward).descending
            strict = key.expression < value if descending else key.expression > value
            terms.append(cast("ColumnElement[bool]", and_(*prefix, strict)))
            prefix.append(cast("ColumnElement[bool]", key.expression == value))
        else:
            prefix.append(cast("ColumnElement[bool]", key.expression.is_(None)))
    return cast("ColumnElement[bool]", or_(*terms))


def cursor_for(row_values: Sequence[Any]) -> str:
    return encode_cursor({"v": list(row_values)})


def cursor_values(token: str, keys: Sequence[OrderKey]) -> list[Any] | None:
    """
    Decode *token* into typed boundary values for *keys*.

    Returns ``None`` when the token does not match the current ordering
    (for example after the sort changed).
    """
    data = decode_cursor(token)
    raw = data.get("v") if data else None
    if not isinstance(raw, list) or len(raw) != len(keys):
        logger.debug("Cursor does not match the current ordering; ignoring")
        return None
    try:
        return [
            None if value is None else cast_value(value, key.field_type)
            for key, value in zip(keys, raw, strict=True)
        ]
    except ValueError:
        logger.debug("Cursor values do not fit the key types; ignoring")
        return None
