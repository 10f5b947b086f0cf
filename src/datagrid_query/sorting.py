"""
Sort controller: pure transitions over an ordered multi-column sort state.

A ``SortState`` is a tuple of ``SortEntry(field, direction)``; the first
entry is the primary key. Each field appears at most once.

``toggle_sort`` advances a field one step through its sort cycle. The
default cycle is ``None -> asc -> desc -> None``; columns may supply their
own, including null-ordering directions::

    toggle_sort((), "name")                  # (("name", asc),)
    toggle_sort(state, "created_at")         # appended, lowest priority
    toggle_sort(state, "name")               # updated in place
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, NamedTuple, TypeAlias

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


class SortDirection(str, Enum):
    """Supported sort directions, including explicit null placement."""

    ASC = "asc"
    DESC = "desc"
    ASC_NULLS_FIRST = "asc_nulls_first"
    ASC_NULLS_LAST = "asc_nulls_last"
    DESC_NULLS_FIRST = "desc_nulls_first"
    DESC_NULLS_LAST = "desc_nulls_last"

    @property
    def descending(self) -> bool:
        return self.value.startswith("desc")

    @property
    def nulls(self) -> str | None:
        """``"first"``, ``"last"`` or ``None`` for backend default."""
        if self.value.endswith("_nulls_first"):
            return "first"
        if self.value.endswith("_nulls_last"):
            return "last"
        return None

    def reversed(self) -> SortDirection:
        """Opposite direction with null placement flipped as well."""
        return _REVERSED[self]


_REVERSED = {
    SortDirection.ASC: SortDirection.DESC,
    SortDirection.DESC: SortDirection.ASC,
    SortDirection.ASC_NULLS_FIRST: SortDirection.DESC_NULLS_LAST,
    SortDirection.ASC_NULLS_LAST: SortDirection.DESC_NULLS_FIRST,
    SortDirection.DESC_NULLS_FIRST: SortDirection.ASC_NULLS_LAST,
    SortDirection.DESC_NULLS_LAST: SortDirection.ASC_NULLS_FIRST,
}


class SortEntry(NamedTuple):
    field: str
    direction: SortDirection


SortState: TypeAlias = tuple[SortEntry, ...]
SortCycle: TypeAlias = "Sequence[SortDirection | None]"

DEFAULT_SORT_CYCLE: tuple[SortDirection | None, ...] = (
    None,
    SortDirection.ASC,
    SortDirection.DESC,
)


def normalize_sort_state(entries: Iterable[Any]) -> SortState:
    """
    Coerce ``(field, direction)`` pairs into a ``SortState``.

    Directions may be ``SortDirection`` members or their string values.
    Later duplicates of a field are dropped.

    Raises:
        ValueError: If an entry is not a pair or the direction is unknown.
    """
    seen: set[str] = set()
    out: list[SortEntry] = []
    for entry in entries:
        try:
            field, direction = entry
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid sort entry: {entry!r}") from exc
        if not isinstance(field, str) or not field:
            raise ValueError(f"Invalid sort field: {field!r}")
        if field in seen:
            continue
        seen.add(field)
        out.append(SortEntry(field, SortDirection(direction)))
    return tuple(out)


def get_sort_direction(state: Sequence[SortEntry], field: str) -> SortDirection | None:
    for entry in state:
        if entry.field == field:
            return entry.direction
    return None


def toggle_sort(
    state: Sequence[SortEntry],
    field: str,
    cycle: SortCycle | None = None,
) -> SortState:
    """
    Advance *field* one step through *cycle*.

    Reaching ``None`` removes the entry. An existing entry keeps its
    position; a new one is appended. Other entries are untouched. A current
    direction missing from *cycle* is treated as the cycle start.
    """
    steps = tuple(cycle) if cycle else DEFAULT_SORT_CYCLE
    current = get_sort_direction(state, field)
    index = steps.index(current) if current in steps else 0
    new_direction = steps[(index + 1) % len(steps)]
    return _put(state, field, new_direction)


def toggle_sort_from_query(state: Sequence[SortEntry], field: str) -> SortState:
    """
    Toggle a sort that was seeded from the base query.

    The first click flips the seeded direction instead of clearing it:
    ``desc -> asc`` and ``asc -> desc``. Unsorted fields are appended
    ascending.
    """
    current = get_sort_direction(state, field)
    if current is None:
        return _put(state, field, SortDirection.ASC)
    return _put(state, field, current.reversed())


def _put(
    state: Sequence[SortEntry],
    field: str,
    direction: SortDirection | None,
) -> SortState:
    if direction is None:
        return tuple(e for e in state if e.field != field)
    if any(e.field == field for e in state):
        return tuple(
            SortEntry(field, direction) if e.field == field else e for e in state
        )
    return (*state, SortEntry(field, direction))
