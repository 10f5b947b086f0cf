"""
Grid interaction state.

``GridState`` is the decoded form of the URL state and the input to a query
cycle. Every transition returns a new instance:

- filter, search and page-size changes reset the page to 1 and drop keyset
  cursors; they never touch the sort;
- only ``toggle_sort`` changes the sort (and also returns to the first page).
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .config import DEFAULT_CONFIG
from .sorting import SortEntry, SortState, toggle_sort

if TYPE_CHECKING:
    from .filters.base import FilterValue
    from .sorting import SortCycle


@dataclass(frozen=True)
class GridState:
    filters: dict[str, FilterValue] = field(default_factory=dict)
    sort_state: SortState = ()
    page: int = 1
    page_size: int = DEFAULT_CONFIG.default_page_size
    search: str = ""
    after: str | None = None
    before: str | None = None

    def _reset(self, **changes: Any) -> GridState:
        return dataclasses.replace(self, page=1, after=None, before=None, **changes)

    def with_filter(self, field: str, value: FilterValue | None) -> GridState:
        """Set (or, with ``None``, clear) the filter on *field*."""
        filters = dict(self.filters)
        if value is None:
            filters.pop(field, None)
        else:
            filters[field] = value
        return self._reset(filters=filters)

    def without_filter(self, field: str) -> GridState:
        return self.with_filter(field, None)

    def clear_filters(self) -> GridState:
        return self._reset(filters={})

    def with_search(self, term: str) -> GridState:
        return self._reset(search=term.strip())

    def with_page_size(self, page_size: int) -> GridState:
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        return self._reset(page_size=page_size)

    def with_page(self, page: int) -> GridState:
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        return dataclasses.replace(self, page=page, after=None, before=None)

    def with_cursor(
        self, *, after: str | None = None, before: str | None = None
    ) -> GridState:
        return dataclasses.replace(self, page=1, after=after, before=before)

    def toggle_sort(self, field: str, cycle: SortCycle | None = None) -> GridState:
        steps = cycle or DEFAULT_CONFIG.default_sort_cycle
        return self._reset(sort_state=toggle_sort(self.sort_state, field, steps))

    def with_sort(self, sort_state: tuple[SortEntry, ...]) -> GridState:
        return self._reset(sort_state=tuple(sort_state))
