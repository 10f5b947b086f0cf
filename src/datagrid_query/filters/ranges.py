"""Range filter kinds: dates and numbers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NamedTuple

from sqlalchemy import and_

from ..schema import FieldType
from ..utils import coerce_number, is_iso_date_or_datetime, parse_number, range_bound
from .base import FilterKind, FilterValue

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement

    from ..columns import ColumnSpec


class DateRange(NamedTuple):
    """ISO date/datetime bounds; ``""`` leaves a side open."""

    start: str
    end: str


class NumberRange(NamedTuple):
    """Numeric bounds; ``None`` leaves a side open."""

    low: int | float | None
    high: int | float | None


def _split_pair(raw: Any, keys: tuple[str, str]) -> tuple[str, str] | None:
    """Accept ``"a,b"``, ``"a"``, ``{"from": a, "to": b}`` or ``(a, b)``."""
    if isinstance(raw, str):
        first, _, second = raw.partition(",")
        return first.strip(), second.strip()
    if isinstance(raw, dict):
        return (
            str(raw.get(keys[0]) or "").strip(),
            str(raw.get(keys[1]) or "").strip(),
        )
    if isinstance(raw, list | tuple) and len(raw) == 2:
        return (
            "" if raw[0] is None else str(raw[0]).strip(),
            "" if raw[1] is None else str(raw[1]).strip(),
        )
    return None


def _bounded(
    target: Any, low: Any, high: Any
) -> ColumnElement[bool]:
    clauses = []
    if low is not None:
        clauses.append(target >= low)
    if high is not None:
        clauses.append(target <= high)
    return and_(*clauses)


class DateRangeFilter(FilterKind):
    """
    From/to date filter.

    Date-only bounds on datetime columns cover the whole day: ``from``
    becomes ``00:00:00`` and ``to`` becomes ``23:59:59``.
    """

    @property
    def name(self) -> str:
        return "date_range"

    @property
    def default_options(self) -> dict[str, Any]:
        return {"format": "date", "include_time": False}

    def process(self, raw: Any, column: ColumnSpec) -> FilterValue | None:
        pair = _split_pair(raw, ("from", "to"))
        if pair is None or pair == ("", ""):
            return None
        return FilterValue(kind=self.name, value=DateRange(*pair), operator="between")

    def validate(self, value: FilterValue) -> bool:
        if value.kind != self.name or value.operator != "between":
            return False
        if not isinstance(value.value, DateRange) or value.value == ("", ""):
            return False
        return all(b == "" or is_iso_date_or_datetime(b) for b in value.value)

    def is_empty(self, value: Any) -> bool:
        if isinstance(value, FilterValue):
            value = value.value
        if isinstance(value, tuple) and all(not b for b in value):
            return True
        return super().is_empty(value)

    def encode(self, value: FilterValue) -> str:
        return f"{value.value.start},{value.value.end}"

    def build_clause(
        self, target: Any, value: FilterValue, field_type: FieldType
    ) -> ColumnElement[bool]:
        start, end = value.value
        low = range_bound(start, field_type, end=False) if start else None
        high = range_bound(end, field_type, end=True) if end else None
        return _bounded(target, low, high)


class NumberRangeFilter(FilterKind):
    """
    Min/max numeric filter.

    Bounds parse as integers first, then floats, and are matched to the
    column's numeric type: integer columns reject fractional bounds and
    float/decimal columns always receive floats.
    """

    @property
    def name(self) -> str:
        return "number_range"

    @property
    def default_options(self) -> dict[str, Any]:
        return {"step": 1, "min": None, "max": None}

    def process(self, raw: Any, column: ColumnSpec) -> FilterValue | None:
        pair = _split_pair(raw, ("min", "max"))
        if pair is None or pair == ("", ""):
            return None
        try:
            low, high = (
                coerce_number(parse_number(b), column.field_type) if b else None
                for b in pair
            )
        except ValueError:
            return None
        return FilterValue(
            kind=self.name, value=NumberRange(low, high), operator="between"
        )

    def validate(self, value: FilterValue) -> bool:
        if value.kind != self.name or value.operator != "between":
            return False
        if not isinstance(value.value, NumberRange):
            return False
        if value.value == (None, None):
            return False
        return all(
            b is None or (isinstance(b, int | float) and not isinstance(b, bool))
            for b in value.value
        )

    def is_empty(self, value: Any) -> bool:
        if isinstance(value, FilterValue):
            value = value.value
        if isinstance(value, tuple) and all(b in (None, "") for b in value):
            return True
        return super().is_empty(value)

    def encode(self, value: FilterValue) -> str:
        low, high = value.value
        return f"{'' if low is None else low},{'' if high is None else high}"

    def build_clause(
        self, target: Any, value: FilterValue, field_type: FieldType
    ) -> ColumnElement[bool]:
        low, high = (
            None if b is None else coerce_number(b, field_type) for b in value.value
        )
        return _bounded(target, low, high)
