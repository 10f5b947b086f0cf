"""Free-text filter kind."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import String, func, not_
from sqlalchemy import cast as sa_cast

from ..schema import FieldType
from ..utils import cast_value
from .base import FilterKind, FilterValue

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement

    from ..columns import ColumnSpec

TEXT_OPERATORS = frozenset(
    {"contains", "equals", "starts_with", "ends_with", "not_contains", "not_equals"}
)

_EXACT_OPERATORS = frozenset({"equals", "not_equals"})


class TextFilter(FilterKind):
    """
    Substring and equality matching.

    Every operator except ``equals``/``not_equals`` casts the target to a
    string first, so text search behaves the same on string, numeric, UUID
    and boolean columns. Equality compares against the native type.
    """

    @property
    def name(self) -> str:
        return "text"

    @property
    def default_options(self) -> dict[str, Any]:
        return {"operator": "contains", "case_sensitive": False, "placeholder": None}

    def process(self, raw: Any, column: ColumnSpec) -> FilterValue | None:
        if not isinstance(raw, str):
            return None
        trimmed = raw.strip()
        if not trimmed:
            return None
        return FilterValue(
            kind=self.name,
            value=trimmed,
            operator=str(column.option("operator", "contains")),
            case_sensitive=bool(column.option("case_sensitive", False)),
        )

    def validate(self, value: FilterValue) -> bool:
        return (
            value.kind == self.name
            and isinstance(value.value, str)
            and value.value != ""
            and value.operator in TEXT_OPERATORS
        )

    def build_clause(
        self,
        target: Any,
        value: FilterValue,
        field_type: FieldType,
    ) -> ColumnElement[bool]:
        op = value.operator
        if op in _EXACT_OPERATORS:
            clause = self._equals(target, value, field_type)
            return clause if op == "equals" else not_(clause)

        text = sa_cast(target, String) if field_type is not FieldType.STRING else target
        term = value.value
        if value.case_sensitive:
            matchers = {
                "contains": text.contains,
                "not_contains": text.contains,
                "starts_with": text.startswith,
                "ends_with": text.endswith,
            }
        else:
            matchers = {
                "contains": text.icontains,
                "not_contains": text.icontains,
                "starts_with": text.istartswith,
                "ends_with": text.iendswith,
            }
        if op not in matchers:
            raise ValueError(f"Unsupported text operator: {op}")
        clause = matchers[op](term, autoescape=True)
        if op == "not_contains":
            return cast("ColumnElement[bool]", not_(clause))
        return cast("ColumnElement[bool]", clause)

    def _equals(
        self, target: Any, value: FilterValue, field_type: FieldType
    ) -> ColumnElement[bool]:
        if field_type is FieldType.STRING and not value.case_sensitive:
            return cast(
                "ColumnElement[bool]", func.lower(target) == value.value.lower()
            )
        return cast("ColumnElement[bool]", target == cast_value(value.value, field_type))
