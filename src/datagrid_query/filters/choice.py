"""Choice-style filter kinds: select, multi-select, boolean, checkbox, radio group."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import and_, or_

from ..schema import FieldType
from ..utils import cast_value, parse_list_value
from .base import FilterKind, FilterValue

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement

    from ..columns import ColumnSpec

MATCH_MODES = frozenset({"any", "all"})


def _equals(target: Any, value: Any, field_type: FieldType) -> ColumnElement[bool]:
    return cast("ColumnElement[bool]", target == cast_value(value, field_type))


class SelectFilter(FilterKind):
    """Single choice among enumerated options."""

    @property
    def name(self) -> str:
        return "select"

    @property
    def default_options(self) -> dict[str, Any]:
        return {"options": [], "prompt": None}

    def process(self, raw: Any, column: ColumnSpec) -> FilterValue | None:
        if not isinstance(raw, str):
            return None
        trimmed = raw.strip()
        if trimmed in ("", "all"):
            return None
        return FilterValue(kind=self.name, value=trimmed, operator="equals")

    def validate(self, value: FilterValue) -> bool:
        return (
            value.kind == self.name
            and value.operator == "equals"
            and isinstance(value.value, str)
            and value.value != ""
        )

    def is_empty(self, value: Any) -> bool:
        if value == "all":
            return True
        return super().is_empty(value)

    def build_clause(
        self, target: Any, value: FilterValue, field_type: FieldType
    ) -> ColumnElement[bool]:
        return _equals(target, value.value, field_type)


class RadioGroupFilter(SelectFilter):
    """Mutually exclusive options rendered as radio buttons."""

    @property
    def name(self) -> str:
        return "radio_group"

    def process(self, raw: Any, column: ColumnSpec) -> FilterValue | None:
        if not isinstance(raw, str) or not raw.strip():
            return None
        return FilterValue(kind=self.name, value=raw.strip(), operator="equals")


class MultiSelectFilter(FilterKind):
    """
    Several choices at once.

    ``match_mode`` ``any`` (default) matches rows holding at least one of the
    values; ``all`` requires every value. On array columns the values are
    tested for containment instead of equality.
    """

    multi_value = True

    @property
    def name(self) -> str:
        return "multi_select"

    @property
    def default_options(self) -> dict[str, Any]:
        return {"options": [], "match_mode": "any"}

    def process(self, raw: Any, column: ColumnSpec) -> FilterValue | None:
        if not isinstance(raw, str | list | tuple | set | frozenset):
            return None
        values = tuple(
            str(v).strip() for v in parse_list_value(raw) if v is not None
        )
        values = tuple(dict.fromkeys(v for v in values if v))
        if not values:
            return None
        mode = str(column.option("match_mode", "any"))
        return FilterValue(kind=self.name, value=values, operator=mode)

    def validate(self, value: FilterValue) -> bool:
        return (
            value.kind == self.name
            and value.operator in MATCH_MODES
            and isinstance(value.value, tuple)
            and len(value.value) > 0
            and all(isinstance(v, str) and v for v in value.value)
        )

    def is_empty(self, value: Any) -> bool:
        if isinstance(value, list | tuple) and not value:
            return True
        return super().is_empty(value)

    def encode(self, value: FilterValue) -> str:
        return ",".join(value.value)

    def build_clause(
        self, target: Any, value: FilterValue, field_type: FieldType
    ) -> ColumnElement[bool]:
        values = list(value.value)
        if field_type is FieldType.ARRAY:
            if value.operator == "all":
                return cast("ColumnElement[bool]", target.contains(values))
            return or_(*[target.contains([v]) for v in values])

        typed = [cast_value(v, field_type) for v in values]
        if value.operator == "all":
            return and_(*[target == v for v in typed])
        return cast("ColumnElement[bool]", target.in_(typed))


class BooleanFilter(FilterKind):
    """Tri-state true / false / all."""

    @property
    def name(self) -> str:
        return "boolean"

    @property
    def default_options(self) -> dict[str, Any]:
        return {"labels": {"all": "All", "true": "True", "false": "False"}}

    def process(self, raw: Any, column: ColumnSpec) -> FilterValue | None:
        if isinstance(raw, bool):
            return FilterValue(kind=self.name, value=raw, operator="equals")
        if not isinstance(raw, str):
            return None
        flag = {"true": True, "false": False}.get(raw.strip())
        if flag is None:
            return None
        return FilterValue(kind=self.name, value=flag, operator="equals")

    def validate(self, value: FilterValue) -> bool:
        return (
            value.kind == self.name
            and value.operator == "equals"
            and isinstance(value.value, bool)
        )

    def is_empty(self, value: Any) -> bool:
        if value == "all":
            return True
        return super().is_empty(value)

    def encode(self, value: FilterValue) -> str:
        return "true" if value.value else "false"

    def build_clause(
        self, target: Any, value: FilterValue, field_type: FieldType
    ) -> ColumnElement[bool]:
        if field_type in (FieldType.BOOLEAN, FieldType.UNKNOWN):
            return cast("ColumnElement[bool]", target.is_(value.value))
        return _equals(target, self.encode(value), field_type)


class CheckboxFilter(FilterKind):
    """
    A single checkbox that filters on one configured value.

    Boolean columns default the value to ``True``; other columns must
    declare ``value`` in their filter options.
    """

    @property
    def name(self) -> str:
        return "checkbox"

    @property
    def default_options(self) -> dict[str, Any]:
        return {"label": "", "value": None}

    def checked_value(self, column: ColumnSpec) -> Any:
        """
        Raises:
            ValueError: If a non-boolean column declares no ``value`` option.
        """
        explicit = column.option("value")
        if explicit is not None:
            return explicit
        if column.field_type is FieldType.BOOLEAN or column.filter_kind == "boolean":
            return True
        raise ValueError(
            f"Checkbox filter for non-boolean field '{column.field}' "
            "requires an explicit 'value' option"
        )

    def process(self, raw: Any, column: ColumnSpec) -> FilterValue | None:
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return None
        expected = self.checked_value(column)
        given = raw.strip() if isinstance(raw, str) else raw
        if _as_text(given) != _as_text(expected):
            return None
        return FilterValue(kind=self.name, value=expected, operator="equals")

    def validate(self, value: FilterValue) -> bool:
        return (
            value.kind == self.name
            and value.operator == "equals"
            and value.value is not None
        )

    def encode(self, value: FilterValue) -> str:
        return _as_text(value.value)

    def build_clause(
        self, target: Any, value: FilterValue, field_type: FieldType
    ) -> ColumnElement[bool]:
        if isinstance(value.value, bool):
            return cast("ColumnElement[bool]", target.is_(value.value))
        return _equals(target, value.value, field_type)


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
