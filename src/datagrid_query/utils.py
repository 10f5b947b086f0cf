"""
Shared value helpers for filter kinds.

Pure-Python, no infrastructure dependencies.
"""

from __future__ import annotations

import datetime
import re
import uuid as uuid_module
from typing import Any

from .schema import FieldType

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# ---------------------------------------------------------------------------
# List parsing
# ---------------------------------------------------------------------------


def parse_list_value(value: Any) -> list[Any]:
    """
    Parse a value into a list.

    Supports Python collections and comma-separated strings
    (``"val1,val2"``). ``None`` yields an empty list.
    """
    if value is None:
        return []
    if isinstance(value, list | tuple | set | frozenset):
        return list(value)
    if isinstance(value, str):
        return value.split(",")
    return [value]


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


def parse_number(text: str) -> int | float:
    """
    Parse an integer first, then a float.

    Raises:
        ValueError: If *text* is neither.
    """
    try:
        return int(text)
    except ValueError:
        pass
    number = float(text)
    if number != number or number in (float("inf"), float("-inf")):
        raise ValueError(f"Not a finite number: {text!r}")
    return number


def coerce_number(value: int | float, field_type: FieldType) -> int | float:
    """
    Match a parsed number to the declared numeric type.

    Raises:
        ValueError: If an integer column receives a fractional value.
    """
    if field_type is FieldType.INTEGER:
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(f"Integer field cannot match {value!r}")
            return int(value)
        return value
    if field_type in (FieldType.FLOAT, FieldType.DECIMAL):
        return float(value)
    return value


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def is_iso_date_or_datetime(text: str) -> bool:
    try:
        parse_iso(text)
    except ValueError:
        return False
    return True


def is_date_only(text: str) -> bool:
    return bool(_DATE_ONLY_RE.match(text))


def parse_iso(text: str) -> datetime.date | datetime.datetime:
    """
    Parse an ISO-8601 date or datetime string.

    Raises:
        ValueError: If *text* is neither.
    """
    if is_date_only(text):
        return datetime.date.fromisoformat(text)
    return datetime.datetime.fromisoformat(text.replace("Z", "+00:00"))


def range_bound(text: str, field_type: FieldType, *, end: bool) -> Any:
    """
    Convert a date-range bound for comparison against *field_type*.

    Date-only bounds on datetime fields widen to the start (or end) of day;
    datetime bounds on date fields are truncated to their date.
    """
    if field_type is FieldType.DATETIME:
        if is_date_only(text):
            day = datetime.date.fromisoformat(text)
            moment = datetime.time(23, 59, 59) if end else datetime.time(0, 0, 0)
            return datetime.datetime.combine(day, moment)
        return parse_iso(text)
    if field_type is FieldType.DATE:
        parsed = parse_iso(text)
        if isinstance(parsed, datetime.datetime):
            return parsed.date()
        return parsed
    return text


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


def cast_value(value: Any, field_type: FieldType) -> Any:
    """
    Cast a scalar filter value to the Python type of the target field.

    Strings are left alone for string-like and unknown fields.

    Raises:
        ValueError: If the value cannot represent the field type.
    """
    if not isinstance(value, str):
        return value
    if field_type is FieldType.UUID:
        return uuid_module.UUID(value)
    if field_type is FieldType.INTEGER:
        return int(value)
    if field_type in (FieldType.FLOAT, FieldType.DECIMAL):
        return float(value)
    if field_type is FieldType.BOOLEAN:
        return value.lower() in ("true", "1", "yes")
    if field_type in (FieldType.DATE, FieldType.DATETIME):
        return range_bound(value, field_type, end=False)
    return value
