"""
URL state codec.

Serializes grid state to a flat, string-keyed parameter map and parses it
back. Filter values sit under their (URL-safe) field keys; the reserved
keys are ``sort``, ``page``, ``page_size``, ``search``, ``after`` and
``before``::

    {"name": "alice", "settings__theme": "dark", "sort": "name,-created_at",
     "page": "3"}

Sort tokens: ``field`` ascending, ``-field`` descending, ``++field`` /
``-+field`` ascending with nulls first / last, ``+-field`` / ``--field``
descending with nulls first / last.

Decoding never raises. Tokens that fail validation are logged at debug level
and dropped, leaving the nearest valid state.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from .columns import AUTO, find_column
from .config import DEFAULT_CONFIG
from .exceptions import UrlParameterError
from .field_notation import url_safe_key
from .filters import DEFAULT_FILTER_REGISTRY
from .pagination import decode_cursor
from .sorting import SortDirection, SortEntry, SortState
from .state import GridState

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .columns import ColumnSpec
    from .config import GridConfig
    from .filters.base import FilterKindRegistry, FilterValue

logger = logging.getLogger(__name__)

UrlValue = str | list[str]

_SORT_PREFIXES: dict[SortDirection, str] = {
    SortDirection.ASC: "",
    SortDirection.DESC: "-",
    SortDirection.ASC_NULLS_FIRST: "++",
    SortDirection.ASC_NULLS_LAST: "-+",
    SortDirection.DESC_NULLS_FIRST: "+-",
    SortDirection.DESC_NULLS_LAST: "--",
}

# Two-character prefixes must be tried before the single dash.
_PREFIX_ORDER = sorted(
    ((p, d) for d, p in _SORT_PREFIXES.items() if p),
    key=lambda item: -len(item[0]),
)


class UrlState(BaseModel):
    """
    Serialization surface of the grid state.

    Never interpreted directly; always passed back through
    ``UrlStateCodec.decode``.
    """

    model_config = ConfigDict(frozen=True)

    filters: dict[str, UrlValue] = Field(default_factory=dict)
    sort: str = ""
    page: str = ""
    page_size: str = ""
    search: str = ""
    after: str = ""
    before: str = ""

    def to_params(self, config: GridConfig | None = None) -> dict[str, UrlValue]:
        """Flatten to a URL parameter map, omitting empty entries."""
        cfg = config or DEFAULT_CONFIG
        params: dict[str, UrlValue] = dict(self.filters)
        for key, value in (
            (cfg.sort_param, self.sort),
            (cfg.page_param, self.page),
            (cfg.page_size_param, self.page_size),
            (cfg.search_param, self.search),
            (cfg.after_param, self.after),
            (cfg.before_param, self.before),
        ):
            if value:
                params[key] = value
        return params

    @classmethod
    def from_params(
        cls,
        params: Mapping[str, Any],
        config: GridConfig | None = None,
    ) -> UrlState:
        """Split a flat parameter map into reserved keys and filter keys."""
        cfg = config or DEFAULT_CONFIG
        reserved = {
            cfg.sort_param: "sort",
            cfg.page_param: "page",
            cfg.page_size_param: "page_size",
            cfg.search_param: "search",
            cfg.after_param: "after",
            cfg.before_param: "before",
        }
        values: dict[str, str] = {}
        filters: dict[str, UrlValue] = {}
        for key, raw in params.items():
            if not isinstance(key, str):
                continue
            if key in reserved:
                scalar = _first_string(raw)
                if scalar is not None:
                    values[reserved[key]] = scalar
            elif isinstance(raw, str):
                filters[key] = raw
            elif isinstance(raw, list | tuple):
                filters[key] = [str(v) for v in raw if isinstance(v, str | int | float)]
        return cls(filters=filters, **values)


def _first_string(raw: Any) -> str | None:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, list | tuple) and raw and isinstance(raw[0], str):
        return raw[0]
    return None


# -- sort tokens ---------------------------------------------------------------


def encode_sort(sort_state: Iterable[SortEntry]) -> str:
    """``[("name", asc), ("created_at", desc)]`` -> ``"name,-created_at"``."""
    return ",".join(
        f"{_SORT_PREFIXES[SortDirection(direction)]}{url_safe_key(field)}"
        for field, direction in sort_state
    )


def parse_sort_token(token: str) -> SortEntry | None:
    token = token.strip()
    for prefix, direction in _PREFIX_ORDER:
        if token.startswith(prefix):
            field = token[len(prefix) :]
            return SortEntry(field, direction) if field else None
    return SortEntry(token, SortDirection.ASC) if token else None


def decode_sort(
    raw: str | None,
    columns: Sequence[ColumnSpec] | None = None,
) -> SortState:
    """
    Parse a sort token list.

    With *columns*, entries for unknown or non-sortable fields are dropped
    and fields are reported under their declared name. Without columns (or
    with an empty list) every token is kept verbatim.
    """
    if not raw or not isinstance(raw, str):
        return ()
    out: list[SortEntry] = []
    seen: set[str] = set()
    for token in raw.split(","):
        entry = parse_sort_token(token)
        if entry is None:
            continue
        field = entry.field
        if columns:
            column = find_column(columns, field)
            if column is None or not column.sortable or column.field is None:
                logger.debug("Dropping sort on %r: not a sortable column", field)
                continue
            field = column.field
        if field in seen:
            continue
        seen.add(field)
        out.append(SortEntry(field, entry.direction))
    return tuple(out)


# -- scalars -------------------------------------------------------------------


def decode_page(raw: str | None) -> int:
    """Positive integer page; anything else is page 1."""
    if isinstance(raw, str) and raw.strip().isdigit():
        page = int(raw.strip())
        if page > 0:
            return page
    return 1


def decode_page_size(raw: str | None, config: GridConfig | None = None) -> int:
    """Positive page size, clamped to ``max_page_size``; default otherwise."""
    cfg = config or DEFAULT_CONFIG
    if isinstance(raw, str) and raw.strip().isdigit():
        size = int(raw.strip())
        if size > 0:
            return min(size, cfg.max_page_size)
    return cfg.default_page_size


def decode_cursor_token(raw: str | None) -> str | None:
    """Keep a cursor token only if it decodes."""
    if not raw or decode_cursor(raw) is None:
        return None
    return raw


def validate_url_params(
    params: Mapping[str, Any],
    config: GridConfig | None = None,
) -> Mapping[str, Any]:
    """
    Reject oversized parameter maps.

    Raises:
        UrlParameterError: Too many parameters, or a value that is too long.
    """
    cfg = config or DEFAULT_CONFIG
    if not isinstance(params, Mapping):
        raise UrlParameterError("Invalid URL parameters format")
    if len(params) > cfg.max_url_params:
        raise UrlParameterError("Too many URL parameters")
    for value in params.values():
        items = value if isinstance(value, list | tuple) else [value]
        if any(len(str(item)) > cfg.max_url_param_length for item in items):
            raise UrlParameterError("URL parameter too long")
    return params


def ensure_multi_value_fields(
    params: Mapping[str, Any],
    columns: Iterable[ColumnSpec],
    registry: FilterKindRegistry | None = None,
) -> dict[str, Any]:
    """
    Add an empty list for every filterable multi-value column missing from
    a submitted form, so that unchecking everything clears the filter.
    """
    reg = registry or DEFAULT_FILTER_REGISTRY
    out = dict(params)
    for column in columns:
        if not column.filterable or column.field is None or not column.filter_kind:
            continue
        kind = reg.get(column.filter_kind)
        if kind is not None and kind.multi_value:
            key = column.url_key or column.field
            if key not in out and column.field not in out:
                out[key] = []
    return out


# -- codec -----------------------------------------------------------------------


class UrlStateCodec:
    """Encode and decode ``GridState`` against a filter-kind registry."""

    def __init__(
        self,
        registry: FilterKindRegistry | None = None,
        config: GridConfig | None = None,
    ) -> None:
        self._registry = registry or DEFAULT_FILTER_REGISTRY
        self._config = config or DEFAULT_CONFIG

    def encode(
        self,
        filters: Mapping[str, FilterValue],
        sort_state: Iterable[SortEntry] = (),
        page: int = 1,
        search: str = "",
        *,
        page_size: int | None = None,
        after: str | None = None,
        before: str | None = None,
    ) -> UrlState:
        values: dict[str, str] = {
            "sort": encode_sort(sort_state),
            "search": (search or "").strip(),
        }
        if after:
            values["after"] = after
        elif before:
            values["before"] = before
        elif page > 1:
            values["page"] = str(page)
        if page_size is not None and page_size != self._config.default_page_size:
            values["page_size"] = str(page_size)
        return UrlState(filters=self.encode_filters(filters), **values)

    def encode_state(self, state: GridState) -> UrlState:
        return self.encode(
            state.filters,
            state.sort_state,
            state.page,
            state.search,
            page_size=state.page_size,
            after=state.after,
            before=state.before,
        )

    def encode_params(self, state: GridState) -> dict[str, UrlValue]:
        return self.encode_state(state).to_params(self._config)

    def encode_filters(self, filters: Mapping[str, FilterValue]) -> dict[str, UrlValue]:
        out: dict[str, UrlValue] = {}
        for field, value in filters.items():
            kind = self._registry.get(value.kind)
            if kind is None:
                logger.warning("Unknown filter kind %s for %s; not encoded", value.kind, field)
                continue
            if kind.is_empty(value):
                continue
            out[url_safe_key(field)] = kind.encode(value)
        return out

    def decode(
        self,
        url_state: UrlState | Mapping[str, Any],
        columns: Sequence[ColumnSpec] = (),
    ) -> GridState:
        """
        Decode URL state into a ``GridState``. Never raises.

        A plain mapping is checked with ``validate_url_params`` first; a
        rejected map decodes to the default state.
        """
        if not isinstance(url_state, UrlState):
            try:
                validate_url_params(url_state, self._config)
            except UrlParameterError as exc:
                logger.warning("Ignoring URL parameters: %s", exc.message)
                return GridState(page_size=self._config.default_page_size)
            url_state = UrlState.from_params(url_state, self._config)

        after = decode_cursor_token(url_state.after)
        before = None if after else decode_cursor_token(url_state.before)
        search = url_state.search.strip()
        if columns and not any(c.searchable for c in columns):
            search = ""
        return GridState(
            filters=self.decode_filters(url_state.filters, columns),
            sort_state=decode_sort(url_state.sort, columns),
            page=1 if (after or before) else decode_page(url_state.page),
            page_size=decode_page_size(url_state.page_size, self._config),
            search=search,
            after=after,
            before=before,
        )

    def decode_params(
        self, params: Mapping[str, Any], columns: Sequence[ColumnSpec] = ()
    ) -> GridState:
        return self.decode(params, columns)

    def decode_filters(
        self,
        raw_filters: Mapping[str, UrlValue],
        columns: Sequence[ColumnSpec],
    ) -> dict[str, FilterValue]:
        decoded: dict[str, FilterValue] = {}
        for key, raw in raw_filters.items():
            column = find_column(columns, key)
            if column is None or column.field is None or not column.filterable:
                logger.debug("Dropping filter %r: not a filterable column", key)
                continue
            if raw in ("", []):
                continue
            if not column.filter_kind or column.filter_kind == AUTO:
                logger.debug("Dropping filter %r: column has no resolved kind", key)
                continue
            kind = self._registry.get(column.filter_kind)
            if kind is None:
                logger.warning(
                    "Unknown filter kind %s for %s; skipping filter",
                    column.filter_kind,
                    column.field,
                )
                continue
            try:
                value = kind.process(kind.decode_url_value(raw), column)
            except Exception:  # noqa: BLE001
                logger.warning(
                    "Error processing URL filter value for %s; skipping",
                    column.field,
                    exc_info=True,
                )
                continue
            if value is None or not kind.validate(value):
                logger.debug("Dropping filter %r: value failed validation", key)
                continue
            decoded[column.field] = value
        return decoded
