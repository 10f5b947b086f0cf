"""
Query assembly orchestrator.

Sequences one query cycle against a model:

1. validate every requested sort, filter and search field and the page
   bounds (refuse to run on any invalid one);
2. compile filters and search;
3. apply sorting;
4. paginate (offset, or keyset when cursors are in play);
5. execute through a ``QueryExecutor`` and compute the page window.

Validation and execution failures never raise past ``build_and_execute``;
they come back as a ``GridResult`` with ``error`` set and the error page
window.

Usage::

    orchestrator = QueryOrchestrator(SessionExecutor(session))
    query = GridQuery(columns=tuple(columns)).with_sort_state(state.sort_state)
    result = orchestrator.build_and_execute(User, query)
    if result.ok and orchestrator.is_current(result):
        render(result.rows, result.page)
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import load_only, selectinload

from .capabilities import CapabilityResolver, InvalidField
from .columns import AUTO, ColumnSpec, find_column
from .config import DEFAULT_CONFIG
from .exceptions import ExecutionError, QueryValidationError
from .filters import DEFAULT_FILTER_REGISTRY
from .pagination import (
    ERROR_PAGE_WINDOW,
    KeysetWindow,
    PageWindow,
    build_error_window,
    compute_keyset_window,
    compute_window,
)
from .persistence.introspection import SQLAlchemyIntrospector
from .persistence.keyset import (
    cursor_for,
    cursor_values,
    effective_direction,
    keyset_predicate,
    with_tiebreaker,
)
from .persistence.ordering import order_clause, resolve_ordering
from .persistence.translator import FilterTranslator
from .schema import resource_name
from .sorting import SortEntry, SortState, normalize_sort_state

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from sqlalchemy import Select

    from .config import GridConfig
    from .filters.base import FilterKindRegistry, FilterValue
    from .persistence.executor import QueryExecutor
    from .persistence.ordering import OrderKey
    from .schema import SchemaIntrospector
    from .state import GridState

logger = logging.getLogger(__name__)


class PaginationMode(str, Enum):
    OFFSET = "offset"
    KEYSET = "keyset"


# ---------------------------------------------------------------------------
# Request / result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GridQuery:
    """
    Per-request inputs to ``build_and_execute``.

    ``actor`` and ``tenant`` are opaque; they are attached to the statement
    as execution options for downstream hooks and never interpreted here.
    """

    actor: Any = None
    tenant: Any = None
    filters: Mapping[str, FilterValue] = field(default_factory=dict)
    sort_state: SortState = ()
    page_size: int = DEFAULT_CONFIG.default_page_size
    current_page: int = 1
    after: str | None = None
    before: str | None = None
    search: str = ""
    columns: tuple[ColumnSpec, ...] = ()
    extra_query_options: Mapping[str, Any] = field(default_factory=dict)
    pagination: PaginationMode = PaginationMode.OFFSET

    @classmethod
    def from_state(
        cls,
        state: GridState,
        columns: Iterable[ColumnSpec] = (),
        **kwargs: Any,
    ) -> GridQuery:
        """Build a query from decoded grid state."""
        return cls(
            filters=dict(state.filters),
            sort_state=state.sort_state,
            page_size=state.page_size,
            current_page=state.page,
            after=state.after,
            before=state.before,
            search=state.search,
            columns=tuple(columns),
            **kwargs,
        )

    @property
    def mode(self) -> PaginationMode:
        if self.after or self.before:
            return PaginationMode.KEYSET
        return self.pagination

    def with_filters(self, filters: Mapping[str, FilterValue]) -> GridQuery:
        return dataclasses.replace(self, filters=dict(filters))

    def with_sort_state(self, sort_state: Iterable[SortEntry | tuple[str, Any]]) -> GridQuery:
        return dataclasses.replace(self, sort_state=normalize_sort_state(sort_state))

    def with_page(self, page: int, page_size: int | None = None) -> GridQuery:
        return dataclasses.replace(
            self,
            current_page=page,
            page_size=page_size or self.page_size,
            after=None,
            before=None,
        )

    def with_cursor(self, *, after: str | None = None, before: str | None = None) -> GridQuery:
        return dataclasses.replace(self, after=after, before=before)

    def with_search(self, term: str) -> GridQuery:
        return dataclasses.replace(self, search=term)

    def with_columns(self, columns: Iterable[ColumnSpec]) -> GridQuery:
        return dataclasses.replace(self, columns=tuple(columns))

    def with_query_options(self, **options: Any) -> GridQuery:
        return dataclasses.replace(
            self, extra_query_options={**self.extra_query_options, **options}
        )

    def with_context(self, actor: Any = None, tenant: Any = None) -> GridQuery:
        return dataclasses.replace(self, actor=actor, tenant=tenant)


@dataclass(frozen=True)
class GridResult:
    """Rows plus page metadata, or an error with the error page window."""

    rows: list[Any]
    page: PageWindow | KeysetWindow
    generation: int
    error: str | None = None
    exception: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Query options
# ---------------------------------------------------------------------------


def _apply_load(stmt: Select[Any], model: type[Any], names: Iterable[str]) -> Select[Any]:
    """Eager-load the named relationships."""
    return stmt.options(*(selectinload(getattr(model, name)) for name in names))


def _apply_load_only(stmt: Select[Any], model: type[Any], names: Iterable[str]) -> Select[Any]:
    """Restrict loaded columns to the named attributes."""
    attrs = [getattr(model, name) for name in names]
    return stmt.options(load_only(*attrs)) if attrs else stmt


def _apply_distinct(stmt: Select[Any], distinct: Any) -> Select[Any]:
    return stmt.distinct() if distinct else stmt


def _apply_execution_options(stmt: Select[Any], options: Mapping[str, Any]) -> Select[Any]:
    return stmt.execution_options(**options) if options else stmt


def apply_query_options(
    stmt: Select[Any],
    model: type[Any],
    options: Mapping[str, Any] | None,
) -> Select[Any]:
    """
    Apply ``extra_query_options``.

    Handles ``load``, ``select``, ``distinct`` and ``execution_options``;
    anything else is ignored.
    """
    if not options:
        return stmt
    for key in options:
        if key not in ("load", "select", "distinct", "execution_options"):
            logger.debug("Ignoring unknown query option %r", key)

    stmt = _apply_load(stmt, model, options.get("load") or ())
    stmt = _apply_load_only(stmt, model, options.get("select") or ())
    stmt = _apply_distinct(stmt, options.get("distinct"))
    return _apply_execution_options(stmt, options.get("execution_options") or {})


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class QueryOrchestrator:
    """Build, validate and execute grid queries for SQLAlchemy models."""

    def __init__(
        self,
        executor: QueryExecutor,
        introspector: SchemaIntrospector | None = None,
        registry: FilterKindRegistry | None = None,
        config: GridConfig | None = None,
    ) -> None:
        self._executor = executor
        self._introspector = introspector or SQLAlchemyIntrospector()
        self._registry = registry or DEFAULT_FILTER_REGISTRY
        self._config = config or DEFAULT_CONFIG
        self._resolver = CapabilityResolver(self._introspector, self._registry)
        self._translator = FilterTranslator(self._registry, self._introspector)
        self._generations = itertools.count(1)
        self._latest = 0

    @property
    def resolver(self) -> CapabilityResolver:
        return self._resolver

    def resolve_columns(
        self, resource: type[Any], columns: Iterable[ColumnSpec | Mapping[str, Any]]
    ) -> list[ColumnSpec]:
        return self._resolver.resolve_columns(columns, resource)

    def is_current(self, result: GridResult) -> bool:
        """True only for the result of the most recent call."""
        return result.generation == self._latest

    # -- validation -------------------------------------------------------------

    def validate(self, resource: type[Any], query: GridQuery) -> list[InvalidField]:
        """Every requested sort, filter, search or paging input the engine would refuse."""
        invalid: list[InvalidField] = []
        keyset = query.mode is PaginationMode.KEYSET
        for entry in query.sort_state:
            column = find_column(query.columns, entry.field)
            if keyset and column is not None and column.sort_fn is not None:
                invalid.append(
                    InvalidField(
                        entry.field, "sort", "custom sort functions cannot be paged by cursor"
                    )
                )
                continue
            problem = self._resolver.check(entry.field, "sort", resource, column)
            if problem is not None:
                invalid.append(problem)

        for field_name, value in query.filters.items():
            column = find_column(query.columns, field_name)
            if column is not None and column.filter_fn is not None:
                continue
            problem = self._resolver.check(field_name, "filter", resource, column)
            if problem is None:
                problem = self._check_filter_kind(field_name, value, column)
            if problem is not None:
                invalid.append(problem)

        if (query.search or "").strip():
            for column in query.columns:
                if not column.searchable or column.field is None:
                    continue
                problem = self._resolver.check(column.field, "search", resource, column)
                if problem is not None:
                    invalid.append(problem)

        if query.page_size < 1:
            invalid.append(InvalidField("page_size", "page", "must be at least 1"))
        if query.current_page < 1:
            invalid.append(InvalidField("page", "page", "must be at least 1"))
        return invalid

    def _check_filter_kind(
        self, field_name: str, value: FilterValue, column: ColumnSpec | None
    ) -> InvalidField | None:
        if column is None or not column.filter_kind or column.filter_kind == AUTO:
            return InvalidField(field_name, "filter", "no filter kind declared for this field")
        if not self._registry.has(value.kind):
            return InvalidField(field_name, "filter", f"unknown filter kind {value.kind}")
        return None

    # -- statement --------------------------------------------------------------

    def build_statement(
        self, resource: type[Any], query: GridQuery
    ) -> tuple[Select[Any], list[OrderKey]]:
        """Filtered, searched and ordered statement plus its ordering keys.

        Query options and actor/tenant context are applied separately, after
        counting.
        """
        stmt = select(resource)
        stmt = self._translator.apply_filters(stmt, resource, query.filters, query.columns)
        stmt = self._translator.apply_search(stmt, resource, query.search, query.columns)
        return resolve_ordering(
            stmt, resource, query.sort_state, query.columns, self._introspector
        )

    def _finalize(self, stmt: Select[Any], resource: type[Any], query: GridQuery) -> Select[Any]:
        stmt = apply_query_options(stmt, resource, query.extra_query_options)
        context = {
            key: value
            for key, value in (("actor", query.actor), ("tenant", query.tenant))
            if value is not None
        }
        return stmt.execution_options(**context) if context else stmt

    # -- execution --------------------------------------------------------------

    def build_and_execute(self, resource: type[Any], query: GridQuery) -> GridResult:
        """
        Run one query cycle. Never raises.

        Invalid sort, filter, search or paging requests are refused before
        anything executes; the error names every field and its reason and
        ``exception`` carries the ``QueryValidationError``.
        """
        generation = next(self._generations)
        self._latest = generation
        if query.page_size > self._config.max_page_size:
            logger.debug(
                "Clamping page size %d to %d", query.page_size, self._config.max_page_size
            )
            query = dataclasses.replace(query, page_size=self._config.max_page_size)

        invalid = self.validate(resource, query)
        if invalid:
            refused = QueryValidationError(invalid)
            logger.warning("Refusing query on %s: %s", resource_name(resource), refused)
            return GridResult(
                rows=[],
                page=build_error_window(query.page_size if query.page_size > 0 else None),
                generation=generation,
                error=str(refused),
                exception=refused,
            )

        try:
            if query.mode is PaginationMode.KEYSET:
                rows, page = self._execute_keyset(resource, query)
            else:
                rows, page = self._execute_offset(resource, query)
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "Query failed for %s (filters=%s, sort=%s, page=%s, page_size=%s)",
                resource_name(resource),
                list(query.filters),
                list(query.sort_state),
                query.current_page,
                query.page_size,
            )
            error = ExecutionError(f"Query execution failed: {exc}", resource_name(resource))
            return GridResult(
                rows=[],
                page=ERROR_PAGE_WINDOW,
                generation=generation,
                error=str(error),
                exception=exc,
            )
        return GridResult(rows=rows, page=page, generation=generation)

    def _execute_offset(
        self, resource: type[Any], query: GridQuery
    ) -> tuple[list[Any], PageWindow]:
        stmt, _ = self.build_statement(resource, query)
        total = self._executor.count(stmt.order_by(None))
        stmt = self._finalize(stmt, resource, query)
        stmt = stmt.limit(query.page_size).offset((query.current_page - 1) * query.page_size)
        rows = [row[0] for row in self._executor.fetch(stmt)]
        return rows, compute_window(len(rows), query.current_page, query.page_size, total)

    def _execute_keyset(
        self, resource: type[Any], query: GridQuery
    ) -> tuple[list[Any], KeysetWindow]:
        stmt, keys = self.build_statement(resource, query)
        stmt = self._finalize(stmt.order_by(None), resource, query)
        keys = with_tiebreaker(keys, resource)
        backward = query.before is not None and query.after is None
        token = query.after or query.before

        values = cursor_values(token, keys) if token else None
        if token and values is None:
            logger.warning("Ignoring stale cursor for %s", resource_name(resource))
            token = None
            backward = False
        if values is not None:
            stmt = stmt.where(keyset_predicate(keys, values, backward=backward))

        stmt = stmt.order_by(
            *(order_clause(k.expression, effective_direction(k, backward)) for k in keys)
        )
        stmt = stmt.add_columns(
            *(k.expression.label(f"_keyset_{i}") for i, k in enumerate(keys))
        )
        fetched = self._executor.fetch(stmt.limit(query.page_size + 1))
        more = len(fetched) > query.page_size
        page_rows = list(fetched[: query.page_size])
        if backward:
            page_rows.reverse()

        rows = [row[0] for row in page_rows]
        first = cursor_for(tuple(page_rows[0])[1:]) if page_rows else None
        last = cursor_for(tuple(page_rows[-1])[1:]) if page_rows else None
        if backward:
            window = KeysetWindow(
                page_size=query.page_size,
                forward_cursor=last,
                backward_cursor=first if more else None,
                has_next=bool(page_rows),
                has_previous=more,
            )
        else:
            window = compute_keyset_window(
                len(fetched),
                query.page_size,
                forward_cursor=last,
                backward_cursor=first if token else None,
            )
        return rows, window


def build_and_execute(
    resource: type[Any],
    query: GridQuery,
    executor: QueryExecutor,
    *,
    registry: FilterKindRegistry | None = None,
    config: GridConfig | None = None,
) -> GridResult:
    """One-shot ``QueryOrchestrator(executor).build_and_execute(resource, query)``."""
    return QueryOrchestrator(executor, registry=registry, config=config).build_and_execute(
        resource, query
    )

