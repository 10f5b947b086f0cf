"""
Filter and search translation, executed against the seeded SQLite database.

Users: 1 Alice, 2 Bob, 3 Carol, 4 Dave.
Posts: 1 "Hello World" (Alice), 2 "Drafting 100%" (Alice), 3 "Bob's SQL notes".
"""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select

from datagrid_query.columns import ColumnSpec
from datagrid_query.exceptions import (
    FieldNotFoundError,
    FilterKindNotFoundError,
    InMemoryCalculationError,
    MissingFilterKindError,
)
from datagrid_query.filters import DateRange, FilterValue, NumberRange
from datagrid_query.persistence import FilterTranslator

from ..conftest import Post, User


@pytest.fixture
def translator(registry, introspector) -> FilterTranslator:
    return FilterTranslator(registry, introspector)


def _filterable(*fields: str) -> list[ColumnSpec]:
    return [ColumnSpec.from_config({"field": f, "filterable": True}) for f in fields]


def _ids(session, stmt) -> list[int]:
    return sorted(row.id for row in session.scalars(stmt))


def _filter(session, translator, model, field, value) -> list[int]:
    columns = translator.resolver.resolve_columns(_filterable(field), model)
    stmt = translator.apply_filters(select(model), model, {field: value}, columns)
    return _ids(session, stmt)


def _text(value: str, operator: str = "contains") -> FilterValue:
    return FilterValue("text", value, operator, False)


class TestDirectFields:
    def test_text_contains(self, session, translator) -> None:
        assert _filter(session, translator, User, "name", _text("LI")) == [1]

    def test_text_wildcards_are_literal(self, session, translator) -> None:
        assert _filter(session, translator, Post, "title", _text("100%")) == [2]
        assert _filter(session, translator, Post, "title", _text("_")) == []

    def test_text_not_equals(self, session, translator) -> None:
        assert _filter(session, translator, User, "name", _text("bob", "not_equals")) == [1, 3, 4]

    def test_uuid_contains_matches_substring(self, session, translator) -> None:
        assert _filter(session, translator, User, "uid", _text("123e4567")) == [1]

    def test_uuid_equals(self, session, translator) -> None:
        value = _text(str(uuid.UUID("123e4567-e89b-12d3-a456-426614174000")), "equals")
        assert _filter(session, translator, User, "uid", value) == [1]

    def test_select(self, session, translator) -> None:
        value = FilterValue("select", "member", "equals")
        assert _filter(session, translator, User, "role", value) == [2, 3]

    def test_multi_select(self, session, translator) -> None:
        value = FilterValue("multi_select", ("admin", "guest"), "any")
        assert _filter(session, translator, User, "role", value) == [1, 4]

    def test_boolean(self, session, translator) -> None:
        value = FilterValue("boolean", False, "equals")
        assert _filter(session, translator, User, "is_active", value) == [2]

    def test_number_range_open_high(self, session, translator) -> None:
        value = FilterValue("number_range", NumberRange(26, None), "between")
        assert _filter(session, translator, User, "age", value) == [1, 3]

    def test_date_only_end_covers_whole_day(self, session, translator) -> None:
        value = FilterValue("date_range", DateRange("2024-01-01", "2024-01-10"), "between")
        assert _filter(session, translator, User, "created_at", value) == [1, 2]

    def test_expression_property(self, session, translator) -> None:
        value = FilterValue("number_range", NumberRange(1, None), "between")
        assert _filter(session, translator, User, "post_count", value) == [1, 2]

    def test_hybrid_property(self, session, translator) -> None:
        assert _filter(session, translator, User, "display_name", _text("<bob@")) == [2]


class TestEmbeddedAndRelations:
    def test_embedded_equals(self, session, translator) -> None:
        value = _text("DARK", "equals")
        assert _filter(session, translator, User, "profile[:theme]", value) == [1, 4]

    def test_nested_embedded(self, session, translator) -> None:
        assert _filter(session, translator, User, "profile[:address][:city]", _text("par")) == [1]

    def test_to_many_relation_uses_any(self, session, translator) -> None:
        assert _filter(session, translator, User, "posts.title", _text("sql")) == [2]

    def test_to_one_relation_uses_has(self, session, translator) -> None:
        value = _text("alice", "equals")
        assert _filter(session, translator, Post, "author.name", value) == [1, 2]

    def test_two_hops(self, session, translator) -> None:
        value = FilterValue("multi_select", ("sql",), "any")
        assert _filter(session, translator, User, "posts.tags.name", value) == [2]

    def test_relation_embedded(self, session, translator) -> None:
        value = _text("berlin")
        assert _filter(session, translator, Post, "author.profile[:address][:city]", value) == [3]

    def test_compiled_shape(self, translator) -> None:
        predicate = translator.build_predicate(User, "posts.title", _text("x"))
        sql = str(predicate.compile())
        assert sql.startswith("EXISTS (SELECT 1")
        assert "lower(posts.title) LIKE" in sql


class TestFilterComposition:
    def test_filters_combine_with_and(self, session, translator) -> None:
        columns = translator.resolver.resolve_columns(_filterable("role", "is_active"), User)
        filters = {
            "role": FilterValue("select", "member", "equals"),
            "is_active": FilterValue("boolean", True, "equals"),
        }
        stmt = translator.apply_filters(select(User), User, filters, columns)
        assert _ids(session, stmt) == [3]

    def test_custom_filter_function(self, session, translator) -> None:
        column = ColumnSpec(
            field="initials",
            filterable=True,
            filter_fn=lambda stmt, value: stmt.where(User.name.startswith(value.value)),
        )
        stmt = translator.apply_filters(
            select(User), User, {"initials": _text("C")}, [column]
        )
        assert _ids(session, stmt) == [3]

    def test_missing_kind(self, translator) -> None:
        with pytest.raises(MissingFilterKindError):
            translator.apply_filters(select(User), User, {"name": _text("a")}, [])

    def test_unknown_kind(self, translator) -> None:
        columns = [ColumnSpec(field="name", filterable=True, filter_kind="text")]
        with pytest.raises(FilterKindNotFoundError):
            translator.apply_filters(
                select(User), User, {"name": FilterValue("slider", 1, "eq")}, columns
            )

    def test_host_evaluated_property_rejected(self, translator) -> None:
        with pytest.raises(InMemoryCalculationError) as exc_info:
            translator.build_predicate(User, "initials", _text("A"))
        assert str(exc_info.value) == (
            "initials is an in-memory calculation and cannot be filtered"
        )

    def test_unknown_field(self, translator) -> None:
        with pytest.raises(FieldNotFoundError) as exc_info:
            translator.build_predicate(User, "posts.titel", _text("a"))
        assert "title" in exc_info.value.suggestions


class TestSearch:
    def _searchable(self, translator, *fields: str) -> list[ColumnSpec]:
        configs = [{"field": f, "searchable": True} for f in fields]
        return translator.resolver.resolve_columns(configs, User)

    def test_or_across_columns(self, session, translator) -> None:
        columns = self._searchable(translator, "name", "email")
        stmt = translator.apply_search(select(User), User, "BOB", columns)
        assert _ids(session, stmt) == [2]

    def test_non_string_columns_are_cast(self, session, translator) -> None:
        columns = self._searchable(translator, "name", "age")
        stmt = translator.apply_search(select(User), User, "35", columns)
        assert _ids(session, stmt) == [3]

    def test_relation_column(self, session, translator) -> None:
        columns = self._searchable(translator, "posts.title")
        stmt = translator.apply_search(select(User), User, "hello", columns)
        assert _ids(session, stmt) == [1]

    def test_search_fn(self, session, translator) -> None:
        columns = [
            *self._searchable(translator, "name"),
            ColumnSpec(field="role", searchable=True, search_fn=lambda model, term: model.role == term),
        ]
        stmt = translator.apply_search(select(User), User, "guest", columns)
        assert _ids(session, stmt) == [4]

    def test_blank_term_or_no_columns_is_noop(self, translator) -> None:
        stmt = select(User)
        assert translator.apply_search(stmt, User, "  ", self._searchable(translator, "name")) is stmt
        assert translator.apply_search(stmt, User, "bob", []) is stmt

    def test_in_memory_column_raises(self, translator) -> None:
        columns = [ColumnSpec(field="name", searchable=True), ColumnSpec(field="initials", searchable=True)]
        with pytest.raises(InMemoryCalculationError) as exc_info:
            translator.apply_search(select(User), User, "A", columns)
        assert str(exc_info.value) == "initials is an in-memory calculation and cannot be searched"

    def test_unknown_column_raises(self, translator) -> None:
        with pytest.raises(FieldNotFoundError):
            translator.apply_search(select(User), User, "A", [ColumnSpec(field="nickname", searchable=True)])
