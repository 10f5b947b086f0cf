"""
Tests for the URL state codec.

Covers:
- round trip of filters, sort, page and search through URL parameters
- decoding of malformed or hostile input
- parameter-map guard rails and multi-value form handling
- keyset cursor parameters
"""

from __future__ import annotations

import pytest

from datagrid_query.columns import ColumnSpec
from datagrid_query.config import GridConfig
from datagrid_query.exceptions import UrlParameterError
from datagrid_query.filters import FilterValue, NumberRange
from datagrid_query.pagination import encode_cursor
from datagrid_query.schema import FieldType
from datagrid_query.sorting import SortDirection, SortEntry
from datagrid_query.state import GridState
from datagrid_query.url_codec import (
    UrlState,
    UrlStateCodec,
    decode_sort,
    encode_sort,
    ensure_multi_value_fields,
    parse_sort_token,
    validate_url_params,
)

COLUMNS = [
    ColumnSpec(
        field="name",
        sortable=True,
        filterable=True,
        searchable=True,
        filter_kind="text",
        field_type=FieldType.STRING,
    ),
    ColumnSpec(
        field="role", filterable=True, filter_kind="multi_select", field_type=FieldType.ENUM
    ),
    ColumnSpec(
        field="age",
        sortable=True,
        filterable=True,
        filter_kind="number_range",
        field_type=FieldType.INTEGER,
    ),
    ColumnSpec(
        field="profile[:theme]",
        sortable=True,
        filterable=True,
        filter_kind="text",
        field_type=FieldType.STRING,
    ),
    ColumnSpec(field="email"),
    ColumnSpec(label="Actions"),
]


@pytest.fixture
def codec(registry) -> UrlStateCodec:
    return UrlStateCodec(registry)


def _state() -> GridState:
    return GridState(
        filters={
            "name": FilterValue("text", "ali", "contains", False),
            "profile[:theme]": FilterValue("text", "dark", "contains", False),
            "role": FilterValue("multi_select", ("admin", "member"), "any"),
            "age": FilterValue("number_range", NumberRange(18, None), "between"),
        },
        sort_state=(
            SortEntry("profile[:theme]", SortDirection.DESC),
            SortEntry("name", SortDirection.ASC_NULLS_LAST),
        ),
        page=3,
        search="x",
    )


class TestRoundTrip:
    def test_encoded_params(self, codec) -> None:
        assert codec.encode_params(_state()) == {
            "name": "ali",
            "profile__theme": "dark",
            "role": "admin,member",
            "age": "18,",
            "sort": "-profile__theme,-+name",
            "page": "3",
            "search": "x",
        }

    def test_decode_restores_state(self, codec) -> None:
        params = codec.encode_params(_state())
        assert codec.decode_params(params, COLUMNS) == _state()

    def test_default_state_encodes_to_nothing(self, codec) -> None:
        assert codec.encode_params(GridState()) == {}

    def test_custom_parameter_names(self, registry) -> None:
        config = GridConfig(sort_param="order", page_param="p")
        codec = UrlStateCodec(registry, config)
        params = codec.encode_params(GridState(sort_state=(SortEntry("name", SortDirection.DESC),), page=2))
        assert params == {"order": "-name", "p": "2"}
        assert codec.decode_params(params, COLUMNS).page == 2


class TestSortTokens:
    @pytest.mark.parametrize("direction", list(SortDirection))
    def test_every_direction_round_trips(self, direction: SortDirection) -> None:
        state = (SortEntry("age", direction),)
        assert decode_sort(encode_sort(state)) == state

    @pytest.mark.parametrize(
        ("token", "expected"),
        [
            ("name", SortEntry("name", SortDirection.ASC)),
            ("-name", SortEntry("name", SortDirection.DESC)),
            ("++name", SortEntry("name", SortDirection.ASC_NULLS_FIRST)),
            ("--name", SortEntry("name", SortDirection.DESC_NULLS_LAST)),
            ("-", None),
            ("", None),
        ],
    )
    def test_parse_sort_token(self, token, expected) -> None:
        assert parse_sort_token(token) == expected

    def test_columns_filter_unknown_and_unsortable(self) -> None:
        state = decode_sort("nope,-email,-profile__theme,name,-name", COLUMNS)
        assert state == (
            SortEntry("profile[:theme]", SortDirection.DESC),
            SortEntry("name", SortDirection.ASC),
        )

    def test_no_columns_keeps_tokens(self) -> None:
        assert decode_sort("a,-b") == (
            SortEntry("a", SortDirection.ASC),
            SortEntry("b", SortDirection.DESC),
        )


class TestMalformedInput:
    def test_malformed_values_fall_back(self, codec) -> None:
        state = codec.decode_params(
            {
                "sort": "nope,-name",
                "page": "abc",
                "page_size": "500",
                "name": "",
                "unknown": "v",
                "age": "abc,",
                "email": "bob",
            },
            COLUMNS,
        )
        assert state == GridState(
            sort_state=(SortEntry("name", SortDirection.DESC),), page_size=100
        )

    @pytest.mark.parametrize("page", ["0", "-2", "1.5", ""])
    def test_bad_page_is_first_page(self, codec, page) -> None:
        assert codec.decode_params({"page": page}, COLUMNS).page == 1

    def test_zero_page_size_uses_default(self, codec) -> None:
        assert codec.decode_params({"page_size": "0"}, COLUMNS).page_size == 25

    def test_list_values_take_first_for_scalars(self, codec) -> None:
        state = codec.decode_params({"page": ["4", "9"], "role": ["admin", "guest"]}, COLUMNS)
        assert state.page == 4
        assert state.filters["role"].value == ("admin", "guest")

    def test_processing_error_drops_only_that_filter(self, registry, caplog) -> None:
        columns = [
            *COLUMNS,
            ColumnSpec(
                field="title",
                filterable=True,
                filter_kind="checkbox",
                field_type=FieldType.STRING,
            ),
        ]
        state = UrlStateCodec(registry).decode_params({"title": "x", "name": "bob"}, columns)
        assert list(state.filters) == ["name"]
        assert "Error processing URL filter value for title" in caplog.text

    def test_unresolved_auto_kind_is_dropped(self, codec) -> None:
        columns = [ColumnSpec(field="name", filterable=True, filter_kind="auto")]
        assert codec.decode_params({"name": "bob"}, columns).filters == {}

    def test_search_dropped_without_searchable_columns(self, codec) -> None:
        columns = [c for c in COLUMNS if not c.searchable]
        assert codec.decode_params({"search": "x"}, columns).search == ""
        assert codec.decode_params({"search": " x "}, COLUMNS).search == "x"

    def test_oversized_map_decodes_to_default(self, codec) -> None:
        params = {f"k{i}": "v" for i in range(51)}
        assert codec.decode_params(params, COLUMNS) == GridState()

    def test_unknown_kind_not_encoded(self, codec, caplog) -> None:
        state = GridState(filters={"name": FilterValue("slider", 3, "equals")})
        assert codec.encode_params(state) == {}
        assert "Unknown filter kind slider" in caplog.text


class TestValidateUrlParams:
    def test_too_many(self) -> None:
        with pytest.raises(UrlParameterError, match="Too many URL parameters"):
            validate_url_params({f"k{i}": "v" for i in range(51)})

    def test_too_long(self) -> None:
        with pytest.raises(UrlParameterError, match="URL parameter too long"):
            validate_url_params({"name": ["ok", "x" * 1001]})

    def test_not_a_mapping(self) -> None:
        with pytest.raises(UrlParameterError, match="Invalid URL parameters format"):
            validate_url_params(["name", "bob"])  # type: ignore[arg-type]

    def test_within_limits(self) -> None:
        params = {"name": "x" * 1000}
        assert validate_url_params(params) is params


def test_ensure_multi_value_fields(registry) -> None:
    submitted = {"name": "bob"}
    params = ensure_multi_value_fields(submitted, COLUMNS, registry)
    assert params == {"name": "bob", "role": []}
    assert submitted == {"name": "bob"}
    assert ensure_multi_value_fields({"role": ["admin"]}, COLUMNS, registry) == {"role": ["admin"]}


class TestCursors:
    def test_after_wins_and_forces_first_page(self, codec) -> None:
        after = encode_cursor({"v": ["Bob", 2]})
        before = encode_cursor({"v": ["Alice", 1]})
        state = codec.decode_params({"after": after, "before": before, "page": "5"}, COLUMNS)
        assert (state.after, state.before, state.page) == (after, None, 1)

    def test_garbage_cursor_is_ignored(self, codec) -> None:
        state = codec.decode_params({"after": "%%%", "page": "5"}, COLUMNS)
        assert state.after is None
        assert state.page == 5

    def test_encode_cursor_replaces_page(self, codec) -> None:
        token = encode_cursor({"v": [1]})
        url_state = codec.encode({}, page=3, before=token)
        assert url_state == UrlState(before=token)


def test_url_state_from_params_skips_non_string_keys() -> None:
    url_state = UrlState.from_params({"name": "a", 3: "b", "sort": ["-name"]})
    assert url_state.filters == {"name": "a"}
    assert url_state.sort == "-name"
