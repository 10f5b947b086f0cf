from datagrid_query.capabilities import InvalidField
from datagrid_query.exceptions import (
    DataGridError,
    ExecutionError,
    FieldNotFoundError,
    InMemoryCalculationError,
    QueryValidationError,
    ValidationError,
    format_invalid_fields,
)


def test_field_not_found_suggests_leaf() -> None:
    exc = FieldNotFoundError("author.nmae", "Post", ["name", "email"])
    assert str(exc) == "author.nmae does not exist on Post. Did you mean: name?"
    assert exc.to_dict() == {
        "error": "FIELD_NOT_FOUND",
        "field": "author.nmae",
        "resource": "Post",
        "suggestions": ["name"],
        "available_fields": ["email", "name"],
    }


def test_field_not_found_without_suggestion() -> None:
    assert str(FieldNotFoundError("zzz", "User", ["name"])) == "zzz does not exist on User"


def test_in_memory_calculation_messages() -> None:
    assert "cannot be sorted" in str(InMemoryCalculationError("initials", "sort"))
    exc = InMemoryCalculationError("initials", "filter")
    assert "cannot be filtered" in str(exc)
    assert isinstance(exc, ValidationError)
    assert exc.to_dict()["action"] == "filter"


def test_format_invalid_fields_groups_by_action() -> None:
    invalid = [
        InvalidField("a", "filter", "r1"),
        InvalidField("b", "sort", "r2"),
        InvalidField("c", "sort", "r3"),
    ]
    assert format_invalid_fields(invalid) == (
        "Cannot sort by invalid fields: b (r2), c (r3); "
        "Cannot filter by invalid fields: a (r1)"
    )
    exc = QueryValidationError(invalid)
    assert exc.to_dict()["fields"][0] == {"field": "a", "action": "filter", "reason": "r1"}


def test_base_to_dict() -> None:
    exc = ExecutionError("boom", "User")
    assert isinstance(exc, DataGridError)
    assert exc.to_dict() == {"error": "EXECUTION_ERROR", "message": "boom", "resource": "User"}
    assert DataGridError("x").to_dict() == {"error": "DataGridError", "message": "x"}


def test_query_validation_error_payload() -> None:
    exc = QueryValidationError(
        [
            InvalidField("initials", "search", "field is an in-memory calculation and cannot be searched"),
            InvalidField("page_size", "page", "must be at least 1"),
        ]
    )
    assert isinstance(exc, ValidationError)
    assert exc.to_dict() == {
        "error": "QUERY_VALIDATION_ERROR",
        "message": (
            "Cannot search by invalid fields: initials "
            "(field is an in-memory calculation and cannot be searched); "
            "Cannot page with invalid values: page_size (must be at least 1)"
        ),
        "fields": [
            {
                "field": "initials",
                "action": "search",
                "reason": "field is an in-memory calculation and cannot be searched",
            },
            {"field": "page_size", "action": "page", "reason": "must be at least 1"},
        ],
    }


def test_in_memory_search_message() -> None:
    assert str(InMemoryCalculationError("initials", "search")) == (
        "initials is an in-memory calculation and cannot be searched"
    )
