"""Tests for the SQLAlchemy schema introspector."""

from __future__ import annotations

import pytest
from sqlalchemy import JSON, Integer, String, TypeDecorator
from sqlalchemy.dialects import postgresql

from datagrid_query.persistence import SQLAlchemyIntrospector, field_type_for
from datagrid_query.schema import CalculationKind, FieldType, SchemaIntrospector

from ..conftest import Post, Tag, User


class LowerString(TypeDecorator):
    impl = String
    cache_ok = True


def test_satisfies_protocol(introspector) -> None:
    assert isinstance(introspector, SchemaIntrospector)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("id", FieldType.INTEGER),
        ("uid", FieldType.UUID),
        ("name", FieldType.STRING),
        ("score", FieldType.FLOAT),
        ("balance", FieldType.DECIMAL),
        ("is_active", FieldType.BOOLEAN),
        ("role", FieldType.ENUM),
        ("birthday", FieldType.DATE),
        ("created_at", FieldType.DATETIME),
        ("profile", FieldType.JSON),
        ("display_name", FieldType.STRING),
        ("post_count", FieldType.INTEGER),
        ("initials", FieldType.UNKNOWN),
    ],
)
def test_attribute_type(introspector, name: str, expected: FieldType) -> None:
    assert introspector.attribute_type(User, name) is expected


def test_text_column_is_string(introspector) -> None:
    assert introspector.attribute_type(Post, "body") is FieldType.STRING


@pytest.mark.parametrize(
    ("sa_type", "expected"),
    [
        (LowerString(), FieldType.STRING),
        (postgresql.JSONB(), FieldType.JSON),
        (postgresql.ARRAY(Integer), FieldType.ARRAY),
        (JSON(), FieldType.JSON),
        (None, FieldType.UNKNOWN),
    ],
)
def test_field_type_for(sa_type, expected: FieldType) -> None:
    assert field_type_for(sa_type) is expected


@pytest.mark.parametrize(
    ("name", "kind"),
    [
        ("name", CalculationKind.NONE),
        ("post_count", CalculationKind.EXPRESSION),
        ("display_name", CalculationKind.EXPRESSION),
        ("initials", CalculationKind.HOST_EVALUATED),
        ("missing", CalculationKind.NONE),
    ],
)
def test_calculation_kind(introspector, name: str, kind: CalculationKind) -> None:
    assert introspector.calculation_kind(User, name) is kind


class TestAttributesAndRelations:
    def test_attribute_exists(self, introspector) -> None:
        assert introspector.attribute_exists(User, "email")
        assert introspector.attribute_exists(User, "display_name")
        assert introspector.attribute_exists(User, "initials")
        assert not introspector.attribute_exists(User, "posts")
        assert not introspector.attribute_exists(User, "nope")

    def test_relation_targets(self, introspector) -> None:
        assert introspector.relation_target(User, "posts") is Post
        assert introspector.relation_target(Post, "author") is User
        assert introspector.relation_target(Post, "tags") is Tag
        assert introspector.relation_target(User, "name") is None

    def test_structured(self, introspector) -> None:
        assert introspector.is_structured(User, "profile")
        assert not introspector.is_structured(User, "name")

    def test_attribute_names(self, introspector) -> None:
        names = introspector.attribute_names(User)
        assert {"name", "email", "display_name", "initials", "post_count"} <= set(names)
        assert "posts" not in names
        assert names == sorted(names)

    def test_enum_values(self, introspector) -> None:
        assert introspector.enum_values(User, "role") == ["admin", "member", "guest"]
        assert introspector.enum_values(User, "name") == []

    def test_unmapped_resource(self, introspector) -> None:
        class Plain:
            name = "x"

        assert not introspector.attribute_exists(Plain, "name")
        assert introspector.relation_target(Plain, "name") is None
        assert introspector.attribute_names(Plain) == []
