"""
``SchemaIntrospector`` over SQLAlchemy declarative models.

Attribute classification:

- mapped ``Column`` attributes are plain fields;
- ``column_property`` attributes backed by an expression and
  ``hybrid_property`` attributes are ``EXPRESSION`` calculations (the
  database can evaluate them);
- plain Python ``@property`` attributes are ``HOST_EVALUATED``;
- ``JSON`` (and dialect subclasses such as ``JSONB``) columns are structured
  containers addressable with embedded notation.
"""

from __future__ import annotations

import inspect as py_inspect
import logging
from typing import Any

from sqlalchemy import (
    ARRAY,
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    Integer,
    Numeric,
    String,
    TypeDecorator,
    Uuid,
)
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.hybrid import HybridExtensionType
from sqlalchemy.orm import ColumnProperty, Mapper

from ..schema import CalculationKind, FieldType

logger = logging.getLogger(__name__)

# Order matters: Enum subclasses String and Float subclasses Numeric.
_TYPE_MAP: tuple[tuple[type[Any], FieldType], ...] = (
    (Enum, FieldType.ENUM),
    (Boolean, FieldType.BOOLEAN),
    (Uuid, FieldType.UUID),
    (String, FieldType.STRING),
    (Integer, FieldType.INTEGER),
    (Float, FieldType.FLOAT),
    (Numeric, FieldType.DECIMAL),
    (DateTime, FieldType.DATETIME),
    (Date, FieldType.DATE),
    (ARRAY, FieldType.ARRAY),
    (JSON, FieldType.JSON),
)


def field_type_for(sa_type: Any) -> FieldType:
    """Map a SQLAlchemy type instance onto ``FieldType``."""
    if isinstance(sa_type, TypeDecorator):
        sa_type = sa_type.impl
    for klass, field_type in _TYPE_MAP:
        if isinstance(sa_type, klass):
            return field_type
    return FieldType.UNKNOWN


class SQLAlchemyIntrospector:
    """Answer schema questions through ``sqlalchemy.inspect``."""

    def _mapper(self, resource: Any) -> Mapper[Any] | None:
        mapper = sa_inspect(resource, raiseerr=False)
        return mapper if isinstance(mapper, Mapper) else None

    def _hybrid(self, mapper: Mapper[Any], name: str) -> Any | None:
        descriptor = mapper.all_orm_descriptors.get(name)
        if (
            descriptor is not None
            and getattr(descriptor, "extension_type", None)
            is HybridExtensionType.HYBRID_PROPERTY
        ):
            return descriptor
        return None

    def _plain_property(self, resource: Any, name: str) -> bool:
        try:
            attr = py_inspect.getattr_static(resource, name)
        except AttributeError:
            return False
        return isinstance(attr, property)

    def _column_property(self, mapper: Mapper[Any], name: str) -> ColumnProperty[Any] | None:
        prop = mapper.column_attrs.get(name)
        return prop if isinstance(prop, ColumnProperty) else None

    # -- SchemaIntrospector ---------------------------------------------------

    def attribute_exists(self, resource: Any, name: str) -> bool:
        mapper = self._mapper(resource)
        if mapper is None:
            return False
        return (
            self._column_property(mapper, name) is not None
            or self._hybrid(mapper, name) is not None
            or self._plain_property(resource, name)
        )

    def relation_target(self, resource: Any, name: str) -> Any | None:
        mapper = self._mapper(resource)
        if mapper is None:
            return None
        relationship = mapper.relationships.get(name)
        return None if relationship is None else relationship.mapper.class_

    def calculation_kind(self, resource: Any, name: str) -> CalculationKind:
        mapper = self._mapper(resource)
        if mapper is None:
            return CalculationKind.NONE
        prop = self._column_property(mapper, name)
        if prop is not None:
            if isinstance(prop.columns[0], Column):
                return CalculationKind.NONE
            return CalculationKind.EXPRESSION
        if self._hybrid(mapper, name) is not None:
            return CalculationKind.EXPRESSION
        if self._plain_property(resource, name):
            return CalculationKind.HOST_EVALUATED
        return CalculationKind.NONE

    def attribute_type(self, resource: Any, name: str) -> FieldType:
        mapper = self._mapper(resource)
        if mapper is None:
            return FieldType.UNKNOWN
        prop = self._column_property(mapper, name)
        if prop is not None:
            return field_type_for(prop.columns[0].type)
        if self._hybrid(mapper, name) is not None:
            expression = getattr(resource, name, None)
            if hasattr(expression, "__clause_element__"):
                expression = expression.__clause_element__()
            return field_type_for(getattr(expression, "type", None))
        return FieldType.UNKNOWN

    def is_structured(self, resource: Any, name: str) -> bool:
        return self.attribute_type(resource, name) is FieldType.JSON

    def attribute_names(self, resource: Any) -> list[str]:
        mapper = self._mapper(resource)
        if mapper is None:
            return []
        names = {
            key
            for key in mapper.all_orm_descriptors.keys()  # noqa: SIM118
            if not key.startswith("_") and key not in mapper.relationships
        }
        for klass in py_inspect.getmro(resource):
            names.update(
                key
                for key, value in vars(klass).items()
                if isinstance(value, property) and not key.startswith("_")
            )
        return sorted(names)

    def enum_values(self, resource: Any, name: str) -> list[str]:
        mapper = self._mapper(resource)
        if mapper is None:
            return []
        prop = self._column_property(mapper, name)
        if prop is None:
            return []
        sa_type = prop.columns[0].type
        return list(getattr(sa_type, "enums", []) or [])
