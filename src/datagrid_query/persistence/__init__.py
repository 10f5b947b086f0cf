"""
SQLAlchemy backend for the query engine.

Public API:
    - ``SQLAlchemyIntrospector`` - ``SchemaIntrospector`` over declarative
      models
    - ``FilterTranslator`` - filter and search predicates
    - ``apply_sorting`` / ``resolve_ordering`` - ordering with relationship
      joins and null placement
    - ``SessionExecutor`` / ``QueryExecutor`` - execution collaborator
    - ``keyset_predicate`` / ``with_tiebreaker`` - cursor pagination helpers
"""

from .executor import QueryExecutor, SessionExecutor
from .introspection import SQLAlchemyIntrospector, field_type_for
from .keyset import cursor_for, cursor_values, keyset_predicate, with_tiebreaker
from .ordering import OrderKey, apply_sorting, order_clause, resolve_ordering
from .translator import FilterTranslator

__all__ = [
    "SQLAlchemyIntrospector",
    "field_type_for",
    "FilterTranslator",
    "apply_sorting",
    "resolve_ordering",
    "order_clause",
    "OrderKey",
    "QueryExecutor",
    "SessionExecutor",
    "keyset_predicate",
    "with_tiebreaker",
    "cursor_for",
    "cursor_values",
]
