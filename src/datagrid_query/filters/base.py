"""
Filter-kind strategy interface and registry.

Each filter kind is an isolated class bundling everything the engine needs
to know about one kind of filter control: how raw input becomes a
``FilterValue`` (``process``), whether a value is well formed
(``validate``), whether it carries anything (``is_empty``), how it travels
through a URL (``encode`` / ``decode_url_value``) and how it becomes a
SQLAlchemy predicate (``build_clause``).

Kinds are registered in a ``FilterKindRegistry`` keyed by ``name``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..exceptions import FilterKindNotFoundError, FilterKindRegistrationError

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement

    from ..columns import ColumnSpec
    from ..schema import FieldType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterValue:
    """
    A processed, typed filter for one field.

    Only built through a kind's ``process``; the shape of ``value`` is
    kind-specific (``str``, ``bool``, ``tuple[str, ...]``, ``DateRange``,
    ``NumberRange``).
    """

    kind: str
    value: Any
    operator: str
    case_sensitive: bool | None = None


class FilterKind(ABC):
    """Strategy interface for a pluggable filter kind."""

    #: URL values for this kind are comma-separated lists.
    multi_value: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Kind identifier, e.g. ``"text"``."""
        ...

    @property
    def default_options(self) -> dict[str, Any]:
        return {}

    @abstractmethod
    def process(self, raw: Any, column: ColumnSpec) -> FilterValue | None:
        """
        Turn raw input into a ``FilterValue``.

        Returns ``None`` when the input carries no filter (empty, ``"all"``,
        unparseable).
        """
        ...

    @abstractmethod
    def validate(self, value: FilterValue) -> bool: ...

    def is_empty(self, value: Any) -> bool:
        if value is None or value == "":
            return True
        if isinstance(value, FilterValue):
            return self.is_empty(value.value)
        return False

    def encode(self, value: FilterValue) -> str:
        """Render a value for a URL parameter."""
        return str(value.value)

    def decode_url_value(self, raw: Any) -> Any:
        """Pre-process a URL value before ``process``."""
        if self.multi_value and isinstance(raw, str):
            return raw.split(",")
        return raw

    @abstractmethod
    def build_clause(
        self,
        target: Any,
        value: FilterValue,
        field_type: FieldType,
    ) -> ColumnElement[bool]:
        """
        Build a SQLAlchemy filter clause.

        Args:
            target: Column, instrumented attribute or JSON path element.
            value: A value produced by ``process``.
            field_type: Declared type of the target attribute.
        """
        ...


class FilterKindRegistry:
    """
    Registry of ``FilterKind`` instances keyed by name.

    Kinds registered with ``builtin=True`` can neither be replaced nor
    removed.
    """

    def __init__(self) -> None:
        self._kinds: dict[str, FilterKind] = {}
        self._builtin: set[str] = set()

    def register(self, kind: FilterKind, *, builtin: bool = False) -> None:
        if kind.name in self._builtin:
            raise FilterKindRegistrationError(
                kind.name, "built-in filter kinds cannot be overridden"
            )
        self._kinds[kind.name] = kind
        if builtin:
            self._builtin.add(kind.name)
        logger.debug("Registered filter kind %s (builtin=%s)", kind.name, builtin)

    def register_all(self, *kinds: FilterKind, builtin: bool = False) -> None:
        for kind in kinds:
            self.register(kind, builtin=builtin)

    def unregister(self, name: str) -> None:
        if name in self._builtin:
            raise FilterKindRegistrationError(
                name, "built-in filter kinds cannot be removed"
            )
        self._kinds.pop(name, None)

    def get(self, name: str) -> FilterKind | None:
        return self._kinds.get(name)

    def has(self, name: str) -> bool:
        return name in self._kinds

    def lookup(self, name: str) -> FilterKind:
        """
        Look up a kind by name.

        Raises:
            FilterKindNotFoundError: If the kind is not registered.
        """
        kind = self.get(name)
        if kind is None:
            raise FilterKindNotFoundError(name, list(self._kinds))
        return kind

    def is_custom(self, name: str) -> bool:
        return name in self._kinds and name not in self._builtin

    @property
    def all_kinds(self) -> set[str]:
        return set(self._kinds.keys())
