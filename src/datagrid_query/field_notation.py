"""
Field notation parser.

Classifies raw field strings into one of the ``FieldReference`` variants::

    name                          -> Direct("name")
    author.profile.city           -> Relationship(("author", "profile"), "city")
    settings[:theme]              -> Embedded("settings", "theme")
    settings[:ui][:theme]         -> NestedEmbedded("settings", ("ui", "theme"))
    author.settings[:theme]       -> RelationshipEmbedded(("author",), "settings", "theme")
    author.settings[:ui][:theme]  -> RelationshipNestedEmbedded(...)

Anything else (unbalanced brackets, missing colons, empty names, inner
whitespace, and embedded references whose names contain ``__`` or end in
``_``) is ``Invalid`` and keeps the raw string for diagnostics.
Parsing is total: it never raises.

Bracket segments are not URL friendly, so ``to_url_safe`` rewrites them as
double-underscore suffixes (``settings__ui__theme``) and ``from_url_safe``
reverses it. Dots are left alone.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import NamedTuple, TypeAlias

from .exceptions import InvalidFieldSyntaxError

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_LEAF_RE = re.compile(r"^[a-z][a-z0-9_]*$")
_BRACKET_TAIL_RE = re.compile(r"^(?:\[:[^\[\]]*\])+$")
_BRACKET_SEGMENT_RE = re.compile(r"\[:([^\[\]]*)\]")


@dataclass(frozen=True)
class Direct:
    name: str


@dataclass(frozen=True)
class Relationship:
    path: tuple[str, ...]
    leaf: str


@dataclass(frozen=True)
class Embedded:
    container: str
    leaf: str


@dataclass(frozen=True)
class NestedEmbedded:
    container: str
    path: tuple[str, ...]


@dataclass(frozen=True)
class RelationshipEmbedded:
    relation_path: tuple[str, ...]
    container: str
    leaf: str


@dataclass(frozen=True)
class RelationshipNestedEmbedded:
    relation_path: tuple[str, ...]
    container: str
    path: tuple[str, ...]


@dataclass(frozen=True)
class Invalid:
    raw: str


FieldReference: TypeAlias = (
    Direct
    | Relationship
    | Embedded
    | NestedEmbedded
    | RelationshipEmbedded
    | RelationshipNestedEmbedded
    | Invalid
)


class FieldPath(NamedTuple):
    """Flattened view of a valid reference: relations, attribute, JSON path."""

    relations: tuple[str, ...]
    attribute: str
    json_path: tuple[str, ...]


# -- parsing -----------------------------------------------------------------


def parse_field(raw: str) -> FieldReference:
    """Classify *raw* into exactly one ``FieldReference`` variant."""
    if not isinstance(raw, str):
        return Invalid(repr(raw))

    text = raw.strip()
    if not text or any(ch.isspace() for ch in text):
        return Invalid(raw)

    if "[" in text or "]" in text:
        return _parse_embedded(raw, text)

    parts = text.split(".")
    if not all(_NAME_RE.match(p) for p in parts):
        return Invalid(raw)
    if len(parts) == 1:
        return Direct(parts[0])
    return Relationship(tuple(parts[:-1]), parts[-1])


def _parse_embedded(raw: str, text: str) -> FieldReference:
    bracket_at = text.find("[")
    if bracket_at <= 0:
        return Invalid(raw)

    head, tail = text[:bracket_at], text[bracket_at:]
    if not _BRACKET_TAIL_RE.match(tail):
        return Invalid(raw)

    leaves = _BRACKET_SEGMENT_RE.findall(tail)
    if not leaves or not all(_LEAF_RE.match(leaf) and _joinable(leaf) for leaf in leaves):
        return Invalid(raw)

    head_parts = head.split(".")
    if not all(_NAME_RE.match(p) and _joinable(p) for p in head_parts):
        return Invalid(raw)

    container = head_parts[-1]
    relations = tuple(head_parts[:-1])
    if relations:
        if len(leaves) == 1:
            return RelationshipEmbedded(relations, container, leaves[0])
        return RelationshipNestedEmbedded(relations, container, tuple(leaves))
    if len(leaves) == 1:
        return Embedded(container, leaves[0])
    return NestedEmbedded(container, tuple(leaves))


def _joinable(segment: str) -> bool:
    # Segments are joined with "__" in the URL-safe form.
    return "__" not in segment and not segment.endswith("_")


def is_valid(ref: FieldReference) -> bool:
    return not isinstance(ref, Invalid)


def field_path(ref: FieldReference) -> FieldPath:
    """
    Split a reference into relation chain, base attribute and JSON path.

    Raises:
        InvalidFieldSyntaxError: If *ref* is ``Invalid``.
    """
    match ref:
        case Direct(name):
            return FieldPath((), name, ())
        case Relationship(path, leaf):
            return FieldPath(path, leaf, ())
        case Embedded(container, leaf):
            return FieldPath((), container, (leaf,))
        case NestedEmbedded(container, path):
            return FieldPath((), container, path)
        case RelationshipEmbedded(relations, container, leaf):
            return FieldPath(relations, container, (leaf,))
        case RelationshipNestedEmbedded(relations, container, path):
            return FieldPath(relations, container, path)
        case Invalid(raw):
            raise InvalidFieldSyntaxError(raw)


# -- rendering ---------------------------------------------------------------


def to_notation(ref: FieldReference) -> str:
    """Render *ref* back to canonical bracket/dot notation."""
    if isinstance(ref, Invalid):
        return ref.raw
    relations, attribute, json_path = field_path(ref)
    head = ".".join((*relations, attribute))
    return head + "".join(f"[:{leaf}]" for leaf in json_path)


def to_url_safe(ref: FieldReference) -> str:
    """Bracket segments become ``__`` suffixes; dots stay as they are."""
    if isinstance(ref, Invalid):
        return ref.raw
    relations, attribute, json_path = field_path(ref)
    head = ".".join((*relations, attribute))
    return "__".join((head, *json_path))


def from_url_safe(value: str) -> FieldReference:
    """Exact inverse of ``to_url_safe``."""
    return parse_field(field_from_url_safe_key(value))


def url_safe_key(field: str) -> str:
    """URL-safe form of a raw field string; invalid strings pass through."""
    ref = parse_field(field)
    if isinstance(ref, Invalid):
        return field
    return to_url_safe(ref)


def field_from_url_safe_key(value: str) -> str:
    """Rebuild bracket notation from a URL-safe key (``a__b`` -> ``a[:b]``)."""
    segments = []
    for part in value.split("."):
        if "__" in part:
            base, *leaves = part.split("__")
            part = base + "".join(f"[:{leaf}]" for leaf in leaves)
        segments.append(part)
    return ".".join(segments)


def humanize(ref: FieldReference) -> str:
    """``author.settings[:ui_theme]`` -> ``Author > Settings > Ui Theme``."""
    if isinstance(ref, Invalid):
        return ref.raw
    relations, attribute, json_path = field_path(ref)
    return " > ".join(_titleize(s) for s in (*relations, attribute, *json_path))


def _titleize(segment: str) -> str:
    return " ".join(word.capitalize() for word in segment.split("_") if word)
