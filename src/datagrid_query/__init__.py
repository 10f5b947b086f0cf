"""Data-grid query and state resolution engine."""

from __future__ import annotations

from .capabilities import CapabilityResolver, CapabilityVerdict, InvalidField
from .columns import AUTO, ColumnSpec, find_column
from .config import DEFAULT_CONFIG, GridConfig
from .exceptions import (
    DataGridError,
    ExecutionError,
    FieldNotFoundError,
    FilterKindNotFoundError,
    FilterKindRegistrationError,
    InMemoryCalculationError,
    InvalidFieldSyntaxError,
    MissingFilterKindError,
    QueryValidationError,
    UrlParameterError,
    ValidationError,
)
from .field_notation import (
    Direct,
    Embedded,
    FieldReference,
    Invalid,
    NestedEmbedded,
    Relationship,
    RelationshipEmbedded,
    RelationshipNestedEmbedded,
    from_url_safe,
    humanize,
    parse_field,
    to_url_safe,
)
from .filters import (
    DEFAULT_FILTER_REGISTRY,
    FilterKind,
    FilterKindRegistry,
    FilterValue,
    build_default_filter_registry,
    infer_filter_kind,
)
from .orchestrator import (
    GridQuery,
    GridResult,
    PaginationMode,
    QueryOrchestrator,
    build_and_execute,
)
from .pagination import (
    ERROR_PAGE_WINDOW,
    KeysetWindow,
    PageWindow,
    compute_keyset_window,
    compute_window,
    page_range,
)
from .persistence import FilterTranslator, SessionExecutor, SQLAlchemyIntrospector, apply_sorting
from .schema import CalculationKind, FieldType, SchemaIntrospector
from .sorting import (
    SortDirection,
    SortEntry,
    SortState,
    toggle_sort,
    toggle_sort_from_query,
)
from .state import GridState
from .url_codec import UrlState, UrlStateCodec, validate_url_params

__all__ = [
    # Field notation
    "FieldReference",
    "Direct",
    "Relationship",
    "Embedded",
    "NestedEmbedded",
    "RelationshipEmbedded",
    "RelationshipNestedEmbedded",
    "Invalid",
    "parse_field",
    "to_url_safe",
    "from_url_safe",
    "humanize",
    # Schema / capabilities
    "SchemaIntrospector",
    "CalculationKind",
    "FieldType",
    "CapabilityResolver",
    "CapabilityVerdict",
    "InvalidField",
    "ColumnSpec",
    "AUTO",
    "find_column",
    # Filters
    "FilterKind",
    "FilterKindRegistry",
    "FilterValue",
    "DEFAULT_FILTER_REGISTRY",
    "build_default_filter_registry",
    "infer_filter_kind",
    # Sorting / state
    "SortDirection",
    "SortEntry",
    "SortState",
    "toggle_sort",
    "toggle_sort_from_query",
    "GridState",
    # Pagination
    "PageWindow",
    "KeysetWindow",
    "ERROR_PAGE_WINDOW",
    "compute_window",
    "compute_keyset_window",
    "page_range",
    # URL state
    "UrlState",
    "UrlStateCodec",
    "validate_url_params",
    # Execution
    "GridQuery",
    "GridResult",
    "PaginationMode",
    "QueryOrchestrator",
    "build_and_execute",
    "FilterTranslator",
    "SQLAlchemyIntrospector",
    "SessionExecutor",
    "apply_sorting",
    # Configuration
    "GridConfig",
    "DEFAULT_CONFIG",
    # Exceptions
    "DataGridError",
    "ValidationError",
    "InvalidFieldSyntaxError",
    "FieldNotFoundError",
    "InMemoryCalculationError",
    "MissingFilterKindError",
    "UrlParameterError",
    "QueryValidationError",
    "FilterKindNotFoundError",
    "FilterKindRegistrationError",
    "ExecutionError",
]
