"""
Pagination engine: offset windows, keyset windows and cursor tokens.

Offset mode::

    compute_window(result_count=10, current_page=4, page_size=25, total_count=85)
    # PageWindow(current_page=4, total_pages=4, has_next=False,
    #            has_previous=True, start_index=76, end_index=85, ...)

Keyset mode over-fetches by one row: a result longer than the page size
means there is a next page. Cursor tokens are URL-safe base64 JSON.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
from dataclasses import dataclass
from typing import Any

from .config import DEFAULT_CONFIG


@dataclass(frozen=True)
class PageWindow:
    """Offset-mode navigation metadata."""

    current_page: int
    page_size: int
    total_count: int
    total_pages: int
    has_next: bool
    has_previous: bool
    start_index: int
    end_index: int


@dataclass(frozen=True)
class KeysetWindow:
    """Keyset-mode navigation metadata; no total count."""

    page_size: int
    forward_cursor: str | None
    backward_cursor: str | None
    has_next: bool
    has_previous: bool


def compute_window(
    result_count: int,
    current_page: int,
    page_size: int,
    total_count: int,
) -> PageWindow:
    """
    Build the offset ``PageWindow`` for a fetched page.

    Out-of-range pages are not clamped; the window describes the page that
    was literally requested.

    Raises:
        ValueError: On a non-positive page or page size, or negative counts.
    """
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")
    if current_page < 1:
        raise ValueError(f"current_page must be >= 1, got {current_page}")
    if result_count < 0 or total_count < 0:
        raise ValueError("counts must not be negative")

    total_pages = max(1, math.ceil(total_count / page_size))
    if result_count == 0:
        start_index = end_index = 0
    else:
        start_index = (current_page - 1) * page_size + 1
        end_index = min(start_index + result_count - 1, total_count)
    return PageWindow(
        current_page=current_page,
        page_size=page_size,
        total_count=total_count,
        total_pages=total_pages,
        has_next=current_page < total_pages,
        has_previous=current_page > 1,
        start_index=start_index,
        end_index=end_index,
    )


def compute_keyset_window(
    result_count: int,
    page_size: int,
    forward_cursor: str | None = None,
    backward_cursor: str | None = None,
) -> KeysetWindow:
    """
    Build the ``KeysetWindow`` for an over-fetched page.

    ``result_count`` counts the sentinel row, so ``page_size + 1`` rows mean
    a next page exists. A backward cursor means a previous page exists.
    """
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")
    has_next = result_count > page_size
    return KeysetWindow(
        page_size=page_size,
        forward_cursor=forward_cursor if has_next else None,
        backward_cursor=backward_cursor,
        has_next=has_next,
        has_previous=backward_cursor is not None,
    )


def page_range(current_page: int, total_pages: int, radius: int | None = None) -> list[int]:
    """Page numbers within *radius* of *current_page*, clipped to ``[1, total_pages]``."""
    if radius is None:
        radius = DEFAULT_CONFIG.page_range_radius
    first = max(1, current_page - radius)
    last = min(max(1, total_pages), current_page + radius)
    return list(range(first, last + 1))


def build_error_window(page_size: int | None = None) -> PageWindow:
    """Window returned whenever query execution fails."""
    return PageWindow(
        current_page=1,
        page_size=page_size or DEFAULT_CONFIG.default_page_size,
        total_count=0,
        total_pages=1,
        has_next=False,
        has_previous=False,
        start_index=0,
        end_index=0,
    )


ERROR_PAGE_WINDOW: PageWindow = build_error_window()


# -- cursors -----------------------------------------------------------------


def encode_cursor(data: dict[str, Any]) -> str:
    """Encode a cursor dict to a URL-safe base64 string."""
    encoded = base64.urlsafe_b64encode(
        json.dumps(data, sort_keys=True, default=str).encode("utf-8")
    )
    return encoded.decode("ascii").rstrip("=")


def decode_cursor(token: str | None) -> dict[str, Any] | None:
    """Decode a cursor token; anything malformed yields ``None``."""
    if not token or not isinstance(token, str):
        return None
    padded = token + "=" * (-len(token) % 4)
    try:
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None
