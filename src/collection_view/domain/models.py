"""Value objects describing a collection view's state and results.

These types express view intent in domain terms, independent of any
persistence mechanism.  The query layer translates them into SQLAlchemy
WHERE, ORDER BY, and LIMIT/OFFSET (or keyset) clauses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Union


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"
    ASC_NULLS_FIRST = "asc_nulls_first"
    ASC_NULLS_LAST = "asc_nulls_last"
    DESC_NULLS_FIRST = "desc_nulls_first"
    DESC_NULLS_LAST = "desc_nulls_last"

    @property
    def is_descending(self) -> bool:
        return self.value.startswith("desc")

    @property
    def nulls(self) -> str | None:
        """``"first"``, ``"last"`` or None when null placement is unspecified."""
        if self.value.endswith("_nulls_first"):
            return "first"
        if self.value.endswith("_nulls_last"):
            return "last"
        return None

    def opposite(self) -> SortDirection:
        flipped = {
            SortDirection.ASC: SortDirection.DESC,
            SortDirection.DESC: SortDirection.ASC,
            SortDirection.ASC_NULLS_FIRST: SortDirection.DESC_NULLS_LAST,
            SortDirection.ASC_NULLS_LAST: SortDirection.DESC_NULLS_FIRST,
            SortDirection.DESC_NULLS_FIRST: SortDirection.ASC_NULLS_LAST,
            SortDirection.DESC_NULLS_LAST: SortDirection.ASC_NULLS_FIRST,
        }
        return flipped[self]


class PaginationMode(str, Enum):
    OFFSET = "offset"
    KEYSET = "keyset"


class SortMode(str, Enum):
    ADDITIVE = "additive"
    EXCLUSIVE = "exclusive"


# (field, direction), ordered primary → secondary
SortKey = tuple[str, SortDirection]


# ---------------------------------------------------------------------------
# Filter values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DateRange:
    """Inclusive date/datetime bounds kept as ISO strings; blank means open."""

    from_: str = ""
    to: str = ""


@dataclass(frozen=True)
class NumberRange:
    """Inclusive numeric bounds kept as raw strings; blank means open."""

    min: str = ""
    max: str = ""


@dataclass(frozen=True)
class FilterValue:
    """One active filter: its type tag, structured value and operator.

    ``value`` is a ``str`` for text/select, a ``tuple[str, ...]`` for
    multi-value types, a ``bool`` for boolean, the configured value for
    checkbox, and a :class:`DateRange` / :class:`NumberRange` for ranges.
    """

    type: str
    value: Any
    operator: str
    case_sensitive: bool = False


# field name → active filter; empty values are never stored
FilterMap = dict[str, FilterValue]


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OffsetPagination:
    """Page-number pagination with validation."""

    page: int = 1
    page_size: int = 25

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


@dataclass(frozen=True)
class KeysetPagination:
    """Cursor pagination; at most one of ``after`` / ``before`` is set."""

    page_size: int = 25
    after: str | None = None
    before: str | None = None

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")
        if self.after and self.before:
            raise ValueError("only one of after/before may be set")


PaginationState = Union[OffsetPagination, KeysetPagination]


# ---------------------------------------------------------------------------
# Selection and view state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SelectionState:
    ids: frozenset[str] = frozenset()
    id_field: str = "id"

    @property
    def count(self) -> int:
        return len(self.ids)


@dataclass(frozen=True)
class ViewState:
    """Snapshot of everything that determines which rows are shown."""

    filters: Mapping[str, FilterValue] = field(default_factory=dict)
    sort: tuple[SortKey, ...] = ()
    pagination: PaginationState = field(default_factory=OffsetPagination)
    search_term: str = ""
    selection: SelectionState = field(default_factory=SelectionState)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Page:
    """One page of rows as returned by an executor.

    Offset results carry counts and indices; keyset results carry one
    opaque cursor per row (``cursors[i]`` belongs to ``rows[i]``).
    """

    rows: tuple[Any, ...] = ()
    has_next: bool = False
    has_prev: bool = False
    total_count: int | None = None
    current_page: int = 1
    total_pages: int = 1
    page_size: int = 25
    start_index: int = 0
    end_index: int = 0
    cursors: tuple[str, ...] = ()

    @property
    def first_cursor(self) -> str | None:
        return self.cursors[0] if self.cursors else None

    @property
    def last_cursor(self) -> str | None:
        return self.cursors[-1] if self.cursors else None


def build_page_info(
    rows: tuple[Any, ...], current_page: int, page_size: int, total_count: int
) -> Page:
    """Build an offset-mode Page with 1-based start/end indices."""
    total_pages = max(1, -(-total_count // page_size))
    if total_count == 0 or not rows:
        start_index = end_index = 0
    else:
        start_index = (current_page - 1) * page_size + 1
        end_index = min(current_page * page_size, total_count)
    return Page(
        rows=rows,
        has_next=current_page < total_pages,
        has_prev=current_page > 1,
        total_count=total_count,
        current_page=current_page,
        total_pages=total_pages,
        page_size=page_size,
        start_index=start_index,
        end_index=end_index,
    )


def build_error_page_info(page_size: int = 25) -> Page:
    return Page(total_count=0, page_size=page_size)


@dataclass(frozen=True)
class BulkActionResult:
    """Normalized outcome of one bulk action invocation."""

    success: bool
    value: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, value: Any = None) -> BulkActionResult:
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, reason: str) -> BulkActionResult:
        return cls(success=False, error=reason)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "SortDirection",
    "PaginationMode",
    "SortMode",
    "SortKey",
    "DateRange",
    "NumberRange",
    "FilterValue",
    "FilterMap",
    "OffsetPagination",
    "KeysetPagination",
    "PaginationState",
    "SelectionState",
    "ViewState",
    "Page",
    "build_page_info",
    "build_error_page_info",
    "BulkActionResult",
]
