"""Commands a host can send into a running controller, and the
notifications the controller emits back.

Commands are processed by :meth:`CollectionController.send` on the same
event loop as user events; nothing outside the controller mutates its
state directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Union

from .models import BulkActionResult


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Refresh:
    """Re-run the current query without changing view state."""


@dataclass(frozen=True)
class UpdateItem:
    """Patch the displayed row whose id equals ``id`` with ``fn(row)``."""

    id: Any
    fn: Callable[[Any], Any]


@dataclass(frozen=True)
class UpdateItems:
    """Patch every displayed row whose id is in ``ids`` with ``fn(row)``."""

    ids: tuple[Any, ...]
    fn: Callable[[Any], Any]


@dataclass(frozen=True)
class UpdateItemIfVisible:
    """Patch one row only if it is displayed.

    ``item`` is either a row id or a fresh row carrying the id field; a
    fresh row is passed to ``fn`` instead of the displayed one.
    """

    item: Any
    fn: Callable[[Any], Any]


@dataclass(frozen=True)
class UpdateItemsIfVisible:
    """Batch-patch the displayed subset of ``items`` (ids or fresh rows).

    ``fn`` receives the list of matching rows and returns replacements,
    either as a list or as a mapping keyed by id.
    """

    items: tuple[Any, ...]
    fn: Callable[[list[Any]], Any]


@dataclass(frozen=True)
class ChangeFilters:
    """Apply a raw filter form payload, as if the user had submitted it."""

    params: Mapping[str, Any] = field(default_factory=dict)


Message = Union[
    Refresh, UpdateItem, UpdateItems, UpdateItemIfVisible, UpdateItemsIfVisible, ChangeFilters
]


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SelectionChange:
    selected_ids: frozenset[str]
    action: str  # toggle, select_all, clear

    @property
    def count(self) -> int:
        return len(self.selected_ids)


@dataclass(frozen=True)
class BulkActionOutcome:
    action: Any
    count: int
    result: BulkActionResult
