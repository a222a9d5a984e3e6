"""Ports (abstract interfaces) for collection views.

These define WHAT the controller needs from the outside world without
specifying HOW it's provided.  Concrete implementations live in
``collection_view.executors`` and ``collection_view.query``.
"""

from __future__ import annotations

import abc
from typing import Any, Mapping, Protocol

from .messages import BulkActionOutcome, SelectionChange
from .models import BulkActionResult, Page


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


class QueryExecutor(abc.ABC):
    """Run an assembled query and return one page of rows."""

    @abc.abstractmethod
    async def execute(self, query: Any) -> Page:
        """Execute *query*; may raise, which callers treat as a failed load."""
        ...


class BulkActionExecutor(abc.ABC):
    """Apply a mutation to every row matched by a scoped query.

    Implementations own at-most-once semantics per invocation.
    """

    @abc.abstractmethod
    async def execute(
        self, action: Any, scoped_query: Any, options: Mapping[str, Any]
    ) -> BulkActionResult:
        """Run *action* against *scoped_query*.

        Args:
            action: Action name declared in the executor's action metadata,
                or a callable ``fn(scoped_query, options)``.
            scoped_query: Query restricted to exactly the selected ids.
            options: ``{"actor", "tenant"}`` plus ``"bulk_options"`` when the
                caller supplied action-specific options.
        """
        ...


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class TypeInferrer(Protocol):
    """Structural interface for picking a field's default filter type."""

    def infer(self, field: str, entity: Any) -> dict[str, Any]:
        """Return ``{"filter_type": str, "filter_options": dict}``."""
        ...


class CollectionObserver(abc.ABC):
    """Receives controller notifications meant for the host."""

    @abc.abstractmethod
    def state_changed(self, url_params: Mapping[str, str]) -> None:
        """View state changed; *url_params* is its URL representation."""
        ...

    @abc.abstractmethod
    def selection_changed(self, change: SelectionChange) -> None:
        ...

    @abc.abstractmethod
    def bulk_action_succeeded(self, outcome: BulkActionOutcome) -> None:
        ...

    @abc.abstractmethod
    def bulk_action_failed(self, outcome: BulkActionOutcome) -> None:
        ...

    @abc.abstractmethod
    def data_loaded(self, page: Page) -> None:
        ...

    @abc.abstractmethod
    def load_failed(self, error: BaseException | str) -> None:
        ...


# ---------------------------------------------------------------------------
# Null implementations (no-op defaults)
# ---------------------------------------------------------------------------


class NullObserver(CollectionObserver):
    """Observer that ignores every notification."""

    def state_changed(self, url_params: Mapping[str, str]) -> None:
        pass

    def selection_changed(self, change: SelectionChange) -> None:
        pass

    def bulk_action_succeeded(self, outcome: BulkActionOutcome) -> None:
        pass

    def bulk_action_failed(self, outcome: BulkActionOutcome) -> None:
        pass

    def data_loaded(self, page: Page) -> None:
        pass

    def load_failed(self, error: BaseException | str) -> None:
        pass
