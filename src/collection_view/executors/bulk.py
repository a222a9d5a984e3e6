"""Bulk mutations over a selection of rows.

Two action shapes are supported:

* a **named action** declared in the executor's action metadata, run as
  a single ``UPDATE`` or ``DELETE`` restricted to the selected ids;
* a **callable** ``fn(scoped_query, options)``, sync or async, for
  anything else.  Caller-supplied action options are nested under
  ``options["bulk_options"]`` so they never collide with actor/tenant.

Every outcome is normalized into a :class:`BulkActionResult`.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from sqlalchemy import Select, delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.models import BulkActionResult
from ..domain.ports import BulkActionExecutor
from ..errors import BulkActionError
from ..query.columns import primary_entity

logger = logging.getLogger(__name__)

MUTATION_KINDS = frozenset({"update", "delete"})


@dataclass(frozen=True)
class BulkAction:
    """Metadata for one named action.

    ``values`` is either a mapping of column → new value or a callable
    receiving the merged options and returning such a mapping.
    """

    name: str
    kind: str
    values: Mapping[str, Any] | Callable[[Mapping[str, Any]], Mapping[str, Any]] = field(
        default_factory=dict
    )


def normalize_result(result: Any) -> BulkActionResult:
    """Coerce an action's return value into a :class:`BulkActionResult`."""
    if isinstance(result, BulkActionResult):
        return result
    if isinstance(result, tuple) and len(result) == 2 and result[0] in ("ok", "error"):
        if result[0] == "ok":
            return BulkActionResult.ok(result[1])
        return BulkActionResult.failed(str(result[1]))
    return BulkActionResult.ok(result)


def scope_to_ids(stmt: Select, id_column: Any, ids: Any) -> Select:
    return stmt.where(id_column.in_(list(ids)))


class SqlAlchemyBulkActionExecutor(BulkActionExecutor):
    """Run bulk actions with sessions from *session_factory*."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        actions: Mapping[str, BulkAction] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._actions = dict(actions or {})

    def register(self, action: BulkAction) -> None:
        self._actions[action.name] = action

    async def execute(
        self, action: Any, scoped_query: Select, options: Mapping[str, Any]
    ) -> BulkActionResult:
        if isinstance(action, str):
            return await asyncio.to_thread(self._run_named, action, scoped_query, options)
        if callable(action):
            return await self._run_callable(action, scoped_query, options)
        return BulkActionResult.failed(
            f"Invalid action {action!r}: must be an action name or a callable"
        )

    # -- Named actions -----------------------------------------------------

    def _run_named(
        self, name: str, scoped_query: Select, options: Mapping[str, Any]
    ) -> BulkActionResult:
        try:
            stmt = self._mutation(name, scoped_query, options)
        except BulkActionError as exc:
            return BulkActionResult.failed(str(exc))

        try:
            with self._session_factory() as session:
                result = session.execute(stmt, execution_options={"synchronize_session": False})
                session.commit()
        except SQLAlchemyError as exc:
            logger.error("Bulk action %s failed: %s", name, exc)
            return BulkActionResult.failed(str(exc))
        return BulkActionResult.ok(result.rowcount)

    def _mutation(self, name: str, scoped_query: Select, options: Mapping[str, Any]) -> Any:
        action = self._actions.get(name)
        entity = primary_entity(scoped_query)
        if action is None:
            raise BulkActionError(f"Action {name!r} not found on {entity.__name__}")
        if action.kind not in MUTATION_KINDS:
            raise BulkActionError(
                f"Action {name!r} is a {action.kind} action, expected update or delete"
            )

        criteria = scoped_query.whereclause
        if action.kind == "delete":
            stmt = delete(entity)
        else:
            values = action.values(options) if callable(action.values) else action.values
            if not values:
                raise BulkActionError(f"Action {name!r} has no values to update")
            stmt = update(entity).values(**dict(values))
        return stmt.where(criteria) if criteria is not None else stmt

    # -- Callables ---------------------------------------------------------

    async def _run_callable(
        self, fn: Callable[..., Any], scoped_query: Select, options: Mapping[str, Any]
    ) -> BulkActionResult:
        try:
            if inspect.iscoroutinefunction(fn):
                result = await fn(scoped_query, dict(options))
            else:
                result = await asyncio.to_thread(fn, scoped_query, dict(options))
                if inspect.isawaitable(result):
                    result = await result
        except Exception as exc:
            logger.error("Bulk action callback %r raised: %s", fn, exc)
            return BulkActionResult.failed(str(exc) or type(exc).__name__)
        return normalize_result(result)


__all__ = [
    "BulkAction",
    "MUTATION_KINDS",
    "SqlAlchemyBulkActionExecutor",
    "normalize_result",
    "scope_to_ids",
]
