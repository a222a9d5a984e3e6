"""SQLAlchemy query assembler for collection views.

Translates a FilterMap, sort keys, a search term and a pagination state
into a not-yet-executed :class:`AssembledQuery`:

1. filters are folded onto the base ``select()`` via the filter registry
   (or a field's ``filter_fn``);
2. the search term is OR-ed across searchable fields;
3. sort keys replace the base ordering (an empty sort keeps it);
4. offset pagination adds LIMIT/OFFSET plus a count statement, keyset
   pagination adds a cursor predicate, a primary-key tie-breaker and
   labelled key columns used to build per-row cursors.

Configuration mistakes (unknown filter type, unknown sort field, bad
filter value) are logged and skipped so the rest of the query still runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from sqlalchemy import Select, func, inspect, or_, select

from ..domain.fields import FieldConfig
from ..domain.models import (
    FilterValue,
    KeysetPagination,
    PaginationState,
    SortDirection,
    SortKey,
)
from ..errors import FilterError, UnknownFieldError
from ..filters.registry import FilterRegistry, default_registry
from .columns import (
    order_by_clauses,
    ordering_clause,
    path_criterion,
    primary_entity,
    primary_key_columns,
    sort_target,
    unwrap_ordering,
)
from .keyset import (
    InvalidCursorError,
    KeysetKey,
    KeysetPlan,
    column_python_type,
    decode_cursor,
    keyset_predicate,
)

logger = logging.getLogger(__name__)

SearchFn = Callable[[Select, str], Select]


@dataclass(frozen=True)
class AssembledQuery:
    """A fully built query, ready for an executor."""

    statement: Select
    pagination: PaginationState
    count_statement: Select | None = None
    keyset: KeysetPlan | None = None

    @property
    def is_keyset(self) -> bool:
        return self.keyset is not None


class QueryAssembler:
    """Builds :class:`AssembledQuery` objects for one set of field declarations."""

    def __init__(
        self,
        fields: Sequence[FieldConfig] = (),
        registry: FilterRegistry | None = None,
        search_fn: SearchFn | None = None,
    ) -> None:
        self.fields: dict[str, FieldConfig] = {fc.field: fc for fc in fields}
        self.registry = registry or default_registry()
        self.search_fn = search_fn

    # ── Public API ──────────────────────────────────────────────────────

    def assemble(
        self,
        stmt: Select,
        filters: Mapping[str, FilterValue],
        sort: Sequence[SortKey],
        pagination: PaginationState,
        search_term: str = "",
    ) -> AssembledQuery:
        stmt = self.apply_filters(stmt, filters)
        stmt = self.apply_search(stmt, search_term)
        filtered = stmt
        stmt = self.apply_sort(stmt, sort)

        if isinstance(pagination, KeysetPagination):
            return self._keyset(stmt, pagination)

        count_stmt = select(func.count()).select_from(filtered.order_by(None).subquery())
        return AssembledQuery(
            statement=stmt.offset(pagination.offset).limit(pagination.limit),
            pagination=pagination,
            count_statement=count_stmt,
        )

    def apply_filters(self, stmt: Select, filters: Mapping[str, FilterValue]) -> Select:
        """Fold every filter onto *stmt*; an empty map returns *stmt* as-is."""
        if not filters:
            return stmt
        for field, value in filters.items():
            stmt = self._apply_filter(stmt, field, value)
        return stmt

    def apply_search(self, stmt: Select, term: str) -> Select:
        term = (term or "").strip()
        if not term:
            return stmt
        if self.search_fn is not None:
            return self.search_fn(stmt, term)

        entity = primary_entity(stmt)
        criteria = []
        for fc in self.fields.values():
            if not fc.searchable:
                continue
            try:
                criteria.append(
                    path_criterion(
                        entity, fc.field, lambda col: col.icontains(term, autoescape=True)
                    )
                )
            except UnknownFieldError as exc:
                logger.warning("Skipping searchable field %s: %s", fc.field, exc)
        if not criteria:
            logger.debug("Search term %r ignored: no searchable fields", term)
            return stmt
        return stmt.where(or_(*criteria))

    def apply_sort(self, stmt: Select, sort: Sequence[SortKey]) -> Select:
        """Replace the base ordering with *sort*; an empty sort keeps it.

        Malformed entries are logged and skipped; if none remain the base
        ordering is kept.
        """
        keys = [key for key in (_sort_key(entry) for entry in sort or ()) if key]
        if not keys:
            return stmt
        stmt = stmt.order_by(None)
        for field, direction in keys:
            stmt = self._apply_sort_key(stmt, field, direction)
        return stmt

    # ── Filters ─────────────────────────────────────────────────────────

    def _apply_filter(self, stmt: Select, field: str, value: FilterValue) -> Select:
        fc = self.fields.get(field)
        if fc is not None and fc.filter_fn is not None:
            return fc.filter_fn(stmt, value)

        tag = fc.resolved_filter_type if fc is not None else value.type
        handler = self.registry.resolve(tag)
        if handler is None:
            return stmt
        try:
            return handler.build_predicate(stmt, field, value)
        except (FilterError, UnknownFieldError) as exc:
            logger.warning("Skipping filter on %s: %s", field, exc)
            return stmt

    # ── Sorting ─────────────────────────────────────────────────────────

    def _apply_sort_key(self, stmt: Select, field: str, direction: SortDirection) -> Select:
        fc = self.fields.get(field)
        if fc is not None and fc.sort_fn is not None:
            return fc.sort_fn(stmt, direction)
        if fc is not None and not fc.sortable:
            logger.warning("Ignoring sort on non-sortable field %s", field)
            return stmt
        try:
            stmt, expr = sort_target(stmt, field, direction)
        except UnknownFieldError as exc:
            logger.warning("Ignoring sort on unknown field %s: %s", field, exc)
            return stmt
        return stmt.order_by(ordering_clause(expr, direction))

    # ── Keyset pagination ───────────────────────────────────────────────

    def _keyset(self, stmt: Select, pagination: KeysetPagination) -> AssembledQuery:
        keys = self._keyset_keys(stmt)
        cursor = pagination.before or pagination.after
        before = bool(pagination.before)

        has_cursor = False
        if cursor:
            try:
                values = decode_cursor(cursor, keys)
            except InvalidCursorError as exc:
                logger.warning("Ignoring invalid cursor: %s", exc)
                before = False
            else:
                stmt = stmt.where(keyset_predicate(keys, values, before=before))
                has_cursor = True

        ordering = [
            ordering_clause(k.expression, k.ordering.opposite() if before else k.ordering)
            for k in keys
        ]
        plan = KeysetPlan(
            keys=tuple(keys),
            page_size=pagination.page_size,
            reversed=before,
            has_cursor=has_cursor,
        )
        stmt = (
            stmt.order_by(None)
            .order_by(*ordering)
            .add_columns(*(k.expression.label(lbl) for k, lbl in zip(keys, plan.labels)))
            .limit(pagination.page_size + 1)
        )
        return AssembledQuery(statement=stmt, pagination=pagination, keyset=plan)

    def _keyset_keys(self, stmt: Select) -> list[KeysetKey]:
        """Current ordering plus primary-key tie-breakers."""
        entity = primary_entity(stmt)
        local_table = inspect(entity).local_table
        keys: list[KeysetKey] = []
        for clause in order_by_clauses(stmt):
            direction, element = unwrap_ordering(clause)
            keys.append(
                KeysetKey(
                    element,
                    direction,
                    column_python_type(element),
                    nullable=_may_be_null(element, local_table),
                )
            )

        for attr in primary_key_columns(entity):
            pk = attr.expression
            if not any(_same_column(k.expression, pk) for k in keys):
                keys.append(KeysetKey(pk, SortDirection.ASC, column_python_type(pk)))
        return keys


def _sort_key(entry: Any) -> SortKey | None:
    try:
        field, direction = entry
        direction = SortDirection(direction)
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid sort specification %r", entry)
        return None
    if not isinstance(field, str) or not field:
        logger.warning("Ignoring invalid sort specification %r", entry)
        return None
    return field, direction


def _may_be_null(element: Any, local_table: Any) -> bool:
    """Columns of the primary table are trusted; joined columns and expressions are not."""
    if getattr(element, "table", None) is not local_table:
        return True
    return bool(getattr(element, "nullable", True))


def _same_column(left: Any, right: Any) -> bool:
    table = getattr(left, "table", None)
    return (
        table is not None
        and table is getattr(right, "table", None)
        and getattr(left, "key", None) == getattr(right, "key", None)
    )


__all__ = ["AssembledQuery", "QueryAssembler", "SearchFn"]
