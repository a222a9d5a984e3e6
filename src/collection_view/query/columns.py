"""Field-path resolution against SQLAlchemy mapped entities.

A field is either a plain attribute name (``"title"``) or a dotted path
across relationships (``"author.name"``).  Filters on dotted paths use
EXISTS semantics (``relationship.has()`` for many-to-one and
``relationship.any()`` for one-to-many) so parent rows are never
duplicated.  Sorting on dotted paths joins aliased targets, or uses a
correlated aggregate subquery for to-many relationships.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from sqlalchemy import Select, func, inspect, select
from sqlalchemy.orm import aliased
from sqlalchemy.orm.relationships import RelationshipProperty
from sqlalchemy.sql import operators
from sqlalchemy.sql.elements import ColumnElement, UnaryExpression

from ..domain.models import SortDirection, SortKey
from ..errors import UnknownFieldError

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "."


# ── Entity helpers ──────────────────────────────────────────────────────


def primary_entity(stmt: Select) -> Any:
    """Return the mapped class a ``select(Model)`` statement is built on."""
    descriptions = stmt.column_descriptions
    if not descriptions or descriptions[0].get("entity") is None:
        raise UnknownFieldError("statement does not select a mapped entity")
    return descriptions[0]["entity"]


def primary_key_columns(entity: Any) -> list[Any]:
    mapper = inspect(entity)
    return [getattr(entity, mapper.get_property_by_column(col).key) for col in mapper.primary_key]


def _split(path: str) -> list[str]:
    parts = path.split(PATH_SEPARATOR)
    if not parts or any(not p for p in parts):
        raise UnknownFieldError(f"invalid field path {path!r}")
    return parts


def resolve_path(entity: Any, path: str) -> tuple[list[Any], Any]:
    """Resolve *path* into ``(relationship attributes, column attribute)``.

    Raises:
        UnknownFieldError: a segment is not a mapped relationship / column.
    """
    parts = _split(path)
    relationships: list[Any] = []
    current = entity
    for name in parts[:-1]:
        mapper = inspect(current)
        prop = mapper.attrs.get(name)
        if not isinstance(prop, RelationshipProperty):
            raise UnknownFieldError(f"{path!r}: {name!r} is not a relationship")
        relationships.append(getattr(current, name))
        current = prop.mapper.class_

    mapper = inspect(current)
    if parts[-1] not in mapper.all_orm_descriptors.keys():
        raise UnknownFieldError(f"{path!r}: unknown attribute {parts[-1]!r}")
    prop = mapper.attrs.get(parts[-1])
    if isinstance(prop, RelationshipProperty):
        raise UnknownFieldError(f"{path!r}: {parts[-1]!r} is a relationship, not a column")
    return relationships, getattr(current, parts[-1])


def column_for(entity: Any, path: str) -> Any:
    """Return the terminal column attribute of *path* (no joins applied)."""
    return resolve_path(entity, path)[1]


# ── Predicates ──────────────────────────────────────────────────────────


def path_criterion(
    entity: Any,
    path: str,
    make_predicate: Callable[[Any], ColumnElement],
) -> ColumnElement:
    """Build a WHERE criterion for *path*, wrapping relationships in EXISTS."""
    relationships, column = resolve_path(entity, path)
    criterion = make_predicate(column)
    for rel in reversed(relationships):
        if rel.property.uselist:
            criterion = rel.any(criterion)
        else:
            criterion = rel.has(criterion)
    return criterion


def where_on_path(
    stmt: Select,
    path: str,
    make_predicate: Callable[[Any], ColumnElement],
) -> Select:
    return stmt.where(path_criterion(primary_entity(stmt), path, make_predicate))


# ── Ordering ────────────────────────────────────────────────────────────


def order_by_clauses(stmt: Select) -> tuple[Any, ...]:
    # Select has no public accessor for its ORDER BY.
    return tuple(stmt._order_by_clauses)


def sort_target(
    stmt: Select,
    path: str,
    direction: SortDirection = SortDirection.ASC,
) -> tuple[Select, Any]:
    """Return ``(stmt', expression)`` to order *stmt* by *path*.

    Many-to-one hops add an outer join to a fresh alias, so the same
    target can be sorted through different paths.  A to-many hop would
    duplicate parent rows; it must be the last one and is sorted by a
    correlated ``MIN`` (ascending) or ``MAX`` (descending) subquery.
    """
    entity = primary_entity(stmt)
    relationships, _ = resolve_path(entity, path)
    if not relationships:
        return stmt, getattr(entity, path)

    parts = _split(path)
    current: Any = entity
    for index, name in enumerate(parts[:-1]):
        rel = getattr(current, name)
        alias = aliased(rel.property.mapper.class_)
        if rel.property.uselist:
            if index != len(parts) - 2:
                raise UnknownFieldError(
                    f"{path!r}: to-many relationship {name!r} must be the last hop"
                )
            return stmt, _aggregate_subquery(current, rel.property, alias, parts[-1], direction)
        stmt = stmt.outerjoin(rel.of_type(alias))
        current = alias
    return stmt, getattr(current, parts[-1])


def _aggregate_subquery(
    parent: Any,
    prop: RelationshipProperty,
    target: Any,
    column: str,
    direction: SortDirection,
) -> Any:
    if prop.secondary is not None:
        raise UnknownFieldError(f"sorting across many-to-many relationship {prop.key!r}")
    parent_columns = inspect(parent).selectable.c
    target_columns = inspect(target).selectable.c
    correlation = [
        parent_columns[local.key] == target_columns[remote.key]
        for local, remote in prop.local_remote_pairs
    ]
    aggregate = func.max if direction.is_descending else func.min
    return select(aggregate(getattr(target, column))).where(*correlation).scalar_subquery()


def ordering_clause(expr: Any, direction: SortDirection) -> Any:
    clause = expr.desc() if direction.is_descending else expr.asc()
    if direction.nulls == "first":
        clause = clause.nulls_first()
    elif direction.nulls == "last":
        clause = clause.nulls_last()
    return clause


def extract_query_sorts(stmt: Select, sortable_fields: Iterable[str]) -> tuple[SortKey, ...]:
    """Read *stmt*'s ORDER BY back into ``(field, direction)`` pairs.

    Only plain columns of the primary entity that appear in
    *sortable_fields* are returned; anything else (expressions, joined
    columns) is skipped.
    """
    allowed = set(sortable_fields)
    sorts: list[SortKey] = []
    seen: set[str] = set()
    for clause in order_by_clauses(stmt):
        direction, element = unwrap_ordering(clause)
        name = getattr(element, "key", None)
        if name in allowed and name not in seen:
            sorts.append((name, direction))
            seen.add(name)
        else:
            logger.debug("Skipping non-field default ordering %s", clause)
    return tuple(sorts)


def unwrap_ordering(clause: Any) -> tuple[SortDirection, Any]:
    nulls: str | None = None
    element = clause
    if isinstance(element, UnaryExpression) and element.modifier in (
        operators.nulls_first_op,
        operators.nulls_last_op,
    ):
        nulls = "first" if element.modifier is operators.nulls_first_op else "last"
        element = element.element

    descending = False
    if isinstance(element, UnaryExpression) and element.modifier in (
        operators.asc_op,
        operators.desc_op,
    ):
        descending = element.modifier is operators.desc_op
        element = element.element

    base = "desc" if descending else "asc"
    return SortDirection(f"{base}_nulls_{nulls}" if nulls else base), element


__all__ = [
    "PATH_SEPARATOR",
    "primary_entity",
    "primary_key_columns",
    "resolve_path",
    "column_for",
    "path_criterion",
    "where_on_path",
    "order_by_clauses",
    "sort_target",
    "ordering_clause",
    "extract_query_sorts",
    "unwrap_ordering",
]
