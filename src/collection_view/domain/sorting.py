"""Sort-toggle state transitions.

A sort specification is an ordered tuple of ``(field, direction)`` pairs;
the first pair is the primary sort.  Toggling a header advances that
field through its *cycle*, an ordered sequence of directions where
``None`` means "not sorted".
"""

from __future__ import annotations

from typing import Iterable, Sequence

from .fields import DEFAULT_SORT_CYCLE
from .models import SortDirection, SortKey, SortMode


def sort_direction(sort: Iterable[SortKey], field: str) -> SortDirection | None:
    for key, direction in sort:
        if key == field:
            return direction
    return None


def _normalize_cycle(
    cycle: Sequence[SortDirection | None] | None,
) -> tuple[SortDirection | None, ...]:
    if not cycle or all(step is None for step in cycle):
        return DEFAULT_SORT_CYCLE
    return tuple(cycle)


def _first_direction(cycle: Sequence[SortDirection | None]) -> SortDirection:
    return next(step for step in cycle if step is not None)


def next_in_cycle(
    current: SortDirection | None,
    cycle: Sequence[SortDirection | None] | None = None,
) -> SortDirection | None:
    """Return the state after *current*; ``None`` removes the sort."""
    steps = _normalize_cycle(cycle)
    if current is None or current not in steps:
        return _first_direction(steps)
    idx = steps.index(current)
    return steps[(idx + 1) % len(steps)]


def _apply(
    sort: Sequence[SortKey],
    field: str,
    direction: SortDirection | None,
    mode: SortMode,
) -> tuple[SortKey, ...]:
    if mode == SortMode.EXCLUSIVE:
        return () if direction is None else ((field, direction),)

    if direction is None:
        return tuple(key for key in sort if key[0] != field)
    if sort_direction(sort, field) is None:
        return ((field, direction), *sort)
    return tuple(
        (key, direction) if key == field else (key, existing)
        for key, existing in sort
    )


def toggle_sort_with_cycle(
    sort: Sequence[SortKey],
    field: str,
    cycle: Sequence[SortDirection | None] | None = None,
    mode: SortMode = SortMode.ADDITIVE,
) -> tuple[SortKey, ...]:
    """Advance *field* one step through *cycle*.

    New fields are prepended so the most recent click becomes the primary
    sort.  In exclusive mode every other sort key is dropped.
    """
    current = sort_direction(sort, field)
    return _apply(sort, field, next_in_cycle(current, cycle), SortMode(mode))


def toggle_sort_from_query(
    sort: Sequence[SortKey],
    field: str,
    cycle: Sequence[SortDirection | None] | None = None,
    mode: SortMode = SortMode.ADDITIVE,
) -> tuple[SortKey, ...]:
    """First click against a sort taken from the query's default ordering.

    The field flips to the opposite of its default direction instead of
    advancing through the cycle; later clicks use the regular cycle.
    """
    current = sort_direction(sort, field)
    if current is None:
        return toggle_sort_with_cycle(sort, field, cycle, mode)
    return _apply(sort, field, current.opposite(), SortMode(mode))


__all__ = [
    "sort_direction",
    "next_in_cycle",
    "toggle_sort_with_cycle",
    "toggle_sort_from_query",
]
