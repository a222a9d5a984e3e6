"""Keyset (cursor) pagination helpers.

A cursor is the URL-safe base64 encoding of a JSON list holding one row's
sort-key values, in ordering order.  Positioning *after* a cursor uses
the usual lexicographic expansion::

    (k1 > v1) OR (k1 = v1 AND k2 > v2) OR ...

with ``<`` instead of ``>`` for descending keys.  *Before* a cursor flips
every comparison; the page is then fetched in reversed order and put
back in display order by the executor.

Nullable keys are ordered with explicit NULLS FIRST/LAST (NULL sorts
as the largest value unless the direction says otherwise) and a NULL
cursor value is matched with ``IS NULL`` / ``IS NOT NULL``.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import and_, false, or_
from sqlalchemy.sql.elements import ColumnElement

from ..domain.models import SortDirection


class InvalidCursorError(ValueError):
    """Raised when a cursor token cannot be decoded for the current ordering."""


@dataclass(frozen=True)
class KeysetKey:
    """One column of the keyset ordering."""

    expression: Any
    direction: SortDirection
    python_type: type | None = None
    nullable: bool = False

    @property
    def ordering(self) -> SortDirection:
        """The direction to ORDER BY, with explicit null placement if nullable."""
        if not self.nullable or self.direction.nulls is not None:
            return self.direction
        if self.direction.is_descending:
            return SortDirection.DESC_NULLS_FIRST
        return SortDirection.ASC_NULLS_LAST


@dataclass(frozen=True)
class KeysetPlan:
    """What the executor needs to page a keyset query.

    ``reversed`` is True when the statement was built with flipped ordering
    to fetch the rows *before* a cursor.
    """

    keys: tuple[KeysetKey, ...]
    page_size: int
    reversed: bool = False
    has_cursor: bool = False

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(f"_keyset_{i}" for i in range(len(self.keys)))


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    raise TypeError(f"cannot encode {type(value).__name__} in a cursor")


def encode_cursor(values: Sequence[Any]) -> str:
    payload = json.dumps(list(values), default=_json_default, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(token: str, keys: Sequence[KeysetKey]) -> list[Any]:
    """Decode *token* and coerce each value back to its column's Python type.

    Raises:
        InvalidCursorError: malformed token or wrong number of values.
    """
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise InvalidCursorError(f"malformed cursor {token!r}") from exc
    if not isinstance(raw, list) or len(raw) != len(keys):
        raise InvalidCursorError(f"cursor {token!r} does not match the current ordering")

    values: list[Any] = []
    for value, key in zip(raw, keys):
        if value is None or key.python_type is None:
            values.append(value)
            continue
        try:
            values.append(TypeAdapter(key.python_type).validate_python(value))
        except ValidationError as exc:
            raise InvalidCursorError(f"cursor value {value!r} is not a {key.python_type.__name__}") from exc
    return values


def column_python_type(expression: Any) -> type | None:
    try:
        return expression.type.python_type
    except (AttributeError, NotImplementedError):
        return None


def keyset_predicate(
    keys: Sequence[KeysetKey],
    values: Sequence[Any],
    *,
    before: bool = False,
) -> ColumnElement:
    """Rows strictly after (or before) the row whose key values are *values*."""
    branches = []
    for i, key in enumerate(keys):
        direction = key.ordering.opposite() if before else key.ordering
        step = _step_past(key.expression, values[i], direction)
        if step is None:
            continue
        equal_prefix = [_equal_to(keys[j].expression, values[j]) for j in range(i)]
        branches.append(and_(*equal_prefix, step))
    if not branches:
        return false()
    return or_(*branches)


def _equal_to(expression: Any, value: Any) -> ColumnElement:
    return expression.is_(None) if value is None else expression == value


def _step_past(expression: Any, value: Any, direction: SortDirection) -> ColumnElement | None:
    """Rows ordered strictly after *value* on one key; None when there are none."""
    nulls_last = direction.nulls == "last"
    if value is None:
        # nothing follows a trailing NULL
        return None if nulls_last else expression.is_not(None)
    step = expression < value if direction.is_descending else expression > value
    if nulls_last:
        return or_(step, expression.is_(None))
    return step


__all__ = [
    "InvalidCursorError",
    "KeysetKey",
    "KeysetPlan",
    "encode_cursor",
    "decode_cursor",
    "column_python_type",
    "keyset_predicate",
]
