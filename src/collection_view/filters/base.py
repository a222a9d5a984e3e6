"""Filter-type contract shared by every registered handler.

A handler is a stateless value object with five operations:

* ``process(raw, field)``  raw form / URL input → :class:`FilterValue` or None
* ``is_empty(value)``       type-specific emptiness rule
* ``validate(value)``       sanity check before a value is used
* ``build_predicate(stmt, field, value)``  append a WHERE clause
* ``default_options()``     type-specific configuration defaults

plus the URL encoding pair ``encode(value)`` / ``split_url_value(raw)``.
``process`` never raises: malformed input degrades to None.
"""

from __future__ import annotations

import abc
from typing import Any, Mapping

from sqlalchemy import Select
from sqlalchemy.sql.elements import ColumnElement

from ..domain.fields import FieldConfig
from ..domain.models import FilterValue
from ..query.columns import where_on_path


class FilterType(abc.ABC):
    """Base contract for a filter type tag."""

    tag: str = ""
    multi_value: bool = False
    range_value: bool = False

    @abc.abstractmethod
    def process(self, raw: Any, field: FieldConfig) -> FilterValue | None:
        ...

    @abc.abstractmethod
    def validate(self, value: Any) -> bool:
        ...

    @abc.abstractmethod
    def predicate(self, column: Any, value: FilterValue) -> ColumnElement:
        """Return the criterion for one resolved *column*."""
        ...

    def default_options(self) -> dict[str, Any]:
        return {}

    def is_empty(self, value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, FilterValue):
            return self.is_empty(value.value)
        if isinstance(value, str):
            return value.strip() == ""
        if isinstance(value, (list, tuple, set, frozenset)):
            return len(value) == 0
        return False

    def build_predicate(self, stmt: Select, field: str, value: FilterValue) -> Select:
        return where_on_path(stmt, field, lambda column: self.predicate(column, value))

    # -- URL codec ---------------------------------------------------------

    def encode(self, value: FilterValue) -> str:
        return to_text(value.value)

    def split_url_value(self, raw: str) -> Any:
        """Pre-process a URL string before it is handed to :meth:`process`."""
        return raw

    # -- Helpers -----------------------------------------------------------

    def options(self, field: FieldConfig) -> dict[str, Any]:
        merged = self.default_options()
        merged.update(field.filter_options)
        return merged


def to_text(value: Any) -> str:
    """Stringify a scalar for URLs; booleans render lowercase."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def clean_string(raw: Any) -> str | None:
    """Trim *raw* if it is a scalar; None for anything unusable."""
    if raw is None or isinstance(raw, (list, tuple, dict, set)):
        return None
    text = to_text(raw).strip()
    return text or None


def range_bounds(raw: Any, low_key: str, high_key: str) -> tuple[str, str] | None:
    """Split range input into trimmed ``(low, high)`` strings.

    Accepts ``"low,high"`` text (a single value means ``low``) or a
    mapping carrying *low_key* / *high_key*.  None when unusable.
    """
    if isinstance(raw, Mapping):
        low, high = raw.get(low_key), raw.get(high_key)
    elif isinstance(raw, str):
        parts = raw.split(",", 1)
        low = parts[0]
        high = parts[1] if len(parts) > 1 else ""
    else:
        return None
    low = "" if low is None else to_text(low).strip()
    high = "" if high is None else to_text(high).strip()
    return low, high


__all__ = ["FilterType", "to_text", "clean_string", "range_bounds"]
