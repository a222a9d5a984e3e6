"""Inclusive numeric range filter.

Bounds stay as trimmed strings until the predicate is built; each bound
is parsed as an int first, then a float.  A malformed bound is dropped.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import and_
from sqlalchemy.sql.elements import ColumnElement

from ..domain.fields import FieldConfig
from ..domain.models import FilterValue, NumberRange
from ..errors import FilterError
from .base import FilterType, range_bounds

logger = logging.getLogger(__name__)


def parse_number(text: str) -> int | float | None:
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return None


class NumberRangeFilter(FilterType):
    tag = "number_range"
    range_value = True

    def default_options(self) -> dict[str, Any]:
        return {"min": None, "max": None, "step": 1}

    def process(self, raw: Any, field: FieldConfig) -> FilterValue | None:
        bounds = range_bounds(raw, "min", "max")
        if bounds is None or bounds == ("", ""):
            return None
        return FilterValue(
            type=self.tag,
            value=NumberRange(min=bounds[0], max=bounds[1]),
            operator="between",
        )

    def validate(self, value: Any) -> bool:
        if not isinstance(value, FilterValue) or not isinstance(value.value, NumberRange):
            return False
        rng = value.value
        if not rng.min and not rng.max:
            return False
        return all(parse_number(b) is not None for b in (rng.min, rng.max) if b)

    def is_empty(self, value: Any) -> bool:
        if isinstance(value, FilterValue):
            value = value.value
        if isinstance(value, NumberRange):
            return not value.min and not value.max
        return super().is_empty(value)

    def predicate(self, column: Any, value: FilterValue) -> ColumnElement:
        rng: NumberRange = value.value
        low = self._bound(rng.min)
        high = self._bound(rng.max)
        if low is None and high is None:
            raise FilterError(f"no usable bound in number range {rng!r}")
        clauses = []
        if low is not None:
            clauses.append(column >= low)
        if high is not None:
            clauses.append(column <= high)
        return and_(*clauses)

    @staticmethod
    def _bound(text: str) -> int | float | None:
        if not text:
            return None
        number = parse_number(text)
        if number is None:
            logger.debug("Ignoring malformed number bound %r", text)
        return number

    def encode(self, value: FilterValue) -> str:
        return f"{value.value.min},{value.value.max}"
