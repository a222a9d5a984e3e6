"""Inclusive date / datetime range filter.

Bounds are stored as the ISO strings the user typed.  A date-only bound
applied to a DateTime column covers the whole day: ``from`` widens to
``T00:00:00`` and ``to`` to ``T23:59:59``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import and_
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.types import DateTime

from ..domain.fields import FieldConfig
from ..domain.models import DateRange, FilterValue
from ..errors import FilterError
from .base import FilterType, range_bounds

logger = logging.getLogger(__name__)


def parse_iso(text: str) -> date | datetime | None:
    """Parse an ISO date or datetime; None when malformed."""
    if "T" in text or " " in text:
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


class DateRangeFilter(FilterType):
    tag = "date_range"
    range_value = True

    def default_options(self) -> dict[str, Any]:
        return {"format": "date", "include_time": False}

    def process(self, raw: Any, field: FieldConfig) -> FilterValue | None:
        if isinstance(raw, dict) and "from_" in raw and "from" not in raw:
            raw = {"from": raw["from_"], "to": raw.get("to")}
        bounds = range_bounds(raw, "from", "to")
        if bounds is None or bounds == ("", ""):
            return None
        return FilterValue(
            type=self.tag,
            value=DateRange(from_=bounds[0], to=bounds[1]),
            operator="between",
        )

    def validate(self, value: Any) -> bool:
        if not isinstance(value, FilterValue) or not isinstance(value.value, DateRange):
            return False
        rng = value.value
        if not rng.from_ and not rng.to:
            return False
        return all(parse_iso(b) is not None for b in (rng.from_, rng.to) if b)

    def is_empty(self, value: Any) -> bool:
        if isinstance(value, FilterValue):
            value = value.value
        if isinstance(value, DateRange):
            return not value.from_ and not value.to
        return super().is_empty(value)

    def predicate(self, column: Any, value: FilterValue) -> ColumnElement:
        rng: DateRange = value.value
        is_datetime = isinstance(getattr(column, "type", None), DateTime)
        low = self._bound(rng.from_, is_datetime, end_of_day=False)
        high = self._bound(rng.to, is_datetime, end_of_day=True)
        if low is None and high is None:
            raise FilterError(f"no usable bound in date range {rng!r}")
        clauses = []
        if low is not None:
            clauses.append(column >= low)
        if high is not None:
            clauses.append(column <= high)
        return and_(*clauses)

    @staticmethod
    def _bound(text: str, is_datetime: bool, *, end_of_day: bool) -> date | datetime | None:
        if not text:
            return None
        parsed = parse_iso(text)
        if parsed is None:
            logger.debug("Ignoring malformed date bound %r", text)
            return None
        if is_datetime and not isinstance(parsed, datetime):
            suffix = "T23:59:59" if end_of_day else "T00:00:00"
            return datetime.fromisoformat(parsed.isoformat() + suffix)
        if not is_datetime and isinstance(parsed, datetime):
            return parsed.date()
        return parsed

    def encode(self, value: FilterValue) -> str:
        return f"{value.value.from_},{value.value.to}"
