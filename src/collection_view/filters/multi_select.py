"""Multi-value filters: a dropdown with several choices and a checkbox group.

``match_mode="any"`` (default) keeps rows matching at least one value;
``match_mode="all"`` requires every value, which is meaningful for
one-to-many relationship paths and ARRAY columns.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Select, and_
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.types import ARRAY

from ..domain.fields import FieldConfig
from ..domain.models import FilterValue
from ..query.columns import where_on_path
from .base import FilterType, to_text


class MultiSelectFilter(FilterType):
    tag = "multi_select"
    multi_value = True

    def default_options(self) -> dict[str, Any]:
        return {"options": [], "match_mode": "any", "prompt": None}

    def process(self, raw: Any, field: FieldConfig) -> FilterValue | None:
        if isinstance(raw, str):
            raw = [raw]
        if not isinstance(raw, (list, tuple, set, frozenset)):
            return None
        values = tuple(
            text
            for text in (to_text(v).strip() for v in raw if v is not None)
            if text
        )
        if not values:
            return None
        match_mode = self.options(field).get("match_mode", "any")
        return FilterValue(
            type=self.tag,
            value=values,
            operator="all" if match_mode == "all" else "in",
        )

    def validate(self, value: Any) -> bool:
        return (
            isinstance(value, FilterValue)
            and isinstance(value.value, tuple)
            and len(value.value) > 0
            and value.operator in ("in", "all")
        )

    def predicate(self, column: Any, value: FilterValue) -> ColumnElement:
        values = list(value.value)
        if isinstance(getattr(column, "type", None), ARRAY):
            if value.operator == "all":
                return column.contains(values)
            return column.overlap(values)
        if value.operator == "all":
            # A scalar column only matches when every chosen value is the same.
            return and_(*[column == v for v in values])
        return column.in_(values)

    def build_predicate(self, stmt: Select, field: str, value: FilterValue) -> Select:
        if value.operator == "all" and "." in field:
            # Each value needs its own EXISTS so different related rows can match.
            for item in value.value:
                single = FilterValue(type=value.type, value=(item,), operator="in")
                stmt = where_on_path(stmt, field, lambda column, v=single: self.predicate(column, v))
            return stmt
        return super().build_predicate(stmt, field, value)

    def encode(self, value: FilterValue) -> str:
        return ",".join(value.value)

    def split_url_value(self, raw: str) -> Any:
        return [part.strip() for part in raw.split(",") if part.strip()]


class MultiCheckboxesFilter(MultiSelectFilter):
    """Same value model as :class:`MultiSelectFilter`, rendered as checkboxes."""

    tag = "multi_checkboxes"

    def default_options(self) -> dict[str, Any]:
        return {"options": [], "match_mode": "any"}
