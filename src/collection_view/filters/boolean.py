"""Tri-state boolean filter: true / false / any."""

from __future__ import annotations

from typing import Any

from sqlalchemy.sql.elements import ColumnElement

from ..domain.fields import FieldConfig
from ..domain.models import FilterValue
from .base import FilterType, clean_string

_PARSED = {"true": True, "false": False}


class BooleanFilter(FilterType):
    tag = "boolean"

    def default_options(self) -> dict[str, Any]:
        return {"labels": {"all": "All", "true": "True", "false": "False"}}

    def process(self, raw: Any, field: FieldConfig) -> FilterValue | None:
        text = clean_string(raw)
        if text is None or text.lower() not in _PARSED:
            return None
        return FilterValue(type=self.tag, value=_PARSED[text.lower()], operator="equals")

    def validate(self, value: Any) -> bool:
        return (
            isinstance(value, FilterValue)
            and isinstance(value.value, bool)
            and value.operator == "equals"
        )

    def is_empty(self, value: Any) -> bool:
        if isinstance(value, FilterValue):
            value = value.value
        if isinstance(value, bool):
            return False
        return value is None or clean_string(value) in (None, "all")

    def predicate(self, column: Any, value: FilterValue) -> ColumnElement:
        return column.is_(value.value)
