"""Single-choice filter (dropdown); ``"all"`` means no filter."""

from __future__ import annotations

from typing import Any

from sqlalchemy.sql.elements import ColumnElement

from ..domain.fields import FieldConfig
from ..domain.models import FilterValue
from .base import FilterType, clean_string


class SelectFilter(FilterType):
    tag = "select"

    def default_options(self) -> dict[str, Any]:
        return {"options": [], "prompt": None}

    def process(self, raw: Any, field: FieldConfig) -> FilterValue | None:
        text = clean_string(raw)
        if text is None or text == "all":
            return None
        return FilterValue(type=self.tag, value=text, operator="equals")

    def validate(self, value: Any) -> bool:
        return (
            isinstance(value, FilterValue)
            and isinstance(value.value, str)
            and value.value != ""
            and value.operator == "equals"
        )

    def predicate(self, column: Any, value: FilterValue) -> ColumnElement:
        return column == value.value
