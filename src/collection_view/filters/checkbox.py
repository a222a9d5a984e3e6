"""Single checkbox filter: checked means "field equals the configured value"."""

from __future__ import annotations

from typing import Any

from sqlalchemy.sql.elements import ColumnElement

from ..domain.fields import FieldConfig
from ..domain.models import FilterValue
from .base import FilterType, clean_string, to_text


class CheckboxFilter(FilterType):
    tag = "checkbox"

    def default_options(self) -> dict[str, Any]:
        return {"label": "", "value": True}

    def process(self, raw: Any, field: FieldConfig) -> FilterValue | None:
        text = clean_string(raw)
        if text is None:
            return None
        expected = self.options(field).get("value", True)
        # Only the configured value counts as "checked".
        if text != to_text(expected):
            return None
        return FilterValue(type=self.tag, value=expected, operator="equals")

    def validate(self, value: Any) -> bool:
        return isinstance(value, FilterValue) and value.operator == "equals"

    def is_empty(self, value: Any) -> bool:
        if isinstance(value, FilterValue):
            value = value.value
        if isinstance(value, bool):
            return value is False
        return super().is_empty(value)

    def predicate(self, column: Any, value: FilterValue) -> ColumnElement:
        return column == value.value
