"""Free-text filter: contains / equals / starts_with / ends_with and negations."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, not_
from sqlalchemy.sql.elements import ColumnElement

from ..domain.fields import FieldConfig
from ..domain.models import FilterValue
from ..errors import FilterError
from .base import FilterType, clean_string

logger = logging.getLogger(__name__)

TEXT_OPERATORS = frozenset({
    "contains",
    "equals",
    "starts_with",
    "ends_with",
    "not_contains",
    "not_equals",
})


class TextFilter(FilterType):
    tag = "text"

    def default_options(self) -> dict[str, Any]:
        return {"operator": "contains", "case_sensitive": False, "placeholder": None}

    def process(self, raw: Any, field: FieldConfig) -> FilterValue | None:
        text = clean_string(raw)
        if text is None:
            return None
        opts = self.options(field)
        operator = str(opts.get("operator") or "contains")
        if operator not in TEXT_OPERATORS:
            logger.warning("Unknown text operator %r on %s, using contains", operator, field.field)
            operator = "contains"
        return FilterValue(
            type=self.tag,
            value=text,
            operator=operator,
            case_sensitive=bool(opts.get("case_sensitive", False)),
        )

    def validate(self, value: Any) -> bool:
        return (
            isinstance(value, FilterValue)
            and isinstance(value.value, str)
            and value.value != ""
            and value.operator in TEXT_OPERATORS
        )

    def predicate(self, column: Any, value: FilterValue) -> ColumnElement:
        text: str = value.value
        op = value.operator
        if value.case_sensitive:
            if op in ("equals", "not_equals"):
                crit = column == text
            elif op in ("contains", "not_contains"):
                crit = column.contains(text, autoescape=True)
            elif op == "starts_with":
                crit = column.startswith(text, autoescape=True)
            elif op == "ends_with":
                crit = column.endswith(text, autoescape=True)
            else:
                raise FilterError(f"unsupported text operator {op!r}")
        else:
            if op in ("equals", "not_equals"):
                crit = func.lower(column) == text.lower()
            elif op in ("contains", "not_contains"):
                crit = column.icontains(text, autoescape=True)
            elif op == "starts_with":
                crit = column.istartswith(text, autoescape=True)
            elif op == "ends_with":
                crit = column.iendswith(text, autoescape=True)
            else:
                raise FilterError(f"unsupported text operator {op!r}")
        return not_(crit) if op.startswith("not_") else crit
