"""Turn a submitted filter form into a FilterMap.

Form payloads are flat string maps, so range and multi-value fields arrive
in several shapes:

* ranges as ``age_min`` / ``age_max`` (or ``created_from`` / ``created_to``),
  as a nested ``{"age": {"min": .., "max": ..}}`` mapping, or as ``"a,b"``;
* multi-value fields as a list under ``tags`` or ``tags[]``.  An unchecked
  checkbox group is simply absent from the payload, so absence means
  "nothing selected".
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from ..domain.fields import FieldConfig
from ..domain.models import FilterValue
from .base import FilterType
from .registry import FilterRegistry

logger = logging.getLogger(__name__)

_RANGE_SUFFIXES = (("_min", "_max", "min", "max"), ("_from", "_to", "from", "to"))


def handler_for(registry: FilterRegistry, field: FieldConfig) -> FilterType | None:
    """Handler used to parse a field's input; None for unknown filter types."""
    return registry.resolve(field.resolved_filter_type)


def ensure_multiselect_fields(
    params: Mapping[str, Any],
    fields: Iterable[FieldConfig],
    registry: FilterRegistry,
) -> dict[str, Any]:
    """Return a copy of *params* where absent multi-value fields map to ``[]``."""
    result = dict(params)
    for fc in fields:
        if not fc.filterable:
            continue
        handler = registry.get(fc.resolved_filter_type)
        if handler is None or not handler.multi_value:
            continue
        if fc.field not in result and f"{fc.field}[]" not in result:
            result[fc.field] = []
    return result


def raw_form_value(params: Mapping[str, Any], field: str, handler: FilterType) -> Any:
    if handler.range_value:
        nested = params.get(field)
        if isinstance(nested, Mapping) or isinstance(nested, str):
            return nested
        for low_suffix, high_suffix, low_key, high_key in _RANGE_SUFFIXES:
            low_name, high_name = field + low_suffix, field + high_suffix
            if low_name in params or high_name in params:
                return {low_key: params.get(low_name, ""), high_key: params.get(high_name, "")}
        return None

    if handler.multi_value:
        if field in params:
            return params[field]
        return params.get(f"{field}[]", [])

    return params.get(field)


def params_to_filters(
    params: Mapping[str, Any],
    fields: Iterable[FieldConfig],
    registry: FilterRegistry,
) -> dict[str, FilterValue]:
    """Parse a raw form payload; empty and malformed values are left out."""
    fields = list(fields)
    params = ensure_multiselect_fields(params, fields, registry)
    filters: dict[str, FilterValue] = {}
    for fc in fields:
        if not fc.filterable:
            continue
        handler = handler_for(registry, fc)
        if handler is None:
            continue
        raw = raw_form_value(params, fc.field, handler)
        if raw is None:
            continue
        try:
            value = handler.process(raw, fc)
        except Exception as exc:
            logger.error("Filter %s failed to process %r: %s", fc.field, raw, exc)
            continue
        if value is not None and not handler.is_empty(value):
            filters[fc.field] = value
    return filters


__all__ = [
    "handler_for",
    "ensure_multiselect_fields",
    "raw_form_value",
    "params_to_filters",
]
