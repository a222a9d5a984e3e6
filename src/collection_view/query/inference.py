"""Default filter types inferred from SQLAlchemy column types.

Explicit :class:`FieldConfig` settings always win; see
:func:`collection_view.domain.fields.resolve_field_configs`.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import types as sa_types

from ..errors import UnknownFieldError
from .columns import column_for

logger = logging.getLogger(__name__)


class SqlAlchemyTypeInferrer:
    """Implements the ``TypeInferrer`` port for mapped SQLAlchemy entities."""

    def infer(self, field: str, entity: Any) -> dict[str, Any]:
        try:
            column = column_for(entity, field)
        except UnknownFieldError as exc:
            logger.debug("Cannot infer filter type for %s: %s", field, exc)
            return {"filter_type": "text", "filter_options": {}}
        return infer_from_type(getattr(column, "type", None))


def infer_from_type(col_type: Any) -> dict[str, Any]:
    # Enum before String: sa.Enum subclasses String.
    if isinstance(col_type, sa_types.Enum):
        return {"filter_type": "select", "filter_options": {"options": _enum_options(col_type)}}
    if isinstance(col_type, sa_types.Boolean):
        return {"filter_type": "boolean", "filter_options": {}}
    if isinstance(col_type, (sa_types.Date, sa_types.DateTime)):
        return {
            "filter_type": "date_range",
            "filter_options": {"include_time": isinstance(col_type, sa_types.DateTime)},
        }
    if isinstance(col_type, (sa_types.Integer, sa_types.Numeric)):
        return {"filter_type": "number_range", "filter_options": {}}
    if isinstance(col_type, sa_types.ARRAY):
        return {"filter_type": "multi_select", "filter_options": {}}
    return {"filter_type": "text", "filter_options": {}}


def _enum_options(col_type: sa_types.Enum) -> list[tuple[str, str]]:
    """``(value, label)`` pairs; labels are humanized enum names."""
    return [(name, name.replace("_", " ").title()) for name in col_type.enums]


__all__ = ["SqlAlchemyTypeInferrer", "infer_from_type"]
