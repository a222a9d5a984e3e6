"""Field declarations and page-size configuration for a collection view."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Mapping, Sequence

from .models import SortDirection

logger = logging.getLogger(__name__)

DEFAULT_SORT_CYCLE: tuple[SortDirection | None, ...] = (
    None,
    SortDirection.ASC,
    SortDirection.DESC,
)


@dataclass(frozen=True)
class FieldConfig:
    """Declares how one field (or dotted relationship path) behaves.

    ``filter_type=None`` means "ask the type inferrer", falling back to
    ``"text"``.  ``filter_fn`` / ``sort_fn`` replace the built-in predicate
    and ordering for fields that need bespoke SQL.
    """

    field: str
    label: str = ""
    filterable: bool = False
    filter_type: str | None = None
    filter_options: Mapping[str, Any] = field(default_factory=dict)
    sortable: bool = True
    sort_cycle: tuple[SortDirection | None, ...] | None = None
    searchable: bool = False
    filter_fn: Callable[..., Any] | None = None
    sort_fn: Callable[..., Any] | None = None

    @property
    def display_label(self) -> str:
        return self.label or self.field.rsplit(".", 1)[-1].replace("_", " ").title()

    @property
    def resolved_filter_type(self) -> str:
        return self.filter_type or "text"

    @property
    def effective_sort_cycle(self) -> tuple[SortDirection | None, ...]:
        return self.sort_cycle if self.sort_cycle else DEFAULT_SORT_CYCLE


def resolve_field_configs(
    fields: Iterable[FieldConfig],
    inferrer=None,
    entity: Any = None,
) -> list[FieldConfig]:
    """Fill missing filter types/options from *inferrer*; explicit config wins."""
    resolved: list[FieldConfig] = []
    for fc in fields:
        if inferrer is None or entity is None or not fc.filterable:
            resolved.append(fc)
            continue
        if fc.filter_type is not None and fc.filter_options:
            resolved.append(fc)
            continue

        inferred = inferrer.infer(fc.field, entity)
        filter_type = fc.filter_type or inferred.get("filter_type") or "text"
        options = dict(inferred.get("filter_options") or {})
        if filter_type != inferred.get("filter_type"):
            # Inferred options belong to a different filter type.
            options = {}
        options.update(fc.filter_options)
        resolved.append(replace(fc, filter_type=filter_type, filter_options=options))
    return resolved


@dataclass(frozen=True)
class PageSizeConfig:
    """Selected page size plus the options a user may switch between."""

    selected: int
    default: int
    options: tuple[int, ...] = ()

    @property
    def configurable(self) -> bool:
        return len(self.options) > 1

    @classmethod
    def parse(
        cls,
        value: Any,
        fallback: int = 25,
        fallback_options: Sequence[int] = (),
    ) -> PageSizeConfig:
        """Accept an int, a ``{"default": n, "options": [...]}`` mapping, or None.

        An int fixes the page size.  A mapping without ``options`` and a
        missing or invalid value offer *fallback_options*.
        """
        if isinstance(value, bool):
            value = None
        if isinstance(value, int) and value > 0:
            return cls(selected=value, default=value)
        if isinstance(value, Mapping):
            default = value.get("default", fallback)
            if not isinstance(default, int) or isinstance(default, bool) or default < 1:
                logger.warning("Invalid default page size %r, using %d", default, fallback)
                default = fallback
            options = _valid_options(value.get("options", tuple(fallback_options)))
            return cls(selected=default, default=default, options=options)
        if value is not None:
            logger.warning("Invalid page_size configuration %r, using %d", value, fallback)
        return cls(selected=fallback, default=fallback, options=_valid_options(tuple(fallback_options)))


def _valid_options(raw: Any) -> tuple[int, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    if not all(isinstance(o, int) and not isinstance(o, bool) and o > 0 for o in raw):
        logger.warning("Invalid page size options %r, ignoring", raw)
        return ()
    return tuple(raw)


__all__ = [
    "DEFAULT_SORT_CYCLE",
    "FieldConfig",
    "resolve_field_configs",
    "PageSizeConfig",
]
