"""Registry mapping filter type tags to handlers.

The registry is an ordinary object: build one with :func:`default_registry`
at startup and pass it to controllers, codecs and assemblers.  Built-in
tags cannot be replaced; custom tags are added with :meth:`register`.
"""

from __future__ import annotations

import logging
from typing import Any

from ..errors import ConfigurationError
from .base import FilterType
from .boolean import BooleanFilter
from .checkbox import CheckboxFilter
from .date_range import DateRangeFilter
from .multi_select import MultiCheckboxesFilter, MultiSelectFilter
from .number_range import NumberRangeFilter
from .select import SelectFilter
from .text import TextFilter

logger = logging.getLogger(__name__)

FALLBACK_TAG = "text"


def builtin_filters() -> dict[str, FilterType]:
    handlers: list[FilterType] = [
        TextFilter(),
        SelectFilter(),
        MultiSelectFilter(),
        MultiCheckboxesFilter(),
        BooleanFilter(),
        CheckboxFilter(),
        DateRangeFilter(),
        NumberRangeFilter(),
    ]
    return {h.tag: h for h in handlers}


class FilterRegistry:
    """Tag → handler table with an explicit text fallback entry."""

    def __init__(self, handlers: dict[str, FilterType] | None = None) -> None:
        self._builtin: dict[str, FilterType] = builtin_filters()
        self._custom: dict[str, FilterType | None] = {}
        for tag, handler in (handlers or {}).items():
            self.register(tag, handler)

    # -- Registration ------------------------------------------------------

    def register(self, tag: str, handler: FilterType | None) -> None:
        """Register a custom tag.

        A ``None`` handler is accepted (e.g. a placeholder declared before
        its implementation exists); lookups then fall back to the text
        handler with a warning.

        Raises:
            ConfigurationError: *tag* is built in or already registered.
        """
        if tag in self._builtin:
            raise ConfigurationError(f"cannot override built-in filter type {tag!r}")
        if tag in self._custom:
            raise ConfigurationError(f"filter type {tag!r} is already registered")
        if handler is not None and not isinstance(handler, FilterType):
            raise ConfigurationError(
                f"handler for {tag!r} must be a FilterType, got {type(handler).__name__}"
            )
        self._custom[tag] = handler
        logger.debug("Registered custom filter type %s", tag)

    def unregister(self, tag: str) -> None:
        self._custom.pop(tag, None)

    # -- Lookup ------------------------------------------------------------

    def get(self, tag: str) -> FilterType | None:
        """Exact lookup; None for unknown tags and handler-less custom tags."""
        if tag in self._builtin:
            return self._builtin[tag]
        return self._custom.get(tag)

    def resolve(self, tag: str) -> FilterType | None:
        """Lookup used when applying filters.

        Custom tags registered without a handler resolve to the text
        handler.  Unknown tags resolve to None and callers skip the field.
        """
        handler = self.get(tag)
        if handler is not None:
            return handler
        if tag in self._custom:
            logger.warning(
                "Custom filter type %r has no handler, falling back to %s", tag, FALLBACK_TAG
            )
            return self._builtin[FALLBACK_TAG]
        logger.warning("Unknown filter type %r, field left unfiltered", tag)
        return None

    def is_registered(self, tag: str) -> bool:
        return tag in self._builtin or tag in self._custom

    def is_builtin(self, tag: str) -> bool:
        return tag in self._builtin

    def filter_types(self) -> list[str]:
        return [*self._builtin, *self._custom]

    def default_options(self, tag: str) -> dict[str, Any]:
        handler = self.get(tag)
        return handler.default_options() if handler is not None else {}


def default_registry() -> FilterRegistry:
    return FilterRegistry()


__all__ = ["FALLBACK_TAG", "FilterRegistry", "builtin_filters", "default_registry"]
