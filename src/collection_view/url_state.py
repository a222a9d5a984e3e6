"""Bidirectional mapping between view state and flat URL parameters.

Managed keys are ``page``, ``page_size``, ``sort``, ``search``, ``after``,
``before`` and one key per filterable field.  Encoding emits only
non-default values; decoding never raises (bad input falls back to the
default); keys the codec does not manage pass through :meth:`merge_params`
untouched.

Sort strings are comma-joined tokens::

    field    asc               -field   desc
    ++field  asc nulls first   +-field  desc nulls first
    -+field  asc nulls last    --field  desc nulls last
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from .domain.fields import FieldConfig
from .domain.models import (
    FilterValue,
    KeysetPagination,
    OffsetPagination,
    PaginationMode,
    SortDirection,
    SortKey,
    ViewState,
)
from .filters.base import to_text
from .filters.registry import FilterRegistry, default_registry
from .settings import settings

logger = logging.getLogger(__name__)

FIXED_KEYS = frozenset({"page", "page_size", "sort", "search", "after", "before"})

# Longest prefixes first so "--f" is not read as "-" + "-f".
_SORT_PREFIXES: tuple[tuple[str, SortDirection], ...] = (
    ("++", SortDirection.ASC_NULLS_FIRST),
    ("+-", SortDirection.DESC_NULLS_FIRST),
    ("-+", SortDirection.ASC_NULLS_LAST),
    ("--", SortDirection.DESC_NULLS_LAST),
    ("-", SortDirection.DESC),
)
_PREFIX_FOR = {direction: prefix for prefix, direction in _SORT_PREFIXES}


@dataclass(frozen=True)
class DecodedUrlState:
    """Partial view state recovered from URL parameters."""

    filters: dict[str, FilterValue] = field(default_factory=dict)
    sort: tuple[SortKey, ...] = ()
    page: int = 1
    page_size: int = 25
    page_size_given: bool = False
    after: str | None = None
    before: str | None = None
    search: str = ""


# ── Validation ──────────────────────────────────────────────────────────


def validate_url_params(
    params: Mapping[str, Any],
    max_params: int | None = None,
    max_length: int | None = None,
) -> tuple[bool, str | None]:
    """Reject oversized parameter sets; returns ``(ok, reason)``."""
    max_params = max_params if max_params is not None else settings.max_url_params
    max_length = max_length if max_length is not None else settings.max_url_param_length
    if len(params) > max_params:
        return False, f"too many parameters ({len(params)} > {max_params})"
    for key, value in params.items():
        if len(to_text(value)) > max_length:
            return False, f"parameter {key!r} exceeds {max_length} characters"
    return True, None


# ── Sort strings ────────────────────────────────────────────────────────


def encode_sort(sort: Sequence[Any]) -> str:
    """Encode sort keys; an invalid entry logs a warning and yields ``""``."""
    tokens = []
    for item in sort:
        try:
            name, direction = item
            direction = SortDirection(direction)
        except (TypeError, ValueError):
            logger.warning("Invalid sort specification %r, not encoding sort", sort)
            return ""
        tokens.append(_PREFIX_FOR.get(direction, "") + name)
    return ",".join(tokens)


def parse_sort_token(token: str) -> SortKey | None:
    token = token.strip()
    for prefix, direction in _SORT_PREFIXES:
        if token.startswith(prefix):
            name = token[len(prefix):]
            return (name, direction) if name else None
    return (token, SortDirection.ASC) if token else None


def _positive_int(raw: Any) -> int | None:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


# ── Codec ───────────────────────────────────────────────────────────────


class UrlStateCodec:
    """Encode/decode view state for one set of field declarations."""

    def __init__(
        self,
        fields: Sequence[FieldConfig],
        registry: FilterRegistry | None = None,
        *,
        default_page_size: int | None = None,
        pagination_mode: PaginationMode = PaginationMode.OFFSET,
    ) -> None:
        self.fields: dict[str, FieldConfig] = {fc.field: fc for fc in fields}
        self.registry = registry or default_registry()
        self.default_page_size = default_page_size or settings.default_page_size
        self.pagination_mode = PaginationMode(pagination_mode)

    @property
    def managed_keys(self) -> frozenset[str]:
        filter_keys = {name for name, fc in self.fields.items() if fc.filterable}
        return FIXED_KEYS | filter_keys

    # -- Encode ------------------------------------------------------------

    def encode(self, state: ViewState) -> dict[str, str]:
        params = self.encode_filters(state.filters)

        pagination = state.pagination
        if isinstance(pagination, KeysetPagination):
            if pagination.after:
                params["after"] = pagination.after
            elif pagination.before:
                params["before"] = pagination.before
        elif pagination.page > 1:
            params["page"] = str(pagination.page)

        if pagination.page_size != self.default_page_size:
            params["page_size"] = str(pagination.page_size)

        sort = encode_sort(state.sort)
        if sort:
            params["sort"] = sort

        if state.search_term:
            params["search"] = state.search_term
        return params

    def encode_filters(self, filters: Mapping[str, FilterValue]) -> dict[str, str]:
        params: dict[str, str] = {}
        for name, value in filters.items():
            fc = self.fields.get(name)
            tag = fc.resolved_filter_type if fc is not None else value.type
            handler = self.registry.resolve(tag)
            encoded = handler.encode(value) if handler is not None else to_text(value.value)
            if encoded:
                params[name] = encoded
        return params

    def merge_params(self, existing: Mapping[str, Any], state: ViewState) -> dict[str, Any]:
        """Replace managed keys in *existing* with *state*'s encoding."""
        managed = self.managed_keys
        merged = {k: v for k, v in existing.items() if k not in managed}
        merged.update(self.encode(state))
        return merged

    # -- Decode ------------------------------------------------------------

    def decode(self, params: Mapping[str, Any]) -> DecodedUrlState:
        page_size = _positive_int(params.get("page_size"))
        keyset = self.pagination_mode == PaginationMode.KEYSET
        after = self.decode_cursor(params.get("after")) if keyset else None
        before = self.decode_cursor(params.get("before")) if keyset else None
        if after and before:
            before = None
        return DecodedUrlState(
            filters=self.decode_filters(params),
            sort=self.decode_sort(params.get("sort")),
            page=self.decode_page(params.get("page")),
            page_size=page_size or self.default_page_size,
            page_size_given=page_size is not None,
            after=after,
            before=before,
            search=to_text(params.get("search")).strip(),
        )

    def decode_filters(self, params: Mapping[str, Any]) -> dict[str, FilterValue]:
        filters: dict[str, FilterValue] = {}
        for name, fc in self.fields.items():
            if not fc.filterable:
                continue
            raw = params.get(name)
            if raw is None or to_text(raw).strip() == "":
                continue
            handler = self.registry.resolve(fc.resolved_filter_type)
            if handler is None:
                continue
            try:
                value = handler.process(handler.split_url_value(to_text(raw)), fc)
            except Exception as exc:
                logger.error("Failed to decode filter %s=%r: %s", name, raw, exc)
                continue
            if value is not None and not handler.is_empty(value):
                filters[name] = value
        return filters

    def decode_sort(self, raw: Any) -> tuple[SortKey, ...]:
        if not raw:
            return ()
        sort: list[SortKey] = []
        seen: set[str] = set()
        for token in to_text(raw).split(","):
            key = parse_sort_token(token)
            if key is None or key[0] in seen:
                continue
            fc = self.fields.get(key[0])
            if fc is None or not fc.sortable:
                logger.debug("Dropping sort on undeclared field %s", key[0])
                continue
            sort.append(key)
            seen.add(key[0])
        return tuple(sort)

    @staticmethod
    def decode_page(raw: Any) -> int:
        return _positive_int(raw) or 1

    @staticmethod
    def decode_cursor(raw: Any) -> str | None:
        text = to_text(raw).strip()
        return text or None

    def to_view_state(self, decoded: DecodedUrlState) -> ViewState:
        """Build a full ViewState from *decoded* (selection left empty)."""
        if self.pagination_mode == PaginationMode.KEYSET:
            pagination = KeysetPagination(
                page_size=decoded.page_size, after=decoded.after, before=decoded.before
            )
        else:
            pagination = OffsetPagination(page=decoded.page, page_size=decoded.page_size)
        return ViewState(
            filters=decoded.filters,
            sort=decoded.sort,
            pagination=pagination,
            search_term=decoded.search,
        )


__all__ = [
    "FIXED_KEYS",
    "DecodedUrlState",
    "UrlStateCodec",
    "validate_url_params",
    "encode_sort",
    "parse_sort_token",
]
