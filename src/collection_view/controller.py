"""Stateful controller for one filterable, sortable, paginated collection.

The controller owns the authoritative view state (filters, sort,
pagination, search term, selection) plus a ``loading`` / ``error`` pair.
Event handlers are plain synchronous methods that run to completion on
the event loop; when the query-relevant part of the state changes they
dispatch a load task and return immediately.

Every dispatched load carries a generation number.  A completion is only
applied when its generation is still the latest one, so a slow early
query can never overwrite the result of a later one.  ``unmount()`` stops
all further completions from being applied.

Typical use::

    controller = CollectionController(
        select(Post).order_by(Post.created_at.desc()),
        fields=[FieldConfig("title", filterable=True, searchable=True)],
        executor=SqlAlchemyQueryExecutor(SessionLocal),
    )
    controller.mount(url_params=request.query_params)
    await controller.wait_idle()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Sequence

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import Select, select

from .domain.fields import FieldConfig, PageSizeConfig, resolve_field_configs
from .domain.messages import (
    BulkActionOutcome,
    ChangeFilters,
    Message,
    Refresh,
    SelectionChange,
    UpdateItem,
    UpdateItems,
    UpdateItemIfVisible,
    UpdateItemsIfVisible,
)
from .domain.models import (
    BulkActionResult,
    FilterValue,
    KeysetPagination,
    OffsetPagination,
    Page,
    PaginationMode,
    PaginationState,
    SelectionState,
    SortKey,
    SortMode,
    ViewState,
    build_error_page_info,
)
from .domain.ports import (
    BulkActionExecutor,
    CollectionObserver,
    NullObserver,
    QueryExecutor,
    TypeInferrer,
)
from .domain.sorting import toggle_sort_from_query, toggle_sort_with_cycle
from .errors import ConfigurationError, UnknownFieldError
from .executors.bulk import normalize_result, scope_to_ids
from .filters.base import clean_string
from .filters.forms import params_to_filters
from .filters.registry import FilterRegistry, default_registry
from .query.assembler import QueryAssembler, SearchFn
from .query.columns import column_for, extract_query_sorts, primary_entity
from .query.keyset import column_python_type
from .settings import settings
from .url_state import UrlStateCodec

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def row_id(row: Any, id_field: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(id_field)
    return getattr(row, id_field, None)


def _identity(value: Any) -> Any:
    """Stable identity for actors/tenants: their ``id`` when they have one."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        return value.get("id", tuple(sorted(map(str, value.items()))))
    ident = getattr(value, "id", None)
    return ident if ident is not None else value


@dataclass(frozen=True)
class ControllerSnapshot:
    """Read-only copy of the controller's state for hosts and tests."""

    view_state: ViewState
    loading: bool
    error: str | None
    rows: tuple[Any, ...]
    page: Page | None
    user_has_interacted: bool
    first_cursor: str | None
    last_cursor: str | None

    @property
    def has_error(self) -> bool:
        return self.error is not None


class CollectionController:
    """Coordinates filters, sorting, pagination, selection and bulk actions."""

    def __init__(
        self,
        statement: Select,
        fields: Sequence[FieldConfig],
        executor: QueryExecutor,
        *,
        registry: FilterRegistry | None = None,
        bulk_executor: BulkActionExecutor | None = None,
        observer: CollectionObserver | None = None,
        pagination_mode: PaginationMode | str = PaginationMode.OFFSET,
        page_size: int | Mapping[str, Any] | PageSizeConfig | None = None,
        id_field: str = "id",
        sort_mode: SortMode | str | None = None,
        actor: Any = None,
        tenant: Any = None,
        search_fn: SearchFn | None = None,
        type_inferrer: TypeInferrer | None = None,
    ) -> None:
        self._entity = primary_entity(statement)
        try:
            self._id_column = column_for(self._entity, id_field)
        except UnknownFieldError as exc:
            raise ConfigurationError(f"id_field {id_field!r} is not a column: {exc}") from exc

        self.registry = registry or default_registry()
        self.fields = resolve_field_configs(fields, type_inferrer, self._entity)
        self._fields_by_name = {fc.field: fc for fc in self.fields}
        self.pagination_mode = PaginationMode(pagination_mode)
        self.sort_mode = SortMode(sort_mode or settings.default_sort_mode)
        self.page_size_config = (
            page_size
            if isinstance(page_size, PageSizeConfig)
            else PageSizeConfig.parse(
                page_size, settings.default_page_size, settings.page_size_option_list
            )
        )
        self.id_field = id_field

        self.executor = executor
        self.bulk_executor = bulk_executor
        self.observer = observer or NullObserver()
        self.assembler = QueryAssembler(self.fields, self.registry, search_fn)
        self.codec = UrlStateCodec(
            self.fields,
            self.registry,
            default_page_size=self.page_size_config.default,
            pagination_mode=self.pagination_mode,
        )

        self._statement = statement
        self._statement_version = 0
        self._actor = actor
        self._tenant = tenant

        # View state
        self._filters: dict[str, FilterValue] = {}
        self._sort: tuple[SortKey, ...] = ()
        self._search = ""
        self._page = 1
        self._page_size = self.page_size_config.selected
        self._after: str | None = None
        self._before: str | None = None
        self._selected: set[str] = set()
        self._user_has_interacted = False
        self._sort_from_query = False
        self._host_params: dict[str, Any] = {}

        # Load status
        self._loading = False
        self._error: str | None = None
        self._rows: list[Any] = []
        self._result: Page | None = None
        self._first_cursor: str | None = None
        self._last_cursor: str | None = None

        self._generation = 0
        self._task: asyncio.Task | None = None
        self._mounted = False
        self._unmounted = False

    # ── Read access ─────────────────────────────────────────────────────

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def rows(self) -> tuple[Any, ...]:
        return tuple(self._rows)

    @property
    def page(self) -> Page | None:
        return self._result

    @property
    def selected_ids(self) -> frozenset[str]:
        return frozenset(self._selected)

    @property
    def user_has_interacted(self) -> bool:
        return self._user_has_interacted

    @property
    def view_state(self) -> ViewState:
        return ViewState(
            filters=dict(self._filters),
            sort=self._sort,
            pagination=self._pagination(),
            search_term=self._search,
            selection=SelectionState(ids=frozenset(self._selected), id_field=self.id_field),
        )

    def snapshot(self) -> ControllerSnapshot:
        return ControllerSnapshot(
            view_state=self.view_state,
            loading=self._loading,
            error=self._error,
            rows=tuple(self._rows),
            page=self._result,
            user_has_interacted=self._user_has_interacted,
            first_cursor=self._first_cursor,
            last_cursor=self._last_cursor,
        )

    def url_params(self) -> dict[str, Any]:
        """Host parameters with this view's managed keys replaced."""
        state = self.view_state
        if self._sort_from_query and not self._user_has_interacted:
            # The statement's own ordering is implied, not carried in the URL.
            state = replace(state, sort=())
        return self.codec.merge_params(self._host_params, state)

    def visible_ids(self) -> list[Any]:
        return [row_id(r, self.id_field) for r in self._rows]

    # ── Lifecycle ───────────────────────────────────────────────────────

    def mount(self, url_params: Mapping[str, Any] | None = None) -> None:
        """Adopt the query's default ordering, apply *url_params*, and load."""
        sortable = [fc.field for fc in self.fields if fc.sortable]
        self._sort = extract_query_sorts(self._statement, sortable)
        self._sort_from_query = bool(self._sort)
        if url_params is not None:
            self._apply_url_params(url_params)
        self._mounted = True
        self._reload()

    def update_props(
        self,
        *,
        statement: Select = _UNSET,
        actor: Any = _UNSET,
        tenant: Any = _UNSET,
        url_params: Mapping[str, Any] | None = None,
        reload: bool = False,
    ) -> None:
        """Apply host-provided props; reload when data-relevant state changed."""
        if not self._mounted:
            if statement is not _UNSET:
                self._statement = statement
            if actor is not _UNSET:
                self._actor = actor
            if tenant is not _UNSET:
                self._tenant = tenant
            self.mount(url_params)
            return

        before = self._data_state()
        if statement is not _UNSET and statement is not self._statement:
            self._statement = statement
            self._statement_version += 1
        if actor is not _UNSET:
            self._actor = actor
        if tenant is not _UNSET:
            self._tenant = tenant
        if url_params is not None:
            self._apply_url_params(url_params)

        if reload or self._data_state() != before:
            self._reload()

    def unmount(self) -> None:
        """Stop applying completions; in-flight queries are left to finish."""
        self._unmounted = True

    async def wait_idle(self) -> None:
        """Wait until no load task is pending."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    # ── Filters and search ──────────────────────────────────────────────

    def change_filters(self, params: Mapping[str, Any]) -> None:
        """Handle a submitted filter form (may include ``search``)."""
        filters = params_to_filters(params, self.fields, self.registry)
        search = self._search
        if "search" in params:
            search = clean_string(params.get("search")) or ""

        if filters != self._filters or search != self._search:
            self._filters = filters
            self._search = search
            self._reset_position()
            self._reload()
        self._notify_state()

    def set_search(self, term: str) -> None:
        term = clean_string(term) or ""
        if term == self._search:
            return
        self._search = term
        self._reset_position()
        self._reload()
        self._notify_state()

    def clear_search(self) -> None:
        self.set_search("")

    def clear_filter(self, key: str) -> None:
        """Remove one filter; clearing an absent key changes nothing."""
        if key == "search":
            self.clear_search()
            return
        if key not in self._filters:
            return
        del self._filters[key]
        self._reset_position()
        self._reload()
        self._notify_state()

    def clear_all_filters(self) -> None:
        if not self._filters:
            return
        self._filters = {}
        self._reset_position()
        self._reload()
        self._notify_state()

    # ── Sorting ─────────────────────────────────────────────────────────

    def toggle_sort(self, field: str) -> None:
        fc = self._fields_by_name.get(field)
        if fc is None or not fc.sortable:
            logger.warning("Ignoring sort toggle on non-sortable field %s", field)
            return

        if self._sort_from_query and not self._user_has_interacted:
            toggle = toggle_sort_from_query
        else:
            toggle = toggle_sort_with_cycle
        self._sort = toggle(self._sort, field, fc.effective_sort_cycle, self.sort_mode)
        self._user_has_interacted = True
        self._sort_from_query = False
        self._reset_position()
        self._reload()
        self._notify_state()

    # ── Pagination ──────────────────────────────────────────────────────

    def goto_page(self, page: Any) -> None:
        if self.pagination_mode != PaginationMode.OFFSET:
            logger.debug("goto_page ignored in keyset mode")
            return
        number = UrlStateCodec.decode_page(page)
        if number == self._page:
            return
        self._page = number
        self._reload()
        self._notify_state()

    def next_page(self) -> None:
        if self.pagination_mode != PaginationMode.KEYSET:
            logger.debug("next_page ignored in offset mode")
            return
        if not self._last_cursor:
            return
        self._after, self._before = self._last_cursor, None
        self._reload()
        self._notify_state()

    def prev_page(self) -> None:
        if self.pagination_mode != PaginationMode.KEYSET:
            logger.debug("prev_page ignored in offset mode")
            return
        if not self._first_cursor:
            return
        self._before, self._after = self._first_cursor, None
        self._reload()
        self._notify_state()

    def change_page_size(self, size: Any) -> None:
        try:
            new_size = int(str(size).strip())
        except (TypeError, ValueError):
            logger.debug("Ignoring invalid page size %r", size)
            return
        if new_size < 1:
            logger.debug("Ignoring invalid page size %r", size)
            return
        self._page_size = new_size
        self._reset_position()
        self._reload()
        self._notify_state()

    # ── Selection ───────────────────────────────────────────────────────

    def toggle_select(self, item_id: Any) -> None:
        key = str(item_id)
        if key in self._selected:
            self._selected.discard(key)
        else:
            self._selected.add(key)
        self._notify_selection("toggle")

    def toggle_select_all_page(self) -> None:
        page_ids = {str(i) for i in self.visible_ids() if i is not None}
        if page_ids and page_ids <= self._selected:
            self._selected -= page_ids
        else:
            self._selected |= page_ids
        self._notify_selection("select_all")

    def clear_selection(self) -> None:
        self._selected.clear()
        self._notify_selection("clear")

    # ── Bulk actions ────────────────────────────────────────────────────

    async def execute_bulk_action(
        self,
        action: Any,
        action_opts: Mapping[str, Any] | None = None,
    ) -> BulkActionResult | None:
        """Run *action* against the selected rows; None when nothing is selected."""
        if not self._selected:
            return None
        ids = sorted(self._selected)

        if self.bulk_executor is None:
            result = BulkActionResult.failed("no bulk action executor configured")
        else:
            scoped = scope_to_ids(select(self._entity), self._id_column, self._coerce_ids(ids))
            options: dict[str, Any] = {}
            if self._actor is not None:
                options["actor"] = self._actor
            if self._tenant is not None:
                options["tenant"] = self._tenant
            if action_opts:
                options["bulk_options"] = dict(action_opts)
            try:
                result = normalize_result(
                    await self.bulk_executor.execute(action, scoped, options)
                )
            except Exception as exc:
                result = BulkActionResult.failed(str(exc) or type(exc).__name__)

        if self._unmounted:
            return result

        outcome = BulkActionOutcome(action=action, count=len(ids), result=result)
        if result.success:
            self._selected.clear()
            self._notify_selection("clear")
            self.observer.bulk_action_succeeded(outcome)
            self._reload()
        else:
            logger.error("Bulk action %r failed on %d rows: %s", action, len(ids), result.error)
            self.observer.bulk_action_failed(outcome)
        return result

    # ── Messages ────────────────────────────────────────────────────────

    def refresh(self) -> None:
        self._reload()

    def send(self, message: Message) -> None:
        """Process a host command on the controller's event loop."""
        if isinstance(message, Refresh):
            self.refresh()
        elif isinstance(message, ChangeFilters):
            self.change_filters(message.params)
        elif isinstance(message, UpdateItem):
            self._patch_rows({message.id}, message.fn)
        elif isinstance(message, UpdateItems):
            self._patch_rows(set(message.ids), message.fn)
        elif isinstance(message, UpdateItemIfVisible):
            self._patch_if_visible(message)
        elif isinstance(message, UpdateItemsIfVisible):
            self._patch_many_if_visible(message)
        else:
            logger.warning("Ignoring unknown message %r", message)

    def _is_row(self, item: Any) -> bool:
        return isinstance(item, Mapping) or hasattr(item, self.id_field)

    def _patch_rows(self, ids: set[Any], fn: Any) -> None:
        self._rows = [fn(r) if row_id(r, self.id_field) in ids else r for r in self._rows]

    def _patch_if_visible(self, message: UpdateItemIfVisible) -> None:
        item = message.item
        fresh = item if self._is_row(item) else None
        target = row_id(item, self.id_field) if fresh is not None else item
        for index, row in enumerate(self._rows):
            if row_id(row, self.id_field) == target:
                self._rows[index] = message.fn(fresh if fresh is not None else row)
                return

    def _patch_many_if_visible(self, message: UpdateItemsIfVisible) -> None:
        fresh_by_id = {
            row_id(i, self.id_field): i for i in message.items if self._is_row(i)
        }
        wanted = set(fresh_by_id) | {i for i in message.items if not self._is_row(i)}
        visible = [r for r in self._rows if row_id(r, self.id_field) in wanted]
        if not visible:
            return
        inputs = [fresh_by_id.get(row_id(r, self.id_field), r) for r in visible]
        updated = message.fn(inputs)
        if isinstance(updated, Mapping):
            updated_by_id = dict(updated)
        else:
            updated_by_id = {row_id(r, self.id_field): r for r in updated}
        self._rows = [updated_by_id.get(row_id(r, self.id_field), r) for r in self._rows]

    # ── Internals ───────────────────────────────────────────────────────

    def _pagination(self) -> PaginationState:
        if self.pagination_mode == PaginationMode.KEYSET:
            return KeysetPagination(page_size=self._page_size, after=self._after, before=self._before)
        return OffsetPagination(page=self._page, page_size=self._page_size)

    def _reset_position(self) -> None:
        self._page = 1
        self._after = None
        self._before = None

    def _data_state(self) -> tuple:
        return (
            tuple(sorted(self._filters.items())),
            self._sort,
            self._page,
            self._page_size,
            self._search,
            self._statement_version,
            self._after,
            self._before,
            _identity(self._actor),
            _identity(self._tenant),
        )

    def _apply_url_params(self, params: Mapping[str, Any]) -> None:
        self._host_params = dict(params)
        decoded = self.codec.decode(params)
        self._filters = decoded.filters
        self._search = decoded.search
        self._page = decoded.page
        if decoded.page_size_given:
            self._page_size = decoded.page_size
        if self.pagination_mode == PaginationMode.KEYSET:
            self._after, self._before = decoded.after, decoded.before

        if decoded.sort:
            self._sort = decoded.sort
            self._sort_from_query = False
        elif self._user_has_interacted:
            self._sort = ()

    def _coerce_ids(self, ids: Iterable[str]) -> list[Any]:
        python_type = column_python_type(self._id_column)
        if python_type is None or python_type is str:
            return list(ids)
        adapter = TypeAdapter(python_type)
        coerced = []
        for raw in ids:
            try:
                coerced.append(adapter.validate_python(raw))
            except ValidationError:
                logger.debug("Dropping selected id %r: not a %s", raw, python_type.__name__)
        return coerced

    def _reload(self) -> None:
        if self._unmounted:
            return
        self._generation += 1
        generation = self._generation
        self._loading = True
        try:
            query = self.assembler.assemble(
                self._statement,
                self._filters,
                self._sort,
                self._pagination(),
                self._search,
            )
        except Exception as exc:
            self._apply_failure(exc)
            return
        self._task = asyncio.get_running_loop().create_task(self._load(generation, query))

    async def _load(self, generation: int, query: Any) -> None:
        try:
            result = await self.executor.execute(query)
        except Exception as exc:
            result = exc

        if generation != self._generation or self._unmounted:
            logger.debug("Discarding stale load result (generation %d)", generation)
            return
        if isinstance(result, BaseException) or not isinstance(result, Page):
            self._apply_failure(result)
        else:
            self._apply_success(result)

    def _apply_success(self, page: Page) -> None:
        self._loading = False
        self._error = None
        self._rows = list(page.rows)
        self._result = page
        if self.pagination_mode == PaginationMode.KEYSET:
            self._first_cursor = page.first_cursor
            self._last_cursor = page.last_cursor
        self.observer.data_loaded(page)

    def _apply_failure(self, error: Any) -> None:
        logger.error(
            "Collection load failed (filters=%s sort=%s page=%s search=%r): %s",
            list(self._filters),
            self._sort,
            self._pagination(),
            self._search,
            error,
        )
        self._loading = False
        self._error = str(error) or type(error).__name__
        self._rows = []
        self._result = build_error_page_info(self._page_size)
        self._first_cursor = None
        self._last_cursor = None
        self.observer.load_failed(error)

    def _notify_state(self) -> None:
        self.observer.state_changed(self.url_params())

    def _notify_selection(self, action: str) -> None:
        self.observer.selection_changed(
            SelectionChange(selected_ids=frozenset(self._selected), action=action)
        )


__all__ = ["CollectionController", "ControllerSnapshot", "row_id"]
