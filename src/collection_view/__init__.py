"""collection_view: filterable, sortable, paginated views over SQLAlchemy selects."""

from .controller import CollectionController, ControllerSnapshot
from .domain.fields import FieldConfig, PageSizeConfig
from .domain.messages import (
    ChangeFilters,
    Refresh,
    UpdateItem,
    UpdateItemIfVisible,
    UpdateItems,
    UpdateItemsIfVisible,
)
from .domain.models import (
    BulkActionResult,
    DateRange,
    FilterValue,
    KeysetPagination,
    NumberRange,
    OffsetPagination,
    Page,
    PaginationMode,
    SortDirection,
    SortMode,
    ViewState,
)
from .domain.ports import BulkActionExecutor, CollectionObserver, NullObserver, QueryExecutor
from .executors.bulk import BulkAction, SqlAlchemyBulkActionExecutor
from .executors.sql import SqlAlchemyQueryExecutor
from .filters.registry import FilterRegistry, default_registry
from .query.assembler import AssembledQuery, QueryAssembler
from .query.inference import SqlAlchemyTypeInferrer
from .url_state import UrlStateCodec, validate_url_params

__all__ = [
    "AssembledQuery",
    "BulkAction",
    "BulkActionExecutor",
    "BulkActionResult",
    "ChangeFilters",
    "CollectionController",
    "CollectionObserver",
    "ControllerSnapshot",
    "DateRange",
    "FieldConfig",
    "FilterRegistry",
    "FilterValue",
    "KeysetPagination",
    "NullObserver",
    "NumberRange",
    "OffsetPagination",
    "Page",
    "PageSizeConfig",
    "PaginationMode",
    "QueryAssembler",
    "QueryExecutor",
    "Refresh",
    "SortDirection",
    "SortMode",
    "SqlAlchemyBulkActionExecutor",
    "SqlAlchemyQueryExecutor",
    "SqlAlchemyTypeInferrer",
    "UpdateItem",
    "UpdateItemIfVisible",
    "UpdateItems",
    "UpdateItemsIfVisible",
    "UrlStateCodec",
    "ViewState",
    "default_registry",
    "validate_url_params",
]

__version__ = "0.1.0"
