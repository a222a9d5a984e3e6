"""FastAPI router factory exposing one collection as a paginated JSON endpoint.

``GET <prefix>?name=ann&age=18,&sort=-created_at&page=2`` decodes the
query string with the URL codec, assembles and executes the query, and
returns the rows together with the canonical URL parameters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from fastapi import APIRouter, HTTPException, Request
from sqlalchemy import Select

from ..domain.fields import FieldConfig
from ..domain.models import PaginationMode
from ..domain.ports import QueryExecutor
from ..filters.registry import FilterRegistry, default_registry
from ..query.assembler import QueryAssembler, SearchFn
from ..query.columns import extract_query_sorts
from ..url_state import UrlStateCodec, encode_sort, validate_url_params
from .schemas import CollectionPageResponse, PageInfoResponse

logger = logging.getLogger(__name__)


@dataclass
class CollectionSource:
    """Everything needed to serve one collection over HTTP."""

    statement: Select
    fields: Sequence[FieldConfig]
    executor: QueryExecutor
    serialize: Callable[[Any], Mapping[str, Any]]
    pagination_mode: PaginationMode = PaginationMode.OFFSET
    default_page_size: int | None = None
    max_page_size: int = 100
    search_fn: SearchFn | None = None
    registry: FilterRegistry = field(default_factory=default_registry)


def build_collection_router(source: CollectionSource) -> APIRouter:
    router = APIRouter()
    codec = UrlStateCodec(
        source.fields,
        source.registry,
        default_page_size=source.default_page_size,
        pagination_mode=source.pagination_mode,
    )
    assembler = QueryAssembler(source.fields, source.registry, source.search_fn)
    default_sort = extract_query_sorts(
        source.statement, [fc.field for fc in source.fields if fc.sortable]
    )

    @router.get("", response_model=CollectionPageResponse)
    async def list_collection(request: Request):
        params = dict(request.query_params)
        ok, reason = validate_url_params(params)
        if not ok:
            raise HTTPException(status_code=400, detail=reason)

        decoded = codec.decode(params)
        if decoded.page_size > source.max_page_size:
            raise HTTPException(
                status_code=400,
                detail=f"page_size must be <= {source.max_page_size}",
            )
        state = codec.to_view_state(decoded)

        query = assembler.assemble(
            source.statement,
            state.filters,
            state.sort,
            state.pagination,
            state.search_term,
        )
        try:
            page = await source.executor.execute(query)
        except Exception as e:
            logger.error("Error loading collection page: %s", e, exc_info=True)
            raise HTTPException(status_code=500, detail=f"Error loading collection: {str(e)}")

        return CollectionPageResponse(
            rows=[dict(source.serialize(row)) for row in page.rows],
            page_info=PageInfoResponse.from_page(page),
            url_params=codec.encode(state),
            sort=encode_sort(state.sort or default_sort),
        )

    return router


__all__ = ["CollectionSource", "build_collection_router"]
