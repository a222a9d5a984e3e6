"""Pydantic response models for the collection HTTP adapter."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..domain.models import Page


class PageInfoResponse(BaseModel):
    """Pagination metadata for one page of rows."""

    current_page: int
    total_pages: int
    total_count: Optional[int] = None
    page_size: int
    has_next: bool
    has_prev: bool
    start_index: int
    end_index: int
    first_cursor: Optional[str] = None
    last_cursor: Optional[str] = None

    @classmethod
    def from_page(cls, page: Page) -> "PageInfoResponse":
        return cls(
            current_page=page.current_page,
            total_pages=page.total_pages,
            total_count=page.total_count,
            page_size=page.page_size,
            has_next=page.has_next,
            has_prev=page.has_prev,
            start_index=page.start_index,
            end_index=page.end_index,
            first_cursor=page.first_cursor,
            last_cursor=page.last_cursor,
        )


class CollectionPageResponse(BaseModel):
    """Rows plus the canonical URL parameters that reproduce them."""

    rows: List[Dict[str, Any]]
    page_info: PageInfoResponse
    url_params: Dict[str, str]
    sort: str = ""  # effective ordering, including the default one
