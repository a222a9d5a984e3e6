"""Runs assembled queries against a SQLAlchemy session.

The session work is synchronous and runs in a worker thread via
``asyncio.to_thread`` so the controller's event loop stays responsive.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.models import KeysetPagination, Page, build_page_info
from ..domain.ports import QueryExecutor
from ..errors import QueryExecutionError
from ..query.assembler import AssembledQuery
from ..query.keyset import encode_cursor

logger = logging.getLogger(__name__)

RowMapper = Callable[[Any], Any]


class SqlAlchemyQueryExecutor(QueryExecutor):
    """Execute :class:`AssembledQuery` objects with sessions from *session_factory*.

    *row_mapper* runs inside the session, so it may touch lazy-loaded
    relationships; the default returns the ORM objects themselves.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        row_mapper: RowMapper | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._row_mapper = row_mapper or (lambda row: row)

    async def execute(self, query: AssembledQuery) -> Page:
        return await asyncio.to_thread(self.execute_sync, query)

    def execute_sync(self, query: AssembledQuery) -> Page:
        try:
            with self._session_factory() as session:
                if query.keyset is not None:
                    return self._keyset_page(session, query)
                return self._offset_page(session, query)
        except SQLAlchemyError as exc:
            raise QueryExecutionError(str(exc)) from exc

    def _offset_page(self, session: Session, query: AssembledQuery) -> Page:
        pagination = query.pagination
        total = session.execute(query.count_statement).scalar_one()
        rows = tuple(self._row_mapper(r) for r in session.scalars(query.statement).all())
        return build_page_info(rows, pagination.page, pagination.page_size, total)

    def _keyset_page(self, session: Session, query: AssembledQuery) -> Page:
        plan = query.keyset
        pagination: KeysetPagination = query.pagination
        fetched = session.execute(query.statement).all()

        has_more = len(fetched) > plan.page_size
        fetched = fetched[: plan.page_size]
        if plan.reversed:
            fetched.reverse()

        rows = tuple(self._row_mapper(r[0]) for r in fetched)
        cursors = tuple(encode_cursor(tuple(r[1:])) for r in fetched)
        if plan.reversed:
            has_next, has_prev = True, has_more
        else:
            has_next, has_prev = has_more, plan.has_cursor

        return Page(
            rows=rows,
            has_next=has_next,
            has_prev=has_prev,
            page_size=pagination.page_size,
            start_index=1 if rows else 0,
            end_index=len(rows),
            cursors=cursors,
        )


__all__ = ["SqlAlchemyQueryExecutor", "RowMapper"]
