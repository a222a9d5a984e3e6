"""Tests for the FastAPI collection endpoint."""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from sqlalchemy import select

from collection_view.api.router import CollectionSource, build_collection_router
from collection_view.domain.fields import FieldConfig
from collection_view.domain.models import PaginationMode
from collection_view.executors.sql import SqlAlchemyQueryExecutor
from tests.conftest import Post
from tests.fakes import StaticExecutor

FIELDS = [
    FieldConfig("id"),
    FieldConfig("title", filterable=True, searchable=True),
    FieldConfig("status", filterable=True, filter_type="select"),
    FieldConfig("views", filterable=True, filter_type="number_range"),
]


def _serialize(post):
    return {"id": post.id, "title": post.title}


def _app(executor, **kwargs) -> FastAPI:
    source = CollectionSource(
        statement=select(Post).order_by(Post.id),
        fields=FIELDS,
        executor=executor,
        serialize=_serialize,
        **kwargs,
    )
    app = FastAPI()
    app.include_router(build_collection_router(source), prefix="/posts")
    return app


async def _client(app):
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


@pytest_asyncio.fixture
async def client(seeded):
    app = _app(SqlAlchemyQueryExecutor(seeded))
    async with await _client(app) as c:
        yield c


@pytest_asyncio.fixture
async def keyset_client(seeded):
    app = _app(SqlAlchemyQueryExecutor(seeded), pagination_mode=PaginationMode.KEYSET)
    async with await _client(app) as c:
        yield c


@pytest.mark.asyncio
class TestCollectionEndpoint:
    async def test_default_page(self, client):
        resp = await client.get("/posts")
        assert resp.status_code == 200
        body = resp.json()
        assert [r["id"] for r in body["rows"]] == [1, 2, 3, 4, 5]
        assert body["page_info"]["total_count"] == 5
        assert body["page_info"]["current_page"] == 1
        assert body["url_params"] == {}
        assert body["sort"] == "id"

    async def test_filters_sort_and_paging(self, client):
        resp = await client.get(
            "/posts", params={"status": "published", "sort": "-views", "page_size": "2", "utm": "x"}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert [r["id"] for r in body["rows"]] == [3, 1]
        info = body["page_info"]
        assert (info["total_count"], info["total_pages"]) == (3, 2)
        assert info["has_next"] and not info["has_prev"]
        assert body["url_params"] == {"status": "published", "sort": "-views", "page_size": "2"}
        assert body["sort"] == "-views"

    async def test_range_and_search(self, client):
        resp = await client.get("/posts", params={"views": "50,", "search": "sql"})
        assert [r["id"] for r in resp.json()["rows"]] == [1]

    async def test_malformed_input_degrades(self, client):
        resp = await client.get("/posts", params={"page": "abc", "sort": "bogus", "views": "x,y"})
        assert resp.status_code == 200
        assert len(resp.json()["rows"]) == 5

    async def test_too_many_params(self, client):
        resp = await client.get("/posts", params={f"p{i}": "1" for i in range(51)})
        assert resp.status_code == 400
        assert "too many" in resp.json()["detail"]

    async def test_page_size_limit(self, client):
        resp = await client.get("/posts", params={"page_size": "500"})
        assert resp.status_code == 400

    async def test_executor_failure(self):
        app = _app(StaticExecutor(error=RuntimeError("db down")))
        async with await _client(app) as c:
            resp = await c.get("/posts")
        assert resp.status_code == 500
        assert "db down" in resp.json()["detail"]

    async def test_keyset_paging(self, keyset_client):
        first = (await keyset_client.get("/posts", params={"page_size": "2"})).json()
        assert [r["id"] for r in first["rows"]] == [1, 2]
        assert first["page_info"]["total_count"] is None
        cursor = first["page_info"]["last_cursor"]

        second = (
            await keyset_client.get("/posts", params={"page_size": "2", "after": cursor})
        ).json()
        assert [r["id"] for r in second["rows"]] == [3, 4]
        assert second["page_info"]["has_prev"]
        assert second["url_params"] == {"page_size": "2", "after": cursor}
