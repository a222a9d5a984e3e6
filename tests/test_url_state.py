"""Unit tests for the URL state codec."""

from __future__ import annotations

import logging

import pytest

from collection_view.domain.fields import FieldConfig
from collection_view.domain.models import (
    DateRange,
    FilterValue,
    KeysetPagination,
    NumberRange,
    OffsetPagination,
    PaginationMode,
    SortDirection,
    ViewState,
)
from collection_view.filters.forms import params_to_filters
from collection_view.filters.registry import default_registry
from collection_view.url_state import (
    UrlStateCodec,
    encode_sort,
    parse_sort_token,
    validate_url_params,
)

FIELDS = [
    FieldConfig("name", filterable=True, filter_type="text"),
    FieldConfig("age", filterable=True, filter_type="number_range"),
    FieldConfig("tags", filterable=True, filter_type="multi_select"),
    FieldConfig("active", filterable=True, filter_type="boolean"),
    FieldConfig("featured", filterable=True, filter_type="checkbox"),
    FieldConfig("created", filterable=True, filter_type="date_range"),
    FieldConfig("status", filterable=True, filter_type="select"),
    FieldConfig("internal", sortable=False),
]


@pytest.fixture
def codec():
    return UrlStateCodec(FIELDS, default_page_size=25)


class TestEncode:
    def test_example_form_submission(self, codec):
        fields = FIELDS[:2]
        filters = params_to_filters(
            {"name": "ann", "age_min": "18", "age_max": ""}, fields, default_registry()
        )
        assert filters == {
            "name": FilterValue("text", "ann", "contains"),
            "age": FilterValue("number_range", NumberRange("18", ""), "between"),
        }
        assert codec.encode(ViewState(filters=filters)) == {"name": "ann", "age": "18,"}

    def test_defaults_are_omitted(self, codec):
        assert codec.encode(ViewState()) == {}

    def test_non_defaults(self, codec):
        state = ViewState(
            sort=(("name", SortDirection.ASC), ("age", SortDirection.DESC)),
            pagination=OffsetPagination(page=3, page_size=50),
            search_term="hello",
        )
        assert codec.encode(state) == {
            "sort": "name,-age",
            "page": "3",
            "page_size": "50",
            "search": "hello",
        }

    def test_keyset_emits_cursor_instead_of_page(self):
        codec = UrlStateCodec(FIELDS, default_page_size=25, pagination_mode=PaginationMode.KEYSET)
        state = ViewState(pagination=KeysetPagination(page_size=25, after="abc"))
        assert codec.encode(state) == {"after": "abc"}

    def test_type_specific_encodings(self, codec):
        state = ViewState(filters={
            "tags": FilterValue("multi_select", ("a", "b"), "in"),
            "active": FilterValue("boolean", False, "equals"),
            "featured": FilterValue("checkbox", True, "equals"),
            "created": FilterValue("date_range", DateRange("2024-01-01", "2024-02-01"), "between"),
        })
        assert codec.encode(state) == {
            "tags": "a,b",
            "active": "false",
            "featured": "true",
            "created": "2024-01-01,2024-02-01",
        }


class TestSortStrings:
    @pytest.mark.parametrize(
        "token,expected",
        [
            ("name", ("name", SortDirection.ASC)),
            ("-name", ("name", SortDirection.DESC)),
            ("++name", ("name", SortDirection.ASC_NULLS_FIRST)),
            ("+-name", ("name", SortDirection.DESC_NULLS_FIRST)),
            ("-+name", ("name", SortDirection.ASC_NULLS_LAST)),
            ("--name", ("name", SortDirection.DESC_NULLS_LAST)),
            ("", None),
            ("-", None),
        ],
    )
    def test_parse_token(self, token, expected):
        assert parse_sort_token(token) == expected

    def test_encode_all_directions(self):
        sort = [(f"f{i}", d) for i, d in enumerate(SortDirection)]
        encoded = encode_sort(sort)
        assert [parse_sort_token(t) for t in encoded.split(",")] == sort

    def test_invalid_sort_encodes_empty(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert encode_sort([("name", "sideways")]) == ""
        assert "Invalid sort" in caplog.text


class TestDecode:
    def test_unknown_and_empty_keys_are_ignored(self, codec):
        decoded = codec.decode({"name": "", "other": "x", "age": "5,10", "utm_source": "mail"})
        assert decoded.filters == {
            "age": FilterValue("number_range", NumberRange("5", "10"), "between"),
        }

    def test_multi_value_split(self, codec):
        decoded = codec.decode({"tags": "a,b"})
        assert decoded.filters["tags"].value == ("a", "b")

    def test_sort_keeps_declared_sortable_fields(self, codec):
        decoded = codec.decode({"sort": "-name,internal,,bogus,age,-name"})
        assert decoded.sort == (("name", SortDirection.DESC), ("age", SortDirection.ASC))

    @pytest.mark.parametrize("raw,page", [("2", 2), ("0", 1), ("-3", 1), ("abc", 1), (None, 1)])
    def test_page(self, codec, raw, page):
        assert codec.decode({"page": raw} if raw is not None else {}).page == page

    def test_page_size(self, codec):
        assert codec.decode({"page_size": "50"}).page_size == 50
        decoded = codec.decode({"page_size": "zero"})
        assert decoded.page_size == 25
        assert decoded.page_size_given is False

    def test_cursors_only_in_keyset_mode(self, codec):
        assert codec.decode({"after": "abc"}).after is None
        keyset = UrlStateCodec(FIELDS, pagination_mode=PaginationMode.KEYSET)
        assert keyset.decode({"after": "abc"}).after == "abc"
        assert keyset.decode({"after": ""}).after is None

    def test_process_errors_are_skipped(self, caplog):
        class Boom:
            def __init__(self, registry):
                self._registry = registry

            def resolve(self, tag):
                handler = self._registry.resolve(tag)

                class Exploding(type(handler)):
                    def process(self, raw, field):
                        raise RuntimeError("boom")

                return Exploding()

        codec = UrlStateCodec(FIELDS, registry=Boom(default_registry()))
        with caplog.at_level(logging.ERROR):
            assert codec.decode({"name": "ann"}).filters == {}
        assert "Failed to decode filter" in caplog.text


class TestRoundTrip:
    @pytest.mark.parametrize(
        "state",
        [
            ViewState(),
            ViewState(
                filters={
                    "name": FilterValue("text", "ann", "contains"),
                    "age": FilterValue("number_range", NumberRange("", "65"), "between"),
                    "tags": FilterValue("multi_select", ("x", "y"), "in"),
                    "active": FilterValue("boolean", True, "equals"),
                    "featured": FilterValue("checkbox", True, "equals"),
                    "created": FilterValue("date_range", DateRange("2024-01-01", ""), "between"),
                    "status": FilterValue("select", "open", "equals"),
                },
                sort=(("age", SortDirection.DESC_NULLS_LAST), ("name", SortDirection.ASC)),
                pagination=OffsetPagination(page=4, page_size=10),
                search_term="ann",
            ),
        ],
    )
    def test_decode_encode(self, codec, state):
        assert codec.to_view_state(codec.decode(codec.encode(state))) == state

    def test_keyset(self):
        codec = UrlStateCodec(FIELDS, default_page_size=25, pagination_mode=PaginationMode.KEYSET)
        state = ViewState(pagination=KeysetPagination(page_size=10, before="tok"))
        assert codec.to_view_state(codec.decode(codec.encode(state))) == state


class TestMergeAndValidate:
    def test_unmanaged_keys_pass_through(self, codec):
        existing = {"tab": "posts", "name": "old", "page": "9"}
        state = ViewState(filters={"name": FilterValue("text", "new", "contains")})
        assert codec.merge_params(existing, state) == {"tab": "posts", "name": "new"}

    def test_managed_keys(self, codec):
        assert codec.managed_keys >= {"page", "sort", "page_size", "search", "after", "before", "name"}
        assert "internal" not in codec.managed_keys

    def test_validate_limits(self):
        assert validate_url_params({"a": "1"}) == (True, None)
        ok, reason = validate_url_params({str(i): "x" for i in range(51)})
        assert not ok and "too many" in reason
        ok, reason = validate_url_params({"q": "x" * 1001})
        assert not ok and "'q'" in reason
