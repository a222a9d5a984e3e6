"""Unit tests for filter type handlers and the registry."""

from __future__ import annotations

import logging

import pytest
from sqlalchemy import select

from collection_view.domain.fields import FieldConfig
from collection_view.domain.models import DateRange, FilterValue, NumberRange
from collection_view.errors import ConfigurationError
from collection_view.filters.base import FilterType
from collection_view.filters.boolean import BooleanFilter
from collection_view.filters.checkbox import CheckboxFilter
from collection_view.filters.date_range import DateRangeFilter
from collection_view.filters.multi_select import MultiSelectFilter
from collection_view.filters.number_range import NumberRangeFilter
from collection_view.filters.registry import FilterRegistry, default_registry
from collection_view.filters.select import SelectFilter
from collection_view.filters.text import TextFilter
from tests.conftest import Post


def _field(name: str = "f", filter_type: str = "text", **options) -> FieldConfig:
    return FieldConfig(name, filterable=True, filter_type=filter_type, filter_options=options)


class TestTextFilter:
    def test_trims_and_defaults_to_contains(self):
        value = TextFilter().process("  ann  ", _field())
        assert value == FilterValue(type="text", value="ann", operator="contains")

    @pytest.mark.parametrize("raw", ["", "   ", None, ["x"], {"a": 1}])
    def test_blank_or_malformed_input_is_no_filter(self, raw):
        assert TextFilter().process(raw, _field()) is None

    def test_operator_and_case_sensitivity_from_options(self):
        value = TextFilter().process("Ann", _field(operator="starts_with", case_sensitive=True))
        assert value.operator == "starts_with"
        assert value.case_sensitive is True

    def test_unknown_operator_falls_back_to_contains(self):
        value = TextFilter().process("ann", _field(operator="regex"))
        assert value.operator == "contains"

    def test_validate(self):
        handler = TextFilter()
        assert handler.validate(FilterValue("text", "a", "equals"))
        assert not handler.validate(FilterValue("text", "", "equals"))
        assert not handler.validate(FilterValue("text", "a", "between"))

    @pytest.mark.parametrize(
        "operator,term,expected",
        [
            ("contains", "sql", [1, 2]),
            ("equals", "python tips", [3]),
            ("starts_with", "async", [4]),
            ("ends_with", "Python", [4]),
            ("not_contains", "sql", [3, 4, 5]),
            ("not_equals", "intro to sql", [2, 3, 4, 5]),
        ],
    )
    def test_predicates(self, run, operator, term, expected):
        value = FilterValue("text", term, operator)
        stmt = TextFilter().build_predicate(select(Post).order_by(Post.id), "title", value)
        assert run(stmt) == expected

    def test_like_wildcards_are_escaped(self, run):
        value = FilterValue("text", "100%", "contains")
        stmt = TextFilter().build_predicate(select(Post).order_by(Post.id), "title", value)
        assert run(stmt) == [5]


class TestSelectFilter:
    @pytest.mark.parametrize("raw", ["", "all", "  ", None])
    def test_blank_and_all_mean_no_filter(self, raw):
        assert SelectFilter().process(raw, _field(filter_type="select")) is None

    def test_value(self, run):
        value = SelectFilter().process(" draft ", _field(filter_type="select"))
        assert value == FilterValue("select", "draft", "equals")
        stmt = SelectFilter().build_predicate(select(Post), "status", value)
        assert run(stmt) == [2]


class TestMultiSelectFilter:
    def test_accepts_list_or_single_string_and_drops_blanks(self):
        handler = MultiSelectFilter()
        assert handler.process(["a", "", " b "], _field()).value == ("a", "b")
        assert handler.process("a", _field()).value == ("a",)

    @pytest.mark.parametrize("raw", [[], ["", " "], None, 5])
    def test_empty_is_no_filter(self, raw):
        assert MultiSelectFilter().process(raw, _field()) is None

    def test_in_operator(self, run):
        value = MultiSelectFilter().process(["draft", "archived"], _field())
        assert value.operator == "in"
        stmt = MultiSelectFilter().build_predicate(select(Post).order_by(Post.id), "status", value)
        assert run(stmt) == [2, 4]

    def test_all_mode_on_one_to_many_path(self, run):
        value = MultiSelectFilter().process(["great", "thanks"], _field(match_mode="all"))
        assert value.operator == "all"
        stmt = MultiSelectFilter().build_predicate(
            select(Post).order_by(Post.id), "comments.body", value
        )
        assert run(stmt) == [1]

    def test_url_split_and_encode(self):
        handler = MultiSelectFilter()
        assert handler.split_url_value("a, b,,c") == ["a", "b", "c"]
        assert handler.encode(FilterValue("multi_select", ("a", "b"), "in")) == "a,b"


class TestBooleanFilter:
    @pytest.mark.parametrize("raw,expected", [("true", True), ("false", False), ("TRUE", True)])
    def test_parses(self, raw, expected):
        value = BooleanFilter().process(raw, _field(filter_type="boolean"))
        assert value == FilterValue("boolean", expected, "equals")

    @pytest.mark.parametrize("raw", ["", "all", "yes", None])
    def test_anything_else_is_no_filter(self, raw):
        assert BooleanFilter().process(raw, _field(filter_type="boolean")) is None

    def test_false_is_not_empty(self):
        assert not BooleanFilter().is_empty(FilterValue("boolean", False, "equals"))
        assert BooleanFilter().is_empty("all")

    def test_predicate(self, run):
        stmt = BooleanFilter().build_predicate(
            select(Post).order_by(Post.id), "published", FilterValue("boolean", False, "equals")
        )
        assert run(stmt) == [2, 4]


class TestCheckboxFilter:
    def test_matches_configured_value_only(self):
        handler = CheckboxFilter()
        assert handler.process("true", _field(filter_type="checkbox")).value is True
        assert handler.process("false", _field(filter_type="checkbox")) is None

    def test_custom_value(self, run):
        field = _field(filter_type="checkbox", value="archived")
        value = CheckboxFilter().process("archived", field)
        assert value == FilterValue("checkbox", "archived", "equals")
        stmt = CheckboxFilter().build_predicate(select(Post), "status", value)
        assert run(stmt) == [4]

    def test_encode_lowercases_booleans(self):
        assert CheckboxFilter().encode(FilterValue("checkbox", True, "equals")) == "true"


class TestDateRangeFilter:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("2024-01-01,2024-01-31", DateRange("2024-01-01", "2024-01-31")),
            ("2024-01-01", DateRange("2024-01-01", "")),
            (",2024-01-31", DateRange("", "2024-01-31")),
            ({"from": "2024-01-01", "to": ""}, DateRange("2024-01-01", "")),
        ],
    )
    def test_process_shapes(self, raw, expected):
        value = DateRangeFilter().process(raw, _field(filter_type="date_range"))
        assert value == FilterValue("date_range", expected, "between")

    @pytest.mark.parametrize("raw", [",", "", {"from": "", "to": ""}, 42])
    def test_empty(self, raw):
        assert DateRangeFilter().process(raw, _field(filter_type="date_range")) is None

    def test_validate(self):
        handler = DateRangeFilter()
        assert handler.validate(FilterValue("date_range", DateRange("2024-01-01", ""), "between"))
        assert handler.validate(
            FilterValue("date_range", DateRange("2024-01-01T10:00:00", ""), "between")
        )
        assert not handler.validate(FilterValue("date_range", DateRange("yesterday", ""), "between"))

    def test_to_date_covers_whole_day_on_datetime_column(self, run):
        # Post 5 was created at 23:30 on 2024-03-01.
        value = FilterValue("date_range", DateRange("2024-03-01", "2024-03-01"), "between")
        stmt = DateRangeFilter().build_predicate(select(Post), "created_at", value)
        assert run(stmt) == [5]

    def test_date_column(self, run):
        value = FilterValue("date_range", DateRange("2024-02-01", ""), "between")
        stmt = DateRangeFilter().build_predicate(select(Post).order_by(Post.id), "published_on", value)
        assert run(stmt) == [3, 4, 5]


class TestNumberRangeFilter:
    def test_keeps_bounds_as_strings(self):
        value = NumberRangeFilter().process({"min": " 18 ", "max": ""}, _field())
        assert value.value == NumberRange(min="18", max="")

    def test_validate(self):
        handler = NumberRangeFilter()
        assert handler.validate(FilterValue("number_range", NumberRange("1.5", ""), "between"))
        assert not handler.validate(FilterValue("number_range", NumberRange("abc", ""), "between"))
        assert not handler.validate(FilterValue("number_range", NumberRange("", ""), "between"))

    def test_predicate_parses_int_then_float(self, run):
        value = FilterValue("number_range", NumberRange("40", "120.5"), "between")
        stmt = NumberRangeFilter().build_predicate(select(Post).order_by(Post.id), "views", value)
        assert run(stmt) == [1, 2, 4]

    def test_malformed_bound_is_dropped(self, run):
        value = FilterValue("number_range", NumberRange("abc", "50"), "between")
        stmt = NumberRangeFilter().build_predicate(select(Post).order_by(Post.id), "views", value)
        assert run(stmt) == [2, 5]

    def test_encode(self):
        value = FilterValue("number_range", NumberRange("18", ""), "between")
        assert NumberRangeFilter().encode(value) == "18,"


class TestFilterRegistry:
    def test_builtins(self):
        registry = default_registry()
        assert set(registry.filter_types()) >= {
            "text", "select", "multi_select", "multi_checkboxes",
            "boolean", "checkbox", "date_range", "number_range",
        }
        assert registry.default_options("text")["operator"] == "contains"
        assert registry.default_options("nope") == {}

    def test_builtin_cannot_be_overridden(self):
        with pytest.raises(ConfigurationError):
            FilterRegistry().register("text", TextFilter())

    def test_duplicate_custom_registration(self):
        registry = FilterRegistry()
        registry.register("slider", None)
        with pytest.raises(ConfigurationError):
            registry.register("slider", None)

    def test_custom_without_handler_falls_back_to_text(self, caplog):
        registry = FilterRegistry()
        registry.register("slider", None)
        with caplog.at_level(logging.WARNING):
            handler = registry.resolve("slider")
        assert isinstance(handler, TextFilter)
        assert "no handler" in caplog.text

    def test_unknown_resolves_to_none(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert FilterRegistry().resolve("mystery") is None
        assert "Unknown filter type" in caplog.text

    def test_custom_handler(self):
        class UpperFilter(FilterType):
            tag = "upper"

            def process(self, raw, field):
                return FilterValue(self.tag, str(raw).upper(), "equals") if raw else None

            def validate(self, value):
                return True

            def predicate(self, column, value):
                return column == value.value

        registry = FilterRegistry({"upper": UpperFilter()})
        assert registry.is_registered("upper")
        assert not registry.is_builtin("upper")
        assert registry.resolve("upper").process("x", _field()).value == "X"

    def test_unregister(self):
        registry = FilterRegistry()
        registry.register("slider", None)
        registry.unregister("slider")
        assert not registry.is_registered("slider")
        registry.register("slider", TextFilter())
        assert registry.get("slider") is not None
