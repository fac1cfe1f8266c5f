"""
PageKit Data — Aggregation, KPI, Chart and Table Resolution
"""

import math

import pytest

from pagekit.kernel.data import (
    aggregate,
    chart_points,
    has_active_filters,
    pick_filter_result,
    resolve_kpi_value,
    static_rows,
    table_columns,
    to_number,
)

ROWS = [{"v": 10}, {"v": 20}, {"v": 30}]


class TestAggregate:
    @pytest.mark.parametrize(
        "kind, expected",
        [("count", 3), ("sum", 60), ("avg", 20), ("min", 10), ("max", 30), ("first", 10)],
    )
    def test_kinds(self, kind, expected):
        assert aggregate(ROWS, "v", kind) == expected

    def test_sum_treats_non_numeric_as_zero(self):
        assert aggregate([{"v": "abc"}, {"v": "5"}, {"v": None}], "v", "sum") == 5

    def test_min_max_skip_non_numeric(self):
        rows = [{"v": "abc"}, {"v": 7}, {"v": 3}]
        assert aggregate(rows, "v", "min") == 3
        assert aggregate(rows, "v", "max") == 7

    def test_min_with_nothing_numeric(self):
        assert aggregate([{"v": "abc"}], "v", "min") is None

    def test_first_returns_raw_value(self):
        assert aggregate([{"v": "12"}], "v", "first") == "12"

    def test_empty_rows(self):
        assert aggregate([], "v", "count") == 0
        assert aggregate([], "v", "sum") is None

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            aggregate(ROWS, "v", "median")

    def test_to_number(self):
        assert to_number(True) == 1
        assert to_number("") == 0
        assert to_number(None) == 0
        assert math.isnan(to_number("x"))


class TestResolveKpi:
    def test_data_url_with_aggregation(self):
        settings = {"dataUrl": "https://x", "valueField": "v", "aggregation": "sum"}
        assert resolve_kpi_value(settings, ROWS) == 60

    def test_data_url_defaults_to_first(self):
        assert resolve_kpi_value({"dataUrl": "https://x", "field": "v"}, ROWS) == 10

    def test_field_priority(self):
        settings = {"dataUrl": "u", "valueField": "a", "selectedValueField": "b", "field": "c"}
        assert resolve_kpi_value(settings, [{"a": 1, "b": 2, "c": 3}]) == 1

    def test_no_field_without_count(self):
        assert resolve_kpi_value({"dataUrl": "u", "aggregation": "sum"}, ROWS) is None
        assert resolve_kpi_value({"dataUrl": "u", "aggregation": "count"}, ROWS) == 3

    def test_metric_list_uses_selected_metric(self):
        rows = [{"label": "Vendas", "value": 10}, {"label": "Lucro", "value": 4}]
        assert resolve_kpi_value({"dataUrl": "u", "selectedMetric": "Lucro"}, rows) == 4
        assert resolve_kpi_value({"dataUrl": "u", "selectedMetric": "Outro"}, rows) == 10

    def test_unknown_aggregation_has_no_value(self):
        assert resolve_kpi_value({"dataUrl": "u", "valueField": "v", "aggregation": "median"}, ROWS) is None
        assert resolve_kpi_value({"dataUrl": "u", "valueField": "v", "aggregation": ["sum"]}, ROWS) is None

    def test_not_fetched_yet(self):
        assert resolve_kpi_value({"dataUrl": "u", "field": "v"}, None) is None

    def test_filter_result(self):
        settings = {"useFilterResult": True, "filterLabel": "Total"}
        assert resolve_kpi_value(settings, None, {"Total": 99}) == 99
        assert resolve_kpi_value(settings, None, {}) is None

    def test_filter_result_option_list(self):
        options = [{"label": "3x", "value": 3}, {"label": "6x", "value": 6}]
        assert pick_filter_result(options, {"kpiFilterOptionIndex": 1}) == "6x"
        assert pick_filter_result(options, {"kpiFilterOptionIndex": 9, "kpiFilterDisplayMode": "value"}) == 6

    def test_static_value(self):
        assert resolve_kpi_value({"value": "42"}) == "42"


class TestChartAndTable:
    def test_static_rows_by_type(self):
        assert static_rows("chart", {"chartData": [1]}) == [1]
        assert static_rows("table", {"staticData": [2]}) == [2]
        assert static_rows("table", {"staticData": "x"}) == []

    def test_chart_label_value_passthrough(self):
        points = chart_points([{"label": "A", "value": "3"}], {}, 50)
        assert points == [{"label": "A", "value": 3.0}]

    def test_chart_field_mapping(self):
        rows = [{"city": "SP", "total": 5}, {"city": "RJ", "total": "x"}]
        assert chart_points(rows, {}, 50) == [{"label": "SP", "value": 5.0}, {"label": "RJ", "value": 0.0}]

    def test_chart_selected_fields(self):
        rows = [{"id": 1, "city": "SP", "total": 5}, {"id": 2, "city": "RJ", "total": 7}]
        settings = {"selectedLabelField": "city", "selectedValueField": "total"}
        assert chart_points(rows, settings, 50) == [{"label": "SP", "value": 5.0}, {"label": "RJ", "value": 7.0}]

    def test_chart_explicit_fields_win(self):
        rows = [{"city": "SP", "total": 5, "qty": 2}]
        settings = {"valueField": "qty", "selectedValueField": "total", "labelField": "city"}
        assert chart_points(rows, settings, 50) == [{"label": "SP", "value": 2.0}]

    def test_chart_limit(self):
        rows = [{"label": str(i), "value": i} for i in range(80)]
        assert len(chart_points(rows, {}, 50)) == 50

    def test_table_configured_columns(self):
        settings = {"columns": [{"key": "city", "label": "Cidade"}]}
        assert table_columns(settings, [{"city": "SP", "x": 1}]) == [{"key": "city", "label": "Cidade"}]

    def test_table_placeholder_columns_replaced(self):
        settings = {"columns": [{"key": "col1", "label": "Coluna 1"}]}
        assert table_columns(settings, [{"city": "SP"}]) == [{"key": "city", "label": "city"}]

    def test_table_no_rows_keeps_configured(self):
        settings = {"columns": [{"key": "col1", "label": "Coluna 1"}]}
        assert table_columns(settings, []) == [{"key": "col1", "label": "Coluna 1"}]

    def test_has_active_filters(self):
        assert not has_active_filters({"a": "", "b": None, "c": []})
        assert has_active_filters({"a": "", "b": "SP"})
