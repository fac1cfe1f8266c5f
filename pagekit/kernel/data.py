"""
PageKit Kernel — Data Resolution

Pure functions that turn widget settings plus whatever data is at hand
(a fetched payload, the filter context, inline static data) into the rows
and scalars the renderer shows. No IO here; fetching lives in datasource.py.

Resolution order for a data widget:
  1. settings.dataUrl set        → rows come from the fetched payload
  2. settings.useFilterResult    → value comes from filterResults[filterLabel]
  3. otherwise                   → inline static data in settings
"""

from __future__ import annotations

import math
from typing import Any

from pagekit.kernel.types import AGGREGATIONS, ROW_WRAPPER_KEYS, is_empty_value

SCALAR_TYPES = (str, int, float, bool)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize_rows(payload: Any) -> list[Any]:
    """
    Coerce a decoded response body into a list of rows.

    Arrays are used as is. Objects are searched for the first wrapper key
    (data, items, results, records, rows) holding an array; failing that the
    object itself becomes the single row. Scalars and null yield no rows.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ROW_WRAPPER_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
        return [payload]
    return []


def is_label_value_rows(rows: list[Any]) -> bool:
    """
    True when rows look like a metric list: more than one row and every row
    has a string `label` and a scalar `value`.
    """
    if len(rows) < 2:
        return False
    for row in rows:
        if not isinstance(row, dict):
            return False
        if not isinstance(row.get("label"), str):
            return False
        if "value" not in row:
            return False
        value = row["value"]
        if value is not None and not isinstance(value, SCALAR_TYPES):
            return False
    return True


def extract_fields(rows: list[Any]) -> list[str]:
    """
    Field names with primitive values, in first-seen order across rows.
    Feeds the editor's "pick a field" control.
    """
    fields: list[str] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        for key, value in row.items():
            if key in fields:
                continue
            if value is None or isinstance(value, SCALAR_TYPES):
                fields.append(key)
    return fields


def describe_source(payload: Any) -> dict[str, Any]:
    """
    Summarize a sample payload for the editor.

    Returns {"shape": "metrics"|"rows"|"empty", "fields": [...], "metrics": [...]}.
    For a label/value collection the metrics are the labels and the field
    picker is replaced by a metric picker.
    """
    rows = normalize_rows(payload)
    if not rows:
        return {"shape": "empty", "fields": [], "metrics": []}
    if is_label_value_rows(rows):
        return {
            "shape": "metrics",
            "fields": ["label", "value"],
            "metrics": [row["label"] for row in rows],
        }
    return {"shape": "rows", "fields": extract_fields(rows), "metrics": []}


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def to_number(value: Any) -> float:
    """Numeric coercion; NaN when the value is not numeric."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return math.nan
    if value is None:
        return 0.0
    return math.nan


def aggregate(rows: list[Any], field: str | None, kind: str) -> Any:
    """
    Reduce one field across rows.

    count ignores the field. sum/avg count non-numeric values as 0.
    min/max skip NaN and return None when nothing numeric remains.
    first returns row 0's raw value.
    """
    if kind not in AGGREGATIONS:
        raise ValueError(f"Unknown aggregation: {kind}")
    if kind == "count":
        return len(rows)
    if not rows:
        return None
    if kind == "first":
        first = rows[0]
        return first.get(field) if isinstance(first, dict) and field else first

    numbers = [to_number(row.get(field) if isinstance(row, dict) else None) for row in rows]
    if kind == "sum":
        return sum(0.0 if math.isnan(n) else n for n in numbers)
    if kind == "avg":
        return sum(0.0 if math.isnan(n) else n for n in numbers) / len(numbers)

    finite = [n for n in numbers if not math.isnan(n)]
    if not finite:
        return None
    return min(finite) if kind == "min" else max(finite)


# ---------------------------------------------------------------------------
# Widget resolution
# ---------------------------------------------------------------------------


def static_rows(widget_type: str, settings: dict[str, Any]) -> list[Any]:
    """Inline data embedded in a widget's settings."""
    key = "chartData" if widget_type == "chart" else "staticData"
    data = settings.get(key)
    return data if isinstance(data, list) else []


def value_field(settings: dict[str, Any]) -> str | None:
    """The configured KPI field, by priority valueField > selectedValueField > field."""
    for key in ("valueField", "selectedValueField", "field"):
        value = settings.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def pick_filter_result(value: Any, settings: dict[str, Any]) -> Any:
    """
    A filter result may be a scalar or a list of options. For a list, pick
    entry kpiFilterOptionIndex and show its label or value per
    kpiFilterDisplayMode.
    """
    if not isinstance(value, list):
        return value
    if not value:
        return None
    try:
        index = int(settings.get("kpiFilterOptionIndex", 0))
    except (TypeError, ValueError):
        index = 0
    index = max(0, min(index, len(value) - 1))
    option = value[index]
    if isinstance(option, dict):
        mode = settings.get("kpiFilterDisplayMode", "label")
        if mode == "value":
            return option.get("value")
        return option.get("label", option.get("value"))
    return option


def resolve_kpi_value(
    settings: dict[str, Any],
    rows: list[Any] | None = None,
    filter_results: dict[str, Any] | None = None,
) -> Any:
    """
    Resolve a KPI's raw (unformatted) value.

    rows is the normalized fetched payload when the widget has a dataUrl,
    None otherwise.
    """
    if settings.get("dataUrl"):
        if rows is None:
            return None
        if is_label_value_rows(rows):
            metric = settings.get("selectedMetric")
            for row in rows:
                if row.get("label") == metric:
                    return row.get("value")
            return rows[0].get("value")
        kind = settings.get("aggregation") or "first"
        if not isinstance(kind, str) or kind not in AGGREGATIONS:
            return None
        field = value_field(settings)
        if field is None and kind != "count":
            return None
        return aggregate(rows, field, kind)

    if settings.get("useFilterResult"):
        label = settings.get("filterLabel")
        if not label or not filter_results:
            return None
        return pick_filter_result(filter_results.get(label), settings)

    return settings.get("value")


def chart_points(rows: list[Any], settings: dict[str, Any], limit: int) -> list[dict[str, Any]]:
    """
    Map rows to {label, value} pairs. Label/value rows pass through; other
    rows use labelField/valueField (or the editor's selectedLabelField/
    selectedValueField), falling back to the first two fields.
    """
    if not rows:
        return []
    if all(isinstance(r, dict) and "label" in r and "value" in r for r in rows):
        return [{"label": str(r["label"]), "value": _point_value(r["value"])} for r in rows[:limit]]

    fields = extract_fields(rows)
    label_key = _setting_str(settings, "labelField", "selectedLabelField") or (fields[0] if fields else None)
    value_key = _setting_str(settings, "valueField", "selectedValueField")
    if value_key is None:
        value_key = fields[1] if len(fields) > 1 else label_key
    points = []
    for row in rows[:limit]:
        if not isinstance(row, dict):
            continue
        points.append({"label": str(row.get(label_key, "")), "value": _point_value(row.get(value_key))})
    return points


def _setting_str(settings: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = settings.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _point_value(value: Any) -> float:
    number = to_number(value)
    return 0.0 if math.isnan(number) else number


def table_columns(settings: dict[str, Any], rows: list[Any]) -> list[dict[str, str]]:
    """
    Configured columns when any have a key; otherwise derived from the first
    row's own keys.
    """
    configured = settings.get("columns")
    cols: list[dict[str, str]] = []
    if isinstance(configured, list):
        cols = [
            {"key": c["key"], "label": c.get("label") or c["key"]}
            for c in configured
            if isinstance(c, dict) and c.get("key")
        ]
    first = rows[0] if rows else None
    if not isinstance(first, dict):
        return cols
    # configured keys that match nothing in the data are placeholders
    if cols and any(c["key"] in first for c in cols):
        return cols
    return [{"key": k, "label": k} for k in first.keys()]


def has_active_filters(filters: dict[str, Any]) -> bool:
    return any(not is_empty_value(v) for v in filters.values())
