"""
PageKit Kernel — Document Validation

Validates a document (or a single widget's settings) before it is saved.
Validation is structural (well-formed?) not semantic (will the data URL
answer?). Returns a list of error strings; empty list = valid.

Unknown settings keys are ignored — the renderer is forward-compatible.
"""

from __future__ import annotations

from typing import Any

from pagekit.kernel.document import inner_columns
from pagekit.kernel.types import (
    AGGREGATIONS,
    CHART_TYPES,
    COLUMN_FLOWS,
    FILTER_FIELD_TYPES,
    KPI_FORMATS,
    MAX_COLUMN_WIDTH,
    MAX_FILTER_FIELDS,
    MIN_COLUMN_WIDTH,
    OPTIONS_FALLBACK_POLICIES,
    SECTION_LAYOUTS,
    SPACING_VALUES,
    VERTICAL_ALIGN_VALUES,
    WIDGET_TYPES,
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_document(document: Any) -> list[str]:
    """
    Validate a whole document tree.

    Checks:
    - shape (sections → columns → widgets are lists of objects)
    - every id is unique across the document
    - column widths are within 1..12
    - widget types are known
    - subsections are not nested inside subsections
    - per-variant settings (see validate_widget_settings)
    """
    errors: list[str] = []

    if not isinstance(document, dict):
        return ["Document must be an object"]

    sections = document.get("sections")
    if not isinstance(sections, list):
        return ["Document requires a 'sections' list"]

    seen: set[str] = set()

    def check_id(node: dict[str, Any], where: str) -> None:
        node_id = node.get("id")
        if not isinstance(node_id, str) or not node_id:
            errors.append(f"{where}: missing id")
            return
        if node_id in seen:
            errors.append(f"{where}: duplicate id '{node_id}'")
        seen.add(node_id)

    for s_idx, section in enumerate(sections):
        where = f"sections[{s_idx}]"
        if not isinstance(section, dict):
            errors.append(f"{where}: must be an object")
            continue
        check_id(section, where)
        errors.extend(f"{where}: {e}" for e in _validate_section_settings(section.get("settings", {})))

        columns = section.get("columns", [])
        if not isinstance(columns, list):
            errors.append(f"{where}: 'columns' must be a list")
            continue
        for c_idx, column in enumerate(columns):
            _validate_column(column, f"{where}.columns[{c_idx}]", check_id, errors, nested=False)

    return errors


def validate_widget_settings(widget_type: str, settings: Any) -> list[str]:
    """Validate one widget's settings for its variant."""
    if not _one_of(widget_type, WIDGET_TYPES):
        return [f"Unknown widget type: {widget_type!r}"]
    if not isinstance(settings, dict):
        return ["Settings must be an object"]
    validator = _VALIDATORS.get(widget_type)
    if validator is None:
        return []
    return validator(settings)


# ---------------------------------------------------------------------------
# Tree validators
# ---------------------------------------------------------------------------


def _validate_column(
    column: Any,
    where: str,
    check_id: Any,
    errors: list[str],
    nested: bool,
) -> None:
    if not isinstance(column, dict):
        errors.append(f"{where}: must be an object")
        return
    check_id(column, where)
    errors.extend(f"{where}: {e}" for e in _validate_column_settings(column.get("settings", {})))

    widgets = column.get("widgets", [])
    if not isinstance(widgets, list):
        errors.append(f"{where}: 'widgets' must be a list")
        return

    for w_idx, widget in enumerate(widgets):
        w_where = f"{where}.widgets[{w_idx}]"
        if not isinstance(widget, dict):
            errors.append(f"{w_where}: must be an object")
            continue
        check_id(widget, w_where)
        widget_type = widget.get("widgetType")
        if nested and widget_type == "subsection":
            errors.append(f"{w_where}: subsection cannot be nested inside a subsection")
            continue
        errors.extend(f"{w_where}: {e}" for e in validate_widget_settings(widget_type, widget.get("settings", {})))
        for i_idx, inner in enumerate(inner_columns(widget)):
            _validate_column(inner, f"{w_where}.subsectionColumns[{i_idx}]", check_id, errors, nested=True)


def _validate_section_settings(s: Any) -> list[str]:
    errors: list[str] = []
    if not isinstance(s, dict):
        return ["'settings' must be an object"]
    if "layout" in s and not _one_of(s["layout"], SECTION_LAYOUTS):
        errors.append(f"invalid layout: {s['layout']!r}")
    for key in ("gap", "padding"):
        if key in s and not _one_of(s[key], SPACING_VALUES):
            errors.append(f"invalid {key}: {s[key]!r}")
    return errors


def _validate_column_settings(s: Any) -> list[str]:
    errors: list[str] = []
    if not isinstance(s, dict):
        return ["'settings' must be an object"]
    width = s.get("width")
    if not isinstance(width, int) or isinstance(width, bool) or not MIN_COLUMN_WIDTH <= width <= MAX_COLUMN_WIDTH:
        errors.append(f"width must be an integer in {MIN_COLUMN_WIDTH}..{MAX_COLUMN_WIDTH}, got {width!r}")
    if "verticalAlign" in s and not _one_of(s["verticalAlign"], VERTICAL_ALIGN_VALUES):
        errors.append(f"invalid verticalAlign: {s['verticalAlign']!r}")
    if "padding" in s and not _one_of(s["padding"], SPACING_VALUES):
        errors.append(f"invalid padding: {s['padding']!r}")
    if "flow" in s and not _one_of(s["flow"], COLUMN_FLOWS):
        errors.append(f"invalid flow: {s['flow']!r}")
    if "fullHeight" in s and not isinstance(s["fullHeight"], bool):
        errors.append("fullHeight must be a boolean")
    return errors


def _one_of(value: Any, allowed: set[str]) -> bool:
    return isinstance(value, str) and value in allowed


# ---------------------------------------------------------------------------
# Per-variant validators
# ---------------------------------------------------------------------------


def _validate_refresh(s: dict) -> list[str]:
    interval = s.get("refreshInterval")
    if interval is None:
        return []
    if not isinstance(interval, (int, float)) or isinstance(interval, bool) or interval < 0:
        return ["refreshInterval must be a non-negative number of seconds"]
    return []


def _validate_heading(s: dict) -> list[str]:
    level = s.get("level", 2)
    if not isinstance(level, int) or not 1 <= level <= 6:
        return [f"heading level must be 1..6, got {level!r}"]
    return []


def _validate_kpi(s: dict) -> list[str]:
    errors = _validate_refresh(s)
    if "format" in s and not _one_of(s["format"], KPI_FORMATS):
        errors.append(f"invalid format: {s['format']!r}")
    if s.get("aggregation") and not _one_of(s["aggregation"], AGGREGATIONS):
        errors.append(f"invalid aggregation: {s['aggregation']!r}")
    if s.get("useFilterResult") and not s.get("filterLabel"):
        errors.append("useFilterResult requires 'filterLabel'")
    return errors


def _validate_chart(s: dict) -> list[str]:
    errors = _validate_refresh(s)
    if "chartType" in s and not _one_of(s["chartType"], CHART_TYPES):
        errors.append(f"invalid chartType: {s['chartType']!r}")
    data = s.get("chartData")
    if data is not None and not isinstance(data, list):
        errors.append("chartData must be a list")
    return errors


def _validate_table(s: dict) -> list[str]:
    errors = _validate_refresh(s)
    columns = s.get("columns")
    if columns is not None:
        if not isinstance(columns, list):
            errors.append("columns must be a list")
        else:
            for i, col in enumerate(columns):
                if not isinstance(col, dict) or not col.get("key"):
                    errors.append(f"columns[{i}] requires 'key'")
    data = s.get("staticData")
    if data is not None and not isinstance(data, list):
        errors.append("staticData must be a list")
    return errors


def _validate_filters_header(s: dict) -> list[str]:
    errors: list[str] = []
    fields = s.get("filterFields", [])
    if not isinstance(fields, list):
        return ["filterFields must be a list"]
    if len(fields) > MAX_FILTER_FIELDS:
        errors.append(f"at most {MAX_FILTER_FIELDS} filter fields are supported")

    keys: set[str] = set()
    for i, f in enumerate(fields):
        if not isinstance(f, dict):
            errors.append(f"filterFields[{i}] must be an object")
            continue
        key = f.get("key")
        if not isinstance(key, str) or not key:
            errors.append(f"filterFields[{i}] requires a string 'key'")
            continue
        if key in keys:
            errors.append(f"filterFields[{i}]: duplicate key '{key}'")
        keys.add(key)
        if not _one_of(f.get("type", "text"), FILTER_FIELD_TYPES):
            errors.append(f"filterFields[{i}]: invalid type {f.get('type')!r}")
        if "numberFormat" in f and not _one_of(f["numberFormat"], KPI_FORMATS):
            errors.append(f"filterFields[{i}]: invalid numberFormat {f['numberFormat']!r}")
        if "options" in f and not isinstance(f["options"], list):
            errors.append(f"filterFields[{i}]: options must be a list")

    for i, f in enumerate(fields):
        if isinstance(f, dict) and f.get("dependsOn"):
            parent = f["dependsOn"]
            if not _one_of(parent, keys):
                errors.append(f"filterFields[{i}]: dependsOn '{parent}' is not a field")
            elif parent == f.get("key"):
                errors.append(f"filterFields[{i}]: a field cannot depend on itself")

    policy = s.get("filtersOptionsFallback", "field")
    if not _one_of(policy, OPTIONS_FALLBACK_POLICIES):
        errors.append(f"invalid filtersOptionsFallback: {policy!r}")

    prefill_map = s.get("filtersEndpointPrefillMap")
    if prefill_map is not None and not isinstance(prefill_map, dict):
        errors.append("filtersEndpointPrefillMap must be an object")

    return errors


def _validate_subsection(s: dict) -> list[str]:
    columns = s.get("subsectionColumns", [])
    if not isinstance(columns, list):
        return ["subsectionColumns must be a list"]
    return []


def _validate_iframe(s: dict) -> list[str]:
    height = s.get("iframeHeight")
    if height is not None and (not isinstance(height, (int, float)) or height <= 0):
        return ["iframeHeight must be a positive number"]
    return []


def _validate_input_select(s: dict) -> list[str]:
    options = s.get("options")
    if options is not None and not isinstance(options, list):
        return ["options must be a list"]
    return []


_VALIDATORS: dict[str, Any] = {
    "heading": _validate_heading,
    "kpi": _validate_kpi,
    "chart": _validate_chart,
    "table": _validate_table,
    "filters_header": _validate_filters_header,
    "subsection": _validate_subsection,
    "iframe": _validate_iframe,
    "input_select": _validate_input_select,
}
