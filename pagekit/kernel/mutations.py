"""
PageKit Kernel — Tree Mutation Engine

Pure function: (document, op) → MutationResult

Backs the visual editor. Every operation deep-copies the input document and
returns a new one; the input is never modified. A rejected operation returns
the original document unchanged with a coded reason, so callers that only
want the document ("fail silently") can read `.document` either way.

Ops are plain dicts so they can travel over HTTP:

    {"t": "section.add", "columns": [6, 6]}
    {"t": "widget.add", "address": {"sectionId", "columnId"}, "widgetType": "kpi"}
    {"t": "widget.move", "address": {...}, "direction": "up"}

Named wrappers (add_section, add_widget, ...) build these ops for Python
callers.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from pagekit.kernel.document import clamp_width, clone_widget, create_section, create_widget, inner_columns
from pagekit.kernel.types import (
    MAX_COLUMN_WIDTH,
    MIN_COLUMN_WIDTH,
    WIDGET_TYPES,
    Address,
    MutationResult,
)

logger = logging.getLogger(__name__)

DIRECTIONS = ("up", "down")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def mutate(document: dict[str, Any], op: dict[str, Any]) -> MutationResult:
    """
    Apply one editor operation to a document.
    Returns MutationResult with the new document + accepted flag.
    """
    op_type = op.get("t")
    if op_type is None:
        return MutationResult(document=document, accepted=False, reason="MISSING_TYPE: op has no 't' field")

    handler = _HANDLERS.get(op_type)
    if handler is None:
        return MutationResult(document=document, accepted=False, reason=f"UNKNOWN_OP: {op_type}")

    doc = copy.deepcopy(document)
    doc.setdefault("sections", [])
    result = handler(doc, op)
    if not result.accepted:
        logger.debug("mutation %s rejected: %s", op_type, result.reason)
        result.document = document
    return result


def mutate_all(document: dict[str, Any], ops: list[dict[str, Any]]) -> dict[str, Any]:
    """Apply a sequence of ops; rejections are skipped."""
    for op in ops:
        document = mutate(document, op).document
    return document


def resolve(document: dict[str, Any], address: Address) -> dict[str, Any] | None:
    """
    Return the node an address points at (section, column, inner column,
    or widget), or None if it does not resolve. Used for editor selection.
    """
    section = _find_section(document, address.section_id)
    if section is None:
        return None
    if address.column_id is None:
        return section
    column = _find_by_id(section.get("columns", []), address.column_id)
    if column is None:
        return None
    if address.inner_column_id is not None:
        inner = _find_inner_column(column, address)
        if inner is None:
            return None
        if address.widget_id is None:
            return inner
        return _find_by_id(inner.get("widgets", []), address.widget_id)
    if address.widget_id is None:
        return column
    return _find_by_id(column.get("widgets", []), address.widget_id)


# -- named wrappers --


def add_section(document: dict[str, Any], column_widths: list[int] | None = None) -> dict[str, Any]:
    return mutate(document, {"t": "section.add", "columns": column_widths or [12]}).document


def add_widget(document: dict[str, Any], address: Address, widget_type: str) -> dict[str, Any]:
    return mutate(document, {"t": "widget.add", "address": address.to_dict(), "widgetType": widget_type}).document


def update_section_settings(document: dict[str, Any], address: Address, settings: dict[str, Any]) -> dict[str, Any]:
    return mutate(document, {"t": "section.update", "address": address.to_dict(), "settings": settings}).document


def update_column_settings(document: dict[str, Any], address: Address, settings: dict[str, Any]) -> dict[str, Any]:
    return mutate(document, {"t": "column.update", "address": address.to_dict(), "settings": settings}).document


def update_widget_settings(document: dict[str, Any], address: Address, settings: dict[str, Any]) -> dict[str, Any]:
    return mutate(document, {"t": "widget.update", "address": address.to_dict(), "settings": settings}).document


def delete_section(document: dict[str, Any], address: Address) -> dict[str, Any]:
    return mutate(document, {"t": "section.delete", "address": address.to_dict()}).document


def delete_column(document: dict[str, Any], address: Address) -> dict[str, Any]:
    return mutate(document, {"t": "column.delete", "address": address.to_dict()}).document


def delete_widget(document: dict[str, Any], address: Address) -> dict[str, Any]:
    return mutate(document, {"t": "widget.delete", "address": address.to_dict()}).document


def move_section(document: dict[str, Any], section_id: str, direction: str) -> dict[str, Any]:
    return mutate(document, {"t": "section.move", "sectionId": section_id, "direction": direction}).document


def move_widget(document: dict[str, Any], address: Address, direction: str) -> dict[str, Any]:
    return mutate(document, {"t": "widget.move", "address": address.to_dict(), "direction": direction}).document


def move_widget_to(document: dict[str, Any], address: Address, target: Address) -> dict[str, Any]:
    return mutate(document, {"t": "widget.move_to", "address": address.to_dict(), "to": target.to_dict()}).document


def duplicate_widget(document: dict[str, Any], address: Address) -> dict[str, Any]:
    return mutate(document, {"t": "widget.duplicate", "address": address.to_dict()}).document


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _reject(doc: dict, reason: str) -> MutationResult:
    return MutationResult(document=doc, accepted=False, reason=reason)


def _ok(doc: dict, node_id: str | None = None) -> MutationResult:
    return MutationResult(document=doc, accepted=True, node_id=node_id)


def _find_by_id(nodes: list[dict[str, Any]], node_id: str) -> dict[str, Any] | None:
    for node in nodes:
        if node.get("id") == node_id:
            return node
    return None


def _find_section(doc: dict, section_id: str) -> dict[str, Any] | None:
    return _find_by_id(doc.get("sections", []), section_id)


def _find_inner_column(column: dict[str, Any], address: Address) -> dict[str, Any] | None:
    """Locate a subsection's inner column within an outer column."""
    for widget in column.get("widgets", []):
        if address.container_widget_id is not None and widget.get("id") != address.container_widget_id:
            continue
        inner = _find_by_id(inner_columns(widget), address.inner_column_id or "")
        if inner is not None:
            return inner
    return None


def _parse_address(op: dict, key: str = "address") -> Address | None:
    raw = op.get(key)
    if not isinstance(raw, dict) or not raw.get("sectionId"):
        return None
    return Address.from_dict(raw)


def _target_column(doc: dict, address: Address) -> tuple[dict[str, Any] | None, str | None]:
    """
    Resolve the column an address points at: an outer column, or an inner
    column of a subsection when inner_column_id is set.
    """
    section = _find_section(doc, address.section_id)
    if section is None:
        return None, f"SECTION_NOT_FOUND: '{address.section_id}'"
    if address.column_id is None:
        return None, "MISSING_COLUMN: address requires 'columnId'"
    column = _find_by_id(section.get("columns", []), address.column_id)
    if column is None:
        return None, f"COLUMN_NOT_FOUND: '{address.column_id}'"
    if address.inner_column_id is None:
        return column, None
    inner = _find_inner_column(column, address)
    if inner is None:
        return None, f"INNER_COLUMN_NOT_FOUND: '{address.inner_column_id}'"
    return inner, None


def _target_widget(doc: dict, address: Address) -> tuple[list | None, int, str | None]:
    """Resolve (sibling list, index) for the addressed widget."""
    if address.widget_id is None:
        return None, -1, "MISSING_WIDGET: address requires 'widgetId'"
    column, reason = _target_column(doc, address)
    if column is None:
        return None, -1, reason
    widgets = column.setdefault("widgets", [])
    for i, w in enumerate(widgets):
        if w.get("id") == address.widget_id:
            return widgets, i, None
    return None, -1, f"WIDGET_NOT_FOUND: '{address.widget_id}'"


def _swap(items: list, index: int, direction: str) -> bool:
    """Swap items[index] with its neighbour. False at the boundary."""
    new_index = index - 1 if direction == "up" else index + 1
    if new_index < 0 or new_index >= len(items):
        return False
    items[index], items[new_index] = items[new_index], items[index]
    return True


# ---------------------------------------------------------------------------
# Section ops
# ---------------------------------------------------------------------------


def _handle_section_add(doc: dict, op: dict) -> MutationResult:
    widths = op.get("columns") or [12]
    if not isinstance(widths, list):
        return _reject(doc, "INVALID_COLUMNS: 'columns' must be a list of widths")
    section = create_section([clamp_width(w) for w in widths])
    doc["sections"].append(section)
    return _ok(doc, node_id=section["id"])


def _handle_section_update(doc: dict, op: dict) -> MutationResult:
    address = _parse_address(op)
    if address is None:
        return _reject(doc, "MISSING_ADDRESS: section.update requires 'address'")
    settings = op.get("settings")
    if not isinstance(settings, dict):
        return _reject(doc, "INVALID_SETTINGS: 'settings' must be an object")
    section = _find_section(doc, address.section_id)
    if section is None:
        return _reject(doc, f"SECTION_NOT_FOUND: '{address.section_id}'")
    section["settings"] = {**section.get("settings", {}), **settings}
    return _ok(doc)


def _handle_section_delete(doc: dict, op: dict) -> MutationResult:
    address = _parse_address(op)
    if address is None:
        return _reject(doc, "MISSING_ADDRESS: section.delete requires 'address'")
    sections = doc["sections"]
    remaining = [s for s in sections if s.get("id") != address.section_id]
    if len(remaining) == len(sections):
        return _reject(doc, f"SECTION_NOT_FOUND: '{address.section_id}'")
    doc["sections"] = remaining
    return _ok(doc)


def _handle_section_move(doc: dict, op: dict) -> MutationResult:
    section_id = op.get("sectionId")
    direction = op.get("direction")
    if direction not in DIRECTIONS:
        return _reject(doc, f"INVALID_DIRECTION: {direction!r}")
    sections = doc["sections"]
    for i, s in enumerate(sections):
        if s.get("id") == section_id:
            _swap(sections, i, direction)
            return _ok(doc)
    return _reject(doc, f"SECTION_NOT_FOUND: '{section_id}'")


# ---------------------------------------------------------------------------
# Column ops
# ---------------------------------------------------------------------------


def _handle_column_update(doc: dict, op: dict) -> MutationResult:
    address = _parse_address(op)
    if address is None:
        return _reject(doc, "MISSING_ADDRESS: column.update requires 'address'")
    settings = op.get("settings")
    if not isinstance(settings, dict):
        return _reject(doc, "INVALID_SETTINGS: 'settings' must be an object")
    if "width" in settings:
        width = settings["width"]
        if not isinstance(width, int) or isinstance(width, bool) or not MIN_COLUMN_WIDTH <= width <= MAX_COLUMN_WIDTH:
            return _reject(doc, f"INVALID_WIDTH: {width!r} is outside {MIN_COLUMN_WIDTH}..{MAX_COLUMN_WIDTH}")
    column, reason = _target_column(doc, address)
    if column is None:
        return _reject(doc, reason or "COLUMN_NOT_FOUND")
    column["settings"] = {**column.get("settings", {}), **settings}
    return _ok(doc)


def _handle_column_delete(doc: dict, op: dict) -> MutationResult:
    address = _parse_address(op)
    if address is None or address.column_id is None:
        return _reject(doc, "MISSING_ADDRESS: column.delete requires 'address' with 'columnId'")
    section = _find_section(doc, address.section_id)
    if section is None:
        return _reject(doc, f"SECTION_NOT_FOUND: '{address.section_id}'")

    if address.inner_column_id is None:
        columns = section.get("columns", [])
        remaining = [c for c in columns if c.get("id") != address.column_id]
        if len(remaining) == len(columns):
            return _reject(doc, f"COLUMN_NOT_FOUND: '{address.column_id}'")
        section["columns"] = remaining
        return _ok(doc)

    column = _find_by_id(section.get("columns", []), address.column_id)
    if column is None:
        return _reject(doc, f"COLUMN_NOT_FOUND: '{address.column_id}'")
    for widget in column.get("widgets", []):
        inner = inner_columns(widget)
        if address.container_widget_id is not None and widget.get("id") != address.container_widget_id:
            continue
        remaining = [c for c in inner if c.get("id") != address.inner_column_id]
        if len(remaining) != len(inner):
            widget["settings"]["subsectionColumns"] = remaining
            return _ok(doc)
    return _reject(doc, f"INNER_COLUMN_NOT_FOUND: '{address.inner_column_id}'")


# ---------------------------------------------------------------------------
# Widget ops
# ---------------------------------------------------------------------------


def _handle_widget_add(doc: dict, op: dict) -> MutationResult:
    address = _parse_address(op)
    if address is None:
        return _reject(doc, "MISSING_ADDRESS: widget.add requires 'address'")
    widget_type = op.get("widgetType")
    if widget_type not in WIDGET_TYPES:
        return _reject(doc, f"UNKNOWN_WIDGET_TYPE: {widget_type!r}")
    if address.is_nested and widget_type == "subsection":
        return _reject(doc, "NESTED_SUBSECTION: a subsection cannot contain another subsection")
    column, reason = _target_column(doc, address)
    if column is None:
        return _reject(doc, reason or "COLUMN_NOT_FOUND")
    widget = create_widget(widget_type)
    column.setdefault("widgets", []).append(widget)
    return _ok(doc, node_id=widget["id"])


def _handle_widget_update(doc: dict, op: dict) -> MutationResult:
    address = _parse_address(op)
    if address is None:
        return _reject(doc, "MISSING_ADDRESS: widget.update requires 'address'")
    settings = op.get("settings")
    if not isinstance(settings, dict):
        return _reject(doc, "INVALID_SETTINGS: 'settings' must be an object")
    widgets, index, reason = _target_widget(doc, address)
    if widgets is None:
        return _reject(doc, reason or "WIDGET_NOT_FOUND")
    widget = widgets[index]
    # widgetType is immutable; only settings are merged
    widget["settings"] = {**widget.get("settings", {}), **settings}
    return _ok(doc)


def _handle_widget_delete(doc: dict, op: dict) -> MutationResult:
    address = _parse_address(op)
    if address is None:
        return _reject(doc, "MISSING_ADDRESS: widget.delete requires 'address'")
    widgets, index, reason = _target_widget(doc, address)
    if widgets is None:
        return _reject(doc, reason or "WIDGET_NOT_FOUND")
    del widgets[index]
    return _ok(doc)


def _handle_widget_move(doc: dict, op: dict) -> MutationResult:
    address = _parse_address(op)
    if address is None:
        return _reject(doc, "MISSING_ADDRESS: widget.move requires 'address'")
    direction = op.get("direction")
    if direction not in DIRECTIONS:
        return _reject(doc, f"INVALID_DIRECTION: {direction!r}")
    widgets, index, reason = _target_widget(doc, address)
    if widgets is None:
        return _reject(doc, reason or "WIDGET_NOT_FOUND")
    _swap(widgets, index, direction)
    return _ok(doc)


def _handle_widget_duplicate(doc: dict, op: dict) -> MutationResult:
    address = _parse_address(op)
    if address is None:
        return _reject(doc, "MISSING_ADDRESS: widget.duplicate requires 'address'")
    widgets, index, reason = _target_widget(doc, address)
    if widgets is None:
        return _reject(doc, reason or "WIDGET_NOT_FOUND")
    duplicated = clone_widget(widgets[index])
    widgets.insert(index + 1, duplicated)
    return _ok(doc, node_id=duplicated["id"])


def _handle_widget_move_to(doc: dict, op: dict) -> MutationResult:
    source = _parse_address(op)
    target = _parse_address(op, "to")
    if source is None or target is None:
        return _reject(doc, "MISSING_ADDRESS: widget.move_to requires 'address' and 'to'")

    widgets, index, reason = _target_widget(doc, source)
    if widgets is None:
        return _reject(doc, reason or "WIDGET_NOT_FOUND")
    target_column, reason = _target_column(doc, target)
    if target_column is None:
        return _reject(doc, reason or "COLUMN_NOT_FOUND")

    widget = widgets[index]
    if target_column.get("widgets") is widgets:
        return _ok(doc)
    if target.is_nested and widget.get("widgetType") == "subsection":
        return _reject(doc, "NESTED_SUBSECTION: a subsection cannot contain another subsection")
    if target.is_nested and target.container_widget_id == widget.get("id"):
        return _reject(doc, "CYCLE: cannot move a subsection into its own column")
    if any(c is target_column for c in inner_columns(widget)):
        return _reject(doc, "CYCLE: cannot move a subsection into its own column")

    del widgets[index]
    target_column.setdefault("widgets", []).append(widget)
    return _ok(doc, node_id=widget.get("id"))


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

_HANDLERS: dict[str, Any] = {
    # Sections
    "section.add": _handle_section_add,
    "section.update": _handle_section_update,
    "section.delete": _handle_section_delete,
    "section.move": _handle_section_move,
    # Columns
    "column.update": _handle_column_update,
    "column.delete": _handle_column_delete,
    # Widgets
    "widget.add": _handle_widget_add,
    "widget.update": _handle_widget_update,
    "widget.delete": _handle_widget_delete,
    "widget.move": _handle_widget_move,
    "widget.move_to": _handle_widget_move_to,
    "widget.duplicate": _handle_widget_duplicate,
}
