"""
PageKit Kernel — Document Model

Construction helpers and read-only traversal over the Section → Column →
Widget tree. No mutation lives here; see mutations.py.

Every factory assigns a fresh unique id and settings that are valid under
all document invariants.
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Iterator
from typing import Any

from pagekit.kernel.types import MAX_COLUMN_WIDTH, MIN_COLUMN_WIDTH

# ---------------------------------------------------------------------------
# Ids
# ---------------------------------------------------------------------------


def new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def empty_document() -> dict[str, Any]:
    """A page with no sections."""
    return {"sections": []}


def clamp_width(width: Any) -> int:
    """Coerce any width into the valid 1..12 flex weight range."""
    try:
        value = int(width)
    except (TypeError, ValueError):
        return MAX_COLUMN_WIDTH
    return max(MIN_COLUMN_WIDTH, min(MAX_COLUMN_WIDTH, value))


def create_column(width: int = 12) -> dict[str, Any]:
    return {
        "id": new_id(),
        "type": "column",
        "settings": {
            "width": clamp_width(width),
            "verticalAlign": "start",
            "padding": "sm",
            "fullHeight": False,
            "flow": "stack",
        },
        "widgets": [],
    }


def create_section(column_widths: list[int] | None = None) -> dict[str, Any]:
    widths = [12] if column_widths is None else column_widths
    return {
        "id": new_id(),
        "type": "section",
        "settings": {
            "layout": "boxed",
            "gap": "md",
            "padding": "md",
        },
        "columns": [create_column(w) for w in widths],
    }


def _default_settings(widget_type: str) -> dict[str, Any]:
    """Variant defaults. Built per call so nested columns get fresh ids."""
    if widget_type == "heading":
        return {"text": "Título", "level": 2, "align": "left", "headingIcon": "", "headingIconPosition": "left"}
    if widget_type == "text":
        return {"content": "Digite seu texto aqui..."}
    if widget_type == "image":
        return {"src": "", "alt": "", "size": "auto"}
    if widget_type == "button":
        return {
            "label": "Clique aqui",
            "link": "#",
            "variant": "primary",
            "buttonRequiresFilters": False,
            "buttonAction": "none",
        }
    if widget_type == "spacer":
        return {"height": 40}
    if widget_type == "divider":
        return {"dividerStyle": "solid", "width": "full"}
    if widget_type == "icon":
        return {"icon": "star", "iconSize": 48}
    if widget_type == "video":
        return {"videoUrl": "", "autoplay": False, "controls": True}
    if widget_type == "html":
        return {
            "html": (
                '<div class="nexus-card"><div class="text-lg font-semibold">Título</div>'
                '<p class="text-muted-foreground mt-2">Descrição usando o UI Kit.</p></div>'
            ),
            "htmlJs": "",
            "css": "",
            "enableScripts": False,
        }
    if widget_type == "iframe":
        return {
            "iframeUrl": "",
            "iframeHtml": "",
            "iframeHeight": 320,
            "iframeUseUiKit": True,
            "iframeSendContext": False,
        }
    if widget_type == "subsection":
        return {
            "subsectionColumns": [create_column(6), create_column(6)],
            "subsectionGap": "md",
            "subsectionPadding": "sm",
            "subsectionUseCard": False,
        }
    if widget_type == "table":
        return {
            "title": "Tabela",
            "columns": [{"key": "col1", "label": "Coluna 1"}],
            "dataBinding": {"enabled": False},
            "refreshInterval": 0,
        }
    if widget_type == "kpi":
        return {
            "title": "KPI",
            "value": "0",
            "format": "number",
            "prefix": "",
            "suffix": "",
            "kpiFilterOptionIndex": 0,
            "kpiFilterDisplayMode": "label",
            "refreshInterval": 0,
        }
    if widget_type == "chart":
        return {
            "title": "Gráfico",
            "chartType": "bar",
            "chartData": [
                {"label": "Item 1", "value": 10},
                {"label": "Item 2", "value": 20},
            ],
            "refreshInterval": 0,
        }
    if widget_type == "filters_header":
        return {
            "filtersEndpoint": "",
            "filterFields": [
                {"key": "campo1", "label": "Campo 1", "type": "text"},
                {"key": "campo2", "label": "Campo 2", "type": "text"},
            ],
            "filtersLayout": "grid",
            "filtersColumns": 2,
            "filtersShowPeriod": True,
            "filtersShowApply": True,
            "filtersAutoApply": False,
            "filtersAutoApplyRequireAll": False,
            "filtersOptionsFallback": "field",
            "filtersSendContext": False,
            "filtersAutoOptions": True,
            "filtersEndpointPrefill": False,
            "filtersEndpointPrefillMap": {},
            "filtersPaymentPopup": False,
            "filtersPaymentTotalKey": "",
            "filtersPaymentSubmitEndpoint": "",
            "filtersPaymentTicketEndpoint": "",
            "filtersUseCard": True,
        }
    if widget_type == "filters_result_list":
        return {
            "filtersResultTitle": "Opções de parcelamento",
            "filtersResultKey": "installments",
            "filtersResultTargetKey": "parcelamento",
            "filtersResultEmptyMessage": "Nenhuma opção disponível.",
            "filtersResultDisplayMode": "label",
            "filtersResultValueMode": "value",
        }
    if widget_type == "input_text":
        return {"inputLabel": "Digite um valor", "placeholder": "Ex: 123", "buttonLabel": "Enviar"}
    if widget_type == "input_select":
        return {"inputLabel": "Selecione uma opção", "options": ["Opção A", "Opção B"], "buttonLabel": "Enviar"}
    if widget_type == "input_boolean":
        return {"inputLabel": "Ativar?", "trueLabel": "Sim", "falseLabel": "Não", "buttonLabel": "Enviar"}
    return {}


def create_widget(widget_type: str) -> dict[str, Any]:
    return {
        "id": new_id(),
        "type": "widget",
        "widgetType": widget_type,
        "settings": _default_settings(widget_type),
    }


# ---------------------------------------------------------------------------
# Cloning
# ---------------------------------------------------------------------------


def clone_column(column: dict[str, Any]) -> dict[str, Any]:
    """Deep copy a column with every id in its subtree regenerated."""
    cloned = copy.deepcopy(column)
    cloned["id"] = new_id()
    cloned["widgets"] = [clone_widget(w) for w in column.get("widgets", [])]
    return cloned


def clone_widget(widget: dict[str, Any]) -> dict[str, Any]:
    """Deep copy a widget with every id in its subtree regenerated."""
    cloned = copy.deepcopy(widget)
    cloned["id"] = new_id()
    inner = widget.get("settings", {}).get("subsectionColumns")
    if isinstance(inner, list):
        cloned["settings"]["subsectionColumns"] = [clone_column(c) for c in inner]
    return cloned


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def inner_columns(widget: dict[str, Any]) -> list[dict[str, Any]]:
    """A subsection's nested columns, or [] for any other widget."""
    if widget.get("widgetType") != "subsection":
        return []
    columns = widget.get("settings", {}).get("subsectionColumns")
    return columns if isinstance(columns, list) else []


def iter_widgets(document: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Every widget in document order, nested subsection widgets included."""
    for section in document.get("sections", []):
        for column in section.get("columns", []):
            for widget in column.get("widgets", []):
                yield widget
                for inner in inner_columns(widget):
                    yield from inner.get("widgets", [])


def iter_nodes(document: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Every section, column, and widget in document order."""
    for section in document.get("sections", []):
        yield section
        for column in section.get("columns", []):
            yield column
            for widget in column.get("widgets", []):
                yield widget
                for inner in inner_columns(widget):
                    yield inner
                    yield from inner.get("widgets", [])


def collect_ids(node: dict[str, Any]) -> list[str]:
    """All ids in a subtree (document, section, column, or widget)."""
    if "sections" in node:
        return [n["id"] for n in iter_nodes(node)]
    ids = [node["id"]] if "id" in node else []
    node_type = node.get("type")
    if node_type == "section":
        for column in node.get("columns", []):
            ids.extend(collect_ids(column))
    elif node_type == "column":
        for widget in node.get("widgets", []):
            ids.extend(collect_ids(widget))
    elif node_type == "widget":
        for inner in inner_columns(node):
            ids.extend(collect_ids(inner))
    return ids


def find_widget(document: dict[str, Any], widget_id: str) -> dict[str, Any] | None:
    for widget in iter_widgets(document):
        if widget.get("id") == widget_id:
            return widget
    return None
