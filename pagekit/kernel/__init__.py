"""
PageKit Kernel — the page composition engine.

Pure components:
  document     — Section → Column → Widget tree, factories, traversal
  mutations    — (document, op) → document  (editor operations)
  primitives   — structural validation of documents and widget settings
  data         — normalization, aggregation, KPI/chart/table resolution
  renderer     — (document, render context) → HTML

Runtime components (IO, timers):
  datasource     — per-widget data URL fetch + polling
  filter_context — page-scoped filters / filter results store
  filters_header — filter form state machine + payment flow
  page_view      — one mounted page: wires the above together
  assembly       — load / save / publish over a DocumentStorage
"""

from pagekit.kernel.assembly import InvalidDocument, MemoryStorage, PageAssembly, PageNotFound
from pagekit.kernel.document import create_column, create_section, create_widget, empty_document
from pagekit.kernel.filter_context import FilterContext
from pagekit.kernel.mutations import (
    add_section,
    add_widget,
    delete_column,
    delete_section,
    delete_widget,
    duplicate_widget,
    move_section,
    move_widget,
    move_widget_to,
    mutate,
    resolve,
    update_column_settings,
    update_section_settings,
    update_widget_settings,
)
from pagekit.kernel.page_view import PageView
from pagekit.kernel.primitives import validate_document, validate_widget_settings
from pagekit.kernel.renderer import RenderContext, render_page

__all__ = [
    "create_section",
    "create_column",
    "create_widget",
    "empty_document",
    "mutate",
    "resolve",
    "add_section",
    "add_widget",
    "update_section_settings",
    "update_column_settings",
    "update_widget_settings",
    "delete_section",
    "delete_column",
    "delete_widget",
    "move_section",
    "move_widget",
    "move_widget_to",
    "duplicate_widget",
    "validate_document",
    "validate_widget_settings",
    "FilterContext",
    "PageView",
    "RenderContext",
    "render_page",
    "PageAssembly",
    "MemoryStorage",
    "PageNotFound",
    "InvalidDocument",
]
