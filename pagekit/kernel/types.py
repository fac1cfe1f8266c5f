"""
PageKit Kernel — Shared Types

Constants and data classes used across document, mutations, data resolution,
filters header, renderer, and assembly. These are the contracts that bind
the kernel together.

Document shape (persisted as JSON, camelCase keys):

    {"sections": [
        {"id", "type": "section", "settings": {...}, "columns": [
            {"id", "type": "column", "settings": {...}, "widgets": [
                {"id", "type": "widget", "widgetType", "settings": {...}}
            ]}
        ]}
    ]}

A `subsection` widget carries `settings.subsectionColumns: [Column]`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# ---------------------------------------------------------------------------
# Widget variants
# ---------------------------------------------------------------------------

WIDGET_TYPES: set[str] = {
    # Basic
    "heading",
    "text",
    "image",
    "button",
    "spacer",
    "divider",
    # Data
    "table",
    "kpi",
    "chart",
    "filters_header",
    "filters_result_list",
    "input_text",
    "input_select",
    "input_boolean",
    # Advanced
    "html",
    "iframe",
    "icon",
    "video",
    "subsection",
}

# Variants that may pull rows from a data URL or the filter context
DATA_WIDGET_TYPES: set[str] = {"table", "kpi", "chart"}

INPUT_WIDGET_TYPES: set[str] = {"input_text", "input_select", "input_boolean"}

# ---------------------------------------------------------------------------
# Layout settings vocabularies
# ---------------------------------------------------------------------------

SECTION_LAYOUTS: set[str] = {"boxed", "full"}
SPACING_VALUES: set[str] = {"none", "sm", "md", "lg"}
VERTICAL_ALIGN_VALUES: set[str] = {"start", "center", "end"}
COLUMN_FLOWS: set[str] = {"stack", "row"}

MIN_COLUMN_WIDTH = 1
MAX_COLUMN_WIDTH = 12

COLUMN_PRESETS: list[dict[str, Any]] = [
    {"label": "1 Coluna", "columns": [12]},
    {"label": "2 Colunas", "columns": [6, 6]},
    {"label": "3 Colunas", "columns": [4, 4, 4]},
    {"label": "4 Colunas", "columns": [3, 3, 3, 3]},
    {"label": "2/3 + 1/3", "columns": [8, 4]},
    {"label": "1/3 + 2/3", "columns": [4, 8]},
    {"label": "1/4 + 1/2 + 1/4", "columns": [3, 6, 3]},
]

# ---------------------------------------------------------------------------
# Data resolution
# ---------------------------------------------------------------------------

AGGREGATIONS: set[str] = {"count", "sum", "avg", "min", "max", "first"}
KPI_FORMATS: set[str] = {"number", "currency", "percent"}
CHART_TYPES: set[str] = {"bar", "line", "pie"}

# Response wrappers checked in priority order when normalizing a payload
ROW_WRAPPER_KEYS: tuple[str, ...] = ("data", "items", "results", "records", "rows")

# Keys recognized as a boolean acknowledgement in submission responses
ACK_KEYS: tuple[str, ...] = ("result", "valid", "success", "ok", "value")

TABLE_MAX_ROWS = 50
CHART_MAX_POINTS = 50

# ---------------------------------------------------------------------------
# Filters header
# ---------------------------------------------------------------------------

FILTER_FIELD_TYPES: set[str] = {"text", "number", "list", "boolean"}
MAX_FILTER_FIELDS = 4
PERIOD_PRESETS: tuple[str, ...] = ("today", "yesterday", "last_7", "last_30", "custom")
OPTIONS_FALLBACK_POLICIES: set[str] = {"field", "block", "none"}
AUTO_APPLY_DEBOUNCE_SECONDS = 0.35

# ---------------------------------------------------------------------------
# Payment sub-flow
# ---------------------------------------------------------------------------

TENDER_METHODS: set[str] = {"cash", "card", "ticket", "pix"}
TICKET_METHODS: set[str] = {"card", "ticket"}
TICKET_NUMBER_LENGTH = 14

# ---------------------------------------------------------------------------
# Session persistence
# ---------------------------------------------------------------------------

SESSION_STORAGE_KEY = "viewData"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Address:
    """
    Path identifying a node in the Document for selection and mutation.

    Not persisted — computed per editor session.
      section_id only                         → a section
      + column_id                             → a column
      + column_id + widget_id                 → a top-level widget
      + inner_column_id (+ container_widget_id) → a subsection's inner column,
        or a widget inside it when widget_id is also set

    container_widget_id is optional; when omitted it is resolved by finding
    the subsection in the addressed column that owns inner_column_id.
    """

    section_id: str
    column_id: str | None = None
    widget_id: str | None = None
    inner_column_id: str | None = None
    container_widget_id: str | None = None

    @property
    def is_nested(self) -> bool:
        return self.inner_column_id is not None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"sectionId": self.section_id}
        if self.column_id is not None:
            d["columnId"] = self.column_id
        if self.widget_id is not None:
            d["widgetId"] = self.widget_id
        if self.inner_column_id is not None:
            d["innerColumnId"] = self.inner_column_id
        if self.container_widget_id is not None:
            d["containerWidgetId"] = self.container_widget_id
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Address:
        return cls(
            section_id=d["sectionId"],
            column_id=d.get("columnId"),
            widget_id=d.get("widgetId"),
            inner_column_id=d.get("innerColumnId"),
            container_widget_id=d.get("containerWidgetId"),
        )


class MutationResult:
    """
    Result of applying one editor mutation to a document.
    Never throws — always returns one of these.
    """

    __slots__ = ("document", "accepted", "reason", "node_id")

    def __init__(
        self,
        document: dict[str, Any],
        accepted: bool,
        reason: str | None = None,
        node_id: str | None = None,
    ) -> None:
        self.document = document
        self.accepted = accepted
        self.reason = reason
        self.node_id = node_id  # id of the created node, for editor selection

    def __repr__(self) -> str:  # pragma: no cover
        if self.accepted:
            return f"MutationResult(accepted=True, node_id={self.node_id!r})"
        return f"MutationResult(accepted=False, reason={self.reason!r})"


@dataclass
class FetchState:
    """
    Per-widget tri-state consumed by the renderer.

    status is one of "idle", "loading", "error", "ready". `rows` is the
    normalized collection, `data` the raw decoded body.
    """

    status: str = "idle"
    data: Any = None
    rows: list[Any] = field(default_factory=list)
    error: str | None = None
    http_status: int | None = None
    fetched_at: str | None = None

    @property
    def loading(self) -> bool:
        return self.status == "loading"

    @property
    def ready(self) -> bool:
        return self.status == "ready"


@dataclass
class PageInfo:
    """The page a view is rendering."""

    id: str
    slug: str = ""
    title: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "slug": self.slug, "title": self.title}


@dataclass
class ViewContext:
    """
    The (currentUser, currentTenant, currentPage) tuple plus locale data.
    user and tenant are opaque dicts supplied by the host application.
    """

    page: PageInfo
    user: dict[str, Any] | None = None
    tenant: dict[str, Any] | None = None
    timezone: str = "America/Sao_Paulo"
    locale: str = "pt-BR"

    def query_params(self) -> dict[str, str]:
        """Flat context params appended to filter queries when enabled."""
        params: dict[str, str] = {"page_id": self.page.id}
        if self.page.slug:
            params["page_slug"] = self.page.slug
        if self.user and self.user.get("id"):
            params["user_id"] = str(self.user["id"])
        if self.tenant and self.tenant.get("id"):
            params["tenant_id"] = str(self.tenant["id"])
        return params


@dataclass
class RenderOptions:
    """Options controlling what the renderer includes in output."""

    locale: str = "pt-BR"
    theme: str = "light"
    theme_vars: dict[str, str] = field(default_factory=dict)
    font_family: str = "Inter, sans-serif"
    ui_kit_url: str = "/static/nexus-ui-kit.css"
    editor: bool = False  # editor canvas renders empty-state hints


@dataclass
class PageRecord:
    """A persisted page document with its publication metadata."""

    page_id: str
    document: dict[str, Any]
    version: int = 1
    status: str = "draft"  # "draft" or "published"
    title: str = ""
    slug: str = ""
    updated_at: str | None = None

    def page_info(self) -> PageInfo:
        return PageInfo(id=self.page_id, slug=self.slug, title=self.title)


@dataclass
class PageVersion:
    """An archived document, written by publish before overwriting."""

    page_id: str
    version: int
    document: dict[str, Any]
    created_at: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_empty_value(value: Any) -> bool:
    """True for None, empty/whitespace strings, and empty collections."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def now_iso() -> str:
    """Current UTC time as ISO 8601 string."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
