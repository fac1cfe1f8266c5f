"""
PageKit Kernel — Renderer

Pure function: (document, render context) → HTML string
No IO. Deterministic: same document, same fetch states, same filter
context → same output.

The render context carries everything the page view resolved at runtime:
per-widget FetchStates, the page's FilterContext, live FiltersHeader
controllers, input submission outcomes and frame heights. Widgets with
nothing resolved render their static or empty state.

One renderer per widget variant, dispatched through _WIDGET_RENDERERS.
html/iframe content is isolated in a sandboxed <iframe srcdoc>; scripts
inside it run only when the widget opts in with enableScripts.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from html import escape as _html_escape
from typing import Any

import chevron

from pagekit.kernel.data import (
    chart_points,
    has_active_filters,
    resolve_kpi_value,
    static_rows,
    table_columns,
)
from pagekit.kernel.datasource import InputSubmission, build_context_payload
from pagekit.kernel.document import clamp_width, inner_columns
from pagekit.kernel.filter_context import FilterContext
from pagekit.kernel.filters_header import LOADING, FiltersHeader
from pagekit.kernel.formatting import format_cell, format_kpi_value
from pagekit.kernel.types import (
    CHART_MAX_POINTS,
    TABLE_MAX_ROWS,
    FetchState,
    RenderOptions,
    ViewContext,
)

PERIOD_LABELS: dict[str, str] = {
    "today": "Hoje",
    "yesterday": "Ontem",
    "last_7": "Últimos 7 dias",
    "last_30": "Últimos 30 dias",
    "custom": "Personalizado",
}


@dataclass
class RenderContext:
    """Runtime inputs for one render pass."""

    options: RenderOptions = field(default_factory=RenderOptions)
    view: ViewContext | None = None
    filter_context: FilterContext = field(default_factory=FilterContext)
    data: dict[str, FetchState] = field(default_factory=dict)
    headers: dict[str, FiltersHeader] = field(default_factory=dict)
    inputs: dict[str, InputSubmission] = field(default_factory=dict)
    frame_heights: dict[str, int] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def render_page(document: dict[str, Any], ctx: RenderContext | None = None, title: str = "") -> str:
    """
    Render a complete HTML page for a document.
    Pure function. No side effects. No IO.
    """
    ctx = ctx or RenderContext()
    opts = ctx.options
    parts: list[str] = []

    parts.append("<!DOCTYPE html>")
    parts.append(f'<html lang="{escape(opts.locale)}">')
    parts.append("<head>")
    parts.append('  <meta charset="utf-8">')
    parts.append('  <meta name="viewport" content="width=device-width, initial-scale=1">')
    page_title = title or (ctx.view.page.title if ctx.view else "") or "Página"
    parts.append(f"  <title>{escape(page_title)}</title>")
    if opts.ui_kit_url:
        parts.append(f'  <link rel="stylesheet" href="{escape(opts.ui_kit_url)}">')
    parts.append("  <style>")
    parts.append(_render_css(opts))
    parts.append("  </style>")
    parts.append("</head>")
    parts.append(f'<body class="pk-theme-{escape(opts.theme)}">')
    parts.append('  <main class="pk-page">')

    body = render_document(document, ctx)
    if body:
        parts.append(body)
    else:
        parts.append('    <p class="pk-empty">Página vazia</p>')

    parts.append("  </main>")
    parts.append("</body>")
    parts.append("</html>")
    return "\n".join(parts)


def render_document(document: dict[str, Any], ctx: RenderContext | None = None) -> str:
    ctx = ctx or RenderContext()
    return "\n".join(render_section(s, ctx) for s in document.get("sections", []))


def render_section(section: dict[str, Any], ctx: RenderContext) -> str:
    s = section.get("settings", {})
    classes = (
        f"pk-section pk-layout-{_token(s.get('layout'), 'boxed')} "
        f"pk-gap-{_token(s.get('gap'), 'md')} pk-pad-{_token(s.get('padding'), 'md')}"
    )
    columns = "".join(render_column(c, ctx) for c in section.get("columns", []))
    return (
        f'<section class="{classes}" data-id="{escape(section.get("id", ""))}">'
        f'<div class="pk-row">{columns}</div>'
        f"</section>"
    )


def render_column(column: dict[str, Any], ctx: RenderContext) -> str:
    s = column.get("settings", {})
    width = clamp_width(s.get("width", 12))
    classes = [
        "pk-column",
        f"pk-align-{_token(s.get('verticalAlign'), 'start')}",
        f"pk-pad-{_token(s.get('padding'), 'sm')}",
        f"pk-flow-{_token(s.get('flow'), 'stack')}",
    ]
    if s.get("fullHeight"):
        classes.append("pk-full-height")
    widgets = "".join(render_widget(w, ctx) for w in column.get("widgets", []))
    if not widgets and ctx.options.editor:
        widgets = '<div class="pk-drop-hint">Arraste widgets aqui</div>'
    return (
        f'<div class="{" ".join(classes)}" style="flex: {width} 1 0%" '
        f'data-id="{escape(column.get("id", ""))}">{widgets}</div>'
    )


def render_widget(widget: dict[str, Any], ctx: RenderContext) -> str:
    """Render one widget, wrapped with its id and variant."""
    widget_type = widget.get("widgetType", "")
    renderer = _WIDGET_RENDERERS.get(widget_type, _render_unknown)
    inner = renderer(widget, widget.get("settings", {}), ctx)
    return (
        f'<div class="pk-widget pk-widget-{escape(widget_type)}" '
        f'data-id="{escape(widget.get("id", ""))}">{inner}</div>'
    )


# ---------------------------------------------------------------------------
# Basic widgets
# ---------------------------------------------------------------------------


def _render_heading(widget: dict, s: dict, ctx: RenderContext) -> str:
    level = s.get("level", 2)
    if not isinstance(level, int) or not 1 <= level <= 6:
        level = 2
    text = escape(s.get("text", ""))
    icon = s.get("headingIcon")
    if icon:
        icon_html = f'<span class="pk-icon" data-icon="{escape(icon)}"></span>'
        text = f"{text} {icon_html}" if s.get("headingIconPosition") == "right" else f"{icon_html} {text}"
    align = _token(s.get("align"), "left")
    return f'<h{level} class="pk-heading pk-text-{align}">{text}</h{level}>'


def _render_text(widget: dict, s: dict, ctx: RenderContext) -> str:
    content = escape(s.get("content", "")).replace("\n", "<br>")
    return f'<div class="pk-text">{content}</div>'


def _render_image(widget: dict, s: dict, ctx: RenderContext) -> str:
    src = s.get("src", "")
    if not src:
        return '<div class="pk-placeholder">Imagem</div>'
    return (
        f'<img class="pk-image pk-size-{_token(s.get("size"), "auto")}" '
        f'src="{escape(src)}" alt="{escape(s.get("alt", ""))}" loading="lazy">'
    )


def _render_button(widget: dict, s: dict, ctx: RenderContext) -> str:
    label = escape(s.get("label", ""))
    variant = _token(s.get("variant"), "primary")
    disabled = bool(s.get("buttonRequiresFilters")) and not has_active_filters(ctx.filter_context.filters)
    if disabled:
        return f'<button class="pk-button pk-button-{variant}" type="button" disabled>{label}</button>'
    if s.get("buttonAction") == "navigate" and s.get("buttonTargetPageId"):
        target = escape(s["buttonTargetPageId"])
        return (
            f'<a class="pk-button pk-button-{variant}" href="#" '
            f'data-navigate="{target}">{label}</a>'
        )
    return f'<a class="pk-button pk-button-{variant}" href="{escape(s.get("link") or "#")}">{label}</a>'


def _render_spacer(widget: dict, s: dict, ctx: RenderContext) -> str:
    height = s.get("height", 40)
    if not isinstance(height, (int, float)) or height < 0:
        height = 40
    return f'<div class="pk-spacer" style="height: {int(height)}px"></div>'


def _render_divider(widget: dict, s: dict, ctx: RenderContext) -> str:
    style = _token(s.get("dividerStyle"), "solid")
    width = _token(s.get("width"), "full")
    return f'<hr class="pk-divider pk-divider-{style} pk-width-{width}">'


def _render_icon(widget: dict, s: dict, ctx: RenderContext) -> str:
    size = _pixels(s.get("iconSize"), 48)
    return (
        f'<span class="pk-icon" data-icon="{escape(s.get("icon", "star"))}" '
        f'style="font-size: {size}px"></span>'
    )


_YOUTUBE_RE = re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/)([\w-]{6,})")
_VIMEO_RE = re.compile(r"vimeo\.com/(\d+)")


def _render_video(widget: dict, s: dict, ctx: RenderContext) -> str:
    url = s.get("videoUrl", "")
    if not url:
        return '<div class="pk-placeholder">Vídeo</div>'
    autoplay = "1" if s.get("autoplay") else "0"
    match = _YOUTUBE_RE.search(url)
    if match:
        embed = f"https://www.youtube.com/embed/{match.group(1)}?autoplay={autoplay}"
        return f'<iframe class="pk-video" src="{escape(embed)}" allowfullscreen></iframe>'
    match = _VIMEO_RE.search(url)
    if match:
        embed = f"https://player.vimeo.com/video/{match.group(1)}?autoplay={autoplay}"
        return f'<iframe class="pk-video" src="{escape(embed)}" allowfullscreen></iframe>'
    attrs = []
    if s.get("controls", True):
        attrs.append("controls")
    if s.get("autoplay"):
        attrs.append("autoplay muted")
    return f'<video class="pk-video" src="{escape(url)}" {" ".join(attrs)}></video>'


# ---------------------------------------------------------------------------
# Embedded content
# ---------------------------------------------------------------------------

_EMBED_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
{{#uiKitUrl}}<link rel="stylesheet" href="{{uiKitUrl}}">{{/uiKitUrl}}
<style>body{margin:0;font-family:{{fontFamily}};}{{{css}}}</style>
</head>
<body class="pk-theme-{{theme}}">
{{{html}}}
{{#bridge}}
<script>
(function () {
  var widgetId = {{{widgetIdJson}}};
  window.nexusContext = {{{contextJson}}};
  function postHeight() {
    parent.postMessage({type: "nexus-iframe-height", widgetId: widgetId,
      height: document.documentElement.scrollHeight}, "*");
  }
  window.nexusPublishFilterResults = function (items, filters) {
    parent.postMessage({type: "nexus-filter-results", widgetId: widgetId,
      items: items, filters: filters}, "*");
  };
  window.addEventListener("message", function (event) {
    var data = event.data || {};
    if (data.type !== "nexus-theme") return;
    document.body.className = "pk-theme-" + (data.theme || "light");
    var vars = data.vars || {};
    for (var name in vars) document.documentElement.style.setProperty(name, vars[name]);
    if (data.fontFamily) document.body.style.fontFamily = data.fontFamily;
  });
  window.addEventListener("load", postHeight);
  if (window.ResizeObserver) new ResizeObserver(postHeight).observe(document.body);
})();
</script>
{{/bridge}}
{{#script}}<script>{{{script}}}</script>{{/script}}
</body>
</html>"""


def embed_document(
    widget: dict[str, Any],
    html: str,
    ctx: RenderContext,
    css: str = "",
    script: str = "",
    use_ui_kit: bool = True,
    send_context: bool = False,
) -> str:
    """
    Build the srcdoc for an html/iframe widget. The height/theme bridge and
    the user script are only included when scripts are enabled.
    """
    opts = ctx.options
    scripts_on = bool(widget.get("settings", {}).get("enableScripts"))
    context: dict[str, Any] = {"theme": opts.theme, "vars": opts.theme_vars, "fontFamily": opts.font_family}
    if send_context and ctx.view is not None:
        context.update(build_context_payload(widget, ctx.view))
    return chevron.render(
        _EMBED_TEMPLATE,
        {
            "uiKitUrl": opts.ui_kit_url if use_ui_kit else "",
            "fontFamily": opts.font_family,
            "theme": opts.theme,
            "css": css,
            "html": html,
            "bridge": scripts_on,
            "widgetIdJson": _script_json(widget.get("id", "")),
            "contextJson": _script_json(context),
            "script": script if scripts_on else "",
        },
    )


def _sandboxed_frame(widget: dict, srcdoc: str, height: int) -> str:
    sandbox = "allow-scripts" if widget.get("settings", {}).get("enableScripts") else ""
    return (
        f'<iframe class="pk-embed" sandbox="{sandbox}" style="height: {height}px" '
        f'srcdoc="{escape(srcdoc)}"></iframe>'
    )


def _render_html(widget: dict, s: dict, ctx: RenderContext) -> str:
    srcdoc = embed_document(widget, s.get("html", ""), ctx, css=s.get("css", ""), script=s.get("htmlJs", ""))
    height = ctx.frame_heights.get(widget.get("id", "")) or 200
    return _sandboxed_frame(widget, srcdoc, height)


def _render_iframe(widget: dict, s: dict, ctx: RenderContext) -> str:
    height = ctx.frame_heights.get(widget.get("id", "")) or _pixels(s.get("iframeHeight"), 320)
    url = (s.get("iframeUrl") or "").strip()
    if url:
        return (
            f'<iframe class="pk-embed" src="{escape(url)}" style="height: {height}px" '
            f'sandbox="allow-scripts allow-same-origin allow-forms"></iframe>'
        )
    markup = s.get("iframeHtml", "")
    if not markup:
        return '<div class="pk-placeholder">Iframe</div>'
    srcdoc = embed_document(
        widget,
        markup,
        ctx,
        use_ui_kit=bool(s.get("iframeUseUiKit", True)),
        send_context=bool(s.get("iframeSendContext")),
    )
    return _sandboxed_frame(widget, srcdoc, height)


# ---------------------------------------------------------------------------
# Layout widget
# ---------------------------------------------------------------------------


def _render_subsection(widget: dict, s: dict, ctx: RenderContext) -> str:
    columns = "".join(render_column(c, ctx) for c in inner_columns(widget))
    classes = (
        f"pk-subsection pk-gap-{_token(s.get('subsectionGap'), 'md')} "
        f"pk-pad-{_token(s.get('subsectionPadding'), 'sm')}"
    )
    if s.get("subsectionUseCard"):
        classes += " pk-card"
    return f'<div class="{classes}"><div class="pk-row">{columns}</div></div>'


# ---------------------------------------------------------------------------
# Data widgets
# ---------------------------------------------------------------------------


def _fetch_state(widget: dict, ctx: RenderContext) -> FetchState | None:
    """The widget's FetchState when it reads from a data URL, else None."""
    if not widget.get("settings", {}).get("dataUrl"):
        return None
    return ctx.data.get(widget.get("id", ""), FetchState())


def _state_banner(state: FetchState) -> str | None:
    if state.status == "error":
        status = f" ({state.http_status})" if state.http_status else ""
        return f'<div class="pk-error" role="alert">Erro ao carregar dados{status}: {escape(state.error or "")}</div>'
    if state.status in ("idle", "loading") and not state.rows:
        return '<div class="pk-loading">Carregando…</div>'
    return None


def _render_title(s: dict) -> str:
    title = s.get("title")
    return f'<div class="pk-widget-title">{escape(title)}</div>' if title else ""


def _render_kpi(widget: dict, s: dict, ctx: RenderContext) -> str:
    state = _fetch_state(widget, ctx)
    if state is not None:
        banner = _state_banner(state)
        if banner:
            return f'<div class="pk-kpi">{_render_title(s)}{banner}</div>'
    raw = resolve_kpi_value(
        s,
        rows=state.rows if state is not None else None,
        filter_results=ctx.filter_context.filter_results,
    )
    value = format_kpi_value(raw, s.get("format", "number"), ctx.options.locale)
    prefix = s.get("prefix") or ""
    suffix = s.get("suffix") or ""
    return (
        f'<div class="pk-kpi">{_render_title(s)}'
        f'<div class="pk-kpi-value">{escape(prefix)}{escape(value)}{escape(suffix)}</div></div>'
    )


def _render_chart(widget: dict, s: dict, ctx: RenderContext) -> str:
    state = _fetch_state(widget, ctx)
    if state is not None:
        banner = _state_banner(state)
        if banner:
            return f'<figure class="pk-chart">{_render_title(s)}{banner}</figure>'
        rows = state.rows
    else:
        rows = static_rows("chart", s)
    points = chart_points(rows, s, CHART_MAX_POINTS)
    chart_type = _token(s.get("chartType"), "bar")
    if not points:
        body = '<div class="pk-empty">Sem dados</div>'
    else:
        peak = max((abs(p["value"]) for p in points), default=0) or 1
        items = []
        for p in points:
            pct = round(abs(p["value"]) / peak * 100, 2)
            items.append(
                f'<li data-value="{p["value"]:g}"><span class="pk-chart-label">{escape(p["label"])}</span>'
                f'<span class="pk-chart-bar" style="width: {pct:g}%"></span>'
                f'<span class="pk-chart-value">{escape(format_cell(p["value"], ctx.options.locale))}</span></li>'
            )
        body = f'<ul class="pk-chart-data">{"".join(items)}</ul>'
    return f'<figure class="pk-chart pk-chart-{chart_type}">{_render_title(s)}{body}</figure>'


def _render_table(widget: dict, s: dict, ctx: RenderContext) -> str:
    state = _fetch_state(widget, ctx)
    if state is not None:
        banner = _state_banner(state)
        if banner:
            return f'<div class="pk-table">{_render_title(s)}{banner}</div>'
        rows = state.rows
    else:
        rows = static_rows("table", s)

    columns = table_columns(s, rows)
    head = "".join(f"<th>{escape(c['label'])}</th>" for c in columns)
    body_rows = []
    for row in rows[:TABLE_MAX_ROWS]:
        if not isinstance(row, dict):
            continue
        cells = "".join(f"<td>{escape(format_cell(row.get(c['key']), ctx.options.locale))}</td>" for c in columns)
        body_rows.append(f"<tr>{cells}</tr>")
    if not body_rows:
        span = max(1, len(columns))
        body_rows.append(f'<tr><td class="pk-empty" colspan="{span}">Sem dados</td></tr>')
    return (
        f'<div class="pk-table">{_render_title(s)}<table>'
        f"<thead><tr>{head}</tr></thead><tbody>{''.join(body_rows)}</tbody>"
        f"</table></div>"
    )


# ---------------------------------------------------------------------------
# Filter widgets
# ---------------------------------------------------------------------------


def _render_filters_header(widget: dict, s: dict, ctx: RenderContext) -> str:
    header = ctx.headers.get(widget.get("id", ""))
    if header is None:
        header = FiltersHeader(widget, None, ctx.filter_context, ctx.view)
        header.restore()
    config = header.config

    parts: list[str] = []
    layout = _token(s.get("filtersLayout"), "grid")
    classes = f"pk-filters pk-filters-{layout}"
    if s.get("filtersUseCard", True):
        classes += " pk-card"
    parts.append(
        f'<form class="{classes}" data-id="{escape(header.widget_id)}" '
        f'data-state="{escape(header.state)}" style="--pk-filter-columns: {_pixels(s.get("filtersColumns"), 2)}">'
    )

    if not config.endpoint:
        parts.append('<div class="pk-error" role="alert">Configure o endpoint de filtros</div>')
    elif header.error is not None:
        parts.append(
            f'<div class="pk-error" role="alert" data-kind="{escape(header.error.kind)}">'
            f"{escape(header.error.message)}</div>"
        )

    for f in config.fields:
        parts.append(_render_filter_field(header, f))

    if config.show_period:
        options = "".join(
            f'<option value="{key}"{" selected" if key == header.preset else ""}>{escape(label)}</option>'
            for key, label in PERIOD_LABELS.items()
        )
        parts.append(f'<label class="pk-field">Período<select name="preset">{options}</select></label>')
        if header.preset == "custom":
            parts.append(
                f'<input type="date" name="from" value="{escape(header.custom_from)}">'
                f'<input type="date" name="to" value="{escape(header.custom_to)}">'
            )

    if config.show_apply and not config.auto_apply:
        busy = " disabled" if header.state == LOADING else ""
        parts.append(f'<button class="pk-button pk-button-primary" type="submit"{busy}>Aplicar</button>')
    if header.state == LOADING:
        parts.append('<div class="pk-loading">Carregando…</div>')

    if header.payment is not None:
        flow = header.payment
        parts.append(
            f'<div class="pk-payment" data-status="{escape(flow.status)}">'
            f'<span>Total: {escape(format_kpi_value(flow.total, "currency", ctx.options.locale))}</span>'
            f'<span>Restante: {escape(format_kpi_value(flow.remaining, "currency", ctx.options.locale))}</span>'
            f"</div>"
        )

    parts.append("</form>")
    return "".join(parts)


def _render_filter_field(header: FiltersHeader, f: Any) -> str:
    value = header.values.get(f.key, "")
    mode = header.input_mode(f)
    locked = f.key in header.locked
    name = escape(f.key)
    attrs = " readonly" if locked else ""

    if mode == "select":
        disabled = " disabled" if locked or header.is_waiting_for_parent(f) else ""
        opts = ['<option value="">Selecione…</option>']
        for option in header.options_for(f):
            selected = " selected" if str(option["value"]) == str(value) else ""
            opts.append(f'<option value="{escape(str(option["value"]))}"{selected}>{escape(option["label"])}</option>')
        control = f'<select name="{name}"{disabled}>{"".join(opts)}</select>'
    elif mode == "boolean":
        checked = " checked" if value is True or str(value).lower() == "true" else ""
        disabled = " disabled" if locked else ""
        control = f'<input type="checkbox" name="{name}" value="true"{checked}{disabled}>'
    else:
        input_type = "number" if mode == "number" else "text"
        if mode == "number":
            step = "0.01" if f.number_format == "currency" else "any"
            attrs = f' step="{step}" data-format="{f.number_format}"{attrs}'
        control = (
            f'<input type="{input_type}" name="{name}" value="{escape(str(value))}" '
            f'placeholder="{escape(f.placeholder)}"{attrs}>'
        )

    error = header.field_errors.get(f.key)
    error_html = f'<small class="pk-field-error">{escape(error)}</small>' if error else ""
    return f'<label class="pk-field">{escape(f.label)}{control}{error_html}</label>'


def result_list_options(s: dict[str, Any], filter_context: FilterContext) -> list[dict[str, Any]]:
    """Entries shown by a filters_result_list, from filterResults[filtersResultKey]."""
    key = s.get("filtersResultKey") or ""
    value = filter_context.filter_results.get(key)
    if not isinstance(value, list):
        return []
    options = []
    for item in value:
        if isinstance(item, dict):
            options.append({"label": str(item.get("label", item.get("value", ""))), "value": item.get("value")})
        else:
            options.append({"label": str(item), "value": item})
    return options


def _render_filters_result_list(widget: dict, s: dict, ctx: RenderContext) -> str:
    options = result_list_options(s, ctx.filter_context)
    title = escape(s.get("filtersResultTitle", ""))
    if not options:
        message = escape(s.get("filtersResultEmptyMessage", ""))
        return f'<div class="pk-result-list"><div class="pk-widget-title">{title}</div><p class="pk-empty">{message}</p></div>'

    target = s.get("filtersResultTargetKey") or ""
    current = ctx.filter_context.filters.get(target)
    value_mode = s.get("filtersResultValueMode", "value")
    display_mode = s.get("filtersResultDisplayMode", "label")
    items = []
    for index, option in enumerate(options):
        stored = option["value"] if value_mode == "value" else option["label"]
        selected = current is not None and str(current) == str(stored)
        shown = option["label"] if display_mode == "label" else format_cell(option["value"], ctx.options.locale)
        marker = ' aria-selected="true"' if selected else ""
        items.append(
            f'<li data-index="{index}"{marker}>'
            f'<button type="button" data-target="{escape(target)}" data-value="{escape(str(stored))}">'
            f"{escape(shown)}</button></li>"
        )
    return (
        f'<div class="pk-result-list"><div class="pk-widget-title">{title}</div>'
        f'<ul>{"".join(items)}</ul></div>'
    )


# ---------------------------------------------------------------------------
# Input widgets
# ---------------------------------------------------------------------------


def _render_input(widget: dict, s: dict, ctx: RenderContext) -> str:
    widget_type = widget.get("widgetType")
    label = escape(s.get("inputLabel", ""))
    if widget_type == "input_select":
        opts = "".join(f'<option value="{escape(str(o))}">{escape(str(o))}</option>' for o in s.get("options") or [])
        control = f'<select name="value">{opts}</select>'
    elif widget_type == "input_boolean":
        control = (
            f'<label><input type="radio" name="value" value="true"> {escape(s.get("trueLabel", "Sim"))}</label>'
            f'<label><input type="radio" name="value" value="false"> {escape(s.get("falseLabel", "Não"))}</label>'
        )
    else:
        control = f'<input type="text" name="value" placeholder="{escape(s.get("placeholder", ""))}">'

    parts = [f'<form class="pk-input" data-id="{escape(widget.get("id", ""))}">', f"<label>{label}</label>", control]
    parts.append(f'<button class="pk-button pk-button-primary" type="submit">{escape(s.get("buttonLabel", "Enviar"))}</button>')
    if not s.get("dataUrl"):
        parts.append('<small class="pk-field-error">Configure a URL de envio</small>')
    result = ctx.inputs.get(widget.get("id", ""))
    if result is not None:
        status = "success" if result.ok else "error"
        message = result.message or ("Enviado" if result.ok else "Falha no envio")
        parts.append(f'<div class="pk-{status}" role="status">{escape(message)}</div>')
    parts.append("</form>")
    return "".join(parts)


def _render_unknown(widget: dict, s: dict, ctx: RenderContext) -> str:
    return f'<div class="pk-placeholder">Widget: {escape(widget.get("widgetType", ""))}</div>'


# ---------------------------------------------------------------------------
# CSS + helpers
# ---------------------------------------------------------------------------

_SPACING_PX = {"none": 0, "sm": 8, "md": 16, "lg": 32}


def _render_css(opts: RenderOptions) -> str:
    lines = [
        f"    body {{ margin: 0; font-family: {opts.font_family}; }}",
        "    .pk-page { display: flex; flex-direction: column; }",
        "    .pk-layout-boxed { max-width: 1200px; margin: 0 auto; width: 100%; }",
        "    .pk-row { display: flex; flex-wrap: wrap; }",
        "    .pk-column { display: flex; flex-direction: column; min-width: 0; }",
        "    .pk-flow-row { flex-direction: row; flex-wrap: wrap; }",
        "    .pk-align-center { justify-content: center; }",
        "    .pk-align-end { justify-content: flex-end; }",
        "    .pk-full-height { min-height: 100vh; }",
        "    .pk-embed { width: 100%; border: 0; }",
        "    .pk-filters-grid { display: grid; grid-template-columns: repeat(var(--pk-filter-columns), 1fr); gap: 8px; }",
        "    .pk-error { color: #b91c1c; }",
    ]
    for name, px in _SPACING_PX.items():
        lines.append(f"    .pk-gap-{name} > .pk-row {{ gap: {px}px; }}")
        lines.append(f"    .pk-pad-{name} {{ padding: {px}px; }}")
    for name, value in opts.theme_vars.items():
        lines.append(f"    :root {{ {name}: {value}; }}")
    return "\n".join(lines)


def _token(value: Any, default: str) -> str:
    """A settings value safe for use in a class name."""
    if isinstance(value, str) and re.fullmatch(r"[\w-]+", value):
        return value
    return default


def _pixels(value: Any, default: int) -> int:
    """A positive integer setting, or `default` when it is missing or not numeric."""
    if isinstance(value, bool):
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return number if number > 0 else default


def _script_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False).replace("</", "<\\/")


def escape(text: Any) -> str:
    """HTML-escape user content."""
    return _html_escape(str(text), quote=True)


# ---------------------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------------------

_WIDGET_RENDERERS: dict[str, Any] = {
    "heading": _render_heading,
    "text": _render_text,
    "image": _render_image,
    "button": _render_button,
    "spacer": _render_spacer,
    "divider": _render_divider,
    "icon": _render_icon,
    "video": _render_video,
    "html": _render_html,
    "iframe": _render_iframe,
    "subsection": _render_subsection,
    "kpi": _render_kpi,
    "chart": _render_chart,
    "table": _render_table,
    "filters_header": _render_filters_header,
    "filters_result_list": _render_filters_result_list,
    "input_text": _render_input,
    "input_select": _render_input,
    "input_boolean": _render_input,
}
