"""
PageKit Kernel — Page view

Runtime for one rendered page: owns the page-scoped FilterContext, one
WidgetDataSource per data widget with a dataUrl, one FiltersHeader per
filters_header widget, and the bridge to embedded frames. Nothing here is
global; two page views never share state.

Lifecycle:
    view = PageView(document, context, client, session_storage)
    await view.mount()         # hydrate filters, first fetches, start polling
    html = view.render()
    await view.unmount()       # stop timers, drop late results
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any

from pagekit.kernel.datasource import InputSubmission, WidgetDataSource, submit_input
from pagekit.kernel.document import find_widget, iter_widgets
from pagekit.kernel.fetcher import HttpJsonClient
from pagekit.kernel.filter_context import FilterContext, SessionStorage
from pagekit.kernel.filters_header import FiltersHeader
from pagekit.kernel.messaging import FrameBridge, FrameChannel
from pagekit.kernel.renderer import RenderContext, render_page, result_list_options
from pagekit.kernel.types import (
    DATA_WIDGET_TYPES,
    INPUT_WIDGET_TYPES,
    RenderOptions,
    ViewContext,
)

logger = logging.getLogger(__name__)


class PageView:
    def __init__(
        self,
        document: dict[str, Any],
        context: ViewContext,
        client: HttpJsonClient,
        storage: SessionStorage | None = None,
        options: RenderOptions | None = None,
        today: date | None = None,
    ) -> None:
        self.document = document
        self.context = context
        self.client = client
        self.options = options or RenderOptions(locale=context.locale)
        self.today = today
        self.filter_context = FilterContext(storage)
        self.bridge = FrameBridge(self.filter_context)
        self.sources: dict[str, WidgetDataSource] = {}
        self.headers: dict[str, FiltersHeader] = {}
        self.inputs: dict[str, InputSubmission] = {}
        self.mounted = False

    # -- lifecycle --

    async def mount(self, poll: bool = True) -> None:
        if self.mounted:
            return
        self.filter_context.hydrate()

        for widget in iter_widgets(self.document):
            widget_id = widget.get("id", "")
            widget_type = widget.get("widgetType")
            settings = widget.get("settings", {})
            if widget_type in DATA_WIDGET_TYPES and settings.get("dataUrl"):
                self.sources[widget_id] = WidgetDataSource(widget, self.client, self.context)
            elif widget_type == "filters_header":
                self.headers[widget_id] = FiltersHeader(
                    widget, self.client, self.filter_context, self.context, today=self.today
                )

        self.mounted = True
        await asyncio.gather(
            *(header.mount() for header in self.headers.values()),
            *(source.mount(poll=poll) for source in self.sources.values()),
        )
        logger.debug(
            "mounted page %s: %d data source(s), %d filter header(s)",
            self.context.page.id,
            len(self.sources),
            len(self.headers),
        )

    async def unmount(self) -> None:
        self.mounted = False
        await asyncio.gather(
            *(header.unmount() for header in self.headers.values()),
            *(source.unmount() for source in self.sources.values()),
        )
        for widget_id in list(self.bridge.channels):
            self.bridge.detach(widget_id)

    # -- interaction --

    async def refresh(self, widget_id: str | None = None) -> None:
        """Re-fetch one data widget, or all of them."""
        if widget_id is not None:
            source = self.sources.get(widget_id)
            if source is not None:
                await source.refresh()
            return
        await asyncio.gather(*(source.refresh() for source in self.sources.values()))

    async def submit_input(self, widget_id: str, value: Any) -> InputSubmission:
        widget = find_widget(self.document, widget_id)
        if widget is None or widget.get("widgetType") not in INPUT_WIDGET_TYPES:
            raise KeyError(widget_id)
        result = await submit_input(self.client, widget, value, self.context)
        if self.mounted:
            self.inputs[widget_id] = result
        return result

    def select_result(self, widget_id: str, index: int) -> Any:
        """
        Choose entry `index` of a filters_result_list; its label or value is
        written to filters[filtersResultTargetKey]. Returns what was stored.
        """
        widget = find_widget(self.document, widget_id)
        if widget is None or widget.get("widgetType") != "filters_result_list":
            raise KeyError(widget_id)
        settings = widget.get("settings", {})
        options = result_list_options(settings, self.filter_context)
        if not 0 <= index < len(options):
            raise IndexError(index)
        option = options[index]
        stored = option["value"] if settings.get("filtersResultValueMode", "value") == "value" else option["label"]
        target = settings.get("filtersResultTargetKey")
        if target:
            self.filter_context.set_filter(target, stored)
        return stored

    def attach_frame(self, widget_id: str, channel: FrameChannel) -> None:
        """Connect an embedded frame and send it the current theme."""
        self.bridge.attach(widget_id, channel)
        self.bridge.send_theme(widget_id, self.options)

    def receive_frame_message(self, raw: Any) -> Any:
        return self.bridge.receive(raw)

    # -- output --

    def render_context(self) -> RenderContext:
        return RenderContext(
            options=self.options,
            view=self.context,
            filter_context=self.filter_context,
            data={widget_id: source.state for widget_id, source in self.sources.items()},
            headers=dict(self.headers),
            inputs=dict(self.inputs),
            frame_heights=dict(self.bridge.heights),
        )

    def render(self) -> str:
        return render_page(self.document, self.render_context(), title=self.context.page.title)
