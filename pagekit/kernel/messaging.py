"""
PageKit Kernel — Embedded frame messaging

Typed protocol between a page view and the html/iframe widgets it embeds.
Messages are a tagged union on `type`:

    nexus-theme           host → frame   {theme, vars, fontFamily}
    nexus-iframe-height   frame → host   {widgetId, height}
    nexus-filter-results  frame → host   {widgetId?, items?, filters?}

Transport is abstract (FrameChannel); the bridge only parses, validates and
applies messages.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from pagekit.kernel.filter_context import FilterContext
from pagekit.kernel.types import RenderOptions

logger = logging.getLogger(__name__)

THEME_MESSAGE = "nexus-theme"
HEIGHT_MESSAGE = "nexus-iframe-height"
FILTER_RESULTS_MESSAGE = "nexus-filter-results"


# ---------------------------------------------------------------------------
# Message models
# ---------------------------------------------------------------------------


class ThemeMessage(BaseModel):
    """Host → frame: current theme so embedded markup can match the page."""

    model_config = {"populate_by_name": True}

    type: Literal["nexus-theme"] = THEME_MESSAGE
    theme: str = "light"
    vars: dict[str, str] = Field(default_factory=dict)
    font_family: str | None = Field(default=None, alias="fontFamily")


class IframeHeightMessage(BaseModel):
    """Frame → host: content height for auto-sizing."""

    model_config = {"populate_by_name": True}

    type: Literal["nexus-iframe-height"] = HEIGHT_MESSAGE
    widget_id: str = Field(alias="widgetId")
    height: float = Field(gt=0)


class FilterResultsMessage(BaseModel):
    """Frame → host: publish results and/or filters into the Filter Context."""

    model_config = {"populate_by_name": True}

    type: Literal["nexus-filter-results"] = FILTER_RESULTS_MESSAGE
    widget_id: str | None = Field(default=None, alias="widgetId")
    items: list[dict[str, Any]] | None = None
    filters: dict[str, Any] | None = None


FrameMessage = Annotated[
    Union[ThemeMessage, IframeHeightMessage, FilterResultsMessage],
    Field(discriminator="type"),
]

_frame_message_adapter: TypeAdapter[Any] = TypeAdapter(FrameMessage)


def parse_frame_message(raw: Any) -> ThemeMessage | IframeHeightMessage | FilterResultsMessage | None:
    """Parse an incoming message; None for anything not in the protocol."""
    if not isinstance(raw, dict) or raw.get("type") not in (THEME_MESSAGE, HEIGHT_MESSAGE, FILTER_RESULTS_MESSAGE):
        return None
    try:
        return _frame_message_adapter.validate_python(raw)
    except ValidationError as e:
        logger.warning("dropping malformed %s message: %s", raw.get("type"), e.errors()[0].get("msg"))
        return None


def theme_message(options: RenderOptions) -> ThemeMessage:
    return ThemeMessage(theme=options.theme, vars=dict(options.theme_vars), font_family=options.font_family)


# ---------------------------------------------------------------------------
# Transport + bridge
# ---------------------------------------------------------------------------


class FrameChannel:
    """
    Abstract one-way channel into an embedded frame.
    Implement over postMessage, a websocket, or a list for tests.
    """

    def send(self, message: dict[str, Any]) -> None:
        raise NotImplementedError


class RecordingChannel(FrameChannel):
    """Collects sent messages. Used by tests and server-side rendering."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    def send(self, message: dict[str, Any]) -> None:
        self.sent.append(message)


class FrameBridge:
    """
    Routes protocol messages between a page view and its embedded frames.

    Usage:
        bridge = FrameBridge(filter_context)
        bridge.attach(widget_id, channel)
        bridge.broadcast_theme(options)
        bridge.receive(raw_message)
    """

    def __init__(self, filter_context: FilterContext) -> None:
        self.filter_context = filter_context
        self.channels: dict[str, FrameChannel] = {}
        self.heights: dict[str, int] = {}

    def attach(self, widget_id: str, channel: FrameChannel) -> None:
        self.channels[widget_id] = channel

    def detach(self, widget_id: str) -> None:
        self.channels.pop(widget_id, None)
        self.heights.pop(widget_id, None)

    def broadcast_theme(self, options: RenderOptions) -> None:
        message = theme_message(options).model_dump(by_alias=True, exclude_none=True)
        for channel in self.channels.values():
            channel.send(message)

    def send_theme(self, widget_id: str, options: RenderOptions) -> None:
        channel = self.channels.get(widget_id)
        if channel is not None:
            channel.send(theme_message(options).model_dump(by_alias=True, exclude_none=True))

    def receive(self, raw: Any) -> ThemeMessage | IframeHeightMessage | FilterResultsMessage | None:
        """Apply one frame → host message. Returns the parsed message, or None if ignored."""
        message = parse_frame_message(raw)
        if isinstance(message, IframeHeightMessage):
            self.heights[message.widget_id] = int(round(message.height))
        elif isinstance(message, FilterResultsMessage):
            if message.items is not None:
                self.filter_context.set_filter_results(message.items)
            if message.filters is not None:
                # frames may only know their own keys; merge over current state
                self.filter_context.set_filters({**self.filter_context.filters, **message.filters})
        elif isinstance(message, ThemeMessage):
            # host → frame only
            return None
        return message
