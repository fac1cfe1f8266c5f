"""
PageKit Kernel — Widget data sources

Owns the IO side of data resolution for one mounted widget:
POST the standard context payload to settings.dataUrl, normalize the
response into a FetchState, and optionally re-fetch every
settings.refreshInterval seconds until unmounted.

Invariants:
  - errors become FetchState(status="error"), never exceptions
  - polling never overlaps; a tick is skipped while a fetch is in flight
  - after unmount no result is applied and no timer survives
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pagekit.kernel.data import normalize_rows
from pagekit.kernel.fetcher import FetchError, HttpJsonClient, error_message
from pagekit.kernel.types import ACK_KEYS, FetchState, ViewContext, now_iso

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Context payload
# ---------------------------------------------------------------------------


def widget_title(widget: dict[str, Any]) -> str:
    settings = widget.get("settings", {})
    for key in ("title", "inputLabel", "text", "label"):
        value = settings.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def build_context_payload(widget: dict[str, Any], context: ViewContext) -> dict[str, Any]:
    """
    The body sent to a data URL so one endpoint can serve many widgets:
    {user?, tenant?, widget:{id,type,title}, page:{id,slug,title},
     meta:{timestamp,timezone,locale}}
    """
    payload: dict[str, Any] = {}
    if context.user:
        payload["user"] = context.user
    if context.tenant:
        payload["tenant"] = context.tenant
    payload["widget"] = {
        "id": widget.get("id"),
        "type": widget.get("widgetType"),
        "title": widget_title(widget),
    }
    payload["page"] = context.page.to_dict()
    payload["meta"] = {
        "timestamp": now_iso(),
        "timezone": context.timezone,
        "locale": context.locale,
    }
    return payload


# ---------------------------------------------------------------------------
# Data source
# ---------------------------------------------------------------------------


class WidgetDataSource:
    """
    Fetch state for one widget with a dataUrl.

    Usage:
        source = WidgetDataSource(widget, client, context)
        await source.mount()      # first fetch + start polling
        source.state              # FetchState for the renderer
        await source.unmount()    # cancel timers, drop late results
    """

    def __init__(
        self,
        widget: dict[str, Any],
        client: HttpJsonClient,
        context: ViewContext,
        on_change: Callable[[FetchState], None] | None = None,
    ) -> None:
        self.widget = widget
        self.client = client
        self.context = context
        self.on_change = on_change
        self.state = FetchState()
        self._in_flight = False
        self._unmounted = False
        self._poll_task: asyncio.Task | None = None
        self._tick_tasks: set[asyncio.Task] = set()

    @property
    def url(self) -> str:
        return (self.widget.get("settings", {}).get("dataUrl") or "").strip()

    @property
    def refresh_interval(self) -> float:
        value = self.widget.get("settings", {}).get("refreshInterval") or 0
        try:
            return max(0.0, float(value))
        except (TypeError, ValueError):
            return 0.0

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def mount(self, poll: bool = True) -> FetchState:
        await self.refresh()
        if poll and self.refresh_interval > 0 and not self._unmounted:
            self._poll_task = asyncio.create_task(self._poll())
        return self.state

    async def unmount(self) -> None:
        self._unmounted = True
        tasks = [t for t in (self._poll_task, *self._tick_tasks) if t is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._poll_task = None
        self._tick_tasks.clear()

    async def refresh(self) -> FetchState:
        """Fetch once. Returns the current state; a no-op while in flight."""
        if self._unmounted:
            return self.state
        if not self.url:
            self._set(FetchState(status="error", error="URL de dados não configurada"))
            return self.state
        if self._in_flight:
            logger.debug("widget %s: fetch already in flight", self.widget.get("id"))
            return self.state

        self._in_flight = True
        self._set(FetchState(status="loading", data=self.state.data, rows=self.state.rows))
        try:
            payload = await self.client.fetch_json(
                self.url, "POST", build_context_payload(self.widget, self.context)
            )
        except FetchError as e:
            result = FetchState(status="error", error=e.message, http_status=e.status)
        else:
            result = FetchState(
                status="ready",
                data=payload,
                rows=normalize_rows(payload),
                fetched_at=now_iso(),
            )
        finally:
            self._in_flight = False

        if self._unmounted:
            logger.debug("widget %s: discarding result after unmount", self.widget.get("id"))
            return self.state
        self._set(result)
        return self.state

    async def _poll(self) -> None:
        interval = self.refresh_interval
        while not self._unmounted:
            await asyncio.sleep(interval)
            if self._in_flight:
                logger.debug("widget %s: skipping refresh tick", self.widget.get("id"))
                continue
            task = asyncio.create_task(self.refresh())
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)

    def _set(self, state: FetchState) -> None:
        self.state = state
        if self.on_change is not None:
            self.on_change(state)


# ---------------------------------------------------------------------------
# Input widget submission
# ---------------------------------------------------------------------------


@dataclass
class InputSubmission:
    """Outcome of an input widget submit."""

    ok: bool
    message: str | None = None
    response: Any = None


def interpret_ack(payload: Any, strict: bool = False) -> tuple[bool, str | None]:
    """
    Read an acknowledgement from a submission response.

    Accepts a bare boolean, a "true"/"false" string, a number, or an object
    carrying one of result|valid|success|ok|value as a boolean. An empty
    body, free text, or an object with none of those keys counts as
    accepted, unless strict is set: then only an explicit yes is a yes.
    """
    if payload is None:
        return not strict, None
    if isinstance(payload, bool):
        return payload, None
    if isinstance(payload, (int, float)):
        return payload != 0, None
    if isinstance(payload, str):
        lowered = payload.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true", None
        return not strict, payload or None
    if isinstance(payload, dict):
        message = error_message(payload)
        for key in ACK_KEYS:
            value = payload.get(key)
            if isinstance(value, bool):
                return value, message
        return not strict, message
    return not strict, None


async def submit_input(
    client: HttpJsonClient,
    widget: dict[str, Any],
    value: Any,
    context: ViewContext,
) -> InputSubmission:
    """POST {value, context} to the widget's dataUrl and interpret the reply."""
    url = (widget.get("settings", {}).get("dataUrl") or "").strip()
    if not url:
        return InputSubmission(ok=False, message="URL de envio não configurada")
    body = {"value": value, "context": build_context_payload(widget, context)}
    try:
        response = await client.fetch_json(url, "POST", body)
    except FetchError as e:
        return InputSubmission(ok=False, message=str(e))
    ok, message = interpret_ack(response)
    if not ok and message is None:
        message = "Valor recusado"
    return InputSubmission(ok=ok, message=message, response=response)
