"""
PageKit Kernel — Filters header

State machine behind the filters_header widget: a form of up to four
fields plus a period selector that queries an endpoint and publishes the
result into the page's Filter Context.

States per apply cycle:

    idle → validating → loading → success | error → idle

Fields:
  - list fields resolve options from their own optionsEndpoint, else from
    the `options` map of the last apply response, else from the static
    `options` in the field config; with none of these, the
    fallback policy decides whether they degrade to free text
    (field: that field, block: the whole form if no field got options,
    none: never)
  - a field with dependsOn only loads options once its parent has a
    value, sending it as dependsParam (default: the parent's key);
    changing the parent clears every dependent's value and options

Auto-apply (filtersAutoApply) is a trailing-edge debounce over field and
period changes; it only fires once every list field is filled, and with
filtersAutoApplyRequireAll once every field is filled.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from pagekit.kernel.data import normalize_rows
from pagekit.kernel.fetcher import FetchError, HttpJsonClient
from pagekit.kernel.filter_context import FilterContext
from pagekit.kernel.formatting import parse_amount
from pagekit.kernel.payment import PaymentFlow
from pagekit.kernel.timers import Debouncer
from pagekit.kernel.types import (
    AUTO_APPLY_DEBOUNCE_SECONDS,
    FILTER_FIELD_TYPES,
    KPI_FORMATS,
    MAX_FILTER_FIELDS,
    OPTIONS_FALLBACK_POLICIES,
    PERIOD_PRESETS,
    ViewContext,
    is_empty_value,
)

logger = logging.getLogger(__name__)

# States
IDLE = "idle"
VALIDATING = "validating"
LOADING = "loading"
SUCCESS = "success"
ERROR = "error"

# Error kinds
CONFIGURATION_ERROR = "configuration"
NETWORK_ERROR = "network"
SHAPE_ERROR = "shape"
VALIDATION_ERROR = "validation"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class FilterField:
    key: str
    label: str = ""
    type: str = "text"
    depends_on: str | None = None
    depends_param: str | None = None
    options_endpoint: str | None = None
    options: list[dict[str, Any]] = field(default_factory=list)
    number_format: str = "number"
    lock_on_auto_fill: bool = False
    placeholder: str = ""

    @property
    def is_list(self) -> bool:
        return self.type == "list"

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> FilterField:
        return cls(
            key=str(d["key"]),
            label=_text(d.get("label")) or str(d["key"]),
            type=_choice(d.get("type"), FILTER_FIELD_TYPES, "text"),
            depends_on=_text(d.get("dependsOn")) or None,
            depends_param=_text(d.get("dependsParam")) or None,
            options_endpoint=_text(d.get("optionsEndpoint")) or None,
            options=normalize_options(d.get("options")),
            number_format=_choice(d.get("numberFormat"), KPI_FORMATS, "number"),
            lock_on_auto_fill=bool(d.get("lockOnAutoFill", False)),
            placeholder=_text(d.get("placeholder")),
        )


@dataclass
class FiltersHeaderConfig:
    endpoint: str = ""
    fields: list[FilterField] = field(default_factory=list)
    show_period: bool = True
    show_apply: bool = True
    default_preset: str = "today"
    auto_apply: bool = False
    auto_apply_require_all: bool = False
    options_fallback: str = "field"
    send_context: bool = False
    auto_options: bool = True
    endpoint_prefill: bool = False
    prefill_map: dict[str, str] = field(default_factory=dict)
    payment_popup: bool = False
    payment_total_key: str = ""
    payment_submit_endpoint: str = ""
    payment_ticket_endpoint: str = ""

    @classmethod
    def from_settings(cls, s: dict[str, Any]) -> FiltersHeaderConfig:
        """Read widget settings; invalid entries are dropped, fields capped at four."""
        fields: list[FilterField] = []
        seen: set[str] = set()
        for raw in s.get("filterFields") or []:
            key = raw.get("key") if isinstance(raw, dict) else None
            if not isinstance(key, str) or not key or key in seen:
                continue
            seen.add(key)
            fields.append(FilterField.from_dict(raw))
            if len(fields) == MAX_FILTER_FIELDS:
                break
        # dependsOn must name another configured field
        for f in fields:
            if f.depends_on not in seen or f.depends_on == f.key:
                f.depends_on = None

        prefill_map = s.get("filtersEndpointPrefillMap")
        return cls(
            endpoint=_text(s.get("filtersEndpoint")),
            fields=fields,
            show_period=bool(s.get("filtersShowPeriod", True)),
            show_apply=bool(s.get("filtersShowApply", True)),
            default_preset=_choice(s.get("filtersDefaultPreset"), PERIOD_PRESETS, "today"),
            auto_apply=bool(s.get("filtersAutoApply", False)),
            auto_apply_require_all=bool(s.get("filtersAutoApplyRequireAll", False)),
            options_fallback=_choice(s.get("filtersOptionsFallback"), OPTIONS_FALLBACK_POLICIES, "field"),
            send_context=bool(s.get("filtersSendContext", False)),
            auto_options=bool(s.get("filtersAutoOptions", True)),
            endpoint_prefill=bool(s.get("filtersEndpointPrefill", False)),
            prefill_map={
                k: v for k, v in prefill_map.items() if isinstance(v, str) and v
            } if isinstance(prefill_map, dict) else {},
            payment_popup=bool(s.get("filtersPaymentPopup", False)),
            payment_total_key=_text(s.get("filtersPaymentTotalKey")),
            payment_submit_endpoint=_text(s.get("filtersPaymentSubmitEndpoint")),
            payment_ticket_endpoint=_text(s.get("filtersPaymentTicketEndpoint")),
        )

    def get_field(self, key: str) -> FilterField | None:
        for f in self.fields:
            if f.key == key:
                return f
        return None


@dataclass
class FilterError:
    kind: str
    message: str
    field: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _choice(value: Any, allowed: set[str], default: str) -> str:
    return value if isinstance(value, str) and value in allowed else default


def period_range(
    preset: str,
    today: date,
    custom_from: str = "",
    custom_to: str = "",
) -> tuple[str, str]:
    """ISO (from, to) dates for a period preset, both ends inclusive."""
    if preset == "yesterday":
        day = today - timedelta(days=1)
        return day.isoformat(), day.isoformat()
    if preset == "last_7":
        return (today - timedelta(days=6)).isoformat(), today.isoformat()
    if preset == "last_30":
        return (today - timedelta(days=29)).isoformat(), today.isoformat()
    if preset == "custom":
        return custom_from, custom_to
    return today.isoformat(), today.isoformat()


def normalize_option(item: Any) -> dict[str, Any] | None:
    if isinstance(item, dict):
        value = item.get("value", item.get("id", item.get("label")))
        label = item.get("label", item.get("name", value))
        if label is None and value is None:
            return None
        return {"label": str(label), "value": value}
    if item is None:
        return None
    return {"label": str(item), "value": item}


def normalize_options(payload: Any, key: str | None = None) -> list[dict[str, Any]]:
    """
    Options from a response: a bare array, {options: [...]},
    {options: {<key>: [...]}}, or any row wrapper (data/items/...).
    """
    if isinstance(payload, dict) and "options" in payload:
        options = payload["options"]
        if isinstance(options, dict):
            options = options.get(key) if key else None
        payload = options
    if isinstance(payload, dict):
        rows = normalize_rows(payload)
        # a lone object is not an option list
        payload = rows if rows and rows[0] is not payload else None
    if not isinstance(payload, list):
        return []
    return [opt for opt in (normalize_option(i) for i in payload) if opt is not None]


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class FiltersHeader:
    """
    Runtime state of one filters_header widget in a page view.

    Usage:
        header = FiltersHeader(widget, client, filter_context, view_context)
        await header.mount()
        await header.set_value("city", "SP")
        await header.apply()
        await header.unmount()
    """

    def __init__(
        self,
        widget: dict[str, Any],
        client: HttpJsonClient | None,
        filter_context: FilterContext,
        context: ViewContext | None = None,
        today: date | None = None,
        debounce_seconds: float = AUTO_APPLY_DEBOUNCE_SECONDS,
        on_state: Callable[[str], None] | None = None,
    ) -> None:
        self.widget = widget
        self.widget_id = widget.get("id", "")
        self.config = FiltersHeaderConfig.from_settings(widget.get("settings", {}))
        self.client = client
        self.filter_context = filter_context
        self.context = context
        self.today = today or date.today()
        self.on_state = on_state

        self.values: dict[str, Any] = {f.key: "" for f in self.config.fields}
        self.preset = self.config.default_preset
        self.custom_from = ""
        self.custom_to = ""

        self.field_options: dict[str, list[dict[str, Any]]] = {}
        self.block_options: dict[str, list[dict[str, Any]]] = {}
        self.option_status: dict[str, str] = {}
        self.field_errors: dict[str, str] = {}
        self.locked: set[str] = set()

        self.state = IDLE
        self.outcome: str | None = None
        self.error: FilterError | None = None
        self.payment: PaymentFlow | None = None
        self.last_response: Any = None

        self._loaded_for: dict[str, Any] = {}
        self._option_seq: dict[str, int] = {}
        self._apply_seq = 0
        self._unmounted = False
        self._debouncer = Debouncer(debounce_seconds, self._auto_apply)

    # -- lifecycle --

    async def mount(self) -> None:
        """Restore values from the Filter Context and load independent options."""
        self.restore()
        loads = [self.load_options(f) for f in self.config.fields if f.options_endpoint]
        if loads:
            await asyncio.gather(*loads)

    def restore(self) -> None:
        """Copy this form's keys and period back out of the Filter Context."""
        stored = self.filter_context.filters
        for f in self.config.fields:
            if not is_empty_value(stored.get(f.key)):
                self.values[f.key] = stored[f.key]
        if stored.get("preset") in PERIOD_PRESETS:
            self.preset = stored["preset"]
            if self.preset == "custom":
                self.custom_from = str(stored.get("from") or "")
                self.custom_to = str(stored.get("to") or "")

    async def unmount(self) -> None:
        self._unmounted = True
        self._apply_seq += 1
        await self._debouncer.close()

    # -- reads --

    @property
    def period(self) -> tuple[str, str]:
        return period_range(self.preset, self.today, self.custom_from, self.custom_to)

    @property
    def auto_apply_pending(self) -> bool:
        return self._debouncer.pending

    def options_for(self, f: FilterField) -> list[dict[str, Any]]:
        """Own endpoint options, else the apply response's, else static ones."""
        return self.field_options.get(f.key) or self.block_options.get(f.key) or f.options

    def input_mode(self, f: FilterField) -> str:
        """
        How a field is shown: "select", "text", "number" or "boolean".
        List fields fall back to "text" per the options fallback policy.
        """
        if not f.is_list:
            return f.type
        if self.options_for(f) or self.option_status.get(f.key) == LOADING:
            return "select"
        policy = self.config.options_fallback
        if policy == "field":
            return "text"
        if policy == "block":
            any_options = any(self.options_for(other) for other in self.config.fields if other.is_list)
            return "select" if any_options else "text"
        return "select"

    def is_waiting_for_parent(self, f: FilterField) -> bool:
        return f.depends_on is not None and is_empty_value(self.values.get(f.depends_on))

    def filter_state(self) -> dict[str, Any]:
        """Field values plus period selection, as published to the Filter Context."""
        start, end = self.period
        return {**self.values, "preset": self.preset, "from": start, "to": end}

    def query_params(self) -> dict[str, Any]:
        start, end = self.period
        params: dict[str, Any] = {"preset": self.preset, "from": start, "to": end}
        for key, value in self.values.items():
            if not is_empty_value(value):
                params[key] = value
        if self.config.send_context and self.context is not None:
            params.update(self.context.query_params())
        return params

    # -- input --

    async def set_value(self, key: str, value: Any) -> bool:
        """
        Change one field. Returns False when the field is unknown or locked.
        Dependents are cleared and their options reloaded for the new value.
        """
        f = self.config.get_field(key)
        if f is None or key in self.locked:
            return False
        if self.values.get(key) == value:
            return True

        self.values[key] = value
        self.field_errors.pop(key, None)
        self._clear_dependents([key])
        self.filter_context.set_filters(self.filter_state())
        await self._load_dependent_options([key])
        self._schedule_auto_apply()
        return True

    def set_period(self, preset: str, custom_from: str = "", custom_to: str = "") -> None:
        if preset not in PERIOD_PRESETS:
            raise ValueError(f"Unknown period preset: {preset}")
        self.preset = preset
        self.custom_from = custom_from if preset == "custom" else ""
        self.custom_to = custom_to if preset == "custom" else ""
        self.filter_context.set_filters(self.filter_state())
        self._schedule_auto_apply()

    def unlock(self, key: str) -> None:
        self.locked.discard(key)

    # -- options --

    async def load_options(self, f: FilterField) -> None:
        """
        Fetch a field's own options. Dependent fields wait for a non-empty
        parent and fetch once per parent value.
        """
        if not f.options_endpoint or self._unmounted:
            return
        params: dict[str, Any] = {}
        parent_value = None
        if f.depends_on is not None:
            parent_value = self.values.get(f.depends_on)
            if is_empty_value(parent_value):
                return
            if f.key in self._loaded_for and self._loaded_for[f.key] == parent_value:
                return
            params[f.depends_param or f.depends_on] = parent_value
        elif f.key in self._loaded_for:
            return
        if self.config.send_context and self.context is not None:
            params.update(self.context.query_params())
        if self.client is None:
            self.field_errors[f.key] = "Cliente HTTP indisponível"
            return

        self._loaded_for[f.key] = parent_value
        seq = self._option_seq.get(f.key, 0) + 1
        self._option_seq[f.key] = seq
        self.option_status[f.key] = LOADING
        try:
            payload = await self.client.fetch_json(f.options_endpoint, "GET", params=params)
        except FetchError as e:
            if self._option_seq.get(f.key) != seq or self._unmounted:
                return
            self.option_status[f.key] = ERROR
            self.field_options[f.key] = []
            self.field_errors[f.key] = str(e)
            self._loaded_for.pop(f.key, None)
            return

        if self._option_seq.get(f.key) != seq or self._unmounted:
            logger.debug("filters %s: discarding stale options for %s", self.widget_id, f.key)
            return
        self.field_options[f.key] = normalize_options(payload, f.key)
        self.option_status[f.key] = "ready"

    # -- validation + apply --

    def validate(self) -> list[FilterError]:
        errors: list[FilterError] = []
        if not self.config.endpoint:
            errors.append(FilterError(CONFIGURATION_ERROR, "Endpoint de filtros não configurado"))
        for f in self.config.fields:
            if f.is_list and is_empty_value(self.values.get(f.key)):
                errors.append(FilterError(VALIDATION_ERROR, f"Preencha o campo {f.label}", field=f.key))
        if self.preset == "custom" and not (self.custom_from and self.custom_to):
            errors.append(FilterError(VALIDATION_ERROR, "Informe o período personalizado", field="period"))
        self.field_errors = {e.field: e.message for e in errors if e.field}
        return errors

    async def apply(self) -> bool:
        """Run one validate → fetch → publish cycle. Returns True on success."""
        self._debouncer.cancel()
        self.error = None
        self._transition(VALIDATING)
        errors = self.validate()
        if errors:
            return self._fail(errors[0])
        if self.client is None:
            return self._fail(FilterError(CONFIGURATION_ERROR, "Cliente HTTP indisponível"))

        self._apply_seq += 1
        seq = self._apply_seq
        self._transition(LOADING)
        try:
            payload = await self.client.fetch_json(self.config.endpoint, "GET", params=self.query_params())
        except FetchError as e:
            if seq != self._apply_seq:
                return False
            return self._fail(FilterError(NETWORK_ERROR, str(e)))

        if seq != self._apply_seq:
            logger.debug("filters %s: discarding stale apply response", self.widget_id)
            return False

        self.last_response = payload
        prefilled = self._apply_response(payload)
        if prefilled:
            await self._load_dependent_options(prefilled)
        self._transition(SUCCESS)
        self._finish()
        return True

    # -- internals --

    def _apply_response(self, payload: Any) -> list[str]:
        """Publish an apply response. Returns the keys it prefilled."""
        prefilled: list[str] = []
        if self.config.endpoint_prefill:
            prefilled = self._prefill(payload)
            self._clear_dependents(prefilled)

        if self.config.auto_options:
            options = payload.get("options") if isinstance(payload, dict) else None
            if isinstance(options, dict):
                self.block_options = {
                    key: normalize_options(value) for key, value in options.items()
                }
            elif isinstance(payload, dict) and "options" in payload:
                logger.debug("filters %s: 'options' is not a map, ignoring", self.widget_id)

        items = None
        if isinstance(payload, list):
            items = payload
        elif isinstance(payload, dict) and isinstance(payload.get("kpis"), list):
            items = payload["kpis"]
        if items is not None:
            self.filter_context.set_filter_results(items)

        self.filter_context.set_filters(self.filter_state())

        if self.config.payment_popup and self.config.payment_total_key:
            self._open_payment(payload)
        return prefilled

    def _prefill(self, payload: Any) -> list[str]:
        source = payload
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            source = payload["data"]
        elif isinstance(payload, list):
            source = payload[0] if payload and isinstance(payload[0], dict) else None
        if not isinstance(source, dict):
            return []
        filled: list[str] = []
        for f in self.config.fields:
            if not is_empty_value(self.values.get(f.key)):
                continue
            response_key = self.config.prefill_map.get(f.key, f.key)
            value = source.get(response_key)
            if is_empty_value(value) or isinstance(value, (dict, list)):
                continue
            self.values[f.key] = value
            filled.append(f.key)
            if f.lock_on_auto_fill:
                self.locked.add(f.key)
        return filled

    def _open_payment(self, payload: Any) -> None:
        key = self.config.payment_total_key
        raw = self.values.get(key)
        if is_empty_value(raw) and isinstance(payload, dict):
            raw = payload.get(key)
        total = parse_amount(raw)
        if total is None or total <= 0:
            self.payment = None
            return
        fields = {k: v for k, v in self.values.items()}
        context = {}
        if self.context is not None:
            context = {**self.context.query_params(), "timezone": self.context.timezone}
        self.payment = PaymentFlow(
            total,
            fields,
            self.client,
            submit_endpoint=self.config.payment_submit_endpoint,
            ticket_endpoint=self.config.payment_ticket_endpoint,
            context=context,
        )

    def _clear_dependents(self, keys: list[str]) -> None:
        """
        Reset everything downstream of `keys`: values, options and errors.
        A dependent that is itself in `keys` keeps its value but still
        reloads its options.
        """
        for key in keys:
            for dependent in self._dependents_of(key):
                if dependent.key not in keys:
                    self.values[dependent.key] = ""
                    self.field_errors.pop(dependent.key, None)
                self.field_options.pop(dependent.key, None)
                self.option_status.pop(dependent.key, None)
                self._loaded_for.pop(dependent.key, None)
                self._option_seq[dependent.key] = self._option_seq.get(dependent.key, 0) + 1

    async def _load_dependent_options(self, keys: list[str]) -> None:
        direct = [d for d in self.config.fields if d.depends_on in keys and d.options_endpoint]
        if direct:
            await asyncio.gather(*(self.load_options(d) for d in direct))

    def _dependents_of(self, key: str) -> list[FilterField]:
        """Every field that depends on `key`, directly or transitively."""
        found: list[FilterField] = []
        frontier = [key]
        visited = {key}
        while frontier:
            parent = frontier.pop(0)
            for f in self.config.fields:
                if f.depends_on == parent and f.key not in visited:
                    visited.add(f.key)
                    found.append(f)
                    frontier.append(f.key)
        return found

    def _ready_for_auto_apply(self) -> bool:
        if not self.config.endpoint:
            return False
        for f in self.config.fields:
            empty = is_empty_value(self.values.get(f.key))
            if empty and (f.is_list or self.config.auto_apply_require_all):
                return False
        return True

    def _schedule_auto_apply(self) -> None:
        if not self.config.auto_apply or self._unmounted:
            return
        if not self._ready_for_auto_apply():
            self._debouncer.cancel()
            return
        self._debouncer.trigger()

    async def _auto_apply(self) -> None:
        if not self._unmounted:
            await self.apply()

    def _transition(self, state: str) -> None:
        self.state = state
        if self.on_state is not None:
            self.on_state(state)

    def _fail(self, error: FilterError) -> bool:
        self.error = error
        self._transition(ERROR)
        self._finish()
        return False

    def _finish(self) -> None:
        self.outcome = self.state
        self._transition(IDLE)
