"""
PageKit Kernel — Filter Context

Page-scoped store shared by the widgets of one page view:

    filters        current form values plus period selection
    filterResults  last published result list, keyed by label

One instance per page view, passed explicitly to whoever needs it. Every
change is mirrored to session storage under SESSION_STORAGE_KEY as
{filters, lastResultList} and rehydrated on mount, so going from a filter
page to a detail page and back keeps the last applied filters.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from pagekit.kernel.types import SESSION_STORAGE_KEY

logger = logging.getLogger(__name__)

Listener = Callable[["FilterContext"], None]


# ---------------------------------------------------------------------------
# Session storage
# ---------------------------------------------------------------------------


class SessionStorage:
    """
    Abstract session-scoped key/value storage.
    Implement over the host's session store, or in-memory for tests.
    """

    def get_item(self, key: str) -> str | None:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class MemorySessionStorage(SessionStorage):
    """In-memory session storage for testing and server-side rendering."""

    def __init__(self) -> None:
        self.items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class FilterContext:
    """Publish/subscribe store for filters and filter results."""

    def __init__(self, storage: SessionStorage | None = None) -> None:
        self.storage = storage
        self.filters: dict[str, Any] = {}
        self.filter_results: dict[str, Any] = {}
        self.last_result_list: list[dict[str, Any]] = []
        self._listeners: list[Listener] = []

    # -- lifecycle --

    def hydrate(self) -> bool:
        """Load the persisted blob. Returns True if anything was restored."""
        if self.storage is None:
            return False
        raw = self.storage.get_item(SESSION_STORAGE_KEY)
        if not raw:
            return False
        try:
            blob = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("ignoring malformed %s session blob", SESSION_STORAGE_KEY)
            return False
        if not isinstance(blob, dict):
            return False

        filters = blob.get("filters")
        if isinstance(filters, dict):
            self.filters = dict(filters)
        items = blob.get("lastResultList")
        if isinstance(items, list):
            self._rebuild_results(items)
        self._notify()
        return True

    def clear(self) -> None:
        self.filters = {}
        self.filter_results = {}
        self.last_result_list = []
        if self.storage is not None:
            self.storage.remove_item(SESSION_STORAGE_KEY)
        self._notify()

    # -- writes --

    def set_filters(self, filters: dict[str, Any]) -> None:
        """Replace the filters map wholesale; callers pass the full next state."""
        self.filters = dict(filters)
        self._persist()
        self._notify()

    def set_filter(self, key: str, value: Any) -> None:
        """Convenience: next state = current filters with one key replaced."""
        self.set_filters({**self.filters, key: value})

    def set_filter_results(self, items: list[Any]) -> None:
        """
        Rebuild filterResults from a {label, value} list. Duplicate labels:
        last write wins. The ordered list is kept for list-form consumers.
        """
        self._rebuild_results(items)
        self._persist()
        self._notify()

    # -- reads --

    def get_result(self, label: str) -> Any:
        return self.filter_results.get(label)

    def snapshot(self) -> dict[str, Any]:
        return {"filters": dict(self.filters), "lastResultList": list(self.last_result_list)}

    # -- subscriptions --

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- internals --

    def _rebuild_results(self, items: list[Any]) -> None:
        results: dict[str, Any] = {}
        kept: list[dict[str, Any]] = []
        for item in items:
            if not isinstance(item, dict) or "label" not in item:
                continue
            label = str(item["label"])
            results[label] = item.get("value")
            kept.append(item)
        self.filter_results = results
        self.last_result_list = kept

    def _persist(self) -> None:
        if self.storage is None:
            return
        try:
            blob = json.dumps(self.snapshot(), default=str)
        except (TypeError, ValueError) as e:
            logger.warning("could not serialize filter context: %s", e)
            return
        self.storage.set_item(SESSION_STORAGE_KEY, blob)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
