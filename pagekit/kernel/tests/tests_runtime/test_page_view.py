"""
PageKit Runtime — Page View End to End

A mounted page view wires data sources, filters headers, the filter
context and frames together, then renders.
"""

import json
from datetime import date

import httpx
import pytest

from pagekit.kernel.document import empty_document
from pagekit.kernel.filter_context import MemorySessionStorage
from pagekit.kernel.messaging import RecordingChannel
from pagekit.kernel.mutations import add_section, mutate
from pagekit.kernel.page_view import PageView
from pagekit.kernel.types import Address


def _page(*widgets):
    """One section, one column, widgets given as (type, settings) pairs."""
    doc = add_section(empty_document(), [12])
    section = doc["sections"][0]
    address = Address(section["id"], section["columns"][0]["id"])
    ids = []
    for widget_type, settings in widgets:
        added = mutate(doc, {"t": "widget.add", "address": address.to_dict(), "widgetType": widget_type})
        doc = added.document
        ids.append(added.node_id)
        doc = mutate(doc, {
            "t": "widget.update",
            "address": {**address.to_dict(), "widgetId": added.node_id},
            "settings": settings,
        }).document
    return doc, ids


class TestKpiEndToEnd:
    async def test_sum_of_fetched_rows(self, view_context, mock_client):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"data": [{"valor": 10}, {"valor": 15}]})

        doc, (kpi_id,) = _page(("kpi", {
            "title": "Vendas",
            "dataUrl": "https://api.test/kpi",
            "valueField": "valor",
            "aggregation": "sum",
        }))
        view = PageView(doc, view_context, mock_client(handler))
        await view.mount(poll=False)
        out = view.render()
        await view.unmount()

        assert '<div class="pk-kpi-value">25</div>' in out
        assert seen[0]["widget"] == {"id": kpi_id, "type": "kpi", "title": "Vendas"}
        assert seen[0]["page"]["id"] == "page_1"

    async def test_fetch_error_rendered(self, view_context, mock_client):
        doc, _ = _page(("kpi", {"dataUrl": "https://api.test/kpi", "valueField": "v"}))
        view = PageView(doc, view_context, mock_client(lambda r: httpx.Response(404, json={"message": "sem dados"})))
        await view.mount(poll=False)
        assert "Erro ao carregar dados (404): sem dados" in view.render()
        await view.unmount()


class TestFiltersEndToEnd:
    async def test_apply_feeds_kpi_and_persists(self, view_context, mock_client):
        def handler(request):
            assert request.url.params["city"] == "SP"
            return httpx.Response(200, json={"kpis": [{"label": "Total", "value": 1500}]})

        doc, (header_id, _) = _page(
            ("filters_header", {
                "filtersEndpoint": "https://api.test/filters",
                "filterFields": [{"key": "city", "label": "Cidade", "type": "list"}],
            }),
            ("kpi", {"useFilterResult": True, "filterLabel": "Total", "format": "currency"}),
        )
        storage = MemorySessionStorage()
        view = PageView(doc, view_context, mock_client(handler), storage=storage, today=date(2026, 3, 15))
        await view.mount(poll=False)

        header = view.headers[header_id]
        await header.set_value("city", "SP")
        assert await header.apply()
        out = view.render()
        await view.unmount()

        assert "R$ 1.500,00" in out
        blob = json.loads(storage.items["viewData"])
        assert blob["filters"]["city"] == "SP"
        assert blob["lastResultList"] == [{"label": "Total", "value": 1500}]

    async def test_filters_survive_a_new_view(self, view_context, mock_client):
        doc, (header_id,) = _page(("filters_header", {
            "filtersEndpoint": "https://api.test/filters",
            "filterFields": [{"key": "city", "label": "Cidade"}],
        }))
        storage = MemorySessionStorage()
        storage.set_item("viewData", json.dumps({"filters": {"city": "RJ"}, "lastResultList": []}))
        view = PageView(doc, view_context, mock_client(lambda r: httpx.Response(200, json={})), storage=storage)
        await view.mount(poll=False)
        assert view.headers[header_id].values["city"] == "RJ"
        assert 'value="RJ"' in view.render()
        await view.unmount()

    async def test_select_result_writes_target(self, view_context, mock_client):
        doc, (list_id,) = _page(("filters_result_list", {}))
        view = PageView(doc, view_context, mock_client(lambda r: httpx.Response(200)))
        await view.mount(poll=False)
        view.filter_context.set_filter_results([
            {"label": "installments", "value": [{"label": "3x", "value": 3}, {"label": "6x", "value": 6}]},
        ])
        assert view.select_result(list_id, 1) == 6
        assert view.filter_context.filters["parcelamento"] == 6
        with pytest.raises(IndexError):
            view.select_result(list_id, 5)
        await view.unmount()


class TestInputsAndFrames:
    async def test_submit_input_rendered(self, view_context, mock_client):
        doc, (input_id,) = _page(("input_text", {"dataUrl": "https://api.test/in"}))
        client = mock_client(lambda r: httpx.Response(200, json={"ok": True, "message": "Recebido"}))
        view = PageView(doc, view_context, client)
        await view.mount(poll=False)
        result = await view.submit_input(input_id, "123")
        assert result.ok
        assert "Recebido" in view.render()
        await view.unmount()

    async def test_submit_to_non_input_widget(self, view_context, mock_client):
        doc, (text_id,) = _page(("text", {}))
        view = PageView(doc, view_context, mock_client(lambda r: httpx.Response(200)))
        with pytest.raises(KeyError):
            await view.submit_input(text_id, "x")

    async def test_frame_theme_and_results(self, view_context, mock_client):
        doc, (html_id, kpi_id) = _page(
            ("html", {"enableScripts": True}),
            ("kpi", {"useFilterResult": True, "filterLabel": "Clientes"}),
        )
        view = PageView(doc, view_context, mock_client(lambda r: httpx.Response(200)))
        await view.mount(poll=False)
        channel = RecordingChannel()
        view.attach_frame(html_id, channel)
        assert channel.sent[0]["type"] == "nexus-theme"

        view.receive_frame_message({"type": "nexus-iframe-height", "widgetId": html_id, "height": 333})
        view.receive_frame_message({"type": "nexus-filter-results", "items": [{"label": "Clientes", "value": 7}]})
        out = view.render()
        await view.unmount()
        assert "height: 333px" in out
        assert '<div class="pk-kpi-value">7</div>' in out
