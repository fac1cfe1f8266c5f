"""Integration tests for the page document routes."""

from __future__ import annotations

import json

from pagekit.kernel.document import empty_document
from pagekit.kernel.mutations import add_section, add_widget, update_widget_settings
from pagekit.kernel.types import Address


def page_with_header():
    doc = add_section(empty_document(), [12])
    section = doc["sections"][0]
    address = Address(section["id"], section["columns"][0]["id"])
    doc = add_widget(doc, address, "filters_header")
    widget_id = doc["sections"][0]["columns"][0]["widgets"][0]["id"]
    return update_widget_settings(
        doc,
        Address(section["id"], section["columns"][0]["id"], widget_id),
        {
            "filtersEndpoint": "https://api.test/filters",
            "filterFields": [{"key": "city", "label": "Cidade", "type": "text"}],
        },
    )


def column_address(doc):
    section = doc["sections"][0]
    return {"sectionId": section["id"], "columnId": section["columns"][0]["id"]}


# ── health ──────────────────────────────────────────────────────────────────


async def test_health(async_client):
    res = await async_client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


# ── get / save ──────────────────────────────────────────────────────────────


class TestSaveAndGet:
    """Tests for GET and PUT /api/pages/{page_id}."""

    async def test_get_missing(self, async_client):
        res = await async_client.get("/api/pages/nope")
        assert res.status_code == 404
        assert res.json()["detail"] == "Page not found."

    async def test_save_then_get(self, async_client):
        doc = add_section(empty_document(), [6, 6])
        res = await async_client.put("/api/pages/p1", json={"document": doc, "title": "Vendas", "slug": "vendas"})
        assert res.status_code == 200
        data = res.json()
        assert data["version"] == 1
        assert data["status"] == "draft"
        assert data["title"] == "Vendas"

        res = await async_client.get("/api/pages/p1")
        assert res.status_code == 200
        assert res.json()["document"] == doc

    async def test_invalid_document(self, async_client):
        res = await async_client.put("/api/pages/p1", json={"document": {"sections": [{"columns": "x"}]}})
        assert res.status_code == 422
        detail = res.json()["detail"]
        assert detail["message"] == "Invalid document."
        assert detail["errors"]

    async def test_malformed_setting_value(self, async_client):
        doc = add_section(empty_document(), [12])
        doc["sections"][0]["settings"]["layout"] = ["boxed"]
        res = await async_client.put("/api/pages/p1", json={"document": doc})
        assert res.status_code == 422
        assert res.json()["detail"]["errors"] == ["sections[0]: invalid layout: ['boxed']"]

    async def test_unknown_field_rejected(self, async_client):
        res = await async_client.put("/api/pages/p1", json={"document": empty_document(), "owner": "x"})
        assert res.status_code == 422


# ── publish / versions ──────────────────────────────────────────────────────


class TestPublish:
    """Tests for POST /api/pages/{page_id}/publish and GET .../versions."""

    async def test_publish_and_versions(self, async_client):
        await async_client.put("/api/pages/p1", json={"document": empty_document()})
        res = await async_client.post("/api/pages/p1/publish", json={"document": add_section(empty_document())})
        assert res.status_code == 200
        assert res.json()["version"] == 2
        assert res.json()["status"] == "published"

        res = await async_client.get("/api/pages/p1/versions")
        assert res.status_code == 200
        versions = res.json()
        assert [v["version"] for v in versions] == [1]
        assert versions[0]["document"] == empty_document()

    async def test_publish_missing_without_document(self, async_client):
        res = await async_client.post("/api/pages/nope/publish", json={})
        assert res.status_code == 404

    async def test_versions_missing(self, async_client):
        res = await async_client.get("/api/pages/nope/versions")
        assert res.status_code == 404


# ── mutations ───────────────────────────────────────────────────────────────


class TestMutations:
    """Tests for POST /api/pages/{page_id}/mutations."""

    async def test_batch_applied(self, async_client):
        doc = add_section(empty_document(), [12])
        await async_client.put("/api/pages/p1", json={"document": doc})
        res = await async_client.post("/api/pages/p1/mutations", json={"ops": [
            {"t": "widget.add", "address": column_address(doc), "widgetType": "kpi"},
        ]})
        assert res.status_code == 200
        data = res.json()
        assert data["results"][0]["accepted"] is True
        widgets = data["page"]["document"]["sections"][0]["columns"][0]["widgets"]
        assert widgets[0]["id"] == data["results"][0]["node_id"]

    async def test_rejection_is_all_or_nothing(self, async_client):
        doc = add_section(empty_document(), [12])
        await async_client.put("/api/pages/p1", json={"document": doc})
        res = await async_client.post("/api/pages/p1/mutations", json={"ops": [
            {"t": "widget.add", "address": column_address(doc), "widgetType": "kpi"},
            {"t": "column.update", "address": column_address(doc), "settings": {"width": 13}},
        ]})
        assert res.status_code == 409
        detail = res.json()["detail"]
        assert [r["accepted"] for r in detail["results"]] == [True, False]

        res = await async_client.get("/api/pages/p1")
        assert res.json()["document"] == doc

    async def test_empty_batch(self, async_client):
        await async_client.put("/api/pages/p1", json={"document": empty_document()})
        res = await async_client.post("/api/pages/p1/mutations", json={"ops": []})
        assert res.status_code == 422

    async def test_missing_page(self, async_client):
        res = await async_client.post("/api/pages/nope/mutations", json={"ops": [{"t": "section.add"}]})
        assert res.status_code == 404


# ── render ──────────────────────────────────────────────────────────────────


class TestRender:
    """Tests for GET /api/pages/{page_id}/render."""

    async def test_render_html(self, async_client):
        await async_client.put("/api/pages/p1", json={"document": page_with_header(), "title": "Vendas"})
        res = await async_client.get("/api/pages/p1/render", params={"filters": json.dumps({"city": "SP"})})
        assert res.status_code == 200
        assert res.headers["content-type"].startswith("text/html")
        assert res.headers["cache-control"] == "no-store"
        assert "<title>Vendas</title>" in res.text
        assert 'value="SP"' in res.text

    async def test_render_missing(self, async_client):
        res = await async_client.get("/api/pages/nope/render")
        assert res.status_code == 404
        assert "Page not found" in res.text

    async def test_filters_must_be_object(self, async_client):
        await async_client.put("/api/pages/p1", json={"document": empty_document()})
        for bad in ("[1, 2]", "not json"):
            res = await async_client.get("/api/pages/p1/render", params={"filters": bad})
            assert res.status_code == 400
