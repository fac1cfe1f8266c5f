"""
PageKit Assembly -- Save and Publish

Save replaces the document and keeps version and status. Publish archives
the current document as a version record, then writes the new one with
version + 1 and status "published".
"""

import pytest

from pagekit.kernel.assembly import InvalidDocument, MemoryStorage, PageAssembly, PageNotFound
from pagekit.kernel.document import empty_document
from pagekit.kernel.mutations import add_section


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def assembly(storage):
    return PageAssembly(storage)


def one_section():
    return add_section(empty_document(), [6, 6])


class TestSave:
    async def test_save_creates_draft(self, assembly):
        record = await assembly.save("p1", one_section(), title="Vendas", slug="vendas")
        assert record.version == 1
        assert record.status == "draft"
        assert record.title == "Vendas"
        assert record.updated_at

        loaded = await assembly.load("p1")
        assert len(loaded["sections"][0]["columns"]) == 2

    async def test_save_keeps_version_and_status(self, assembly):
        await assembly.save("p1", one_section())
        await assembly.publish("p1")
        record = await assembly.save("p1", empty_document())
        assert record.version == 2
        assert record.status == "published"
        assert record.document == empty_document()

    async def test_save_keeps_title_when_omitted(self, assembly):
        await assembly.save("p1", empty_document(), title="Vendas")
        record = await assembly.save("p1", empty_document())
        assert record.title == "Vendas"

    async def test_invalid_document_rejected(self, assembly, storage):
        with pytest.raises(InvalidDocument) as exc:
            await assembly.save("p1", {"sections": "nope"})
        assert exc.value.errors == ["Document requires a 'sections' list"]
        assert "p1" not in storage.pages

    async def test_stored_copy_is_independent(self, assembly):
        doc = one_section()
        await assembly.save("p1", doc)
        doc["sections"].clear()
        assert len((await assembly.load("p1"))["sections"]) == 1

    async def test_load_missing(self, assembly):
        with pytest.raises(PageNotFound):
            await assembly.load("missing")


class TestPublish:
    async def test_publish_archives_and_bumps(self, assembly):
        first = one_section()
        await assembly.save("p1", first)
        second = add_section(first)

        record = await assembly.publish("p1", second)
        assert record.version == 2
        assert record.status == "published"
        assert len(record.document["sections"]) == 2

        versions = await assembly.versions("p1")
        assert [v.version for v in versions] == [1]
        assert versions[0].document == first

    async def test_publish_new_page(self, assembly):
        record = await assembly.publish("p1", one_section())
        assert record.version == 1
        assert record.status == "published"
        assert await assembly.versions("p1") == []

    async def test_republish_without_document(self, assembly):
        await assembly.save("p1", one_section())
        record = await assembly.publish("p1")
        assert record.version == 2
        assert (await assembly.versions("p1"))[0].document == record.document

    async def test_publish_missing_page_without_document(self, assembly):
        with pytest.raises(PageNotFound):
            await assembly.publish("missing")

    async def test_publish_invalid_document(self, assembly):
        await assembly.save("p1", one_section())
        with pytest.raises(InvalidDocument):
            await assembly.publish("p1", {"sections": [{"columns": []}]})
        assert (await assembly.load_record("p1")).version == 1

    async def test_versions_newest_first(self, assembly):
        await assembly.save("p1", empty_document())
        for _ in range(3):
            await assembly.publish("p1")
        versions = await assembly.versions("p1")
        assert [v.version for v in versions] == [3, 2, 1]
        assert (await assembly.load_record("p1")).version == 4

    async def test_versions_of_missing_page(self, assembly):
        with pytest.raises(PageNotFound):
            await assembly.versions("missing")
