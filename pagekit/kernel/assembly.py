"""
PageKit Kernel — Assembly Layer

Sits between the pure functions (mutations, renderer) and the outside world
(the document store). Coordinates the lifecycle of a page document.

Operations: load, save, publish, apply, versions

This is where IO happens. Mutations and rendering are pure.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any

from pagekit.kernel.mutations import mutate
from pagekit.kernel.primitives import validate_document
from pagekit.kernel.types import MutationResult, PageRecord, PageVersion, now_iso

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PageNotFound(Exception):
    """Page does not exist in storage."""

    pass


class InvalidDocument(Exception):
    """Document failed structural validation."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors[:5]))
        self.errors = errors


# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------


class DocumentStorage:
    """
    Abstract storage interface.
    Implement with Postgres for production, or in-memory for tests.
    """

    async def get(self, page_id: str) -> PageRecord | None:
        """Fetch a page record. Returns None if not found."""
        raise NotImplementedError

    async def put(self, record: PageRecord) -> None:
        """Insert or replace a page record."""
        raise NotImplementedError

    async def publish(self, record: PageRecord, archived: PageVersion | None) -> None:
        """Archive the previous document (if any) and write the new record atomically."""
        raise NotImplementedError

    async def list_versions(self, page_id: str) -> list[PageVersion]:
        """Archived versions, newest first."""
        raise NotImplementedError

    async def delete(self, page_id: str) -> None:
        raise NotImplementedError


class MemoryStorage(DocumentStorage):
    """In-memory storage for testing."""

    def __init__(self) -> None:
        self.pages: dict[str, PageRecord] = {}
        self.versions: dict[str, list[PageVersion]] = {}

    async def get(self, page_id: str) -> PageRecord | None:
        record = self.pages.get(page_id)
        return copy.deepcopy(record) if record is not None else None

    async def put(self, record: PageRecord) -> None:
        self.pages[record.page_id] = copy.deepcopy(record)

    async def publish(self, record: PageRecord, archived: PageVersion | None) -> None:
        if archived is not None:
            self.versions.setdefault(record.page_id, []).append(copy.deepcopy(archived))
        self.pages[record.page_id] = copy.deepcopy(record)

    async def list_versions(self, page_id: str) -> list[PageVersion]:
        return sorted(self.versions.get(page_id, []), key=lambda v: v.version, reverse=True)

    async def delete(self, page_id: str) -> None:
        self.pages.pop(page_id, None)
        self.versions.pop(page_id, None)


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


class PageAssembly:
    """
    Page document lifecycle over a DocumentStorage.

    Writes for one page are serialized with a per-page lock, so a publish
    never interleaves with a save or a mutation batch.
    """

    def __init__(self, storage: DocumentStorage) -> None:
        self.storage = storage
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, page_id: str) -> asyncio.Lock:
        if page_id not in self._locks:
            self._locks[page_id] = asyncio.Lock()
        return self._locks[page_id]

    async def load_record(self, page_id: str) -> PageRecord:
        record = await self.storage.get(page_id)
        if record is None:
            raise PageNotFound(page_id)
        return record

    async def load(self, page_id: str) -> dict[str, Any]:
        """load(pageId) → Document"""
        return (await self.load_record(page_id)).document

    async def save(
        self,
        page_id: str,
        document: dict[str, Any],
        title: str | None = None,
        slug: str | None = None,
    ) -> PageRecord:
        """
        Replace the page's document wholesale. Creates the page (version 1,
        draft) when it does not exist; otherwise keeps version and status.
        """
        errors = validate_document(document)
        if errors:
            raise InvalidDocument(errors)

        async with self._lock(page_id):
            existing = await self.storage.get(page_id)
            if existing is None:
                record = PageRecord(page_id=page_id, document=copy.deepcopy(document))
            else:
                record = existing
                record.document = copy.deepcopy(document)
            if title is not None:
                record.title = title
            if slug is not None:
                record.slug = slug
            record.updated_at = now_iso()
            await self.storage.put(record)

        logger.info("saved page %s (version %d)", page_id, record.version)
        return record

    async def publish(self, page_id: str, document: dict[str, Any] | None = None) -> PageRecord:
        """
        Archive the current document as a version record, then write the new
        one with version + 1 and status "published". Without a document,
        the current one is republished.
        """
        if document is not None:
            errors = validate_document(document)
            if errors:
                raise InvalidDocument(errors)

        async with self._lock(page_id):
            existing = await self.storage.get(page_id)
            if existing is None:
                if document is None:
                    raise PageNotFound(page_id)
                record = PageRecord(page_id=page_id, document=copy.deepcopy(document), status="published")
                archived = None
            else:
                archived = PageVersion(
                    page_id=page_id,
                    version=existing.version,
                    document=existing.document,
                    created_at=now_iso(),
                )
                record = existing
                if document is not None:
                    record.document = copy.deepcopy(document)
                record.version = existing.version + 1
                record.status = "published"
            record.updated_at = now_iso()
            await self.storage.publish(record, archived)

        logger.info("published page %s as version %d", page_id, record.version)
        return record

    async def apply(
        self,
        page_id: str,
        ops: list[dict[str, Any]],
        atomic: bool = False,
    ) -> tuple[PageRecord, list[MutationResult]]:
        """
        Apply editor operations to the stored document and save the result.
        Rejected ops are reported and skipped; the rest still apply. With
        atomic=True any rejection leaves the stored document untouched.
        """
        async with self._lock(page_id):
            record = await self.load_record(page_id)
            document = record.document
            results: list[MutationResult] = []
            for op in ops:
                result = mutate(document, op)
                if not result.accepted:
                    logger.warning("page %s: rejected %s: %s", page_id, op.get("t"), result.reason)
                document = result.document
                results.append(result)

            if atomic and not all(r.accepted for r in results):
                return record, results
            if any(r.accepted for r in results):
                errors = validate_document(document)
                if errors:
                    raise InvalidDocument(errors)
                record.document = document
                record.updated_at = now_iso()
                await self.storage.put(record)

        return record, results

    async def versions(self, page_id: str) -> list[PageVersion]:
        await self.load_record(page_id)
        return await self.storage.list_versions(page_id)
