"""
PostgresStorage adapter for the PageKit assembly layer.

Implements the DocumentStorage protocol using Postgres as the backend.
Documents are stored as JSONB; the pool must register the jsonb codec
(see backend.db) so documents travel as Python objects.
"""

from __future__ import annotations

import json
from typing import Any

import asyncpg

from pagekit.kernel.assembly import DocumentStorage
from pagekit.kernel.types import PageRecord, PageVersion


class PostgresStorage(DocumentStorage):
    """
    Postgres-based storage for page documents.

    Uses two tables:
    - page_documents: current document per page, with version and status
    - page_versions: documents archived by publish
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def get(self, page_id: str) -> PageRecord | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT page_id, document, version, status, title, slug, updated_at
                FROM page_documents WHERE page_id = $1
                """,
                page_id,
            )
            return _record_from_row(row) if row else None

    async def put(self, record: PageRecord) -> None:
        async with self.pool.acquire() as conn:
            await _upsert(conn, record)

    async def publish(self, record: PageRecord, archived: PageVersion | None) -> None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                if archived is not None:
                    await conn.execute(
                        """
                        INSERT INTO page_versions (page_id, version, document, created_at)
                        VALUES ($1, $2, $3, now())
                        ON CONFLICT (page_id, version) DO NOTHING
                        """,
                        archived.page_id,
                        archived.version,
                        archived.document,
                    )
                await _upsert(conn, record)

    async def list_versions(self, page_id: str) -> list[PageVersion]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT page_id, version, document, created_at
                FROM page_versions WHERE page_id = $1
                ORDER BY version DESC
                """,
                page_id,
            )
            return [
                PageVersion(
                    page_id=row["page_id"],
                    version=row["version"],
                    document=_document(row["document"]),
                    created_at=_iso(row["created_at"]),
                )
                for row in rows
            ]

    async def delete(self, page_id: str) -> None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM page_versions WHERE page_id = $1", page_id)
                await conn.execute("DELETE FROM page_documents WHERE page_id = $1", page_id)

    async def close(self) -> None:
        """Close the connection pool."""
        await self.pool.close()


async def _upsert(conn: asyncpg.Connection, record: PageRecord) -> None:
    await conn.execute(
        """
        INSERT INTO page_documents (page_id, document, version, status, title, slug, updated_at)
        VALUES ($1, $2, $3, $4, $5, $6, now())
        ON CONFLICT (page_id)
        DO UPDATE SET document = EXCLUDED.document, version = EXCLUDED.version,
                      status = EXCLUDED.status, title = EXCLUDED.title,
                      slug = EXCLUDED.slug, updated_at = now()
        """,
        record.page_id,
        record.document,
        record.version,
        record.status,
        record.title,
        record.slug,
    )


def _document(value: Any) -> dict[str, Any]:
    # jsonb arrives decoded when the pool registers a codec, as text otherwise
    if isinstance(value, str):
        return json.loads(value)
    return value


def _iso(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "strftime"):
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")
    return str(value)


def _record_from_row(row: Any) -> PageRecord:
    return PageRecord(
        page_id=row["page_id"],
        document=_document(row["document"]),
        version=row["version"],
        status=row["status"],
        title=row["title"] or "",
        slug=row["slug"] or "",
        updated_at=_iso(row["updated_at"]),
    )
