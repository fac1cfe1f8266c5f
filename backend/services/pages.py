"""Page service — owns the document store and the outbound JSON client."""

from __future__ import annotations

import json
import logging
from typing import Any

from backend import db
from backend.config import settings
from pagekit.kernel.assembly import DocumentStorage, MemoryStorage, PageAssembly
from pagekit.kernel.fetcher import HttpJsonClient
from pagekit.kernel.filter_context import MemorySessionStorage
from pagekit.kernel.page_view import PageView
from pagekit.kernel.postgres_storage import PostgresStorage
from pagekit.kernel.types import SESSION_STORAGE_KEY, RenderOptions, ViewContext

logger = logging.getLogger(__name__)


class PageService:
    """
    Process-wide page service.

    start() picks the document store: Postgres when DATABASE_URL is set,
    otherwise an in-memory store (development and tests).
    """

    def __init__(self) -> None:
        self.assembly: PageAssembly | None = None
        self.client: HttpJsonClient | None = None

    async def start(self, storage: DocumentStorage | None = None) -> None:
        if storage is None:
            if settings.use_postgres:
                await db.init_pool()
                storage = PostgresStorage(db.pool)
            else:
                storage = MemoryStorage()
                logger.info("DATABASE_URL not set, using in-memory document store")
        self.assembly = PageAssembly(storage)
        self.client = HttpJsonClient(timeout=settings.FETCH_TIMEOUT_SECONDS)

    async def stop(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None
        if settings.use_postgres:
            await db.close_pool()
        self.assembly = None

    def require_assembly(self) -> PageAssembly:
        if self.assembly is None:
            raise RuntimeError("PageService not started")
        return self.assembly

    async def render(
        self,
        page_id: str,
        user: dict[str, Any] | None = None,
        tenant: dict[str, Any] | None = None,
        filters: dict[str, Any] | None = None,
    ) -> str:
        """
        Server-side render of the stored document.

        Raises:
            PageNotFound: if the page does not exist.
        """
        record = await self.require_assembly().load_record(page_id)
        context = ViewContext(
            page=record.page_info(),
            user=user,
            tenant=tenant,
            timezone=settings.DEFAULT_TIMEZONE,
            locale=settings.DEFAULT_LOCALE,
        )

        session = MemorySessionStorage()
        if filters:
            session.set_item(SESSION_STORAGE_KEY, json.dumps({"filters": filters, "lastResultList": []}))

        view = PageView(
            record.document,
            context,
            self.client,
            storage=session,
            options=RenderOptions(locale=settings.DEFAULT_LOCALE, ui_kit_url=settings.UI_KIT_URL),
        )
        if settings.RENDER_FETCH_ON_SSR:
            await view.mount(poll=False)
        else:
            view.filter_context.hydrate()
        try:
            return view.render()
        finally:
            await view.unmount()


# Singleton
page_service = PageService()
