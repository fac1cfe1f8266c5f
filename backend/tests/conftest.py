"""
Pytest configuration and fixtures for PageKit API tests.

The page service runs over an in-memory document store; nothing here
needs Postgres or the network.
"""

from __future__ import annotations

import httpx
import pytest_asyncio

from backend.main import app
from backend.services.pages import page_service
from pagekit.kernel.assembly import MemoryStorage


@pytest_asyncio.fixture
async def storage():
    """Start the page service over a fresh in-memory store."""
    store = MemoryStorage()
    await page_service.start(store)
    yield store
    await page_service.stop()


@pytest_asyncio.fixture
async def async_client(storage):
    """Async HTTP client against the ASGI app."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
