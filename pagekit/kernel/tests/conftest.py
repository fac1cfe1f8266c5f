"""
PageKit kernel test configuration.

Kernel tests use MemoryStorage and an httpx MockTransport; nothing here
touches the network. PostgresStorage tests that need DATABASE_URL are
skipped automatically when it is not set.
"""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from pagekit.kernel.fetcher import HttpJsonClient
from pagekit.kernel.types import PageInfo, ViewContext


@pytest.fixture
def view_context() -> ViewContext:
    return ViewContext(
        page=PageInfo(id="page_1", slug="vendas", title="Vendas"),
        user={"id": "u1", "name": "Ana"},
        tenant={"id": "t1", "name": "Loja"},
    )


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], HttpJsonClient]:
    """Build an HttpJsonClient whose requests are answered by `handler`."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> HttpJsonClient:
        return HttpJsonClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    return factory
