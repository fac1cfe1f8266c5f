"""
Database connection pool.

The document store is the only database user; all access goes through
PostgresStorage, which borrows connections from this pool.
"""

from __future__ import annotations

import json
import logging

import asyncpg

from backend.config import settings

logger = logging.getLogger(__name__)

pool: asyncpg.Pool | None = None


async def init_pool() -> None:
    """
    Initialize the connection pool.
    Called once at application startup when DATABASE_URL is set.
    """
    global pool
    pool = await asyncpg.create_pool(
        dsn=settings.DATABASE_URL,
        min_size=1,
        max_size=10,
        command_timeout=60,
        init=_init_connection,
    )
    logger.info("database pool initialized")


async def close_pool() -> None:
    """
    Close the connection pool.
    Called at application shutdown.
    """
    global pool
    if pool is not None:
        await pool.close()
        pool = None


async def _init_connection(conn: asyncpg.Connection) -> None:
    """
    Initialize each new connection.
    JSON/JSONB columns round-trip as Python objects.
    """
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )
    await conn.set_type_codec(
        "json",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )
