"""
Async database access using asyncpg (NO ORM).

One pool per process, created in the FastAPI lifespan (or by a script) and
handed to routes through the ``get_db`` dependency. Services receive a plain
``asyncpg.Connection`` and write parameterised SQL.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import asyncpg

from app.core.config import Settings
from app.core.logging_config import get_logger

logger = get_logger(__name__)

_pool: asyncpg.Pool | None = None


async def init_db_pool(settings: Settings) -> asyncpg.Pool:
    """Create the process-wide pool. Safe to call twice; the second call is a no-op."""
    global _pool
    if _pool is not None:
        return _pool

    _pool = await asyncpg.create_pool(
        dsn=settings.DATABASE_URL_APP or settings.DATABASE_URL,
        min_size=settings.DB_POOL_MIN_SIZE,
        max_size=settings.DB_POOL_MAX_SIZE,
        max_inactive_connection_lifetime=300,
        timeout=30,
        command_timeout=60,
    )
    logger.info(
        f"Database pool initialized: {_pool.get_size()} / {_pool.get_max_size()} connections"
    )
    return _pool


async def close_db_pool() -> None:
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


def pool_status() -> dict[str, Any]:
    """Pool health for the /health endpoint."""
    if _pool is None:
        return {"status": "unavailable", "size": 0, "idle": 0}
    return {
        "status": "healthy",
        "size": _pool.get_size(),
        "idle": _pool.get_idle_size(),
    }


@asynccontextmanager
async def get_db_connection() -> AsyncGenerator[asyncpg.Connection, None]:
    """
    Borrow a connection outside a request (scripts, startup tasks).

    Usage:
        async with get_db_connection() as conn:
            user = await get_user_by_username(conn, "superadmin")
    """
    if not _pool:
        raise RuntimeError("Database pool not initialized. Call init_db_pool() first.")

    async with _pool.acquire() as connection:
        yield connection


async def get_db() -> AsyncGenerator[asyncpg.Connection, None]:
    """FastAPI dependency: one pooled connection per request."""
    async with get_db_connection() as connection:
        yield connection
