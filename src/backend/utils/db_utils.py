"""Database utilities for connection pool management and health checks."""

from __future__ import annotations

import asyncio

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import asyncpg

from utils.logger import logger


class ConnectionPoolExhausted(Exception):
    """Raised when a pool cannot be created or a connection cannot be acquired in time."""


async def create_database_pool(
    dsn: str,
    *,
    min_size: int = 2,
    max_size: int = 10,
    command_timeout: float = 30.0,
    connection_timeout: float = 10.0,
) -> asyncpg.Pool:
    """Create a configured asyncpg connection pool.

    Raises:
        ConnectionPoolExhausted: If initial connections cannot be established
    """

    async def init_connection(conn: asyncpg.Connection) -> None:
        await conn.execute(f"SET statement_timeout = '{int(command_timeout * 1000)}'")

    try:
        pool = await asyncio.wait_for(
            asyncpg.create_pool(
                dsn=dsn,
                min_size=min_size,
                max_size=max_size,
                command_timeout=command_timeout,
                init=init_connection,
            ),
            timeout=connection_timeout,
        )
    except asyncio.TimeoutError as e:
        raise ConnectionPoolExhausted(f"Connection pool creation timed out after {connection_timeout}s") from e
    except (OSError, asyncpg.PostgresError) as e:
        raise ConnectionPoolExhausted(f"Failed to create connection pool: {e}") from e

    if pool is None:
        raise ConnectionPoolExhausted("Failed to create connection pool")
    return pool


@asynccontextmanager
async def acquire_connection(
    pool: asyncpg.Pool,
    *,
    timeout: float | None = None,
) -> AsyncGenerator[asyncpg.Connection, None]:
    """Acquire a connection, converting an acquire timeout into ConnectionPoolExhausted."""
    try:
        async with pool.acquire(timeout=timeout) as conn:
            yield conn
    except asyncio.TimeoutError as e:
        raise ConnectionPoolExhausted(
            f"Could not acquire database connection within {timeout}s - pool may be exhausted"
        ) from e


async def check_pool_health(pool: asyncpg.Pool) -> dict[str, Any]:
    """Run ``SELECT 1`` and report pool statistics."""
    try:
        async with acquire_connection(pool, timeout=5.0) as conn:
            is_healthy = await conn.fetchval("SELECT 1") == 1
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        is_healthy = False

    return {
        "healthy": is_healthy,
        "pool_size": pool.get_size(),
        "pool_free": pool.get_idle_size(),
        "pool_used": pool.get_size() - pool.get_idle_size(),
    }


async def close_pool(pool: asyncpg.Pool, timeout: float = 10.0) -> None:
    """Close the pool once in-flight queries finish, or force it after ``timeout``."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while pool.get_size() > pool.get_idle_size():
        if loop.time() > deadline:
            logger.warning(f"Forcing pool close with {pool.get_size() - pool.get_idle_size()} connections in use")
            pool.terminate()
            return
        await asyncio.sleep(0.1)

    await pool.close()
    logger.info("Database pool closed")
