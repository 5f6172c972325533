"""asyncpg pool shared by the repository. Unused when DATABASE_URL is empty."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg
from sovern.config import DATABASE_URL, DB_POOL_MAX, DB_POOL_MIN

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None


def is_configured() -> bool:
    return bool(DATABASE_URL)


async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(DATABASE_URL, min_size=DB_POOL_MIN, max_size=DB_POOL_MAX)
        logger.info("Opened database pool (%d-%d connections)", DB_POOL_MIN, DB_POOL_MAX)
    return _pool


async def close_pool():
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


@asynccontextmanager
async def transaction() -> AsyncIterator[asyncpg.Connection]:
    """A pooled connection inside one transaction; rolled back if the block raises."""
    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn


async def execute(query: str, *args) -> str:
    return await (await get_pool()).execute(query, *args)


async def fetch(query: str, *args) -> list[asyncpg.Record]:
    return await (await get_pool()).fetch(query, *args)
