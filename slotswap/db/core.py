"""Postgres connection handling.

One process-wide ``AsyncConnectionPool``. Without a pool (scripts, tests) a
direct connection is opened per use.
"""

import logging
from contextlib import asynccontextmanager

import psycopg
from psycopg import errors as pg_errors
from psycopg_pool import AsyncConnectionPool

from slotswap.config import get_settings
from slotswap.errors import DatabaseError, TransactionConflictError

_logger = logging.getLogger(__name__)

_pool: AsyncConnectionPool | None = None


def _get_dsn() -> str:
    return get_settings().postgres.get_dsn()


async def init_pool() -> None:
    """Open the pool once and bring the schema up to date."""
    global _pool
    if _pool is not None:
        return
    cfg = get_settings().postgres
    pool = AsyncConnectionPool(
        cfg.get_dsn(),
        min_size=cfg.pool_min_size,
        max_size=cfg.pool_max_size,
        timeout=cfg.pool_timeout,
        max_lifetime=cfg.pool_max_lifetime,
        max_idle=cfg.pool_max_idle,
        check=AsyncConnectionPool.check_connection,
        open=False,
    )
    await pool.open()
    _pool = pool
    _logger.info("Postgres pool open at %s:%d (size %d-%d)", cfg.host, cfg.port, cfg.pool_min_size, cfg.pool_max_size)

    # schema imports migrations, which import this module
    from slotswap.db.schema import _ensure_schema

    await _ensure_schema()


async def close_pool() -> None:
    global _pool
    pool, _pool = _pool, None
    if pool is not None:
        await pool.close()
        _logger.info("Postgres pool closed")


@asynccontextmanager
async def _get_connection(autocommit: bool = True):
    """Borrow a connection, autocommit by default for single-statement reads."""
    if _pool is None:
        conn = await psycopg.AsyncConnection.connect(_get_dsn(), autocommit=autocommit)
        async with conn:
            yield conn
        return
    async with _pool.connection() as conn:
        if autocommit:
            await conn.set_autocommit(True)
        yield conn


@asynccontextmanager
async def transaction():
    """Yield a connection inside one transaction.

    Commits when the block exits normally; any exception rolls everything
    back and propagates. Row locks taken inside are held until then.

    Deadlocks and serialization failures come out as TransactionConflictError,
    other driver errors as DatabaseError. API errors raised by the block pass
    through unchanged.
    """
    try:
        async with _get_connection() as conn:
            async with conn.transaction():
                yield conn
    except (pg_errors.DeadlockDetected, pg_errors.SerializationFailure) as e:
        _logger.warning("Transaction aborted by Postgres: %s", e)
        raise TransactionConflictError(sqlstate=e.sqlstate) from e
    except psycopg.Error as e:
        _logger.error("Transaction failed: %s", e)
        raise DatabaseError(sqlstate=e.sqlstate) from e


def get_pool() -> AsyncConnectionPool | None:
    return _pool


def get_pool_stats() -> dict[str, object]:
    """Pool gauges for ``/health``."""
    if _pool is None:
        return {"status": "not_initialized"}
    stats = _pool.get_stats()
    return {
        "status": "active",
        "size": stats.get("pool_size", 0),
        "available": stats.get("pool_available", 0),
        "waiting": stats.get("requests_waiting", 0),
        "min_size": stats.get("pool_min", 0),
        "max_size": stats.get("pool_max", 0),
    }
