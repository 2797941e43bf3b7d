"""Startup and shutdown of the shared backends.

Redis is required (it carries swap notifications); the database pool is
optional at startup so the process can come up and report itself unhealthy
instead of crash-looping. Routers that need the database check
``state.db_enabled`` through ``dependencies.require_database``.
"""

import inspect
import logging
from dataclasses import dataclass

import redis.asyncio as redis
from redis.asyncio import BlockingConnectionPool as RedisConnectionPool

from slotswap import db, state
from slotswap.bus import EventBus
from slotswap.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class LifespanResources:
    """What ``setup_resources`` opened, so ``cleanup_resources`` can close exactly that."""

    redis_client: redis.Redis | None = None
    event_bus: EventBus | None = None
    db_enabled: bool = False


async def init_redis() -> redis.Redis:
    cfg = get_settings().redis
    pool = RedisConnectionPool(
        host=cfg.host,
        port=cfg.port,
        password=cfg.password or None,
        max_connections=cfg.max_connections,
        timeout=cfg.pool_timeout_sec,
        health_check_interval=cfg.health_check_interval,
        socket_timeout=cfg.socket_timeout,
        socket_connect_timeout=cfg.socket_connect_timeout,
        retry_on_timeout=cfg.retry_on_timeout,
        decode_responses=True,
    )
    client = redis.Redis(connection_pool=pool, decode_responses=True)
    # Test doubles hand back an awaitable instead of the client itself.
    if inspect.isawaitable(client):
        client = await client
    logger.info("Redis client ready (%s:%d)", cfg.host, cfg.port)
    return client


async def init_database() -> bool:
    """Open the pool and migrate; False when disabled or unreachable."""
    if not get_settings().features.db:
        logger.info("Database disabled (ENABLE_DB=0)")
        return False
    try:
        await db.init_pool()
    except Exception as e:
        logger.warning("Database unavailable, swap endpoints will answer 503: %s", e)
        return False
    return True


async def setup_resources(enable_db: bool = True) -> LifespanResources:
    client = await init_redis()
    resources = LifespanResources(redis_client=client)
    if get_settings().features.notifications:
        resources.event_bus = EventBus(client)
    else:
        logger.info("Swap notifications disabled (ENABLE_NOTIFICATIONS=0)")
    if enable_db:
        resources.db_enabled = await init_database()

    state.redis_client = resources.redis_client
    state.event_bus = resources.event_bus
    state.db_enabled = resources.db_enabled
    return resources


async def _close_redis(client) -> None:
    aclose = getattr(client, "aclose", None)
    if callable(aclose):
        await aclose()
        return
    close = getattr(client, "close", None)
    if callable(close):
        close()


async def cleanup_resources(resources: LifespanResources) -> None:
    """Close what was opened, in reverse order, and reset the shared state."""
    state.db_enabled = False
    state.event_bus = None
    if resources.db_enabled:
        try:
            await db.close_pool()
        except Exception as e:
            logger.warning("Error while closing the database pool: %s", e)
    if resources.redis_client is not None:
        await _close_redis(resources.redis_client)
    state.redis_client = None
