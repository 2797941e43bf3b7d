from typing import Any

from fastapi import APIRouter

from slotswap import db, state

router = APIRouter(tags=["health"])


async def _redis_status() -> str:
    if state.redis_client is None:
        return "disconnected"
    try:
        await state.redis_client.ping()
    except Exception:
        return "unhealthy"
    return "healthy"


@router.get("/health")
async def health() -> dict[str, Any]:
    """Liveness plus backend status; always 200 so the probe can read the body."""
    database = db.get_pool_stats() if state.db_enabled else {"status": "disabled"}
    return {"status": "ok", "redis": await _redis_status(), "database": database}
