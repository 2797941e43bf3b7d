from typing import Optional

import redis.asyncio as redis

from slotswap.bus import EventBus

# Global runtime state initialized in main.lifespan
redis_client: Optional[redis.Redis] = None
event_bus: Optional[EventBus] = None
db_enabled: bool = False
