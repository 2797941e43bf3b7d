"""Redis pub/sub fan-out of swap changes, one channel per profile."""

import json
from typing import Final
from uuid import UUID

import redis.asyncio as redis

from slotswap.events import SwapChangeEvent

CHANNEL_SWAPS_PREFIX: Final[str] = "swaps:"


class EventBus:
    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client

    @staticmethod
    def swap_channel(profile_id: UUID | str) -> str:
        return f"{CHANNEL_SWAPS_PREFIX}{profile_id}"

    async def publish_swap(self, profile_id: UUID | str, event: SwapChangeEvent) -> None:
        await self.redis_client.publish(self.swap_channel(profile_id), json.dumps(event))
