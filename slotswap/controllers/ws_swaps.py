"""Push channel for swap request changes.

A connected client receives every message published to its own
``swaps:<profile_id>`` channel, plus a ping every ``HEARTBEAT_SEC`` seconds
so idle proxies keep the socket open. Frames sent by the client are read and
dropped.
"""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket

from slotswap import state
from slotswap.bus import EventBus
from slotswap.config import get_settings
from slotswap.dependencies import parse_profile_id
from slotswap.errors import UnauthorizedError
from slotswap.events import PingEvent

logger = logging.getLogger("slotswap.ws.swaps")
router = APIRouter(tags=["notifications"])

HEARTBEAT_SEC = 25
POLICY_VIOLATION = 1008
TRY_AGAIN_LATER = 1013


async def _forward(websocket: WebSocket, pubsub, actor) -> None:
    try:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            await websocket.send_text(message["data"])
    except Exception as e:
        logger.debug("ws.swaps forward ended actor=%s err=%r", actor, e)


async def _ping(websocket: WebSocket, actor) -> None:
    ping: PingEvent = {"type": "ping"}
    try:
        while True:
            await asyncio.sleep(HEARTBEAT_SEC)
            await websocket.send_text(json.dumps(ping))
    except Exception as e:
        logger.debug("ws.swaps ping ended actor=%s err=%r", actor, e)


async def _release(pubsub, channel: str) -> None:
    await pubsub.unsubscribe(channel)
    aclose = getattr(pubsub, "aclose", None)
    await (aclose() if aclose is not None else pubsub.close())


@router.websocket("/ws/swaps")
async def websocket_swaps(websocket: WebSocket, profile_id: Optional[str] = Query(None)):
    header = get_settings().auth.profile_header
    try:
        actor = parse_profile_id(websocket.headers.get(header) or profile_id)
    except UnauthorizedError as e:
        await websocket.close(code=POLICY_VIOLATION, reason=e.detail)
        return
    if state.redis_client is None:
        await websocket.close(code=TRY_AGAIN_LATER, reason="Notifications unavailable")
        return

    await websocket.accept()
    channel = EventBus.swap_channel(actor)
    pubsub = state.redis_client.pubsub()
    await pubsub.subscribe(channel)
    logger.info("ws.swaps open actor=%s", actor)

    tasks = [
        asyncio.create_task(_forward(websocket, pubsub, actor)),
        asyncio.create_task(_ping(websocket, actor)),
    ]
    try:
        # iter_text ends quietly on disconnect
        async for _ in websocket.iter_text():
            pass
    finally:
        for task in tasks:
            task.cancel()
        await _release(pubsub, channel)
        logger.info("ws.swaps closed actor=%s", actor)
