import logging

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
)
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from slotswap import __version__
from slotswap.config import get_settings
from slotswap.controllers.events import router as events_router
from slotswap.controllers.health import router as health_router
from slotswap.controllers.marketplace import router as marketplace_router
from slotswap.controllers.profiles import router as profiles_router
from slotswap.controllers.swap_requests import router as swap_requests_router
from slotswap.controllers.ws_swaps import router as ws_swaps_router
from slotswap.errors import register_exception_handlers
from slotswap.lifespan import cleanup_resources, setup_resources
from slotswap.middleware import HTTPLogMiddleware

settings = get_settings()

app = FastAPI(title="SlotSwap API", version=__version__)
register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins,
    allow_origin_regex=settings.cors.origins_regex or None,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.debug.request:
    logging.getLogger("slotswap.http").setLevel(logging.DEBUG)
    app.add_middleware(HTTPLogMiddleware)

if settings.debug.websocket:
    logging.getLogger("slotswap.ws.swaps").setLevel(logging.DEBUG)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    resources = await setup_resources()
    try:
        yield
    finally:
        await cleanup_resources(resources)


app.router.lifespan_context = lifespan

app.include_router(health_router)
app.include_router(profiles_router)
app.include_router(events_router)
app.include_router(marketplace_router)
app.include_router(swap_requests_router)
app.include_router(ws_swaps_router)

Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)
