import os
import sys
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
import fakeredis.aioredis as fakeredis

from slotswap import state
from slotswap.config import clear_settings_cache
from slotswap.errors import TransactionConflictError
from slotswap.models.events import Event, EventStatus
from slotswap.models.profiles import Profile
from slotswap.models.swaps import SwapRequest, SwapStatus

BASE_TIME = datetime(2025, 11, 10, 9, 0, tzinfo=UTC)


class FakeStore:
    """In-memory stand-in for ``slotswap.db``.

    ``transaction()`` holds a single lock for its whole duration, the way row
    locks serialize writers on the same events, and restores the previous
    rows if the block raises.

    Setting ``conflicts`` to N makes the next N row-lock calls fail the way
    ``slotswap.db.transaction`` reports a Postgres deadlock.
    """

    def __init__(self):
        self.profiles: dict[uuid.UUID, Profile] = {}
        self.events: dict[uuid.UUID, Event] = {}
        self.requests: dict[uuid.UUID, SwapRequest] = {}
        self._lock = asyncio.Lock()
        self._clock = 0
        self.conflicts = 0
        self.lock_calls = 0

    async def _acquire(self):
        await asyncio.sleep(0)
        self.lock_calls += 1
        if self.conflicts:
            self.conflicts -= 1
            raise TransactionConflictError(sqlstate="40P01")

    def _now(self) -> datetime:
        self._clock += 1
        return BASE_TIME + timedelta(seconds=self._clock)

    def add_profile(self, name: str = "User") -> uuid.UUID:
        pid = uuid.uuid4()
        self.profiles[pid] = Profile(
            id=pid, name=name, email=f"{name.lower()}-{pid.hex[:6]}@example.com", created_at=self._now()
        )
        return pid

    def add_event(
        self,
        owner_id: uuid.UUID,
        title: str = "Standup",
        status: EventStatus = EventStatus.BUSY,
        hours_from_base: int = 0,
    ) -> Event:
        now = self._now()
        start = BASE_TIME + timedelta(hours=hours_from_base)
        event = Event(
            id=uuid.uuid4(),
            owner_id=owner_id,
            title=title,
            start_time=start,
            end_time=start + timedelta(hours=1),
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.events[event.id] = event
        return event

    @asynccontextmanager
    async def transaction(self):
        async with self._lock:
            snapshot = (dict(self.profiles), dict(self.events), dict(self.requests))
            try:
                yield self
            except BaseException:
                self.profiles, self.events, self.requests = snapshot
                raise

    # write path

    async def events_lock(self, conn, event_ids):
        await self._acquire()
        return {i: self.events[i] for i in sorted(set(event_ids)) if i in self.events}

    async def events_save(self, conn, event):
        updated = event.model_copy(update={"updated_at": self._now()})
        self.events[event.id] = updated
        return updated

    async def events_delete(self, conn, event_id):
        del self.events[event_id]

    async def events_insert(self, owner_id, title, start_time, end_time):
        now = self._now()
        event = Event(
            id=uuid.uuid4(),
            owner_id=owner_id,
            title=title,
            start_time=start_time,
            end_time=end_time,
            status=EventStatus.BUSY,
            created_at=now,
            updated_at=now,
        )
        self.events[event.id] = event
        return event

    async def swaps_insert(self, conn, requester_id, requester_event_id, owner_id, owner_event_id):
        await asyncio.sleep(0)
        now = self._now()
        request = SwapRequest(
            id=uuid.uuid4(),
            requester_id=requester_id,
            requester_event_id=requester_event_id,
            owner_id=owner_id,
            owner_event_id=owner_event_id,
            status=SwapStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self.requests[request.id] = request
        return request

    async def swaps_lock(self, conn, request_id):
        await self._acquire()
        return self.requests.get(request_id)

    async def swaps_set_status(self, conn, request_id, status):
        updated = self.requests[request_id].model_copy(update={"status": status, "updated_at": self._now()})
        self.requests[request_id] = updated
        return updated

    async def swaps_lock_pending_for_profile(self, conn, profile_id):
        await self._acquire()
        return [
            r for r in self.requests.values()
            if r.status == SwapStatus.PENDING and profile_id in (r.requester_id, r.owner_id)
        ]

    async def profiles_lock(self, conn, profile_id):
        await self._acquire()
        return self.profiles.get(profile_id)

    async def profiles_delete(self, conn, profile_id):
        self.profiles.pop(profile_id, None)
        gone = {e.id for e in self.events.values() if e.owner_id == profile_id}
        self.events = {i: e for i, e in self.events.items() if i not in gone}
        self.requests = {
            i: r for i, r in self.requests.items()
            if profile_id not in (r.requester_id, r.owner_id)
            and r.requester_event_id not in gone
            and r.owner_event_id not in gone
        }
        return True

    # read path

    async def events_get(self, event_id):
        return self.events.get(event_id)

    async def events_list_for_owner(self, owner_id, status=None):
        events = [
            e for e in self.events.values()
            if e.owner_id == owner_id and (status is None or e.status == status)
        ]
        return sorted(events, key=lambda e: e.start_time)

    async def events_list_marketplace(self, viewer_id):
        result = []
        for e in sorted(self.events.values(), key=lambda e: e.start_time):
            if e.status == EventStatus.SWAPPABLE and e.owner_id != viewer_id:
                owner = self.profiles[e.owner_id]
                result.append({
                    **e.model_dump(include={"id", "owner_id", "title", "start_time", "end_time", "status"}),
                    "owner_name": owner.name,
                    "owner_email": owner.email,
                })
        return result

    def _view(self, r: SwapRequest) -> dict:
        def summary(event_id):
            return self.events[event_id].model_dump(include={"id", "title", "start_time", "end_time"})

        return {
            "id": r.id,
            "status": r.status,
            "created_at": r.created_at,
            "updated_at": r.updated_at,
            "requester_id": r.requester_id,
            "owner_id": r.owner_id,
            "requester_name": self.profiles[r.requester_id].name,
            "owner_name": self.profiles[r.owner_id].name,
            "requester_event": summary(r.requester_event_id),
            "owner_event": summary(r.owner_event_id),
        }

    async def swaps_list_views(self, profile_id, role):
        field = "owner_id" if role == "owner" else "requester_id"
        rows = [r for r in self.requests.values() if getattr(r, field) == profile_id]
        return [self._view(r) for r in sorted(rows, key=lambda r: r.created_at, reverse=True)]

    async def swaps_get_view(self, request_id, viewer_id):
        r = self.requests.get(request_id)
        if r is None or viewer_id not in (r.requester_id, r.owner_id):
            return None
        return self._view(r)

    async def profiles_ensure(self, profile_id, email, name=None):
        if profile_id not in self.profiles:
            self.profiles[profile_id] = Profile(
                id=profile_id, name=name or "User", email=email, created_at=self._now()
            )
        return self.profiles[profile_id]

    async def profiles_get(self, profile_id):
        return self.profiles.get(profile_id)

    def get_pool_stats(self):
        return {"status": "active"}


@pytest.fixture
def store(monkeypatch):
    from slotswap import swaps

    fake = FakeStore()
    monkeypatch.setattr(swaps, "db", fake)
    return fake


class _AwaitableRedis:
    def __init__(self, client):
        self._client = client

    def __await__(self):
        async def _coro():
            return self._client

        return _coro().__await__()


@pytest.fixture
def fake_redis(monkeypatch):
    import slotswap.lifespan as lifespan

    clients = []

    def fake_redis_constructor(*_args, **_kwargs):
        fake = fakeredis.FakeRedis(decode_responses=True)
        clients.append(fake)
        return _AwaitableRedis(fake)

    monkeypatch.setattr(lifespan.redis, "Redis", fake_redis_constructor)
    return clients


@pytest.fixture
def client(monkeypatch, fake_redis, store):
    """TestClient with fakeredis and every db consumer pointed at the in-memory store."""
    import slotswap.controllers.events as events_controller
    import slotswap.controllers.health as health_controller
    import slotswap.controllers.marketplace as marketplace_controller
    import slotswap.controllers.profiles as profiles_controller
    import slotswap.controllers.swap_requests as swap_requests_controller
    import slotswap.main as main

    monkeypatch.setenv("ENABLE_DB", "0")
    clear_settings_cache()
    for module in (
        events_controller,
        health_controller,
        marketplace_controller,
        profiles_controller,
        swap_requests_controller,
    ):
        monkeypatch.setattr(module, "db", store)

    with TestClient(main.app) as c:
        monkeypatch.setattr(state, "db_enabled", True)
        yield c
    clear_settings_cache()
