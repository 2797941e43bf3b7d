import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from psycopg import errors as pg_errors

from slotswap.errors import BadRequestError, DatabaseError, TransactionConflictError, ValidationError
from slotswap.models.events import Event, EventStatus
from slotswap.models.swaps import SwapStatus

NOW = datetime(2025, 11, 10, 9, 0, tzinfo=UTC)


class MockAsyncCursor:

    def __init__(self, rows=None, rowcount=None):
        self.rows = rows or []
        self.rowcount = len(self.rows) if rowcount is None else rowcount
        self._index = 0

    async def fetchone(self):
        if self.rows:
            return self.rows[0]
        return None

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._index >= len(self.rows):
            raise StopAsyncIteration
        row = self.rows[self._index]
        self._index += 1
        return row


class MockAsyncConnection:
    """Replays one result per ``execute`` call and records the statements.

    A result that is an exception instance is raised instead of returned.
    """

    def __init__(self, cursor_results=None):
        self.cursor_results = cursor_results or []
        self.executed = []
        self.committed = False
        self.rolled_back = False
        self._call_index = 0

    async def execute(self, sql, params=None):
        self.executed.append((sql, params))
        if self._call_index < len(self.cursor_results):
            result = self.cursor_results[self._call_index]
            self._call_index += 1
            if isinstance(result, Exception):
                raise result
            if isinstance(result, MockAsyncCursor):
                return result
            return MockAsyncCursor(result)
        return MockAsyncCursor([])

    @asynccontextmanager
    async def transaction(self):
        try:
            yield
        except Exception:
            self.rolled_back = True
            raise
        self.committed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


def create_mock_connection(conn):

    async def connect(*args, **kwargs):
        return conn

    return connect


@pytest.fixture
def mock_psycopg():
    with patch("slotswap.db.core.psycopg.AsyncConnection") as mock:
        yield mock


def event_row(owner_id=None, status="BUSY", event_id=None):
    return (
        event_id or uuid.uuid4(),
        owner_id or uuid.uuid4(),
        "Standup",
        NOW,
        NOW + timedelta(hours=1),
        status,
        NOW,
        NOW,
    )


def swap_row(status="PENDING"):
    return (uuid.uuid4(), uuid.uuid4(), uuid.uuid4(), uuid.uuid4(), uuid.uuid4(), status, NOW, NOW)


class TestTransaction:
    @pytest.mark.asyncio
    async def test_commits_on_success(self, mock_psycopg):
        conn = MockAsyncConnection()
        mock_psycopg.connect = create_mock_connection(conn)

        from slotswap.db import transaction

        async with transaction() as tx:
            await tx.execute("SELECT 1")

        assert conn.committed
        assert not conn.rolled_back

    @pytest.mark.asyncio
    async def test_rolls_back_and_propagates(self, mock_psycopg):
        conn = MockAsyncConnection()
        mock_psycopg.connect = create_mock_connection(conn)

        from slotswap.db import transaction

        with pytest.raises(RuntimeError):
            async with transaction():
                raise RuntimeError("boom")

        assert conn.rolled_back
        assert not conn.committed

    @pytest.mark.asyncio
    async def test_deadlock_becomes_conflict(self, mock_psycopg):
        conn = MockAsyncConnection([pg_errors.DeadlockDetected("deadlock detected")])
        mock_psycopg.connect = create_mock_connection(conn)

        from slotswap.db import transaction

        with pytest.raises(TransactionConflictError) as exc_info:
            async with transaction() as tx:
                await tx.execute("SELECT id FROM profiles WHERE id = %s FOR UPDATE", (uuid.uuid4(),))

        assert exc_info.value.status_code == 409
        assert exc_info.value.context == {"sqlstate": "40P01"}
        assert isinstance(exc_info.value.__cause__, pg_errors.DeadlockDetected)
        assert conn.rolled_back

    @pytest.mark.asyncio
    async def test_serialization_failure_becomes_conflict(self, mock_psycopg):
        conn = MockAsyncConnection([pg_errors.SerializationFailure("could not serialize access")])
        mock_psycopg.connect = create_mock_connection(conn)

        from slotswap.db import transaction

        with pytest.raises(TransactionConflictError):
            async with transaction() as tx:
                await tx.execute("UPDATE events SET status = %s", ("BUSY",))

    @pytest.mark.asyncio
    async def test_other_driver_errors_become_database_error(self, mock_psycopg):
        conn = MockAsyncConnection([pg_errors.UndefinedTable("relation \"events\" does not exist")])
        mock_psycopg.connect = create_mock_connection(conn)

        from slotswap.db import transaction

        with pytest.raises(DatabaseError) as exc_info:
            async with transaction() as tx:
                await tx.execute("SELECT 1 FROM events")

        assert exc_info.value.error == "database_error"
        assert exc_info.value.context == {"sqlstate": "42P01"}

    @pytest.mark.asyncio
    async def test_api_errors_pass_through(self, mock_psycopg):
        conn = MockAsyncConnection()
        mock_psycopg.connect = create_mock_connection(conn)

        from slotswap.db import transaction

        with pytest.raises(ValidationError):
            async with transaction():
                raise ValidationError(detail="Title is required")

        assert conn.rolled_back


class TestProfiles:
    @pytest.mark.asyncio
    async def test_ensure_uses_default_name(self, mock_psycopg):
        pid = uuid.uuid4()
        conn = MockAsyncConnection([[], [(pid, "User", "ann@example.com", NOW)]])
        mock_psycopg.connect = create_mock_connection(conn)

        from slotswap.db import profiles_ensure

        profile = await profiles_ensure(pid, "ann@example.com")

        assert profile.name == "User"
        sql, params = conn.executed[0]
        assert "ON CONFLICT (id) DO NOTHING" in sql
        assert params == (pid, "User", "ann@example.com")

    @pytest.mark.asyncio
    async def test_ensure_duplicate_email(self, mock_psycopg):
        conn = MockAsyncConnection([pg_errors.UniqueViolation("duplicate key")])
        mock_psycopg.connect = create_mock_connection(conn)

        from slotswap.db import profiles_ensure

        with pytest.raises(BadRequestError):
            await profiles_ensure(uuid.uuid4(), "taken@example.com", "Ann")

    @pytest.mark.asyncio
    async def test_get_missing(self, mock_psycopg):
        mock_psycopg.connect = create_mock_connection(MockAsyncConnection([[]]))

        from slotswap.db import profiles_get

        assert await profiles_get(uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_delete_reports_rowcount(self):
        from slotswap.db import profiles_delete

        conn = MockAsyncConnection([MockAsyncCursor(rowcount=1)])
        assert await profiles_delete(conn, uuid.uuid4()) is True

        conn = MockAsyncConnection([MockAsyncCursor(rowcount=0)])
        assert await profiles_delete(conn, uuid.uuid4()) is False


class TestEvents:
    @pytest.mark.asyncio
    async def test_insert(self, mock_psycopg):
        owner = uuid.uuid4()
        conn = MockAsyncConnection([[event_row(owner)]])
        mock_psycopg.connect = create_mock_connection(conn)

        from slotswap.db import events_insert

        event = await events_insert(owner, "Standup", NOW, NOW + timedelta(hours=1))

        assert event.owner_id == owner
        assert event.status == EventStatus.BUSY

    @pytest.mark.asyncio
    async def test_insert_check_violation(self, mock_psycopg):
        conn = MockAsyncConnection([pg_errors.CheckViolation("valid_time_range")])
        mock_psycopg.connect = create_mock_connection(conn)

        from slotswap.db import events_insert

        with pytest.raises(ValidationError):
            await events_insert(uuid.uuid4(), "Standup", NOW, NOW)

    @pytest.mark.asyncio
    async def test_list_for_owner_with_status(self, mock_psycopg):
        owner = uuid.uuid4()
        conn = MockAsyncConnection([[event_row(owner, "SWAPPABLE"), event_row(owner, "SWAPPABLE")]])
        mock_psycopg.connect = create_mock_connection(conn)

        from slotswap.db import events_list_for_owner

        events = await events_list_for_owner(owner, status=EventStatus.SWAPPABLE)

        assert len(events) == 2
        sql, params = conn.executed[0]
        assert "status = %s::event_status" in sql
        assert params == (owner, "SWAPPABLE")

    @pytest.mark.asyncio
    async def test_marketplace_rows(self, mock_psycopg):
        viewer = uuid.uuid4()
        row = event_row(status="SWAPPABLE")[:6] + ("Bob", "bob@example.com")
        conn = MockAsyncConnection([[row]])
        mock_psycopg.connect = create_mock_connection(conn)

        from slotswap.db import events_list_marketplace

        listing = await events_list_marketplace(viewer)

        assert listing[0]["owner_name"] == "Bob"
        assert listing[0]["owner_email"] == "bob@example.com"
        assert conn.executed[0][1] == (viewer,)

    @pytest.mark.asyncio
    async def test_lock_sorts_ids(self):
        from slotswap.db import events_lock

        a, b = sorted([uuid.uuid4(), uuid.uuid4()])
        conn = MockAsyncConnection([[event_row(event_id=a), event_row(event_id=b)]])

        locked = await events_lock(conn, [b, a, b])

        assert set(locked) == {a, b}
        sql, params = conn.executed[0]
        assert "FOR UPDATE" in sql
        assert params == ([a, b],)

    @pytest.mark.asyncio
    async def test_save_writes_owner_and_status(self):
        from slotswap.db import events_save

        owner = uuid.uuid4()
        row = event_row(owner, "SWAP_PENDING")
        conn = MockAsyncConnection([[row]])
        event = Event(
            id=row[0], owner_id=owner, title="Standup", start_time=NOW,
            end_time=NOW + timedelta(hours=1), status=EventStatus.SWAP_PENDING,
            created_at=NOW, updated_at=NOW,
        )

        saved = await events_save(conn, event)

        assert saved.status == EventStatus.SWAP_PENDING
        assert conn.executed[0][1] == (owner, "SWAP_PENDING", row[0])


class TestSwaps:
    @pytest.mark.asyncio
    async def test_lock_missing(self):
        from slotswap.db import swaps_lock

        conn = MockAsyncConnection([[]])
        assert await swaps_lock(conn, uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_set_status(self):
        from slotswap.db import swaps_set_status

        conn = MockAsyncConnection([[swap_row("ACCEPTED")]])
        request = await swaps_set_status(conn, uuid.uuid4(), SwapStatus.ACCEPTED)

        assert request.status == SwapStatus.ACCEPTED
        assert conn.executed[0][1][0] == "ACCEPTED"

    @pytest.mark.asyncio
    async def test_list_views_builds_nested_events(self, mock_psycopg):
        owner = uuid.uuid4()
        row = (
            uuid.uuid4(), "PENDING", NOW, NOW, uuid.uuid4(), owner,
            "Alice", "Bob",
            uuid.uuid4(), "Focus block", NOW, NOW + timedelta(hours=1),
            uuid.uuid4(), "Team sync", NOW, NOW + timedelta(hours=1),
        )
        conn = MockAsyncConnection([[row]])
        mock_psycopg.connect = create_mock_connection(conn)

        from slotswap.db import swaps_list_views

        views = await swaps_list_views(owner, "owner")

        assert views[0]["requester_name"] == "Alice"
        assert views[0]["owner_event"]["title"] == "Team sync"
        assert "s.owner_id = %s" in conn.executed[0][0]

    @pytest.mark.asyncio
    async def test_get_view_hidden_from_strangers(self, mock_psycopg):
        conn = MockAsyncConnection([[]])
        mock_psycopg.connect = create_mock_connection(conn)

        from slotswap.db import swaps_get_view

        assert await swaps_get_view(uuid.uuid4(), uuid.uuid4()) is None
