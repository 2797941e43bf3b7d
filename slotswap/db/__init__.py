"""Database access layer.

Backed by PostgreSQL through psycopg's async connection pool. Read helpers
open their own autocommit connection; write-path helpers take the
connection yielded by ``transaction()`` so a whole state-machine operation
commits or rolls back as one unit.
"""

from slotswap.db.core import close_pool, get_pool, get_pool_stats, init_pool, transaction
from slotswap.db.events import (
    events_delete,
    events_get,
    events_insert,
    events_list_for_owner,
    events_list_marketplace,
    events_lock,
    events_save,
)
from slotswap.db.profiles import profiles_delete, profiles_ensure, profiles_get, profiles_lock
from slotswap.db.swaps import (
    swaps_get_view,
    swaps_insert,
    swaps_list_views,
    swaps_lock,
    swaps_lock_pending_for_profile,
    swaps_set_status,
)

__all__ = [
    "close_pool",
    "events_delete",
    "events_get",
    "events_insert",
    "events_list_for_owner",
    "events_list_marketplace",
    "events_lock",
    "events_save",
    "get_pool",
    "get_pool_stats",
    "init_pool",
    "profiles_delete",
    "profiles_ensure",
    "profiles_get",
    "profiles_lock",
    "swaps_get_view",
    "swaps_insert",
    "swaps_list_views",
    "swaps_lock",
    "swaps_lock_pending_for_profile",
    "swaps_set_status",
    "transaction",
]
