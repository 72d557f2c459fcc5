"""Entity and account stores."""

from __future__ import annotations

import os
from typing import Optional, Tuple

from ..config import RunwayConfig, load_config
from .base import AccountStore, EntityStore
from .inmemory import InMemoryAccountStore, InMemoryEntityStore, apply_patch


def get_stores(
    records_url: Optional[str] = None, config: Optional[RunwayConfig] = None
) -> Tuple[EntityStore, AccountStore]:
    """Return the configured ``(entity store, account store)`` pair.

    ``records_url`` is an SQLAlchemy async URL such as
    ``sqlite+aiosqlite:///runway.db``. Without one, in-memory stores are used.
    Tables are created on first use.
    """

    config = config or load_config()
    records_url = records_url or os.getenv("RUNWAY_RECORDS_URL") or config.records_url

    if not records_url:
        return InMemoryEntityStore(), InMemoryAccountStore()

    from ..db import RecordsDB, SQLAccountStore, SQLEntityStore

    db = RecordsDB(records_url)
    return SQLEntityStore(db), SQLAccountStore(db)


__all__ = [
    "EntityStore",
    "AccountStore",
    "InMemoryEntityStore",
    "InMemoryAccountStore",
    "apply_patch",
    "get_stores",
]
