"""
Storage factory – switch storage backend from config
====================================================

This module centralizes selection of the storage backend (in-memory vs DB)
so the rest of the app can stay ignorant of where data lives.

- Reads configuration **at call time** (a fresh `Settings()` unless one is
  passed in) to avoid stale values in tests.
- Imports the DB backend **only if** the selected backend is "postgres".

Environment variables
---------------------
- SHORTLINK_STORAGE_BACKEND: "memory" (default) or "postgres"
- SHORTLINK_DB_DSN:          DSN string if backend=="postgres"
"""

import logging
from typing import TYPE_CHECKING, Optional, Union

from ..config import Settings
from .storage import Storage

if TYPE_CHECKING:  # pragma: no cover
    from .db_storage import DBStorage

log = logging.getLogger("shortlink.storage")


def get_storage(backend: Optional[str] = None, settings: Optional[Settings] = None, **kwargs) -> Union[Storage, "DBStorage"]:
    """
    Return a store implementing both BaseMappingStore and BaseEventLog.

    Parameters
    ----------
    backend : str, optional
        "memory" (default) or "postgres". If omitted, taken from settings.
    settings : Settings, optional
        Configuration source; a fresh one is read from the environment if omitted.
    kwargs : dict
        Extra args passed to the backend constructor. For postgres, use dsn="...".
    """
    cfg = settings or Settings()
    be = (backend or cfg.STORAGE_BACKEND).strip().lower()
    log.info("Selected storage backend: %r", be)

    if be == "memory":
        return Storage()

    if be == "postgres":
        dsn = kwargs.get("dsn") or cfg.DB_DSN
        if not dsn:
            raise ValueError("DB_DSN is required for postgres backend (env SHORTLINK_DB_DSN)")
        # Local import to avoid hard dependency when not using postgres
        from .db_storage import DBStorage
        return DBStorage(dsn=dsn, connect_timeout=kwargs.get("connect_timeout", cfg.DB_CONNECT_TIMEOUT))

    raise ValueError(f"Unknown storage backend: {be!r}")
