"""
Base storage interfaces for the short-link engine.

Purpose:
    Define a small, stable contract that multiple backends (in-memory,
    PostgreSQL) implement without requiring changes to the allocator,
    resolver, recorder or aggregator.

    Two primitives carry the concurrency guarantees of the whole engine and
    must be atomic in every backend, with no locking done by callers:

    - `insert_if_absent`: check-and-insert on `short_code` in one operation.
    - `increment_counter`: `click_count += delta` in one operation.

Testing & Coverage:
    These are abstract methods and are not executed directly in tests.
    We annotate them with `# pragma: no cover` so coverage tools don't
    penalize the project for un-runnable abstract declarations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Collection, List, Optional

from ..models import ClickEvent, LinkMapping, LinkStatus

__all__ = ["BaseMappingStore", "BaseEventLog"]


class BaseMappingStore(ABC):
    """Durable short_code -> LinkMapping storage."""

    @abstractmethod  # pragma: no cover
    def insert_if_absent(self, mapping: LinkMapping) -> Optional[LinkMapping]:
        """
        Insert `mapping` only if its short code is not already stored.

        Returns:
            Optional[LinkMapping]: The stored record (with its store-assigned
            `id`), or None when the code was already taken.

        LLM Prompt Example:
            "Show why check-then-insert races and how INSERT ... ON CONFLICT
            DO NOTHING closes the window in a single statement."
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def get_mapping(self, short_code: str) -> Optional[LinkMapping]:
        """Return the mapping for `short_code` or None."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def increment_counter(self, short_code: str, delta: int = 1) -> Optional[int]:
        """
        Atomically add `delta` to the mapping's click count.

        Returns:
            Optional[int]: The new count, or None if the code does not exist.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def mark_inactive(self, short_code: str, now: datetime) -> bool:
        """
        Move a mapping to INACTIVE. Idempotent: concurrent callers may all
        write the same terminal value.

        Returns:
            bool: True if this call changed the status.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def set_status(self, short_code: str, status: LinkStatus, now: datetime) -> Optional[LinkMapping]:
        """Administrative status write. Returns the updated record or None."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def delete_mapping(self, short_code: str) -> bool:
        """Remove a mapping. Click events referencing it are left in place."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def list_mappings(self, owner: Optional[str] = None) -> List[LinkMapping]:
        """Mappings newest first, optionally restricted to one owner."""
        raise NotImplementedError


class BaseEventLog(ABC):
    """Append-only log of click events."""

    @abstractmethod  # pragma: no cover
    def append_click_event(self, event: ClickEvent) -> ClickEvent:
        """Persist one event and return it with its store-assigned `id`."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def list_click_events(
        self,
        since: datetime,
        until: Optional[datetime] = None,
        mapping_refs: Optional[Collection[str]] = None,
    ) -> List[ClickEvent]:
        """
        Events with `since <= timestamp < until`, optionally restricted to a
        set of mapping references. An empty `mapping_refs` matches nothing.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def recent_click_events(self, mapping_ref: str, limit: int = 100) -> List[ClickEvent]:
        """Most recent events for one mapping, newest first."""
        raise NotImplementedError
