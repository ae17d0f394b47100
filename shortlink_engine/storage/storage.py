"""
Storage module for the short-link engine (in-memory implementation).

Responsibilities:
    - Save mappings under a unique short code
    - Track click counts with an atomic increment
    - Keep the append-only click event log
    - Provide retrieval and lookup APIs (by code, by owner, by time window)

Design:
    - In-memory reference implementation of both BaseMappingStore and
      BaseEventLog, used by default and throughout the test suite.
    - A single lock guards every read-modify-write, which is what makes
      `insert_if_absent` and `increment_counter` atomic across request threads.
    - For production, replace with the PostgreSQL backend (`db_storage.py`).
"""

import itertools
import threading
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Collection, Dict, List, Optional

from ..models import ClickEvent, LinkMapping, LinkStatus
from .base import BaseEventLog, BaseMappingStore


class Storage(BaseMappingStore, BaseEventLog):
    def __init__(self):
        """
        Initialize empty storage.

        Internal schema:
            self.mappings = { short_code: LinkMapping }
            self.events   = [ ClickEvent, ... ]   (append order)
        """
        self._lock = threading.Lock()
        self._event_ids = itertools.count(1)
        self.mappings: Dict[str, LinkMapping] = {}
        self.events: List[ClickEvent] = []

    # ---- Mapping store ----------------------------------------------------

    def insert_if_absent(self, mapping: LinkMapping) -> Optional[LinkMapping]:
        with self._lock:
            if mapping.short_code in self.mappings:
                return None
            stored = replace(mapping, id=uuid.uuid4().hex)
            self.mappings[mapping.short_code] = stored
            return stored

    def get_mapping(self, short_code: str) -> Optional[LinkMapping]:
        return self.mappings.get(short_code)

    def increment_counter(self, short_code: str, delta: int = 1) -> Optional[int]:
        with self._lock:
            current = self.mappings.get(short_code)
            if current is None:
                return None
            updated = replace(current, click_count=current.click_count + delta)
            self.mappings[short_code] = updated
            return updated.click_count

    def mark_inactive(self, short_code: str, now: datetime) -> bool:
        with self._lock:
            current = self.mappings.get(short_code)
            if current is None or current.status is LinkStatus.INACTIVE:
                return False
            self.mappings[short_code] = replace(current, status=LinkStatus.INACTIVE, updated_at=now)
            return True

    def set_status(self, short_code: str, status: LinkStatus, now: datetime) -> Optional[LinkMapping]:
        with self._lock:
            current = self.mappings.get(short_code)
            if current is None:
                return None
            updated = replace(current, status=status, updated_at=now)
            self.mappings[short_code] = updated
            return updated

    def delete_mapping(self, short_code: str) -> bool:
        with self._lock:
            return self.mappings.pop(short_code, None) is not None

    def list_mappings(self, owner: Optional[str] = None) -> List[LinkMapping]:
        with self._lock:
            rows = [m for m in self.mappings.values() if owner is None or m.owner == owner]
        return sorted(rows, key=lambda m: m.created_at, reverse=True)

    # ---- Event log ---------------------------------------------------------

    def append_click_event(self, event: ClickEvent) -> ClickEvent:
        with self._lock:
            stored = replace(event, id=str(next(self._event_ids)))
            self.events.append(stored)
            return stored

    def list_click_events(
        self,
        since: datetime,
        until: Optional[datetime] = None,
        mapping_refs: Optional[Collection[str]] = None,
    ) -> List[ClickEvent]:
        refs = set(mapping_refs) if mapping_refs is not None else None
        with self._lock:
            snapshot = list(self.events)
        return [
            e for e in snapshot
            if e.timestamp >= since
            and (until is None or e.timestamp < until)
            and (refs is None or e.mapping_ref in refs)
        ]

    def recent_click_events(self, mapping_ref: str, limit: int = 100) -> List[ClickEvent]:
        with self._lock:
            matching = [e for e in self.events if e.mapping_ref == mapping_ref]
        matching.sort(key=lambda e: e.timestamp, reverse=True)
        return matching[:limit]
