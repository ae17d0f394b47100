"""
RedirectResolver – the hot path from short code to target URL.

Lifecycle, evaluated lazily on every resolution (no background sweep):

    lookup ──absent──────────────────────────────▶ NotFoundError
      │
      ├─ expires_at passed ─▶ mark INACTIVE (idempotent) ─▶ ExpiredError
      │
      ├─ status INACTIVE ────────────────────────▶ InactiveError
      │
      └─ ACTIVE ─▶ increment_counter (atomic) ─▶ target URL
                    └─ always: hand a capture task to the ClickRecorder

Expiry is checked before status, so a mapping that expired (and was therefore
moved to INACTIVE) keeps answering ExpiredError on every later call.

The only I/O on this path is the store read, the atomic increment and, once
per expiring mapping, the status write. Click capture is a non-blocking
`submit`; nothing here waits on event persistence or geo lookups.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from ..analytics.recorder import ClickRecorder
from ..errors import ExpiredError, InactiveError, NotFoundError, StoreUnavailableError
from ..models import ClickContext, LinkMapping, LinkStatus, RawClick, utcnow
from ..storage.base import BaseMappingStore

log = logging.getLogger("shortlink.resolver")

Clock = Callable[[], datetime]


class RedirectResolver:
    def __init__(
        self,
        store: BaseMappingStore,
        recorder: Optional[ClickRecorder] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.recorder = recorder
        self._clock = clock or utcnow

    def resolve(self, short_code: str, context: Optional[ClickContext] = None) -> str:
        """
        Resolve `short_code` to its target URL and count the click.

        Raises:
            NotFoundError, ExpiredError, InactiveError: terminal lookup outcomes.
            StoreUnavailableError: the store could not serve the read/increment.
        """
        mapping = self.store.get_mapping(short_code)
        if mapping is None:
            raise NotFoundError(short_code)

        now = self._clock()
        if mapping.is_expired(now):
            self._expire(mapping, now)
            raise ExpiredError(short_code)

        if mapping.status is LinkStatus.INACTIVE:
            raise InactiveError(short_code)

        try:
            count = self.store.increment_counter(short_code, 1)
            if count is None:
                # Deleted between the read and the increment.
                raise NotFoundError(short_code)
        finally:
            self._capture(mapping, context, now)
        return mapping.target_url

    def _expire(self, mapping: LinkMapping, now: datetime) -> None:
        if mapping.status is LinkStatus.INACTIVE:
            return
        try:
            if self.store.mark_inactive(mapping.short_code, now):
                log.info("Mapping %s expired at %s; marked inactive", mapping.short_code, mapping.expires_at)
        except StoreUnavailableError:
            log.warning("Could not persist expiry of %s; will retry on next resolution", mapping.short_code)

    def _capture(self, mapping: LinkMapping, context: Optional[ClickContext], now: datetime) -> None:
        if self.recorder is None:
            return
        self.recorder.submit(
            RawClick(
                mapping_ref=mapping.id,
                short_code=mapping.short_code,
                timestamp=now,
                context=context or ClickContext(),
            )
        )
