"""
AnalyticsAggregator – on-demand click aggregation for dashboards.

Responsibilities:
    - Group raw click events of a scope (one owner, or global) into
      per-date, per-country and per-device buckets over a lookback window
    - Headline counters (total / today / last 7 days / last 30 days)
    - Recent events of a single mapping

Design notes:
    - Read-only, point-in-time: every call goes to the event log. Nothing here
      touches the redirect path or the click counters on mappings.
    - Buckets come from grouping actual events. The date series is seeded
      with every date of the window so empty days report 0.
    - The window is `window_days` calendar dates (UTC) ending today inclusive.
    - Owner scope means "events whose mapping is currently owned by X".
      Events of deleted mappings only show up in the global scope.

Example:
    >>> aggregator.get_aggregates(AnalyticsScope(owner="alice"), window_days=3).clicks_by_date
    {'2026-10-17': 0, '2026-10-18': 4, '2026-10-19': 1}
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Dict, List, Optional

from ..errors import NotFoundError, ValidationError
from ..models import UNKNOWN, ClickEvent, utcnow
from ..storage.base import BaseEventLog, BaseMappingStore

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class AnalyticsScope:
    """`owner=None` is the global scope."""
    owner: Optional[str] = None

    @property
    def is_global(self) -> bool:
        return self.owner is None


@dataclass
class Aggregates:
    start_date: date
    end_date: date
    clicks_by_date: Dict[str, int] = field(default_factory=dict)
    clicks_by_country: Dict[str, int] = field(default_factory=dict)
    clicks_by_device: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.clicks_by_date.values())


def _start_of(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _group(events: List[ClickEvent], attr: str) -> Dict[str, int]:
    counts = Counter(getattr(e, attr) or UNKNOWN for e in events)
    return dict(counts.most_common())


class AnalyticsAggregator:
    def __init__(
        self,
        store: BaseMappingStore,
        event_log: BaseEventLog,
        max_days: int = 365,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.event_log = event_log
        self.max_days = max_days
        self._clock = clock

    def get_aggregates(self, scope: Optional[AnalyticsScope] = None, window_days: int = 7) -> Aggregates:
        """
        Per-date, per-country and per-device click counts for the window.

        Raises:
            ValidationError: If `window_days` is outside [1, max_days].
        """
        if not 1 <= window_days <= self.max_days:
            raise ValidationError(f"window_days must be between 1 and {self.max_days}")
        scope = scope or AnalyticsScope()

        end_date = self._clock().astimezone(timezone.utc).date()
        start_date = end_date - timedelta(days=window_days - 1)
        events = self._events(scope, _start_of(start_date), _start_of(end_date + timedelta(days=1)))

        by_date = {(start_date + timedelta(days=i)).isoformat(): 0 for i in range(window_days)}
        for e in events:
            key = e.timestamp.astimezone(timezone.utc).date().isoformat()
            if key in by_date:
                by_date[key] += 1

        return Aggregates(
            start_date=start_date,
            end_date=end_date,
            clicks_by_date=by_date,
            clicks_by_country=_group(events, "country"),
            clicks_by_device=_group(events, "device_class"),
        )

    def summary(self, scope: Optional[AnalyticsScope] = None) -> Dict[str, int]:
        """Event counts: total, today (UTC), last 7 days, last 30 days."""
        scope = scope or AnalyticsScope()
        now = self._clock()
        start_of_today = _start_of(now.astimezone(timezone.utc).date())
        week_ago = now - timedelta(days=7)
        month_ago = now - timedelta(days=30)

        events = self._events(scope, _EPOCH)
        return {
            "total": len(events),
            "today": sum(1 for e in events if e.timestamp >= start_of_today),
            "this_week": sum(1 for e in events if e.timestamp >= week_ago),
            "this_month": sum(1 for e in events if e.timestamp >= month_ago),
        }

    def clicks_for_mapping(self, short_code: str, limit: int = 100) -> List[ClickEvent]:
        mapping = self.store.get_mapping(short_code)
        if mapping is None or mapping.id is None:
            raise NotFoundError(short_code)
        return self.event_log.recent_click_events(mapping.id, limit=limit)

    def _events(self, scope: AnalyticsScope, since: datetime, until: Optional[datetime] = None) -> List[ClickEvent]:
        refs = None
        if not scope.is_global:
            refs = {m.id for m in self.store.list_mappings(scope.owner) if m.id is not None}
        return self.event_log.list_click_events(since, until=until, mapping_refs=refs)
