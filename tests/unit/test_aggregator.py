"""
Unit tests for AnalyticsAggregator.

Covers:
    - Date series covers every day of the window, empty days report 0
    - Country/device grouping, missing labels bucket as "Unknown"
    - Owner scope vs global scope (events of deleted mappings)
    - Window bounds validation
    - Summary counters and per-mapping click lists
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from shortlink_engine.analytics.aggregator import AnalyticsAggregator, AnalyticsScope
from shortlink_engine.errors import NotFoundError, ValidationError
from shortlink_engine.models import ClickEvent

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _click(storage, mapping, at, country="Kenya", device="Mobile"):
    return storage.append_click_event(
        ClickEvent(
            mapping_ref=mapping.id,
            short_code=mapping.short_code,
            timestamp=at,
            country=country,
            device_class=device,
        )
    )


def test_empty_window_is_zero_filled(aggregator):
    agg = aggregator.get_aggregates(window_days=7)

    assert agg.start_date == date(2026, 10, 13)
    assert agg.end_date == date(2026, 10, 19)
    assert list(agg.clicks_by_date) == [f"2026-10-{d}" for d in range(13, 20)]
    assert set(agg.clicks_by_date.values()) == {0}
    assert agg.clicks_by_country == {}
    assert agg.clicks_by_device == {}
    assert agg.total == 0


def test_grouping_by_date_country_device(aggregator, manager, storage):
    m = manager.create_mapping("https://example.com", custom_code="promo1", owner="alice")
    _click(storage, m, FIXED_NOW - timedelta(hours=1))
    _click(storage, m, FIXED_NOW - timedelta(hours=2), country="Germany", device="Desktop")
    _click(storage, m, FIXED_NOW - timedelta(days=1), country="Kenya", device="Mobile")
    _click(storage, m, FIXED_NOW - timedelta(days=2), country=None, device="Tablet")
    # outside a 3-day window
    _click(storage, m, FIXED_NOW - timedelta(days=5))

    agg = aggregator.get_aggregates(AnalyticsScope(owner="alice"), window_days=3)

    assert agg.clicks_by_date == {"2026-10-17": 1, "2026-10-18": 1, "2026-10-19": 2}
    assert agg.clicks_by_country == {"Kenya": 2, "Germany": 1, "Unknown": 1}
    assert agg.clicks_by_device == {"Mobile": 2, "Desktop": 1, "Tablet": 1}
    assert agg.total == 4


def test_window_starts_at_midnight_utc(aggregator, manager, storage):
    m = manager.create_mapping("https://example.com")
    _click(storage, m, datetime(2026, 10, 19, 0, 0, tzinfo=timezone.utc))
    _click(storage, m, datetime(2026, 10, 18, 23, 59, 59, tzinfo=timezone.utc))

    assert aggregator.get_aggregates(window_days=1).clicks_by_date == {"2026-10-19": 1}


def test_owner_scope_excludes_other_owners_and_deleted(aggregator, manager, storage):
    alice = manager.create_mapping("https://a.example", owner="alice")
    bob = manager.create_mapping("https://b.example", owner="bob")
    gone = manager.create_mapping("https://c.example", owner="alice")
    for m in (alice, bob, gone):
        _click(storage, m, FIXED_NOW - timedelta(minutes=5))
    manager.delete_mapping(gone.short_code)

    assert aggregator.get_aggregates(AnalyticsScope(owner="alice")).total == 1
    assert aggregator.get_aggregates(AnalyticsScope(owner="nobody")).total == 0
    assert aggregator.get_aggregates(AnalyticsScope()).total == 3
    assert aggregator.get_aggregates().total == 3


@pytest.mark.parametrize("days", [0, -1, 366])
def test_invalid_window(aggregator, days):
    with pytest.raises(ValidationError):
        aggregator.get_aggregates(window_days=days)


def test_custom_max_days(storage):
    agg = AnalyticsAggregator(storage, storage, max_days=30, clock=lambda: FIXED_NOW)
    assert len(agg.get_aggregates(window_days=30).clicks_by_date) == 30
    with pytest.raises(ValidationError):
        agg.get_aggregates(window_days=31)


def test_summary(aggregator, manager, storage):
    m = manager.create_mapping("https://example.com", owner="alice")
    _click(storage, m, FIXED_NOW - timedelta(hours=1))
    _click(storage, m, FIXED_NOW - timedelta(days=3))
    _click(storage, m, FIXED_NOW - timedelta(days=20))
    _click(storage, m, FIXED_NOW - timedelta(days=90))

    assert aggregator.summary(AnalyticsScope(owner="alice")) == {
        "total": 4,
        "today": 1,
        "this_week": 2,
        "this_month": 3,
    }
    assert aggregator.summary(AnalyticsScope(owner="bob"))["total"] == 0


def test_clicks_for_mapping(aggregator, manager, storage):
    m = manager.create_mapping("https://example.com", custom_code="promo1")
    other = manager.create_mapping("https://example.com/other")
    for i in range(3):
        _click(storage, m, FIXED_NOW - timedelta(minutes=i))
    _click(storage, other, FIXED_NOW)

    clicks = aggregator.clicks_for_mapping("promo1", limit=2)
    assert [c.timestamp for c in clicks] == [FIXED_NOW, FIXED_NOW - timedelta(minutes=1)]

    with pytest.raises(NotFoundError):
        aggregator.clicks_for_mapping("missing")
