from datetime import datetime, timezone

import psycopg
import pytest

from shortlink_engine.errors import StoreUnavailableError
from shortlink_engine.models import ClickEvent, LinkMapping, LinkStatus
from shortlink_engine.storage.db_storage import DBStorage

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class DummyCursor:
    def __init__(self, results=None, rowcount=1, error=None):
        # results is a list of dicts or tuples
        self._results = results or []
        self.rowcount = rowcount
        self._index = 0
        self._error = error
        self.executed = []

    def execute(self, query, params=None):
        if self._error is not None:
            raise self._error
        self.executed.append((query, params))
        return True

    def fetchone(self):
        if self._results and self._index < len(self._results):
            row = self._results[self._index]
            self._index += 1
            return row
        return None

    def fetchall(self):
        rows, self._results = self._results[self._index:], []
        return rows

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class DummyConnection:
    def __init__(self, results=None, rowcount=1, error=None):
        self.cur = DummyCursor(results=results, rowcount=rowcount, error=error)
        self.autocommit = False
        self.closed = False

    def cursor(self, row_factory=None):
        return self.cur

    def close(self):
        self.closed = True

    @property
    def sql(self):
        return " ".join(q for q, _ in self.cur.executed)


def _install(monkeypatch, conn):
    monkeypatch.setattr("psycopg.connect", lambda dsn, **kw: conn)
    return DBStorage("fake")


def _mapping_row(**overrides):
    row = {
        "id": "3f2b",
        "short_code": "promo1",
        "target_url": "https://example.com/page",
        "status": "ACTIVE",
        "expires_at": None,
        "title": None,
        "description": None,
        "owner": "alice",
        "click_count": 0,
        "created_at": NOW,
        "updated_at": NOW,
    }
    row.update(overrides)
    return row


def _event_row(**overrides):
    row = {
        "id": "1",
        "mapping_ref": "3f2b",
        "short_code": "promo1",
        "clicked_at": NOW,
        "ip_address": "127.0.0.1",
        "user_agent": "curl/8",
        "referer": "Direct",
        "device_class": "Desktop",
        "browser_class": "Other",
        "country": "Local",
        "city": "Localhost",
    }
    row.update(overrides)
    return row


# ---------------------------------------------------------------------
# Mapping store
# ---------------------------------------------------------------------

def test_insert_if_absent_inserted(monkeypatch):
    conn = DummyConnection(results=[_mapping_row()])
    storage = _install(monkeypatch, conn)

    stored = storage.insert_if_absent(LinkMapping(short_code="promo1", target_url="https://example.com/page"))

    assert stored.id == "3f2b"
    assert stored.status is LinkStatus.ACTIVE
    assert "ON CONFLICT (short_code) DO NOTHING" in conn.sql
    assert conn.autocommit is True and conn.closed


def test_insert_if_absent_conflict(monkeypatch):
    conn = DummyConnection(results=[])
    storage = _install(monkeypatch, conn)
    assert storage.insert_if_absent(LinkMapping(short_code="promo1", target_url="https://x.com")) is None


def test_get_mapping(monkeypatch):
    storage = _install(monkeypatch, DummyConnection(results=[_mapping_row(click_count=7, status="INACTIVE")]))
    mapping = storage.get_mapping("promo1")
    assert mapping.click_count == 7
    assert mapping.status is LinkStatus.INACTIVE

    storage = _install(monkeypatch, DummyConnection(results=[]))
    assert storage.get_mapping("missing") is None


def test_increment_counter_is_single_update(monkeypatch):
    conn = DummyConnection(results=[(5,)])
    storage = _install(monkeypatch, conn)

    assert storage.increment_counter("promo1") == 5
    assert "click_count = click_count + %s" in conn.sql
    assert conn.cur.executed[0][1] == (1, "promo1")

    storage = _install(monkeypatch, DummyConnection(results=[]))
    assert storage.increment_counter("missing") is None


def test_mark_inactive(monkeypatch):
    conn = DummyConnection(rowcount=1)
    storage = _install(monkeypatch, conn)
    assert storage.mark_inactive("promo1", NOW) is True
    assert "status <> %s" in conn.sql

    storage = _install(monkeypatch, DummyConnection(rowcount=0))
    assert storage.mark_inactive("promo1", NOW) is False


def test_set_status_delete_list(monkeypatch):
    storage = _install(monkeypatch, DummyConnection(results=[_mapping_row(status="INACTIVE")]))
    assert storage.set_status("promo1", LinkStatus.INACTIVE, NOW).status is LinkStatus.INACTIVE

    storage = _install(monkeypatch, DummyConnection(rowcount=1))
    assert storage.delete_mapping("promo1") is True

    conn = DummyConnection(results=[_mapping_row(), _mapping_row(short_code="other")])
    storage = _install(monkeypatch, conn)
    assert [m.short_code for m in storage.list_mappings("alice")] == ["promo1", "other"]
    assert conn.cur.executed[0][1] == ("alice",)


# ---------------------------------------------------------------------
# Event log
# ---------------------------------------------------------------------

def test_append_click_event(monkeypatch):
    conn = DummyConnection(results=[_event_row()])
    storage = _install(monkeypatch, conn)

    stored = storage.append_click_event(ClickEvent(mapping_ref="3f2b", short_code="promo1", timestamp=NOW))

    assert stored.id == "1"
    assert stored.country == "Local"
    assert "INSERT INTO click_events" in conn.sql


def test_list_click_events_with_refs(monkeypatch):
    conn = DummyConnection(results=[_event_row(), _event_row(id="2")])
    storage = _install(monkeypatch, conn)

    events = storage.list_click_events(NOW, until=NOW, mapping_refs={"3f2b"})

    assert [e.id for e in events] == ["1", "2"]
    assert "mapping_ref = ANY(%s)" in conn.sql
    assert conn.cur.executed[0][1] == [NOW, NOW, ["3f2b"]]


def test_list_click_events_empty_refs_skips_query(monkeypatch):
    def no_connect(dsn, **kw):
        raise AssertionError("should not connect")

    monkeypatch.setattr("psycopg.connect", no_connect)
    assert DBStorage("fake").list_click_events(NOW, mapping_refs=[]) == []


def test_recent_click_events(monkeypatch):
    conn = DummyConnection(results=[_event_row()])
    storage = _install(monkeypatch, conn)
    assert len(storage.recent_click_events("3f2b", limit=10)) == 1
    assert conn.cur.executed[0][1] == ("3f2b", 10)


# ---------------------------------------------------------------------
# Failure mapping
# ---------------------------------------------------------------------

def test_connect_failure_is_store_unavailable(monkeypatch):
    def refuse(dsn, **kw):
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr("psycopg.connect", refuse)
    with pytest.raises(StoreUnavailableError):
        DBStorage("fake").get_mapping("promo1")


def test_query_timeout_is_store_unavailable(monkeypatch):
    conn = DummyConnection(error=psycopg.OperationalError("statement timeout"))
    storage = _install(monkeypatch, conn)
    with pytest.raises(StoreUnavailableError):
        storage.increment_counter("promo1")
    assert conn.closed


def test_connect_timeout_is_passed(monkeypatch):
    seen = {}

    def connect(dsn, **kw):
        seen.update(kw, dsn=dsn)
        return DummyConnection(results=[])

    monkeypatch.setattr("psycopg.connect", connect)
    DBStorage("postgresql://x", connect_timeout=7).get_mapping("a")
    assert seen == {"dsn": "postgresql://x", "connect_timeout": 7}
