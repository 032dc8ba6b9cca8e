"""
Tests for the SQLite-backed transient store.
"""

import pytest

from postpilot.models import FaqItem, Feature
from postpilot.storage import CacheLayer, RateLimiter, ResourceMetaStore, SQLStore

from conftest import FakeClock


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "state" / "postpilot.db"


@pytest.fixture
def sql_store(db_path, clock):
    store = SQLStore(db_path, clock=clock)
    yield store
    store.close()


class TestSQLStore:
    """TransientStore contract over SQLAlchemy."""

    def test_creates_database_file(self, sql_store, db_path):
        """The parent directory and file are created on open."""
        assert db_path.exists()

    def test_set_and_get_json(self, sql_store):
        """JSON-compatible values are stored as-is."""
        sql_store.set("k", {"items": [{"question": "Q"}], "enabled": True}, ttl=60)
        assert sql_store.get("k") == {"items": [{"question": "Q"}], "enabled": True}

    def test_overwrite(self, sql_store):
        """Setting a key twice keeps the latest value."""
        sql_store.set("k", [1], ttl=60)
        sql_store.set("k", [1, 2], ttl=60)
        assert sql_store.get("k") == [1, 2]

    def test_expiry(self, sql_store, clock):
        """Values disappear after their TTL."""
        sql_store.set("k", "v", ttl=60)
        assert sql_store.expires_at("k") == clock() + 60
        clock.advance(60)
        assert sql_store.get("k") is None
        assert sql_store.expires_at("k") is None

    def test_no_ttl_never_expires(self, sql_store, clock):
        sql_store.set("k", "v")
        clock.advance(10 ** 7)
        assert sql_store.get("k") == "v"

    def test_delete(self, sql_store):
        sql_store.set("k", "v", ttl=60)
        sql_store.delete("k")
        sql_store.delete("missing")
        assert sql_store.get("k") is None

    def test_purge_expired(self, sql_store, clock):
        """purge_expired() removes only expired rows."""
        sql_store.set("old", "v", ttl=10)
        sql_store.set("new", "v", ttl=100)
        clock.advance(50)
        assert sql_store.purge_expired() == 1
        assert sql_store.get("new") == "v"

    def test_persists_between_instances(self, db_path):
        """A second store on the same file sees earlier writes."""
        clock = FakeClock()
        first = SQLStore(db_path, clock=clock)
        CacheLayer(first).put(3, Feature.FAQ, [FaqItem("Q", "A")])
        first.close()

        second = SQLStore(str(db_path), clock=clock)
        try:
            assert CacheLayer(second).get(3, Feature.FAQ) == [FaqItem("Q", "A")]
        finally:
            second.close()

    def test_rate_limiter_over_sql(self, sql_store):
        """Rate-limit windows work over the SQL store."""
        limiter = RateLimiter(sql_store)
        for _ in range(2):
            limiter.record(1, 10)
        assert not limiter.check(1, 10).allowed
        assert limiter.daily_remaining(1) == 28

    def test_daily_window_over_sql(self, sql_store, clock):
        """Daily attempts leave the window one by one."""
        limiter = RateLimiter(sql_store)
        limiter.record(1, 10)
        clock.advance(86000)
        limiter.record(1, 11)
        clock.advance(401)
        assert limiter.daily_remaining(1) == 29

    def test_resource_meta_persists(self, db_path):
        """Saved per-resource values survive reopening and never expire."""
        clock = FakeClock()
        first = SQLStore(db_path, clock=clock)
        ResourceMetaStore(first).set(3, "faq", {"items": [], "enabled": False})
        first.close()

        clock.advance(10 ** 7)
        second = SQLStore(db_path, clock=clock)
        try:
            assert ResourceMetaStore(second).get(3, "faq") == {"items": [], "enabled": False}
            assert ResourceMetaStore(second).get(4, "faq", default={}) == {}
        finally:
            second.close()

    def test_accepts_url(self, tmp_path, clock):
        """A full SQLAlchemy URL is used unchanged."""
        store = SQLStore(f"sqlite:///{tmp_path / 'url.db'}", clock=clock)
        try:
            store.set("k", 1, ttl=5)
            assert store.get("k") == 1
        finally:
            store.close()
