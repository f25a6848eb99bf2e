"""Tests for the in-memory and SQL usage stores."""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from devsmentor.core.models import Tier, UsageRecord
from devsmentor.core.store import (
    InMemoryUsageStore,
    SQLUsageStore,
    UsageStore,
    create_usage_store,
)
from devsmentor.utils.errors import ConfigurationError, StorageError

TODAY = date(2026, 3, 10)


def usage(subscriber_id="u1", feature="career_analysis", day=TODAY):
    return UsageRecord(
        subscriber_id=subscriber_id,
        feature=feature,
        day=day,
        created_at=datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc),
    )


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryUsageStore()
    else:
        sql_store = SQLUsageStore(f"sqlite:///{tmp_path / 'usage.db'}")
        yield sql_store
        sql_store.dispose()


class TestSubscriptions:
    def test_satisfies_protocol(self, store):
        assert isinstance(store, UsageStore)

    def test_missing(self, store):
        assert store.get_subscription("nobody") is None

    def test_create_defaults_to_free(self, store):
        created = store.create_subscription("u1")
        assert created.tier is Tier.FREE
        assert created.expires_at is None
        assert store.get_subscription("u1").tier is Tier.FREE

    def test_create_twice_keeps_first_row(self, store):
        store.create_subscription("u1", Tier.PRO)
        again = store.create_subscription("u1", Tier.FREE)
        assert again.tier is Tier.PRO

    def test_upsert_sets_tier_and_expiry(self, store):
        expires = datetime(2026, 4, 1, tzinfo=timezone.utc)
        store.create_subscription("u1")
        store.upsert_subscription("u1", Tier.PRO, expires)

        stored = store.get_subscription("u1")
        assert stored.tier is Tier.PRO
        assert stored.expires_at == expires

    def test_upsert_creates_row(self, store):
        store.upsert_subscription("u2", Tier.PRO)
        assert store.get_subscription("u2").tier is Tier.PRO


class TestUsageLedger:
    def test_empty_count(self, store):
        assert store.count_usage("u1", "career_analysis", TODAY) == 0

    def test_counts_by_subscriber_feature_and_day(self, store):
        store.insert_usage(usage())
        store.insert_usage(usage())
        store.insert_usage(usage(subscriber_id="u2"))
        store.insert_usage(usage(feature="job_search"))
        store.insert_usage(usage(day=TODAY - timedelta(days=1)))

        assert store.count_usage("u1", "career_analysis", TODAY) == 2
        assert store.count_usage("u2", "career_analysis", TODAY) == 1
        assert store.count_usage("u1", "job_search", TODAY) == 1
        assert store.count_usage("u1", "career_analysis", TODAY - timedelta(days=1)) == 1


class TestInMemoryStore:
    def test_records_are_append_only_snapshot(self):
        store = InMemoryUsageStore()
        store.insert_usage(usage())
        snapshot = store.records()
        store.insert_usage(usage())
        assert len(snapshot) == 1
        assert len(store) == 2


class TestSQLStore:
    def test_persists_across_instances(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'usage.db'}"
        first = SQLUsageStore(url)
        first.upsert_subscription("u1", Tier.PRO)
        first.insert_usage(usage())
        first.dispose()

        second = SQLUsageStore(url)
        assert second.get_subscription("u1").tier is Tier.PRO
        assert second.count_usage("u1", "career_analysis", TODAY) == 1
        second.dispose()

    def test_naive_expiry_read_as_utc(self, tmp_path):
        store = SQLUsageStore(f"sqlite:///{tmp_path / 'usage.db'}")
        store.upsert_subscription("u1", Tier.PRO, datetime(2026, 4, 1, 8, 0))
        assert store.get_subscription("u1").expires_at == datetime(
            2026, 4, 1, 8, 0, tzinfo=timezone.utc
        )

    def test_unknown_stored_tier_reads_as_free(self, tmp_path):
        store = SQLUsageStore(f"sqlite:///{tmp_path / 'usage.db'}")
        store.create_subscription("u1")
        with store._engine.begin() as conn:
            conn.execute(text("UPDATE user_subscriptions SET tier = 'platinum'"))
        assert store.get_subscription("u1").tier is Tier.FREE

    def test_missing_tables_raise_storage_error(self, tmp_path):
        store = SQLUsageStore(f"sqlite:///{tmp_path / 'empty.db'}", create_tables=False)
        with pytest.raises(StorageError) as exc_info:
            store.count_usage("u1", "career_analysis", TODAY)
        assert exc_info.value.operation == "count_usage"
        assert exc_info.value.original_error is not None

    def test_bad_url_raises_storage_error(self):
        with pytest.raises(StorageError):
            SQLUsageStore("sqlite:////nonexistent-dir/sub/usage.db")


class TestCreateUsageStore:
    def test_default_is_memory(self):
        assert isinstance(create_usage_store(), InMemoryUsageStore)

    def test_sql(self, tmp_path):
        store = create_usage_store({"backend": "sql", "url": f"sqlite:///{tmp_path / 'x.db'}"})
        assert isinstance(store, SQLUsageStore)
        store.dispose()

    def test_sql_requires_url(self):
        with pytest.raises(ConfigurationError):
            create_usage_store({"backend": "sql", "url": ""})

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_usage_store({"backend": "redis"})
        assert exc_info.value.config_key == "storage.backend"
