"""Tests for EntitlementGate: tiers, quotas, expiry and the usage ledger."""

from datetime import datetime, timedelta, timezone

import pytest

from devsmentor.core.limits import UNLIMITED, build_tier_limits
from devsmentor.core.models import Decision, Tier
from devsmentor.core.store import InMemoryUsageStore
from devsmentor.features.gate import EntitlementGate
from devsmentor.utils.errors import ConfigurationError, StorageError


class FailingStore(InMemoryUsageStore):
    """Store whose reads fail after construction."""

    def get_subscription(self, subscriber_id):
        raise StorageError("database unavailable", operation="get_subscription")


# ---------------------------------------------------------------------------
# Tier resolution
# ---------------------------------------------------------------------------


class TestEffectiveTier:
    def test_unknown_subscriber_gets_free_row(self, gate, store):
        assert store.get_subscription("new-user") is None
        assert gate.effective_tier("new-user") is Tier.FREE
        assert store.get_subscription("new-user").tier is Tier.FREE

    def test_repeated_lookup_does_not_duplicate_row(self, gate, store):
        gate.effective_tier("u1")
        gate.effective_tier("u1")
        assert store.get_subscription("u1").tier is Tier.FREE

    def test_active_pro(self, gate, store, clock):
        store.upsert_subscription("u1", Tier.PRO, clock.now + timedelta(days=1))
        assert gate.effective_tier("u1") is Tier.PRO

    def test_pro_without_expiry_never_lapses(self, gate, store, clock):
        store.upsert_subscription("u1", Tier.PRO, None)
        clock.advance(days=3650)
        assert gate.effective_tier("u1") is Tier.PRO

    def test_expired_pro_is_free(self, gate, store, clock):
        store.upsert_subscription("u1", Tier.PRO, clock.now - timedelta(seconds=1))
        assert gate.effective_tier("u1") is Tier.FREE

    def test_expiry_leaves_stored_tier_untouched(self, gate, store, clock):
        store.upsert_subscription("u1", Tier.PRO, clock.now - timedelta(days=1))
        gate.effective_tier("u1")
        assert store.get_subscription("u1").tier is Tier.PRO

    def test_lapses_as_clock_moves(self, gate, store, clock):
        store.upsert_subscription("u1", Tier.PRO, clock.now + timedelta(hours=1))
        assert gate.effective_tier("u1") is Tier.PRO
        clock.advance(hours=2)
        assert gate.effective_tier("u1") is Tier.FREE


# ---------------------------------------------------------------------------
# Access decisions
# ---------------------------------------------------------------------------


class TestCheckAccess:
    def test_free_quota_admits_then_denies(self, gate):
        remaining = []
        for _ in range(3):
            decision = gate.check_access("u1", "career_analysis")
            assert decision.allowed
            remaining.append(decision.remaining)
            gate.record_usage("u1", "career_analysis")

        assert remaining == [3, 2, 1]
        denied = gate.check_access("u1", "career_analysis")
        assert not denied.allowed
        assert denied.reason == Decision.QUOTA_EXHAUSTED
        assert denied.remaining == 0
        assert denied.limit == 3

    def test_quota_is_per_feature(self, gate):
        for _ in range(3):
            gate.record_usage("u1", "career_analysis")
        assert not gate.check_access("u1", "career_analysis").allowed
        assert gate.check_access("u1", "job_search").allowed

    def test_quota_is_per_subscriber(self, gate):
        for _ in range(3):
            gate.record_usage("u1", "career_analysis")
        assert gate.check_access("u2", "career_analysis").allowed

    def test_quota_resets_next_day(self, gate, clock):
        for _ in range(3):
            gate.record_usage("u1", "career_analysis")
        assert not gate.check_access("u1", "career_analysis").allowed

        clock.advance(days=1)
        decision = gate.check_access("u1", "career_analysis")
        assert decision.allowed
        assert decision.remaining == 3

    def test_day_boundary_is_utc_midnight(self, store):
        late = datetime(2026, 3, 10, 23, 59, 0, tzinfo=timezone.utc)
        gate = EntitlementGate(store, clock=lambda: late)
        for _ in range(3):
            gate.record_usage("u1", "career_analysis")

        early = datetime(2026, 3, 11, 0, 1, 0, tzinfo=timezone.utc)
        next_day = EntitlementGate(store, clock=lambda: early)
        assert next_day.check_access("u1", "career_analysis").allowed

    def test_non_utc_clock_is_bucketed_in_utc(self, store):
        # 01:30 at UTC+5:30 is still the previous UTC day
        ist = timezone(timedelta(hours=5, minutes=30))
        gate = EntitlementGate(store, clock=lambda: datetime(2026, 3, 11, 1, 30, tzinfo=ist))
        assert gate.today().isoformat() == "2026-03-10"

    def test_boolean_feature_denied_on_free(self, gate):
        decision = gate.check_access("u1", "resume_enhancement")
        assert not decision.allowed
        assert decision.reason == Decision.TIER_RESTRICTED
        assert decision.limit is False

    def test_boolean_feature_allowed_on_pro(self, gate, store):
        store.upsert_subscription("u1", Tier.PRO)
        decision = gate.check_access("u1", "mind_maps")
        assert decision.allowed
        assert decision.reason is None

    def test_pro_numeric_feature_is_unlimited(self, gate, store):
        store.upsert_subscription("u1", Tier.PRO)
        for _ in range(50):
            gate.record_usage("u1", "career_analysis")
        decision = gate.check_access("u1", "career_analysis")
        assert decision.allowed
        assert decision.limit == UNLIMITED
        assert decision.remaining is None

    def test_expired_pro_falls_back_to_free_quota(self, gate, store, clock):
        store.upsert_subscription("u1", Tier.PRO, clock.now - timedelta(days=1))
        for _ in range(3):
            gate.record_usage("u1", "career_analysis")
        decision = gate.check_access("u1", "career_analysis")
        assert not decision.allowed
        assert decision.tier is Tier.FREE

    def test_unknown_feature_raises_before_storage(self, store, clock):
        gate = EntitlementGate(FailingStore(), clock=clock)
        with pytest.raises(ConfigurationError) as exc_info:
            gate.check_access("u1", "teleport")
        assert exc_info.value.config_key == "teleport"

    def test_storage_failure_propagates(self, clock):
        gate = EntitlementGate(FailingStore(), clock=clock)
        with pytest.raises(StorageError):
            gate.check_access("u1", "career_analysis")

    def test_is_available(self, gate):
        assert gate.is_available("u1", "career_analysis")
        assert not gate.is_available("u1", "export")

    def test_configured_overrides(self, store, clock):
        limits = build_tier_limits({"free": {"career_analysis": 1, "export": True}})
        gate = EntitlementGate(store, limits=limits, clock=clock)
        gate.record_usage("u1", "career_analysis")
        assert not gate.check_access("u1", "career_analysis").allowed
        assert gate.check_access("u1", "export").allowed

    def test_zero_quota_always_denies(self, store, clock):
        limits = build_tier_limits({"free": {"ai_search": 0}})
        gate = EntitlementGate(store, limits=limits, clock=clock)
        decision = gate.check_access("u1", "ai_search")
        assert not decision.allowed
        assert decision.reason == Decision.QUOTA_EXHAUSTED


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class TestRecordUsage:
    def test_each_call_appends_one_row(self, gate, store):
        gate.record_usage("u1", "job_search")
        gate.record_usage("u1", "job_search")
        assert len(store) == 2
        assert gate.current_usage("u1", "job_search") == 2

    def test_record_carries_utc_day(self, gate, store, clock):
        gate.record_usage("u1", "ai_search")
        record = store.records()[0]
        assert record.subscriber_id == "u1"
        assert record.feature == "ai_search"
        assert record.day == clock.now.date()

    def test_unknown_feature_is_rejected(self, gate, store):
        with pytest.raises(ConfigurationError):
            gate.record_usage("u1", "teleport")
        assert len(store) == 0

    def test_current_usage_only_counts_today(self, gate, clock):
        gate.record_usage("u1", "job_search")
        clock.advance(days=1)
        assert gate.current_usage("u1", "job_search") == 0


class TestUsageSummary:
    def test_free_summary(self, gate):
        gate.record_usage("u1", "career_analysis")
        summary = {row["feature"]: row for row in gate.usage_summary("u1")}

        assert set(summary) == {"ai_search", "career_analysis", "job_search", "project_generation"}
        assert summary["career_analysis"] == {
            "feature": "career_analysis",
            "limit": 3,
            "used": 1,
            "remaining": 2,
        }
        assert summary["project_generation"]["remaining"] == 10

    def test_pro_summary_reports_unlimited_as_none(self, gate, store):
        store.upsert_subscription("u1", Tier.PRO)
        gate.record_usage("u1", "job_search")
        summary = {row["feature"]: row for row in gate.usage_summary("u1")}
        assert summary["job_search"]["used"] == 1
        assert summary["job_search"]["limit"] is None
        assert summary["job_search"]["remaining"] is None

    def test_remaining_never_negative(self, gate):
        for _ in range(5):
            gate.record_usage("u1", "career_analysis")
        summary = {row["feature"]: row for row in gate.usage_summary("u1")}
        assert summary["career_analysis"]["remaining"] == 0


def test_features_lists_every_key(gate):
    assert "career_analysis" in gate.features
    assert "mind_maps" in gate.features
    assert gate.features == sorted(gate.features)
