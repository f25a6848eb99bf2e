"""
Entitlement gating with tier limits and a daily usage ledger.

Provides a single checkpoint for feature access control:
1. Effective tier (stored tier, downgraded to free once expired)
2. Tier limit for the feature (boolean, unlimited, or a daily quota)
3. Today's usage count from the ledger for numeric quotas

The gate reads and writes through an injected UsageStore and holds no
per-subscriber state of its own. Two near-simultaneous checks may both
observe the same count and both be admitted; quotas are a billing
nudge, not a hard resource limit, so no locking is attempted.
"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from devsmentor.core.limits import (
    FeatureLimits,
    Limit,
    TIER_LIMITS,
    is_boolean_limit,
    is_unlimited,
)
from devsmentor.core.models import Decision, Tier, UsageRecord, as_utc, utc_now
from devsmentor.core.store import UsageStore
from devsmentor.utils.errors import ConfigurationError


class EntitlementGate:
    """
    Decides whether a (subscriber, feature) pair may proceed.

    Usage:
        gate = EntitlementGate(store)
        decision = gate.check_access("user-1", "career_analysis")
        if decision.allowed:
            ...  # run the action
            gate.record_usage("user-1", "career_analysis")

    Storage failures propagate as StorageError; the calling feature
    handler decides whether to fail open.
    """

    def __init__(
        self,
        store: UsageStore,
        limits: Optional[Dict[Tier, FeatureLimits]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize entitlement gate.

        Args:
            store: Subscription and usage persistence.
            limits: Per-tier limit mapping. Defaults to TIER_LIMITS.
            clock: Returns the current time; naive values are read as UTC.
        """
        self._store = store
        self._limits = limits or TIER_LIMITS
        self._clock = clock or utc_now
        self.logger = logging.getLogger("features.gate")

    @property
    def store(self) -> UsageStore:
        return self._store

    @property
    def features(self) -> List[str]:
        """All recognised feature keys."""
        return sorted(self._limits[Tier.FREE].keys())

    def today(self) -> date:
        """Day bucket for usage records: the UTC calendar date."""
        return as_utc(self._clock()).date()

    def effective_tier(self, subscriber_id: str) -> Tier:
        """
        Resolve the subscriber's tier as of now.

        Creates a free subscription row on first sight. An expired tier
        is reported as free; the stored row is left untouched.
        """
        subscription = self._store.get_subscription(subscriber_id)
        if subscription is None:
            subscription = self._store.create_subscription(subscriber_id, Tier.FREE)
            self.logger.info(f"Created default free subscription for '{subscriber_id}'")
        tier = subscription.effective_tier(self._clock())
        if tier is not subscription.tier:
            self.logger.debug(
                f"Subscription for '{subscriber_id}' expired at "
                f"{subscription.expires_at}, treating as {tier.value}"
            )
        return tier

    def limit_for(self, tier: Tier, feature: str) -> Limit:
        """
        Look up a feature's limit under a tier.

        Raises:
            ConfigurationError: If the feature key is not recognised.
        """
        tier_limits = self._limits.get(tier, {})
        if feature not in tier_limits:
            raise ConfigurationError(
                f"Unknown feature '{feature}'. "
                f"Known features: {', '.join(self.features)}",
                config_key=feature,
            )
        return tier_limits[feature]

    def check_access(self, subscriber_id: str, feature: str) -> Decision:
        """
        Decide whether the subscriber may use the feature now.

        Raises:
            ConfigurationError: If the feature key is not recognised.
            StorageError: If the subscription or usage lookup fails.
        """
        # Unknown keys fail before any storage access
        self.limit_for(Tier.FREE, feature)

        tier = self.effective_tier(subscriber_id)
        limit = self.limit_for(tier, feature)

        if is_boolean_limit(limit):
            if not limit:
                self.logger.debug(f"'{feature}' is not available on the {tier.value} tier")
                return Decision(
                    allowed=False,
                    feature=feature,
                    tier=tier,
                    reason=Decision.TIER_RESTRICTED,
                    limit=limit,
                )
            return Decision(allowed=True, feature=feature, tier=tier, limit=limit)

        if is_unlimited(limit):
            return Decision(allowed=True, feature=feature, tier=tier, limit=limit)

        used = self._store.count_usage(subscriber_id, feature, self.today())
        if used >= limit:
            self.logger.info(
                f"Daily quota reached for '{subscriber_id}' on '{feature}' ({used}/{limit})"
            )
            return Decision(
                allowed=False,
                feature=feature,
                tier=tier,
                reason=Decision.QUOTA_EXHAUSTED,
                remaining=0,
                limit=limit,
            )

        return Decision(
            allowed=True,
            feature=feature,
            tier=tier,
            remaining=limit - used,
            limit=limit,
        )

    def is_available(self, subscriber_id: str, feature: str) -> bool:
        """Boolean shortcut over check_access for UI display."""
        return self.check_access(subscriber_id, feature).allowed

    def record_usage(self, subscriber_id: str, feature: str) -> None:
        """
        Append one usage record for today.

        Not idempotent: call at most once per successful action.

        Raises:
            ConfigurationError: If the feature key is not recognised.
            StorageError: If the write fails.
        """
        self.limit_for(Tier.FREE, feature)
        now = as_utc(self._clock())
        self._store.insert_usage(
            UsageRecord(
                subscriber_id=subscriber_id,
                feature=feature,
                day=now.date(),
                created_at=now,
            )
        )
        self.logger.debug(f"Recorded usage of '{feature}' for '{subscriber_id}'")

    def current_usage(self, subscriber_id: str, feature: str) -> int:
        """Today's usage count for display. Same race caveats as check_access."""
        self.limit_for(Tier.FREE, feature)
        return self._store.count_usage(subscriber_id, feature, self.today())

    def usage_summary(self, subscriber_id: str) -> List[Dict[str, Any]]:
        """
        Per-feature quota status for numeric features under the current tier.

        Returns:
            List of dicts with feature, limit, used and remaining.
            ``limit`` and ``remaining`` are None for unlimited features.
        """
        tier = self.effective_tier(subscriber_id)
        today = self.today()
        summary = []
        for feature, limit in sorted(self._limits[tier].items()):
            if is_boolean_limit(limit):
                continue
            used = self._store.count_usage(subscriber_id, feature, today)
            if is_unlimited(limit):
                summary.append(
                    {"feature": feature, "limit": None, "used": used, "remaining": None}
                )
            else:
                summary.append(
                    {
                        "feature": feature,
                        "limit": limit,
                        "used": used,
                        "remaining": max(0, limit - used),
                    }
                )
        return summary
